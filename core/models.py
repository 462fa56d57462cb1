"""
Domain records shared by the dialog engine and the store.
Users, assignments, per-student status rows and submissions.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo


class Role(str, Enum):
    TEACHER = "teacher"
    STUDENT = "student"

    @classmethod
    def from_raw(cls, raw: Optional[str]) -> Optional["Role"]:
        """Map stored role names (including the Indonesian ones) to a Role."""
        if not raw:
            return None
        value = str(raw).strip().lower()
        if value in ("teacher", "guru"):
            return cls.TEACHER
        if value in ("student", "siswa"):
            return cls.STUDENT
        return None


class Progress(str, Enum):
    NOT_DONE = "NOT_DONE"
    DONE = "DONE"


@dataclass
class User:
    id: int
    phone: str
    name: str
    role: Role
    class_name: Optional[str] = None


@dataclass
class Assignment:
    id: int
    code: str
    title: str
    description: str
    class_name: str
    teacher_id: int
    deadline: Optional[datetime] = None
    pdf_url: Optional[str] = None
    answer_key_url: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def auto_graded(self) -> bool:
        return bool(self.answer_key_url)


@dataclass
class AssignmentStatus:
    assignment_id: int
    student_id: int
    status: Progress = Progress.NOT_DONE


@dataclass
class Submission:
    id: int
    assignment_id: int
    student_id: int
    file_url: str
    submitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    evaluation: Optional[str] = None
    grade: Optional[str] = None
    score: Optional[float] = None

    @property
    def graded(self) -> bool:
        return bool(self.grade) and self.score is not None


def partition_by_status(
    assignments: Iterable[Assignment],
    statuses: Dict[int, Progress],
) -> Tuple[List[Assignment], List[Assignment]]:
    """
    Split a student's class assignments into (open, done).

    An assignment with no status row counts as open, so the two lists are
    disjoint and together cover every assignment passed in.
    """
    open_items: List[Assignment] = []
    done_items: List[Assignment] = []
    for assignment in assignments:
        if statuses.get(assignment.id) == Progress.DONE:
            done_items.append(assignment)
        else:
            open_items.append(assignment)
    return open_items, done_items


def format_datetime(value: Optional[datetime], tz_name: str = "Asia/Jakarta",
                    empty: str = "Not set") -> str:
    """Render a stored (UTC) timestamp in the bot's local timezone."""
    if value is None:
        return empty
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(ZoneInfo(tz_name)).strftime("%d/%m/%Y %H:%M")
