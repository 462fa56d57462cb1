"""
Persistent Store
Contract for users, assignments, per-student status rows and submissions,
plus an in-memory implementation used by the chat endpoint and the tests.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Protocol

from core.errors import DuplicateError, NotFoundError
from core.models import Assignment, AssignmentStatus, Progress, Role, Submission, User

logger = logging.getLogger(__name__)


class Store(Protocol):
    async def find_user_by_phone(self, phone: str) -> Optional[User]: ...
    async def get_user(self, user_id: int) -> Optional[User]: ...
    async def list_students(self, class_name: Optional[str] = None) -> List[User]: ...
    async def list_classes(self) -> List[str]: ...

    async def create_assignment(self, *, code: str, title: str, description: str,
                                class_name: str, teacher_id: int,
                                deadline: Optional[datetime] = None,
                                pdf_url: Optional[str] = None,
                                answer_key_url: Optional[str] = None) -> Assignment: ...
    async def find_assignment_by_code(self, code: str) -> Optional[Assignment]: ...
    async def get_assignment(self, assignment_id: int) -> Optional[Assignment]: ...
    async def list_assignments(self, teacher_id: Optional[int] = None,
                               class_name: Optional[str] = None) -> List[Assignment]: ...

    async def create_statuses(self, assignment_id: int, student_ids: Iterable[int]) -> int: ...
    async def set_status(self, assignment_id: int, student_id: int, status: Progress) -> AssignmentStatus: ...
    async def statuses_for_student(self, student_id: int) -> Dict[int, Progress]: ...
    async def statuses_for_assignment(self, assignment_id: int) -> Dict[int, Progress]: ...

    async def upsert_submission(self, assignment_id: int, student_id: int, file_url: str) -> Submission: ...
    async def get_submission(self, assignment_id: int, student_id: int) -> Optional[Submission]: ...
    async def list_submissions(self, assignment_id: int) -> List[Submission]: ...


class InMemoryStore:
    """
    Dict-backed store.

    Assignment codes are unique: create_assignment checks and inserts without
    yielding to the event loop, so concurrent creations cannot both win.
    """

    def __init__(self):
        self.users: Dict[int, User] = {}
        self.assignments: Dict[int, Assignment] = {}
        self.statuses: Dict[tuple, AssignmentStatus] = {}
        self.submissions: Dict[tuple, Submission] = {}
        self._next_id = {"user": 1, "assignment": 1, "submission": 1}

    def _new_id(self, kind: str) -> int:
        value = self._next_id[kind]
        self._next_id[kind] = value + 1
        return value

    # ==================== Users ====================

    def add_user(self, phone: str, name: str, role, class_name: Optional[str] = None) -> User:
        """Synchronous seeding helper."""
        resolved = role if isinstance(role, Role) else Role.from_raw(role)
        if resolved is None:
            raise ValueError(f"unknown role: {role!r}")
        user = User(id=self._new_id("user"), phone=phone, name=name,
                    role=resolved, class_name=class_name)
        self.users[user.id] = user
        return user

    async def find_user_by_phone(self, phone: str) -> Optional[User]:
        for user in self.users.values():
            if user.phone == phone:
                return user
        return None

    async def get_user(self, user_id: int) -> Optional[User]:
        return self.users.get(user_id)

    async def list_students(self, class_name: Optional[str] = None) -> List[User]:
        students = [u for u in self.users.values() if u.role == Role.STUDENT]
        if class_name is not None:
            students = [u for u in students if u.class_name == class_name]
        return sorted(students, key=lambda u: u.name.lower())

    async def list_classes(self) -> List[str]:
        return sorted({u.class_name for u in self.users.values()
                       if u.role == Role.STUDENT and u.class_name})

    # ==================== Assignments ====================

    async def create_assignment(self, *, code: str, title: str, description: str,
                                class_name: str, teacher_id: int,
                                deadline: Optional[datetime] = None,
                                pdf_url: Optional[str] = None,
                                answer_key_url: Optional[str] = None) -> Assignment:
        existing = self._assignment_by_code(code)
        if existing is not None:
            raise DuplicateError(code, existing)
        assignment = Assignment(
            id=self._new_id("assignment"),
            code=code,
            title=title,
            description=description,
            class_name=class_name,
            teacher_id=teacher_id,
            deadline=deadline,
            pdf_url=pdf_url,
            answer_key_url=answer_key_url,
        )
        self.assignments[assignment.id] = assignment
        logger.info("💾 Assignment %s created (id=%d, class=%s)", code, assignment.id, class_name)
        return assignment

    def _assignment_by_code(self, code: str) -> Optional[Assignment]:
        for assignment in self.assignments.values():
            if assignment.code == code:
                return assignment
        return None

    async def find_assignment_by_code(self, code: str) -> Optional[Assignment]:
        return self._assignment_by_code(code)

    async def get_assignment(self, assignment_id: int) -> Optional[Assignment]:
        return self.assignments.get(assignment_id)

    async def list_assignments(self, teacher_id: Optional[int] = None,
                               class_name: Optional[str] = None) -> List[Assignment]:
        """Newest first."""
        items = list(self.assignments.values())
        if teacher_id is not None:
            items = [a for a in items if a.teacher_id == teacher_id]
        if class_name is not None:
            items = [a for a in items if a.class_name == class_name]
        return sorted(items, key=lambda a: (a.created_at, a.id), reverse=True)

    # ==================== Status rows ====================

    async def create_statuses(self, assignment_id: int, student_ids: Iterable[int]) -> int:
        """Insert NOT_DONE rows, skipping students that already have one."""
        created = 0
        for student_id in student_ids:
            key = (assignment_id, student_id)
            if key in self.statuses:
                continue
            self.statuses[key] = AssignmentStatus(assignment_id, student_id, Progress.NOT_DONE)
            created += 1
        return created

    async def set_status(self, assignment_id: int, student_id: int,
                         status: Progress) -> AssignmentStatus:
        if assignment_id not in self.assignments:
            raise NotFoundError(f"assignment {assignment_id}")
        row = AssignmentStatus(assignment_id, student_id, status)
        self.statuses[(assignment_id, student_id)] = row
        return row

    async def statuses_for_student(self, student_id: int) -> Dict[int, Progress]:
        return {aid: row.status for (aid, sid), row in self.statuses.items() if sid == student_id}

    async def statuses_for_assignment(self, assignment_id: int) -> Dict[int, Progress]:
        return {sid: row.status for (aid, sid), row in self.statuses.items() if aid == assignment_id}

    # ==================== Submissions ====================

    async def upsert_submission(self, assignment_id: int, student_id: int,
                                file_url: str) -> Submission:
        """One submission per (student, assignment); a resubmission replaces the file and clears the grade."""
        key = (assignment_id, student_id)
        current = self.submissions.get(key)
        now = datetime.now(timezone.utc)
        if current is None:
            current = Submission(id=self._new_id("submission"), assignment_id=assignment_id,
                                 student_id=student_id, file_url=file_url, submitted_at=now)
            self.submissions[key] = current
        else:
            current.file_url = file_url
            current.submitted_at = now
            current.evaluation = current.grade = None
            current.score = None
        return current

    async def get_submission(self, assignment_id: int, student_id: int) -> Optional[Submission]:
        return self.submissions.get((assignment_id, student_id))

    async def list_submissions(self, assignment_id: int) -> List[Submission]:
        return [s for (aid, _), s in self.submissions.items() if aid == assignment_id]

    def record_grade(self, assignment_id: int, student_id: int, grade: str,
                     score: float, evaluation: Optional[str] = None) -> Submission:
        """What the external grader does; used by tests and local runs."""
        submission = self.submissions.get((assignment_id, student_id))
        if submission is None:
            raise NotFoundError(f"submission ({assignment_id}, {student_id})")
        submission.grade = grade
        submission.score = score
        submission.evaluation = evaluation
        return submission
