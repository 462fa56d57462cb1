"""
Scheduled Reminders
Entry points an external scheduler calls on a timer (morning greeting,
evening reminder, deadline-tomorrow reminder). All sends go through the
throttled broadcaster.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from core.config import CONFIG
from core.models import Assignment, User, format_datetime, partition_by_status
from services.broadcaster import BroadcastResult, ThrottledBroadcaster

logger = logging.getLogger(__name__)

MOTIVATION = [
    "Keep chasing your dreams! 🚀",
    "New day, new chances! 💪",
    "Don't fear failing, fear not trying. ✨",
    "Small steps today make a big difference tomorrow! 🌱",
    "Learning is the best investment in your future. 📚",
]

LIST_CAP = 10


@dataclass
class DueGroups:
    overdue: List[Assignment] = field(default_factory=list)
    today: List[Assignment] = field(default_factory=list)
    tomorrow: List[Assignment] = field(default_factory=list)
    other: List[Assignment] = field(default_factory=list)

    def sections(self) -> List[Tuple[str, List[Assignment]]]:
        return [
            ("⚠️ *Overdue:*", self.overdue),
            ("🟡 *Due today:*", self.today),
            ("🔔 *Due tomorrow:*", self.tomorrow),
            ("📝 *Other assignments:*", self.other),
        ]


def _by_deadline(assignment: Assignment):
    # Assignments without a deadline sort last
    if assignment.deadline is None:
        return (1, datetime.max.replace(tzinfo=timezone.utc))
    deadline = assignment.deadline
    if deadline.tzinfo is None:
        deadline = deadline.replace(tzinfo=timezone.utc)
    return (0, deadline)


class ReminderService:
    def __init__(self, store: Any, broadcaster: ThrottledBroadcaster,
                 tz_name: Optional[str] = None,
                 clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
                 rng: Optional[random.Random] = None):
        self.store = store
        self.broadcaster = broadcaster
        self.tz_name = tz_name or CONFIG['timezone']
        self.tz = ZoneInfo(self.tz_name)
        self.clock = clock
        self.rng = rng or random.Random()

    # ==================== Helpers ====================

    def _local_date(self, value: datetime) -> date:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(self.tz).date()

    def classify(self, assignments: List[Assignment]) -> DueGroups:
        now = self.clock()
        today = self._local_date(now)
        groups = DueGroups()
        for assignment in sorted(assignments, key=_by_deadline):
            deadline = assignment.deadline
            if deadline is None:
                groups.other.append(assignment)
                continue
            if deadline.tzinfo is None:
                deadline = deadline.replace(tzinfo=timezone.utc)
            local_day = self._local_date(deadline)
            if deadline < now:
                groups.overdue.append(assignment)
            elif local_day == today:
                groups.today.append(assignment)
            elif local_day == today + timedelta(days=1):
                groups.tomorrow.append(assignment)
            else:
                groups.other.append(assignment)
        return groups

    def render_list(self, items: List[Assignment], cap: int = LIST_CAP) -> str:
        lines = [f"{i}. *{a.code or a.title}* - {format_datetime(a.deadline, self.tz_name, empty='-')}"
                 for i, a in enumerate(items[:cap], start=1)]
        if len(items) > cap:
            lines.append(f"...and {len(items) - cap} more")
        return "\n".join(lines)

    def _date_header(self) -> str:
        return self.clock().astimezone(self.tz).strftime("%A, %d %B %Y")

    async def open_assignments_by_student(self) -> List[Tuple[User, List[Assignment]]]:
        """Every student with the open assignments of their class."""
        result = []
        by_class: Dict[str, List[Assignment]] = {}
        for student in await self.store.list_students():
            if not student.class_name:
                result.append((student, []))
                continue
            if student.class_name not in by_class:
                by_class[student.class_name] = await self.store.list_assignments(class_name=student.class_name)
            statuses = await self.store.statuses_for_student(student.id)
            open_items, _ = partition_by_status(by_class[student.class_name], statuses)
            result.append((student, open_items))
        return result

    # ==================== Entry points ====================

    async def morning_broadcast(self) -> BroadcastResult:
        header = self._date_header()
        queue = []
        for student, open_items in await self.open_assignments_by_student():
            body = (f"🌅 *Good morning {student.name}!*\n\n"
                    f"📅 *Today:* {header}\n"
                    f"💬 _\"{self.rng.choice(MOTIVATION)}\"_\n\n")
            if not open_items:
                body += "✅ Nothing left to do. Have a nice day! 🌟"
            else:
                blocks = [f"{title}\n{self.render_list(items)}"
                          for title, items in self.classify(open_items).sections() if items]
                body += "\n\n".join(blocks)
            queue.append((student.phone, body))
        logger.info("🌅 Morning broadcast to %d students", len(queue))
        return await self.broadcaster.broadcast(queue)

    async def evening_broadcast(self) -> BroadcastResult:
        header = self._date_header()
        queue = []
        for student, open_items in await self.open_assignments_by_student():
            if not open_items:
                continue
            blocks = [f"{title}\n{self.render_list(items)}"
                      for title, items in self.classify(open_items).sections() if items]
            body = (f"🌇 *Good evening {student.name}!*\n\n"
                    f"📅 *Today:* {header}\n\n"
                    "📝 *Your assignment reminder:*\n"
                    + "\n\n".join(blocks)
                    + "\n\n💬 Finish them before the deadline. You've got this! 🚀")
            queue.append((student.phone, body))
        if not queue:
            logger.info("✅ No open assignments this evening")
        return await self.broadcaster.broadcast(queue)

    async def deadline_tomorrow_reminder(self) -> BroadcastResult:
        tomorrow = self._local_date(self.clock()) + timedelta(days=1)
        queue = []
        for student, open_items in await self.open_assignments_by_student():
            due = [a for a in open_items
                   if a.deadline is not None and self._local_date(a.deadline) == tomorrow]
            if not due:
                continue
            due.sort(key=_by_deadline)
            body = ("🔔 *Assignment reminder: due tomorrow!*\n\n"
                    f"Hi {student.name} 👋,\n"
                    "These assignments are due tomorrow:\n\n"
                    f"{self.render_list(due)}\n\n"
                    "💬 Finish them soon so you're not late! 🚀")
            queue.append((student.phone, body))
        if not queue:
            logger.info("✅ Nothing due tomorrow")
        return await self.broadcaster.broadcast(queue)
