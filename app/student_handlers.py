"""
Student-side handler surface
Open/done listings, assignment detail, deadline lookup and submission entry.
"""

import logging
from typing import Any, Dict

from core.errors import NotFoundError
from core.greetings.greeting_handler import GreetingHandler, greeting_handler
from core.intent.rules import Intent
from core.models import Assignment, Progress, format_datetime
from core.wizards import status_history_wizard, submission_wizard
from core.wizards.base import TurnContext
from core.wizards.submission import find_for_student, student_partition

logger = logging.getLogger(__name__)


class StudentHandlers:
    def __init__(self, greeting: GreetingHandler = greeting_handler):
        self.greeting = greeting

    def table(self):
        return {
            Intent.STUDENT_DETAIL: self.detail,
            Intent.STUDENT_SUBMIT: self.submit,
            Intent.STUDENT_MY_TASKS: self.my_tasks,
            Intent.STUDENT_STATUS: self.status,
            Intent.STUDENT_DEADLINE: self.deadline,
            Intent.STUDENT_HELP: self.help,
        }

    async def _require(self, ctx: TurnContext, code: str) -> Assignment:
        assignment = await find_for_student(ctx, code)
        if assignment is None:
            raise NotFoundError(f"Assignment {code} was not found for your class.")
        return assignment

    async def my_tasks(self, ctx: TurnContext, slots: Dict[str, Any]):
        open_items, _ = await student_partition(ctx)
        if not open_items:
            await ctx.reply("🎉 No open assignments. Nice work!")
            return
        lines = []
        for number, assignment in enumerate(open_items, start=1):
            marker = " 🤖" if assignment.auto_graded else ""
            lines.append(f"{number}. *{assignment.code}*{marker} - {assignment.title}\n"
                         f"   ⏰ {format_datetime(assignment.deadline, ctx.tz_name)}")
        await ctx.reply("📚 *Your open assignments*\n\n" + "\n".join(lines)
                        + "\n\n🤖 = graded automatically\n"
                          "Type *submit <CODE>* to hand one in, or *detail <CODE>* for more.")

    async def detail(self, ctx: TurnContext, slots: Dict[str, Any]):
        code = slots.get("code")
        if not code:
            await self.my_tasks(ctx, slots)
            return
        assignment = await self._require(ctx, code)
        statuses = await ctx.store.statuses_for_student(ctx.user.id)
        done = statuses.get(assignment.id) == Progress.DONE
        teacher = await ctx.store.get_user(assignment.teacher_id)
        lines = [
            f"📌 *{assignment.code}* - {assignment.title}",
            f"👩‍🏫 Teacher: {teacher.name if teacher else '-'}",
            f"⏰ Deadline: {format_datetime(assignment.deadline, ctx.tz_name)}",
            f"📝 {assignment.description}",
        ]
        if assignment.pdf_url:
            lines.append(f"📎 Attachment: {assignment.pdf_url}")
        lines.append(f"🤖 Grading: {'automatic' if assignment.auto_graded else 'manual'}")
        lines.append("✅ Status: submitted" if done
                     else f"⏳ Status: not submitted. Type *submit {assignment.code}* to hand it in.")
        await ctx.reply("\n".join(lines))

    async def deadline(self, ctx: TurnContext, slots: Dict[str, Any]):
        code = slots.get("code")
        if not code:
            await self.my_tasks(ctx, slots)
            return
        assignment = await self._require(ctx, code)
        await ctx.reply(f"⏰ *{assignment.code}* is due {format_datetime(assignment.deadline, ctx.tz_name)}.")

    async def submit(self, ctx: TurnContext, slots: Dict[str, Any]):
        code = slots.get("code")
        if code:
            await submission_wizard.start_for_code(ctx, code)
        else:
            await submission_wizard.start(ctx)

    async def status(self, ctx: TurnContext, slots: Dict[str, Any]):
        await status_history_wizard.start(ctx)

    async def help(self, ctx: TurnContext, slots: Dict[str, Any]):
        ctx.state.enter_menu(self.greeting.menu_mode_for(ctx.user.role))
        await ctx.reply(self.greeting.help_text(ctx.user.role))
