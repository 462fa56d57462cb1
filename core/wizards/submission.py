"""
Submission collection wizard
PICK_ASSIGNMENT -> AWAITING_FILE -> upload, mark DONE, optional auto-grading.

Only a PDF attachment moves AWAITING_FILE forward; anything else re-prompts
without touching the store.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from core.models import Assignment, Progress, format_datetime, partition_by_status
from core.state.payloads import SubmissionPayload, SubmissionStep
from core.wizards.base import (
    TurnContext,
    cancel_wizard,
    choices_from,
    finish_to_menu,
    invalid_choice_text,
    is_cancel,
    parse_choice,
    render_choices,
)
from services.pdf_converter import is_image
from services.transport import PDF_MIME

logger = logging.getLogger(__name__)


async def student_partition(ctx: TurnContext) -> Tuple[List[Assignment], List[Assignment]]:
    """(open, done) assignments of the student's class."""
    if not ctx.user.class_name:
        return [], []
    assignments = await ctx.store.list_assignments(class_name=ctx.user.class_name)
    statuses = await ctx.store.statuses_for_student(ctx.user.id)
    return partition_by_status(assignments, statuses)


async def find_for_student(ctx: TurnContext, code: str) -> Optional[Assignment]:
    """Assignment by code, only when it belongs to the student's class."""
    assignment = await ctx.store.find_assignment_by_code(code)
    if assignment is None or assignment.class_name != ctx.user.class_name:
        return None
    return assignment


def file_prompt(assignment: Assignment, tz_name: str) -> str:
    attachment = f"\n📎 Teacher's attachment: {assignment.pdf_url}" if assignment.pdf_url else ""
    return ("📝 *Submit assignment*\n"
            f"📌 Code: *{assignment.code}*\n"
            f"📖 Title: *{assignment.title}*\n"
            f"⏰ Deadline: {format_datetime(assignment.deadline, tz_name)}"
            f"{attachment}\n\n"
            "👉 Send your work here as a *PDF* file.\n\n*0.* ❌ Cancel")


class SubmissionWizard:
    async def start(self, ctx: TurnContext):
        open_items, _ = await student_partition(ctx)
        if not open_items:
            await finish_to_menu(ctx)
            await ctx.reply("🎉 You have no open assignments to submit.")
            return
        payload = SubmissionPayload(choices=choices_from(open_items, ctx.services.config['max_list_items']))
        ctx.state.enter_wizard(payload)
        await ctx.reply("📤 *Which assignment are you submitting?*\n\n"
                        f"{render_choices(payload.choices, with_class=False)}\n\n*0.* ❌ Cancel")

    async def start_for_code(self, ctx: TurnContext, code: str):
        assignment = await find_for_student(ctx, code)
        if assignment is None:
            ctx.state.reset()
            await ctx.reply(f"⚠️ Assignment *{code}* was not found for your class.")
            return
        await self._await_file(ctx, assignment)

    async def _await_file(self, ctx: TurnContext, assignment: Assignment):
        ctx.state.enter_wizard(SubmissionPayload(step=SubmissionStep.AWAITING_FILE,
                                                 assignment_id=assignment.id,
                                                 assignment_code=assignment.code))
        await ctx.reply(file_prompt(assignment, ctx.tz_name))

    async def handle(self, ctx: TurnContext, payload: SubmissionPayload):
        if not ctx.message.has_attachment and is_cancel(ctx.text):
            await cancel_wizard(ctx, "Submission cancelled")
            return

        if payload.step == SubmissionStep.PICK_ASSIGNMENT:
            index = parse_choice(ctx.text, len(payload.choices))
            if index is None:
                await ctx.reply(invalid_choice_text(len(payload.choices)))
                return
            assignment = await ctx.store.get_assignment(payload.choices[index].assignment_id)
            if assignment is None:
                await finish_to_menu(ctx)
                await ctx.reply("⚠️ That assignment no longer exists.")
                return
            await self._await_file(ctx, assignment)
            return

        await self._receive_file(ctx, payload)

    async def _receive_file(self, ctx: TurnContext, payload: SubmissionPayload):
        if not ctx.message.has_pdf:
            if ctx.message.has_attachment:
                hint = (" Still a photo? Type 0, then *image to pdf* to convert it first."
                        if is_image(ctx.message.attachment_type) else "")
                await ctx.reply("📎 The file must be a *PDF*. Please send it again as PDF, or 0 to cancel." + hint)
            else:
                await ctx.reply(f"⏳ Waiting for your *PDF* for {payload.assignment_code}. "
                                "Send the file, or 0 to cancel.")
            return

        data = await ctx.download_attachment()
        if not data:
            await ctx.reply("⚠️ Failed to download the file. Please send the PDF again.")
            return

        assignment = await ctx.store.get_assignment(payload.assignment_id)
        if assignment is None:
            await finish_to_menu(ctx)
            await ctx.reply(f"⚠️ Assignment {payload.assignment_code} no longer exists.")
            return

        stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
        filename = f"{assignment.code}_{ctx.user.phone}_{stamp}.pdf"
        url = await ctx.services.storage.upload(data, filename, PDF_MIME)
        submission = await ctx.store.upsert_submission(assignment.id, ctx.user.id, url)
        await ctx.store.set_status(assignment.id, ctx.user.id, Progress.DONE)
        await finish_to_menu(ctx)
        logger.info("📤 %s submitted %s", ctx.identity, assignment.code)

        await ctx.reply(f"✅ *Submission received* for *{assignment.code}*.\n📄 {url}\n\n"
                        "Type *menu* to see the menu again.")
        if assignment.auto_graded:
            await ctx.reply("🤖 Your work is being graded automatically. I'll send the result shortly.")
            ctx.services.grading.schedule(submission, assignment, ctx.identity)


submission_wizard = SubmissionWizard()
