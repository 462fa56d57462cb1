"""
Status history wizard
List submitted (DONE) assignments, pick one, show the submission detail and grade.
"""

from core.models import format_datetime
from core.state.payloads import StatusHistoryPayload
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
from core.wizards.submission import student_partition


class StatusHistoryWizard:
    async def start(self, ctx: TurnContext):
        open_items, done_items = await student_partition(ctx)
        if not done_items:
            await finish_to_menu(ctx)
            await ctx.reply(f"📭 No submitted assignments yet. Open assignments: {len(open_items)}.")
            return
        payload = StatusHistoryPayload(choices=choices_from(done_items, ctx.services.config['max_list_items']))
        ctx.state.enter_wizard(payload)
        await ctx.reply("✅ *Submitted assignments*\n\n"
                        f"{render_choices(payload.choices, with_class=False)}\n\n"
                        f"📚 Still open: {len(open_items)}\n\n"
                        "Type a number to see details, or *0* to cancel.")

    async def handle(self, ctx: TurnContext, payload: StatusHistoryPayload):
        if is_cancel(ctx.text):
            await cancel_wizard(ctx)
            return

        index = parse_choice(ctx.text, len(payload.choices))
        if index is None:
            await ctx.reply(invalid_choice_text(len(payload.choices)))
            return

        choice = payload.choices[index]
        assignment = await ctx.store.get_assignment(choice.assignment_id)
        submission = await ctx.store.get_submission(choice.assignment_id, ctx.user.id)
        await finish_to_menu(ctx)
        if assignment is None:
            await ctx.reply(f"⚠️ Assignment {choice.code} no longer exists.")
            return

        lines = [f"📌 *{assignment.code}* - {assignment.title}",
                 f"⏰ Deadline: {format_datetime(assignment.deadline, ctx.tz_name)}"]
        if submission is None:
            lines.append("📄 Marked as done (no file on record)")
        else:
            lines.append(f"📤 Submitted: {format_datetime(submission.submitted_at, ctx.tz_name)}")
            lines.append(f"📄 File: {submission.file_url}")
            if submission.graded:
                lines.append(f"🎓 Grade: *{submission.grade}* ({submission.score}/100)")
                lines.append(f"💬 {submission.evaluation or 'No notes.'}")
            elif assignment.auto_graded:
                lines.append("⏳ Grading in progress")
            else:
                lines.append("⏳ Waiting for the teacher's grade")
        await ctx.reply("\n".join(lines))


status_history_wizard = StatusHistoryWizard()
