"""
Broadcast wizard
Teacher picks one of their assignments by number; the announcement goes out
to every student of the class through the throttled broadcaster in the background.
"""

import asyncio
import logging
from typing import List, Optional, Tuple

from core.errors import NotFoundError
from core.models import Assignment
from core.state.payloads import BroadcastPayload
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
from services.broadcaster import BroadcastResult, format_assignment_message
from services.transport import safe_send

logger = logging.getLogger(__name__)


async def announcement_for(ctx: TurnContext, assignment: Assignment,
                           class_name: Optional[str] = None) -> Tuple[List[str], str]:
    """Recipients and text of the announcement for `assignment` (its own class by default)."""
    target_class = class_name or assignment.class_name
    students = await ctx.store.list_students(target_class)
    if not students:
        raise NotFoundError(f"no students registered in class {target_class}")

    teacher = await ctx.store.get_user(assignment.teacher_id)
    text = format_assignment_message(
        assignment.code, assignment.title, assignment.deadline, assignment.pdf_url,
        teacher_name=teacher.name if teacher else None, tz_name=ctx.tz_name,
    )
    return [s.phone for s in students], text


def summary_text(assignment: Assignment, class_name: str, result: BroadcastResult) -> str:
    return (f"✅ Assignment *{assignment.code}* sent to class *{class_name}*.\n"
            f"📨 Sent: {result.sent}, failed: {result.failed}, total: {result.total}")


async def send_and_report(ctx: TurnContext, assignment: Assignment,
                          class_name: Optional[str] = None) -> Optional[asyncio.Task]:
    """
    Acknowledge now and fan out in the background; the teacher gets the
    sent/failed counts once the throttled send finishes.
    """
    target_class = class_name or assignment.class_name
    try:
        phones, text = await announcement_for(ctx, assignment, target_class)
    except NotFoundError:
        await ctx.reply(f"⚠️ No students are registered in class *{target_class}* yet.")
        return None

    transport, teacher = ctx.services.transport, ctx.identity

    async def report(result: BroadcastResult):
        await safe_send(transport, teacher, summary_text(assignment, target_class, result))

    logger.info("📢 Broadcasting %s to %s (%d students)", assignment.code, target_class, len(phones))
    task = ctx.services.broadcaster.schedule(phones, text, on_done=report)
    await ctx.reply(f"📤 Sending *{assignment.code}* to {len(phones)} students of class *{target_class}*. "
                    "I'll report back when it's done.")
    return task


class BroadcastWizard:
    async def start(self, ctx: TurnContext):
        limit = ctx.services.config['max_list_items']
        assignments = await ctx.store.list_assignments(teacher_id=ctx.user.id)
        if not assignments:
            await finish_to_menu(ctx)
            await ctx.reply("📭 You have no assignments yet. Type *create task* to make one.")
            return
        payload = BroadcastPayload(choices=choices_from(assignments, limit))
        ctx.state.enter_wizard(payload)
        await ctx.reply("📢 *Which assignment should be broadcast?*\n\n"
                        f"{render_choices(payload.choices)}\n\n*0.* ❌ Cancel")

    async def handle(self, ctx: TurnContext, payload: BroadcastPayload):
        if is_cancel(ctx.text):
            await cancel_wizard(ctx, "Broadcast cancelled")
            return

        index = parse_choice(ctx.text, len(payload.choices))
        if index is None:
            await ctx.reply(invalid_choice_text(len(payload.choices)))
            return

        choice = payload.choices[index]
        assignment = await ctx.store.get_assignment(choice.assignment_id)
        await finish_to_menu(ctx)
        if assignment is None:
            await ctx.reply(f"⚠️ Assignment {choice.code} no longer exists.")
            return
        await send_and_report(ctx, assignment)


broadcast_wizard = BroadcastWizard()
