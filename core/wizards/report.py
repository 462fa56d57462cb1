"""
Report selection wizard
PICK_ASSIGNMENT -> workbook for the assignment's class.
The `rekap <CODE>` shortcut starts at PICK_CLASS and asks which class to recap.
"""

import logging

from core.intent.entity_extractor import is_valid_class_name, normalize_class_name
from core.models import Assignment
from core.state.payloads import ReportPayload, ReportStep
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
from services.report import XLSX_MIME, collect_report_rows, report_filename

logger = logging.getLogger(__name__)


async def deliver_report(ctx: TurnContext, assignment: Assignment, class_name: str):
    rows = await collect_report_rows(ctx.store, assignment, class_name, ctx.tz_name)
    if not rows:
        await ctx.reply(f"📭 No students registered in class *{class_name}*.")
        return

    missing = [row["Student"] for row in rows if row["Status"] != "Submitted"]
    submitted = len(rows) - len(missing)
    workbook = ctx.services.reports.build_report(rows)

    lines = [f"📊 *Recap {assignment.code}* - class *{class_name}*",
             f"✅ Submitted: {submitted}", f"❌ Not submitted: {len(missing)}"]
    if missing:
        lines.append("")
        lines.append("*Not submitted yet:*")
        lines += [f"{i}. {name}" for i, name in enumerate(missing, start=1)]
    await ctx.reply("\n".join(lines))
    await ctx.reply_document(workbook, report_filename(assignment.code, class_name), XLSX_MIME,
                             caption=f"Recap {assignment.code} {class_name}: "
                                     f"{submitted} submitted, {len(missing)} not submitted")
    logger.info("📊 Report %s/%s delivered to %s", assignment.code, class_name, ctx.identity)


class ReportWizard:
    async def start(self, ctx: TurnContext):
        limit = ctx.services.config['max_list_items']
        assignments = await ctx.store.list_assignments(teacher_id=ctx.user.id)
        if not assignments:
            await finish_to_menu(ctx)
            await ctx.reply("📭 You have no assignments to recap yet.")
            return
        payload = ReportPayload(choices=choices_from(assignments, limit))
        ctx.state.enter_wizard(payload)
        await ctx.reply("📊 *Which assignment do you want a recap for?*\n\n"
                        f"{render_choices(payload.choices)}\n\n*0.* ❌ Cancel")

    async def start_for_code(self, ctx: TurnContext, code: str):
        assignment = await ctx.store.find_assignment_by_code(code)
        if assignment is None:
            ctx.state.reset()
            await ctx.reply(f"⚠️ Assignment *{code}* was not found.")
            return
        ctx.state.enter_wizard(ReportPayload(step=ReportStep.PICK_CLASS, code=assignment.code))
        await ctx.reply(f"🏫 Which class for the *{assignment.code}* recap? "
                        f"(e.g. {assignment.class_name})\n\n*0.* ❌ Cancel")

    async def handle(self, ctx: TurnContext, payload: ReportPayload):
        if is_cancel(ctx.text):
            await cancel_wizard(ctx, "Recap cancelled")
            return

        if payload.step == ReportStep.PICK_ASSIGNMENT:
            index = parse_choice(ctx.text, len(payload.choices))
            if index is None:
                await ctx.reply(invalid_choice_text(len(payload.choices)))
                return
            assignment = await ctx.store.get_assignment(payload.choices[index].assignment_id)
            await finish_to_menu(ctx)
            if assignment is None:
                await ctx.reply("⚠️ That assignment no longer exists.")
                return
            await deliver_report(ctx, assignment, assignment.class_name)
            return

        class_name = normalize_class_name(ctx.text)
        if not is_valid_class_name(class_name):
            await ctx.reply("⚠️ That doesn't look like a class. Example: XIITKJ2 or XI TKJ 2. "
                            "Type 0 to cancel.")
            return
        assignment = await ctx.store.find_assignment_by_code(payload.code)
        await finish_to_menu(ctx)
        if assignment is None:
            await ctx.reply(f"⚠️ Assignment *{payload.code}* was not found.")
            return
        await deliver_report(ctx, assignment, class_name)


report_wizard = ReportWizard()
