"""
Roster browsing wizard
List the classes, pick one by number, show its students.
"""

from core.state.payloads import RosterPayload
from core.wizards.base import (
    TurnContext,
    cancel_wizard,
    finish_to_menu,
    invalid_choice_text,
    is_cancel,
    parse_choice,
)


class RosterWizard:
    async def start(self, ctx: TurnContext):
        classes = await ctx.store.list_classes()
        if not classes:
            await finish_to_menu(ctx)
            await ctx.reply("📭 No students are registered yet.")
            return
        payload = RosterPayload(classes=classes[:ctx.services.config['max_list_items']])
        ctx.state.enter_wizard(payload)
        lines = [f"*{i}.* {name}" for i, name in enumerate(payload.classes, start=1)]
        await ctx.reply("👥 *Pick a class:*\n\n" + "\n".join(lines) + "\n\n*0.* ❌ Cancel")

    async def handle(self, ctx: TurnContext, payload: RosterPayload):
        if is_cancel(ctx.text):
            await cancel_wizard(ctx)
            return

        index = parse_choice(ctx.text, len(payload.classes))
        if index is None:
            await ctx.reply(invalid_choice_text(len(payload.classes)))
            return

        class_name = payload.classes[index]
        students = await ctx.store.list_students(class_name)
        await finish_to_menu(ctx)
        if not students:
            await ctx.reply(f"📭 Class *{class_name}* has no students.")
            return
        lines = [f"{i}. {s.name} ({s.phone})" for i, s in enumerate(students, start=1)]
        await ctx.reply(f"👥 *Class {class_name}* ({len(students)} students)\n\n" + "\n".join(lines))


roster_wizard = RosterWizard()
