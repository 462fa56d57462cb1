"""
Teacher-side handler surface
One coroutine per routed teacher intent.
"""

import logging
from typing import Any, Awaitable, Callable, Dict

from core.errors import NotFoundError
from core.greetings.greeting_handler import GreetingHandler, greeting_handler
from core.intent.rules import Intent
from core.wizards import assignment_creation_wizard, broadcast_wizard, report_wizard, roster_wizard
from core.wizards.base import TurnContext
from core.wizards.broadcast import send_and_report

logger = logging.getLogger(__name__)

Handler = Callable[[TurnContext, Dict[str, Any]], Awaitable[None]]


class TeacherHandlers:
    def __init__(self, greeting: GreetingHandler = greeting_handler):
        self.greeting = greeting

    def table(self) -> Dict[Intent, Handler]:
        return {
            Intent.TEACHER_CREATE_ASSIGNMENT: self.create_assignment,
            Intent.TEACHER_BROADCAST: self.broadcast,
            Intent.TEACHER_REPORT: self.report,
            Intent.TEACHER_ROSTER: self.roster,
            Intent.TEACHER_HELP: self.help,
        }

    async def create_assignment(self, ctx: TurnContext, slots: Dict[str, Any]):
        await assignment_creation_wizard.start(ctx)

    async def broadcast(self, ctx: TurnContext, slots: Dict[str, Any]):
        """Code and class given: send right away. Otherwise list assignments to pick from."""
        code, class_name = slots.get("code"), slots.get("class_name")
        if not (code and class_name):
            await broadcast_wizard.start(ctx)
            return
        assignment = await ctx.store.find_assignment_by_code(code)
        if assignment is None:
            raise NotFoundError(f"Assignment {code} was not found.")
        await send_and_report(ctx, assignment, class_name)

    async def report(self, ctx: TurnContext, slots: Dict[str, Any]):
        code = slots.get("code")
        if code:
            await report_wizard.start_for_code(ctx, code)
        else:
            await report_wizard.start(ctx)

    async def roster(self, ctx: TurnContext, slots: Dict[str, Any]):
        await roster_wizard.start(ctx)

    async def help(self, ctx: TurnContext, slots: Dict[str, Any]):
        ctx.state.enter_menu(self.greeting.menu_mode_for(ctx.user.role))
        await ctx.reply(self.greeting.help_text(ctx.user.role))
