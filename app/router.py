"""
Command Router
Dispatches a routed intent to the teacher or student handler surface, after
the role gate. Role mismatches get a fixed forbidden reply and never reach a
handler.
"""

import logging
from typing import Any, Dict, Optional

from app.student_handlers import StudentHandlers
from app.teacher_handlers import TeacherHandlers
from core.errors import NotFoundError, RoleForbiddenError
from core.greetings.greeting_handler import GreetingHandler, greeting_handler
from core.intent.rules import Intent
from core.models import Role
from core.wizards import image_to_pdf_wizard
from core.wizards.base import TurnContext

logger = logging.getLogger(__name__)


def required_role(intent: Intent) -> Optional[Role]:
    if intent.teacher_only:
        return Role.TEACHER
    if intent.student_only:
        return Role.STUDENT
    return None


def check_role(intent: Intent, role: Role):
    required = required_role(intent)
    if required is not None and role != required:
        raise RoleForbiddenError(required.value)


class CommandRouter:
    def __init__(self, teacher: Optional[TeacherHandlers] = None,
                 student: Optional[StudentHandlers] = None,
                 greeting: GreetingHandler = greeting_handler):
        self.greeting = greeting
        self.teacher = teacher or TeacherHandlers(greeting)
        self.student = student or StudentHandlers(greeting)
        self._table = {
            **self.teacher.table(),
            **self.student.table(),
            Intent.IMAGE_TO_PDF: self.image_to_pdf,
        }

    async def image_to_pdf(self, ctx: TurnContext, slots: Dict[str, Any]):
        await image_to_pdf_wizard.start(ctx)

    @staticmethod
    def permits(intent: Intent, role: Role) -> bool:
        return required_role(intent) in (None, role)

    async def route(self, ctx: TurnContext, intent: Intent, slots: Dict[str, Any]):
        try:
            check_role(intent, ctx.user.role)
        except RoleForbiddenError as e:
            logger.info("⛔ %s (%s) tried %s", ctx.identity, ctx.user.role.value, intent.value)
            ctx.state.reset()
            await ctx.reply(self.greeting.forbidden_text(e.required_role))
            return

        logger.info("➡️ Routing %s for %s (slots=%s)", intent.value, ctx.identity, sorted(slots))
        if intent == Intent.GREETING_HELP:
            ctx.state.enter_menu(self.greeting.menu_mode_for(ctx.user.role))
            await ctx.reply(self.greeting.greeting_text(ctx.user, ctx.services.config['bot_name']))
            return

        handler = self._table.get(intent)
        if handler is None:
            # fallback and anything without a handler
            ctx.state.enter_menu(self.greeting.menu_mode_for(ctx.user.role))
            await ctx.reply(self.greeting.fallback_text(ctx.user.role))
            return

        try:
            await handler(ctx, slots)
        except NotFoundError as e:
            ctx.state.reset()
            await ctx.reply(f"⚠️ {e}")
