"""
Wizard plumbing shared by every multi-step flow: the per-turn context,
numbered-list rendering and choice parsing, and cancellation.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from core.greetings.greeting_handler import greeting_handler
from core.models import Assignment, User
from core.state.payloads import AssignmentChoice
from core.state.state_manager import ConversationState
from services.container import BotServices
from services.transport import InboundMessage, OutboundDocument, safe_send

logger = logging.getLogger(__name__)

CANCEL_CHOICE = "0"
CANCEL_WORDS = re.compile(r"^(?:batal|cancel)$", re.IGNORECASE)


@dataclass
class TurnContext:
    """Everything a handler needs for one inbound message."""
    identity: str
    user: User
    message: InboundMessage
    state: ConversationState
    services: BotServices
    replies: List[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return (self.message.text or "").strip()

    @property
    def store(self):
        return self.services.store

    @property
    def tz_name(self) -> str:
        return self.services.tz_name

    async def reply(self, text: str):
        self.replies.append(text)
        await safe_send(self.services.transport, self.identity, text)

    async def reply_document(self, data: bytes, filename: str, mime_type: str, caption: str = ""):
        await safe_send(self.services.transport, self.identity,
                        OutboundDocument(data=data, filename=filename,
                                         mime_type=mime_type, caption=caption))

    async def download_attachment(self) -> Optional[bytes]:
        return await self.services.transport.download_attachment(self.message)


def is_cancel(text: str) -> bool:
    text = (text or "").strip()
    return text == CANCEL_CHOICE or bool(CANCEL_WORDS.match(text))


def parse_choice(text: str, count: int) -> Optional[int]:
    """1-based numeric choice -> 0-based index, or None when out of range."""
    text = (text or "").strip()
    if not text.isdigit():
        return None
    number = int(text)
    if 1 <= number <= count:
        return number - 1
    return None


def invalid_choice_text(count: int) -> str:
    return f"⚠️ Type a number 1-{count}, or 0 to cancel."


def choices_from(assignments: Sequence[Assignment], limit: int) -> List[AssignmentChoice]:
    return [AssignmentChoice(a.id, a.code, a.title, a.class_name) for a in list(assignments)[:limit]]


def render_choices(choices: Sequence[AssignmentChoice], with_class: bool = True) -> str:
    lines = []
    for number, choice in enumerate(choices, start=1):
        suffix = f" ({choice.class_name})" if with_class and choice.class_name else ""
        lines.append(f"*{number}.* {choice.code} - {choice.title}{suffix}")
    return "\n".join(lines)


async def cancel_wizard(ctx: TurnContext, label: str = "Cancelled"):
    """Clear the wizard and put the user back at their role menu."""
    logger.info("❎ %s cancelled a wizard (%s)", ctx.identity, ctx.state.last_intent)
    ctx.state.enter_menu(greeting_handler.menu_mode_for(ctx.user.role))
    await ctx.reply(f"❎ {label}.\n\n{greeting_handler.menu_text(ctx.user.role)}")


async def finish_to_menu(ctx: TurnContext):
    """Terminal success: leave the wizard and wait for the next menu choice."""
    ctx.state.enter_menu(greeting_handler.menu_mode_for(ctx.user.role))
