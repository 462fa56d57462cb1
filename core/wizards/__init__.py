"""
Wizard State Machines
Each payload type in the state union is owned by exactly one wizard; an
active payload routes every message to its wizard until a terminal state.
"""

import logging

from core.state.payloads import (
    AfterCreatePayload,
    BroadcastPayload,
    CreationPayload,
    ImageToPdfPayload,
    ReportPayload,
    RosterPayload,
    StatusHistoryPayload,
    SubmissionPayload,
)
from core.wizards.assignment_creation import after_create_wizard, assignment_creation_wizard
from core.wizards.base import TurnContext
from core.wizards.broadcast import broadcast_wizard
from core.wizards.image_to_pdf import image_to_pdf_wizard
from core.wizards.report import report_wizard
from core.wizards.roster import roster_wizard
from core.wizards.status_history import status_history_wizard
from core.wizards.submission import submission_wizard

logger = logging.getLogger(__name__)

WIZARDS = {
    CreationPayload: assignment_creation_wizard,
    AfterCreatePayload: after_create_wizard,
    BroadcastPayload: broadcast_wizard,
    ReportPayload: report_wizard,
    RosterPayload: roster_wizard,
    SubmissionPayload: submission_wizard,
    StatusHistoryPayload: status_history_wizard,
    ImageToPdfPayload: image_to_pdf_wizard,
}


async def dispatch_wizard(ctx: TurnContext) -> bool:
    """Hand the turn to the active wizard. False when no wizard is active."""
    payload = ctx.state.wizard
    if payload is None:
        return False
    wizard = WIZARDS[type(payload)]
    logger.debug("🧙 %s -> %s", ctx.identity, type(payload).__name__)
    await wizard.handle(ctx, payload)
    return True


__all__ = [
    'TurnContext',
    'WIZARDS',
    'after_create_wizard',
    'assignment_creation_wizard',
    'broadcast_wizard',
    'dispatch_wizard',
    'image_to_pdf_wizard',
    'report_wizard',
    'roster_wizard',
    'status_history_wizard',
    'submission_wizard',
]
