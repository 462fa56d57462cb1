"""
Dialog Manager
Generic slot-filling controller. Decides per turn whether to ask for a missing
slot, continue the prior intent, or route the intent to a handler.

    NEW / CONTINUE_PRIOR  ->  ASK_SLOT (slot missing, state kept)
                          ->  ROUTE    (slots complete)
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from core.intent.rules import Intent
from core.state.state_manager import ConversationState

logger = logging.getLogger(__name__)


class DialogState(str, Enum):
    NEW = "NEW"
    CONTINUE_PRIOR = "CONTINUE_PRIOR"
    ASK_SLOT = "ASK_SLOT"
    ROUTE = "ROUTE"


# Required slots per intent, in the order they are asked for.
SLOT_RULES: Dict[Intent, List[str]] = {
    Intent.STUDENT_SUBMIT: ["code"],
    Intent.STUDENT_DEADLINE: ["code"],
    Intent.TEACHER_BROADCAST: ["code", "class_name"],
}

SLOT_PROMPTS: Dict[str, str] = {
    "code": "Which assignment code? (e.g. BD-03)",
    "class_name": "Which class? (e.g. XIITKJ2 or XI TKJ 2)",
}
DEFAULT_SLOT_PROMPT = "Please complete the details."

SLOT_ALIASES: Dict[str, str] = {
    "kode": "code",
    "kode_tugas": "code",
    "assignment_code": "code",
    "kelas": "class_name",
}

# Intents whose state a wizard takes over; routing them must not clear state.
STATE_PRESERVING_INTENTS = frozenset({
    Intent.TEACHER_CREATE_ASSIGNMENT,
    Intent.TEACHER_AFTER_CREATE,
    Intent.TEACHER_REPORT_WIZARD,
    Intent.TEACHER_BROADCAST_WIZARD,
    Intent.TEACHER_ROSTER_WIZARD,
    Intent.STUDENT_SUBMIT_WIZARD,
    Intent.STUDENT_STATUS_WIZARD,
})

# Text that names an action on its own, so a code inside it is a new request.
ACTION_VERBS = re.compile(r"kumpul|submit|detail|info|tugas saya|my tasks|status", re.IGNORECASE)
SHORT_REPLY_LIMIT = 20

_SAVE = re.compile(r"^(?:simpan|save)$", re.IGNORECASE)
_CANCEL = re.compile(r"^(?:batal|cancel)$", re.IGNORECASE)


@dataclass
class DialogResult:
    state: DialogState
    intent: Intent
    slots: Dict[str, Any] = field(default_factory=dict)
    ask_for: Optional[str] = None
    message: Optional[str] = None
    continued_prior: bool = False


def _has_value(value: Any) -> bool:
    """Only non-empty strings, numbers and dates count as a filled slot."""
    if isinstance(value, bool):
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (int, float, date, datetime)):
        return True
    return False


def _as_intent(value: Optional[str]) -> Optional[Intent]:
    if value is None:
        return None
    try:
        return Intent(value)
    except ValueError:
        return None


def _entity_code(entities: Mapping[str, Any]) -> Any:
    for key in ("code", "kode", "kode_tugas", "assignment_code"):
        if _has_value(entities.get(key)):
            return entities[key]
    return None


class DialogManager:
    """Stateless controller; all per-user data lives in the ConversationState passed in."""

    def __init__(self, slot_rules: Optional[Dict[Intent, List[str]]] = None,
                 slot_prompts: Optional[Dict[str, str]] = None):
        self.slot_rules = slot_rules if slot_rules is not None else SLOT_RULES
        self.slot_prompts = slot_prompts if slot_prompts is not None else SLOT_PROMPTS

    def manage(self, state: ConversationState, intent: Intent,
               entities: Mapping[str, Any], raw_text: str) -> DialogResult:
        """
        Run one turn of slot filling. Mutates `state`; the caller persists it.

        Args:
            state: Working copy of the identity's conversation state
            intent: Classifier output for this turn
            entities: Extracted entities (canonical names plus aliases)
            raw_text: Unnormalized message text
        """
        raw_text = (raw_text or "").strip()
        prior = _as_intent(state.last_intent)
        entry = DialogState.CONTINUE_PRIOR if prior else DialogState.NEW
        continued = False

        # ===== Creation form owns its own turns =====
        if (prior == Intent.TEACHER_CREATE_ASSIGNMENT
                and not _SAVE.match(raw_text) and not _CANCEL.match(raw_text)):
            intent = Intent.TEACHER_CREATE_ASSIGNMENT

        # ===== Continuation of the prior intent =====
        if prior is not None and intent != prior:
            prior_needs = self.slot_rules.get(prior, [])
            if intent == Intent.FALLBACK:
                intent, continued = prior, True
            elif ("code" in prior_needs and _entity_code(entities) is not None
                  and len(raw_text) < SHORT_REPLY_LIMIT
                  and not ACTION_VERBS.search(raw_text)):
                logger.debug("Short code reply; continuing %s", prior.value)
                intent, continued = prior, True

        if intent != Intent.FALLBACK:
            state.last_intent = intent.value

        if intent == Intent.TEACHER_CREATE_ASSIGNMENT:
            # The creation wizard parses its own fields.
            return DialogResult(DialogState.ROUTE, intent, dict(state.slots),
                                continued_prior=continued)

        self._merge_entities(state, entities)

        missing = [name for name in self.slot_rules.get(intent, [])
                   if not _has_value(state.slots.get(name))]
        if missing:
            ask_for = missing[0]
            message = self.slot_prompts.get(ask_for, DEFAULT_SLOT_PROMPT)
            logger.debug("%s -> ASK_SLOT %s (entry=%s)", intent.value, ask_for, entry.value)
            return DialogResult(DialogState.ASK_SLOT, intent, dict(state.slots),
                                ask_for=ask_for, message=message, continued_prior=continued)

        slots = dict(state.slots)
        if intent not in STATE_PRESERVING_INTENTS and prior not in STATE_PRESERVING_INTENTS:
            state.reset()
        logger.debug("%s -> ROUTE (entry=%s)", intent.value, entry.value)
        return DialogResult(DialogState.ROUTE, intent, slots, continued_prior=continued)

    @staticmethod
    def _merge_entities(state: ConversationState, entities: Mapping[str, Any]):
        """Add newly seen entities under canonical names; never overwrite a filled slot."""
        for key, value in entities.items():
            if not _has_value(value):
                continue
            name = SLOT_ALIASES.get(key, key)
            if not _has_value(state.slots.get(name)):
                state.slots[name] = value
