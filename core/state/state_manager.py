"""
Conversation State Manager
Keeps exactly one conversation record per identity: last intent, collected slots,
active menu mode and wizard payload.
"""

import asyncio
import copy
import logging
import time
import weakref
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

from core.state.payloads import WizardPayload

logger = logging.getLogger(__name__)


class MenuMode(str, Enum):
    TEACHER_MENU = "teacher_menu_selection"
    STUDENT_MENU = "student_menu_selection"


@dataclass
class ConversationState:
    """
    Mutable per-identity record.

    Menu mode and an active wizard are mutually exclusive; use the enter_*
    helpers instead of assigning the fields directly.
    """
    last_intent: Optional[str] = None
    slots: Dict[str, Any] = field(default_factory=dict)
    menu_mode: Optional[MenuMode] = None
    wizard: Optional[WizardPayload] = None
    updated_at: float = field(default_factory=time.monotonic)

    def enter_wizard(self, payload: WizardPayload):
        self.wizard = payload
        self.menu_mode = None
        self.last_intent = payload.intent.value
        self.slots = {}

    def enter_menu(self, mode: MenuMode):
        self.reset()
        self.menu_mode = mode

    def reset(self):
        """Clear everything; used on cancel, exit and terminal wizard states."""
        self.last_intent = None
        self.slots = {}
        self.menu_mode = None
        self.wizard = None

    def is_empty(self) -> bool:
        return (self.last_intent is None and not self.slots
                and self.menu_mode is None and self.wizard is None)

    @property
    def governing(self) -> Optional[str]:
        """Which mode interprets the next message: wizard, menu or slots."""
        if self.wizard is not None:
            return "wizard"
        if self.menu_mode is not None:
            return "menu"
        if self.last_intent is not None:
            return "slots"
        return None


class ConversationStateManager:
    """
    Keyed conversation store (get / set / clear) with a per-identity lock.

    get() hands out a copy, so a turn that fails half way leaves the stored
    state untouched until set() is called. Identities never share a lock.
    """

    def __init__(self, idle_timeout: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        """
        Args:
            idle_timeout: Seconds after which an untouched state is dropped on
                the next get(). None keeps states until cleared.
            clock: Monotonic time source (overridable in tests)
        """
        self.idle_timeout = idle_timeout
        self.clock = clock
        self._states: Dict[str, ConversationState] = {}
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def get(self, identity: str) -> ConversationState:
        """Return a working copy of the identity's state (fresh if none stored)."""
        state = self._states.get(identity)
        if state is None:
            return ConversationState(updated_at=self.clock())
        if self.idle_timeout is not None and self.clock() - state.updated_at > self.idle_timeout:
            logger.info("Conversation state for %s expired after %.0fs idle", identity, self.idle_timeout)
            del self._states[identity]
            return ConversationState(updated_at=self.clock())
        return copy.deepcopy(state)

    def set(self, identity: str, state: ConversationState):
        if state.is_empty():
            self.clear(identity)
            return
        stored = copy.deepcopy(state)
        stored.updated_at = self.clock()
        self._states[identity] = stored

    def clear(self, identity: str):
        self._states.pop(identity, None)

    def lock(self, identity: str) -> asyncio.Lock:
        """Lock serializing turns for one identity; callers hold a strong reference."""
        lock = self._locks.get(identity)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[identity] = lock
        return lock

    def __contains__(self, identity: str) -> bool:
        return identity in self._states


# Singleton instance for easy import
conversation_state_manager = ConversationStateManager()
