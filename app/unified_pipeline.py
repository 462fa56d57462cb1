"""
Unified Pipeline Controller
Implements the per-message architecture:

Inbound → identity → role lookup → [per-identity lock]
        → Wizard? → Menu mode? → Greeting? → Normalizer → Entities → Classifier → Dialog Manager
        → Command Router → side effects + replies
        → persist conversation state

The dispatch order (wizard, menu, greeting, classification) is a contract:
the first step that accepts the message handles it and the rest are skipped.
"""

import logging
from typing import Awaitable, Callable, Dict, List, Optional

from app.router import CommandRouter
from core.dialog.dialog_manager import DialogManager, DialogState
from core.greetings.greeting_handler import EXIT_CHOICE, GreetingHandler, greeting_handler
from core.intent.entity_extractor import EntityExtractor
from core.intent.intent_classifier import IntentClassifier
from core.intent.normalizer import normalize
from core.state.state_manager import ConversationStateManager
from core.wizards import dispatch_wizard
from core.wizards.base import TurnContext
from services.container import BotServices
from services.transport import InboundMessage, is_group, normalize_identity, safe_send

logger = logging.getLogger(__name__)

DISPATCH_ORDER = ("wizard", "menu", "greeting", "classification")

APOLOGY_TEXT = "🙏 Sorry, something went wrong on our side. Please try again in a moment."


class UnifiedPipelineController:
    """
    Unified Pipeline Controller

    1. Identity normalization (group senders ignored)
    2. Role lookup (store retries transient failures)
    3. Ordered dispatch under the identity's lock
    4. Conversation state written once at the end of the turn
    """

    def __init__(self, services: BotServices,
                 state_manager: Optional[ConversationStateManager] = None,
                 router: Optional[CommandRouter] = None,
                 dialog_manager: Optional[DialogManager] = None,
                 classifier: Optional[IntentClassifier] = None,
                 extractor: Optional[EntityExtractor] = None,
                 greeting: GreetingHandler = greeting_handler):
        self.services = services
        self.state_manager = state_manager or ConversationStateManager(
            idle_timeout=services.config.get('session_idle_timeout'))
        self.greeting = greeting
        self.router = router or CommandRouter(greeting=greeting)
        self.dialog_manager = dialog_manager or DialogManager()
        self.classifier = classifier or IntentClassifier()
        self.extractor = extractor or EntityExtractor()

        self._steps: Dict[str, Callable[[TurnContext], Awaitable[bool]]] = {
            "wizard": self._wizard_step,
            "menu": self._menu_step,
            "greeting": self._greeting_step,
            "classification": self._classification_step,
        }
        logger.info("✅ Unified Pipeline Controller ready (dispatch: %s)", " > ".join(DISPATCH_ORDER))

    # ==================== Main Entry Point ====================

    async def handle_message(self, message: InboundMessage) -> List[str]:
        """
        Process one inbound message. Never raises.

        Returns:
            The text replies sent for this message
        """
        if is_group(message.sender):
            logger.debug("Ignoring group message from %s", message.sender)
            return []
        identity = normalize_identity(message.sender)
        if not identity:
            logger.warning("Dropping message with unusable sender %r", message.sender)
            return []

        try:
            return await self._handle(identity, message)
        except Exception:
            logger.error("❌ Unhandled error while handling a message from %s", identity, exc_info=True)
            try:
                await safe_send(self.services.transport, identity, APOLOGY_TEXT)
            except Exception:
                logger.error("❌ Could not deliver the apology to %s", identity, exc_info=True)
            return [APOLOGY_TEXT]

    async def _handle(self, identity: str, message: InboundMessage) -> List[str]:
        # ===== Step 1: Role lookup =====
        user = await self.services.store.find_user_by_phone(identity)
        if user is None:
            text = self.greeting.unregistered_text(self.services.config['registration_url'],
                                                   self.services.config['admin_contact'])
            await safe_send(self.services.transport, identity, text)
            return [text]

        # ===== Step 2: Ordered dispatch under the identity's lock =====
        async with self.state_manager.lock(identity):
            state = self.state_manager.get(identity)
            ctx = TurnContext(identity=identity, user=user, message=message,
                              state=state, services=self.services)
            for name in DISPATCH_ORDER:
                if await self._steps[name](ctx):
                    logger.debug("Turn for %s handled by %s step", identity, name)
                    break

            # ===== Step 3: Persist conversation state =====
            self.state_manager.set(identity, ctx.state)
        return ctx.replies

    # ==================== Dispatch Steps ====================

    async def _wizard_step(self, ctx: TurnContext) -> bool:
        return await dispatch_wizard(ctx)

    async def _menu_step(self, ctx: TurnContext) -> bool:
        mode = ctx.state.menu_mode
        if mode is None:
            return False
        text = ctx.text
        if text == EXIT_CHOICE:
            ctx.state.reset()
            await ctx.reply(self.greeting.exit_text())
            return True

        choices = self.greeting.menu_choices(mode)
        if text in choices:
            ctx.state.menu_mode = None
            await self.router.route(ctx, choices[text], {})
            return True
        if text.isdigit():
            await ctx.reply(self.greeting.invalid_choice_text(mode))
            return True

        # Free text leaves the menu and is read normally
        ctx.state.menu_mode = None
        return False

    async def _greeting_step(self, ctx: TurnContext) -> bool:
        if ctx.message.has_attachment or not self.greeting.is_greeting(ctx.text):
            return False
        ctx.state.enter_menu(self.greeting.menu_mode_for(ctx.user.role))
        await ctx.reply(self.greeting.greeting_text(ctx.user, self.services.config['bot_name']))
        return True

    async def _classification_step(self, ctx: TurnContext) -> bool:
        text = normalize(ctx.text)
        entities = self.extractor.extract(text).to_dict()
        classification = self.classifier.classify(text, entities)
        logger.debug("🧹 normalized=%r 🏷️ entities=%s 🎯 intent=%s (%.0f%%)",
                     text, {k: v for k, v in entities.items() if v},
                     classification.intent.value, classification.confidence * 100)

        result = self.dialog_manager.manage(ctx.state, classification.intent, entities, ctx.text)
        logger.debug("💬 dialog=%s intent=%s ask_for=%s continued=%s",
                     result.state.value, result.intent.value, result.ask_for, result.continued_prior)

        if not self.router.permits(result.intent, ctx.user.role):
            await self.router.route(ctx, result.intent, {})
            return True
        if result.state == DialogState.ASK_SLOT:
            await ctx.reply(result.message)
            return True
        await self.router.route(ctx, result.intent, result.slots)
        return True


def create_unified_pipeline(services: BotServices, **kwargs) -> UnifiedPipelineController:
    """Factory function for creating unified pipeline controller"""
    return UnifiedPipelineController(services, **kwargs)
