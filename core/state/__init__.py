"""
Conversation State Module
Per-identity conversation records and the wizard payload union
"""

from .payloads import WizardPayload
from .state_manager import ConversationState, ConversationStateManager, MenuMode

__all__ = ['ConversationState', 'ConversationStateManager', 'MenuMode', 'WizardPayload']
