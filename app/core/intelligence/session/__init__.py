"""
Conversation state module.

Each user has exactly one state record telling the engine what kind of
reply it expects next. Records live in Redis and are replaced whole on
every transition.
"""

from .state import DialogueStep, PendingAction, can_transition
from .models import ConversationState, DateRange, InvalidStateError
from .manager import ConversationStateStore, get_state_store

__all__ = [
    # State machine
    "DialogueStep",
    "PendingAction",
    "can_transition",
    # Models
    "ConversationState",
    "DateRange",
    "InvalidStateError",
    # Store
    "ConversationStateStore",
    "get_state_store",
]
