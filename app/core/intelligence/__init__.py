"""
Intelligence Layer Module

Provides rule-based intent classification and per-user conversation
state for the schedule assistant.

Usage:
    from app.core.intelligence import (
        classify_intent,
        get_state_store,
        DialogueStep,
    )

    # Classify a message for a user with no open dialogue
    result = classify_intent(DialogueStep.IDLE, "10/5 14:00 dentist")
    print(result.intent)  # Intent.CREATE_APPOINTMENT

    # Conversation state
    store = get_state_store()
    state = await store.get_or_idle("U1234")
"""

# Intent Classification
from app.core.intelligence.intent.types import Intent, IntentResult
from app.core.intelligence.intent.classifier import (
    IntentClassifier,
    get_intent_classifier,
    classify_intent,
)

# Conversation State
from app.core.intelligence.session.state import (
    DialogueStep,
    PendingAction,
    can_transition,
    has_selection,
)
from app.core.intelligence.session.models import (
    ConversationState,
    DateRange,
    InvalidStateError,
)
from app.core.intelligence.session.manager import (
    ConversationStateStore,
    get_state_store,
)

__all__ = [
    # Intent
    "Intent",
    "IntentResult",
    "IntentClassifier",
    "get_intent_classifier",
    "classify_intent",
    # Dialogue steps
    "DialogueStep",
    "PendingAction",
    "can_transition",
    "has_selection",
    # State
    "ConversationState",
    "DateRange",
    "InvalidStateError",
    "ConversationStateStore",
    "get_state_store",
]
