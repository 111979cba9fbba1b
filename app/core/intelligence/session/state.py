"""Dialogue step state machine."""

from enum import Enum
from typing import Set


class DialogueStep(str, Enum):
    """What kind of reply the assistant currently expects from a user."""

    IDLE = "idle"
    AWAITING_SELECTION = "awaiting_selection"  # Bare number picks a listed item
    AWAITING_ACTION = "awaiting_action"        # "edit" or "delete"
    AWAITING_EDIT_FIELD = "awaiting_edit_field"  # New date, time or content


class PendingAction(str, Enum):
    """Action chosen for the selected appointment."""

    EDITING = "editing"


# Valid step transitions
VALID_TRANSITIONS: dict[DialogueStep, Set[DialogueStep]] = {
    DialogueStep.IDLE: {
        DialogueStep.IDLE,
        DialogueStep.AWAITING_SELECTION,  # Non-empty listing
    },
    DialogueStep.AWAITING_SELECTION: {
        DialogueStep.AWAITING_SELECTION,  # Invalid number re-prompts
        DialogueStep.AWAITING_ACTION,
        DialogueStep.IDLE,  # Store failure
    },
    DialogueStep.AWAITING_ACTION: {
        DialogueStep.AWAITING_ACTION,  # Unrecognized action re-prompts
        DialogueStep.AWAITING_EDIT_FIELD,
        DialogueStep.IDLE,  # Deleted, or selection vanished
    },
    DialogueStep.AWAITING_EDIT_FIELD: {
        DialogueStep.IDLE,  # Edit applied, or selection vanished
    },
}


def can_transition(from_step: DialogueStep, to_step: DialogueStep) -> bool:
    """Check if a step transition is valid."""
    return to_step in VALID_TRANSITIONS.get(from_step, set())


def has_selection(step: DialogueStep) -> bool:
    """Check if the step pins a selected appointment."""
    return step in {
        DialogueStep.AWAITING_ACTION,
        DialogueStep.AWAITING_EDIT_FIELD,
    }
