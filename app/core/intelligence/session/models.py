"""
Conversation state record.

One record per user, overwritten on every transition. A missing record
reads as idle.
"""

import json
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import Optional

from .state import DialogueStep, PendingAction, has_selection


def _utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


class InvalidStateError(ValueError):
    """Raised when a state record breaks the selection invariant."""
    pass


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar date range."""

    start: date
    end: date

    def to_dict(self) -> dict:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}

    @classmethod
    def from_dict(cls, data: dict) -> "DateRange":
        return cls(
            start=date.fromisoformat(data["start"]),
            end=date.fromisoformat(data["end"]),
        )


@dataclass
class ConversationState:
    """
    Where in a dialogue a user currently is.

    Invariant: selected_appointment_id is set if and only if the step is
    AWAITING_ACTION or AWAITING_EDIT_FIELD. Use the named constructors
    below to build valid records.

    selection_range is the date criterion of the last listing. A later
    bare index is resolved by re-running that query, never by replaying
    a stored list.
    """

    owner_id: str
    dialogue_step: DialogueStep = DialogueStep.IDLE
    selected_appointment_id: Optional[str] = None
    pending_action: Optional[PendingAction] = None
    selection_range: Optional[DateRange] = None
    updated_at: datetime = field(default_factory=_utcnow, compare=False)

    # === Named constructors ===

    @classmethod
    def idle(cls, owner_id: str) -> "ConversationState":
        """Rest state: nothing selected, nothing pending."""
        return cls(owner_id=owner_id)

    @classmethod
    def awaiting_selection(
        cls,
        owner_id: str,
        selection_range: Optional[DateRange] = None,
    ) -> "ConversationState":
        """A numbered list was shown; waiting for a bare index."""
        return cls(
            owner_id=owner_id,
            dialogue_step=DialogueStep.AWAITING_SELECTION,
            selection_range=selection_range,
        )

    def awaiting_action(self, appointment_id: str) -> "ConversationState":
        """Pin an appointment and wait for edit/delete."""
        return replace(
            self,
            dialogue_step=DialogueStep.AWAITING_ACTION,
            selected_appointment_id=appointment_id,
            pending_action=None,
            updated_at=_utcnow(),
        )

    def awaiting_edit_field(self) -> "ConversationState":
        """Keep the selection and wait for the new field value."""
        return replace(
            self,
            dialogue_step=DialogueStep.AWAITING_EDIT_FIELD,
            pending_action=PendingAction.EDITING,
            updated_at=_utcnow(),
        )

    @property
    def is_idle(self) -> bool:
        return self.dialogue_step == DialogueStep.IDLE

    def validate(self) -> None:
        """Raise InvalidStateError if the selection invariant is broken."""
        if has_selection(self.dialogue_step) != (self.selected_appointment_id is not None):
            raise InvalidStateError(
                f"step {self.dialogue_step.value} with "
                f"selected_appointment_id={self.selected_appointment_id!r}"
            )
        if (
            self.pending_action is not None
            and self.dialogue_step != DialogueStep.AWAITING_EDIT_FIELD
        ):
            raise InvalidStateError(
                f"pending action {self.pending_action.value} outside edit step"
            )

    # === Serialization ===

    def to_json(self) -> str:
        """Convert to JSON string for Redis storage."""
        data = {
            "owner_id": self.owner_id,
            "dialogue_step": self.dialogue_step.value,
            "selected_appointment_id": self.selected_appointment_id,
            "pending_action": self.pending_action.value if self.pending_action else None,
            "selection_range": (
                self.selection_range.to_dict() if self.selection_range else None
            ),
            "updated_at": self.updated_at.isoformat(),
        }
        return json.dumps(data)

    @classmethod
    def from_json(cls, json_str: str) -> "ConversationState":
        """Create from JSON string."""
        data = json.loads(json_str)
        pending = data.get("pending_action")
        selection_range = data.get("selection_range")
        updated_at = data.get("updated_at")
        return cls(
            owner_id=data["owner_id"],
            dialogue_step=DialogueStep(data.get("dialogue_step", DialogueStep.IDLE.value)),
            selected_appointment_id=data.get("selected_appointment_id"),
            pending_action=PendingAction(pending) if pending else None,
            selection_range=(
                DateRange.from_dict(selection_range) if selection_range else None
            ),
            updated_at=datetime.fromisoformat(updated_at) if updated_at else _utcnow(),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return json.loads(self.to_json())
