"""Intent types for message classification."""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional


class Intent(str, Enum):
    """What an inbound message means, given the current dialogue step."""

    # Dialogue-step bound
    SELECT_BY_INDEX = "select_by_index"      # Bare number after a listing
    CHOOSE_ACTION = "choose_action"          # "edit" / "delete"
    SUPPLY_EDIT_FIELD = "supply_edit_field"  # New date, time or content

    # Free-standing commands
    CREATE_APPOINTMENT = "create_appointment"  # "10/5 14:00 dentist"
    LIST_RANGE = "list_range"                  # "today", "tomorrow", "10月"

    # Fallback: no reply
    NOOP = "noop"


@dataclass
class IntentResult:
    """Result of intent classification."""

    intent: Intent

    # SELECT_BY_INDEX: parsed number, None when the text is not a number
    index: Optional[int] = None

    # CHOOSE_ACTION / SUPPLY_EDIT_FIELD: raw text for the engine to match
    text: Optional[str] = None

    # CREATE_APPOINTMENT
    month: Optional[int] = None
    day: Optional[int] = None
    time: Optional[str] = None
    content: Optional[str] = None

    # LIST_RANGE (inclusive)
    start: Optional[date] = None
    end: Optional[date] = None

    # Name of the rule that matched, for logging
    rule: Optional[str] = None

    @property
    def is_noop(self) -> bool:
        return self.intent == Intent.NOOP

    @property
    def is_step_bound(self) -> bool:
        """Check if the intent only exists inside an active dialogue."""
        return self.intent in {
            Intent.SELECT_BY_INDEX,
            Intent.CHOOSE_ACTION,
            Intent.SUPPLY_EDIT_FIELD,
        }

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "intent": self.intent.value,
            "index": self.index,
            "text": self.text,
            "month": self.month,
            "day": self.day,
            "time": self.time,
            "content": self.content,
            "start": self.start.isoformat() if self.start else None,
            "end": self.end.isoformat() if self.end else None,
            "rule": self.rule,
        }
