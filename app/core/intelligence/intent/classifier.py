"""
Rule-based intent classification.

Rules are evaluated in a fixed order and the first match wins:

1. select_by_index    (only while AWAITING_SELECTION)
2. choose_action      (only while AWAITING_ACTION)
3. supply_edit_field  (only while AWAITING_EDIT_FIELD)
4. create_appointment ("10/5 14:00 dentist", "10月5日 歯医者")
5. list_range         ("today", "明日", "10月")

Step-bound rules claim every message while their step is active, so an
open dialogue always wins over what the text superficially resembles.
"""

import calendar
import logging
import re
from datetime import date, timedelta
from typing import Callable, Optional

from app.core.clock import local_today
from app.core.intelligence.session.state import DialogueStep
from .types import Intent, IntentResult

logger = logging.getLogger(__name__)


# M/D or M月D with an optional 日; the day must not run into more digits
DATE_TOKEN_PATTERN = re.compile(r"(?<!\d)(\d{1,2})[/月](\d{1,2})(?!\d)日?")
# H:MM at the start of what follows the date
TIME_TOKEN_PATTERN = re.compile(r"(\d{1,2}:\d{2})(?!\d)")

MONTH_PATTERN = re.compile(r"(\d{1,2})月")
TODAY_PATTERN = re.compile(r"今日|\btoday\b", re.IGNORECASE)
TOMORROW_PATTERN = re.compile(r"明日|\btomorrow\b", re.IGNORECASE)

# Longest bare number read as a list index
MAX_INDEX_DIGITS = 9

Rule = Callable[[DialogueStep, str, date], Optional[IntentResult]]


def match_select_by_index(step: DialogueStep, text: str, today: date) -> Optional[IntentResult]:
    """Any message while a list is awaiting a pick; non-numbers carry index=None."""
    if step != DialogueStep.AWAITING_SELECTION:
        return None
    if text.isdecimal() and len(text) <= MAX_INDEX_DIGITS:
        index = int(text)
    else:
        index = None
    return IntentResult(intent=Intent.SELECT_BY_INDEX, index=index, text=text)


def match_choose_action(step: DialogueStep, text: str, today: date) -> Optional[IntentResult]:
    if step != DialogueStep.AWAITING_ACTION:
        return None
    return IntentResult(intent=Intent.CHOOSE_ACTION, text=text)


def match_supply_edit_field(step: DialogueStep, text: str, today: date) -> Optional[IntentResult]:
    if step != DialogueStep.AWAITING_EDIT_FIELD:
        return None
    return IntentResult(intent=Intent.SUPPLY_EDIT_FIELD, text=text)


def match_create_appointment(step: DialogueStep, text: str, today: date) -> Optional[IntentResult]:
    """Date token, optional time, trailing content. The date is not validated here.

    A date with only a time after it, or nothing at all, is not an
    appointment.
    """
    match = DATE_TOKEN_PATTERN.search(text)
    if not match:
        return None

    month, day = match.groups()
    rest = text[match.end():].strip()

    time_str = None
    time_match = TIME_TOKEN_PATTERN.match(rest)
    if time_match:
        time_str = time_match.group(1)
        rest = rest[time_match.end():]

    content = rest.strip()
    if not content:
        return None

    return IntentResult(
        intent=Intent.CREATE_APPOINTMENT,
        month=int(month),
        day=int(day),
        time=time_str,
        content=content,
    )


def match_list_range(step: DialogueStep, text: str, today: date) -> Optional[IntentResult]:
    """Resolve "today", "tomorrow" or a bare month to concrete dates."""
    if TODAY_PATTERN.search(text):
        return IntentResult(intent=Intent.LIST_RANGE, start=today, end=today)

    if TOMORROW_PATTERN.search(text):
        tomorrow = today + timedelta(days=1)
        return IntentResult(intent=Intent.LIST_RANGE, start=tomorrow, end=tomorrow)

    match = MONTH_PATTERN.search(text)
    if match:
        month = int(match.group(1))
        if not 1 <= month <= 12:
            return None
        last_day = calendar.monthrange(today.year, month)[1]
        return IntentResult(
            intent=Intent.LIST_RANGE,
            start=date(today.year, month, 1),
            end=date(today.year, month, last_day),
        )

    return None


DEFAULT_RULES: list[tuple[str, Rule]] = [
    ("select_by_index", match_select_by_index),
    ("choose_action", match_choose_action),
    ("supply_edit_field", match_supply_edit_field),
    ("create_appointment", match_create_appointment),
    ("list_range", match_list_range),
]


class IntentClassifier:
    """
    Prioritized pattern matcher.

    Each rule is a pure function of (step, text, today) so it can be
    tested on its own; the classifier only fixes their order.
    """

    def __init__(self, rules: Optional[list[tuple[str, Rule]]] = None):
        """Initialize classifier.

        Args:
            rules: Ordered (name, rule) pairs (defaults to DEFAULT_RULES)
        """
        self._rules = rules if rules is not None else DEFAULT_RULES

    @property
    def rule_names(self) -> list[str]:
        return [name for name, _ in self._rules]

    def classify(
        self,
        step: DialogueStep,
        message: str,
        today: Optional[date] = None,
    ) -> IntentResult:
        """
        Classify a message against the current dialogue step.

        Args:
            step: Current dialogue step of the sender
            message: Raw message text
            today: Reference date (defaults to today in the configured timezone)

        Returns:
            IntentResult; NOOP when no rule matches
        """
        message = message.strip()

        if not message:
            return IntentResult(intent=Intent.NOOP)

        if today is None:
            today = local_today()

        for name, rule in self._rules:
            result = rule(step, message, today)
            if result is not None:
                result.rule = name
                logger.debug(f"Classified intent: {result.intent.value} (rule: {name})")
                return result

        return IntentResult(intent=Intent.NOOP)


# Singleton
_classifier: Optional[IntentClassifier] = None


def get_intent_classifier() -> IntentClassifier:
    """Get singleton IntentClassifier."""
    global _classifier
    if _classifier is None:
        _classifier = IntentClassifier()
    return _classifier


def classify_intent(
    step: DialogueStep,
    message: str,
    today: Optional[date] = None,
) -> IntentResult:
    """Convenience function to classify intent."""
    return get_intent_classifier().classify(step, message, today)
