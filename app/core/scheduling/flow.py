"""
Conversation Flow.

The dialogue engine: given a user's current conversation state and a
classified intent, performs the schedule store operations and returns the
reply text together with the next state. It never reads or writes the
conversation state store itself, so a turn can be tested with nothing but
a ScheduleStore.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Optional

from app.core.clock import local_today
from app.core.intelligence.intent.types import Intent, IntentResult
from app.core.intelligence.session.models import ConversationState, DateRange
from app.core.intelligence.session.state import DialogueStep, can_transition
from app.core.scheduling.response import ReplyFormatter, get_reply_formatter
from app.core.scheduling.store import Appointment, ScheduleStore

logger = logging.getLogger(__name__)


EDIT_TOKENS = frozenset({"編集", "edit"})
DELETE_TOKENS = frozenset({"削除", "delete"})

# Edit field shapes, checked in this order; anything else is content
MONTH_DAY_SHAPE = re.compile(r"^(\d{1,2})[/-](\d{1,2})$")
ISO_DATE_SHAPE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
TIME_SHAPE = re.compile(r"^\d{1,2}:\d{2}$")


@dataclass
class FlowResult:
    """Outcome of one dialogue turn."""

    state: ConversationState
    message: Optional[str] = None  # None means send no reply
    action_type: str = "noop"  # create, list, select, choose, delete, edit, reprompt, noop
    appointment: Optional[Appointment] = None


def parse_edit_field(text: str, today: date) -> tuple[str, str]:
    """Decide which single field a free-text edit targets.

    Returns:
        (field_name, value): date values are normalized to YYYY-MM-DD.
        Date-shaped text that is not a real calendar date is content.
    """
    match = MONTH_DAY_SHAPE.match(text)
    if match:
        try:
            value = date(today.year, int(match.group(1)), int(match.group(2)))
            return "date", value.isoformat()
        except ValueError:
            return "content", text

    match = ISO_DATE_SHAPE.match(text)
    if match:
        try:
            year, month, day = (int(part) for part in match.groups())
            return "date", date(year, month, day).isoformat()
        except ValueError:
            return "content", text

    if TIME_SHAPE.match(text):
        return "time", text

    return "content", text


class ConversationFlow:
    """
    State machine for the schedule dialogue.

    IDLE -> AWAITING_SELECTION   (non-empty listing)
    AWAITING_SELECTION -> AWAITING_ACTION   (valid index)
    AWAITING_ACTION -> AWAITING_EDIT_FIELD  ("edit")
    AWAITING_ACTION -> IDLE                 ("delete")
    AWAITING_EDIT_FIELD -> IDLE             (field applied)

    Invalid input re-prompts without leaving the step. Creating an
    appointment never touches the state.
    """

    def __init__(
        self,
        store: ScheduleStore,
        formatter: Optional[ReplyFormatter] = None,
    ):
        """Initialize flow.

        Args:
            store: Schedule store to read and write
            formatter: Reply formatter (uses singleton if not provided)
        """
        self._store = store
        self._formatter = formatter or get_reply_formatter()

    async def advance(
        self,
        state: ConversationState,
        intent: IntentResult,
        today: Optional[date] = None,
    ) -> FlowResult:
        """Run one turn.

        Args:
            state: Sender's current conversation state
            intent: Classified message
            today: Reference date (defaults to today in the configured timezone)

        Returns:
            FlowResult with the reply and next state

        Raises:
            StoreUnavailableError: if the schedule store fails
        """
        if today is None:
            today = local_today()

        handlers = {
            Intent.SELECT_BY_INDEX: self._select_by_index,
            Intent.CHOOSE_ACTION: self._choose_action,
            Intent.SUPPLY_EDIT_FIELD: self._supply_edit_field,
            Intent.CREATE_APPOINTMENT: self._create_appointment,
            Intent.LIST_RANGE: self._list_range,
        }
        handler = handlers.get(intent.intent)
        if handler is None:
            return FlowResult(state=state)

        result = await handler(state, intent, today)
        self._check_transition(state, result.state)
        return result

    def _check_transition(self, before: ConversationState, after: ConversationState) -> None:
        if before.dialogue_step == after.dialogue_step:
            return
        if not can_transition(before.dialogue_step, after.dialogue_step):
            logger.warning(
                f"Unexpected transition for {before.owner_id}: "
                f"{before.dialogue_step.value} -> {after.dialogue_step.value}"
            )
        else:
            logger.info(
                f"{before.owner_id}: {before.dialogue_step.value} -> {after.dialogue_step.value}"
            )

    # === Step-bound intents ===

    async def _select_by_index(
        self,
        state: ConversationState,
        intent: IntentResult,
        today: date,
    ) -> FlowResult:
        index = intent.index
        if index is None or index < 1:
            return FlowResult(
                state=state,
                message=self._formatter.invalid_number(),
                action_type="reprompt",
            )

        # Recompute with the listing's criterion; the shown list is not cached
        appointments = await self._store.query_by_owner(
            state.owner_id, state.selection_range
        )
        if index > len(appointments):
            return FlowResult(
                state=state,
                message=self._formatter.invalid_number(),
                action_type="reprompt",
            )

        appointment = appointments[index - 1]
        return FlowResult(
            state=state.awaiting_action(appointment.id),
            message=self._formatter.selected(appointment),
            action_type="select",
            appointment=appointment,
        )

    async def _load_selection(self, state: ConversationState) -> Optional[Appointment]:
        if state.selected_appointment_id is None:
            return None
        return await self._store.get(state.selected_appointment_id)

    def _selection_missing(self, state: ConversationState) -> FlowResult:
        logger.info(
            f"Selected schedule {state.selected_appointment_id} is gone for {state.owner_id}"
        )
        return FlowResult(
            state=ConversationState.idle(state.owner_id),
            message=self._formatter.selection_missing(),
            action_type="reprompt",
        )

    async def _choose_action(
        self,
        state: ConversationState,
        intent: IntentResult,
        today: date,
    ) -> FlowResult:
        token = (intent.text or "").strip().lower()

        if token in EDIT_TOKENS:
            appointment = await self._load_selection(state)
            if appointment is None:
                return self._selection_missing(state)
            return FlowResult(
                state=state.awaiting_edit_field(),
                message=self._formatter.field_prompt(),
                action_type="choose",
                appointment=appointment,
            )

        if token in DELETE_TOKENS:
            appointment = await self._load_selection(state)
            if appointment is None:
                return self._selection_missing(state)
            await self._store.delete(appointment.id)
            return FlowResult(
                state=ConversationState.idle(state.owner_id),
                message=self._formatter.deleted(appointment),
                action_type="delete",
                appointment=appointment,
            )

        return FlowResult(
            state=state,
            message=self._formatter.action_prompt(),
            action_type="reprompt",
        )

    async def _supply_edit_field(
        self,
        state: ConversationState,
        intent: IntentResult,
        today: date,
    ) -> FlowResult:
        appointment = await self._load_selection(state)
        if appointment is None:
            return self._selection_missing(state)

        field_name, value = parse_edit_field((intent.text or "").strip(), today)
        await self._store.update(appointment.id, {field_name: value})
        setattr(appointment, field_name, value)

        return FlowResult(
            state=ConversationState.idle(state.owner_id),
            message=self._formatter.edited(appointment),
            action_type="edit",
            appointment=appointment,
        )

    # === Free-standing intents ===

    async def _create_appointment(
        self,
        state: ConversationState,
        intent: IntentResult,
        today: date,
    ) -> FlowResult:
        try:
            appointment_date = date(today.year, intent.month, intent.day)
        except (TypeError, ValueError):
            return FlowResult(
                state=state,
                message=self._formatter.invalid_date(),
                action_type="reprompt",
            )

        date_str = appointment_date.isoformat()
        appointment_id = await self._store.add(
            state.owner_id, date_str, intent.time, intent.content
        )
        appointment = Appointment(
            id=appointment_id,
            owner_id=state.owner_id,
            date=date_str,
            time=intent.time,
            content=intent.content,
        )
        return FlowResult(
            state=state,
            message=self._formatter.created(appointment),
            action_type="create",
            appointment=appointment,
        )

    async def _list_range(
        self,
        state: ConversationState,
        intent: IntentResult,
        today: date,
    ) -> FlowResult:
        date_range = DateRange(start=intent.start, end=intent.end)
        appointments = await self._store.query_by_owner(state.owner_id, date_range)

        if not appointments:
            return FlowResult(
                state=ConversationState.idle(state.owner_id),
                message=self._formatter.no_appointments(),
                action_type="list",
            )

        return FlowResult(
            state=ConversationState.awaiting_selection(state.owner_id, date_range),
            message=self._formatter.listing(appointments),
            action_type="list",
        )
