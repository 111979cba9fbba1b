"""Tests for conversation state records and the state store."""

import pytest
from unittest.mock import AsyncMock, patch
from datetime import date

from redis.exceptions import ConnectionError as RedisConnectionError

from app.core.errors import StoreUnavailableError
from app.core.intelligence.session.manager import ConversationStateStore
from app.core.intelligence.session.models import (
    ConversationState,
    DateRange,
    InvalidStateError,
)
from app.core.intelligence.session.state import (
    DialogueStep,
    PendingAction,
    can_transition,
    has_selection,
)


class TestConversationState:
    """Test state constructors and the selection invariant."""

    def test_idle(self):
        """Test idle has nothing selected."""
        state = ConversationState.idle("U1")

        assert state.dialogue_step == DialogueStep.IDLE
        assert state.selected_appointment_id is None
        assert state.pending_action is None
        assert state.is_idle
        state.validate()

    def test_awaiting_selection_clears_selection(self):
        """Test listing state keeps the range, not a selection."""
        date_range = DateRange(date(2026, 10, 1), date(2026, 10, 31))
        state = ConversationState.awaiting_selection("U1", date_range)

        assert state.dialogue_step == DialogueStep.AWAITING_SELECTION
        assert state.selected_appointment_id is None
        assert state.selection_range == date_range
        state.validate()

    def test_selection_then_edit(self):
        """Test selection survives into the edit step."""
        state = ConversationState.awaiting_selection("U1").awaiting_action("abc")
        editing = state.awaiting_edit_field()

        assert state.dialogue_step == DialogueStep.AWAITING_ACTION
        assert editing.dialogue_step == DialogueStep.AWAITING_EDIT_FIELD
        assert editing.selected_appointment_id == "abc"
        assert editing.pending_action == PendingAction.EDITING
        editing.validate()

    def test_selection_without_step_is_invalid(self):
        """Test selection outside action/edit steps."""
        state = ConversationState(owner_id="U1", selected_appointment_id="abc")

        with pytest.raises(InvalidStateError):
            state.validate()

    def test_action_step_without_selection_is_invalid(self):
        """Test action step requires a selection."""
        state = ConversationState(owner_id="U1", dialogue_step=DialogueStep.AWAITING_ACTION)

        with pytest.raises(InvalidStateError):
            state.validate()

    def test_equality_ignores_timestamp(self):
        """Test two idle records compare equal."""
        assert ConversationState.idle("U1") == ConversationState.idle("U1")

    def test_json_roundtrip_keeps_range(self):
        """Test Redis serialization."""
        date_range = DateRange(date(2026, 10, 17), date(2026, 10, 17))
        state = ConversationState.awaiting_selection("U1", date_range)

        restored = ConversationState.from_json(state.to_json())

        assert restored == state
        assert restored.selection_range.start == date(2026, 10, 17)

    def test_to_dict(self):
        """Test dict form uses enum values."""
        data = ConversationState.idle("U1").awaiting_action("abc").to_dict()

        assert data["dialogue_step"] == "awaiting_action"
        assert data["selected_appointment_id"] == "abc"
        assert data["selection_range"] is None


class TestDialogueSteps:
    """Test the transition table."""

    def test_listing_edges(self):
        assert can_transition(DialogueStep.IDLE, DialogueStep.AWAITING_SELECTION)
        assert can_transition(DialogueStep.AWAITING_SELECTION, DialogueStep.AWAITING_ACTION)

    def test_action_edges(self):
        assert can_transition(DialogueStep.AWAITING_ACTION, DialogueStep.AWAITING_EDIT_FIELD)
        assert can_transition(DialogueStep.AWAITING_ACTION, DialogueStep.IDLE)

    def test_edit_only_returns_to_idle(self):
        assert can_transition(DialogueStep.AWAITING_EDIT_FIELD, DialogueStep.IDLE)
        assert not can_transition(
            DialogueStep.AWAITING_EDIT_FIELD, DialogueStep.AWAITING_SELECTION
        )

    def test_idle_cannot_jump_to_action(self):
        assert not can_transition(DialogueStep.IDLE, DialogueStep.AWAITING_ACTION)

    def test_has_selection(self):
        assert has_selection(DialogueStep.AWAITING_ACTION)
        assert has_selection(DialogueStep.AWAITING_EDIT_FIELD)
        assert not has_selection(DialogueStep.AWAITING_SELECTION)


class TestConversationStateStore:
    """Test Redis-backed state store."""

    @pytest.fixture
    def mock_redis(self):
        """Create mock Redis client."""
        mock = AsyncMock()
        mock.get = AsyncMock(return_value=None)
        mock.setex = AsyncMock()
        return mock

    @pytest.fixture
    def store(self):
        """Create state store."""
        return ConversationStateStore(ttl=600)

    @pytest.mark.asyncio
    async def test_get_missing(self, store, mock_redis):
        """Test unknown owner has no record."""
        with patch(
            "app.core.intelligence.session.manager.get_redis",
            return_value=mock_redis,
        ):
            assert await store.get("U1") is None
            state = await store.get_or_idle("U1")

        assert state == ConversationState.idle("U1")
        mock_redis.get.assert_called_with("schedule-assistant:v1:conversation:U1")

    @pytest.mark.asyncio
    async def test_get_existing(self, store, mock_redis):
        """Test stored state is decoded."""
        existing = ConversationState.idle("U1").awaiting_action("abc")
        mock_redis.get = AsyncMock(return_value=existing.to_json())

        with patch(
            "app.core.intelligence.session.manager.get_redis",
            return_value=mock_redis,
        ):
            state = await store.get("U1")

        assert state.dialogue_step == DialogueStep.AWAITING_ACTION
        assert state.selected_appointment_id == "abc"

    @pytest.mark.asyncio
    async def test_set_replaces_with_ttl(self, store, mock_redis):
        """Test set writes the full record with TTL."""
        state = ConversationState.awaiting_selection("U1")

        with patch(
            "app.core.intelligence.session.manager.get_redis",
            return_value=mock_redis,
        ):
            await store.set(state)

        key, ttl, payload = mock_redis.setex.call_args.args
        assert key == "schedule-assistant:v1:conversation:U1"
        assert ttl == 600
        assert ConversationState.from_json(payload) == state

    @pytest.mark.asyncio
    async def test_set_rejects_invalid_state(self, store, mock_redis):
        """Test invariant is checked before writing."""
        state = ConversationState(owner_id="U1", selected_appointment_id="abc")

        with patch(
            "app.core.intelligence.session.manager.get_redis",
            return_value=mock_redis,
        ):
            with pytest.raises(InvalidStateError):
                await store.set(state)

        mock_redis.setex.assert_not_called()

    @pytest.mark.asyncio
    async def test_redis_error_raises_store_unavailable(self, store, mock_redis):
        """Test Redis failures surface as StoreUnavailableError."""
        mock_redis.get = AsyncMock(side_effect=RedisConnectionError("down"))

        with patch(
            "app.core.intelligence.session.manager.get_redis",
            return_value=mock_redis,
        ):
            with pytest.raises(StoreUnavailableError):
                await store.get("U1")

    @pytest.mark.asyncio
    async def test_in_memory_fallback(self, store):
        """Test state survives in memory without Redis."""
        with patch(
            "app.core.intelligence.session.manager.get_redis",
            return_value=None,
        ):
            await store.set(ConversationState.awaiting_selection("U1"))
            state = await store.get("U1")

        assert state.dialogue_step == DialogueStep.AWAITING_SELECTION
        assert "U1" in store._in_memory_fallback

    @pytest.mark.asyncio
    async def test_last_write_wins(self, store):
        """Test a later set fully replaces an earlier one."""
        with patch(
            "app.core.intelligence.session.manager.get_redis",
            return_value=None,
        ):
            await store.set(ConversationState.idle("U1").awaiting_action("first"))
            await store.reset("U1")
            state = await store.get("U1")

        assert state.is_idle
        assert state.selected_appointment_id is None
