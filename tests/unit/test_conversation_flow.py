"""Tests for the dialogue flow."""

import pytest
from datetime import date

from app.core.intelligence.intent.types import Intent, IntentResult
from app.core.intelligence.session.models import ConversationState, DateRange
from app.core.intelligence.session.state import DialogueStep, PendingAction
from app.core.scheduling.flow import ConversationFlow, parse_edit_field
from app.core.scheduling.response import INVALID_DATE, INVALID_NUMBER, NO_APPOINTMENTS
from app.core.scheduling.store import InMemoryScheduleStore


TODAY = date(2026, 10, 17)
OWNER = "U1"


class TestParseEditField:
    """Test field shape matching for edits."""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("11/3", ("date", "2026-11-03")),
            ("11-3", ("date", "2026-11-03")),
            ("2027-01-15", ("date", "2027-01-15")),
            ("14:30", ("time", "14:30")),
            ("9:05", ("time", "9:05")),
            ("歯医者（再診）", ("content", "歯医者（再診）")),
            ("meet at 10:00", ("content", "meet at 10:00")),
        ],
    )
    def test_shapes(self, text, expected):
        assert parse_edit_field(text, TODAY) == expected

    @pytest.mark.parametrize("text", ["2/30", "13-1", "2026-02-30"])
    def test_impossible_date_falls_back_to_content(self, text):
        """Test malformed field input is never fatal."""
        assert parse_edit_field(text, TODAY) == ("content", text)


class TestConversationFlow:
    """Test ConversationFlow per intent."""

    @pytest.fixture
    def store(self):
        return InMemoryScheduleStore()

    @pytest.fixture
    def flow(self, store):
        return ConversationFlow(store)

    @pytest.fixture
    def idle(self):
        return ConversationState.idle(OWNER)

    async def seed(self, store):
        """Two appointments this month, inserted out of date order."""
        second = await store.add(OWNER, "2026-10-20", None, "飲み会")
        first = await store.add(OWNER, "2026-10-05", "14:00", "歯医者")
        return first, second

    # === Create ===

    @pytest.mark.asyncio
    async def test_create(self, flow, store, idle):
        """Test create stores the record and confirms it."""
        intent = IntentResult(
            intent=Intent.CREATE_APPOINTMENT, month=10, day=5, time="14:00", content="dentist"
        )

        result = await flow.advance(idle, intent, today=TODAY)

        [stored] = await store.query_by_owner(OWNER)
        assert (stored.date, stored.time, stored.content) == ("2026-10-05", "14:00", "dentist")
        assert result.action_type == "create"
        assert "10-05" in result.message
        assert "dentist" in result.message
        assert result.state == idle

    @pytest.mark.asyncio
    async def test_create_invalid_date(self, flow, store, idle):
        """Test impossible calendar date is rejected."""
        intent = IntentResult(
            intent=Intent.CREATE_APPOINTMENT, month=9, day=31, content="x"
        )

        result = await flow.advance(idle, intent, today=TODAY)

        assert result.message == INVALID_DATE
        assert result.state == idle
        assert await store.query_by_owner(OWNER) == []

    # === List ===

    @pytest.mark.asyncio
    async def test_list_empty_resets_to_idle(self, flow):
        """Test empty range replies with the empty notice."""
        state = ConversationState.awaiting_selection(OWNER)
        intent = IntentResult(intent=Intent.LIST_RANGE, start=TODAY, end=TODAY)

        result = await flow.advance(state, intent, today=TODAY)

        assert result.message == NO_APPOINTMENTS
        assert result.state.is_idle

    @pytest.mark.asyncio
    async def test_list_numbers_in_date_order(self, flow, store, idle):
        """Test listing is 1-based, date ascending."""
        await self.seed(store)
        intent = IntentResult(
            intent=Intent.LIST_RANGE, start=date(2026, 10, 1), end=date(2026, 10, 31)
        )

        result = await flow.advance(idle, intent, today=TODAY)

        lines = result.message.splitlines()
        assert lines[1] == "1. 2026-10-05 14:00 歯医者"
        assert lines[2] == "2. 2026-10-20 飲み会"
        assert result.state.dialogue_step == DialogueStep.AWAITING_SELECTION
        assert result.state.selected_appointment_id is None
        assert result.state.selection_range == DateRange(date(2026, 10, 1), date(2026, 10, 31))

    # === Select ===

    @pytest.mark.asyncio
    @pytest.mark.parametrize("index", [1, 2])
    async def test_select_in_range(self, flow, store, index):
        """Test nth record of the recomputed ordering is selected."""
        ordered = list(await self.seed(store))
        state = ConversationState.awaiting_selection(OWNER)
        intent = IntentResult(intent=Intent.SELECT_BY_INDEX, index=index)

        result = await flow.advance(state, intent, today=TODAY)

        assert result.state.dialogue_step == DialogueStep.AWAITING_ACTION
        assert result.state.selected_appointment_id == ordered[index - 1]
        assert "編集しますか？削除しますか？" in result.message

    @pytest.mark.asyncio
    @pytest.mark.parametrize("index", [None, 0, 3, 5])
    async def test_select_out_of_range(self, flow, store, index):
        """Test invalid index leaves the state unchanged."""
        await self.seed(store)
        state = ConversationState.awaiting_selection(OWNER)
        intent = IntentResult(intent=Intent.SELECT_BY_INDEX, index=index)

        result = await flow.advance(state, intent, today=TODAY)

        assert result.message == INVALID_NUMBER
        assert result.state == state
        assert result.state.dialogue_step == DialogueStep.AWAITING_SELECTION

    @pytest.mark.asyncio
    async def test_select_uses_listing_range(self, flow, store):
        """Test index is resolved against the range that was listed."""
        # Numbering is scoped to the listing. Counting over every appointment
        # the owner has would pick last month's record here.
        await store.add(OWNER, "2026-09-01", None, "last month")
        in_range = await store.add(OWNER, "2026-10-17", None, "today")
        state = ConversationState.awaiting_selection(OWNER, DateRange(TODAY, TODAY))

        result = await flow.advance(
            state, IntentResult(intent=Intent.SELECT_BY_INDEX, index=1), today=TODAY
        )

        assert result.state.selected_appointment_id == in_range

    @pytest.mark.asyncio
    async def test_select_sees_store_changes(self, flow, store):
        """Test ordering is recomputed, so later inserts shift numbering."""
        first, second = await self.seed(store)
        state = ConversationState.awaiting_selection(OWNER)
        earlier = await store.add(OWNER, "2026-10-01", None, "added after listing")

        result = await flow.advance(
            state, IntentResult(intent=Intent.SELECT_BY_INDEX, index=1), today=TODAY
        )

        assert result.state.selected_appointment_id == earlier

    # === Choose action ===

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", ["編集", "edit", "Edit"])
    async def test_choose_edit(self, flow, store, token):
        first, _ = await self.seed(store)
        state = ConversationState.idle(OWNER).awaiting_action(first)

        result = await flow.advance(
            state, IntentResult(intent=Intent.CHOOSE_ACTION, text=token), today=TODAY
        )

        assert result.state.dialogue_step == DialogueStep.AWAITING_EDIT_FIELD
        assert result.state.pending_action == PendingAction.EDITING
        assert result.state.selected_appointment_id == first
        assert "日付 / 時間 / 内容" in result.message

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", ["削除", "delete"])
    async def test_choose_delete(self, flow, store, token):
        first, second = await self.seed(store)
        state = ConversationState.idle(OWNER).awaiting_action(first)

        result = await flow.advance(
            state, IntentResult(intent=Intent.CHOOSE_ACTION, text=token), today=TODAY
        )

        assert result.state == ConversationState.idle(OWNER)
        assert await store.get(first) is None
        assert await store.get(second) is not None
        assert "削除しました" in result.message
        assert "歯医者" in result.message

    @pytest.mark.asyncio
    async def test_choose_other_reprompts(self, flow, store):
        first, _ = await self.seed(store)
        state = ConversationState.idle(OWNER).awaiting_action(first)

        result = await flow.advance(
            state, IntentResult(intent=Intent.CHOOSE_ACTION, text="やめる"), today=TODAY
        )

        assert result.state == state
        assert result.message == "「編集」か「削除」を送ってください"
        assert await store.get(first) is not None

    @pytest.mark.asyncio
    async def test_choose_on_vanished_selection(self, flow, store):
        """Test a selection deleted elsewhere resets to idle."""
        first, _ = await self.seed(store)
        state = ConversationState.idle(OWNER).awaiting_action(first)
        await store.delete(first)

        result = await flow.advance(
            state, IntentResult(intent=Intent.CHOOSE_ACTION, text="削除"), today=TODAY
        )

        assert result.state.is_idle
        assert "見つかりません" in result.message

    # === Edit field ===

    @pytest.mark.asyncio
    async def test_edit_time_only(self, flow, store):
        """Test a time edit leaves date and content alone."""
        first, _ = await self.seed(store)
        state = ConversationState.idle(OWNER).awaiting_action(first).awaiting_edit_field()

        result = await flow.advance(
            state, IntentResult(intent=Intent.SUPPLY_EDIT_FIELD, text="14:30"), today=TODAY
        )

        stored = await store.get(first)
        assert (stored.date, stored.time, stored.content) == ("2026-10-05", "14:30", "歯医者")
        assert result.message == "変更を保存しました ✅\n📅 2026-10-05 14:30\n📝 歯医者"
        assert result.state == ConversationState.idle(OWNER)

    @pytest.mark.asyncio
    async def test_edit_date(self, flow, store):
        first, _ = await self.seed(store)
        state = ConversationState.idle(OWNER).awaiting_action(first).awaiting_edit_field()

        await flow.advance(
            state, IntentResult(intent=Intent.SUPPLY_EDIT_FIELD, text="11/3"), today=TODAY
        )

        stored = await store.get(first)
        assert (stored.date, stored.time) == ("2026-11-03", "14:00")

    @pytest.mark.asyncio
    async def test_edit_content(self, flow, store):
        first, _ = await self.seed(store)
        state = ConversationState.idle(OWNER).awaiting_action(first).awaiting_edit_field()

        result = await flow.advance(
            state, IntentResult(intent=Intent.SUPPLY_EDIT_FIELD, text="眼科"), today=TODAY
        )

        stored = await store.get(first)
        assert (stored.date, stored.time, stored.content) == ("2026-10-05", "14:00", "眼科")
        assert "眼科" in result.message

    # === Noop ===

    @pytest.mark.asyncio
    async def test_noop(self, flow, idle):
        result = await flow.advance(idle, IntentResult(intent=Intent.NOOP), today=TODAY)

        assert result.message is None
        assert result.state == idle
