"""
Scheduling Engine - Main Orchestrator.

Runs one inbound message end to end: load the sender's conversation
state, classify the text, advance the dialogue and persist the new state.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional

from app.config import settings
from app.core.errors import StoreUnavailableError
from app.core.intelligence.intent.classifier import IntentClassifier, get_intent_classifier
from app.core.intelligence.intent.types import Intent, IntentResult
from app.core.intelligence.session.manager import ConversationStateStore, get_state_store
from app.core.intelligence.session.models import ConversationState
from app.core.scheduling.flow import ConversationFlow, FlowResult
from app.core.scheduling.response import ReplyFormatter, get_reply_formatter
from app.core.scheduling.store import ScheduleStore, get_schedule_store

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


@dataclass
class EngineResponse:
    """Response from scheduling engine."""

    owner_id: str
    state: ConversationState
    message: Optional[str] = None  # None: nothing to reply
    intent: Optional[Intent] = None
    action_type: Optional[str] = None
    processing_time_ms: Optional[float] = None

    @property
    def should_reply(self) -> bool:
        return self.message is not None

    def to_dict(self) -> dict:
        """Convert to dictionary for logging / API responses."""
        result = {
            "owner_id": self.owner_id,
            "state": self.state.dialogue_step.value,
            "message": self.message,
        }

        if self.intent:
            result["intent"] = self.intent.value
        if self.action_type:
            result["action_type"] = self.action_type
        if self.processing_time_ms is not None:
            result["processing_time_ms"] = self.processing_time_ms

        return result


class SchedulingEngine:
    """
    Main orchestrator for the schedule assistant.

    Coordinates:
    - Conversation state loading and saving
    - Intent classification
    - Dialogue flow (schedule store effects)
    - Error replies when a store is unavailable
    """

    def __init__(
        self,
        schedule_store: Optional[ScheduleStore] = None,
        state_store: Optional[ConversationStateStore] = None,
        classifier: Optional[IntentClassifier] = None,
        formatter: Optional[ReplyFormatter] = None,
    ):
        """Initialize engine with optional dependencies.

        Args:
            schedule_store: Appointment store (defaults to the SQL store)
            state_store: Conversation state store (defaults to Redis)
            classifier: Intent classifier
            formatter: Reply formatter
        """
        self._schedule_store = schedule_store
        self._state_store = state_store
        self._classifier = classifier
        self._formatter = formatter
        self._flow: Optional[ConversationFlow] = None

    def _get_state_store(self) -> ConversationStateStore:
        if self._state_store is None:
            self._state_store = get_state_store()
        return self._state_store

    def _get_classifier(self) -> IntentClassifier:
        if self._classifier is None:
            self._classifier = get_intent_classifier()
        return self._classifier

    def _get_formatter(self) -> ReplyFormatter:
        if self._formatter is None:
            self._formatter = get_reply_formatter()
        return self._formatter

    def _get_flow(self) -> ConversationFlow:
        if self._flow is None:
            if self._schedule_store is None:
                self._schedule_store = get_schedule_store()
            self._flow = ConversationFlow(self._schedule_store, self._get_formatter())
        return self._flow

    async def process(
        self,
        owner_id: str,
        message: str,
        today: Optional[date] = None,
    ) -> EngineResponse:
        """Process one user message.

        Args:
            owner_id: Platform user identifier
            message: Trimmed message text
            today: Reference date (defaults to today in the configured timezone)

        Returns:
            EngineResponse with the reply (if any) and the new state
        """
        start_time = _utcnow()
        state_store = self._get_state_store()

        try:
            state = await state_store.get_or_idle(owner_id)
        except StoreUnavailableError as e:
            return await self._store_failure(owner_id, e)

        intent = self._get_classifier().classify(state.dialogue_step, message, today)
        if intent.is_noop:
            logger.debug(f"No intent for {owner_id} in {state.dialogue_step.value}")
            return EngineResponse(owner_id=owner_id, state=state, intent=Intent.NOOP)

        try:
            result = await self._get_flow().advance(state, intent, today)
        except StoreUnavailableError as e:
            return await self._store_failure(owner_id, e, intent)

        await self._save_state(state, result)

        processing_time_ms = (_utcnow() - start_time).total_seconds() * 1000

        return EngineResponse(
            owner_id=owner_id,
            state=result.state,
            message=result.message,
            intent=intent.intent,
            action_type=result.action_type,
            processing_time_ms=processing_time_ms,
        )

    async def _save_state(self, before: ConversationState, result: FlowResult) -> None:
        """Persist the new state.

        An open dialogue is written even when unchanged so a re-prompt
        restarts its TTL. Idle to idle is skipped.

        A failed save after a completed schedule write is logged only: the
        write already happened and its reply still goes out.
        """
        if result.state == before and result.state.is_idle:
            return

        try:
            await self._get_state_store().set(result.state)
        except StoreUnavailableError as e:
            logger.error(
                f"State save failed for {before.owner_id} after {result.action_type}: {e}"
            )

    async def _store_failure(
        self,
        owner_id: str,
        error: StoreUnavailableError,
        intent: Optional[IntentResult] = None,
    ) -> EngineResponse:
        """Generic error reply, with a best-effort reset to idle."""
        logger.error(f"Store unavailable while handling message from {owner_id}: {error}")

        state = ConversationState.idle(owner_id)
        try:
            await self._get_state_store().set(state)
        except StoreUnavailableError as e:
            logger.error(f"Could not reset state for {owner_id}: {e}")

        detail = str(error) if settings.debug else None
        return EngineResponse(
            owner_id=owner_id,
            state=state,
            message=self._get_formatter().error(detail),
            intent=intent.intent if intent else None,
            action_type="error",
        )


# Singleton
_engine: Optional[SchedulingEngine] = None


def get_scheduling_engine() -> SchedulingEngine:
    """Get singleton SchedulingEngine."""
    global _engine
    if _engine is None:
        _engine = SchedulingEngine()
    return _engine


async def process_message(owner_id: str, message: str) -> EngineResponse:
    """Convenience function to process a message."""
    engine = get_scheduling_engine()
    return await engine.process(owner_id, message)
