"""Redis-based conversation state store."""

import logging
from typing import Optional

from redis.exceptions import RedisError

from app.config import settings
from app.core.errors import StoreUnavailableError
from app.infra.redis import get_redis, APP_PREFIX
from .models import ConversationState

logger = logging.getLogger(__name__)

# State key prefix (extends existing APP_PREFIX)
STATE_PREFIX = f"{APP_PREFIX}conversation:"


class ConversationStateStore:
    """
    Redis-based store for per-user conversation state.

    Key pattern: schedule-assistant:v1:conversation:{owner_id}

    Every set() fully replaces the record, so concurrent writers for the
    same owner resolve as last-write-wins. Gracefully handles Redis
    unavailability with an in-memory fallback.
    """

    def __init__(self, ttl: Optional[int] = None):
        """Initialize state store.

        Args:
            ttl: Record TTL in seconds (defaults to settings)
        """
        self._ttl = ttl or settings.conversation_state_ttl
        self._in_memory_fallback: dict[str, ConversationState] = {}

    def _key(self, owner_id: str) -> str:
        """Generate Redis key."""
        return f"{STATE_PREFIX}{owner_id}"

    async def get(self, owner_id: str) -> Optional[ConversationState]:
        """
        Get the stored state for an owner.

        Args:
            owner_id: Platform user identifier

        Returns:
            ConversationState or None if the owner has none yet
        """
        redis = await get_redis()

        if redis:
            try:
                data = await redis.get(self._key(owner_id))
            except RedisError as e:
                logger.error(f"Failed to get conversation state for {owner_id}: {e}")
                raise StoreUnavailableError(str(e)) from e

            if data:
                return ConversationState.from_json(data)
            return None
        else:
            # Fallback to in-memory
            return self._in_memory_fallback.get(owner_id)

    async def get_or_idle(self, owner_id: str) -> ConversationState:
        """Get the stored state, or a fresh idle state for a new owner."""
        state = await self.get(owner_id)
        if state is None:
            return ConversationState.idle(owner_id)
        return state

    async def set(self, state: ConversationState) -> None:
        """
        Replace the stored state for state.owner_id.

        Args:
            state: Full state record to store

        Raises:
            InvalidStateError: if the record breaks the selection invariant
            StoreUnavailableError: if Redis rejects the write
        """
        state.validate()

        redis = await get_redis()

        if redis:
            try:
                await redis.setex(self._key(state.owner_id), self._ttl, state.to_json())
            except RedisError as e:
                logger.error(f"Failed to save conversation state for {state.owner_id}: {e}")
                raise StoreUnavailableError(str(e)) from e
            logger.debug(
                f"Conversation state saved: {state.owner_id} -> {state.dialogue_step.value}"
            )
        else:
            self._in_memory_fallback[state.owner_id] = state
            logger.warning(
                f"Redis unavailable, using in-memory fallback for {state.owner_id}"
            )

    async def reset(self, owner_id: str) -> ConversationState:
        """Store and return an idle state for the owner."""
        state = ConversationState.idle(owner_id)
        await self.set(state)
        return state


# Singleton
_store: Optional[ConversationStateStore] = None


def get_state_store() -> ConversationStateStore:
    """Get singleton ConversationStateStore."""
    global _store
    if _store is None:
        _store = ConversationStateStore()
    return _store
