"""
Scheduling Module

Provides the schedule store, the dialogue flow, reply formatting and the
message engine that ties them together.

Usage:
    from app.core.scheduling import process_message

    response = await process_message(
        owner_id="U1234",
        message="10/5 14:00 歯医者",
    )
    print(response.message)  # Reply text, or None when nothing matched
    print(response.state.dialogue_step)
"""

# Schedule Store
from app.core.scheduling.store import (
    Appointment,
    ScheduleStore,
    SqlScheduleStore,
    InMemoryScheduleStore,
    get_schedule_store,
)

# Reply Formatter
from app.core.scheduling.response import (
    ReplyFormatter,
    get_reply_formatter,
)

# Conversation Flow
from app.core.scheduling.flow import (
    ConversationFlow,
    FlowResult,
    parse_edit_field,
)

# Scheduling Engine (main orchestrator)
from app.core.scheduling.engine import (
    SchedulingEngine,
    EngineResponse,
    get_scheduling_engine,
    process_message,
)

__all__ = [
    # Store
    "Appointment",
    "ScheduleStore",
    "SqlScheduleStore",
    "InMemoryScheduleStore",
    "get_schedule_store",
    # Reply Formatter
    "ReplyFormatter",
    "get_reply_formatter",
    # Conversation Flow
    "ConversationFlow",
    "FlowResult",
    "parse_edit_field",
    # Scheduling Engine
    "SchedulingEngine",
    "EngineResponse",
    "get_scheduling_engine",
    "process_message",
]
