"""
LINE Webhook Endpoint.

Receives batches of LINE events, runs every text message through the
scheduling engine and replies once per event. The batch is always
acknowledged once handled; a failing event is logged and skipped.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.config import settings
from app.core.scheduling.engine import SchedulingEngine, get_scheduling_engine
from app.infra.line import LineClient, LineClientError, get_line_client, verify_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["Webhook"])


class EventSource(BaseModel):
    """Sender of an event."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    type: str = "user"
    user_id: Optional[str] = Field(default=None, alias="userId")


class EventMessage(BaseModel):
    """Message body of a message event."""

    model_config = ConfigDict(extra="ignore")

    type: str
    id: Optional[str] = None
    text: Optional[str] = None


class LineEvent(BaseModel):
    """One webhook event. Only text message events are acted on."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    type: str
    reply_token: Optional[str] = Field(default=None, alias="replyToken")
    source: Optional[EventSource] = None
    message: Optional[EventMessage] = None

    @property
    def is_text_message(self) -> bool:
        return (
            self.type == "message"
            and self.message is not None
            and self.message.type == "text"
            and self.message.text is not None
        )

    @property
    def owner_id(self) -> Optional[str]:
        return self.source.user_id if self.source else None


class WebhookPayload(BaseModel):
    """Webhook request body."""

    model_config = ConfigDict(extra="ignore")

    destination: Optional[str] = None
    events: list[LineEvent] = Field(default_factory=list)


class WebhookAck(BaseModel):
    """Fixed acknowledgement."""

    status: str = "ok"


async def handle_event(
    event: LineEvent,
    engine: SchedulingEngine,
    line_client: LineClient,
) -> bool:
    """
    Process one event and send its reply.

    Returns:
        True if a reply was sent
    """
    if not event.is_text_message:
        logger.debug(f"Ignoring {event.type} event")
        return False

    owner_id = event.owner_id
    if not owner_id:
        logger.warning("Text message without a user id, ignoring")
        return False

    response = await engine.process(owner_id, event.message.text.strip())
    if not response.should_reply:
        return False

    if not event.reply_token:
        logger.warning(f"No reply token for {owner_id}, reply dropped")
        return False

    await line_client.reply(event.reply_token, response.message)
    return True


@router.post(
    "",
    response_model=WebhookAck,
    status_code=status.HTTP_200_OK,
    summary="LINE webhook",
    description="Receives LINE Messaging API events.",
    responses={
        200: {"description": "Batch handled"},
        400: {"description": "Invalid signature or body"},
    },
)
async def webhook(
    request: Request,
    x_line_signature: Optional[str] = Header(
        default=None,
        alias="X-Line-Signature",
        description="Base64 HMAC-SHA256 of the body keyed by the channel secret",
    ),
    engine: SchedulingEngine = Depends(get_scheduling_engine),
    line_client: LineClient = Depends(get_line_client),
) -> WebhookAck:
    """
    Handle a batch of events.

    Events are processed one after another in delivery order.
    """
    body = await request.body()

    if settings.verifies_signatures:
        if not verify_signature(settings.line_channel_secret, body, x_line_signature):
            logger.warning("Rejected webhook with invalid signature")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid signature",
            )
    else:
        logger.warning("LINE channel secret not set, skipping signature check")

    try:
        payload = WebhookPayload.model_validate_json(body)
    except ValidationError as e:
        logger.warning(f"Malformed webhook body: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Malformed body",
        )

    for event in payload.events:
        try:
            await handle_event(event, engine, line_client)
        except LineClientError as e:
            logger.error(f"Reply failed for {event.owner_id}: {e}")
        except Exception as e:
            logger.exception(f"Error handling {event.type} event from {event.owner_id}: {e}")

    return WebhookAck()
