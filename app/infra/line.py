"""
HTTP client for the LINE Messaging API.

Covers the two calls the webhook needs:
- Verifying the X-Line-Signature of an inbound webhook body
- Sending a text reply with a one-time reply token
"""

import base64
import hashlib
import hmac
import logging
from typing import Optional

import httpx

from app.config import get_settings

logger = logging.getLogger(__name__)

REPLY_PATH = "/v2/bot/message/reply"

# LINE rejects text messages longer than this
MAX_TEXT_LENGTH = 5000


class LineClientError(Exception):
    """Raised when the reply API call fails."""
    pass


def compute_signature(channel_secret: str, body: bytes) -> str:
    """Base64 HMAC-SHA256 of the raw request body."""
    digest = hmac.new(channel_secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def verify_signature(channel_secret: str, body: bytes, signature: Optional[str]) -> bool:
    """
    Check an X-Line-Signature header against the raw body.

    Args:
        channel_secret: Channel secret
        body: Raw request body, exactly as received
        signature: Header value (None if missing)

    Returns:
        True if the signature matches
    """
    if not signature:
        return False
    expected = compute_signature(channel_secret, body)
    return hmac.compare_digest(expected, signature)


class LineClient:
    """HTTP client for the LINE reply API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        access_token: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize client.

        Args:
            base_url: API base URL (defaults to settings)
            access_token: Channel access token (defaults to settings)
            timeout: Request timeout in seconds (defaults to settings)
        """
        settings = get_settings()
        self.base_url = base_url or settings.line_api_url
        self.access_token = access_token or settings.line_channel_access_token
        self.timeout = timeout or settings.line_timeout
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"Authorization": f"Bearer {self.access_token}"},
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def reply(self, reply_token: str, text: str) -> None:
        """Send one text reply.

        Args:
            reply_token: Token from the inbound event (single use)
            text: Reply text

        Raises:
            LineClientError: on HTTP errors or a non-2xx response
        """
        client = await self._get_client()
        payload = {
            "replyToken": reply_token,
            "messages": [{"type": "text", "text": text[:MAX_TEXT_LENGTH]}],
        }

        try:
            response = await client.post(REPLY_PATH, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Reply rejected: {e.response.status_code} {e.response.text}"
            )
            raise LineClientError(f"Reply rejected with {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"Reply failed: {e}")
            raise LineClientError(str(e)) from e

        logger.debug("Reply sent")


# Singleton
_client: Optional[LineClient] = None


def get_line_client() -> LineClient:
    """Get singleton LineClient."""
    global _client
    if _client is None:
        _client = LineClient()
    return _client


async def close_line_client() -> None:
    """Close the singleton client, if one was created."""
    global _client
    if _client is not None:
        await _client.close()
        _client = None
