"""
LINE Messaging API integration: webhook signature checks, inbound event
parsing and the outbound reply/loading-indicator client.
"""

import base64
import hashlib
import hmac
import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from .constants import MAX_MESSAGES_PER_REPLY
from .exceptions import MessagingError, SignatureError
from .models import OutboundMessage, ReplyBatch
from .presentation import button_caption

logger = logging.getLogger(__name__)

LINE_API_URL = "https://api.line.me/v2/bot"
REQUEST_TIMEOUT = 10.0
LOADING_SECONDS = 5


def compute_signature(channel_secret: str, body: bytes) -> str:
    digest = hmac.new(
        channel_secret.encode("utf-8"), body, hashlib.sha256
    ).digest()
    return base64.b64encode(digest).decode("utf-8")


def verify_signature(
    channel_secret: str, body: bytes, signature: Optional[str]
) -> None:
    """
    Check the `X-Line-Signature` header against the raw request body.

    Raises:
        SignatureError: If the header is missing or does not match.
    """
    if not signature:
        raise SignatureError("Missing X-Line-Signature header.")
    expected = compute_signature(channel_secret, body)
    if not hmac.compare_digest(expected, signature):
        raise SignatureError("Webhook signature mismatch.")


class LineSource(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: str = "user"
    user_id: Optional[str] = Field(default=None, alias="userId")
    group_id: Optional[str] = Field(default=None, alias="groupId")
    room_id: Optional[str] = Field(default=None, alias="roomId")

    @property
    def chat_id(self) -> Optional[str]:
        return self.user_id or self.group_id or self.room_id


class LineMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    text: Optional[str] = None


class LineEvent(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: str
    reply_token: Optional[str] = Field(default=None, alias="replyToken")
    source: LineSource = Field(default_factory=LineSource)
    message: Optional[LineMessage] = None

    @property
    def is_text_message(self) -> bool:
        return (
            self.type == "message"
            and self.message is not None
            and self.message.type == "text"
            and self.message.text is not None
        )


class LineWebhookBody(BaseModel):
    model_config = ConfigDict(extra="allow")

    destination: Optional[str] = None
    events: List[LineEvent] = Field(default_factory=list)


def to_line_message(message: OutboundMessage) -> Dict[str, Any]:
    """Convert an OutboundMessage into a LINE message object."""
    if message.audio is not None:
        payload: Dict[str, Any] = {
            "type": "audio",
            "originalContentUrl": message.audio.url,
            "duration": message.audio.duration_ms,
        }
    else:
        payload = {"type": "text", "text": message.text}
    if message.suggested_actions:
        payload["quickReply"] = {
            "items": [
                {
                    "type": "action",
                    "action": {
                        "type": "message",
                        "label": button_caption(label),
                        "text": label,
                    },
                }
                for label in message.suggested_actions
            ]
        }
    return payload


class LineMessagingClient:
    """Async client for the LINE Messaging API endpoints wordcore uses."""

    def __init__(
        self,
        channel_access_token: str,
        base_url: str = LINE_API_URL,
        timeout: float = REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Authorization": f"Bearer {channel_access_token}"},
        )

    async def _post(self, path: str, payload: Dict[str, Any]) -> None:
        try:
            resp = await self._client.post(path, json=payload)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"LINE API call {path} failed: {e}")
            raise MessagingError(
                f"LINE API call {path} failed: {e}", original_exception=e
            ) from e

    async def reply(self, reply_token: str, batch: ReplyBatch) -> None:
        """
        Send a reply batch using the event's reply token.

        Raises:
            MessagingError: If the batch is too long or the API call fails.
        """
        if len(batch.messages) > MAX_MESSAGES_PER_REPLY:
            raise MessagingError(
                f"A reply may contain at most {MAX_MESSAGES_PER_REPLY} messages, "
                f"got {len(batch.messages)}."
            )
        await self._post(
            "/message/reply",
            {
                "replyToken": reply_token,
                "messages": [to_line_message(m) for m in batch.messages],
            },
        )

    async def show_loading(self, chat_id: str) -> None:
        """Start the loading animation in a one-to-one chat."""
        await self._post(
            "/chat/loading/start",
            {"chatId": chat_id, "loadingSeconds": LOADING_SECONDS},
        )
        logger.debug(f"Loading animation started for chat ID: {chat_id}")

    async def aclose(self) -> None:
        await self._client.aclose()
