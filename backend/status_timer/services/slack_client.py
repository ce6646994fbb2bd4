"""
Slack notification transport.

Posts Block Kit messages through the Slack Web API and joins the alerts
channel on demand. Slack answers HTTP 200 with {"ok": false} on most
errors, so both the status code and the ok flag are checked.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol
import logging

import httpx

from status_timer.core.exceptions import NotificationDeliveryError


logger = logging.getLogger(__name__)


@dataclass
class SlackMessage:
    """Slack message structure."""
    channel_id: str
    text: str = ""
    blocks: Optional[List[Dict]] = None
    thread_ts: Optional[str] = None


class NotificationTransport(Protocol):
    async def post_message(self, message: SlackMessage) -> bool:
        ...

    async def join_channel(self, channel_id: str) -> None:
        ...


class SlackTransport:
    """Slack Web API client (bot token)."""

    def __init__(
        self,
        bot_token: str,
        base_url: str = "https://slack.com/api",
        timeout_seconds: float = 10.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_seconds,
            headers={
                "Authorization": f"Bearer {bot_token}",
                "Content-Type": "application/json; charset=utf-8",
            },
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _call(self, method: str, payload: Dict[str, Any], channel_id: str) -> Dict[str, Any]:
        try:
            response = await self._client.post(f"/{method}", json=payload)
        except httpx.HTTPError as e:
            raise NotificationDeliveryError(
                f"Slack {method} request failed",
                channel_id=channel_id,
                slack_error=str(e) or e.__class__.__name__
            ) from e

        if response.is_error:
            raise NotificationDeliveryError(
                f"Slack {method} returned {response.status_code}",
                channel_id=channel_id,
                slack_error=response.text[:200]
            )

        data = response.json()
        if not data.get("ok"):
            raise NotificationDeliveryError(
                f"Slack {method} rejected the request",
                channel_id=channel_id,
                slack_error=data.get("error", "unknown_error")
            )
        return data

    async def post_message(self, message: SlackMessage) -> bool:
        """
        Deliver a message.

        Returns:
            True on success, False if Slack rejected or was unreachable
        """
        payload: Dict[str, Any] = {"channel": message.channel_id, "text": message.text}
        if message.blocks:
            payload["blocks"] = message.blocks
        if message.thread_ts:
            payload["thread_ts"] = message.thread_ts

        try:
            await self._call("chat.postMessage", payload, message.channel_id)
            return True
        except NotificationDeliveryError as e:
            logger.error(f"❌ {e.message}: {e.details.get('slack_error')}")
            return False

    async def join_channel(self, channel_id: str) -> None:
        """Join a channel; failures are logged and ignored."""
        try:
            await self._call("conversations.join", {"channel": channel_id}, channel_id)
        except NotificationDeliveryError as e:
            logger.warning(f"Error joining channel {channel_id}: {e.details.get('slack_error')}")
