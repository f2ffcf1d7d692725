"""Gateway client interface and an aiohttp implementation.

The dispatcher never talks to the chat platform directly. It consumes
GatewayEvents from ``Gateway.events()`` and sends replies through the
outbound methods. ``RestGateway`` implements both halves over HTTP:
REST calls for outbound traffic and a JSON websocket feed for inbound
events, reconnecting with exponential backoff.

Key classes:
    Gateway: Abstract gateway client.
    RestGateway: aiohttp-based client.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, AsyncIterator, Dict, List, Optional

import aiohttp
import structlog

from .exceptions import GatewayError
from .models import GatewayEvent, Interaction

logger = structlog.get_logger("commandwire.gateway")

# Interaction callback type for "reply with a message"
_CHANNEL_MESSAGE_WITH_SOURCE = 4

# Answered interaction ids remembered for follow-up routing; oldest dropped first
MAX_ANSWERED_INTERACTIONS = 1000


class Gateway(ABC):
    """Abstract gateway client.

    Implementations deliver inbound events and carry outbound calls.
    Message ids are returned so the edit tracker can later edit a
    reply in place.
    """

    @abstractmethod
    def events(self) -> AsyncIterator[GatewayEvent]:
        """Yield inbound events until the connection is closed."""
        ...

    @abstractmethod
    async def send_message(
        self, channel_id: int, content: str, *, reply_to: Optional[int] = None
    ) -> int:
        """Send a message and return its id."""
        ...

    @abstractmethod
    async def edit_message(self, channel_id: int, message_id: int, content: str) -> None:
        """Replace the content of a message the bot sent earlier."""
        ...

    @abstractmethod
    async def respond_to_interaction(
        self, interaction: Interaction, content: str
    ) -> Optional[int]:
        """Reply to a structured call. Returns a message id when known."""
        ...

    @abstractmethod
    async def publish_commands(self, payload: List[Dict[str, Any]]) -> None:
        """Replace the platform's global command set with ``payload``."""
        ...

    async def close(self) -> None:
        """Release connections. Default: nothing to release."""
        return None


class RestGateway(Gateway):
    """Gateway client built on aiohttp.

    Args:
        api_url: REST base URL (e.g. ``https://discord.com/api/v10``).
        gateway_url: Websocket URL yielding ``{"type", "data"}`` JSON frames.
        token: Bot credential, sent as ``Authorization: Bot <token>``.
        application_id: Needed for publishing commands and follow-ups.
    """

    MAX_RECONNECT_DELAY = 300

    def __init__(
        self,
        api_url: str,
        gateway_url: str,
        token: str,
        application_id: Optional[str] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.gateway_url = gateway_url
        self.application_id = application_id
        self._token = token
        self._session: Optional[aiohttp.ClientSession] = None
        self._answered: "OrderedDict[int, None]" = OrderedDict()
        self.running = False

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the shared aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Authorization": f"Bot {self._token}"}
            )
        return self._session

    async def close(self) -> None:
        """Stop the event feed and close the HTTP session."""
        self.running = False
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def _request(
        self, method: str, path: str, payload: Any = None
    ) -> Optional[Dict[str, Any]]:
        session = await self._get_session()
        url = f"{self.api_url}{path}"
        try:
            async with session.request(
                method, url, json=payload, timeout=aiohttp.ClientTimeout(total=15)
            ) as resp:
                if resp.status >= 400:
                    body = await resp.text()
                    logger.warning(
                        "gateway_request_failed",
                        method=method, path=path, status=resp.status, body=body[:200],
                    )
                    raise GatewayError(
                        f"{method} {path} failed", status=resp.status
                    )
                if resp.status == 204:
                    return None
                return await resp.json()
        except aiohttp.ClientError as e:
            logger.error("gateway_request_error", method=method, path=path, error=str(e))
            raise GatewayError(f"{method} {path} failed: {e}") from e

    async def send_message(
        self, channel_id: int, content: str, *, reply_to: Optional[int] = None
    ) -> int:
        payload: Dict[str, Any] = {"content": content}
        if reply_to is not None:
            payload["message_reference"] = {"message_id": str(reply_to)}
        data = await self._request("POST", f"/channels/{channel_id}/messages", payload)
        return int(data["id"])

    async def edit_message(self, channel_id: int, message_id: int, content: str) -> None:
        await self._request(
            "PATCH", f"/channels/{channel_id}/messages/{message_id}", {"content": content}
        )

    async def respond_to_interaction(
        self, interaction: Interaction, content: str
    ) -> Optional[int]:
        """Answer the interaction; later calls become follow-up messages."""
        if interaction.id not in self._answered:
            self._answered[interaction.id] = None
            while len(self._answered) > MAX_ANSWERED_INTERACTIONS:
                self._answered.popitem(last=False)
            await self._request(
                "POST",
                f"/interactions/{interaction.id}/{interaction.token}/callback",
                {"type": _CHANNEL_MESSAGE_WITH_SOURCE, "data": {"content": content}},
            )
            return None
        data = await self._request(
            "POST",
            f"/webhooks/{self.application_id}/{interaction.token}",
            {"content": content},
        )
        return int(data["id"]) if data else None

    async def publish_commands(self, payload: List[Dict[str, Any]]) -> None:
        if not self.application_id:
            raise GatewayError("application_id is required to publish commands")
        await self._request("PUT", f"/applications/{self.application_id}/commands", payload)
        logger.info("commands_published", count=len(payload))

    async def events(self) -> AsyncIterator[GatewayEvent]:
        """Connect via websocket and yield parsed events.

        Reconnects with exponential backoff until ``close()`` is called.
        """
        self.running = True
        reconnect_delay = 5

        while self.running:
            try:
                session = await self._get_session()
                logger.info("websocket_connecting", url=self.gateway_url)
                async with session.ws_connect(self.gateway_url, heartbeat=30) as ws:
                    logger.info("websocket_connected")
                    reconnect_delay = 5
                    async for msg in ws:
                        if msg.type == aiohttp.WSMsgType.TEXT:
                            try:
                                yield GatewayEvent.from_payload(json.loads(msg.data))
                            except (json.JSONDecodeError, ValueError) as e:
                                logger.warning(
                                    "invalid_event_payload",
                                    error=str(e), data=msg.data[:100],
                                )
                        elif msg.type == aiohttp.WSMsgType.ERROR:
                            logger.error("websocket_error", error=str(ws.exception()))
                            break
                        elif msg.type == aiohttp.WSMsgType.CLOSED:
                            logger.info("websocket_closed")
                            break
            except asyncio.CancelledError:
                raise
            except aiohttp.ClientError as e:
                logger.error("websocket_exception", error=str(e))
            if self.running:
                await asyncio.sleep(reconnect_delay)
                reconnect_delay = min(reconnect_delay * 2, self.MAX_RECONNECT_DELAY)
