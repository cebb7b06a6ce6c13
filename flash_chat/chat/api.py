"""MessagingAPI — async REST calls to the agent gateway (httpx).

Endpoints (relative to ``settings.api_base_url``)::

    GET  /agents                               → {"data": {"agents": [...]}} or {"agents": [...]}
    POST /messaging/sessions                   {agentId, userId} → {sessionId, channelId}
    POST /messaging/sessions/{id}/messages     {content} → ack only; reply arrives on the socket
"""
from typing import Any

import httpx
import structlog

from flash_chat.chat.models import Session

log = structlog.get_logger()


class MessagingAPIError(RuntimeError):
    """The gateway answered, but not with something usable."""


class MessagingAPI:
    def __init__(self, settings=None, transport: httpx.AsyncBaseTransport | None = None):
        from config.settings import get_settings
        self.settings = settings or get_settings()
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.settings.api_base_url.rstrip("/"),
            timeout=self.settings.http_timeout_sec,
            transport=self._transport,
        )

    async def list_agents(self) -> list[dict[str, Any]]:
        async with self._client() as client:
            resp = await client.get("/agents")
            resp.raise_for_status()
            data = resp.json()

        if not isinstance(data, dict):
            raise MessagingAPIError("Unexpected /agents payload")
        nested = data.get("data")
        agents = (nested.get("agents") if isinstance(nested, dict) else None) or data.get("agents") or []
        if not isinstance(agents, list):
            raise MessagingAPIError("Unexpected /agents payload")
        log.debug("api.agents_listed", count=len(agents))
        return agents

    async def first_agent(self) -> dict[str, Any]:
        agents = await self.list_agents()
        if not agents:
            raise MessagingAPIError("No agents are running")
        agent = agents[0]
        if not isinstance(agent, dict) or not agent.get("id"):
            raise MessagingAPIError("Agent entry has no id")
        return agent

    async def create_session(self, agent_id: str, user_id: str) -> Session:
        async with self._client() as client:
            resp = await client.post(
                "/messaging/sessions", json={"agentId": agent_id, "userId": user_id}
            )
            resp.raise_for_status()
            data = resp.json()

        session_id = data.get("sessionId") if isinstance(data, dict) else None
        channel_id = data.get("channelId") if isinstance(data, dict) else None
        if not session_id or not channel_id:
            raise MessagingAPIError("Session response is missing sessionId or channelId")

        log.info("api.session_created", session_id=session_id, channel_id=channel_id)
        return Session(session_id=session_id, channel_id=channel_id)

    async def post_message(self, session_id: str, content: str) -> None:
        """Fire-and-forget send. Only transport/HTTP failures surface here."""
        async with self._client() as client:
            resp = await client.post(
                f"/messaging/sessions/{session_id}/messages", json={"content": content}
            )
            resp.raise_for_status()
        log.debug("api.message_posted", session_id=session_id, chars=len(content))
