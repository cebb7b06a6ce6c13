"""ChatSessionClient — one live conversation with the trading agent.

Lifecycle of a turn::

    idle ──send()──▶ thinking ──first chunk──▶ streaming
      ▲                 │  ▲                      │
      │                 │  └──── broadcast ───────┘
      └── debounce (3s after last broadcast, no chunks since)
          or stream stale (30s without chunks)
          or turn timeout (60s after send)

The agent has no "turn complete" event and may broadcast several final
messages per turn (multi-step tool use), so completion is inferred from
timers. ``finish()`` is the only way back to idle.

Key contract:
- Single-flight: send() while a turn is open is dropped, not queued
- Every timer is cancelled on finish, on supersession, and on aclose()
- Stream text goes to the injected OutputSink, never into ``messages``
"""
from __future__ import annotations

import asyncio
import uuid
from typing import Any, Callable

import httpx
import structlog

from flash_chat.chat.api import MessagingAPI, MessagingAPIError
from flash_chat.chat.models import Message, Phase, Role, Session
from flash_chat.chat.sink import NullSink, OutputSink
from flash_chat.chat.transport import (
    EVENT_BROADCAST,
    EVENT_CONNECT,
    EVENT_DISCONNECT,
    EVENT_STREAM_CHUNK,
    ROOM_JOINING,
    ChannelTransport,
    SocketIOTransport,
    TransportError,
)

log = structlog.get_logger()

Listener = Callable[["ChatSessionClient"], None]


class _Timer:
    """One-shot timer slot on the running loop. Re-arming replaces the pending shot."""

    def __init__(self, name: str, delay: float, callback: Callable[[str], None]):
        self.name = name
        self.delay = delay
        self._callback = callback
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def arm(self) -> None:
        self.cancel()
        self._handle = asyncio.get_running_loop().call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._callback(self.name)


class ChatSessionClient:
    """Owns the session, the socket handlers, the phase and the message list.

    Usage::

        async with ChatSessionClient(sink=my_sink) as chat:
            chat.add_listener(lambda c: redraw(c.messages, c.phase))
            await chat.send("Find me arbitrage opportunities")
    """

    def __init__(
        self,
        api: MessagingAPI | None = None,
        transport: ChannelTransport | None = None,
        sink: OutputSink | None = None,
        settings=None,
        user_id: str | None = None,
    ):
        from config.settings import get_settings
        self.settings = settings or get_settings()
        self.api = api or MessagingAPI(self.settings)
        self.transport = transport or SocketIOTransport(self.settings)
        self.sink = sink or NullSink()
        self.user_id = user_id or str(uuid.uuid4())

        self.agent_name: str = self.settings.default_agent_name
        self.session: Session | None = None
        self.messages: list[Message] = []
        self.phase: Phase = Phase.IDLE
        self.connected: bool = False

        self._message_ids: set[str] = set()
        self._stream_buf = ""
        self._busy = False
        self._closed = False
        self._turn = 0
        self._handlers_bound = False
        self._listeners: list[Listener] = []

        self._done_timer = _Timer("debounce", self.settings.done_debounce_sec, self._on_timer)
        self._stream_timer = _Timer("stream_stale", self.settings.stream_stale_sec, self._on_timer)
        self._turn_timer = _Timer("turn_timeout", self.settings.turn_timeout_sec, self._on_timer)

    async def __aenter__(self) -> ChatSessionClient:
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ==================== Observable state ====================

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def stream_text(self) -> str:
        return self._stream_buf

    @property
    def closed(self) -> bool:
        return self._closed

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Call *listener(client)* after every phase change and message append.

        Returns a function that removes the listener.
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as exc:
                log.error("chat.listener_error", error=str(exc))

    def _set_phase(self, phase: Phase) -> None:
        if phase == self.phase:
            return
        log.debug("chat.phase", old=self.phase.value, new=phase.value)
        self.phase = phase
        self._notify()

    def _append(self, message: Message) -> bool:
        if message.id in self._message_ids:
            return False
        self._message_ids.add(message.id)
        self.messages.append(message)
        self._notify()
        return True

    def _clear_stream(self) -> None:
        if self._stream_buf:
            self._stream_buf = ""
            self.sink.write("")

    # ==================== Setup / teardown ====================

    async def start(self) -> bool:
        """Discover the agent, create a session, open the socket.

        Failures are logged and leave the client disconnected; there is no
        retry. Returns True when a session exists afterwards.
        """
        if self._closed:
            return False
        if self.session is not None:
            return True

        try:
            agent = await self.api.first_agent()
            if self._closed:
                return False
            self.agent_name = agent.get("name") or self.agent_name

            session = await self.api.create_session(agent["id"], self.user_id)
            if self._closed:
                return False
            self.session = session
            log.info("chat.session_ready", agent=self.agent_name,
                     session_id=session.session_id, channel_id=session.channel_id)
        except (httpx.HTTPError, MessagingAPIError, ValueError) as exc:
            log.warning("chat.setup_failed", stage="session", error=str(exc))
            return False

        self._bind_handlers()
        try:
            await self.transport.connect(self.settings.socket_url, auth={"entityId": self.user_id})
        except TransportError as exc:
            log.warning("chat.setup_failed", stage="socket", error=str(exc))
        return True

    def _bind_handlers(self) -> None:
        # Once per client; socket reconnects reuse the same handlers
        if self._handlers_bound:
            return
        self.transport.on(EVENT_CONNECT, self._on_connect)
        self.transport.on(EVENT_DISCONNECT, self._on_disconnect)
        self.transport.on(EVENT_STREAM_CHUNK, self._on_stream_chunk)
        self.transport.on(EVENT_BROADCAST, self._on_broadcast)
        self._handlers_bound = True

    async def aclose(self) -> None:
        """Cancel every timer and close the socket. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        self._cancel_timers()
        self._busy = False
        self._stream_buf = ""
        try:
            await self.transport.disconnect()
        except TransportError as exc:
            log.warning("chat.disconnect_failed", error=str(exc))
        self.connected = False
        self.session = None
        self._listeners.clear()
        log.info("chat.closed")

    # ==================== Sending ====================

    async def send(self, text: str) -> bool:
        """Start a turn with *text*. Returns True when the message was posted.

        No-op without a session; dropped while a turn is open. A failed POST
        ends the turn immediately.
        """
        if not text or not text.strip():
            return False
        if self.session is None or self._closed:
            log.debug("chat.send_ignored", reason="no_session")
            return False
        if self._busy:
            log.info("chat.send_dropped", reason="busy")
            return False

        self._busy = True
        self._turn += 1
        turn = self._turn
        session_id = self.session.session_id
        self._append(Message(role=Role.USER, text=text))
        self._set_phase(Phase.THINKING)
        self._clear_stream()
        self._turn_timer.arm()
        log.info("chat.send", session_id=session_id, chars=len(text))

        try:
            await self.api.post_message(session_id, text)
        except (httpx.HTTPError, MessagingAPIError) as exc:
            log.warning("chat.send_failed", error=str(exc))
            # Only end the turn this send started
            if turn == self._turn:
                self.finish("send_failed")
            return False
        return True

    # ==================== Socket events ====================

    async def _on_connect(self) -> None:
        if self._closed or self.session is None:
            return
        self.connected = True
        await self.transport.emit(ROOM_JOINING, {
            "channelId": self.session.channel_id,
            "entityId": self.user_id,
            "messageServerId": self.settings.message_server_id,
        })
        log.info("chat.channel_joined", channel_id=self.session.channel_id)
        self._notify()

    async def _on_disconnect(self, *args: Any) -> None:
        if self._closed:
            return
        self.connected = False
        log.info("chat.socket_disconnected")
        self._notify()

    async def _on_stream_chunk(self, data: Any) -> None:
        if self._closed or not isinstance(data, dict):
            return
        chunk = data.get("chunk")
        if not chunk or not data.get("messageId"):
            return

        self._done_timer.cancel()
        if not self._stream_buf:
            self._set_phase(Phase.STREAMING)
        self._stream_buf += chunk
        self.sink.write(self._stream_buf)
        self._stream_timer.arm()

    async def _on_broadcast(self, data: Any) -> None:
        if self._closed or not isinstance(data, dict):
            return
        text = _broadcast_text(data)
        if not text:
            return

        self._stream_timer.cancel()
        self._clear_stream()
        # More broadcasts may follow for the same turn; idle waits for the debounce
        self._set_phase(Phase.THINKING)
        msg_id = str(data.get("id") or uuid.uuid4())
        if not self._append(Message(id=msg_id, role=Role.ASSISTANT, text=text)):
            log.debug("chat.broadcast_duplicate", message_id=msg_id)
        self._done_timer.arm()

    # ==================== Completion ====================

    def _on_timer(self, name: str) -> None:
        if self._closed:
            return
        self.finish(name)

    def finish(self, reason: str = "manual") -> None:
        """End the current turn: clear busy, buffer and timers, go idle."""
        self._busy = False
        self._turn += 1
        self._cancel_timers()
        self._clear_stream()
        log.info("chat.turn_finished", reason=reason, messages=len(self.messages))
        self._set_phase(Phase.IDLE)

    def _cancel_timers(self) -> None:
        self._done_timer.cancel()
        self._stream_timer.cancel()
        self._turn_timer.cancel()

    @property
    def pending_timers(self) -> list[str]:
        timers = (self._done_timer, self._stream_timer, self._turn_timer)
        return [t.name for t in timers if t.pending]


def _broadcast_text(data: dict[str, Any]) -> str:
    text = data.get("text") or data.get("content") or ""
    if isinstance(text, dict):
        text = text.get("text") or ""
    return text if isinstance(text, str) else ""
