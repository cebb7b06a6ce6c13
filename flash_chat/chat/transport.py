"""Duplex channel to the agent runtime.

ChannelTransport is the seam the session client talks through; the
production implementation wraps a python-socketio AsyncClient. Tests swap in
a fake that records emits and lets them fire events by hand.
"""
from typing import Any, Awaitable, Callable, Protocol

import socketio
import structlog
from socketio.exceptions import ConnectionError as SocketConnectionError

log = structlog.get_logger()


class TransportError(RuntimeError):
    """The channel could not be opened."""


# Socket message types understood by the agent runtime
ROOM_JOINING = "1"

EVENT_CONNECT = "connect"
EVENT_DISCONNECT = "disconnect"
EVENT_STREAM_CHUNK = "messageStreamChunk"
EVENT_BROADCAST = "messageBroadcast"

Handler = Callable[..., Awaitable[None] | None]


class ChannelTransport(Protocol):
    def on(self, event: str, handler: Handler) -> None: ...

    async def connect(self, url: str, auth: dict[str, Any]) -> None: ...

    async def emit(self, event: str, payload: dict[str, Any]) -> None: ...

    async def disconnect(self) -> None: ...


class SocketIOTransport:
    """python-socketio client with automatic reconnection.

    Handlers are stored per event name, so registering the same event twice
    replaces the earlier handler instead of adding a second one.
    """

    def __init__(self, settings=None, client: socketio.AsyncClient | None = None):
        from config.settings import get_settings
        self.settings = settings or get_settings()
        self._sio = client or socketio.AsyncClient(reconnection=True, logger=False)

    def on(self, event: str, handler: Handler) -> None:
        self._sio.on(event, handler)

    async def connect(self, url: str, auth: dict[str, Any]) -> None:
        log.info("transport.connecting", url=url)
        try:
            await self._sio.connect(
                url,
                auth=auth,
                transports=list(self.settings.socket_transports),
            )
        except SocketConnectionError as exc:
            raise TransportError(f"Socket connection to {url} failed: {exc}") from exc

    async def emit(self, event: str, payload: dict[str, Any]) -> None:
        await self._sio.emit(event, payload)

    async def disconnect(self) -> None:
        # Also aborts a pending reconnection loop
        await self._sio.disconnect()
        log.info("transport.disconnected")
