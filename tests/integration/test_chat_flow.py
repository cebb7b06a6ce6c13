"""End-to-end flow: REST setup → socket events → parsed views.

Validates the full path a console or UI takes:
  MessagingAPI (httpx.MockTransport) → ChatSessionClient → broadcast
  → BlockCache → build_views

The socket side is a recording fake; no server is needed.
"""
import asyncio
import json

import httpx
import pytest

from config.settings import Settings
from flash_chat.chat.api import MessagingAPI
from flash_chat.chat.client import ChatSessionClient
from flash_chat.chat.models import Phase, Role
from flash_chat.chat.sink import BufferSink
from flash_chat.chat.transport import (
    EVENT_BROADCAST,
    EVENT_CONNECT,
    EVENT_STREAM_CHUNK,
    ROOM_JOINING,
)
from flash_chat.parser.blocks import BlockKind
from flash_chat.parser.pipeline import BlockCache
from flash_chat.render.views import build_views

SETTINGS = Settings(
    api_base_url="http://gateway.test/api",
    done_debounce_sec=0.05,
    stream_stale_sec=0.2,
    turn_timeout_sec=0.5,
)

AGENT_REPLY = """\
═══ ACTIVE PREDICTION MARKETS ═══
Platform  │ Market              │ YES   │ Liquidity
Opinion   │ BTC above $95k      │ $0.58 │ $12.4k

═══ STATISTICAL EVALUATION ═══
Model Probability: 71%
Market Price: $0.58
Edge: +13%

═══ RECOMMENDATION ═══
  >> BUY YES on Opinion at $0.58 (+13% edge)
  !! ARB: spread $0.04 — buy YES + NO
  1. Directional
  2. Arb + Directional"""


class RecordingSocket:
    def __init__(self):
        self.handlers = {}
        self.emits = []

    def on(self, event, handler):
        self.handlers[event] = handler

    async def connect(self, url, auth):
        pass

    async def emit(self, event, payload):
        self.emits.append((event, payload))

    async def disconnect(self):
        pass

    async def fire(self, event, *args):
        await self.handlers[event](*args)


class Gateway:
    """Minimal agent gateway: one agent, one session, records posted messages."""

    def __init__(self):
        self.posted = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if request.method == "GET" and path == "/api/agents":
            return httpx.Response(200, json={"data": {"agents": [{"id": "agent-1", "name": "Eyebalz"}]}})
        if request.method == "POST" and path == "/api/messaging/sessions":
            return httpx.Response(201, json={"sessionId": "sess-1", "channelId": "chan-1"})
        if request.method == "POST" and path == "/api/messaging/sessions/sess-1/messages":
            self.posted.append(json.loads(request.content)["content"])
            return httpx.Response(200, json={"success": True})
        return httpx.Response(404)


# ─────────────────────── Fixtures ─────────────────────────────────────────────


@pytest.fixture
def gateway():
    return Gateway()


@pytest.fixture
def socket():
    return RecordingSocket()


def _client(gateway, socket, sink=None) -> ChatSessionClient:
    api = MessagingAPI(SETTINGS, transport=httpx.MockTransport(gateway))
    return ChatSessionClient(api=api, transport=socket, sink=sink, settings=SETTINGS, user_id="user-1")


# ─────────────────────── Full turn ────────────────────────────────────────────


@pytest.mark.asyncio
async def test_full_turn_renders_structured_blocks(gateway, socket):
    sink = BufferSink()
    cache = BlockCache(settings=SETTINGS)

    async with _client(gateway, socket, sink) as chat:
        await socket.fire(EVENT_CONNECT)
        assert socket.emits[0][0] == ROOM_JOINING
        assert socket.emits[0][1]["channelId"] == "chan-1"

        assert await chat.send("Should I buy BTC > $95k?")
        assert gateway.posted == ["Should I buy BTC > $95k?"]

        for piece in ("Looking at ", "Opinion..."):
            await socket.fire(EVENT_STREAM_CHUNK, {"messageId": "m-1", "chunk": piece})
        assert chat.phase == Phase.STREAMING
        assert sink.text == "Looking at Opinion..."

        await socket.fire(EVENT_BROADCAST, {"id": "m-1", "text": AGENT_REPLY})
        await asyncio.sleep(SETTINGS.done_debounce_sec * 3)
        assert chat.phase == Phase.IDLE
        assert sink.text == ""

        reply = [m for m in chat.messages if m.role == Role.ASSISTANT][-1]
        views = build_views(cache.get_or_parse(reply.text))

    assert [v.kind for v in views] == [
        BlockKind.MARKET_TABLE,
        BlockKind.EDGE,
        BlockKind.RECOMMENDATION,
        BlockKind.ARB_ALERT,
    ]
    market, edge, rec, alert = views
    assert market.fields[0].probability_percent == pytest.approx(58.0)
    assert edge.fields.edge_percent == 13.0
    assert edge.fields.edge_tone == "positive"
    assert [o.action_text for o in rec.fields.options] == ["Execute option 1", "Execute option 2"]
    assert alert.fields.description == "spread $0.04 — buy YES + NO"


@pytest.mark.asyncio
async def test_option_pick_becomes_next_message(gateway, socket):
    cache = BlockCache(settings=SETTINGS)

    async with _client(gateway, socket) as chat:
        await chat.send("Analyse BTC")
        await socket.fire(EVENT_BROADCAST, {"id": "m-1", "text": AGENT_REPLY})
        await asyncio.sleep(SETTINGS.done_debounce_sec * 3)

        views = build_views(cache.get_or_parse(chat.messages[-1].text))
        rec = next(v for v in views if v.kind == BlockKind.RECOMMENDATION)
        assert await chat.send(rec.fields.options[1].action_text)

    assert gateway.posted == ["Analyse BTC", "Execute option 2"]


@pytest.mark.asyncio
async def test_plain_reply_renders_as_text(gateway, socket):
    async with _client(gateway, socket) as chat:
        await chat.send("hi")
        await socket.fire(EVENT_BROADCAST, {"id": "m-1", "text": "Hello! Ask me about markets."})
        views = build_views(BlockCache(maxsize=4).get_or_parse(chat.messages[-1].text))

    assert len(views) == 1
    assert views[0].kind == BlockKind.TEXT
    assert views[0].raw == "Hello! Ask me about markets."
