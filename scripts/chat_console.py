"""Terminal chat with the trading agent.

Streams chunks to stderr while a reply is being generated, then prints each
final agent message as parsed blocks. Type a number to pick an option from
the last recommendation, or "quit" to exit.

Run: PYTHONPATH=. python scripts/chat_console.py
"""
import asyncio
import sys

import structlog

from config.settings import get_settings
from flash_chat.chat.client import ChatSessionClient
from flash_chat.chat.models import Phase, Role
from flash_chat.parser.blocks import BlockKind
from flash_chat.parser.pipeline import BlockCache
from flash_chat.render.views import build_views, render_text

log = structlog.get_logger()


class TerminalSink:
    """Redraws the in-progress stream on one stderr line."""

    def write(self, text: str) -> None:
        tail = text.replace("\n", " ")[-100:]
        sys.stderr.write("\r\033[K" + tail)
        sys.stderr.flush()


class ConsoleView:
    def __init__(self, cache: BlockCache):
        self._cache = cache
        self._printed = 0
        self.last_options: dict[str, str] = {}

    def __call__(self, chat: ChatSessionClient) -> None:
        for msg in chat.messages[self._printed:]:
            self._printed += 1
            if msg.role != Role.ASSISTANT:
                continue
            sys.stderr.write("\r\033[K")
            print(f"\n{chat.agent_name}:")
            for view in build_views(self._cache.get_or_parse(msg.text)):
                print(render_text(view))
                if view.kind == BlockKind.RECOMMENDATION:
                    self.last_options = {o.num: o.action_text for o in view.fields.options}
        if chat.phase == Phase.IDLE:
            print("", flush=True)


async def main() -> int:
    settings = get_settings()
    chat = ChatSessionClient(sink=TerminalSink(), settings=settings)
    view = ConsoleView(BlockCache(settings=settings))
    chat.add_listener(view)

    if not await chat.start():
        print(f"Could not reach the agent at {settings.api_base_url}", file=sys.stderr)
        await chat.aclose()
        return 1

    log.info("console.ready", agent=chat.agent_name, session_id=chat.session.session_id)
    print(f"Connected to {chat.agent_name}. Type 'quit' to exit.")
    loop = asyncio.get_running_loop()
    try:
        while True:
            line = (await loop.run_in_executor(None, input, "> ")).strip()
            if line.lower() in ("quit", "exit"):
                break
            text = view.last_options.get(line, line)
            if not await chat.send(text) and chat.busy:
                print("(still waiting for the previous reply)")
    except (EOFError, KeyboardInterrupt):
        pass
    finally:
        await chat.aclose()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
