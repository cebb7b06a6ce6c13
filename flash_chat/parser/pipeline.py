"""parse_agent_response — raw agent text to an ordered list of ParsedBlocks.

Usage::

    blocks = parse_agent_response(message.text)

    # At a render call site that re-parses on every redraw:
    cache = BlockCache(maxsize=64)
    blocks = cache.get_or_parse(message.text)
"""
from __future__ import annotations

import hashlib
from collections import OrderedDict

import structlog

from flash_chat.parser.blocks import ParsedBlock, classify_sections
from flash_chat.parser.subblocks import extract_sub_blocks

log = structlog.get_logger()


def parse_agent_response(text: str) -> list[ParsedBlock]:
    if not text or not text.strip():
        return []
    blocks = extract_sub_blocks(classify_sections(text))
    log.debug("parser.parsed", blocks=len(blocks), kinds=[b.kind.value for b in blocks])
    return blocks


class BlockCache:
    """Content-addressed LRU memo for parse_agent_response.

    Keys are the sha256 of the message text, so edits to a message's text
    never return stale blocks. The least recently used entry is evicted once
    ``maxsize`` is exceeded.
    """

    def __init__(self, maxsize: int | None = None, settings=None):
        if maxsize is None:
            from config.settings import get_settings
            maxsize = (settings or get_settings()).parse_cache_size
        self.maxsize = max(1, maxsize)
        self._entries: OrderedDict[str, tuple[ParsedBlock, ...]] = OrderedDict()

    @staticmethod
    def key_for(text: str) -> str:
        return hashlib.sha256((text or "").encode("utf-8")).hexdigest()

    def get_or_parse(self, text: str) -> list[ParsedBlock]:
        key = self.key_for(text)
        cached = self._entries.get(key)
        if cached is not None:
            self._entries.move_to_end(key)
            return list(cached)

        blocks = tuple(parse_agent_response(text))
        self._entries[key] = blocks
        while len(self._entries) > self.maxsize:
            self._entries.popitem(last=False)
        return list(blocks)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, text: str) -> bool:
        return self.key_for(text) in self._entries

    def __len__(self) -> int:
        return len(self._entries)
