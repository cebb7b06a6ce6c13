"""Second pass over classified blocks: pull alerts and fills into their own blocks.

Two passes, in order:

1. Arb alerts — only inside RECOMMENDATION blocks. A marker line opens a run;
   the run keeps going over deeper-indented lines, arrow legs and profit
   lines. All runs of one block become a single ARB_ALERT block placed right
   after what is left of the recommendation.
2. Trade confirmations — in every block. Checkmark lines that say filled,
   placed or executed move to a TRADE_CONFIRM block right after the source.

A block whose lines were all moved out is dropped, never emitted empty.
"""
from __future__ import annotations

from dataclasses import replace

from flash_chat.parser.blocks import BlockKind, ParsedBlock
from flash_chat.parser.extractors import (
    ALERT_MARKERS,
    ARROW_GLYPHS,
    CHECKMARK_GLYPHS,
    OPTION_RE,
    strip_checkmark,
)

ARB_ALERT_TITLE = "ARB ALERT"
TRADE_CONFIRM_TITLE = "TRADE CONFIRMED"
TRADE_KEYWORDS = ("filled", "placed", "executed")


def _indent(line: str) -> int:
    return len(line) - len(line.lstrip(" \t"))


def _has_content(lines: list[str]) -> bool:
    return any(line.strip() for line in lines)


def is_alert_opener(line: str) -> bool:
    return any(marker in line for marker in ALERT_MARKERS)


def _continues_alert(line: str, opener_indent: int) -> bool:
    if not line.strip() or OPTION_RE.match(line):
        return False
    return (
        _indent(line) > opener_indent
        or any(arrow in line for arrow in ARROW_GLYPHS)
        or "profit" in line.lower()
    )


def is_trade_confirmation(line: str) -> bool:
    if not any(glyph in line for glyph in CHECKMARK_GLYPHS):
        return False
    lower = line.lower()
    return any(word in lower for word in TRADE_KEYWORDS)


def split_alerts(block: ParsedBlock) -> list[ParsedBlock]:
    if block.kind != BlockKind.RECOMMENDATION:
        return [block]

    kept: list[str] = []
    alert: list[str] = []
    opener_indent: int | None = None

    for line in block.raw.split("\n"):
        if is_alert_opener(line):
            opener_indent = _indent(line)
            alert.append(line)
        elif opener_indent is not None and _continues_alert(line, opener_indent):
            alert.append(line)
        else:
            opener_indent = None
            kept.append(line)

    if not alert:
        return [block]

    result: list[ParsedBlock] = []
    if _has_content(kept):
        result.append(replace(block, raw="\n".join(kept).strip()))
    result.append(ParsedBlock(
        kind=BlockKind.ARB_ALERT,
        title=ARB_ALERT_TITLE,
        raw="\n".join(alert).strip(),
    ))
    return result


def split_trade_confirmations(block: ParsedBlock) -> list[ParsedBlock]:
    main: list[str] = []
    fills: list[str] = []
    for line in block.raw.split("\n"):
        if is_trade_confirmation(line):
            fills.append(strip_checkmark(line))
        else:
            main.append(line)

    result: list[ParsedBlock] = []
    if _has_content(main):
        result.append(replace(block, raw="\n".join(main).strip()) if fills else block)
    if fills:
        result.append(ParsedBlock(
            kind=BlockKind.TRADE_CONFIRM,
            title=TRADE_CONFIRM_TITLE,
            raw="\n".join(fills),
        ))
    return result


def extract_sub_blocks(blocks: list[ParsedBlock]) -> list[ParsedBlock]:
    alerts_split = [piece for block in blocks for piece in split_alerts(block)]
    return [piece for block in alerts_split for piece in split_trade_confirmations(block)]
