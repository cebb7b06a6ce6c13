"""Section splitting and classification for boxed-header agent output.

The agent frames each part of a structured answer with a boxed header::

    ═══ MARKET ANALYSIS ═══
    Platform │ Market │ YES │ Liquidity
    ...
    ═══ RECOMMENDATION ═══
    >> BUY YES on Opinion at $0.58

Text before the first header becomes an untitled section. A message with no
headers at all is a single untitled section.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class BlockKind(str, Enum):
    MARKET_TABLE = "market_table"
    RESEARCH = "research"
    EDGE = "edge"
    RECOMMENDATION = "recommendation"
    ARB_SCAN = "arb_scan"
    ARB_ALERT = "arb_alert"
    TRADE_CONFIRM = "trade_confirm"
    TEXT = "text"


@dataclass(frozen=True)
class ParsedBlock:
    kind: BlockKind
    title: str
    raw: str


SECTION_MAP: dict[str, BlockKind] = {
    "MARKET ANALYSIS": BlockKind.MARKET_TABLE,
    "ACTIVE PREDICTION MARKETS": BlockKind.MARKET_TABLE,
    "RESEARCH FINDINGS": BlockKind.RESEARCH,
    "STATISTICAL EVALUATION": BlockKind.EDGE,
    "RECOMMENDATION": BlockKind.RECOMMENDATION,
    "ARBITRAGE SCAN": BlockKind.ARB_SCAN,
}

# Border run of 3+ identical characters, the name, then a run of the same
# character. Header and name must sit on one line.
SECTION_RE = re.compile(
    r"(?P<border>[═━─=~#*\-])(?P=border){2,}[ \t]+(?P<name>[^\n]+?)[ \t]+(?P=border){3,}"
)


def split_sections(text: str) -> list[tuple[str, str]]:
    """Split *text* into ordered ``(name, content)`` pairs.

    Leading content before the first header is returned with an empty name
    when it has any non-whitespace. Never raises.
    """
    matches = list(SECTION_RE.finditer(text or ""))
    if not matches:
        return [("", text or "")]

    sections: list[tuple[str, str]] = []
    lead = text[: matches[0].start()]
    if lead.strip():
        sections.append(("", lead))

    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        sections.append((match.group("name").strip(), text[match.end():end]))
    return sections


def classify_section(name: str, content: str) -> ParsedBlock:
    """Map a section to a block; unknown or blank names become TEXT."""
    name = (name or "").strip()
    kind = SECTION_MAP.get(name, BlockKind.TEXT)
    return ParsedBlock(kind=kind, title=name, raw=(content or "").strip())


def classify_sections(text: str) -> list[ParsedBlock]:
    return [classify_section(name, content) for name, content in split_sections(text)]
