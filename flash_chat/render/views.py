"""Block → view dispatch with structural fallback.

Every block kind has one extractor. When the extractor finds nothing usable,
the block is shown as a TextView of its raw text. A renderer only ever
handles complete views, so it needs no parse-error path.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

import structlog

from flash_chat.parser.blocks import BlockKind, ParsedBlock
from flash_chat.parser.extractors import (
    ArbAlert,
    ArbScan,
    EdgeStats,
    MarketRow,
    RecommendationOptions,
    ResearchColumns,
    extract_arb_alert,
    extract_arb_scan,
    extract_edge_stats,
    extract_market_rows,
    extract_recommendation,
    extract_research,
    extract_trade_confirmations,
)

log = structlog.get_logger()

DEFAULT_TITLES: dict[BlockKind, str] = {
    BlockKind.MARKET_TABLE: "MARKETS",
    BlockKind.RESEARCH: "RESEARCH FINDINGS",
    BlockKind.EDGE: "STATISTICAL EVALUATION",
    BlockKind.RECOMMENDATION: "RECOMMENDATION",
    BlockKind.ARB_SCAN: "ARBITRAGE SCAN",
    BlockKind.ARB_ALERT: "ARB ALERT",
    BlockKind.TRADE_CONFIRM: "TRADE CONFIRMED",
}

ViewFields = Union[
    list[MarketRow], ResearchColumns, EdgeStats, RecommendationOptions,
    ArbScan, ArbAlert, list[str], None,
]


@dataclass(frozen=True)
class BlockView:
    """What a renderer draws for one block.

    ``kind`` is the block's kind, or TEXT after a fallback. ``fields`` holds
    the extractor result and is None for TEXT views.
    """
    kind: BlockKind
    title: str
    raw: str
    fields: Any = None

    @property
    def is_fallback(self) -> bool:
        return self.kind == BlockKind.TEXT


EXTRACTORS: dict[BlockKind, Callable[[str], Any]] = {
    BlockKind.MARKET_TABLE: extract_market_rows,
    BlockKind.RESEARCH: extract_research,
    BlockKind.EDGE: extract_edge_stats,
    BlockKind.RECOMMENDATION: extract_recommendation,
    BlockKind.ARB_SCAN: extract_arb_scan,
    BlockKind.ARB_ALERT: extract_arb_alert,
    BlockKind.TRADE_CONFIRM: extract_trade_confirmations,
}


def build_view(block: ParsedBlock) -> BlockView:
    extractor = EXTRACTORS.get(block.kind)
    if extractor is None:
        return BlockView(kind=BlockKind.TEXT, title=block.title, raw=block.raw)

    fields: Optional[ViewFields] = extractor(block.raw)
    if fields is None:
        log.debug("parser.fallback", kind=block.kind.value, title=block.title)
        return BlockView(kind=BlockKind.TEXT, title=block.title, raw=block.raw)

    title = block.title or DEFAULT_TITLES.get(block.kind, "")
    return BlockView(kind=block.kind, title=title, raw=block.raw, fields=fields)


def build_views(blocks: list[ParsedBlock]) -> list[BlockView]:
    return [build_view(block) for block in blocks]


# ---------------------------------------------------------------------------
# Plain-text rendering (terminal / logs)
# ---------------------------------------------------------------------------

def render_text(view: BlockView) -> str:
    """Compact plain-text rendering of a view, used by the console client."""
    header = f"[{view.title}]" if view.title else ""
    body: list[str]
    fields = view.fields

    if view.kind == BlockKind.MARKET_TABLE:
        body = [
            f"  {row.platform:<12} {row.market:<40} {row.yes_price:>7} "
            f"{row.probability_percent:5.1f}%  {row.liquidity}"
            for row in fields
        ]
    elif view.kind == BlockKind.RESEARCH:
        body = list(fields.lead_text)
        body += [f"  + {item}" for item in fields.supporting]
        body += [f"  - {item}" for item in fields.contradicting]
    elif view.kind == BlockKind.EDGE:
        body = []
        if fields.has_visualization:
            if fields.model_probability is not None:
                body.append(f"  MODEL {fields.model_probability:.0f}%")
            if fields.market_probability is not None:
                body.append(f"  MKT   {fields.market_probability:.0f}%")
            if fields.edge_percent:
                body.append(f"  EDGE  {fields.edge_percent:+.1f}%")
        if fields.expected_value:
            body.append(f"  EV: {fields.expected_value}")
        if fields.confidence:
            body.append(f"  CONFIDENCE: {fields.confidence} ({fields.confidence_tier})")
        if fields.risk:
            body.append(f"  RISK: {fields.risk}")
        body += [f"  {line}" for line in fields.extra_lines]
    elif view.kind == BlockKind.RECOMMENDATION:
        body = list(fields.lead_lines)
        for opt in fields.options:
            suffix = f" — {opt.description}" if opt.description else ""
            body.append(f"  [{opt.num}] {opt.label}{suffix}")
    elif view.kind == BlockKind.ARB_SCAN:
        body = []
        for opp in fields.opportunities:
            body.append(f"  {opp.title}" + (f"  {opp.profit}" if opp.profit else ""))
            body += [f"    {leg}" for leg in opp.legs]
            body += [f"    {line}" for line in opp.summary_lines]
        body += fields.summary_lines
    elif view.kind == BlockKind.ARB_ALERT:
        body = [f"⚡ {fields.description}" + (f"  ({fields.profit})" if fields.profit else "")]
    elif view.kind == BlockKind.TRADE_CONFIRM:
        body = [f"✓ {line}" for line in fields]
    else:
        body = [view.raw]

    return "\n".join([header, *body] if header else body)
