"""Per-kind field extractors for parsed agent blocks.

Each extractor takes a block's raw text and returns structured fields, or
``None`` when the expected structure is absent. ``None`` means "show the raw
text instead"; callers never see a partial result.

Extractors are pure and never raise on any input.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

# ---------------------------------------------------------------------------
# Shared glyphs and helpers
# ---------------------------------------------------------------------------

COLUMN_SEPARATORS = ("│", "|")
ARROW_GLYPHS = ("→", "➜")
CHECKMARK_GLYPHS = ("✓", "✔", "✅")

_SEPARATOR_CELL_RE = re.compile(r"^[-─━═┼┿╋+:|│\s]+$")
_LEADING_NUMBER_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)")
_BULLET_RUN_RE = re.compile(r"^[\s•●○▪▸▹►▶→➜>–—\-*]+")


def parse_number(value: str) -> Optional[float]:
    """Leading-number parse: ``"+13.2% edge"`` → 13.2, ``"n/a"`` → None.

    Currency signs, percent signs and thousands separators are dropped first.
    """
    if not value:
        return None
    cleaned = value.strip().replace(",", "")
    for glyph in ("$", "¢", "%"):
        cleaned = cleaned.replace(glyph, "")
    match = _LEADING_NUMBER_RE.match(cleaned.strip())
    if not match:
        return None
    try:
        return float(match.group(0))
    except ValueError:
        return None


def to_percent(value: float) -> float:
    """Fraction-or-percent scale rule: ``<= 1`` is a fraction, else already %.

    Ambiguous at exactly 1: "1" and "1%" both read as 100.
    """
    return value * 100 if abs(value) <= 1 else value


def _split_lines(raw: str) -> list[str]:
    return (raw or "").split("\n")


# ---------------------------------------------------------------------------
# Market table
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MarketRow:
    platform: str
    market: str
    yes_price: str
    probability_percent: float
    liquidity: str


def _split_cells(line: str) -> list[str]:
    normalized = line.replace("|", "│")
    return [cell.strip() for cell in normalized.split("│") if cell.strip()]


def extract_market_rows(raw: str) -> Optional[list[MarketRow]]:
    rows: list[MarketRow] = []
    for line in _split_lines(raw):
        if not line.strip() or not any(sep in line for sep in COLUMN_SEPARATORS):
            continue
        cells = _split_cells(line)
        if all(_SEPARATOR_CELL_RE.match(cell) for cell in cells):
            continue
        if any(cell.lower() in ("platform", "market") for cell in cells):
            continue
        if len(cells) < 3:
            continue

        probability = parse_number(cells[2])
        rows.append(MarketRow(
            platform=cells[0],
            market=cells[1],
            yes_price=cells[2],
            probability_percent=to_percent(probability) if probability is not None else 0.0,
            liquidity=cells[3] if len(cells) > 3 else cells[2],
        ))
    return rows or None


# ---------------------------------------------------------------------------
# Research findings
# ---------------------------------------------------------------------------

@dataclass
class ResearchColumns:
    supporting: list[str] = field(default_factory=list)
    contradicting: list[str] = field(default_factory=list)
    lead_text: list[str] = field(default_factory=list)


def _research_header(lower: str) -> Optional[str]:
    """Return the bucket a header line switches to, or None for content."""
    if not any(marker in lower for marker in (":", "evidence", "factor")):
        return None
    if "supporting" in lower:
        return "supporting"
    if "contradicting" in lower or "opposing" in lower:
        return "contradicting"
    return None


def strip_bullet(line: str) -> str:
    return _BULLET_RUN_RE.sub("", line).strip()


def extract_research(raw: str) -> Optional[ResearchColumns]:
    columns = ResearchColumns()
    cursor = "none"

    for line in _split_lines(raw):
        header = _research_header(line.strip().lower())
        if header:
            cursor = header
            continue

        cleaned = strip_bullet(line)
        if not cleaned:
            continue
        if cursor == "supporting":
            columns.supporting.append(cleaned)
        elif cursor == "contradicting":
            columns.contradicting.append(cleaned)
        else:
            columns.lead_text.append(cleaned)

    if not columns.supporting and not columns.contradicting:
        return None
    return columns


# ---------------------------------------------------------------------------
# Statistical evaluation (edge card)
# ---------------------------------------------------------------------------

EDGE_ALIASES: dict[str, str] = {
    "model probability": "model_probability",
    "model prob": "model_probability",
    "estimated probability": "model_probability",
    "market probability": "market_probability",
    "market prob": "market_probability",
    "market price": "market_probability",
    "current price": "market_probability",
    "edge": "edge_percent",
    "edge detected": "edge_percent",
    "expected edge": "edge_percent",
    "expected value": "expected_value",
    "ev": "expected_value",
    "expected profit": "expected_value",
    "confidence": "confidence",
    "confidence level": "confidence",
    "risk": "risk",
    "risk score": "risk",
    "risk level": "risk",
}

_KV_RE = re.compile(r"^[\s│|]*([A-Za-z ]+?)\s*:\s*(.+)$")


@dataclass
class EdgeStats:
    model_probability: Optional[float] = None
    market_probability: Optional[float] = None
    edge_percent: Optional[float] = None
    expected_value: Optional[str] = None
    confidence: Optional[str] = None
    risk: Optional[str] = None
    extra_lines: list[str] = field(default_factory=list)

    @property
    def has_visualization(self) -> bool:
        probs = (self.model_probability, self.market_probability)
        return any(p is not None and p > 0 for p in probs) or bool(self.edge_percent)

    @property
    def edge_tone(self) -> Optional[str]:
        if not self.edge_percent:
            return None
        return "positive" if self.edge_percent > 0 else "negative"

    @property
    def confidence_tier(self) -> Optional[str]:
        if not self.confidence:
            return None
        lower = self.confidence.lower()
        if "high" in lower:
            return "high"
        if "medium" in lower or "moderate" in lower:
            return "medium"
        return "low"

    @property
    def has_fields(self) -> bool:
        return any(
            value is not None
            for value in (
                self.model_probability, self.market_probability, self.edge_percent,
                self.expected_value, self.confidence, self.risk,
            )
        )


def extract_edge_stats(raw: str) -> Optional[EdgeStats]:
    stats = EdgeStats()
    for line in _split_lines(raw):
        if not line.strip():
            continue
        match = _KV_RE.match(line)
        target = EDGE_ALIASES.get(match.group(1).strip().lower()) if match else None
        if not target:
            stats.extra_lines.append(line.strip())
            continue

        value = match.group(2).strip()
        if target in ("model_probability", "market_probability"):
            number = parse_number(value)
            setattr(stats, target, to_percent(number) if number is not None else None)
        elif target == "edge_percent":
            stats.edge_percent = parse_number(value)
        else:
            setattr(stats, target, value)

    return stats if stats.has_fields else None


# ---------------------------------------------------------------------------
# Recommendation options
# ---------------------------------------------------------------------------

OPTION_RE = re.compile(r"^\s*(\d+)[.)]\s*(.+?)(?:\s*[—–:\-]\s*(.+))?$")


@dataclass(frozen=True)
class RecommendationOption:
    num: str
    label: str
    description: str = ""

    @property
    def action_text(self) -> str:
        """Follow-up message a renderer sends when the option is picked."""
        return f"Execute option {self.num}"


@dataclass
class RecommendationOptions:
    lead_lines: list[str] = field(default_factory=list)
    options: list[RecommendationOption] = field(default_factory=list)


def extract_recommendation(raw: str) -> Optional[RecommendationOptions]:
    result = RecommendationOptions()
    for line in _split_lines(raw):
        if not line.strip():
            continue
        match = OPTION_RE.match(line)
        if match:
            result.options.append(RecommendationOption(
                num=match.group(1),
                label=match.group(2).strip(),
                description=(match.group(3) or "").strip(),
            ))
        else:
            result.lead_lines.append(line.strip())

    if not result.lead_lines and not result.options:
        return None
    return result


# ---------------------------------------------------------------------------
# Arbitrage scan
# ---------------------------------------------------------------------------

_OPPORTUNITY_RE = re.compile(r"Opportunity\s*#?(\d+)", re.IGNORECASE)
_PROFIT_RE = re.compile(r"(\d+(\.\d+)?%|\$[\d,.]+)")


@dataclass
class ArbOpportunity:
    title: str
    legs: list[str] = field(default_factory=list)
    profit: str = ""
    summary_lines: list[str] = field(default_factory=list)


@dataclass
class ArbScan:
    opportunities: list[ArbOpportunity] = field(default_factory=list)
    summary_lines: list[str] = field(default_factory=list)


def extract_arb_scan(raw: str) -> Optional[ArbScan]:
    scan = ArbScan()
    current: Optional[ArbOpportunity] = None

    for line in _split_lines(raw):
        opp = _OPPORTUNITY_RE.search(line)
        if opp:
            current = ArbOpportunity(title=f"Opportunity #{opp.group(1)}")
            scan.opportunities.append(current)
            continue

        text = line.strip()
        if not text:
            continue
        if current is None:
            scan.summary_lines.append(text)
        elif any(arrow in line for arrow in ARROW_GLYPHS):
            current.legs.append(text)
        elif "profit" in text.lower() or "return" in text.lower():
            profit = _PROFIT_RE.search(text)
            current.profit = profit.group(1) if profit else text
            current.summary_lines.append(text)
        else:
            current.summary_lines.append(text)

    return scan if scan.opportunities else None


# ---------------------------------------------------------------------------
# Arb alert banner and trade confirmation
# ---------------------------------------------------------------------------

ALERT_MARKERS = ("⚡ ARB ALERT", "⚡ ARBITRAGE", "!! ARB")

_ALERT_MARKER_RE = re.compile(r"(?:⚡\s*(?:ARB ALERT|ARBITRAGE)|!!\s*ARB)[:!]?\s*", re.IGNORECASE)
_ALERT_PROFIT_RE = re.compile(r"(\d+(?:\.\d+)?%|\$[\d,.]+\s*profit)", re.IGNORECASE)
_CHECKMARK_RE = re.compile("[" + "".join(CHECKMARK_GLYPHS) + r"]\s*")


@dataclass(frozen=True)
class ArbAlert:
    description: str
    profit: str = ""


def extract_arb_alert(raw: str) -> Optional[ArbAlert]:
    parts = [_ALERT_MARKER_RE.sub("", line).strip() for line in _split_lines(raw)]
    description = " ".join(p for p in parts if p)
    if not description:
        return None
    profit = _ALERT_PROFIT_RE.search(raw)
    return ArbAlert(description=description, profit=profit.group(1) if profit else "")


def strip_checkmark(line: str) -> str:
    return _CHECKMARK_RE.sub("", line, count=1).strip()


def extract_trade_confirmations(raw: str) -> Optional[list[str]]:
    lines = [strip_checkmark(line) for line in _split_lines(raw) if line.strip()]
    lines = [line for line in lines if line]
    return lines or None
