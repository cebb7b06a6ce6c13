"""Unit tests for section splitting and classification."""
import pytest

from flash_chat.parser.blocks import (
    SECTION_MAP,
    BlockKind,
    ParsedBlock,
    classify_section,
    classify_sections,
    split_sections,
)


# ---------------------------------------------------------------------------
# split_sections
# ---------------------------------------------------------------------------

def test_no_headers_yields_single_untitled_section():
    text = "BTC is trading at $97k.\nNo markets match."
    assert split_sections(text) == [("", text)]


def test_leading_text_becomes_untitled_section():
    text = "Here is the scan:\n═══ ARBITRAGE SCAN ═══\nOpportunity #1"
    sections = split_sections(text)
    assert [name for name, _ in sections] == ["", "ARBITRAGE SCAN"]
    assert sections[0][1].strip() == "Here is the scan:"
    assert sections[1][1].strip() == "Opportunity #1"


def test_blank_leading_text_is_dropped():
    text = "\n\n═══ RECOMMENDATION ═══\nBuy YES"
    assert [name for name, _ in split_sections(text)] == ["RECOMMENDATION"]


def test_sections_keep_appearance_order():
    text = (
        "═══ MARKET ANALYSIS ═══\nrows\n"
        "═══ RESEARCH FINDINGS ═══\nfindings\n"
        "═══ RECOMMENDATION ═══\nbuy"
    )
    names = [name for name, _ in split_sections(text)]
    assert names == ["MARKET ANALYSIS", "RESEARCH FINDINGS", "RECOMMENDATION"]


def test_alternative_border_characters():
    text = "=== RECOMMENDATION ===\nBuy YES\n--- RESEARCH FINDINGS ---\nSupporting: x"
    names = [name for name, _ in split_sections(text)]
    assert names == ["RECOMMENDATION", "RESEARCH FINDINGS"]


def test_mismatched_borders_are_not_headers():
    text = "═══ RECOMMENDATION ===\nBuy YES"
    assert split_sections(text) == [("", text)]


def test_two_border_characters_are_not_a_header():
    text = "══ RECOMMENDATION ══\nBuy YES"
    assert split_sections(text) == [("", text)]


def test_header_names_are_trimmed():
    text = "═══   STATISTICAL EVALUATION   ═══\nEdge: +4%"
    assert split_sections(text)[0][0] == "STATISTICAL EVALUATION"


# ---------------------------------------------------------------------------
# classify_section
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("name,kind", [
    ("MARKET ANALYSIS", BlockKind.MARKET_TABLE),
    ("ACTIVE PREDICTION MARKETS", BlockKind.MARKET_TABLE),
    ("RESEARCH FINDINGS", BlockKind.RESEARCH),
    ("STATISTICAL EVALUATION", BlockKind.EDGE),
    ("RECOMMENDATION", BlockKind.RECOMMENDATION),
    ("ARBITRAGE SCAN", BlockKind.ARB_SCAN),
])
def test_known_titles_map_to_kinds(name, kind):
    assert classify_section(name, "body").kind == kind


def test_unknown_and_blank_names_are_text():
    assert classify_section("YIELD ROTATION", "x").kind == BlockKind.TEXT
    assert classify_section("", "x").kind == BlockKind.TEXT


def test_classification_is_case_sensitive():
    assert classify_section("Recommendation", "x").kind == BlockKind.TEXT


def test_classify_trims_raw_and_keeps_title():
    block = classify_section("RECOMMENDATION", "\n  Buy YES  \n\n")
    assert block == ParsedBlock(kind=BlockKind.RECOMMENDATION, title="RECOMMENDATION", raw="Buy YES")


def test_section_map_is_not_extended_with_derived_kinds():
    assert BlockKind.ARB_ALERT not in SECTION_MAP.values()
    assert BlockKind.TRADE_CONFIRM not in SECTION_MAP.values()


def test_parsed_block_is_immutable():
    block = classify_section("", "x")
    with pytest.raises(AttributeError):
        block.raw = "y"


# ---------------------------------------------------------------------------
# classify_sections: fallback idempotence
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("text", [
    "plain answer",
    "  padded answer with  trailing space  \n",
    "Price │ 0.58 │ not a header",
    "══ almost ══",
    "",
])
def test_headerless_text_is_one_text_block(text):
    blocks = classify_sections(text)
    assert len(blocks) == 1
    assert blocks[0].kind == BlockKind.TEXT
    assert blocks[0].title == ""
    assert blocks[0].raw == text.strip()
