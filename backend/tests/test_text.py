import pytest

from green_scanner.core.text import (
    format_tags,
    is_unknown_score,
    is_valid_image_url,
    normalize_field,
    normalize_score,
    normalize_text,
    score_rank,
)


@pytest.mark.parametrize(
    "tags,expected",
    [
        (["en:plastic-bottle", "fr:verre"], "plastic bottle, verre"),
        (["en:pastas", "  ", "en:"], "pastas"),
        (["organic"], "organic"),
        ([], "Unknown"),
        (None, "Unknown"),
        ("en:pastas", "Unknown"),
        (("de:glas-flasche",), "glas flasche"),
    ],
)
def test_format_tags(tags, expected):
    assert format_tags(tags) == expected


def test_format_tags_custom_fallback():
    assert format_tags([], fallback="None listed") == "None listed"


def test_format_tags_never_empty_and_idempotent():
    once = format_tags(["en:no-palm-oil", "en:", "-"])
    assert once == "no palm oil"
    assert format_tags([once]) == once
    assert format_tags(["-", ""]) == "Unknown"


def test_score_rank_order():
    ranks = [score_rank(s) for s in ["A", "B", "C", "D", "E", "?"]]
    assert ranks == sorted(ranks)
    assert ranks == [1, 2, 3, 4, 5, 6]
    assert score_rank("a") == 1
    assert score_rank("UNKNOWN") == score_rank("?")
    assert score_rank("not-applicable") == 6
    assert score_rank(None) == 6


@pytest.mark.parametrize(
    "raw,expected",
    [("a", "A"), (" e ", "E"), ("C", "C"), ("?", "C"), ("unknown", "C"), ("", "C"), (None, "C"), ("AB", "C")],
)
def test_normalize_score(raw, expected):
    assert normalize_score(raw) == expected
    assert normalize_score(normalize_score(raw)) == expected


def test_normalize_field():
    assert normalize_field("  Barilla ") == "Barilla"
    assert normalize_field("unknown") == "Estimated"
    assert normalize_field("UNKNOWN", "Unknown") == "Unknown"
    assert normalize_field("", "n/a") == "n/a"
    assert normalize_field(None) == "Estimated"
    assert normalize_field(normalize_field(" Pasta ")) == "Pasta"


@pytest.mark.parametrize("value", ["", " ", "?", "unknown", "Unknown", None])
def test_is_unknown_score_true(value):
    assert is_unknown_score(value) is True


@pytest.mark.parametrize("value", ["A", "e", "not-applicable"])
def test_is_unknown_score_false(value):
    assert is_unknown_score(value) is False


def test_is_valid_image_url():
    assert is_valid_image_url("https://images.openfoodfacts.org/x.jpg")
    assert is_valid_image_url("http://example.com/x.png")
    assert is_valid_image_url("data:image/png;base64,AAAA")
    assert not is_valid_image_url("javascript:alert(1)")
    assert not is_valid_image_url("//example.com/x.png")
    assert not is_valid_image_url("")
    assert not is_valid_image_url(None)


def test_normalize_text():
    assert normalize_text("Lay's Classic  (150g)") == "lay s classic 150g"
    assert normalize_text(None) == ""
