from __future__ import annotations

from finflow.merchants import MERCHANT_PATTERNS, find_merchant_match, normalize_merchant


def test_starbucks_is_fast_food() -> None:
    match = find_merchant_match("STARBUCKS STORE #123")

    assert match is not None
    assert (match.category_name, match.subcategory_name) == ("Food & Dining", "Fast Food")
    assert match.confidence == 0.95
    assert match.merchant == "STARBUCKS STORE"


def test_matching_is_case_insensitive() -> None:
    match = find_merchant_match("netflix.com monthly")

    assert match is not None
    assert match.subcategory_name == "Streaming Services"


def test_earlier_group_wins_equal_confidence() -> None:
    match = find_merchant_match("UBER EATS ORDER 998")

    assert match is not None
    assert match.subcategory_name == "Restaurants"


def test_higher_confidence_wins_over_table_order() -> None:
    # "AMAZON" (0.8) appears later than "AMAZON.COM" (0.9) but scores lower.
    match = find_merchant_match("AMAZON.COM*MK1AB2")

    assert match is not None
    assert (match.category_name, match.subcategory_name, match.confidence) == (
        "Shopping",
        None,
        0.9,
    )


def test_no_match() -> None:
    assert find_merchant_match("ZXQW 0001") is None


def test_table_is_immutable_and_ordered() -> None:
    assert isinstance(MERCHANT_PATTERNS, tuple)
    assert MERCHANT_PATTERNS[0].keywords[0] == "AMAZON MKTPL"


def test_normalize_merchant() -> None:
    assert normalize_merchant("POS STARBUCKS STORE #123") == "STARBUCKS STORE"
    assert normalize_merchant("debit  Shell Oil 12345678") == "SHELL OIL"
    assert normalize_merchant("AMZN Mktp US*2K3L") == "AMZN MKTP US"


def test_marketplace_order_beats_grocery_name_at_equal_confidence() -> None:
    match = find_merchant_match("AMAZON.COM WHOLE FOODS DELIVERY")

    assert match is not None
    assert (match.category_name, match.subcategory_name) == ("Shopping", None)
