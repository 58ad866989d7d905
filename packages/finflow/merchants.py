"""Keyword table mapping transaction descriptions to categories.

``MERCHANT_PATTERNS`` is an immutable, ordered table. Matching scans every
group and keeps the one with the strictly highest confidence, so among equal
confidences the earlier group wins: specific merchants must be listed before
generic keywords of the same score (``UBER EATS`` before ``UBER``).

Category and subcategory names refer to ``display_name`` values of the system
taxonomy (see ``finflow/ingest/seeds/ff_taxonomy.v1.json``).
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .models import MerchantMatch


@dataclass(frozen=True, slots=True)
class MerchantPattern:
    keywords: tuple[str, ...]
    category_name: str
    subcategory_name: str | None
    confidence: float

    def matches(self, upper_description: str) -> bool:
        return any(k in upper_description for k in self.keywords)


def _p(
    keywords: tuple[str, ...], category: str, subcategory: str | None, confidence: float
) -> MerchantPattern:
    return MerchantPattern(tuple(k.upper() for k in keywords), category, subcategory, confidence)


MERCHANT_PATTERNS: tuple[MerchantPattern, ...] = (
    # Marketplace orders; listed first so they win ties with the grocery
    # names an order line can carry.
    _p(("AMAZON MKTPL", "AMAZON.COM", "AMAZON PRIME"), "Shopping", None, 0.9),
    # Food & Dining
    _p(("UBER EATS", "UBEREATS", "DOORDASH", "GRUBHUB", "POSTMATES"), "Food & Dining", "Restaurants", 0.95),
    _p(("CHIPOTLE", "MCDONALDS", "SUBWAY", "STARBUCKS", "DUNKIN"), "Food & Dining", "Fast Food", 0.95),
    _p(("RESTAURANT", "CAFE", "BISTRO", "DINER", "PIZZ"), "Food & Dining", "Restaurants", 0.8),
    _p(("WHOLE FOODS", "TRADER JOE", "SAFEWAY", "WALMART", "TARGET", "COSTCO"), "Food & Dining", "Groceries", 0.9),
    _p(("GROCERY", "MARKET", "SUPERMARKET"), "Food & Dining", "Groceries", 0.8),
    # Transportation
    _p(("UBER", "LYFT", "RIDESHARE"), "Transportation", "Uber/Lyft", 0.95),
    _p(("SHELL", "CHEVRON", "EXXON", "BP ", "MOBIL", "ARCO"), "Transportation", "Gas", 0.9),
    _p(("PARKING", "PARK METER"), "Transportation", "Parking", 0.9),
    _p(("METRO", "BART", "MUNI", "TRANSIT"), "Transportation", "Public Transit", 0.85),
    # Shopping
    _p(("AMAZON", "AMZN"), "Shopping", "Electronics", 0.8),
    _p(("BEST BUY", "APPLE STORE", "MICRO CENTER"), "Shopping", "Electronics", 0.9),
    _p(("ZARA", "H&M", "GAP", "OLD NAVY", "NORDSTROM", "MACY"), "Shopping", "Clothing", 0.9),
    _p(("TARGET", "WALMART", "COSTCO"), "Shopping", None, 0.85),
    # Housing
    _p(("RENT", "REDPOINT", "PROPERTY MANAGEMENT", "HOUSING"), "Housing", "Rent", 0.9),
    _p(("PG&E", "ELECTRIC", "UTILITY", "WATER BILL", "GAS BILL"), "Housing", "Utilities", 0.9),
    _p(("INTERNET", "COMCAST", "XFINITY", "AT&T", "VERIZON FIO"), "Housing", "Internet", 0.9),
    # Healthcare
    _p(("PHARMACY", "CVS", "WALGREENS", "RITE AID"), "Healthcare", "Pharmacy", 0.9),
    _p(("DOCTOR", "MEDICAL", "CLINIC", "HOSPITAL"), "Healthcare", "Doctor Visits", 0.85),
    _p(("DENTAL", "DENTIST"), "Healthcare", "Dental", 0.9),
    # Entertainment
    _p(("NETFLIX", "SPOTIFY", "HULU", "DISNEY+", "HBO"), "Entertainment", "Streaming Services", 0.95),
    _p(("MOVIE", "CINEMA", "AMC THEATR", "REGAL"), "Entertainment", "Movies", 0.9),
    _p(("STEAM", "PLAYSTATION", "XBOX", "NINTENDO"), "Entertainment", "Games", 0.9),
    # Subscriptions
    _p(("GITHUB", "ADOBE", "MICROSOFT 365", "GOOGLE ONE"), "Subscriptions", "Software", 0.95),
    _p(("GYM", "FITNESS", "PLANET FITNESS", "24 HOUR"), "Subscriptions", "Memberships", 0.9),
    # Travel
    _p(("AIRLINE", "UNITED AIR", "DELTA", "AMERICAN AIR", "SOUTHWEST"), "Travel", "Flights", 0.95),
    _p(("HOTEL", "MARRIOTT", "HILTON", "HYATT", "AIRBNB"), "Travel", "Hotels", 0.9),
    # Fees
    _p(("FEE", "CHARGE", "ATM WITHDRAW"), "Fees & Charges", "Bank Fees", 0.85),
    _p(("LATE FEE", "OVERDRAFT"), "Fees & Charges", "Late Fees", 0.95),
    # Income
    _p(("SALARY", "PAYROLL", "DIRECT DEP"), "Income", "Salary", 0.9),
    _p(("ZELLE", "VENMO", "PAYPAL"), "Income", "Family Support", 0.7),
    _p(("REFUND", "REIMBURSEMENT"), "Income", "Refunds", 0.85),
    _p(("INTEREST EARNED", "INTEREST PAID"), "Income", "Interest", 0.95),
    # India
    _p(("SWIGGY", "ZOMATO", "DUNZO"), "Food & Dining", "Restaurants", 0.95),
    _p(("OLA", "OLA CABS", "RAPIDO"), "Transportation", "Uber/Lyft", 0.95),
    _p(("BIGBASKET", "GROFERS", "BLINKIT"), "Food & Dining", "Groceries", 0.9),
    _p(("RELIANCE DIGITAL", "CROMA"), "Shopping", "Electronics", 0.9),
    _p(("FLIPKART", "MYNTRA", "AJIO"), "Shopping", None, 0.85),
    _p(("CANTEEN", "MESS"), "Food & Dining", None, 0.8),
)


_PREFIX_RE = re.compile(r"^(POS|DEBIT|CREDIT|PURCHASE|PAYMENT)\s+", re.IGNORECASE)
_TRAILING_ID_RE = re.compile(r"\s+\d{4,}$")
_DATE_RE = re.compile(r"\d{1,2}[/-]\d{1,2}[/-]\d{2,4}")
_DELIMITER_RE = re.compile(r"[*#-]")
_SPACES_RE = re.compile(r"\s+")


def normalize_merchant(description: str) -> str:
    """Human-readable merchant name from a raw description.

    >>> normalize_merchant("POS STARBUCKS STORE #123")
    'STARBUCKS STORE'
    """

    name = description.upper().strip()
    name = _PREFIX_RE.sub("", name, count=1)
    name = _TRAILING_ID_RE.sub("", name, count=1)
    name = _DATE_RE.sub("", name, count=1)
    name = _DELIMITER_RE.split(name, maxsplit=1)[0].strip()
    return _SPACES_RE.sub(" ", name).strip()


def find_merchant_match(
    description: str, patterns: tuple[MerchantPattern, ...] = MERCHANT_PATTERNS
) -> MerchantMatch | None:
    """Best pattern group for ``description``, or ``None``."""

    upper = description.upper()
    best: MerchantPattern | None = None
    for pattern in patterns:
        if pattern.matches(upper) and (best is None or pattern.confidence > best.confidence):
            best = pattern
    if best is None:
        return None
    return MerchantMatch(
        category_name=best.category_name,
        subcategory_name=best.subcategory_name,
        confidence=best.confidence,
        merchant=normalize_merchant(description),
    )


__all__ = ["MERCHANT_PATTERNS", "MerchantPattern", "find_merchant_match", "normalize_merchant"]
