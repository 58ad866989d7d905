"""Shared machinery for per-institution statement parsers.

Every parser follows the same shape: extract text, pull optional metadata
(account number, period, balances) with anchored regexes, cut the transaction
table out between a start heading and an end heading, then walk its lines.
Lines that do not start with the institution's date token are skipped
silently; statement text always contains headers, footers and continuation
lines.

Subclasses implement :meth:`StatementParser._parse` and record results on
a :class:`StatementBuilder`. Any exception escaping ``parse_text`` becomes a
single ``errors`` entry while everything collected so far is still returned.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import ClassVar, Protocol

from ..extraction import TextExtractor, clean_ocr_text
from ..logging_setup import get_logger
from ..models import Direction, ParsedStatementResult, RawTransaction

logger = get_logger("finflow.parsers")

# A decimal amount with optional thousands separators, not part of a longer number.
AMOUNT_TOKEN_RE = re.compile(r"(?<![\d.])\d[\d,]*\.\d{2}(?!\d)")
_AMOUNT_STRIP_RE = re.compile(r"[\s,$]|Rs\.?|INR", re.IGNORECASE)
ACCOUNT_NUMBER_RE = re.compile(r"Account Number[:\s]+(\d+)", re.IGNORECASE)

_MONTHS = {
    name: i
    for i, name in enumerate(
        ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"),
        start=1,
    )
}


class Extractor(Protocol):
    def extract_text(self, buffer: bytes) -> str: ...


# ---------------------------------------------------------------------------
# Token helpers
# ---------------------------------------------------------------------------


def parse_amount(token: str) -> Decimal:
    """Parse ``"-$1,234.50"`` style tokens into a signed ``Decimal``."""

    cleaned = _AMOUNT_STRIP_RE.sub("", token)
    try:
        return Decimal(cleaned)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount token: {token!r}") from exc


def mask_account_number(number: str | None) -> str | None:
    if not number:
        return None
    return "****" + number[-4:]


def month_number(name: str) -> int:
    """Return 1..12 for an English month name or three-letter abbreviation."""

    try:
        return _MONTHS[name.strip()[:3].lower()]
    except KeyError:
        raise ValueError(f"Unknown month: {name!r}") from None


def parse_month_name_date(text: str, *, year: int | None = None) -> date:
    """Parse ``"Jan 5, 2024"`` / ``"January 5 2024"`` (or ``"Jan 5"`` plus ``year``)."""

    m = re.fullmatch(r"\s*([A-Za-z]+)\.?\s+(\d{1,2})(?:,?\s*(\d{4}))?\s*", text)
    if not m:
        raise ValueError(f"Unrecognized date: {text!r}")
    resolved_year = int(m.group(3)) if m.group(3) else year
    if resolved_year is None:
        raise ValueError(f"Date without year: {text!r}")
    return date(resolved_year, month_number(m.group(1)), int(m.group(2)))


def parse_day_month_year(text: str) -> date:
    """Parse ``DD/MM/YYYY``, ``DD-MM-YYYY`` or ``DD-Mon-YYYY``."""

    day_s, month_s, year_s = re.split(r"[/-]", text.strip())
    month = int(month_s) if month_s.isdigit() else month_number(month_s)
    return date(int(year_s), month, int(day_s))


def resolve_month_day(
    month: int,
    day: int,
    *,
    period_start: date | None,
    period_end: date | None,
    today: date,
) -> date:
    """Attach a year to a month/day token.

    The period end year is used; when the period crosses a year boundary and
    that would place the date after the period end, the start year is used.
    Without a period the current year is used.
    """

    if period_end is None:
        return date(today.year, month, day)
    candidate = date(period_end.year, month, day)
    if (
        period_start is not None
        and period_start.year != period_end.year
        and candidate > period_end
    ):
        candidate = date(period_start.year, month, day)
    return candidate


def find_section(text: str, start: str, ends: Sequence[str]) -> str | None:
    """Return the text between the ``start`` heading and the first end heading.

    ``start`` and ``ends`` are regex fragments matched case-insensitively. The
    end of the document also ends the section.
    """

    ends_alt = "|".join(ends)
    pattern = rf"{start}(.*?)(?:{ends_alt}|\Z)" if ends else rf"{start}(.*)"
    m = re.search(pattern, text, re.IGNORECASE | re.DOTALL)
    return m.group(1) if m else None


def search_amount(pattern: re.Pattern[str], text: str) -> Decimal | None:
    m = pattern.search(text)
    return parse_amount(m.group(1)) if m else None


# ---------------------------------------------------------------------------
# Result builder
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class StatementBuilder:
    """Mutable accumulator turned into a frozen :class:`ParsedStatementResult`."""

    transactions: list[RawTransaction] = field(default_factory=list)
    period_start: date | None = None
    period_end: date | None = None
    account_number: str | None = None
    opening_balance: Decimal | None = None
    closing_balance: Decimal | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def add(self, txn: RawTransaction) -> None:
        self.transactions.append(txn)

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def build(self) -> ParsedStatementResult:
        return ParsedStatementResult(
            transactions=tuple(self.transactions),
            period_start=self.period_start,
            period_end=self.period_end,
            account_number=self.account_number,
            opening_balance=self.opening_balance,
            closing_balance=self.closing_balance,
            errors=tuple(self.errors),
            warnings=tuple(self.warnings),
        )


# ---------------------------------------------------------------------------
# Parser base
# ---------------------------------------------------------------------------


class StatementParser(ABC):
    """Base class for a bank's statement layout.

    Class attributes
    ----------------
    institution:
        Registry key; must equal ``FfAccount.institution`` exactly.
    ocr_fallback:
        Whether scanned statements are expected (enables OCR when the text
        layer is nearly empty).
    clean_text:
        Run :func:`~finflow.extraction.clean_ocr_text` before parsing.
    """

    institution: ClassVar[str]
    ocr_fallback: ClassVar[bool] = True
    clean_text: ClassVar[bool] = True

    def __init__(
        self,
        extractor: Extractor | None = None,
        *,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.extractor: Extractor = extractor or TextExtractor(ocr_fallback=self.ocr_fallback)
        self._today = today

    def parse(self, buffer: bytes) -> ParsedStatementResult:
        builder = StatementBuilder()
        try:
            text = self.extractor.extract_text(buffer)
        except Exception as exc:
            logger.warning("%s: text extraction failed: %s", self.institution, exc)
            builder.errors.append(str(exc) or exc.__class__.__name__)
            return builder.build()
        return self.parse_text(text, builder=builder)

    def parse_text(self, text: str, *, builder: StatementBuilder | None = None) -> ParsedStatementResult:
        """Parse already-extracted statement text."""

        builder = builder or StatementBuilder()
        if self.clean_text:
            text = clean_ocr_text(text)
        try:
            self._parse(text, builder)
        except Exception as exc:
            logger.exception("%s: parser failed", self.institution)
            builder.errors.append(str(exc) or exc.__class__.__name__)
        result = builder.build()
        logger.debug(
            "%s: parsed %d transactions (%d errors, %d warnings)",
            self.institution,
            len(result.transactions),
            len(result.errors),
            len(result.warnings),
        )
        return result

    @abstractmethod
    def _parse(self, text: str, builder: StatementBuilder) -> None:
        """Fill ``builder`` from ``text``; may raise, leaving partial results."""

    def today(self) -> date:
        return self._today()

    @staticmethod
    def table_lines(section: str, *, min_length: int) -> list[str]:
        """Trimmed lines long enough to hold a date, a description and an amount."""

        lines: list[str] = []
        for line in section.split("\n"):
            trimmed = line.strip()
            if len(trimmed) >= min_length:
                lines.append(trimmed)
        return lines


# ---------------------------------------------------------------------------
# Column-window layouts (withdrawal | deposit | balance)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ColumnWindow:
    description: str
    amount: Decimal
    direction: Direction
    balance: Decimal
    tokens: tuple[str, ...]


def read_column_window(
    rest: str,
    *,
    credit_keywords: re.Pattern[str],
    builder: StatementBuilder,
    line: str,
) -> ColumnWindow | None:
    """Interpret the rightmost one to three amount tokens of a table line.

    Balance is always the rightmost token. With two tokens the amount column
    is unknown and the description keywords decide the direction. With three
    tokens the position decides: withdrawal then deposit. Lines with both
    columns non-zero are skipped with a warning; a lone balance or a zero
    amount is skipped.
    """

    matches = list(AMOUNT_TOKEN_RE.finditer(rest))
    if len(matches) < 2:
        return None
    window = matches[-3:]
    description = rest[: window[0].start()].strip()
    if not description:
        return None

    tokens = tuple(m.group(0) for m in window)
    balance = parse_amount(tokens[-1])
    if len(window) == 2:
        amount = parse_amount(tokens[0])
        if not amount:
            return None
        direction: Direction = "credit" if credit_keywords.search(description) else "debit"
    else:
        withdrawal = parse_amount(tokens[0])
        deposit = parse_amount(tokens[1])
        if withdrawal and deposit:
            builder.warn(f"Skipped line with both withdrawal and deposit populated: {line!r}")
            return None
        if not withdrawal and not deposit:
            return None
        if withdrawal:
            amount, direction = withdrawal, "debit"
        else:
            amount, direction = deposit, "credit"

    return ColumnWindow(
        description=description,
        amount=abs(amount),
        direction=direction,
        balance=balance,
        tokens=tokens,
    )


__all__ = [
    "AMOUNT_TOKEN_RE",
    "ACCOUNT_NUMBER_RE",
    "ColumnWindow",
    "Extractor",
    "StatementBuilder",
    "StatementParser",
    "find_section",
    "mask_account_number",
    "month_number",
    "parse_amount",
    "parse_day_month_year",
    "parse_month_name_date",
    "read_column_window",
    "resolve_month_day",
    "search_amount",
]
