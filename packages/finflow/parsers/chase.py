"""Chase checking statements.

Chase ships text PDFs, so only the text layer is read. Table lines look like::

    01/15 STARBUCKS STORE #123 -5.75 1,234.50

a ``MM/DD`` date, the description, a signed amount (negative for debits) and
an optional running balance.
"""

from __future__ import annotations

import re

from ..models import RawTransaction
from .base import (
    ACCOUNT_NUMBER_RE,
    StatementBuilder,
    StatementParser,
    find_section,
    mask_account_number,
    parse_amount,
    parse_month_name_date,
    resolve_month_day,
    search_amount,
)

_PERIOD_RE = re.compile(
    r"Statement Period[:\s]+([A-Z][a-z]+\s+\d{1,2})\s*-\s*([A-Z][a-z]+\s+\d{1,2},\s*\d{4})",
    re.IGNORECASE,
)
_OPENING_RE = re.compile(r"Beginning Balance[:\s]+\$?([\d,]+\.\d{2})", re.IGNORECASE)
_CLOSING_RE = re.compile(r"Ending Balance[:\s]+\$?([\d,]+\.\d{2})", re.IGNORECASE)
_LINE_RE = re.compile(r"^(\d{1,2})/(\d{1,2})\s+(.+)$")
_AMOUNTS_RE = re.compile(r"([-+]?\$?\s*[\d,]+\.\d{2})\s*([-+]?\$?\s*[\d,]+\.\d{2})?$")

_SECTION_START = r"TRANSACTION DETAIL"
_SECTION_ENDS = (r"TOTAL DEPOSITS", r"TOTAL WITHDRAWALS", r"Ending Balance")


class ChaseParser(StatementParser):
    institution = "Chase"
    ocr_fallback = False
    clean_text = False

    def _parse(self, text: str, builder: StatementBuilder) -> None:
        m = ACCOUNT_NUMBER_RE.search(text)
        builder.account_number = mask_account_number(m.group(1)) if m else None

        m = _PERIOD_RE.search(text)
        if m:
            builder.period_end = parse_month_name_date(m.group(2))
            # The start carries no year of its own; it shares the end's.
            builder.period_start = parse_month_name_date(m.group(1), year=builder.period_end.year)
            if builder.period_start > builder.period_end:
                builder.period_start = builder.period_start.replace(
                    year=builder.period_end.year - 1
                )

        builder.opening_balance = search_amount(_OPENING_RE, text)
        builder.closing_balance = search_amount(_CLOSING_RE, text)

        section = find_section(text, _SECTION_START, _SECTION_ENDS)
        if section is None:
            builder.errors.append("Could not find TRANSACTION DETAIL section")
            return

        today = self.today()
        for line in self.table_lines(section, min_length=10):
            line_match = _LINE_RE.match(line)
            if not line_match:
                continue
            month, day, rest = line_match.groups()

            amounts = _AMOUNTS_RE.search(rest)
            if not amounts:
                continue
            description = rest[: amounts.start()].strip()
            if not description:
                continue

            amount_str = amounts.group(1)
            balance_str = amounts.group(2)
            amount = parse_amount(amount_str)
            if not amount:
                continue
            try:
                posted = resolve_month_day(
                    int(month),
                    int(day),
                    period_start=builder.period_start,
                    period_end=builder.period_end,
                    today=today,
                )
            except ValueError:
                builder.warn(f"Skipped line with invalid date {month}/{day}: {line!r}")
                continue

            builder.add(
                RawTransaction(
                    date=posted,
                    description=description,
                    amount=abs(amount),
                    direction="debit" if amount < 0 else "credit",
                    balance=parse_amount(balance_str) if balance_str else None,
                    raw_data={
                        "date_str": f"{month}/{day}",
                        "amount_str": amount_str.strip(),
                        "balance_str": balance_str.strip() if balance_str else None,
                    },
                )
            )
