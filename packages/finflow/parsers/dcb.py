"""DCB Bank statements.

Transactions live under ``ACCOUNT DETAILS``; dates are ``DD-Mon-YYYY``
(``05-Nov-2024``). Column layout matches HDFC: withdrawal, deposit, balance.
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
    parse_day_month_year,
    read_column_window,
    search_amount,
)

_PERIOD_RE = re.compile(
    r"Statement Period[:\s]+(\d{2}-\w{3}-\d{4})\s+to\s+(\d{2}-\w{3}-\d{4})",
    re.IGNORECASE,
)
_OPENING_RE = re.compile(
    r"Opening Balance[:\s]+(?:Rs\.?|INR)?\s*([\d,]+\.\d{2})", re.IGNORECASE
)
_CLOSING_RE = re.compile(
    r"Closing Balance[:\s]+(?:Rs\.?|INR)?\s*([\d,]+\.\d{2})", re.IGNORECASE
)
_LINE_RE = re.compile(r"^(\d{2}-[A-Za-z]{3}-\d{4})\s+(.+)$")
_CREDIT_RE = re.compile(r"credit|deposit|upi cr|neft cr|transfer in", re.IGNORECASE)

_SECTION_START = r"ACCOUNT DETAILS"
_SECTION_ENDS = (r"ACCOUNT SUMMARY", r"\n\s*Closing Balance")


class DCBBankParser(StatementParser):
    institution = "DCB Bank"

    def _parse(self, text: str, builder: StatementBuilder) -> None:
        m = ACCOUNT_NUMBER_RE.search(text)
        builder.account_number = mask_account_number(m.group(1)) if m else None

        m = _PERIOD_RE.search(text)
        if m:
            builder.period_start = parse_day_month_year(m.group(1))
            builder.period_end = parse_day_month_year(m.group(2))

        builder.opening_balance = search_amount(_OPENING_RE, text)
        builder.closing_balance = search_amount(_CLOSING_RE, text)

        section = find_section(text, _SECTION_START, _SECTION_ENDS)
        if section is None:
            builder.errors.append("Could not find ACCOUNT DETAILS section")
            return

        for line in self.table_lines(section, min_length=15):
            line_match = _LINE_RE.match(line)
            if not line_match:
                continue
            date_str, rest = line_match.groups()

            window = read_column_window(
                rest, credit_keywords=_CREDIT_RE, builder=builder, line=line
            )
            if window is None:
                continue
            try:
                posted = parse_day_month_year(date_str)
            except ValueError:
                builder.warn(f"Skipped line with invalid date {date_str}: {line!r}")
                continue

            builder.add(
                RawTransaction(
                    date=posted,
                    description=window.description,
                    amount=window.amount,
                    direction=window.direction,
                    balance=window.balance,
                    raw_data={"date_str": date_str, "tokens": window.tokens},
                )
            )
