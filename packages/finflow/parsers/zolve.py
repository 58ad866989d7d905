"""Zolve credit card statements.

Table lines are ``MM/DD Description $Amount``. Charges are debits; payments,
credits and refunds are credits. ``Current Balance`` is the closing balance.
"""

from __future__ import annotations

import re

from ..models import RawTransaction
from .base import (
    StatementBuilder,
    StatementParser,
    find_section,
    parse_amount,
    parse_month_name_date,
    resolve_month_day,
    search_amount,
)

_CARD_RE = re.compile(r"Card ending in\s+(\d{4})", re.IGNORECASE)
_PERIOD_RE = re.compile(
    r"Statement Period[:\s]+(\w+ \d{1,2}, \d{4})\s*-\s*(\w+ \d{1,2}, \d{4})",
    re.IGNORECASE,
)
_LIMIT_RE = re.compile(r"Credit Limit[:\s]+\$\s*([\d,]+\.\d{2})", re.IGNORECASE)
_BALANCE_RE = re.compile(r"Current Balance[:\s]+\$\s*([\d,]+\.\d{2})", re.IGNORECASE)
_LINE_RE = re.compile(r"^(\d{1,2})/(\d{1,2})\s+(.+)$")
_AMOUNT_RE = re.compile(r"\$\s*([\d,]+\.\d{2})$")
_CREDIT_RE = re.compile(r"payment|credit|refund", re.IGNORECASE)

_SECTION_START = r"TRANSACTIONS"
_SECTION_ENDS = (r"FEES AND INTEREST", r"PAYMENT INFORMATION")


class ZolveParser(StatementParser):
    institution = "Zolve"

    def _parse(self, text: str, builder: StatementBuilder) -> None:
        m = _CARD_RE.search(text)
        builder.account_number = f"****{m.group(1)}" if m else None

        m = _PERIOD_RE.search(text)
        if m:
            builder.period_start = parse_month_name_date(m.group(1))
            builder.period_end = parse_month_name_date(m.group(2))

        credit_limit = search_amount(_LIMIT_RE, text)
        builder.closing_balance = search_amount(_BALANCE_RE, text)

        section = find_section(text, _SECTION_START, _SECTION_ENDS)
        if section is None:
            builder.errors.append("Could not find TRANSACTIONS section")
            return

        today = self.today()
        for line in self.table_lines(section, min_length=10):
            line_match = _LINE_RE.match(line)
            if not line_match:
                continue
            month, day, rest = line_match.groups()

            amount_match = _AMOUNT_RE.search(rest)
            if not amount_match:
                continue
            description = rest[: amount_match.start()].strip()
            if not description:
                continue
            amount = parse_amount(amount_match.group(1))
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
                    amount=amount,
                    direction="credit" if _CREDIT_RE.search(description) else "debit",
                    raw_data={
                        "date_str": f"{month}/{day}",
                        "amount_str": amount_match.group(1),
                        "credit_limit": str(credit_limit) if credit_limit is not None else None,
                    },
                )
            )
