# ruff: noqa: I001
"""Persistence of parsed statement lines into ``ff_transactions``.

The sign convention is fixed here: credits are stored positive and debits
negative, derived from ``RawTransaction.direction`` alone (parsers always
report a non-negative magnitude).

Re-uploading a statement must not duplicate rows. Each row carries a SHA-256
fingerprint over its account, date, signed amount, description and running
balance, plus an occurrence index so two genuinely identical lines in one
statement (same coffee, same day, no balance column) both survive. Inserts use
``ON CONFLICT DO NOTHING`` on the fingerprint.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable
from datetime import datetime, time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from db.models.finance import FfTransaction

from .logging_setup import get_logger
from .models import RawTransaction

logger = get_logger("finflow.persistence")


def _to_decimal_2(raw: Any) -> Decimal | None:
    if raw is None:
        return None
    try:
        d = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        return None
    return d.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _norm_str(v: Any) -> str | None:
    if v is None:
        return None
    s = " ".join(str(v).split())
    return s if s else None


def signed_amount(raw: RawTransaction) -> Decimal:
    """Credit positive, debit negative, rounded to cents."""

    magnitude = _to_decimal_2(abs(raw.amount)) or Decimal("0.00")
    return magnitude if raw.direction == "credit" else -magnitude


def compute_fingerprint(*, account_id: int, raw: RawTransaction, occurrence: int = 0) -> str:
    """Stable SHA-256 over the canonical fields of one statement line."""

    balance = _to_decimal_2(raw.balance)
    payload = {
        "account": account_id,
        "date": raw.date.isoformat(),
        "amount": f"{signed_amount(raw):.2f}",
        "description": (_norm_str(raw.description) or "").lower(),
        "balance": f"{balance:.2f}" if balance is not None else None,
        "n": occurrence,
    }
    data = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def _insert_for(session: Session):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise RuntimeError(f"Unsupported database dialect for statement inserts: {dialect}")


def insert_statement_transactions(
    session: Session,
    *,
    user_id: int,
    account_id: int,
    statement_file_id: int | None,
    currency: str,
    transactions: Iterable[RawTransaction],
) -> tuple[list[int], int]:
    """Insert parsed lines; return ``(new_ids, duplicates_skipped)``."""

    insert = _insert_for(session)
    new_ids: list[int] = []
    duplicates = 0
    seen: dict[tuple[Any, ...], int] = {}

    for raw in transactions:
        description = _norm_str(raw.description) or ""
        amount = signed_amount(raw)
        key = (raw.date, amount, description.lower(), _to_decimal_2(raw.balance))
        occurrence = seen.get(key, 0)
        seen[key] = occurrence + 1

        values = {
            "user_id": user_id,
            "account_id": account_id,
            "statement_file_id": statement_file_id,
            "fingerprint_sha256": compute_fingerprint(
                account_id=account_id, raw=raw, occurrence=occurrence
            ),
            "posted_at": datetime.combine(raw.date, time.min),
            "amount": amount,
            "currency": currency,
            "direction": raw.direction,
            "balance": _to_decimal_2(raw.balance),
            "raw_description": description,
            "normalized_description": description,
            "category_source": "none",
            "is_internal_transfer": False,
            "is_income": False,
            "is_expense": False,
        }
        stmt = (
            insert(FfTransaction)
            .values(**values)
            .on_conflict_do_nothing(index_elements=[FfTransaction.fingerprint_sha256])
            .returning(FfTransaction.id)
        )
        new_id = session.execute(stmt).scalar_one_or_none()
        if new_id is None:
            duplicates += 1
            logger.debug("Skipping duplicate line %s %s %s", raw.date, amount, description)
            continue
        new_ids.append(int(new_id))

    return new_ids, duplicates


__all__ = ["compute_fingerprint", "insert_statement_transactions", "signed_amount"]
