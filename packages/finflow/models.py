"""Data models shared across ``finflow``.

Parser output (``RawTransaction``/``ParsedStatementResult``) is ephemeral and
never stored as-is; ingestion converts it into ``db.models.finance`` rows.
The remaining records are value objects returned by the engines and batch
operations.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Literal

type Direction = Literal["credit", "debit"]
type MatchDirection = Literal["in", "out", "both"]
type FlowHandling = Literal["internal_transfer", "income", "expense", "ignore"]
type CategorySource = Literal["manual", "rules", "none"]


# ---------------------------------------------------------------------------
# Parser output
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RawTransaction:
    """One recognized statement line.

    ``amount`` is always a non-negative magnitude; the sign convention is
    applied at persistence time from ``direction``. ``raw_data`` carries the
    parser's raw tokens for debugging a specific layout.
    """

    date: date
    description: str
    amount: Decimal
    direction: Direction
    balance: Decimal | None = None
    raw_data: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ParsedStatementResult:
    """Transactions plus statement metadata.

    A non-empty ``errors`` means ``transactions`` must not be trusted as
    complete; callers do not persist such results. ``warnings`` lists
    line-level problems (for example an ambiguous two-column amount) that were
    skipped without invalidating the statement.
    """

    transactions: tuple[RawTransaction, ...] = ()
    period_start: date | None = None
    period_end: date | None = None
    account_number: str | None = None
    opening_balance: Decimal | None = None
    closing_balance: Decimal | None = None
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors


# ---------------------------------------------------------------------------
# Engine results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class MerchantMatch:
    category_name: str
    subcategory_name: str | None
    confidence: float
    merchant: str


@dataclass(frozen=True, slots=True)
class FlowRuleMatch:
    """A flow rule that matched a transaction, with its 0..100 confidence."""

    rule_id: int
    handling: FlowHandling
    confidence: float
    matched_fields: tuple[str, ...] = ()
    priority: int = 0


@dataclass(frozen=True, slots=True)
class TransferPair:
    transfer_group_id: str
    first_transaction_id: int
    second_transaction_id: int
    amount_difference: Decimal


# ---------------------------------------------------------------------------
# Batch reports
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ItemFailure:
    """A single item that raised during a batch pass; the batch continued."""

    item_id: int
    error: str


@dataclass(frozen=True, slots=True)
class CategorizationReport:
    total: int
    categorized: int
    failures: tuple[ItemFailure, ...] = ()


@dataclass(frozen=True, slots=True)
class FlowProcessingReport:
    """Outcome of one flow-rule pass.

    ``processed`` counts transactions a rule was applied to, ``transfers``
    counts the user's transactions flagged as internal transfers after pairing,
    and ``pairs`` lists the transfer groups created by this pass.
    """

    processed: int
    transfers: int
    pairs: tuple[TransferPair, ...] = ()
    failures: tuple[ItemFailure, ...] = ()


@dataclass(frozen=True, slots=True)
class IngestionResult:
    statement_file_id: int
    status: Literal["parsed", "failed"]
    inserted: int = 0
    duplicates: int = 0
    categorized: int = 0
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    failures: tuple[ItemFailure, ...] = ()


__all__ = [
    "Direction",
    "MatchDirection",
    "FlowHandling",
    "CategorySource",
    "RawTransaction",
    "ParsedStatementResult",
    "MerchantMatch",
    "FlowRuleMatch",
    "TransferPair",
    "ItemFailure",
    "CategorizationReport",
    "FlowProcessingReport",
    "IngestionResult",
]
