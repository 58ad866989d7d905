"""Pairing policies for internal transfers.

An *anchor* is a transaction flagged as an internal transfer without a
transfer group. Its counterpart must be on another account, posted within the
anchor's time window (inclusive), have the opposite direction and an absolute
amount within 1% of the anchor's (exclusive bound). Each transaction joins at
most one pair.

Two policies are provided:

- :class:`GreedyNearestPairing` (default): anchors are visited most recent
  first and each claims its closest remaining candidate. An earlier anchor may
  take a candidate that would have suited a later one better.
- :class:`GlobalNearestPairing`: every eligible (anchor, candidate) pair is
  ranked by amount difference and claimed in that order.

Ties on amount difference go to the smaller time gap, then the lower id.
Strategies only decide pairs; stamping happens in
:func:`finflow.flow_rules.find_transfer_pairs`.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Protocol

from db.models.finance import FfTransaction

AMOUNT_TOLERANCE = Decimal("0.01")

type WindowFor = Callable[[FfTransaction], int]


@dataclass(frozen=True, slots=True)
class Candidate:
    anchor: FfTransaction
    counterpart: FfTransaction
    amount_difference: Decimal
    time_gap: timedelta

    @property
    def rank(self) -> tuple[Decimal, timedelta, int]:
        return (self.amount_difference, self.time_gap, self.counterpart.id)


def evaluate_candidate(
    anchor: FfTransaction, other: FfTransaction, *, window_hours: int
) -> Candidate | None:
    """Return a :class:`Candidate` when ``other`` can be ``anchor``'s counterpart."""

    if other.id == anchor.id or other.account_id == anchor.account_id:
        return None
    if other.transfer_group_id is not None:
        return None
    if other.direction == anchor.direction:
        return None
    gap = abs(other.posted_at - anchor.posted_at)
    if gap > timedelta(hours=window_hours):
        return None
    amount = abs(anchor.amount)
    diff = abs(amount - abs(other.amount))
    if not diff < amount * AMOUNT_TOLERANCE:
        return None
    return Candidate(anchor, other, diff, gap)


class PairingStrategy(Protocol):
    def pair(
        self,
        anchors: Sequence[FfTransaction],
        pool: Sequence[FfTransaction],
        window_for: WindowFor,
    ) -> list[Candidate]: ...


class GreedyNearestPairing:
    """Visit anchors in the given order; each claims its best unclaimed candidate."""

    def pair(
        self,
        anchors: Sequence[FfTransaction],
        pool: Sequence[FfTransaction],
        window_for: WindowFor,
    ) -> list[Candidate]:
        claimed: set[int] = set()
        pairs: list[Candidate] = []
        for anchor in anchors:
            if anchor.id in claimed:
                continue
            window = window_for(anchor)
            best: Candidate | None = None
            for other in pool:
                if other.id in claimed:
                    continue
                candidate = evaluate_candidate(anchor, other, window_hours=window)
                if candidate is not None and (best is None or candidate.rank < best.rank):
                    best = candidate
            if best is not None:
                claimed.update((anchor.id, best.counterpart.id))
                pairs.append(best)
        return pairs


class GlobalNearestPairing:
    """Rank all eligible pairs by amount difference and claim them in order."""

    def pair(
        self,
        anchors: Sequence[FfTransaction],
        pool: Sequence[FfTransaction],
        window_for: WindowFor,
    ) -> list[Candidate]:
        ranked: list[tuple[tuple[Decimal, timedelta, int, int], Candidate]] = []
        for index, anchor in enumerate(anchors):
            window = window_for(anchor)
            for other in pool:
                candidate = evaluate_candidate(anchor, other, window_hours=window)
                if candidate is not None:
                    diff, gap, other_id = candidate.rank
                    ranked.append(((diff, gap, index, other_id), candidate))
        ranked.sort(key=lambda item: item[0])

        claimed: set[int] = set()
        pairs: list[Candidate] = []
        for _, candidate in ranked:
            a, b = candidate.anchor.id, candidate.counterpart.id
            if a in claimed or b in claimed:
                continue
            claimed.update((a, b))
            pairs.append(candidate)
        return pairs


__all__ = [
    "AMOUNT_TOLERANCE",
    "Candidate",
    "GlobalNearestPairing",
    "GreedyNearestPairing",
    "PairingStrategy",
    "WindowFor",
    "evaluate_candidate",
]
