"""Flow-rule engine: classify transactions and reconcile internal transfers.

A flow rule is a user-authored predicate over a transaction. Scoring of a
single rule (:func:`match_flow_rule`), each predicate failing is a non-match:

- ``match_direction`` (in = credit, out = debit): no points;
- ``source_account_id``: 30 points;
- ``description_includes``: 40 points times the fraction of keywords found
  (none found is a non-match);
- ``description_regex``, case-insensitive: 40 points (an invalid pattern is
  logged and the rule does not match);
- ``min_amount``/``max_amount`` on the absolute amount: 15 points.

A rule that matched no discriminating field (direction only) never matches.
Confidence is capped at 100. Among matching rules the highest confidence
wins; ties go to the rule evaluated first (highest priority).
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Sequence
from datetime import timedelta
from functools import lru_cache

from db.models.finance import FfFlowRule, FfTransaction

from .config import DEFAULT_TRANSFER_WINDOW_HOURS
from .logging_setup import get_logger
from .models import FlowProcessingReport, FlowRuleMatch, ItemFailure, TransferPair
from .repository import UserRepository
from .transfers import GreedyNearestPairing, PairingStrategy

logger = get_logger("finflow.flow_rules")

SOURCE_ACCOUNT_POINTS = 30.0
DESCRIPTION_POINTS = 40.0
REGEX_POINTS = 40.0
AMOUNT_POINTS = 15.0
MAX_CONFIDENCE = 100.0

_DIRECTION_FOR = {"in": "credit", "out": "debit"}


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


def match_flow_rule(txn: FfTransaction, rule: FfFlowRule) -> FlowRuleMatch | None:
    """Score ``rule`` against ``txn``; ``None`` when it does not match."""

    wanted = _DIRECTION_FOR.get(rule.match_direction)
    if wanted is not None and txn.direction != wanted:
        return None

    matched: list[str] = []
    confidence = 0.0

    if rule.source_account_id is not None:
        if txn.account_id != rule.source_account_id:
            return None
        matched.append("source_account")
        confidence += SOURCE_ACCOUNT_POINTS

    description = txn.raw_description or ""
    keywords = [k for k in (rule.description_includes or ()) if k]
    if keywords:
        lowered = description.lower()
        hits = sum(1 for k in keywords if k.lower() in lowered)
        if hits == 0:
            return None
        matched.append("description")
        confidence += DESCRIPTION_POINTS * hits / len(keywords)

    if rule.description_regex:
        try:
            pattern = _compile(rule.description_regex)
        except re.error as exc:
            logger.warning(
                "Flow rule %s has an invalid regex %r: %s", rule.id, rule.description_regex, exc
            )
            return None
        if not pattern.search(description):
            return None
        matched.append("regex")
        confidence += REGEX_POINTS

    if rule.min_amount is not None or rule.max_amount is not None:
        amount = abs(txn.amount)
        if rule.min_amount is not None and amount < rule.min_amount:
            return None
        if rule.max_amount is not None and amount > rule.max_amount:
            return None
        matched.append("amount")
        confidence += AMOUNT_POINTS

    if not matched:
        return None

    return FlowRuleMatch(
        rule_id=rule.id,
        handling=rule.handling,  # type: ignore[arg-type]
        confidence=min(confidence, MAX_CONFIDENCE),
        matched_fields=tuple(matched),
        priority=rule.priority,
    )


def _evaluate(txn: FfTransaction, rules: Sequence[FfFlowRule]) -> list[FlowRuleMatch]:
    matches: list[FlowRuleMatch] = []
    for rule in rules:
        match = match_flow_rule(txn, rule)
        if match is not None:
            matches.append(match)
    return matches


def evaluate_flow_rules(repo: UserRepository, transaction_id: int) -> list[FlowRuleMatch]:
    """Matches of every active rule for the transaction, in priority order."""

    txn = repo.get_transaction(transaction_id)
    if txn is None:
        return []
    return _evaluate(txn, repo.active_flow_rules())


def best_match(matches: Sequence[FlowRuleMatch]) -> FlowRuleMatch | None:
    best: FlowRuleMatch | None = None
    for match in matches:
        if best is None or match.confidence > best.confidence:
            best = match
    return best


def _apply(txn: FfTransaction, rule: FfFlowRule) -> None:
    handling = rule.handling
    txn.is_internal_transfer = handling == "internal_transfer"
    txn.is_income = handling == "income"
    txn.is_expense = handling == "expense"
    if handling == "internal_transfer" and rule.destination_account_id is not None:
        txn.counterparty_account_id = rule.destination_account_id
    txn.flow_rule_id = rule.id


def apply_flow_rule(repo: UserRepository, transaction_id: int, rule_id: int) -> None:
    """Set the transaction's flags from the rule's handling.

    Missing rows and inactive rules leave the transaction unchanged.
    """

    txn = repo.get_transaction(transaction_id)
    rule = repo.get_flow_rule(rule_id)
    if txn is None or rule is None or not rule.is_active:
        return
    _apply(txn, rule)
    repo.flush()


def find_transfer_pairs(
    repo: UserRepository,
    *,
    time_window_hours: int = DEFAULT_TRANSFER_WINDOW_HOURS,
    strategy: PairingStrategy | None = None,
) -> list[TransferPair]:
    """Pair unpaired internal transfers with their counterparts on other accounts.

    Each anchor uses the window of the flow rule that flagged it, or
    ``time_window_hours`` when it has none. Both sides of a pair get a new
    shared ``transfer_group_id``, are flagged as transfers (not income or
    expense), and point at each other's account.
    """

    anchors = repo.unpaired_transfers()
    if not anchors:
        return []

    rule_windows: dict[int, int] = {}

    def window_for(txn: FfTransaction) -> int:
        if txn.flow_rule_id is None:
            return time_window_hours
        if txn.flow_rule_id not in rule_windows:
            rule = repo.get_flow_rule(txn.flow_rule_id)
            hours = rule.time_window_hours if rule is not None else None
            rule_windows[txn.flow_rule_id] = hours if hours else time_window_hours
        return rule_windows[txn.flow_rule_id]

    widest = max(window_for(a) for a in anchors)
    earliest = min(a.posted_at for a in anchors) - timedelta(hours=widest)
    latest = max(a.posted_at for a in anchors) + timedelta(hours=widest)
    pool = repo.unpaired_between(earliest, latest)

    pairs: list[TransferPair] = []
    for candidate in (strategy or GreedyNearestPairing()).pair(anchors, pool, window_for):
        group_id = str(uuid.uuid4())
        a, b = candidate.anchor, candidate.counterpart
        for txn, other in ((a, b), (b, a)):
            txn.transfer_group_id = group_id
            txn.is_internal_transfer = True
            txn.is_income = False
            txn.is_expense = False
            txn.counterparty_account_id = other.account_id
        pairs.append(TransferPair(group_id, a.id, b.id, candidate.amount_difference))
        logger.debug("Paired transactions %s and %s as %s", a.id, b.id, group_id)

    repo.flush()
    return pairs


def process_transactions_with_flow_rules(
    repo: UserRepository,
    *,
    time_window_hours: int = DEFAULT_TRANSFER_WINDOW_HOURS,
    strategy: PairingStrategy | None = None,
) -> FlowProcessingReport:
    """Apply the best flow rule to every transaction, then pair transfers.

    Transactions already in a transfer group are left alone. Each transaction
    runs in its own SAVEPOINT; a failure is logged and reported without
    stopping the batch.
    """

    rules = repo.active_flow_rules()
    processed = 0
    failures: list[ItemFailure] = []

    if rules:
        for transaction_id in repo.transaction_ids():
            try:
                with repo.savepoint():
                    txn = repo.get_transaction(transaction_id)
                    if txn is None or txn.transfer_group_id is not None:
                        continue
                    match = best_match(_evaluate(txn, rules))
                    if match is None:
                        continue
                    rule = next(r for r in rules if r.id == match.rule_id)
                    _apply(txn, rule)
                    repo.flush()
                    processed += 1
            except Exception as exc:
                logger.exception("Flow rule evaluation failed for transaction %s", transaction_id)
                failures.append(ItemFailure(transaction_id, str(exc) or exc.__class__.__name__))

    pairs = find_transfer_pairs(repo, time_window_hours=time_window_hours, strategy=strategy)
    transfers = repo.count_transfers()
    logger.info(
        "Flow rules for user %s: %d processed, %d pairs, %d transfers, %d failures",
        repo.user_id,
        processed,
        len(pairs),
        transfers,
        len(failures),
    )
    return FlowProcessingReport(
        processed=processed, transfers=transfers, pairs=tuple(pairs), failures=tuple(failures)
    )


__all__ = [
    "apply_flow_rule",
    "best_match",
    "evaluate_flow_rules",
    "find_transfer_pairs",
    "match_flow_rule",
    "process_transactions_with_flow_rules",
]
