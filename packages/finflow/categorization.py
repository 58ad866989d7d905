"""Rule-based categorization engine and correction learner.

Per transaction, in fixed precedence, stopping at the first success:

1. provenance ``manual``: never touched;
2. the user's category rules (account-scoped or global, highest priority
   first); a rule matches on any description keyword or on its merchant;
3. the merchant pattern table (:mod:`finflow.merchants`);
4. the system "Transfers" category for internal transfers;
5. the system "Income" category for income;
6. otherwise the transaction stays uncategorized.

Automatic assignments are marked ``rules``. Categories are resolved by name
against the system taxonomy; a merchant match whose category is missing from
the catalog falls through to the next step.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from datetime import UTC, datetime
from decimal import Decimal

from db.models.finance import FfCategoryRule, FfTransaction

from .logging_setup import get_logger
from .merchants import find_merchant_match
from .models import CategorizationReport, ItemFailure
from .repository import UserRepository

logger = get_logger("finflow.categorization")

TRANSFERS_CATEGORY = "Transfers"
INCOME_CATEGORY = "Income"

LEARNER_CORRECTION_LIMIT = 100
LEARNER_MIN_GROUP_SIZE = 2
LEARNER_MIN_WORD_SHARE = 0.5
LEARNER_MIN_WORD_LENGTH = 4
LEARNED_RULE_PRIORITY = 50


def _now() -> datetime:
    return datetime.now(UTC)


def rule_matches(rule: FfCategoryRule, txn: FfTransaction) -> bool:
    description = (txn.raw_description or "").lower()
    for keyword in rule.description_includes or ():
        if keyword and keyword.lower() in description:
            return True
    if rule.merchant and txn.merchant:
        return rule.merchant.lower() in txn.merchant.lower()
    return False


def _assign(
    txn: FfTransaction,
    *,
    category_code: str,
    subcategory_code: str | None = None,
    confidence: float | None = None,
) -> None:
    txn.category_code = category_code
    txn.subcategory_code = subcategory_code
    txn.category_source = "rules"
    txn.category_confidence = Decimal(str(confidence)) if confidence is not None else None
    txn.categorized_at = _now()


def _apply_user_rules(repo: UserRepository, txn: FfTransaction) -> bool:
    for rule in repo.category_rules_for_account(txn.account_id):
        if rule_matches(rule, txn):
            _assign(txn, category_code=rule.category_code)
            logger.debug("txn %s: category rule %s -> %s", txn.id, rule.id, rule.category_code)
            return True
    return False


def _apply_merchant_patterns(repo: UserRepository, txn: FfTransaction) -> bool:
    match = find_merchant_match(txn.raw_description or "")
    if match is None:
        return False
    category = repo.find_system_category(match.category_name)
    if category is None:
        logger.debug(
            "txn %s: merchant category %r not in catalog", txn.id, match.category_name
        )
        return False
    subcategory = (
        repo.find_subcategory(category.code, match.subcategory_name)
        if match.subcategory_name
        else None
    )
    _assign(
        txn,
        category_code=category.code,
        subcategory_code=subcategory.code if subcategory is not None else None,
        confidence=match.confidence,
    )
    txn.merchant = match.merchant or txn.merchant
    logger.debug(
        "txn %s: merchant %r -> %s (%.2f)", txn.id, match.merchant, category.code, match.confidence
    )
    return True


def _apply_system_category(repo: UserRepository, txn: FfTransaction, name: str) -> bool:
    category = repo.find_system_category(name)
    if category is None:
        logger.warning("System category %r missing; seed the taxonomy", name)
        return False
    _assign(txn, category_code=category.code)
    return True


def categorize_transaction(repo: UserRepository, transaction_id: int) -> bool:
    """Categorize one transaction; return whether a category was applied."""

    txn = repo.get_transaction(transaction_id)
    if txn is None:
        return False
    if txn.category_source == "manual":
        return False

    applied = (
        _apply_user_rules(repo, txn)
        or _apply_merchant_patterns(repo, txn)
        or (txn.is_internal_transfer and _apply_system_category(repo, txn, TRANSFERS_CATEGORY))
        or (txn.is_income and _apply_system_category(repo, txn, INCOME_CATEGORY))
    )
    if applied:
        repo.flush()
    return bool(applied)


def categorize_transactions(
    repo: UserRepository, transaction_ids: Sequence[int]
) -> CategorizationReport:
    """Categorize each id in its own SAVEPOINT; failures are collected, not raised."""

    categorized = 0
    failures: list[ItemFailure] = []
    for transaction_id in transaction_ids:
        try:
            with repo.savepoint():
                if categorize_transaction(repo, transaction_id):
                    categorized += 1
        except Exception as exc:
            logger.exception("Categorization failed for transaction %s", transaction_id)
            failures.append(ItemFailure(transaction_id, str(exc) or exc.__class__.__name__))
    return CategorizationReport(
        total=len(transaction_ids), categorized=categorized, failures=tuple(failures)
    )


def categorize_all_transactions(repo: UserRepository) -> CategorizationReport:
    """Run :func:`categorize_transaction` over every uncategorized transaction."""

    report = categorize_transactions(repo, repo.transaction_ids(uncategorized=True))
    logger.info(
        "Categorized %d of %d transactions for user %s (%d failures)",
        report.categorized,
        report.total,
        repo.user_id,
        len(report.failures),
    )
    return report


# ---------------------------
# Correction learner
# ---------------------------


def _frequent_words(descriptions: Sequence[str]) -> list[str]:
    """Words longer than three characters contained in at least half the descriptions."""

    candidates: dict[str, None] = {}
    for description in descriptions:
        for word in description.split():
            if len(word) >= LEARNER_MIN_WORD_LENGTH:
                candidates.setdefault(word, None)

    threshold = len(descriptions) * LEARNER_MIN_WORD_SHARE
    return [
        word
        for word in candidates
        if sum(1 for d in descriptions if word in d) >= threshold
    ]


def learn_from_corrections(repo: UserRepository) -> int:
    """Synthesize keyword rules from repeated manual category corrections.

    Reads the latest 100 category corrections, groups them by the category
    the user chose, and for each group of at least two builds the set of
    description words (longer than three characters) found in at least half
    of that group's descriptions. A rule with priority 50 is created unless an
    existing rule for the category already shares one of those keywords.
    Returns the number of rules created.
    """

    corrections = repo.recent_corrections("category", limit=LEARNER_CORRECTION_LIMIT)

    by_category: dict[str, list[str]] = defaultdict(list)
    for correction in corrections:
        if not correction.new_value:
            continue
        txn = repo.get_transaction(correction.transaction_id)
        if txn is None:
            continue
        by_category[correction.new_value].append((txn.raw_description or "").lower())

    created = 0
    for category_code, descriptions in by_category.items():
        if len(descriptions) < LEARNER_MIN_GROUP_SIZE:
            continue
        words = _frequent_words(descriptions)
        if not words:
            continue
        if repo.get_category(category_code) is None:
            logger.warning("Skipping learned rule for unknown category %r", category_code)
            continue

        wanted = set(words)
        covered = any(
            wanted & {k.lower() for k in (rule.description_includes or ())}
            for rule in repo.list_category_rules(category_code=category_code)
        )
        if covered:
            continue

        repo.add_category_rule(
            category_code=category_code,
            description_includes=words,
            priority=LEARNED_RULE_PRIORITY,
        )
        created += 1
        logger.info("Learned rule for %s from %d corrections: %s", category_code, len(descriptions), words)

    return created


__all__ = [
    "INCOME_CATEGORY",
    "TRANSFERS_CATEGORY",
    "categorize_all_transactions",
    "categorize_transaction",
    "categorize_transactions",
    "learn_from_corrections",
    "rule_matches",
]
