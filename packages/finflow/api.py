"""Public API surface for the ``finflow`` package.

This module is the stable import surface for host applications (web layer,
scripts, CLI). Implementations live in the engine modules and are re-exported
here.

Typical use::

    from db.client import session_scope
    from finflow.api import UserRepository, ingest_statement, process_transactions_with_flow_rules

    with session_scope() as session:
        repo = UserRepository(session, user_id)
        ingest_statement(repo, account_id, pdf_bytes, filename="jan.pdf")
        process_transactions_with_flow_rules(repo)
"""

from __future__ import annotations

from .categorization import (
    categorize_all_transactions,
    categorize_transaction,
    learn_from_corrections,
)
from .flow_rules import (
    apply_flow_rule,
    evaluate_flow_rules,
    find_transfer_pairs,
    process_transactions_with_flow_rules,
)
from .ingestion import ingest_statement
from .parsers import available_parsers, has_parser, parse_statement
from .repository import UserRepository
from .rules import (
    CategoryRuleSpec,
    FlowRuleSpec,
    create_category_rule,
    create_flow_rule,
    set_transaction_category,
)

__all__ = [
    "UserRepository",
    # Parsing
    "parse_statement",
    "has_parser",
    "available_parsers",
    "ingest_statement",
    # Categorization
    "categorize_transaction",
    "categorize_all_transactions",
    "learn_from_corrections",
    # Flow rules
    "evaluate_flow_rules",
    "apply_flow_rule",
    "find_transfer_pairs",
    "process_transactions_with_flow_rules",
    # Authoring
    "FlowRuleSpec",
    "CategoryRuleSpec",
    "create_flow_rule",
    "create_category_rule",
    "set_transaction_category",
]
