"""Public interface for the ``finflow`` package.

Bank-statement ingestion, rule-based categorization and flow-rule transfer
reconciliation. Symbols are re-exported from :mod:`finflow.api` and
:mod:`finflow.models`; there is no runtime logic here.
"""

from .api import (
    CategoryRuleSpec,
    FlowRuleSpec,
    UserRepository,
    apply_flow_rule,
    available_parsers,
    categorize_all_transactions,
    categorize_transaction,
    create_category_rule,
    create_flow_rule,
    evaluate_flow_rules,
    find_transfer_pairs,
    has_parser,
    ingest_statement,
    learn_from_corrections,
    parse_statement,
    process_transactions_with_flow_rules,
    set_transaction_category,
)
from .models import (
    CategorizationReport,
    FlowProcessingReport,
    FlowRuleMatch,
    IngestionResult,
    ItemFailure,
    MerchantMatch,
    ParsedStatementResult,
    RawTransaction,
    TransferPair,
)

__all__ = [
    # API
    "UserRepository",
    "parse_statement",
    "has_parser",
    "available_parsers",
    "ingest_statement",
    "categorize_transaction",
    "categorize_all_transactions",
    "learn_from_corrections",
    "evaluate_flow_rules",
    "apply_flow_rule",
    "find_transfer_pairs",
    "process_transactions_with_flow_rules",
    "FlowRuleSpec",
    "CategoryRuleSpec",
    "create_flow_rule",
    "create_category_rule",
    "set_transaction_category",
    # Models
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
