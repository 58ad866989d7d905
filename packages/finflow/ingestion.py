"""Statement ingestion: parse an uploaded PDF and persist its transactions.

Flow for one upload:

1. record an ``ff_statement_files`` row in ``processing``;
2. parse with the account's institution parser;
3. on parser errors mark the statement ``failed`` (errors joined with
   ``"; "``) and persist nothing;
4. insert the lines (duplicates of earlier uploads are skipped), categorize
   each new row, store the statement period, mark it ``parsed`` and update
   the account balance when the statement reports a closing balance.
"""

from __future__ import annotations

from .categorization import categorize_transactions
from .logging_setup import get_logger
from .models import IngestionResult
from .parsers import ParserRegistry, parse_statement
from .persistence import insert_statement_transactions
from .repository import UserRepository

logger = get_logger("finflow.ingestion")


def ingest_statement(
    repo: UserRepository,
    account_id: int,
    buffer: bytes,
    *,
    filename: str,
    registry: ParserRegistry | None = None,
) -> IngestionResult:
    account = repo.get_account(account_id)
    if account is None:
        raise ValueError(f"Account not found: {account_id}")

    statement = repo.add_statement_file(account_id=account.id, original_filename=filename)
    result = parse_statement(buffer, account.institution, registry=registry)

    if result.errors:
        statement.status = "failed"
        statement.error_message = "; ".join(result.errors)
        repo.flush()
        logger.warning(
            "Statement %s (%s) failed to parse: %s",
            statement.id,
            filename,
            statement.error_message,
        )
        return IngestionResult(
            statement_file_id=statement.id,
            status="failed",
            errors=result.errors,
            warnings=result.warnings,
        )

    new_ids, duplicates = insert_statement_transactions(
        repo.session,
        user_id=repo.user_id,
        account_id=account.id,
        statement_file_id=statement.id,
        currency=account.currency or "USD",
        transactions=result.transactions,
    )
    report = categorize_transactions(repo, new_ids)

    statement.period_start = result.period_start
    statement.period_end = result.period_end
    statement.status = "parsed"
    if result.closing_balance is not None:
        account.current_balance = result.closing_balance
    repo.flush()

    logger.info(
        "Statement %s (%s): %d new, %d duplicate, %d categorized",
        statement.id,
        filename,
        len(new_ids),
        duplicates,
        report.categorized,
    )
    return IngestionResult(
        statement_file_id=statement.id,
        status="parsed",
        inserted=len(new_ids),
        duplicates=duplicates,
        categorized=report.categorized,
        warnings=result.warnings,
        failures=report.failures,
    )


__all__ = ["ingest_statement"]
