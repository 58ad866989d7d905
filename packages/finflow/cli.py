# ruff: noqa: I001
"""CLI for the ``finflow`` package.

This module exposes callable command handlers (``cmd_parse_statement``,
``cmd_ingest_statement``, ...) and a Typer-based console interface. Environment
variables (notably ``DATABASE_URL``) are loaded from a local ``.env`` using
``python-dotenv`` before delegating to command logic. Business logic lives in
``finflow.api`` and related modules; handlers only translate arguments, open a
session scope and print results.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import ArgumentInfo

from .logging_setup import configure_logging


def _read_pdf(pdf_path: str) -> bytes | None:
    try:
        return Path(pdf_path).read_bytes()
    except FileNotFoundError:
        print(f"Error: File not found: {pdf_path}", file=sys.stderr)
    except PermissionError:
        print(f"Error: Permission denied: {pdf_path}", file=sys.stderr)
    except OSError as e:
        print(f"Error: Unexpected failure reading '{pdf_path}': {e}", file=sys.stderr)
    return None


# ---- Command handlers ---------------------------------------------------------


def cmd_list_parsers() -> int:
    from .parsers import available_parsers

    for name in available_parsers():
        print(name)
    return 0


def cmd_parse_statement(pdf_path: str, institution: str) -> int:
    """Parse a statement without touching the database.

    Prints one ``date<TAB>direction<TAB>amount<TAB>balance<TAB>description``
    line per transaction, then warnings and errors on stderr.
    """

    from .parsers import has_parser, parse_statement

    if not has_parser(institution):
        print(f"Error: No parser available for institution: {institution}", file=sys.stderr)
        return 1
    buffer = _read_pdf(pdf_path)
    if buffer is None:
        return 1

    result = parse_statement(buffer, institution)
    for txn in result.transactions:
        balance = "" if txn.balance is None else f"{txn.balance}"
        print(f"{txn.date.isoformat()}\t{txn.direction}\t{txn.amount}\t{balance}\t{txn.description}")
    if result.period_start or result.period_end:
        print(f"Period: {result.period_start or '?'} .. {result.period_end or '?'}")
    if result.closing_balance is not None:
        print(f"Closing balance: {result.closing_balance}")
    for warning in result.warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    for error in result.errors:
        print(f"Error: {error}", file=sys.stderr)
    return 0 if result.ok else 1


def cmd_ingest_statement(
    pdf_path: str, *, user_id: int, account_id: int, database_url: str | None = None
) -> int:
    buffer = _read_pdf(pdf_path)
    if buffer is None:
        return 1

    from db.client import session_scope

    from .ingestion import ingest_statement
    from .repository import UserRepository

    try:
        with session_scope(database_url=database_url) as session:
            repo = UserRepository(session, user_id)
            result = ingest_statement(repo, account_id, buffer, filename=Path(pdf_path).name)
    except Exception as e:
        print(f"Error: ingestion failed: {e}", file=sys.stderr)
        return 1

    for warning in result.warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    if result.status == "failed":
        for error in result.errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1
    print(
        f"Statement {result.statement_file_id}: {result.inserted} new, "
        f"{result.duplicates} duplicate, {result.categorized} categorized"
    )
    for failure in result.failures:
        print(f"Warning: transaction {failure.item_id}: {failure.error}", file=sys.stderr)
    return 0


def cmd_categorize(*, user_id: int, database_url: str | None = None) -> int:
    from db.client import session_scope

    from .categorization import categorize_all_transactions
    from .repository import UserRepository

    try:
        with session_scope(database_url=database_url) as session:
            report = categorize_all_transactions(UserRepository(session, user_id))
    except Exception as e:
        print(f"Error: categorization failed: {e}", file=sys.stderr)
        return 1

    print(f"Categorized {report.categorized} of {report.total} transactions")
    for failure in report.failures:
        print(f"Warning: transaction {failure.item_id}: {failure.error}", file=sys.stderr)
    return 0


def cmd_learn_rules(*, user_id: int, database_url: str | None = None) -> int:
    from db.client import session_scope

    from .categorization import learn_from_corrections
    from .repository import UserRepository

    try:
        with session_scope(database_url=database_url) as session:
            created = learn_from_corrections(UserRepository(session, user_id))
    except Exception as e:
        print(f"Error: rule learning failed: {e}", file=sys.stderr)
        return 1

    print(f"Created {created} rule(s) from corrections")
    return 0


def cmd_process_flow_rules(
    *,
    user_id: int,
    time_window_hours: int,
    strategy: str = "greedy",
    database_url: str | None = None,
) -> int:
    from db.client import session_scope

    from .flow_rules import process_transactions_with_flow_rules
    from .repository import UserRepository
    from .transfers import GlobalNearestPairing, GreedyNearestPairing

    strategies = {"greedy": GreedyNearestPairing, "global": GlobalNearestPairing}
    if strategy not in strategies:
        print(f"Error: unknown pairing strategy: {strategy}", file=sys.stderr)
        return 1

    try:
        with session_scope(database_url=database_url) as session:
            report = process_transactions_with_flow_rules(
                UserRepository(session, user_id),
                time_window_hours=time_window_hours,
                strategy=strategies[strategy](),
            )
    except Exception as e:
        print(f"Error: flow rule processing failed: {e}", file=sys.stderr)
        return 1

    print(
        f"Processed {report.processed} transactions; "
        f"{len(report.pairs)} transfer pair(s); {report.transfers} transfers total"
    )
    for pair in report.pairs:
        print(f"{pair.transfer_group_id}\t{pair.first_transaction_id}\t{pair.second_transaction_id}")
    for failure in report.failures:
        print(f"Warning: transaction {failure.item_id}: {failure.error}", file=sys.stderr)
    return 0


def cmd_seed_taxonomy(*, file: Path | None = None, database_url: str | None = None) -> int:
    from .ingest.seed_taxonomy import DEFAULT_SEED_FILE, reseed_taxonomy

    try:
        created = reseed_taxonomy(database_url=database_url, file=file or DEFAULT_SEED_FILE)
    except Exception as e:
        print(f"Error: taxonomy seeding failed: {e}", file=sys.stderr)
        return 1

    print(f"Seeded taxonomy: {created} new categories")
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Ingest bank-statement PDFs, categorize transactions and reconcile "
        "internal transfers. Loads DATABASE_URL from a local .env before running."
    ),
)


# Module-level argument object to satisfy ruff B008 (no calls in parameter
# defaults). Typer will inspect this when used as a default value below.
PDF_PATH_ARGUMENT: ArgumentInfo = typer.Argument(
    ...,
    help="Path to a statement PDF",
    dir_okay=False,
    file_okay=True,
    exists=False,  # allow non-existent here; the handler will report nice errors
)


def _exit(code: int) -> None:
    if code:
        raise typer.Exit(code)


@app.command("list-parsers")
def list_parsers_cmd() -> None:
    """List institutions with a registered statement parser."""

    _exit(cmd_list_parsers())


@app.command("parse-statement")
def parse_statement_cmd(
    pdf_path: Annotated[Path, PDF_PATH_ARGUMENT],
    *,
    institution: str = typer.Option(
        ..., help="Institution name exactly as registered (see list-parsers)."
    ),
) -> None:
    """Parse a statement PDF and print its transactions (no persistence)."""

    _exit(cmd_parse_statement(str(pdf_path), institution))


@app.command("ingest-statement")
def ingest_statement_cmd(
    pdf_path: Annotated[Path, PDF_PATH_ARGUMENT],
    *,
    user_id: int = typer.Option(..., help="Owner of the account."),
    account_id: int = typer.Option(..., help="Account the statement belongs to."),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Parse, deduplicate, persist and categorize a statement."""

    _exit(
        cmd_ingest_statement(
            str(pdf_path), user_id=user_id, account_id=account_id, database_url=database_url
        )
    )


@app.command("categorize")
def categorize_cmd(
    *,
    user_id: int = typer.Option(..., help="User whose uncategorized transactions to process."),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Run the rule-based categorization engine over uncategorized transactions."""

    _exit(cmd_categorize(user_id=user_id, database_url=database_url))


@app.command("learn-rules")
def learn_rules_cmd(
    *,
    user_id: int = typer.Option(..., help="User whose corrections to learn from."),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Create keyword category rules from repeated manual corrections."""

    _exit(cmd_learn_rules(user_id=user_id, database_url=database_url))


@app.command("process-flow-rules")
def process_flow_rules_cmd(
    *,
    user_id: int = typer.Option(..., help="User whose transactions to process."),
    time_window_hours: int = typer.Option(
        48, min=1, help="Pairing window for transfers not flagged by a flow rule."
    ),
    strategy: str = typer.Option("greedy", help="Transfer pairing policy: greedy or global."),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Apply flow rules and pair internal transfers."""

    _exit(
        cmd_process_flow_rules(
            user_id=user_id,
            time_window_hours=time_window_hours,
            strategy=strategy,
            database_url=database_url,
        )
    )


@app.command("seed-taxonomy")
def seed_taxonomy_cmd(
    *,
    file: Path | None = typer.Option(
        None, help="Taxonomy JSON (defaults to the bundled ff_taxonomy.v1.json)."
    ),
    database_url: str | None = typer.Option(
        None, help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Upsert the two-level system category taxonomy."""

    _exit(cmd_seed_taxonomy(file=file, database_url=database_url))


@app.callback(invoke_without_command=True)
def _root(ctx: typer.Context) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures package logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover - exercised via the console script
    app()
