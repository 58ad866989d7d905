"""DB helpers for tests: bootstrap a temporary SQLite DB and build fixtures rows."""

from __future__ import annotations

import hashlib
import itertools
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

from db import Base
from db.client import get_engine
from db.models.finance import FfAccount, FfFlowRule, FfTransaction, FfUser
from sqlalchemy.orm import Session

from finflow.ingest.seed_taxonomy import DEFAULT_SEED_FILE, load_taxonomy_file, seed_taxonomy

_FINGERPRINTS = itertools.count(1)


def bootstrap_sqlite_db(db_file: Path) -> str:
    """Create a SQLite database file, initialize schema, and return the URL.

    Using a file-backed SQLite DB ensures multiple SQLAlchemy connections share
    the same state (in-memory DBs are per-connection by default).
    """

    url = f"sqlite+pysqlite:///{db_file}"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(database_url=url)
    Base.metadata.create_all(bind=engine)
    return url


def seed_default_taxonomy(session: Session) -> int:
    return seed_taxonomy(session, load_taxonomy_file(DEFAULT_SEED_FILE))


def make_user(session: Session, email: str) -> FfUser:
    user = FfUser(email=email, base_currency="USD")
    session.add(user)
    session.flush()
    return user


def make_account(
    session: Session,
    user_id: int,
    *,
    name: str,
    institution: str,
    currency: str = "USD",
) -> FfAccount:
    account = FfAccount(user_id=user_id, name=name, institution=institution, currency=currency)
    session.add(account)
    session.flush()
    return account


def add_transaction(
    session: Session,
    account: FfAccount,
    *,
    posted_at: datetime,
    amount: str | Decimal,
    description: str = "TRANSFER",
    **overrides: Any,
) -> FfTransaction:
    """Insert a transaction row directly; ``amount`` is signed (debits negative)."""

    signed = Decimal(str(amount))
    values: dict[str, Any] = {
        "user_id": account.user_id,
        "account_id": account.id,
        "fingerprint_sha256": hashlib.sha256(f"test-{next(_FINGERPRINTS)}".encode()).hexdigest(),
        "posted_at": posted_at,
        "amount": signed,
        "currency": account.currency,
        "direction": "credit" if signed >= 0 else "debit",
        "raw_description": description,
        "category_source": "none",
        "is_internal_transfer": False,
        "is_income": False,
        "is_expense": False,
    }
    values.update(overrides)
    txn = FfTransaction(**values)
    session.add(txn)
    session.flush()
    return txn


def add_flow_rule(session: Session, user_id: int, **values: Any) -> FfFlowRule:
    values.setdefault("match_direction", "both")
    values.setdefault("description_includes", [])
    values.setdefault("time_window_hours", 48)
    values.setdefault("priority", 0)
    values.setdefault("is_active", True)
    rule = FfFlowRule(user_id=user_id, **values)
    session.add(rule)
    session.flush()
    return rule
