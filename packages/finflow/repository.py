"""User-scoped data access.

Every query issued by the engines goes through a :class:`UserRepository`
bound to one user id, so rows of other users are unreachable by construction:
lookups by id return ``None`` for a foreign row exactly as for a missing one.

Callers own the session and its transaction (``db.client.session_scope``).
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime

from db.models.finance import (
    FfAccount,
    FfCategory,
    FfCategoryRule,
    FfFlowRule,
    FfStatementFile,
    FfTransaction,
    FfTransactionCorrection,
    FfUser,
)
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from .categories import find_subcategory, find_system_category, get_category


class UserRepository:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"UserRepository(user_id={self.user_id})"

    @contextmanager
    def savepoint(self) -> Iterator[None]:
        """Run a block in a SAVEPOINT; on error only that block is rolled back."""

        with self.session.begin_nested():
            yield

    def flush(self) -> None:
        self.session.flush()

    # ---------------------------
    # Users and accounts
    # ---------------------------

    def get_user(self) -> FfUser | None:
        return self.session.get(FfUser, self.user_id)

    def get_account(self, account_id: int) -> FfAccount | None:
        return self.session.execute(
            select(FfAccount).where(FfAccount.id == account_id, FfAccount.user_id == self.user_id)
        ).scalar_one_or_none()

    def list_accounts(self) -> Sequence[FfAccount]:
        return (
            self.session.execute(
                select(FfAccount).where(FfAccount.user_id == self.user_id).order_by(FfAccount.id)
            )
            .scalars()
            .all()
        )

    # ---------------------------
    # Statements
    # ---------------------------

    def add_statement_file(self, *, account_id: int, original_filename: str) -> FfStatementFile:
        row = FfStatementFile(
            user_id=self.user_id,
            account_id=account_id,
            original_filename=original_filename,
            status="processing",
        )
        self.session.add(row)
        self.session.flush()
        return row

    def get_statement_file(self, statement_file_id: int) -> FfStatementFile | None:
        return self.session.execute(
            select(FfStatementFile).where(
                FfStatementFile.id == statement_file_id,
                FfStatementFile.user_id == self.user_id,
            )
        ).scalar_one_or_none()

    # ---------------------------
    # Transactions
    # ---------------------------

    def get_transaction(self, transaction_id: int) -> FfTransaction | None:
        return self.session.execute(
            select(FfTransaction).where(
                FfTransaction.id == transaction_id, FfTransaction.user_id == self.user_id
            )
        ).scalar_one_or_none()

    def transaction_ids(self, *, uncategorized: bool = False) -> list[int]:
        """Ids of the user's transactions in posting order."""

        stmt = select(FfTransaction.id).where(FfTransaction.user_id == self.user_id)
        if uncategorized:
            stmt = stmt.where(FfTransaction.category_code.is_(None))
        stmt = stmt.order_by(FfTransaction.posted_at, FfTransaction.id)
        return list(self.session.execute(stmt).scalars().all())

    def unpaired_transfers(self) -> Sequence[FfTransaction]:
        """Transfers without a group, most recent first."""

        return (
            self.session.execute(
                select(FfTransaction)
                .where(
                    FfTransaction.user_id == self.user_id,
                    FfTransaction.is_internal_transfer.is_(True),
                    FfTransaction.transfer_group_id.is_(None),
                )
                .order_by(FfTransaction.posted_at.desc(), FfTransaction.id.desc())
            )
            .scalars()
            .all()
        )

    def unpaired_between(self, start: datetime, end: datetime) -> Sequence[FfTransaction]:
        """Transactions without a transfer group posted in ``[start, end]``."""

        return (
            self.session.execute(
                select(FfTransaction)
                .where(
                    FfTransaction.user_id == self.user_id,
                    FfTransaction.transfer_group_id.is_(None),
                    FfTransaction.posted_at >= start,
                    FfTransaction.posted_at <= end,
                )
                .order_by(FfTransaction.posted_at, FfTransaction.id)
            )
            .scalars()
            .all()
        )

    def count_transfers(self) -> int:
        return int(
            self.session.execute(
                select(func.count(FfTransaction.id)).where(
                    FfTransaction.user_id == self.user_id,
                    FfTransaction.is_internal_transfer.is_(True),
                )
            ).scalar_one()
        )

    # ---------------------------
    # Categories (global reference data)
    # ---------------------------

    def get_category(self, code: str) -> FfCategory | None:
        return get_category(self.session, code)

    def find_system_category(self, name: str) -> FfCategory | None:
        return find_system_category(self.session, name)

    def find_subcategory(self, parent_code: str, name: str) -> FfCategory | None:
        return find_subcategory(self.session, parent_code, name)

    # ---------------------------
    # Category rules and corrections
    # ---------------------------

    def category_rules_for_account(self, account_id: int) -> Sequence[FfCategoryRule]:
        """Rules applying to ``account_id`` (unscoped or scoped to it), highest priority first."""

        return (
            self.session.execute(
                select(FfCategoryRule)
                .where(
                    FfCategoryRule.user_id == self.user_id,
                    or_(
                        FfCategoryRule.account_id.is_(None),
                        FfCategoryRule.account_id == account_id,
                    ),
                )
                .order_by(FfCategoryRule.priority.desc(), FfCategoryRule.id)
            )
            .scalars()
            .all()
        )

    def list_category_rules(self, *, category_code: str | None = None) -> Sequence[FfCategoryRule]:
        stmt = select(FfCategoryRule).where(FfCategoryRule.user_id == self.user_id)
        if category_code is not None:
            stmt = stmt.where(FfCategoryRule.category_code == category_code)
        stmt = stmt.order_by(FfCategoryRule.priority.desc(), FfCategoryRule.id)
        return self.session.execute(stmt).scalars().all()

    def add_category_rule(
        self,
        *,
        category_code: str,
        description_includes: Sequence[str] = (),
        merchant: str | None = None,
        account_id: int | None = None,
        priority: int = 0,
    ) -> FfCategoryRule:
        row = FfCategoryRule(
            user_id=self.user_id,
            category_code=category_code,
            description_includes=list(description_includes),
            merchant=merchant,
            account_id=account_id,
            priority=priority,
        )
        self.session.add(row)
        self.session.flush()
        return row

    def recent_corrections(self, field: str, *, limit: int) -> Sequence[FfTransactionCorrection]:
        return (
            self.session.execute(
                select(FfTransactionCorrection)
                .where(
                    FfTransactionCorrection.user_id == self.user_id,
                    FfTransactionCorrection.field == field,
                )
                .order_by(FfTransactionCorrection.created_at.desc(), FfTransactionCorrection.id.desc())
                .limit(limit)
            )
            .scalars()
            .all()
        )

    def add_correction(
        self, *, transaction_id: int, field: str, old_value: str | None, new_value: str | None
    ) -> FfTransactionCorrection:
        row = FfTransactionCorrection(
            user_id=self.user_id,
            transaction_id=transaction_id,
            field=field,
            old_value=old_value,
            new_value=new_value,
        )
        self.session.add(row)
        self.session.flush()
        return row

    # ---------------------------
    # Flow rules
    # ---------------------------

    def active_flow_rules(self) -> Sequence[FfFlowRule]:
        return (
            self.session.execute(
                select(FfFlowRule)
                .where(FfFlowRule.user_id == self.user_id, FfFlowRule.is_active.is_(True))
                .order_by(FfFlowRule.priority.desc(), FfFlowRule.id)
            )
            .scalars()
            .all()
        )

    def get_flow_rule(self, rule_id: int) -> FfFlowRule | None:
        return self.session.execute(
            select(FfFlowRule).where(FfFlowRule.id == rule_id, FfFlowRule.user_id == self.user_id)
        ).scalar_one_or_none()

    def add_flow_rule(self, **values) -> FfFlowRule:
        row = FfFlowRule(user_id=self.user_id, **values)
        self.session.add(row)
        self.session.flush()
        return row


__all__ = ["UserRepository"]
