from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    CHAR,
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import expression as sa_expr

# SQLite only autoincrements INTEGER PRIMARY KEY columns.
_BigIntId = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    pass


# ---------------------------
# Owners: ff_users, ff_accounts
# ---------------------------


class FfUser(Base):
    __tablename__ = "ff_users"

    id: Mapped[int] = mapped_column(_BigIntId, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    base_currency: Mapped[str] = mapped_column(
        CHAR(3), nullable=False, server_default=text("'USD'")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class FfAccount(Base):
    __tablename__ = "ff_accounts"

    id: Mapped[int] = mapped_column(_BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("ff_users.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    # Exact statement parser registry key (e.g. "Chase", "HDFC Bank").
    institution: Mapped[str] = mapped_column(String, nullable=False)
    currency: Mapped[str] = mapped_column(CHAR(3), nullable=False, server_default=text("'USD'"))
    current_balance: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# ---------------------------
# Reference: ff_categories
# ---------------------------


class FfCategory(Base):
    __tablename__ = "ff_categories"

    code: Mapped[str] = mapped_column(String, primary_key=True)
    # Lookups by name are scoped per parent; children of different parents may
    # share a display name (e.g. "Other").
    display_name: Mapped[str] = mapped_column(String, nullable=False)
    # Two-level depth: a parent must itself be top-level. Enforced in
    # ``finflow.categories`` rather than with recursive DB constraints.
    parent_code: Mapped[str | None] = mapped_column(
        String,
        ForeignKey("ff_categories.code", deferrable=True, initially="DEFERRED"),
        nullable=True,
    )
    is_system: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=sa_expr.false()
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=sa_expr.true())
    sort_order: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# Display names are unique per parent, case-insensitively.
Index(
    "uq_ff_categories_parent_name",
    func.coalesce(FfCategory.parent_code, ""),
    func.lower(FfCategory.display_name),
    unique=True,
)


# ---------------------------
# Uploads: ff_statement_files
# ---------------------------


class FfStatementFile(Base):
    __tablename__ = "ff_statement_files"

    id: Mapped[int] = mapped_column(_BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("ff_users.id"), nullable=False, index=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("ff_accounts.id"), nullable=False)
    original_filename: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("'processing'")
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    period_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    period_end: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "status in ('processing','parsed','failed')",
            name="ck_ff_statement_status",
        ),
    )


# ---------------------------
# Core: ff_transactions
# ---------------------------


class FfTransaction(Base):
    __tablename__ = "ff_transactions"

    id: Mapped[int] = mapped_column(_BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("ff_users.id"), nullable=False)
    account_id: Mapped[int] = mapped_column(ForeignKey("ff_accounts.id"), nullable=False)
    statement_file_id: Mapped[int | None] = mapped_column(
        ForeignKey("ff_statement_files.id"), nullable=True
    )
    # Stable hash over account/date/amount/description/balance; re-uploading a
    # statement must not duplicate rows.
    fingerprint_sha256: Mapped[str] = mapped_column(CHAR(64), nullable=False, unique=True)
    posted_at: Mapped[datetime] = mapped_column(DateTime(), nullable=False)
    # Signed: credits positive, debits negative. Fixed at insert time from the
    # parser's direction, never from the parser's magnitude sign.
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    currency: Mapped[str] = mapped_column(CHAR(3), nullable=False, server_default=text("'USD'"))
    direction: Mapped[str] = mapped_column(String, nullable=False)
    balance: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    raw_description: Mapped[str] = mapped_column(Text, nullable=False)
    normalized_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    merchant: Mapped[str | None] = mapped_column(Text, nullable=True)
    category_code: Mapped[str | None] = mapped_column(
        String,
        ForeignKey("ff_categories.code", deferrable=True, initially="DEFERRED"),
        nullable=True,
    )
    subcategory_code: Mapped[str | None] = mapped_column(
        String,
        ForeignKey("ff_categories.code", deferrable=True, initially="DEFERRED"),
        nullable=True,
    )
    category_source: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("'none'")
    )
    category_confidence: Mapped[Decimal | None] = mapped_column(Numeric(3, 2), nullable=True)
    categorized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_internal_transfer: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=sa_expr.false()
    )
    is_income: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=sa_expr.false())
    is_expense: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=sa_expr.false()
    )
    transfer_group_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    counterparty_account_id: Mapped[int | None] = mapped_column(
        ForeignKey("ff_accounts.id"), nullable=True
    )
    # Flow rule most recently applied; its time window drives transfer pairing.
    flow_rule_id: Mapped[int | None] = mapped_column(
        ForeignKey("ff_flow_rules.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "category_source in ('manual','rules','none')",
            name="ck_ff_tx_category_source",
        ),
        CheckConstraint("direction in ('credit','debit')", name="ck_ff_tx_direction"),
        CheckConstraint(
            "NOT (is_internal_transfer AND (is_income OR is_expense))",
            name="ck_ff_tx_transfer_flags",
        ),
        CheckConstraint(
            (
                "category_confidence IS NULL OR "
                "(category_confidence >= 0 AND category_confidence <= 1)"
            ),
            name="ck_ff_tx_category_confidence",
        ),
        Index("ix_ff_tx_user_posted_at", "user_id", "posted_at"),
    )


# ---------------------------
# Learning: ff_transaction_corrections
# ---------------------------


class FfTransactionCorrection(Base):
    __tablename__ = "ff_transaction_corrections"

    id: Mapped[int] = mapped_column(_BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("ff_users.id"), nullable=False, index=True)
    transaction_id: Mapped[int] = mapped_column(ForeignKey("ff_transactions.id"), nullable=False)
    field: Mapped[str] = mapped_column(String, nullable=False)
    old_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    new_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# ---------------------------
# Rules: ff_category_rules, ff_flow_rules
# ---------------------------


class FfCategoryRule(Base):
    __tablename__ = "ff_category_rules"

    id: Mapped[int] = mapped_column(_BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("ff_users.id"), nullable=False, index=True)
    category_code: Mapped[str] = mapped_column(
        String,
        ForeignKey("ff_categories.code", deferrable=True, initially="DEFERRED"),
        nullable=False,
    )
    description_includes: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    merchant: Mapped[str | None] = mapped_column(Text, nullable=True)
    # NULL applies to every account of the user.
    account_id: Mapped[int | None] = mapped_column(ForeignKey("ff_accounts.id"), nullable=True)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class FfFlowRule(Base):
    __tablename__ = "ff_flow_rules"

    id: Mapped[int] = mapped_column(_BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("ff_users.id"), nullable=False, index=True)
    source_account_id: Mapped[int | None] = mapped_column(
        ForeignKey("ff_accounts.id"), nullable=True
    )
    destination_account_id: Mapped[int | None] = mapped_column(
        ForeignKey("ff_accounts.id"), nullable=True
    )
    match_direction: Mapped[str] = mapped_column(
        String, nullable=False, server_default=text("'both'")
    )
    description_includes: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    description_regex: Mapped[str | None] = mapped_column(Text, nullable=True)
    min_amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    max_amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    time_window_hours: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("48")
    )
    handling: Mapped[str] = mapped_column(String, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=sa_expr.true())
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "match_direction in ('in','out','both')",
            name="ck_ff_flow_rule_direction",
        ),
        CheckConstraint(
            "handling in ('internal_transfer','income','expense','ignore')",
            name="ck_ff_flow_rule_handling",
        ),
    )


__all__ = [
    "Base",
    "FfUser",
    "FfAccount",
    "FfCategory",
    "FfStatementFile",
    "FfTransaction",
    "FfTransactionCorrection",
    "FfCategoryRule",
    "FfFlowRule",
]
