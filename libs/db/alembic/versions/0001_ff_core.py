# ruff: noqa: I001
"""Statement ingestion, categorization and flow-rule tables.

Revision ID: 0001_ff_core
Revises: None
Create Date: 2026-10-19
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_ff_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("now()"),
    )


def upgrade() -> None:
    op.create_table(
        "ff_users",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.Text(), nullable=False, unique=True),
        sa.Column("base_currency", sa.CHAR(3), nullable=False, server_default=sa.text("'USD'")),
        _created_at(),
    )

    op.create_table(
        "ff_accounts",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("ff_users.id"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("institution", sa.Text(), nullable=False),
        sa.Column("currency", sa.CHAR(3), nullable=False, server_default=sa.text("'USD'")),
        sa.Column("current_balance", sa.Numeric(18, 2), nullable=True),
        _created_at(),
    )
    op.create_index("ix_ff_accounts_user_id", "ff_accounts", ["user_id"])

    op.create_table(
        "ff_categories",
        sa.Column("code", sa.Text(), primary_key=True),
        sa.Column("display_name", sa.Text(), nullable=False),
        sa.Column(
            "parent_code",
            sa.Text(),
            sa.ForeignKey("ff_categories.code", deferrable=True, initially="DEFERRED"),
            nullable=True,
        ),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("sort_order", sa.Integer(), nullable=True),
        _created_at(),
    )
    # Sibling names are unique per parent; top-level names are unique among roots.
    op.create_index(
        "uq_ff_categories_parent_name",
        "ff_categories",
        [sa.text("coalesce(parent_code, '')"), sa.text("lower(display_name)")],
        unique=True,
    )

    op.create_table(
        "ff_statement_files",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("ff_users.id"), nullable=False),
        sa.Column("account_id", sa.BigInteger(), sa.ForeignKey("ff_accounts.id"), nullable=False),
        sa.Column("original_filename", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'processing'")),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("period_start", sa.Date(), nullable=True),
        sa.Column("period_end", sa.Date(), nullable=True),
        _created_at(),
        sa.CheckConstraint(
            "status in ('processing','parsed','failed')", name="ck_ff_statement_status"
        ),
    )
    op.create_index("ix_ff_statement_files_user_id", "ff_statement_files", ["user_id"])

    op.create_table(
        "ff_flow_rules",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("ff_users.id"), nullable=False),
        sa.Column(
            "source_account_id", sa.BigInteger(), sa.ForeignKey("ff_accounts.id"), nullable=True
        ),
        sa.Column(
            "destination_account_id",
            sa.BigInteger(),
            sa.ForeignKey("ff_accounts.id"),
            nullable=True,
        ),
        sa.Column("match_direction", sa.Text(), nullable=False, server_default=sa.text("'both'")),
        sa.Column("description_includes", sa.JSON(), nullable=False),
        sa.Column("description_regex", sa.Text(), nullable=True),
        sa.Column("min_amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("max_amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("time_window_hours", sa.Integer(), nullable=False, server_default=sa.text("48")),
        sa.Column("handling", sa.Text(), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("notes", sa.Text(), nullable=True),
        _created_at(),
        sa.CheckConstraint(
            "match_direction in ('in','out','both')", name="ck_ff_flow_rule_direction"
        ),
        sa.CheckConstraint(
            "handling in ('internal_transfer','income','expense','ignore')",
            name="ck_ff_flow_rule_handling",
        ),
    )
    op.create_index("ix_ff_flow_rules_user_id", "ff_flow_rules", ["user_id"])

    op.create_table(
        "ff_transactions",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("ff_users.id"), nullable=False),
        sa.Column("account_id", sa.BigInteger(), sa.ForeignKey("ff_accounts.id"), nullable=False),
        sa.Column(
            "statement_file_id",
            sa.BigInteger(),
            sa.ForeignKey("ff_statement_files.id"),
            nullable=True,
        ),
        sa.Column("fingerprint_sha256", sa.CHAR(64), nullable=False, unique=True),
        sa.Column("posted_at", sa.DateTime(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("currency", sa.CHAR(3), nullable=False, server_default=sa.text("'USD'")),
        sa.Column("direction", sa.Text(), nullable=False),
        sa.Column("balance", sa.Numeric(18, 2), nullable=True),
        sa.Column("raw_description", sa.Text(), nullable=False),
        sa.Column("normalized_description", sa.Text(), nullable=True),
        sa.Column("merchant", sa.Text(), nullable=True),
        sa.Column(
            "category_code",
            sa.Text(),
            sa.ForeignKey("ff_categories.code", deferrable=True, initially="DEFERRED"),
            nullable=True,
        ),
        sa.Column(
            "subcategory_code",
            sa.Text(),
            sa.ForeignKey("ff_categories.code", deferrable=True, initially="DEFERRED"),
            nullable=True,
        ),
        sa.Column("category_source", sa.Text(), nullable=False, server_default=sa.text("'none'")),
        sa.Column("category_confidence", sa.Numeric(3, 2), nullable=True),
        sa.Column("categorized_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "is_internal_transfer", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
        sa.Column("is_income", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_expense", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("transfer_group_id", sa.Text(), nullable=True),
        sa.Column(
            "counterparty_account_id",
            sa.BigInteger(),
            sa.ForeignKey("ff_accounts.id"),
            nullable=True,
        ),
        sa.Column(
            "flow_rule_id",
            sa.BigInteger(),
            sa.ForeignKey("ff_flow_rules.id", ondelete="SET NULL"),
            nullable=True,
        ),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.CheckConstraint(
            "category_source in ('manual','rules','none')", name="ck_ff_tx_category_source"
        ),
        sa.CheckConstraint("direction in ('credit','debit')", name="ck_ff_tx_direction"),
        sa.CheckConstraint(
            "category_confidence IS NULL OR "
            "(category_confidence >= 0 AND category_confidence <= 1)",
            name="ck_ff_tx_category_confidence",
        ),
        # Internal transfers are neither income nor expense.
        sa.CheckConstraint(
            "NOT (is_internal_transfer AND (is_income OR is_expense))",
            name="ck_ff_tx_transfer_flags",
        ),
    )
    op.create_index("ix_ff_tx_user_posted_at", "ff_transactions", ["user_id", "posted_at"])
    op.create_index("ix_ff_transactions_transfer_group_id", "ff_transactions", ["transfer_group_id"])

    op.create_table(
        "ff_transaction_corrections",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("ff_users.id"), nullable=False),
        sa.Column(
            "transaction_id",
            sa.BigInteger(),
            sa.ForeignKey("ff_transactions.id"),
            nullable=False,
        ),
        sa.Column("field", sa.Text(), nullable=False),
        sa.Column("old_value", sa.Text(), nullable=True),
        sa.Column("new_value", sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_index(
        "ix_ff_transaction_corrections_user_id", "ff_transaction_corrections", ["user_id"]
    )

    op.create_table(
        "ff_category_rules",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("ff_users.id"), nullable=False),
        sa.Column(
            "category_code",
            sa.Text(),
            sa.ForeignKey("ff_categories.code", deferrable=True, initially="DEFERRED"),
            nullable=False,
        ),
        sa.Column("description_includes", sa.JSON(), nullable=False),
        sa.Column("merchant", sa.Text(), nullable=True),
        sa.Column("account_id", sa.BigInteger(), sa.ForeignKey("ff_accounts.id"), nullable=True),
        sa.Column("priority", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _created_at(),
    )
    op.create_index("ix_ff_category_rules_user_id", "ff_category_rules", ["user_id"])


def downgrade() -> None:
    op.drop_table("ff_category_rules")
    op.drop_table("ff_transaction_corrections")
    op.drop_table("ff_transactions")
    op.drop_table("ff_flow_rules")
    op.drop_table("ff_statement_files")
    op.drop_index("uq_ff_categories_parent_name", table_name="ff_categories")
    op.drop_table("ff_categories")
    op.drop_table("ff_accounts")
    op.drop_table("ff_users")
