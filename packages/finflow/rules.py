"""Authoring of category/flow rules and manual category overrides.

User input is validated with pydantic models before rows are written;
validation problems surface as ``pydantic.ValidationError``. Referenced rows
(accounts, categories, transactions) must belong to the repository's user,
otherwise ``ValueError`` is raised.
"""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Literal

from db.models.finance import FfCategoryRule, FfFlowRule, FfTransaction
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .logging_setup import get_logger
from .repository import UserRepository

logger = get_logger("finflow.rules")


def _clean_keywords(v: list[str] | tuple[str, ...] | None) -> list[str]:
    if v is None:
        return []
    seen: dict[str, None] = {}
    for item in v:
        s = " ".join(str(item).split())
        if s:
            seen.setdefault(s, None)
    return list(seen)


class FlowRuleSpec(BaseModel):
    """Validated input for a new flow rule."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    handling: Literal["internal_transfer", "income", "expense", "ignore"]
    match_direction: Literal["in", "out", "both"] = "both"
    source_account_id: int | None = None
    destination_account_id: int | None = None
    description_includes: list[str] = Field(default_factory=list)
    description_regex: str | None = None
    min_amount: Decimal | None = Field(default=None, ge=0)
    max_amount: Decimal | None = Field(default=None, ge=0)
    time_window_hours: int = Field(default=48, gt=0)
    priority: int = 0
    is_active: bool = True
    notes: str | None = None

    @field_validator("description_includes", mode="before")
    @classmethod
    def _normalize_keywords(cls, v):
        return _clean_keywords(v)

    @field_validator("description_regex")
    @classmethod
    def _regex_compiles(cls, v: str | None) -> str | None:
        if v is None or v == "":
            return None
        try:
            re.compile(v, re.IGNORECASE)
        except re.error as exc:
            raise ValueError(f"description_regex does not compile: {exc}") from None
        return v

    @model_validator(mode="after")
    def _amount_range(self) -> FlowRuleSpec:
        if (
            self.min_amount is not None
            and self.max_amount is not None
            and self.min_amount > self.max_amount
        ):
            raise ValueError("min_amount must not exceed max_amount")
        return self


class CategoryRuleSpec(BaseModel):
    """Validated input for a keyword/merchant category rule."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    category_code: str = Field(min_length=1)
    description_includes: list[str] = Field(default_factory=list)
    merchant: str | None = None
    account_id: int | None = None
    priority: int = 0

    @field_validator("description_includes", mode="before")
    @classmethod
    def _normalize_keywords(cls, v):
        return _clean_keywords(v)

    @model_validator(mode="after")
    def _has_predicate(self) -> CategoryRuleSpec:
        if not self.description_includes and not self.merchant:
            raise ValueError("a category rule needs description keywords or a merchant")
        return self


def _require_account(repo: UserRepository, account_id: int | None) -> None:
    if account_id is not None and repo.get_account(account_id) is None:
        raise ValueError(f"Account not found: {account_id}")


def create_flow_rule(repo: UserRepository, spec: FlowRuleSpec) -> FfFlowRule:
    _require_account(repo, spec.source_account_id)
    _require_account(repo, spec.destination_account_id)
    row = repo.add_flow_rule(**spec.model_dump())
    logger.info("Created flow rule %s (%s) for user %s", row.id, row.handling, repo.user_id)
    return row


def create_category_rule(repo: UserRepository, spec: CategoryRuleSpec) -> FfCategoryRule:
    if repo.get_category(spec.category_code) is None:
        raise ValueError(f"Category not found: {spec.category_code!r}")
    _require_account(repo, spec.account_id)
    row = repo.add_category_rule(**spec.model_dump())
    logger.info("Created category rule %s -> %s", row.id, row.category_code)
    return row


def set_transaction_category(
    repo: UserRepository,
    transaction_id: int,
    category_code: str | None,
    *,
    subcategory_code: str | None = None,
) -> FfTransaction:
    """Manually set a transaction's category and record the correction.

    Provenance becomes ``manual`` so the engine never overrides it. The
    correction stores the previous and new category codes and feeds
    :func:`finflow.categorization.learn_from_corrections`.
    """

    txn = repo.get_transaction(transaction_id)
    if txn is None:
        raise ValueError(f"Transaction not found: {transaction_id}")
    if category_code is not None and repo.get_category(category_code) is None:
        raise ValueError(f"Category not found: {category_code!r}")
    if subcategory_code is not None:
        sub = repo.get_category(subcategory_code)
        if sub is None or sub.parent_code != category_code:
            raise ValueError(
                f"Subcategory {subcategory_code!r} is not a child of {category_code!r}"
            )

    old_value = txn.category_code
    txn.category_code = category_code
    txn.subcategory_code = subcategory_code
    txn.category_source = "manual"
    txn.category_confidence = None
    repo.add_correction(
        transaction_id=txn.id, field="category", old_value=old_value, new_value=category_code
    )
    return txn


__all__ = [
    "CategoryRuleSpec",
    "FlowRuleSpec",
    "create_category_rule",
    "create_flow_rule",
    "set_transaction_category",
]
