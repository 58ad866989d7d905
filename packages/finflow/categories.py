"""Category domain helpers and service operations.

This module centralizes small, validated operations on the ``ff_categories``
reference table: name normalization/validation, idempotent creation, and the
name-based lookups used by the categorization engine (merchant patterns and
the system "Transfers"/"Income" fallbacks refer to categories by display
name, not by code).

Codes are slugs derived from display names: ``"Food & Dining"`` becomes
``food-and-dining`` and its child ``"Fast Food"`` becomes
``food-and-dining/fast-food``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TypedDict

from db.models.finance import FfCategory
from sqlalchemy import func, select
from sqlalchemy.orm import Session

# ---------------------------
# Name normalization/validation
# ---------------------------

_ALLOWED_RE = re.compile(r"^[A-Za-z0-9 &\-/+]+$")
_SLUG_STRIP_RE = re.compile(r"[^a-z0-9]+")


def normalize_name(name: str) -> str:
    """Return a trimmed, single-spaced representation of ``name``.

    Does not change case.
    """

    return " ".join(name.strip().split())


@dataclass(frozen=True, slots=True)
class NameValidation:
    ok: bool
    reason: str | None = None


def validate_name(name: str, *, min_len: int = 1, max_len: int = 64) -> NameValidation:
    """Validate a category display name.

    Rules
    -----
    - Trim whitespace; enforce length bounds 1..64.
    - Allowed characters: letters, numbers, spaces, and ``& - / +``.
    """

    n = normalize_name(name)
    if len(n) < min_len:
        return NameValidation(False, "Name cannot be empty")
    if len(n) > max_len:
        return NameValidation(False, f"Name must be at most {max_len} characters")
    if not _ALLOWED_RE.match(n):
        return NameValidation(False, "Only letters, numbers, spaces, and & - / + are allowed")
    return NameValidation(True, None)


def slugify(name: str) -> str:
    s = normalize_name(name).lower().replace("&", " and ")
    return _SLUG_STRIP_RE.sub("-", s).strip("-")


def category_code(display_name: str, parent_code: str | None = None) -> str:
    slug = slugify(display_name)
    return f"{parent_code}/{slug}" if parent_code else slug


# ---------------------------
# Service result shape
# ---------------------------


class CategoryDict(TypedDict):
    code: str
    display_name: str
    parent_code: str | None
    is_system: bool
    is_active: bool
    sort_order: int | None


class CreateCategoryResult(TypedDict):
    category: CategoryDict
    created: bool


def _row_to_dict(row: FfCategory) -> CategoryDict:  # pragma: no cover - trivial mapping
    return {
        "code": row.code,
        "display_name": row.display_name,
        "parent_code": row.parent_code,
        "is_system": bool(row.is_system),
        "is_active": bool(row.is_active),
        "sort_order": row.sort_order,
    }


# ---------------------------
# Lookups
# ---------------------------


def get_category(session: Session, code: str) -> FfCategory | None:
    return session.get(FfCategory, code)


def find_system_category(session: Session, name: str) -> FfCategory | None:
    """Active top-level system category whose display name equals ``name`` (case-insensitive)."""

    return (
        session.execute(
            select(FfCategory).where(
                FfCategory.parent_code.is_(None),
                FfCategory.is_system.is_(True),
                FfCategory.is_active.is_(True),
                func.lower(FfCategory.display_name) == normalize_name(name).lower(),
            )
        )
        .scalars()
        .first()
    )


def find_subcategory(session: Session, parent_code: str, name: str) -> FfCategory | None:
    """Active child of ``parent_code`` named ``name`` (case-insensitive)."""

    return (
        session.execute(
            select(FfCategory).where(
                FfCategory.parent_code == parent_code,
                FfCategory.is_active.is_(True),
                func.lower(FfCategory.display_name) == normalize_name(name).lower(),
            )
        )
        .scalars()
        .first()
    )


# ---------------------------
# Creation
# ---------------------------


def create_category(
    session: Session,
    *,
    display_name: str,
    parent_code: str | None = None,
    code: str | None = None,
    sort_order: int | None = None,
    is_system: bool = False,
) -> CreateCategoryResult:
    """Create a category unless one with the same name exists under the parent.

    Parameters
    ----------
    session:
        SQLAlchemy session (callers own the transaction scope).
    display_name:
        Human-readable name, validated with :func:`validate_name`.
    parent_code:
        Optional parent; it must exist and be top-level (two-level taxonomy).
    code:
        Optional explicit code; derived from the name and parent by default.

    Returns
    -------
    dict
        ``{"category": {...}, "created": bool}``. A case-insensitive name
        match under the same parent (or the same code) returns the existing
        row with ``created=False``.
    """

    display_n = normalize_name(display_name)
    v = validate_name(display_n)
    if not v.ok:
        raise ValueError(f"Invalid display name: {v.reason}")

    parent_row = None
    if parent_code is not None:
        parent_row = session.get(FfCategory, parent_code)
        if parent_row is None:
            raise ValueError(f"Parent category not found: {parent_code!r}")
        if parent_row.parent_code is not None:
            raise ValueError("Parent must be a top-level category (cannot be a child)")

    code_n = code or category_code(display_n, parent_code)
    if not code_n:
        raise ValueError(f"Cannot derive a category code from {display_name!r}")

    existing = session.get(FfCategory, code_n)
    if existing is None:
        existing = (
            session.execute(
                select(FfCategory).where(
                    func.lower(FfCategory.display_name) == display_n.lower(),
                    (FfCategory.parent_code == parent_code)
                    if parent_code is not None
                    else FfCategory.parent_code.is_(None),
                )
            )
            .scalars()
            .first()
        )
    if existing is not None:
        return {"category": _row_to_dict(existing), "created": False}

    row = FfCategory(
        code=code_n,
        display_name=display_n,
        parent_code=parent_code,
        is_system=is_system,
        is_active=True,
        sort_order=sort_order,
    )
    session.add(row)
    session.flush()
    return {"category": _row_to_dict(row), "created": True}


__all__ = [
    "normalize_name",
    "validate_name",
    "slugify",
    "category_code",
    "get_category",
    "find_system_category",
    "find_subcategory",
    "create_category",
    "NameValidation",
    "CategoryDict",
    "CreateCategoryResult",
]
