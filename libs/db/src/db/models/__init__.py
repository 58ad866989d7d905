"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the finance domain models used by ``finflow``.
"""

from .finance import (
    Base,
    FfAccount,
    FfCategory,
    FfCategoryRule,
    FfFlowRule,
    FfStatementFile,
    FfTransaction,
    FfTransactionCorrection,
    FfUser,
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
