"""Statement parsers keyed by institution name.

``parse_statement(buffer, institution_name)`` is the entry point used by
ingestion. The name must match a registered key exactly (it is stored on
``FfAccount.institution``); unknown names produce a result with a single
error rather than an exception. Adding a bank means adding one
:class:`StatementParser` subclass and registering it here.
"""

from __future__ import annotations

from collections.abc import Iterable

from ..logging_setup import get_logger
from ..models import ParsedStatementResult
from .base import StatementParser
from .chase import ChaseParser
from .dcb import DCBBankParser
from .hdfc import HDFCBankParser
from .zolve import ZolveParser

logger = get_logger("finflow.parsers")


class ParserRegistry:
    """Ordered mapping of institution name to parser instance."""

    def __init__(self, parsers: Iterable[StatementParser] = ()) -> None:
        self._parsers: dict[str, StatementParser] = {}
        for parser in parsers:
            self.register(parser)

    def register(self, parser: StatementParser, *, name: str | None = None) -> None:
        key = name or parser.institution
        if key in self._parsers:
            raise ValueError(f"Parser already registered for institution: {key}")
        self._parsers[key] = parser

    def get(self, institution_name: str) -> StatementParser | None:
        return self._parsers.get(institution_name)

    def has_parser(self, institution_name: str) -> bool:
        return institution_name in self._parsers

    def available(self) -> list[str]:
        return list(self._parsers)

    def parse_statement(self, buffer: bytes, institution_name: str) -> ParsedStatementResult:
        parser = self.get(institution_name)
        if parser is None:
            logger.warning("No parser available for institution: %s", institution_name)
            return ParsedStatementResult(
                errors=(f"No parser available for institution: {institution_name}",)
            )
        return parser.parse(buffer)


def build_default_registry() -> ParserRegistry:
    return ParserRegistry([ChaseParser(), HDFCBankParser(), DCBBankParser(), ZolveParser()])


_DEFAULT_REGISTRY: ParserRegistry | None = None


def default_registry() -> ParserRegistry:
    global _DEFAULT_REGISTRY
    if _DEFAULT_REGISTRY is None:
        _DEFAULT_REGISTRY = build_default_registry()
    return _DEFAULT_REGISTRY


def parse_statement(
    buffer: bytes, institution_name: str, *, registry: ParserRegistry | None = None
) -> ParsedStatementResult:
    """Parse ``buffer`` with the parser registered under ``institution_name``."""

    return (registry or default_registry()).parse_statement(buffer, institution_name)


def has_parser(institution_name: str) -> bool:
    return default_registry().has_parser(institution_name)


def available_parsers() -> list[str]:
    return default_registry().available()


__all__ = [
    "ChaseParser",
    "DCBBankParser",
    "HDFCBankParser",
    "ParserRegistry",
    "StatementParser",
    "ZolveParser",
    "available_parsers",
    "build_default_registry",
    "default_registry",
    "has_parser",
    "parse_statement",
]
