from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from finflow.parsers import (
    ChaseParser,
    DCBBankParser,
    HDFCBankParser,
    ParserRegistry,
    ZolveParser,
    available_parsers,
    has_parser,
    parse_statement,
)
from finflow.parsers.base import StatementBuilder
from tests.helpers.statements import (
    CHASE_TEXT,
    DCB_TEXT,
    HDFC_TEXT,
    ZOLVE_TEXT,
    FailingExtractor,
    TextStub,
)


# ---- Chase -----------------------------------------------------------------


def test_chase_parses_signed_amounts_and_metadata() -> None:
    result = ChaseParser(extractor=TextStub(CHASE_TEXT)).parse(b"%PDF-1.4")

    assert result.ok
    assert result.account_number == "****6789"
    assert result.period_start == date(2024, 1, 1)
    assert result.period_end == date(2024, 1, 31)
    assert result.opening_balance == Decimal("1240.25")
    assert result.closing_balance == Decimal("3234.50")

    starbucks, payroll = result.transactions
    assert starbucks.date == date(2024, 1, 15)
    assert starbucks.description == "STARBUCKS STORE #123"
    assert starbucks.amount == Decimal("5.75")
    assert starbucks.direction == "debit"
    assert starbucks.balance == Decimal("1234.50")
    assert starbucks.raw_data["amount_str"] == "-5.75"

    assert payroll.amount == Decimal("2000.00")
    assert payroll.direction == "credit"
    assert payroll.balance == Decimal("3234.50")


def test_chase_year_rollover_uses_start_year() -> None:
    text = """\
Statement Period: Dec 15 - Jan 14, 2024
TRANSACTION DETAIL
12/20 AMAZON.COM ORDER -20.00
01/03 DEPOSIT FROM SAVINGS 300.00
Ending Balance: $280.00
"""
    result = ChaseParser(extractor=TextStub(text)).parse(b"%PDF")

    assert result.period_start == date(2023, 12, 15)
    assert result.period_end == date(2024, 1, 14)
    assert [t.date for t in result.transactions] == [date(2023, 12, 20), date(2024, 1, 3)]


def test_chase_without_period_uses_current_year() -> None:
    text = "TRANSACTION DETAIL\n03/04 COFFEE SHOP -4.00\n"
    parser = ChaseParser(extractor=TextStub(text), today=lambda: date(2025, 6, 1))

    result = parser.parse(b"%PDF")

    assert [t.date for t in result.transactions] == [date(2025, 3, 4)]


def test_chase_missing_section_is_an_error() -> None:
    result = ChaseParser(extractor=TextStub("Beginning Balance: $10.00\n")).parse(b"%PDF")

    assert result.errors == ("Could not find TRANSACTION DETAIL section",)
    assert result.transactions == ()
    assert not result.ok


def test_parse_is_deterministic() -> None:
    parser = ChaseParser(extractor=TextStub(CHASE_TEXT))

    assert parser.parse(b"%PDF") == parser.parse(b"%PDF")


# ---- HDFC / DCB --------------------------------------------------------------


def test_hdfc_reads_withdrawal_and_deposit_columns() -> None:
    result = HDFCBankParser(extractor=TextStub(HDFC_TEXT)).parse(b"%PDF")

    assert result.ok
    assert result.account_number == "****6789"
    assert result.period_start == date(2024, 3, 1)
    assert result.period_end == date(2024, 3, 31)
    assert result.opening_balance == Decimal("10000.00")
    assert result.closing_balance == Decimal("60550.00")

    swiggy, salary, upi = result.transactions
    assert (swiggy.description, swiggy.amount, swiggy.direction) == (
        "SWIGGY ORDER 12345",
        Decimal("450.00"),
        "debit",
    )
    assert swiggy.balance == Decimal("9550.00")
    assert (salary.amount, salary.direction) == (Decimal("50000.00"), "credit")
    # Two amount tokens: the description keywords decide the direction.
    assert (upi.amount, upi.direction) == (Decimal("1000.00"), "credit")
    assert upi.date == date(2024, 3, 15)


def test_hdfc_skips_lines_with_both_columns_populated() -> None:
    text = HDFC_TEXT.replace(
        "Closing Balance: 60,550.00",
        "20/03/2024 ODD ENTRY 100.00 200.00 60,650.00\nClosing Balance: 60,650.00",
    )

    result = HDFCBankParser(extractor=TextStub(text)).parse(b"%PDF")

    assert result.ok
    assert len(result.transactions) == 3
    assert len(result.warnings) == 1
    assert "ODD ENTRY" in result.warnings[0]


def test_hdfc_missing_section_is_an_error() -> None:
    text = "Statement of Account from 01/03/2024 to 31/03/2024\nnothing else here\n"

    result = HDFCBankParser(extractor=TextStub(text)).parse(b"%PDF")

    assert result.errors == ("Could not find Statement of account section",)


def test_dcb_parses_month_name_dates() -> None:
    result = DCBBankParser(extractor=TextStub(DCB_TEXT)).parse(b"%PDF")

    assert result.ok
    assert result.period_start == date(2024, 11, 1)
    assert result.period_end == date(2024, 11, 30)
    assert result.closing_balance == Decimal("29650.00")

    payroll, zomato = result.transactions
    assert (payroll.date, payroll.amount, payroll.direction) == (
        date(2024, 11, 5),
        Decimal("25000.00"),
        "credit",
    )
    assert (zomato.date, zomato.amount, zomato.direction) == (
        date(2024, 11, 7),
        Decimal("350.00"),
        "debit",
    )


# ---- Zolve -------------------------------------------------------------------


def test_zolve_card_statement() -> None:
    result = ZolveParser(extractor=TextStub(ZOLVE_TEXT)).parse(b"%PDF")

    assert result.ok
    assert result.account_number == "****4321"
    assert result.closing_balance == Decimal("150.25")

    netflix, payment = result.transactions
    assert (netflix.date, netflix.description, netflix.amount, netflix.direction) == (
        date(2024, 1, 5),
        "NETFLIX.COM",
        Decimal("15.49"),
        "debit",
    )
    assert (payment.amount, payment.direction) == (Decimal("100.00"), "credit")
    assert netflix.raw_data["credit_limit"] == "2000.00"


def test_ocr_artifacts_are_cleaned_before_parsing() -> None:
    noisy = ZOLVE_TEXT.replace("01/05 NETFLIX.COM $15.49", "  01/05   NETFLIX.COM \t $15.49  ")

    result = ZolveParser(extractor=TextStub(noisy)).parse(b"%PDF")

    assert result.transactions[0].description == "NETFLIX.COM"


def test_chase_skips_zero_amount_lines() -> None:
    text = CHASE_TEXT.replace(
        "01/20 PAYROLL", "01/16 INTEREST ADJUSTMENT 0.00 1234.50\n01/20 PAYROLL"
    )

    result = ChaseParser(extractor=TextStub(text)).parse(b"%PDF")

    assert [t.description for t in result.transactions] == [
        "STARBUCKS STORE #123",
        "PAYROLL ACME CORP",
    ]


def test_zolve_skips_zero_amount_lines() -> None:
    text = ZOLVE_TEXT.replace("01/10 PAYMENT", "01/08 CARD CREDIT ADJ $0.00\n01/10 PAYMENT")

    result = ZolveParser(extractor=TextStub(text)).parse(b"%PDF")

    assert [t.description for t in result.transactions] == ["NETFLIX.COM", "PAYMENT THANK YOU"]


def test_hdfc_skips_zero_amount_with_balance_only_pair() -> None:
    text = HDFC_TEXT.replace(
        "Closing Balance: 60,550.00",
        "18/03/2024 UPI CR REVERSED 0.00 60,550.00\nClosing Balance: 60,550.00",
    )

    result = HDFCBankParser(extractor=TextStub(text)).parse(b"%PDF")

    assert result.ok
    assert len(result.transactions) == 3
    assert all(t.amount > 0 for t in result.transactions)


# ---- Failure handling ----------------------------------------------------------


def test_extraction_failure_becomes_an_error() -> None:
    result = HDFCBankParser(extractor=FailingExtractor()).parse(b"%PDF")

    assert result.transactions == ()
    assert result.errors == ("Failed to extract text from PDF: broken xref",)


def test_parser_exception_keeps_partial_results() -> None:
    class _Exploding(ChaseParser):
        def _parse(self, text: str, builder: StatementBuilder) -> None:
            super()._parse(text, builder)
            raise RuntimeError("layout changed")

    result = _Exploding(extractor=TextStub(CHASE_TEXT)).parse(b"%PDF")

    assert result.errors == ("layout changed",)
    assert len(result.transactions) == 2


# ---- Registry -----------------------------------------------------------------


def test_default_registry_names() -> None:
    assert available_parsers() == ["Chase", "HDFC Bank", "DCB Bank", "Zolve"]
    assert has_parser("HDFC Bank")
    assert not has_parser("hdfc bank")


def test_unknown_institution_returns_error() -> None:
    result = parse_statement(b"%PDF", "Unknown Bank")

    assert result.transactions == ()
    assert result.errors == ("No parser available for institution: Unknown Bank",)


def test_registry_dispatches_by_exact_name() -> None:
    stub = TextStub(CHASE_TEXT)
    registry = ParserRegistry([ChaseParser(extractor=stub)])

    result = parse_statement(b"%PDF", "Chase", registry=registry)

    assert stub.calls == 1
    assert len(result.transactions) == 2
    with pytest.raises(ValueError):
        registry.register(ChaseParser(extractor=stub))
