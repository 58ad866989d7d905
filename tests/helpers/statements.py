"""Canned statement text and extractor stubs for parser and ingestion tests."""

from __future__ import annotations

from finflow.extraction import ExtractionError


class TextStub:
    """Extractor returning canned statement text."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.calls = 0

    def extract_text(self, buffer: bytes) -> str:
        self.calls += 1
        return self.text


class FailingExtractor:
    def extract_text(self, buffer: bytes) -> str:
        raise ExtractionError("Failed to extract text from PDF: broken xref")


CHASE_TEXT = """\
CHASE TOTAL CHECKING
Account Number: 000123456789
Statement Period: Jan 01 - Jan 31, 2024
Beginning Balance: $1,240.25
TRANSACTION DETAIL
DATE DESCRIPTION AMOUNT BALANCE
01/15 STARBUCKS STORE #123 -5.75 1234.50
01/20 PAYROLL ACME CORP 2,000.00 3,234.50
TOTAL DEPOSITS 2,000.00
Ending Balance: $3,234.50
"""

HDFC_TEXT = """\
HDFC BANK LIMITED
Account Number: 50100123456789
Statement of Account from 01/03/2024 to 31/03/2024
Opening Balance: 10,000.00
Statement of account
Date Narration Withdrawal Amt. Deposit Amt. Closing Balance
05/03/2024 SWIGGY ORDER 12345 450.00 0.00 9,550.00
10/03/2024 SALARY CREDIT ACME 0.00 50,000.00 59,550.00
15/03/2024 UPI CR FROM RAVI 1,000.00 60,550.00
Closing Balance: 60,550.00
"""

DCB_TEXT = """\
DCB BANK
Account Number: 12345678901234
Statement Period: 01-Nov-2024 to 30-Nov-2024
Opening Balance: 5,000.00
ACCOUNT DETAILS
Date Description Debit Credit Balance
05-Nov-2024 NEFT CR ACME PAYROLL 0.00 25,000.00 30,000.00
07-Nov-2024 ZOMATO ORDER 350.00 0.00 29,650.00
ACCOUNT SUMMARY
Closing Balance: 29,650.00
"""

ZOLVE_TEXT = """\
ZOLVE CREDIT CARD
Card ending in 4321
Statement Period: Jan 1, 2024 - Jan 31, 2024
Credit Limit: $2,000.00
Current Balance: $150.25
TRANSACTIONS
01/05 NETFLIX.COM $15.49
01/10 PAYMENT THANK YOU $100.00
FEES AND INTEREST
Interest charged $0.00
"""
