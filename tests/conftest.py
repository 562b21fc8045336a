import copy
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from ledger_core.models.account import Account, AccountType
from ledger_core.models.currency import ExchangeRate
from ledger_core.posting.bill import validate_bill_posting
from ledger_core.posting.context import PostingContext
from ledger_core.posting.invoice import validate_invoice_posting
from ledger_core.posting.journal import validate_journal_posting
from ledger_core.posting.payment import validate_payment_processing_enhanced
from ledger_core.reporting.trial_balance import InMemoryLedger
from ledger_core.tools.account_directory import InMemoryAccountDirectory
from ledger_core.tools.currency import InMemoryRateTable

TODAY = date(2024, 6, 30)

# (account_id, name, type, extra)
CHART = [
    ("1000", "Cash at Bank", AccountType.ASSET, {}),
    ("1100", "Cash at Bank - USD", AccountType.ASSET, {"currency": "USD"}),
    ("1200", "Accounts Receivable", AccountType.ASSET, {}),
    ("1450", "Supplier Advances", AccountType.ASSET, {}),
    ("1510", "Input Tax Recoverable", AccountType.ASSET, {}),
    ("1520", "Withholding Tax Recoverable", AccountType.ASSET, {}),
    ("1900", "Closed Bank Account", AccountType.ASSET, {"is_active": False}),
    ("1999", "Current Assets", AccountType.ASSET, {"is_header": True}),
    ("2100", "Accounts Payable", AccountType.LIABILITY, {}),
    ("2150", "Customer Advances", AccountType.LIABILITY, {}),
    ("2300", "SST Payable", AccountType.LIABILITY, {}),
    ("2310", "Withholding Tax Payable", AccountType.LIABILITY, {}),
    ("3000", "Share Capital", AccountType.EQUITY, {}),
    ("4000", "Sales Revenue", AccountType.INCOME, {}),
    ("4100", "Service Revenue", AccountType.INCOME, {}),
    ("6100", "Office Expenses", AccountType.EXPENSE, {}),
    ("6200", "Bank Charges", AccountType.EXPENSE, {}),
]


@pytest.fixture
def accounts():
    return [
        Account(account_id=account_id, code=account_id, name=name, account_type=account_type, **extra)
        for account_id, name, account_type, extra in CHART
    ]


@pytest.fixture
def directory(accounts):
    return InMemoryAccountDirectory(accounts)


@pytest.fixture
def rates():
    return InMemoryRateTable([
        ExchangeRate(from_currency="USD", to_currency="MYR", effective_date=date(2024, 1, 1), rate=Decimal("4.5")),
        ExchangeRate(from_currency="USD", to_currency="MYR", effective_date=date(2024, 7, 1), rate=Decimal("4.7")),
        ExchangeRate(from_currency="SGD", to_currency="MYR", effective_date=date(2024, 1, 1), rate=Decimal("3.45")),
        ExchangeRate(from_currency="MYR", to_currency="USD", effective_date=date(2024, 1, 1), rate=Decimal("0.2")),
    ])


@pytest.fixture
def context(directory, rates):
    return PostingContext(accounts=directory, rates=rates, base_currency="MYR", today=TODAY)


INVOICE = {
    "invoice_id": "inv-001",
    "invoice_number": "INV-001",
    "customer_id": "C001",
    "customer_name": "Tan Trading",
    "invoice_date": date(2024, 6, 1),
    "currency": "MYR",
    "ar_account_id": "1200",
    "lines": [
        {"line_number": 1, "description": "Widgets", "quantity": "2", "unit_price": "150", "revenue_account_id": "4000"},
        {"line_number": 2, "description": "Setup", "quantity": "1", "unit_price": "200", "revenue_account_id": "4100"},
    ],
}

BILL = {
    "bill_id": "bill-001",
    "bill_number": "B-001",
    "supplier_id": "S001",
    "supplier_name": "Office Depot",
    "bill_date": date(2024, 6, 3),
    "currency": "MYR",
    "ap_account_id": "2100",
    "lines": [
        {"line_number": 1, "description": "Paper", "quantity": "10", "unit_price": "12.50", "expense_account_id": "6100"},
    ],
}

RECEIPT = {
    "payment_id": "rcp-001",
    "payment_number": "RCP-001",
    "payment_date": date(2024, 6, 10),
    "payment_method": "BANK_TRANSFER",
    "bank_account_id": "1000",
    "currency": "MYR",
    "amount": "1000",
    "allocations": [
        {"type": "INVOICE", "document_id": "inv-001", "document_number": "INV-001", "allocated_amount": "1000",
         "outstanding_amount": "1000", "customer_id": "C001", "ar_account_id": "1200"},
    ],
}

BILL_PAYMENT = {
    "payment_id": "pay-001",
    "payment_number": "PAY-001",
    "payment_date": date(2024, 6, 12),
    "payment_method": "CHECK",
    "bank_account_id": "1000",
    "currency": "MYR",
    "amount": "125",
    "allocations": [
        {"type": "BILL", "document_id": "bill-001", "document_number": "B-001", "allocated_amount": "125",
         "outstanding_amount": "125", "supplier_id": "S001", "ap_account_id": "2100"},
    ],
}

JOURNAL = {
    "journal_number": "JV-001",
    "journal_date": date(2024, 6, 15),
    "currency": "MYR",
    "description": "Capital injection",
    "lines": [
        {"account_id": "1000", "debit": "5000"},
        {"account_id": "3000", "credit": "5000"},
    ],
}


def _factory(template):
    def make(**overrides):
        doc = copy.deepcopy(template)
        doc.update(overrides)
        return doc
    return make


@pytest.fixture
def make_invoice():
    return _factory(INVOICE)


@pytest.fixture
def make_bill():
    return _factory(BILL)


@pytest.fixture
def make_receipt():
    return _factory(RECEIPT)


@pytest.fixture
def make_bill_payment():
    return _factory(BILL_PAYMENT)


@pytest.fixture
def make_journal():
    return _factory(JOURNAL)


@pytest.fixture
def mock_db():
    with patch("ledger_core.services.posting_service.db") as mock:
        mock.accounts = AsyncMock()
        mock.exchange_rates = AsyncMock()
        mock.journals = AsyncMock()
        mock.config = AsyncMock()
        mock.client = MagicMock()
        yield mock


@pytest.fixture
def posted_ledger(accounts, context, make_invoice, make_bill, make_receipt, make_journal):
    """Opening capital last year plus one invoice, bill and receipt this year."""
    receipt = make_receipt(amount="500")
    receipt["allocations"][0].update(allocated_amount="500", outstanding_amount="500")
    results = [
        validate_journal_posting(make_journal(journal_date=date(2023, 12, 15)), context),
        validate_invoice_posting(make_invoice(), context),
        validate_bill_posting(make_bill(), context),
        validate_payment_processing_enhanced(receipt, "user_1", "accountant", "MYR", context),
    ]
    ledger = InMemoryLedger(accounts)
    for result in results:
        assert result.success, result
        ledger.post(result.journal)
    return ledger
