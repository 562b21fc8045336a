import asyncio
import argparse
import logging
import os
import sys
from datetime import date

sys.path.append(os.getcwd())

from ledger_core.config import settings
from ledger_core.database import db
from ledger_core.posting.context import PostingContext
from ledger_core.posting.invoice import validate_invoice_posting
from ledger_core.posting.journal import validate_journal_posting
from ledger_core.posting.payment import validate_payment_processing_enhanced
from ledger_core.reporting.export import export_trial_balance
from ledger_core.reporting.trial_balance import InMemoryLedger, generate_trial_balance
from ledger_core.services.posting_service import PostingService
from ledger_core.tools.account_directory import InMemoryAccountDirectory
from ledger_core.tools.currency import InMemoryRateTable
from scripts.seed_data import COMPANY_ID, demo_accounts, demo_rates

DEMO_DATE = date(2024, 3, 15)

INVOICE = {
    "invoice_id": "inv-1001",
    "invoice_number": "INV-1001",
    "customer_id": "C001",
    "customer_name": "Tan Trading",
    "invoice_date": DEMO_DATE,
    "currency": "MYR",
    "ar_account_id": "1200",
    "lines": [
        {"line_number": 1, "description": "Widgets", "quantity": "2", "unit_price": "150", "revenue_account_id": "4000"},
        {"line_number": 2, "description": "Setup", "quantity": "1", "unit_price": "200", "revenue_account_id": "4100"},
    ],
}

FX_INVOICE = {
    "invoice_id": "inv-1002",
    "invoice_number": "INV-1002",
    "customer_id": "C002",
    "customer_name": "Pacific Imports LLC",
    "invoice_date": DEMO_DATE,
    "currency": "USD",
    "exchange_rate": "4.5",
    "ar_account_id": "1200",
    "lines": [
        {"line_number": 1, "description": "Consulting", "quantity": "1", "unit_price": "100", "revenue_account_id": "4100"},
    ],
}

RECEIPT = {
    "payment_id": "rcp-2001",
    "payment_number": "RCP-2001",
    "payment_date": DEMO_DATE,
    "payment_method": "BANK_TRANSFER",
    "bank_account_id": "1100",
    "currency": "USD",
    "exchange_rate": "4.5",
    "amount": "100",
    "allocations": [
        {"type": "INVOICE", "document_id": "inv-1002", "document_number": "INV-1002",
         "allocated_amount": "100", "outstanding_amount": "100", "customer_id": "C002", "ar_account_id": "1200"},
    ],
}

UNBALANCED_JOURNAL = {
    "journal_number": "JV-3001",
    "journal_date": DEMO_DATE,
    "currency": "MYR",
    "description": "Keyed in wrong",
    "lines": [
        {"account_id": "1000", "debit": "1000"},
        {"account_id": "4000", "credit": "500"},
    ],
}


def _report(label, result):
    if result.success:
        print(f"{label}: VALID {result.summary.lines_count} lines, "
              f"DR {result.summary.total_debit} / CR {result.summary.total_credit}")
        for line in result.journal.lines:
            side = f"DR {line.debit}" if line.debit else f"CR {line.credit}"
            print(f"    {line.account_id:<6} {side:>14} {line.currency}  ({line.source_amount} {line.source_currency})")
    else:
        print(f"{label}: REJECTED at {result.stage.value}")
        for e in result.errors:
            print(f"    [{e.code.value}] {e.message}")


def run_in_memory():
    accounts = demo_accounts()
    context = PostingContext(
        accounts=InMemoryAccountDirectory(accounts),
        rates=InMemoryRateTable(demo_rates()),
        base_currency="MYR",
        today=DEMO_DATE,
    )
    ledger = InMemoryLedger(accounts)

    results = [
        ("Invoice", validate_invoice_posting(INVOICE, context)),
        ("FX invoice", validate_invoice_posting(FX_INVOICE, context)),
        ("FX receipt", validate_payment_processing_enhanced(RECEIPT, "u-demo", "accountant", "MYR", context)),
        ("Unbalanced journal", validate_journal_posting(UNBALANCED_JOURNAL, context)),
    ]
    for label, result in results:
        _report(label, result)
        if result.success:
            ledger.post(result.journal)

    tb = generate_trial_balance({"period_end": DEMO_DATE, "base_currency": "MYR"}, ledger, today=DEMO_DATE)
    print()
    print(export_trial_balance(tb, "CSV"))
    print(f"Balanced: {tb.is_balanced}  DR {tb.totals.total_debits}  CR {tb.totals.total_credits}")


async def run_with_mongo():
    service = PostingService()
    _report("Invoice", await service.post_invoice(INVOICE, COMPANY_ID))
    _report("FX invoice", await service.post_invoice(FX_INVOICE, COMPANY_ID))
    _report("FX receipt", await service.post_payment(RECEIPT, "u-demo", "accountant", COMPANY_ID))
    _report("Unbalanced journal", await service.post_journal(UNBALANCED_JOURNAL, COMPANY_ID))
    tb = await service.trial_balance({"period_end": DEMO_DATE}, COMPANY_ID)
    print(export_trial_balance(tb, "CSV") if tb.success else tb.error)

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Post the demo documents and print a trial balance")
    parser.add_argument("--mongo", action="store_true", help="Post through MongoDB (run init_db and seed_data first)")
    args = parser.parse_args()

    logging.basicConfig(level=settings.LOG_LEVEL)

    if not args.mongo:
        run_in_memory()
        sys.exit(0)

    db.connect()
    try:
        asyncio.run(run_with_mongo())
    finally:
        db.close()
