from decimal import Decimal
from ledger_core.models.results import ErrorCode, PostingStage
from ledger_core.posting.invoice import validate_invoice_posting
from ledger_core.posting.journal import validate_journal_posting
from ledger_core.posting.payment import validate_payment_processing_enhanced

def test_scenario_simple_invoice(context, make_invoice):
    """
    Scenario: 500 MYR invoice, two revenue lines.
    Expected: Dr AR 500 / Cr revenue 300 + 200.
    """
    print("\n--- Testing Scenario: Simple Invoice ---")
    result = validate_invoice_posting(make_invoice(), context)

    assert result.success is True
    journal = result.journal
    assert journal.lines_for("1200")[0].debit == Decimal("500")
    assert journal.lines_for("4000")[0].credit + journal.lines_for("4100")[0].credit == Decimal("500")
    print("Result: Posted and balanced.")

def test_scenario_foreign_currency_invoice(context, make_invoice):
    """
    Scenario: 100 USD invoice at 4.5.
    Expected: GL in MYR 450, source currency USD kept on every line.
    """
    print("\n--- Testing Scenario: FX Invoice ---")
    lines = [{"line_number": 1, "quantity": "1", "unit_price": "100", "revenue_account_id": "4000"}]
    result = validate_invoice_posting(make_invoice(currency="USD", exchange_rate="4.5", lines=lines), context)

    assert result.success is True
    for line in result.journal.lines:
        assert line.currency == "MYR"
        assert line.source_currency == "USD"
        assert line.base_amount == Decimal("450.00")
    print("Result: Converted at 4.5.")

def test_scenario_unbalanced_journal(context, make_journal):
    """
    Scenario: Dr Cash 1000 / Cr Capital 500.
    Expected: UNBALANCED_ENTRY with delta 500 and nothing built.
    """
    print("\n--- Testing Scenario: Unbalanced Journal ---")
    doc = make_journal(lines=[{"account_id": "1000", "debit": "1000"}, {"account_id": "3000", "credit": "500"}])
    result = validate_journal_posting(doc, context)

    assert result.success is False
    assert result.stage == PostingStage.LINES_EXPANDED
    assert result.errors[0].code == ErrorCode.UNBALANCED_ENTRY
    assert result.errors[0].context["delta"] == Decimal("500")
    print("Result: Rejected (Unbalanced).")

def test_scenario_foreign_receipt_total(context, make_receipt):
    """
    Scenario: 100 USD receipt against a 100 USD invoice, rate 4.5 from the rate table.
    Expected: total_amount 450 in base currency.
    """
    print("\n--- Testing Scenario: FX Receipt ---")
    doc = make_receipt(currency="USD", amount="100")
    doc["allocations"][0].update(allocated_amount="100", outstanding_amount="100")
    result = validate_payment_processing_enhanced(doc, "user_1", "accountant", "MYR", context)

    assert result.success is True
    assert result.details["total_amount"] == Decimal("450")
    print("Result: Posted at 450 MYR.")

def test_scenario_overpayment(context, make_receipt):
    """
    Scenario: customer pays 1200 against a 1000 invoice.
    Expected: Dr Bank 1200 / Cr AR 1000 / Cr Customer advances 200.
    """
    print("\n--- Testing Scenario: Overpayment ---")
    doc = make_receipt(amount="1200")
    doc["allocations"][0]["allocated_amount"] = "1200"
    result = validate_payment_processing_enhanced(doc, "user_1", "accountant", "MYR", context)

    assert result.success is True
    assert len(result.journal.lines) == 3
    assert result.journal.lines_for("2150")[0].credit == Decimal("200")
    print("Result: Excess routed to advances.")

def test_scenario_unknown_account(context, make_journal):
    """
    Scenario: journal line against an account not in the chart.
    Expected: ACCOUNT_NOT_FOUND naming the account.
    """
    print("\n--- Testing Scenario: Unknown Account ---")
    doc = make_journal()
    doc["lines"][1]["account_id"] = "3999"
    result = validate_journal_posting(doc, context)

    assert result.codes == [ErrorCode.ACCOUNT_NOT_FOUND]
    assert "3999" in result.errors[0].message
    print("Result: Rejected (Account not found).")
