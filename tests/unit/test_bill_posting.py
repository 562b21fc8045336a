from decimal import Decimal
from ledger_core.models.accounting import LineRole
from ledger_core.models.results import ErrorCode, PostingStage
from ledger_core.posting.bill import validate_bill_posting

def test_simple_bill(context, make_bill):
    result = validate_bill_posting(make_bill(), context)

    assert result.success is True
    lines = result.journal.lines
    assert [(l.account_id, l.debit, l.credit) for l in lines] == [
        ("6100", Decimal("125.00"), Decimal("0")),
        ("2100", Decimal("0"), Decimal("125.00")),
    ]
    assert lines[-1].role == LineRole.PAYABLE
    assert result.details["total_expense"] == Decimal("125.00")

def test_bill_with_input_tax(context, make_bill):
    doc = make_bill()
    doc["lines"][0]["tax_rate"] = "0.06"

    result = validate_bill_posting(doc, context)

    assert result.success is True
    assert result.journal.lines_for("1510")[0].debit == Decimal("7.50")
    assert result.journal.lines_for("2100")[0].credit == Decimal("132.50")
    assert result.details["total_amount"] == Decimal("132.50")

def test_foreign_bill(context, make_bill):
    result = validate_bill_posting(make_bill(currency="SGD"), context)

    assert result.success is True
    assert result.journal.lines[0].debit == Decimal("431.25")
    assert result.journal.lines[0].source_amount == Decimal("125.00")
    assert result.details["fx_applied"] is True

def test_capitalised_purchase_to_asset_account(context, make_bill):
    doc = make_bill()
    doc["lines"][0]["expense_account_id"] = "1450"
    assert validate_bill_posting(doc, context).success is True

def test_revenue_account_cannot_take_expense_line(context, make_bill):
    doc = make_bill()
    doc["lines"][0]["expense_account_id"] = "4000"
    result = validate_bill_posting(doc, context)
    assert result.codes == [ErrorCode.ACCOUNT_TYPE_MISMATCH]
    assert result.errors[0].field == "lines.0.expense_account_id"

def test_ap_must_be_a_liability(context, make_bill):
    result = validate_bill_posting(make_bill(ap_account_id="1200"), context)
    assert result.first(ErrorCode.ACCOUNT_TYPE_MISMATCH).context["expected"] == ["LIABILITY"]

def test_declared_line_amount_mismatch(context, make_bill):
    doc = make_bill()
    doc["lines"][0]["line_amount"] = "120"

    result = validate_bill_posting(doc, context)

    assert result.stage == PostingStage.RECEIVED
    issue = result.first(ErrorCode.VALIDATION_ERROR)
    assert "does not match quantity x unit price (125.00)" in issue.message

def test_duplicate_line_numbers(context, make_bill):
    doc = make_bill()
    doc["lines"].append(dict(doc["lines"][0]))
    result = validate_bill_posting(doc, context)
    assert result.codes == [ErrorCode.VALIDATION_ERROR]
    assert "Duplicate line number 1" in result.errors[0].message
