from datetime import date
from decimal import Decimal
from ledger_core.guardrails.permissions import Actor
from ledger_core.models.results import ErrorCode, PostingStage
from ledger_core.posting.journal import validate_journal_posting

def test_balanced_journal(context, make_journal):
    result = validate_journal_posting(make_journal(), context)

    assert result.success is True
    assert result.journal.total_debit == Decimal("5000")
    assert result.journal.source_document == "JV-001"
    assert result.journal.lines[0].description == "Capital injection"
    assert "requires_approval" not in result.details

def test_unbalanced_journal(context, make_journal):
    doc = make_journal(lines=[{"account_id": "1000", "debit": "1000"}, {"account_id": "3000", "credit": "500"}])

    result = validate_journal_posting(doc, context)

    assert result.success is False
    assert result.stage == PostingStage.LINES_EXPANDED
    issue = result.first(ErrorCode.UNBALANCED_ENTRY)
    assert issue.context["delta"] == Decimal("500")
    assert issue.context["total_debit"] == Decimal("1000")
    assert issue.context["total_credit"] == Decimal("500")

def test_one_cent_difference_is_tolerated(context, make_journal):
    doc = make_journal(lines=[{"account_id": "1000", "debit": "100.00"}, {"account_id": "3000", "credit": "99.99"}])
    assert validate_journal_posting(doc, context).success is True

def test_foreign_journal_is_balanced_after_conversion(context, make_journal):
    doc = make_journal(currency="USD", lines=[
        {"account_id": "1100", "debit": "100"},
        {"account_id": "3000", "credit": "100"},
    ])
    result = validate_journal_posting(doc, context)

    assert result.success is True
    assert result.journal.total_debit == Decimal("450.00")
    assert result.journal.lines[0].source_currency == "USD"

def test_conversion_rounding_is_absorbed_by_heavier_side(context, make_journal):
    # Dr 10 x round(1.11 * 4.4567) = 49.50; Cr round(11.10 * 4.4567) = 49.47
    lines = [{"account_id": "1100", "debit": "1.11"} for _ in range(10)]
    lines.append({"account_id": "3000", "credit": "11.10"})
    result = validate_journal_posting(make_journal(currency="USD", exchange_rate="4.4567", lines=lines), context)

    assert result.success is True
    assert result.journal.total_debit == Decimal("49.47")
    assert result.journal.total_credit == Decimal("49.47")
    assert result.journal.lines[0].debit == Decimal("4.92")
    assert result.journal.lines[0].source_amount == Decimal("1.11")
    assert result.details["fx_rounding"] == Decimal("0.03")

def test_conversion_rounding_moves_to_lighter_side_when_lines_are_tiny(context, make_journal):
    # Dr 4 x 0.005 = 0.02; Cr 4 lines of round(0.005) = 0.01 each = 0.04
    doc = make_journal(currency="USD", exchange_rate="0.005", lines=[
        {"account_id": "1000", "debit": "4"},
        {"account_id": "3000", "credit": "1"},
        {"account_id": "3000", "credit": "1"},
        {"account_id": "3000", "credit": "1"},
        {"account_id": "3000", "credit": "1"},
    ])
    result = validate_journal_posting(doc, context)

    assert result.success is True
    assert result.journal.lines[0].debit == Decimal("0.04")
    assert result.details["fx_rounding"] == Decimal("0.02")

def test_foreign_journal_unbalanced_in_its_own_currency(context, make_journal):
    doc = make_journal(currency="USD", exchange_rate="4.4567", lines=[
        {"account_id": "1100", "debit": "11.11"},
        {"account_id": "3000", "credit": "11.10"},
    ])
    result = validate_journal_posting(doc, context)

    assert result.stage == PostingStage.LINES_EXPANDED
    issue = result.first(ErrorCode.UNBALANCED_ENTRY)
    assert issue.context["total_debit"] == Decimal("49.51")
    assert issue.context["total_credit"] == Decimal("49.47")

def test_single_line_journal_has_nothing_to_balance(context, make_journal):
    result = validate_journal_posting(make_journal(lines=[{"account_id": "1000", "debit": "10"}]), context)
    assert result.stage == PostingStage.ACCOUNTS_RESOLVED
    assert result.codes == [ErrorCode.VALIDATION_ERROR]

def test_header_account(context, make_journal):
    doc = make_journal()
    doc["lines"][0]["account_id"] = "1999"
    issue = validate_journal_posting(doc, context).first(ErrorCode.ACCOUNT_NOT_FOUND)
    assert issue.context["reason"] == "header"

def test_line_with_both_sides(context, make_journal):
    doc = make_journal()
    doc["lines"][0]["credit"] = "5000"
    result = validate_journal_posting(doc, context)
    assert result.errors[0].field == "lines.0"
    assert "both debit and credit" in result.errors[0].message

def test_future_journal_date(context, make_journal):
    result = validate_journal_posting(make_journal(journal_date=date(2024, 7, 1)), context)
    assert result.first(ErrorCode.VALIDATION_ERROR).field == "journal_date"

def test_too_many_lines(context, make_journal):
    lines = [{"account_id": "1000", "debit": "1"}, {"account_id": "3000", "credit": "1"}] * 51
    result = validate_journal_posting(make_journal(lines=lines), context)
    assert result.first(ErrorCode.VALIDATION_ERROR).field == "lines"

def test_clerk_cannot_post_journals(context, make_journal):
    ctx = context.replace(actor=Actor(actor_id="c1", role="clerk"))
    assert validate_journal_posting(make_journal(), ctx).codes == [ErrorCode.PERMISSION_DENIED]

def test_approval_details_for_actor(context, make_journal):
    ctx = context.replace(actor=Actor(actor_id="acc", role="accountant"))
    result = validate_journal_posting(make_journal(lines=[
        {"account_id": "1000", "debit": "50000"},
        {"account_id": "3000", "credit": "50000"},
    ]), ctx)

    assert result.details["requires_approval"] is True
    assert result.details["approver_roles"] == ["finance_manager", "admin"]

def test_amount_finer_than_minor_unit_is_refused(context, make_journal):
    doc = make_journal(lines=[{"account_id": "1000", "debit": "100.004"}, {"account_id": "3000", "credit": "100.00"}])
    result = validate_journal_posting(doc, context)

    assert result.stage == PostingStage.RECEIVED
    issue = result.first(ErrorCode.VALIDATION_ERROR)
    assert issue.field == "lines.0.debit"
    assert issue.context["minor_units"] == 2

def test_trailing_zeros_are_not_extra_precision(context, make_journal):
    doc = make_journal(lines=[{"account_id": "1000", "debit": "100.000"}, {"account_id": "3000", "credit": "100"}])
    assert validate_journal_posting(doc, context).success is True

def test_zero_decimal_currency_journal(context, make_journal):
    doc = make_journal(currency="JPY", exchange_rate="0.031", lines=[
        {"account_id": "1000", "debit": "1000.5"},
        {"account_id": "3000", "credit": "1000.5"},
    ])
    issues = validate_journal_posting(doc, context).errors
    assert [i.field for i in issues] == ["lines.0.debit", "lines.1.credit"]
