import pytest
from datetime import date
from decimal import Decimal
from ledger_core.models.accounting import JournalEntry, JournalLine, LineRole, SourceType
from ledger_core.models.results import ErrorCode
from ledger_core.tools.balancing import JournalBuilder, check_balance

def test_unbalanced_issue_carries_totals_and_delta():
    issue = check_balance(Decimal("1000.00"), Decimal("500.00"), "MYR")
    assert issue.code == ErrorCode.UNBALANCED_ENTRY
    assert issue.context["total_debit"] == Decimal("1000.00")
    assert issue.context["total_credit"] == Decimal("500.00")
    assert issue.context["delta"] == Decimal("500.00")
    assert "delta 500.00" in issue.message

def test_within_tolerance_is_balanced():
    assert check_balance(Decimal("10.00"), Decimal("10.01")) is None

def test_builder_converts_each_line():
    builder = JournalBuilder("MYR", "USD", Decimal("4.5"))
    builder.debit("1200", Decimal("100"), LineRole.RECEIVABLE)
    builder.credit("4000", Decimal("100"), LineRole.REVENUE)
    lines = builder.lines
    assert lines[0].debit == Decimal("450.00")
    assert lines[0].currency == "MYR"
    assert lines[0].source_currency == "USD"
    assert lines[0].source_amount == Decimal("100")
    assert lines[1].line_number == 2
    assert builder.check_balance() is None

def test_builder_keeps_lines_on_same_account_separate():
    builder = JournalBuilder("MYR", "MYR")
    builder.debit("1000", Decimal("100"), LineRole.MANUAL)
    builder.credit("4000", Decimal("60"), LineRole.MANUAL)
    builder.credit("4000", Decimal("40"), LineRole.MANUAL)
    entry = builder.build("JV-1", SourceType.JOURNAL, "JV-1", date(2024, 1, 1))
    assert len(entry.lines_for("4000")) == 2
    assert entry.entry_id.startswith("JE-")

def test_builder_skips_zero_lines():
    builder = JournalBuilder("MYR", "MYR")
    assert builder.credit("2300", Decimal("0"), LineRole.TAX) is None
    assert builder.lines == []

def test_journal_entry_refuses_to_be_unbalanced():
    lines = [
        JournalLine(line_number=1, account_id="1000", debit=Decimal("1000"), currency="MYR",
                    base_amount=Decimal("1000"), source_currency="MYR", source_amount=Decimal("1000")),
        JournalLine(line_number=2, account_id="4000", credit=Decimal("500"), currency="MYR",
                    base_amount=Decimal("500"), source_currency="MYR", source_amount=Decimal("500")),
    ]
    with pytest.raises(ValueError, match="Imbalanced"):
        JournalEntry(entry_id="JE-x", journal_number="JV", source_type=SourceType.JOURNAL, source_document="JV",
                     entry_date=date(2024, 1, 1), currency="MYR", lines=lines,
                     total_debit=Decimal("1000"), total_credit=Decimal("500"))

def test_journal_line_is_one_sided():
    with pytest.raises(ValueError):
        JournalLine(line_number=1, account_id="1000", debit=Decimal("1"), credit=Decimal("1"), currency="MYR",
                    base_amount=Decimal("1"), source_currency="MYR", source_amount=Decimal("1"))

def test_residual_leaves_unbalanced_source_alone():
    builder = JournalBuilder("MYR", "USD", Decimal("4.4567"))
    builder.debit("1100", Decimal("11.11"), LineRole.MANUAL)
    builder.credit("3000", Decimal("11.10"), LineRole.MANUAL)
    assert builder.absorb_conversion_residual() == Decimal("0")
    assert builder.total_debit == Decimal("49.51")

def test_residual_is_taken_off_the_heavier_side():
    builder = JournalBuilder("MYR", "USD", Decimal("4.4567"))
    for _ in range(3):
        builder.debit("1100", Decimal("1.11"), LineRole.MANUAL)
    builder.credit("3000", Decimal("3.33"), LineRole.MANUAL)

    # 3 x 4.95 = 14.85 against round(14.840811) = 14.84
    assert builder.absorb_conversion_residual() == Decimal("0.01")
    assert [l.debit for l in builder.lines[:3]] == [Decimal("4.94"), Decimal("4.95"), Decimal("4.95")]
    assert builder.total_debit == builder.total_credit == Decimal("14.84")
