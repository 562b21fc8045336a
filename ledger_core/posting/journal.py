from typing import Any
from ledger_core.guardrails.permissions import Permission
from ledger_core.models.accounting import LineRole, SourceType
from ledger_core.models.documents import JournalInput
from ledger_core.models.results import PostingStage
from ledger_core.posting.context import PostingContext
from ledger_core.posting.pipeline import PostingPipeline
from ledger_core.tools.balancing import JournalBuilder


def expand_journal(journal: JournalInput, builder: JournalBuilder) -> None:
    """One GL line per input line, in input order, each converted on its own."""
    for line in journal.lines:
        description = line.description or journal.description
        reference = line.reference or journal.journal_number
        if line.is_debit:
            builder.debit(line.account_id, line.amount, LineRole.MANUAL, description=description, reference=reference)
        else:
            builder.credit(line.account_id, line.amount, LineRole.MANUAL, description=description, reference=reference)


def validate_journal_posting(journal: Any, context: PostingContext):
    """
    Validates a manual journal. Balance is checked after conversion, in base currency;
    a journal balanced in its own currency absorbs per-line conversion rounding.
    """
    pipeline = PostingPipeline(context, SourceType.JOURNAL)

    # 1. Structure
    doc = pipeline.parse(JournalInput, journal)
    if doc is None:
        return pipeline.reject()
    pipeline.reference = doc.journal_number

    # 2. Independent checks
    pipeline.check_permission(context.actor, Permission.POST_JOURNAL)
    pipeline.check_not_future(doc.journal_date, "journal_date", "Journal date")
    for i, line in enumerate(doc.lines):
        pipeline.require_account(line.account_id, f"lines.{i}.account_id")
        pipeline.check_minor_units(line.amount, doc.currency, f"lines.{i}.{'debit' if line.is_debit else 'credit'}")
    rate = pipeline.resolve_rate(doc.currency, doc.exchange_rate, doc.journal_date)

    if pipeline.has_errors():
        return pipeline.reject()
    pipeline.advance(PostingStage.ACCOUNTS_RESOLVED)

    # 3-4. Convert and expand
    builder = JournalBuilder(context.base_currency, doc.currency, rate)
    expand_journal(doc, builder)

    details = {
        "fx_applied": doc.currency != context.base_currency,
        "exchange_rate": builder.rate,
    }
    if context.actor is not None:
        approval = context.permissions.approval_for(context.actor, builder.total_debit)
        details["requires_approval"] = approval.requires_approval
        details["approver_roles"] = approval.approver_roles

    # 5. Balance and result
    return pipeline.finish(
        builder,
        journal_number=doc.journal_number,
        source_document=doc.journal_number,
        entry_date=doc.journal_date,
        description=doc.description,
        details=details,
    )
