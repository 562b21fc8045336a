from typing import Any, List, Optional, Tuple
from ledger_core.guardrails.permissions import Permission
from ledger_core.models.account import AccountType
from ledger_core.models.accounting import LineRole, SourceType
from ledger_core.models.documents import InvoiceInput, InvoiceLineInput
from ledger_core.models.results import ErrorCode, PostingStage
from ledger_core.posting.context import PostingContext
from ledger_core.posting.pipeline import PostingPipeline
from ledger_core.tools.balancing import JournalBuilder
from ledger_core.tools.money import sum_money
from ledger_core.tools.tax_splitter import TaxSplit, check_declared_amounts, resolve_tax_account, split_line

# (line, split in document currency, tax account or None)
InvoicePlan = List[Tuple[InvoiceLineInput, TaxSplit, Optional[str]]]


def expand_invoice(invoice: InvoiceInput, plan: InvoicePlan, builder: JournalBuilder) -> None:
    """
    Dr Accounts Receivable (gross)
        Cr Revenue (net, one line per invoice line)
        Cr Output tax (tax, one line per taxed invoice line)

    Net and tax are converted separately; the receivable is the sum of the
    converted parts so the entry balances without a rounding line.
    """
    converted = [(builder.to_base(split.net), builder.to_base(split.tax)) for _, split, _ in plan]
    receivable_base = sum_money(net + tax for net, tax in converted)
    receivable_source = sum_money(split.gross for _, split, _ in plan)
    party = invoice.customer_name or invoice.customer_id

    builder.debit(
        invoice.ar_account_id, receivable_source, LineRole.RECEIVABLE,
        description=f"Invoice {invoice.invoice_number} - {party}",
        reference=invoice.invoice_number,
        base_amount=receivable_base,
    )
    for (line, split, tax_account_id), (net_base, tax_base) in zip(plan, converted):
        builder.credit(
            line.revenue_account_id, split.net, LineRole.REVENUE,
            description=line.description or f"Invoice {invoice.invoice_number} line {line.line_number}",
            reference=invoice.invoice_number,
            base_amount=net_base,
        )
        if split.tax and tax_account_id:
            builder.credit(
                tax_account_id, split.tax, LineRole.TAX,
                description=f"Tax {line.tax_code or split.tax_rate} on {invoice.invoice_number} line {line.line_number}",
                reference=invoice.invoice_number,
                base_amount=tax_base,
            )


def validate_invoice_posting(invoice: Any, context: PostingContext):
    """
    Validates a customer invoice and builds its journal.
    Returns PostingValidated or PostingRejected; never raises for business-rule failures.
    """
    pipeline = PostingPipeline(context, SourceType.INVOICE)

    # 1. Structure (fail fast)
    doc = pipeline.parse(InvoiceInput, invoice)
    if doc is None:
        return pipeline.reject()
    pipeline.reference = doc.invoice_number
    mapping = context.gl_mapping

    # 2. Independent checks, all collected
    pipeline.check_permission(context.actor, Permission.POST_INVOICE)
    pipeline.require_account(doc.ar_account_id, "ar_account_id", [AccountType.ASSET], "AR account")

    plan: InvoicePlan = []
    for i, line in enumerate(doc.lines):
        pipeline.require_account(
            line.revenue_account_id, f"lines.{i}.revenue_account_id", [AccountType.INCOME], "Revenue account"
        )
        split = split_line(line, doc.currency)
        for problem in check_declared_amounts(line, split, doc.currency):
            pipeline.add(ErrorCode.VALIDATION_ERROR, problem, field=f"lines.{i}",
                         computed_net=split.net, computed_tax=split.tax)

        tax_account_id = None
        if split.tax:
            tax_account_id = resolve_tax_account(line, mapping.output_tax_account_id, mapping.tax_code_map)
            if not tax_account_id:
                pipeline.add(ErrorCode.VALIDATION_ERROR,
                             f"Line {line.line_number}: no output tax account configured",
                             field=f"lines.{i}.tax_account_id")
            else:
                pipeline.require_account(
                    tax_account_id, f"lines.{i}.tax_account_id", [AccountType.LIABILITY], "Output tax account"
                )
        plan.append((line, split, tax_account_id))

    rate = pipeline.resolve_rate(doc.currency, doc.exchange_rate, doc.invoice_date)

    if pipeline.has_errors():
        return pipeline.reject()
    pipeline.advance(PostingStage.ACCOUNTS_RESOLVED)

    # 3-4. Convert and expand
    builder = JournalBuilder(context.base_currency, doc.currency, rate)
    expand_invoice(doc, plan, builder)

    total_revenue = builder.base_total(LineRole.REVENUE)
    total_tax = builder.base_total(LineRole.TAX)
    details = {
        "invoice_id": doc.invoice_id,
        "customer_id": doc.customer_id,
        "total_revenue": total_revenue,
        "total_tax": total_tax,
        "total_amount": total_revenue + total_tax,
        "source_total": sum_money(split.gross for _, split, _ in plan),
        "fx_applied": doc.currency != context.base_currency,
        "exchange_rate": builder.rate,
    }

    # 5. Balance and result
    return pipeline.finish(
        builder,
        journal_number=doc.invoice_number,
        source_document=doc.invoice_id,
        entry_date=doc.invoice_date,
        description=doc.description or f"Invoice {doc.invoice_number} - {doc.customer_name or doc.customer_id}",
        details=details,
    )
