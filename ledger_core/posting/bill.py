from typing import Any, List, Optional, Tuple
from ledger_core.guardrails.permissions import Permission
from ledger_core.models.account import AccountType
from ledger_core.models.accounting import LineRole, SourceType
from ledger_core.models.documents import BillInput, BillLineInput
from ledger_core.models.results import ErrorCode, PostingStage
from ledger_core.posting.context import PostingContext
from ledger_core.posting.pipeline import PostingPipeline
from ledger_core.tools.balancing import JournalBuilder
from ledger_core.tools.money import sum_money
from ledger_core.tools.tax_splitter import TaxSplit, check_declared_amounts, resolve_tax_account, split_line

BillPlan = List[Tuple[BillLineInput, TaxSplit, Optional[str]]]

# Capitalised purchases may be booked straight to an asset account
EXPENSE_LINE_TYPES = [AccountType.EXPENSE, AccountType.ASSET]


def expand_bill(bill: BillInput, plan: BillPlan, builder: JournalBuilder) -> None:
    """
    Dr Expense (net)
    Dr Input tax (tax)
        Cr Accounts Payable (gross)
    """
    payable_base = []
    for line, split, tax_account_id in plan:
        net_line = builder.debit(
            line.expense_account_id, split.net, LineRole.EXPENSE,
            description=line.description or f"Bill {bill.bill_number} line {line.line_number}",
            reference=bill.bill_number,
        )
        if net_line:
            payable_base.append(net_line.base_amount)
        if split.tax and tax_account_id:
            tax_line = builder.debit(
                tax_account_id, split.tax, LineRole.TAX,
                description=f"Input tax {line.tax_code or split.tax_rate} on {bill.bill_number} line {line.line_number}",
                reference=bill.bill_number,
            )
            if tax_line:
                payable_base.append(tax_line.base_amount)

    builder.credit(
        bill.ap_account_id, sum_money(split.gross for _, split, _ in plan), LineRole.PAYABLE,
        description=f"Bill {bill.bill_number} - {bill.supplier_name or bill.supplier_id}",
        reference=bill.bill_number,
        base_amount=sum_money(payable_base),
    )


def validate_bill_posting(bill: Any, context: PostingContext):
    pipeline = PostingPipeline(context, SourceType.BILL)

    # 1. Structure
    doc = pipeline.parse(BillInput, bill)
    if doc is None:
        return pipeline.reject()
    pipeline.reference = doc.bill_number
    mapping = context.gl_mapping

    # 2. Independent checks
    pipeline.check_permission(context.actor, Permission.POST_BILL)
    pipeline.require_account(doc.ap_account_id, "ap_account_id", [AccountType.LIABILITY], "AP account")

    plan: BillPlan = []
    for i, line in enumerate(doc.lines):
        pipeline.require_account(
            line.expense_account_id, f"lines.{i}.expense_account_id", EXPENSE_LINE_TYPES, "Expense account"
        )
        split = split_line(line, doc.currency)
        for problem in check_declared_amounts(line, split, doc.currency):
            pipeline.add(ErrorCode.VALIDATION_ERROR, problem, field=f"lines.{i}",
                         computed_net=split.net, computed_tax=split.tax)

        tax_account_id = None
        if split.tax:
            tax_account_id = resolve_tax_account(line, mapping.input_tax_account_id, mapping.tax_code_map)
            if not tax_account_id:
                pipeline.add(ErrorCode.VALIDATION_ERROR,
                             f"Line {line.line_number}: no input tax account configured",
                             field=f"lines.{i}.tax_account_id")
            else:
                pipeline.require_account(
                    tax_account_id, f"lines.{i}.tax_account_id", [AccountType.ASSET], "Input tax account"
                )
        plan.append((line, split, tax_account_id))

    rate = pipeline.resolve_rate(doc.currency, doc.exchange_rate, doc.bill_date)

    if pipeline.has_errors():
        return pipeline.reject()
    pipeline.advance(PostingStage.ACCOUNTS_RESOLVED)

    # 3-4. Convert and expand
    builder = JournalBuilder(context.base_currency, doc.currency, rate)
    expand_bill(doc, plan, builder)

    total_expense = builder.base_total(LineRole.EXPENSE)
    total_tax = builder.base_total(LineRole.TAX)
    details = {
        "bill_id": doc.bill_id,
        "supplier_id": doc.supplier_id,
        "total_expense": total_expense,
        "total_tax": total_tax,
        "total_amount": total_expense + total_tax,
        "source_total": sum_money(split.gross for _, split, _ in plan),
        "fx_applied": doc.currency != context.base_currency,
        "exchange_rate": builder.rate,
    }

    # 5. Balance and result
    return pipeline.finish(
        builder,
        journal_number=doc.bill_number,
        source_document=doc.bill_id,
        entry_date=doc.bill_date,
        description=doc.description or f"Bill {doc.bill_number} - {doc.supplier_name or doc.supplier_id}",
        details=details,
    )
