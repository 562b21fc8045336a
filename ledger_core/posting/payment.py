import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional
from pydantic import BaseModel
from ledger_core.guardrails.permissions import Actor, Permission
from ledger_core.models.account import Account, AccountType
from ledger_core.models.accounting import LineRole, SourceType
from ledger_core.models.documents import AllocationType, PaymentAllocationInput, PaymentInput
from ledger_core.models.results import ErrorCode, PostingStage
from ledger_core.posting.context import PostingContext
from ledger_core.posting.pipeline import PostingPipeline
from ledger_core.tools.balancing import JournalBuilder
from ledger_core.tools.money import ZERO, sum_money

logger = logging.getLogger(__name__)


class AllocationSplit(BaseModel):
    """How one allocation lands: the part that clears the document and the excess sent to advances."""
    allocation: PaymentAllocationInput
    applied: Decimal
    excess: Decimal = ZERO

    @property
    def remaining(self) -> Optional[Decimal]:
        if self.allocation.outstanding_amount is None:
            return None
        return self.allocation.outstanding_amount - self.applied


def split_allocation(allocation: PaymentAllocationInput) -> AllocationSplit:
    outstanding = allocation.outstanding_amount
    if outstanding is None or allocation.allocated_amount <= outstanding:
        return AllocationSplit(allocation=allocation, applied=allocation.allocated_amount)
    return AllocationSplit(
        allocation=allocation,
        applied=outstanding,
        excess=allocation.allocated_amount - outstanding,
    )


class PaymentPlan(BaseModel):
    splits: List[AllocationSplit]
    unallocated: Decimal = ZERO
    advance_account_id: Optional[str] = None

    @property
    def advance_total(self) -> Decimal:
        return sum_money(s.excess for s in self.splits) + self.unallocated


def plan_payment(payment: PaymentInput, advance_account_id: Optional[str]) -> PaymentPlan:
    allocated = sum_money(a.allocated_amount for a in payment.allocations)
    return PaymentPlan(
        splits=[split_allocation(a) for a in payment.allocations],
        unallocated=max(payment.amount - allocated, ZERO),
        advance_account_id=advance_account_id,
    )


def _label(payment: PaymentInput) -> str:
    return "Receipt" if payment.is_receipt else "Payment"


def expand_receipt(payment: PaymentInput, plan: PaymentPlan, builder: JournalBuilder) -> None:
    """
    Dr Bank (amount less charges and withholding tax)
    Dr Bank charges
    Dr Withholding tax recoverable
        Cr Accounts Receivable (applied, per invoice)
        Cr Customer advances (overpayment and unallocated remainder)
    """
    ref = payment.reference or payment.payment_number
    credits_base = []
    credits = []  # (account_id, source_amount, base_amount, role, description)
    for s in plan.splits:
        a = s.allocation
        base = builder.to_base(s.applied)
        credits.append((a.ar_account_id, s.applied, base, LineRole.RECEIVABLE,
                        f"Receipt {payment.payment_number} - Invoice {a.document_number}"))
        credits_base.append(base)
        if s.excess:
            base = builder.to_base(s.excess)
            credits.append((plan.advance_account_id, s.excess, base, LineRole.ADVANCE,
                            f"Overpayment on invoice {a.document_number}"))
            credits_base.append(base)
    if plan.unallocated:
        base = builder.to_base(plan.unallocated)
        credits.append((plan.advance_account_id, plan.unallocated, base, LineRole.ADVANCE,
                        f"Unallocated receipt {payment.payment_number}"))
        credits_base.append(base)

    charges = [(c, builder.to_base(c.amount)) for c in payment.bank_charges]
    wht = [(t, builder.to_base(t.amount)) for t in payment.withholding_tax]
    deductions = sum_money(c.amount for c, _ in charges) + sum_money(t.amount for t, _ in wht)
    bank_base = sum_money(credits_base) - sum_money(b for _, b in charges) - sum_money(b for _, b in wht)

    builder.debit(
        payment.bank_account_id, payment.amount - deductions, LineRole.BANK,
        description=f"Receipt {payment.payment_number} - {payment.payment_method.value}",
        reference=ref, base_amount=bank_base,
    )
    for charge, base in charges:
        builder.debit(charge.account_id, charge.amount, LineRole.BANK_CHARGE,
                      description=charge.description or f"Bank charges on {payment.payment_number}",
                      reference=ref, base_amount=base)
    for tax, base in wht:
        builder.debit(tax.account_id, tax.amount, LineRole.WITHHOLDING_TAX,
                      description=tax.description or f"Withholding tax on {payment.payment_number}",
                      reference=ref, base_amount=base)
    for account_id, source_amount, base, role, description in credits:
        builder.credit(account_id, source_amount, role, description=description, reference=ref, base_amount=base)


def expand_bill_payment(payment: PaymentInput, plan: PaymentPlan, builder: JournalBuilder) -> None:
    """
    Dr Accounts Payable (applied, per bill)
    Dr Supplier advances (overpayment and unallocated remainder)
    Dr Bank charges
        Cr Withholding tax payable
        Cr Bank (amount plus charges less withholding tax)
    """
    ref = payment.reference or payment.payment_number
    debits_base = []
    for s in plan.splits:
        a = s.allocation
        line = builder.debit(a.ap_account_id, s.applied, LineRole.PAYABLE,
                             description=f"Payment {payment.payment_number} - Bill {a.document_number}",
                             reference=ref)
        if line:
            debits_base.append(line.base_amount)
        if s.excess:
            line = builder.debit(plan.advance_account_id, s.excess, LineRole.ADVANCE,
                                 description=f"Overpayment on bill {a.document_number}",
                                 reference=ref)
            if line:
                debits_base.append(line.base_amount)
    if plan.unallocated:
        line = builder.debit(plan.advance_account_id, plan.unallocated, LineRole.ADVANCE,
                             description=f"Unallocated payment {payment.payment_number}",
                             reference=ref)
        if line:
            debits_base.append(line.base_amount)
    for charge in payment.bank_charges:
        line = builder.debit(charge.account_id, charge.amount, LineRole.BANK_CHARGE,
                             description=charge.description or f"Bank charges on {payment.payment_number}",
                             reference=ref)
        if line:
            debits_base.append(line.base_amount)

    wht_base = []
    for tax in payment.withholding_tax:
        line = builder.credit(tax.account_id, tax.amount, LineRole.WITHHOLDING_TAX,
                              description=tax.description or f"Withholding tax on {payment.payment_number}",
                              reference=ref)
        if line:
            wht_base.append(line.base_amount)

    charges = sum_money(c.amount for c in payment.bank_charges)
    withheld = sum_money(t.amount for t in payment.withholding_tax)
    builder.credit(
        payment.bank_account_id, payment.amount + charges - withheld, LineRole.BANK,
        description=f"Payment {payment.payment_number} - {payment.payment_method.value}",
        reference=ref, base_amount=sum_money(debits_base) - sum_money(wht_base),
    )


def _check_allocations(pipeline: PostingPipeline, payment: PaymentInput) -> None:
    """Allocation consistency against the payment amount and each document's open balance."""
    if payment.is_mixed:
        pipeline.add(
            ErrorCode.ALLOCATION_ERROR,
            "A payment cannot mix bill and invoice allocations",
            field="allocations",
            types=sorted({a.type.value for a in payment.allocations}),
        )

    total_allocated = sum_money(a.allocated_amount for a in payment.allocations)
    if total_allocated > payment.amount:
        pipeline.add(
            ErrorCode.ALLOCATION_ERROR,
            f"Total allocated {total_allocated} exceeds payment amount {payment.amount}",
            field="allocations",
            total_allocated=total_allocated,
            payment_amount=payment.amount,
            excess=total_allocated - payment.amount,
        )

    seen = set()
    for i, a in enumerate(payment.allocations):
        if a.document_id in seen:
            pipeline.add(
                ErrorCode.ALLOCATION_ERROR,
                f"Document {a.document_number} is allocated more than once",
                field=f"allocations.{i}.document_id",
                document_id=a.document_id,
            )
        seen.add(a.document_id)
        if a.outstanding_amount is not None and a.outstanding_amount <= 0:
            pipeline.add(
                ErrorCode.ALLOCATION_ERROR,
                f"Document {a.document_number} has no outstanding balance",
                field=f"allocations.{i}.outstanding_amount",
                document_id=a.document_id,
                outstanding_amount=a.outstanding_amount,
                allocated_amount=a.allocated_amount,
            )

    charges = sum_money(c.amount for c in payment.bank_charges)
    withheld = sum_money(t.amount for t in payment.withholding_tax)
    deductions = charges + withheld if payment.is_receipt else withheld
    if deductions >= payment.amount:
        pipeline.add(
            ErrorCode.ALLOCATION_ERROR,
            f"Deductions {deductions} leave nothing to settle through the bank for payment amount {payment.amount}",
            field="amount",
            deductions=deductions,
            payment_amount=payment.amount,
        )


def _check_currency_rules(pipeline: PostingPipeline, payment: PaymentInput, bank: Optional[Account]) -> None:
    """
    Amounts must fit the payment currency's minor unit. The bank account must hold
    the payment currency or the base currency. Allocated documents and known party
    currencies must match the payment currency.
    """
    pipeline.check_minor_units(payment.amount, payment.currency, "amount")
    for i, a in enumerate(payment.allocations):
        pipeline.check_minor_units(a.allocated_amount, payment.currency, f"allocations.{i}.allocated_amount")
    for i, c in enumerate(payment.bank_charges):
        pipeline.check_minor_units(c.amount, payment.currency, f"bank_charges.{i}.amount")
    for i, t in enumerate(payment.withholding_tax):
        pipeline.check_minor_units(t.amount, payment.currency, f"withholding_tax.{i}.amount")

    base = pipeline.context.base_currency
    if bank is not None and bank.currency not in (payment.currency, base):
        pipeline.add(
            ErrorCode.CURRENCY_MISMATCH,
            f"Bank account {bank.account_id} currency {bank.currency} does not match payment currency {payment.currency}",
            field="bank_account_id",
            account_currency=bank.currency,
            payment_currency=payment.currency,
        )

    currencies = sorted({a.currency or payment.currency for a in payment.allocations})
    if len(currencies) > 1:
        pipeline.add(
            ErrorCode.CURRENCY_MISMATCH,
            f"Allocations span multiple currencies: {', '.join(currencies)}",
            field="allocations",
            currencies=currencies,
        )
    elif currencies[0] != payment.currency:
        pipeline.add(
            ErrorCode.CURRENCY_MISMATCH,
            f"Allocated documents are in {currencies[0]}, payment is in {payment.currency}",
            field="allocations",
            currencies=currencies,
            payment_currency=payment.currency,
        )

    for i, a in enumerate(payment.allocations):
        if a.party_currency and a.party_currency != payment.currency:
            party = "Supplier" if a.type == AllocationType.BILL else "Customer"
            pipeline.add(
                ErrorCode.CURRENCY_MISMATCH,
                f"{party} {a.party_id} currency {a.party_currency} does not match payment currency {payment.currency}",
                field=f"allocations.{i}.party_currency",
                party_currency=a.party_currency,
                payment_currency=payment.currency,
            )


def validate_payment_processing_enhanced(payment: Any, actor_id: str, actor_role: str,
                                         base_currency: Optional[str], context: PostingContext):
    """
    Validates a payment (bill allocations) or receipt (invoice allocations),
    including overpayment routing, bank charges and withholding tax.
    """
    actor = Actor(actor_id=actor_id, role=actor_role)
    context = context.replace(actor=actor, base_currency=base_currency or context.base_currency)
    pipeline = PostingPipeline(context, SourceType.PAYMENT)

    # 1. Structure
    doc = pipeline.parse(PaymentInput, payment)
    if doc is None:
        return pipeline.reject()
    pipeline.reference = doc.payment_number
    receipt = doc.is_receipt

    # 2. Independent checks
    pipeline.check_permission(actor, Permission.POST_PAYMENT)
    pipeline.check_not_future(doc.payment_date, "payment_date", "Payment date")
    _check_allocations(pipeline, doc)

    bank = pipeline.require_account(doc.bank_account_id, "bank_account_id", [AccountType.ASSET], "Bank account")
    _check_currency_rules(pipeline, doc, bank)
    for i, a in enumerate(doc.allocations):
        if a.type == AllocationType.INVOICE:
            pipeline.require_account(a.ar_account_id, f"allocations.{i}.ar_account_id",
                                     [AccountType.ASSET], "AR account")
        else:
            pipeline.require_account(a.ap_account_id, f"allocations.{i}.ap_account_id",
                                     [AccountType.LIABILITY], "AP account")
    for i, c in enumerate(doc.bank_charges):
        pipeline.require_account(c.account_id, f"bank_charges.{i}.account_id",
                                 [AccountType.EXPENSE], "Bank charge account")
    wht_type = AccountType.ASSET if receipt else AccountType.LIABILITY
    for i, t in enumerate(doc.withholding_tax):
        pipeline.require_account(t.account_id, f"withholding_tax.{i}.account_id", [wht_type], "Withholding tax account")

    mapping = context.gl_mapping
    if receipt:
        advance_account_id = doc.advance_account_id or mapping.customer_advance_account_id
        advance_type = AccountType.LIABILITY
    else:
        advance_account_id = doc.advance_account_id or mapping.supplier_advance_account_id
        advance_type = AccountType.ASSET
    plan = plan_payment(doc, advance_account_id)
    if plan.advance_total > 0:
        if not advance_account_id:
            pipeline.add(ErrorCode.VALIDATION_ERROR, "No advance account configured for the excess payment",
                          field="advance_account_id", advance_amount=plan.advance_total)
        else:
            pipeline.require_account(advance_account_id, "advance_account_id", [advance_type], "Advance account")

    rate = pipeline.resolve_rate(doc.currency, doc.exchange_rate, doc.payment_date)

    if pipeline.has_errors():
        return pipeline.reject()
    pipeline.advance(PostingStage.ACCOUNTS_RESOLVED)

    # 3-4. Convert and expand
    builder = JournalBuilder(context.base_currency, doc.currency, rate)
    if receipt:
        expand_receipt(doc, plan, builder)
    else:
        expand_bill_payment(doc, plan, builder)

    total_amount = builder.to_base(doc.amount)
    approval = context.permissions.approval_for(actor, total_amount)
    remaining: List[Dict[str, Any]] = [
        {
            "document_id": s.allocation.document_id,
            "document_number": s.allocation.document_number,
            "outstanding_amount": s.allocation.outstanding_amount,
            "applied_amount": s.applied,
            "remaining_amount": s.remaining,
        }
        for s in plan.splits
        if s.remaining is not None and s.remaining > 0
    ]
    details = {
        "payment_id": doc.payment_id,
        "payment_type": "RECEIPT" if receipt else "PAYMENT",
        "total_amount": total_amount,
        "currency": context.base_currency,
        "source_currency": doc.currency,
        "source_amount": doc.amount,
        "exchange_rate": builder.rate,
        "fx_applied": doc.currency != context.base_currency,
        "allocations_processed": len(doc.allocations),
        "applied_amount": sum_money(s.applied for s in plan.splits),
        "advance_amount": plan.advance_total,
        "bank_charges": sum_money(c.amount for c in doc.bank_charges),
        "withholding_tax": sum_money(t.amount for t in doc.withholding_tax),
        "remaining_balances": remaining,
        "requires_approval": approval.requires_approval,
        "approver_roles": approval.approver_roles,
    }
    if approval.requires_approval:
        logger.info(f"Payment {doc.payment_number} ({total_amount} {context.base_currency}) requires approval by {approval.approver_roles}")

    # 5. Balance and result
    return pipeline.finish(
        builder,
        journal_number=f"PAY-{doc.payment_number}",
        source_document=doc.payment_id,
        entry_date=doc.payment_date,
        description=doc.description or f"{_label(doc)} {doc.payment_number} - {doc.payment_method.value}",
        details=details,
    )
