from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Annotated, List, Literal, Optional, Set
from pydantic import BaseModel, ConfigDict, Field, model_validator

CurrencyCode = Annotated[str, Field(pattern=r"^[A-Z]{3}$", description="ISO 4217 code, e.g. MYR")]

class DocumentModel(BaseModel):
    """Base for transient document inputs. Unknown keys are rejected."""
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

# ---------------------------------------------------------------------------
# Manual journals
# ---------------------------------------------------------------------------

class JournalLineInput(DocumentModel):
    """A single debit-or-credit line as entered by the user."""
    account_id: str = Field(..., min_length=1)
    debit: Optional[Decimal] = Field(None, ge=0, allow_inf_nan=False)
    credit: Optional[Decimal] = Field(None, ge=0, allow_inf_nan=False)
    description: str = ""
    reference: Optional[str] = None

    @model_validator(mode="after")
    def one_side_only(self):
        debit = self.debit or Decimal("0")
        credit = self.credit or Decimal("0")
        if debit > 0 and credit > 0:
            raise ValueError("Cannot have both debit and credit amounts")
        if debit == 0 and credit == 0:
            raise ValueError("Must have either debit or credit amount")
        return self

    @property
    def amount(self) -> Decimal:
        return self.debit or self.credit

    @property
    def is_debit(self) -> bool:
        return bool(self.debit)

class JournalInput(DocumentModel):
    kind: Literal["JOURNAL"] = "JOURNAL"
    journal_number: str = Field(..., min_length=1)
    journal_date: date
    currency: CurrencyCode
    exchange_rate: Optional[Decimal] = Field(None, allow_inf_nan=True)
    description: str = ""
    lines: List[JournalLineInput] = Field(..., min_length=1, max_length=100)

    def account_ids(self) -> Set[str]:
        return {l.account_id for l in self.lines}

# ---------------------------------------------------------------------------
# Invoices and bills
# ---------------------------------------------------------------------------

class TaxedLineInput(DocumentModel):
    line_number: int = Field(..., ge=1)
    description: str = ""
    quantity: Decimal = Field(..., gt=0, allow_inf_nan=False)
    unit_price: Decimal = Field(..., ge=0, allow_inf_nan=False)
    line_amount: Optional[Decimal] = Field(None, ge=0, description="Declared net amount, checked against quantity * unit_price")
    tax_code: Optional[str] = None
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=1, description="0.06 for 6%")
    tax_amount: Optional[Decimal] = Field(None, ge=0, description="Declared tax, checked against the computed tax")
    tax_account_id: Optional[str] = None

    @property
    def is_taxed(self) -> bool:
        return bool(self.tax_rate)

class InvoiceLineInput(TaxedLineInput):
    revenue_account_id: str = Field(..., min_length=1)

    @property
    def target_account_id(self) -> str:
        return self.revenue_account_id

class BillLineInput(TaxedLineInput):
    expense_account_id: str = Field(..., min_length=1)

    @property
    def target_account_id(self) -> str:
        return self.expense_account_id

def _unique_line_numbers(lines) -> None:
    seen = set()
    for line in lines:
        if line.line_number in seen:
            raise ValueError(f"Duplicate line number {line.line_number}")
        seen.add(line.line_number)

class InvoiceInput(DocumentModel):
    """Customer invoice: Dr Accounts Receivable / Cr Revenue (+ Cr Output tax)."""
    kind: Literal["INVOICE"] = "INVOICE"
    invoice_id: str = Field(..., min_length=1)
    invoice_number: str = Field(..., min_length=1)
    customer_id: str = Field(..., min_length=1)
    customer_name: str = ""
    invoice_date: date
    currency: CurrencyCode
    exchange_rate: Optional[Decimal] = Field(None, allow_inf_nan=True)
    ar_account_id: str = Field(..., min_length=1)
    description: str = ""
    lines: List[InvoiceLineInput] = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_lines(self):
        _unique_line_numbers(self.lines)
        return self

    def account_ids(self) -> Set[str]:
        ids = {self.ar_account_id}
        for line in self.lines:
            ids.add(line.revenue_account_id)
            if line.tax_account_id:
                ids.add(line.tax_account_id)
        return ids

class BillInput(DocumentModel):
    """Supplier bill: Dr Expense (+ Dr Input tax) / Cr Accounts Payable."""
    kind: Literal["BILL"] = "BILL"
    bill_id: str = Field(..., min_length=1)
    bill_number: str = Field(..., min_length=1)
    supplier_id: str = Field(..., min_length=1)
    supplier_name: str = ""
    bill_date: date
    currency: CurrencyCode
    exchange_rate: Optional[Decimal] = Field(None, allow_inf_nan=True)
    ap_account_id: str = Field(..., min_length=1)
    description: str = ""
    lines: List[BillLineInput] = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_lines(self):
        _unique_line_numbers(self.lines)
        return self

    def account_ids(self) -> Set[str]:
        ids = {self.ap_account_id}
        for line in self.lines:
            ids.add(line.expense_account_id)
            if line.tax_account_id:
                ids.add(line.tax_account_id)
        return ids

# ---------------------------------------------------------------------------
# Payments and receipts
# ---------------------------------------------------------------------------

class PaymentMethod(str, Enum):
    BANK_TRANSFER = "BANK_TRANSFER"
    CHECK = "CHECK"
    CASH = "CASH"
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    OTHER = "OTHER"

class AllocationType(str, Enum):
    BILL = "BILL"        # outgoing payment to a supplier
    INVOICE = "INVOICE"  # incoming receipt from a customer

class PaymentAllocationInput(DocumentModel):
    type: AllocationType
    document_id: str = Field(..., min_length=1)
    document_number: str = Field(..., min_length=1)
    allocated_amount: Decimal = Field(..., gt=0, allow_inf_nan=False)
    outstanding_amount: Optional[Decimal] = Field(None, allow_inf_nan=False, description="Amount still owed on the document, in payment currency")
    supplier_id: Optional[str] = None
    customer_id: Optional[str] = None
    ap_account_id: Optional[str] = None
    ar_account_id: Optional[str] = None
    currency: Optional[CurrencyCode] = Field(None, description="Currency of the allocated document; defaults to the payment's")
    party_currency: Optional[CurrencyCode] = Field(None, description="Billing currency of the customer or supplier, when known")

    @model_validator(mode="after")
    def party_fields(self):
        if self.type == AllocationType.BILL:
            if not self.ap_account_id:
                raise ValueError("AP account required for bill payments")
            if not self.supplier_id:
                raise ValueError("Supplier ID required for bill payments")
        else:
            if not self.ar_account_id:
                raise ValueError("AR account required for invoice receipts")
            if not self.customer_id:
                raise ValueError("Customer ID required for invoice receipts")
        return self

    @property
    def control_account_id(self) -> str:
        return self.ap_account_id if self.type == AllocationType.BILL else self.ar_account_id

    @property
    def party_id(self) -> str:
        return self.supplier_id if self.type == AllocationType.BILL else self.customer_id

class BankChargeInput(DocumentModel):
    account_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, allow_inf_nan=False)
    description: str = ""

class WithholdingTaxInput(DocumentModel):
    account_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, allow_inf_nan=False)
    rate: Optional[Decimal] = Field(None, gt=0, le=1, description="0.10 for 10%")
    description: str = ""

class PaymentInput(DocumentModel):
    kind: Literal["PAYMENT"] = "PAYMENT"
    payment_id: str = Field(..., min_length=1)
    payment_number: str = Field(..., min_length=1)
    payment_date: date
    payment_method: PaymentMethod
    bank_account_id: str = Field(..., min_length=1)
    currency: CurrencyCode
    exchange_rate: Optional[Decimal] = Field(None, allow_inf_nan=True)
    amount: Decimal = Field(..., gt=0, allow_inf_nan=False)
    reference: Optional[str] = None
    description: str = ""
    customer_id: Optional[str] = None
    supplier_id: Optional[str] = None
    advance_account_id: Optional[str] = Field(None, description="Overrides the company default advance account")
    allocations: List[PaymentAllocationInput] = Field(..., min_length=1)
    bank_charges: List[BankChargeInput] = Field(default_factory=list)
    withholding_tax: List[WithholdingTaxInput] = Field(default_factory=list)

    @property
    def is_receipt(self) -> bool:
        return all(a.type == AllocationType.INVOICE for a in self.allocations)

    @property
    def is_mixed(self) -> bool:
        return len({a.type for a in self.allocations}) > 1

    def account_ids(self) -> Set[str]:
        ids = {self.bank_account_id}
        ids.update(a.control_account_id for a in self.allocations)
        ids.update(c.account_id for c in self.bank_charges)
        ids.update(t.account_id for t in self.withholding_tax)
        if self.advance_account_id:
            ids.add(self.advance_account_id)
        return ids
