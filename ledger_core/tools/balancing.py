import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import List, Optional
from ledger_core.models.accounting import JournalEntry, JournalLine, LineRole, SourceType
from ledger_core.models.results import ErrorCode, ValidationIssue
from ledger_core.tools.currency import convert
from ledger_core.tools.money import BALANCE_EPSILON, ZERO, is_balanced, sum_money

logger = logging.getLogger(__name__)

def new_entry_id() -> str:
    return f"JE-{uuid.uuid4().hex[:8]}"


def check_balance(total_debit: Decimal, total_credit: Decimal, currency: str = "") -> Optional[ValidationIssue]:
    """Returns an UNBALANCED_ENTRY issue carrying both totals and the delta, or None."""
    if is_balanced(total_debit, total_credit, BALANCE_EPSILON):
        return None
    delta = abs(total_debit - total_credit)
    suffix = f" {currency}" if currency else ""
    return ValidationIssue(
        code=ErrorCode.UNBALANCED_ENTRY,
        message=(
            f"Journal entry is unbalanced: total debit {total_debit}{suffix}, "
            f"total credit {total_credit}{suffix}, delta {delta}{suffix}"
        ),
        context={
            "total_debit": total_debit,
            "total_credit": total_credit,
            "delta": delta,
            "tolerance": BALANCE_EPSILON,
        },
    )


class JournalBuilder:
    """
    Collects GL lines for one document in input order. Each call adds one line;
    lines hitting the same account are never merged.
    """

    def __init__(self, base_currency: str, source_currency: str, rate: Optional[Decimal] = None):
        self.base_currency = base_currency
        self.source_currency = source_currency
        self.rate = Decimal("1") if source_currency == base_currency else rate
        self._lines: List[JournalLine] = []

    def to_base(self, amount: Decimal) -> Decimal:
        return convert(amount, self.source_currency, self.base_currency, self.rate)

    def _add(self, debit: bool, account_id: str, source_amount: Decimal, role: LineRole,
             description: str = "", reference: Optional[str] = None,
             base_amount: Optional[Decimal] = None) -> Optional[JournalLine]:
        if base_amount is None:
            base_amount = self.to_base(source_amount)
        # Zero lines (an untaxed line's tax, a fully applied allocation's excess) are not posted
        if base_amount == 0:
            return None
        line = JournalLine(
            line_number=len(self._lines) + 1,
            account_id=account_id,
            debit=base_amount if debit else ZERO,
            credit=ZERO if debit else base_amount,
            currency=self.base_currency,
            base_amount=base_amount,
            source_currency=self.source_currency,
            source_amount=source_amount,
            exchange_rate=self.rate,
            description=description,
            reference=reference,
            role=role,
        )
        self._lines.append(line)
        return line

    def debit(self, account_id: str, source_amount: Decimal, role: LineRole, **kwargs) -> Optional[JournalLine]:
        return self._add(True, account_id, source_amount, role, **kwargs)

    def credit(self, account_id: str, source_amount: Decimal, role: LineRole, **kwargs) -> Optional[JournalLine]:
        return self._add(False, account_id, source_amount, role, **kwargs)

    @property
    def lines(self) -> List[JournalLine]:
        return list(self._lines)

    @property
    def total_debit(self) -> Decimal:
        return sum_money(l.debit for l in self._lines)

    @property
    def total_credit(self) -> Decimal:
        return sum_money(l.credit for l in self._lines)

    def base_total(self, role: LineRole) -> Decimal:
        return sum_money(l.base_amount for l in self._lines if l.role == role)

    def absorb_conversion_residual(self) -> Decimal:
        """
        When the document balances exactly in its own currency, any base-currency
        difference comes from converting each line on its own. The residual is taken
        off the largest line of the heavier side, or added to the largest line of the
        lighter side when that line is too small to absorb it.
        Returns the residual moved (zero when nothing changed).
        """
        if self.source_currency == self.base_currency:
            return ZERO
        source_debit = sum_money(l.source_amount for l in self._lines if l.debit > 0)
        source_credit = sum_money(l.source_amount for l in self._lines if l.credit > 0)
        residual = self.total_debit - self.total_credit
        if source_debit != source_credit or residual == 0:
            return ZERO

        heavy_is_debit = residual > 0
        delta = abs(residual)
        heavy = max(
            (l for l in self._lines if (l.debit > 0) == heavy_is_debit),
            key=lambda l: l.base_amount,
        )
        if heavy.base_amount > delta:
            self._rebase(heavy, heavy.base_amount - delta)
        else:
            light = max(
                (l for l in self._lines if (l.debit > 0) != heavy_is_debit),
                key=lambda l: l.base_amount,
            )
            self._rebase(light, light.base_amount + delta)
        logger.info(f"Absorbed {delta} {self.base_currency} conversion residual")
        return delta

    def _rebase(self, line: JournalLine, base_amount: Decimal) -> None:
        debit = line.debit > 0
        self._lines[line.line_number - 1] = line.model_copy(update={
            "base_amount": base_amount,
            "debit": base_amount if debit else ZERO,
            "credit": ZERO if debit else base_amount,
        })

    def check_balance(self) -> Optional[ValidationIssue]:
        return check_balance(self.total_debit, self.total_credit, self.base_currency)

    def build(self, journal_number: str, source_type: SourceType, source_document: str,
              entry_date: date, description: str = "") -> JournalEntry:
        """Materializes the entry. JournalEntry itself refuses unbalanced totals."""
        return JournalEntry(
            entry_id=new_entry_id(),
            journal_number=journal_number,
            source_type=source_type,
            source_document=source_document,
            entry_date=entry_date,
            currency=self.base_currency,
            description=description,
            lines=self._lines,
            total_debit=self.total_debit,
            total_credit=self.total_credit,
        )
