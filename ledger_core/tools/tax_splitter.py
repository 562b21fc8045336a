from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel
from ledger_core.models.documents import TaxedLineInput
from ledger_core.tools.money import ZERO, round_money

class TaxSplit(BaseModel):
    """Net and tax of one document line, each rounded on its own, in document currency."""
    net: Decimal
    tax: Decimal = ZERO
    tax_rate: Decimal = ZERO

    @property
    def gross(self) -> Decimal:
        return self.net + self.tax


def split_line(line: TaxedLineInput, currency: str) -> TaxSplit:
    """
    net = round(quantity * unit_price), tax = round(net * tax_rate).
    The gross is the sum of the two rounded parts, never rounded again.
    """
    net = round_money(line.quantity * line.unit_price, currency)
    if not line.is_taxed:
        return TaxSplit(net=net)
    tax = round_money(net * line.tax_rate, currency)
    return TaxSplit(net=net, tax=tax, tax_rate=line.tax_rate)


def check_declared_amounts(line: TaxedLineInput, split: TaxSplit, currency: str) -> List[str]:
    """Compares declared line/tax amounts, if any, with the computed split."""
    problems = []
    if line.line_amount is not None:
        declared = round_money(line.line_amount, currency)
        if declared != split.net:
            problems.append(
                f"Line {line.line_number}: line amount {declared} does not match "
                f"quantity x unit price ({split.net})"
            )
    if line.tax_amount is not None:
        declared = round_money(line.tax_amount, currency)
        if declared != split.tax:
            rate = f"{split.tax_rate * 100}%" if split.tax_rate else "no tax rate"
            problems.append(
                f"Line {line.line_number}: tax amount {declared} does not match "
                f"{rate} of {split.net} ({split.tax})"
            )
    return problems


def resolve_tax_account(line: TaxedLineInput, default_account_id: Optional[str], tax_code_map=None) -> Optional[str]:
    """Line override first, then the tax-code mapping, then the company default."""
    if line.tax_account_id:
        return line.tax_account_id
    if tax_code_map and line.tax_code and line.tax_code in tax_code_map:
        return tax_code_map[line.tax_code]
    return default_account_id
