from decimal import Decimal
from typing import Dict, Optional
from pydantic import Field, field_validator
from ledger_core.models.base import MongoModel

class GLMapping(MongoModel):
    """Company-wide default accounts used when a document does not name one."""
    customer_advance_account_id: str = "2150"  # Customer deposits / advances received
    supplier_advance_account_id: str = "1450"  # Supplier prepayments / advances paid
    output_tax_account_id: Optional[str] = "2300"  # Sales tax payable
    input_tax_account_id: Optional[str] = "1510"  # Input tax recoverable

    # Tax code overrides, e.g. {"SST6": "2310"}
    tax_code_map: Dict[str, str] = {}

class ApprovalLimits(MongoModel):
    """Base-currency amount each role may post without a second approver."""
    limits: Dict[str, Decimal] = {
        "admin": Decimal("1000000"),
        "finance_manager": Decimal("100000"),
        "accountant": Decimal("10000"),
        "system": Decimal("1000000"),
    }

    @field_validator("limits")
    @classmethod
    def validate_limits(cls, v):
        for role, amount in v.items():
            if amount < 0:
                raise ValueError(f"Approval limit for {role} must not be negative")
        return v

class CompanyConfig(MongoModel):
    """
    Multi-tenant configuration document.
    """
    company_id: str = Field(..., description="Unique Tenant ID")
    company_name: str

    base_currency: str = Field("MYR", pattern=r"^[A-Z]{3}$")
    fiscal_year_start_month: int = Field(1, ge=1, le=12)

    gl_mapping: GLMapping = Field(default_factory=GLMapping)
    approval_limits: ApprovalLimits = Field(default_factory=ApprovalLimits)
