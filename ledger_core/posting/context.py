from datetime import date
from typing import Optional
from ledger_core.config import settings
from ledger_core.guardrails.permissions import Actor, PermissionChecker
from ledger_core.models.config import CompanyConfig, GLMapping
from ledger_core.tools.account_directory import AccountDirectory
from ledger_core.tools.currency import ExchangeRateProvider

class PostingContext:
    """
    Everything a validation call needs besides the document itself.
    Built per request; validators never reach for module-level state.
    """

    def __init__(
        self,
        accounts: AccountDirectory,
        rates: Optional[ExchangeRateProvider] = None,
        base_currency: Optional[str] = None,
        gl_mapping: Optional[GLMapping] = None,
        actor: Optional[Actor] = None,
        today: Optional[date] = None,
        permissions: Optional[PermissionChecker] = None,
    ):
        self.accounts = accounts
        self.rates = rates
        self.base_currency = base_currency or settings.BASE_CURRENCY
        self.gl_mapping = gl_mapping or GLMapping()
        self.actor = actor
        self.today = today or date.today()
        self.permissions = permissions or PermissionChecker()

    @classmethod
    def for_company(cls, config: CompanyConfig, accounts: AccountDirectory,
                    rates: Optional[ExchangeRateProvider] = None, **kwargs) -> "PostingContext":
        return cls(
            accounts=accounts,
            rates=rates,
            base_currency=config.base_currency,
            gl_mapping=config.gl_mapping,
            permissions=PermissionChecker(approval_limits=config.approval_limits),
            **kwargs,
        )

    def replace(self, **changes) -> "PostingContext":
        """Copy with some collaborators swapped, e.g. `ctx.replace(actor=...)`."""
        fields = dict(
            accounts=self.accounts,
            rates=self.rates,
            base_currency=self.base_currency,
            gl_mapping=self.gl_mapping,
            actor=self.actor,
            today=self.today,
            permissions=self.permissions,
        )
        fields.update(changes)
        return PostingContext(**fields)
