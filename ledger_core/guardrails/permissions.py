from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional
import logging
from pydantic import BaseModel
from ledger_core.config import settings
from ledger_core.models.config import ApprovalLimits

logger = logging.getLogger(__name__)

class Permission(str, Enum):
    # Posting
    POST_INVOICE = "POST_INVOICE"
    POST_BILL = "POST_BILL"
    POST_PAYMENT = "POST_PAYMENT"
    POST_JOURNAL = "POST_JOURNAL"
    APPROVE_POSTING = "APPROVE_POSTING"

    # Reporting
    VIEW_REPORTS = "VIEW_REPORTS"

class Role(str, Enum):
    ADMIN = "admin"
    FINANCE_MANAGER = "finance_manager"  # Can post and approve (with limits)
    ACCOUNTANT = "accountant"  # Can post all document types
    CLERK = "clerk"  # Sales and purchase documents only
    VIEWER = "viewer"
    SYSTEM = "system"  # Automated posting (imports, recurring documents)

# Role -> Permissions Mapping
ROLE_PERMISSIONS = {
    Role.ADMIN: [p for p in Permission],  # All
    Role.FINANCE_MANAGER: [
        Permission.POST_INVOICE, Permission.POST_BILL, Permission.POST_PAYMENT,
        Permission.POST_JOURNAL, Permission.APPROVE_POSTING, Permission.VIEW_REPORTS
    ],
    Role.ACCOUNTANT: [
        Permission.POST_INVOICE, Permission.POST_BILL, Permission.POST_PAYMENT,
        Permission.POST_JOURNAL, Permission.VIEW_REPORTS
    ],
    Role.CLERK: [
        Permission.POST_INVOICE, Permission.POST_BILL
    ],
    Role.VIEWER: [
        Permission.VIEW_REPORTS
    ],
    Role.SYSTEM: [
        Permission.POST_INVOICE, Permission.POST_BILL, Permission.POST_PAYMENT, Permission.POST_JOURNAL
    ],
}

class Actor(BaseModel):
    actor_id: str
    role: str

class ApprovalDecision(BaseModel):
    requires_approval: bool = False
    approver_roles: List[str] = []

class PermissionChecker:
    def __init__(self, approval_limits: Optional[ApprovalLimits] = None, escalation_amount: Optional[Decimal] = None):
        self.approval_limits = approval_limits or ApprovalLimits()
        self.escalation_amount = escalation_amount if escalation_amount is not None else settings.APPROVAL_ESCALATION_AMOUNT

    def check_permission(self, actor: Actor, permission: Permission) -> bool:
        """
        Basic Role-Based Check.
        """
        try:
            role_enum = Role(actor.role)
        except ValueError:
            logger.warning(f"Unknown role {actor.role} for actor {actor.actor_id}")
            return False

        allowed = ROLE_PERMISSIONS.get(role_enum, [])
        if permission in allowed:
            return True

        logger.warning(f"Actor {actor.actor_id} ({actor.role}) denied permission {permission.value}")
        return False

    def check_approval_limit(self, actor: Actor, amount: Decimal) -> bool:
        """
        True when the actor may post `amount` (base currency) without a second approver.
        """
        if amount > self.escalation_amount:
            return False
        limit = self.approval_limits.limits.get(actor.role)
        if limit is None:
            return False
        return amount <= limit

    def approver_roles(self, amount: Decimal) -> List[str]:
        """Roles allowed to approve a posting of `amount`, highest limit last."""
        limits: Dict[str, Decimal] = self.approval_limits.limits
        roles = [
            role for role in Role
            if Permission.APPROVE_POSTING in ROLE_PERMISSIONS.get(role, [])
            and limits.get(role.value, Decimal("0")) >= amount
        ]
        roles.sort(key=lambda r: limits.get(r.value, Decimal("0")))
        return [r.value for r in roles] or [Role.ADMIN.value]

    def approval_for(self, actor: Optional[Actor], amount: Decimal) -> ApprovalDecision:
        if actor is not None and self.check_approval_limit(actor, amount):
            return ApprovalDecision()
        return ApprovalDecision(requires_approval=True, approver_roles=self.approver_roles(amount))
