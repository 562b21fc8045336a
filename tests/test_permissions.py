import pytest
from decimal import Decimal
from ledger_core.guardrails.permissions import Actor, Permission, PermissionChecker
from ledger_core.models.config import ApprovalLimits

@pytest.fixture
def permissions():
    return PermissionChecker(escalation_amount=Decimal("250000"))

def test_rbac_check(permissions):
    # Admin
    admin = Actor(actor_id="admin", role="admin")
    assert permissions.check_permission(admin, Permission.POST_JOURNAL) is True
    assert permissions.check_permission(admin, Permission.APPROVE_POSTING) is True

    # Finance Manager
    fin_man = Actor(actor_id="cfo", role="finance_manager")
    assert permissions.check_permission(fin_man, Permission.APPROVE_POSTING) is True
    assert permissions.check_permission(fin_man, Permission.POST_PAYMENT) is True

    # Clerk: sales and purchase documents only
    clerk = Actor(actor_id="c1", role="clerk")
    assert permissions.check_permission(clerk, Permission.POST_INVOICE) is True
    assert permissions.check_permission(clerk, Permission.POST_PAYMENT) is False
    assert permissions.check_permission(clerk, Permission.POST_JOURNAL) is False

    viewer = Actor(actor_id="v1", role="viewer")
    assert permissions.check_permission(viewer, Permission.VIEW_REPORTS) is True
    assert permissions.check_permission(viewer, Permission.POST_BILL) is False

def test_unknown_role_is_denied(permissions):
    assert permissions.check_permission(Actor(actor_id="x", role="intern"), Permission.POST_INVOICE) is False

def test_approval_limits(permissions):
    fin_man = Actor(actor_id="cfo", role="finance_manager")  # Limit 100k
    accountant = Actor(actor_id="acc", role="accountant")  # Limit 10k

    assert permissions.check_approval_limit(fin_man, Decimal("50000")) is True
    assert permissions.check_approval_limit(fin_man, Decimal("150000")) is False

    assert permissions.check_approval_limit(accountant, Decimal("5000")) is True
    assert permissions.check_approval_limit(accountant, Decimal("15000")) is False

    # No limit configured for clerks
    assert permissions.check_approval_limit(Actor(actor_id="c1", role="clerk"), Decimal("1")) is False

def test_escalation_amount_caps_every_role(permissions):
    admin = Actor(actor_id="admin", role="admin")
    assert permissions.check_approval_limit(admin, Decimal("250000")) is True
    assert permissions.check_approval_limit(admin, Decimal("250000.01")) is False

def test_approver_roles_ordered_by_limit(permissions):
    assert permissions.approver_roles(Decimal("20000")) == ["finance_manager", "admin"]
    assert permissions.approver_roles(Decimal("500000")) == ["admin"]
    # Nobody covers it: fall back to admin
    assert permissions.approver_roles(Decimal("5000000")) == ["admin"]

def test_approval_decision(permissions):
    accountant = Actor(actor_id="acc", role="accountant")
    assert permissions.approval_for(accountant, Decimal("9000")).requires_approval is False
    decision = permissions.approval_for(accountant, Decimal("20000"))
    assert decision.requires_approval is True
    assert decision.approver_roles == ["finance_manager", "admin"]
    assert permissions.approval_for(None, Decimal("1")).requires_approval is True

def test_company_limits_override_defaults():
    checker = PermissionChecker(approval_limits=ApprovalLimits(limits={"accountant": Decimal("50000")}),
                                escalation_amount=Decimal("250000"))
    assert checker.check_approval_limit(Actor(actor_id="acc", role="accountant"), Decimal("40000")) is True
    assert checker.check_approval_limit(Actor(actor_id="cfo", role="finance_manager"), Decimal("1")) is False

def test_negative_limit_rejected():
    with pytest.raises(ValueError):
        ApprovalLimits(limits={"accountant": Decimal("-1")})
