"""
fund_services.rbac_authority -- Runtime RBAC enforcement at the facade boundary.

Responsibility:
    Check that a caller (user id plus role) may perform a facade action.
    Each action needs one permission from the configuration taxonomy;
    roles grant permissions directly or by inheriting other roles.

Architecture position:
    Services layer.  Consumes ``RbacConfig`` from ``fund_config``.  Called
    by ``FundLedgerAPI`` before any session is opened.

Invariants:
    - Fail closed: a missing caller, an empty or unknown role, or an action
      without a mapped permission is denied.
    - Kernel remains actor-agnostic; this module does not authenticate.
"""

from __future__ import annotations

from fund_config.schema import RbacConfig
from fund_kernel.exceptions import PermissionDeniedError
from fund_kernel.logging_config import get_logger

logger = get_logger("services.rbac")

# facade action -> permission string (must be in PERMISSION_TAXONOMY)
ACTION_TO_PERMISSION: dict[str, str] = {
    # Chart of accounts
    "create_account": "accounts.manage",
    "update_account": "accounts.manage",
    "delete_account": "accounts.manage",
    "seed_chart_of_accounts": "accounts.manage",
    "list_accounts": "accounts.read",
    "get_account_tree": "accounts.read",
    # Ledger
    "post_transaction": "ledger.post",
    "reverse_transaction": "ledger.reverse",
    "get_ledger": "ledger.read",
    # Projects
    "create_project": "projects.manage",
    "create_sub_project": "projects.manage",
    "list_projects": "projects.read",
    "list_sub_projects": "projects.read",
    # Budget tracker
    "record_funding": "funding.record",
    "update_funding_metadata": "funding.record",
    "list_fundings": "funding.read",
    "get_funding_summary": "funding.read",
    "allocate_to_project": "allocation.create",
    "record_expense": "expense.record",
    "list_expenses": "budget.read",
    "get_project_allocations_with_budget": "budget.read",
    # Reports
    "get_balance_sheet": "reports.read",
    "get_income_statement": "reports.read",
    "get_trial_balance": "reports.read",
    "create_reporting_period": "periods.manage",
    "list_reporting_periods": "reports.read",
}


def get_permission_for_action(action: str) -> str | None:
    """Return the permission an action requires, or None if it is unmapped."""
    return ACTION_TO_PERMISSION.get(action)


def resolve_role_permissions(rbac: RbacConfig) -> dict[str, frozenset[str]]:
    """Role name -> own permissions plus those of every inherited role."""
    direct = {role.name: role for role in rbac.roles}
    resolved: dict[str, frozenset[str]] = {}

    def collect(name: str, seen: frozenset[str]) -> frozenset[str]:
        if name in resolved:
            return resolved[name]
        role = direct.get(name)
        if role is None or name in seen:
            return frozenset()
        permissions = set(role.permissions)
        for parent in role.inherits:
            permissions |= collect(parent, seen | {name})
        return frozenset(permissions)

    for name in direct:
        resolved[name] = collect(name, frozenset())
    return resolved


def check_rbac(
    role_permissions: dict[str, frozenset[str]],
    role: str | None,
    required_permission: str | None,
) -> tuple[bool, str]:
    """
    Decide whether ``role`` holds ``required_permission``.

    Returns:
        (allowed, reason).  reason is empty when allowed.
    """
    if required_permission is None:
        return (False, "RBAC: action has no permission mapping")
    if not role or not role.strip():
        return (False, "RBAC: caller has no role")
    if role not in role_permissions:
        return (False, f"RBAC: unknown role '{role}'")
    if required_permission not in role_permissions[role]:
        return (False, f"RBAC: permission '{required_permission}' not granted to role '{role}'")
    return (True, "")


class RbacAuthority:
    """Permission checks for facade actions under one RBAC configuration."""

    def __init__(self, rbac: RbacConfig):
        self._role_permissions = resolve_role_permissions(rbac)

    def permissions_for(self, role: str) -> frozenset[str]:
        return self._role_permissions.get(role, frozenset())

    def require(self, action: str, role: str | None) -> str:
        """
        Raise unless ``role`` may perform ``action``; return the permission.

        Raises:
            PermissionDeniedError
        """
        permission = get_permission_for_action(action)
        allowed, reason = check_rbac(self._role_permissions, role, permission)
        if not allowed:
            logger.warning(
                "permission_denied",
                extra={"action": action, "permission": permission, "role": role},
            )
            raise PermissionDeniedError(permission or action, role, reason)
        return permission
