"""RBAC resolution and enforcement; no database."""

import pytest

from fund_config import get_active_config
from fund_config.schema import PERMISSION_TAXONOMY, RbacConfig, RoleDef
from fund_kernel.exceptions import PermissionDeniedError
from fund_services.rbac_authority import (
    ACTION_TO_PERMISSION,
    RbacAuthority,
    check_rbac,
    resolve_role_permissions,
)


@pytest.fixture
def authority():
    return RbacAuthority(get_active_config().rbac)


class TestPermissionMapping:

    def test_every_action_maps_into_taxonomy(self):
        assert set(ACTION_TO_PERMISSION.values()) <= PERMISSION_TAXONOMY

    def test_admin_holds_every_mapped_permission(self, authority):
        assert set(ACTION_TO_PERMISSION.values()) <= authority.permissions_for("admin")


class TestRoleResolution:

    def test_inheritance_is_transitive(self):
        rbac = RbacConfig(roles=(
            RoleDef("reader", ("reports.read",)),
            RoleDef("clerk", ("expense.record",), inherits=("reader",)),
            RoleDef("boss", ("ledger.reverse",), inherits=("clerk",)),
        ))
        resolved = resolve_role_permissions(rbac)
        assert resolved["boss"] == {"reports.read", "expense.record", "ledger.reverse"}

    def test_inheritance_cycle_terminates(self):
        rbac = RbacConfig(roles=(
            RoleDef("a", ("reports.read",), inherits=("b",)),
            RoleDef("b", ("ledger.read",), inherits=("a",)),
        ))
        resolved = resolve_role_permissions(rbac)
        assert {"reports.read", "ledger.read"} <= resolved["a"]

    def test_default_roles(self, authority):
        staff = authority.permissions_for("staff")
        assert "expense.record" in staff
        assert "reports.read" not in staff
        assert "reports.read" in authority.permissions_for("accountant")
        assert "ledger.reverse" not in authority.permissions_for("accountant")
        assert "ledger.reverse" in authority.permissions_for("finance_manager")


class TestCheckRbac:

    @pytest.mark.parametrize("role, permission, reason_fragment", [
        (None, "reports.read", "no role"),
        ("  ", "reports.read", "no role"),
        ("intern", "reports.read", "unknown role"),
        ("staff", "reports.read", "not granted"),
        ("admin", None, "no permission mapping"),
    ])
    def test_fails_closed(self, authority, role, permission, reason_fragment):
        allowed, reason = check_rbac(
            resolve_role_permissions(get_active_config().rbac), role, permission,
        )
        assert not allowed
        assert reason_fragment in reason

    def test_allowed(self):
        allowed, reason = check_rbac({"admin": frozenset({"reports.read"})}, "admin", "reports.read")
        assert allowed
        assert reason == ""


class TestRequire:

    def test_require_returns_permission(self, authority):
        assert authority.require("get_balance_sheet", "accountant") == "reports.read"

    def test_require_denies(self, authority, captured_logs):
        with pytest.raises(PermissionDeniedError) as exc_info:
            authority.require("reverse_transaction", "staff")

        assert exc_info.value.permission == "ledger.reverse"
        assert exc_info.value.role == "staff"
        assert any(r["message"] == "permission_denied" for r in captured_logs())

    def test_unmapped_action_denied(self, authority):
        with pytest.raises(PermissionDeniedError):
            authority.require("drop_database", "admin")
