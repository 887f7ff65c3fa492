"""
FundLedgerAPI: permission checks, one transaction per call, plain-data
results.

These tests never take the ``session`` fixture: every facade call opens
its own session_scope() on the test database.
"""

from uuid import uuid4

import pytest

from fund_config import get_active_config
from fund_kernel.exceptions import (
    InsufficientBudgetError,
    OverAllocationError,
    PermissionDeniedError,
    UnbalancedTransactionError,
    ValidationError,
)
from fund_services.api import Caller, FundLedgerAPI, render_error


@pytest.fixture
def accounts(seeded_api, admin):
    return {a["code"]: a["account_id"] for a in seeded_api.list_accounts(admin)}


@pytest.fixture
def accountant():
    return Caller(user_id=uuid4(), role="accountant")


@pytest.fixture
def staff():
    return Caller(user_id=uuid4(), role="staff")


@pytest.fixture
def funded_project(seeded_api, admin, accounts):
    funding = seeded_api.record_funding(
        admin, "Acme Foundation", "10000.00", "2024-01-15", accounts["1100"],
    )
    project = seeded_api.create_project(admin, "Clean Water")
    allocation = seeded_api.allocate_to_project(
        admin, funding["id"], project["id"], "6000.00",
    )
    return funding, project, allocation


class TestAuthorization:

    def test_missing_caller_denied(self, api):
        with pytest.raises(PermissionDeniedError) as exc_info:
            api.get_balance_sheet(None)
        assert exc_info.value.permission == "reports.read"

    def test_denied_before_session_opens(self, clock):
        def explode():
            raise AssertionError("session opened for a denied caller")

        api = FundLedgerAPI(config=get_active_config(), session_factory=explode, clock=clock)
        with pytest.raises(PermissionDeniedError):
            api.get_income_statement(Caller(user_id=uuid4(), role="staff"))

    def test_unknown_role_denied(self, api):
        with pytest.raises(PermissionDeniedError):
            api.list_projects(Caller(user_id=uuid4(), role="volunteer"))

    def test_staff_may_record_expense_but_not_read_reports(
        self, seeded_api, staff, funded_project
    ):
        _, _, allocation = funded_project
        expense = seeded_api.record_expense(
            staff, allocation["id"], "100.00", "2024-02-01", "Supplies",
        )
        assert expense["amount"] == "100.00"

        with pytest.raises(PermissionDeniedError):
            seeded_api.get_balance_sheet(staff, as_of_date="2024-12-31")

    def test_accountant_cannot_reverse(self, seeded_api, accountant, accounts):
        tx = seeded_api.post_transaction(
            accountant, "2024-03-01", "Gift",
            [
                {"account_id": accounts["1000"], "entry_type": "debit", "amount": "50.00"},
                {"account_id": accounts["4000"], "entry_type": "credit", "amount": "50.00"},
            ],
        )
        with pytest.raises(PermissionDeniedError):
            seeded_api.reverse_transaction(accountant, tx["id"], "2024-03-02")

    @pytest.mark.parametrize("entries", [[{"bogus": 1}], [{"account_id": "x"}], ["debit"]])
    def test_malformed_entries_denied_for_missing_caller(self, seeded_api, entries):
        with pytest.raises(PermissionDeniedError):
            seeded_api.post_transaction(None, "2024-01-01", "x", entries)

    def test_staff_cannot_post_malformed_entries(self, seeded_api, staff):
        with pytest.raises(PermissionDeniedError) as exc_info:
            seeded_api.post_transaction(staff, "2024-01-01", "x", [{"bogus": 1}])
        assert exc_info.value.permission == "ledger.post"


class TestChartOfAccounts:

    def test_seed_is_idempotent(self, api, admin):
        first = api.seed_chart_of_accounts(admin)
        assert first[:2] == ["1000", "1100"]
        assert first.index("3000") < first.index("3100")
        assert api.seed_chart_of_accounts(admin) == []

    def test_account_tree(self, seeded_api, admin):
        tree = seeded_api.get_account_tree(admin)
        net_assets = next(node for node in tree if node["code"] == "3000")
        assert [c["code"] for c in net_assets["children"]] == ["3100", "3200"]
        assert "3100" not in [node["code"] for node in tree]

    def test_create_update_delete(self, seeded_api, admin, accounts):
        created = seeded_api.create_account(
            admin, "1200", "Petty Cash", "Asset", parent_id=accounts["1000"],
        )
        assert created["account_type"] == "Asset"
        assert created["parent_id"] == accounts["1000"]

        renamed = seeded_api.update_account(admin, created["account_id"], name="Float")
        assert renamed["name"] == "Float"

        seeded_api.delete_account(admin, created["account_id"])
        codes = [a["code"] for a in seeded_api.list_accounts(admin)]
        assert "1200" not in codes

    def test_bad_id_is_validation_error(self, seeded_api, admin):
        with pytest.raises(ValidationError) as exc_info:
            seeded_api.delete_account(admin, "not-a-uuid")
        assert exc_info.value.field == "account_id"


class TestLedgerEndpoints:

    def test_post_and_read_ledger(self, seeded_api, admin, accounts):
        tx = seeded_api.post_transaction(
            admin, "2024-03-01", "Gift",
            [
                {"account_id": accounts["1000"], "side": "debit", "amount": "50.00"},
                {"account_id": accounts["4000"], "side": "credit", "amount": "50.00"},
            ],
        )
        assert tx["transaction_date"] == "2024-03-01"
        assert [e["entry_type"] for e in tx["entries"]] == ["debit", "credit"]

        ledger = seeded_api.get_ledger(admin, account_id=accounts["1000"])
        rows = ledger[accounts["1000"]]
        assert rows[0]["running_balance"] == "50.00"
        assert rows[0]["transaction_id"] == tx["id"]

    def test_unbalanced_rolls_back(self, seeded_api, admin, accounts):
        with pytest.raises(UnbalancedTransactionError):
            seeded_api.post_transaction(
                admin, "2024-03-01", "Bad",
                [
                    {"account_id": accounts["1000"], "entry_type": "debit", "amount": "500.00"},
                    {"account_id": accounts["4000"], "entry_type": "credit", "amount": "400.00"},
                ],
            )
        assert seeded_api.get_ledger(admin) == {}

    def test_manual_posting_takes_no_reference(self, seeded_api, admin, accounts):
        with pytest.raises(TypeError):
            seeded_api.post_transaction(
                admin, "2024-03-01", "Rent",
                [
                    {"account_id": accounts["5000"], "entry_type": "debit", "amount": "10.00"},
                    {"account_id": accounts["1000"], "entry_type": "credit", "amount": "10.00"},
                ],
                reference={"reference_type": "expense"},
            )
        assert seeded_api.get_ledger(admin) == {}

    def test_manual_posting_stays_out_of_project_ledger(
        self, seeded_api, admin, accounts, funded_project
    ):
        _, project, _ = funded_project
        tx = seeded_api.post_transaction(
            admin, "2024-03-01", "Office rent",
            [
                {"account_id": accounts["5000"], "entry_type": "debit", "amount": "75.00"},
                {"account_id": accounts["1000"], "entry_type": "credit", "amount": "75.00"},
            ],
        )
        assert tx["reference_type"] is None
        assert tx["reference_id"] is None

        ledger = seeded_api.get_ledger(admin, project_id=project["id"])
        assert accounts["5000"] not in ledger
        assert accounts["1000"] not in ledger

    def test_reversal(self, seeded_api, admin, accounts):
        tx = seeded_api.post_transaction(
            admin, "2024-03-01", "Gift",
            [
                {"account_id": accounts["1000"], "entry_type": "debit", "amount": "50.00"},
                {"account_id": accounts["4000"], "entry_type": "credit", "amount": "50.00"},
            ],
        )
        reversal = seeded_api.reverse_transaction(admin, tx["id"], "2024-03-02", reason="typo")
        assert reversal["reversal_of_id"] == tx["id"]

        trial = seeded_api.get_trial_balance(admin, as_of_date="2024-12-31")
        cash = next(line for line in trial["lines"] if line["account_code"] == "1000")
        assert cash["balance"] == "0.00"


class TestBudgetEndpoints:

    def test_budget_walkthrough(self, seeded_api, admin, funded_project):
        funding, project, allocation = funded_project
        seeded_api.record_expense(admin, allocation["id"], "4000.00", "2024-02-01", "Drilling")

        with pytest.raises(InsufficientBudgetError) as exc_info:
            seeded_api.record_expense(admin, allocation["id"], "2500.00", "2024-02-02", "Pumps")
        payload = render_error(exc_info.value)
        assert payload["error"] == "INSUFFICIENT_BUDGET"
        assert payload["available_amount"] == "2000.00"

        budgets = seeded_api.get_project_allocations_with_budget(admin, project["id"])
        assert budgets == [{
            "allocation_id": allocation["id"],
            "project_id": project["id"],
            "project_name": "Clean Water",
            "funding_id": funding["id"],
            "funding_donor": "Acme Foundation",
            "allocated_amount": "6000.00",
            "spent_amount": "4000.00",
            "available_amount": "2000.00",
            "state": "partially_spent",
            "sub_project_id": None,
        }]
        assert len(seeded_api.list_expenses(admin, allocation_id=allocation["id"])) == 1

    def test_over_allocation_payload(self, seeded_api, admin, funded_project):
        funding, project, _ = funded_project
        with pytest.raises(OverAllocationError) as exc_info:
            seeded_api.allocate_to_project(admin, funding["id"], project["id"], "5000.00")
        assert render_error(exc_info.value)["available_amount"] == "4000.00"

        summary = seeded_api.get_funding_summary(admin, funding["id"])
        assert summary["unallocated_amount"] == "4000.00"

    def test_expense_details_pass_through(self, seeded_api, admin, funded_project):
        _, _, allocation = funded_project
        expense = seeded_api.record_expense(
            admin, allocation["id"], "12.50", "2024-02-01", "Fuel",
            description="Generator fuel", vendor_name="Shell", payment_mode="cash",
            tax_category="Service", tax_deductible=True,
        )
        assert expense["description"] == "Generator fuel"
        assert expense["vendor_name"] == "Shell"
        assert expense["tax_category"] == "Service"
        assert expense["tax_deductible"] is True

    def test_unknown_expense_detail_rejected(self, seeded_api, admin, funded_project):
        _, _, allocation = funded_project
        with pytest.raises(TypeError):
            seeded_api.record_expense(
                admin, allocation["id"], "12.50", "2024-02-01", "Fuel", vendor="Shell",
            )
        assert seeded_api.list_expenses(admin, allocation_id=allocation["id"]) == []

    def test_funding_metadata_and_listing(self, seeded_api, admin, funded_project):
        funding, _, _ = funded_project
        updated = seeded_api.update_funding_metadata(admin, funding["id"], notes="Water only")
        assert updated["notes"] == "Water only"
        assert [f["id"] for f in seeded_api.list_fundings(admin)] == [funding["id"]]

    def test_sub_projects(self, seeded_api, admin, funded_project):
        _, project, _ = funded_project
        sub = seeded_api.create_sub_project(admin, project["id"], "Village A")
        assert seeded_api.list_sub_projects(admin, project["id"]) == [sub]
        assert [p["name"] for p in seeded_api.list_projects(admin)] == ["Clean Water"]


class TestReportEndpoints:

    def test_period_drives_reports(self, seeded_api, admin, funded_project):
        _, _, allocation = funded_project
        seeded_api.record_expense(admin, allocation["id"], "250.00", "2024-04-10", "Pipes")
        q1 = seeded_api.create_reporting_period(admin, "Q1 2024", "2024-01-01", "2024-03-31")

        statement = seeded_api.get_income_statement(
            admin, reporting_period_id=q1["id"], start_date="2020-01-01",
        )
        assert (statement["start_date"], statement["end_date"]) == ("2024-01-01", "2024-03-31")
        assert statement["total_income"] == "10000.00"
        assert statement["total_expenses"] == "0.00"

        sheet = seeded_api.get_balance_sheet(admin, reporting_period_id=q1["id"])
        assert sheet["as_of_date"] == "2024-03-31"
        assert sheet["total_assets"] == "10000.00"

        assert [p["name"] for p in seeded_api.list_reporting_periods(admin)] == ["Q1 2024"]

    def test_project_ledger(self, seeded_api, admin, funded_project, accounts):
        _, project, allocation = funded_project
        seeded_api.record_expense(admin, allocation["id"], "80.00", "2024-02-01", "Pipes")

        ledger = seeded_api.get_ledger(admin, project_id=project["id"])
        assert accounts["1100"] in ledger
        assert accounts["4000"] not in ledger


class TestRenderError:

    def test_payload_shape(self):
        payload = render_error(ValidationError("name is required", "name"))
        assert payload == {
            "error": "VALIDATION_ERROR",
            "message": "name is required",
            "field": "name",
        }
