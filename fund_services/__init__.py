"""
Fund Services.

Request-served facade over the kernel and modules:

- ``api.FundLedgerAPI``: permission check, per-request transaction scope,
  plain-data payloads
- ``rbac_authority``: action -> permission mapping and role checks
"""

from fund_services.api import Caller, FundLedgerAPI, render_error

__all__ = ["Caller", "FundLedgerAPI", "render_error"]
