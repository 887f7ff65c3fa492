"""
Configuration Loader (``fund_config.loader``).

Responsibility
--------------
Loads YAML files and parses them into the typed ``fund_config.schema``
dataclasses.  The single public entry point for runtime config is
``fund_config.get_active_config()``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Role permissions must come from ``PERMISSION_TAXONOMY`` and inherited
  roles must exist; violations raise ``ValueError``.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or bad values  -> ``TypeError`` / ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from fund_config.schema import (
    PERMISSION_TAXONOMY,
    EngineConfig,
    FundLedgerConfig,
    PostingAccounts,
    RbacConfig,
    ReportingDefaults,
    RoleDef,
    SeedAccount,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def merge_config(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge mappings; any other value in ``override`` replaces."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_rbac(data: dict[str, Any]) -> RbacConfig:
    roles = tuple(
        RoleDef(
            name=name,
            permissions=tuple(spec.get("permissions") or ()),
            inherits=tuple(spec.get("inherits") or ()),
        )
        for name, spec in (data.get("roles") or {}).items()
    )
    names = {r.name for r in roles}
    for role in roles:
        unknown = set(role.permissions) - PERMISSION_TAXONOMY
        if unknown:
            raise ValueError(f"Role {role.name!r} grants unknown permissions {sorted(unknown)}")
        missing = set(role.inherits) - names
        if missing:
            raise ValueError(f"Role {role.name!r} inherits undefined roles {sorted(missing)}")
    return RbacConfig(roles=roles)


def parse_chart(rows: list[dict[str, Any]] | None) -> tuple[SeedAccount, ...]:
    accounts = []
    for row in rows or ():
        row = dict(row)
        # YAML reads an unquoted 1000 as an int
        row["code"] = str(row["code"])
        if row.get("parent_code") is not None:
            row["parent_code"] = str(row["parent_code"])
        accounts.append(SeedAccount(**row))

    codes = [a.code for a in accounts]
    if len(codes) != len(set(codes)):
        raise ValueError("chart_of_accounts contains duplicate codes")
    known = set(codes)
    for account in accounts:
        if account.parent_code is not None and account.parent_code not in known:
            raise ValueError(
                f"Account {account.code!r} has undefined parent {account.parent_code!r}"
            )
    return tuple(accounts)


def parse_config(data: dict[str, Any]) -> FundLedgerConfig:
    """Build a FundLedgerConfig from an already merged mapping."""
    reporting = ReportingDefaults(**(data.get("reporting") or {}))
    if not 1 <= reporting.fiscal_year_start_month <= 12:
        raise ValueError("reporting.fiscal_year_start_month must be between 1 and 12")

    return FundLedgerConfig(
        engine=EngineConfig(**(data.get("engine") or {})),
        posting_accounts=PostingAccounts(
            **{k: str(v) for k, v in (data.get("posting_accounts") or {}).items()}
        ),
        rbac=parse_rbac(data.get("rbac") or {}),
        reporting=reporting,
        chart_of_accounts=parse_chart(data.get("chart_of_accounts")),
        checksum=compute_checksum(data),
    )
