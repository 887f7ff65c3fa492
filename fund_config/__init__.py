"""
fund_config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_active_config()`` loads the bundled ``defaults.yaml``, merges an
    optional override file over it and returns a frozen
    ``FundLedgerConfig``.

Architecture position:
    Configuration.  Sits above ``fund_kernel`` and below ``fund_services``.
    The kernel MUST NEVER import from ``fund_config``.

Failure modes:
    - ``FileNotFoundError`` -- the override path does not exist.
    - ``ValueError`` / ``TypeError`` -- schema validation failures.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from fund_config.loader import load_yaml_file, merge_config, parse_config
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

_logger = logging.getLogger("fund_kernel.config")

CONFIG_ENV_VAR = "FUND_LEDGER_CONFIG"
DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: str | Path | None = None) -> FundLedgerConfig:
    """
    The public configuration entrypoint.

    Args:
        path: Override file merged over the defaults.  Falls back to the
            file named by ``FUND_LEDGER_CONFIG``; with neither, the bundled
            defaults are used as is.

    Returns:
        FundLedgerConfig whose ``checksum`` identifies the merged source.
    """
    data = load_yaml_file(DEFAULTS_PATH)
    override = path if path is not None else os.environ.get(CONFIG_ENV_VAR)
    if override:
        data = merge_config(data, load_yaml_file(Path(override)))

    config = parse_config(data)
    _logger.info(
        "FUND_CONFIG_TRACE",
        extra={
            "config_source": str(override) if override else "defaults",
            "checksum": config.checksum,
            "role_count": len(config.rbac.roles),
            "seed_account_count": len(config.chart_of_accounts),
        },
    )
    return config


__all__ = [
    "CONFIG_ENV_VAR",
    "PERMISSION_TAXONOMY",
    "EngineConfig",
    "FundLedgerConfig",
    "PostingAccounts",
    "RbacConfig",
    "ReportingDefaults",
    "RoleDef",
    "SeedAccount",
    "get_active_config",
]
