"""Kernel services: chart of accounts, ledger store, sequences."""

from fund_kernel.services.account_registry import AccountRegistry
from fund_kernel.services.ledger_service import LedgerService
from fund_kernel.services.sequence_service import SequenceService

__all__ = ["AccountRegistry", "LedgerService", "SequenceService"]
