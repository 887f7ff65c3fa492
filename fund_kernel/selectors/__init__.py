"""Read-only selectors over the ledger."""

from fund_kernel.selectors.base import BaseSelector
from fund_kernel.selectors.ledger_selector import LedgerSelector

__all__ = ["BaseSelector", "LedgerSelector"]
