"""
Fund Kernel - double-entry ledger for donor-funded organisations.

An append-only accounting core with:
- A typed, hierarchical chart of accounts
- Balanced, all-or-nothing transaction posting
- Reversal-only corrections (posted history is never edited)
- Exact decimal money stored as integer minor units
"""

__version__ = "0.1.0"
