"""
ChartOfAccounts -- id-indexed arena of the account hierarchy.

Accounts refer to their parent by id only; children, ancestors and
descendants are answered from the arena without touching the database.
"""

from collections.abc import Iterable, Iterator
from uuid import UUID

from fund_kernel.domain.dtos import AccountInfo
from fund_kernel.exceptions import AccountNotFoundError


class ChartOfAccounts:
    """Immutable view over a set of AccountInfo keyed by account id."""

    def __init__(self, accounts: Iterable[AccountInfo]):
        self._by_id: dict[UUID, AccountInfo] = {a.account_id: a for a in accounts}
        self._children: dict[UUID | None, list[UUID]] = {}
        for info in sorted(self._by_id.values(), key=lambda a: a.code):
            parent = info.parent_id if info.parent_id in self._by_id else None
            self._children.setdefault(parent, []).append(info.account_id)

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, account_id: object) -> bool:
        return account_id in self._by_id

    def __iter__(self) -> Iterator[AccountInfo]:
        return iter(sorted(self._by_id.values(), key=lambda a: a.code))

    def get(self, account_id: UUID) -> AccountInfo:
        try:
            return self._by_id[account_id]
        except KeyError:
            raise AccountNotFoundError(str(account_id)) from None

    def roots(self) -> list[AccountInfo]:
        """Accounts without a parent, sorted by code."""
        return [self._by_id[i] for i in self._children.get(None, [])]

    def children(self, account_id: UUID) -> list[AccountInfo]:
        self.get(account_id)
        return [self._by_id[i] for i in self._children.get(account_id, [])]

    def ancestors(self, account_id: UUID) -> list[AccountInfo]:
        """Parent first, root last."""
        result: list[AccountInfo] = []
        seen = {account_id}
        current = self.get(account_id).parent_id
        while current is not None and current in self._by_id and current not in seen:
            seen.add(current)
            info = self._by_id[current]
            result.append(info)
            current = info.parent_id
        return result

    def descendants(self, account_id: UUID) -> list[AccountInfo]:
        """Depth-first, children sorted by code."""
        result: list[AccountInfo] = []
        stack = list(reversed(self._children.get(self.get(account_id).account_id, [])))
        while stack:
            child_id = stack.pop()
            result.append(self._by_id[child_id])
            stack.extend(reversed(self._children.get(child_id, [])))
        return result
