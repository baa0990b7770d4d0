"""InMemoryUnitOfWork: staged writes applied atomically on commit."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ...ports.unit_of_work import UnitOfWork

if TYPE_CHECKING:
    from collections.abc import Callable


class InMemoryUnitOfWork(UnitOfWork):
    """In-memory implementation of UnitOfWork for testing.

    Repositories stage a ``(check, apply)`` pair per write. On commit every
    check runs before any write is applied, so a version conflict leaves the
    stores untouched. Rollback discards the staged writes.

    Records commit/rollback calls for assertions.
    """

    def __init__(self) -> None:
        super().__init__()
        self.committed: bool = False
        self.rolled_back: bool = False
        self.commit_count: int = 0
        self.rollback_count: int = 0
        self._staged: list[tuple[Callable[[], None], Callable[[], None]]] = []

    def stage(self, check: Callable[[], None], apply: Callable[[], None]) -> None:
        """Queue a write; ``check`` raises if it can no longer be applied."""
        self._staged.append((check, apply))

    @property
    def pending_writes(self) -> int:
        return len(self._staged)

    async def commit(self) -> None:
        """Validate then apply all staged writes."""
        if self.committed or self.rolled_back:
            return
        try:
            for check, _ in self._staged:
                check()
        except Exception:
            await self.rollback()
            raise
        for _, apply in self._staged:
            apply()
        self._staged.clear()
        self.committed = True
        self.commit_count += 1

    async def rollback(self) -> None:
        """Discard staged writes."""
        if self.committed or self.rolled_back:
            return
        self._staged.clear()
        self.rolled_back = True
        self.rollback_count += 1
