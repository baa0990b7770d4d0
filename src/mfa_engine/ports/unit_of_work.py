"""UnitOfWork: abstract base class for the Unit of Work pattern."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger("mfa_engine.uow")


class UnitOfWork(ABC):
    """
    Abstract base class for Unit of Work implementations.

    Every load-check-mark-save sequence of the MFA flows runs inside one unit
    of work, so a challenge code is either consumed and committed, or left
    untouched.

    Hooks registered with ``on_commit`` run only after a successful commit.
    Domain event publication is registered this way. Code delivery is not a
    hook: the services send after the ``async with`` block has exited, so a
    failed send never rolls back the issued code.

    Any exception leaving the context, ``asyncio.CancelledError`` included,
    rolls the transaction back and discards the hooks.

    Example:
        ```python
        async with uow_factory() as uow:
            enrollment = await enrollments.get_by_user(user_id, uow)
            enrollment.enable(now=clock.now())
            await enrollments.save(enrollment, uow)
            uow.on_commit(lambda: publisher.publish(enrollment.collect_events()))
        ```
    """

    def __init__(self) -> None:
        self._on_commit_hooks: deque[Callable[[], Awaitable[Any]]] = deque()

    def on_commit(self, callback: Callable[[], Awaitable[Any]]) -> None:
        """Register an async callback to be executed after a successful commit.

        Args:
            callback: An async function that takes no arguments.
        """
        self._on_commit_hooks.append(callback)

    async def trigger_commit_hooks(self) -> None:
        """Run the registered hooks in order; a failing hook is logged and skipped."""
        while self._on_commit_hooks:
            callback = self._on_commit_hooks.popleft()
            try:
                await callback()
            except Exception as exc:
                logger.error("Error in on_commit hook: %s", exc, exc_info=True)

    def discard_commit_hooks(self) -> None:
        self._on_commit_hooks.clear()

    @abstractmethod
    async def commit(self) -> None:
        """Commit the transaction. Must be implemented by subclasses."""
        ...

    @abstractmethod
    async def rollback(self) -> None:
        """Rollback the transaction. Must be implemented by subclasses."""
        ...

    async def __aenter__(self) -> UnitOfWork:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Commit then run hooks, or drop hooks and roll back."""
        if exc_type is None:
            await self.commit()
            await self.trigger_commit_hooks()
        else:
            self.discard_commit_hooks()
            await self.rollback()


__all__: list[str] = ["UnitOfWork"]
