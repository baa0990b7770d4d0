"""Unit of work over an async SQLAlchemy session."""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING

from ...exceptions import SessionManagementError, UnitOfWorkError
from ...ports.unit_of_work import UnitOfWork

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from sqlalchemy.ext.asyncio import AsyncSession

    AsyncSessionFactory = Callable[[], AsyncSession]

logger = logging.getLogger("mfa_engine.sqlalchemy.uow")


class SQLAlchemyUnitOfWork(UnitOfWork):
    """Transaction boundary for the SQL repositories.

    Pass either an open ``session`` owned by the caller, or a
    ``session_factory`` from which a session is opened on entry and closed on
    exit. The repositories read the session through ``uow.session``, so one
    enrollment load, code consumption and save share a transaction.

    Driver errors from ``commit`` (an ``IntegrityError`` on a second
    enrollment for the same user, for instance) are logged, rolled back and
    re-raised as is.
    """

    def __init__(
        self,
        session: AsyncSession | None = None,
        session_factory: AsyncSessionFactory | None = None,
    ) -> None:
        if session is not None and session_factory is not None:
            raise SessionManagementError(
                "Cannot provide both a session and a session_factory"
            )

        if session is None and session_factory is None:
            raise SessionManagementError(
                "Must provide either a session or a session_factory"
            )

        self._session: AsyncSession | None = session
        self._session_factory = session_factory
        self._owns_session = session_factory is not None and session is None
        super().__init__()

    @property
    def session(self) -> AsyncSession:
        """The session of the open transaction."""
        if self._session is None:
            raise UnitOfWorkError("No open session: use the unit of work in `async with`")
        return self._session

    async def __aenter__(self) -> SQLAlchemyUnitOfWork:
        try:
            if self._owns_session and self._session_factory:
                self._session = self._session_factory()

            if not self.session.in_transaction():
                await self.session.begin()

            return self
        except Exception as e:  # noqa: BLE001
            if isinstance(e, SessionManagementError | UnitOfWorkError):
                raise
            raise SessionManagementError(f"Could not begin a transaction: {e}") from e

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        try:
            await super().__aexit__(exc_type, exc_val, exc_tb)
        finally:
            if self._owns_session and self._session is not None:
                try:
                    await self._session.close()
                except Exception as e:  # noqa: BLE001
                    raise SessionManagementError(f"Failed to close session: {e}") from e
                finally:
                    self._session = None

    async def commit(self) -> None:
        try:
            await self.session.commit()
        except Exception:
            logger.error("Commit failed, rolling back", exc_info=True)
            with contextlib.suppress(Exception):
                await self.rollback()
            raise

    async def rollback(self) -> None:
        try:
            if self.session.in_transaction():
                await self.session.rollback()
        except Exception as e:  # noqa: BLE001
            raise UnitOfWorkError(f"Failed to rollback transaction: {e}") from e


__all__: list[str] = ["SQLAlchemyUnitOfWork"]
