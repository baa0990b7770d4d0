"""Wall-clock port."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol, runtime_checkable


@runtime_checkable
class IClock(Protocol):
    def now(self) -> datetime:
        """Current instant as a timezone-aware UTC datetime."""
        ...


class SystemClock:
    """Production clock reading the system time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


__all__: list[str] = ["IClock", "SystemClock"]
