"""Injected CSPRNG abstraction for secrets and numeric codes."""

from __future__ import annotations

import secrets
from typing import Protocol, runtime_checkable

_SAMPLE_BYTES = 5  # 40 bits covers 10**10, the longest supported code


@runtime_checkable
class IRandomSource(Protocol):
    """Source of cryptographically secure random bytes."""

    def token_bytes(self, n: int) -> bytes:
        """Return ``n`` random bytes."""
        ...


class SystemRandomSource:
    """Production random source backed by the OS CSPRNG (``secrets``)."""

    def token_bytes(self, n: int) -> bytes:
        return secrets.token_bytes(n)


def random_digits(source: IRandomSource, length: int) -> str:
    """Draw a uniformly distributed ``length``-digit decimal string.

    Samples 40-bit integers and rejects values at or above the largest
    multiple of ``10**length`` so every code is equally likely. Leading zeros
    are kept.

    Raises:
        ValueError: If ``length`` is outside 1..10.
    """
    if not 1 <= length <= 10:
        raise ValueError(f"Code length must be between 1 and 10, got {length}")

    modulus = 10**length
    space = 1 << (8 * _SAMPLE_BYTES)
    limit = space - (space % modulus)
    while True:
        value = int.from_bytes(source.token_bytes(_SAMPLE_BYTES), "big")
        if value < limit:
            return str(value % modulus).zfill(length)


__all__: list[str] = ["IRandomSource", "SystemRandomSource", "random_digits"]
