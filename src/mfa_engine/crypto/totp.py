"""TOTP (Time-based One-Time Password) engine.

HOTP (RFC 4226) dynamic truncation over a time-derived counter (RFC 6238),
with HMAC-SHA-256 as the hash. Codes are deterministic for a given secret and
time step, and the module keeps no state, so every function is safe to call
concurrently.

Note:
    RFC 6238 authenticator apps default to HMAC-SHA-1. Codes produced here are
    only reproduced by apps that honour ``algorithm=SHA256`` in the
    provisioning URI.

Uses pyotp internally for the HOTP derivation and provisioning URIs.
"""

from __future__ import annotations

import hashlib
import hmac
import math
from typing import TYPE_CHECKING

import pyotp

from . import base32

if TYPE_CHECKING:
    from .randomness import IRandomSource

DIGITS = 6
DEFAULT_STEP_SECONDS = 30
DEFAULT_SKEW_STEPS = 1
SECRET_BYTES = 20
DIGEST = hashlib.sha256


def _hotp(secret_bytes: bytes) -> pyotp.HOTP:
    # pyotp takes Base32 text and re-pads it before decoding.
    return pyotp.HOTP(base32.encode(secret_bytes), digits=DIGITS, digest=DIGEST)


def _is_well_formed(code: str) -> bool:
    # isdigit() alone admits non-ASCII digits, which compare_digest rejects.
    return len(code) == DIGITS and code.isascii() and code.isdigit()


def time_step(unix_time: float, step_seconds: int = DEFAULT_STEP_SECONDS) -> int:
    """Map a Unix timestamp to its time step: ``floor(unix_time / step_seconds)``."""
    if step_seconds <= 0:
        raise ValueError("step_seconds must be positive")
    return math.floor(unix_time / step_seconds)


def generate(secret_bytes: bytes, step: int) -> str:
    """Derive the 6-digit code for ``secret_bytes`` at time step ``step``.

    The step is encoded as an 8-byte big-endian counter and HMAC'd with
    SHA-256; dynamic truncation picks 4 bytes at ``hash[-1] & 0x0F``, masks
    the top bit and keeps the value modulo 10**6, zero padded.
    """
    if step < 0:
        raise ValueError("time step must not be negative")
    return _hotp(secret_bytes).at(step)


def verify(
    secret_bytes: bytes,
    submitted_code: str,
    reference_unix_time: float,
    step_seconds: int = DEFAULT_STEP_SECONDS,
    skew_steps: int = DEFAULT_SKEW_STEPS,
) -> bool:
    """Check a code against the steps around ``reference_unix_time``.

    Steps ``T - skew_steps`` through ``T + skew_steps`` are tried. The result
    does not reveal which step matched.
    """
    if skew_steps < 0:
        raise ValueError("skew_steps must not be negative")
    if not _is_well_formed(submitted_code):
        return False

    hotp = _hotp(secret_bytes)
    current = time_step(reference_unix_time, step_seconds)
    for delta in range(-skew_steps, skew_steps + 1):
        step = current + delta
        if step < 0:
            continue
        if hmac.compare_digest(hotp.at(step), submitted_code):
            return True
    return False


def generate_secret(random_source: IRandomSource) -> str:
    """Generate a new Base32 TOTP secret from 20 random bytes."""
    return base32.encode(random_source.token_bytes(SECRET_BYTES))


def provisioning_uri(
    secret: str,
    account_name: str,
    issuer: str,
    step_seconds: int = DEFAULT_STEP_SECONDS,
) -> str:
    """Build the ``otpauth://`` URI an authenticator app scans.

    A step other than 30 seconds is carried as ``period=`` so the app derives
    codes on the same schedule the server verifies against.
    """
    return pyotp.TOTP(
        secret,
        digits=DIGITS,
        digest=DIGEST,
        interval=step_seconds,
    ).provisioning_uri(name=account_name, issuer_name=issuer)


def format_secret(secret: str) -> str:
    """Format a secret for manual entry, in groups of 4 characters."""
    secret = secret.rstrip("=")
    return " ".join(secret[i : i + 4] for i in range(0, len(secret), 4))


class TotpEngine:
    """TOTP engine bound to a step length and skew window.

    Example:
        ```python
        engine = TotpEngine(step_seconds=30, skew_steps=1)
        key = base32.decode("JBSWY3DPEHPK3PXP")
        code = engine.generate_at(key, 1_700_000_000)
        assert engine.verify(key, code, 1_700_000_029)
        ```
    """

    def __init__(
        self,
        *,
        step_seconds: int = DEFAULT_STEP_SECONDS,
        skew_steps: int = DEFAULT_SKEW_STEPS,
    ) -> None:
        if step_seconds <= 0:
            raise ValueError("step_seconds must be positive")
        if skew_steps < 0:
            raise ValueError("skew_steps must not be negative")
        self.step_seconds = step_seconds
        self.skew_steps = skew_steps

    def generate_at(self, secret_bytes: bytes, unix_time: float) -> str:
        return generate(secret_bytes, time_step(unix_time, self.step_seconds))

    def verify(
        self, secret_bytes: bytes, submitted_code: str, reference_unix_time: float
    ) -> bool:
        return verify(
            secret_bytes,
            submitted_code,
            reference_unix_time,
            step_seconds=self.step_seconds,
            skew_steps=self.skew_steps,
        )


__all__: list[str] = [
    "DIGITS",
    "TotpEngine",
    "time_step",
    "generate",
    "verify",
    "generate_secret",
    "provisioning_uri",
    "format_secret",
]
