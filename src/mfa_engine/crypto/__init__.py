"""Cryptographic primitives: Base32 codec, TOTP engine and random source."""

from mfa_engine.crypto import base32, totp
from mfa_engine.crypto.randomness import IRandomSource, SystemRandomSource, random_digits
from mfa_engine.crypto.totp import TotpEngine

__all__: list[str] = [
    "base32",
    "totp",
    "TotpEngine",
    "IRandomSource",
    "SystemRandomSource",
    "random_digits",
]
