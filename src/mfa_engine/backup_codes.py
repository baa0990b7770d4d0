"""Backup codes for MFA recovery.

Single-use alphanumeric codes (``XXXX-XXXX``) the user keeps for when the
primary factor is unavailable. Only SHA-256 hashes are stored on the
enrollment; the plaintext is shown once.
"""

from __future__ import annotations

import hashlib
import string
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .crypto.randomness import IRandomSource

# Characters used in backup codes (exclude ambiguous: 0, O, 1, I)
ALPHABET = string.ascii_uppercase.replace("O", "").replace(
    "I", ""
) + string.digits.replace("0", "").replace("1", "")

CODE_LENGTH = 8


class BackupCodeGenerator:
    """Generates backup codes from the injected random source.

    The alphabet has exactly 32 symbols, so the low five bits of each random
    byte select a symbol without bias.

    Example:
        ```python
        generator = BackupCodeGenerator(SystemRandomSource())
        codes = generator.generate(10)        # ["K7PX-M2QD", ...]
        hashes = [hash_code(c) for c in codes]
        ```
    """

    def __init__(self, random_source: IRandomSource, code_length: int = CODE_LENGTH) -> None:
        self.random_source = random_source
        self.code_length = code_length

    def _generate_code(self) -> str:
        raw = self.random_source.token_bytes(self.code_length)
        return "".join(ALPHABET[byte & 0x1F] for byte in raw)

    def generate(self, count: int) -> list[str]:
        """Generate ``count`` formatted plaintext codes."""
        return [format_code(self._generate_code()) for _ in range(count)]


def format_code(code: str) -> str:
    """Format code with dashes for readability (e.g. "ABCD-EFGH")."""
    return "-".join(code[i : i + 4] for i in range(0, len(code), 4))


def normalize_code(code: str) -> str:
    """Normalize user input: strip whitespace, upper-case, accept with or without dash."""
    compact = "".join(code.split()).upper().replace("-", "")
    return format_code(compact)


def hash_code(code: str) -> str:
    """SHA-256 hex digest of the normalized code."""
    return hashlib.sha256(normalize_code(code).encode("utf-8")).hexdigest()


__all__: list[str] = [
    "ALPHABET",
    "BackupCodeGenerator",
    "format_code",
    "normalize_code",
    "hash_code",
]
