"""Base32 (RFC 4648) codec for TOTP secrets.

Decoding is lenient by default: characters outside the alphabet (padding,
whitespace, dashes, stray symbols) are skipped rather than rejected, so
secrets typed as ``"jbsw y3dp-ehpk 3pxp"`` decode like ``"JBSWY3DPEHPK3PXP"``.
Pass ``strict=True`` to reject them instead.
"""

from __future__ import annotations

import base64

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"

_VALUES: dict[str, int] = {char: index for index, char in enumerate(ALPHABET)}


def decode(encoded: str, *, strict: bool = False) -> bytes:
    """Decode a Base32 string into raw key bytes.

    Args:
        encoded: Base32 text, any case.
        strict: Raise on anything other than alphabet characters followed by
            optional ``=`` padding.

    Returns:
        Decoded bytes. Trailing bits that do not fill a byte are discarded.

    Raises:
        ValueError: In strict mode, if the input holds unrecognised characters.
    """
    if strict:
        _validate_strict(encoded)

    result = bytearray()
    buffer = 0
    bits = 0
    for char in encoded.upper():
        value = _VALUES.get(char)
        if value is None:
            continue
        buffer = ((buffer << 5) | value) & 0x1FFF  # at most 8 + 5 bits live
        bits += 5
        if bits >= 8:
            bits -= 8
            result.append((buffer >> bits) & 0xFF)
    return bytes(result)


def _validate_strict(encoded: str) -> None:
    body = encoded.rstrip("=")
    for position, char in enumerate(body):
        if char.upper() not in _VALUES:
            raise ValueError(
                f"Invalid Base32 character at position {position}"
            )


def encode(data: bytes) -> str:
    """Encode bytes as unpadded upper-case Base32."""
    return base64.b32encode(data).decode("ascii").rstrip("=")


__all__: list[str] = ["ALPHABET", "decode", "encode"]
