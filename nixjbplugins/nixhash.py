"""Nix base32 encoding and conversion of nix hashes to base64."""

from __future__ import annotations

import base64

ALPHABET = "0123456789abcdfghijklmnpqrsvwxyz"
_REVERSE = {char: index for index, char in enumerate(ALPHABET)}


def to_nix_base32(data: bytes) -> str:
    """Encode bytes in the nix base32 alphabet and digit order."""
    if not data:
        return ""
    length = (len(data) * 8 - 1) // 5 + 1
    chars = []
    for n in reversed(range(length)):
        i, j = divmod(n * 5, 8)
        value = data[i] >> j
        if i + 1 < len(data):
            value |= data[i + 1] << (8 - j)
        chars.append(ALPHABET[value & 0x1F])
    return "".join(chars)


def from_nix_base32(text: str) -> bytes:
    """Decode a nix base32 string; raise ValueError if it is not valid."""
    size = len(text) * 5 // 8
    out = bytearray(size)
    for n, char in enumerate(reversed(text)):
        digit = _REVERSE.get(char)
        if digit is None:
            raise ValueError(f"invalid nix base32 character {char!r}")
        i, j = divmod(n * 5, 8)
        if i >= size:
            if digit:
                raise ValueError(f"nix base32 string has excess bits: {text!r}")
            continue
        out[i] |= (digit << j) & 0xFF
        carry = digit >> (8 - j)
        if i + 1 < size:
            out[i + 1] |= carry
        elif carry:
            raise ValueError(f"nix base32 string has excess bits: {text!r}")
    return bytes(out)


def nix32_to_base64(text: str) -> str:
    """Convert a nix base32 hash to standard base64."""
    return base64.b64encode(from_nix_base32(text)).decode("ascii")