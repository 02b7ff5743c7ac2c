"""Lenient version comparison used for IDE build numbers and plugin ranges.

A version is split at every non-alphanumeric character into numeric and
textual parts. Parts are compared pairwise; numbers numerically, text
case-insensitively, and a number against text counts as equal. Trailing
zero parts are ignored, and trailing text makes a version smaller.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from itertools import zip_longest

Part = int | str

_MAX_NUMBER = 2**64 - 1
_SEPARATORS = re.compile(r"[\W_]+")
_LEADING_NUMBER = re.compile(r"([0-9]+)(?=[A-Za-z])")
_MISSING = object()


def _number(token: str) -> int | None:
    if token.isascii() and token.isdigit():
        value = int(token)
        if value <= _MAX_NUMBER:
            return value
    return None


def _parts(text: str) -> tuple[Part, ...]:
    parts: list[Part] = []
    for token in _SEPARATORS.split(text):
        if not token:
            continue
        number = _number(token)
        if number is not None:
            parts.append(number)
            continue
        match = _LEADING_NUMBER.match(token)
        if match:
            leading = _number(match.group(1))
            if leading is not None:
                parts.append(leading)
                parts.append(token[match.end():])
                continue
        parts.append(token)
    return tuple(parts)


def _compare_parts(left: tuple[Part, ...], right: tuple[Part, ...]) -> int:
    for part, other in zip_longest(left, right, fillvalue=_MISSING):
        if other is _MISSING:
            if isinstance(part, int):
                if part == 0:
                    continue
                return 1
            return -1
        if part is _MISSING:
            if isinstance(other, int):
                if other == 0:
                    continue
                return -1
            return 1
        if isinstance(part, int) and isinstance(other, int):
            if part != other:
                return -1 if part < other else 1
        elif isinstance(part, str) and isinstance(other, str):
            a, b = part.lower(), other.lower()
            if a != b:
                return -1 if a < b else 1
    return 0


@dataclass(frozen=True, eq=False)
class Version:
    """A parsed version string."""

    text: str
    parts: tuple[Part, ...]

    @classmethod
    def parse(cls, text: str) -> Version:
        """Parse a version; raise ValueError if it has no parts."""
        parts = _parts(text)
        if not parts:
            raise ValueError(f"not a version: {text!r}")
        return cls(text=text, parts=parts)

    def compare(self, other: Version) -> int:
        """Return -1, 0 or 1 as this version is lower, equal or higher."""
        return _compare_parts(self.parts, other.parts)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.compare(other) == 0

    __hash__ = None  # type: ignore[assignment]

    def __lt__(self, other: Version) -> bool:
        return self.compare(other) < 0

    def __le__(self, other: Version) -> bool:
        return self.compare(other) <= 0

    def __gt__(self, other: Version) -> bool:
        return self.compare(other) > 0

    def __ge__(self, other: Version) -> bool:
        return self.compare(other) >= 0

    def __str__(self) -> str:
        return self.text


def compare_versions(a: str | Version, b: str | Version) -> int:
    """Compare two versions given as strings or Version objects."""
    left = a if isinstance(a, Version) else Version.parse(a)
    right = b if isinstance(b, Version) else Version.parse(b)
    return left.compare(right)