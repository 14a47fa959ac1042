#!/usr/bin/env python3
"""
Versions
Parsing and ordering of dotted mod version strings
"""

from dataclasses import dataclass
from functools import total_ordering
from typing import Tuple, Union

from errors import VersionArityError, VersionFormatError


@total_ordering
@dataclass(frozen=True)
class ModVersion:
    """A mod version such as 1.1.67, compared segment by segment as integers"""
    segments: Tuple[int, ...]

    @classmethod
    def parse(cls, text: str) -> "ModVersion":
        if not isinstance(text, str):
            raise VersionFormatError(f"Version must be a string, got {type(text).__name__}: {text!r}")
        if not text:
            raise VersionFormatError("Version string is empty")

        segments = []
        for part in text.split('.'):
            # isdigit() also accepts things like '²', so restrict to ASCII
            if not part or not (part.isascii() and part.isdigit()):
                raise VersionFormatError(f"Invalid version string: {text!r}")
            segments.append(int(part))

        return cls(tuple(segments))

    def is_older_than(self, other: "ModVersion") -> bool:
        """True if this version sorts strictly before the other one

        Both versions need the same number of segments.
        """
        if len(self.segments) != len(other.segments):
            raise VersionArityError(
                f"Cannot compare versions of different structure: {self} and {other}"
            )
        return self.segments < other.segments

    def __lt__(self, other):
        if not isinstance(other, ModVersion):
            return NotImplemented
        return self.is_older_than(other)

    def __str__(self) -> str:
        return '.'.join(str(segment) for segment in self.segments)


VersionLike = Union[str, ModVersion]


def as_version(value: VersionLike) -> ModVersion:
    """Coerce a string or ModVersion into a ModVersion"""
    if isinstance(value, ModVersion):
        return value
    return ModVersion.parse(value)


def is_older(v1: VersionLike, v2: VersionLike) -> bool:
    """Returns True if v1 is an earlier version than v2 (v1 < v2)"""
    return as_version(v1).is_older_than(as_version(v2))
