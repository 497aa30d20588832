"""
Version — numeric ordering of dotted version strings.

Versions compare segment by segment as integers, with the shorter one
padded by trailing zeros, so "9.0.50" > "9.0.9" and "1.0" == "1.0.0".
"""
from __future__ import annotations

import re
from enum import Enum, unique
from itertools import zip_longest
from typing import Optional, Tuple

from karox_runner.errors import MalformedVersion

SEPARATOR = "."

_SEGMENT_RE = re.compile(r"[0-9]+")
_REPORTED_RE = re.compile(r"version\s+v?([0-9]+(?:\.[0-9]+)*)", re.IGNORECASE)


@unique
class Ordering(Enum):
    LESS = -1
    EQUAL = 0
    GREATER = 1


def parse_version(version: str) -> Tuple[int, ...]:
    """Split *version* into integer segments; raise MalformedVersion if any is not numeric."""
    if not isinstance(version, str) or not version:
        raise MalformedVersion(str(version), "empty version")

    segments = []
    for seg in version.split(SEPARATOR):
        if not seg:
            raise MalformedVersion(version, "empty segment")
        if not _SEGMENT_RE.fullmatch(seg):
            raise MalformedVersion(version, f"non-numeric segment {seg!r}")
        segments.append(int(seg))
    return tuple(segments)


def compare(a: str, b: str) -> Ordering:
    """Compare two version strings numerically."""
    for x, y in zip_longest(parse_version(a), parse_version(b), fillvalue=0):
        if x < y:
            return Ordering.LESS
        if x > y:
            return Ordering.GREATER
    return Ordering.EQUAL


def meets_minimum(required: str, actual: str) -> bool:
    """True iff *actual* is at least *required*."""
    return compare(actual, required) is not Ordering.LESS


def extract_version(text: str) -> Optional[str]:
    """
    Pull the version token out of free-form ``--version`` output.

    ``"QEMU emulator version 9.0.50 (v9.0.0-1-gdeadbeef)"`` → ``"9.0.50"``.
    Returns None when no ``version <digits>`` token is present.
    """
    match = _REPORTED_RE.search(text or "")
    if match is None:
        return None
    return match.group(1)
