"""Package version ordering.

Versions are parsed leniently (leading ``v`` stripped, missing components
default to 0, build metadata dropped) and then ordered with
``semantic_version`` precedence rules. Prerelease labels compare
case-insensitively, as NuGet does.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, List, Optional, Tuple

import semantic_version

_LEADING_DIGITS = re.compile(r"^\d+")
_INVALID_IDENTIFIER_CHARS = re.compile(r"[^0-9A-Za-z-]")


@dataclass(frozen=True)
class ParsedVersion:
    """Components of a lenient version string."""

    major: int
    minor: int
    patch: int
    prerelease: Optional[Tuple[str, ...]]
    build: Optional[str]


def _leading_int(part: str) -> int:
    match = _LEADING_DIGITS.match(part.strip())
    return int(match.group(0)) if match else 0


def parse_version(version: str) -> ParsedVersion:
    """Split ``version`` into numeric core, prerelease identifiers and build metadata.

    Handles ``1.2.3``, ``1.2.3-beta.1``, ``1.2.3+build.5``, ``v1.2`` (-> 1.2.0)
    and ``1`` (-> 1.0.0).
    """
    text = version.strip()
    if text[:1] in ("v", "V"):
        text = text[1:]

    text, _, build = text.partition("+")
    core, _, prerelease = text.partition("-")

    parts = core.split(".")
    numbers = [_leading_int(p) for p in parts[:3]]
    numbers += [0] * (3 - len(numbers))

    return ParsedVersion(
        major=numbers[0],
        minor=numbers[1],
        patch=numbers[2],
        prerelease=tuple(prerelease.split(".")) if prerelease else None,
        build=build or None,
    )


def _normalize_identifier(identifier: str) -> str:
    ident = _INVALID_IDENTIFIER_CHARS.sub("-", identifier).lower()
    if not ident:
        return "-"
    if ident.isdigit():
        return str(int(ident))
    return ident


@lru_cache(maxsize=4096)
def version_key(version: str) -> semantic_version.Version:
    """Sort key for ``version``; build metadata does not take part in ordering."""
    parsed = parse_version(version)
    prerelease = tuple(_normalize_identifier(i) for i in parsed.prerelease) if parsed.prerelease else ()
    return semantic_version.Version(
        major=parsed.major,
        minor=parsed.minor,
        patch=parsed.patch,
        prerelease=prerelease,
        build=(),
    )


def compare_versions(a: str, b: str) -> int:
    """Compare two version strings.

    Returns:
        int: -1 if ``a`` < ``b``, 1 if ``a`` > ``b``, 0 if they share precedence.

    Example::

        compare_versions("2.0.0", "1.9.9")        # 1
        compare_versions("1.0.0-beta", "1.0.0")   # -1
        compare_versions("1.0.0+a", "1.0.0+b")    # 0
    """
    key_a, key_b = version_key(a), version_key(b)
    if key_a < key_b:
        return -1
    if key_b < key_a:
        return 1
    return 0


def is_prerelease(version: str) -> bool:
    return parse_version(version).prerelease is not None


def sort_versions_descending(versions: Iterable[str]) -> List[str]:
    """Newest first."""
    return sorted(versions, key=version_key, reverse=True)


def sort_versions_ascending(versions: Iterable[str]) -> List[str]:
    """Oldest first."""
    return sorted(versions, key=version_key)


def max_version(versions: Iterable[str]) -> Optional[str]:
    """Highest version in ``versions`` (first one wins on equal precedence)."""
    best: Optional[str] = None
    for version in versions:
        if best is None or compare_versions(version, best) > 0:
            best = version
    return best
