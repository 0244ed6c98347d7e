"""Target framework moniker (TFM) ordering.

Monikers fall into ordered families: modern .NET (net5.0+), .NET Core,
.NET Standard/portable, legacy .NET Framework, then everything else.
Ordering is family first, then version (newer ranks higher). Compact and
verbose spellings (``net48`` / ``.NETFramework4.8``, ``netstandard2.0`` /
``.NETStandard2.0``) parse to the same canonical moniker.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import IntEnum
from functools import cmp_to_key
from typing import Iterable, List


class FrameworkFamily(IntEnum):
    """Framework families; a larger value ranks higher."""

    OTHER = 0
    NET_FRAMEWORK = 1
    NET_STANDARD = 2
    NET_CORE = 3
    NET = 4


@dataclass(frozen=True)
class FrameworkInfo:
    family: FrameworkFamily
    version: int
    canonical: str

    @property
    def is_any(self) -> bool:
        return self.canonical == "any"


_DOTTED_NET = re.compile(r"^net(\d+)\.(\d+)$")
_COMPACT_NET = re.compile(r"^net(\d)(\d{0,2})$")
_NETCOREAPP = re.compile(r"^\.?netcoreapp(\d+)\.(\d+)$")
_NETSTANDARD = re.compile(r"^\.?netstandard(\d+)\.(\d+)$")
_COMPACT_NETSTANDARD = re.compile(r"^netstandard(\d)(\d)$")
_PORTABLE = re.compile(r"^\.?netportable[-\d.]*|^portable-")
_VERBOSE_NETFX = re.compile(r"^\.?netframework(\d+)\.(\d+)(?:\.(\d+))?$")


def _netfx(major: int, minor: int, patch: int) -> FrameworkInfo:
    short = f"{minor}{patch}" if patch else f"{minor}"
    return FrameworkInfo(FrameworkFamily.NET_FRAMEWORK, major * 100 + minor * 10 + patch, f"net{major}{short}")


def _modern(major: int, minor: int, platform: str) -> FrameworkInfo:
    return FrameworkInfo(FrameworkFamily.NET, major * 10 + minor, f"net{major}.{minor}{platform}")


def parse_framework(tfm: str) -> FrameworkInfo:
    """Classify a moniker.

    Examples: ``net8.0`` -> NET/80, ``netcoreapp3.1`` -> NET_CORE/31,
    ``.NETStandard2.0`` -> NET_STANDARD/20, ``net472`` -> NET_FRAMEWORK/472,
    ``""`` or ``any`` -> OTHER/0 ``any``.
    """
    lower = tfm.strip().lower()
    if not lower or lower == "any":
        return FrameworkInfo(FrameworkFamily.OTHER, 0, "any")

    # Platform suffix on modern monikers: net6.0-windows, net8.0-android34.0
    base, sep, platform = lower.partition("-")
    platform = f"{sep}{platform}" if sep else ""

    match = _DOTTED_NET.match(base)
    if match:
        major, minor = int(match.group(1)), int(match.group(2))
        if major >= 5:
            return _modern(major, minor, platform)
        return _netfx(major, minor, 0)

    match = _COMPACT_NET.match(base)
    if match:
        major = int(match.group(1))
        rest = match.group(2)
        minor = int(rest[0]) if rest else 0
        patch = int(rest[1]) if len(rest) > 1 else 0
        if major >= 5:
            return _modern(major, minor, platform)
        return _netfx(major, minor, patch)

    match = _NETCOREAPP.match(base)
    if match:
        major, minor = int(match.group(1)), int(match.group(2))
        if major >= 5:
            return _modern(major, minor, platform)
        return FrameworkInfo(FrameworkFamily.NET_CORE, major * 10 + minor, f"netcoreapp{major}.{minor}")

    match = _NETSTANDARD.match(lower) or _COMPACT_NETSTANDARD.match(lower)
    if match:
        major, minor = int(match.group(1)), int(match.group(2))
        return FrameworkInfo(FrameworkFamily.NET_STANDARD, major * 10 + minor, f"netstandard{major}.{minor}")

    if _PORTABLE.match(lower):
        return FrameworkInfo(FrameworkFamily.NET_STANDARD, 0, lower)

    match = _VERBOSE_NETFX.match(lower)
    if match:
        return _netfx(int(match.group(1)), int(match.group(2)), int(match.group(3) or 0))

    return FrameworkInfo(FrameworkFamily.OTHER, 0, lower)


def compare_frameworks(a: str, b: str) -> int:
    """Compare two monikers; positive when ``a`` ranks higher.

    Within the OTHER family ``any`` ranks lowest and the rest rank
    alphabetically (earlier name ranks higher).
    """
    fa, fb = parse_framework(a), parse_framework(b)
    if fa.family != fb.family:
        return 1 if fa.family > fb.family else -1
    if fa.version != fb.version:
        return 1 if fa.version > fb.version else -1
    if fa.is_any != fb.is_any:
        return -1 if fa.is_any else 1
    if fa.canonical == fb.canonical:
        return 0
    return 1 if fa.canonical < fb.canonical else -1


framework_key = cmp_to_key(compare_frameworks)


def sort_frameworks_descending(frameworks: Iterable[str]) -> List[str]:
    """Most modern first, ``any`` last."""
    return sorted(frameworks, key=framework_key, reverse=True)
