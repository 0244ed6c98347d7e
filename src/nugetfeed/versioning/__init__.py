"""Version and target framework ordering."""

from .compare import (  # noqa: F401
    ParsedVersion,
    compare_versions,
    is_prerelease,
    max_version,
    parse_version,
    sort_versions_ascending,
    sort_versions_descending,
    version_key,
)
from .frameworks import (  # noqa: F401
    FrameworkFamily,
    FrameworkInfo,
    compare_frameworks,
    framework_key,
    parse_framework,
    sort_frameworks_descending,
)

__all__ = [
    "ParsedVersion",
    "compare_versions",
    "is_prerelease",
    "max_version",
    "parse_version",
    "sort_versions_ascending",
    "sort_versions_descending",
    "version_key",
    "FrameworkFamily",
    "FrameworkInfo",
    "compare_frameworks",
    "framework_key",
    "parse_framework",
    "sort_frameworks_descending",
]
