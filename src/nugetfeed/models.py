"""Data models for package sources, service indexes, search and registration metadata."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from .constants import AuthType, Constants, ProviderType
from .versioning.compare import compare_versions, is_prerelease


@dataclass(frozen=True)
class PackageSourceAuth:
    """Already-resolved credentials attached to a package source."""

    type: AuthType = AuthType.NONE
    username: Optional[str] = None
    password: Optional[str] = None
    api_key_header: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PackageSourceAuth":
        """Build auth from host settings (``type``, ``username``, ``password``, ``apiKeyHeader``)."""
        raw_type = str(data.get("type") or AuthType.NONE.value).lower()
        try:
            auth_type = AuthType(raw_type)
        except ValueError:
            auth_type = AuthType.NONE
        return cls(
            type=auth_type,
            username=data.get("username"),
            password=data.get("password"),
            api_key_header=data.get("apiKeyHeader") or data.get("api_key_header"),
        )


_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off"}


def _parse_enabled(value: Any) -> bool:
    """Read the ``enabled`` flag; absent means enabled.

    Raises:
        ValueError: the value is neither a boolean nor a recognised boolean string.
    """
    if value is None:
        return True
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise ValueError(f"invalid enabled flag: {value!r}")


@dataclass(frozen=True)
class PackageSource:
    """A configured package feed.

    ``provider`` is kept as the raw tag string so hosts can register
    strategies for providers this package does not know about.
    """

    id: str
    name: str
    index_url: str
    provider: str = ProviderType.CUSTOM.value
    enabled: bool = True
    auth: Optional[PackageSourceAuth] = None
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def provider_type(self) -> Optional[ProviderType]:
        try:
            return ProviderType(self.provider)
        except ValueError:
            return None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PackageSource":
        """Build a source from host settings.

        Raises:
            ValueError: ``indexUrl`` is missing or ``enabled`` is not a boolean.
        """
        index_url = data.get("indexUrl") or data.get("index_url")
        if not index_url:
            raise ValueError("package source requires an indexUrl")
        source_id = data.get("id") or data.get("name") or index_url
        auth_data = data.get("auth")
        return cls(
            id=str(source_id),
            name=str(data.get("name") or source_id),
            index_url=str(index_url),
            provider=str(data.get("provider") or ProviderType.CUSTOM.value),
            enabled=_parse_enabled(data.get("enabled")),
            auth=PackageSourceAuth.from_mapping(auth_data) if isinstance(auth_data, Mapping) else None,
            metadata=dict(data.get("metadata") or {}),
        )


DEFAULT_SOURCE = PackageSource(
    id=Constants.DEFAULT_SOURCE_ID,
    name=Constants.DEFAULT_SOURCE_ID,
    index_url=Constants.REGISTRY_URL_NUGET_V3,
    provider=ProviderType.NUGET_ORG.value,
)


@dataclass(frozen=True)
class ServiceIndexResource:
    """One endpoint advertised by a service index."""

    url: str
    type: str
    comment: Optional[str] = None


@dataclass(frozen=True)
class ServiceIndex:
    """A feed's service index: schema version plus ordered resources."""

    version: str
    resources: List[ServiceIndexResource]

    def find_resource(self, resource_type: str) -> Optional[str]:
        """Return the URL of the first resource whose type starts with ``resource_type``.

        ``SearchQueryService/3.0.0-rc`` satisfies a lookup for ``SearchQueryService``.
        """
        for resource in self.resources:
            if resource.type.startswith(resource_type):
                return resource.url
        return None

    @classmethod
    def from_json(cls, data: Any) -> "ServiceIndex":
        """Parse the wire document ``{version, resources: [{"@id", "@type", comment?}]}``.

        Resources without a string ``@id`` and ``@type`` are skipped.

        Raises:
            ValueError: the document is not an object or ``resources`` is not a list.
        """
        if not isinstance(data, Mapping):
            raise ValueError("service index is not a JSON object")
        raw_resources = data.get("resources")
        if raw_resources is None:
            raw_resources = []
        if not isinstance(raw_resources, list):
            raise ValueError("service index resources is not a list")

        resources = []
        for item in raw_resources:
            if not isinstance(item, Mapping):
                continue
            url = item.get("@id")
            rtype = item.get("@type")
            if isinstance(url, str) and isinstance(rtype, str):
                comment = item.get("comment")
                resources.append(ServiceIndexResource(url=url, type=rtype,
                                                      comment=comment if isinstance(comment, str) else None))
        return cls(version=str(data.get("version") or ""), resources=resources)


@dataclass(frozen=True)
class SearchOptions:
    """Search query parameters; ``None`` fields take the documented defaults."""

    query: Optional[str] = None
    prerelease: Optional[bool] = None
    skip: Optional[int] = None
    take: Optional[int] = None
    sem_ver_level: Optional[str] = None

    def to_query_params(self) -> List[tuple]:
        """Ordered ``(name, value)`` pairs for the search endpoint."""
        return [
            ("q", self.query or ""),
            ("skip", str(self.skip or Constants.SEARCH_DEFAULT_SKIP)),
            ("take", str(self.take or Constants.SEARCH_DEFAULT_TAKE)),
            ("prerelease", "true" if self.prerelease else "false"),
            ("semVerLevel", self.sem_ver_level or Constants.SEMVER_LEVEL),
        ]


@dataclass(frozen=True)
class PackageSearchResult:
    """A normalized search hit."""

    id: str
    version: str
    description: str = ""
    authors: List[str] = field(default_factory=list)
    download_count: int = 0
    icon_url: str = Constants.DEFAULT_ICON_URL
    verified: bool = False
    tags: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class PackageVersionSummary:
    """One version row of a registration index."""

    version: str
    registration_url: Optional[str]
    package_content_url: Optional[str]
    listed: bool
    downloads: Optional[int] = None


@dataclass(frozen=True)
class PackageIndex:
    """Every version of a package, newest first."""

    id: str
    versions: List[PackageVersionSummary]

    @property
    def total_versions(self) -> int:
        return len(self.versions)

    def latest_version(self, include_prerelease: bool = False) -> Optional[str]:
        """Highest listed version (stable only unless ``include_prerelease``)."""
        best: Optional[str] = None
        for summary in self.versions:
            if not summary.listed:
                continue
            if not include_prerelease and is_prerelease(summary.version):
                continue
            if best is None or compare_versions(summary.version, best) > 0:
                best = summary.version
        return best


@dataclass(frozen=True)
class PackageDependency:
    id: str
    range: Optional[str] = None


@dataclass(frozen=True)
class DependencyGroup:
    """Dependencies for one target framework; ``""`` means any framework."""

    target_framework: str
    dependencies: List[PackageDependency] = field(default_factory=list)


class DeprecationReason(Enum):
    LEGACY = "Legacy"
    CRITICAL_BUGS = "CriticalBugs"
    OTHER = "Other"


@dataclass(frozen=True)
class AlternatePackage:
    id: str
    range: Optional[str] = None


@dataclass(frozen=True)
class PackageDeprecation:
    reasons: List[DeprecationReason] = field(default_factory=list)
    message: Optional[str] = None
    alternate_package: Optional[AlternatePackage] = None


class VulnerabilitySeverity(Enum):
    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"
    CRITICAL = "Critical"


@dataclass(frozen=True)
class PackageVulnerability:
    advisory_url: Optional[str]
    severity: VulnerabilitySeverity


@dataclass(frozen=True)
class PackageVersionDetails:  # pylint: disable=too-many-instance-attributes
    """Full metadata for one package version."""

    id: str
    version: str
    package_content_url: str
    registration_url: str
    listed: bool = False
    description: Optional[str] = None
    summary: Optional[str] = None
    title: Optional[str] = None
    authors: Optional[str] = None
    owners: Optional[str] = None
    icon_url: Optional[str] = None
    license_expression: Optional[str] = None
    license_url: Optional[str] = None
    project_url: Optional[str] = None
    readme_url: Optional[str] = None
    published: Optional[str] = None
    total_downloads: Optional[int] = None
    tags: List[str] = field(default_factory=list)
    dependency_groups: List[DependencyGroup] = field(default_factory=list)
    deprecation: Optional[PackageDeprecation] = None
    vulnerabilities: Optional[List[PackageVulnerability]] = None

    @property
    def is_deprecated(self) -> bool:
        return self.deprecation is not None

    @property
    def is_prerelease(self) -> bool:
        return is_prerelease(self.version)
