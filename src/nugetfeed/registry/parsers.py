"""Normalize search and registration payloads into model objects."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from ..common.result import RegistrationContractError
from ..constants import Constants
from ..models import (
    AlternatePackage,
    DependencyGroup,
    DeprecationReason,
    PackageDependency,
    PackageDeprecation,
    PackageSearchResult,
    PackageVersionDetails,
    PackageVersionSummary,
    PackageVulnerability,
    VulnerabilitySeverity,
)
from ..versioning.frameworks import framework_key

logger = logging.getLogger(__name__)

_SEVERITY_CODES = {
    0: VulnerabilitySeverity.LOW,
    1: VulnerabilitySeverity.MODERATE,
    2: VulnerabilitySeverity.HIGH,
    3: VulnerabilitySeverity.CRITICAL,
}


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _int_or_none(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return None


def _listed(entry: Mapping[str, Any]) -> bool:
    # Absent means listed in the registration protocol.
    return entry.get("listed", True) is not False


def normalize_authors(authors: Any) -> List[str]:
    """Authors from a comma separated string or a list; blanks and non-strings dropped."""
    if isinstance(authors, str):
        return [a.strip() for a in authors.split(",") if a.strip()]
    if isinstance(authors, list):
        return [a.strip() for a in authors if isinstance(a, str) and a.strip()]
    return []


normalize_search_tags = normalize_authors


def normalize_tags(tags: Any) -> List[str]:
    """Tags from a whitespace separated string or a list; non-strings dropped."""
    if isinstance(tags, str):
        return tags.split()
    if isinstance(tags, list):
        return [t for t in tags if isinstance(t, str) and t]
    return []


def parse_search_response(payload: Any) -> List[PackageSearchResult]:
    """Parse a search response.

    Accepts ``{"totalHits": n, "data": [...]}`` or a bare list. Entries without
    a string ``id`` and ``version`` are dropped; anything else yields ``[]``.
    """
    if isinstance(payload, Mapping):
        items = payload.get("data")
    else:
        items = payload
    if not isinstance(items, list):
        return []

    results = []
    for item in items:
        if not isinstance(item, Mapping):
            continue
        package_id, version = item.get("id"), item.get("version")
        if not isinstance(package_id, str) or not isinstance(version, str):
            continue
        icon = item.get("iconUrl")
        results.append(PackageSearchResult(
            id=package_id,
            version=version,
            description=item.get("description") if isinstance(item.get("description"), str) else "",
            authors=normalize_authors(item.get("authors")),
            download_count=_int_or_none(item.get("totalDownloads")) or 0,
            icon_url=icon if isinstance(icon, str) and icon else Constants.DEFAULT_ICON_URL,
            verified=item.get("verified") is True,
            tags=normalize_search_tags(item.get("tags")),
        ))
    return results


def parse_version_summary(item: Any) -> PackageVersionSummary:
    """Parse one catalog page item.

    Raises:
        RegistrationContractError: the item has no ``catalogEntry.version``.
    """
    if not isinstance(item, Mapping):
        raise RegistrationContractError("Invalid page item: not an object")
    entry = item.get("catalogEntry")
    if not isinstance(entry, Mapping) or not isinstance(entry.get("version"), str) or not entry.get("version"):
        raise RegistrationContractError("Invalid page item: missing catalogEntry.version")
    return PackageVersionSummary(
        version=entry["version"],
        registration_url=_str_or_none(item.get("@id")),
        package_content_url=_str_or_none(item.get("packageContent")),
        listed=_listed(entry),
        downloads=_int_or_none(entry.get("downloads")),
    )


def _parse_dependencies(raw: Any) -> List[PackageDependency]:
    if not isinstance(raw, list):
        return []
    deps = []
    for dep in raw:
        if isinstance(dep, Mapping) and isinstance(dep.get("id"), str):
            deps.append(PackageDependency(id=dep["id"], range=_str_or_none(dep.get("range"))))
    return deps


def parse_dependency_groups(raw: Any) -> List[DependencyGroup]:
    """Dependency groups ordered most modern framework first, "any framework" (``""``) last."""
    if not isinstance(raw, list):
        return []
    groups = [
        DependencyGroup(
            target_framework=_str_or_none(group.get("targetFramework")) or "",
            dependencies=_parse_dependencies(group.get("dependencies")),
        )
        for group in raw
        if isinstance(group, Mapping)
    ]
    return sorted(groups, key=lambda g: framework_key(g.target_framework), reverse=True)


def _parse_deprecation_reason(reason: Any) -> Optional[DeprecationReason]:
    try:
        return DeprecationReason(reason)
    except ValueError:
        return None


def parse_deprecation(raw: Any) -> Optional[PackageDeprecation]:
    """Unrecognized reason strings are dropped."""
    if not isinstance(raw, Mapping):
        return None
    reasons_raw = raw.get("reasons")
    reasons = []
    if isinstance(reasons_raw, list):
        for reason in reasons_raw:
            parsed = _parse_deprecation_reason(reason)
            if parsed is not None:
                reasons.append(parsed)

    alternate = None
    alt_raw = raw.get("alternatePackage")
    if isinstance(alt_raw, Mapping) and isinstance(alt_raw.get("id"), str):
        alternate = AlternatePackage(id=alt_raw["id"], range=_str_or_none(alt_raw.get("range")))

    return PackageDeprecation(reasons=reasons, message=_str_or_none(raw.get("message")), alternate_package=alternate)


def severity_from_code(code: Any) -> VulnerabilitySeverity:
    """Map 0-3 to Low/Moderate/High/Critical; anything else is Low."""
    if isinstance(code, str):
        try:
            code = int(code.strip())
        except ValueError:
            return VulnerabilitySeverity.LOW
    if isinstance(code, bool) or not isinstance(code, int):
        return VulnerabilitySeverity.LOW
    return _SEVERITY_CODES.get(code, VulnerabilitySeverity.LOW)


def parse_vulnerabilities(raw: Any) -> Optional[List[PackageVulnerability]]:
    if not isinstance(raw, list):
        return None
    return [
        PackageVulnerability(advisory_url=_str_or_none(v.get("advisoryUrl")), severity=severity_from_code(v.get("severity")))
        for v in raw
        if isinstance(v, Mapping)
    ]


def parse_version_details(leaf: Any) -> PackageVersionDetails:
    """Parse a registration leaf whose ``catalogEntry`` is already an object.

    Raises:
        RegistrationContractError: ``@id``, ``catalogEntry``, ``packageContent``
            or the catalog entry's id/version is missing.
    """
    if not isinstance(leaf, Mapping):
        raise RegistrationContractError("Invalid registration leaf response: not an object")
    if not isinstance(leaf.get("@id"), str) or not leaf.get("@id"):
        raise RegistrationContractError("Invalid registration leaf: missing @id")
    entry = leaf.get("catalogEntry")
    if not isinstance(entry, Mapping):
        raise RegistrationContractError("Invalid registration leaf: missing catalogEntry")
    if not isinstance(leaf.get("packageContent"), str) or not leaf.get("packageContent"):
        raise RegistrationContractError("Invalid registration leaf: missing packageContent")

    package_id, version = entry.get("id"), entry.get("version")
    if not isinstance(package_id, str) or not package_id or not isinstance(version, str) or not version:
        raise RegistrationContractError("Invalid catalogEntry: missing id or version")

    return PackageVersionDetails(
        id=package_id,
        version=version,
        package_content_url=leaf["packageContent"],
        registration_url=leaf["@id"],
        listed=_listed(entry),
        description=_str_or_none(entry.get("description")),
        summary=_str_or_none(entry.get("summary")),
        title=_str_or_none(entry.get("title")),
        authors=_str_or_none(entry.get("authors")),
        owners=_str_or_none(entry.get("owners")),
        icon_url=_str_or_none(entry.get("iconUrl")),
        license_expression=_str_or_none(entry.get("licenseExpression")),
        license_url=_str_or_none(entry.get("licenseUrl")),
        project_url=_str_or_none(entry.get("projectUrl")),
        readme_url=_str_or_none(entry.get("readmeUrl")),
        published=_str_or_none(entry.get("published")),
        total_downloads=_int_or_none(entry.get("totalDownloads")),
        tags=normalize_tags(entry.get("tags")),
        dependency_groups=parse_dependency_groups(entry.get("dependencyGroups")),
        deprecation=parse_deprecation(entry.get("deprecation")),
        vulnerabilities=parse_vulnerabilities(entry.get("vulnerabilities")),
    )


def merge_catalog_entry(leaf: Mapping[str, Any], entry: Any) -> Dict[str, Any]:
    """Copy of ``leaf`` with a fetched catalog entry substituted for its URL reference."""
    merged = dict(leaf)
    merged["catalogEntry"] = entry
    return merged
