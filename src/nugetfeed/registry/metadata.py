"""Registration (package metadata) retrieval: version listings and per-version details."""
from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional

from ..common.cancellation import CancellationToken, LinkedCancellation
from ..common.http_client import HttpClient
from ..common.logging_utils import Timer, extra_context, is_debug_enabled, safe_url
from ..common.result import AppError, ErrorCode, RegistrationContractError, Result
from ..constants import Constants
from ..models import PackageIndex, PackageSource, PackageVersionDetails, PackageVersionSummary
from ..versioning.compare import version_key
from .headers import filter_headers_for_url
from .parsers import merge_catalog_entry, parse_version_details, parse_version_summary
from .service_index import ServiceIndexResolver

logger = logging.getLogger(__name__)


def _is_not_found(error: Optional[AppError]) -> bool:
    return error is not None and error.code is ErrorCode.API_ERROR and error.status_code == 404


class MetadataFetcher:
    """Fetch registration indexes and leaves for a package source.

    Secondary fetches (remote catalog pages, catalog entries) carry the
    source's credentials only when they stay on the source's origin.
    """

    def __init__(
        self,
        http: HttpClient,
        resolver: ServiceIndexResolver,
        timeout: Optional[float] = Constants.REQUEST_TIMEOUT,
        logger: Optional[logging.Logger] = None,
    ):
        self._http = http
        self._resolver = resolver
        self._timeout = timeout
        self._logger = logger or logging.getLogger(__name__)

    async def _get(self, source: PackageSource, url: str, token: CancellationToken) -> Result[Any]:
        return await self._http.get(url, headers=filter_headers_for_url(source, url), cancellation=token)

    async def get_package_index(
        self,
        package_id: str,
        source: PackageSource,
        cancellation: Optional[CancellationToken] = None,
    ) -> Result[PackageIndex]:
        """List every version of ``package_id``, newest first.

        Returns:
            Result[PackageIndex]: NotFound when the feed has no such package.
        """
        base = await self._resolver.get_registration_url(source.index_url, source, cancellation)
        if not base.success:
            return base  # type: ignore[return-value]

        url = f"{base.value.rstrip('/')}/{package_id.lower()}/index.json"  # type: ignore[union-attr]
        self._logger.info(
            "Fetching package index",
            extra=extra_context(
                event="http_request", component="metadata", action="get_package_index",
                package=package_id, source=source.id, target=safe_url(url),
            ),
        )

        with Timer() as t:
            with LinkedCancellation(cancellation, self._timeout) as token:
                result = await self._get(source, url, token)
                if not result.success:
                    if _is_not_found(result.error):
                        self._logger.warning("Package not found (404): %s", package_id)
                        return Result.fail(AppError.not_found(f"Package '{package_id}' not found", resource=package_id))
                    self._logger.error(
                        "Failed to fetch package index",
                        extra=extra_context(
                            event="http_response", component="metadata", action="get_package_index",
                            outcome=result.error.code.value, package=package_id,  # type: ignore[union-attr]
                            status_code=result.error.status_code,  # type: ignore[union-attr]
                        ),
                    )
                    return result
                versions = await self._collect_versions(result.value, source, token)

        versions.sort(key=lambda v: version_key(v.version), reverse=True)
        if is_debug_enabled(self._logger):
            self._logger.debug(
                "Package index fetched",
                extra=extra_context(
                    event="http_response", component="metadata", action="get_package_index",
                    outcome="success", package=package_id, count=len(versions), duration_ms=t.duration_ms(),
                ),
            )
        return Result.ok(PackageIndex(id=package_id, versions=versions))

    async def _collect_versions(
        self, index: Any, source: PackageSource, token: CancellationToken
    ) -> List[PackageVersionSummary]:
        if not isinstance(index, Mapping):
            return []
        pages = index.get("items")
        if not isinstance(pages, list):
            return []

        versions: List[PackageVersionSummary] = []
        for page in pages:
            if not isinstance(page, Mapping):
                continue
            items = page.get("items")
            if isinstance(items, list):
                self._parse_items(items, versions)
                continue

            page_url = page.get("@id")
            if not isinstance(page_url, str):
                continue
            page_result = await self._get(source, page_url, token)
            if not page_result.success:
                self._logger.warning(
                    "Skipping registration page",
                    extra=extra_context(
                        event="http_response", component="metadata", action="fetch_page",
                        outcome=page_result.error.code.value, target=safe_url(page_url),  # type: ignore[union-attr]
                    ),
                )
                continue
            if isinstance(page_result.value, Mapping) and isinstance(page_result.value.get("items"), list):
                self._parse_items(page_result.value["items"], versions)
        return versions

    def _parse_items(self, items: List[Any], versions: List[PackageVersionSummary]) -> None:
        for item in items:
            try:
                versions.append(parse_version_summary(item))
            except RegistrationContractError as exc:
                self._logger.warning("Failed to parse version summary: %s", exc)

    async def get_package_version_details(
        self,
        package_id: str,
        version: str,
        source: PackageSource,
        cancellation: Optional[CancellationToken] = None,
    ) -> Result[PackageVersionDetails]:
        """Full metadata for one version; a catalog entry given by URL is fetched and merged."""
        base = await self._resolver.get_registration_url(source.index_url, source, cancellation)
        if not base.success:
            return base  # type: ignore[return-value]

        url = f"{base.value.rstrip('/')}/{package_id.lower()}/{version.lower()}.json"  # type: ignore[union-attr]
        if is_debug_enabled(self._logger):
            self._logger.debug(
                "Fetching package version details",
                extra=extra_context(
                    event="http_request", component="metadata", action="get_package_version_details",
                    package=package_id, version=version, target=safe_url(url),
                ),
            )

        with LinkedCancellation(cancellation, self._timeout) as token:
            result = await self._get(source, url, token)
            if not result.success:
                if _is_not_found(result.error):
                    return Result.fail(AppError.not_found(
                        f"Version '{version}' of package '{package_id}' not found",
                        resource=f"{package_id}@{version}",
                    ))
                return result

            leaf = result.value
            if isinstance(leaf, Mapping) and isinstance(leaf.get("catalogEntry"), str):
                entry_url = leaf["catalogEntry"]
                if is_debug_enabled(self._logger):
                    self._logger.debug("Fetching catalog entry %s", safe_url(entry_url))
                entry = await self._get(source, entry_url, token)
                if not entry.success:
                    return entry
                leaf = merge_catalog_entry(leaf, entry.value)

        try:
            details = parse_version_details(leaf)
        except RegistrationContractError as exc:
            self._logger.error(
                "Registration leaf violates the protocol contract",
                extra=extra_context(
                    event="parse", component="metadata", outcome="contract_violation",
                    package=package_id, version=version, target=safe_url(url),
                ),
            )
            return Result.fail(AppError.parse(str(exc), cause=exc))
        return Result.ok(details)
