"""Package search against one or many feeds."""
from __future__ import annotations

import asyncio
import logging
import urllib.parse
from typing import Dict, Iterable, List, Optional, Sequence

from ..common.cancellation import CancelReason, CancellationToken, LinkedCancellation
from ..common.http_client import HttpClient
from ..common.logging_utils import Timer, extra_context, is_debug_enabled, safe_url
from ..common.result import AppError, Result
from ..constants import Constants
from ..models import PackageSearchResult, PackageSource, SearchOptions
from ..versioning.compare import compare_versions
from .headers import filter_headers_for_url
from .parsers import parse_search_response
from .service_index import ServiceIndexResolver

logger = logging.getLogger(__name__)


def build_search_url(base_url: str, options: SearchOptions) -> str:
    """Append the search query string to the SearchQueryService URL."""
    query = urllib.parse.urlencode(options.to_query_params())
    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}{query}"


def deduplicate_packages(packages: Iterable[PackageSearchResult]) -> List[PackageSearchResult]:
    """Collapse results sharing an id (case-insensitive), keeping the highest version.

    The first-seen position of each id is kept; on equal versions the first
    result wins.
    """
    by_id: Dict[str, PackageSearchResult] = {}
    for package in packages:
        key = package.id.lower()
        existing = by_id.get(key)
        if existing is None or compare_versions(package.version, existing.version) > 0:
            by_id[key] = package
    return list(by_id.values())


class SearchExecutor:
    """Run searches through the HTTP pipeline.

    Each search runs under its own deadline linked to the caller's token.
    Multi-source searches fan out concurrently; a failing source does not
    cancel the others.
    """

    def __init__(
        self,
        http: HttpClient,
        resolver: ServiceIndexResolver,
        timeout: float = Constants.SEARCH_TIMEOUT,
        logger: Optional[logging.Logger] = None,
    ):
        self._http = http
        self._resolver = resolver
        self._timeout = timeout
        self._logger = logger or logging.getLogger(__name__)

    async def search(
        self,
        source: PackageSource,
        options: Optional[SearchOptions] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> Result[List[PackageSearchResult]]:
        """Search a single source."""
        options = options or SearchOptions()
        search_url = await self._resolver.get_search_url(source.index_url, source, cancellation)
        if not search_url.success:
            return search_url  # type: ignore[return-value]

        url = build_search_url(search_url.value, options)  # type: ignore[arg-type]
        if is_debug_enabled(self._logger):
            self._logger.debug(
                "Searching packages",
                extra=extra_context(
                    event="http_request", component="search", action="search",
                    source=source.id, target=safe_url(url),
                ),
            )

        if cancellation is not None and cancellation.cancelled:
            if cancellation.reason is CancelReason.TIMEOUT:
                return Result.fail(AppError.timeout("Request timed out before it started"))
            return Result.fail(AppError.cancelled("Request was cancelled before it started"))

        with Timer() as t:
            with LinkedCancellation(cancellation, self._timeout) as token:
                result = await self._http.get(
                    url, headers=filter_headers_for_url(source, url), cancellation=token,
                )
        if not result.success:
            return result

        packages = parse_search_response(result.value)
        if is_debug_enabled(self._logger):
            self._logger.debug(
                "Search completed",
                extra=extra_context(
                    event="search", component="search", outcome="success",
                    source=source.id, count=len(packages), duration_ms=t.duration_ms(),
                ),
            )
        return Result.ok(packages)

    async def search_multiple(
        self,
        sources: Sequence[PackageSource],
        options: Optional[SearchOptions] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> Result[List[PackageSearchResult]]:
        """Search every source concurrently and merge the results.

        Fails with the first error only when no source returned any package.
        """
        self._logger.info("Searching %d sources in parallel", len(sources))
        results = await asyncio.gather(*(self.search(s, options, cancellation) for s in sources))

        packages: List[PackageSearchResult] = []
        errors: List[AppError] = []
        for source, result in zip(sources, results):
            if result.success:
                packages.extend(result.value)  # type: ignore[arg-type]
                continue
            assert result.error is not None
            self._logger.warning(
                "Source search failed",
                extra=extra_context(
                    event="search", component="search", outcome=result.error.code.value,
                    source=source.id, status_code=result.error.status_code,
                ),
            )
            errors.append(result.error)

        if not packages and errors:
            return Result.fail(errors[0])

        merged = deduplicate_packages(packages)
        self._logger.info("Found %d packages from %d sources", len(merged), len(sources))
        return Result.ok(merged)
