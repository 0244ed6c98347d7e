"""Service index discovery with an in-memory cache keyed by index URL."""
from __future__ import annotations

import logging
from typing import Dict, Optional

from ..common.cancellation import CancellationToken, LinkedCancellation
from ..common.http_client import HttpClient
from ..common.logging_utils import Timer, extra_context, is_debug_enabled, safe_url
from ..common.result import AppError, Result
from ..constants import Constants, ProviderType, ResourceTypes
from ..models import PackageSource, ServiceIndex
from .strategies import ResolutionContext, StrategyRegistry

logger = logging.getLogger(__name__)

SEARCH_NOT_FOUND = "SearchQueryService not found in service index"
REGISTRATION_NOT_FOUND = "RegistrationsBaseUrl not found in service index"


def _anonymous_source(index_url: str) -> PackageSource:
    return PackageSource(id="unknown", name="Unknown", index_url=index_url, provider=ProviderType.CUSTOM.value)


class ServiceIndexResolver:
    """Resolve, validate and cache feed service indexes.

    Only validated indexes (exposing both a search and a registration
    endpoint) are cached. Failures are never cached.
    """

    def __init__(
        self,
        http: HttpClient,
        registry: Optional[StrategyRegistry] = None,
        timeout: Optional[float] = Constants.SERVICE_INDEX_TIMEOUT,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize the resolver.

        Args:
            http: Client (usually an ``HttpPipeline``) used by strategies.
            registry: Strategy registry; a default one is created when omitted.
            timeout: Deadline in seconds for one resolution (all probes included).
            logger: Injected logger (defaults to the module logger).
        """
        self._http = http
        self._registry = registry or StrategyRegistry()
        self._timeout = timeout
        self._logger = logger or logging.getLogger(__name__)
        self._cache: Dict[str, ServiceIndex] = {}

    @property
    def registry(self) -> StrategyRegistry:
        return self._registry

    def cached(self, index_url: str) -> Optional[ServiceIndex]:
        return self._cache.get(index_url)

    async def resolve(
        self,
        index_url: str,
        source: Optional[PackageSource] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> Result[ServiceIndex]:
        """Return the validated service index for ``index_url``."""
        cached = self._cache.get(index_url)
        if cached is not None:
            if is_debug_enabled(self._logger):
                self._logger.debug(
                    "Using cached service index",
                    extra=extra_context(event="cache_hit", component="service_index", target=safe_url(index_url)),
                )
            return Result.ok(cached)

        source = source or _anonymous_source(index_url)
        strategy = self._registry.get_strategy(source.provider or ProviderType.CUSTOM.value)

        with Timer() as t:
            with LinkedCancellation(cancellation, self._timeout) as token:
                context = ResolutionContext(
                    index_url=index_url,
                    source=source,
                    http=self._http,
                    logger=self._logger,
                    cancellation=token,
                )
                result = await strategy(context)

        if not result.success:
            self._logger.warning(
                "Service index resolution failed",
                extra=extra_context(
                    event="resolve", component="service_index", outcome=result.error.code.value,  # type: ignore[union-attr]
                    target=safe_url(index_url), source=source.id, provider=source.provider,
                    duration_ms=t.duration_ms(),
                ),
            )
            return result

        index = result.value
        assert index is not None
        if index.find_resource(ResourceTypes.SEARCH_QUERY_SERVICE) is None:
            self._logger.warning("SearchQueryService resource not found in service index")
            return Result.fail(AppError.api(SEARCH_NOT_FOUND, status_code=0))
        if index.find_resource(ResourceTypes.REGISTRATIONS_BASE_URL) is None:
            self._logger.warning("RegistrationsBaseUrl resource not found in service index")
            return Result.fail(AppError.api(REGISTRATION_NOT_FOUND, status_code=0))

        self._cache[index_url] = index
        self._logger.info(
            "Resolved service index",
            extra=extra_context(
                event="resolve", component="service_index", outcome="success",
                target=safe_url(index_url), source=source.id, resources=len(index.resources),
                duration_ms=t.duration_ms(),
            ),
        )
        return Result.ok(index)

    async def get_search_url(
        self,
        index_url: str,
        source: Optional[PackageSource] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> Result[str]:
        resolved = await self.resolve(index_url, source, cancellation)
        return resolved.flat_map(
            lambda index: _require(index, ResourceTypes.SEARCH_QUERY_SERVICE, SEARCH_NOT_FOUND)
        )

    async def get_registration_url(
        self,
        index_url: str,
        source: Optional[PackageSource] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> Result[str]:
        resolved = await self.resolve(index_url, source, cancellation)
        return resolved.flat_map(
            lambda index: _require(index, ResourceTypes.REGISTRATIONS_BASE_URL, REGISTRATION_NOT_FOUND)
        )

    async def get_flat_container_url(
        self,
        index_url: str,
        source: Optional[PackageSource] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> Result[str]:
        """Flat container base URL, or ``""`` when the feed does not expose one."""
        resolved = await self.resolve(index_url, source, cancellation)
        return resolved.map(lambda index: index.find_resource(ResourceTypes.PACKAGE_BASE_ADDRESS) or "")

    def invalidate_cache(self, index_url: str) -> None:
        self._cache.pop(index_url, None)
        if is_debug_enabled(self._logger):
            self._logger.debug("Invalidated service index cache for %s", safe_url(index_url))

    def clear_cache(self) -> None:
        self._cache.clear()
        if is_debug_enabled(self._logger):
            self._logger.debug("Cleared all service index caches")


def _require(index: ServiceIndex, resource_type: str, message: str) -> Result[str]:
    url = index.find_resource(resource_type)
    if url is None:
        return Result.fail(AppError.api(message, status_code=0))
    return Result.ok(url)
