"""High-level client tying the transport, resolver and fetchers together."""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Hashable, List, Optional, Sequence

from .common.cache import LruCache
from .common.cancellation import CancellationToken
from .common.http_client import AiohttpTransport, HttpClient, HttpMiddleware, HttpPipeline, RateLimitMiddleware, RetryMiddleware
from .common.logging_utils import configure_logging, extra_context, is_debug_enabled
from .common.result import AppError, Result
from .config import ClientOptions
from .models import PackageIndex, PackageSearchResult, PackageSource, PackageVersionDetails, SearchOptions
from .registry.metadata import MetadataFetcher
from .registry.readme import ReadmeFetcher
from .registry.search import SearchExecutor
from .registry.service_index import ServiceIndexResolver
from .registry.strategies import StrategyRegistry

logger = logging.getLogger(__name__)

ALL_SOURCES = "all"


class NuGetClient:
    """Entry point for hosts: search, version listings, version details and READMEs.

    Every operation returns a ``Result``; expected failures never raise.

    Example::

        async with NuGetClient(ClientOptions.from_env()) as client:
            found = await client.search_packages(SearchOptions(query="json"))
            if found.success:
                for package in found.value:
                    print(package.id, package.version)
    """

    def __init__(
        self,
        options: Optional[ClientOptions] = None,
        *,
        transport: Optional[HttpClient] = None,
        middleware: Optional[Sequence[HttpMiddleware]] = None,
        registry: Optional[StrategyRegistry] = None,
        cache_metadata: bool = True,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize the client.

        Args:
            options: Client settings; defaults to the public nuget.org feed.
            transport: Base HTTP client; an ``AiohttpTransport`` is created when omitted.
            middleware: Pipeline middleware, outermost first. Defaults to retry then rate limiting.
            registry: Strategy registry shared with the resolver.
            cache_metadata: Keep package indexes, version details and READMEs in a bounded TTL cache.
            logger: Injected logger passed to every component.
        """
        self._options = options or ClientOptions()
        self._logger = logger or logging.getLogger(__name__)
        if self._options.log_level:
            configure_logging(self._options.log_level)

        if transport is None:
            transport = AiohttpTransport(timeout=self._options.timeout, logger=self._logger)
        if middleware is None:
            middleware = [
                RetryMiddleware(
                    max_attempts=self._options.retry_max_attempts,
                    base_delay=self._options.retry_base_delay,
                    logger=self._logger,
                ),
                RateLimitMiddleware(min_interval=self._options.rate_limit_interval, logger=self._logger),
            ]
        self._http = HttpPipeline(transport, middleware)

        self._resolver = ServiceIndexResolver(
            self._http, registry=registry, timeout=self._options.service_index_timeout, logger=self._logger,
        )
        self._search = SearchExecutor(
            self._http, self._resolver, timeout=self._options.search_timeout, logger=self._logger,
        )
        self._metadata = MetadataFetcher(
            self._http, self._resolver, timeout=self._options.timeout, logger=self._logger,
        )
        self._readme = ReadmeFetcher(
            self._http, self._resolver, timeout=self._options.readme_timeout, logger=self._logger,
        )
        self._cache: Optional[LruCache[Hashable, Any]] = None
        if cache_metadata:
            self._cache = LruCache(self._options.metadata_cache_size, self._options.metadata_cache_ttl)

    @property
    def options(self) -> ClientOptions:
        return self._options

    @property
    def sources(self) -> List[PackageSource]:
        return list(self._options.sources)

    @property
    def resolver(self) -> ServiceIndexResolver:
        return self._resolver

    @property
    def registry(self) -> StrategyRegistry:
        return self._resolver.registry

    @property
    def metadata_cache(self) -> Optional[LruCache[Hashable, Any]]:
        return self._cache

    async def start(self) -> None:
        await self._http.start()

    async def close(self) -> None:
        await self._http.stop()

    async def __aenter__(self) -> "NuGetClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _select_sources(self, source_id: Optional[str]) -> Result[List[PackageSource]]:
        enabled = self._options.enabled_sources
        if source_id and source_id != ALL_SOURCES:
            selected = [s for s in enabled if s.id == source_id]
            if not selected:
                return Result.fail(AppError.api(f"Source '{source_id}' not found or disabled"))
            return Result.ok(selected)
        if not enabled:
            return Result.fail(AppError.api("No enabled package sources configured"))
        return Result.ok(enabled)

    def _select_source(self, source_id: Optional[str]) -> Result[PackageSource]:
        selected = self._select_sources(source_id).map(lambda sources: sources[0])
        if selected.success and is_debug_enabled(self._logger):
            self._logger.debug(
                "Selected source",
                extra=extra_context(
                    event="decision", component="facade", action="select_source",
                    source=selected.value.id, requested=source_id,  # type: ignore[union-attr]
                ),
            )
        return selected

    async def search_packages(
        self,
        options: Optional[SearchOptions] = None,
        source_id: Optional[str] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> Result[List[PackageSearchResult]]:
        """Search one source, or every enabled source when ``source_id`` is unset or ``"all"``."""
        options = options or SearchOptions()
        if options.sem_ver_level is None:
            options = replace(options, sem_ver_level=self._options.sem_ver_level)

        selected = self._select_sources(source_id)
        if not selected.success:
            return selected  # type: ignore[return-value]
        sources = selected.value
        assert sources is not None
        if len(sources) > 1:
            return await self._search.search_multiple(sources, options, cancellation)
        return await self._search.search(sources[0], options, cancellation)

    async def _cached(self, key: Hashable, fetch) -> Result[Any]:
        if self._cache is not None:
            hit = self._cache.get(key)
            if hit is not None:
                return Result.ok(hit)
        result = await fetch()
        if result.success and self._cache is not None:
            self._cache.set(key, result.value)
        return result

    async def get_package_index(
        self,
        package_id: str,
        source_id: Optional[str] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> Result[PackageIndex]:
        """Every version of ``package_id`` on the selected (or first enabled) source."""
        selected = self._select_source(source_id)
        if not selected.success:
            return selected  # type: ignore[return-value]
        source = selected.value
        assert source is not None
        return await self._cached(
            ("index", source.id, package_id.lower()),
            lambda: self._metadata.get_package_index(package_id, source, cancellation),
        )

    async def get_package_version(
        self,
        package_id: str,
        version: str,
        source_id: Optional[str] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> Result[PackageVersionDetails]:
        selected = self._select_source(source_id)
        if not selected.success:
            return selected  # type: ignore[return-value]
        source = selected.value
        assert source is not None
        return await self._cached(
            ("details", source.id, package_id.lower(), version.lower()),
            lambda: self._metadata.get_package_version_details(package_id, version, source, cancellation),
        )

    async def get_package_readme(
        self,
        package_id: str,
        version: str,
        source_id: Optional[str] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> Result[str]:
        selected = self._select_source(source_id)
        if not selected.success:
            return selected  # type: ignore[return-value]
        source = selected.value
        assert source is not None
        return await self._cached(
            ("readme", source.id, package_id.lower(), version.lower()),
            lambda: self._readme.get_readme(package_id, version, source, cancellation),
        )

    def invalidate_source(self, source_id: str) -> None:
        """Drop the cached service index and metadata for one source."""
        for source in self._options.sources:
            if source.id == source_id:
                self._resolver.invalidate_cache(source.index_url)
        if self._cache is not None:
            for key in self._cache.keys():
                if isinstance(key, tuple) and len(key) > 1 and key[1] == source_id:
                    self._cache.delete(key)

    def clear_caches(self) -> None:
        self._resolver.clear_cache()
        if self._cache is not None:
            self._cache.clear()
