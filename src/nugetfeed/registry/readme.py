"""README retrieval from a feed's flat container."""
from __future__ import annotations

import logging
from typing import Optional

from ..common.cancellation import CancellationToken, LinkedCancellation
from ..common.http_client import RESPONSE_TEXT, HttpClient
from ..common.logging_utils import extra_context, is_debug_enabled, safe_url
from ..common.result import AppError, ErrorCode, Result
from ..constants import Constants
from ..models import PackageSource
from .headers import filter_headers_for_url
from .service_index import ServiceIndexResolver

logger = logging.getLogger(__name__)

README_RESOURCE = "README"


def build_readme_url(base_url: str, package_id: str, version: str) -> str:
    return f"{base_url.rstrip('/')}/{package_id.lower()}/{version.lower()}/readme"


def truncate_readme(content: str, limit: int = Constants.README_MAX_BYTES) -> str:
    """Cut ``content`` to ``limit`` characters and append the truncation marker when longer."""
    if len(content) <= limit:
        return content
    return content[:limit] + Constants.README_TRUNCATION_MARKER


class ReadmeFetcher:
    """Fetch README text for a package version.

    Feeds without a flat container (PackageBaseAddress) cannot serve READMEs;
    that is reported as NotFound rather than an API failure.
    """

    def __init__(
        self,
        http: HttpClient,
        resolver: ServiceIndexResolver,
        timeout: Optional[float] = Constants.README_TIMEOUT,
        max_size: int = Constants.README_MAX_BYTES,
        logger: Optional[logging.Logger] = None,
    ):
        self._http = http
        self._resolver = resolver
        self._timeout = timeout
        self._max_size = max_size
        self._logger = logger or logging.getLogger(__name__)

    async def get_readme(
        self,
        package_id: str,
        version: str,
        source: PackageSource,
        cancellation: Optional[CancellationToken] = None,
    ) -> Result[str]:
        base = await self._resolver.get_flat_container_url(source.index_url, source, cancellation)
        if not base.success:
            return base
        if not base.value:
            return Result.fail(AppError.not_found("Flat container not supported by this source", resource=README_RESOURCE))

        url = build_readme_url(base.value, package_id, version)
        if is_debug_enabled(self._logger):
            self._logger.debug(
                "Fetching package README",
                extra=extra_context(
                    event="http_request", component="readme", action="get_readme",
                    package=package_id, version=version, target=safe_url(url),
                ),
            )

        headers = filter_headers_for_url(source, url, accept=Constants.README_ACCEPT)
        with LinkedCancellation(cancellation, self._timeout) as token:
            result = await self._http.get(url, headers=headers, cancellation=token, response_type=RESPONSE_TEXT)

        if not result.success:
            error = result.error
            if error is not None and error.code is ErrorCode.API_ERROR and error.status_code == 404:
                return Result.fail(AppError.not_found("Package README not found", resource=README_RESOURCE))
            return result

        content = result.value if isinstance(result.value, str) else str(result.value)
        if len(content) > self._max_size:
            self._logger.warning(
                "README exceeds size limit",
                extra=extra_context(event="readme", component="readme", size=len(content), limit=self._max_size),
            )
            return Result.ok(truncate_readme(content, self._max_size))
        return Result.ok(content)
