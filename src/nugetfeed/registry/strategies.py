"""Provider strategies for service index resolution.

A strategy is an async callable taking a ``ResolutionContext`` and returning
``Result[ServiceIndex]``. Each one owns its header construction and any
provider quirks (URL probing, error rewording). ``StrategyRegistry`` maps a
provider tag to its strategy; unknown tags resolve to the default strategy.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..common.cancellation import CancelReason, CancellationToken
from ..common.http_client import HttpClient
from ..common.logging_utils import extra_context, is_debug_enabled, safe_url
from ..common.result import AppError, ErrorCode, Result
from ..constants import AuthType, Constants, ProviderType
from ..models import PackageSource, ServiceIndex
from .headers import AUTHORIZATION, api_key_header_name, basic_credentials, build_headers

logger = logging.getLogger(__name__)

INDEX_SUFFIX = "/index.json"
V3_SEGMENT = "/v3"
AZURE_USER_AGENT = f"{Constants.USER_AGENT} (Azure-Artifacts)"
AZURE_AUTH_FAILED = "Azure Artifacts authentication failed. Ensure PAT is configured in nuget.config"


@dataclass(frozen=True)
class ResolutionContext:
    """Everything a strategy needs for one resolution."""

    index_url: str
    source: PackageSource
    http: HttpClient
    logger: logging.Logger = field(default=logger)
    cancellation: Optional[CancellationToken] = None


Strategy = Callable[[ResolutionContext], Awaitable[Result[ServiceIndex]]]


def _base_headers(user_agent: str = Constants.USER_AGENT) -> Dict[str, str]:
    return {"Accept": Constants.DEFAULT_ACCEPT, "User-Agent": user_agent}


def _is_auth_failure(error: Optional[AppError]) -> bool:
    if error is None:
        return False
    if error.code is ErrorCode.AUTH_REQUIRED:
        return True
    return error.code is ErrorCode.API_ERROR and error.status_code in (401, 403)


def _to_service_index(payload: Any, url: str, log: logging.Logger) -> Result[ServiceIndex]:
    try:
        return Result.ok(ServiceIndex.from_json(payload))
    except ValueError as exc:
        log.warning("Malformed service index from %s: %s", safe_url(url), exc)
        return Result.fail(AppError.parse(f"Invalid service index: {exc}", cause=exc))


async def _fetch_index(context: ResolutionContext, url: str, headers: Dict[str, str]) -> Result[ServiceIndex]:
    token = context.cancellation
    if token is not None and token.cancelled:
        if token.reason is CancelReason.TIMEOUT:
            return Result.fail(AppError.timeout("Service index resolution timed out"))
        return Result.fail(AppError.cancelled("Request was cancelled"))

    result = await context.http.get(url, headers=headers, cancellation=context.cancellation)
    if not result.success:
        return result
    return _to_service_index(result.value, url, context.logger)


def _log_attempt(context: ResolutionContext, provider: str, url: str) -> None:
    if is_debug_enabled(context.logger):
        context.logger.debug(
            "Fetching service index",
            extra=extra_context(
                event="http_request", component="strategy", action="resolve",
                target=safe_url(url), provider=provider, source=context.source.id,
            ),
        )


async def default_strategy(context: ResolutionContext) -> Result[ServiceIndex]:
    """Standard V3 feed: one request, auth from the source's auth type."""
    _log_attempt(context, ProviderType.CUSTOM.value, context.index_url)
    return await _fetch_index(context, context.index_url, build_headers(context.source))


async def nuget_org_strategy(context: ResolutionContext) -> Result[ServiceIndex]:
    """Public feed: no credentials, and the index must list at least one resource."""
    _log_attempt(context, ProviderType.NUGET_ORG.value, context.index_url)
    result = await _fetch_index(context, context.index_url, _base_headers())
    if not result.success:
        context.logger.warning("Failed to fetch service index: %s", result.error.message)  # type: ignore[union-attr]
        return result
    if not result.value.resources:  # type: ignore[union-attr]
        return Result.fail(AppError.api("Invalid service index: resources array missing or empty", status_code=0))
    return result


def _azure_headers(source: PackageSource) -> Dict[str, str]:
    headers = _base_headers(AZURE_USER_AGENT)
    auth = source.auth
    if auth is None or not auth.password:
        return headers
    if auth.type is AuthType.BEARER:
        headers[AUTHORIZATION] = f"Bearer {auth.password}"
    elif auth.type is AuthType.BASIC and auth.username:
        headers[AUTHORIZATION] = basic_credentials(auth.username, auth.password)
    return headers


async def azure_artifacts_strategy(context: ResolutionContext) -> Result[ServiceIndex]:
    """Azure Artifacts: bearer PAT primary, basic fallback; 401 reworded with a configuration hint."""
    _log_attempt(context, ProviderType.AZURE_ARTIFACTS.value, context.index_url)
    result = await _fetch_index(context, context.index_url, _azure_headers(context.source))
    error = result.error
    if error is not None and error.status_code == 401 and _is_auth_failure(error):
        return Result.fail(AppError(
            code=error.code,
            message=AZURE_AUTH_FAILED,
            status_code=error.status_code,
            hint=error.hint,
        ))
    return result


def _github_headers(source: PackageSource) -> Dict[str, str]:
    headers = _base_headers()
    auth = source.auth
    if auth is None or not auth.password:
        return headers
    if auth.type is AuthType.API_KEY:
        headers[api_key_header_name(auth)] = auth.password
    else:
        headers[AUTHORIZATION] = f"token {auth.password}"
    return headers


async def github_strategy(context: ResolutionContext) -> Result[ServiceIndex]:
    """GitHub Packages: api-key header primary, ``token`` Authorization fallback."""
    _log_attempt(context, ProviderType.GITHUB.value, context.index_url)
    return await _fetch_index(context, context.index_url, _github_headers(context.source))


async def myget_strategy(context: ResolutionContext) -> Result[ServiceIndex]:
    """MyGet: standard V3 feed; api-key, basic or bearer depending on the auth type."""
    _log_attempt(context, ProviderType.MYGET.value, context.index_url)
    return await _fetch_index(context, context.index_url, build_headers(context.source))


def generate_candidate_urls(index_url: str) -> List[str]:
    """Service index URLs to probe for an Artifactory feed, in order.

    ``https://h/api/nuget/repo/index.json`` yields the original,
    ``.../repo/v3/index.json`` and ``.../repo/v3``; ``https://h/api/nuget/repo``
    yields the original and ``.../repo/v3/index.json``.
    """
    candidates = [index_url]

    def add(url: str) -> None:
        if url not in candidates:
            candidates.append(url)

    if index_url.endswith(INDEX_SUFFIX):
        stem = index_url[: -len(INDEX_SUFFIX)]
        add(f"{stem}{V3_SEGMENT}{INDEX_SUFFIX}")
        add(f"{stem}{V3_SEGMENT}")
    elif V3_SEGMENT not in index_url:
        add(f"{index_url.rstrip('/')}{V3_SEGMENT}{INDEX_SUFFIX}")
    return candidates


async def artifactory_strategy(context: ResolutionContext) -> Result[ServiceIndex]:
    """Artifactory: probe candidate URLs until one succeeds.

    Stops at the first success, or immediately on 401/403, cancellation
    or an expired deadline. When every
    candidate fails the last error is returned.
    """
    headers = build_headers(context.source)
    last: Optional[Result[ServiceIndex]] = None

    for url in generate_candidate_urls(context.index_url):
        _log_attempt(context, ProviderType.ARTIFACTORY.value, url)
        result = await _fetch_index(context, url, headers)
        if result.success:
            context.logger.info("Resolved Artifactory service index via %s", safe_url(url))
            return result

        last = result
        error = result.error
        if _is_auth_failure(error) or error.code in (ErrorCode.CANCELLED, ErrorCode.TIMEOUT):  # type: ignore[union-attr]
            context.logger.warning(
                "Service index probe stopped",
                extra=extra_context(
                    event="decision", component="strategy", action="resolve",
                    outcome=error.code.value, status_code=error.status_code,  # type: ignore[union-attr]
                    target=safe_url(url), provider=ProviderType.ARTIFACTORY.value,
                ),
            )
            break
        if is_debug_enabled(context.logger):
            context.logger.debug("Probe of %s failed: %s", safe_url(url), error.message)  # type: ignore[union-attr]

    if last is None:
        return Result.fail(AppError.api("All Artifactory URL patterns failed", status_code=0))
    return last


class StrategyRegistry:
    """Provider tag to strategy mapping with a default fallback.

    Example::

        registry = StrategyRegistry()
        registry.register("proget", my_proget_strategy)
        strategy = registry.get_strategy(source.provider)
    """

    def __init__(self, strategies: Optional[Dict[str, Strategy]] = None):
        self._strategies: Dict[str, Strategy] = {
            ProviderType.NUGET_ORG.value: nuget_org_strategy,
            ProviderType.ARTIFACTORY.value: artifactory_strategy,
            ProviderType.AZURE_ARTIFACTS.value: azure_artifacts_strategy,
            ProviderType.GITHUB.value: github_strategy,
            ProviderType.MYGET.value: myget_strategy,
            ProviderType.CUSTOM.value: default_strategy,
        }
        for provider, strategy in (strategies or {}).items():
            self.register(provider, strategy)

    @staticmethod
    def _tag(provider) -> str:
        return provider.value if isinstance(provider, ProviderType) else str(provider)

    def register(self, provider, strategy: Strategy) -> None:
        """Add or replace the strategy for ``provider`` (a tag string or ``ProviderType``)."""
        self._strategies[self._tag(provider)] = strategy

    def get_strategy(self, provider) -> Strategy:
        if provider is None:
            return self._strategies[ProviderType.CUSTOM.value]
        return self._strategies.get(self._tag(provider), self._strategies[ProviderType.CUSTOM.value])

    def has_strategy(self, provider) -> bool:
        return self._tag(provider) in self._strategies

    def registered_providers(self) -> List[str]:
        return list(self._strategies)
