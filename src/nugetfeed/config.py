"""Client configuration: feed sources, timeouts and middleware settings."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, Callable, List, Mapping, Optional, TypeVar

from .constants import Constants
from .models import DEFAULT_SOURCE, PackageSource

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _default_sources() -> List[PackageSource]:
    return [DEFAULT_SOURCE]


def _env_value(environ: Mapping[str, str], name: str, cast: Callable[[str], T]) -> Optional[T]:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return None
    try:
        return cast(raw.strip())
    except ValueError:
        logger.warning("Ignoring invalid value for %s: %r", name, raw)
        return None


@dataclass
class ClientOptions:  # pylint: disable=too-many-instance-attributes
    """Settings for a ``NuGetClient``. Timeouts and intervals are in seconds."""

    sources: List[PackageSource] = field(default_factory=_default_sources)
    timeout: float = Constants.REQUEST_TIMEOUT
    service_index_timeout: float = Constants.SERVICE_INDEX_TIMEOUT
    search_timeout: float = Constants.SEARCH_TIMEOUT
    readme_timeout: float = Constants.README_TIMEOUT
    sem_ver_level: str = Constants.SEMVER_LEVEL
    retry_max_attempts: int = Constants.HTTP_RETRY_MAX
    retry_base_delay: float = Constants.HTTP_RETRY_BASE_DELAY_SEC
    rate_limit_interval: float = Constants.RATE_LIMIT_INTERVAL_SEC
    metadata_cache_size: int = Constants.METADATA_CACHE_SIZE
    metadata_cache_ttl: float = Constants.METADATA_CACHE_TTL_SEC
    log_level: Optional[str] = None

    @property
    def enabled_sources(self) -> List[PackageSource]:
        return [s for s in self.sources if s.enabled]

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ClientOptions":
        """Create options from host settings.

        Keys are camelCase (``sources``, ``timeout``, ``serviceIndexTimeout``,
        ``searchTimeout``, ``readmeTimeout``, ``semVerLevel``, ``retryMaxAttempts``,
        ``retryBaseDelay``, ``rateLimitInterval``, ``metadataCacheSize``,
        ``metadataCacheTtl``, ``logLevel``). Missing keys keep their defaults.

        Raises:
            ValueError: a source entry has no ``indexUrl``.
        """
        options = cls()
        raw_sources = data.get("sources")
        if isinstance(raw_sources, list):
            options.sources = [PackageSource.from_mapping(s) for s in raw_sources if isinstance(s, Mapping)]

        numeric = {
            "timeout": ("timeout", float),
            "serviceIndexTimeout": ("service_index_timeout", float),
            "searchTimeout": ("search_timeout", float),
            "readmeTimeout": ("readme_timeout", float),
            "retryMaxAttempts": ("retry_max_attempts", int),
            "retryBaseDelay": ("retry_base_delay", float),
            "rateLimitInterval": ("rate_limit_interval", float),
            "metadataCacheSize": ("metadata_cache_size", int),
            "metadataCacheTtl": ("metadata_cache_ttl", float),
        }
        for key, (attr, cast) in numeric.items():
            if data.get(key) is not None:
                setattr(options, attr, cast(data[key]))

        if data.get("semVerLevel"):
            options.sem_ver_level = str(data["semVerLevel"])
        if data.get("logLevel"):
            options.log_level = str(data["logLevel"])
        return options

    @classmethod
    def from_env(cls, base: Optional["ClientOptions"] = None,
                 environ: Optional[Mapping[str, str]] = None) -> "ClientOptions":
        """Apply ``NUGETFEED_*`` environment overrides on top of ``base`` (or the defaults).

        Invalid values are logged and ignored.
        """
        env = os.environ if environ is None else environ
        options = replace(base) if base is not None else cls()

        timeout = _env_value(env, Constants.ENV_TIMEOUT, float)
        if timeout is not None:
            options.timeout = timeout
        search_timeout = _env_value(env, Constants.ENV_SEARCH_TIMEOUT, float)
        if search_timeout is not None:
            options.search_timeout = search_timeout
        retry_max = _env_value(env, Constants.ENV_RETRY_MAX, int)
        if retry_max is not None:
            options.retry_max_attempts = retry_max
        interval = _env_value(env, Constants.ENV_RATE_LIMIT_INTERVAL, float)
        if interval is not None:
            options.rate_limit_interval = interval
        log_level = env.get(Constants.ENV_LOG_LEVEL)
        if log_level:
            options.log_level = log_level.strip().upper()
        return options
