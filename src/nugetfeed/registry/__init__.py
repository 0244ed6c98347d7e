"""Feed access layer.

- headers.py: auth header construction and the cross-origin credential filter
- strategies.py: provider-specific service index resolution and the strategy registry
- service_index.py: cached service index resolution and endpoint accessors
- parsers.py: search and registration payload normalization
- search.py: single and multi-source search with deduplication
- metadata.py: registration index and version detail retrieval
- readme.py: README retrieval from the flat container
"""

from .headers import build_headers, filter_headers_for_url  # noqa: F401
from .metadata import MetadataFetcher  # noqa: F401
from .readme import ReadmeFetcher  # noqa: F401
from .search import SearchExecutor, deduplicate_packages  # noqa: F401
from .service_index import ServiceIndexResolver  # noqa: F401
from .strategies import (  # noqa: F401
    ResolutionContext,
    Strategy,
    StrategyRegistry,
    generate_candidate_urls,
)

__all__ = [
    "build_headers",
    "filter_headers_for_url",
    "MetadataFetcher",
    "ReadmeFetcher",
    "SearchExecutor",
    "deduplicate_packages",
    "ServiceIndexResolver",
    "ResolutionContext",
    "Strategy",
    "StrategyRegistry",
    "generate_candidate_urls",
]
