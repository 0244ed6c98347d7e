"""nugetfeed: async NuGet V3 feed client.

Service index discovery with provider-specific strategies, single and
multi-source search, paginated registration metadata, README retrieval,
and version / target framework ordering.
"""

from .common.cancellation import CancellationToken  # noqa: F401
from .common.result import AppError, ErrorCode, Result  # noqa: F401
from .config import ClientOptions  # noqa: F401
from .constants import AuthType, Constants, ProviderType  # noqa: F401
from .facade import NuGetClient  # noqa: F401
from .models import (  # noqa: F401
    PackageIndex,
    PackageSearchResult,
    PackageSource,
    PackageSourceAuth,
    PackageVersionDetails,
    SearchOptions,
)

__version__ = "1.0.0"

__all__ = [
    "CancellationToken",
    "AppError",
    "ErrorCode",
    "Result",
    "ClientOptions",
    "AuthType",
    "Constants",
    "ProviderType",
    "NuGetClient",
    "PackageIndex",
    "PackageSearchResult",
    "PackageSource",
    "PackageSourceAuth",
    "PackageVersionDetails",
    "SearchOptions",
]
