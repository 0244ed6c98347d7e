"""Constants used in the project."""

from enum import Enum


class ProviderType(Enum):
    """Package feed providers with dedicated service index handling.

    Args:
        Enum (string): Provider tag as written in source configuration.
    """

    NUGET_ORG = "nuget.org"
    ARTIFACTORY = "artifactory"
    AZURE_ARTIFACTS = "azure-artifacts"
    GITHUB = "github"
    MYGET = "myget"
    CUSTOM = "custom"


class AuthType(Enum):
    """Authentication schemes a package source can carry.

    Args:
        Enum (string): Auth type as written in source configuration.
    """

    NONE = "none"
    BASIC = "basic"
    BEARER = "bearer"
    API_KEY = "api-key"


class ResourceTypes:  # pylint: disable=too-few-public-methods
    """Well-known service index resource type prefixes."""

    SEARCH_QUERY_SERVICE = "SearchQueryService"
    SEARCH_AUTOCOMPLETE_SERVICE = "SearchAutocompleteService"
    REGISTRATIONS_BASE_URL = "RegistrationsBaseUrl"
    PACKAGE_BASE_ADDRESS = "PackageBaseAddress"
    PACKAGE_PUBLISH = "PackagePublish"
    REPOSITORY_SIGNATURES = "RepositorySignatures"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    REGISTRY_URL_NUGET_V3 = "https://api.nuget.org/v3/index.json"
    DEFAULT_SOURCE_ID = "nuget.org"
    USER_AGENT = "nugetfeed/1.0"
    DEFAULT_ACCEPT = "application/json"
    README_ACCEPT = "text/plain, text/markdown, */*"
    DEFAULT_API_KEY_HEADER = "X-NuGet-ApiKey"
    DEFAULT_ICON_URL = "https://www.nuget.org/Content/gallery/img/default-package-icon.svg"
    LOG_FORMAT = "[%(levelname)s] %(message)s"

    # Timeouts in seconds
    REQUEST_TIMEOUT = 30.0
    SERVICE_INDEX_TIMEOUT = 5.0
    SEARCH_TIMEOUT = 30.0
    README_TIMEOUT = 60.0

    # Middleware
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 1.0
    RATE_LIMIT_INTERVAL_SEC = 0.1

    # Search defaults
    SEARCH_DEFAULT_SKIP = 0
    SEARCH_DEFAULT_TAKE = 20
    SEMVER_LEVEL = "2.0.0"

    README_MAX_BYTES = 500 * 1024
    README_TRUNCATION_MARKER = "\n\n_[README truncated]_"

    # Metadata cache
    METADATA_CACHE_SIZE = 200
    METADATA_CACHE_TTL_SEC = 300

    # Environment overrides
    ENV_PREFIX = "NUGETFEED_"
    ENV_TIMEOUT = "NUGETFEED_TIMEOUT"
    ENV_SEARCH_TIMEOUT = "NUGETFEED_SEARCH_TIMEOUT"
    ENV_RETRY_MAX = "NUGETFEED_RETRY_MAX"
    ENV_RATE_LIMIT_INTERVAL = "NUGETFEED_RATE_LIMIT_INTERVAL"
    ENV_LOG_LEVEL = "NUGETFEED_LOG_LEVEL"
