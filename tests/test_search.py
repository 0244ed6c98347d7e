"""Tests for search URL building, response parsing and multi-source search."""

import asyncio

from nugetfeed.common.cancellation import CancelReason, CancellationToken
from nugetfeed.common.result import ErrorCode
from nugetfeed.constants import AuthType, Constants
from nugetfeed.models import PackageSearchResult, PackageSource, PackageSourceAuth, SearchOptions
from nugetfeed.registry.parsers import parse_search_response
from nugetfeed.registry.search import SearchExecutor, build_search_url, deduplicate_packages
from nugetfeed.registry.service_index import ServiceIndexResolver

from fakes import INDEX_URL, SEARCH_URL, FakeHttpClient, api_error, service_index

OTHER_INDEX = "https://other.example.com/v3/index.json"
OTHER_SEARCH = "https://other.example.com/query"


def _source(source_id="primary", index_url=INDEX_URL, auth=None):
    return PackageSource(id=source_id, name=source_id, index_url=index_url, auth=auth)


def _hit(package_id, version, **extra):
    return dict({"id": package_id, "version": version}, **extra)


def _executor(http):
    return SearchExecutor(http, ServiceIndexResolver(http))


class TestBuildSearchUrl:
    """Tests for build_search_url."""

    def test_defaults(self):
        """Test the default search URL."""
        assert build_search_url(SEARCH_URL, SearchOptions()) == (
            "https://feed.example.com/query?q=&skip=0&take=20&prerelease=false&semVerLevel=2.0.0"
        )

    def test_all_options(self):
        """Test a search URL with every option set."""
        options = SearchOptions(query="json net", prerelease=True, skip=10, take=5, sem_ver_level="1.0.0")
        assert build_search_url(SEARCH_URL, options) == (
            "https://feed.example.com/query?q=json+net&skip=10&take=5&prerelease=true&semVerLevel=1.0.0"
        )

    def test_existing_query_string(self):
        """Test appending to a base URL that already has a query."""
        url = build_search_url("https://feed.example.com/query?feed=main", SearchOptions(query="x"))
        assert url.startswith("https://feed.example.com/query?feed=main&q=x&")


class TestParseSearchResponse:
    """Tests for parse_search_response."""

    def test_normalizes_fields(self):
        """Test normalization of search hit fields."""
        payload = {"totalHits": 1, "data": [_hit(
            "Newtonsoft.Json", "13.0.3",
            description="Json.NET", authors="James Newton-King, Contributor",
            totalDownloads=1000, verified=True, tags=["json", "serialization"],
        )]}

        (result,) = parse_search_response(payload)

        assert result.authors == ["James Newton-King", "Contributor"]
        assert result.download_count == 1000
        assert result.verified is True
        assert result.tags == ["json", "serialization"]
        assert result.icon_url == Constants.DEFAULT_ICON_URL

    def test_defaults_for_missing_fields(self):
        """Test defaults for missing hit fields."""
        (result,) = parse_search_response({"data": [_hit("A", "1.0.0", authors=["x", 3, " "])]})
        assert result.description == ""
        assert result.authors == ["x"]
        assert result.download_count == 0
        assert result.verified is False
        assert result.tags == []

    def test_bare_list_and_bad_shapes(self):
        """Test bare-list payloads and unusable shapes."""
        assert [r.id for r in parse_search_response([_hit("A", "1.0.0")])] == ["A"]
        assert parse_search_response({"data": "nope"}) == []
        assert parse_search_response(None) == []
        assert parse_search_response({"data": [{"id": "A"}, "junk"]}) == []


class TestDeduplicate:
    """Tests for deduplicate_packages."""

    def test_keeps_highest_version_case_insensitive(self):
        """Test that duplicates keep the highest version regardless of id case."""
        packages = [
            PackageSearchResult(id="Serilog", version="2.0.0"),
            PackageSearchResult(id="Polly", version="7.0.0"),
            PackageSearchResult(id="serilog", version="3.1.0"),
        ]

        merged = deduplicate_packages(packages)

        assert [(p.id, p.version) for p in merged] == [("serilog", "3.1.0"), ("Polly", "7.0.0")]

    def test_equal_versions_keep_first(self):
        """Test that equal versions keep the first hit."""
        first = PackageSearchResult(id="A", version="1.0.0", description="first")
        second = PackageSearchResult(id="a", version="1.0.0", description="second")
        assert deduplicate_packages([first, second]) == [first]

    def test_stable_beats_prerelease(self):
        """Test that a stable release outranks its prerelease."""
        merged = deduplicate_packages([
            PackageSearchResult(id="A", version="2.0.0-beta"),
            PackageSearchResult(id="A", version="2.0.0"),
        ])
        assert merged[0].version == "2.0.0"


class TestSearchExecutor:
    """Tests for single and multi-source search."""

    def test_single_source(self):
        """Test searching a single source."""
        http = FakeHttpClient({INDEX_URL: service_index(), SEARCH_URL: {"data": [_hit("A", "1.0.0")]}})

        result = asyncio.run(_executor(http).search(_source(), SearchOptions(query="a")))

        assert [p.id for p in result.value] == ["A"]
        assert http.calls[1]["url"].startswith(SEARCH_URL + "?q=a&")

    def test_propagates_index_failure(self):
        """Test that a service index failure is returned."""
        http = FakeHttpClient({INDEX_URL: api_error(500)})
        result = asyncio.run(_executor(http).search(_source()))
        assert result.error.status_code == 500

    def test_pre_cancelled_by_timeout(self):
        """Test that an already expired search reports a timeout."""
        http = FakeHttpClient({INDEX_URL: service_index(), SEARCH_URL: {"data": []}})
        resolver = ServiceIndexResolver(http)
        executor = SearchExecutor(http, resolver)
        token = CancellationToken()

        async def run():
            await resolver.resolve(INDEX_URL)
            token.cancel(CancelReason.TIMEOUT)
            return await executor.search(_source(), cancellation=token)

        result = asyncio.run(run())

        assert result.error.code is ErrorCode.TIMEOUT
        assert http.calls_to(SEARCH_URL) == []

    def test_multiple_sources_merge_and_dedup(self):
        """Test merging and deduplicating results from several sources."""
        http = FakeHttpClient({
            INDEX_URL: service_index(),
            OTHER_INDEX: service_index(search=OTHER_SEARCH),
            SEARCH_URL: {"data": [_hit("Serilog", "2.0.0"), _hit("Polly", "7.0.0")]},
            OTHER_SEARCH: {"data": [_hit("serilog", "3.0.0")]},
        })
        sources = [_source(), _source("other", OTHER_INDEX)]

        result = asyncio.run(_executor(http).search_multiple(sources, SearchOptions(query="s")))

        assert [(p.id, p.version) for p in result.value] == [("serilog", "3.0.0"), ("Polly", "7.0.0")]

    def test_partial_failure_returns_successful_results(self):
        """Test that results from healthy sources survive a failing one."""
        http = FakeHttpClient({
            INDEX_URL: service_index(),
            OTHER_INDEX: api_error(503),
            SEARCH_URL: {"data": [_hit("A", "1.0.0")]},
        })

        result = asyncio.run(_executor(http).search_multiple([_source(), _source("other", OTHER_INDEX)]))

        assert result.success
        assert [p.id for p in result.value] == ["A"]

    def test_all_sources_failing_returns_first_error(self):
        """Test that the first error is returned when every source fails."""
        http = FakeHttpClient({INDEX_URL: api_error(500), OTHER_INDEX: api_error(503)})

        result = asyncio.run(_executor(http).search_multiple([_source(), _source("other", OTHER_INDEX)]))

        assert result.error.status_code == 500

    def test_empty_results_are_success(self):
        """Test that empty results are a success."""
        http = FakeHttpClient({INDEX_URL: service_index(), SEARCH_URL: {"data": []}})
        result = asyncio.run(_executor(http).search_multiple([_source()]))
        assert result.success
        assert result.value == []

    def test_cross_origin_search_drops_credentials(self):
        """Test that a search service on another host gets no credentials."""
        cdn_search = "https://search.cdn.example.net/query"
        http = FakeHttpClient({INDEX_URL: service_index(search=cdn_search), cdn_search: {"data": []}})
        source = _source(auth=PackageSourceAuth(AuthType.BEARER, password="tok"))

        asyncio.run(_executor(http).search(source))

        assert http.calls[0]["headers"]["Authorization"] == "Bearer tok"
        assert "Authorization" not in http.calls_to(cdn_search)[0]["headers"]
