"""Tests for the NuGetClient facade."""

import asyncio
from unittest.mock import patch

from nugetfeed import ClientOptions, NuGetClient, PackageSource, SearchOptions
from nugetfeed.common.http_client import RateLimitMiddleware, RetryMiddleware
from nugetfeed.common.result import ErrorCode

from fakes import INDEX_URL, REGISTRATION_URL, SEARCH_URL, FakeHttpClient, service_index

OTHER_INDEX = "https://other.example.com/v3/index.json"
OTHER_SEARCH = "https://other.example.com/query"
OTHER_REGISTRATION = "https://other.example.com/registration/"

PRIMARY = PackageSource(id="primary", name="Primary", index_url=INDEX_URL)
OTHER = PackageSource(id="other", name="Other", index_url=OTHER_INDEX)
DISABLED = PackageSource(id="disabled", name="Disabled", index_url="https://off.example.com/v3/index.json", enabled=False)


def _routes():
    return {
        INDEX_URL: service_index(),
        OTHER_INDEX: service_index(search=OTHER_SEARCH, registration=OTHER_REGISTRATION, flat=None),
        SEARCH_URL: {"data": [{"id": "Foo", "version": "1.0.0"}]},
        OTHER_SEARCH: {"data": [{"id": "foo", "version": "2.0.0"}, {"id": "Bar", "version": "1.0.0"}]},
        REGISTRATION_URL + "foo/index.json": {"items": [{"items": [
            {"@id": REGISTRATION_URL + "foo/1.0.0.json", "catalogEntry": {"version": "1.0.0"}},
        ]}]},
    }


def _client(sources=(PRIMARY, OTHER, DISABLED), **kwargs):
    http = FakeHttpClient(_routes())
    client = NuGetClient(ClientOptions(sources=list(sources), **kwargs), transport=http, middleware=[])
    return client, http


class TestSearch:
    """Tests for NuGetClient.search_packages."""

    def test_all_enabled_sources(self):
        """Test that search covers every enabled source and skips disabled ones."""
        client, http = _client()

        result = asyncio.run(client.search_packages(SearchOptions(query="foo")))

        assert [(p.id, p.version) for p in result.value] == [("foo", "2.0.0"), ("Bar", "1.0.0")]
        assert not any("off.example.com" in url for url in http.urls())

    def test_explicit_all(self):
        """Test that source id all searches every enabled source."""
        client, _ = _client()
        result = asyncio.run(client.search_packages(source_id="all"))
        assert len(result.value) == 2

    def test_single_source(self):
        """Test that a source id limits search to that source."""
        client, http = _client()

        result = asyncio.run(client.search_packages(source_id="primary"))

        assert [p.id for p in result.value] == ["Foo"]
        assert http.calls_to(OTHER_SEARCH) == []

    def test_unknown_and_disabled_sources(self):
        """Test that unknown and disabled source ids are reported."""
        client, _ = _client()
        for source_id in ("missing", "disabled"):
            result = asyncio.run(client.search_packages(source_id=source_id))
            assert result.error.code is ErrorCode.API_ERROR
            assert result.error.message == f"Source '{source_id}' not found or disabled"

    def test_no_enabled_sources(self):
        """Test the error when every source is disabled."""
        client, _ = _client(sources=(DISABLED,))
        result = asyncio.run(client.search_packages())
        assert result.error.message == "No enabled package sources configured"

    def test_sem_ver_level_from_options(self):
        """Test that the configured semVerLevel is sent."""
        client, http = _client(sem_ver_level="1.0.0")

        asyncio.run(client.search_packages(source_id="primary"))

        assert http.calls_to(SEARCH_URL)[0]["url"].endswith("semVerLevel=1.0.0")

    def test_explicit_sem_ver_level_wins(self):
        """Test that a per-call semVerLevel overrides the configured one."""
        client, http = _client(sem_ver_level="1.0.0")

        asyncio.run(client.search_packages(SearchOptions(sem_ver_level="2.0.0"), source_id="primary"))

        assert http.calls_to(SEARCH_URL)[0]["url"].endswith("semVerLevel=2.0.0")


class TestMetadataCaching:
    """Tests for cached metadata operations."""

    def test_package_index_is_cached(self):
        """Test that package indexes are cached case-insensitively."""
        client, http = _client()

        async def run():
            first = await client.get_package_index("Foo")
            second = await client.get_package_index("FOO")
            return first, second

        first, second = asyncio.run(run())

        assert second.value is first.value
        assert len(http.calls_to(REGISTRATION_URL + "foo/index.json")) == 1

    def test_failures_are_not_cached(self):
        """Test that failed lookups are retried on the next call."""
        client, http = _client()

        async def run():
            await client.get_package_version("Foo", "9.9.9")
            return await client.get_package_version("Foo", "9.9.9")

        result = asyncio.run(run())

        assert result.error.code is ErrorCode.NOT_FOUND
        assert len(http.calls_to(REGISTRATION_URL + "foo/9.9.9.json")) == 2

    def test_invalidate_source(self):
        """Test that invalidating a source refetches its index and metadata."""
        client, http = _client()

        async def run():
            await client.get_package_index("Foo", source_id="primary")
            client.invalidate_source("primary")
            await client.get_package_index("Foo", source_id="primary")

        asyncio.run(run())

        assert len(http.calls_to(INDEX_URL)) == 2
        assert len(http.calls_to(REGISTRATION_URL + "foo/index.json")) == 2

    def test_cache_disabled(self):
        """Test that metadata caching can be turned off."""
        http = FakeHttpClient(_routes())
        client = NuGetClient(ClientOptions(sources=[PRIMARY]), transport=http, middleware=[], cache_metadata=False)

        async def run():
            await client.get_package_index("Foo")
            await client.get_package_index("Foo")

        asyncio.run(run())

        assert client.metadata_cache is None
        assert len(http.calls_to(REGISTRATION_URL + "foo/index.json")) == 2

    def test_readme_without_flat_container(self):
        """Test README lookup on a source without a flat container."""
        client, _ = _client()
        result = asyncio.run(client.get_package_readme("Foo", "1.0.0", source_id="other"))
        assert result.error.code is ErrorCode.NOT_FOUND


class TestLifecycle:
    """Tests for construction, start and close."""

    def test_default_stack_built_from_options(self):
        """Test that the default transport and middleware follow the options."""
        options = ClientOptions(timeout=12.0, retry_max_attempts=5, rate_limit_interval=0.5)
        with patch("nugetfeed.facade.AiohttpTransport") as transport_cls:
            client = NuGetClient(options)

        assert transport_cls.call_args.kwargs["timeout"] == 12.0
        retry, limiter = client._http.middleware
        assert isinstance(retry, RetryMiddleware)
        assert retry.max_attempts == 5
        assert isinstance(limiter, RateLimitMiddleware)
        assert limiter.min_interval == 0.5

    def test_log_level_configures_package_logger(self):
        """Test that log_level configures package logging."""
        with patch("nugetfeed.facade.configure_logging") as configure:
            NuGetClient(ClientOptions(sources=[PRIMARY], log_level="DEBUG"), transport=FakeHttpClient(), middleware=[])
        configure.assert_called_once_with("DEBUG")

    def test_context_manager(self):
        """Test that async with starts and stops the transport."""
        client, http = _client()

        async def run():
            async with client as entered:
                assert entered is client

        asyncio.run(run())

        assert (http.started, http.stopped) == (1, 1)

    def test_clear_caches(self):
        """Test that clear_caches empties every cache."""
        client, http = _client()

        async def run():
            await client.get_package_index("Foo")
            client.clear_caches()
            await client.get_package_index("Foo")

        asyncio.run(run())

        assert len(http.calls_to(INDEX_URL)) == 2
        assert len(client.metadata_cache) == 1
