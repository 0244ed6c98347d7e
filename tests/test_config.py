"""Tests for ClientOptions."""

import pytest

from nugetfeed.config import ClientOptions
from nugetfeed.constants import AuthType, Constants, ProviderType
from nugetfeed.models import DEFAULT_SOURCE


class TestClientOptionsDefaults:
    """Tests for default settings."""

    def test_defaults(self):
        """Test the default client options."""
        options = ClientOptions()
        assert options.sources == [DEFAULT_SOURCE]
        assert options.timeout == Constants.REQUEST_TIMEOUT
        assert options.service_index_timeout == Constants.SERVICE_INDEX_TIMEOUT
        assert options.retry_max_attempts == Constants.HTTP_RETRY_MAX
        assert options.log_level is None

    def test_default_sources_not_shared(self):
        """Test that each options instance gets its own source list."""
        first, second = ClientOptions(), ClientOptions()
        first.sources.append(DEFAULT_SOURCE)
        assert len(second.sources) == 1


class TestClientOptionsFromMapping:
    """Tests for ClientOptions.from_mapping."""

    def test_full_mapping(self):
        """Test loading every supported key from a mapping."""
        options = ClientOptions.from_mapping({
            "sources": [
                {"id": "corp", "name": "Corp", "indexUrl": "https://corp.example.com/v3/index.json",
                 "provider": "artifactory", "auth": {"type": "basic", "username": "u", "password": "p"}},
                {"id": "off", "indexUrl": "https://off.example.com/v3/index.json", "enabled": False},
            ],
            "timeout": 10,
            "searchTimeout": "15",
            "retryMaxAttempts": 5,
            "rateLimitInterval": 0.25,
            "metadataCacheSize": 50,
            "semVerLevel": "1.0.0",
            "logLevel": "DEBUG",
        })

        assert [s.id for s in options.sources] == ["corp", "off"]
        assert [s.id for s in options.enabled_sources] == ["corp"]
        corp = options.sources[0]
        assert corp.provider_type is ProviderType.ARTIFACTORY
        assert corp.auth.type is AuthType.BASIC
        assert options.timeout == 10.0
        assert options.search_timeout == 15.0
        assert options.retry_max_attempts == 5
        assert options.rate_limit_interval == 0.25
        assert options.metadata_cache_size == 50
        assert options.sem_ver_level == "1.0.0"
        assert options.log_level == "DEBUG"

    def test_missing_keys_keep_defaults(self):
        """Test that absent keys keep their defaults."""
        options = ClientOptions.from_mapping({})
        assert options.sources == [DEFAULT_SOURCE]
        assert options.readme_timeout == Constants.README_TIMEOUT

    def test_source_without_index_url(self):
        """Test that a source without indexUrl is rejected."""
        with pytest.raises(ValueError):
            ClientOptions.from_mapping({"sources": [{"id": "broken"}]})

    def test_string_enabled_flag_disables_source(self):
        """Test that a source configured with enabled "false" is excluded."""
        options = ClientOptions.from_mapping({"sources": [
            {"id": "on", "indexUrl": "https://on.example.com/v3/index.json", "enabled": "true"},
            {"id": "off", "indexUrl": "https://off.example.com/v3/index.json", "enabled": "false"},
        ]})
        assert [s.id for s in options.enabled_sources] == ["on"]


class TestClientOptionsFromEnv:
    """Tests for ClientOptions.from_env."""

    def test_overrides(self):
        """Test that environment variables override option values."""
        options = ClientOptions.from_env(environ={
            "NUGETFEED_TIMEOUT": "12.5",
            "NUGETFEED_SEARCH_TIMEOUT": "20",
            "NUGETFEED_RETRY_MAX": "1",
            "NUGETFEED_RATE_LIMIT_INTERVAL": "0",
            "NUGETFEED_LOG_LEVEL": "info",
        })

        assert options.timeout == 12.5
        assert options.search_timeout == 20.0
        assert options.retry_max_attempts == 1
        assert options.rate_limit_interval == 0.0
        assert options.log_level == "INFO"

    def test_invalid_values_ignored(self):
        """Test that unparsable environment values are ignored."""
        options = ClientOptions.from_env(environ={"NUGETFEED_TIMEOUT": "soon", "NUGETFEED_RETRY_MAX": "1.5"})
        assert options.timeout == Constants.REQUEST_TIMEOUT
        assert options.retry_max_attempts == Constants.HTTP_RETRY_MAX

    def test_reads_process_environment(self, monkeypatch):
        """Test that os.environ is read when no mapping is given."""
        monkeypatch.setenv("NUGETFEED_RETRY_MAX", "7")
        monkeypatch.delenv("NUGETFEED_TIMEOUT", raising=False)

        options = ClientOptions.from_env()

        assert options.retry_max_attempts == 7
        assert options.timeout == Constants.REQUEST_TIMEOUT

    def test_layers_over_base_without_mutating_it(self):
        """Test that environment overrides copy the base options."""
        base = ClientOptions(timeout=3.0, sem_ver_level="1.0.0")
        options = ClientOptions.from_env(base, environ={"NUGETFEED_SEARCH_TIMEOUT": "4"})

        assert options.timeout == 3.0
        assert options.sem_ver_level == "1.0.0"
        assert options.search_timeout == 4.0
        assert base.search_timeout == Constants.SEARCH_TIMEOUT
