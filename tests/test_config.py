"""Tests for configuration management and validation.

Validates GlobalConfig and SourceProfile behavior including:
- Environment variable loading precedence
- Pydantic validation rules
- Domain normalization
- Singleton cache behavior

Testing Philosophy:
    Configuration errors should fail-fast at startup, not during runtime.
    These tests ensure invalid configurations are caught immediately.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from cascade.profile import ApiProbeConfig, EmbeddedStateConfig, SourceProfile
from config.settings import GlobalConfig


class TestGlobalConfigValidation:
    """Test suite for GlobalConfig validation rules."""

    def test_default_values_are_sane(self, mock_config: GlobalConfig) -> None:
        """Verify the test configuration loads with usable transport values."""
        assert mock_config.request_timeout_ms >= 1000
        assert mock_config.page_size >= 1
        assert len(mock_config.user_agents) >= 1

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("reader.example.org", "reader.example.org"),
            ("https://reader.example.org/", "reader.example.org"),
            ("http://reader.example.org", "reader.example.org"),
            ("  reader.example.org/  ", "reader.example.org"),
        ],
    )
    def test_source_domain_normalization(
        self, raw: str, expected: str, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Verify scheme and trailing slash are stripped from the source domain."""
        from config.settings import get_config

        get_config.cache_clear()
        monkeypatch.setenv("SOURCE_DOMAIN", raw)

        assert get_config().source_domain == expected

        get_config.cache_clear()

    def test_source_domain_with_path_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from config.settings import get_config

        get_config.cache_clear()
        monkeypatch.setenv("SOURCE_DOMAIN", "https://reader.example.org/manga")

        with pytest.raises(ValidationError):
            get_config()

        get_config.cache_clear()

    def test_page_size_bounds(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Verify page_size enforces sensible bounds (1-200)."""
        from config.settings import get_config

        get_config.cache_clear()

        monkeypatch.setenv("PAGE_SIZE", "0")
        with pytest.raises(ValidationError) as exc_info:
            get_config()

        assert "page_size" in str(exc_info.value)

        get_config.cache_clear()

        monkeypatch.setenv("PAGE_SIZE", "500")
        with pytest.raises(ValidationError):
            get_config()

        get_config.cache_clear()

    def test_timeout_bounds(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from config.settings import get_config

        get_config.cache_clear()

        monkeypatch.setenv("REQUEST_TIMEOUT_MS", "10")
        with pytest.raises(ValidationError):
            get_config()

        get_config.cache_clear()

    def test_path_field_normalization(self, mock_config: GlobalConfig) -> None:
        """Verify string paths are converted to Path objects."""
        assert isinstance(mock_config.log_dir, Path)


class TestConfigSingletonBehavior:
    """Test suite for get_config() singleton caching."""

    def test_singleton_returns_same_instance(self, mock_config: GlobalConfig) -> None:
        """Verify get_config() returns cached instance within same scope."""
        from config.settings import get_config

        config1 = get_config()
        config2 = get_config()

        assert config1 is config2

    def test_cache_clear_forces_new_instance(
        self, mock_config: GlobalConfig, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Verify cache_clear() allows reconfiguration."""
        from config.settings import get_config

        config1 = get_config()

        get_config.cache_clear()
        monkeypatch.setenv("APP_NAME", "NewApp")

        config2 = get_config()

        assert config1 is not config2
        assert config2.app_name == "NewApp"

        get_config.cache_clear()


class TestEnvironmentVariableOverrides:
    """Test suite for environment variable precedence."""

    def test_env_var_overrides_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Verify environment variables override default values."""
        from config.settings import get_config

        get_config.cache_clear()

        monkeypatch.setenv("REQUEST_TIMEOUT_MS", "99999")

        config = get_config()
        assert config.request_timeout_ms == 99999

        get_config.cache_clear()

    def test_boolean_env_var_parsing(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Verify boolean environment variables are parsed correctly."""
        from config.settings import get_config

        test_cases = [("true", True), ("1", True), ("yes", True), ("false", False), ("0", False)]

        for env_value, expected in test_cases:
            get_config.cache_clear()
            monkeypatch.setenv("DEBUG", env_value)
            config = get_config()
            assert config.debug is expected, f"Failed for {env_value}"

        get_config.cache_clear()

    def test_user_agent_pool_from_json(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from config.settings import get_config

        get_config.cache_clear()
        monkeypatch.setenv("USER_AGENTS", '["AgentA/1.0", "AgentB/2.0"]')

        assert get_config().user_agents == ["AgentA/1.0", "AgentB/2.0"]

        get_config.cache_clear()


class TestSourceProfile:
    """Test suite for strategy configuration value objects."""

    def test_profile_from_config(self, mock_config: GlobalConfig) -> None:
        profile = SourceProfile.from_config(mock_config)

        assert profile.domain == "test.example.com"
        assert profile.page_size == 10
        assert profile.headers["Origin"] == "https://test.example.com"
        assert profile.headers["Accept-Language"] == mock_config.accept_language

    def test_page_headers_ask_for_html(self, mock_config: GlobalConfig) -> None:
        profile = SourceProfile.from_config(mock_config)

        assert profile.page_headers["Accept"].startswith("text/html")
        assert profile.page_headers["Referer"] == profile.headers["Referer"]
        assert profile.headers["Accept"].startswith("application/json")

    def test_overrides_replace_sections(self, mock_config: GlobalConfig) -> None:
        """Verify a new source is supported by configuration alone."""
        api = ApiProbeConfig(catalog_templates=("https://{domain}/v2/list?p={page}",))
        profile = SourceProfile.from_config(mock_config, api=api)

        assert profile.api.catalog_templates == ("https://{domain}/v2/list?p={page}",)
        assert profile.embedded == EmbeddedStateConfig()

    def test_profile_is_frozen(self, mock_config: GlobalConfig) -> None:
        profile = SourceProfile.from_config(mock_config)
        with pytest.raises(ValidationError):
            profile.domain = "other.example.com"

    def test_pattern_requires_single_group(self) -> None:
        with pytest.raises(ValidationError):
            EmbeddedStateConfig(patterns=(r"window\.state = \{.*\}",))
