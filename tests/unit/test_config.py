"""Unit tests for configuration loading and validation."""

import pytest
from pydantic import ValidationError

from perplexity_mcp.config import ServerConfig, load_config
from perplexity_mcp.core.errors import ConfigError

BASE_ENV = {"PERPLEXITY_API_KEY": "pplx-123"}


class TestServerConfig:
    """Tests for ServerConfig validation."""

    def test_defaults(self):
        """Only the upstream key is required; everything else has a default."""
        config = ServerConfig(upstream_api_key="k")

        assert config.port == 8080
        assert config.bind_address == "0.0.0.0"
        assert config.allowed_origins == ("*",)
        assert config.shared_secret is None
        assert config.auth_enabled is False
        assert config.upstream_timeout == 300.0

    def test_frozen(self):
        """Config can't be changed after construction."""
        config = ServerConfig(upstream_api_key="k")

        with pytest.raises(ValidationError):
            config.port = 9000

    def test_unknown_fields_rejected(self):
        """Typos in field names are errors, not silently ignored."""
        with pytest.raises(ValidationError):
            ServerConfig(upstream_api_key="k", prot=1)

    def test_blank_upstream_key_rejected(self):
        """A whitespace-only upstream key is rejected."""
        with pytest.raises(ValidationError):
            ServerConfig(upstream_api_key="   ")

    @pytest.mark.parametrize("port", [0, -1, 65536])
    def test_port_range(self, port):
        """Ports outside 1-65535 are rejected."""
        with pytest.raises(ValidationError):
            ServerConfig(upstream_api_key="k", port=port)

    def test_origins_from_comma_string(self):
        """A comma-separated string is split and trimmed."""
        config = ServerConfig(
            upstream_api_key="k", allowed_origins=" https://a.com , https://b.com,,"
        )

        assert config.allowed_origins == ("https://a.com", "https://b.com")

    def test_empty_origins_fall_back_to_wildcard(self):
        """An origin list with no entries means '*'."""
        config = ServerConfig(upstream_api_key="k", allowed_origins=" , ")

        assert config.allowed_origins == ("*",)

    def test_empty_secret_disables_auth(self):
        """An empty shared secret turns access control off."""
        config = ServerConfig(upstream_api_key="k", shared_secret="")

        assert config.shared_secret is None
        assert config.auth_enabled is False


class TestLoadConfig:
    """Tests for load_config()."""

    def test_missing_upstream_key(self):
        """PERPLEXITY_API_KEY is required."""
        with pytest.raises(ConfigError) as exc_info:
            load_config({})

        assert "PERPLEXITY_API_KEY" in exc_info.value.message

    def test_empty_upstream_key_counts_as_missing(self):
        """An empty PERPLEXITY_API_KEY is treated as unset."""
        with pytest.raises(ConfigError):
            load_config({"PERPLEXITY_API_KEY": ""})

    def test_minimal_environment(self):
        """Only PERPLEXITY_API_KEY set gives the defaults."""
        config = load_config(BASE_ENV)

        assert config.upstream_api_key == "pplx-123"
        assert config.port == 8080
        assert config.auth_enabled is False

    def test_full_environment(self):
        """Every supported variable is read."""
        config = load_config({
            **BASE_ENV,
            "MCP_SERVER_API_KEY": "s3cret",
            "PORT": "9090",
            "BIND_ADDRESS": "127.0.0.1",
            "ALLOWED_ORIGINS": "https://a.com,https://b.com",
            "PERPLEXITY_BASE_URL": "http://localhost:9999",
            "PERPLEXITY_TIMEOUT_MS": "1500",
        })

        assert config.shared_secret == "s3cret"
        assert config.auth_enabled is True
        assert config.port == 9090
        assert config.bind_address == "127.0.0.1"
        assert config.allowed_origins == ("https://a.com", "https://b.com")
        assert config.upstream_base_url == "http://localhost:9999"
        assert config.upstream_timeout == 1.5

    def test_empty_values_are_unset(self):
        """Empty variables fall back to defaults."""
        config = load_config({**BASE_ENV, "PORT": "", "MCP_SERVER_API_KEY": ""})

        assert config.port == 8080
        assert config.auth_enabled is False

    @pytest.mark.parametrize("port", ["abc", "0", "70000"])
    def test_invalid_port(self, port):
        """A bad PORT is a config error."""
        with pytest.raises(ConfigError):
            load_config({**BASE_ENV, "PORT": port})

    def test_invalid_timeout(self):
        """A non-numeric PERPLEXITY_TIMEOUT_MS is a config error."""
        with pytest.raises(ConfigError):
            load_config({**BASE_ENV, "PERPLEXITY_TIMEOUT_MS": "soon"})

    def test_overrides_win(self):
        """Keyword overrides beat the environment; None overrides are ignored."""
        config = load_config({**BASE_ENV, "PORT": "9090"}, port=7000, bind_address=None)

        assert config.port == 7000
        assert config.bind_address == "0.0.0.0"

    def test_reads_process_environment_by_default(self, monkeypatch):
        """Without an explicit mapping, os.environ is used."""
        monkeypatch.setenv("PERPLEXITY_API_KEY", "from-env")
        monkeypatch.delenv("PORT", raising=False)

        assert load_config().upstream_api_key == "from-env"
