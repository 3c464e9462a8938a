"""Unit tests for client configuration models and settings."""

import logging
from collections.abc import Iterator
from unittest.mock import patch

import pytest
import structlog
from pydantic import ValidationError

from commons_http.config.models import (
    HttpClientConfig,
    ServiceDefinition,
    build_service_manager,
)
from commons_http.service.auth import AuthState
from commons_http.service.client import HttpService
from commons_http.settings.app import HttpSettings, get_settings
from tests.helpers.transport import ScriptedTransport


def trellis(**overrides: object) -> ServiceDefinition:
    """Create a trellis service definition."""
    fields: dict[str, object] = {
        "name": "trellis",
        "url": "https://cloud.example.com:10001/v1",
    }
    fields.update(overrides)
    return ServiceDefinition(**fields)


@pytest.fixture
def restore_logging() -> Iterator[None]:
    """Restore global logging state changed by from_config."""
    root = logging.getLogger()
    level = root.level
    yield
    root.setLevel(level)
    structlog.reset_defaults()


class TestServiceDefinition:
    """Tests for ServiceDefinition schema."""

    @pytest.mark.unit
    def test_valid_definition(self) -> None:
        """Test creating a valid service definition."""
        service = trellis(headers={"X-Client": "sdk"}, replacements={"org": "acme"})

        assert service.name == "trellis"
        assert service.endpoint_headers == {}

    @pytest.mark.unit
    def test_to_formatter(self) -> None:
        """Test building a formatter from the definition."""
        formatter = trellis(replacements={"org": "acme"}).to_formatter()

        assert formatter.url("{org}/users") == (
            "https://cloud.example.com:10001/v1/acme/users"
        )

    @pytest.mark.unit
    @pytest.mark.parametrize("url", ["https://api.test/v1/deep", "", "api test"])
    def test_invalid_url(self, url: str) -> None:
        """Test that non-base URLs are rejected."""
        with pytest.raises(ValidationError):
            trellis(url=url)

    @pytest.mark.unit
    @pytest.mark.parametrize("name", ["", "bad name", "bad://name"])
    def test_invalid_name(self, name: str) -> None:
        """Test that names unusable as schemes are rejected."""
        with pytest.raises(ValidationError):
            trellis(name=name)

    @pytest.mark.unit
    @pytest.mark.parametrize("header", ["Authorization", "cookie", "X-API-Key"])
    def test_credential_headers_rejected(self, header: str) -> None:
        """Test that credentials cannot be stored in config."""
        with pytest.raises(ValidationError):
            trellis(headers={header: "secret"})
        with pytest.raises(ValidationError):
            trellis(endpoint_headers={"upload": {header: "secret"}})

    @pytest.mark.unit
    def test_extra_fields_forbidden(self) -> None:
        """Test that unknown fields are rejected."""
        with pytest.raises(ValidationError):
            trellis(port=443)

    @pytest.mark.unit
    def test_frozen(self) -> None:
        """Test that definitions are immutable."""
        service = trellis()

        with pytest.raises(ValidationError):
            service.name = "other"  # type: ignore[misc]


class TestHttpClientConfig:
    """Tests for HttpClientConfig schema."""

    @pytest.mark.unit
    def test_defaults(self) -> None:
        """Test default configuration values."""
        config = HttpClientConfig()

        assert config.timeout_ms == 30_000
        assert config.auth_failure_statuses == frozenset({403})
        assert config.services == []
        assert config.log_level_value == 20

    @pytest.mark.unit
    def test_duplicate_services_rejected(self) -> None:
        """Test that service names must be unique."""
        with pytest.raises(ValidationError, match="Duplicate service names"):
            HttpClientConfig(services=[trellis(), trellis()])

    @pytest.mark.unit
    def test_unknown_default_rejected(self) -> None:
        """Test that the default service must be defined."""
        with pytest.raises(ValidationError, match="not defined"):
            HttpClientConfig(services=[trellis()], default_service="missing")

    @pytest.mark.unit
    @pytest.mark.parametrize("timeout_ms", [0, -1, 600_001])
    def test_timeout_bounds(self, timeout_ms: int) -> None:
        """Test that timeouts must be positive and bounded."""
        with pytest.raises(ValidationError):
            HttpClientConfig(timeout_ms=timeout_ms)

    @pytest.mark.unit
    def test_invalid_status_rejected(self) -> None:
        """Test that auth failure statuses must be HTTP statuses."""
        with pytest.raises(ValidationError, match="Invalid HTTP status codes"):
            HttpClientConfig(auth_failure_statuses={403, 1000})

    @pytest.mark.unit
    def test_log_level_normalized(self) -> None:
        """Test that log levels are upper-cased and validated."""
        assert HttpClientConfig(log_level="debug").log_level == "DEBUG"
        with pytest.raises(ValidationError):
            HttpClientConfig(log_level="verbose")

    @pytest.mark.unit
    def test_from_settings(self) -> None:
        """Test building a config from environment settings."""
        settings = HttpSettings(timeout_ms=5000, user_agent="svc/1.0", log_json=False)

        config = HttpClientConfig.from_settings(settings, services=[trellis()])

        assert config.timeout_ms == 5000
        assert config.default_headers == {"User-Agent": "svc/1.0"}
        assert config.log_json is False
        assert [s.name for s in config.services] == ["trellis"]


class TestBuildServiceManager:
    """Tests for building a manager from configuration."""

    @pytest.mark.unit
    def test_registers_services_and_headers(self) -> None:
        """Test that formatters and headers are installed."""
        config = HttpClientConfig(
            services=[
                trellis(
                    headers={"X-Client": "sdk"},
                    endpoint_headers={"upload": {"X-Client": "uploader"}},
                ),
                ServiceDefinition(name="assets", url="https://assets.example.com"),
            ],
            default_service="assets",
        )

        manager = build_service_manager(config)

        assert manager.urls.names == ["trellis", "assets"]
        assert manager.urls.default == "assets"
        assert manager.get_headers("trellis") == {"X-Client": "sdk"}
        assert manager.get_headers("trellis", "upload") == {"X-Client": "uploader"}

    @pytest.mark.unit
    def test_first_service_is_default(self) -> None:
        """Test that the first service is the default when none is named."""
        manager = build_service_manager(HttpClientConfig(services=[trellis()]))

        assert manager.urls.default == "trellis"

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("restore_logging")
    async def test_service_from_config(self) -> None:
        """Test building a ready HttpService from configuration."""
        transport = ScriptedTransport()
        config = HttpClientConfig(
            timeout_ms=2500,
            default_headers={"User-Agent": "svc/1.0"},
            services=[trellis(headers={"X-Client": "sdk"})],
            auth_failure_statuses={401},
        )
        transport.reply("https://cloud.example.com:10001/v1/users", payload=[])

        service = HttpService.from_config(config, transport=transport)
        response = await service.get("trellis://users")

        assert service.timeout_ms == 2500
        assert service.auth_failure_statuses == frozenset({401})
        assert service.state == AuthState.CONFIGURED
        assert response.payload == []
        assert transport.requests[0].headers["User-Agent"] == "svc/1.0"
        assert transport.requests[0].headers["X-Client"] == "sdk"

    @pytest.mark.unit
    @pytest.mark.usefixtures("restore_logging")
    def test_service_from_config_applies_log_level(self) -> None:
        """Test that from_config applies the configured log level and format."""
        logging.getLogger().setLevel(logging.WARNING)
        config = HttpClientConfig(log_level="debug", log_json=False)

        HttpService.from_config(config, transport=ScriptedTransport())

        assert logging.getLogger().level == logging.DEBUG
        wrapper = structlog.get_config()["wrapper_class"]
        assert wrapper is structlog.make_filtering_bound_logger(logging.DEBUG)
        renderer = structlog.get_config()["processors"][-1]
        assert isinstance(renderer, structlog.dev.ConsoleRenderer)


class TestHttpSettings:
    """Tests for environment settings."""

    @pytest.mark.unit
    def test_defaults(self) -> None:
        """Test default settings values."""
        with patch.dict("os.environ", {}, clear=True):
            settings = get_settings()

        assert settings.timeout_ms == 30_000
        assert settings.log_level == "INFO"
        assert settings.log_json is True
        assert settings.user_agent is None

    @pytest.mark.unit
    def test_reads_prefixed_environment(self) -> None:
        """Test that COMMONS_HTTP_ variables are read."""
        env = {
            "COMMONS_HTTP_TIMEOUT_MS": "1500",
            "COMMONS_HTTP_LOG_JSON": "false",
            "COMMONS_HTTP_USER_AGENT": "svc/2.0",
        }
        with patch.dict("os.environ", env, clear=True):
            settings = get_settings()

        assert settings.timeout_ms == 1500
        assert settings.log_json is False
        assert settings.user_agent == "svc/2.0"

    @pytest.mark.unit
    def test_invalid_timeout_rejected(self) -> None:
        """Test that a non-positive timeout is rejected."""
        with (
            patch.dict("os.environ", {"COMMONS_HTTP_TIMEOUT_MS": "0"}, clear=True),
            pytest.raises(ValidationError),
        ):
            get_settings()
