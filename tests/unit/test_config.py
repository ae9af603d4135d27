"""Tests for settings."""

import pytest

from dealrota.config import DEFAULT_JOB_TIMEOUT, DEFAULT_POLL_INTERVAL, Settings
from dealrota.errors import ConfigurationError


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self) -> None:
        config = Settings(server_id="A")

        assert config.poll_interval == DEFAULT_POLL_INTERVAL == 15.0
        assert config.job_timeout == DEFAULT_JOB_TIMEOUT == 300.0
        assert config.store_backend == "redis"

    def test_server_id_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """SERVER_ID is read without the ROTA_ prefix."""
        monkeypatch.setenv("SERVER_ID", "server_7")

        assert Settings().server_id == "server_7"

    def test_prefixed_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ROTA_POLL_INTERVAL", "5")
        monkeypatch.setenv("ROTA_JOB_TIMEOUT", "60")

        config = Settings(server_id="A")

        assert config.poll_interval == 5.0
        assert config.job_timeout == 60.0

    def test_require_server_id(self) -> None:
        assert Settings(server_id="A").require_server_id() == "A"

    def test_missing_server_id(self) -> None:
        with pytest.raises(ConfigurationError, match="SERVER_ID"):
            Settings(server_id=None).require_server_id()
