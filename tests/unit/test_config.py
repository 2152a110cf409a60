"""Unit tests for configuration and settings."""
from hostelsync.config import Settings, get_settings, reset_settings_cache


class TestSettings:
    """Configuration management."""

    def test_get_settings_returns_same_instance(self):
        assert get_settings() is get_settings()

    def test_reset_settings_cache(self):
        settings1 = get_settings()
        reset_settings_cache()

        assert settings1 is not get_settings()

    def test_jwt_configuration(self):
        settings = get_settings()

        assert settings.jwt_algorithm == "HS256"
        assert settings.access_token_expire_minutes > 0

    def test_service_ports_configuration(self):
        settings = get_settings()

        assert settings.auth_service_port == 8001
        assert settings.mess_service_port == 8002
        assert settings.transport_service_port == 8003
        assert settings.admin_service_port == 8007

    def test_environment_flag(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "Development")
        assert Settings().is_development is True

        monkeypatch.setenv("ENVIRONMENT", "production")
        assert Settings().is_development is False

    def test_test_environment_overrides(self):
        """conftest points the suite at SQLite and turns rate limiting off."""
        settings = get_settings()

        assert settings.database_url.startswith("sqlite")
        assert settings.rate_limiting_enabled is False
