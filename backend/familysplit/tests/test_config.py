"""
Tests for application settings.
"""
from familysplit.core.config import Settings


def test_cors_origins_from_comma_separated_string():
    settings = Settings(CORS_ORIGINS="http://a.test, http://b.test,")
    assert settings.CORS_ORIGINS == ["http://a.test", "http://b.test"]


def test_settings_read_env_file_case_sensitively():
    assert Settings.model_config["env_file"] == ".env"
    assert Settings.model_config["case_sensitive"] is True
