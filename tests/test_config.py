import pytest
from pydantic import ValidationError

from config import Settings


def test_settings_defaults():
    settings = Settings(_env_file=None)
    assert settings.app_name == "Wind Data Hub"
    assert settings.stamp_interval_hours == 6
    assert settings.harvest_interval_minutes == 15.0
    assert settings.harvest_max_age_days == 30
    assert settings.backfill_max_depth == 5
    assert settings.staging_dir == "grib-data"
    assert settings.archive_dir == "json-data"
    assert "{input}" in settings.converter_command and "{output}" in settings.converter_command


def test_settings_normalizes_cors_from_string():
    settings = Settings(_env_file=None, cors_origins="http://example.com, http://localhost")
    assert settings.cors_origins == ["http://example.com", "http://localhost"]


def test_settings_handles_case_insensitive_env(monkeypatch):
    monkeypatch.setenv("archive_dir", "/srv/wind/json")
    monkeypatch.setenv("BACKFILL_MAX_DEPTH", "2")
    settings = Settings(_env_file=None)
    assert settings.archive_dir == "/srv/wind/json"
    assert settings.backfill_max_depth == 2


def test_settings_rejects_interval_not_dividing_day():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, stamp_interval_hours=5)


def test_blank_api_key_disables_check():
    assert Settings(_env_file=None, api_key="  ").api_key is None
