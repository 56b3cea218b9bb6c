"""Tests for IntakeConfiguration loading and validation."""

import pytest

from patient_intake.core.config import IntakeConfiguration
from patient_intake.core.exceptions import ConfigurationError

ENV_KEYS = [
    "INTAKE_API_URL",
    "INTAKE_API_TOKEN",
    "INTAKE_REQUEST_TIMEOUT",
    "MAX_DIAGNOSIS_COUNT",
    "MIN_AGE_WARNING",
    "MAX_AGE_WARNING",
    "STALE_ADMISSION_DAYS",
    "ADD_TO_CHARGES",
    "LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Unset every intake variable; values loaded from .env files are undone too."""
    for key in ENV_KEYS:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    empty_env = tmp_path / "empty.env"
    empty_env.write_text("")
    return empty_env


def test_defaults_from_environment(clean_env, monkeypatch):
    monkeypatch.setenv("INTAKE_API_URL", "https://charting.test")

    config = IntakeConfiguration.from_environment(env_file=str(clean_env))

    assert config.api_base_url == "https://charting.test"
    assert config.request_timeout is None
    assert config.max_diagnosis_count == 12
    assert config.min_age_warning == 18
    assert config.max_age_warning == 130
    assert config.stale_admission_days == 90
    assert config.add_to_charges is True
    assert config.log_level == "INFO"


def test_reads_env_file(clean_env, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text(
        "INTAKE_API_URL=http://localhost:8000\n"
        "INTAKE_API_TOKEN=secret\n"
        "INTAKE_REQUEST_TIMEOUT=2.5\n"
        "MAX_DIAGNOSIS_COUNT=8\n"
        "ADD_TO_CHARGES=false\n"
        "LOG_LEVEL=debug\n"
    )

    config = IntakeConfiguration.from_environment(env_file=str(env_file))

    assert config.api_token == "secret"
    assert config.request_timeout == 2.5
    assert config.max_diagnosis_count == 8
    assert config.add_to_charges is False
    assert config.log_level == "DEBUG"


def test_malformed_number_raises(clean_env, monkeypatch):
    monkeypatch.setenv("INTAKE_API_URL", "https://charting.test")
    monkeypatch.setenv("MAX_DIAGNOSIS_COUNT", "twelve")

    with pytest.raises(ConfigurationError, match="Malformed numeric setting"):
        IntakeConfiguration.from_environment(env_file=str(clean_env))


def test_missing_url_raises_on_load(clean_env):
    with pytest.raises(ConfigurationError, match="not configured"):
        IntakeConfiguration.from_environment(env_file=str(clean_env))


def test_validation_can_be_deferred(clean_env):
    config = IntakeConfiguration.from_environment(env_file=str(clean_env), validate_on_load=False)
    assert config.api_base_url is None


@pytest.mark.parametrize(
    "overrides",
    [
        {"api_base_url": "ftp://charting.test"},
        {"api_base_url": "charting.test"},
        {"max_diagnosis_count": 0},
        {"min_age_warning": 130, "max_age_warning": 18},
        {"stale_admission_days": -1},
        {"request_timeout": -5.0},
    ],
)
def test_invalid_settings(overrides):
    values = {"api_base_url": "https://charting.test"}
    values.update(overrides)
    with pytest.raises(ConfigurationError):
        IntakeConfiguration(**values).validate()


def test_to_dict_masks_token():
    config = IntakeConfiguration(api_base_url="https://charting.test", api_token="secret")
    assert config.to_dict()["api_token"] == "***"
    assert IntakeConfiguration().to_dict()["api_token"] is None
