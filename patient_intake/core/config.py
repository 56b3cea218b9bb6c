"""
Configuration for the Patient Intake Workflow

This module defines the configuration dataclass used to build the intake
workflow. Configuration is:
    1. Loaded from environment variables (with .env support)
    2. Validated at startup to fail fast on misconfiguration
    3. Serializable with secrets masked for logging

Configuration Hierarchy:
    IntakeConfiguration
    ├── Collaborator Settings (base URL, token, timeout)
    ├── Diagnosis Settings (code ceiling)
    ├── Date Heuristic Settings (age window, stale admission days)
    └── Workflow Settings (charges worklist attachment, log level)

Usage:
    from patient_intake.core.config import IntakeConfiguration

    config = IntakeConfiguration.from_environment()
    config = IntakeConfiguration(api_base_url="https://charting.example.org")
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

from patient_intake.core.constants import (
    AGE_MAX_WARNING,
    AGE_MIN_WARNING,
    MAX_DIAGNOSIS_COUNT,
    STALE_ADMISSION_DAYS,
)
from patient_intake.core.exceptions import ConfigurationError


# =============================================================================
# STAGE 1: DEFAULT VALUES
# =============================================================================


class ConfigDefaults:
    """Default configuration values."""

    # -------------------------------------------------------------------------
    # 1.1 Collaborator Defaults
    # -------------------------------------------------------------------------
    DEFAULT_REQUEST_TIMEOUT = None  # no timeout unless configured

    # -------------------------------------------------------------------------
    # 1.2 Diagnosis and Date Defaults
    # -------------------------------------------------------------------------
    DEFAULT_MAX_DIAGNOSIS_COUNT = MAX_DIAGNOSIS_COUNT
    DEFAULT_MIN_AGE_WARNING = AGE_MIN_WARNING
    DEFAULT_MAX_AGE_WARNING = AGE_MAX_WARNING
    DEFAULT_STALE_ADMISSION_DAYS = STALE_ADMISSION_DAYS

    # -------------------------------------------------------------------------
    # 1.3 Workflow Defaults
    # -------------------------------------------------------------------------
    DEFAULT_ADD_TO_CHARGES = True
    DEFAULT_LOG_LEVEL = "INFO"


# =============================================================================
# STAGE 2: CONFIGURATION DATACLASS
# =============================================================================


@dataclass
class IntakeConfiguration:
    """
    Configuration for the batch intake workflow.

    What it does:
        Encapsulates the collaborator connection settings and the thresholds
        the wizard and diagnosis review apply.

    When to use:
        - At workflow construction (``IntakeWorkflow.from_environment``)
        - In tests, constructed directly with custom thresholds

    Example:
        >>> config = IntakeConfiguration(api_base_url="https://charting.example.org")
        >>> config.validate()
        >>> config.max_diagnosis_count
        12
    """

    # -------------------------------------------------------------------------
    # 2.1 Collaborator Configuration
    # -------------------------------------------------------------------------
    api_base_url: Optional[str] = None
    """Base URL of the charting API (patients, diagnoses, notes, facilities)."""

    api_token: Optional[str] = None
    """Bearer token passed through to the charting API."""

    request_timeout: Optional[float] = ConfigDefaults.DEFAULT_REQUEST_TIMEOUT
    """Per-request timeout in seconds. None disables the timeout."""

    # -------------------------------------------------------------------------
    # 2.2 Diagnosis Configuration
    # -------------------------------------------------------------------------
    max_diagnosis_count: int = ConfigDefaults.DEFAULT_MAX_DIAGNOSIS_COUNT
    """Maximum number of diagnosis codes per patient."""

    # -------------------------------------------------------------------------
    # 2.3 Date Heuristic Configuration
    # -------------------------------------------------------------------------
    min_age_warning: int = ConfigDefaults.DEFAULT_MIN_AGE_WARNING
    """Ages below this ask for confirmation."""

    max_age_warning: int = ConfigDefaults.DEFAULT_MAX_AGE_WARNING
    """Ages above this ask for confirmation."""

    stale_admission_days: int = ConfigDefaults.DEFAULT_STALE_ADMISSION_DAYS
    """Admit dates older than this many days ask for confirmation."""

    # -------------------------------------------------------------------------
    # 2.4 Workflow Configuration
    # -------------------------------------------------------------------------
    add_to_charges: bool = ConfigDefaults.DEFAULT_ADD_TO_CHARGES
    """Attach created admissions to the charges worklist."""

    log_level: str = ConfigDefaults.DEFAULT_LOG_LEVEL
    """Minimum loguru level for the stderr sink."""

    # -------------------------------------------------------------------------
    # 2.5 Validation Methods
    # -------------------------------------------------------------------------

    def validate(self) -> None:
        """
        Validate configuration parameters.

        Checks:
            1. Base URL is set and uses http or https
            2. Diagnosis ceiling is positive
            3. Age window is ordered
            4. Day and timeout values are not negative

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if not self.api_base_url:
            raise ConfigurationError(
                "Charting API URL not configured",
                context={"setting": "INTAKE_API_URL"},
            )

        parsed = urlparse(self.api_base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigurationError(
                f"Charting API URL must be an http(s) URL, got {self.api_base_url}",
                context={"setting": "INTAKE_API_URL"},
            )

        if self.max_diagnosis_count < 1:
            raise ConfigurationError(
                f"Diagnosis ceiling must be at least 1, got {self.max_diagnosis_count}",
                context={"setting": "MAX_DIAGNOSIS_COUNT"},
            )

        if self.min_age_warning >= self.max_age_warning:
            raise ConfigurationError(
                f"Invalid age window: min={self.min_age_warning}, max={self.max_age_warning}",
                context={"min": self.min_age_warning, "max": self.max_age_warning},
            )

        if self.stale_admission_days < 0:
            raise ConfigurationError(
                f"Stale admission days cannot be negative, got {self.stale_admission_days}",
                context={"setting": "STALE_ADMISSION_DAYS"},
            )

        if self.request_timeout is not None and self.request_timeout < 0:
            raise ConfigurationError(
                f"Request timeout cannot be negative, got {self.request_timeout}",
                context={"setting": "INTAKE_REQUEST_TIMEOUT"},
            )

    # -------------------------------------------------------------------------
    # 2.6 Factory Methods
    # -------------------------------------------------------------------------

    @classmethod
    def from_environment(
        cls, env_file: Optional[str] = None, validate_on_load: bool = True
    ) -> "IntakeConfiguration":
        """
        Load configuration from environment variables.

        STAGE 1: Load .env file (if specified or found)
        STAGE 2: Read environment variables
        STAGE 3: Convert to typed configuration
        STAGE 4: Validate configuration (optional)

        Args:
            env_file: Path to .env file (optional, auto-detected if not provided)
            validate_on_load: Whether to validate after loading

        Raises:
            ConfigurationError: If settings are missing, malformed or invalid
        """
        # STAGE 1: Load .env file
        if env_file:
            load_dotenv(env_file)
        else:
            possible_locations = [
                Path.cwd() / ".env",
                Path(__file__).parent.parent / ".env",
            ]
            for location in possible_locations:
                if location.exists():
                    load_dotenv(location)
                    break

        # STAGE 2 + 3: Read and convert
        timeout_raw = os.getenv("INTAKE_REQUEST_TIMEOUT")
        try:
            config = cls(
                api_base_url=os.getenv("INTAKE_API_URL"),
                api_token=os.getenv("INTAKE_API_TOKEN"),
                request_timeout=float(timeout_raw) if timeout_raw else None,
                max_diagnosis_count=int(
                    os.getenv("MAX_DIAGNOSIS_COUNT", ConfigDefaults.DEFAULT_MAX_DIAGNOSIS_COUNT)
                ),
                min_age_warning=int(
                    os.getenv("MIN_AGE_WARNING", ConfigDefaults.DEFAULT_MIN_AGE_WARNING)
                ),
                max_age_warning=int(
                    os.getenv("MAX_AGE_WARNING", ConfigDefaults.DEFAULT_MAX_AGE_WARNING)
                ),
                stale_admission_days=int(
                    os.getenv("STALE_ADMISSION_DAYS", ConfigDefaults.DEFAULT_STALE_ADMISSION_DAYS)
                ),
                add_to_charges=os.getenv("ADD_TO_CHARGES", "true").lower() == "true",
                log_level=os.getenv("LOG_LEVEL", ConfigDefaults.DEFAULT_LOG_LEVEL).upper(),
            )
        except ValueError as e:
            raise ConfigurationError(
                f"Malformed numeric setting: {e}",
                context={"source": "environment"},
            ) from e

        # STAGE 4: Validate
        if validate_on_load:
            config.validate()

        return config

    def to_dict(self) -> dict:
        """Convert configuration to dictionary (for logging/debugging)."""
        return {
            "api_base_url": self.api_base_url,
            "api_token": "***" if self.api_token else None,
            "request_timeout": self.request_timeout,
            "max_diagnosis_count": self.max_diagnosis_count,
            "min_age_warning": self.min_age_warning,
            "max_age_warning": self.max_age_warning,
            "stale_admission_days": self.stale_admission_days,
            "add_to_charges": self.add_to_charges,
            "log_level": self.log_level,
        }
