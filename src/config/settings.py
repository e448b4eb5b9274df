# src/config/settings.py — v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for all deployment-specific settings: object
storage credentials, trainer (classifier service) credentials, tag
generator back-ends, engine concurrency limits and logging.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Object storage ===
    storage_backend: Literal["swift", "s3"] = "swift"

    # Swift / Keystone v3
    os_auth_url: str = ""
    os_user_id: str = ""
    os_password: str = ""
    os_project_id: str = ""
    os_region: str = "dallas"
    os_token_ttl_seconds: int = 300

    # S3-compatible
    s3_endpoint_url: str = ""
    s3_region: str = ""

    # === Trainer (Natural Language Classifier) ===
    nlc_url: str = ""
    nlc_username: str = ""
    nlc_password: str = ""
    nlc_classifier_name: str = "ossearch-classifier"
    nlc_language: str = "en"
    training_poll_interval_seconds: float = 30.0
    corpus_dir: Path = Path("~/.ossearch/corpus")

    # === Tag generators ===
    tag_generators: str = "image,document"

    visual_recognition_url: str = (
        "https://gateway-a.watsonplatform.net/visual-recognition/api"
    )
    visual_recognition_api_key: str = ""
    visual_recognition_version_date: str = ""

    doc_conversion_url: str = (
        "https://gateway.watsonplatform.net/document-conversion/api"
    )
    doc_conversion_username: str = ""
    doc_conversion_password: str = ""
    doc_conversion_version_date: str = ""

    keyword_api_url: str = "https://gateway-a.watsonplatform.net/calls"
    keyword_api_key: str = ""

    # === Engine ===
    scan_object_parallelism: int = 10
    index_object_parallelism: int = 5
    http_timeout_seconds: float = 60.0

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # === Cloud Foundry bound services (VCAP_SERVICES) ===
    vcap_services: str = ""

    # --- Validators ---

    @field_validator("scan_object_parallelism", "index_object_parallelism")
    @classmethod
    def validate_parallelism(cls, v: int, info) -> int:  # noqa: N805
        if v < 1:
            raise ValueError(f"{info.field_name} must be >= 1")
        return v

    @field_validator("training_poll_interval_seconds", "http_timeout_seconds")
    @classmethod
    def validate_positive_seconds(cls, v: float, info) -> float:  # noqa: N805
        if v <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return v

    @model_validator(mode="after")
    def apply_bound_services(self) -> Settings:
        """Overlay credentials of bound services found in VCAP_SERVICES."""
        if not self.vcap_services:
            return self

        try:
            services = json.loads(self.vcap_services)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"VCAP_SERVICES is not valid JSON: {e}") from e
        if not isinstance(services, dict):
            raise ConfigurationError("VCAP_SERVICES must be a JSON object")

        creds = _first_credentials(services, "Object-Storage")
        if creds:
            self.os_auth_url = creds.get("auth_url", self.os_auth_url)
            self.os_user_id = creds.get("userId", self.os_user_id)
            self.os_password = creds.get("password", self.os_password)
            self.os_project_id = creds.get("projectId", self.os_project_id)
            self.os_region = creds.get("region", self.os_region)

        creds = _first_credentials(services, "natural_language_classifier")
        if creds:
            self.nlc_url = creds.get("url", self.nlc_url)
            self.nlc_username = creds.get("username", self.nlc_username)
            self.nlc_password = creds.get("password", self.nlc_password)

        creds = _first_credentials(services, "watson_vision_combined")
        if creds:
            self.visual_recognition_api_key = creds.get(
                "api_key", self.visual_recognition_api_key
            )
            self.visual_recognition_url = creds.get("url", self.visual_recognition_url)

        creds = _first_credentials(services, "document_conversion")
        if creds:
            self.doc_conversion_username = creds.get(
                "username", self.doc_conversion_username
            )
            self.doc_conversion_password = creds.get(
                "password", self.doc_conversion_password
            )
            self.doc_conversion_url = creds.get("url", self.doc_conversion_url)

        return self

    # --- Helpers ---

    @property
    def tag_generators_list(self) -> list[str]:
        """Parse comma-separated tag generator names."""
        return [g.strip() for g in self.tag_generators.split(",") if g.strip()]


def _first_credentials(services: dict[str, Any], name: str) -> dict[str, Any]:
    """Credentials of the first bound instance of a service, or {}."""
    instances = services.get(name)
    if not instances:
        return {}
    creds = instances[0].get("credentials")
    return creds if isinstance(creds, dict) else {}


# Env var names reported when a required field is unset.
_SWIFT_REQUIRED: list[tuple[str, str]] = [
    ("os_auth_url", "OS_AUTH_URL"),
    ("os_user_id", "OS_USER_ID"),
    ("os_password", "OS_PASSWORD"),
    ("os_project_id", "OS_PROJECT_ID"),
    ("os_region", "OS_REGION"),
]

_TRAINER_REQUIRED: list[tuple[str, str]] = [
    ("nlc_url", "NLC_URL"),
    ("nlc_username", "NLC_USERNAME"),
    ("nlc_password", "NLC_PASSWORD"),
    ("nlc_classifier_name", "NLC_CLASSIFIER_NAME"),
]


def missing_engine_settings(settings: Settings) -> list[str]:
    """Return env var names of required engine settings that are unset.

    Storage requirements depend on the backend: Swift needs Keystone
    credentials, S3 relies on the boto3 credential chain.
    """
    required = list(_TRAINER_REQUIRED)
    if settings.storage_backend == "swift":
        required = _SWIFT_REQUIRED + required
    return [env for field, env in required if not getattr(settings, field)]


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or CLI flags).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
