"""
Shared configuration management for the parcel routing service.
"""

import logging
from typing import Any

from pydantic import AliasChoices, Field, ValidationError as PydanticValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.errors import ConfigurationError

DEFAULT_INSURANCE_THRESHOLD_EUR = 1000.0
# Document-store object ids: 24 hex characters.
DEFAULT_DEPARTMENT_ID_PATTERN = r"^[0-9a-fA-F]{24}$"


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PARCEL_",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        if not isinstance(logging.getLevelName(value.upper()), int):
            raise ValueError(f"unknown log level: {value}")
        return value.lower()


class RoutingConfig(BaseConfig):
    """Routing service configuration."""

    service_name: str = "routing"

    # Parcels valued above this amount wait for manual insurance approval.
    insurance_threshold_eur: float = Field(
        default=DEFAULT_INSURANCE_THRESHOLD_EUR,
        gt=0,
        allow_inf_nan=False,
        validation_alias=AliasChoices(
            "insurance_threshold_eur",
            "PARCEL_INSURANCE_THRESHOLD_EUR",
            "INSURANCE_THRESHOLD",
        ),
    )
    department_id_pattern: str = Field(default=DEFAULT_DEPARTMENT_ID_PATTERN)

    # Rule-change cascade
    cascade_concurrency: int = Field(default=5, ge=1)


def get_config(**overrides: Any) -> RoutingConfig:
    """Get routing configuration from the environment, applying overrides."""
    try:
        return RoutingConfig(**overrides)
    except PydanticValidationError as e:
        raise ConfigurationError(
            "Invalid routing configuration",
            {"errors": [{"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]} for err in e.errors()]}
        ) from e
