"""
Configuration management for consent-admin.
Loads from config/consent_admin.yaml and environment variables.
"""

from pathlib import Path
from typing import Optional, Dict, Any

import yaml
from pydantic import AliasChoices, Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from consent_admin.shared.exceptions import ConfigurationError

MIN_SALT_LENGTH = 8


class StoreConfig(BaseSettings):
    """Consent store connection descriptor."""
    backend: str = Field(default="sqlite")  # sqlite, database, memory
    dsn: str = Field(default="data/consent.sqlite")
    table: str = Field(default="consent")
    timeout: float = Field(default=5.0)

    model_config = SettingsConfigDict(env_prefix="CONSENT_STORE_", extra="ignore")


class HasherConfig(BaseSettings):
    """Identifier hasher configuration. The salt is never logged."""
    secret_salt: Optional[SecretStr] = Field(default=None)
    scope_by_source: bool = Field(default=True)

    model_config = SettingsConfigDict(env_prefix="CONSENT_", extra="ignore")

    @field_validator("secret_salt")
    @classmethod
    def _salt_long_enough(cls, value: Optional[SecretStr]) -> Optional[SecretStr]:
        if value is not None and len(value.get_secret_value()) < MIN_SALT_LENGTH:
            raise ValueError(f"secret_salt must be at least {MIN_SALT_LENGTH} characters")
        return value


class ConsentAdminSettings(BaseSettings):
    """Main consent-admin configuration."""
    auth: str = Field(default="default-sp")
    userid: str = Field(default="eduPersonPrincipalName")
    allow_bridge: bool = Field(default=True)
    back_url: Optional[str] = Field(default=None)

    log_level: str = Field(
        default="INFO", validation_alias=AliasChoices("log_level", "LOG_LEVEL")
    )
    log_file: Optional[Path] = Field(
        default=None, validation_alias=AliasChoices("log_file", "LOG_FILE")
    )

    # Sub-configurations
    store: StoreConfig = Field(default_factory=StoreConfig)
    hasher: HasherConfig = Field(default_factory=HasherConfig)

    # IdP metadata: {metadata-set: {entity-id: {...}}}
    metadata: Dict[str, Dict[str, Dict[str, Any]]] = Field(default_factory=dict)
    hosted_idp: Optional[str] = Field(default=None)

    model_config = SettingsConfigDict(
        env_prefix="CONSENT_ADMIN_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @classmethod
    def load_from_yaml(cls, config_path: Optional[Path] = None) -> "ConsentAdminSettings":
        """
        Load settings from YAML file; environment variables fill in
        anything the file leaves unset.

        Raises:
            ConfigurationError if the file or any value is invalid
        """
        if config_path is None:
            config_path = Path("config/consent_admin.yaml")

        config_dict: Dict[str, Any] = {}

        if config_path.exists():
            try:
                with open(config_path, "r", encoding="utf-8") as f:
                    yaml_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Cannot parse {config_path}: {e}") from e
            if not isinstance(yaml_data, dict):
                raise ConfigurationError(f"{config_path} must contain a mapping")
            config_dict = dict(yaml_data.get("consent_admin") or {})

        try:
            # Build sub-configurations through their own __init__ so env vars
            # still apply to keys the YAML block omits
            if isinstance(config_dict.get("store"), dict):
                config_dict["store"] = StoreConfig(**config_dict["store"])
            if isinstance(config_dict.get("hasher"), dict):
                config_dict["hasher"] = HasherConfig(**config_dict["hasher"])
            return cls(**config_dict)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid consent-admin configuration: {e}") from e


# Global settings instance
_settings: Optional[ConsentAdminSettings] = None


def get_settings() -> ConsentAdminSettings:
    """Get or create global settings instance."""
    global _settings
    if _settings is None:
        _settings = ConsentAdminSettings.load_from_yaml()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next get_settings() reloads them."""
    global _settings
    _settings = None
