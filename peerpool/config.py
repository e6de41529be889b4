"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator

from .domain.windowing import TimeFilter


class DefaultsConfig(BaseModel):
    """Default settings for the views."""
    time_filter: TimeFilter = TimeFilter.TODAY
    include_current_weekend: bool = False
    happening_limit: int = 4

    @field_validator("happening_limit")
    @classmethod
    def validate_limit(cls, value: int) -> int:
        """Ensure the home view shows at least one hangout."""
        if value <= 0:
            raise ValueError("happening_limit must be greater than zero")
        return value


class AppConfig(BaseModel):
    """Application configuration."""
    supabase_url: str = ""
    supabase_anon_key: str = ""
    timezone: str = "UTC"
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    token_cache_file: Optional[Path] = None
    request_timeout: float = 10

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("request_timeout")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("request_timeout must be greater than zero")
        return value

    @field_validator("supabase_url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        value = value.strip()
        if value and not value.startswith(("http://", "https://")):
            raise ValueError(f"supabase_url must be an http(s) URL, got {value}")
        return value.rstrip("/")

    def is_backend_configured(self) -> bool:
        """Both the project URL and the anon key are required to go online."""
        return bool(self.supabase_url and self.supabase_anon_key)

    def get_token_cache_file(self) -> Path:
        return (self.token_cache_file or Path.home() / ".peerpool_session.json").expanduser()

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    config_path = Path.cwd() / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of peerpool/)
        config_path = Path(__file__).parent.parent / "config.yaml"

    return config_path
