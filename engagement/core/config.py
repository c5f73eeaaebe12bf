"""
Configuration Management
Loads settings from YAML files and environment variables
"""
import os
import re
import yaml
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from engagement.domain.models.business_hours import BusinessHours


class Settings(BaseSettings):
    """Application settings loaded from environment"""

    environment: str = "development"
    debug: bool = True

    # Record store
    database_url: str = "sqlite:///./engagement.db"

    # Outbound delivery: "logging" (development) or "smtp"
    notifier: str = "logging"
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_from_email: Optional[str] = None
    smtp_from_name: str = "Engagement Desk"
    smtp_use_tls: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


class BookingPolicy(BaseModel):
    """Reservation look-ahead and availability caching"""
    lookahead_days: int = Field(default=14, ge=1, le=90)
    suggestion_days: int = Field(default=7, ge=1, le=30)
    availability_cache_ttl_seconds: float = Field(default=60.0, ge=0)


class LeadPolicy(BaseModel):
    """Follow-up cadence and caps for lead nurturing"""
    max_follow_ups: int = Field(default=5, ge=0)
    recency_window_days: int = Field(default=7, ge=0)
    follow_up_days: Dict[str, int] = Field(
        default_factory=lambda: {"urgent": 1, "high": 3, "medium": 7, "low": 14}
    )


class AutomationPolicy(BaseModel):
    """Reminder horizon and scan cadence for the automation runner"""
    reminder_horizon_hours: float = 24
    reminder_tolerance_minutes: float = 60
    reminder_send_delay_seconds: float = Field(default=1.0, ge=0)
    follow_up_send_delay_seconds: float = Field(default=2.0, ge=0)
    reminder_minute: int = Field(default=0, ge=0, le=59)
    follow_up_hour: int = Field(default=10, ge=0, le=23)
    follow_up_minute: int = Field(default=0, ge=0, le=59)
    run_on_startup: bool = True


class SiteInfo(BaseModel):
    """Business details rendered into outbound messages"""
    name: str = "Our Team"
    frontend_url: str = "http://localhost:3000"
    contact_phone: str = ""
    contact_email: str = ""


class EngagementConfig(BaseModel):
    """Typed view of the business policy tree"""
    business: BusinessHours = Field(default_factory=BusinessHours)
    booking: BookingPolicy = Field(default_factory=BookingPolicy)
    leads: LeadPolicy = Field(default_factory=LeadPolicy)
    automation: AutomationPolicy = Field(default_factory=AutomationPolicy)
    site: SiteInfo = Field(default_factory=SiteInfo)


_ENV_PATTERN = re.compile(r"^\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-(.*))?\}$")


class ConfigManager:
    """Manages loading and merging configuration from multiple sources"""

    def __init__(self, env: str = "development", config_dir: Optional[Path] = None):
        self.env = env
        self.config_dir = config_dir or Path(__file__).parent.parent.parent / "config"
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration files in order of precedence"""
        default_path = self.config_dir / "default.yaml"
        if default_path.exists():
            self._config = self._load_yaml(default_path)

        env_path = self.config_dir / f"{self.env}.yaml"
        if env_path.exists():
            env_config = self._load_yaml(env_path)
            self._deep_merge(self._config, env_config)

        self._substitute_env_vars(self._config)

    def _load_yaml(self, path: Path) -> Dict:
        """Load YAML file"""
        with open(path, 'r') as f:
            return yaml.safe_load(f) or {}

    def _substitute_env_vars(self, config: Dict) -> None:
        """
        Replace ${VAR_NAME} or ${VAR_NAME:-default} with environment values.

        Unset variables without a default are dropped so the typed
        config falls back to its own defaults.
        """
        for key in list(config.keys()):
            value = config[key]
            if isinstance(value, dict):
                self._substitute_env_vars(value)
            elif isinstance(value, str):
                match = _ENV_PATTERN.match(value)
                if not match:
                    continue
                env_value = os.getenv(match.group(1), match.group(2))
                if env_value is None:
                    del config[key]
                else:
                    config[key] = env_value

    def _deep_merge(self, base: Dict, override: Dict) -> None:
        """Recursively merge override into base"""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation
        Example: config.get("leads.max_follow_ups") -> 5
        """
        keys = key_path.split('.')
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def engagement_config(self) -> EngagementConfig:
        """Build the typed business policy from the merged tree"""
        return EngagementConfig.model_validate(self._config)


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings"""
    return Settings()


@lru_cache()
def get_engagement_config() -> EngagementConfig:
    """Get cached business policy for the current environment"""
    return ConfigManager(env=get_settings().environment).engagement_config()
