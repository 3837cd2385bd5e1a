"""
Configuration management for pagelift using Pydantic.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, ClassVar, List, Optional, cast

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Setup Logging ---
log = logging.getLogger(__name__)

CHROME_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)

STRATEGY_IDS = (
    "googlebot-ua",
    "bingbot-ua",
    "social-referrer",
    "minimal-refetch",
    "archive-service-a",
    "archive-service-b",
)

# --- Nested Configuration Models ---


class FetcherConfig(BaseModel):
    """Live-site fetch settings."""

    timeout: float = Field(default=30.0, description="Default request timeout in seconds.")
    crawler_timeout: float = Field(default=15.0, description="Timeout for crawler-identity fetches.")
    referrer_timeout: float = Field(default=15.0, description="Timeout for each social-referrer fetch.")
    minimal_timeout: float = Field(default=15.0, description="Timeout for the minimal-header re-fetch.")
    user_agent: str = Field(default=CHROME_USER_AGENT, description="User-Agent for the browser identity.")
    social_referrers: List[str] = Field(
        default=[
            "https://twitter.com/",
            "https://www.facebook.com/",
            "https://t.co/",
            "https://www.reddit.com/",
        ],
        description="Referrers tried in order by the social-referrer strategy.",
    )

    @field_validator("timeout", "crawler_timeout", "referrer_timeout", "minimal_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v


class ArchiveConfig(BaseModel):
    """Snapshot service settings."""

    archive_is_domains: List[str] = Field(default=["archive.is", "archive.today", "archive.ph"])
    archive_is_timeout: float = Field(default=45.0, description="Timeout per archive.is mirror.")
    wayback_api_timeout: float = Field(default=10.0, description="Timeout for the availability API.")
    wayback_fetch_timeout: float = Field(default=30.0, description="Timeout for the snapshot fetch.")

    @field_validator("archive_is_domains")
    @classmethod
    def validate_domains(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("archive_is_domains must contain at least one mirror")
        return v


class BypassConfig(BaseModel):
    """Configuration for the bypass orchestrator."""

    enabled: bool = Field(default=True, description="Escalate blocked fetches to bypass strategies.")
    strategies: List[str] = Field(default=list(STRATEGY_IDS), description="Strategy order, cheapest first.")
    soft_paywall_min_improvement: float = Field(
        default=0.2,
        description="Fractional text-length gain a bypassed soft-paywall page must show to replace the original.",
    )

    @field_validator("strategies")
    @classmethod
    def validate_strategies(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("strategies must contain at least one strategy")
        unknown = [name for name in v if name not in STRATEGY_IDS]
        if unknown:
            raise ValueError(f"Unknown bypass strategies {unknown}. Available: {list(STRATEGY_IDS)}")
        return v

    @field_validator("soft_paywall_min_improvement")
    @classmethod
    def validate_improvement(cls, v: float) -> float:
        if v < 0:
            raise ValueError("soft_paywall_min_improvement must not be negative")
        return v


class CleanerConfig(BaseModel):
    """Boilerplate pre-cleaning settings."""

    link_density_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    nav_link_density_threshold: float = Field(default=0.25, ge=0.0, le=1.0)
    min_link_density_text_length: int = Field(default=50, ge=0)
    selectors_file: Optional[Path] = Field(default=None, description="Replaces the packaged selector catalog.")
    site_configs_file: Optional[Path] = Field(default=None, description="Replaces the packaged site-config table.")

    @model_validator(mode="after")
    def validate_thresholds(self) -> "CleanerConfig":
        if self.nav_link_density_threshold > self.link_density_threshold:
            raise ValueError("nav_link_density_threshold must not exceed link_density_threshold")
        return self


class ReadabilityConfig(BaseModel):
    """Main-content extraction settings."""

    char_threshold: int = Field(
        default=500, description="Summary length below which readability retries keeping unlikely candidates."
    )
    min_text_length: int = Field(default=25, ge=0, description="Shortest paragraph text readability scores.")
    force_extract_min_text_length: int = Field(default=200, ge=0)
    readerable_min_content_length: int = Field(default=140, ge=0)
    readerable_min_score: float = Field(default=20.0, ge=0.0)


class MarkdownConfig(BaseModel):
    show_article_image: bool = True


class MonitoringConfig(BaseModel):
    """Configuration for logging and metrics."""

    log_level: str = Field(default="INFO", description="Logging level (e.g., DEBUG, INFO, WARNING).")
    log_file: str | None = Field(default=None, description="Path to log file. If None, logs to console.")
    json_logs: bool = Field(default=False, description="Render console logs as JSON.")
    prometheus_port: int | None = Field(default=None, description="Port for Prometheus metrics exporter.")

    @field_validator("log_file", mode="before")
    @classmethod
    def create_parent_dir(cls, v: str | Path | None) -> str | None:
        if v is None:
            return None
        path = Path(v)
        path.parent.mkdir(parents=True, exist_ok=True)
        return str(path)


# --- Main Configuration Class ---


class Config(BaseSettings):
    project_name: str = "pagelift"
    fetcher: FetcherConfig = Field(default_factory=FetcherConfig)
    archive: ArchiveConfig = Field(default_factory=ArchiveConfig)
    bypass: BypassConfig = Field(default_factory=BypassConfig)
    cleaner: CleanerConfig = Field(default_factory=CleanerConfig)
    readability: ReadabilityConfig = Field(default_factory=ReadabilityConfig)
    markdown: MarkdownConfig = Field(default_factory=MarkdownConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = SettingsConfigDict(env_prefix="PAGELIFT_", env_nested_delimiter="__", case_sensitive=False)

    @classmethod
    def from_yaml(cls, path: Path) -> Config:
        log.debug("Loading configuration from YAML file: %s", path)
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found or is not a file: {path}")
        with open(path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
        if not yaml_data:
            log.warning("Configuration file is empty: %s. Using default settings.", path)
            return cls.model_validate({})
        return cls.model_validate(yaml_data)


def find_config_file() -> Path | None:
    current_dir = Path.cwd()
    paths_to_check = [
        current_dir / "pagelift.yaml",
        current_dir / "pagelift.yml",
        current_dir / "config.yaml",
    ]
    for path in paths_to_check:
        if path.exists():
            return path
    return None


# --- Lazy Configuration Loader ---


class LazyConfig:
    """
    A proxy for the Config object that delays loading and validation until an
    attribute is first accessed, so a broken config file never fails an import.
    """

    _config: ClassVar[Config | None] = None
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __getattr__(self, name: str) -> Any:
        if self.__class__._config is None:
            with self.__class__._lock:
                if self.__class__._config is None:
                    self.__class__._config = self._load_config_with_fallback()
        return getattr(self.__class__._config, name)

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls._config = None

    def _load_config_with_fallback(self) -> Config:
        config_path = find_config_file()
        if config_path:
            try:
                log.info("Lazy loading configuration from: %s", config_path)
                return Config.from_yaml(config_path)
            except (ValidationError, FileNotFoundError, yaml.YAMLError) as e:
                log.error(
                    "Failed to load configuration from '%s': %s. Falling back to default settings.",
                    config_path,
                    e,
                    exc_info=log.getEffectiveLevel() <= logging.DEBUG,
                )
        else:
            log.info("No config file found. Using default settings for lazy load.")

        try:
            return Config()
        except ValidationError as e:
            log.critical("FATAL: Default configuration is invalid: %s", e, exc_info=True)
            raise RuntimeError(f"Default configuration is invalid, cannot start: {e}") from e


# --- Global Settings Instance ---
settings: "Config" = cast("Config", LazyConfig())
