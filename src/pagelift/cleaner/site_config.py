"""
Per-site extraction overrides loaded from ``data/site_configs.yaml``.
"""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Pattern

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError, field_validator

from pagelift.catalog import read_yaml_table
from pagelift.exceptions import ConfigurationError
from pagelift.utils.urls import get_hostname


class RemoveTextPattern(BaseModel):
    selector: str
    pattern: str

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"invalid text pattern {v!r}: {e}") from e
        return v


class CaptionConfig(BaseModel):
    text_selector: str
    credit_selector: str


class SiteConfig(BaseModel):
    """Overrides for one site family. At most one applies per page."""

    model_config = ConfigDict(frozen=True)

    name: str
    pattern: str
    article_selector: Optional[str] = None
    remove_selectors: List[str] = Field(default_factory=list)
    remove_text_patterns: List[RemoveTextPattern] = Field(default_factory=list)
    inline_selectors: List[str] = Field(default_factory=list)
    prefer_structured_data: bool = False
    caption_config: Optional[CaptionConfig] = None

    _regex: Pattern[str] = PrivateAttr()

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"invalid hostname pattern {v!r}: {e}") from e
        return v

    def model_post_init(self, __context: object) -> None:
        self._regex = re.compile(self.pattern, re.IGNORECASE)

    def matches(self, hostname: str) -> bool:
        return self._regex.search(hostname) is not None


class SiteConfigTable(BaseModel):
    version: int = 1
    common_remove_selectors: List[str] = Field(default_factory=list)
    sites: List[SiteConfig] = Field(default_factory=list)

    def lookup(self, hostname: str) -> Optional[SiteConfig]:
        hostname = hostname.lower().rstrip(".")
        for config in self.sites:
            if config.matches(hostname):
                return config
        return None


@lru_cache(maxsize=8)
def load_site_configs(path: Optional[Path] = None) -> SiteConfigTable:
    data = read_yaml_table(path, "site_configs.yaml")
    try:
        return SiteConfigTable.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid site config table: {e}") from e


def get_site_config(hostname: Optional[str], path: Optional[Path] = None) -> Optional[SiteConfig]:
    """First entry whose pattern matches ``hostname``; entries are never merged."""
    if not hostname:
        return None
    return load_site_configs(path).lookup(hostname)


def get_site_config_for_url(url: str, path: Optional[Path] = None) -> Optional[SiteConfig]:
    return get_site_config(get_hostname(url, strip_www=False), path)
