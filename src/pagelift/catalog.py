"""
Loader for the packaged selector and pattern catalog (``data/selectors.yaml``).

The catalog is plain data: the pre-cleaner and the paywall detector treat it
as input and never hard-code selectors themselves.
"""

from __future__ import annotations

import re
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from pagelift.exceptions import ConfigurationError

logger = structlog.get_logger(__name__)

DATA_PACKAGE = "pagelift"


class CleanerCatalog(BaseModel):
    structured_article_selector: str
    protected_selectors: List[str]
    negative_selectors: List[str]
    lazy_load_attributes: List[str]
    placeholder_tokens: List[str] = Field(default_factory=list)


class PaywallCatalog(BaseModel):
    min_article_length: int = 500
    truncation_patterns: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    selectors: List[str] = Field(default_factory=list)
    site_selectors: Dict[str, List[str]] = Field(default_factory=dict)
    known_paywalled_domains: List[str] = Field(default_factory=list)

    @field_validator("truncation_patterns", "keywords")
    @classmethod
    def validate_patterns(cls, v: List[str]) -> List[str]:
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"invalid regex {pattern!r}: {e}") from e
        return v


class SelectorCatalog(BaseModel):
    version: int = 1
    cleaner: CleanerCatalog
    paywall: PaywallCatalog


def read_yaml_table(path: Optional[Path], packaged_name: str) -> Any:
    """Parse ``path`` if given, else the packaged ``data/<packaged_name>``."""
    try:
        if path is not None:
            text = Path(path).read_text(encoding="utf-8")
            source = str(path)
        else:
            text = resources.files(DATA_PACKAGE).joinpath("data", packaged_name).read_text(encoding="utf-8")
            source = f"{DATA_PACKAGE}/data/{packaged_name}"
    except OSError as e:
        raise ConfigurationError(f"Cannot read data table {path or packaged_name}: {e}") from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Malformed YAML in {source}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Data table {source} must be a mapping")
    logger.debug("Loaded data table", source=source)
    return data


@lru_cache(maxsize=8)
def load_selector_catalog(path: Optional[Path] = None) -> SelectorCatalog:
    data = read_yaml_table(path, "selectors.yaml")
    try:
        return SelectorCatalog.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid selector catalog: {e}") from e
