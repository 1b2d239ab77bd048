"""
Run configuration.

Loaded from a YAML file (PyYAML safe_load) and validated with pydantic.
CLI flags override individual values after loading.
"""

import re
from pathlib import Path
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator


DEFAULT_START_URL = "https://www.coldwellbanker.com/fl/jacksonville/agents"


class ConfigError(Exception):
    """Raised when the config file is missing, unreadable or invalid."""


class SelectorConfig(BaseModel):
    """Site-specific markers tried first by each extraction cascade."""
    name_heading: str = 'h1[data-testid="office-name"]'
    phone_paragraph: str = "p.MuiTypography-body1.css-1p1owym"
    email_anchor: str = 'div[data-testid="emailDiv"] a[data-testid="emailLink"]'
    nav_attributes: List[str] = Field(
        default_factory=lambda: ["data-href", "data-url", "data-link", "routerlink", "ng-href"]
    )


class CrawlConfig(BaseModel):
    start_urls: List[str] = Field(default_factory=lambda: [DEFAULT_START_URL])
    max_pages: int = Field(default=200, ge=1)
    max_concurrency: int = Field(default=5, ge=1)
    max_records: Optional[int] = Field(default=None, ge=1)
    max_links: int = Field(default=500, ge=1)

    # Listing/profile URL shapes
    profile_markers: List[str] = Field(
        default_factory=lambda: ["/real-estate-agents/", "/real-estate-agent/", "/agents/", "/agent/"]
    )
    profile_pattern: str = r"/(?:real-estate-agents?|agents?)/[^/?#]+"
    office_pattern: str = r"/(?:real-estate-agents?|agents?)/(?:offices?|oid-[^/?#]*)(?:/|$)|/offices?/"
    city_listing_pattern: str = r"^/[a-z]{2}/[^/]+/agents/?$"

    # Pagination
    page_param: str = "page"
    default_seed_pages: int = Field(default=10, ge=1)
    seed_scope: Literal["run", "root"] = "run"

    # Lazy scroll
    scroll_max_steps: int = Field(default=8, ge=0)
    scroll_wait_ms: int = Field(default=800, ge=0)

    # Politeness delays after profile/contact visits
    profile_delay_ms: int = Field(default=250, ge=0)
    contact_delay_ms: int = Field(default=200, ge=0)

    # Renderer
    navigation_timeout_ms: int = Field(default=45000, ge=1000)
    headless: bool = True
    proxy: Optional[str] = None
    user_agent: Optional[str] = None

    selectors: SelectorConfig = Field(default_factory=SelectorConfig)

    @field_validator("start_urls")
    @classmethod
    def validate_start_urls(cls, v):
        out = []
        for u in v:
            s = (u or "").strip()
            if not s.startswith(("http://", "https://")):
                raise ValueError(f"start url must be an absolute HTTP/HTTPS URL: {u!r}")
            out.append(s)
        return out

    @field_validator("profile_pattern", "office_pattern", "city_listing_pattern")
    @classmethod
    def validate_pattern(cls, v):
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"invalid regular expression {v!r}: {e}")
        return v


def _coerce_start_urls(raw) -> List[str]:
    # Accept both plain strings and {url: ...} objects
    out: List[str] = []
    for entry in raw or []:
        if isinstance(entry, dict):
            entry = entry.get("url", "")
        out.append(str(entry))
    return out


def load_config(path: Optional[Path]) -> CrawlConfig:
    if path is None:
        return CrawlConfig()
    path = Path(path)
    if not path.exists() or not path.is_file():
        raise ConfigError(f"file not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"expected a mapping at the top of {path}")
    # Allow nesting under a top-level 'crawl' key
    data = dict(data.get("crawl", data))
    if "start_urls" in data:
        data["start_urls"] = _coerce_start_urls(data["start_urls"])
    try:
        return CrawlConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"invalid config in {path}: {e}") from e
