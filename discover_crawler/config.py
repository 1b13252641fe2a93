"""
Crawler Configuration
Site profiles and crawl tuning parameters for the discover catalog crawler.

Every timing value is in seconds. Environment variables prefixed with
DISCOVER_ override the defaults (see CrawlerConfig.from_env).

Usage:
    from discover_crawler.config import CrawlerConfig, SITE_CONFIGS

    config = CrawlerConfig.from_env().with_overrides(search_query="AI", max_products=20)
"""

import os
import re
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote


# ============================================================================
# Site Configuration
# ============================================================================

@dataclass
class SiteConfig:
    """Structure of a catalog site that renders its search results client-side."""
    name: str
    base_url: str
    search_url_template: str
    product_path_prefix: str = "/discover/"
    reserved_segments: Tuple[str, ...] = ("search",)
    title_suffix: str = ""
    # Accounts owned by the platform itself; never attributed to a creator
    house_handles: Tuple[str, ...] = ()
    profile_host: str = ""
    profile_url_template: str = ""
    # URL fragments of the XHR endpoints that deliver new result batches
    listing_endpoint_patterns: Tuple[str, ...] = ("api", "graphql", "search", "discover")
    container_selectors: Tuple[str, ...] = (
        '[class*="card"]',
        '[class*="product"]',
        '[class*="item"]',
        '[data-testid*="product"]',
    )
    blocking_markers: Tuple[str, ...] = ("blocked", "captcha", "cloudflare")
    no_results_markers: Tuple[str, ...] = ("no results", "nothing found", "0 results")

    @property
    def product_link_selector(self) -> str:
        """CSS selector for anchors pointing into the product namespace."""
        return f'a[href*="{self.product_path_prefix}"]'

    @property
    def ready_selector(self) -> str:
        """Selector that signals at least one product-shaped link has rendered."""
        return f'{self.product_link_selector}:not([href*="/search"])'

    def search_url(self, query: str) -> str:
        return self.search_url_template.format(query=quote(query, safe=""))

    def profile_url(self, handle: str) -> str:
        return self.profile_url_template.format(handle=handle.lstrip("@"))

    @staticmethod
    def matching_markers(markers: Tuple[str, ...], text: str) -> List[str]:
        """Markers present in already-lowercased page text."""
        found = []
        for marker in markers:
            pattern = re.escape(marker)
            # "0 results" must not match "10 results" or "1,000 results"
            if marker[:1].isdigit():
                pattern = r"(?<![\d.,])" + pattern
            if re.search(pattern, text):
                found.append(marker)
        return found


SITE_CONFIGS: Dict[str, SiteConfig] = {
    "whop": SiteConfig(
        name="Whop",
        base_url="https://whop.com",
        search_url_template="https://whop.com/discover/search/?q={query}",
        title_suffix=" | Whop",
        house_handles=("whopio", "whophq", "whop", "whopcom", "whop_io", "whop_hq"),
        profile_host="whop.com",
        profile_url_template="https://whop.com/@{handle}",
        listing_endpoint_patterns=("segapi.whop.com", "api", "graphql", "search", "discover"),
    ),
}

DEFAULT_SITE = "whop"


# ============================================================================
# Crawl Tuning
# ============================================================================

@dataclass(frozen=True)
class ReadinessBudget:
    """Bounded waits for one interact-and-detect cycle."""
    pointer_settle: Tuple[float, float]
    wheel_settle: Tuple[float, float]
    response_timeout: float
    dom_settle_after_response: Tuple[float, float]
    delay_without_response: float
    growth_timeout: float
    idle_timeout: float
    idle_quiet: float = 1.0


# Far from the target we can afford to wait longer for a batch to land
FAR_BUDGET = ReadinessBudget(
    pointer_settle=(0.4, 0.8),
    wheel_settle=(0.6, 1.2),
    response_timeout=20.0,
    dom_settle_after_response=(2.0, 4.0),
    delay_without_response=3.0,
    growth_timeout=15.0,
    idle_timeout=8.0,
)

NEAR_BUDGET = ReadinessBudget(
    pointer_settle=(0.2, 0.5),
    wheel_settle=(0.3, 0.7),
    response_timeout=15.0,
    dom_settle_after_response=(1.0, 2.0),
    delay_without_response=2.0,
    growth_timeout=10.0,
    idle_timeout=5.0,
)

SOCIAL_FIELDS: Tuple[str, ...] = (
    "twitter", "instagram", "youtube", "tiktok", "discord", "linkedin", "telegram",
)


@dataclass
class CrawlerConfig:
    """Configuration for one crawl run."""
    search_query: str = "TRADING"
    max_products: int = 100
    site: str = DEFAULT_SITE
    headless: bool = True
    debug: bool = False
    output_dir: str = "output"

    # Browser
    viewport: Tuple[int, int] = (1920, 1080)
    user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    )

    # Search page
    search_nav_timeout: float = 60.0
    initial_settle: float = 5.0
    initial_link_timeout: float = 10.0

    # Discovery loop
    max_scroll_attempts: int = 100
    empty_tolerance_far: int = 5
    empty_tolerance_near: int = 3
    near_target_ratio: float = 0.9
    poll_interval: float = 0.5
    wheel_delta: Tuple[int, int] = (500, 1000)
    pointer_steps: int = 10
    far_budget: ReadinessBudget = FAR_BUDGET
    near_budget: ReadinessBudget = NEAR_BUDGET

    # Final settle after the loop exits
    final_idle_quiet: float = 2.0
    final_idle_timeout: float = 15.0
    final_settle: float = 3.0

    # Detail pages
    detail_nav_timeout: float = 30.0
    profile_nav_timeout: float = 20.0
    item_delay: float = 1.0
    # Profile page is visited only when every one of these fields came back empty
    profile_fallback_when_missing: Tuple[str, ...] = SOCIAL_FIELDS

    @property
    def site_config(self) -> SiteConfig:
        try:
            return SITE_CONFIGS[self.site]
        except KeyError:
            raise ValueError(f"Unknown site '{self.site}'. Available: {', '.join(SITE_CONFIGS)}")

    def is_near_target(self, discovered: int) -> bool:
        """True once the discovered count is within the near-target band."""
        return discovered >= self.max_products * self.near_target_ratio

    def empty_tolerance(self, discovered: int) -> int:
        return self.empty_tolerance_near if self.is_near_target(discovered) else self.empty_tolerance_far

    def budget(self, discovered: int) -> ReadinessBudget:
        return self.near_budget if self.is_near_target(discovered) else self.far_budget

    def with_overrides(self, **kwargs) -> "CrawlerConfig":
        """Return a copy with the given fields replaced; None values are ignored."""
        return replace(self, **{k: v for k, v in kwargs.items() if v is not None})

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "CrawlerConfig":
        """
        Build a configuration from DISCOVER_* environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            CrawlerConfig with any recognised variables applied
        """
        env = os.environ if environ is None else environ
        overrides = {}

        def _bool(value: str) -> bool:
            return value.strip().lower() in ("1", "true", "yes", "on")

        casts = {
            "DISCOVER_SEARCH_QUERY": ("search_query", str),
            "DISCOVER_MAX_PRODUCTS": ("max_products", int),
            "DISCOVER_SITE": ("site", str),
            "DISCOVER_HEADLESS": ("headless", _bool),
            "DISCOVER_DEBUG": ("debug", _bool),
            "DISCOVER_OUTPUT_DIR": ("output_dir", str),
            "DISCOVER_MAX_SCROLL_ATTEMPTS": ("max_scroll_attempts", int),
            "DISCOVER_ITEM_DELAY": ("item_delay", float),
            "DISCOVER_NEAR_TARGET_RATIO": ("near_target_ratio", float),
        }
        for var, (attr, cast) in casts.items():
            raw = env.get(var)
            if raw is None or raw == "":
                continue
            try:
                overrides[attr] = cast(raw)
            except ValueError:
                raise ValueError(f"Invalid value for {var}: {raw!r}")

        return cls(**overrides)
