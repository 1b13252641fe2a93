"""
Discover catalog crawler.

Components:
- DiscoveryLoop: scrolls the search page until enough product URLs are found
- ReadinessDetector: decides whether a scroll produced new results
- DetailExtractor: product name, creator and social links from a product page
- run_scraper: discovery plus extraction with per-product progress events
"""

from .canonicalize import canonicalize
from .config import CrawlerConfig, SiteConfig, SITE_CONFIGS
from .discovery import CrawlState, DiagnosticCategory, DiscoveredSet, DiscoveryLoop, DiscoveryResult
from .exceptions import (
    BrowserLaunchError,
    CrawlerError,
    NavigationTimeout,
    SessionClosedError,
    SessionError,
)
from .extractor import DetailExtractor
from .models import CrawlStats, ProductRecord, ProgressEvent, RunResult
from .readiness import ReadinessDetector, ReadinessReport
from .report import Aggregator, to_csv, suggest_filename
from .runner import run_scraper
from .session import BrowserSession, NetworkExchange

__all__ = [
    # Core
    'canonicalize',
    'DiscoveryLoop',
    'DiscoveryResult',
    'DiscoveredSet',
    'CrawlState',
    'DiagnosticCategory',
    'ReadinessDetector',
    'ReadinessReport',
    'DetailExtractor',
    'run_scraper',
    # Configuration
    'CrawlerConfig',
    'SiteConfig',
    'SITE_CONFIGS',
    # Results
    'ProductRecord',
    'CrawlStats',
    'ProgressEvent',
    'RunResult',
    'Aggregator',
    'to_csv',
    'suggest_filename',
    # Session
    'BrowserSession',
    'NetworkExchange',
    # Errors
    'CrawlerError',
    'BrowserLaunchError',
    'SessionError',
    'NavigationTimeout',
    'SessionClosedError',
]
