"""
Weibo Crawler - session-authenticated crawler for the Weibo mobile API.

This crawler:
- Logs in through a real browser (QR code scan or cookie string)
- Replays the browser session over plain HTTP
- Walks comment threads and creator timelines with pacing and limits
- Re-checks the session before every crawl call
"""

from .client import WeiboClient
from .config import CrawlerConfig, SearchType
from .crawler import CrawlController
from .exceptions import (
    CrawlerError,
    DataFetchError,
    CookieRefreshError,
    PreconditionError,
    SessionExpiredError,
    LoginError,
    LoginNotSupportedError,
)
from .lifecycle import WeiboCrawler
from .login import WeiboLogin
from .models import (
    ContainerContext,
    CrawlOutcome,
    CrawlResult,
    CreatorInfo,
    LoginCredentials,
    LoginType,
)
from .session import Session

__version__ = "1.0.0"
__all__ = [
    "WeiboCrawler",
    "WeiboClient",
    "WeiboLogin",
    "CrawlController",
    "CrawlerConfig",
    "SearchType",
    "Session",
    "ContainerContext",
    "CrawlOutcome",
    "CrawlResult",
    "CreatorInfo",
    "LoginCredentials",
    "LoginType",
    "CrawlerError",
    "DataFetchError",
    "CookieRefreshError",
    "PreconditionError",
    "SessionExpiredError",
    "LoginError",
    "LoginNotSupportedError",
]
