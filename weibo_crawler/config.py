"""
Configuration settings for the Weibo crawler.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass
class CrawlerConfig:
    """Main configuration for the crawler."""

    # Request settings
    request_timeout: float = 10.0  # Seconds per HTTP call
    crawl_interval: float = 1.0  # Seconds between two pages of a collection

    # Limits
    max_notes_count: Optional[int] = None  # None = up to the reported total
    max_comments_count: int = 10
    enable_sub_comments: bool = False  # Flatten inline replies (one level)

    # Login settings
    login_type: str = "qrcode"  # qrcode / phone / cookie
    cookies: str = ""
    auto_login: bool = False
    qrcode_poll_interval: float = 1.0
    qrcode_poll_attempts: int = 600  # 10 minutes at one poll per second
    login_settle_delay: float = 5.0  # Wait for redirect-issued cookies

    # Browser settings
    headless: bool = False
    save_login_state: bool = True
    user_data_dir: str = "weibo_user_data_dir"

    # Single outbound proxy, no rotation
    proxy_url: Optional[str] = None

    # User agent profile (None = random)
    ua_profile: Optional[str] = None

    # Output settings
    output_dir: str = "output"


class SearchType(str, Enum):
    """Container type codes accepted by the search endpoint."""
    DEFAULT = "1"
    REAL_TIME = "61"
    POPULAR = "60"
    VIDEO = "64"


# Weibo endpoints
WEIBO_MOBILE_HOST = "https://m.weibo.cn"
WEIBO_SSO_LOGIN_URL = "https://passport.weibo.com/sso/signin?entry=miniblog&source=miniblog"
WEIBO_IMAGE_AGENT_HOST = "https://i1.wp.com/"
WEIBO_COOKIE_DOMAIN = ".weibo.cn"

API_CONFIG_URI = "/api/config"
API_CONTAINER_URI = "/api/container/getIndex"
API_COMMENTS_URI = "/comments/hotflow"

# Login detection
QRCODE_IMG_SELECTOR = "xpath=//img[@class='w-full h-full']"
LOGGED_IN_COOKIE = "SSOLoginState"
ANONYMOUS_SESSION_COOKIE = "WBPSESS"

# Required for any creator timeline request
SESSION_SCOPE_COOKIE = "M_WEIBOCN_PARAMS"

# card_type of a genuine post among mixed timeline cards
NOTE_CARD_TYPE = 9

# Pattern of the inline state embedded in a post detail page
RENDER_DATA_PATTERN = r"var \$render_data = (\[.*?\])\[0\]"
