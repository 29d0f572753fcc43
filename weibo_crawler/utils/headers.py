"""
User-Agent and header generation utilities.
Maintains consistency between UA and related headers.
"""

import random
from typing import Optional

from ..config import WEIBO_MOBILE_HOST


# The mobile API only answers consistently to mobile browser profiles
UA_PROFILES = {
    "iphone_safari": {
        "user_agent": (
            "Mozilla/5.0 (iPhone; CPU iPhone OS 16_5 like Mac OS X) "
            "AppleWebKit/605.1.15 (KHTML, like Gecko) "
            "Version/16.5 Mobile/15E148 Safari/604.1"
        ),
        "sec_ch_ua": None,  # Safari doesn't send these
        "sec_ch_ua_mobile": None,
        "sec_ch_ua_platform": None,
        "accept_language": "zh-CN,zh;q=0.9,en;q=0.8",
    },
    "ipad_safari": {
        "user_agent": (
            "Mozilla/5.0 (iPad; CPU OS 16_5 like Mac OS X) "
            "AppleWebKit/605.1.15 (KHTML, like Gecko) "
            "Version/16.5 Mobile/15E148 Safari/604.1"
        ),
        "sec_ch_ua": None,
        "sec_ch_ua_mobile": None,
        "sec_ch_ua_platform": None,
        "accept_language": "zh-CN,zh;q=0.9,en;q=0.8",
    },
    "android_chrome": {
        "user_agent": (
            "Mozilla/5.0 (Linux; Android 10; K) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/114.0.0.0 Mobile Safari/537.36"
        ),
        "sec_ch_ua": '"Not.A/Brand";v="8", "Chromium";v="114", "Google Chrome";v="114"',
        "sec_ch_ua_mobile": "?1",
        "sec_ch_ua_platform": '"Android"',
        "accept_language": "zh-CN,zh;q=0.9,en;q=0.8",
    },
    "android_samsung": {
        "user_agent": (
            "Mozilla/5.0 (Linux; Android 13; SAMSUNG SM-S918B) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "SamsungBrowser/21.0 Chrome/110.0.5481.154 Mobile Safari/537.36"
        ),
        "sec_ch_ua": None,
        "sec_ch_ua_mobile": None,
        "sec_ch_ua_platform": None,
        "accept_language": "zh-CN,zh;q=0.9,en;q=0.8",
    },
}


class HeaderGenerator:
    """
    Generates consistent browser headers.
    Once a profile is selected, it remains consistent for the session.
    """

    def __init__(self, profile_name: Optional[str] = None):
        """
        Initialize with a specific profile or random selection.

        Args:
            profile_name: Specific profile to use, or None for random
        """
        if profile_name and profile_name in UA_PROFILES:
            self.profile_name = profile_name
        else:
            self.profile_name = random.choice(list(UA_PROFILES.keys()))

        self.profile = UA_PROFILES[self.profile_name]

    def _client_hints(self) -> dict[str, str]:
        if not self.profile.get("sec_ch_ua"):
            return {}
        return {
            "Sec-CH-UA": self.profile["sec_ch_ua"],
            "Sec-CH-UA-Mobile": self.profile["sec_ch_ua_mobile"],
            "Sec-CH-UA-Platform": self.profile["sec_ch_ua_platform"],
        }

    def get_api_headers(self, cookie_str: str) -> dict[str, str]:
        """
        Get headers for mobile API calls.

        Args:
            cookie_str: Serialized session cookies
        """
        headers = {
            "User-Agent": self.profile["user_agent"],
            "Accept": "application/json, text/plain, */*",
            "Accept-Language": self.profile["accept_language"],
            "Content-Type": "application/json;charset=UTF-8",
            "Origin": WEIBO_MOBILE_HOST,
            "Referer": WEIBO_MOBILE_HOST,
            "X-Requested-With": "XMLHttpRequest",
            "Cookie": cookie_str,
        }
        headers.update(self._client_hints())
        return headers

    @property
    def user_agent(self) -> str:
        """Get the current user agent string."""
        return self.profile["user_agent"]
