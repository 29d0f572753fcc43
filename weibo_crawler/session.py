"""
Session store: the cookie jar and the header map derived from it.
"""

import logging
from typing import Iterable, Mapping, Optional

from .utils.headers import HeaderGenerator

logger = logging.getLogger(__name__)


def parse_cookie_string(cookie_str: str) -> dict[str, str]:
    """
    Parse a `k=v; k2=v2` cookie string into an ordered mapping.

    Pairs without a name or a value are skipped, so a malformed string
    yields an empty mapping instead of raising.
    """
    cookies: dict[str, str] = {}
    if not cookie_str:
        return cookies

    for part in cookie_str.split(";"):
        name, sep, value = part.strip().partition("=")
        name = name.strip()
        value = value.strip()
        if sep and name and value:
            cookies[name] = value

    return cookies


def serialize_cookies(cookies: Mapping[str, str]) -> str:
    """Join cookies into the standard Cookie header syntax."""
    return "; ".join(f"{name}={value}" for name, value in cookies.items())


def convert_browser_cookies(cookies: Optional[Iterable[dict]]) -> tuple[str, dict[str, str]]:
    """
    Convert browser-context cookie records into (cookie string, name -> value).

    Args:
        cookies: Cookie dicts as returned by BrowserContext.cookies()
    """
    if not cookies:
        return "", {}

    cookie_dict = {cookie["name"]: cookie["value"] for cookie in cookies}
    return serialize_cookies(cookie_dict), cookie_dict


class Session:
    """
    Authenticated identity replayed over plain HTTP.

    The `Cookie` header is always synthesized from the jar, so the two
    never drift apart. Mutations replace both at once.
    """

    def __init__(
        self,
        cookies: Optional[Mapping[str, str]] = None,
        header_gen: Optional[HeaderGenerator] = None,
    ):
        self.header_gen = header_gen or HeaderGenerator()
        self.cookies: dict[str, str] = {}
        self.headers: dict[str, str] = {}
        self._replace(dict(cookies or {}))

    @classmethod
    def from_cookie_string(cls, cookie_str: str, header_gen: Optional[HeaderGenerator] = None) -> "Session":
        return cls(parse_cookie_string(cookie_str), header_gen)

    @classmethod
    def from_browser_cookies(cls, cookies: Iterable[dict], header_gen: Optional[HeaderGenerator] = None) -> "Session":
        _, cookie_dict = convert_browser_cookies(cookies)
        return cls(cookie_dict, header_gen)

    def _replace(self, cookies: dict[str, str]):
        headers = self.header_gen.get_api_headers(serialize_cookies(cookies))
        self.cookies, self.headers = cookies, headers

    def update_from_browser_cookies(self, cookies: Iterable[dict]):
        """Replace the jar and the headers with a fresh browser jar."""
        _, cookie_dict = convert_browser_cookies(cookies)
        self._replace(cookie_dict)
        logger.debug(f"Session cookies updated: {len(cookie_dict)} cookies")

    @property
    def cookie_header(self) -> str:
        return self.headers["Cookie"]

    @property
    def is_empty(self) -> bool:
        return not self.cookies

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.cookies.get(name, default)

    def export(self) -> str:
        """Export as a `name=value; ...` string, usable as a Cookie header."""
        return serialize_cookies(self.cookies)

    def __repr__(self) -> str:
        return f"Session(cookies={list(self.cookies)})"
