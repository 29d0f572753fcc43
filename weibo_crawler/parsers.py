"""
Parsers for extracting data from Weibo HTML pages, API payloads and cookies.
"""

import json
import logging
import re
from typing import Iterable, Optional
from urllib.parse import parse_qs, unquote

from .config import (
    NOTE_CARD_TYPE,
    RENDER_DATA_PATTERN,
    SESSION_SCOPE_COOKIE,
    WEIBO_IMAGE_AGENT_HOST,
)
from .exceptions import DataFetchError

logger = logging.getLogger(__name__)


class NoteParser:
    """Parses post detail pages."""

    @staticmethod
    def parse_render_data(html: str) -> dict:
        """
        Extract the post embedded in a detail page's `$render_data` script.

        Returns:
            {"mblog": status} or an empty dict when the page carries no state
        """
        match = re.search(RENDER_DATA_PATTERN, html, re.DOTALL)
        if not match:
            logger.info("No $render_data found in detail page")
            return {}

        try:
            render_data = json.loads(match.group(1))
        except json.JSONDecodeError as e:
            raise DataFetchError(f"Malformed $render_data: {e}")

        if not render_data or not isinstance(render_data[0], dict):
            return {}
        return {"mblog": render_data[0].get("status")}

    @staticmethod
    def build_large_image_url(image_url: str) -> str:
        """Rewrite a sinaimg URL to its large variant behind the image agent."""
        parts = re.sub(r"^https?://", "", image_url).split("/")

        path = ""
        for i, part in enumerate(parts):
            if i == 1:
                path += "large/"
            elif i == len(parts) - 1:
                path += part
            else:
                path += part + "/"

        return f"{WEIBO_IMAGE_AGENT_HOST}{path}"


class ContainerParser:
    """Resolves a creator's container ids."""

    @staticmethod
    def parse_scope_cookie(set_cookie_headers: Iterable[str]) -> tuple[str, str]:
        """
        Read fid/lfid from the M_WEIBOCN_PARAMS Set-Cookie header.

        The cookie value is a url-encoded query string, e.g.
        `M_WEIBOCN_PARAMS=fid%3D107603123%26lfid%3D100505123; path=/`.

        Returns:
            Tuple of (fid container id, lfid container id), each possibly empty

        Raises:
            DataFetchError: If the cookie is not among the headers
        """
        prefix = f"{SESSION_SCOPE_COOKIE}="
        header = next((h for h in set_cookie_headers if prefix in h), None)
        if header is None:
            logger.error(f"{SESSION_SCOPE_COOKIE} missing in Set-Cookie headers")
            raise DataFetchError("get containerid failed")

        raw_value = header[header.index(prefix) + len(prefix):].split(";")[0]
        params = parse_qs(unquote(raw_value))

        fid = params.get("fid", [""])[0]
        lfid = params.get("lfid", [""])[0]
        return fid, lfid

    @staticmethod
    def find_tab_container(user_res: dict, tab_key: str = "weibo") -> Optional[str]:
        """Container id of a profile tab, used to address the creator's posts."""
        tabs = (user_res.get("tabsInfo") or {}).get("tabs") or []
        for tab in tabs:
            if tab.get("tabKey") == tab_key and tab.get("containerid"):
                return str(tab["containerid"])
        return None


class CardParser:
    """Filters timeline cards."""

    @staticmethod
    def filter_note_cards(cards: list[dict]) -> list[dict]:
        """Keep only post cards, in their original relative order."""
        return [card for card in cards if card.get("card_type") == NOTE_CARD_TYPE]

    @staticmethod
    def parse_since_id(notes_res: dict) -> str:
        """Timeline cursor; "0" means exhausted."""
        since_id = (notes_res.get("cardlistInfo") or {}).get("since_id")
        return str(since_id) if since_id else "0"

    @staticmethod
    def parse_total(notes_res: dict) -> int:
        total = (notes_res.get("cardlistInfo") or {}).get("total") or 0
        try:
            return int(total)
        except (TypeError, ValueError):
            return 0


class CommentParser:
    """Parses comment thread pages."""

    @staticmethod
    def parse_max_id(comments_res: dict) -> int:
        """Comment cursor; 0 means exhausted."""
        try:
            return int(comments_res.get("max_id") or 0)
        except (TypeError, ValueError):
            return 0

    @staticmethod
    def sub_comments(comment: dict) -> list[dict]:
        """Replies embedded inline in a top-level comment."""
        replies = comment.get("comments")
        if isinstance(replies, list):
            return replies
        return []
