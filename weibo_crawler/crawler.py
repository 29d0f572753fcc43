"""
Pagination controller walking comment threads, creator timelines and search.

Pages are fetched strictly one after another: a page's callback runs before
the next page is requested, and limits are checked before pacing so no
delay follows the last page.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional

from .client import WeiboClient
from .config import CrawlerConfig, SearchType
from .models import CrawlOutcome, CrawlResult
from .parsers import CardParser, CommentParser

logger = logging.getLogger(__name__)

CommentCallback = Callable[[str, list[dict]], Any]
NotesCallback = Callable[[list[dict]], Any]


async def _invoke(callback: Optional[Callable[..., Any]], *args):
    """Run a per-page callback, awaiting it when it is a coroutine function."""
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


def _cancelled(cancel_event: Optional[asyncio.Event]) -> bool:
    return cancel_event is not None and cancel_event.is_set()


class CrawlController:
    """Drives WeiboClient calls across pages until exhaustion or a limit."""

    def __init__(
        self,
        client: WeiboClient,
        config: Optional[CrawlerConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.config = config or client.config
        self._sleep = sleep

    async def _pace(self, seconds: float):
        if seconds > 0:
            await self._sleep(seconds)

    async def search(
        self,
        keyword: str,
        page: int = 1,
        search_type: SearchType = SearchType.DEFAULT,
    ) -> dict:
        """Single page of search results; callers paginate by page number."""
        return await self.client.get_note_by_keyword(keyword, page, search_type)

    async def get_note_all_comments(
        self,
        note_id: str,
        crawl_interval: Optional[float] = None,
        max_count: Optional[int] = None,
        callback: Optional[CommentCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> CrawlResult:
        """
        Walk a post's comment thread along its `max_id` cursor.

        Args:
            note_id: Post id
            crawl_interval: Seconds to wait between pages
            max_count: Maximum records returned, sub-comments included
            callback: Called with (note_id, comments) for every batch appended
            cancel_event: Stops the walk before the next page when set

        Returns:
            CrawlResult with at most `max_count` comments in discovery order
        """
        if crawl_interval is None:
            crawl_interval = self.config.crawl_interval
        if max_count is None:
            max_count = self.config.max_comments_count

        result: list[dict] = []
        max_id = -1
        pages = 0

        if max_count <= 0:
            return CrawlResult(items=result, outcome=CrawlOutcome.LIMIT_REACHED)

        while True:
            if _cancelled(cancel_event):
                logger.info(f"Comment crawl for {note_id} cancelled after {pages} pages")
                outcome = CrawlOutcome.CANCELLED
                break

            comments_res = await self.client.get_note_comments(note_id, max_id)
            if not isinstance(comments_res, dict):
                comments_res = {}
            pages += 1

            max_id = CommentParser.parse_max_id(comments_res)
            comment_list = comments_res.get("data") or []

            remaining = max_count - len(result)
            if len(comment_list) > remaining:
                comment_list = comment_list[:remaining]

            await _invoke(callback, note_id, comment_list)
            result.extend(comment_list)

            sub_comments = await self._flatten_sub_comments(
                note_id, comment_list, max_count - len(result), callback
            )
            result.extend(sub_comments)

            logger.info(
                f"Note {note_id}: page {pages}, {len(comment_list)} comments, "
                f"{len(sub_comments)} replies, {len(result)}/{max_count} total"
            )

            if len(result) >= max_count:
                outcome = CrawlOutcome.LIMIT_REACHED
                break
            if max_id == 0:
                outcome = CrawlOutcome.EXHAUSTED
                break

            await self._pace(crawl_interval)

        return CrawlResult(items=result, outcome=outcome, pages=pages, cursor=str(max_id))

    async def _flatten_sub_comments(
        self,
        note_id: str,
        comment_list: list[dict],
        budget: int,
        callback: Optional[CommentCallback] = None,
    ) -> list[dict]:
        """
        Collect replies embedded inline in `comment_list`, one level deep.

        Reply threads are not paginated further.
        """
        if not self.config.enable_sub_comments:
            return []

        collected: list[dict] = []
        for comment in comment_list:
            if len(collected) >= budget:
                break
            replies = CommentParser.sub_comments(comment)
            if not replies:
                continue
            replies = replies[:budget - len(collected)]
            await _invoke(callback, note_id, replies)
            collected.extend(replies)

        return collected

    async def get_all_notes_by_creator_id(
        self,
        creator_id: str,
        container_id: str,
        crawl_interval: Optional[float] = None,
        max_count: Optional[int] = None,
        callback: Optional[NotesCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> CrawlResult:
        """
        Walk a creator's timeline along its `since_id` cursor.

        Only post cards (card_type 9) are kept. With a `max_count` the walk
        follows the cursor until the limit is met; without one it ends once
        the fetched card count reaches the platform-reported total.
        `max_count` falls back to `config.max_notes_count`.
        A page without a `cards` list ends the walk with outcome BLOCKED: it
        usually means access was refused rather than the timeline running out.

        Args:
            creator_id: Creator uid
            container_id: lfid container of the creator's posts
            crawl_interval: Seconds to wait between pages
            max_count: Maximum posts returned (defaults to config.max_notes_count)
            callback: Called with the posts of every page
            cancel_event: Stops the walk before the next page when set
        """
        if crawl_interval is None:
            crawl_interval = self.config.crawl_interval
        if max_count is None:
            max_count = self.config.max_notes_count

        result: list[dict] = []
        since_id = ""
        fetched = 0
        pages = 0

        if max_count is not None and max_count <= 0:
            return CrawlResult(items=result, outcome=CrawlOutcome.LIMIT_REACHED)

        while True:
            if _cancelled(cancel_event):
                logger.info(f"Timeline crawl for {creator_id} cancelled after {pages} pages")
                outcome = CrawlOutcome.CANCELLED
                break

            notes_res = await self.client.get_notes_by_creator(creator_id, container_id, since_id)
            pages += 1

            if not notes_res or not isinstance(notes_res, dict):
                logger.warning(f"Creator {creator_id}: empty timeline response, access may be blocked")
                outcome = CrawlOutcome.BLOCKED
                break

            since_id = CardParser.parse_since_id(notes_res)
            cards = notes_res.get("cards")
            if not isinstance(cards, list):
                logger.warning(
                    f"Creator {creator_id}: no 'cards' in timeline response "
                    f"(keys: {sorted(notes_res)}), access may be blocked"
                )
                outcome = CrawlOutcome.BLOCKED
                break

            notes = CardParser.filter_note_cards(cards)
            if max_count is not None and len(notes) > max_count - len(result):
                notes = notes[:max_count - len(result)]

            await _invoke(callback, notes)
            result.extend(notes)

            fetched += len(cards)
            total = CardParser.parse_total(notes_res)
            logger.info(
                f"Creator {creator_id}: page {pages}, {len(cards)} cards, "
                f"{len(notes)} posts kept, {len(result)} collected, total {total}"
            )

            if max_count is not None and len(result) >= max_count:
                outcome = CrawlOutcome.LIMIT_REACHED
                break
            if since_id == "0" or (max_count is None and fetched >= total):
                outcome = CrawlOutcome.EXHAUSTED
                break

            await self._pace(crawl_interval)

        return CrawlResult(items=result, outcome=outcome, pages=pages, cursor=since_id or None)
