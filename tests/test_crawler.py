"""Tests for CrawlController pagination, truncation, pacing and cancellation."""
import asyncio

from weibo_crawler.config import CrawlerConfig
from weibo_crawler.crawler import CrawlController
from weibo_crawler.models import CrawlOutcome

from fakes import SleepRecorder


class ScriptedClient:
    """Stands in for WeiboClient, serving pre-built pages in order."""

    def __init__(self, comment_pages=None, timeline_pages=None):
        self.comment_pages = list(comment_pages or [])
        self.timeline_pages = list(timeline_pages or [])
        self.comment_calls = []
        self.timeline_calls = []
        self.search_calls = []

    async def get_note_comments(self, mid_id, max_id):
        self.comment_calls.append((mid_id, max_id))
        return self.comment_pages.pop(0)

    async def get_notes_by_creator(self, creator_id, container_id, since_id="0"):
        self.timeline_calls.append((creator_id, container_id, since_id))
        return self.timeline_pages.pop(0)

    async def get_note_by_keyword(self, keyword, page=1, search_type=None):
        self.search_calls.append((keyword, page, search_type))
        return {"cards": [{"card_type": 9}]}


def _comments(start, n, replies=0):
    return [
        {"id": start + i, "comments": [{"id": f"r{start + i}-{j}"} for j in range(replies)] or False}
        for i in range(n)
    ]


def _cards(types, start=0):
    return [{"card_type": t, "mblog": {"id": str(start + i)}} for i, t in enumerate(types)]


def _controller(client, **config_kwargs):
    sleep = SleepRecorder()
    config = CrawlerConfig(crawl_interval=1.5, **config_kwargs)
    return CrawlController(client, config, sleep=sleep), sleep


# ── Comments ────────────────────────────────────────────────────────────────

def test_comments_truncated_to_remaining_budget():
    client = ScriptedClient(comment_pages=[{"max_id": 77, "data": _comments(0, 5)}])
    controller, sleep = _controller(client)

    result = asyncio.run(controller.get_note_all_comments("123", max_count=3))

    assert [c["id"] for c in result.items] == [0, 1, 2]
    assert result.outcome == CrawlOutcome.LIMIT_REACHED
    assert sleep.calls == []


def test_comments_stop_when_budget_met_before_cursor_check():
    client = ScriptedClient(comment_pages=[
        {"max_id": 5, "data": _comments(0, 12)},
        {"max_id": 0, "data": _comments(100, 4)},
    ])
    controller, _ = _controller(client)

    result = asyncio.run(controller.get_note_all_comments("123", max_count=10))

    assert len(result.items) == 10
    assert client.comment_calls == [("123", -1)]
    assert result.pages == 1


def test_comments_second_page_truncated_to_remaining_budget():
    client = ScriptedClient(comment_pages=[
        {"max_id": 5, "data": _comments(0, 8)},
        {"max_id": 0, "data": _comments(8, 6)},
    ])
    controller, sleep = _controller(client)

    result = asyncio.run(controller.get_note_all_comments("123", max_count=10))

    assert [c["id"] for c in result.items] == list(range(10))
    assert result.outcome == CrawlOutcome.LIMIT_REACHED
    assert len(client.comment_calls) == 2
    assert sleep.calls == [1.5]


def test_comments_follow_cursor_until_exhausted():
    client = ScriptedClient(comment_pages=[
        {"max_id": 5, "data": _comments(0, 8)},
        {"max_id": 9, "data": _comments(8, 8)},
        {"max_id": 0, "data": _comments(16, 3)},
    ])
    controller, sleep = _controller(client)

    result = asyncio.run(controller.get_note_all_comments("123", max_count=100))

    assert [c["id"] for c in result.items] == list(range(19))
    assert [call[1] for call in client.comment_calls] == [-1, 5, 9]
    assert result.outcome == CrawlOutcome.EXHAUSTED
    assert result.cursor == "0"
    # Paced between pages only
    assert sleep.calls == [1.5, 1.5]


def test_comments_callback_sees_each_page_before_next_fetch():
    client = ScriptedClient(comment_pages=[
        {"max_id": 5, "data": _comments(0, 2)},
        {"max_id": 0, "data": _comments(2, 2)},
    ])
    controller, _ = _controller(client)
    seen = []

    async def callback(note_id, comments):
        seen.append((note_id, [c["id"] for c in comments], len(client.comment_calls)))

    asyncio.run(controller.get_note_all_comments("123", max_count=10, callback=callback))

    assert seen == [("123", [0, 1], 1), ("123", [2, 3], 2)]


def test_comments_sync_callback_supported():
    client = ScriptedClient(comment_pages=[{"max_id": 0, "data": _comments(0, 2)}])
    controller, _ = _controller(client)
    seen = []

    asyncio.run(controller.get_note_all_comments(
        "123", max_count=10, callback=lambda nid, comments: seen.append(len(comments))
    ))
    assert seen == [2]


def test_sub_comments_ignored_when_disabled():
    client = ScriptedClient(comment_pages=[{"max_id": 0, "data": _comments(0, 2, replies=3)}])
    controller, _ = _controller(client, enable_sub_comments=False)

    result = asyncio.run(controller.get_note_all_comments("123", max_count=50))
    assert len(result.items) == 2


def test_sub_comments_flattened_one_level():
    client = ScriptedClient(comment_pages=[{"max_id": 0, "data": _comments(0, 2, replies=2)}])
    controller, _ = _controller(client, enable_sub_comments=True)
    batches = []

    result = asyncio.run(controller.get_note_all_comments(
        "123", max_count=50, callback=lambda nid, c: batches.append([x["id"] for x in c])
    ))

    assert [c["id"] for c in result.items] == [0, 1, "r0-0", "r0-1", "r1-0", "r1-1"]
    assert batches == [[0, 1], ["r0-0", "r0-1"], ["r1-0", "r1-1"]]


def test_sub_comments_respect_max_count():
    client = ScriptedClient(comment_pages=[
        {"max_id": 5, "data": _comments(0, 3, replies=4)},
        {"max_id": 0, "data": _comments(3, 3)},
    ])
    controller, _ = _controller(client, enable_sub_comments=True)

    result = asyncio.run(controller.get_note_all_comments("123", max_count=5))

    assert [c["id"] for c in result.items] == [0, 1, 2, "r0-0", "r0-1"]
    assert len(client.comment_calls) == 1


def test_comments_never_exceed_max_count():
    for max_count in range(0, 12):
        client = ScriptedClient(comment_pages=[
            {"max_id": 1, "data": _comments(0, 4, replies=2)},
            {"max_id": 2, "data": _comments(4, 4, replies=2)},
            {"max_id": 0, "data": _comments(8, 4, replies=2)},
        ])
        controller, _ = _controller(client, enable_sub_comments=True)
        result = asyncio.run(controller.get_note_all_comments("123", max_count=max_count))
        assert len(result.items) <= max_count


def test_comments_zero_max_count_makes_no_call():
    client = ScriptedClient()
    controller, _ = _controller(client)

    result = asyncio.run(controller.get_note_all_comments("123", max_count=0))
    assert result.items == []
    assert client.comment_calls == []


def test_comments_cancelled():
    client = ScriptedClient(comment_pages=[
        {"max_id": 5, "data": _comments(0, 2)},
        {"max_id": 0, "data": _comments(2, 2)},
    ])
    controller, _ = _controller(client)
    cancel = asyncio.Event()

    result = asyncio.run(controller.get_note_all_comments(
        "123", max_count=10, callback=lambda nid, c: cancel.set(), cancel_event=cancel
    ))

    assert result.outcome == CrawlOutcome.CANCELLED
    assert len(result.items) == 2
    assert len(client.comment_calls) == 1


# ── Timeline ────────────────────────────────────────────────────────────────

def _timeline_page(types, since_id, total=100, start=0):
    return {"cardlistInfo": {"since_id": since_id, "total": total}, "cards": _cards(types, start)}


def test_timeline_keeps_only_note_cards():
    client = ScriptedClient(timeline_pages=[_timeline_page([9, 2, 9, 4], since_id="0", total=4)])
    controller, _ = _controller(client)

    result = asyncio.run(controller.get_all_notes_by_creator_id("5533", "107603"))

    assert [c["mblog"]["id"] for c in result.items] == ["0", "2"]
    assert all(c["card_type"] == 9 for c in result.items)
    assert result.outcome == CrawlOutcome.EXHAUSTED


def test_timeline_max_count_across_pages_paces_between_pages():
    client = ScriptedClient(timeline_pages=[
        _timeline_page([9] * 10, since_id="s2", start=0),
        _timeline_page([9] * 10, since_id="s3", start=10),
        _timeline_page([9] * 10, since_id="s4", start=20),
    ])
    controller, sleep = _controller(client)

    result = asyncio.run(controller.get_all_notes_by_creator_id(
        "5533", "107603", crawl_interval=2.0, max_count=25
    ))

    assert len(result.items) == 25
    assert result.items[-1]["mblog"]["id"] == "24"
    assert result.outcome == CrawlOutcome.LIMIT_REACHED
    assert [call[2] for call in client.timeline_calls] == ["", "s2", "s3"]
    assert sleep.calls == [2.0, 2.0]


def test_timeline_stops_at_reported_total():
    client = ScriptedClient(timeline_pages=[
        _timeline_page([9] * 10, since_id="s2", total=15),
        _timeline_page([9] * 5, since_id="s3", total=15, start=10),
    ])
    controller, _ = _controller(client)

    result = asyncio.run(controller.get_all_notes_by_creator_id("5533", "107603"))

    assert len(result.items) == 15
    assert len(client.timeline_calls) == 2
    assert result.outcome == CrawlOutcome.EXHAUSTED


def test_timeline_stops_on_exhausted_cursor():
    client = ScriptedClient(timeline_pages=[
        _timeline_page([9] * 3, since_id="", total=1000),
    ])
    controller, _ = _controller(client)

    result = asyncio.run(controller.get_all_notes_by_creator_id("5533", "107603", max_count=50))

    assert len(result.items) == 3
    assert result.outcome == CrawlOutcome.EXHAUSTED


def test_timeline_missing_cards_is_blocked_not_error():
    client = ScriptedClient(timeline_pages=[
        _timeline_page([9] * 10, since_id="s2"),
        {"cardlistInfo": {"since_id": "s3", "total": 100}},
    ])
    controller, sleep = _controller(client)

    result = asyncio.run(controller.get_all_notes_by_creator_id("5533", "107603", max_count=50))

    assert len(result.items) == 10
    assert result.outcome == CrawlOutcome.BLOCKED
    assert sleep.calls == [1.5]


def test_timeline_empty_response_is_blocked():
    client = ScriptedClient(timeline_pages=[{}])
    controller, _ = _controller(client)

    result = asyncio.run(controller.get_all_notes_by_creator_id("5533", "107603"))
    assert result.items == []
    assert result.outcome == CrawlOutcome.BLOCKED


def test_timeline_callback_receives_filtered_pages():
    client = ScriptedClient(timeline_pages=[
        _timeline_page([9, 11, 9], since_id="s2", total=6),
        _timeline_page([9, 9, 9], since_id="0", total=6, start=3),
    ])
    controller, _ = _controller(client)
    pages = []

    async def callback(notes):
        pages.append(len(notes))

    asyncio.run(controller.get_all_notes_by_creator_id("5533", "107603", callback=callback))
    assert pages == [2, 3]


def test_timeline_cancelled_before_first_page():
    client = ScriptedClient(timeline_pages=[_timeline_page([9] * 10, since_id="s2")])
    controller, _ = _controller(client)
    cancel = asyncio.Event()
    cancel.set()

    result = asyncio.run(controller.get_all_notes_by_creator_id("5533", "107603", cancel_event=cancel))

    assert result.outcome == CrawlOutcome.CANCELLED
    assert client.timeline_calls == []


def test_search_is_single_page_passthrough():
    client = ScriptedClient()
    controller, sleep = _controller(client)

    data = asyncio.run(controller.search("python", page=3))

    assert data == {"cards": [{"card_type": 9}]}
    assert client.search_calls[0][:2] == ("python", 3)
    assert sleep.calls == []


def test_timeline_max_count_ignores_missing_total():
    pages = [
        {"cardlistInfo": {"since_id": f"s{i + 2}"}, "cards": _cards([9] * 10, start=i * 10)}
        for i in range(3)
    ]
    client = ScriptedClient(timeline_pages=pages)
    controller, sleep = _controller(client)

    result = asyncio.run(controller.get_all_notes_by_creator_id(
        "5533", "107603", crawl_interval=1.0, max_count=25
    ))

    assert len(result.items) == 25
    assert result.outcome == CrawlOutcome.LIMIT_REACHED
    assert result.pages == 3
    assert sleep.calls == [1.0, 1.0]


def test_timeline_max_count_follows_cursor_past_reported_total():
    client = ScriptedClient(timeline_pages=[
        _timeline_page([9] * 10, since_id="s2", total=10),
        _timeline_page([9] * 10, since_id="0", total=10, start=10),
    ])
    controller, _ = _controller(client)

    result = asyncio.run(controller.get_all_notes_by_creator_id("5533", "107603", max_count=15))

    assert len(result.items) == 15
    assert len(client.timeline_calls) == 2


def test_timeline_limit_defaults_to_config():
    client = ScriptedClient(timeline_pages=[
        _timeline_page([9] * 10, since_id="s2", total=100),
    ])
    controller, _ = _controller(client, max_notes_count=4)

    result = asyncio.run(controller.get_all_notes_by_creator_id("5533", "107603"))

    assert len(result.items) == 4
    assert result.outcome == CrawlOutcome.LIMIT_REACHED
    assert len(client.timeline_calls) == 1
