"""
Session lifecycle: owns the browser, the optional client and the cached
container contexts, and guarantees a live session before every crawl call.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

import httpx
from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from .client import WeiboClient
from .config import CrawlerConfig, SearchType
from .crawler import CommentCallback, CrawlController, NotesCallback
from .exceptions import PreconditionError, SessionExpiredError
from .login import WeiboLogin
from .models import ContainerContext, CrawlResult, CreatorInfo, LoginCredentials
from .session import Session
from .utils.headers import HeaderGenerator

logger = logging.getLogger(__name__)


class WeiboCrawler:
    """
    Entry point of the crawl engine.

    Usage:
        async with WeiboCrawler(config, credentials=creds, auto_login=True) as crawler:
            result = await crawler.get_creator_notes("5533390220", max_count=25)

    Every public crawl method first runs `ensure_session()`: a missing or
    expired session is re-established when auto-login is permitted and
    credentials are known, otherwise a PreconditionError is raised before
    any network call.
    """

    def __init__(
        self,
        config: Optional[CrawlerConfig] = None,
        credentials: Optional[LoginCredentials] = None,
        auto_login: Optional[bool] = None,
        browser_context: Optional[BrowserContext] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            config: Crawler configuration (uses defaults if not provided)
            credentials: Credentials used by login() and auto-login
            auto_login: Overrides config.auto_login
            browser_context: Externally managed browser context; launched lazily if omitted
            transport: Custom httpx transport for the session client (tests)
            sleep: Awaitable sleep used for pacing and login waits
        """
        self.config = config or CrawlerConfig()
        self.credentials = credentials
        self.auto_login = self.config.auto_login if auto_login is None else auto_login
        self.header_gen = HeaderGenerator(self.config.ua_profile)
        self.browser_context = browser_context
        self.client: Optional[WeiboClient] = None

        self._owns_browser = browser_context is None
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._containers: dict[str, ContainerContext] = {}
        self._transport = transport
        self._sleep = sleep

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close the client and, if launched here, the browser."""
        if self.client:
            await self.client.close()
            self.client = None

        if not self._owns_browser:
            return
        if self.browser_context is not None:
            await self.browser_context.close()
            self.browser_context = None
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
        logger.info("Browser closed")

    async def _ensure_browser(self) -> BrowserContext:
        """Launch Chromium on first use."""
        if self.browser_context is not None:
            return self.browser_context

        self._playwright = await async_playwright().start()
        chromium = self._playwright.chromium
        proxy = {"server": self.config.proxy_url} if self.config.proxy_url else None

        if self.config.save_login_state:
            self.browser_context = await chromium.launch_persistent_context(
                user_data_dir=self.config.user_data_dir,
                headless=self.config.headless,
                proxy=proxy,
                user_agent=self.header_gen.user_agent,
                viewport={"width": 1920, "height": 1080},
            )
        else:
            self._browser = await chromium.launch(headless=self.config.headless, proxy=proxy)
            self.browser_context = await self._browser.new_context(
                user_agent=self.header_gen.user_agent,
                viewport={"width": 1920, "height": 1080},
            )

        logger.info(f"Browser launched (headless={self.config.headless})")
        return self.browser_context

    async def _context_page(self) -> Page:
        context = await self._ensure_browser()
        return context.pages[0] if context.pages else await context.new_page()

    @property
    def session(self) -> Optional[Session]:
        return self.client.session if self.client else None

    async def login(self, credentials: Optional[LoginCredentials] = None) -> Session:
        """
        Authenticate and replace the current client.

        Raises:
            PreconditionError: If no credentials are available
            LoginError: If the login flow fails
        """
        credentials = credentials or self.credentials
        if credentials is None:
            raise PreconditionError("No login credentials supplied")
        self.credentials = credentials

        page = await self._context_page()
        login = WeiboLogin(
            credentials,
            self.browser_context,
            page,
            config=self.config,
            header_gen=self.header_gen,
            sleep=self._sleep,
        )
        session = await login.begin()

        if self.client:
            await self.client.close()
        self.client = WeiboClient(session, self.config, self.browser_context, self._transport)
        self._containers.clear()

        logger.info(f"Logged in with {len(session.cookies)} cookies")
        return session

    async def ensure_session(self) -> WeiboClient:
        """
        Guarantee a live session, logging in again when permitted.

        Raises:
            PreconditionError: No session and auto-login not permitted
            SessionExpiredError: Probe failed and auto-login not permitted
        """
        can_login = self.auto_login and self.credentials is not None

        if self.client is None:
            if can_login:
                await self.login()
                return self.client
            raise PreconditionError(
                "No session: call login() first, or enable auto_login with credentials"
            )

        if await self.client.pong():
            return self.client

        if can_login:
            logger.warning("Session expired, logging in again")
            await self.login()
            return self.client

        raise SessionExpiredError("Session expired: call login() again, or enable auto_login")

    def _controller(self, client: WeiboClient) -> CrawlController:
        return CrawlController(client, self.config, sleep=self._sleep)

    async def search(
        self,
        keyword: str,
        page: int = 1,
        search_type: SearchType = SearchType.DEFAULT,
    ) -> dict:
        client = await self.ensure_session()
        return await self._controller(client).search(keyword, page, search_type)

    async def get_note_detail(self, note_id: str) -> dict:
        client = await self.ensure_session()
        return await client.get_note_info_by_id(note_id)

    async def get_note_comments(
        self,
        note_id: str,
        crawl_interval: Optional[float] = None,
        max_count: Optional[int] = None,
        callback: Optional[CommentCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> CrawlResult:
        client = await self.ensure_session()
        return await self._controller(client).get_note_all_comments(
            note_id,
            crawl_interval=crawl_interval,
            max_count=max_count,
            callback=callback,
            cancel_event=cancel_event,
        )

    async def get_creator_info(self, creator_id: str) -> CreatorInfo:
        """Fetch a creator profile; its container context is cached."""
        client = await self.ensure_session()
        return await self._fetch_creator_info(client, creator_id)

    async def _fetch_creator_info(self, client: WeiboClient, creator_id: str) -> CreatorInfo:
        info = await client.get_creator_info_by_id(creator_id)
        self._containers[creator_id] = info.container
        return info

    async def get_creator_notes(
        self,
        creator_id: str,
        crawl_interval: Optional[float] = None,
        max_count: Optional[int] = None,
        callback: Optional[NotesCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> CrawlResult:
        """Crawl a creator's timeline, resolving its container once per session."""
        client = await self.ensure_session()

        container = self._containers.get(creator_id)
        if container is None:
            container = (await self._fetch_creator_info(client, creator_id)).container

        return await self._controller(client).get_all_notes_by_creator_id(
            creator_id,
            container.lfid_container_id,
            crawl_interval=crawl_interval,
            max_count=max_count,
            callback=callback,
            cancel_event=cancel_event,
        )
