"""
Weibo mobile API client replaying a browser-issued session over plain HTTP.
"""

import logging
from typing import Any, Optional

import httpx
from playwright.async_api import BrowserContext

from .config import (
    CrawlerConfig,
    SearchType,
    WEIBO_MOBILE_HOST,
    API_CONFIG_URI,
    API_CONTAINER_URI,
    API_COMMENTS_URI,
    SESSION_SCOPE_COOKIE,
)
from .exceptions import CookieRefreshError, DataFetchError, PreconditionError
from .models import ApiEnvelope, ContainerContext, CreatorInfo
from .parsers import ContainerParser, NoteParser
from .session import Session

logger = logging.getLogger(__name__)


class WeiboClient:
    """
    Session-aware client for the Weibo mobile API.

    This client:
    - Sends every request with the Session's headers (Cookie included)
    - Decodes the `{ok, data, msg}` envelope once and returns `data`
    - Logs transport errors and re-raises them unchanged (no retries)
    - Refreshes cookies through the bound browser context when needed
    """

    def __init__(
        self,
        session: Session,
        config: Optional[CrawlerConfig] = None,
        browser_context: Optional[BrowserContext] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the Weibo client.

        Args:
            session: Authenticated session to replay
            config: Crawler configuration (uses defaults if not provided)
            browser_context: Browser context the session came from, used to refresh cookies
            transport: Custom httpx transport (tests)
        """
        self.config = config or CrawlerConfig()
        self.session = session
        self.browser_context = browser_context
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._request_count = 0

    async def __aenter__(self):
        """Async context manager entry."""
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def _ensure_client(self):
        """Ensure HTTP client is created."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.request_timeout),
                follow_redirects=True,
                proxy=self.config.proxy_url,
                transport=self._transport,
            )

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info(f"Client closed after {self._request_count} requests")

    @property
    def headers(self) -> dict[str, str]:
        return self.session.headers

    @property
    def request_count(self) -> int:
        return self._request_count

    @staticmethod
    def _check_for_login_redirect(response: httpx.Response):
        """
        Raises:
            DataFetchError: If the platform bounced the request to its login page
        """
        if "passport.weibo" in response.url.host:
            raise DataFetchError("Redirected to login page, session is not authenticated")

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[dict] = None,
        headers: Optional[dict[str, str]] = None,
        json_body: Any = None,
        return_response: bool = False,
    ) -> Any:
        """
        Issue a request and decode the response envelope.

        Args:
            method: HTTP method
            url: Absolute URL
            params: Query parameters, encoded in insertion order
            headers: Headers to send (defaults to the session headers)
            json_body: JSON request body
            return_response: Return the raw httpx.Response instead of decoding

        Returns:
            The envelope's `data` (empty dict if absent), or the raw response

        Raises:
            DataFetchError: If `ok` is neither 0 nor 1, or the body is not an envelope
            httpx.HTTPError: Transport or HTTP status failures, unchanged
        """
        await self._ensure_client()

        try:
            response = await self._client.request(
                method,
                url,
                params=params,
                headers=headers or self.headers,
                json=json_body,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Request {method}:{url} failed: {e}")
            raise

        self._request_count += 1
        self._check_for_login_redirect(response)

        if return_response:
            return response

        try:
            envelope = ApiEnvelope.model_validate(response.json())
        except ValueError:
            logger.error(f"Request {method}:{url} returned a non-envelope body: {response.text[:200]}")
            raise DataFetchError("unknown error")

        if not envelope.is_success:
            logger.error(f"Request {method}:{url} err, ok={envelope.ok}, msg={envelope.msg}")
            raise DataFetchError(envelope.msg or "unknown error")

        return envelope.payload

    async def get(
        self,
        uri: str,
        params: Optional[dict] = None,
        headers: Optional[dict[str, str]] = None,
        return_response: bool = False,
    ) -> Any:
        """GET `uri` on the mobile host, merging `headers` over the session headers."""
        used_headers = {**self.headers, **headers} if headers else self.headers
        return await self.request(
            "GET",
            f"{WEIBO_MOBILE_HOST}{uri}",
            params=params,
            headers=used_headers,
            return_response=return_response,
        )

    async def post(self, uri: str, data: dict) -> Any:
        """POST a JSON body to `uri` on the mobile host."""
        return await self.request(
            "POST",
            f"{WEIBO_MOBILE_HOST}{uri}",
            json_body=data,
            headers=self.headers,
        )

    async def pong(self) -> bool:
        """
        Liveness probe. True only if the platform reports an active login.

        Never raises.
        """
        logger.info("Probing Weibo session...")
        try:
            resp_data = await self.get(API_CONFIG_URI)
        except Exception as e:
            logger.error(f"Session probe failed: {e}")
            return False

        if isinstance(resp_data, dict) and resp_data.get("login"):
            return True

        logger.error("Session probe: cookie may be invalid")
        return False

    async def update_cookies(self, creator_id: str):
        """
        Visit the creator page in the browser so the platform (re)issues
        M_WEIBOCN_PARAMS, then adopt the browser's jar.

        Raises:
            PreconditionError: If no browser context is bound
            CookieRefreshError: If M_WEIBOCN_PARAMS is still missing
        """
        if self.browser_context is None:
            raise PreconditionError("No browser context bound to the client, log in first")

        url = f"{WEIBO_MOBILE_HOST}/u/{creator_id}"
        logger.info(f"Refreshing cookies via {url}")

        page = await self.browser_context.new_page()
        try:
            await page.goto(url, wait_until="domcontentloaded")
            cookies = await self.browser_context.cookies()
        finally:
            await page.close()

        if not any(cookie.get("name") == SESSION_SCOPE_COOKIE for cookie in cookies):
            logger.error(f"{SESSION_SCOPE_COOKIE} is missing after cookie refresh")
            raise CookieRefreshError(f"{SESSION_SCOPE_COOKIE} is not available")

        self.session.update_from_browser_cookies(cookies)
        logger.info(f"Cookies refreshed ({len(self.session.cookies)} cookies)")

    async def get_note_by_keyword(
        self,
        keyword: str,
        page: int = 1,
        search_type: SearchType = SearchType.DEFAULT,
    ) -> dict:
        """
        Fetch one page of keyword search results.

        Args:
            keyword: Search keyword
            page: 1-based page number
            search_type: Result type filter
        """
        params = {
            "containerid": f"100103type={SearchType(search_type).value}&q={keyword}",
            "page_type": "searchall",
            "page": page,
        }
        return await self.get(API_CONTAINER_URI, params)

    async def get_note_comments(self, mid_id: str, max_id: int) -> dict:
        """
        Fetch one page of a post's comment thread.

        Args:
            mid_id: Post id
            max_id: Cursor from the previous page; omitted when <= 0
        """
        params: dict[str, Any] = {
            "id": mid_id,
            "mid": mid_id,
            "max_id_type": 0,
        }
        if max_id > 0:
            params["max_id"] = max_id

        referer = {"Referer": f"{WEIBO_MOBILE_HOST}/detail/{mid_id}"}
        return await self.get(API_COMMENTS_URI, params, headers=referer)

    async def get_note_info_by_id(self, note_id: str) -> dict:
        """
        Fetch a post from its detail page.

        Returns:
            {"mblog": post} or an empty dict if the page carries no post
        """
        response = await self.get(f"/detail/{note_id}", return_response=True)
        if response.status_code != 200:
            raise DataFetchError(f"get weibo detail err: {response.status_code}")
        return NoteParser.parse_render_data(response.text)

    async def get_note_image(self, image_url: str) -> Optional[bytes]:
        """Download the large variant of a post image; None on a non-200 answer."""
        url = NoteParser.build_large_image_url(image_url)
        try:
            response = await self.request("GET", url, return_response=True)
        except httpx.HTTPStatusError:
            return None
        if response.status_code != 200:
            logger.error(f"Image request {url} err, status={response.status_code}")
            return None
        return response.content

    async def get_creator_container_info(self, creator_id: str) -> tuple[str, str]:
        """
        Resolve raw (fid, lfid) container ids for a creator.

        Refreshes cookies first, then reads M_WEIBOCN_PARAMS from the
        creator page's Set-Cookie headers.
        """
        await self.update_cookies(creator_id)

        response = await self.get(f"/u/{creator_id}", return_response=True)
        set_cookie_headers = response.headers.get_list("set-cookie")
        if not set_cookie_headers:
            logger.error("No Set-Cookie headers in creator page response")
            raise DataFetchError("get containerid failed")

        return ContainerParser.parse_scope_cookie(set_cookie_headers)

    async def get_creator_info_by_id(self, creator_id: str) -> CreatorInfo:
        """
        Fetch a creator profile and its timeline container.

        The profile's "weibo" tab, when present, names the container that
        addresses the creator's posts.
        """
        fid, lfid = await self.get_creator_container_info(creator_id)
        if not fid or not lfid:
            logger.error(f"Container ids incomplete for creator {creator_id}: fid={fid!r}, lfid={lfid!r}")
            raise DataFetchError("get containerid failed")

        params = {
            "jumpfrom": "weibocom",
            "type": "uid",
            "value": creator_id,
            "containerid": fid,
        }
        user_res = await self.get(API_CONTAINER_URI, params)
        if not isinstance(user_res, dict):
            user_res = {}

        lfid = ContainerParser.find_tab_container(user_res) or lfid

        return CreatorInfo(
            creator_id=creator_id,
            user_info=user_res.get("userInfo") or {},
            container=ContainerContext(fid_container_id=fid, lfid_container_id=lfid),
            raw=user_res,
        )

    async def get_notes_by_creator(self, creator_id: str, container_id: str, since_id: str = "0") -> dict:
        """
        Fetch one page of a creator's timeline.

        Args:
            creator_id: Creator uid
            container_id: lfid container of the creator's posts
            since_id: Cursor from the previous page
        """
        params = {
            "jumpfrom": "weibocom",
            "type": "uid",
            "value": creator_id,
            "containerid": container_id,
            "since_id": since_id,
        }
        return await self.get(API_CONTAINER_URI, params)
