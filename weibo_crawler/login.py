"""
Browser-driven login producing an authenticated Session.

Three paths are supported: scanning a QR code shown by the SSO page,
injecting a pre-supplied cookie string, and phone login (not implemented).
"""

import asyncio
import base64
import binascii
import logging
import tempfile
from pathlib import Path
from typing import Awaitable, Callable, Optional

import httpx
from playwright.async_api import BrowserContext, Page
from playwright.async_api import Error as PlaywrightError

from .config import (
    CrawlerConfig,
    WEIBO_SSO_LOGIN_URL,
    WEIBO_COOKIE_DOMAIN,
    QRCODE_IMG_SELECTOR,
    LOGGED_IN_COOKIE,
    ANONYMOUS_SESSION_COOKIE,
)
from .exceptions import LoginError, LoginNotSupportedError
from .models import LoginCredentials, LoginType
from .session import Session, convert_browser_cookies, parse_cookie_string
from .utils.headers import HeaderGenerator
from .utils.retry import RetryConfig, RetryableError, retry_async

logger = logging.getLogger(__name__)


async def find_login_qrcode(page: Page, selector: str, user_agent: str = "") -> str:
    """
    Locate the login QR code image and return it base64-encoded.

    Images referenced by an http(s) URL are downloaded; data URIs are
    returned as-is. Returns an empty string when nothing usable is found.
    """
    try:
        element = await page.wait_for_selector(selector, timeout=5000)
        if not element:
            logger.error(f"No QR code element matches {selector}")
            return ""

        src = await element.get_attribute("src")
        if not src:
            logger.error(f"QR code element {selector} has no src attribute")
            return ""

        if src.startswith(("http://", "https://")):
            logger.info(f"Downloading QR code from {src}")
            async with httpx.AsyncClient(follow_redirects=True, timeout=10.0) as client:
                response = await client.get(src, headers={"User-Agent": user_agent} if user_agent else None)
                response.raise_for_status()
            return base64.b64encode(response.content).decode("utf-8")

        return src

    except (PlaywrightError, httpx.HTTPError) as e:
        logger.error(f"Could not obtain QR code: {e}")
        return ""


def show_qrcode(qr_code: str) -> Optional[Path]:
    """
    Write the QR code to a PNG file for the operator to scan.

    Returns:
        Path of the written image, or None if the data is not valid base64
    """
    if not qr_code:
        logger.error("No QR code provided to display")
        return None

    data = qr_code.split(",", 1)[1] if qr_code.startswith("data:") else qr_code
    try:
        image = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        logger.error(f"QR code is not valid base64: {e}")
        return None

    path = Path(tempfile.mkdtemp(prefix="qrcode-")) / "qrcode.png"
    path.write_bytes(image)
    logger.info(f"Scan the QR code saved at {path} with the Weibo app")
    return path


class WeiboLogin:
    """
    Login state machine: Start -> {QR code | phone | cookie} -> Success | Failed.

    Failures of the QR code flow raise LoginError and are not retried here;
    the caller may restart with another login type.
    """

    def __init__(
        self,
        credentials: LoginCredentials,
        browser_context: BrowserContext,
        context_page: Page,
        config: Optional[CrawlerConfig] = None,
        header_gen: Optional[HeaderGenerator] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.credentials = credentials
        self.browser_context = browser_context
        self.context_page = context_page
        self.config = config or CrawlerConfig()
        self.header_gen = header_gen or HeaderGenerator(self.config.ua_profile)
        self._sleep = sleep

    async def begin(self) -> Session:
        """
        Run the flow selected by the credentials.

        Returns:
            Session built from the browser context's cookie jar
        """
        login_type = self.credentials.login_type
        logger.info(f"Begin login to Weibo ({login_type.value})")

        if login_type == LoginType.QRCODE:
            await self.login_by_qrcode()
        elif login_type == LoginType.PHONE:
            await self.login_by_mobile()
        elif login_type == LoginType.COOKIE:
            await self.login_by_cookies()
        else:
            raise LoginError(f"Invalid login type: {login_type}", step="dispatch")

        cookies = await self.browser_context.cookies()
        return Session.from_browser_cookies(cookies, self.header_gen)

    async def check_login_state(self, no_logged_in_session: Optional[str] = None) -> bool:
        """
        Logged in once SSOLoginState is set, or once the anonymous
        WBPSESS value has been replaced.
        """
        _, cookie_dict = convert_browser_cookies(await self.browser_context.cookies())

        if cookie_dict.get(LOGGED_IN_COOKIE):
            return True

        current_session = cookie_dict.get(ANONYMOUS_SESSION_COOKIE)
        return bool(current_session) and current_session != no_logged_in_session

    async def wait_for_login_success(self, no_logged_in_session: Optional[str] = None):
        """
        Poll the cookie jar at a fixed interval until login is detected.

        Raises:
            LoginError: If the attempt budget is exhausted
        """
        async def probe():
            if not await self.check_login_state(no_logged_in_session):
                raise RetryableError("not yet logged in")

        retry_config = RetryConfig(
            max_attempts=self.config.qrcode_poll_attempts,
            delay=self.config.qrcode_poll_interval,
        )
        try:
            await retry_async(probe, retry_config, sleep=self._sleep)
        except RetryableError:
            logger.error("Login by QR code timed out")
            raise LoginError("QR code was not scanned in time", step="qrcode_poll")

    async def login_by_qrcode(self):
        logger.info("Begin login by QR code")
        await self.context_page.goto(WEIBO_SSO_LOGIN_URL)

        qrcode = await find_login_qrcode(
            self.context_page, QRCODE_IMG_SELECTOR, self.header_gen.user_agent
        )
        if not qrcode:
            logger.error("Login failed, QR code not found on the SSO page")
            raise LoginError("QR code image not found", step="qrcode_image")

        show_qrcode(qrcode)
        logger.info("Waiting for QR code scan...")

        _, cookie_dict = convert_browser_cookies(await self.browser_context.cookies())
        await self.wait_for_login_success(cookie_dict.get(ANONYMOUS_SESSION_COOKIE))

        logger.info(f"Login successful, waiting {self.config.login_settle_delay}s for redirect...")
        await self._sleep(self.config.login_settle_delay)

    async def login_by_mobile(self):
        phone = self.credentials.phone
        masked = f"{phone[:3]}****{phone[-4:]}" if len(phone) >= 7 else "<none>"
        logger.error(f"Phone login requested for {masked}, which is not supported")
        raise LoginNotSupportedError("Phone login is not supported", step="phone")

    async def login_by_cookies(self):
        """Inject the cookie string into the browser context; no navigation."""
        logger.info("Begin login by cookies")

        cookie_dict = parse_cookie_string(self.credentials.cookie_str)
        if not cookie_dict:
            logger.warning("Cookie string contained no usable cookies")
            return

        await self.browser_context.add_cookies([
            {
                "name": name,
                "value": value,
                "domain": WEIBO_COOKIE_DOMAIN,
                "path": "/",
            }
            for name, value in cookie_dict.items()
        ])
        logger.info(f"Injected {len(cookie_dict)} cookies")
