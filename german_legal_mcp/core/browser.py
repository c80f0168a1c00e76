"""Authenticated Fetch Engine

One long-lived Playwright Chromium session per process. Every page handed
back by :class:`BeckBrowser` was fetched while logged in to beck-online:
the engine restores persisted cookies, verifies them, and runs the
federated OIDC login (beck-online -> account.beck.de -> beck-online) when
needed.

A plain HTTP client is not enough here: the login keeps nonce/correlation
state across several domains, the origin fingerprints the client, and some
query parameters are shaped by client-side scripts.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import urlparse

import anyio
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from german_legal_mcp.config.settings import Settings
from german_legal_mcp.core.exceptions import AuthenticationError, ConfigurationError
from german_legal_mcp.core.session_store import Cookie, SessionStore, find_auth_cookie
from german_legal_mcp.models.documents import FetchResult
from german_legal_mcp.utils.logger import get_logger

logger = get_logger(__name__)


IDENTITY_PROVIDER_HOST = "account.beck.de"

HOME_PATH = "/Home"
LOGIN_PATH = "/Konto/IdentityProviderLogin"

USERNAME_SELECTOR = 'input[name="Input.Username"]'
PASSWORD_SELECTOR = 'input[name="Input.Password"]'
SUBMIT_SELECTOR = 'form:has(input[name="Input.Username"]) button[type="submit"]'

# Any of these means the document/hit list has rendered
CONTENT_SELECTORS = ".treffer-wrapper, .paragr, .satz"

CHROMIUM_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]

# Keys accepted by BrowserContext.add_cookies
_COOKIE_FIELDS = ("name", "value", "domain", "path", "expires", "httpOnly", "secure", "sameSite")


class BrowserState(str, Enum):
    """Lifecycle of the automation session"""

    uninitialized = "uninitialized"
    initialized = "initialized"
    session_restored = "session_restored"  # cookies loaded, not yet verified
    authenticated = "authenticated"
    stale = "stale"
    reauthenticating = "reauthenticating"


@dataclass
class BrowserHandles:
    playwright: Any
    browser: Any
    context: Any
    page: Any


Launcher = Callable[[Settings], Awaitable[BrowserHandles]]


async def launch_chromium(config: Settings) -> BrowserHandles:
    """Start headless Chromium with a realistic desktop client identity"""
    playwright = await async_playwright().start()
    try:
        browser = await playwright.chromium.launch(
            headless=config.browser_headless,
            args=CHROMIUM_ARGS,
        )
        context = await browser.new_context(user_agent=config.browser_user_agent)
        page = await context.new_page()
    except Exception:
        await playwright.stop()
        raise
    return BrowserHandles(playwright=playwright, browser=browser, context=context, page=page)


class BeckBrowser:
    """Shared, serialized, self-authenticating browser session"""

    def __init__(
        self,
        config: Settings,
        store: SessionStore,
        launcher: Optional[Launcher] = None,
    ):
        self.config = config
        self.store = store
        self._launcher = launcher or launch_chromium
        self._handles: BrowserHandles | None = None
        self._lock = anyio.Lock()
        self.state = BrowserState.uninitialized

        parsed = urlparse(config.beck_base_url)
        self._origin = f"{parsed.scheme}://{parsed.netloc}"
        self._origin_host = parsed.hostname or ""

    # ------------------------------------------------------------------
    # URL helpers
    # ------------------------------------------------------------------

    def absolute_url(self, url: str) -> str:
        if url.startswith("/"):
            return f"{self._origin}{url}"
        return url

    def is_on_origin(self, url: str) -> bool:
        return urlparse(url).hostname == self._origin_host

    @staticmethod
    def is_login_form(url: str) -> bool:
        parsed = urlparse(url)
        return parsed.hostname == IDENTITY_PROVIDER_HOST and parsed.path.lower().startswith("/login")

    @property
    def _page(self) -> Any:
        if self._handles is None:
            raise RuntimeError("Browser not initialized")
        return self._handles.page

    @property
    def _context(self) -> Any:
        if self._handles is None:
            raise RuntimeError("Browser not initialized")
        return self._handles.context

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Launch the browser and try to restore the persisted session"""
        async with self._lock:
            await self._open()

    async def _open(self) -> None:
        if self._handles is not None:
            return

        logger.info("Launching browser...")
        self._handles = await self._launcher(self.config)
        self.state = BrowserState.initialized

        cookies = await self.store.load()
        if not cookies:
            return

        try:
            await self._context.add_cookies([_cookie_param(c) for c in cookies])
        except PlaywrightError as e:
            logger.warning(f"Could not restore saved session: {e}")
            return

        self.state = BrowserState.session_restored
        logger.info("Session loaded from disk.")

    async def close(self) -> None:
        """Terminate the session and reset all state. Safe to call repeatedly."""
        handles, self._handles = self._handles, None
        self.state = BrowserState.uninitialized
        if handles is None:
            return

        logger.info("Closing browser...")
        try:
            await handles.browser.close()
        except Exception as e:
            logger.warning(f"Error while closing browser: {e}")
        try:
            await handles.playwright.stop()
        except Exception as e:
            logger.warning(f"Error while stopping playwright: {e}")

    def get_current_url(self) -> str:
        if self._handles is None:
            return ""
        return self._handles.page.url

    @property
    def current_url(self) -> str:
        return self.get_current_url()

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def login(self) -> None:
        """Make sure the session is authenticated, logging in if required.

        An already authenticated session is checked again, so an explicit
        login always notices a session the origin has dropped.
        """
        async with self._lock:
            await self._open()
            if self.state == BrowserState.authenticated and not await self._verify_session():
                logger.info("Session invalid, re-authenticating...")
                self.state = BrowserState.stale
            await self._ensure_authenticated()

    async def _ensure_authenticated(self) -> None:
        if self.state == BrowserState.authenticated:
            return

        if self.state == BrowserState.session_restored:
            if await self._verify_session():
                logger.info("Session is valid.")
                self.state = BrowserState.authenticated
                return
            logger.info("Session invalid, re-authenticating...")
            self.state = BrowserState.stale

        await self._login_flow()

    async def _verify_session(self) -> bool:
        """Liveness check: an authenticated-only page keeps the auth cookie"""
        logger.info("Verifying session...")
        try:
            await self._page.goto(self.absolute_url(HOME_PATH), wait_until="domcontentloaded")
            cookies = await self._context.cookies()
        except PlaywrightError as e:
            logger.warning(f"Session check failed: {e}")
            return False
        return find_auth_cookie(cookies) is not None and not self.is_login_form(self._page.url)

    def _credentials(self) -> tuple[str, str]:
        username = self.config.beck_username
        password = self.config.beck_password
        if not username or not password:
            raise ConfigurationError(
                "BECK_USERNAME and BECK_PASSWORD environment variables must be set."
            )
        return username, password

    async def _login_flow(self) -> None:
        username, password = self._credentials()

        logger.info("Starting OIDC login flow...")
        self.state = BrowserState.reauthenticating
        page = self._page

        try:
            await page.goto(self.absolute_url(LOGIN_PATH), wait_until="networkidle")

            if self.is_login_form(page.url):
                await self._submit_credentials(username, password)
                cookies = await self._collect_auth_cookies()
            elif self.is_on_origin(page.url):
                logger.info("Already logged in (direct hit).")
                cookies = await self._context.cookies()
            else:
                raise AuthenticationError(
                    f"Unexpected login start page: {page.url}", url=page.url
                )
        except Exception as e:
            logger.error(f"Login error: {e}")
            self.state = BrowserState.initialized
            raise

        await self.store.save(cookies)
        self.state = BrowserState.authenticated
        logger.info("Successfully authenticated.")

    async def _submit_credentials(self, username: str, password: str) -> None:
        page = self._page
        logger.info("Submitting credentials...")

        await page.fill(USERNAME_SELECTOR, username)
        await page.fill(PASSWORD_SELECTOR, password)
        async with page.expect_navigation(wait_until="networkidle"):
            await page.click(SUBMIT_SELECTOR)

        # The redirect chain back to the origin has 2-3 hops which do not
        # always surface as a single navigation.
        if not self.is_on_origin(page.url):
            logger.info("Waiting for redirects...")
            try:
                await page.wait_for_url(
                    self.is_on_origin,
                    wait_until="networkidle",
                    timeout=self.config.redirect_wait_timeout_ms,
                )
            except PlaywrightTimeoutError:
                logger.debug(f"Redirect wait timed out at {page.url}")

    async def _collect_auth_cookies(self) -> list[Cookie]:
        page = self._page
        if not self.is_on_origin(page.url):
            body = await page.inner_text("body")
            raise AuthenticationError(
                f"Login failed: Stuck at {page.url} - {body[:100]}", url=page.url
            )

        cookies = await self._context.cookies()
        if find_auth_cookie(cookies) is None:
            raise AuthenticationError(
                "Login failed: Auth cookie not found after redirect.", url=page.url
            )
        return cookies

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    async def fetch_page(self, url: str) -> FetchResult:
        """Navigate (authenticated) and return the rendered page"""
        async with self._lock:
            return await self._fetch(url, with_content=True)

    async def resolve_url(self, url: str) -> str:
        """Navigate (authenticated) and return only the post-redirect URL"""
        async with self._lock:
            result = await self._fetch(url, with_content=False)
        return result.final_url

    async def _fetch(self, url: str, with_content: bool) -> FetchResult:
        await self._open()
        await self._ensure_authenticated()

        url = self.absolute_url(url)
        logger.info(f"{'Fetching' if with_content else 'Resolving'}: {url}")

        page = self._page
        await page.goto(url, wait_until="domcontentloaded")

        if self.is_login_form(page.url):
            logger.info("Session expired during navigation, re-authenticating...")
            self.state = BrowserState.stale
            await self._login_flow()
            await page.goto(url, wait_until="domcontentloaded")

        if not with_content:
            return FetchResult(final_url=page.url, raw_content="")

        try:
            await page.wait_for_selector(
                CONTENT_SELECTORS, timeout=self.config.content_wait_timeout_ms
            )
        except PlaywrightTimeoutError:
            pass

        return FetchResult(final_url=page.url, raw_content=await page.content())


def _cookie_param(cookie: Cookie) -> Cookie:
    return {key: cookie[key] for key in _COOKIE_FIELDS if key in cookie}
