"""Stealth browser fetcher for storefronts that render client-side.

Uses Patchright (Playwright fork with anti-detection patches). One browser
and one context live for one job, so a login carries across pages.
"""

import asyncio
import logging

from storesync.exceptions import FetchNetworkError, FetchTimeoutError
from storesync.fetchers.base import PASSWORD_FIELDS, SUBMIT_CONTROLS, USERNAME_FIELDS, FetchOptions, FetchResult
from storesync.schemas.source import AuthConfig

logger = logging.getLogger(__name__)

STEALTH_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'deviceMemory', { get: () => 8 });
Object.defineProperty(navigator, 'platform', { get: () => 'Win32' });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
window.chrome = {
    runtime: { connect: () => {}, sendMessage: () => {} },
    loadTimes: () => ({}),
    csi: () => ({})
};
"""

BROWSER_LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-infobars",
    "--disable-extensions",
    "--no-first-run",
    "--window-size=1920,1080",
]

# Network-idle wait after navigation; a page that never idles is read as-is
CONTENT_SETTLE_MS = 10000


class BrowserPageFetcher:
    """Browser-backed fetcher. The browser launches lazily on first use."""

    def __init__(self, user_agent: str, headless: bool = True, channel: str | None = None):
        self.user_agent = user_agent
        self.headless = headless
        self.channel = channel
        self.playwright = None
        self.browser = None
        self.context = None
        self.page = None
        self._lock = asyncio.Lock()

    async def _ensure_page(self):
        if self.page is not None:
            return self.page

        from patchright.async_api import async_playwright

        self.playwright = await async_playwright().start()
        launch_kwargs = {"headless": self.headless, "args": BROWSER_LAUNCH_ARGS}
        if self.channel:
            launch_kwargs["channel"] = self.channel
        self.browser = await self.playwright.chromium.launch(**launch_kwargs)
        self.context = await self.browser.new_context(
            viewport={"width": 1920, "height": 1080},
            locale="en-US",
            user_agent=self.user_agent,
            accept_downloads=False,
        )
        # context.add_init_script breaks DNS resolution in Docker (Patchright bug);
        # stealth scripts are injected after each navigation instead.
        self.page = await self.context.new_page()
        logger.info(f"Launched Patchright {'Chrome' if self.channel else 'Chromium'}")
        return self.page

    async def fetch(self, url: str, options: FetchOptions | None = None) -> FetchResult:
        from patchright.async_api import Error as PlaywrightError

        options = options or FetchOptions()
        timeout_ms = int(options.timeout_seconds * 1000)

        # One page per job; navigations are serialized
        async with self._lock:
            page = await self._ensure_page()
            response = await self._goto(page, url, timeout_ms)
            try:
                await page.evaluate(STEALTH_INIT_SCRIPT)
                if options.wait_for_content:
                    await self._settle(page, min(timeout_ms, CONTENT_SETTLE_MS))
                html = await page.content()
            except PlaywrightError as e:
                # e.g. "Execution context was destroyed" when the page redirects mid-read
                raise FetchNetworkError(str(e).splitlines()[0], url=url) from e

        status = response.status if response is not None else 200
        return FetchResult(status=status, html=html, url=page.url)

    async def authenticate(self, auth: AuthConfig, options: FetchOptions | None = None) -> bool:
        from patchright.async_api import Error as PlaywrightError

        options = options or FetchOptions()
        if not auth.is_complete:
            return False
        timeout_ms = int(options.timeout_seconds * 1000)

        async with self._lock:
            page = await self._ensure_page()
            await self._goto(page, auth.auth_url, timeout_ms)
            try:
                return await self._submit_login(page, auth, timeout_ms)
            except PlaywrightError as e:
                raise FetchNetworkError(str(e).splitlines()[0], url=auth.auth_url) from e

    async def _submit_login(self, page, auth: AuthConfig, timeout_ms: int) -> bool:
        await self._settle(page, min(timeout_ms, CONTENT_SETTLE_MS))

        if not await self._fill_first(page, USERNAME_FIELDS, auth.username):
            logger.warning(f"No username field found at {auth.auth_url}")
            return False
        if not await self._fill_first(page, PASSWORD_FIELDS, auth.password):
            logger.warning(f"No password field found at {auth.auth_url}")
            return False

        for selector in SUBMIT_CONTROLS:
            control = await page.query_selector(selector)
            if control:
                await control.click()
                break
        else:
            await page.keyboard.press("Enter")

        await self._settle(page, min(timeout_ms, CONTENT_SETTLE_MS))
        # A rejected login leaves the password field on screen
        for selector in PASSWORD_FIELDS:
            if await page.query_selector(selector):
                return False
        return True

    async def aclose(self) -> None:
        if self.browser:
            await self.browser.close()
        if self.playwright:
            await self.playwright.stop()
        self.page = self.context = self.browser = self.playwright = None

    @staticmethod
    async def _goto(page, url: str, timeout_ms: int):
        from patchright.async_api import Error as PlaywrightError
        from patchright.async_api import TimeoutError as PlaywrightTimeoutError

        try:
            return await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise FetchTimeoutError(f"Timed out after {timeout_ms}ms: {url}", url=url) from e
        except PlaywrightError as e:
            raise FetchNetworkError(str(e).splitlines()[0], url=url) from e

    @staticmethod
    async def _settle(page, timeout_ms: int) -> None:
        from patchright.async_api import TimeoutError as PlaywrightTimeoutError

        try:
            await page.wait_for_load_state("networkidle", timeout=timeout_ms)
        except PlaywrightTimeoutError:
            logger.debug(f"Network never went idle on {page.url}; reading DOM as-is")

    @staticmethod
    async def _fill_first(page, selectors: list[str], value: str) -> bool:
        for selector in selectors:
            field = await page.query_selector(selector)
            if field:
                await field.fill(value)
                return True
        return False
