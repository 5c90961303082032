"""Plain HTTP page fetcher on httpx.

Covers storefronts that render server-side and JSON feeds. One instance
lives for one job so the cookie jar carries a login across pages.
"""

import logging

import httpx
from bs4 import BeautifulSoup

from storesync.exceptions import FetchNetworkError, FetchTimeoutError
from storesync.fetchers.base import PASSWORD_FIELDS, USERNAME_FIELDS, FetchOptions, FetchResult
from storesync.schemas.source import AuthConfig
from storesync.scrapers.normalize import resolve_url

logger = logging.getLogger(__name__)

# Input types whose values a browser would not submit as-is
_SKIPPED_INPUT_TYPES = {"submit", "button", "image", "reset", "file"}


class HttpPageFetcher:

    def __init__(
        self,
        user_agent: str,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            headers={
                "User-Agent": user_agent,
                "Accept": "text/html,application/xhtml+xml,application/json;q=0.9,*/*;q=0.8",
                "Accept-Language": "en-US,en;q=0.9",
            },
            timeout=timeout_seconds,
            follow_redirects=True,
            transport=transport,
        )

    async def fetch(self, url: str, options: FetchOptions | None = None) -> FetchResult:
        options = options or FetchOptions()
        resp = await self._send("GET", url, options.timeout_seconds)
        return FetchResult(status=resp.status_code, html=resp.text, url=str(resp.url))

    async def authenticate(self, auth: AuthConfig, options: FetchOptions | None = None) -> bool:
        """Submit the site's login form. Returns False when the login did not take."""
        options = options or FetchOptions()
        if not auth.is_complete:
            return False

        login_page = await self.fetch(auth.auth_url, options)
        if not login_page.ok:
            logger.warning(f"Login page {auth.auth_url} returned HTTP {login_page.status}")
            return False

        soup = BeautifulSoup(login_page.html, "lxml")
        password_input = _select_first(soup, PASSWORD_FIELDS)
        form = password_input.find_parent("form") if password_input else None
        if form is None:
            logger.warning(f"No login form found at {auth.auth_url}")
            return False

        # Keep hidden inputs (CSRF tokens) and defaults
        data = {}
        for field in form.find_all("input"):
            name = field.get("name")
            if name and field.get("type", "text").lower() not in _SKIPPED_INPUT_TYPES:
                data[name] = field.get("value", "")

        username_input = _select_first(form, USERNAME_FIELDS) or form.find("input", attrs={"type": "text"})
        if username_input is None or not username_input.get("name") or not password_input.get("name"):
            logger.warning(f"Login form at {auth.auth_url} has no named credential fields")
            return False
        data[username_input["name"]] = auth.username
        data[password_input["name"]] = auth.password

        action = resolve_url(form.get("action") or login_page.url, login_page.url)
        method = (form.get("method") or "post").upper()
        if method == "GET":
            resp = await self._send("GET", action, options.timeout_seconds, params=data)
        else:
            resp = await self._send("POST", action, options.timeout_seconds, data=data)

        # A rejected login re-renders the form
        if resp.status_code >= 400 or _select_first(BeautifulSoup(resp.text, "lxml"), PASSWORD_FIELDS):
            logger.warning(f"Login to {auth.auth_url} rejected (HTTP {resp.status_code})")
            return False
        return True

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(self, method: str, url: str, timeout: float, **kwargs) -> httpx.Response:
        try:
            return await self._client.request(method, url, timeout=timeout, **kwargs)
        except httpx.TimeoutException as e:
            raise FetchTimeoutError(f"Timed out after {timeout}s: {url}", url=url) from e
        except httpx.HTTPError as e:
            raise FetchNetworkError(f"{type(e).__name__}: {e}", url=url) from e


def _select_first(root, selectors):
    for selector in selectors:
        found = root.select_one(selector)
        if found is not None:
            return found
    return None
