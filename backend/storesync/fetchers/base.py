"""Page fetching capability used by the crawl driver."""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from storesync.schemas.source import AuthConfig


@dataclass(frozen=True)
class FetchOptions:
    timeout_seconds: float = 30.0
    # Browser fetchers wait for network idle before reading the DOM
    wait_for_content: bool = True


@dataclass(frozen=True)
class FetchResult:
    status: int
    html: str
    url: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


@runtime_checkable
class PageFetcher(Protocol):
    """Fetches one URL. Raises FetchTimeoutError / FetchNetworkError when no response arrives."""

    async def fetch(self, url: str, options: FetchOptions) -> FetchResult:
        ...

    async def authenticate(self, auth: AuthConfig, options: FetchOptions) -> bool:
        ...

    async def aclose(self) -> None:
        ...


# Common login form fields, tried in order
USERNAME_FIELDS = [
    'input[name="username"]',
    'input[name="email"]',
    'input[type="email"]',
    "#username",
    "#email",
    'input[name="login"]',
]
PASSWORD_FIELDS = [
    'input[name="password"]',
    'input[type="password"]',
    "#password",
]
SUBMIT_CONTROLS = [
    'button[type="submit"]',
    'input[type="submit"]',
    'button:has-text("Log in")',
    'button:has-text("Sign in")',
]
