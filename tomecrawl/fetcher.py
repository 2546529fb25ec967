"""HTTP fetching with a fixed retry schedule and politeness (User-Agent, timeouts)."""

import sys
import time
from dataclasses import dataclass

import httpx
from bs4 import UnicodeDammit

# Browser-like UA to reduce 403 from sites that block scrapers
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_DELAYS_MS = (1000, 2000, 4000)

DEFAULT_HEADERS = {
    "User-Agent": DEFAULT_USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "zh-CN,zh;q=0.9,en-US;q=0.8,en;q=0.7",
}


class FetchError(RuntimeError):
    """All attempts for one request failed."""

    def __init__(self, url: str, attempts: int, reason: str) -> None:
        super().__init__(f"request failed after {attempts} attempt(s): {reason}")
        self.url = url
        self.attempts = attempts
        self.reason = reason


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try a request and how long to wait (ms) between tries."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    delays: tuple[int, ...] = DEFAULT_DELAYS_MS

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if not self.delays:
            raise ValueError("delays must not be empty")

    def delay_for(self, attempt: int) -> int:
        """Wait in ms after failed attempt number `attempt` (0-based); the last delay repeats."""
        if attempt < len(self.delays):
            return self.delays[attempt]
        return self.delays[-1]


def decode_html(raw: bytes, charset: str | None) -> str:
    """Decode a page body: declared charset first, then <meta> declarations and sniffing."""
    if charset:
        try:
            return raw.decode(charset)
        except (LookupError, UnicodeDecodeError):
            pass
    dammit = UnicodeDammit(raw, is_html=True)
    if dammit.unicode_markup is not None:
        return dammit.unicode_markup
    return raw.decode("utf-8", errors="replace")


class Fetcher:
    """HTTP fetcher with connection pooling. Reuse for multiple requests."""

    def __init__(
        self,
        *,
        retry: RetryPolicy | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        headers: dict[str, str] | None = None,
    ) -> None:
        self._retry = retry or RetryPolicy()
        self._timeout = timeout
        self._headers = {**DEFAULT_HEADERS, **(headers or {})}
        self._client: httpx.Client | None = None

    @property
    def retry(self) -> RetryPolicy:
        return self._retry

    def spawn(self) -> "Fetcher":
        """Return a new Fetcher with the same config (for use in another thread)."""
        return Fetcher(retry=self._retry, timeout=self._timeout, headers=self._headers)

    def _get_client(self) -> httpx.Client:
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                follow_redirects=True,
                timeout=self._timeout,
                headers=self._headers,
            )
        return self._client

    def close(self) -> None:
        if self._client and not self._client.is_closed:
            self._client.close()

    def __enter__(self) -> "Fetcher":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def fetch_html(self, url: str) -> tuple[bytes, str | None]:
        """
        GET url with retries; returns (raw_bytes, charset).
        Transport errors, timeouts and non-2xx responses are retried on the
        policy's fixed schedule. Raises FetchError once attempts run out, or
        at once for a URL httpx cannot parse.
        """
        policy = self._retry
        last_exc: BaseException | None = None
        for attempt in range(policy.max_attempts):
            try:
                resp = self._get_client().get(url)
                resp.raise_for_status()
                return resp.content, resp.charset_encoding
            except httpx.InvalidURL as e:
                raise FetchError(url, attempt + 1, f"invalid URL: {e}") from e
            except (httpx.HTTPStatusError, httpx.RequestError) as e:
                last_exc = e
                if attempt < policy.max_attempts - 1:
                    wait_ms = policy.delay_for(attempt)
                    print(
                        f"  Request failed ({_describe(e)}); retrying in {wait_ms}ms "
                        f"({attempt + 1}/{policy.max_attempts})...",
                        file=sys.stderr,
                    )
                    time.sleep(wait_ms / 1000)
        raise FetchError(url, policy.max_attempts, _describe(last_exc)) from last_exc

    def fetch(self, url: str) -> str:
        """Fetch a page and return its decoded text."""
        raw, charset = self.fetch_html(url)
        return decode_html(raw, charset)


def _describe(exc: BaseException | None) -> str:
    if exc is None:
        return "unknown error"
    if isinstance(exc, httpx.HTTPStatusError):
        return f"HTTP {exc.response.status_code}"
    if isinstance(exc, httpx.TimeoutException):
        return f"timeout: {exc}" if str(exc) else "timeout"
    return str(exc) or type(exc).__name__
