"""HTTP fetcher with politeness, robots.txt and size limits."""

from __future__ import annotations

import logging
import time
import urllib.robotparser
from collections.abc import Callable
from datetime import datetime, timezone
from threading import Lock
from urllib.parse import urlparse

from requests import Response, Session
from requests.adapters import HTTPAdapter
from requests.exceptions import RequestException, Timeout, TooManyRedirects
from urllib3.util.retry import Retry

from .errors import FetchError
from .extraction import domain_from_url
from .models import PageContent
from .validation import is_supported_url

TEXT_CONTENT_TYPES = ("text/", "application/xhtml", "application/xml")
CHUNK_SIZE = 64 * 1024


class RobotsPolicy:
    """robots.txt cache and allow checks.

    robots.txt is fetched through the crawl session with the request timeout.
    Loads for different origins run in parallel; one origin is loaded once.
    """

    def __init__(self, user_agent: str, *, session: Session, timeout: float) -> None:
        self._user_agent = user_agent
        self._session = session
        self._timeout = timeout
        self._cache: dict[str, urllib.robotparser.RobotFileParser | None] = {}
        self._origin_locks: dict[str, Lock] = {}
        self._lock = Lock()

    def allowed(self, url: str) -> bool:
        """Return True if robots policy allows this URL."""
        if not is_supported_url(url):
            return False
        parsed = urlparse(url)
        parser = self._parser_for(f"{parsed.scheme}://{parsed.netloc}")
        if parser is None:
            return True
        return parser.can_fetch(self._user_agent, url)

    def _parser_for(self, origin: str) -> urllib.robotparser.RobotFileParser | None:
        with self._lock:
            if origin in self._cache:
                return self._cache[origin]
            origin_lock = self._origin_locks.setdefault(origin, Lock())
        with origin_lock:
            with self._lock:
                if origin in self._cache:
                    return self._cache[origin]
            parser = self._load(origin)
            with self._lock:
                self._cache[origin] = parser
            return parser

    def _load(self, origin: str) -> urllib.robotparser.RobotFileParser | None:
        robots_url = origin.rstrip("/") + "/robots.txt"
        parser = urllib.robotparser.RobotFileParser()
        parser.set_url(robots_url)
        try:
            response = self._session.get(robots_url, timeout=self._timeout)
        except RequestException:
            return None
        if response.status_code in (401, 403):
            parser.disallow_all = True
            return parser
        if response.status_code >= 400:
            return None
        parser.parse(response.text.splitlines())
        return parser


class PolitenessGate:
    """Enforce a minimum gap between consecutive requests to the same domain."""

    def __init__(
        self,
        delay: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep_fn: Callable[[float], None] = time.sleep,
    ) -> None:
        self._delay = delay
        self._clock = clock
        self._sleep_fn = sleep_fn
        self._next_slot: dict[str, float] = {}
        self._lock = Lock()

    def wait(self, domain: str) -> float:
        """Block until the domain may be requested again; return the time slept."""
        with self._lock:
            now = self._clock()
            slot = max(now, self._next_slot.get(domain, now))
            self._next_slot[domain] = slot + self._delay
        pause = slot - now
        if pause > 0:
            self._sleep_fn(pause)
        return pause


def decode_body(body: bytes, encoding: str) -> str:
    """Decode a page body, falling back to utf-8 for unknown charsets."""
    try:
        return body.decode(encoding, errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")


def make_session(user_agent: str, *, max_redirects: int, pool_size: int = 10) -> Session:
    """Create a requests session; retries are left to the crawl scheduler."""
    session = Session()
    session.headers.update({"User-Agent": user_agent})
    session.max_redirects = max_redirects
    retry = Retry(total=0, redirect=False, raise_on_status=False)
    adapter = HTTPAdapter(max_retries=retry, pool_connections=pool_size, pool_maxsize=pool_size)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class RequestsFetcher:
    """Requests-based fetcher raising FetchError with a retry-relevant kind."""

    def __init__(
        self,
        *,
        session: Session,
        timeout: float,
        max_bytes: int,
        logger: logging.Logger,
        politeness: PolitenessGate | None = None,
        robots_policy: RobotsPolicy | None = None,
    ) -> None:
        self._session = session
        self._timeout = timeout
        self._max_bytes = max_bytes
        self._logger = logger
        self._politeness = politeness
        self._robots_policy = robots_policy

    def fetch(self, url: str) -> PageContent:
        if not is_supported_url(url):
            raise FetchError(FetchError.UNSUPPORTED, url, detail="not an http(s) URL")
        if self._robots_policy is not None and not self._robots_policy.allowed(url):
            raise FetchError(FetchError.UNSUPPORTED, url, detail="disallowed by robots.txt")
        domain = domain_from_url(url)
        if self._politeness is not None:
            self._politeness.wait(domain)
        try:
            response = self._session.get(url, timeout=self._timeout, stream=True)
        except Timeout as exc:
            raise FetchError(FetchError.TIMEOUT, url, detail=str(exc)) from exc
        except TooManyRedirects as exc:
            raise FetchError(FetchError.REDIRECT_LOOP, url, detail=str(exc)) from exc
        except RequestException as exc:
            raise FetchError(FetchError.CONNECTION_REFUSED, url, detail=str(exc)) from exc
        try:
            body = self._read_body(response, url)
        finally:
            response.close()
        content_type = response.headers.get("Content-Type", "").lower()
        encoding = response.encoding if "charset=" in content_type else "utf-8"
        self._logger.debug("Fetched %s (%d bytes)", url, len(body))
        return PageContent(
            url=response.url or url,
            domain=domain,
            raw_text=decode_body(body, encoding or "utf-8"),
            fetched_at=datetime.now(timezone.utc),
        )

    def close(self) -> None:
        self._session.close()

    def _read_body(self, response: Response, url: str) -> bytes:
        if response.status_code >= 400:
            raise FetchError(FetchError.HTTP_STATUS, url, status_code=response.status_code)
        content_type = response.headers.get("Content-Type", "text/html").lower()
        if not content_type.startswith(TEXT_CONTENT_TYPES):
            raise FetchError(FetchError.UNSUPPORTED, url, detail=f"content type {content_type}")
        declared = response.headers.get("Content-Length")
        if declared and declared.isdigit() and int(declared) > self._max_bytes:
            raise FetchError(FetchError.TOO_LARGE, url, detail=f"{declared} bytes declared")
        chunks: list[bytes] = []
        size = 0
        try:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                size += len(chunk)
                if size > self._max_bytes:
                    raise FetchError(
                        FetchError.TOO_LARGE, url, detail=f"over {self._max_bytes} bytes"
                    )
                chunks.append(chunk)
        except Timeout as exc:
            raise FetchError(FetchError.TIMEOUT, url, detail=str(exc)) from exc
        except RequestException as exc:
            raise FetchError(FetchError.CONNECTION_REFUSED, url, detail=str(exc)) from exc
        return b"".join(chunks)
