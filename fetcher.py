"""
Fetcher - Rate-limited, retrying HTTP GET with robots.txt support
=================================================================
One Fetcher is created per run and handed to every component that talks to
the network. It owns the per-domain rate-limit clock and the robots.txt
cache, both guarded by locks so concurrent callers stay serialized per host.

fetch() never raises: after retries are exhausted (or on a timeout, which is
not retried) it returns a synthetic FetchResult(ok=False, status=0).
"""

import logging
import time
from dataclasses import dataclass, field
from threading import Lock
from typing import Callable, Dict, List, Optional
from urllib.parse import urljoin, urlparse

import httpx

logger = logging.getLogger(__name__)

USER_AGENT = "SurfacedArt-ArtistTool/1.0 (contact@surfaced.art)"
DEFAULT_TIMEOUT = 15.0
ROBOTS_TIMEOUT = 5.0
RATE_LIMIT_DELAY = 0.5
MAX_RETRIES = 2


@dataclass
class FetchResult:
    ok: bool
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""
    url: str = ""


def get_domain(url: str) -> str:
    try:
        return urlparse(url).hostname or "unknown"
    except ValueError:
        return "unknown"


def parse_robots_txt(content: str) -> List[str]:
    """Return the Disallow path prefixes of the 'User-agent: *' block."""
    disallowed: List[str] = []
    in_wildcard_block = False

    for raw_line in (content or "").splitlines():
        line = raw_line.split("#", 1)[0].strip()
        lower = line.lower()

        if lower.startswith("user-agent:"):
            agent = line[len("user-agent:"):].strip()
            in_wildcard_block = agent == "*"
            continue

        if in_wildcard_block and lower.startswith("disallow:"):
            path = line[len("disallow:"):].strip()
            if path:
                disallowed.append(path)

    return disallowed


def is_allowed_by_robots(url: str, disallow_paths: List[str]) -> bool:
    try:
        path = urlparse(url).path or "/"
    except ValueError:
        return True
    return not any(path.startswith(prefix) for prefix in disallow_paths)


class Fetcher:
    """Shared HTTP access for a single scraping run."""

    def __init__(self, client: Optional[httpx.Client] = None,
                 min_delay: float = RATE_LIMIT_DELAY,
                 max_retries: int = MAX_RETRIES,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.client = client or self._create_client()
        self.min_delay = min_delay
        self.max_retries = max_retries
        self._sleep = sleep
        self._clock = clock

        self._last_fetch: Dict[str, float] = {}
        self._rate_lock = Lock()
        self._robots_cache: Dict[str, List[str]] = {}
        self._robots_lock = Lock()

    def _create_client(self) -> httpx.Client:
        return httpx.Client(
            http2=True,
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
            timeout=DEFAULT_TIMEOUT,
        )

    def close(self) -> None:
        self.client.close()

    def wait_for_slot(self, domain: str) -> None:
        """Block until at least min_delay has passed since the last request to domain."""
        with self._rate_lock:
            now = self._clock()
            last = self._last_fetch.get(domain)
            scheduled = now if last is None else max(now, last + self.min_delay)
            # Reserve the slot before sleeping so other threads queue behind it
            self._last_fetch[domain] = scheduled
        wait = scheduled - now
        if wait > 0:
            self._sleep(wait)

    def fetch(self, url: str, timeout: float = DEFAULT_TIMEOUT,
              accept_json: bool = False) -> FetchResult:
        domain = get_domain(url)
        headers = {"Accept": "application/json"} if accept_json else {}

        for attempt in range(self.max_retries + 1):
            self.wait_for_slot(domain)
            logger.debug(f"Fetching {url} (attempt {attempt + 1})")

            try:
                resp = self.client.get(url, headers=headers, timeout=timeout)
            except httpx.TimeoutException as e:
                logger.warning(f"Timeout fetching {url}: {e}")
                break
            except (httpx.InvalidURL, httpx.StreamError) as e:
                logger.warning(f"Cannot fetch {url}: {e}")
                break
            except httpx.HTTPError as e:
                logger.debug(f"Fetch failed for {url}, attempt {attempt + 1}/{self.max_retries + 1}: {e}")
                continue

            return FetchResult(
                ok=resp.is_success,
                status=resp.status_code,
                headers={k.lower(): v for k, v in resp.headers.items()},
                body=resp.text,
                url=str(resp.url),
            )

        return FetchResult(ok=False, status=0, headers={}, body="", url=url)

    def robots_disallows(self, base_url: str) -> List[str]:
        """Disallowed prefixes for the site, fetched once per domain per run."""
        domain = get_domain(base_url)
        with self._robots_lock:
            if domain in self._robots_cache:
                return self._robots_cache[domain]

        result = self.fetch(urljoin(base_url, "/robots.txt"), timeout=ROBOTS_TIMEOUT)
        paths = parse_robots_txt(result.body) if result.ok else []
        if paths:
            logger.debug(f"robots.txt for {domain}: {len(paths)} disallowed prefixes")

        with self._robots_lock:
            self._robots_cache.setdefault(domain, paths)
            return self._robots_cache[domain]

    def is_allowed(self, url: str) -> bool:
        return is_allowed_by_robots(url, self.robots_disallows(url))
