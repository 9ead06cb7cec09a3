"""
HTTP fetch of the listing page.

One GET per run. There is no retry here; a failed fetch fails the run and
the caller (scheduler, operator) decides whether to run again.
"""

import logging
from typing import Optional

import requests

from .errors import FetchError


logger = logging.getLogger(__name__)


# Request headers
HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.9',
    'Connection': 'keep-alive',
}


class ListingFetcher:
    """Fetches listing page HTML through a shared requests.Session."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = 30.0):
        self.session = session or requests.Session()
        self.session.headers.update(HEADERS)
        self.timeout = timeout

    def fetch(self, url: str, timeout: Optional[float] = None) -> str:
        """
        GET the page and return its HTML.

        Raises:
            FetchError: On transport errors, timeouts and non-2xx responses.
        """
        effective_timeout = timeout if timeout is not None else self.timeout
        logger.info("Fetching %s (timeout %.1fs)", url, effective_timeout)
        try:
            response = self.session.get(url, timeout=effective_timeout)
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise FetchError(url, f"HTTP {status}", status_code=status) from e
        except requests.exceptions.Timeout as e:
            raise FetchError(url, f"timed out after {effective_timeout:.1f}s") from e
        except requests.exceptions.RequestException as e:
            raise FetchError(url, str(e)) from e

        logger.info("Fetched %s (%d bytes)", url, len(response.content))
        return response.text

    def close(self) -> None:
        self.session.close()
