"""
Scrape run orchestration.

One run walks a fixed sequence of states:

    START -> LOAD_KNOWN -> FETCH_DOCUMENT -> EXTRACT -> DEDUP
          -> PERSIST_EACH -> SUMMARIZE -> DONE

Any fatal error moves the run to FAILED and propagates. Store, fetcher and
notifier are passed in; build_pipeline() wires the real ones from Settings.
"""

import json
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from enum import Enum
from typing import List, Optional

import requests

from .config import DEFAULT_GEARSHOP_URL, DEFAULT_REQUEST_TIMEOUT, MAX_PAYLOAD_BYTES, Settings
from .dedup import decide, load_known
from .errors import FetchError, GearShopError, PayloadTooLarge, RunCancelled
from .extractor import ListingExtractor
from .fetcher import ListingFetcher
from .models import ProductRecord, RunSummary
from .notifier import LogNotifier, Notifier, WebhookNotifier
from .persistence import persist_all
from .stats import RunStats
from .store import open_store


logger = logging.getLogger(__name__)


# How often a running fetch checks for cancellation
CANCEL_POLL_SECONDS = 0.05


class RunState(Enum):
    START = "start"
    LOAD_KNOWN = "load_known"
    FETCH_DOCUMENT = "fetch_document"
    EXTRACT = "extract"
    DEDUP = "dedup"
    PERSIST_EACH = "persist_each"
    SUMMARIZE = "summarize"
    DONE = "done"
    FAILED = "failed"


def serialize_candidates(records: List[ProductRecord]) -> bytes:
    """Compact UTF-8 JSON payload of the candidate list, as sent downstream."""
    payload = json.dumps([r.to_dict() for r in records], separators=(',', ':'), ensure_ascii=False)
    return payload.encode('utf-8')


class Pipeline:
    """
    Runs scrape-extract-dedup-persist for one listing page.

    A Pipeline can be run repeatedly; every run starts from fresh state and
    reloads the known products from the store. Cancellation is permanent:
    once cancel() is called every later run fails with RunCancelled.
    """

    def __init__(self, store, fetcher, notifier: Optional[Notifier] = None,
                 extractor: Optional[ListingExtractor] = None,
                 url: str = DEFAULT_GEARSHOP_URL,
                 request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
                 max_payload_bytes: int = MAX_PAYLOAD_BYTES):
        self.store = store
        self.fetcher = fetcher
        self.notifier = notifier
        self.extractor = extractor or ListingExtractor()
        self.url = url
        self.request_timeout = request_timeout
        self.max_payload_bytes = max_payload_bytes

        self.state = RunState.START
        self.failed_state: Optional[RunState] = None
        self.stats: Optional[RunStats] = None
        self._cancel = threading.Event()

    # -------------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------------

    def cancel(self) -> None:
        """
        Stop the current run.

        A fetch in progress is abandoned right away and its session closed;
        otherwise the run stops before its next step or write.
        """
        self._cancel.set()
        close = getattr(self.fetcher, 'close', None)
        if close is not None:
            close()

    def _check(self, deadline: Optional[float]) -> None:
        if self._cancel.is_set():
            raise RunCancelled(f"Run cancelled during {self.state.value}")
        if deadline is not None and time.monotonic() >= deadline:
            raise RunCancelled(f"Run deadline exceeded during {self.state.value}")

    def _enter(self, state: RunState, deadline: Optional[float]) -> None:
        self.state = state
        logger.debug("Run state: %s", state.value)
        self._check(deadline)

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def _fetch(self, deadline: Optional[float]) -> str:
        timeout = self.request_timeout
        if deadline is not None:
            timeout = min(timeout, max(deadline - time.monotonic(), 0.001))
        # The GET runs on a worker so a cancelled run stops waiting for it
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='gearshop-fetch')
        future = executor.submit(self.fetcher.fetch, self.url, timeout=timeout)
        executor.shutdown(wait=False)
        try:
            while True:
                done, _ = wait([future], timeout=CANCEL_POLL_SECONDS)
                if done:
                    return future.result()
                self._check(deadline)
        except FetchError as e:
            if self._cancel.is_set():
                raise RunCancelled(f"Run cancelled while fetching {self.url}") from e
            if deadline is not None and time.monotonic() >= deadline:
                raise RunCancelled(f"Run deadline exceeded while fetching {self.url}") from e
            if self.stats is not None:
                self.stats.record_fetch_failure(self.url, e.reason)
            raise

    def _check_payload(self, records: List[ProductRecord]) -> None:
        size = len(serialize_candidates(records))
        if size > self.max_payload_bytes:
            logger.error("Response payload of %d bytes exceeds %d bytes", size, self.max_payload_bytes)
            raise PayloadTooLarge(size, self.max_payload_bytes)

    def run(self, timeout: Optional[float] = None) -> RunSummary:
        """
        Execute one scrape run.

        Args:
            timeout: Optional run deadline in seconds.

        Returns:
            RunSummary with discovered and indexed counts.

        Raises:
            StoreUnavailable: Known products could not be loaded.
            FetchError: The listing page could not be fetched.
            PayloadTooLarge: The candidate list is over the size limit.
            RunCancelled: Deadline expired or cancel() was called.
        """
        self.state = RunState.START
        self.failed_state = None
        self.stats = RunStats()
        deadline = time.monotonic() + timeout if timeout is not None else None

        try:
            return self._run(deadline)
        except GearShopError as e:
            self.failed_state = self.state
            self.state = RunState.FAILED
            logger.error("Run failed during %s: %s", self.failed_state.value, e)
            raise

    def _run(self, deadline: Optional[float]) -> RunSummary:
        stats = self.stats

        self._enter(RunState.LOAD_KNOWN, deadline)
        known = load_known(self.store)

        self._enter(RunState.FETCH_DOCUMENT, deadline)
        document = self._fetch(deadline)

        self._enter(RunState.EXTRACT, deadline)
        candidates = list(self.extractor.extract(document, on_unparseable=stats.record_unparseable))

        self._enter(RunState.DEDUP, deadline)
        result = decide(candidates, known)
        stats.products_discovered = len(result.all_parseable)
        stats.products_known = sum(1 for r in result.all_parseable if r.id in known)
        stats.products_new = len(result.new_ones)
        logger.info("Found %d total product listings (%d new)",
                    stats.products_discovered, stats.products_new)

        self._enter(RunState.PERSIST_EACH, deadline)
        persist_all(self.store, result.new_ones, stats, self.notifier,
                    before_write=lambda: self._check(deadline))

        self._enter(RunState.SUMMARIZE, deadline)
        self._check_payload(result.all_parseable)
        summary = stats.to_summary()

        self.state = RunState.DONE
        logger.info(summary.message)
        return summary

    def discover(self, timeout: Optional[float] = None) -> List[ProductRecord]:
        """Fetch and extract the listing without reading or writing the store."""
        deadline = time.monotonic() + timeout if timeout is not None else None
        document = self._fetch(deadline)
        return list(self.extractor.extract(document))

    def close(self) -> None:
        for resource in (self.store, self.fetcher):
            close = getattr(resource, 'close', None)
            if close is not None:
                close()


def build_notifier(settings: Settings, session: Optional[requests.Session] = None) -> Notifier:
    """Webhook notifier when configured; log-only in local mode or without a webhook."""
    if settings.skip_external or not settings.webhook_url:
        return LogNotifier(hostname=settings.gearshop_hostname)
    return WebhookNotifier(
        settings.webhook_url,
        session=session,
        hostname=settings.gearshop_hostname,
        referral_code=settings.referral_code,
    )


def build_pipeline(settings: Settings, session: Optional[requests.Session] = None,
                   store=None) -> Pipeline:
    """
    Wire a Pipeline from settings.

    Raises:
        StoreUnavailable: If no store was given and the database cannot be opened.
    """
    session = session or requests.Session()
    return Pipeline(
        store=store if store is not None else open_store(settings),
        fetcher=ListingFetcher(session, timeout=settings.request_timeout),
        notifier=build_notifier(settings, session),
        url=settings.gearshop_url,
        request_timeout=settings.request_timeout,
        max_payload_bytes=settings.max_payload_bytes,
    )
