"""
Scrape runner service.

Holds the process settings and makes sure only one scrape runs at a time.
Each run gets a freshly built pipeline, closed when the run ends.
"""

import logging
import threading
from typing import Callable, Optional

from gearshop.config import Settings, load_settings
from gearshop.models import RunSummary
from gearshop.notifier import Notifier
from gearshop.pipeline import Pipeline, build_notifier, build_pipeline


logger = logging.getLogger(__name__)


class ScrapeAlreadyRunning(Exception):
    """A run was requested while another one is in progress."""


class ScrapeRunner:
    """
    Runs scrapes for the API.

    The factories exist so tests can inject pipelines and notifiers built
    on fakes.
    """

    def __init__(self,
                 pipeline_factory: Optional[Callable[[Settings], Pipeline]] = None,
                 notifier_factory: Optional[Callable[[Settings], Notifier]] = None):
        self.settings: Optional[Settings] = None
        self._pipeline_factory = pipeline_factory or build_pipeline
        self._notifier_factory = notifier_factory or build_notifier
        self._lock = threading.Lock()
        self._current: Optional[Pipeline] = None

    def initialize(self, settings: Optional[Settings] = None) -> None:
        """Load settings from the environment unless given."""
        self.settings = settings or load_settings()

    def _ensure_settings(self) -> Settings:
        if self.settings is None:
            self.initialize()
        return self.settings

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def run(self, timeout: Optional[float] = None) -> RunSummary:
        """
        Run one scrape.

        Raises:
            ScrapeAlreadyRunning: If a run is in progress.
            GearShopError: Any fatal pipeline error.
        """
        settings = self._ensure_settings()
        if not self._lock.acquire(blocking=False):
            raise ScrapeAlreadyRunning("A scrape run is already in progress")
        try:
            pipeline = self._pipeline_factory(settings)
            self._current = pipeline
            try:
                return pipeline.run(timeout=timeout)
            finally:
                self._current = None
                pipeline.close()
        finally:
            self._lock.release()

    def cancel(self) -> bool:
        """Cancel the run in progress. Returns False when nothing is running."""
        pipeline = self._current
        if pipeline is None:
            return False
        pipeline.cancel()
        return True

    def notifier(self) -> Notifier:
        return self._notifier_factory(self._ensure_settings())


# Global runner instance
runner = ScrapeRunner()


def get_runner() -> ScrapeRunner:
    """Dependency for FastAPI routes to get the scrape runner."""
    return runner
