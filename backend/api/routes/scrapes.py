"""
Scrape run routes.

Endpoints for triggering a scrape, checking whether one is running and
cancelling it.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from gearshop.errors import FetchError, GearShopError, PayloadTooLarge, RunCancelled, StoreUnavailable
from gearshop.models import RunSummary

from ..services.runner import ScrapeAlreadyRunning, ScrapeRunner, get_runner


router = APIRouter(prefix="/api/scrapes", tags=["scrapes"])


# Fatal pipeline errors and the status codes they map to
ERROR_STATUS = {
    FetchError: 502,
    StoreUnavailable: 503,
    PayloadTooLarge: 413,
    RunCancelled: 504,
}


class RunScrapeRequest(BaseModel):
    """Request body for triggering a scrape run."""
    timeout: Optional[float] = Field(default=None, gt=0)


class ScrapeStatusResponse(BaseModel):
    """Response for scrape status check."""
    is_running: bool


class CancelResponse(BaseModel):
    cancelled: bool


def status_for(error: GearShopError) -> int:
    for error_type, status in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status
    return 500


@router.post("/run", response_model=RunSummary)
def run_scrape(request: Optional[RunScrapeRequest] = None,
               scrape_runner: ScrapeRunner = Depends(get_runner)):
    """
    Run a scrape and return its summary.

    Raises:
        HTTPException: 409 if a run is in progress, otherwise the status
            mapped from the pipeline error.
    """
    timeout = request.timeout if request else None
    try:
        return scrape_runner.run(timeout=timeout)
    except ScrapeAlreadyRunning as e:
        raise HTTPException(status_code=409, detail=str(e))
    except GearShopError as e:
        raise HTTPException(status_code=status_for(e), detail=str(e))


@router.get("/status", response_model=ScrapeStatusResponse)
def get_scrape_status(scrape_runner: ScrapeRunner = Depends(get_runner)):
    """Check if a scrape is currently running."""
    return ScrapeStatusResponse(is_running=scrape_runner.is_running)


@router.post("/cancel", response_model=CancelResponse)
def cancel_scrape(scrape_runner: ScrapeRunner = Depends(get_runner)):
    """Ask the running scrape to stop at its next checkpoint."""
    return CancelResponse(cancelled=scrape_runner.cancel())
