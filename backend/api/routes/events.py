"""
Product change event routes.

The store's change feed posts batches of product change events here; every
INSERT becomes a new-product alert.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from gearshop.errors import NotificationError
from gearshop.models import ProductChangeEvent
from gearshop.notifier import handle_change_events

from ..services.runner import ScrapeRunner, get_runner


router = APIRouter(prefix="/api/events", tags=["events"])


class ProductRef(BaseModel):
    id: str


class ChangeEventsResponse(BaseModel):
    """Result of processing a batch of change events."""
    message: str
    products: List[ProductRef]


@router.post("/products", response_model=ChangeEventsResponse)
def receive_product_events(events: List[ProductChangeEvent],
                           scrape_runner: ScrapeRunner = Depends(get_runner)):
    """
    Send alerts for inserted products.

    Raises:
        HTTPException: 502 if an alert could not be delivered, so the feed
            redelivers the batch.
    """
    try:
        return handle_change_events(events, scrape_runner.notifier())
    except NotificationError as e:
        raise HTTPException(status_code=502, detail=str(e))
