"""
Error types raised by the scrape pipeline.

Fatal errors (FetchError, StoreUnavailable, PayloadTooLarge, RunCancelled)
abort the run. WriteError and NotificationError are per-record and are
handled inside the persistence loop.
"""


class GearShopError(Exception):
    """Base class for all pipeline errors."""


class FetchError(GearShopError):
    """The listing page could not be retrieved."""

    def __init__(self, url: str, reason: str, status_code: int = None):
        self.url = url
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Failed to fetch {url}: {reason}")


class StoreUnavailable(GearShopError):
    """The product store could not be opened or scanned."""


class WriteError(GearShopError):
    """A single product could not be written to the store."""

    def __init__(self, product_id: str, reason: str):
        self.product_id = product_id
        self.reason = reason
        super().__init__(f"Failed to store product {product_id}: {reason}")


class PayloadTooLarge(GearShopError):
    """The serialized candidate list is over the transport limit."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Response payload of {size} bytes exceeds {limit} bytes")


class RunCancelled(GearShopError):
    """The run deadline expired or cancellation was requested."""


class NotificationError(GearShopError):
    """A notifier failed to deliver a new-product event."""
