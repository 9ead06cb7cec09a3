"""
Writing new products to the store.

Every new record gets its own write attempt. A failed write is logged and
counted, then the loop moves on; there is no batch transaction.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from .errors import GearShopError, NotificationError, WriteError
from .models import NewProductEvent, ProductRecord
from .notifier import Notifier
from .stats import RunStats


logger = logging.getLogger(__name__)


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 timestamp in UTC with seconds precision."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc).replace(microsecond=0).isoformat()


def build_item(record: ProductRecord, now: Optional[datetime] = None) -> Dict[str, str]:
    """Stored item for a record, stamped with its indexing time."""
    return {
        'id': record.id,
        'name': record.name,
        'sku': record.sku,
        'price': record.price,
        'gear_shop_url': record.url,
        'date_indexed': utc_timestamp(now),
    }


def persist(store, record: ProductRecord, now: Optional[datetime] = None) -> None:
    """
    Write one record. An existing item with the same id is overwritten.

    Raises:
        WriteError: If the record has no id or the store rejects the write.
    """
    if not record.id:
        raise WriteError(record.id, "record has no id to key on")
    try:
        store.put(build_item(record, now))
    except WriteError:
        raise
    except GearShopError as e:
        raise WriteError(record.id, str(e)) from e


def persist_all(store, records: Iterable[ProductRecord], stats: RunStats,
                notifier: Optional[Notifier] = None,
                before_write: Optional[Callable[[], None]] = None) -> List[ProductRecord]:
    """
    Write each record, then notify for it.

    Args:
        store: Product store with a put() method.
        records: New records in document order.
        stats: Run statistics to update.
        notifier: Receives a NewProductEvent per stored record.
        before_write: Called before each write; raising from it stops the
            loop (used for run cancellation).

    Returns:
        The records that were written.
    """
    written: List[ProductRecord] = []

    for record in records:
        if before_write is not None:
            before_write()

        try:
            persist(store, record)
        except WriteError as e:
            logger.error("Failed to store product %s: %s", record.id, e.reason)
            stats.record_write_failure(record, e.reason)
            continue

        logger.info("Successfully indexed new product %s", record.id)
        stats.record_new_product(record)
        written.append(record)

        if notifier is None:
            continue
        try:
            notifier.notify(NewProductEvent.from_record(record))
        except NotificationError as e:
            logger.error("Failed to notify for product %s: %s", record.id, e)
            stats.record_notification_failure(record, str(e))

    return written
