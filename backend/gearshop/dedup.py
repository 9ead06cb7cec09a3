"""
Known-set loading and new-product decisions.

A product is new when its id is not in the store and has not already been
seen earlier in the same run. Only the id is compared: a price or name
change on an already stored product does not make it new again.
"""

import logging
from typing import Iterable, List, NamedTuple, Set

from .errors import GearShopError, StoreUnavailable
from .models import ProductRecord


logger = logging.getLogger(__name__)


class DedupResult(NamedTuple):
    all_parseable: List[ProductRecord]
    new_ones: List[ProductRecord]


def load_known(store) -> Set[str]:
    """
    Load the ids of every stored product.

    An empty store gives an empty set.

    Raises:
        StoreUnavailable: If the scan cannot complete.
    """
    try:
        items = store.scan_all()
    except StoreUnavailable:
        raise
    except GearShopError as e:
        raise StoreUnavailable(str(e)) from e

    known = {item['id'] for item in items if item.get('id')}
    logger.info("Loaded %d known products", len(known))
    return known


def decide(candidates: Iterable[ProductRecord], known: Set[str]) -> DedupResult:
    """
    Split candidates into all parseable records and the new ones.

    Both lists keep document order. `known` is not modified.
    """
    all_parseable: List[ProductRecord] = []
    new_ones: List[ProductRecord] = []
    seen_this_run: Set[str] = set()

    for candidate in candidates:
        if not candidate.is_parseable:
            logger.warning("Dropping unparseable candidate: %r", candidate)
            continue
        all_parseable.append(candidate)

        if candidate.id in known:
            continue
        if candidate.id in seen_this_run:
            logger.debug("Duplicate listing for %s on this page", candidate.id)
            continue

        if candidate.id:
            seen_this_run.add(candidate.id)
        new_ones.append(candidate)

    return DedupResult(all_parseable, new_ones)
