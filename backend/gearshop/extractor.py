"""
Product extraction from the gear shop listing page.

The listing is server-rendered HTML: every product is an anchor inside the
store grid wrapper. Each ProductRecord field comes from a FieldRule applied
to that anchor, so a markup change on the site means swapping one rule.

Prices on the live site are loaded dynamically and are usually missing from
the static markup; those products get price "N/A".
"""

import logging
from typing import Callable, Dict, Iterator, List, Optional
from urllib.parse import parse_qs, urlsplit

from bs4 import BeautifulSoup, Tag

from .models import NOT_AVAILABLE, ProductRecord


logger = logging.getLogger(__name__)


# =============================================================================
# Selectors
# =============================================================================

CONTAINER_SELECTOR = 'div[data-testid="store-grids-wrapper"]'
ANCHOR_SELECTOR = 'a[href]'
NAME_SELECTOR = 'p.rivian-css-1vv3rb5'
PRICE_SELECTOR = 'p'
CURRENCY_MARKER = '$'
SKU_PARAM = 'sku'

FIELDS = ('id', 'name', 'sku', 'price', 'url')


# =============================================================================
# Field Rules
# =============================================================================

def last_path_segment(href: str) -> str:
    """
    Return the final non-empty path segment of a URL.

    Examples:
    - "/products/abc123" → "abc123"
    - "/products/abc123/" → "abc123"
    - "/gear-shop/hat?sku=H-1" → "hat"
    - "" → ""
    """
    if not href:
        return ""
    parts = [p for p in urlsplit(href).path.split('/') if p]
    return parts[-1] if parts else ""


class FieldRule:
    """Derives one ProductRecord field from a listing anchor."""

    def apply(self, anchor: Tag) -> str:
        raise NotImplementedError


class AttributeRule(FieldRule):
    """Raw attribute value of the anchor."""

    def __init__(self, attr: str = 'href'):
        self.attr = attr

    def apply(self, anchor: Tag) -> str:
        value = anchor.get(self.attr)
        if isinstance(value, list):
            value = ' '.join(value)
        return (value or '').strip()


class HrefSegmentRule(FieldRule):
    """Last path segment of the anchor's href (the product id)."""

    def __init__(self, attr: str = 'href'):
        self.attr = attr

    def apply(self, anchor: Tag) -> str:
        return last_path_segment(anchor.get(self.attr) or '')


class TextRule(FieldRule):
    """Text of nested elements matching a CSS selector."""

    def __init__(self, selector: str):
        self.selector = selector

    def apply(self, anchor: Tag) -> str:
        texts = [' '.join(el.get_text(' ').split()) for el in anchor.select(self.selector)]
        return ' '.join(t for t in texts if t)


class QueryParamRule(FieldRule):
    """
    Query parameter of the anchor's href.

    The lookup is attempted whenever the href is non-empty; a missing or
    blank parameter gives the sentinel.
    """

    def __init__(self, param: str = SKU_PARAM, attr: str = 'href'):
        self.param = param
        self.attr = attr

    def apply(self, anchor: Tag) -> str:
        href = anchor.get(self.attr) or ''
        if not href:
            return NOT_AVAILABLE
        values = parse_qs(urlsplit(href).query).get(self.param)
        if values and values[0].strip():
            return values[0].strip()
        return NOT_AVAILABLE


class MarkerTextRule(FieldRule):
    """
    Text of the first descendant element containing a marker string.

    Used for the price: the first <p> in document order whose text
    contains "$" wins. The text is kept as-is apart from trimming.
    """

    def __init__(self, selector: str = PRICE_SELECTOR, marker: str = CURRENCY_MARKER):
        self.selector = selector
        self.marker = marker

    def apply(self, anchor: Tag) -> str:
        for el in anchor.select(self.selector):
            text = el.get_text().strip()
            if text and self.marker in text:
                return text
        return NOT_AVAILABLE


def default_rules() -> Dict[str, FieldRule]:
    """Field rules for the current gear shop markup."""
    return {
        'id': HrefSegmentRule(),
        'name': TextRule(NAME_SELECTOR),
        'sku': QueryParamRule(SKU_PARAM),
        'price': MarkerTextRule(PRICE_SELECTOR, CURRENCY_MARKER),
        'url': AttributeRule('href'),
    }


# =============================================================================
# Extractor
# =============================================================================

UnparseableCallback = Callable[[int, str], None]


class ListingExtractor:
    """Yields ProductRecords from listing page HTML."""

    def __init__(self, container_selector: str = CONTAINER_SELECTOR,
                 anchor_selector: str = ANCHOR_SELECTOR,
                 rules: Optional[Dict[str, FieldRule]] = None,
                 parser: str = 'html.parser'):
        self.container_selector = container_selector
        self.anchor_selector = anchor_selector
        self.parser = parser
        self.rules = default_rules()
        if rules:
            unknown = set(rules) - set(FIELDS)
            if unknown:
                raise ValueError(f"Unknown fields in rules: {sorted(unknown)}")
            self.rules.update(rules)

    @property
    def selector(self) -> str:
        return f"{self.container_selector} {self.anchor_selector}"

    def find_anchors(self, soup: BeautifulSoup) -> List[Tag]:
        return soup.select(self.selector)

    def extract_anchor(self, anchor: Tag) -> ProductRecord:
        """Apply every field rule to one anchor."""
        values = {name: rule.apply(anchor) for name, rule in self.rules.items()}
        return ProductRecord(**values)

    def extract(self, document: str,
                on_unparseable: Optional[UnparseableCallback] = None) -> Iterator[ProductRecord]:
        """
        Extract parseable product records from an HTML document.

        Unparseable anchors (no id, name or url) are logged, reported to
        on_unparseable as (position, markup snippet) and skipped.
        """
        if not document or not document.strip():
            return

        soup = BeautifulSoup(document, self.parser)
        for position, anchor in enumerate(self.find_anchors(soup)):
            record = self.extract_anchor(anchor)
            if not record.is_parseable:
                snippet = str(anchor)[:200]
                logger.warning("Skipping unparseable listing element #%d: %s", position, snippet)
                if on_unparseable is not None:
                    on_unparseable(position, snippet)
                continue
            yield record


def extract(document: str, on_unparseable: Optional[UnparseableCallback] = None) -> Iterator[ProductRecord]:
    """Extract with the default gear shop selectors."""
    return ListingExtractor().extract(document, on_unparseable=on_unparseable)
