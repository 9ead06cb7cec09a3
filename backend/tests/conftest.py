"""
Pytest fixtures and test infrastructure for the gear shop scraper tests.
"""
import pytest
import os
import sys
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from gearshop.errors import FetchError, StoreUnavailable, WriteError
from gearshop.store import DatabaseConnection, InMemoryProductStore, ProductStore


NAME_CLASS = 'rivian-css-1vv3rb5'


def product_card(href, name=None, price=None, extra=''):
    """Markup for one listing anchor as the gear shop renders it."""
    parts = []
    if name is not None:
        parts.append(f'<p class="{NAME_CLASS}">{name}</p>')
    if price is not None:
        parts.append(f'<p class="rivian-css-kxv3q2">{price}</p>')
    parts.append(extra)
    return f'<a href="{href}"><div>{"".join(parts)}</div></a>'


def listing_page(*cards, outside=''):
    """Full listing document with the cards inside the store grid wrapper."""
    return f'''<!DOCTYPE html>
<html>
<head><title>Gear Shop</title></head>
<body>
  <nav><a href="/gear-shop/cart">Cart</a>{outside}</nav>
  <main>
    <div data-testid="store-grids-wrapper">
      {"".join(cards)}
    </div>
  </main>
</body>
</html>'''


class FakeFetcher:
    """Returns a fixed document, or raises, and records every call."""

    def __init__(self, document='', error=None):
        self.document = document
        self.error = error
        self.calls = []

    def fetch(self, url, timeout=None):
        self.calls.append((url, timeout))
        if self.error is not None:
            raise self.error
        return self.document


class FailingScanStore(InMemoryProductStore):
    """Store whose scan always fails."""

    def scan_all(self):
        raise StoreUnavailable("scan failed: connection refused")


class FlakyWriteStore(InMemoryProductStore):
    """Store that rejects writes for the given ids."""

    def __init__(self, fail_ids, items=None):
        super().__init__(items)
        self.fail_ids = set(fail_ids)
        self.attempts = []

    def put(self, item):
        self.attempts.append(item['id'])
        if item['id'] in self.fail_ids:
            raise WriteError(item['id'], "throughput exceeded")
        super().put(item)


@pytest.fixture
def scenario_a_html():
    """One product anchor with a name and a price paragraph."""
    return listing_page(product_card('/products/abc123', name='Trail Hat', price='$35.00'))


@pytest.fixture
def gear_shop_html():
    """Listing with several products, including a duplicate and prices missing."""
    return listing_page(
        product_card('/gear-shop/products/trail-hat', name='Trail Hat', price='$35.00'),
        product_card('/gear-shop/products/camp-mug?sku=MUG-01', name='Camp Mug'),
        product_card('/gear-shop/products/r1t-model', name='R1T Scale Model', price='$120.00'),
        product_card('/gear-shop/products/trail-hat', name='Trail Hat', price='$35.00'),
    )


@pytest.fixture
def memory_store():
    return InMemoryProductStore()


@pytest.fixture
def sqlite_db():
    """In-memory SQLite DatabaseConnection for isolated testing."""
    db = DatabaseConnection(database_url=None, db_path=':memory:')
    db.connect()
    yield db
    db.close()


@pytest.fixture
def sqlite_store(sqlite_db):
    """ProductStore on in-memory SQLite with the table created."""
    store = ProductStore(sqlite_db, 'gearshop_products')
    store.ensure_schema()
    return store


@pytest.fixture
def fetch_error():
    return FetchError('https://rivian.com/gear-shop', 'HTTP 503', status_code=503)


@pytest.fixture
def slow_server():
    """Local HTTP server whose listing page takes seconds to respond. Yields its URL."""
    release = threading.Event()

    class SlowHandler(BaseHTTPRequestHandler):
        def do_GET(self):
            release.wait(5)
            body = listing_page(product_card('/products/late', name='Late Hat')).encode('utf-8')
            try:
                self.send_response(200)
                self.send_header('Content-Type', 'text/html; charset=utf-8')
                self.send_header('Content-Length', str(len(body)))
                self.end_headers()
                self.wfile.write(body)
            except OSError:
                # Client already went away
                pass

        def log_message(self, format, *args):
            pass

    server = ThreadingHTTPServer(('127.0.0.1', 0), SlowHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f'http://127.0.0.1:{server.server_address[1]}/gear-shop'
    release.set()
    server.shutdown()
    server.server_close()
