"""
Tests for the listing page fetcher.
HTTP is mocked at the session level.
"""
import pytest
import requests
from unittest.mock import MagicMock


def response(status=200, text='<html></html>'):
    resp = MagicMock()
    resp.status_code = status
    resp.text = text
    resp.content = text.encode('utf-8')
    if status >= 400:
        error = requests.exceptions.HTTPError(f"{status} Error")
        error.response = resp
        resp.raise_for_status.side_effect = error
    return resp


class TestListingFetcher:
    """GET handling and error mapping."""

    def test_returns_html(self):
        """Successful responses return the body text."""
        from gearshop.fetcher import ListingFetcher

        session = MagicMock()
        session.headers = {}
        session.get.return_value = response(text='<html>ok</html>')

        html = ListingFetcher(session, timeout=15).fetch('https://rivian.com/gear-shop')

        assert html == '<html>ok</html>'
        session.get.assert_called_once_with('https://rivian.com/gear-shop', timeout=15)

    def test_browser_headers_set(self):
        """Session carries browser-like headers."""
        from gearshop.fetcher import ListingFetcher, HEADERS

        session = requests.Session()
        ListingFetcher(session)

        assert session.headers['User-Agent'] == HEADERS['User-Agent']

    def test_per_call_timeout(self):
        """A per-call timeout overrides the default."""
        from gearshop.fetcher import ListingFetcher

        session = MagicMock()
        session.headers = {}
        session.get.return_value = response()

        ListingFetcher(session, timeout=30).fetch('https://rivian.com/gear-shop', timeout=2.5)

        assert session.get.call_args.kwargs['timeout'] == 2.5

    @pytest.mark.parametrize("status", [403, 404, 500, 503])
    def test_http_error(self, status):
        """Non-2xx responses raise FetchError with the status."""
        from gearshop.fetcher import ListingFetcher
        from gearshop.errors import FetchError

        session = MagicMock()
        session.headers = {}
        session.get.return_value = response(status=status)

        with pytest.raises(FetchError) as exc_info:
            ListingFetcher(session).fetch('https://rivian.com/gear-shop')

        assert exc_info.value.status_code == status
        assert exc_info.value.url == 'https://rivian.com/gear-shop'

    def test_timeout(self):
        """Timeouts raise FetchError."""
        from gearshop.fetcher import ListingFetcher
        from gearshop.errors import FetchError

        session = MagicMock()
        session.headers = {}
        session.get.side_effect = requests.exceptions.Timeout("read timed out")

        with pytest.raises(FetchError) as exc_info:
            ListingFetcher(session).fetch('https://rivian.com/gear-shop', timeout=1)

        assert 'timed out' in exc_info.value.reason

    def test_connection_error(self):
        """Transport errors raise FetchError."""
        from gearshop.fetcher import ListingFetcher
        from gearshop.errors import FetchError

        session = MagicMock()
        session.headers = {}
        session.get.side_effect = requests.exceptions.ConnectionError("Name or service not known")

        with pytest.raises(FetchError):
            ListingFetcher(session).fetch('https://rivian.com/gear-shop')
