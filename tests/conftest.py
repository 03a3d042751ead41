import httpx
import pytest

from apps.importer.config import Settings


class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers every request it served."""

    def __init__(self, handler):
        self.requests = []

        def _record(request: httpx.Request):
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)

    def calls(self, method=None, url=None):
        return [
            r for r in self.requests
            if (method is None or r.method == method)
            and (url is None or str(r.url) == url)
        ]


@pytest.fixture
def cfg():
    return Settings(fetch_timeout=2.0, max_verify_candidates=12)


@pytest.fixture
def mock_client():
    def _make(handler):
        transport = RecordingTransport(handler)
        client = httpx.AsyncClient(transport=transport, follow_redirects=True)
        return client, transport

    return _make
