from io import BytesIO

import pytest
from PIL import Image

from logocache.cache import CacheWriter
from logocache.resolver import LogoResolver


class FakeResponse:
    def __init__(self, status_code=200, content=b"", text=None, payload=None):
        self.status_code = status_code
        self.content = content
        self.text = text if text is not None else content.decode("utf-8", "replace")
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload


class FakeSession:
    """Maps URLs to responses (or exceptions) and records every request.

    Unknown URLs answer 404 so a test never touches the network.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    def _answer(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        answer = self.responses.get(url, FakeResponse(404))
        if isinstance(answer, BaseException):
            raise answer
        return answer

    def get(self, url, **kwargs):
        return self._answer("GET", url, kwargs)

    def head(self, url, **kwargs):
        return self._answer("HEAD", url, kwargs)

    @property
    def urls(self):
        return [url for _, url, _ in self.calls]


def png_bytes(size=(8, 8), color=(200, 30, 30)):
    buf = BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


def jpeg_bytes(size=(8, 8), color=(10, 120, 200)):
    buf = BytesIO()
    Image.new("RGB", size, color).save(buf, format="JPEG")
    return buf.getvalue()


@pytest.fixture
def logo_png():
    return png_bytes()


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def logos_dir(tmp_path):
    path = tmp_path / "public" / "logos"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def make_writer(logos_dir):
    """Build a CacheWriter over ``logos_dir`` backed by a FakeSession."""

    def _make(responses=None):
        session = FakeSession(responses)
        resolver = LogoResolver(session, timeout=1.0)
        return CacheWriter(logos_dir, resolver), session

    return _make


def ok(content):
    return FakeResponse(200, content)
