from urllib.parse import unquote, urlsplit

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from file_proxy.config import settings
from file_proxy.main import app, signature_cache

# Override settings for testing
settings.url_signer_secret_key = "Super secret key to sign URLs"


class FakeClock:
    """Manually advanced clock usable wherever a ``time.time``-like callable is expected."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture(autouse=True)
def reset_signature_cache():
    """Reset the application's signature cache between tests to prevent cross-test pollution."""
    signature_cache.clear()
    yield
    signature_cache.clear()


@pytest.fixture
def credentials():
    return settings.url_signer_secret_key


@pytest.fixture
def fake_clock():
    return FakeClock(now=1_000.0)


@pytest.fixture
def files_root(tmp_path, monkeypatch):
    """A populated directory served under /files."""
    root = tmp_path / "files"
    (root / "nested").mkdir(parents=True)
    (root / "hello.txt").write_text("hello world")
    (root / "nested" / "data.csv").write_text("a,b\n1,2\n")
    monkeypatch.setattr(settings, "local_files_root", str(root))
    return root


@pytest.fixture
def client(files_root):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def request_factory():
    """Factory building Starlette requests for a method and absolute URL."""

    def _factory(method: str, url: str) -> Request:
        parts = urlsplit(url)
        scope = {
            "type": "http",
            "http_version": "1.1",
            "method": method,
            "scheme": parts.scheme,
            "server": (parts.hostname, parts.port or 80),
            "client": ("127.0.0.1", 50000),
            "root_path": "",
            "path": unquote(parts.path),
            "raw_path": parts.path.encode("latin-1"),
            "query_string": parts.query.encode("latin-1"),
            "headers": [(b"host", parts.netloc.encode("latin-1"))],
        }
        return Request(scope)

    return _factory
