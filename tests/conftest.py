"""Shared test fixtures: a fake CMS behind urllib and an app factory."""
import io
import json
import urllib.error
from urllib.parse import urlsplit

import pytest

from app.portal import create_app


class _FakeResponse:
    def __init__(self, status, raw):
        self.status = status
        self._raw = raw

    def read(self):
        return self._raw

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeCms:
    """
    Routes (method, path) to canned responses and records every outbound request.

    A route value is (status, body) where body is JSON-serializable, raw bytes,
    or an exception instance to raise from urlopen.
    """

    def __init__(self):
        self.routes = {}
        self.calls = []

    def add(self, method, path, status=200, body=None):
        self.routes[(method.upper(), path)] = (status, body)

    def calls_to(self, path):
        return [c for c in self.calls if c["path"] == path]

    def urlopen(self, req, timeout=None):
        parts = urlsplit(req.full_url)
        payload = json.loads(req.data.decode("utf-8")) if req.data else None
        self.calls.append(
            {
                "method": req.get_method(),
                "url": req.full_url,
                "path": parts.path,
                "query": parts.query,
                "headers": {k.lower(): v for k, v in req.header_items()},
                "json": payload,
                "timeout": timeout,
            }
        )
        key = (req.get_method(), parts.path)
        if key not in self.routes:
            raise urllib.error.HTTPError(req.full_url, 404, "Not Found", {}, io.BytesIO(b'{"error": {"message": "Not Found"}}'))
        status, body = self.routes[key]
        if isinstance(body, Exception):
            raise body
        raw = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")
        if status >= 400:
            raise urllib.error.HTTPError(req.full_url, status, "error", {}, io.BytesIO(raw))
        return _FakeResponse(status, raw)


@pytest.fixture()
def fake_cms(monkeypatch):
    cms = FakeCms()
    monkeypatch.setattr("urllib.request.urlopen", cms.urlopen)
    return cms


@pytest.fixture()
def app(monkeypatch, fake_cms):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("CMS_BASE_URL", "http://cms.test")
    monkeypatch.setenv("CMS_API_TOKEN", "service-token")
    app = create_app()
    app.config["TESTING"] = True
    return app


@pytest.fixture()
def client(app):
    return app.test_client()
