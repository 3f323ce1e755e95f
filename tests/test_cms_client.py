"""Tests for the CMS fetch client: URL building, headers, and failure degradation."""
import socket
import urllib.error

import pytest

from app.portal.cms.client import CmsClient, CmsSettings, extract_error_message


@pytest.fixture()
def cms(fake_cms):
    return CmsClient(CmsSettings(base_url="http://cms.test", api_token="service-token", timeout_seconds=5))


def test_missing_base_url_degrades_without_network(fake_cms):
    client = CmsClient(CmsSettings(base_url=""))
    for path in ("programs", "users/1", "anything/at/all"):
        result = client.request(path, params={"populate": "*"})
        assert result.is_empty
        assert result.envelope() == {"data": None, "meta": {}}
    assert fake_cms.calls == []


def test_success_returns_body_and_meta(cms, fake_cms):
    fake_cms.add("GET", "/api/programs", body={"data": [{"id": 1}], "meta": {"pagination": {"total": 1}}})
    result = cms.request("programs", params={"populate": {"department": True}})
    assert result.ok
    assert result.data == [{"id": 1}]
    assert result.meta == {"pagination": {"total": 1}}
    call = fake_cms.calls[0]
    assert call["url"] == "http://cms.test/api/programs?populate[department]=true"
    assert call["timeout"] == 5


def test_body_without_data_key_is_returned_as_is(cms, fake_cms):
    fake_cms.add("GET", "/api/users/7", body={"id": 7, "type": "organization"})
    result = cms.request("users/7")
    assert result.data == {"id": 7, "type": "organization"}
    assert result.meta == {}


def test_http_500_degrades(cms, fake_cms):
    fake_cms.add("GET", "/api/programs", status=500, body={"error": {"message": "boom"}})
    result = cms.request("programs")
    assert result.is_empty
    assert result.status_code == 500
    assert result.envelope() == {"data": None, "meta": {}}


def test_network_failure_degrades(cms, fake_cms):
    fake_cms.add("GET", "/api/programs", body=urllib.error.URLError("connection refused"))
    assert cms.request("programs").envelope() == {"data": None, "meta": {}}


def test_timeout_degrades(cms, fake_cms):
    fake_cms.add("GET", "/api/programs", body=socket.timeout("timed out"))
    assert cms.request("programs").is_empty


def test_invalid_json_degrades(cms, fake_cms):
    fake_cms.add("GET", "/api/programs", body=b"<html>not json</html>")
    assert cms.request("programs").is_empty


def test_failures_are_logged_with_context(cms, fake_cms, caplog):
    fake_cms.add("GET", "/api/programs", status=503, body={})
    with caplog.at_level("WARNING", logger="app.portal.cms.client"):
        cms.request("programs")
    assert "programs" in caplog.text
    assert "http://cms.test" in caplog.text
    assert "503" in caplog.text


def test_service_token_header(cms, fake_cms):
    fake_cms.add("GET", "/api/programs", body={"data": []})
    cms.request("programs")
    headers = fake_cms.calls[0]["headers"]
    assert headers["authorization"] == "Bearer service-token"
    assert headers["content-type"] == "application/json"


def test_session_token_takes_precedence(cms, fake_cms):
    fake_cms.add("GET", "/api/users/1", body={"id": 1})
    cms.request("users/1", token="user-jwt")
    assert fake_cms.calls[0]["headers"]["authorization"] == "Bearer user-jwt"


def test_anonymous_call_has_no_authorization(cms, fake_cms):
    fake_cms.add("POST", "/api/auth/local", body={"jwt": "x", "user": {"id": 1}})
    cms.mutate("auth/local", json_body={"identifier": "a", "password": "b"}, anonymous=True)
    assert "authorization" not in fake_cms.calls[0]["headers"]


def test_build_url_collapses_slashes_and_prefix():
    client = CmsClient(CmsSettings(base_url="http://cms.test"))
    assert client.build_url("/programs/") == "http://cms.test/api/programs/"
    assert client.build_url("uploads/x.png", use_api_prefix=False) == "http://cms.test/uploads/x.png"
    assert client.build_url("jobs", params={"a": None}) == "http://cms.test/api/jobs"


def test_base_url_without_scheme_degrades(fake_cms):
    client = CmsClient(CmsSettings(base_url="cms.example.com"))
    result = client.request("programs")
    assert result.is_empty
    assert result.envelope() == {"data": None, "meta": {}}

    failed = client.mutate("auth/local", json_body={"identifier": "a", "password": "b"}, fallback_message="Login failed")
    assert failed.is_error
    assert failed.message == "Login failed"
    assert fake_cms.calls == []


def test_programs_page_renders_with_schemeless_base_url(monkeypatch, fake_cms):
    from app.portal import create_app

    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("CMS_BASE_URL", "cms.example.com")
    app = create_app()
    r = app.test_client().get("/programs")
    assert r.status_code == 200


def test_settings_from_config_strips_trailing_slash():
    settings = CmsSettings.from_config({"CMS_BASE_URL": "http://cms.test/", "CMS_TIMEOUT_SECONDS": 3})
    assert settings.base_url == "http://cms.test"
    assert settings.timeout_seconds == 3.0
    assert settings.configured


class TestMutate:
    def test_error_message_extracted(self, cms, fake_cms):
        fake_cms.add("POST", "/api/auth/local", status=400, body={"error": {"message": "Invalid identifier or password"}})
        result = cms.mutate("auth/local", json_body={}, fallback_message="Login failed")
        assert result.is_error
        assert result.message == "Invalid identifier or password"
        assert result.status_code == 400

    def test_unreadable_error_body_uses_raw_text(self, cms, fake_cms):
        fake_cms.add("POST", "/api/companies", status=502, body=b"Bad Gateway")
        result = cms.mutate("companies", json_body={"data": {}})
        assert result.message == "Bad Gateway"

    def test_transport_failure_is_typed_error(self, cms, fake_cms):
        fake_cms.add("POST", "/api/jobs", body=urllib.error.URLError("down"))
        result = cms.mutate("jobs", json_body={"data": {}}, fallback_message="Failed to create job posting")
        assert result.is_error
        assert result.message == "Failed to create job posting"

    def test_unconfigured_is_typed_error(self, fake_cms):
        result = CmsClient(CmsSettings(base_url="")).mutate("jobs", json_body={})
        assert result.is_error
        assert fake_cms.calls == []

    def test_success_with_unparsable_body_carries_warning(self, cms, fake_cms):
        fake_cms.add("PUT", "/api/companies/9", body=b"OK but not json")
        result = cms.mutate("companies/9", method="PUT", json_body={"data": {"name": "Acme"}})
        assert result.ok
        assert result.warning
        assert fake_cms.calls[0]["json"] == {"data": {"name": "Acme"}}


class TestExtractErrorMessage:
    def test_nested_error(self):
        assert extract_error_message({"error": {"error": {"message": "deep"}}}, "x") == "deep"

    def test_legacy_messages_list(self):
        body = {"error": {"data": [{"messages": [{"message": "Email is already taken."}]}]}}
        assert extract_error_message(body, "x") == "Email is already taken."

    def test_top_level_message_and_string_error(self):
        assert extract_error_message({"message": "top"}, "x") == "top"
        assert extract_error_message({"error": "plain"}, "x") == "plain"

    def test_fallback(self):
        assert extract_error_message(None, "fallback") == "fallback"
        assert extract_error_message({}, "fallback") == "fallback"
