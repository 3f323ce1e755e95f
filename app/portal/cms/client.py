from __future__ import annotations

import http.client
import json
import logging
import re
import urllib.error
import urllib.request
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from app.portal.cms.query import serialize
from app.portal.cms.results import CmsResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
API_PREFIX = "/api"


class CmsError(RuntimeError):
    pass


class CmsHTTPError(CmsError):
    def __init__(self, status_code: int, body: bytes) -> None:
        super().__init__(f"HTTP {status_code} from CMS")
        self.status_code = status_code
        self.body = body


class CmsTransportError(CmsError):
    pass


@dataclass(frozen=True)
class CmsSettings:
    base_url: str
    api_token: str = ""
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "CmsSettings":
        return cls(
            base_url=str(config.get("CMS_BASE_URL") or "").strip().rstrip("/"),
            api_token=str(config.get("CMS_API_TOKEN") or "").strip(),
            timeout_seconds=float(config.get("CMS_TIMEOUT_SECONDS") or DEFAULT_TIMEOUT_SECONDS),
        )

    @property
    def configured(self) -> bool:
        return bool(self.base_url)


def extract_error_message(body: Any, fallback: str) -> str:
    """Pull a readable message out of a CMS error body."""
    if not isinstance(body, dict):
        return fallback
    err = body.get("error")
    if isinstance(err, dict):
        nested = err.get("error")
        if isinstance(nested, dict) and nested.get("message"):
            return str(nested["message"])
        if err.get("message"):
            return str(err["message"])
        data = err.get("data")
        if isinstance(data, list) and data and isinstance(data[0], dict):
            messages = data[0].get("messages")
            if isinstance(messages, list) and messages and isinstance(messages[0], dict):
                if messages[0].get("message"):
                    return str(messages[0]["message"])
    if body.get("message"):
        return str(body["message"])
    if isinstance(err, str) and err:
        return err
    return fallback


def _decode_json(raw: bytes) -> Any:
    return json.loads(raw.decode("utf-8"))


@dataclass(frozen=True)
class CmsClient:
    settings: CmsSettings

    def build_url(self, path: str, *, params: Mapping[str, Any] | None = None, use_api_prefix: bool = True) -> str:
        api_path = f"{API_PREFIX if use_api_prefix else ''}/{path}"
        api_path = re.sub(r"/{2,}", "/", api_path)
        url = self.settings.base_url + api_path
        query = serialize(params)
        if query:
            url += "?" + query
        return url

    def _headers(self, headers: Mapping[str, str] | None, token: str | None, anonymous: bool) -> dict[str, str]:
        out = dict(headers or {})
        out["Content-Type"] = "application/json"
        bearer = token or (None if anonymous else self.settings.api_token)
        if bearer:
            out["Authorization"] = f"Bearer {bearer}"
        return out

    def _send(self, method: str, url: str, headers: dict[str, str], json_body: Any) -> tuple[int, bytes]:
        data = json.dumps(json_body).encode("utf-8") if json_body is not None else None
        try:
            # Request() rejects a base URL without a scheme.
            req = urllib.request.Request(url, data=data, method=method)
            for key, value in headers.items():
                req.add_header(key, value)
            with urllib.request.urlopen(req, timeout=self.settings.timeout_seconds) as resp:
                return resp.status, resp.read()
        except urllib.error.HTTPError as e:
            try:
                body = e.read()
            except (OSError, http.client.HTTPException):
                body = b""
            raise CmsHTTPError(e.code, body or b"") from e
        except (urllib.error.URLError, http.client.HTTPException, OSError, ValueError) as e:
            raise CmsTransportError(str(e)) from e

    def request(
        self,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        method: str = "GET",
        json_body: Any = None,
        headers: Mapping[str, str] | None = None,
        token: str | None = None,
        anonymous: bool = False,
        use_api_prefix: bool = True,
    ) -> CmsResult:
        """
        Read-path call. Every failure becomes the degraded result; nothing is raised.
        """
        if not self.settings.configured:
            logger.warning("CMS_BASE_URL is not set; returning empty response for %s", path)
            return CmsResult.degraded()

        url = self.build_url(path, params=params, use_api_prefix=use_api_prefix)
        try:
            status, raw = self._send(method, url, self._headers(headers, token, anonymous), json_body)
        except CmsHTTPError as e:
            logger.warning(
                "CMS request failed: %s %s (base_url=%s status=%s)",
                method, path, self.settings.base_url, e.status_code,
            )
            return CmsResult.degraded(status_code=e.status_code)
        except CmsTransportError as e:
            logger.warning(
                "CMS request failed: %s %s (base_url=%s error=%s)",
                method, path, self.settings.base_url, e,
            )
            return CmsResult.degraded()

        if not 200 <= status < 300:
            logger.warning(
                "CMS request failed: %s %s (base_url=%s status=%s)", method, path, self.settings.base_url, status
            )
            return CmsResult.degraded(status_code=status)
        if not raw.strip():
            return CmsResult.success({}, status_code=status)
        try:
            body = _decode_json(raw)
        except ValueError:
            logger.warning(
                "CMS returned invalid JSON: %s %s (base_url=%s status=%s)",
                method, path, self.settings.base_url, status,
            )
            return CmsResult.degraded(status_code=status)
        return CmsResult.success(body, status_code=status)

    def mutate(
        self,
        path: str,
        *,
        json_body: Any = None,
        method: str = "POST",
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        token: str | None = None,
        anonymous: bool = False,
        fallback_message: str = "The request could not be completed.",
    ) -> CmsResult:
        """
        User-initiated mutation. Failures come back as a typed error with a readable message.
        """
        if not self.settings.configured:
            logger.warning("CMS_BASE_URL is not set; refusing %s %s", method, path)
            return CmsResult.failure("The content service is not configured.", status_code=500)

        url = self.build_url(path, params=params)
        try:
            status, raw = self._send(method, url, self._headers(headers, token, anonymous), json_body)
        except CmsHTTPError as e:
            try:
                body = _decode_json(e.body) if e.body else None
            except ValueError:
                body = {"error": e.body.decode("utf-8", errors="ignore")[:300]}
            message = extract_error_message(body, fallback_message)
            logger.warning(
                "CMS mutation rejected: %s %s (base_url=%s status=%s message=%s)",
                method, path, self.settings.base_url, e.status_code, message,
            )
            return CmsResult.failure(message, status_code=e.status_code)
        except CmsTransportError as e:
            logger.error(
                "CMS mutation failed: %s %s (base_url=%s error=%s)", method, path, self.settings.base_url, e
            )
            return CmsResult.failure(fallback_message, status_code=502)

        if not raw.strip():
            return CmsResult.success({}, status_code=status)
        try:
            body = _decode_json(raw)
        except ValueError:
            # The remote side effect already happened.
            logger.warning(
                "CMS mutation succeeded with unreadable body: %s %s (status=%s)", method, path, status
            )
            return CmsResult.success({}, status_code=status, warning="Response body could not be parsed.")
        return CmsResult.success(body, status_code=status)
