"""
Signed-cookie session record for signed-in users.

The record lives in Flask's session cookie (signed with SECRET_KEY, HttpOnly,
Secure in production). The browser only ever reattaches the opaque value.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any

from flask import current_app, g, session

logger = logging.getLogger(__name__)

SESSION_KEY = "user"
DEFAULT_LIFETIME_DAYS = 7


@dataclass(frozen=True)
class SessionRecord:
    user_id: str
    email: str
    first_name: str = ""
    jwt: str | None = None
    role: str | None = None
    expires_at: str | None = None

    def with_changes(self, **changes: Any) -> "SessionRecord":
        return replace(self, **changes)

    def to_public_dict(self) -> dict[str, Any]:
        """Record fields safe to echo back to the browser (no credential)."""
        data = asdict(self)
        data.pop("jwt", None)
        return data

    @property
    def expires(self) -> datetime | None:
        if not self.expires_at:
            return None
        value = datetime.fromisoformat(self.expires_at)
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _lifetime() -> timedelta:
    days = current_app.config.get("SESSION_LIFETIME_DAYS") or DEFAULT_LIFETIME_DAYS
    return timedelta(days=int(days))


def _from_stored(raw: Any) -> SessionRecord | None:
    if not isinstance(raw, dict):
        return None
    user_id = raw.get("user_id")
    email = raw.get("email")
    if not user_id or not isinstance(email, str):
        return None
    record = SessionRecord(
        user_id=str(user_id),
        email=email,
        first_name=str(raw.get("first_name") or ""),
        jwt=raw.get("jwt") or None,
        role=raw.get("role") or None,
        expires_at=raw.get("expires_at") or None,
    )
    if record.expires_at:
        # ValueError on a malformed timestamp
        datetime.fromisoformat(record.expires_at)
    return record


def _store(record: SessionRecord) -> None:
    session[SESSION_KEY] = asdict(record)
    session.permanent = True
    g.session_record = record


def create(record: SessionRecord) -> SessionRecord:
    record = record.with_changes(expires_at=(_now() + _lifetime()).isoformat())
    _store(record)
    return record


def read() -> SessionRecord | None:
    raw = session.get(SESSION_KEY)
    if raw is None:
        return None
    try:
        record = _from_stored(raw)
    except (TypeError, ValueError):
        record = None
    if record is None:
        logger.warning("Discarding malformed session record (request_id=%s)", getattr(g, "request_id", None))
        destroy()
        return None
    expires = record.expires
    if expires is not None and expires <= _now():
        destroy()
        return None
    return record


def update(record: SessionRecord) -> SessionRecord:
    """Replace the stored record, keeping the existing expiry."""
    current = read()
    if current is not None and current.expires_at and not record.expires_at:
        record = record.with_changes(expires_at=current.expires_at)
    elif not record.expires_at:
        record = record.with_changes(expires_at=(_now() + _lifetime()).isoformat())
    _store(record)
    return record


def destroy() -> None:
    session.pop(SESSION_KEY, None)
    g.session_record = None


def load_current_session() -> None:
    """
    Loads g.session_record from the signed session cookie.
    Also assigns a per-request request_id for log correlation.
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.resolved_role = None
    g.role_resolved = False
    g.session_record = read()
