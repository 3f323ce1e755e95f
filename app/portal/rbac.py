from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Iterable
from functools import wraps
from typing import Any
from urllib.parse import quote

from flask import flash, g, jsonify, redirect, request, url_for

from app.portal.auth import session_store
from app.portal.auth.session_store import SessionRecord
from app.portal.cms.client import CmsClient
from app.portal.remote import cms_client

logger = logging.getLogger(__name__)


class Role(str, enum.Enum):
    APPLICANT = "applicant"
    ORGANIZATION = "organization"

    @classmethod
    def parse(cls, value: Any) -> "Role | None":
        if not isinstance(value, str):
            return None
        key = value.strip().lower()
        key = _ALIASES.get(key, key)
        for role in cls:
            if role.value == key:
                return role
        return None


# Type names used by older CMS user records.
_ALIASES = {
    "candidate": Role.APPLICANT.value,
    "student": Role.APPLICANT.value,
    "employer": Role.ORGANIZATION.value,
}


def _lookup_role(record: SessionRecord, client: CmsClient) -> Role | None:
    result = client.request(f"users/{quote(record.user_id, safe='')}", token=record.jwt)
    if not result.ok or not isinstance(result.data, dict):
        logger.info("Role lookup returned no user (user_id=%s status=%s)", record.user_id, result.status_code)
        return None
    value = result.data.get("type") or result.data.get("role")
    role = Role.parse(value)
    if role is None:
        logger.info("Role lookup returned unrecognized type %r (user_id=%s)", value, record.user_id)
    return role


def resolve_role(record: SessionRecord | None, client: CmsClient) -> Role | None:
    """
    Role for a session: the stored tag, or one remote lookup backfilled into the session.
    None means no role-gated action is allowed.
    """
    if record is None:
        return None
    stored = Role.parse(record.role)
    if stored is not None:
        return stored
    if not record.jwt:
        return None
    try:
        role = _lookup_role(record, client)
    except Exception:
        logger.exception("Role lookup failed (user_id=%s)", record.user_id)
        return None
    if role is None:
        return None
    session_store.update(record.with_changes(role=role.value))
    return role


def is_allowed(role: Role | None, required: Role) -> bool:
    return role is not None and role == required


def has_any_role(role: Role | None, roles: Iterable[Role]) -> bool:
    return role is not None and role in set(roles)


def current_role() -> Role | None:
    """Resolve the signed-in user's role once per request."""
    if getattr(g, "role_resolved", False):
        return g.resolved_role
    role = resolve_role(getattr(g, "session_record", None), cms_client())
    g.resolved_role = role
    g.role_resolved = True
    return role


def _login_redirect():
    nxt = request.full_path or request.path
    # Avoid trailing '?' from full_path when there is no query string.
    if nxt.endswith("?"):
        nxt = nxt[:-1]
    return redirect(url_for("auth.login_get", next=nxt))


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        if getattr(g, "session_record", None) is None:
            return _login_redirect()
        return fn(*args, **kwargs)

    return wrapped


def require_role(required: Role) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            record: SessionRecord | None = getattr(g, "session_record", None)
            if record is None:
                return _login_redirect()
            role = current_role()
            if not is_allowed(role, required):
                logger.warning(
                    "Forbidden: required_role=%s role=%s request_id=%s",
                    required.value, role.value if role else None, getattr(g, "request_id", None),
                )
                flash("You do not have access to that page.", "danger")
                return redirect(url_for("dashboard.index"))
            return fn(*args, **kwargs)

        return wrapped

    return decorator


def api_require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        if getattr(g, "session_record", None) is None:
            return jsonify({"error": "Unauthorized"}), 401
        return fn(*args, **kwargs)

    return wrapped


def api_require_role(required: Role) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            if getattr(g, "session_record", None) is None:
                return jsonify({"error": "Unauthorized"}), 401
            if not is_allowed(current_role(), required):
                return jsonify({"error": f"Access denied. Required role: {required.value}"}), 403
            return fn(*args, **kwargs)

        return wrapped

    return decorator
