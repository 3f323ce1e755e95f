from __future__ import annotations

import re
from typing import Any

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def safe_text(v: Any) -> str:
    """Safely convert any value to stripped string."""
    if v is None:
        return ""
    try:
        return str(v).strip()
    except Exception:
        return ""


def slugify(value: str) -> str:
    return re.sub(r"(^-|-$)", "", re.sub(r"[^a-z0-9]+", "-", (value or "").lower()))


def is_valid_email(value: str) -> bool:
    return bool(_EMAIL_RE.match(value or ""))


def media_url(media: Any, base_url: str) -> str | None:
    """Absolute URL for a CMS media object; relative upload paths are joined to the CMS host."""
    if not isinstance(media, dict):
        return None
    url = safe_text(media.get("url"))
    if not url:
        return None
    if url.startswith(("http://", "https://")) or not base_url:
        return url
    return base_url.rstrip("/") + "/" + url.lstrip("/")


def safe_next(nxt: str | None) -> str | None:
    """Only allow local paths to avoid open redirects."""
    nxt = (nxt or "").strip()
    if nxt.startswith("/") and not nxt.startswith("//"):
        return nxt
    return None
