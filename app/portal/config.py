import os
from dataclasses import dataclass
from datetime import timedelta


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str

    cms_base_url: str
    cms_api_token: str
    cms_timeout_seconds: float

    session_lifetime_days: int


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_number(name: str, default: float) -> float:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        cms_base_url=_getenv("CMS_BASE_URL", "").rstrip("/"),
        cms_api_token=_getenv("CMS_API_TOKEN", ""),
        cms_timeout_seconds=_getenv_number("CMS_TIMEOUT_SECONDS", 10.0),
        session_lifetime_days=int(_getenv_number("SESSION_LIFETIME_DAYS", 7)),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "CMS_BASE_URL": s.cms_base_url,
        "CMS_API_TOKEN": s.cms_api_token,
        "CMS_TIMEOUT_SECONDS": s.cms_timeout_seconds,
        "SESSION_LIFETIME_DAYS": s.session_lifetime_days,
        "PERMANENT_SESSION_LIFETIME": timedelta(days=s.session_lifetime_days),
        # session cookie flags
        "SESSION_COOKIE_NAME": "portal_session",
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,
    }
