#!/usr/bin/env python3
"""
Production startup script.

Validates PORT and replaces this process with gunicorn (os.execvp) so that
gunicorn is PID 1 and receives signals directly.

Usage:
    python scripts/start.py
"""

from __future__ import annotations

import os
import sys


def resolve_port(raw: str | None) -> int:
    port = (raw or "").strip()
    if not port:
        print("WARNING: PORT not set, using default 8080", flush=True)
        return 8080
    try:
        port_int = int(port)
    except ValueError:
        port_int = -1
    if port_int < 1 or port_int > 65535:
        print(f"ERROR: Invalid PORT value '{port}'. Must be integer 1-65535.", flush=True)
        sys.exit(1)
    return port_int


def main() -> None:
    port = resolve_port(os.environ.get("PORT"))
    workers = os.environ.get("WEB_CONCURRENCY", "2").strip() or "2"

    print(f"=== Starting gunicorn on 0.0.0.0:{port} ===", flush=True)
    if not (os.environ.get("CMS_BASE_URL") or "").strip():
        print("WARNING: CMS_BASE_URL is not set; pages will render with empty sections.", flush=True)

    os.execvp(
        "gunicorn",
        [
            "gunicorn",
            "app.wsgi:app",
            "--bind", f"0.0.0.0:{port}",
            "--workers", workers,
            "--timeout", "60",
            "--access-logfile", "-",
            "--error-logfile", "-",
        ],
    )


if __name__ == "__main__":
    main()
