from flask import Blueprint, render_template, request

from app.portal.remote import cms_client
from app.portal.services.content import get_programs, load_homepage

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    sections = load_homepage(cms_client())
    return render_template("public/index.html", **sections)


@bp.get("/programs")
def programs():
    level = (request.args.get("level") or "").strip() or None
    return render_template("public/programs.html", programs=get_programs(cms_client(), level=level), level=level)


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True, "cms_configured": cms_client().settings.configured}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for k8s/DO probes. No CMS access, minimal overhead.
    """
    return "ok", 200
