from flask import Blueprint, abort, g, render_template

from app.portal.rbac import Role, current_role, require_login, require_role
from app.portal.remote import cms_client
from app.portal.services.jobs import list_jobs
from app.portal.services.profiles import get_candidate, get_student_profile, list_candidates

bp = Blueprint("dashboard", __name__)


def _initials(first_name: str, email: str) -> str:
    source = first_name or email
    return source[:2].upper()


@bp.get("/")
@require_login
def index():
    record = g.session_record
    role = current_role()
    profile = get_student_profile(cms_client(), record) if role == Role.APPLICANT else None
    return render_template(
        "dashboard/index.html",
        user=record,
        role=role,
        initials=_initials(record.first_name, record.email),
        profile=profile,
    )


@bp.get("/candidates")
@require_role(Role.ORGANIZATION)
def candidates():
    return render_template("dashboard/candidates.html", candidates=list_candidates(cms_client()))


@bp.get("/candidates/<candidate_id>")
@require_role(Role.ORGANIZATION)
def candidate_detail(candidate_id: str):
    candidate = get_candidate(cms_client(), candidate_id)
    if candidate is None:
        abort(404)
    return render_template("dashboard/candidate.html", candidate=candidate)


@bp.get("/jobs")
@require_role(Role.ORGANIZATION)
def jobs():
    result = list_jobs(cms_client(), owner_id=g.session_record.user_id)
    return render_template("dashboard/jobs.html", jobs=result.items())


@bp.get("/application")
@require_role(Role.APPLICANT)
def application():
    profile = get_student_profile(cms_client(), g.session_record)
    return render_template("dashboard/application.html", profile=profile)
