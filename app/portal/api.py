from __future__ import annotations

from typing import Any

from flask import Blueprint, g, jsonify, request

from app.portal.cms.results import CmsResult
from app.portal.rbac import Role, api_require_login, api_require_role, current_role
from app.portal.remote import cms_client
from app.portal.services import profiles
from app.portal.services.companies import create_company, get_company, list_companies, update_company
from app.portal.services.jobs import create_job, get_job, list_categories, list_jobs, update_job
from app.portal.services.locations import list_woredas

bp = Blueprint("api", __name__)


def _body_data() -> dict[str, Any] | None:
    body = request.get_json(silent=True)
    if not isinstance(body, dict) or not isinstance(body.get("data"), dict):
        return None
    return body["data"]


def _single(result: CmsResult, not_found: str):
    if result.ok and result.data:
        return jsonify(result.envelope())
    return jsonify({"error": not_found}), result.status_code if result.status_code == 404 else 502


def _mutation_response(result: CmsResult, created: bool = False):
    if result.is_error:
        return jsonify({"error": result.message}), result.status_code or 500
    payload = result.envelope()
    if result.warning:
        payload["warning"] = result.warning
    return jsonify(payload), 201 if created else 200


# ---------- Jobs ----------
@bp.get("/jobs")
def jobs_list():
    owner_id = None
    if g.session_record is not None and current_role() == Role.ORGANIZATION:
        owner_id = g.session_record.user_id
    return jsonify(list_jobs(cms_client(), owner_id=owner_id).envelope())


@bp.get("/jobs/categories")
def jobs_categories():
    return jsonify({"data": list_categories(cms_client())})


@bp.get("/jobs/<job_id>")
@api_require_role(Role.ORGANIZATION)
def jobs_detail(job_id: str):
    return _single(get_job(cms_client(), job_id), "Failed to fetch job")


@bp.post("/jobs")
@api_require_role(Role.ORGANIZATION)
def jobs_create():
    data = _body_data()
    if data is None:
        return jsonify({"error": "Invalid request body"}), 400
    return _mutation_response(create_job(cms_client(), g.session_record, data), created=True)


@bp.put("/jobs/<job_id>")
@api_require_role(Role.ORGANIZATION)
def jobs_update(job_id: str):
    data = _body_data()
    if data is None:
        return jsonify({"error": "Invalid request body"}), 400
    return _mutation_response(update_job(cms_client(), g.session_record, job_id, data))


# ---------- Companies ----------
@bp.get("/companies")
def companies_list():
    return jsonify(list_companies(cms_client()).envelope())


@bp.get("/companies/<company_id>")
def companies_detail(company_id: str):
    return _single(get_company(cms_client(), company_id), "Failed to fetch company")


@bp.post("/companies")
@api_require_role(Role.ORGANIZATION)
def companies_create():
    data = _body_data()
    if data is None:
        return jsonify({"error": "Invalid request body"}), 400
    result, reused = create_company(cms_client(), g.session_record, data)
    if reused:
        payload = result.envelope()
        payload["message"] = "Using existing company"
        return jsonify(payload), 200
    return _mutation_response(result, created=True)


@bp.put("/companies/<company_id>")
@api_require_role(Role.ORGANIZATION)
def companies_update(company_id: str):
    data = _body_data()
    if data is None:
        return jsonify({"error": "Invalid body"}), 400
    return _mutation_response(update_company(cms_client(), g.session_record, company_id, data))


# ---------- Profiles ----------
def _upsert_response(saved: tuple[CmsResult, bool]):
    result, created = saved
    return _mutation_response(result, created=created)


@bp.get("/student-profiles")
@api_require_role(Role.APPLICANT)
def student_profile_get():
    profile = profiles.get_student_profile(cms_client(), g.session_record)
    return jsonify({"data": profile, "meta": {}})


@bp.post("/student-profiles")
@api_require_role(Role.APPLICANT)
def student_profile_save():
    data = _body_data()
    if data is None:
        return jsonify({"error": "Invalid request body"}), 400
    return _upsert_response(profiles.save_student_profile(cms_client(), g.session_record, data))


@bp.put("/student-profiles")
@api_require_role(Role.APPLICANT)
def student_profile_update():
    data = _body_data()
    if data is None:
        return jsonify({"error": "Invalid request body"}), 400
    return _mutation_response(profiles.update_student_profile(cms_client(), g.session_record, data))


@bp.get("/employer-profiles")
@api_require_login
def employer_profiles_get():
    client = cms_client()
    if request.args.get("myProfile") == "true" and current_role() == Role.ORGANIZATION:
        return jsonify(profiles.get_own_employer_profile(client, g.session_record).envelope())
    profile_id = request.args.get("id")
    if profile_id:
        return jsonify(profiles.get_employer_profile(client, profile_id).envelope())
    return jsonify(profiles.list_employer_profiles(client).envelope())


@bp.post("/employer-profiles")
@api_require_role(Role.ORGANIZATION)
def employer_profile_save():
    data = _body_data()
    if data is None:
        return jsonify({"error": "Invalid request body"}), 400
    return _upsert_response(profiles.save_employer_profile(cms_client(), g.session_record, data))


@bp.put("/employer-profiles")
@api_require_role(Role.ORGANIZATION)
def employer_profile_update():
    data = _body_data()
    if data is None:
        return jsonify({"error": "Invalid request body"}), 400
    return _mutation_response(profiles.update_employer_profile(cms_client(), g.session_record, data))


@bp.get("/candidate-profiles")
@api_require_login
def candidate_profiles_get():
    client = cms_client()
    role = current_role()
    if request.args.get("myProfile") == "true" and role == Role.APPLICANT:
        return jsonify({"data": profiles.get_own_candidate_profile(client, g.session_record), "meta": {}})
    if role != Role.ORGANIZATION:
        return jsonify({"error": "Access denied. Only organizations can view candidate profiles."}), 403
    candidate_id = request.args.get("id") or request.args.get("documentId")
    if candidate_id:
        return jsonify({"data": profiles.get_candidate(client, candidate_id), "meta": {}})
    return jsonify({"data": profiles.list_candidates(client), "meta": {}})


@bp.route("/candidate-profiles", methods=["POST", "PUT"])
@api_require_role(Role.APPLICANT)
def candidate_profile_save():
    data = _body_data()
    if data is None:
        return jsonify({"error": "Invalid request body"}), 400
    return _upsert_response(profiles.save_candidate_profile(cms_client(), g.session_record, data))


# ---------- Locations ----------
@bp.get("/locations/woredas")
@api_require_login
def woredas_list():
    return jsonify(list_woredas(cms_client(), request.args.get("zoneId")).envelope())
