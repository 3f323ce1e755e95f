from __future__ import annotations

import logging
from typing import Any

from app.portal.auth.session_store import SessionRecord
from app.portal.cms.client import CmsClient
from app.portal.cms.results import CmsResult

logger = logging.getLogger(__name__)

CANDIDATE_QUERY = {
    "populate": {
        "skills": "*",
        "profilePicture": "*",
        "resume": "*",
        "user": {"fields": ["email", "username"]},
    },
}

EMPLOYER_QUERY = {
    "populate": {
        "profilePicture": "*",
        "company": {"populate": {"logo": "*", "socialLinks": "*"}},
        "user": {"fields": ["username", "email", "type"]},
    },
}

LOCATION_RELATIONS = ("country", "region", "zone", "woreda")
ADDRESS_COMPONENTS = ("residentialAddress", "birthAddress", "personToBeContacted")
EMPLOYER_FIELDS = ("fullName", "jobTitle", "phone", "bio", "profilePicture")


def _belongs_to(profile: dict[str, Any], record: SessionRecord) -> bool:
    user = profile.get("user") if isinstance(profile.get("user"), dict) else {}
    return (
        profile.get("email") == record.email
        or user.get("email") == record.email
        or str(profile.get("userId") or "") == record.user_id
        or str(user.get("id") or "") == record.user_id
    )


def _user_filter(record: SessionRecord) -> dict[str, Any]:
    return {"user": {"id": {"$eq": record.user_id}}}


def _user_ref(record: SessionRecord) -> Any:
    return int(record.user_id) if record.user_id.isdigit() else record.user_id


def find_own_profile(client: CmsClient, resource: str, record: SessionRecord) -> dict[str, Any] | None:
    """The profile of `resource` owned by the signed-in user, if the CMS has one."""
    found = client.request(resource, params={"filters": _user_filter(record), "populate": "user"}).first()
    return found if isinstance(found, dict) else None


def _upsert(
    client: CmsClient, record: SessionRecord, resource: str, profile: dict[str, Any], fallback: str
) -> tuple[CmsResult, bool]:
    """
    Update the user's existing profile, otherwise create one.
    Returns (result, created).
    """
    existing = find_own_profile(client, resource, record)
    if existing is not None and existing.get("id"):
        result = client.mutate(
            f"{resource}/{existing['id']}",
            method="PUT",
            json_body={"data": profile},
            token=record.jwt,
            fallback_message=fallback,
        )
        return result, False
    result = client.mutate(resource, json_body={"data": profile}, token=record.jwt, fallback_message=fallback)
    return result, True


# ---------- Student profiles ----------
def get_student_profile(client: CmsClient, record: SessionRecord) -> dict[str, Any] | None:
    """The signed-in user's application profile, matched server-side."""
    result = client.request(
        "student-profiles",
        params={"filters": _user_filter(record), "populate": "*"},
        token=record.jwt,
    )
    for profile in result.items():
        if isinstance(profile, dict) and _belongs_to(profile, record):
            return profile
    return None


def _location_id(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, dict) and isinstance(value.get("set"), list) and value["set"]:
        first = value["set"][0]
        set_id = first.get("id") if isinstance(first, dict) else None
        return set_id if isinstance(set_id, int) else None
    try:
        number = int(str(value))
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def clean_location_fields(obj: dict[str, Any]) -> dict[str, Any]:
    """Reduce location relations to plain ids and drop the component id."""
    cleaned: dict[str, Any] = {}
    for key, value in obj.items():
        if key == "id":
            continue
        if key in LOCATION_RELATIONS:
            location = _location_id(value) if value is not None else None
            if location is not None:
                cleaned[key] = location
        else:
            cleaned[key] = value
    return cleaned


def _save_education(client: CmsClient, record: SessionRecord, resource: str, data: dict[str, Any]) -> Any:
    existing_id = data.get("id")
    fields = clean_location_fields(data)
    if existing_id:
        result = client.mutate(f"{resource}/{existing_id}", method="PUT", json_body={"data": fields}, token=record.jwt)
    else:
        result = client.mutate(resource, json_body={"data": fields}, token=record.jwt)
    if result.is_error:
        logger.warning("Education record not saved (resource=%s user_id=%s): %s", resource, record.user_id, result.message)
        return None
    saved = result.data.get("id") if isinstance(result.data, dict) else None
    return saved or existing_id


def build_student_profile_data(client: CmsClient, record: SessionRecord, data: dict[str, Any]) -> dict[str, Any]:
    profile = {k: v for k, v in data.items() if k not in ("email", "id")}
    profile["user"] = _user_ref(record)

    for field, resource in (("primary_education", "primary-educations"), ("secondary_education", "secondary-educations")):
        if not isinstance(profile.get(field), dict):
            continue
        education_id = _save_education(client, record, resource, profile[field])
        if education_id:
            profile[field] = {"id": education_id}
        else:
            del profile[field]

    if isinstance(profile.get("tertiary_educations"), list):
        ids = [
            _save_education(client, record, "tertiar-educations", item)
            for item in profile["tertiary_educations"]
            if isinstance(item, dict)
        ]
        ids = [i for i in ids if i]
        if ids:
            profile["tertiary_educations"] = {"set": [{"id": i} for i in ids]}
        else:
            del profile["tertiary_educations"]

    for component in ADDRESS_COMPONENTS:
        if isinstance(profile.get(component), dict):
            profile[component] = {k: v for k, v in profile[component].items() if k != "id"}
    return profile


def save_student_profile(client: CmsClient, record: SessionRecord, data: dict[str, Any]) -> tuple[CmsResult, bool]:
    profile = build_student_profile_data(client, record, data)
    return _upsert(client, record, "student-profiles", profile, "Failed to save student profile")


def update_student_profile(client: CmsClient, record: SessionRecord, data: dict[str, Any]) -> CmsResult:
    requested_id = data.get("id")
    if not requested_id:
        return CmsResult.failure("Profile ID is required for update", status_code=400)

    lookup = client.request("student-profiles", params={"filters": _user_filter(record), "populate": "user"})
    if not lookup.ok:
        return CmsResult.failure("Failed to verify profile ownership", status_code=lookup.status_code or 502)
    profile = lookup.first()
    if not isinstance(profile, dict):
        return CmsResult.failure("Student profile not found. Please complete your profile first.", status_code=404)
    user = profile.get("user") if isinstance(profile.get("user"), dict) else {}
    if str(user.get("id") or "") != record.user_id:
        return CmsResult.failure("You do not have permission to update this profile", status_code=403)

    # One profile per user: always write to the one found by user id.
    actual_id = profile.get("id")
    if str(actual_id) != str(requested_id):
        logger.warning(
            "Student profile id mismatch (requested=%s actual=%s user_id=%s)", requested_id, actual_id, record.user_id
        )
    return client.mutate(
        f"student-profiles/{actual_id}",
        method="PUT",
        json_body={"data": build_student_profile_data(client, record, data)},
        token=record.jwt,
        fallback_message="Failed to update student profile",
    )


# ---------- Employer profiles ----------
def list_employer_profiles(client: CmsClient) -> CmsResult:
    return client.request("employer-profiles", params=EMPLOYER_QUERY)


def get_employer_profile(client: CmsClient, profile_id: str) -> CmsResult:
    return client.request(f"employer-profiles/{profile_id}", params=EMPLOYER_QUERY)


def get_own_employer_profile(client: CmsClient, record: SessionRecord) -> CmsResult:
    result = client.request("employer-profiles", params={"filters": _user_filter(record), **EMPLOYER_QUERY})
    first = result.first()
    if result.ok and first is not None:
        return CmsResult.success({"data": first, "meta": result.meta}, status_code=result.status_code)
    return result


def _company_ref(company: Any) -> Any:
    if isinstance(company, bool):
        return None
    if isinstance(company, (int, str)) and company:
        return company
    return None


def save_employer_profile(client: CmsClient, record: SessionRecord, data: dict[str, Any]) -> tuple[CmsResult, bool]:
    if not data.get("fullName"):
        return CmsResult.failure("Full name is required", status_code=400), False

    profile: dict[str, Any] = {
        "fullName": data["fullName"],
        "phone": data.get("phone") or None,
        "bio": data.get("bio") or None,
        "user": _user_ref(record),
    }
    if data.get("jobTitle"):
        profile["jobTitle"] = data["jobTitle"]
    if data.get("profilePicture"):
        profile["profilePicture"] = data["profilePicture"]
    company = _company_ref(data.get("company"))
    if company is not None:
        profile["company"] = company
    return _upsert(client, record, "employer-profiles", profile, "Failed to save employer profile")


def update_employer_profile(client: CmsClient, record: SessionRecord, data: dict[str, Any]) -> CmsResult:
    target = data.get("documentId") or data.get("id")
    if not target:
        return CmsResult.failure("Missing profile identifier", status_code=400)

    own = find_own_profile(client, "employer-profiles", record)
    if own is not None:
        id_mismatch = data.get("id") and str(own.get("id")) != str(data["id"])
        doc_mismatch = data.get("documentId") and own.get("documentId") != data["documentId"]
        if id_mismatch or doc_mismatch:
            return CmsResult.failure("Access denied. You can only update your own profile.", status_code=403)

    update = {f: data[f] for f in EMPLOYER_FIELDS if f in data}
    if "company" in data:
        company = _company_ref(data["company"])
        if data["company"] is None or company is not None:
            # Explicit null unlinks the company.
            update["company"] = company
    return client.mutate(
        f"employer-profiles/{target}",
        method="PUT",
        params={"populate": "*"},
        json_body={"data": update},
        token=record.jwt,
        fallback_message="Failed to update employer profile",
    )


# ---------- Candidate profiles ----------
def list_candidates(client: CmsClient) -> list[dict[str, Any]]:
    return [p for p in client.request("candidate-profiles", params=CANDIDATE_QUERY).items() if isinstance(p, dict)]


def get_candidate(client: CmsClient, candidate_id: str) -> dict[str, Any] | None:
    found = client.request(f"candidate-profiles/{candidate_id}", params=CANDIDATE_QUERY).first()
    return found if isinstance(found, dict) else None


def get_own_candidate_profile(client: CmsClient, record: SessionRecord) -> dict[str, Any] | None:
    found = client.request("candidate-profiles", params={"filters": _user_filter(record), **CANDIDATE_QUERY}).first()
    return found if isinstance(found, dict) else None


def _skill_id(client: CmsClient, record: SessionRecord, skill: dict[str, Any]) -> Any:
    fields = {"skillName": skill.get("skillName"), "level": skill.get("level")}
    identifier = skill.get("documentId") or skill.get("id")
    if not identifier and skill.get("skillName"):
        existing = client.request(
            "skills", params={"filters": {"skillName": {"$eq": skill["skillName"]}}, "pagination": {"limit": 1}}
        ).first()
        if isinstance(existing, dict):
            identifier = existing.get("documentId") or existing.get("id")
    if identifier:
        updated = client.mutate(f"skills/{identifier}", method="PUT", json_body={"data": fields}, token=record.jwt)
        if updated.ok:
            return identifier
        if skill.get("documentId") or skill.get("id"):
            return None
    if not skill.get("skillName"):
        return None
    created = client.mutate("skills", json_body={"data": fields}, token=record.jwt)
    if created.ok and isinstance(created.data, dict):
        return created.data.get("documentId") or created.data.get("id")
    return None


def resolve_skills(client: CmsClient, record: SessionRecord, skills: list[Any]) -> list[Any]:
    """Skill references as ids; skill objects are updated or created first."""
    ids: list[Any] = []
    for item in skills:
        if isinstance(item, (int, str)) and not isinstance(item, bool):
            ids.append(item)
        elif isinstance(item, dict):
            skill_id = _skill_id(client, record, item)
            if skill_id:
                ids.append(skill_id)
            else:
                logger.warning("Skill not saved (user_id=%s skill=%r)", record.user_id, item.get("skillName"))
    return ids


def save_candidate_profile(client: CmsClient, record: SessionRecord, data: dict[str, Any]) -> tuple[CmsResult, bool]:
    profile = {k: v for k, v in data.items() if k != "id"}
    profile["user"] = _user_ref(record)
    if isinstance(profile.get("skills"), list):
        profile["skills"] = resolve_skills(client, record, profile["skills"])
    return _upsert(client, record, "candidate-profiles", profile, "Failed to save candidate profile")
