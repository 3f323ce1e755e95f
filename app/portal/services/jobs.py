from __future__ import annotations

from typing import Any

from app.portal.auth.session_store import SessionRecord
from app.portal.cms.client import CmsClient
from app.portal.cms.results import CmsResult
from app.portal.utils import safe_text, slugify

JOB_POPULATE = {"categories": "*", "salary": "*"}
DEFAULT_CURRENCY = "ETB"


def list_jobs(client: CmsClient, *, owner_id: str | None = None) -> CmsResult:
    params: dict[str, Any] = {"populate": JOB_POPULATE, "sort": ["createdAt:desc"]}
    if owner_id:
        params["filters"] = {"user": {"id": {"$eq": owner_id}}}
    return client.request("jobs", params=params)


def get_job(client: CmsClient, job_id: str) -> CmsResult:
    return client.request(f"jobs/{job_id}", params={"populate": JOB_POPULATE})


def list_categories(client: CmsClient) -> list[dict[str, Any]]:
    return [c for c in client.request("categories", params={"populate": "*"}).items() if isinstance(c, dict)]


def validate_job_payload(data: dict[str, Any]) -> str | None:
    if not safe_text(data.get("title")) or not safe_text(data.get("description")) or not safe_text(data.get("deadline")):
        return "Title, description, and deadline are required"
    return None


def _find_or_create_salary(client: CmsClient, record: SessionRecord, salary: dict[str, Any]) -> Any:
    if salary.get("min") is None and salary.get("max") is None:
        return None
    fields = {
        "min": salary.get("min"),
        "max": salary.get("max"),
        "currency": salary.get("currency") or DEFAULT_CURRENCY,
        "isNegotiable": bool(salary.get("isNegotiable")),
    }
    existing = client.request(
        "salaries",
        params={"filters": {k: {"$eq": v} for k, v in fields.items()}, "pagination": {"limit": 1}},
    ).first()
    if isinstance(existing, dict) and existing.get("id"):
        return existing["id"]

    created = client.mutate("salaries", json_body={"data": fields}, token=record.jwt)
    if created.ok and isinstance(created.data, dict):
        return created.data.get("id") or created.data.get("documentId")
    return None


def build_job_data(data: dict[str, Any], user_id: str) -> dict[str, Any]:
    title = safe_text(data.get("title"))
    job: dict[str, Any] = {
        "title": title,
        "slug": slugify(title),
        "description": data.get("description"),
        "deadline": data.get("deadline"),
        "workplaceType": data.get("workplaceType") or "On Site",
        "isFeatured": bool(data.get("isFeatured")),
        "experience": data.get("experience") or "Entry",
        "approvalStatus": "Pending",
    }
    if str(user_id).isdigit():
        job["user"] = int(user_id)
    if data.get("location"):
        job["location"] = data["location"]
    if data.get("jobType"):
        job["jobType"] = data["jobType"]
    categories = data.get("categories")
    if isinstance(categories, list) and categories:
        job["categories"] = categories
    return job


def create_job(client: CmsClient, record: SessionRecord, data: dict[str, Any]) -> CmsResult:
    error = validate_job_payload(data)
    if error:
        return CmsResult.failure(error, status_code=400)

    job = build_job_data(data, record.user_id)
    salary = data.get("salary")
    if isinstance(salary, dict):
        salary_id = _find_or_create_salary(client, record, salary)
        if salary_id:
            job["salary"] = salary_id

    return client.mutate(
        "jobs",
        json_body={"data": job},
        token=record.jwt,
        fallback_message="Failed to create job posting",
    )


UPDATABLE_JOB_FIELDS = (
    "description",
    "location",
    "jobType",
    "deadline",
    "workplaceType",
    "isFeatured",
    "experience",
)


def build_job_update(data: dict[str, Any]) -> dict[str, Any]:
    """Partial update: only the fields present in the payload."""
    job: dict[str, Any] = {}
    if "title" in data:
        title = safe_text(data.get("title"))
        job["title"] = title
        job["slug"] = slugify(title)
    for field in UPDATABLE_JOB_FIELDS:
        if field in data:
            job[field] = data[field]
    if isinstance(data.get("categories"), list):
        job["categories"] = data["categories"]
    return job


def _job_owner_id(job: Any) -> str:
    user = job.get("user") if isinstance(job, dict) else None
    return str(user.get("id") or "") if isinstance(user, dict) else ""


def update_job(client: CmsClient, record: SessionRecord, job_id: str, data: dict[str, Any]) -> CmsResult:
    if not job_id:
        return CmsResult.failure("Job ID is required for updates", status_code=400)

    # The CMS still enforces its own permissions on the user token if this lookup degrades.
    current = client.request(f"jobs/{job_id}", params={"populate": {"user": True}})
    if current.ok and _job_owner_id(current.data) != record.user_id:
        return CmsResult.failure("Access denied. You can only update your own job postings.", status_code=403)

    job = build_job_update(data)
    salary = data.get("salary")
    if isinstance(salary, dict) and salary:
        salary_id = _find_or_create_salary(client, record, salary)
        if salary_id:
            job["salary"] = salary_id

    return client.mutate(
        f"jobs/{job_id}",
        method="PUT",
        json_body={"data": job},
        token=record.jwt,
        fallback_message="Failed to update job posting",
    )
