from __future__ import annotations

import time
from typing import Any

from app.portal.auth.session_store import SessionRecord
from app.portal.cms.client import CmsClient
from app.portal.cms.results import CmsResult
from app.portal.utils import safe_text, slugify

COMPANY_POPULATE = {"logo": "*", "socialLinks": "*"}
EDITABLE_FIELDS = ("name", "website", "industry", "companySize", "location", "description", "tagline")
MAX_SLUG_ATTEMPTS = 10


def list_companies(client: CmsClient) -> CmsResult:
    return client.request("companies", params={"populate": COMPANY_POPULATE})


def get_company(client: CmsClient, company_id: str) -> CmsResult:
    return client.request(f"companies/{company_id}", params={"populate": COMPANY_POPULATE})


def _find_one(client: CmsClient, filters: dict[str, Any]) -> dict[str, Any] | None:
    found = client.request("companies", params={"filters": filters, "pagination": {"limit": 1}}).first()
    return found if isinstance(found, dict) else None


def unique_slug(client: CmsClient, name: str, *, exclude_id: str | None = None) -> str:
    base = slugify(name)
    slug = base
    for _ in range(MAX_SLUG_ATTEMPTS):
        filters: dict[str, Any] = {"slug": {"$eq": slug}}
        if exclude_id:
            filters["id"] = {"$ne": exclude_id}
        if _find_one(client, filters) is None:
            break
        slug = f"{base}-{int(time.time() * 1000)}"
    return slug


def _clean_logo(logo: Any) -> Any:
    # Single media field: one id or null.
    if isinstance(logo, list):
        return logo[0] if logo else None
    if isinstance(logo, int):
        return logo
    return None


def _clean_social_links(links: Any) -> list[dict[str, Any]]:
    if not isinstance(links, list):
        return []
    out = []
    for link in links:
        if not isinstance(link, dict):
            continue
        item: dict[str, Any] = {"label": link.get("label") or "", "url": link.get("url") or ""}
        if link.get("id"):
            item["id"] = link["id"]
        out.append(item)
    return out


def build_company_data(data: dict[str, Any]) -> dict[str, Any]:
    company = {f: data[f] for f in EDITABLE_FIELDS if data.get(f) is not None}
    if "logo" in data:
        company["logo"] = _clean_logo(data.get("logo"))
    if "socialLinks" in data:
        company["socialLinks"] = _clean_social_links(data.get("socialLinks"))
    return company


def create_company(client: CmsClient, record: SessionRecord, data: dict[str, Any]) -> tuple[CmsResult, bool]:
    """
    Create a company, or reuse an existing one with the same name.
    Returns (result, reused).
    """
    name = safe_text(data.get("name"))
    if not name:
        return CmsResult.failure("Company name is required", status_code=400), False

    existing = _find_one(client, {"name": {"$eq": name}})
    if existing is not None:
        return CmsResult.success({"data": existing}), True

    company = build_company_data({**data, "name": name})
    company["slug"] = unique_slug(client, name)
    if record.user_id.isdigit():
        company["owner"] = int(record.user_id)

    result = client.mutate(
        "companies",
        json_body={"data": company},
        token=record.jwt,
        fallback_message="Failed to create company",
    )
    return result, False


def update_company(client: CmsClient, record: SessionRecord, company_id: str, data: dict[str, Any]) -> CmsResult:
    if not company_id:
        return CmsResult.failure("Missing identifier", status_code=400)

    company = build_company_data(data)
    if company.get("name"):
        company["slug"] = unique_slug(client, str(company["name"]), exclude_id=company_id)

    profile = client.request(
        "employer-profiles",
        params={"filters": {"user": {"id": {"$eq": record.user_id}}}, "pagination": {"limit": 1}},
    ).first()
    if isinstance(profile, dict):
        profile_id = profile.get("documentId") or profile.get("id")
        if profile_id:
            company["employers"] = [profile_id]

    return client.mutate(
        f"companies/{company_id}",
        method="PUT",
        json_body={"data": company},
        token=record.jwt,
        fallback_message="Failed to update company",
    )
