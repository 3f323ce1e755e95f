"""
Public content loaders.

Each loader takes the CMS client and maps raw records to plain dicts for the
templates. A degraded CMS result yields an empty list or None, never an error.
"""
from __future__ import annotations

from typing import Any

from app.portal.cms.client import CmsClient
from app.portal.cms.sections import fetch_sections
from app.portal.utils import media_url, safe_text

PROGRAMS_QUERY = {
    "populate": {
        "department": True,
        "image": True,
        "batches": True,
    },
    "sort": ["name:asc"],
}


def _map_program(raw: dict[str, Any], base_url: str) -> dict[str, Any]:
    department = raw.get("department") if isinstance(raw.get("department"), dict) else None
    return {
        "id": raw.get("id"),
        "name": safe_text(raw.get("name")),
        "full_name": safe_text(raw.get("fullName")),
        "description": safe_text(raw.get("description")),
        "level": safe_text(raw.get("level")),
        "mode": safe_text(raw.get("mode")),
        "duration": raw.get("duration"),
        "total_credit_hours": raw.get("totalCreditHours"),
        "qualification": safe_text(raw.get("qualification")),
        "department": {
            "id": department.get("id"),
            "name": safe_text(department.get("name")),
            "code": department.get("code"),
        }
        if department
        else None,
        "image_url": media_url(raw.get("image"), base_url),
    }


def get_programs(client: CmsClient, *, level: str | None = None) -> list[dict[str, Any]]:
    params: dict[str, Any] = dict(PROGRAMS_QUERY)
    if level:
        params["filters"] = {"level": {"$eqi": level}}
    result = client.request("programs", params=params)
    return [_map_program(p, client.settings.base_url) for p in result.items() if isinstance(p, dict)]


def get_how_to_apply(client: CmsClient) -> dict[str, Any] | None:
    result = client.request(
        "how-to-apply",
        params={"populate": {"steps": {"populate": "*"}, "links": {"populate": "*"}}},
    )
    data = result.first()
    if not isinstance(data, dict):
        return None
    steps_block = data.get("steps") or {}
    links_block = data.get("links") or {}
    return {
        "heading": safe_text(data.get("title")) or safe_text(steps_block.get("heading")) or "How To Apply",
        "steps_heading": safe_text(steps_block.get("heading")) or "Steps",
        "steps": [
            {"id": str(step.get("id")), "title": safe_text(step.get("title")), "description": safe_text(step.get("description"))}
            for step in steps_block.get("steps") or []
            if isinstance(step, dict)
        ],
        "links_heading": safe_text(links_block.get("heading")) or "Useful Links",
        "links": [
            {
                "id": str(link.get("id")),
                "title": safe_text(link.get("title")),
                "url": safe_text(link.get("url")),
                "is_external": bool(link.get("isExternal")),
            }
            for link in links_block.get("links") or []
            if isinstance(link, dict)
        ],
    }


def get_carousel_items(client: CmsClient) -> list[dict[str, Any]]:
    result = client.request("homepage-carousels", params={"populate": {"image": True}, "sort": ["order:asc"]})
    return [
        {
            "title": safe_text(item.get("title")),
            "subtitle": safe_text(item.get("subtitle")),
            "image_url": media_url(item.get("image"), client.settings.base_url),
            "link": safe_text(item.get("link")),
        }
        for item in result.items()
        if isinstance(item, dict)
    ]


def _single_section(client: CmsClient, path: str) -> dict[str, Any] | None:
    data = client.request(path, params={"populate": "*"}).first()
    return data if isinstance(data, dict) else None


def get_why_join(client: CmsClient) -> dict[str, Any] | None:
    return _single_section(client, "why-join")


def get_notable_alumni(client: CmsClient) -> dict[str, Any] | None:
    return _single_section(client, "notable-alumni")


def get_news_blogs(client: CmsClient) -> list[dict[str, Any]]:
    result = client.request(
        "blogs",
        params={
            "populate": {"cover": True},
            "sort": ["publishedAt:desc"],
            "pagination": {"page": 1, "pageSize": 3},
        },
    )
    return [
        {
            "title": safe_text(item.get("title")),
            "slug": safe_text(item.get("slug")),
            "excerpt": safe_text(item.get("excerpt")),
            "cover_url": media_url(item.get("cover"), client.settings.base_url),
        }
        for item in result.items()
        if isinstance(item, dict)
    ]


def load_homepage(client: CmsClient) -> dict[str, Any]:
    sections = fetch_sections(
        {
            "carousel": lambda: get_carousel_items(client),
            "why_join": lambda: get_why_join(client),
            "how_to_apply": lambda: get_how_to_apply(client),
            "notable_alumni": lambda: get_notable_alumni(client),
            "news": lambda: get_news_blogs(client),
        }
    )
    for name in ("carousel", "news"):
        if sections[name] is None:
            sections[name] = []
    return sections
