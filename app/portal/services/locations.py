from __future__ import annotations

from app.portal.cms.client import CmsClient
from app.portal.cms.results import CmsResult


def list_woredas(client: CmsClient, zone_id: str | None = None) -> CmsResult:
    """Woredas, optionally narrowed to one zone, for the address pickers."""
    params = {"filters": {"zone": {"id": {"$eq": zone_id}}}} if zone_id else None
    return client.request("woredas", params=params)
