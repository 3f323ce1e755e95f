from app.portal.cms.client import CmsClient, CmsSettings, extract_error_message
from app.portal.cms.query import serialize
from app.portal.cms.results import CmsResult
from app.portal.cms.sections import fetch_sections

__all__ = [
    "CmsClient",
    "CmsResult",
    "CmsSettings",
    "extract_error_message",
    "fetch_sections",
    "serialize",
]
