from __future__ import annotations

from flask import Flask, current_app

from app.portal.cms.client import CmsClient, CmsSettings


def init_cms(app: Flask) -> CmsClient:
    settings = CmsSettings.from_config(app.config)
    if not settings.configured:
        app.logger.warning("CMS_BASE_URL is not set; pages will render with empty sections.")
    elif not settings.base_url.startswith(("http://", "https://")):
        app.logger.warning("CMS_BASE_URL=%s has no http(s) scheme; CMS calls will fail.", settings.base_url)
    client = CmsClient(settings)
    app.extensions["cms_client"] = client
    return client


def cms_client(app: Flask | None = None) -> CmsClient:
    """
    The process-wide CMS client built once by init_cms().
    """
    app = app or current_app
    return app.extensions["cms_client"]
