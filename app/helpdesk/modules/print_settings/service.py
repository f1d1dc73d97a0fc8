"""
Print-header settings: company identity printed atop work orders and reports.

Stored as a single JSON document through the storage abstraction. A missing or
unreadable document yields the defaults; the logo travels inside the document
as a base64 data URL.
"""

from __future__ import annotations

import base64
import json
import logging

from app.helpdesk.entities import PrintHeaderSettings
from app.helpdesk.errors import LogoTooLarge
from app.helpdesk.storage import Storage, storage_from_config

logger = logging.getLogger(__name__)

SETTINGS_KEY = "settings/helpdesk_pro_print_settings.json"
MAX_LOGO_BYTES = 2 * 1024 * 1024
ALLOWED_LOGO_TYPES = ("image/png", "image/jpeg", "image/gif", "image/svg+xml", "image/webp")


def logo_data_url(data: bytes, content_type: str | None) -> str:
    if len(data) > MAX_LOGO_BYTES:
        raise LogoTooLarge()
    mime = (content_type or "").split(";")[0].strip().lower() or "image/png"
    if mime not in ALLOWED_LOGO_TYPES:
        raise ValueError(f"Unsupported logo type: {mime}")
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


class PrintSettingsService:
    def __init__(self, storage: Storage):
        self.storage = storage

    def load(self) -> PrintHeaderSettings:
        raw = self.storage.get_bytes(SETTINGS_KEY)
        if raw is None:
            return PrintHeaderSettings()
        try:
            data = json.loads(raw.decode("utf-8"))
            if not isinstance(data, dict):
                raise ValueError("settings document is not an object")
            return PrintHeaderSettings.from_dict(data)
        except (ValueError, TypeError) as e:
            logger.warning("Unreadable print settings at %s, using defaults: %s", SETTINGS_KEY, e)
            return PrintHeaderSettings()

    def save(self, settings: PrintHeaderSettings) -> None:
        payload = json.dumps(settings.to_dict(), ensure_ascii=False).encode("utf-8")
        self.storage.put_bytes(SETTINGS_KEY, payload, content_type="application/json")
        logger.info("Print settings saved (company=%r, logo=%s)", settings.company_name, bool(settings.logo))


def print_settings_service(config: dict) -> PrintSettingsService:
    return PrintSettingsService(storage_from_config(config))
