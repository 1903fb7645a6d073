# board/services/settings_service.py
"""
Theme and branding settings: a flat string key/value store. Only keys
listed in ``DEFAULT_SETTINGS`` are ever written.
"""
import logging
import re
from typing import Dict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from board.database import atomic, utcnow
from board.errors import BadRequest
from board.models.settings_model import ForumSetting

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: Dict[str, str] = {
    "forum_name": "Solidarity Forum",
    "forum_description": "A community forum",
    "primary_color": "#2B4A4D",
    "secondary_color": "#4A9B9B",
    "accent_color": "#D4A843",
    "background_color": "#E8ECEF",
    "content_bg_color": "#FFFFFF",
    "text_color": "#333333",
    "link_color": "#1A6B8A",
    "header_bg_color": "#2B4A4D",
    "header_text_color": "#FFFFFF",
    "category_header_color": "#3A6367",
    "font_family": "system-ui, -apple-system, sans-serif",
    "font_size_base": "14px",
    "border_radius": "4px",
    "content_width": "1200px",
    "logo_text": "SOLIDARITY FORUM",
    "custom_css": "",
    "dark_mode_enabled": "false",
    "dark_bg_color": "#1a1a2e",
    "dark_content_bg": "#16213e",
    "dark_text_color": "#e0e0e0",
    "dark_header_bg": "#0f3460",
}

# every key is public theme data
THEME_KEYS = tuple(DEFAULT_SETTINGS)

_CSS_EXPRESSION_RE = re.compile(r"expression\s*\(", re.IGNORECASE)
_CSS_JS_URL_RE = re.compile(r"javascript\s*:", re.IGNORECASE)
_CSS_IMPORT_RE = re.compile(r"@import", re.IGNORECASE)


def sanitize_custom_css(css: str) -> str:
    css = _CSS_EXPRESSION_RE.sub("", css)
    css = _CSS_JS_URL_RE.sub("", css)
    return _CSS_IMPORT_RE.sub("/* @import blocked */", css)


async def get_settings(db: AsyncSession) -> Dict[str, str]:
    rows = (await db.execute(select(ForumSetting.key, ForumSetting.value))).all()
    settings = dict(DEFAULT_SETTINGS)
    settings.update({key: value for key, value in rows})
    return settings


async def get_theme(db: AsyncSession) -> Dict[str, str]:
    settings = await get_settings(db)
    return {key: settings[key] for key in THEME_KEYS}


async def _upsert(db: AsyncSession, values: Dict[str, str]) -> None:
    existing = {
        s.key: s
        for s in (
            await db.execute(select(ForumSetting).where(ForumSetting.key.in_(list(values))))
        ).scalars()
    }
    now = utcnow()
    for key, value in values.items():
        row = existing.get(key)
        if row is None:
            db.add(ForumSetting(key=key, value=value, updated_at=now))
        else:
            row.value = value
            row.updated_at = now


async def update_settings(db: AsyncSession, values: Dict[str, object]) -> Dict[str, str]:
    if not isinstance(values, dict):
        raise BadRequest("Settings must be a JSON object of key-value pairs.")
    for key, value in values.items():
        if not isinstance(value, str):
            raise BadRequest(f'Invalid value for setting "{key}". All values must be strings.')

    known = {key: value for key, value in values.items() if key in DEFAULT_SETTINGS}
    if "custom_css" in known:
        known["custom_css"] = sanitize_custom_css(known["custom_css"])

    if known:
        async with atomic(db):
            await _upsert(db, known)
        logger.info("updated forum settings: %s", ", ".join(sorted(known)))
    return await get_settings(db)


async def reset_settings(db: AsyncSession) -> Dict[str, str]:
    async with atomic(db):
        await _upsert(db, DEFAULT_SETTINGS)
    logger.info("forum settings reset to defaults")
    return await get_settings(db)
