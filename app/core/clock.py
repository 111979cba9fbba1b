"""Locale clock used to resolve relative dates."""

from datetime import date, datetime
from zoneinfo import ZoneInfo

from app.config import settings


def local_today() -> date:
    """Today's date in the configured timezone."""
    return datetime.now(ZoneInfo(settings.timezone)).date()
