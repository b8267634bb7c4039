"""Providers for timeline services."""

from functools import cache

from clipcomposer.config import get_composer_config
from clipcomposer.timeline.envelopes import FadeSettings
from clipcomposer.timeline.otio_export import TimelineExportService


@cache
def timeline_export_service() -> TimelineExportService:
    """Provide a cached instance of the TimelineExportService."""
    return TimelineExportService(FadeSettings.from_config(get_composer_config()))
