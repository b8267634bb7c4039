"""Render job orchestration."""
