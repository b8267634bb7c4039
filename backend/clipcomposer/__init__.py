"""Clip Composer: staging, timeline composition and render orchestration."""
