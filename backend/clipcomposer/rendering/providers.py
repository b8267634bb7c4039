"""Providers for the render engine."""

from functools import cache

from clipcomposer.config import get_composer_config
from clipcomposer.rendering.remotion_engine import RemotionEngine


@cache
def render_engine() -> RemotionEngine:
    """Provide a cached RemotionEngine for the configured project."""
    config = get_composer_config()
    return RemotionEngine(config.remotion_project_dir, node_binary=config.node_binary)
