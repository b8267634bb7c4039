"""Service configuration loaded from environment variables."""

import json
import os
from functools import cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field

from clipcomposer.common.base_composer_model import BaseComposerModel

# Load .env file from backend directory
_backend_dir = Path(__file__).parent.parent
load_dotenv(_backend_dir / ".env")


class IntroBlockConfig(BaseComposerModel):
    """A fixed-length block placed before the clips."""

    name: str
    duration_in_frames: int = Field(gt=0)


DEFAULT_INTRO_BLOCKS = (
    IntroBlockConfig(name="title", duration_in_frames=80),
    IntroBlockConfig(name="platform", duration_in_frames=80),
    IntroBlockConfig(name="location", duration_in_frames=80),
)


class ComposerConfig(BaseComposerModel):
    """Configuration for staging, timeline math and rendering."""

    # Timeline (25 fps, 3 x 80 frame intro = 240 frames)
    fps: int = Field(default=25, gt=0)
    intro_blocks: tuple[IntroBlockConfig, ...] = DEFAULT_INTRO_BLOCKS
    visual_fade_frames: int = Field(default=30, ge=0)
    audio_fade_frames: int = Field(default=15, ge=0)
    audio_peak_volume: float = Field(default=0.2, ge=0, le=1)

    # Staging
    staging_dir: Path = Path("tmp/temp-uploads")
    staging_ttl_seconds: int = Field(default=30 * 60, gt=0)
    sweep_interval_seconds: int = Field(default=5 * 60, gt=0)
    stage_write_retries: int = Field(default=3, ge=1)
    stage_retry_backoff_seconds: float = Field(default=0.05, ge=0)
    reference_mode: Literal["url", "path"] = "url"
    asset_origin: str = "http://localhost:8000"

    # Verification
    probe_timeout_seconds: float = Field(default=10.0, gt=0)

    # Remotion
    node_binary: str = "node"
    remotion_project_dir: Path = Path(".")
    remotion_entry_point: Path = Path("src/lib/remotion/index.ts")
    remotion_public_dir: Path = Path("static")
    remotion_path_aliases: dict[str, str] = Field(
        default_factory=lambda: {"$lib": "src/lib", "$app": ".svelte-kit/runtime/app"}
    )
    composition_id: str = "MasterComposition"
    codec: str = "h264"

    # Output
    output_backend: Literal["local", "gridfs"] = "local"
    outputs_dir: Path = Path("tmp/outputs")
    output_filename_prefix: str = "master-video"

    cleanup_token: str = "dev-clean"


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    return int(value) if value else default


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    return float(value) if value else default


@cache
def get_composer_config() -> ComposerConfig:
    """Get service configuration from environment variables.

    Environment variables:
        COMPOSER_FPS: Composition frame rate (default: 25)
        COMPOSER_STAGING_DIR: Directory for staged uploads
        COMPOSER_STAGING_TTL_SECONDS: Lifetime of a staged upload (default: 1800)
        COMPOSER_SWEEP_INTERVAL_SECONDS: Sweep loop period (default: 300)
        COMPOSER_REFERENCE_MODE: "url" or "path" render references
        ASSET_ORIGIN: Origin the renderer uses to fetch staged uploads
        COMPOSER_OUTPUTS_DIR: Directory for rendered outputs
        COMPOSER_OUTPUT_BACKEND: "local" or "gridfs"
        REMOTION_PROJECT_DIR: Remotion project root
        REMOTION_ENTRY_POINT: Entry file, relative to the project root
        REMOTION_PUBLIC_DIR: Public asset root, relative to the project root
        REMOTION_PATH_ALIASES: JSON object of bundler path aliases
        CLEANUP_TOKEN: Token required by the manual cleanup endpoint
    """
    defaults = ComposerConfig()

    aliases_raw = os.environ.get("REMOTION_PATH_ALIASES", "")
    path_aliases = json.loads(aliases_raw) if aliases_raw else defaults.remotion_path_aliases

    return ComposerConfig(
        fps=_env_int("COMPOSER_FPS", defaults.fps),
        visual_fade_frames=_env_int("COMPOSER_VISUAL_FADE_FRAMES", defaults.visual_fade_frames),
        audio_fade_frames=_env_int("COMPOSER_AUDIO_FADE_FRAMES", defaults.audio_fade_frames),
        audio_peak_volume=_env_float("COMPOSER_AUDIO_PEAK_VOLUME", defaults.audio_peak_volume),
        staging_dir=Path(os.environ.get("COMPOSER_STAGING_DIR", str(defaults.staging_dir))),
        staging_ttl_seconds=_env_int("COMPOSER_STAGING_TTL_SECONDS", defaults.staging_ttl_seconds),
        sweep_interval_seconds=_env_int(
            "COMPOSER_SWEEP_INTERVAL_SECONDS", defaults.sweep_interval_seconds
        ),
        reference_mode=os.environ.get("COMPOSER_REFERENCE_MODE", defaults.reference_mode),
        asset_origin=os.environ.get("ASSET_ORIGIN", defaults.asset_origin).rstrip("/"),
        probe_timeout_seconds=_env_float("COMPOSER_PROBE_TIMEOUT_SECONDS", defaults.probe_timeout_seconds),
        node_binary=os.environ.get("NODE_BINARY", defaults.node_binary),
        remotion_project_dir=Path(
            os.environ.get("REMOTION_PROJECT_DIR", str(defaults.remotion_project_dir))
        ),
        remotion_entry_point=Path(
            os.environ.get("REMOTION_ENTRY_POINT", str(defaults.remotion_entry_point))
        ),
        remotion_public_dir=Path(
            os.environ.get("REMOTION_PUBLIC_DIR", str(defaults.remotion_public_dir))
        ),
        remotion_path_aliases=path_aliases,
        composition_id=os.environ.get("REMOTION_COMPOSITION_ID", defaults.composition_id),
        codec=os.environ.get("REMOTION_CODEC", defaults.codec),
        output_backend=os.environ.get("COMPOSER_OUTPUT_BACKEND", defaults.output_backend),
        outputs_dir=Path(os.environ.get("COMPOSER_OUTPUTS_DIR", str(defaults.outputs_dir))),
        cleanup_token=os.environ.get("CLEANUP_TOKEN", defaults.cleanup_token),
    )
