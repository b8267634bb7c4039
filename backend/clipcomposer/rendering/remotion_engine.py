"""Remotion render engine, driven through a Node bridge process."""

import asyncio
import json
import logging
import shutil
import tempfile
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from clipcomposer.common.errors import BundleError, ComposerError, RenderEngineError
from clipcomposer.rendering.engine import (
    BundleHandle,
    CodecOptions,
    CompositionInfo,
    ProgressCallback,
    RenderOutput,
)

logger = logging.getLogger(__name__)

BRIDGE_SCRIPT = Path(__file__).with_name("remotion_bridge.mjs")

# Remotion prints whole composition lists on one line
_STREAM_LIMIT_BYTES = 16 * 1024 * 1024


class RemotionEngine:
    """Runs Remotion bundling, composition listing and rendering.

    Each call spawns ``node remotion_bridge.mjs <command>`` inside the Remotion
    project so the project's own ``@remotion/*`` packages are used. The
    payload goes in on stdin; progress and results come back as JSON lines.
    """

    def __init__(
        self,
        project_dir: Path,
        node_binary: str = "node",
        bridge_script: Path = BRIDGE_SCRIPT,
    ) -> None:
        """Initialize the engine.

        Args:
            project_dir: Root of the Remotion project (holds node_modules).
            node_binary: Node executable to run the bridge with.
            bridge_script: Path to the bridge script.
        """
        self.project_dir = project_dir.expanduser().resolve()
        self.node_binary = node_binary
        self.bridge_script = bridge_script
        logger.info("[Remotion] Initialized with project dir: %s", self.project_dir)

    async def prepare_bundle(
        self,
        entry_point: Path,
        public_dir: Path,
        path_aliases: Mapping[str, str],
    ) -> BundleHandle:
        """Bundle the composition program with webpack path aliases applied."""
        entry = self._in_project(entry_point)
        if not entry.is_file():
            msg = f"Entry composition not found: {entry}"
            raise BundleError(msg)

        scratch_dir = Path(tempfile.mkdtemp(prefix="composer_bundle_"))
        payload = {
            "projectDir": str(self.project_dir),
            "entryPoint": str(entry),
            "publicDir": str(self._in_project(public_dir)),
            "outDir": str(scratch_dir / "bundle"),
            "pathAliases": dict(path_aliases),
        }
        try:
            result = await self._run_bridge("bundle", payload, error_class=BundleError)
        except BaseException:
            shutil.rmtree(scratch_dir, ignore_errors=True)
            raise

        logger.info("[Remotion] Bundle location: %s", result["location"])
        return BundleHandle(location=result["location"], scratch_dir=scratch_dir)

    async def list_compositions(
        self,
        bundle: BundleHandle,
        input_props: Mapping[str, Any],
    ) -> list[CompositionInfo]:
        """List the compositions registered by the bundle."""
        payload = {
            "projectDir": str(self.project_dir),
            "serveUrl": bundle.location,
            "inputProps": dict(input_props),
        }
        result = await self._run_bridge("compositions", payload, error_class=BundleError)
        return [
            CompositionInfo(
                id=item["id"],
                duration_in_frames=item["durationInFrames"],
                fps=item.get("fps", 25.0),
                width=item.get("width", 1920),
                height=item.get("height", 1080),
            )
            for item in result["compositions"]
        ]

    async def render(
        self,
        composition: CompositionInfo,
        bundle: BundleHandle,
        codec_options: CodecOptions,
        input_props: Mapping[str, Any],
        on_progress: ProgressCallback,
    ) -> RenderOutput:
        """Render to a file in the bundle's scratch directory."""
        output_dir = bundle.scratch_dir or Path(tempfile.mkdtemp(prefix="composer_render_"))
        output_path = output_dir / f"render.{codec_options.extension}"

        payload = {
            "projectDir": str(self.project_dir),
            "serveUrl": bundle.location,
            "compositionId": composition.id,
            "durationInFrames": composition.duration_in_frames,
            "codec": codec_options.codec,
            "crf": codec_options.crf,
            "audioCodec": codec_options.audio_codec,
            "outputLocation": str(output_path),
            "inputProps": dict(input_props),
        }

        def on_message(message: dict[str, Any]) -> None:
            if message.get("type") == "progress":
                on_progress(int(message["renderedFrames"]), int(message["encodedFrames"]))

        logger.info(
            "[Remotion] Rendering %s (%d frames, codec=%s)",
            composition.id,
            composition.duration_in_frames,
            codec_options.codec,
        )
        await self._run_bridge("render", payload, error_class=RenderEngineError, on_message=on_message)
        return RenderOutput(output_path=output_path)

    async def _run_bridge(
        self,
        command: str,
        payload: dict[str, Any],
        error_class: type[ComposerError],
        on_message: Callable[[dict[str, Any]], None] | None = None,
    ) -> dict[str, Any]:
        """Run one bridge command and return its result message."""
        try:
            process = await asyncio.create_subprocess_exec(
                self.node_binary,
                str(self.bridge_script),
                command,
                cwd=str(self.project_dir),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=_STREAM_LIMIT_BYTES,
            )
        except OSError as e:
            msg = f"Could not start render bridge: {e}"
            raise error_class(msg) from e

        assert process.stdin is not None
        assert process.stdout is not None
        assert process.stderr is not None

        stderr_task = asyncio.create_task(process.stderr.read())
        result: dict[str, Any] | None = None
        error_message: str | None = None

        try:
            process.stdin.write(json.dumps(payload).encode("utf-8"))
            await process.stdin.drain()
            process.stdin.close()

            async for raw_line in process.stdout:
                line = raw_line.decode("utf-8", errors="replace").strip()
                if not line:
                    continue
                try:
                    message = json.loads(line)
                except json.JSONDecodeError:
                    logger.debug("[Remotion] %s", line)
                    continue

                message_type = message.get("type")
                if message_type == "result":
                    result = message
                elif message_type == "error":
                    error_message = str(message.get("message", "Unknown render error"))
                elif on_message is not None:
                    on_message(message)

            return_code = await process.wait()
            stderr = (await stderr_task).decode("utf-8", errors="replace")
        finally:
            if process.returncode is None:
                process.kill()
                await process.wait()
            if not stderr_task.done():
                stderr_task.cancel()

        if return_code != 0 or result is None:
            if stderr:
                logger.error("[Remotion] %s failed: %s", command, stderr[-2000:])
            raise error_class(error_message or f"Render bridge '{command}' exited with code {return_code}")
        return result

    def _in_project(self, path: Path) -> Path:
        return path if path.is_absolute() else self.project_dir / path
