"""Liveness checks for clip render references."""

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path

import httpx

from clipcomposer.common.errors import AssetUnavailableError
from clipcomposer.timeline.schemas import TimelineSegment

logger = logging.getLogger(__name__)

# Servers that refuse HEAD get a one-byte ranged GET instead
_HEAD_UNSUPPORTED = {405, 501}


def is_http_reference(reference: str) -> bool:
    """Return True for http(s) URLs."""
    return reference.startswith(("http://", "https://"))


class AssetVerifier:
    """Checks that every segment's render reference can be fetched."""

    def __init__(
        self,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the verifier.

        Args:
            timeout_seconds: Timeout for each probe.
            transport: Optional httpx transport (used to stub the network).
        """
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def verify(self, segments: Sequence[TimelineSegment]) -> None:
        """Probe all references concurrently and wait for every probe.

        Raises:
            AssetUnavailableError: For the first segment, in timeline order,
                whose reference failed.
        """
        async with httpx.AsyncClient(
            timeout=self.timeout_seconds,
            transport=self.transport,
            follow_redirects=True,
        ) as client:
            results = await asyncio.gather(
                *(self._check(client, segment) for segment in segments),
                return_exceptions=True,
            )

        for result in results:
            if isinstance(result, BaseException):
                raise result

    async def _check(self, client: httpx.AsyncClient, segment: TimelineSegment) -> None:
        clip_name = segment.clip_name
        reference = segment.clip.render_src
        if not reference:
            raise AssetUnavailableError(clip_name, "", "no render reference")

        if not is_http_reference(reference):
            if not Path(reference).is_file():
                raise AssetUnavailableError(clip_name, reference, "file not found")
            return

        try:
            response = await client.head(reference)
            if response.status_code in _HEAD_UNSUPPORTED:
                response = await client.get(reference, headers={"Range": "bytes=0-0"})
        except httpx.HTTPError as e:
            logger.warning("Probe failed for clip %s (%s): %s", clip_name, reference, e)
            raise AssetUnavailableError(clip_name, reference, type(e).__name__) from e

        if not response.is_success:
            logger.warning(
                "Probe for clip %s returned HTTP %d (%s)",
                clip_name,
                response.status_code,
                reference,
            )
            raise AssetUnavailableError(clip_name, reference, f"HTTP {response.status_code}")

        logger.debug("Probe ok for clip %s (%s)", clip_name, reference)
