"""Error types raised by the staging, timeline and render pipeline layers.

All errors inherit from ComposerError so routes and the job runner can catch
them in one place. ``str(error)`` is the message shown to the caller.
"""


class ComposerError(Exception):
    """Base exception for all Clip Composer failures."""

    pass


class InvalidDurationError(ComposerError):
    """Raised when a clip's duration in frames is negative or not a finite integer."""

    def __init__(self, clip_name: str, duration: object) -> None:
        self.clip_name = clip_name
        self.duration = duration
        super().__init__(f"Invalid duration for clip {clip_name!r}: {duration!r}")


class NotFoundError(ComposerError):
    """Raised when a staged asset id is not registered."""

    def __init__(self, asset_id: str) -> None:
        self.asset_id = asset_id
        super().__init__(f"Staged asset not found: {asset_id}")


class StageWriteError(ComposerError):
    """Raised when a staged file cannot be written and verified."""

    def __init__(self, filename: str, attempts: int, reason: str) -> None:
        self.filename = filename
        self.attempts = attempts
        self.reason = reason
        super().__init__(f"Could not stage {filename!r} after {attempts} attempts: {reason}")


class UnsupportedMediaError(ComposerError):
    """Raised when a file to stage does not have a known video extension."""

    def __init__(self, filename: str) -> None:
        self.filename = filename
        super().__init__(f"Unsupported video file type: {filename!r}")


class MissingClipMatchError(ComposerError):
    """Raised when no uploaded file or source reference matches a clip name."""

    def __init__(self, clip_name: str) -> None:
        self.clip_name = clip_name
        super().__init__(f"No uploaded file matches clip {clip_name!r}")


class AssetUnavailableError(ComposerError):
    """Raised when a clip's render reference does not answer a liveness probe."""

    def __init__(self, clip_name: str, reference: str, reason: str) -> None:
        self.clip_name = clip_name
        self.reference = reference
        self.reason = reason
        super().__init__(f"Asset for clip {clip_name!r} is unavailable ({reason})")


class BundleError(ComposerError):
    """Raised when the render bundle or its entry composition cannot be prepared."""

    pass


class RenderEngineError(ComposerError):
    """Raised when the render engine reports a failure."""

    pass


class PersistError(ComposerError):
    """Raised when the rendered output is missing or empty."""

    pass


class AbortedError(ComposerError):
    """Raised when the caller aborts a running job."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Render job {job_id} was aborted")
