"""Reduce exception text to a message fit for the event stream."""

import re

from clipcomposer.common.errors import ComposerError

MAX_MESSAGE_LENGTH = 500

_BODY_MARKERS = re.compile(
    r"(response body|body|stack|traceback)\s*[:=]",
    re.IGNORECASE,
)
_HTML_RE = re.compile(r"<(!doctype|html|head|body)\b.*", re.IGNORECASE | re.DOTALL)
_JSON_BLOB_RE = re.compile(r"\{[^{}]{80,}\}|\[[^\[\]]{80,}\]", re.DOTALL)
_STACK_FRAME_RE = re.compile(r"^\s+at\s|^\s*File \"|^Traceback \(most recent call last\)", re.MULTILINE)
_WHITESPACE_RE = re.compile(r"\s+")


def sanitize_error_message(message: str, max_length: int = MAX_MESSAGE_LENGTH) -> str:
    """Strip transport noise from an error message.

    Removes stack frames, raw HTML documents, long JSON bodies and anything
    after a ``Response body:``-style marker, then collapses whitespace and
    truncates.
    """
    stack_match = _STACK_FRAME_RE.search(message)
    if stack_match:
        message = message[: stack_match.start()]

    marker = _BODY_MARKERS.search(message)
    if marker:
        message = message[: marker.start()]

    message = _HTML_RE.sub("", message)
    message = _JSON_BLOB_RE.sub("", message)
    message = _WHITESPACE_RE.sub(" ", message).strip(" :-,")

    if not message:
        return "Render failed"
    if len(message) > max_length:
        return message[: max_length - 3].rstrip() + "..."
    return message


def describe_exception(error: BaseException) -> str:
    """Build a sanitized message for an exception.

    Errors from our own taxonomy are shown as-is; anything else is prefixed
    with its type name.
    """
    if isinstance(error, ComposerError):
        return sanitize_error_message(str(error))
    return sanitize_error_message(f"{type(error).__name__}: {error}")
