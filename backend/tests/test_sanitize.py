"""Tests for error message sanitizing."""

from clipcomposer.common.errors import AssetUnavailableError
from clipcomposer.pipeline.sanitize import describe_exception, sanitize_error_message


class TestSanitizeErrorMessage:
    """Tests for sanitize_error_message."""

    def test_plain_message_is_unchanged(self):
        assert sanitize_error_message("Composition not found") == "Composition not found"

    def test_drops_response_body(self):
        message = "Request failed with 502. Response body: <html><body>Bad gateway</body></html>"

        assert sanitize_error_message(message) == "Request failed with 502."

    def test_drops_python_and_node_stack_frames(self):
        python = 'Render failed\nTraceback (most recent call last):\n  File "x.py", line 1'
        node = "TypeError: x is undefined\n    at render (/app/a.js:10:5)"

        assert sanitize_error_message(python) == "Render failed"
        assert sanitize_error_message(node) == "TypeError: x is undefined"

    def test_drops_html_documents(self):
        assert sanitize_error_message("Upstream said <!DOCTYPE html><html>...</html>") == "Upstream said"

    def test_drops_long_json(self):
        blob = '{"detail": "' + "x" * 120 + '"}'

        assert sanitize_error_message(f"Bad request {blob} from engine") == "Bad request from engine"

    def test_collapses_whitespace_and_truncates(self):
        message = "word   " * 200

        result = sanitize_error_message(message, max_length=50)

        assert len(result) <= 50
        assert result.endswith("...")
        assert "  " not in result

    def test_empty_result_falls_back(self):
        assert sanitize_error_message("   ") == "Render failed"


class TestDescribeException:
    """Tests for describe_exception."""

    def test_own_errors_keep_their_message(self):
        error = AssetUnavailableError("clip_a", "http://x/a.mp4", "HTTP 404")

        assert describe_exception(error) == "Asset for clip 'clip_a' is unavailable (HTTP 404)"

    def test_other_errors_are_prefixed_with_type(self):
        assert describe_exception(ValueError("bad value")) == "ValueError: bad value"
