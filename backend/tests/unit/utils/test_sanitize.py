"""
Unit tests for input sanitizing helpers.
"""

import pytest

from helpdesk.utils.sanitize import escape_html, sanitize_filename


class TestEscapeHtml:
    """Tests for escape_html."""

    def test_escapes_markup(self):
        assert escape_html("<script>alert('x')</script>") == (
            "&lt;script&gt;alert(&#39;x&#39;)&lt;/script&gt;"
        )

    def test_ampersand_escaped_first(self):
        assert escape_html('a & "b"') == "a &amp; &quot;b&quot;"

    def test_plain_text_unchanged(self):
        assert escape_html("Printer on floor 3 is jammed") == "Printer on floor 3 is jammed"

    def test_not_idempotent(self):
        """Stored text is escaped once; escaping again changes it."""
        assert escape_html(escape_html("&")) == "&amp;amp;"


class TestSanitizeFilename:
    """Tests for sanitize_filename."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("report.PDF", "report.pdf"),
            ("../../etc/passwd", "..-..-etc-passwd"),
            ("my   screen shot.png", "my screen shot.png"),
            ("bad\x00name.png", "badname.png"),
            ("what?*.jpeg", "what-.jpeg"),
            ("", "file"),
            (".png", ".png"),
        ],
    )
    def test_examples(self, raw, expected):
        assert sanitize_filename(raw) == expected

    def test_truncates_stem_and_keeps_extension(self):
        result = sanitize_filename("a" * 300 + ".pdf")

        assert len(result) == 120
        assert result.endswith(".pdf")

    def test_custom_length(self):
        assert sanitize_filename("abcdefghij.png", max_length=8) == "abcd.png"
