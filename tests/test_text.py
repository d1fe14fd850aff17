"""Tests for text normalization."""

import pytest

from src.extraction.text import normalize


class TestNormalize:
    """Test normalize() on decorated page text."""

    def test_none_and_empty_return_empty_string(self):
        """None and empty input normalize to ''."""
        assert normalize(None) == ''
        assert normalize('') == ''

    def test_strips_private_use_icon_glyphs(self):
        """Icon-font glyphs are removed."""
        assert normalize('\uE0C8 123 Main St') == '123 Main St'

    def test_removes_zero_width_characters(self):
        """Zero-width joiners and BOMs disappear without leaving spaces."""
        assert normalize('123\u200B Main\uFEFF St') == '123 Main St'

    def test_maps_exotic_spaces_and_collapses_whitespace(self):
        """Non-breaking and thin spaces become single spaces."""
        assert normalize('123\u00A0Main\u2009 St\n\t') == '123 Main St'

    def test_strips_leading_bullets(self):
        """Leading bullets and dashes are trimmed."""
        assert normalize('\u00B7 \u2022 - 123 Main St') == '123 Main St'

    def test_keeps_inner_punctuation(self):
        """Punctuation inside the text is untouched."""
        assert normalize('123 Main St, Springfield, IL 62704') == '123 Main St, Springfield, IL 62704'

    @pytest.mark.parametrize('raw', [
        '\uE0C8 \u2022 123\u200B Main St',
        '\u00A0 \u00B7 \u00A0',
        '\u2022\uE000\u2022 text',
        '-\u00A0\u200B- 42 Oak Ave',
    ])
    def test_is_idempotent(self, raw):
        """normalize(normalize(x)) equals normalize(x)."""
        once = normalize(raw)
        assert normalize(once) == once
