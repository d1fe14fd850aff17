"""Text normalization for strings read from rendered map pages.

Map pages decorate address fields with icon-font glyphs (private-use code
points), bullet separators, zero-width joiners and non-breaking spaces.
``normalize`` reduces such text to plain single-spaced ASCII-spaced form.
"""

import re
from typing import Optional

__all__ = [
    'normalize',
]


PRIVATE_USE_RE = re.compile(r"[\uE000-\uF8FF]")
LEADING_GLYPHS_RE = re.compile(
    r"^[\u00B7\u2022\-\s\u2023\u25E6\u2043\u204C\u204D\u2219\u25AA\u25AB\u25CF\u25CB]+"
)
ZERO_WIDTH_RE = re.compile(r"[\u200B-\u200D\uFEFF]")
EXOTIC_SPACE_RE = re.compile(r"[\u00A0\u2000-\u200A\u202F\u205F\u3000]")
WHITESPACE_RE = re.compile(r'\s+')


def normalize(text: Optional[str]) -> str:
    """Strip decorative Unicode and collapse whitespace.

    Never raises. ``normalize(normalize(x)) == normalize(x)`` for any input.

    Args:
        text: Raw text as read from the page (None is treated as empty)

    Returns:
        Cleaned, trimmed text
    """
    if not text:
        return ''

    cleaned = PRIVATE_USE_RE.sub('', str(text))
    cleaned = ZERO_WIDTH_RE.sub('', cleaned)
    cleaned = EXOTIC_SPACE_RE.sub(' ', cleaned)
    cleaned = WHITESPACE_RE.sub(' ', cleaned).strip()
    # Glyphs may only become leading once icons and spaces are gone
    cleaned = LEADING_GLYPHS_RE.sub('', cleaned)
    return cleaned.strip()
