"""Whitespace normalization for extracted document text."""

from __future__ import annotations

import re

_LINE_BREAKS = re.compile(r"\r\n?")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_HORIZONTAL_SPACE = re.compile(r"[ \t]+")
_BLANK_RUN = re.compile(r"\n{3,}")


def normalize(text: str) -> str:
    """Collapse extraction artifacts into canonical text.

    Runs of spaces/tabs become one space, every line is trimmed, three or
    more consecutive newlines become a single paragraph break, and the
    whole text is trimmed.  The function is idempotent.
    """
    text = _LINE_BREAKS.sub("\n", text)
    text = _CONTROL_CHARS.sub("", text)
    text = _HORIZONTAL_SPACE.sub(" ", text)
    text = "\n".join(line.strip() for line in text.split("\n"))
    text = _BLANK_RUN.sub("\n\n", text)
    return text.strip()
