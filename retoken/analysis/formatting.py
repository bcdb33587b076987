"""Bullet extraction for rendering analysis commentary."""

import re
from typing import List, Optional

BULLET_PREFIX = re.compile(r"^[-*]\s*")


def analysis_lines(text: Optional[str]) -> List[str]:
    """
    Split commentary into display lines.

    Lines starting with "-" or "*" become bullets with the marker stripped.
    Text with no bullet markers at all is returned as a single line.
    """
    if not text:
        return []

    bullets = [
        BULLET_PREFIX.sub("", line.strip())
        for line in text.split("\n")
        if line.strip().startswith(("-", "*"))
    ]
    if bullets:
        return bullets
    return [text.strip()]
