"""Regular expressions used to split chapters into paragraphs.

Patterns for paragraph boundaries, explicit scene break tokens and screenplay scene headings.
"""

from __future__ import annotations

import re
from re import Pattern
from typing import Final

__all__: list[str] = [
    "PARAGRAPH_BOUNDARY_PATTERN",
    "SCENE_HEADING_PATTERN",
    "SCENE_TOKEN_PATTERN",
    "WORD_CHARACTER_PATTERN",
]

# Explicit break token inserted by the manuscript loader
# Example: "{{SCENE_3}}"
SCENE_TOKEN_PATTERN: Final[Pattern[str]] = re.compile(r"\{\{SCENE_\d+\}\}")

# A run of blank lines, or a scene break token
# Example: "Intro.\n\n\nShe walked in." -> ["Intro.", "She walked in."]
PARAGRAPH_BOUNDARY_PATTERN: Final[Pattern[str]] = re.compile(rf"\n\s*\n+|{SCENE_TOKEN_PATTERN.pattern}")

# Screenplay style scene heading
# Examples: "## INT. KITCHEN - NIGHT", "##EXT. ROOF", "## INT/EXT. CAR - DAY"
SCENE_HEADING_PATTERN: Final[Pattern[str]] = re.compile(r"^##\s*(?:INT\.|EXT\.|INT/EXT\.)")

# Any letter or digit; paragraphs without one have nothing to pronounce
# Examples: "...", "* * *", "-- --"
WORD_CHARACTER_PATTERN: Final[Pattern[str]] = re.compile(r"\w")
