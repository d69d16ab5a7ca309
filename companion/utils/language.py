import re
from typing import Tuple

# Unicode script blocks checked in order; first match wins
SCRIPT_LANGUAGES: Tuple[Tuple[str, "re.Pattern[str]"], ...] = (
    ("hi-IN", re.compile(r"[\u0900-\u097F]")),  # Devanagari
    ("te-IN", re.compile(r"[\u0C00-\u0C7F]")),  # Telugu
    ("ta-IN", re.compile(r"[\u0B80-\u0BFF]")),  # Tamil
    ("gu-IN", re.compile(r"[\u0A80-\u0AFF]")),  # Gujarati
    ("bn-IN", re.compile(r"[\u0980-\u09FF]")),  # Bengali
)

DEFAULT_LANGUAGE = "en-US"


def detect_language(text: str) -> str:
    """Return a BCP-47 style tag guessed from the script the text is written in."""
    for tag, pattern in SCRIPT_LANGUAGES:
        if pattern.search(text or ""):
            return tag
    return DEFAULT_LANGUAGE
