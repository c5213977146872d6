import re

from capability_planner.models.enums import Language


_HEBREW = re.compile(r"[\u0590-\u05FF]")
_LATIN = re.compile(r"[a-zA-Z]")


def detect_language(text: str) -> Language:
    """Classifies the script of a message; Hebrew wins over Latin."""
    if _HEBREW.search(text or ""):
        return Language.HEBREW
    if _LATIN.search(text or ""):
        return Language.ENGLISH
    return Language.OTHER
