import re
from unidecode import unidecode

EMPTY_SLUG = "n-a"


def slugify(text):
    """Lowercase ASCII slug with runs of other characters collapsed to '-'."""
    if not text or not isinstance(text, str):
        raise ValueError("slugify() expects a non-empty string")
    text = unidecode(text).lower()
    text = re.sub(r'[^a-z0-9]+', '-', text).strip('-')
    return text or EMPTY_SLUG
