"""
Text Processing Utilities
------------------------
This module contains functions for putting contact text into a canonical
comparison form, which is the first step of every similarity computation.
"""

import unicodedata
from typing import Any


def normalize(text: str) -> str:
    """
    Normalize a string for comparison purposes.

    This function normalizes text by:
    1. Converting to lowercase
    2. Decomposing characters (NFD) and dropping the combining marks, so that
       "café" and "cafe" compare equal
    3. Trimming leading and trailing whitespace

    The result is idempotent: normalize(normalize(s)) == normalize(s).

    Args:
        text: The text to normalize

    Returns:
        str: The normalized text
    """
    decomposed = unicodedata.normalize("NFD", text.lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.strip()


def email_local_part(email: str) -> str:
    """Return the part of an address before the first '@' (the whole string if there is none)."""
    return email.split("@", 1)[0]


def is_present(value: Any) -> bool:
    """
    A value is present unless it is None, an empty string or an empty list.

    This is the single "absent" notion used when suggesting merge sources.
    """
    if value is None:
        return False
    if isinstance(value, (str, list, tuple)):
        return len(value) > 0
    return True


def stringify(value: Any) -> str:
    """Render a field value as display text; lists are joined with ', '."""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value)
    return str(value)
