"""
Utilities Module
Contains utility functions for text normalization and fuzzy matching.
"""

from .text_processing import normalize, email_local_part, is_present, stringify
from .fuzzy_matching import (
    levenshtein,
    string_similarity,
    name_similarity,
    round_half_up,
)
