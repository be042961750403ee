"""
Fuzzy Matching Utilities
-----------------------
This module contains the edit-distance based similarity functions used to compare
contact fields. All functions are pure and safe to call from any thread.
"""

import math

import jellyfish  # pip install jellyfish

from .text_processing import normalize

# Last names carry more disambiguating signal than first names
NAME_WEIGHTS = {
    "first_name": 0.4,
    "last_name": 0.6,
}


def round_half_up(value: float) -> int:
    """Round to the nearest integer, with .5 always going up (Python's round() goes to even)."""
    return int(math.floor(value + 0.5))


def levenshtein(a: str, b: str) -> int:
    """
    Calculate the Levenshtein edit distance between two strings.

    Insertions, deletions and substitutions each cost 1. The strings are compared
    as given; normalizing them first is the caller's responsibility.

    Args:
        a: First string
        b: Second string

    Returns:
        int: Minimum number of single-character edits turning a into b
    """
    return jellyfish.levenshtein_distance(a, b)


def string_similarity(a: str, b: str) -> int:
    """
    Calculate a 0-100 similarity score between two strings.

    Both strings are normalized first. Equal normalized forms score 100 (this
    includes two empty strings); if only one side is empty the score is 0.
    Otherwise the score is the edit distance relative to the longer string.

    Args:
        a: First string to compare
        b: Second string to compare

    Returns:
        int: Similarity score between 0 and 100
    """
    norm_a = normalize(a)
    norm_b = normalize(b)

    if norm_a == norm_b:
        return 100
    if not norm_a or not norm_b:
        return 0

    distance = levenshtein(norm_a, norm_b)
    max_len = max(len(norm_a), len(norm_b))
    return round_half_up((1 - distance / max_len) * 100)


def name_similarity(first1: str, last1: str, first2: str, last2: str) -> int:
    """
    Weighted similarity of two person names, last name weighted 0.6 and first name 0.4.

    Returns:
        int: Similarity score between 0 and 100
    """
    first_sim = string_similarity(first1, first2)
    last_sim = string_similarity(last1, last2)
    return round_half_up(
        first_sim * NAME_WEIGHTS["first_name"] + last_sim * NAME_WEIGHTS["last_name"]
    )
