"""
Confidence Scoring
------------------
This module classifies a candidate pair of contacts: it combines an exact email
check, weighted name similarity and email local-part similarity into a single
0-100 confidence score and a match type.
"""

from typing import Optional

from contact_dedup.core.exceptions import InvalidInputError
from contact_dedup.models.data_models import (
    CONFIDENCE_THRESHOLDS,
    Classification,
    ConfidenceLevel,
    ConfidenceThresholds,
    Contact,
    MatchType,
)
from contact_dedup.utils.fuzzy_matching import name_similarity, round_half_up, string_similarity
from contact_dedup.utils.text_processing import email_local_part, normalize


def classify(
    email1: str,
    email2: str,
    first1: str,
    last1: str,
    first2: str,
    last2: str,
    thresholds: ConfidenceThresholds = CONFIDENCE_THRESHOLDS,
) -> Classification:
    """
    Calculate the duplicate confidence of two contacts.

    Decision order:
    1. Equal normalized emails -> 100, exact_email (nothing else is computed)
    2. Name similarity >= high -> name similarity, similar_name
    3. Name similarity >= medium and email local-part similarity >= low
       -> average of both, similar_combined
    4. Otherwise -> name similarity, similar_name, even below any threshold so
       that callers can apply their own cutoff

    Args:
        email1, email2: Email addresses of both contacts
        first1, last1: Names of the first contact
        first2, last2: Names of the second contact
        thresholds: Score boundaries to classify with

    Returns:
        Classification: score (0-100) and match type
    """
    if normalize(email1) == normalize(email2):
        return Classification(score=100, match_type=MatchType.EXACT_EMAIL)

    name_sim = name_similarity(first1, last1, first2, last2)
    if name_sim >= thresholds.high:
        return Classification(score=name_sim, match_type=MatchType.SIMILAR_NAME)

    email_sim = string_similarity(email_local_part(email1), email_local_part(email2))
    if name_sim >= thresholds.medium and email_sim >= thresholds.low:
        return Classification(
            score=round_half_up((name_sim + email_sim) / 2),
            match_type=MatchType.SIMILAR_COMBINED,
        )

    return Classification(score=name_sim, match_type=MatchType.SIMILAR_NAME)


def is_duplicate(
    email1: str,
    email2: str,
    first1: str,
    last1: str,
    first2: str,
    last2: str,
    threshold: Optional[int] = None,
    thresholds: ConfidenceThresholds = CONFIDENCE_THRESHOLDS,
) -> bool:
    """Return True when the pair's confidence reaches threshold (default: the medium level)."""
    if threshold is None:
        threshold = thresholds.medium
    result = classify(email1, email2, first1, last1, first2, last2, thresholds=thresholds)
    return result.score >= threshold


def confidence_level(
    score: int, thresholds: ConfidenceThresholds = CONFIDENCE_THRESHOLDS
) -> ConfidenceLevel:
    """Map a score to its confidence level; every boundary is inclusive."""
    if score >= thresholds.certain:
        return ConfidenceLevel.CERTAIN
    if score >= thresholds.high:
        return ConfidenceLevel.HIGH
    if score >= thresholds.medium:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def _require(contact: Contact, field_name: str) -> str:
    value = getattr(contact, field_name)
    if value is None or not str(value).strip():
        raise InvalidInputError(f"Contact '{contact.id}' has no {field_name}")
    return value


def score_contacts(
    contact1: Contact,
    contact2: Contact,
    thresholds: ConfidenceThresholds = CONFIDENCE_THRESHOLDS,
) -> Classification:
    """
    Classify two full contact records.

    Unlike classify(), this validates its input: both contacts need an id, an
    email, a first name and a last name, and must be different records.

    Raises:
        InvalidInputError: If a required field is missing or the ids are equal
    """
    for contact in (contact1, contact2):
        if not contact.id:
            raise InvalidInputError("Contact id is required")
    if contact1.id == contact2.id:
        raise InvalidInputError(f"Cannot compare contact '{contact1.id}' with itself")

    email1, email2 = _require(contact1, "email"), _require(contact2, "email")
    first1, first2 = _require(contact1, "first_name"), _require(contact2, "first_name")
    last1, last2 = _require(contact1, "last_name"), _require(contact2, "last_name")

    return classify(email1, email2, first1, last1, first2, last2, thresholds=thresholds)
