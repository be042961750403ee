"""
Core Module
Contains the confidence classifier, comparison builder, merge planner, pair
lifecycle and the batch detection pass.
"""

from .exceptions import (
    DeduplicationError,
    InvalidInputError,
    StateConflictError,
    IncompleteMergeDecisionError,
    NotFoundError,
)
from .scoring import classify, is_duplicate, confidence_level, score_contacts
from .comparison import suggest_source, field_similarity, build_comparison
from .merge import merge_arrays, plan_merge
