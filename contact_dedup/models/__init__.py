"""
Data Models Module
Contains Pydantic models for contacts, duplicate pairs, comparisons and merge plans.
"""

from .data_models import (
    MatchType,
    DuplicateStatus,
    MergeFieldSource,
    ConfidenceLevel,
    ConfidenceThresholds,
    CONFIDENCE_THRESHOLDS,
    CONTACT_COMPARE_FIELDS,
    LIST_FIELDS,
    IDENTITY_FIELDS,
    MATCH_TYPE_LABELS,
    DUPLICATE_STATUS_LABELS,
    CONFIDENCE_LEVEL_LABELS,
    CONFIDENCE_LEVEL_COLORS,
    Contact,
    Classification,
    ScoredPair,
    MergeDecision,
    DuplicatePair,
    ContactFieldComparison,
    ContactComparison,
    MergePlan,
    MergeResult,
    DuplicateScanResult,
    BulkMergeResult,
)
