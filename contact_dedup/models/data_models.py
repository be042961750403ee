"""
Data Models
-----------
This module contains all Pydantic models used by the deduplication engine.
These models define the contact projection the engine reads, the duplicate pair
records it hands to storage, and the comparison/merge structures exchanged with
the reviewer UI.
"""

from datetime import datetime
from enum import Enum
from typing import List, Dict, Optional, Any, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class MatchType(str, Enum):
    """Why two contacts were flagged as a potential duplicate."""
    EXACT_EMAIL = "exact_email"
    SIMILAR_NAME = "similar_name"
    SIMILAR_COMBINED = "similar_combined"


class DuplicateStatus(str, Enum):
    """Lifecycle state of a duplicate pair."""
    PENDING = "pending"
    MERGED = "merged"
    DISMISSED = "dismissed"


class MergeFieldSource(str, Enum):
    """Where the surviving value of a field comes from during a merge."""
    CONTACT1 = "contact1"
    CONTACT2 = "contact2"
    COMBINED = "combined"


class ConfidenceLevel(str, Enum):
    CERTAIN = "certain"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# Display tables for the reviewer UI
MATCH_TYPE_LABELS: Dict[MatchType, str] = {
    MatchType.EXACT_EMAIL: "Exact Email Match",
    MatchType.SIMILAR_NAME: "Similar Name",
    MatchType.SIMILAR_COMBINED: "Combined Similarity",
}

DUPLICATE_STATUS_LABELS: Dict[DuplicateStatus, str] = {
    DuplicateStatus.PENDING: "Pending Review",
    DuplicateStatus.MERGED: "Merged",
    DuplicateStatus.DISMISSED: "Dismissed",
}

CONFIDENCE_LEVEL_LABELS: Dict[ConfidenceLevel, str] = {
    ConfidenceLevel.CERTAIN: "Certain",
    ConfidenceLevel.HIGH: "High Confidence",
    ConfidenceLevel.MEDIUM: "Medium Confidence",
    ConfidenceLevel.LOW: "Low Confidence",
}

CONFIDENCE_LEVEL_COLORS: Dict[ConfidenceLevel, str] = {
    ConfidenceLevel.CERTAIN: "red",
    ConfidenceLevel.HIGH: "orange",
    ConfidenceLevel.MEDIUM: "yellow",
    ConfidenceLevel.LOW: "gray",
}

# Fields compared side by side when reviewing a pair
CONTACT_COMPARE_FIELDS = (
    "email",
    "first_name",
    "last_name",
    "company",
    "job_title",
    "phone",
    "city",
    "country",
    "notes",
)

# List-valued fields that can be combined without a custom value
LIST_FIELDS = ("tags", "segments")

# Fields that identify the record and are never resolved by a merge
IDENTITY_FIELDS = ("id", "event_id")


class ConfidenceThresholds(BaseModel):
    """
    Score boundaries partitioning the 0-100 confidence space.

    The defaults are the classification contract; a caller may pass a different
    instance to the scoring functions, e.g. in tests.
    """
    model_config = ConfigDict(frozen=True)

    certain: int = 100
    high: int = 85
    medium: int = 70
    low: int = 50


CONFIDENCE_THRESHOLDS = ConfidenceThresholds()


class Contact(BaseModel):
    """
    Contact projection consumed by the engine.

    email, first_name and last_name are required for scoring, but stay optional
    here so that records with bad upstream data can still be loaded and skipped.
    """
    id: str
    event_id: Optional[str] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company: Optional[str] = None
    job_title: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    notes: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    segments: List[str] = Field(default_factory=list)


class Classification(BaseModel):
    """Confidence score and match type for one candidate pair."""
    score: int = Field(ge=0, le=100)
    match_type: MatchType


class ScoredPair(BaseModel):
    """A candidate pair that scored at or above the detection threshold."""
    event_id: Optional[str] = None
    contact_id_1: str
    contact_id_2: str
    score: int = Field(ge=0, le=100)
    match_type: MatchType


class MergeDecision(BaseModel):
    """
    A reviewer's (or policy's) choice for one field of a merge.
    custom_value, when given, overrides both sources.
    """
    field_name: str
    source: MergeFieldSource
    custom_value: Optional[Union[str, List[str]]] = None


class DuplicatePair(BaseModel):
    """
    Persisted candidate match awaiting review.

    Contact ids are stored in sorted order when created by detection so that an
    unordered pair of contacts has a single key.
    """
    id: str
    event_id: Optional[str] = None
    contact_id_1: str
    contact_id_2: str
    match_type: MatchType
    confidence_score: int = Field(ge=0, le=100)
    status: DuplicateStatus = DuplicateStatus.PENDING
    merged_contact_id: Optional[str] = None
    merge_decisions: List[MergeDecision] = Field(default_factory=list)
    dismissed_by: Optional[str] = None
    dismissed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="after")
    def check_state_fields(self) -> "DuplicatePair":
        if self.contact_id_1 == self.contact_id_2:
            raise ValueError("contact_id_1 and contact_id_2 must differ")
        is_merged = self.status == DuplicateStatus.MERGED
        if is_merged != (self.merged_contact_id is not None):
            raise ValueError("merged_contact_id is set only on merged pairs")
        if self.status == DuplicateStatus.DISMISSED:
            if self.dismissed_by is None or self.dismissed_at is None:
                raise ValueError("dismissed pairs require dismissed_by and dismissed_at")
        elif self.dismissed_by is not None or self.dismissed_at is not None:
            raise ValueError("dismissed_by and dismissed_at are set only on dismissed pairs")
        return self

    @property
    def contact_ids(self) -> tuple:
        return (self.contact_id_1, self.contact_id_2)


class ContactFieldComparison(BaseModel):
    field_name: str
    value1: Optional[str] = None
    value2: Optional[str] = None
    similarity: int = Field(ge=0, le=100)
    suggested_source: MergeFieldSource


class ContactComparison(BaseModel):
    """Field-by-field comparison of two contacts, in the requested field order."""
    contact_id_1: str
    contact_id_2: str
    fields: List[ContactFieldComparison]


class MergePlan(BaseModel):
    """
    Output of the merge planner: the record draft that survives, the id that is
    discarded, and the full set of resolved decisions for the audit trail.
    """
    survivor_id: str
    discarded_id: str
    decisions: List[MergeDecision]
    merged_record: Contact


class MergeResult(BaseModel):
    success: bool
    merged_contact_id: Optional[str] = None
    deleted_contact_id: Optional[str] = None
    pair_id: Optional[str] = None
    error: Optional[str] = None


class DuplicateScanResult(BaseModel):
    """Statistics about one batch detection pass."""
    scanned_contacts: int
    candidate_pairs: int
    duplicates_found: int
    new_pairs: int
    skipped_pairs: int


class BulkMergeResult(BaseModel):
    merged: int
    errors: int
    skipped: int = 0


# --- API request / response models ---

class ScoreRequest(BaseModel):
    email1: str
    email2: str
    first_name1: str
    last_name1: str
    first_name2: str
    last_name2: str
    threshold: Optional[int] = Field(default=None, ge=0, le=100)


class ScoreResponse(BaseModel):
    score: int
    match_type: MatchType
    match_type_label: str
    confidence_level: ConfidenceLevel
    confidence_label: str
    color: str
    is_duplicate: bool


class MergeRequest(BaseModel):
    survivor_id: Optional[str] = None
    decisions: List[MergeDecision] = Field(default_factory=list)
    user_id: str


class DismissRequest(BaseModel):
    user_id: str


class BulkMergeRequest(BaseModel):
    user_id: str


class DuplicatePairListResponse(BaseModel):
    pairs: List[DuplicatePair]
    total: int
    page: int
    per_page: int


class ContactImportResponse(BaseModel):
    message: str
    imported: int
    contact_ids: List[str]


class DisplayTables(BaseModel):
    match_type_labels: Dict[str, str]
    status_labels: Dict[str, str]
    confidence_level_labels: Dict[str, str]
    confidence_level_colors: Dict[str, str]
    thresholds: Dict[str, Any]
