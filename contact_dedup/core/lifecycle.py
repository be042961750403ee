"""
Duplicate Pair Lifecycle
------------------------
A duplicate pair starts as pending and ends either merged (after the merge
executor confirmed the surviving record) or dismissed (by a reviewer). Both end
states are terminal.

The transition functions are pure and return an updated copy; the manager
persists them with a compare-and-set so that two reviewers acting on the same
pair cannot both succeed.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Optional, Sequence

from contact_dedup.core.exceptions import InvalidInputError, NotFoundError, StateConflictError
from contact_dedup.models.data_models import (
    DuplicatePair,
    DuplicateStatus,
    MergeDecision,
    ScoredPair,
)
from contact_dedup.storage.base import DuplicatePairRepository

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[DuplicateStatus, FrozenSet[DuplicateStatus]] = {
    DuplicateStatus.PENDING: frozenset({DuplicateStatus.MERGED, DuplicateStatus.DISMISSED}),
    DuplicateStatus.MERGED: frozenset(),
    DuplicateStatus.DISMISSED: frozenset(),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_duplicate_pair(scored: ScoredPair, now: Optional[datetime] = None) -> DuplicatePair:
    """Create a pending pair from a detection result, with its contact ids in sorted order."""
    now = now or _utcnow()
    contact_id_1, contact_id_2 = sorted((scored.contact_id_1, scored.contact_id_2))
    return DuplicatePair(
        id=str(uuid.uuid4()),
        event_id=scored.event_id,
        contact_id_1=contact_id_1,
        contact_id_2=contact_id_2,
        match_type=scored.match_type,
        confidence_score=scored.score,
        status=DuplicateStatus.PENDING,
        created_at=now,
        updated_at=now,
    )


def _check_transition(pair: DuplicatePair, target: DuplicateStatus) -> None:
    if target not in ALLOWED_TRANSITIONS[pair.status]:
        raise StateConflictError(
            f"Duplicate pair '{pair.id}' is {pair.status.value} and cannot become {target.value}",
            pair_id=pair.id,
            current_status=pair.status.value,
        )


def mark_merged(
    pair: DuplicatePair,
    merged_contact_id: str,
    decisions: Sequence[MergeDecision] = (),
    now: Optional[datetime] = None,
) -> DuplicatePair:
    """
    Transition a pending pair to merged.

    Args:
        pair: The pair to transition
        merged_contact_id: Id of the record that survived the merge
        decisions: Resolved merge decisions kept as the audit trail
        now: Transition time (default: current UTC time)

    Raises:
        StateConflictError: If the pair is not pending
        InvalidInputError: If merged_contact_id is empty or not part of the pair
    """
    _check_transition(pair, DuplicateStatus.MERGED)
    if not merged_contact_id:
        raise InvalidInputError("merged_contact_id is required to merge a pair")
    if merged_contact_id not in pair.contact_ids:
        raise InvalidInputError(
            f"Contact '{merged_contact_id}' is not part of duplicate pair '{pair.id}'"
        )
    return pair.model_copy(update={
        "status": DuplicateStatus.MERGED,
        "merged_contact_id": merged_contact_id,
        "merge_decisions": list(decisions),
        "updated_at": now or _utcnow(),
    })


def mark_dismissed(
    pair: DuplicatePair, dismissed_by: str, now: Optional[datetime] = None
) -> DuplicatePair:
    """
    Transition a pending pair to dismissed.

    Raises:
        StateConflictError: If the pair is not pending
        InvalidInputError: If dismissed_by is empty
    """
    _check_transition(pair, DuplicateStatus.DISMISSED)
    if not dismissed_by:
        raise InvalidInputError("dismissed_by is required to dismiss a pair")
    now = now or _utcnow()
    return pair.model_copy(update={
        "status": DuplicateStatus.DISMISSED,
        "dismissed_by": dismissed_by,
        "dismissed_at": now,
        "updated_at": now,
    })


class DuplicatePairManager:
    """
    Persists duplicate pairs and their transitions through a pair repository.

    Creation goes through the repository's atomic insert-if-absent, so repeated
    detection never creates a second record for the same contacts; transitions
    go through compare-and-set on the pending status.
    """

    def __init__(self, repository: DuplicatePairRepository, allow_reevaluation: bool = False):
        """
        Initialize the manager.

        Args:
            repository: Storage for duplicate pairs
            allow_reevaluation: Let detection re-suggest pairs a reviewer dismissed
        """
        self.repository = repository
        self.allow_reevaluation = allow_reevaluation

    def register(self, scored: ScoredPair) -> Optional[DuplicatePair]:
        """Persist a detected pair; returns None when a record already exists for its contacts."""
        pair = new_duplicate_pair(scored)
        if not self.repository.insert_if_absent(pair, allow_dismissed=self.allow_reevaluation):
            return None
        logger.info(
            "New duplicate pair %s (%s, %s) score=%d type=%s",
            pair.id, pair.contact_id_1, pair.contact_id_2,
            pair.confidence_score, pair.match_type.value,
        )
        return pair

    def get(self, pair_id: str) -> DuplicatePair:
        pair = self.repository.get(pair_id)
        if pair is None:
            raise NotFoundError(f"Duplicate pair '{pair_id}' not found")
        return pair

    def find_pending(self, contact_id_1: str, contact_id_2: str) -> Optional[DuplicatePair]:
        for pair in self.repository.find_by_contacts(contact_id_1, contact_id_2):
            if pair.status == DuplicateStatus.PENDING:
                return pair
        return None

    def _commit(self, pair: DuplicatePair, updated: DuplicatePair) -> DuplicatePair:
        if not self.repository.compare_and_set(pair.id, DuplicateStatus.PENDING, updated):
            current = self.repository.get(pair.id)
            current_status = current.status.value if current else None
            raise StateConflictError(
                f"Duplicate pair '{pair.id}' changed concurrently (now {current_status})",
                pair_id=pair.id,
                current_status=current_status,
            )
        logger.info("Duplicate pair %s -> %s", pair.id, updated.status.value)
        return updated

    def merge(
        self,
        pair_id: str,
        merged_contact_id: str,
        decisions: Sequence[MergeDecision] = (),
    ) -> DuplicatePair:
        pair = self.get(pair_id)
        return self._commit(pair, mark_merged(pair, merged_contact_id, decisions))

    def dismiss(self, pair_id: str, dismissed_by: str) -> DuplicatePair:
        pair = self.get(pair_id)
        return self._commit(pair, mark_dismissed(pair, dismissed_by))
