"""
Contact Deduplication Service
-----------------------------
Wires the pure engine to the storage collaborators: detection passes over an
event's contacts, listing and reviewing duplicate pairs, comparing contacts and
merging or dismissing pairs.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from contact_dedup.config import Settings
from contact_dedup.core.comparison import build_comparison
from contact_dedup.core.deduplication import scan_for_duplicates
from contact_dedup.core.exceptions import (
    DeduplicationError,
    InvalidInputError,
    NotFoundError,
    StateConflictError,
)
from contact_dedup.core.lifecycle import DuplicatePairManager
from contact_dedup.core.merge import plan_merge
from contact_dedup.models.data_models import (
    CONFIDENCE_THRESHOLDS,
    CONTACT_COMPARE_FIELDS,
    BulkMergeResult,
    Contact,
    ContactComparison,
    DuplicatePair,
    DuplicateScanResult,
    DuplicateStatus,
    MergeDecision,
    MergePlan,
    MergeResult,
)
from contact_dedup.storage.base import ContactRepository, DuplicatePairRepository

logger = logging.getLogger(__name__)


class DeduplicationService:
    """
    Entry point used by the API for every deduplication workflow.

    The contact repository doubles as the merge executor: merges are applied
    through its apply_merge(), and the duplicate pair only transitions to merged
    once that call has succeeded.
    """

    def __init__(
        self,
        contacts: ContactRepository,
        pairs: DuplicatePairRepository,
        settings: Optional[Settings] = None,
    ):
        self.contacts = contacts
        self.pairs = pairs
        self.settings = settings or Settings()
        self.manager = DuplicatePairManager(pairs, allow_reevaluation=self.settings.allow_reevaluation)

    def _get_contact(self, contact_id: str) -> Contact:
        contact = self.contacts.get(contact_id)
        if contact is None:
            raise NotFoundError(f"Contact '{contact_id}' not found")
        return contact

    def scan_for_duplicates(self, event_id: str) -> DuplicateScanResult:
        contacts = self.contacts.list_by_event(event_id)
        logger.info("Scanning %d contacts of event %s for duplicates", len(contacts), event_id)
        return scan_for_duplicates(
            contacts,
            self.manager,
            threshold=self.settings.duplicate_threshold,
            max_workers=self.settings.max_workers,
            chunk_size=self.settings.chunk_size,
        )

    def _sorted_pairs(
        self, event_id: str, status: Optional[DuplicateStatus], min_confidence: int
    ) -> List[DuplicatePair]:
        pairs = self.pairs.list_by_event(event_id, status=status, min_confidence=min_confidence)
        pairs.sort(key=lambda p: p.created_at, reverse=True)
        pairs.sort(key=lambda p: p.confidence_score, reverse=True)
        return pairs

    def get_duplicate_pairs(
        self,
        event_id: str,
        status: Optional[DuplicateStatus] = None,
        min_confidence: int = 0,
        page: int = 1,
        per_page: int = 20,
    ) -> Tuple[List[DuplicatePair], int]:
        """
        List an event's duplicate pairs, highest confidence first, newest first on ties.

        Returns:
            Tuple[List[DuplicatePair], int]: The requested page and the total count
        """
        if page < 1 or per_page < 1:
            raise InvalidInputError("page and per_page must be at least 1")
        pairs = self._sorted_pairs(event_id, status, min_confidence)
        start = (page - 1) * per_page
        return pairs[start:start + per_page], len(pairs)

    def get_duplicate_pair(self, pair_id: str) -> Optional[DuplicatePair]:
        return self.pairs.get(pair_id)

    def compare_contacts(
        self,
        contact_id_1: str,
        contact_id_2: str,
        field_names: Sequence[str] = CONTACT_COMPARE_FIELDS,
    ) -> ContactComparison:
        contact1 = self._get_contact(contact_id_1)
        contact2 = self._get_contact(contact_id_2)
        return build_comparison(contact1, contact2, field_names)

    def _execute_merge(
        self,
        plan: MergePlan,
        contact1: Contact,
        contact2: Contact,
        pair: Optional[DuplicatePair],
        user_id: str,
    ) -> MergeResult:
        self.contacts.apply_merge(plan.merged_record, plan.discarded_id)

        pair_id = None
        if pair is not None:
            try:
                pair_id = self.manager.merge(pair.id, plan.survivor_id, plan.decisions).id
            except StateConflictError:
                # The pair left pending while the merge was applied; put both records back.
                self.contacts.add(contact1)
                self.contacts.add(contact2)
                logger.warning(
                    "Merge of %s into %s rolled back: pair %s is no longer pending",
                    plan.discarded_id, plan.survivor_id, pair.id,
                )
                raise

        logger.info("User %s merged contact %s into %s", user_id, plan.discarded_id, plan.survivor_id)
        return MergeResult(
            success=True,
            merged_contact_id=plan.survivor_id,
            deleted_contact_id=plan.discarded_id,
            pair_id=pair_id,
        )

    def merge_contacts(
        self,
        survivor_id: str,
        merged_id: str,
        decisions: Sequence[MergeDecision],
        user_id: str,
    ) -> MergeResult:
        """
        Merge merged_id into survivor_id.

        Decisions name survivor_id as contact1 and merged_id as contact2. The
        merge is planned first (so a bad decision set fails before anything is
        written), then executed by the contact repository. A pending duplicate
        pair for the two contacts is then transitioned to merged with the
        resolved decisions as its audit trail.

        Raises:
            NotFoundError: If either contact is missing
            InvalidInputError: For an invalid decision set
            IncompleteMergeDecisionError: For an uncombinable 'combined' decision
            StateConflictError: If the pair was merged or dismissed concurrently;
                the contacts are restored before it is raised
        """
        if not user_id:
            raise InvalidInputError("user_id is required to merge contacts")
        survivor = self._get_contact(survivor_id)
        merged = self._get_contact(merged_id)

        plan = plan_merge(decisions, survivor, merged, survivor_id=survivor.id)
        pending = self.manager.find_pending(survivor.id, merged.id)
        return self._execute_merge(plan, survivor, merged, pending, user_id)

    def merge_pair(
        self,
        pair_id: str,
        decisions: Sequence[MergeDecision],
        user_id: str,
        survivor_id: Optional[str] = None,
    ) -> MergeResult:
        """
        Merge the two contacts of a pending pair.

        Decisions refer to the pair's own order (contact1 is contact_id_1), the
        order compare_contacts shows the reviewer, whichever contact survives.
        The survivor defaults to contact_id_1.
        """
        if not user_id:
            raise InvalidInputError("user_id is required to merge contacts")
        pair = self.manager.get(pair_id)
        if pair.status != DuplicateStatus.PENDING:
            raise StateConflictError(
                f"Duplicate pair '{pair.id}' is {pair.status.value} and cannot be merged",
                pair_id=pair.id,
                current_status=pair.status.value,
            )
        survivor_id = survivor_id or pair.contact_id_1
        if survivor_id not in pair.contact_ids:
            raise InvalidInputError(f"Survivor '{survivor_id}' is not part of duplicate pair '{pair.id}'")

        contact1 = self._get_contact(pair.contact_id_1)
        contact2 = self._get_contact(pair.contact_id_2)
        plan = plan_merge(decisions, contact1, contact2, survivor_id=survivor_id)
        return self._execute_merge(plan, contact1, contact2, pair, user_id)

    def dismiss_duplicate(self, pair_id: str, user_id: str) -> DuplicatePair:
        return self.manager.dismiss(pair_id, user_id)

    def bulk_merge_exact_duplicates(self, event_id: str, user_id: str) -> BulkMergeResult:
        """
        Auto-merge every pending pair of an event with certain confidence, using
        the comparison suggestions as decisions. Pairs whose contact was already
        merged away earlier in the run are skipped; other failures are logged
        and counted.
        """
        pairs = self._sorted_pairs(event_id, DuplicateStatus.PENDING, CONFIDENCE_THRESHOLDS.certain)

        merged = 0
        skipped = 0
        errors = 0
        for pair in pairs:
            gone = [contact_id for contact_id in pair.contact_ids if self.contacts.get(contact_id) is None]
            if gone:
                logger.info("Skipping pair %s: contact %s no longer exists", pair.id, ", ".join(gone))
                skipped += 1
                continue
            try:
                comparison = self.compare_contacts(pair.contact_id_1, pair.contact_id_2)
                decisions = [
                    MergeDecision(field_name=field.field_name, source=field.suggested_source)
                    for field in comparison.fields
                ]
                self.merge_pair(pair.id, decisions, user_id)
                merged += 1
            except DeduplicationError as e:
                logger.warning("Bulk merge of pair %s failed: %s", pair.id, e)
                errors += 1

        logger.info(
            "Bulk merge for event %s: %d merged, %d skipped, %d errors", event_id, merged, skipped, errors
        )
        return BulkMergeResult(merged=merged, skipped=skipped, errors=errors)
