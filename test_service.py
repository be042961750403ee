"""Tests for the deduplication service workflows."""

import pytest

from contact_dedup.core.exceptions import (
    IncompleteMergeDecisionError,
    InvalidInputError,
    NotFoundError,
    StateConflictError,
)
from contact_dedup.config import Settings
from contact_dedup.core.lifecycle import mark_dismissed
from contact_dedup.core.service import DeduplicationService
from contact_dedup.models.data_models import DuplicateStatus, MergeDecision, MergeFieldSource
from contact_dedup.storage.memory import InMemoryContactRepository, InMemoryDuplicatePairRepository

from conftest import make_contact


def test_scan_and_list(service):
    result = service.scan_for_duplicates("event-1")
    assert result.scanned_contacts == 3
    assert result.candidate_pairs == 3
    assert result.duplicates_found == 1
    assert result.new_pairs == 1

    pairs, total = service.get_duplicate_pairs("event-1")
    assert total == 1
    assert pairs[0].contact_ids == ("c1", "c2")
    assert service.get_duplicate_pair(pairs[0].id) == pairs[0]

    again = service.scan_for_duplicates("event-1")
    assert again.new_pairs == 0


def test_listing_filters_and_order(service, contact_repo):
    contact_repo.add(make_contact("c4", "john.doe@co1.com", "J", "Doe"))
    service.scan_for_duplicates("event-1")

    pairs, total = service.get_duplicate_pairs("event-1")
    scores = [p.confidence_score for p in pairs]
    assert scores == sorted(scores, reverse=True)
    assert total == len(pairs)

    exact, _ = service.get_duplicate_pairs("event-1", min_confidence=100)
    assert all(p.confidence_score == 100 for p in exact)

    page, total = service.get_duplicate_pairs("event-1", page=2, per_page=1)
    assert len(page) == (1 if total > 1 else 0)

    service.dismiss_duplicate(pairs[0].id, "reviewer-1")
    pending, _ = service.get_duplicate_pairs("event-1", status=DuplicateStatus.PENDING)
    assert pairs[0].id not in {p.id for p in pending}

    with pytest.raises(InvalidInputError):
        service.get_duplicate_pairs("event-1", page=0)


def test_compare_contacts(service):
    comparison = service.compare_contacts("c1", "c2")
    by_name = {f.field_name: f for f in comparison.fields}
    assert by_name["last_name"].similarity == 100
    assert by_name["phone"].suggested_source == MergeFieldSource.CONTACT2

    with pytest.raises(NotFoundError):
        service.compare_contacts("c1", "missing")


def test_merge_pair(service, contact_repo):
    service.scan_for_duplicates("event-1")
    pair = service.get_duplicate_pairs("event-1")[0][0]

    decisions = [MergeDecision(field_name="email", source=MergeFieldSource.CONTACT2)]
    result = service.merge_pair(pair.id, decisions, "reviewer-1")
    assert result.success
    assert result.merged_contact_id == "c1"
    assert result.deleted_contact_id == "c2"
    assert result.pair_id == pair.id

    survivor = contact_repo.get("c1")
    assert survivor.email == "johndoe@co2.com"
    assert survivor.phone == "+1234567890"
    assert survivor.tags == ["vip", "speaker", "sponsor"]
    assert contact_repo.get("c2") is None

    stored = service.get_duplicate_pair(pair.id)
    assert stored.status == DuplicateStatus.MERGED
    assert stored.merged_contact_id == "c1"
    assert stored.merge_decisions[0].field_name == "email"

    with pytest.raises(StateConflictError):
        service.merge_pair(pair.id, [], "reviewer-2")
    with pytest.raises(StateConflictError):
        service.dismiss_duplicate(pair.id, "reviewer-2")


def test_merge_with_other_survivor(service, contact_repo):
    service.scan_for_duplicates("event-1")
    pair = service.get_duplicate_pairs("event-1")[0][0]
    service.merge_pair(pair.id, [], "reviewer-1", survivor_id="c2")
    assert contact_repo.get("c1") is None
    assert contact_repo.get("c2").company == "ACME Inc"
    assert service.get_duplicate_pair(pair.id).merged_contact_id == "c2"


def test_invalid_merge_writes_nothing(service, contact_repo):
    service.scan_for_duplicates("event-1")
    pair = service.get_duplicate_pairs("event-1")[0][0]
    decisions = [MergeDecision(field_name="notes", source=MergeFieldSource.COMBINED)]

    with pytest.raises(IncompleteMergeDecisionError):
        service.merge_pair(pair.id, decisions, "reviewer-1")

    assert contact_repo.get("c2") is not None
    assert service.get_duplicate_pair(pair.id).status == DuplicateStatus.PENDING


def test_dismissed_pair_cannot_be_merged(service, contact_repo):
    service.scan_for_duplicates("event-1")
    pair = service.get_duplicate_pairs("event-1")[0][0]
    service.dismiss_duplicate(pair.id, "reviewer-1")

    with pytest.raises(StateConflictError):
        service.merge_pair(pair.id, [], "reviewer-2")
    assert contact_repo.get("c2") is not None

    # dismissal is durable across scans
    assert service.scan_for_duplicates("event-1").new_pairs == 0


def test_merge_contacts_without_pair(service, contact_repo):
    result = service.merge_contacts("c1", "c3", [], "reviewer-1")
    assert result.success
    assert result.pair_id is None
    assert contact_repo.get("c3") is None


def test_merge_requires_user(service):
    with pytest.raises(InvalidInputError):
        service.merge_contacts("c1", "c2", [], "")


def test_bulk_merge_exact_duplicates(contact_repo, service):
    contact_repo.add(make_contact("c4", "ALICE@different.com", "Alicia", "Smyth"))
    service.scan_for_duplicates("event-1")

    result = service.bulk_merge_exact_duplicates("event-1", "admin")
    # c1/c2 (identical names) and c3/c4 (same email) both score 100
    assert result.merged == 2
    assert result.errors == 0
    assert len(contact_repo) == 2
    pending, _ = service.get_duplicate_pairs("event-1", status=DuplicateStatus.PENDING)
    assert pending == []


def test_bulk_merge_skips_pairs_of_merged_contacts(contact_repo, service):
    # c1, c2 and c4 all match each other with certainty: after two merges only
    # one of them is left, so the third pair refers to a deleted contact
    contact_repo.add(make_contact("c4", "john.doe@co1.com", "John", "Doe"))
    service.scan_for_duplicates("event-1")

    result = service.bulk_merge_exact_duplicates("event-1", "admin")
    assert result.merged == 2
    assert result.skipped == 1
    assert result.errors == 0
    assert len(contact_repo) == 2


def test_merge_with_second_contact_as_survivor_keeps_decisions(service, contact_repo):
    service.scan_for_duplicates("event-1")
    pair = service.get_duplicate_pairs("event-1")[0][0]
    comparison = service.compare_contacts(pair.contact_id_1, pair.contact_id_2)
    company = next(f for f in comparison.fields if f.field_name == "company")
    assert (company.value1, company.value2) == ("ACME Inc", "")

    decisions = [
        MergeDecision(field_name="company", source=MergeFieldSource.CONTACT1),
        MergeDecision(field_name="email", source=MergeFieldSource.CONTACT1),
        MergeDecision(field_name="phone", source=MergeFieldSource.CONTACT2),
    ]
    result = service.merge_pair(pair.id, decisions, "reviewer-1", survivor_id="c2")

    assert result.merged_contact_id == "c2"
    assert result.deleted_contact_id == "c1"
    survivor = contact_repo.get("c2")
    assert survivor.company == "ACME Inc"
    assert survivor.email == "john.doe@co1.com"
    assert survivor.phone == "+1234567890"
    assert contact_repo.get("c1") is None


class ConcurrentDismissPairRepository(InMemoryDuplicatePairRepository):
    """Another reviewer dismisses every pair just before a merge is committed."""

    def compare_and_set(self, pair_id, expected_status, updated):
        if updated.status == DuplicateStatus.MERGED:
            current = self.get(pair_id)
            if current is not None and current.status == DuplicateStatus.PENDING:
                super().compare_and_set(
                    pair_id, DuplicateStatus.PENDING, mark_dismissed(current, "reviewer-2")
                )
        return super().compare_and_set(pair_id, expected_status, updated)


def test_merge_loses_race_to_dismiss(john_doe, johndoe, alice):
    contact_repo = InMemoryContactRepository([john_doe, johndoe, alice])
    pair_repo = ConcurrentDismissPairRepository()
    service = DeduplicationService(contact_repo, pair_repo, Settings(max_workers=1))
    service.scan_for_duplicates("event-1")
    pair = service.get_duplicate_pairs("event-1")[0][0]

    decisions = [MergeDecision(field_name="email", source=MergeFieldSource.CONTACT2)]
    with pytest.raises(StateConflictError):
        service.merge_pair(pair.id, decisions, "reviewer-1")

    stored = service.get_duplicate_pair(pair.id)
    assert stored.status == DuplicateStatus.DISMISSED
    assert stored.dismissed_by == "reviewer-2"
    assert contact_repo.get("c1") == john_doe
    assert contact_repo.get("c2") == johndoe


def test_merge_contacts_loses_race_to_dismiss(john_doe, johndoe, alice):
    contact_repo = InMemoryContactRepository([john_doe, johndoe, alice])
    service = DeduplicationService(contact_repo, ConcurrentDismissPairRepository(), Settings(max_workers=1))
    service.scan_for_duplicates("event-1")

    with pytest.raises(StateConflictError):
        service.merge_contacts("c2", "c1", [], "reviewer-1")
    assert contact_repo.get("c1") == john_doe
    assert contact_repo.get("c2") == johndoe
