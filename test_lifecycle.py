"""Tests for the duplicate pair lifecycle."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from contact_dedup.core.exceptions import InvalidInputError, NotFoundError, StateConflictError
from contact_dedup.core.lifecycle import (
    DuplicatePairManager,
    mark_dismissed,
    mark_merged,
    new_duplicate_pair,
)
from contact_dedup.models.data_models import (
    DuplicatePair,
    DuplicateStatus,
    MatchType,
    MergeDecision,
    MergeFieldSource,
    ScoredPair,
)
from contact_dedup.storage.memory import InMemoryDuplicatePairRepository

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def scored(id1="c2", id2="c1", score=92, match_type=MatchType.SIMILAR_NAME):
    return ScoredPair(event_id="event-1", contact_id_1=id1, contact_id_2=id2,
                      score=score, match_type=match_type)


@pytest.fixture
def pair():
    return new_duplicate_pair(scored(), now=NOW)


class TestDuplicatePairModel:
    def test_new_pair_is_pending_with_sorted_ids(self, pair):
        assert pair.status == DuplicateStatus.PENDING
        assert pair.contact_ids == ("c1", "c2")
        assert pair.confidence_score == 92
        assert pair.created_at == pair.updated_at == NOW
        assert pair.merged_contact_id is None
        assert pair.dismissed_by is None

    def test_rejects_same_contact(self):
        with pytest.raises(ValidationError):
            DuplicatePair(id="p", contact_id_1="c1", contact_id_2="c1",
                          match_type=MatchType.EXACT_EMAIL, confidence_score=100,
                          created_at=NOW, updated_at=NOW)

    def test_rejects_out_of_range_score(self):
        with pytest.raises(ValidationError):
            DuplicatePair(id="p", contact_id_1="c1", contact_id_2="c2",
                          match_type=MatchType.EXACT_EMAIL, confidence_score=101,
                          created_at=NOW, updated_at=NOW)

    def test_merged_contact_only_on_merged_pairs(self):
        with pytest.raises(ValidationError):
            DuplicatePair(id="p", contact_id_1="c1", contact_id_2="c2",
                          match_type=MatchType.EXACT_EMAIL, confidence_score=100,
                          merged_contact_id="c1", created_at=NOW, updated_at=NOW)

    def test_dismissed_requires_reviewer(self):
        with pytest.raises(ValidationError):
            DuplicatePair(id="p", contact_id_1="c1", contact_id_2="c2",
                          match_type=MatchType.EXACT_EMAIL, confidence_score=100,
                          status=DuplicateStatus.DISMISSED, created_at=NOW, updated_at=NOW)


class TestTransitions:
    def test_merge(self, pair):
        decisions = [MergeDecision(field_name="email", source=MergeFieldSource.CONTACT1)]
        merged = mark_merged(pair, "c1", decisions)
        assert merged.status == DuplicateStatus.MERGED
        assert merged.merged_contact_id == "c1"
        assert merged.merge_decisions == decisions
        assert merged.updated_at >= pair.updated_at
        assert pair.status == DuplicateStatus.PENDING

    def test_merge_requires_pair_member(self, pair):
        with pytest.raises(InvalidInputError):
            mark_merged(pair, "c3")
        with pytest.raises(InvalidInputError):
            mark_merged(pair, "")

    def test_dismiss(self, pair):
        dismissed = mark_dismissed(pair, "reviewer-1")
        assert dismissed.status == DuplicateStatus.DISMISSED
        assert dismissed.dismissed_by == "reviewer-1"
        assert dismissed.dismissed_at is not None

    def test_dismiss_requires_reviewer(self, pair):
        with pytest.raises(InvalidInputError):
            mark_dismissed(pair, "")

    @pytest.mark.parametrize("first", ["merge", "dismiss"])
    def test_terminal_states(self, pair, first):
        done = mark_merged(pair, "c1") if first == "merge" else mark_dismissed(pair, "reviewer-1")
        with pytest.raises(StateConflictError) as exc_info:
            mark_dismissed(done, "reviewer-2")
        assert exc_info.value.current_status == done.status.value
        with pytest.raises(StateConflictError):
            mark_merged(done, "c1")


class TestDuplicatePairManager:
    @pytest.fixture
    def repo(self):
        return InMemoryDuplicatePairRepository()

    @pytest.fixture
    def manager(self, repo):
        return DuplicatePairManager(repo)

    def test_register_is_idempotent(self, manager, repo):
        assert manager.register(scored("c1", "c2")) is not None
        assert manager.register(scored("c2", "c1")) is None
        assert len(repo) == 1

    def test_dismiss_then_conflict(self, manager):
        pair = manager.register(scored())
        dismissed = manager.dismiss(pair.id, "reviewer-1")
        assert dismissed.status == DuplicateStatus.DISMISSED
        assert dismissed.dismissed_by == "reviewer-1"
        assert dismissed.dismissed_at is not None
        assert manager.get(pair.id).status == DuplicateStatus.DISMISSED

        with pytest.raises(StateConflictError):
            manager.dismiss(pair.id, "reviewer-2")
        with pytest.raises(StateConflictError):
            manager.merge(pair.id, "c1")

    def test_merge_then_conflict(self, manager):
        pair = manager.register(scored())
        manager.merge(pair.id, "c2")
        with pytest.raises(StateConflictError):
            manager.dismiss(pair.id, "reviewer-1")

    def test_dismissed_pairs_are_not_resuggested(self, manager, repo):
        pair = manager.register(scored())
        manager.dismiss(pair.id, "reviewer-1")
        assert manager.register(scored()) is None
        assert len(repo) == 1

    def test_reevaluation_can_be_allowed(self, repo):
        manager = DuplicatePairManager(repo, allow_reevaluation=True)
        pair = manager.register(scored())
        manager.dismiss(pair.id, "reviewer-1")
        again = manager.register(scored())
        assert again is not None
        assert again.status == DuplicateStatus.PENDING
        assert manager.find_pending("c1", "c2").id == again.id

    def test_merged_pairs_are_never_resurrected(self, repo):
        manager = DuplicatePairManager(repo, allow_reevaluation=True)
        pair = manager.register(scored())
        manager.merge(pair.id, "c1")
        assert manager.register(scored()) is None

    def test_concurrent_change_is_a_conflict(self, manager, repo):
        pair = manager.register(scored())
        # another reviewer dismisses between our read and our write
        assert repo.compare_and_set(pair.id, DuplicateStatus.PENDING, mark_dismissed(pair, "other"))
        assert not repo.compare_and_set(pair.id, DuplicateStatus.PENDING, mark_merged(pair, "c1"))
        with pytest.raises(StateConflictError):
            manager.merge(pair.id, "c1")

    def test_unknown_pair(self, manager):
        with pytest.raises(NotFoundError):
            manager.dismiss("missing", "reviewer-1")
