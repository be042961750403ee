"""Shared fixtures for the deduplication tests."""

import pytest

from contact_dedup.config import Settings
from contact_dedup.core.service import DeduplicationService
from contact_dedup.models.data_models import Contact
from contact_dedup.storage.memory import InMemoryContactRepository, InMemoryDuplicatePairRepository


def make_contact(contact_id, email, first_name, last_name, event_id="event-1", **fields):
    return Contact(
        id=contact_id,
        event_id=event_id,
        email=email,
        first_name=first_name,
        last_name=last_name,
        **fields,
    )


@pytest.fixture
def john_doe():
    return make_contact(
        "c1", "john.doe@co1.com", "John", "Doe",
        company="ACME Inc", phone="", tags=["vip", "speaker"],
    )


@pytest.fixture
def johndoe():
    return make_contact(
        "c2", "johndoe@co2.com", "John", "Doe",
        company="", phone="+1234567890", city="Lyon", tags=["speaker", "sponsor"],
    )


@pytest.fixture
def alice():
    return make_contact("c3", "alice@different.com", "Alice", "Smith")


@pytest.fixture
def contact_repo(john_doe, johndoe, alice):
    return InMemoryContactRepository([john_doe, johndoe, alice])


@pytest.fixture
def pair_repo():
    return InMemoryDuplicatePairRepository()


@pytest.fixture
def service(contact_repo, pair_repo):
    return DeduplicationService(contact_repo, pair_repo, Settings(max_workers=2, chunk_size=1))
