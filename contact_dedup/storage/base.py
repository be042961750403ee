"""
Storage Interfaces
------------------
The engine never talks to a database directly. These protocols describe what it
needs from the record storage layer that supplies contacts and persists
duplicate pairs.
"""

from typing import List, Optional, Protocol

from contact_dedup.models.data_models import Contact, DuplicatePair, DuplicateStatus


class ContactRepository(Protocol):
    def get(self, contact_id: str) -> Optional[Contact]:
        ...

    def list_by_event(self, event_id: str) -> List[Contact]:
        ...

    def add(self, contact: Contact) -> Contact:
        ...

    def apply_merge(self, merged_record: Contact, discarded_id: str) -> Contact:
        """
        Execute a merge: overwrite the survivor with merged_record and delete
        discarded_id, atomically. Raises NotFoundError if either record is gone.
        """
        ...


class DuplicatePairRepository(Protocol):
    def get(self, pair_id: str) -> Optional[DuplicatePair]:
        ...

    def find_by_contacts(self, contact_id_1: str, contact_id_2: str) -> List[DuplicatePair]:
        """All pairs for the unordered contact-id tuple, oldest first."""
        ...

    def list_by_event(
        self,
        event_id: str,
        status: Optional[DuplicateStatus] = None,
        min_confidence: int = 0,
    ) -> List[DuplicatePair]:
        ...

    def insert_if_absent(self, pair: DuplicatePair, allow_dismissed: bool = False) -> bool:
        """
        Atomically insert pair unless a record already exists for its unordered
        contact-id tuple. Dismissed records only stop the insert when
        allow_dismissed is False. Returns True when the pair was inserted.
        """
        ...

    def compare_and_set(
        self, pair_id: str, expected_status: DuplicateStatus, updated: DuplicatePair
    ) -> bool:
        """Atomically replace the pair only if its stored status is still expected_status."""
        ...
