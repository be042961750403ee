"""
In-Memory Storage
-----------------
Thread-safe, process-local implementations of the storage protocols. They back
the API service and the tests; a database adapter would provide the same
atomic operations with transactions or unique indexes.
"""

import threading
from typing import Dict, Iterable, List, Optional, Tuple

from contact_dedup.core.exceptions import NotFoundError
from contact_dedup.models.data_models import Contact, DuplicatePair, DuplicateStatus


def pair_key(contact_id_1: str, contact_id_2: str) -> Tuple[str, str]:
    """Canonical key of an unordered contact-id tuple."""
    return tuple(sorted((contact_id_1, contact_id_2)))


class InMemoryContactRepository:
    def __init__(self, contacts: Iterable[Contact] = ()):
        self._lock = threading.Lock()
        self._contacts: Dict[str, Contact] = {}
        for contact in contacts:
            self.add(contact)

    def get(self, contact_id: str) -> Optional[Contact]:
        with self._lock:
            return self._contacts.get(contact_id)

    def list_by_event(self, event_id: str) -> List[Contact]:
        with self._lock:
            return [c for c in self._contacts.values() if c.event_id == event_id]

    def add(self, contact: Contact) -> Contact:
        with self._lock:
            self._contacts[contact.id] = contact
        return contact

    def apply_merge(self, merged_record: Contact, discarded_id: str) -> Contact:
        with self._lock:
            for contact_id in (merged_record.id, discarded_id):
                if contact_id not in self._contacts:
                    raise NotFoundError(f"Contact '{contact_id}' not found")
            self._contacts[merged_record.id] = merged_record
            del self._contacts[discarded_id]
        return merged_record

    def __len__(self) -> int:
        with self._lock:
            return len(self._contacts)


class InMemoryDuplicatePairRepository:
    def __init__(self):
        self._lock = threading.Lock()
        self._pairs: Dict[str, DuplicatePair] = {}
        self._by_key: Dict[Tuple[str, str], List[str]] = {}

    def get(self, pair_id: str) -> Optional[DuplicatePair]:
        with self._lock:
            return self._pairs.get(pair_id)

    def find_by_contacts(self, contact_id_1: str, contact_id_2: str) -> List[DuplicatePair]:
        with self._lock:
            ids = self._by_key.get(pair_key(contact_id_1, contact_id_2), [])
            return [self._pairs[pair_id] for pair_id in ids]

    def list_by_event(
        self,
        event_id: str,
        status: Optional[DuplicateStatus] = None,
        min_confidence: int = 0,
    ) -> List[DuplicatePair]:
        with self._lock:
            return [
                p for p in self._pairs.values()
                if p.event_id == event_id
                and (status is None or p.status == status)
                and p.confidence_score >= min_confidence
            ]

    def insert_if_absent(self, pair: DuplicatePair, allow_dismissed: bool = False) -> bool:
        key = pair_key(pair.contact_id_1, pair.contact_id_2)
        with self._lock:
            for existing_id in self._by_key.get(key, []):
                existing = self._pairs[existing_id]
                if existing.status != DuplicateStatus.DISMISSED or not allow_dismissed:
                    return False
            self._pairs[pair.id] = pair
            self._by_key.setdefault(key, []).append(pair.id)
            return True

    def compare_and_set(
        self, pair_id: str, expected_status: DuplicateStatus, updated: DuplicatePair
    ) -> bool:
        with self._lock:
            current = self._pairs.get(pair_id)
            if current is None or current.status != expected_status:
                return False
            self._pairs[pair_id] = updated
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._pairs)
