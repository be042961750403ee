"""
Storage Module
Contains the storage protocols, in-memory repositories and the file loader.
"""

from .base import ContactRepository, DuplicatePairRepository
from .memory import InMemoryContactRepository, InMemoryDuplicatePairRepository, pair_key
from .loader import ContactColumnMap, read_contacts_file, contacts_from_dataframe
