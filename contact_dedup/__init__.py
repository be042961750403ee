"""Contact Dedup - fuzzy contact deduplication and merge resolution."""

__version__ = "1.0.0"
