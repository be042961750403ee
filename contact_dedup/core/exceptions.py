"""
Deduplication Errors
--------------------
Scoring functions cannot fail for well-typed input; these errors belong to input
validation, the duplicate pair lifecycle and the merge planner.
"""

from typing import Optional


class DeduplicationError(Exception):
    """Base class for all errors raised by the deduplication engine."""


class InvalidInputError(DeduplicationError, ValueError):
    """A required field (email, first/last name, contact id) is missing or empty."""


class StateConflictError(DeduplicationError):
    """A duplicate pair is not in the state the requested transition starts from."""

    def __init__(
        self, message: str, pair_id: Optional[str] = None, current_status: Optional[str] = None
    ):
        super().__init__(message)
        self.pair_id = pair_id
        self.current_status = current_status


class IncompleteMergeDecisionError(DeduplicationError):
    """A 'combined' decision targets a field that cannot be combined and has no custom value."""

    def __init__(self, field_name: str):
        super().__init__(
            f"Field '{field_name}' cannot be combined automatically; a custom_value is required"
        )
        self.field_name = field_name


class NotFoundError(DeduplicationError, LookupError):
    """A contact or duplicate pair does not exist in storage."""
