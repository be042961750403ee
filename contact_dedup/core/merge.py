"""
Merge Planning
--------------
Turns reviewer decisions (or the comparison's suggestions) into the draft of the
record that survives a merge. Planning never touches storage; applying the plan
is the merge executor's job.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from contact_dedup.core.comparison import build_comparison, read_field
from contact_dedup.core.exceptions import IncompleteMergeDecisionError, InvalidInputError
from contact_dedup.models.data_models import (
    CONTACT_COMPARE_FIELDS,
    IDENTITY_FIELDS,
    LIST_FIELDS,
    Contact,
    MergeDecision,
    MergeFieldSource,
    MergePlan,
)

logger = logging.getLogger(__name__)


def merge_arrays(a: Sequence[Any], b: Sequence[Any]) -> List[Any]:
    """
    Union of two sequences keeping first-seen order, duplicates removed by equality.

    Used for tag and segment membership during a merge.
    """
    merged: List[Any] = []
    for item in list(a) + list(b):
        if item not in merged:
            merged.append(item)
    return merged


def _resolve(decision: MergeDecision, contact1: Contact, contact2: Contact) -> Any:
    if decision.custom_value is not None:
        return decision.custom_value

    field_name = decision.field_name
    if decision.source == MergeFieldSource.CONTACT1:
        return read_field(contact1, field_name)
    if decision.source == MergeFieldSource.CONTACT2:
        return read_field(contact2, field_name)

    if field_name not in LIST_FIELDS:
        raise IncompleteMergeDecisionError(field_name)
    return merge_arrays(read_field(contact1, field_name) or [], read_field(contact2, field_name) or [])


def _default_decisions(
    contact1: Contact, contact2: Contact, field_names: Sequence[str], covered: set
) -> List[MergeDecision]:
    remaining = [name for name in field_names if name not in covered and name not in LIST_FIELDS]
    comparison = build_comparison(contact1, contact2, remaining)
    defaults = [
        MergeDecision(field_name=field.field_name, source=field.suggested_source)
        for field in comparison.fields
    ]
    defaults.extend(
        MergeDecision(field_name=name, source=MergeFieldSource.COMBINED)
        for name in LIST_FIELDS
        if name not in covered
    )
    return defaults


def plan_merge(
    decisions: Sequence[MergeDecision],
    contact1: Contact,
    contact2: Contact,
    survivor_id: Optional[str] = None,
    field_names: Sequence[str] = CONTACT_COMPARE_FIELDS,
) -> MergePlan:
    """
    Resolve every field of a merge and produce the surviving record draft.

    Explicit decisions win; a field in field_names that no decision covers falls
    back to the comparison builder's suggestion, and tags/segments fall back to
    their union. A custom_value always overrides both sources.

    Args:
        decisions: Reviewer decisions, at most one per field
        contact1: First contact of the pair
        contact2: Second contact of the pair
        survivor_id: Id of the record to keep (default: contact1's id)
        field_names: Fields resolved from suggestions when not decided explicitly

    Returns:
        MergePlan: Survivor/discarded ids, resolved decisions and the merged draft

    Raises:
        InvalidInputError: For an unknown, identity or repeated field, or a
            survivor id that is neither contact
        IncompleteMergeDecisionError: For 'combined' on a non-list field without
            a custom value
    """
    if contact1.id == contact2.id:
        raise InvalidInputError(f"Cannot merge contact '{contact1.id}' into itself")

    survivor_id = survivor_id or contact1.id
    if survivor_id == contact1.id:
        survivor, discarded = contact1, contact2
    elif survivor_id == contact2.id:
        survivor, discarded = contact2, contact1
    else:
        raise InvalidInputError(f"Survivor '{survivor_id}' is not one of the merged contacts")

    covered = set()
    for decision in decisions:
        if decision.field_name in IDENTITY_FIELDS:
            raise InvalidInputError(f"Field '{decision.field_name}' cannot be merged")
        if decision.field_name not in Contact.model_fields:
            raise InvalidInputError(f"Unknown contact field '{decision.field_name}'")
        if decision.field_name in covered:
            raise InvalidInputError(f"More than one decision for field '{decision.field_name}'")
        covered.add(decision.field_name)

    resolved = list(decisions) + _default_decisions(contact1, contact2, field_names, covered)

    values: Dict[str, Any] = {}
    for decision in resolved:
        values[decision.field_name] = _resolve(decision, contact1, contact2)

    try:
        merged_record = Contact.model_validate({**survivor.model_dump(), **values})
    except ValidationError as e:
        raise InvalidInputError(f"Merged record is invalid: {e}") from e

    logger.debug(
        "Planned merge of %s into %s (%d explicit decisions, %d defaulted)",
        discarded.id, survivor.id, len(decisions), len(resolved) - len(decisions),
    )

    return MergePlan(
        survivor_id=survivor.id,
        discarded_id=discarded.id,
        decisions=resolved,
        merged_record=merged_record,
    )
