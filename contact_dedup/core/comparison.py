"""
Contact Comparison
------------------
Builds the side-by-side, field-by-field comparison a reviewer sees before a
merge, with a per-field similarity and a suggested merge source.
"""

from typing import Any, Optional, Sequence

from contact_dedup.core.exceptions import InvalidInputError
from contact_dedup.models.data_models import (
    CONTACT_COMPARE_FIELDS,
    Contact,
    ContactComparison,
    ContactFieldComparison,
    MergeFieldSource,
)
from contact_dedup.utils.fuzzy_matching import string_similarity
from contact_dedup.utils.text_processing import is_present, stringify


def suggest_source(value1: Any, value2: Any) -> MergeFieldSource:
    """
    Suggest which contact's value to keep for a field.

    - Only one side present: that side
    - Neither present: contact1
    - Both present: the side with the longer text, contact1 on a tie

    Args:
        value1: Raw field value of the first contact
        value2: Raw field value of the second contact

    Returns:
        MergeFieldSource: contact1 or contact2
    """
    has_value1 = is_present(value1)
    has_value2 = is_present(value2)

    if has_value1 and not has_value2:
        return MergeFieldSource.CONTACT1
    if has_value2 and not has_value1:
        return MergeFieldSource.CONTACT2
    if not has_value1 and not has_value2:
        return MergeFieldSource.CONTACT1

    if len(stringify(value2)) > len(stringify(value1)):
        return MergeFieldSource.CONTACT2
    return MergeFieldSource.CONTACT1


def field_similarity(value1: Optional[str], value2: Optional[str]) -> int:
    """
    Similarity of two stringified field values.

    Differs from string_similarity() on missing values: two missing values
    score 100 and a missing/present mismatch scores 0, whatever the present
    value normalizes to.
    """
    if value1 is not None and value2 is not None:
        return string_similarity(value1, value2)
    if value1 is None and value2 is None:
        return 100
    return 0


def read_field(contact: Contact, field_name: str) -> Any:
    """Read a named field off a contact, rejecting names the model does not define."""
    if field_name not in Contact.model_fields:
        raise InvalidInputError(f"Unknown contact field '{field_name}'")
    return getattr(contact, field_name)


def build_comparison(
    contact1: Contact,
    contact2: Contact,
    field_names: Sequence[str] = CONTACT_COMPARE_FIELDS,
) -> ContactComparison:
    """
    Build the field-by-field comparison of two contacts.

    Values are stringified for display and similarity, while the merge source is
    suggested from the raw values. Output preserves the order of field_names.

    Args:
        contact1: First contact
        contact2: Second contact
        field_names: Fields to compare

    Returns:
        ContactComparison: One entry per requested field

    Raises:
        InvalidInputError: If a field name is not a contact field
    """
    fields = []
    for field_name in field_names:
        raw1 = read_field(contact1, field_name)
        raw2 = read_field(contact2, field_name)
        str1 = stringify(raw1) if raw1 is not None else None
        str2 = stringify(raw2) if raw2 is not None else None

        fields.append(
            ContactFieldComparison(
                field_name=field_name,
                value1=str1,
                value2=str2,
                similarity=field_similarity(str1, str2),
                suggested_source=suggest_source(raw1, raw2),
            )
        )

    return ContactComparison(
        contact_id_1=contact1.id,
        contact_id_2=contact2.id,
        fields=fields,
    )
