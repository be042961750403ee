"""
Contact File Loader
-------------------
Adapter between tabular exports (CSV/Excel) and the engine's Contact model.
This is the only place where contacts are handled as loosely-typed rows.
"""

import io
import os
import re
import uuid
import logging
from typing import List, Optional

import pandas as pd
from pydantic import BaseModel

from contact_dedup.core.exceptions import InvalidInputError
from contact_dedup.models.data_models import Contact, LIST_FIELDS

logger = logging.getLogger(__name__)

TAG_SEPARATOR = re.compile(r"[;,]")


class ContactColumnMap(BaseModel):
    """
    Defines the mapping between contact fields and the column headers of an
    uploaded file. This allows the loader to work with different export formats.
    Unmapped fields are left empty; when no id column is mapped, ids are generated.
    """
    id: Optional[str] = None
    email: Optional[str] = "email"
    first_name: Optional[str] = "first_name"
    last_name: Optional[str] = "last_name"
    company: Optional[str] = None
    job_title: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    notes: Optional[str] = None
    tags: Optional[str] = None
    segments: Optional[str] = None


def read_contacts_file(content: bytes, filename: str) -> pd.DataFrame:
    """
    Read an uploaded CSV or Excel file into a DataFrame of strings.

    Args:
        content: Raw file bytes
        filename: Original file name, used to pick the reader

    Returns:
        pd.DataFrame: All cells as strings, empty cells as ""

    Raises:
        InvalidInputError: If the file type is not supported or cannot be parsed
    """
    file_extension = os.path.splitext(filename or "")[1].lower()
    try:
        if file_extension == ".csv":
            df = pd.read_csv(io.BytesIO(content), dtype=str, na_filter=False, keep_default_na=False)
        elif file_extension in (".xls", ".xlsx"):
            df = pd.read_excel(io.BytesIO(content), dtype=str, na_filter=False, keep_default_na=False)
        else:
            raise InvalidInputError("Invalid file type. Please upload CSV or Excel.")
    except InvalidInputError:
        raise
    except Exception as e:
        raise InvalidInputError(f"Error reading file: {str(e)}") from e

    df.columns = df.columns.astype(str)
    return df


def _cell(value) -> Optional[str]:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    text = str(value).strip()
    return text or None


def _split_tags(value) -> List[str]:
    text = _cell(value)
    if text is None:
        return []
    return [tag.strip() for tag in TAG_SEPARATOR.split(text) if tag.strip()]


def contacts_from_dataframe(
    df: pd.DataFrame,
    column_map: ContactColumnMap,
    event_id: Optional[str] = None,
) -> List[Contact]:
    """
    Build Contact records from a DataFrame.

    Args:
        df: Rows to convert
        column_map: Which column feeds which contact field
        event_id: Owning scope assigned to every contact

    Returns:
        List[Contact]: One contact per row, in row order

    Raises:
        InvalidInputError: If a mapped column is not in the DataFrame
    """
    mapping = {field: col for field, col in column_map.model_dump().items() if col}
    missing = [col for col in mapping.values() if col not in df.columns]
    if missing:
        raise InvalidInputError(
            f"Mapped columns {missing} not found in the uploaded file. "
            f"Available columns: {df.columns.tolist()}"
        )

    contacts = []
    for _, row in df.iterrows():
        data = {"event_id": event_id}
        for field, column in mapping.items():
            if field in LIST_FIELDS:
                data[field] = _split_tags(row[column])
            else:
                data[field] = _cell(row[column])
        if not data.get("id"):
            data["id"] = str(uuid.uuid4())
        contacts.append(Contact(**data))

    logger.info("Loaded %d contacts for event %s", len(contacts), event_id)
    return contacts
