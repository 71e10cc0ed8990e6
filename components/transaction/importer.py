"""Reads uploaded transaction sheets (CSV or Excel) into plain row dicts."""

import io
import zipfile
from typing import Dict, List, Optional

import pandas as pd

from components.core.errors import ValidationError

REQUIRED_COLUMNS = ("email", "amount", "transaction_type", "transaction_date")
OPTIONAL_COLUMNS = ("description", "bonus_percentage", "reference_id")


def read_transaction_rows(content: bytes, filename: str) -> List[Dict[str, Optional[str]]]:
    """
    Parse an uploaded sheet.

    Every cell is read as text so amounts reach the processor unrounded.
    Column names are matched case-insensitively; unknown columns are ignored.
    """
    name = (filename or "").lower()
    try:
        if name.endswith(".csv"):
            frame = pd.read_csv(io.BytesIO(content), dtype=str, keep_default_na=False)
        elif name.endswith(".xlsx"):
            frame = pd.read_excel(io.BytesIO(content), dtype=str)
        else:
            raise ValidationError("Invalid file format. Only .csv and .xlsx files are supported.")
    except (ValueError, zipfile.BadZipFile) as e:
        raise ValidationError(f"Could not read file: {e}")

    frame.columns = [str(column).strip().lower() for column in frame.columns]
    missing = [column for column in REQUIRED_COLUMNS if column not in frame.columns]
    if missing:
        raise ValidationError(f"File must contain columns: {', '.join(missing)}")

    rows = []
    for record in frame.to_dict(orient="records"):
        row = {}
        for column in REQUIRED_COLUMNS + OPTIONAL_COLUMNS:
            value = record.get(column)
            row[column] = None if value is None or pd.isna(value) else str(value).strip()
        rows.append(row)
    return rows
