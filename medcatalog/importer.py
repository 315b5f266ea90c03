"""
Bulk spreadsheet import for lookups and categories.

Only the first sheet is read and its first row is treated as a header.

- countries / product types: column A holds the value
- categories: column A the name, column B an optional parent name; the parent
  must already exist as a root category

Existing values and unknown parents are skipped and reported, never fatal.
"""

from __future__ import annotations

import io
import logging
from zipfile import BadZipFile
from dataclasses import dataclass, field

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

from .extensions import db
from .models import SETTING_TYPE_COUNTRY, SETTING_TYPE_PRODUCT_TYPE, Category, Setting

logger = logging.getLogger(__name__)


class ImportFileError(Exception):
    """The uploaded file could not be read as a spreadsheet."""


@dataclass
class ImportResult:
    label: str
    added: int = 0
    skipped: list = field(default_factory=list)

    def skip(self, item: str, reason: str) -> None:
        self.skipped.append({"item": item, "reason": reason})

    @property
    def skip_count(self) -> int:
        return len(self.skipped)


def _cell(value) -> str:
    if value is None or pd.isna(value):
        return ""
    return str(value).strip()


def read_rows(data: bytes) -> list[list[str]]:
    """Return the first sheet's data rows (header dropped) as lists of stripped strings."""
    try:
        frame = pd.read_excel(io.BytesIO(data), sheet_name=0, header=None, dtype=object, engine="openpyxl")
    except (ValueError, OSError, KeyError, BadZipFile, InvalidFileException) as exc:
        raise ImportFileError("The file could not be read as an .xlsx spreadsheet.") from exc

    rows = []
    for values in frame.iloc[1:].itertuples(index=False, name=None):
        rows.append([_cell(v) for v in values])
    return rows


def import_settings(data: bytes, setting_type: str, label: str) -> ImportResult:
    """Add every new value in column A as a Setting of `setting_type`. Caller commits."""
    result = ImportResult(label=label)
    seen: set[str] = set()

    for row in read_rows(data):
        value = row[0] if row else ""
        if not value:
            continue
        exists = value in seen or Setting.query.filter_by(type=setting_type, value=value).first()
        if exists:
            result.skip(value, "Duplicate entry")
            continue
        db.session.add(Setting(type=setting_type, value=value))
        seen.add(value)
        result.added += 1

    db.session.flush()
    logger.info("Imported %s: %d added, %d skipped", label, result.added, result.skip_count)
    return result


def import_countries(data: bytes) -> ImportResult:
    return import_settings(data, SETTING_TYPE_COUNTRY, "Countries")


def import_product_types(data: bytes) -> ImportResult:
    return import_settings(data, SETTING_TYPE_PRODUCT_TYPE, "Product Types")


def import_categories(data: bytes) -> ImportResult:
    """Add categories row by row; a parent added earlier in the same file counts. Caller commits."""
    result = ImportResult(label="Categories")

    for row in read_rows(data):
        name = row[0] if row else ""
        if not name:
            continue
        parent_name = row[1] if len(row) > 1 else ""

        if Category.query.filter_by(name=name).first():
            result.skip(name, "Duplicate entry")
            continue

        parent_id = None
        if parent_name:
            parent = Category.query.filter_by(name=parent_name, parent_id=None).first()
            if parent is None:
                result.skip(name, f'Parent category "{parent_name}" not found')
                continue
            parent_id = parent.id

        db.session.add(Category(name=name, parent_id=parent_id))
        db.session.flush()
        result.added += 1

    logger.info("Imported categories: %d added, %d skipped", result.added, result.skip_count)
    return result


IMPORTERS = {
    "countries": (import_countries, "country", "Countries"),
    "product-types": (import_product_types, "product_type", "Product Types"),
    "categories": (import_categories, "category", "Categories"),
}
