from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from openpyxl import load_workbook

from app.core.extensions import db
from app.core.models import Customer, MeterRenovation

logger = logging.getLogger(__name__)

# Column order expected in the first sheet, after one header row.
CUSTOMER_COLUMNS = ("inscription", "address", "customer_name", "old_meter", "observation")
METER_COLUMNS = ("meter_number", "verification_code")


@dataclass
class ImportResult:
    created: int = 0
    updated: int = 0
    skipped: int = 0


def _cell_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _sheet_rows(path: str | Path, columns: tuple[str, ...]) -> Iterator[dict[str, str]]:
    wb = load_workbook(path, read_only=True, data_only=True)
    try:
        for row in wb.active.iter_rows(min_row=2, values_only=True):
            cells = [_cell_text(value) for value in row]
            yield {name: cells[idx] if idx < len(cells) else "" for idx, name in enumerate(columns)}
    finally:
        wb.close()


def _upsert(path: str | Path, model, key: str, columns: tuple[str, ...]) -> ImportResult:
    result = ImportResult()
    existing = {getattr(row, key): row for row in model.query.all()}
    for values in _sheet_rows(path, columns):
        business_key = values[key]
        if not business_key:
            result.skipped += 1
            continue
        record = existing.get(business_key)
        if record is None:
            record = model(**values)
            db.session.add(record)
            existing[business_key] = record
            result.created += 1
        else:
            for name, value in values.items():
                setattr(record, name, value)
            result.updated += 1
    db.session.commit()
    logger.info(
        "Imported %s from %s: %s created, %s updated, %s skipped",
        model.__tablename__,
        path,
        result.created,
        result.updated,
        result.skipped,
    )
    return result


def import_customers(path: str | Path) -> ImportResult:
    return _upsert(path, Customer, "inscription", CUSTOMER_COLUMNS)


def import_meters(path: str | Path) -> ImportResult:
    return _upsert(path, MeterRenovation, "meter_number", METER_COLUMNS)
