from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import Callable, TypeVar

from flask import current_app, request
from sqlalchemy.exc import IntegrityError

from app.core.errors import ServiceError, ValidationError
from app.core.extensions import db

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _utc_suffix(raw: str) -> str:
    return raw[:-1] + "+00:00" if raw.endswith("Z") else raw


def parse_iso_date(value: str | None, field_name: str) -> date:
    raw = (value or "").strip()
    if not raw:
        raise ValidationError(f"Falta {field_name}")
    try:
        if len(raw) == 10:
            return date.fromisoformat(raw)
        return datetime.fromisoformat(_utc_suffix(raw)).date()
    except ValueError as exc:
        raise ValidationError(f"Formato de fecha invalido para {field_name}") from exc


def parse_optional_time(value: str | None) -> time | None:
    raw = (value or "").strip()
    if not raw:
        return None
    try:
        return time.fromisoformat(_utc_suffix(raw)).replace(tzinfo=None)
    except ValueError as exc:
        raise ValidationError("Formato de hora invalido") from exc


def format_date(value: date | datetime | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def format_datetime(value: datetime | None) -> str | None:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else None


def format_time(value: time | None) -> str | None:
    return value.strftime("%H:%M") if value else None


def required_id(name: str = "id") -> int:
    raw = (request.args.get(name) or "").strip()
    if not raw.isdigit() or int(raw) <= 0:
        raise ValidationError(f"Parametro '{name}' invalido o no proporcionado.")
    return int(raw)


def page_params() -> tuple[int, int]:
    page = request.args.get("page", type=int) or 1
    limit = request.args.get("limit", type=int) or current_app.config["DEFAULT_PAGE_SIZE"]
    return max(page, 1), max(1, min(limit, current_app.config["MAX_PAGE_SIZE"]))


def json_payload() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Cuerpo JSON invalido")
    return payload


def paginate_query(query, page: int, limit: int) -> tuple[list, int]:
    total = query.order_by(None).count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return rows, total


def guarded_write(write: Callable[[], T], classify: Callable[[], ServiceError | None]) -> T:
    """Run ``write`` and commit. A unique-index violation is rolled back and
    re-raised as the business conflict ``classify`` finds among live rows."""
    try:
        result = write()
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        conflict = classify()
        if conflict is None:
            raise
        logger.info("Write rejected: %s", conflict.message)
        raise conflict from exc
    return result
