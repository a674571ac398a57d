from __future__ import annotations

from app.core.models import (
    Act,
    ActHistory,
    Customer,
    Labeled,
    LabeledHistory,
    Lot,
    MeterRenovation,
    PreCatastral,
    PreCatastralHistory,
    Technician,
)
from app.core.utils import format_date, format_datetime, format_time


def _enum_value(value) -> str | None:
    return value.value if value is not None else None


def lot_to_dict(lot: Lot) -> dict[str, object]:
    return {
        "id": lot.id,
        "name": lot.name,
        "start_date": format_date(lot.start_date),
        "end_date": format_date(lot.end_date),
        "status": lot.status.value,
        "created_at": format_datetime(lot.created_at),
    }


def customer_to_dict(customer: Customer | None) -> dict[str, object] | None:
    if customer is None:
        return None
    return {
        "id": customer.id,
        "inscription": customer.inscription,
        "address": customer.address,
        "customer_name": customer.customer_name,
        "old_meter": customer.old_meter,
        "observation": customer.observation,
    }


def technician_to_dict(technician: Technician | None) -> dict[str, object] | None:
    if technician is None:
        return None
    return {"id": technician.id, "dni": technician.dni, "name": technician.name}


def meter_to_dict(meter: MeterRenovation | None) -> dict[str, object] | None:
    if meter is None:
        return None
    return {
        "id": meter.id,
        "meter_number": meter.meter_number,
        "verification_code": meter.verification_code,
    }


def history_to_dict(entry: ActHistory | PreCatastralHistory | LabeledHistory) -> dict[str, object]:
    return {
        "id": entry.id,
        "action": entry.action.value,
        "updated_by": entry.updated_by,
        "user": entry.user.names if entry.user else None,
        "updated_at": format_datetime(entry.updated_at),
        "details": entry.details,
    }


def act_to_dict(act: Act, include_histories: bool = False) -> dict[str, object]:
    data: dict[str, object] = {
        "id": act.id,
        "lot_id": act.lot_id,
        "file_number": act.file_number,
        "file_date": format_date(act.file_date),
        "file_time": format_time(act.file_time),
        "reading": act.reading,
        "observations": act.observations.value,
        "rotating_pointer": _enum_value(act.rotating_pointer),
        "meter_security_seal": _enum_value(act.meter_security_seal),
        "reading_impossibility_viewer": _enum_value(act.reading_impossibility_viewer),
        "customer": customer_to_dict(act.customer),
        "technician": technician_to_dict(act.technician),
        "meter": meter_to_dict(act.meter),
        "created_by": act.created_by,
        "created_at": format_datetime(act.created_at),
        "updated_at": format_datetime(act.updated_at),
        "deleted_at": format_datetime(act.deleted_at),
    }
    if include_histories:
        data["histories"] = [history_to_dict(entry) for entry in act.histories]
    return data


def precatastral_to_dict(record: PreCatastral, include_histories: bool = False) -> dict[str, object]:
    data: dict[str, object] = {
        "id": record.id,
        "lot_id": record.lot_id,
        "file_number": record.file_number,
        "property": record.property.value,
        "is_located": _enum_value(record.is_located),
        "located_box": record.located_box.value,
        "buried_connection": record.buried_connection.value,
        "has_meter": record.has_meter.value,
        "reading": record.reading,
        "has_cover": record.has_cover.value,
        "cover_state": record.cover_state.value,
        "has_box": record.has_box.value,
        "box_state": record.box_state.value,
        "keys": record.keys,
        "cover_material": record.cover_material,
        "observations": record.observations.value,
        "customer": customer_to_dict(record.customer),
        "technician": technician_to_dict(record.technician),
        "created_by": record.created_by,
        "created_at": format_datetime(record.created_at),
        "updated_at": format_datetime(record.updated_at),
        "deleted_at": format_datetime(record.deleted_at),
    }
    if include_histories:
        data["histories"] = [history_to_dict(entry) for entry in record.histories]
    return data


def labeled_to_dict(labeled: Labeled, include_histories: bool = False) -> dict[str, object]:
    data: dict[str, object] = {
        "id": labeled.id,
        "name": labeled.name,
        "lot_id": labeled.lot_id,
        "created_at": format_datetime(labeled.created_at),
        "deleted_at": format_datetime(labeled.deleted_at),
        "meters": [
            {"id": meter.id, "old_meter": meter.old_meter, "reading": meter.reading}
            for meter in labeled.meters
        ],
    }
    if include_histories:
        data["histories"] = [history_to_dict(entry) for entry in labeled.histories]
    return data
