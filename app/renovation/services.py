from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta

from sqlalchemy import func
from sqlalchemy.orm import joinedload, selectinload

from app.core.errors import (
    ConflictError,
    CustomerAlreadyLinked,
    DuplicateFileNumber,
    MeterAlreadyLinked,
    NotFoundError,
    ServiceError,
    ValidationError,
)
from app.core.extensions import db
from app.core.models import (
    Act,
    ActHistory,
    ActObservation,
    BoxLocation,
    Customer,
    ElementState,
    HistoryAction,
    Labeled,
    LabeledHistory,
    Lot,
    LotStatus,
    MeterLabeled,
    MeterRenovation,
    PreCatastral,
    PreCatastralHistory,
    PropertyType,
    Technician,
    User,
    YesNo,
    utcnow,
)
from app.core.utils import guarded_write, paginate_query, parse_iso_date, parse_optional_time
from app.renovation.serializers import (
    act_to_dict,
    labeled_to_dict,
    lot_to_dict,
    precatastral_to_dict,
    technician_to_dict,
)

logger = logging.getLogger(__name__)

# (history model, attribute on the history row pointing at the audited record)
HISTORY_MODELS = {
    Act: (ActHistory, "act"),
    PreCatastral: (PreCatastralHistory, "pre_catastral"),
    Labeled: (LabeledHistory, "labeled"),
}


def _text(payload: dict, key: str) -> str:
    value = payload.get(key)
    if value is None:
        return ""
    return str(value).strip()


def _required_text(payload: dict, key: str, field_name: str) -> str:
    value = _text(payload, key)
    if not value:
        raise ValidationError(f"Falta {field_name}")
    return value


def _optional_int(payload: dict, key: str, field_name: str) -> int | None:
    value = payload.get(key)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Valor invalido para {field_name}") from exc


def _required_int(payload: dict, key: str, field_name: str) -> int:
    value = _optional_int(payload, key, field_name)
    if value is None:
        raise ValidationError(f"Falta {field_name}")
    return value


def _parse_enum(enum_cls, value, field_name: str, required: bool = True):
    raw = str(value or "").strip().upper().replace(" ", "_")
    if not raw:
        if required:
            raise ValidationError(f"Falta {field_name}")
        return None
    try:
        return enum_cls[raw]
    except KeyError as exc:
        raise ValidationError(f"Valor invalido para {field_name}") from exc


def _file_number(payload: dict) -> str:
    value = _required_text(payload, "file_number", "número de ficha")
    if not value.isdigit():
        raise ValidationError("El número de ficha solo admite números")
    return value


def append_history(record, action: HistoryAction, user_id: int | None, detail: str) -> None:
    history_cls, relation = HISTORY_MODELS[type(record)]
    db.session.add(history_cls(**{relation: record}, action=action, updated_by=user_id, details=detail))


def _live(model):
    return model.query.filter(model.deleted_at.is_(None))


def _live_excluding(model, exclude_id: int | None):
    query = _live(model)
    if exclude_id is not None:
        query = query.filter(model.id != exclude_id)
    return query


def _contains(column, term: str):
    return column.contains(term, autoescape=True)


def _icontains(column, term: str):
    return column.ilike(f"%{term}%")


# Reference lookups


def active_lot() -> Lot | None:
    return _live(Lot).filter(Lot.status == LotStatus.ACTIVE).first()


def lot_by_id(lot_id: int) -> Lot:
    lot = Lot.query.filter_by(id=lot_id, deleted_at=None).first()
    if not lot:
        raise NotFoundError("El lote no existe")
    return lot


def _lot_for_record(payload: dict) -> Lot:
    lot_id = _optional_int(payload, "lot_id", "lote")
    if lot_id is not None:
        return lot_by_id(lot_id)
    lot = active_lot()
    if not lot:
        raise ValidationError("No hay un lote activo")
    return lot


def customer_by_id(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if not customer:
        raise NotFoundError("El cliente no existe")
    return customer


def technician_by_id(technician_id: int) -> Technician:
    technician = Technician.query.filter_by(id=technician_id, deleted_at=None).first()
    if not technician:
        raise NotFoundError("El técnico no existe")
    return technician


def meter_by_id(meter_id: int) -> MeterRenovation:
    meter = db.session.get(MeterRenovation, meter_id)
    if not meter:
        raise NotFoundError("El medidor no existe")
    return meter


def customer_by_inscription(inscription: str) -> Customer:
    term = (inscription or "").strip()
    if not term:
        raise ValidationError("Falta inscripción")
    customer = Customer.query.filter_by(inscription=term).first()
    if not customer:
        raise NotFoundError("No se encontró el cliente con esa inscripción")
    return customer


def meter_by_number(meter_number: str) -> MeterRenovation:
    term = (meter_number or "").strip()
    if not term:
        raise ValidationError("Falta número de medidor")
    meter = MeterRenovation.query.filter_by(meter_number=term).first()
    if not meter:
        raise NotFoundError("No se encontró el medidor")
    return meter


# Acts


def _act_values(payload: dict) -> dict[str, object]:
    values: dict[str, object] = {
        "file_number": _file_number(payload),
        "file_date": parse_iso_date(payload.get("file_date"), "fecha de ficha"),
        "file_time": parse_optional_time(payload.get("file_time")),
        "reading": _required_text(payload, "reading", "lectura"),
        "observations": _parse_enum(ActObservation, payload.get("observations"), "observaciones"),
        "rotating_pointer": _parse_enum(YesNo, payload.get("rotating_pointer"), "puntero giratorio", required=False),
        "meter_security_seal": _parse_enum(
            YesNo, payload.get("meter_security_seal"), "precinto de seguridad", required=False
        ),
        "reading_impossibility_viewer": _parse_enum(
            YesNo, payload.get("reading_impossibility_viewer"), "visor con imposibilidad de lectura", required=False
        ),
    }
    values["lot_id"] = _lot_for_record(payload).id
    values["customer_id"] = customer_by_id(_required_int(payload, "customer_id", "cliente")).id
    values["technician_id"] = technician_by_id(_required_int(payload, "technician_id", "técnico")).id
    values["meter_id"] = meter_by_id(_required_int(payload, "meter_id", "medidor")).id
    return values


def act_conflict(
    file_number: str,
    customer_id: int,
    meter_id: int,
    exclude_id: int | None = None,
) -> ServiceError | None:
    query = _live_excluding(Act, exclude_id)
    if query.filter(Act.file_number == file_number).first():
        return DuplicateFileNumber()
    if query.filter(Act.customer_id == customer_id).first():
        return CustomerAlreadyLinked()
    if query.filter(Act.meter_id == meter_id).first():
        return MeterAlreadyLinked()
    return None


def act_by_id(act_id: int) -> Act:
    act = Act.query.filter_by(id=act_id, deleted_at=None).first()
    if not act:
        raise NotFoundError("El acta no existe")
    return act


def create_act(payload: dict, user_id: int | None) -> Act:
    values = _act_values(payload)
    act = Act(**values, created_by=user_id)

    def write() -> Act:
        db.session.add(act)
        append_history(
            act,
            HistoryAction.CREATE,
            user_id,
            f"Creación inicial del registro con número de ficha: {act.file_number}",
        )
        return act

    guarded_write(
        write,
        lambda: act_conflict(values["file_number"], values["customer_id"], values["meter_id"]),
    )
    logger.info("Act %s created by user %s", act.id, user_id)
    return act


def update_act(act_id: int, payload: dict, user_id: int | None) -> Act:
    act = act_by_id(act_id)
    values = _act_values(payload)

    def write() -> Act:
        for key, value in values.items():
            setattr(act, key, value)
        append_history(
            act,
            HistoryAction.UPDATE,
            user_id,
            f"Actualización del registro con número de ficha: {act.file_number}",
        )
        return act

    guarded_write(
        write,
        lambda: act_conflict(values["file_number"], values["customer_id"], values["meter_id"], act_id),
    )
    logger.info("Act %s updated by user %s", act_id, user_id)
    return act


def delete_act(act_id: int, user_id: int | None) -> Act:
    act = act_by_id(act_id)
    act.deleted_at = utcnow()
    append_history(act, HistoryAction.DELETE, user_id, f"Eliminación del acta {act.file_number}")
    db.session.commit()
    logger.info("Act %s deleted by user %s", act_id, user_id)
    return act


def list_acts(filters: dict[str, str], page: int, limit: int) -> dict[str, object]:
    query = _live(Act).options(
        joinedload(Act.customer),
        joinedload(Act.technician),
        joinedload(Act.meter),
        selectinload(Act.histories).joinedload(ActHistory.user),
    )
    file_term = (filters.get("file") or "").strip()
    inscription = (filters.get("inscription") or "").strip()
    meter = (filters.get("meter") or "").strip()
    if file_term:
        query = query.filter(_contains(Act.file_number, file_term))
    if inscription:
        query = query.filter(Act.customer.has(_contains(Customer.inscription, inscription)))
    if meter:
        query = query.filter(Act.meter.has(_contains(MeterRenovation.meter_number, meter)))
    rows, total = paginate_query(query.order_by(Act.id.desc()), page, limit)
    return {"data": [act_to_dict(row, include_histories=True) for row in rows], "total": total}


def count_installed_acts(lot_id: int) -> int:
    return (
        _live(Act)
        .filter(Act.lot_id == lot_id, Act.observations == ActObservation.SIN_OBSERVACIONES)
        .count()
    )


# PreCatastral


def _precatastral_values(payload: dict) -> dict[str, object]:
    keys = _text(payload, "keys") or "0"
    if keys not in {"0", "1", "2"}:
        raise ValidationError("Valor invalido para llaves")
    values: dict[str, object] = {
        "file_number": _file_number(payload),
        "property": _parse_enum(PropertyType, payload.get("property"), "predio"),
        "is_located": _parse_enum(YesNo, payload.get("is_located"), "ubicado", required=False),
        "located_box": _parse_enum(BoxLocation, payload.get("located_box"), "ubicación de caja"),
        "buried_connection": _parse_enum(YesNo, payload.get("buried_connection"), "conexión enterrada"),
        "has_meter": _parse_enum(YesNo, payload.get("has_meter"), "tiene medidor"),
        "reading": _text(payload, "reading"),
        "has_cover": _parse_enum(YesNo, payload.get("has_cover"), "tiene tapa"),
        "cover_state": _parse_enum(ElementState, payload.get("cover_state"), "estado de tapa"),
        "has_box": _parse_enum(YesNo, payload.get("has_box"), "tiene caja"),
        "box_state": _parse_enum(ElementState, payload.get("box_state"), "estado de caja"),
        "keys": keys,
        "cover_material": _text(payload, "cover_material"),
        "observations": _parse_enum(ActObservation, payload.get("observations"), "observaciones"),
    }
    values["lot_id"] = _lot_for_record(payload).id
    values["customer_id"] = customer_by_id(_required_int(payload, "customer_id", "cliente")).id
    values["technician_id"] = technician_by_id(_required_int(payload, "technician_id", "técnico")).id
    return values


def precatastral_conflict(
    file_number: str,
    customer_id: int,
    exclude_id: int | None = None,
) -> ServiceError | None:
    query = _live_excluding(PreCatastral, exclude_id)
    if query.filter(PreCatastral.file_number == file_number).first():
        return DuplicateFileNumber()
    linked = query.filter(PreCatastral.customer_id == customer_id).first()
    if linked:
        return CustomerAlreadyLinked(f"Ya existe la ficha {linked.file_number} con este cliente.")
    return None


def precatastral_by_id(record_id: int) -> PreCatastral:
    record = PreCatastral.query.filter_by(id=record_id, deleted_at=None).first()
    if not record:
        raise NotFoundError("El precatastral no existe")
    return record


def create_precatastral(payload: dict, user_id: int | None) -> PreCatastral:
    values = _precatastral_values(payload)
    record = PreCatastral(**values, created_by=user_id)

    def write() -> PreCatastral:
        db.session.add(record)
        append_history(
            record,
            HistoryAction.CREATE,
            user_id,
            f"Creación inicial del registro con número de ficha: {record.file_number}",
        )
        return record

    guarded_write(write, lambda: precatastral_conflict(values["file_number"], values["customer_id"]))
    logger.info("PreCatastral %s created by user %s", record.id, user_id)
    return record


def update_precatastral(record_id: int, payload: dict, user_id: int | None) -> PreCatastral:
    record = precatastral_by_id(record_id)
    values = _precatastral_values(payload)

    def write() -> PreCatastral:
        for key, value in values.items():
            setattr(record, key, value)
        append_history(
            record,
            HistoryAction.UPDATE,
            user_id,
            f"Actualización del registro con número de ficha: {record.file_number}",
        )
        return record

    guarded_write(
        write,
        lambda: precatastral_conflict(values["file_number"], values["customer_id"], record_id),
    )
    logger.info("PreCatastral %s updated by user %s", record_id, user_id)
    return record


def delete_precatastral(record_id: int, user_id: int | None) -> PreCatastral:
    record = precatastral_by_id(record_id)
    record.deleted_at = utcnow()
    append_history(record, HistoryAction.DELETE, user_id, f"Eliminación del precatastral {record.file_number}")
    db.session.commit()
    logger.info("PreCatastral %s deleted by user %s", record_id, user_id)
    return record


def list_precatastrals(filters: dict[str, str], page: int, limit: int) -> dict[str, object]:
    query = _live(PreCatastral).options(
        joinedload(PreCatastral.customer),
        joinedload(PreCatastral.technician),
        selectinload(PreCatastral.histories).joinedload(PreCatastralHistory.user),
    )
    file_term = (filters.get("file") or "").strip()
    inscription = (filters.get("inscription") or "").strip()
    if file_term:
        query = query.filter(_contains(PreCatastral.file_number, file_term))
    if inscription:
        query = query.filter(PreCatastral.customer.has(_contains(Customer.inscription, inscription)))
    rows, total = paginate_query(query.order_by(PreCatastral.id.desc()), page, limit)
    return {"data": [precatastral_to_dict(row, include_histories=True) for row in rows], "total": total}


def count_precatastrals(lot_id: int) -> int:
    return _live(PreCatastral).filter(PreCatastral.lot_id == lot_id).count()


# Lots


def activate_lot(lot: Lot) -> Lot:
    """Make ``lot`` the only ACTIVE lot. Does not commit."""
    db.session.add(lot)
    db.session.flush()
    (
        Lot.query.filter(Lot.status == LotStatus.ACTIVE, Lot.id != lot.id).update(
            {Lot.status: LotStatus.INACTIVE},
            synchronize_session="fetch",
        )
    )
    lot.status = LotStatus.ACTIVE
    db.session.flush()
    return lot


def soft_delete_lot(lot: Lot) -> bool:
    """Mark ``lot`` deleted and inactive. Returns whether it was the ACTIVE lot."""
    was_active = lot.status == LotStatus.ACTIVE
    lot.deleted_at = utcnow()
    lot.status = LotStatus.INACTIVE
    db.session.flush()
    return was_active


def promote_next_lot() -> Lot | None:
    candidate = _live(Lot).order_by(Lot.created_at.desc(), Lot.id.desc()).first()
    if candidate:
        activate_lot(candidate)
    return candidate


def _lot_values(payload: dict, current: LotStatus = LotStatus.INACTIVE) -> dict[str, object]:
    name = _required_text(payload, "name", "nombre del lote")
    start_date = parse_iso_date(payload.get("start_date"), "fecha de inicio")
    end_date = parse_iso_date(payload.get("end_date"), "fecha de fin")
    if end_date < start_date:
        raise ValidationError("La fecha de fin no puede ser anterior a la fecha de inicio")
    status = _parse_enum(LotStatus, payload.get("status") or current.value, "estado")
    return {"name": name, "start_date": start_date, "end_date": end_date, "status": status}


def _lot_name_conflict(name: str, exclude_id: int | None = None) -> ServiceError | None:
    if _live_excluding(Lot, exclude_id).filter(Lot.name == name).first():
        return ConflictError("El nombre del lote ya existe")
    return None


def create_lot(payload: dict) -> Lot:
    values = _lot_values(payload)
    lot = Lot(
        name=values["name"],
        start_date=values["start_date"],
        end_date=values["end_date"],
        status=LotStatus.INACTIVE,
    )

    def write() -> Lot:
        should_activate = values["status"] == LotStatus.ACTIVE or active_lot() is None
        db.session.add(lot)
        db.session.flush()
        if should_activate:
            activate_lot(lot)
        return lot

    guarded_write(write, lambda: _lot_name_conflict(values["name"]))
    logger.info("Lot %s created with status %s", lot.id, lot.status.value)
    return lot


def update_lot(lot_id: int, payload: dict) -> Lot:
    lot = lot_by_id(lot_id)
    values = _lot_values(payload, lot.status)
    if lot.status == LotStatus.ACTIVE and values["status"] == LotStatus.INACTIVE:
        raise ValidationError("No se puede desactivar el lote activo; active otro lote")

    def write() -> Lot:
        lot.name = values["name"]
        lot.start_date = values["start_date"]
        lot.end_date = values["end_date"]
        if values["status"] == LotStatus.ACTIVE:
            activate_lot(lot)
        return lot

    guarded_write(write, lambda: _lot_name_conflict(values["name"], lot_id))
    logger.info("Lot %s updated", lot_id)
    return lot


def activate_lot_by_id(lot_id: int) -> Lot:
    lot = lot_by_id(lot_id)
    activate_lot(lot)
    db.session.commit()
    logger.info("Lot %s activated", lot_id)
    return lot


def delete_lot(lot_id: int) -> tuple[Lot, Lot | None]:
    lot = lot_by_id(lot_id)
    promoted = None
    if soft_delete_lot(lot):
        promoted = promote_next_lot()
    db.session.commit()
    logger.info("Lot %s deleted, promoted %s", lot_id, promoted.id if promoted else None)
    return lot, promoted


def list_lots(page: int, limit: int) -> dict[str, object]:
    rows, total = paginate_query(_live(Lot).order_by(Lot.id.desc()), page, limit)
    return {"data": [lot_to_dict(row) for row in rows], "total": total}


def list_all_lots() -> list[Lot]:
    return _live(Lot).order_by(Lot.id.desc()).all()


# Labeled boxes


def _labeled_values(payload: dict) -> dict[str, object]:
    name = _text(payload, "name")
    if not name:
        raise ValidationError("El nombre de la caja es requerido")
    meters = payload.get("meters")
    if not isinstance(meters, list) or not meters:
        raise ValidationError("Debe incluir al menos un medidor")
    cleaned = []
    for meter in meters:
        if not isinstance(meter, dict):
            raise ValidationError("Todos los medidores deben tener old_meter y reading válidos")
        old_meter = _text(meter, "old_meter")
        reading = _text(meter, "reading")
        if not old_meter or not reading:
            raise ValidationError("Todos los medidores deben tener old_meter y reading válidos")
        cleaned.append({"old_meter": old_meter, "reading": reading})
    return {"name": name, "meters": cleaned, "lot_id": _lot_for_record(payload).id}


def _labeled_name_conflict(name: str, exclude_id: int | None = None) -> ServiceError | None:
    if _live_excluding(Labeled, exclude_id).filter(Labeled.name == name).first():
        return ConflictError("El nombre de la caja ya existe", status_code=409)
    return None


def labeled_by_id(labeled_id: int) -> Labeled:
    labeled = Labeled.query.filter_by(id=labeled_id, deleted_at=None).first()
    if not labeled:
        raise NotFoundError("La caja no existe")
    return labeled


def create_labeled(payload: dict, user_id: int | None) -> Labeled:
    values = _labeled_values(payload)
    labeled = Labeled(
        name=values["name"],
        lot_id=values["lot_id"],
        meters=[MeterLabeled(**meter) for meter in values["meters"]],
    )

    def write() -> Labeled:
        db.session.add(labeled)
        append_history(
            labeled,
            HistoryAction.CREATE,
            user_id,
            f"Creación de la caja {labeled.name} con {len(labeled.meters)} medidores",
        )
        return labeled

    guarded_write(write, lambda: _labeled_name_conflict(values["name"]))
    logger.info("Labeled box %s created by user %s", labeled.id, user_id)
    return labeled


def update_labeled(labeled_id: int, payload: dict, user_id: int | None) -> Labeled:
    labeled = labeled_by_id(labeled_id)
    values = _labeled_values(payload)

    def write() -> Labeled:
        labeled.name = values["name"]
        labeled.lot_id = values["lot_id"]
        labeled.meters = [MeterLabeled(**meter) for meter in values["meters"]]
        append_history(
            labeled,
            HistoryAction.UPDATE,
            user_id,
            f"Actualización de la caja {labeled.name} con {len(values['meters'])} medidores",
        )
        return labeled

    guarded_write(write, lambda: _labeled_name_conflict(values["name"], labeled_id))
    logger.info("Labeled box %s updated by user %s", labeled_id, user_id)
    return labeled


def delete_labeled(labeled_id: int, user_id: int | None) -> Labeled:
    labeled = labeled_by_id(labeled_id)
    labeled.deleted_at = utcnow()
    append_history(labeled, HistoryAction.DELETE, user_id, f"Eliminación de la caja {labeled.name}")
    db.session.commit()
    logger.info("Labeled box %s deleted by user %s", labeled_id, user_id)
    return labeled


def list_labeled(filters: dict[str, str], page: int, limit: int) -> dict[str, object]:
    query = _live(Labeled).options(selectinload(Labeled.meters))
    box = (filters.get("box") or "").strip()
    meter = (filters.get("meter") or "").strip()
    if box:
        query = query.filter(_icontains(Labeled.name, box))
    if meter:
        query = query.filter(Labeled.meters.any(_icontains(MeterLabeled.old_meter, meter)))
    rows, total = paginate_query(query.order_by(Labeled.id.desc()), page, limit)
    return {"data": [labeled_to_dict(row) for row in rows], "total": total}


# Technicians


def _technician_values(payload: dict) -> dict[str, str]:
    dni = _required_text(payload, "dni", "DNI")
    if not dni.isdigit() or len(dni) < 8:
        raise ValidationError("El DNI debe tener al menos 8 dígitos")
    return {"dni": dni, "name": _required_text(payload, "name", "nombre del técnico")}


def _technician_dni_conflict(dni: str, exclude_id: int | None = None) -> ServiceError | None:
    if _live_excluding(Technician, exclude_id).filter(Technician.dni == dni).first():
        message = "El dni del tecnico ya existe" if exclude_id is None else "El dni del tecnico ya está en uso"
        return ConflictError(message)
    return None


def create_technician(payload: dict) -> Technician:
    values = _technician_values(payload)
    technician = Technician(**values)

    def write() -> Technician:
        db.session.add(technician)
        return technician

    guarded_write(write, lambda: _technician_dni_conflict(values["dni"]))
    logger.info("Technician %s created", technician.id)
    return technician


def update_technician(technician_id: int, payload: dict) -> Technician:
    technician = technician_by_id(technician_id)
    values = _technician_values(payload)

    def write() -> Technician:
        technician.dni = values["dni"]
        technician.name = values["name"]
        return technician

    guarded_write(write, lambda: _technician_dni_conflict(values["dni"], technician_id))
    logger.info("Technician %s updated", technician_id)
    return technician


def delete_technician(technician_id: int) -> Technician:
    technician = technician_by_id(technician_id)
    technician.deleted_at = utcnow()
    db.session.commit()
    logger.info("Technician %s deleted", technician_id)
    return technician


def technician_by_dni(dni: str) -> Technician:
    term = (dni or "").strip()
    if not term:
        raise ValidationError("Falta DNI")
    technician = Technician.query.filter_by(dni=term, deleted_at=None).first()
    if not technician:
        raise NotFoundError("No se encontró el técnico con ese DNI")
    return technician


def _count_by(column, model, ids: list[int]) -> dict[int, int]:
    if not ids:
        return {}
    rows = (
        db.session.query(column, func.count(model.id))
        .filter(model.deleted_at.is_(None), column.in_(ids))
        .group_by(column)
        .all()
    )
    return {key: count for key, count in rows}


def list_technicians(page: int, limit: int) -> dict[str, object]:
    rows, total = paginate_query(_live(Technician).order_by(Technician.id.desc()), page, limit)
    ids = [row.id for row in rows]
    acts = _count_by(Act.technician_id, Act, ids)
    precatastrals = _count_by(PreCatastral.technician_id, PreCatastral, ids)
    data = []
    for row in rows:
        item = technician_to_dict(row)
        item["acts"] = acts.get(row.id, 0)
        item["precatastrals"] = precatastrals.get(row.id, 0)
        data.append(item)
    return {"data": data, "total": total}


# Dashboard


def _documents_window(lot: Lot, filter_type: str, today: date) -> tuple[datetime, datetime]:
    if filter_type == "hoy":
        start = today
        end = today + timedelta(days=1)
    elif filter_type == "mensual":
        start = today.replace(day=1)
        end = (start + timedelta(days=32)).replace(day=1)
    else:
        start = lot.start_date
        end = lot.end_date + timedelta(days=1)
    return datetime.combine(start, time.min), datetime.combine(end, time.min)


def _created_counts(history_cls, record_cls, fk_column, lot_id: int, start: datetime, end: datetime) -> dict[int, int]:
    rows = (
        db.session.query(history_cls.updated_by, func.count(history_cls.id))
        .join(record_cls, record_cls.id == fk_column)
        .filter(
            record_cls.lot_id == lot_id,
            record_cls.deleted_at.is_(None),
            history_cls.action == HistoryAction.CREATE,
            history_cls.updated_at >= start,
            history_cls.updated_at < end,
            history_cls.updated_by.isnot(None),
        )
        .group_by(history_cls.updated_by)
        .all()
    )
    return {user_id: count for user_id, count in rows}


def documents_by_user(lot_id: int, filter_type: str = "", today: date | None = None) -> list[dict[str, object]]:
    lot = lot_by_id(lot_id)
    start, end = _documents_window(lot, (filter_type or "").strip().lower(), today or utcnow().date())
    acts = _created_counts(ActHistory, Act, ActHistory.act_id, lot.id, start, end)
    precatastrals = _created_counts(
        PreCatastralHistory, PreCatastral, PreCatastralHistory.pre_catastral_id, lot.id, start, end
    )
    user_ids = set(acts) | set(precatastrals)
    if not user_ids:
        return []
    users = User.query.filter(User.id.in_(user_ids)).order_by(User.names.asc(), User.id.asc()).all()
    return [
        {
            "id": user.id,
            "names": user.names,
            "username": user.username,
            "acts": acts.get(user.id, 0),
            "precatastrals": precatastrals.get(user.id, 0),
        }
        for user in users
    ]
