"""Spreadsheet exports of acts and labeled boxes.

Rows are read in fixed-size batches and released from the session after
being written, so memory stays bounded by one batch plus the workbook.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from io import BytesIO
from typing import Iterator

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from sqlalchemy import and_
from sqlalchemy.orm import joinedload, selectinload

from app.core.errors import NotFoundError, ValidationError
from app.core.extensions import db
from app.core.models import Act, ActHistory, ActObservation, HistoryAction, Labeled
from app.core.utils import parse_iso_date
from app.renovation.services import lot_by_id

logger = logging.getLogger(__name__)

SPREADSHEET_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

ACT_COLUMNS: tuple[tuple[str, int], ...] = (
    ("N°", 6),
    ("FICHA", 10),
    ("LOTE", 12),
    ("FECHA", 12),
    ("INSCRIPCIÓN", 14),
    ("DIRECCIÓN", 40),
    ("CLIENTE", 35),
    ("MEDIDOR ANTIGUO", 18),
    ("LECTURA", 10),
    ("MEDIDOR NUEVO", 18),
    ("CÓDIGO VERIFICACIÓN", 20),
    ("DNI TÉCNICO", 14),
    ("TÉCNICO", 30),
    ("DIGITADOR", 30),
)

ACTIVITY_COLUMNS: tuple[tuple[str, int], ...] = ACT_COLUMNS[:-1] + (
    ("ÚLTIMA ACCIÓN", 14),
    ("FECHA ACCIÓN", 20),
    ("USUARIO", 30),
)

ACTION_LABELS = {
    HistoryAction.CREATE: "CREACIÓN",
    HistoryAction.UPDATE: "ACTUALIZACIÓN",
    HistoryAction.DELETE: "ELIMINACIÓN",
}

BOXES_PER_BAND = 5


@dataclass
class ReportFile:
    filename: str
    content: bytes
    total: int


class ExcelReport:
    """Single-sheet workbook with a styled header row and bordered data rows."""

    COLOR_HEADER = "1F4E78"
    COLOR_HEADER_TEXT = "FFFFFF"
    COLOR_BORDER = "BFBFBF"
    COLOR_BOX_TITLE = "D9D9D9"
    COLOR_BOX_LABELS = "FCE4D6"

    def __init__(self, title: str = "Reporte") -> None:
        self.wb = Workbook()
        self.ws = self.wb.active
        self.ws.title = title[:31]
        self.current_row = 1

    @staticmethod
    def _header_border() -> Border:
        side = Side(style="thin")
        return Border(left=side, right=side, top=side, bottom=side)

    def _data_border(self) -> Border:
        side = Side(style="thin", color=self.COLOR_BORDER)
        return Border(left=side, right=side, top=side, bottom=side)

    def style_header(self, cell, color: str | None = None, font_color: str | None = None) -> None:
        fill = color or self.COLOR_HEADER
        cell.font = Font(bold=True, color=font_color or self.COLOR_HEADER_TEXT)
        cell.fill = PatternFill(start_color=fill, end_color=fill, fill_type="solid")
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
        cell.border = self._header_border()

    def style_data(self, cell) -> None:
        cell.alignment = Alignment(horizontal="left", vertical="center")
        cell.border = self._data_border()

    def add_headers(self, columns: tuple[tuple[str, int], ...]) -> None:
        for col_num, (header, width) in enumerate(columns, 1):
            cell = self.ws.cell(row=self.current_row, column=col_num, value=header)
            self.style_header(cell)
            self.ws.column_dimensions[get_column_letter(col_num)].width = width
        self.ws.freeze_panes = self.ws.cell(row=self.current_row + 1, column=1)
        self.current_row += 1

    def add_row(self, values: list[object]) -> None:
        for col_num, value in enumerate(values, 1):
            cell = self.ws.cell(row=self.current_row, column=col_num, value=value)
            self.style_data(cell)
            if isinstance(value, (date, datetime)):
                cell.number_format = "DD/MM/YYYY HH:MM" if isinstance(value, datetime) else "DD/MM/YYYY"
        self.current_row += 1

    def to_bytes(self) -> bytes:
        output = BytesIO()
        self.wb.save(output)
        return output.getvalue()


def iter_batches(query, batch_size: int) -> Iterator[list]:
    """Yield ``query`` results in pages, expunging each page once consumed."""
    offset = 0
    while True:
        batch = query.offset(offset).limit(batch_size).all()
        if not batch:
            return
        yield batch
        for row in batch:
            db.session.expunge(row)
        offset += batch_size


def parse_date_range(start_raw: str | None, end_raw: str | None) -> tuple[date, date]:
    start = parse_iso_date(start_raw, "startDate")
    end = parse_iso_date(end_raw, "endDate")
    if start > end:
        raise ValidationError("La fecha de inicio no puede ser mayor a la fecha final")
    return start, end


def _day_bounds(start: date, end: date) -> tuple[datetime, datetime]:
    # The end date is inclusive: every history stamped on that day counts.
    return datetime.combine(start, time.min), datetime.combine(end + timedelta(days=1), time.min)


def _naive(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is not None:
        return value.replace(tzinfo=None)
    return value


def _parse_lot_param(raw: str | None) -> int:
    value = (raw or "").strip()
    if not value.isdigit() or int(value) <= 0:
        raise ValidationError("Parametro 'lot' invalido o no proporcionado.")
    return int(value)


def _act_query():
    return Act.query.filter(Act.deleted_at.is_(None)).options(
        joinedload(Act.lot),
        joinedload(Act.customer),
        joinedload(Act.technician),
        joinedload(Act.meter),
        selectinload(Act.histories).joinedload(ActHistory.user),
    )


def _file_number_cell(file_number: str) -> object:
    return int(file_number) if file_number.isdigit() else file_number


def _act_values(index: int, act: Act) -> list[object]:
    customer = act.customer
    technician = act.technician
    meter = act.meter
    return [
        index,
        _file_number_cell(act.file_number),
        act.lot.name if act.lot else "N/A",
        act.file_date,
        customer.inscription if customer else "N/A",
        customer.address if customer else "N/A",
        customer.customer_name if customer else "N/A",
        customer.old_meter if customer else "N/A",
        act.reading,
        meter.meter_number if meter else "N/A",
        meter.verification_code if meter else "N/A",
        technician.dni if technician else "N/A",
        technician.name if technician else "N/A",
    ]


def _last_editor(act: Act) -> str:
    latest = act.histories[0] if act.histories else None
    if latest is None or latest.user is None:
        return "N/A"
    return latest.user.names


def _write_act_report(title: str, query, batch_size: int) -> tuple[bytes, int]:
    total = query.order_by(None).count()
    if total == 0:
        raise NotFoundError("No se encontraron registros para el reporte")
    report = ExcelReport(title)
    report.add_headers(ACT_COLUMNS)
    index = 0
    for batch in iter_batches(query, batch_size):
        for act in batch:
            index += 1
            report.add_row(_act_values(index, act) + [_last_editor(act)])
    return report.to_bytes(), index


def act_report_by_dates(start_raw: str | None, end_raw: str | None, batch_size: int) -> ReportFile:
    start, end = parse_date_range(start_raw, end_raw)
    window_start, window_end = _day_bounds(start, end)
    query = (
        _act_query()
        .filter(
            Act.observations == ActObservation.SIN_OBSERVACIONES,
            Act.histories.any(
                and_(
                    ActHistory.action == HistoryAction.CREATE,
                    ActHistory.updated_at >= window_start,
                    ActHistory.updated_at < window_end,
                )
            ),
        )
        .order_by(Act.file_date.asc(), Act.id.asc())
    )
    content, total = _write_act_report("Reporte", query, batch_size)
    logger.info("Act report %s..%s generated with %s rows", start, end, total)
    return ReportFile(f"reporte_{start.isoformat()}_a_{end.isoformat()}.xlsx", content, total)


def act_report_by_lot(lot_raw: str | None, batch_size: int) -> ReportFile:
    lot = lot_by_id(_parse_lot_param(lot_raw))
    query = (
        _act_query()
        .filter(Act.lot_id == lot.id, Act.observations == ActObservation.SIN_OBSERVACIONES)
        .order_by(Act.id.asc())
    )
    content, total = _write_act_report("IMPRIMIR", query, batch_size)
    logger.info("Act report for lot %s generated with %s rows", lot.id, total)
    return ReportFile(f"reporte_lote_{lot.id}.xlsx", content, total)


def activity_report_by_dates(start_raw: str | None, end_raw: str | None, batch_size: int) -> ReportFile:
    start, end = parse_date_range(start_raw, end_raw)
    window_start, window_end = _day_bounds(start, end)
    query = (
        _act_query()
        .filter(
            Act.observations == ActObservation.SIN_OBSERVACIONES,
            Act.histories.any(
                and_(
                    ActHistory.action == HistoryAction.CREATE,
                    ActHistory.updated_at >= window_start,
                    ActHistory.updated_at < window_end,
                )
            ),
        )
        .order_by(Act.id.asc())
    )
    total = query.order_by(None).count()
    if total == 0:
        raise NotFoundError("No se encontraron registros para el reporte")
    report = ExcelReport("Actividad")
    report.add_headers(ACTIVITY_COLUMNS)
    index = 0
    for batch in iter_batches(query, batch_size):
        for act in batch:
            in_range = [
                entry
                for entry in act.histories
                if window_start <= _naive(entry.updated_at) < window_end
            ]
            latest = max(in_range, key=lambda entry: entry.id)
            index += 1
            report.add_row(
                _act_values(index, act)
                + [
                    ACTION_LABELS[latest.action],
                    _naive(latest.updated_at),
                    latest.user.names if latest.user else "N/A",
                ]
            )
    logger.info("Activity report %s..%s generated with %s rows", start, end, index)
    return ReportFile(
        f"reporte_actividad_{start.isoformat()}_a_{end.isoformat()}.xlsx",
        report.to_bytes(),
        index,
    )


def _write_box_band(report: ExcelReport, boxes: list[Labeled]) -> None:
    ws = report.ws
    start_row = report.current_row
    for position, box in enumerate(boxes):
        col = 1 + position * 3
        ws.merge_cells(start_row=start_row, start_column=col, end_row=start_row, end_column=col + 1)
        title = ws.cell(row=start_row, column=col, value=box.name)
        report.style_header(title, report.COLOR_BOX_TITLE, "000000")
        report.style_header(ws.cell(row=start_row, column=col + 1), report.COLOR_BOX_TITLE, "000000")
        for offset, label in enumerate(("MEDIDORES", "LECTURA")):
            cell = ws.cell(row=start_row + 1, column=col + offset, value=label)
            report.style_header(cell, report.COLOR_BOX_LABELS, "000000")
        for row_offset, meter in enumerate(box.meters, 2):
            report.style_data(ws.cell(row=start_row + row_offset, column=col, value=meter.old_meter))
            report.style_data(ws.cell(row=start_row + row_offset, column=col + 1, value=meter.reading))
        ws.column_dimensions[get_column_letter(col)].width = 18
        ws.column_dimensions[get_column_letter(col + 1)].width = 12
        ws.column_dimensions[get_column_letter(col + 2)].width = 3
    max_meters = max(len(box.meters) for box in boxes)
    report.current_row = start_row + max_meters + 3


def labeled_report_by_lot(lot_raw: str | None, batch_size: int) -> ReportFile:
    lot = lot_by_id(_parse_lot_param(lot_raw))
    query = (
        Labeled.query.filter(Labeled.deleted_at.is_(None), Labeled.lot_id == lot.id)
        .options(selectinload(Labeled.meters))
        .order_by(Labeled.id.asc())
    )
    total = query.order_by(None).count()
    if total == 0:
        raise NotFoundError("No se encontraron cajas para el lote")
    report = ExcelReport("Cajas")
    band: list[Labeled] = []
    for batch in iter_batches(query, batch_size):
        for box in batch:
            band.append(box)
            if len(band) == BOXES_PER_BAND:
                _write_box_band(report, band)
                band = []
    # Detached boxes keep their loaded meters, so a band may span batches.
    if band:
        _write_box_band(report, band)
    logger.info("Labeled report for lot %s generated with %s boxes", lot.id, total)
    return ReportFile(f"reporte_cajas_medidores_{lot.id}.xlsx", report.to_bytes(), total)


PRINT_COLUMNS: tuple[tuple[str, int], ...] = (
    ("N°", 5),
    ("N° FICHA", 10),
    ("FECHA", 12),
    ("N° INSCRIPCION", 20),
    ("DIRECCION", 40),
    ("MEDIDOR NUEVO", 20),
    ("MED. ANT.", 20),
)


def print_report_by_lot(lot_raw: str | None, batch_size: int) -> ReportFile:
    """Condensed sheet of a lot's installed acts, laid out for printing."""
    lot = lot_by_id(_parse_lot_param(lot_raw))
    query = (
        _act_query()
        .filter(Act.lot_id == lot.id, Act.observations == ActObservation.SIN_OBSERVACIONES)
        .order_by(Act.file_date.asc(), Act.id.asc())
    )
    total = query.order_by(None).count()
    if total == 0:
        raise NotFoundError("No se encontraron registros en el lote especificado")
    report = ExcelReport("IMPRIMIR")
    report.add_headers(PRINT_COLUMNS)
    index = 0
    for batch in iter_batches(query, batch_size):
        for act in batch:
            index += 1
            customer = act.customer
            meter = act.meter
            report.add_row(
                [
                    index,
                    _file_number_cell(act.file_number),
                    act.file_date,
                    customer.inscription if customer else "N/A",
                    customer.address if customer else "N/A",
                    meter.meter_number if meter else "N/A",
                    customer.old_meter if customer else "N/A",
                ]
            )
    logger.info("Print report for lot %s generated with %s rows", lot.id, index)
    return ReportFile(f"reporte_imprimir_lote_{lot.id}.xlsx", report.to_bytes(), index)
