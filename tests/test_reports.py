from __future__ import annotations

from datetime import datetime, timezone
from io import BytesIO

from openpyxl import load_workbook

from app.renovation.reports import SPREADSHEET_MIMETYPE


def _today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def _workbook(response):
    return load_workbook(BytesIO(response.data)).active


def _seed_acts(client, act_payload):
    for idx in range(3):
        client.post("/api/act/newact", json=act_payload(f"100{idx + 1}", customer=idx, meter=idx))
    client.post("/api/act/newact", json=act_payload("1009", customer=3, meter=3, observations="RECHAZADO"))


def test_act_report_by_dates_builds_attachment_in_batches(app, client, login_admin, act_payload):
    login_admin()
    _seed_acts(client, act_payload)
    today = _today()

    response = client.get(f"/api/report/reportactdates?startDate={today}&endDate={today}")

    assert response.status_code == 200
    assert response.headers["Content-Type"] == SPREADSHEET_MIMETYPE
    assert response.headers["Content-Disposition"] == f"attachment; filename=reporte_{today}_a_{today}.xlsx"
    assert response.headers["X-Total-Records"] == "3"
    ws = _workbook(response)
    assert ws.title == "Reporte"
    assert ws["A1"].value == "N°"
    assert ws["A1"].font.bold
    assert [ws.cell(row=row, column=1).value for row in range(2, 5)] == [1, 2, 3]
    assert [ws.cell(row=row, column=2).value for row in range(2, 5)] == [1001, 1002, 1003]
    assert ws["C2"].value == "Lote 2"
    assert ws["E2"].value == "01234561"
    assert ws["J2"].value == "DA24000001"
    assert ws["L2"].value == "12345678"
    assert ws["N2"].value == "Administrador General"
    assert ws.cell(row=5, column=1).value is None


def test_act_report_by_dates_failures(app, client, login_admin, act_payload):
    login_admin()
    _seed_acts(client, act_payload)

    empty = client.get("/api/report/reportactdates?startDate=2020-01-01&endDate=2020-01-31")
    assert empty.status_code == 404
    assert "error" in empty.get_json()

    bad_format = client.get("/api/report/reportactdates?startDate=2024-13-01&endDate=2024-12-31")
    assert bad_format.status_code == 400

    reversed_range = client.get("/api/report/reportactdates?startDate=2024-02-01&endDate=2024-01-01")
    assert reversed_range.status_code == 400
    assert reversed_range.get_json()["error"] == "La fecha de inicio no puede ser mayor a la fecha final"

    missing = client.get("/api/report/reportactdates?startDate=2024-02-01")
    assert missing.status_code == 400

    trailing = client.get("/api/report/reportactdates?startDate=2024-01-01garbage&endDate=2099-12-31zzz")
    assert trailing.status_code == 400
    assert trailing.get_json()["error"] == "Formato de fecha invalido para startDate"


def test_act_report_by_lot(app, client, login_admin, act_payload, refs):
    login_admin()
    _seed_acts(client, act_payload)

    response = client.get(f"/api/report/reportactlot?lot={refs['active_lot']}")

    assert response.status_code == 200
    assert response.headers["Content-Disposition"] == f"attachment; filename=reporte_lote_{refs['active_lot']}.xlsx"
    assert response.headers["X-Total-Records"] == "3"
    assert _workbook(response).title == "IMPRIMIR"

    assert client.get("/api/report/reportactlot?lot=abc").status_code == 400
    assert client.get("/api/report/reportactlot?lot=999").status_code == 404
    assert client.get(f"/api/report/reportactlot?lot={refs['inactive_lot']}").status_code == 404


def test_print_report_by_lot(app, client, login_admin, act_payload, refs):
    login_admin()
    _seed_acts(client, act_payload)

    response = client.get(f"/api/report/reportlot?lot={refs['active_lot']}")

    assert response.status_code == 200
    ws = _workbook(response)
    assert ws["B1"].value == "N° FICHA"
    assert ws["F2"].value == "DA24000001"
    assert ws["G2"].value == "MET-001"
    assert ws.max_column == 7


def test_activity_report_shows_latest_action(app, client, login_admin, act_payload):
    login_admin()
    act_id = client.post("/api/act/newact", json=act_payload("1001")).get_json()["data"]["id"]
    client.put(f"/api/act/updateact?id={act_id}", json=act_payload("1001", reading="2000"))
    today = _today()

    response = client.get(f"/api/report/reportdates?startDate={today}&endDate={today}")

    assert response.status_code == 200
    assert response.headers["X-Total-Records"] == "1"
    ws = _workbook(response)
    assert ws.title == "Actividad"
    assert ws["N1"].value == "ÚLTIMA ACCIÓN"
    assert ws["N2"].value == "ACTUALIZACIÓN"
    assert ws["P2"].value == "Administrador General"


def test_activity_report_only_lists_clean_acts(app, client, login_admin, act_payload):
    login_admin()
    client.post("/api/act/newact", json=act_payload("1001", observations="RECHAZADO"))
    today = _today()

    empty = client.get(f"/api/report/reportdates?startDate={today}&endDate={today}")
    assert empty.status_code == 404

    client.post("/api/act/newact", json=act_payload("1002", customer=1, meter=1))
    response = client.get(f"/api/report/reportdates?startDate={today}&endDate={today}")

    assert response.status_code == 200
    assert response.headers["X-Total-Records"] == "1"
    assert _workbook(response)["B2"].value == 1002


def test_labeled_report_lays_out_bands_of_five_boxes(app, client, login_admin, refs):
    login_admin()
    for idx in range(6):
        client.post(
            "/api/labeled/newlabeled",
            json={
                "name": f"CAJA-{idx + 1:02d}",
                "meters": [
                    {"old_meter": f"MET-{idx}A", "reading": "10"},
                    {"old_meter": f"MET-{idx}B", "reading": "20"},
                ],
            },
        )

    response = client.get(f"/api/report/reportlabeled?lot={refs['active_lot']}")

    assert response.status_code == 200
    assert response.headers["X-Total-Records"] == "6"
    assert response.headers["Content-Disposition"] == (
        f"attachment; filename=reporte_cajas_medidores_{refs['active_lot']}.xlsx"
    )
    ws = _workbook(response)
    assert ws["A1"].value == "CAJA-01"
    assert "A1:B1" in {str(rng) for rng in ws.merged_cells.ranges}
    assert ws["A2"].value == "MEDIDORES"
    assert ws["B2"].value == "LECTURA"
    assert ws["A3"].value == "MET-0A"
    assert ws["B4"].value == "20"
    assert ws["D1"].value == "CAJA-02"
    assert ws["M1"].value == "CAJA-05"
    # Next band starts after the tallest box plus the title, label and spacer rows.
    assert ws["A6"].value == "CAJA-06"
    assert ws["A8"].value == "MET-5A"


def test_labeled_report_without_boxes_is_404(app, client, login_admin, refs):
    login_admin()
    assert client.get(f"/api/report/reportlabeled?lot={refs['active_lot']}").status_code == 404


def test_reports_require_permission(app, client, login_digitador, refs):
    login_digitador()
    assert client.get(f"/api/report/reportactlot?lot={refs['active_lot']}").status_code == 403
