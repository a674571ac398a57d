from __future__ import annotations

from openpyxl import Workbook

from app.core.models import Customer, MeterRenovation, Technician
from app.renovation.importer import import_customers


def test_technician_crud_and_search(app, client, login_admin):
    login_admin()

    created = client.post("/api/technician/newtechnician", json={"dni": "44556677", "name": "Luis Rojas"})
    assert created.status_code == 201
    tech_id = created.get_json()["data"]["id"]

    duplicate = client.post("/api/technician/newtechnician", json={"dni": "44556677", "name": "Otro"})
    assert duplicate.status_code == 400
    assert duplicate.get_json()["error"] == "El dni del tecnico ya existe"

    renamed = client.put(f"/api/technician/updatetechnician?id={tech_id}", json={"dni": "44556677", "name": "Luis R."})
    assert renamed.status_code == 200

    taken = client.put(f"/api/technician/updatetechnician?id={tech_id}", json={"dni": "12345678", "name": "Luis"})
    assert taken.status_code == 400
    assert taken.get_json()["error"] == "El dni del tecnico ya está en uso"

    found = client.get("/api/technician/searchtechniciandni?dni=44556677").get_json()["data"]
    assert found["name"] == "Luis R."

    assert client.delete(f"/api/technician/deletetechnician?id={tech_id}").status_code == 200
    assert client.get("/api/technician/searchtechniciandni?dni=44556677").status_code == 404
    assert client.get(f"/api/technician/gettechnician?id={tech_id}").status_code == 404


def test_technician_dni_must_be_numeric(app, client, login_admin):
    login_admin()
    response = client.post("/api/technician/newtechnician", json={"dni": "12AB", "name": "X"})
    assert response.status_code == 400


def test_technician_list_counts_live_records(app, client, login_admin, act_payload, precatastral_payload):
    login_admin()
    client.post("/api/act/newact", json=act_payload("1001"))
    act_id = client.post("/api/act/newact", json=act_payload("1002", customer=1, meter=1)).get_json()["data"]["id"]
    client.delete(f"/api/act/deleteact?id={act_id}")
    client.post("/api/precatastral/newprecatastral", json=precatastral_payload("2001"))

    data = client.get("/api/technician/listtechnicians").get_json()
    by_dni = {row["dni"]: row for row in data["data"]}

    assert data["total"] == 2
    assert (by_dni["12345678"]["acts"], by_dni["12345678"]["precatastrals"]) == (1, 0)
    assert (by_dni["87654321"]["acts"], by_dni["87654321"]["precatastrals"]) == (0, 1)


def test_customer_and_meter_lookup(app, client, login_digitador):
    login_digitador()

    customer = client.get("/api/customer/searchcustomerinscription?inscription=01234562")
    assert customer.status_code == 200
    assert customer.get_json()["data"]["customer_name"] == "Cliente Ejemplo 2"

    meter = client.get("/api/meterrenovation/searchmeterrenovation?meter=DA24000003")
    assert meter.get_json()["data"]["verification_code"] == "VC003"

    assert client.get("/api/customer/searchcustomerinscription?inscription=0123").status_code == 404
    assert client.get("/api/meterrenovation/searchmeterrenovation?meter=").status_code == 400


def test_documents_by_user_counts_creations(app, client, login_admin, login_digitador, act_payload, precatastral_payload, refs):
    login_digitador()
    client.post("/api/act/newact", json=act_payload("1001"))
    client.post("/api/act/newact", json=act_payload("1002", customer=1, meter=1))
    client.post("/api/precatastral/newprecatastral", json=precatastral_payload("2001"))
    login_admin()
    client.post("/api/act/newact", json=act_payload("1003", customer=2, meter=2))

    today = client.get(f"/api/user/getdocuments?lot={refs['active_lot']}&filterType=hoy").get_json()["data"]
    counts = {row["username"]: (row["acts"], row["precatastrals"]) for row in today}
    assert counts == {"admin": (1, 0), "digitador": (2, 1)}

    monthly = client.get(f"/api/user/getdocuments?lot={refs['active_lot']}&filterType=mensual").get_json()["data"]
    assert len(monthly) == 2

    other_lot = client.get(f"/api/user/getdocuments?lot={refs['inactive_lot']}&filterType=hoy").get_json()
    assert other_lot == {"data": []}


def _write_sheet(path, header, rows):
    wb = Workbook()
    ws = wb.active
    ws.append(header)
    for row in rows:
        ws.append(row)
    wb.save(path)


def test_import_customers_upserts_by_inscription(app, tmp_path):
    path = tmp_path / "clientes.xlsx"
    _write_sheet(
        path,
        ["INSCRIPCION", "DIRECCION", "CLIENTE", "MEDIDOR", "OBSERVACION"],
        [
            ["01234561", "Av. Nueva 1", "Cliente Renombrado", "MET-001", ""],
            ["09990001", "Jr. Lima 45", "Cliente Nuevo", "MET-777", "Sin acceso"],
            [None, "sin inscripcion", "", "", ""],
        ],
    )

    result = import_customers(path)

    assert (result.created, result.updated, result.skipped) == (1, 1, 1)
    assert Customer.query.filter_by(inscription="01234561").one().address == "Av. Nueva 1"
    assert Customer.query.filter_by(inscription="09990001").one().observation == "Sin acceso"


def test_import_meters_cli(app, tmp_path):
    path = tmp_path / "medidores.xlsx"
    _write_sheet(path, ["MEDIDOR", "CODIGO"], [["DA24000099", 12345], ["DA24000001", "VC999"]])

    result = app.test_cli_runner().invoke(args=["import-meters", str(path)])

    assert result.exit_code == 0
    assert "created=1 updated=1" in result.output
    assert MeterRenovation.query.filter_by(meter_number="DA24000099").one().verification_code == "12345"
    assert MeterRenovation.query.filter_by(meter_number="DA24000001").one().verification_code == "VC999"
    assert Technician.query.count() == 2
