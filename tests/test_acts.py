from __future__ import annotations

from app.core.models import Act, ActHistory, HistoryAction


def test_create_act_writes_record_and_one_create_history(app, client, login_digitador, act_payload):
    login_digitador()

    response = client.post("/api/act/newact", json=act_payload("1001"))

    assert response.status_code == 201
    data = response.get_json()["data"]
    assert data["file_number"] == "1001"
    assert data["customer"]["inscription"] == "01234561"
    assert data["meter"]["meter_number"] == "DA24000001"
    histories = ActHistory.query.filter_by(act_id=data["id"]).all()
    assert len(histories) == 1
    assert histories[0].action == HistoryAction.CREATE
    assert histories[0].details == "Creación inicial del registro con número de ficha: 1001"
    assert histories[0].user.username == "digitador"


def test_duplicate_file_number_is_rejected_without_writes(app, client, login_admin, act_payload):
    login_admin()
    assert client.post("/api/act/newact", json=act_payload("1001")).status_code == 201

    response = client.post("/api/act/newact", json=act_payload("1001", customer=1, meter=1))

    assert response.status_code == 400
    assert response.get_json() == {"error": "Ya existe un registro con ese número de ficha."}
    assert Act.query.count() == 1
    assert ActHistory.query.count() == 1


def test_customer_and_meter_conflicts_are_reported_in_order(app, client, login_admin, act_payload):
    login_admin()
    client.post("/api/act/newact", json=act_payload("1001"))

    same_customer = client.post("/api/act/newact", json=act_payload("1002", customer=0, meter=1))
    assert same_customer.status_code == 400
    assert same_customer.get_json()["error"] == "Ya existe un registro con este cliente."

    same_meter = client.post("/api/act/newact", json=act_payload("1003", customer=1, meter=0))
    assert same_meter.status_code == 400
    assert same_meter.get_json()["error"] == "Ya existe un registro con este medidor."

    # File number wins when every key collides.
    all_keys = client.post("/api/act/newact", json=act_payload("1001"))
    assert all_keys.get_json()["error"] == "Ya existe un registro con ese número de ficha."


def test_update_excludes_the_record_being_edited(app, client, login_admin, act_payload):
    login_admin()
    first = client.post("/api/act/newact", json=act_payload("1001")).get_json()["data"]
    client.post("/api/act/newact", json=act_payload("1002", customer=1, meter=1))

    unchanged = client.put(f"/api/act/updateact?id={first['id']}", json=act_payload("1001", reading="1600"))
    assert unchanged.status_code == 200
    assert unchanged.get_json()["data"]["reading"] == "1600"

    clash = client.put(f"/api/act/updateact?id={first['id']}", json=act_payload("1002"))
    assert clash.status_code == 400
    assert clash.get_json()["error"] == "Ya existe un registro con ese número de ficha."

    actions = [h.action for h in ActHistory.query.filter_by(act_id=first["id"]).order_by(ActHistory.id)]
    assert actions == [HistoryAction.CREATE, HistoryAction.UPDATE]
    details = ActHistory.query.filter_by(act_id=first["id"], action=HistoryAction.UPDATE).one().details
    assert details == "Actualización del registro con número de ficha: 1001"


def test_delete_soft_deletes_and_records_actor(app, client, login_admin, act_payload):
    login_admin()
    act_id = client.post("/api/act/newact", json=act_payload("1001")).get_json()["data"]["id"]

    response = client.delete(f"/api/act/deleteact?id={act_id}&deleted_by=2")

    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    assert body["message"] == "Acta eliminada correctamente"
    assert body["data"]["deleted_at"] is not None
    history = ActHistory.query.filter_by(act_id=act_id, action=HistoryAction.DELETE).one()
    assert history.updated_by == 2
    assert history.details == "Eliminación del acta 1001"

    listing = client.get("/api/act/listacts").get_json()
    assert listing == {"data": [], "total": 0}
    assert Act.query.count() == 1
    assert client.get(f"/api/act/getact?id={act_id}").status_code == 404
    assert client.delete(f"/api/act/deleteact?id={act_id}").status_code == 404


def test_deleted_act_frees_its_keys(app, client, login_admin, act_payload):
    login_admin()
    act_id = client.post("/api/act/newact", json=act_payload("1001")).get_json()["data"]["id"]
    client.delete(f"/api/act/deleteact?id={act_id}")

    response = client.post("/api/act/newact", json=act_payload("1001"))

    assert response.status_code == 201


def test_list_filters_paginate_and_report_filtered_total(app, client, login_admin, act_payload):
    login_admin()
    for idx in range(4):
        client.post("/api/act/newact", json=act_payload(f"10{idx:02d}", customer=idx, meter=idx))

    page = client.get("/api/act/listacts?page=1&limit=3").get_json()
    assert page["total"] == 4
    assert [row["file_number"] for row in page["data"]] == ["1003", "1002", "1001"]
    assert page["data"][0]["histories"][0]["user"] == "Administrador General"

    assert client.get("/api/act/listacts?page=5&limit=3").get_json() == {"data": [], "total": 4}

    by_inscription = client.get("/api/act/listacts?inscription=4563").get_json()
    assert by_inscription["total"] == 1
    assert by_inscription["data"][0]["customer"]["inscription"] == "01234563"

    by_meter = client.get("/api/act/listacts?meter=00002").get_json()
    assert [row["file_number"] for row in by_meter["data"]] == ["1001"]

    by_file = client.get("/api/act/listacts?file=100").get_json()
    assert by_file["total"] == 4


def test_limit_is_capped(app, client, login_admin):
    login_admin()
    response = client.get("/api/act/listacts?limit=5000&page=0")
    assert response.status_code == 200
    assert response.get_json() == {"data": [], "total": 0}


def test_validation_errors(app, client, login_admin, act_payload):
    login_admin()

    missing = client.post("/api/act/newact", json=act_payload(file_number=""))
    assert missing.status_code == 400
    assert missing.get_json()["error"] == "Falta número de ficha"

    letters = client.post("/api/act/newact", json=act_payload(file_number="10A"))
    assert letters.status_code == 400

    bad_observation = client.post("/api/act/newact", json=act_payload(observations="OTRA"))
    assert bad_observation.status_code == 400

    bad_date = client.post("/api/act/newact", json=act_payload(file_date="2024-03-25xyz"))
    assert bad_date.status_code == 400
    assert bad_date.get_json()["error"] == "Formato de fecha invalido para fecha de ficha"

    bad_time = client.post("/api/act/newact", json=act_payload(file_time="09:30junk"))
    assert bad_time.status_code == 400

    unknown_meter = client.post("/api/act/newact", json=act_payload(meter_id=999))
    assert unknown_meter.status_code == 404
    assert unknown_meter.get_json()["error"] == "El medidor no existe"

    assert client.post("/api/act/newact", data="not json").status_code == 400
    assert client.get("/api/act/getact").status_code == 400
    assert Act.query.count() == 0


def test_observation_accepts_spaced_labels_and_defaults_to_active_lot(app, client, login_admin, act_payload, refs):
    login_admin()
    payload = act_payload("1001", observations="medidor profundo")
    payload.pop("lot_id")

    data = client.post("/api/act/newact", json=payload).get_json()["data"]

    assert data["observations"] == "MEDIDOR_PROFUNDO"
    assert data["lot_id"] == refs["active_lot"]


def test_total_installed_counts_only_clean_acts_of_the_lot(app, client, login_admin, act_payload, refs):
    login_admin()
    client.post("/api/act/newact", json=act_payload("1001"))
    client.post("/api/act/newact", json=act_payload("1002", customer=1, meter=1, observations="BRONCE"))
    client.post(
        "/api/act/newact",
        json=act_payload("1003", customer=2, meter=2, lot_id=refs["inactive_lot"]),
    )

    response = client.get(f"/api/act/totalinstalled?lot={refs['active_lot']}")

    assert response.get_json() == {"count": 1}


def test_write_requires_permission_and_session(app, client, login_almacenero, act_payload):
    assert client.get("/api/act/listacts").status_code == 401

    login_almacenero()
    response = client.post("/api/act/newact", json=act_payload("1001"))

    assert response.status_code == 403
    assert response.get_json()["error"] == "No tiene permisos para realizar esta accion."
