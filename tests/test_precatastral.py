from __future__ import annotations

from app.core.models import HistoryAction, PreCatastral, PreCatastralHistory


def test_create_and_get_precatastral(app, client, login_digitador, precatastral_payload):
    login_digitador()

    response = client.post("/api/precatastral/newprecatastral", json=precatastral_payload())

    assert response.status_code == 201
    data = response.get_json()["data"]
    assert data["property"] == "DOMESTICO"
    assert data["box_state"] == "MALO"
    assert data["technician"]["dni"] == "87654321"

    detail = client.get(f"/api/precatastral/getprecatastral?id={data['id']}").get_json()["data"]
    assert [h["action"] for h in detail["histories"]] == ["CREATE"]


def test_customer_conflict_names_the_existing_file(app, client, login_admin, precatastral_payload):
    login_admin()
    client.post("/api/precatastral/newprecatastral", json=precatastral_payload("2001"))

    duplicate_file = client.post("/api/precatastral/newprecatastral", json=precatastral_payload("2001", customer=1))
    assert duplicate_file.status_code == 400
    assert duplicate_file.get_json()["error"] == "Ya existe un registro con ese número de ficha."

    same_customer = client.post("/api/precatastral/newprecatastral", json=precatastral_payload("2002"))
    assert same_customer.status_code == 400
    assert same_customer.get_json()["error"] == "Ya existe la ficha 2001 con este cliente."
    assert PreCatastral.query.count() == 1


def test_update_and_delete_precatastral(app, client, login_admin, precatastral_payload):
    login_admin()
    record_id = client.post(
        "/api/precatastral/newprecatastral", json=precatastral_payload("2001")
    ).get_json()["data"]["id"]

    updated = client.put(
        f"/api/precatastral/updateprecatastral?id={record_id}",
        json=precatastral_payload("2001", keys="2", cover_state="MALO"),
    )
    assert updated.status_code == 200
    assert updated.get_json()["data"]["keys"] == "2"

    deleted = client.delete(f"/api/precatastral/deleteprecatastral?id={record_id}")
    assert deleted.status_code == 200
    assert deleted.get_json()["data"]["deleted_at"] is not None

    actions = [
        h.action for h in PreCatastralHistory.query.filter_by(pre_catastral_id=record_id).order_by(PreCatastralHistory.id)
    ]
    assert actions == [HistoryAction.CREATE, HistoryAction.UPDATE, HistoryAction.DELETE]
    assert client.get("/api/precatastral/listprecatastrals").get_json()["total"] == 0


def test_invalid_keys_are_rejected(app, client, login_admin, precatastral_payload):
    login_admin()
    response = client.post("/api/precatastral/newprecatastral", json=precatastral_payload(keys="3"))
    assert response.status_code == 400
    assert response.get_json()["error"] == "Valor invalido para llaves"


def test_list_and_total(app, client, login_admin, precatastral_payload, refs):
    login_admin()
    for idx in range(3):
        client.post("/api/precatastral/newprecatastral", json=precatastral_payload(f"200{idx}", customer=idx))

    filtered = client.get("/api/precatastral/listprecatastrals?inscription=01234562&limit=1").get_json()
    assert filtered["total"] == 1
    assert filtered["data"][0]["file_number"] == "2001"

    total = client.get(f"/api/precatastral/totalinstalled?lot={refs['active_lot']}").get_json()
    assert total == {"count": 3}
