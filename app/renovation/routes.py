from __future__ import annotations

from flask import current_app, jsonify, make_response, request
from flask_login import current_user, login_required

from app.core.permissions import require_permission
from app.core.utils import json_payload, page_params, required_id
from app.renovation import renovation_bp
from app.renovation.reports import (
    SPREADSHEET_MIMETYPE,
    ReportFile,
    act_report_by_dates,
    act_report_by_lot,
    activity_report_by_dates,
    labeled_report_by_lot,
    print_report_by_lot,
)
from app.renovation.serializers import (
    act_to_dict,
    customer_to_dict,
    labeled_to_dict,
    lot_to_dict,
    meter_to_dict,
    precatastral_to_dict,
    technician_to_dict,
)
from app.renovation.services import (
    act_by_id,
    activate_lot_by_id,
    count_installed_acts,
    count_precatastrals,
    create_act,
    create_labeled,
    create_lot,
    create_precatastral,
    create_technician,
    customer_by_inscription,
    delete_act,
    delete_labeled,
    delete_lot,
    delete_precatastral,
    delete_technician,
    documents_by_user,
    labeled_by_id,
    list_acts,
    list_all_lots,
    list_labeled,
    list_lots,
    list_precatastrals,
    list_technicians,
    lot_by_id,
    meter_by_number,
    precatastral_by_id,
    technician_by_dni,
    technician_by_id,
    update_act,
    update_labeled,
    update_lot,
    update_precatastral,
    update_technician,
)


def _actor_id(override_param: str | None = None) -> int:
    if override_param:
        explicit = request.args.get(override_param, type=int)
        if explicit:
            return explicit
    return current_user.id


def _filters(*names: str) -> dict[str, str]:
    return {name: request.args.get(name, "") for name in names}


def _report_response(report: ReportFile):
    response = make_response(report.content)
    response.headers["Content-Type"] = SPREADSHEET_MIMETYPE
    response.headers["Content-Disposition"] = f"attachment; filename={report.filename}"
    response.headers["X-Total-Records"] = str(report.total)
    return response


def _batch_size() -> int:
    return current_app.config["REPORT_BATCH_SIZE"]


# Acts


@renovation_bp.post("/act/newact")
@login_required
@require_permission("acts.create")
def act_create():
    act = create_act(json_payload(), _actor_id())
    return jsonify({"data": act_to_dict(act)}), 201


@renovation_bp.get("/act/listacts")
@login_required
def act_list():
    page, limit = page_params()
    return jsonify(list_acts(_filters("file", "inscription", "meter"), page, limit))


@renovation_bp.get("/act/getact")
@login_required
def act_detail():
    act = act_by_id(required_id())
    return jsonify({"data": act_to_dict(act, include_histories=True)})


@renovation_bp.put("/act/updateact")
@login_required
@require_permission("acts.update")
def act_update():
    act = update_act(required_id(), json_payload(), _actor_id())
    return jsonify({"data": act_to_dict(act)})


@renovation_bp.delete("/act/deleteact")
@login_required
@require_permission("acts.delete")
def act_delete():
    act = delete_act(required_id(), _actor_id("deleted_by"))
    return jsonify({"success": True, "message": "Acta eliminada correctamente", "data": act_to_dict(act)})


@renovation_bp.get("/act/totalinstalled")
@login_required
def act_total_installed():
    return jsonify({"count": count_installed_acts(required_id("lot"))})


# PreCatastral


@renovation_bp.post("/precatastral/newprecatastral")
@login_required
@require_permission("precatastral.create")
def precatastral_create():
    record = create_precatastral(json_payload(), _actor_id())
    return jsonify({"data": precatastral_to_dict(record)}), 201


@renovation_bp.get("/precatastral/listprecatastrals")
@login_required
def precatastral_list():
    page, limit = page_params()
    return jsonify(list_precatastrals(_filters("file", "inscription"), page, limit))


@renovation_bp.get("/precatastral/getprecatastral")
@login_required
def precatastral_detail():
    record = precatastral_by_id(required_id())
    return jsonify({"data": precatastral_to_dict(record, include_histories=True)})


@renovation_bp.put("/precatastral/updateprecatastral")
@login_required
@require_permission("precatastral.update")
def precatastral_update():
    record = update_precatastral(required_id(), json_payload(), _actor_id())
    return jsonify({"data": precatastral_to_dict(record)})


@renovation_bp.delete("/precatastral/deleteprecatastral")
@login_required
@require_permission("precatastral.delete")
def precatastral_delete():
    record = delete_precatastral(required_id(), _actor_id("deleted_by"))
    return jsonify(
        {
            "success": True,
            "message": "Precatastral eliminado correctamente",
            "data": precatastral_to_dict(record),
        }
    )


@renovation_bp.get("/precatastral/totalinstalled")
@login_required
def precatastral_total_installed():
    return jsonify({"count": count_precatastrals(required_id("lot"))})


# Lots


@renovation_bp.post("/lot/newlot")
@login_required
@require_permission("lots.create")
def lot_create():
    lot = create_lot(json_payload())
    return jsonify({"data": lot_to_dict(lot)}), 201


@renovation_bp.get("/lot/listlots")
@login_required
def lot_list():
    page, limit = page_params()
    return jsonify(list_lots(page, limit))


@renovation_bp.get("/lot/listlotall")
@login_required
def lot_list_all():
    return jsonify({"data": [lot_to_dict(lot) for lot in list_all_lots()]})


@renovation_bp.get("/lot/getlot")
@login_required
def lot_detail():
    return jsonify({"data": lot_to_dict(lot_by_id(required_id()))})


@renovation_bp.put("/lot/updatelot")
@login_required
@require_permission("lots.update")
def lot_update():
    lot = update_lot(required_id(), json_payload())
    return jsonify({"data": lot_to_dict(lot)})


@renovation_bp.put("/lot/activatelot")
@login_required
@require_permission("lots.update")
def lot_activate():
    lot = activate_lot_by_id(required_id())
    return jsonify({"data": lot_to_dict(lot)})


@renovation_bp.delete("/lot/deletelot")
@login_required
@require_permission("lots.delete")
def lot_delete():
    lot, promoted = delete_lot(required_id())
    return jsonify(
        {
            "message": "Lote eliminado correctamente",
            "data": lot_to_dict(lot),
            "active": lot_to_dict(promoted) if promoted else None,
        }
    )


# Labeled boxes


@renovation_bp.post("/labeled/newlabeled")
@login_required
@require_permission("labeled.create")
def labeled_create():
    labeled = create_labeled(json_payload(), _actor_id())
    return jsonify({"data": labeled_to_dict(labeled)}), 201


@renovation_bp.get("/labeled/listlabeled")
@login_required
def labeled_list():
    page, limit = page_params()
    return jsonify(list_labeled(_filters("box", "meter"), page, limit))


@renovation_bp.get("/labeled/getlabeled")
@login_required
def labeled_detail():
    labeled = labeled_by_id(required_id())
    return jsonify({"data": labeled_to_dict(labeled, include_histories=True)})


@renovation_bp.put("/labeled/updatelabeled")
@login_required
@require_permission("labeled.update")
def labeled_update():
    labeled = update_labeled(required_id(), json_payload(), _actor_id())
    return jsonify({"data": labeled_to_dict(labeled)})


@renovation_bp.delete("/labeled/deletelabeled")
@login_required
@require_permission("labeled.delete")
def labeled_delete():
    labeled = delete_labeled(required_id(), _actor_id("deleted_by"))
    return jsonify({"message": "Caja eliminada correctamente", "data": labeled_to_dict(labeled)})


# Technicians, customers and meters


@renovation_bp.post("/technician/newtechnician")
@login_required
@require_permission("technician.create")
def technician_create():
    technician = create_technician(json_payload())
    return jsonify({"data": technician_to_dict(technician)}), 201


@renovation_bp.get("/technician/listtechnicians")
@login_required
def technician_list():
    page, limit = page_params()
    return jsonify(list_technicians(page, limit))


@renovation_bp.get("/technician/gettechnician")
@login_required
def technician_detail():
    return jsonify({"data": technician_to_dict(technician_by_id(required_id()))})


@renovation_bp.put("/technician/updatetechnician")
@login_required
@require_permission("technician.update")
def technician_update():
    technician = update_technician(required_id(), json_payload())
    return jsonify({"data": technician_to_dict(technician)})


@renovation_bp.delete("/technician/deletetechnician")
@login_required
@require_permission("technician.delete")
def technician_delete():
    technician = delete_technician(required_id())
    return jsonify({"message": "Técnico eliminado correctamente", "data": technician_to_dict(technician)})


@renovation_bp.get("/technician/searchtechniciandni")
@login_required
def technician_search():
    return jsonify({"data": technician_to_dict(technician_by_dni(request.args.get("dni", "")))})


@renovation_bp.get("/customer/searchcustomerinscription")
@login_required
def customer_search():
    customer = customer_by_inscription(request.args.get("inscription", ""))
    return jsonify({"data": customer_to_dict(customer)})


@renovation_bp.get("/meterrenovation/searchmeterrenovation")
@login_required
def meter_search():
    return jsonify({"data": meter_to_dict(meter_by_number(request.args.get("meter", "")))})


# Dashboard


@renovation_bp.get("/user/getdocuments")
@login_required
def user_documents():
    rows = documents_by_user(required_id("lot"), request.args.get("filterType", ""))
    return jsonify({"data": rows})


# Reports


@renovation_bp.get("/report/reportactdates")
@login_required
@require_permission("reports.generate")
def report_act_dates():
    report = act_report_by_dates(request.args.get("startDate"), request.args.get("endDate"), _batch_size())
    return _report_response(report)


@renovation_bp.get("/report/reportactlot")
@login_required
@require_permission("reports.generate")
def report_act_lot():
    return _report_response(act_report_by_lot(request.args.get("lot"), _batch_size()))


@renovation_bp.get("/report/reportlot")
@login_required
@require_permission("reports.generate")
def report_lot():
    return _report_response(print_report_by_lot(request.args.get("lot"), _batch_size()))


@renovation_bp.get("/report/reportdates")
@login_required
@require_permission("reports.generate")
def report_dates():
    report = activity_report_by_dates(request.args.get("startDate"), request.args.get("endDate"), _batch_size())
    return _report_response(report)


@renovation_bp.get("/report/reportlabeled")
@login_required
@require_permission("reports.generate")
def report_labeled():
    return _report_response(labeled_report_by_lot(request.args.get("lot"), _batch_size()))
