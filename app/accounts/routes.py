from __future__ import annotations

from flask import jsonify, request
from flask_login import login_required

from app.accounts import accounts_bp
from app.accounts.services import (
    create_role,
    create_user,
    delete_role,
    delete_user,
    list_permissions,
    list_roles,
    list_user_roles,
    list_users,
    permission_to_dict,
    role_by_id,
    role_to_dict,
    update_role,
    update_user,
    user_by_id,
    user_to_dict,
)
from app.core.permissions import require_permission
from app.core.utils import json_payload, page_params, required_id


@accounts_bp.post("/user/newuser")
@login_required
@require_permission("users.create")
def user_create():
    user = create_user(json_payload())
    return jsonify({"data": user_to_dict(user)}), 201


@accounts_bp.get("/user/listusers")
@login_required
def user_list():
    page, limit = page_params()
    return jsonify(list_users({"username": request.args.get("username", "")}, page, limit))


@accounts_bp.get("/user/getuser")
@login_required
def user_detail():
    return jsonify({"data": user_to_dict(user_by_id(required_id()))})


@accounts_bp.put("/user/updateuser")
@login_required
@require_permission("users.update")
def user_update():
    user = update_user(required_id(), json_payload())
    return jsonify({"data": user_to_dict(user)})


@accounts_bp.delete("/user/deleteuser")
@login_required
@require_permission("users.delete")
def user_delete():
    user = delete_user(required_id())
    return jsonify({"message": "Usuario eliminado correctamente", "data": user_to_dict(user)})


@accounts_bp.post("/role/newrole")
@login_required
@require_permission("roles.create")
def role_create():
    role = create_role(json_payload())
    return jsonify({"data": role_to_dict(role, include_permissions=True)}), 201


@accounts_bp.get("/role/listrole")
@login_required
def role_list():
    page, limit = page_params()
    return jsonify(list_roles(page, limit))


@accounts_bp.get("/role/listuserrole")
@login_required
def role_list_for_users():
    return jsonify({"data": [role_to_dict(role) for role in list_user_roles()]})


@accounts_bp.get("/role/getrole")
@login_required
def role_detail():
    return jsonify({"data": role_to_dict(role_by_id(required_id()), include_permissions=True)})


@accounts_bp.put("/role/updaterole")
@login_required
@require_permission("roles.update")
def role_update():
    role = update_role(required_id(), json_payload())
    return jsonify({"data": role_to_dict(role, include_permissions=True)})


@accounts_bp.delete("/role/deleterole")
@login_required
@require_permission("roles.delete")
def role_delete():
    role = delete_role(required_id())
    return jsonify({"message": "Rol eliminado correctamente", "data": role_to_dict(role)})


@accounts_bp.get("/permission/listpermissionrole")
@login_required
def permission_list():
    return jsonify({"data": [permission_to_dict(p) for p in list_permissions()]})
