from __future__ import annotations

import logging

from flask import Blueprint, jsonify, session
from flask_login import current_user, login_required, login_user, logout_user
from werkzeug.security import check_password_hash

from app.accounts.services import register_user
from app.core.errors import ValidationError
from app.core.models import User
from app.core.utils import json_payload

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def session_payload(user: User) -> dict[str, object]:
    return {
        "id": user.id,
        "username": user.username,
        "names": user.names,
        "role": user.role.name if user.role else None,
        "permissions": sorted(user.permission_keys),
    }


@auth_bp.post("/login")
def login_post():
    payload = json_payload()
    username = (payload.get("username") or "").strip()
    password = payload.get("password") or ""
    if not username or not password:
        raise ValidationError("Usuario y contraseña son obligatorios.")
    user = User.query.filter_by(username=username, deleted_at=None).first()
    if not user or not check_password_hash(user.password_hash, password) or not user.is_active:
        logger.info("Login rejected for username=%s", username)
        return jsonify({"error": "Credenciales inválidas"}), 401
    session.permanent = True
    login_user(user)
    logger.info("User %s logged in", user.id)
    return jsonify({"user": session_payload(user)})


@auth_bp.post("/logout")
@login_required
def logout():
    logout_user()
    return jsonify({"message": "Sesion cerrada"})


@auth_bp.get("/session")
def current_session():
    # Sin sesion (o expirada) se devuelve un objeto vacio, no un error
    if not current_user.is_authenticated:
        return jsonify({})
    return jsonify({"user": session_payload(current_user)})


@auth_bp.post("/register")
def register():
    user = register_user(json_payload())
    return jsonify({"id": user.id, "username": user.username, "status": user.status.value}), 201
