from __future__ import annotations

import logging

from sqlalchemy.orm import selectinload
from werkzeug.security import generate_password_hash

from app.core.errors import ConflictError, NotFoundError, ServiceError, ValidationError
from app.core.extensions import db
from app.core.models import Permission, Role, RolePermission, User, UserStatus, utcnow
from app.core.utils import format_datetime, guarded_write, paginate_query

logger = logging.getLogger(__name__)


def permission_to_dict(permission: Permission) -> dict[str, object]:
    return {
        "id": permission.id,
        "key": permission.key,
        "name": permission.name,
        "description": permission.description,
    }


def role_to_dict(role: Role, include_permissions: bool = False) -> dict[str, object]:
    data: dict[str, object] = {
        "id": role.id,
        "name": role.name,
        "description": role.description,
        "created_at": format_datetime(role.created_at),
    }
    if include_permissions:
        data["permissions"] = [permission_to_dict(p) for p in role.permissions]
    return data


def user_to_dict(user: User) -> dict[str, object]:
    return {
        "id": user.id,
        "names": user.names,
        "username": user.username,
        "status": user.status.value,
        "role_id": user.role_id,
        "role": user.role.name if user.role else None,
        "created_at": format_datetime(user.created_at),
    }


def _text(payload: dict, key: str) -> str:
    return str(payload.get(key) or "").strip()


def _status(payload: dict) -> UserStatus:
    raw = _text(payload, "status").upper() or UserStatus.ACTIVE.value
    try:
        return UserStatus(raw)
    except ValueError as exc:
        raise ValidationError("Estado de usuario invalido") from exc


def _username_conflict(username: str, exclude_id: int | None = None) -> ServiceError | None:
    query = User.query.filter(User.username == username, User.deleted_at.is_(None))
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if query.first():
        return ConflictError("El nombre de usuario ya se encuentra registrado")
    return None


def _role_name_conflict(name: str, exclude_id: int | None = None) -> ServiceError | None:
    query = Role.query.filter(Role.name == name, Role.deleted_at.is_(None))
    if exclude_id is not None:
        query = query.filter(Role.id != exclude_id)
    if query.first():
        return ConflictError("El nombre del rol ya existe")
    return None


# Roles


def role_by_id(role_id: int) -> Role:
    role = Role.query.filter_by(id=role_id, deleted_at=None).first()
    if not role:
        raise NotFoundError("El rol no existe")
    return role


def _permission_ids(payload: dict) -> list[int]:
    raw = payload.get("permissions")
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("Los permisos deben enviarse como lista")
    try:
        ids = sorted({int(value) for value in raw})
    except (TypeError, ValueError) as exc:
        raise ValidationError("Identificador de permiso invalido") from exc
    if ids and Permission.query.filter(Permission.id.in_(ids)).count() != len(ids):
        raise ValidationError("Uno o más permisos no existen")
    return ids


def create_role(payload: dict) -> Role:
    name = _text(payload, "name")
    if not name:
        raise ValidationError("El nombre del rol es obligatorio")
    permission_ids = _permission_ids(payload)
    role = Role(
        name=name,
        description=_text(payload, "description"),
        permission_links=[RolePermission(permission_id=pid) for pid in permission_ids],
    )

    def write() -> Role:
        db.session.add(role)
        return role

    guarded_write(write, lambda: _role_name_conflict(name))
    logger.info("Role %s created with %s permissions", role.id, len(permission_ids))
    return role


def update_role(role_id: int, payload: dict) -> Role:
    role = role_by_id(role_id)
    name = _text(payload, "name")
    if not name:
        raise ValidationError("El nombre del rol es obligatorio")
    permission_ids = _permission_ids(payload)

    def write() -> Role:
        role.name = name
        role.description = _text(payload, "description")
        # Old links are deleted before the new pairs are inserted.
        role.permission_links = []
        db.session.flush()
        role.permission_links = [RolePermission(permission_id=pid) for pid in permission_ids]
        return role

    guarded_write(write, lambda: _role_name_conflict(name, role_id))
    logger.info("Role %s updated", role_id)
    return role


def delete_role(role_id: int) -> Role:
    role = role_by_id(role_id)
    role.deleted_at = utcnow()
    db.session.commit()
    logger.info("Role %s deleted", role_id)
    return role


def list_roles(page: int, limit: int) -> dict[str, object]:
    query = Role.query.filter(Role.deleted_at.is_(None)).order_by(Role.id.desc())
    rows, total = paginate_query(query, page, limit)
    return {"data": [role_to_dict(row) for row in rows], "total": total}


def list_user_roles() -> list[Role]:
    return Role.query.filter(Role.deleted_at.is_(None)).order_by(Role.name.asc()).all()


def list_permissions() -> list[Permission]:
    return Permission.query.order_by(Permission.id.asc()).all()


# Users


def user_by_id(user_id: int) -> User:
    user = User.query.filter_by(id=user_id, deleted_at=None).first()
    if not user:
        raise NotFoundError("El usuario no existe")
    return user


def _role_id(payload: dict) -> int | None:
    raw = payload.get("role_id")
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Rol invalido") from exc


def _save_user(user: User, exclude_id: int | None = None) -> User:
    username = user.username

    def write() -> User:
        db.session.add(user)
        return user

    return guarded_write(write, lambda: _username_conflict(username, exclude_id))


def register_user(payload: dict) -> User:
    username = _text(payload, "username")
    password = str(payload.get("password") or "")
    if not username or not password:
        raise ValidationError("Usuario y contraseña son obligatorios.")
    user = User(
        names=_text(payload, "names"),
        username=username,
        password_hash=generate_password_hash(password),
        status=UserStatus.ACTIVE,
    )
    _save_user(user)
    logger.info("User %s registered", user.id)
    return user


def create_user(payload: dict) -> User:
    names = _text(payload, "names")
    username = _text(payload, "username")
    password = str(payload.get("password") or "")
    if not names or not username or not password:
        raise ValidationError("Nombres, usuario y contraseña son obligatorios.")
    role_id = _role_id(payload)
    if role_id is None:
        raise ValidationError("El rol es obligatorio")
    role = role_by_id(role_id)
    user = User(
        names=names,
        username=username,
        password_hash=generate_password_hash(password),
        status=_status(payload),
        role_id=role.id,
    )
    _save_user(user)
    logger.info("User %s created with role %s", user.id, role.id)
    return user


def update_user(user_id: int, payload: dict) -> User:
    user = user_by_id(user_id)
    names = _text(payload, "names")
    username = _text(payload, "username")
    if not names or not username:
        raise ValidationError("Nombres y usuario son obligatorios.")
    status = _status(payload)
    role_id = _role_id(payload)
    role_id = role_by_id(role_id).id if role_id is not None else user.role_id
    user.names = names
    user.username = username
    user.status = status
    user.role_id = role_id
    password = str(payload.get("password") or "")
    if password:
        user.password_hash = generate_password_hash(password)
    _save_user(user, exclude_id=user_id)
    logger.info("User %s updated", user_id)
    return user


def delete_user(user_id: int) -> User:
    user = user_by_id(user_id)
    user.deleted_at = utcnow()
    user.status = UserStatus.INACTIVE
    db.session.commit()
    logger.info("User %s deleted", user_id)
    return user


def list_users(filters: dict[str, str], page: int, limit: int) -> dict[str, object]:
    query = User.query.options(selectinload(User.role)).filter(User.deleted_at.is_(None))
    term = (filters.get("username") or "").strip()
    if term:
        query = query.filter(User.username.ilike(f"%{term}%"))
    rows, total = paginate_query(query.order_by(User.id.desc()), page, limit)
    return {"data": [user_to_dict(row) for row in rows], "total": total}
