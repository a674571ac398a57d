from __future__ import annotations

from functools import wraps

from flask import abort
from flask_login import current_user

from app.core.errors import PermissionDeniedError


def require_permission(*keys: str):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if not current_user.is_authenticated:
                abort(401)
            granted = current_user.permission_keys
            if not any(key in granted for key in keys):
                raise PermissionDeniedError("No tiene permisos para realizar esta accion.")
            return fn(*args, **kwargs)

        return wrapper

    return decorator
