from flask import Blueprint

renovation_bp = Blueprint("renovation", __name__, url_prefix="/api")

from app.renovation import routes  # noqa: E402,F401
