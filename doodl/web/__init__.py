from flask import Blueprint

web_bp = Blueprint("web", __name__, url_prefix="/app")

from doodl.web import routes  # noqa: E402,F401
