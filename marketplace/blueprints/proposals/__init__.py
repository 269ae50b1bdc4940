from flask import Blueprint

proposals_bp = Blueprint("proposals", __name__)

from . import routes  # noqa: E402,F401
