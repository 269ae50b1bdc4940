# marketplace/security.py
from functools import wraps

from flask import request
from flask_login import current_user, login_required

from .errors import Forbidden, InvalidArgument


def roles_required(*roles):
    """Login plus one of the given roles (``'admin'``, ``'user'``, ``'guest'``)."""
    wanted = {r.upper() for r in roles}

    def decorator(view):
        @wraps(view)
        @login_required
        def wrapped(*args, **kwargs):
            if current_user.role.value not in wanted:
                raise Forbidden(f"Requires role: {', '.join(sorted(wanted))}", operation=view.__name__)
            return view(*args, **kwargs)
        return wrapped
    return decorator


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidArgument("Request body must be a JSON object")
    return data


def arg_bool(name: str):
    """Tri-state query flag: None when absent, else true/false."""
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    return raw.strip().lower() in {"1", "true", "yes", "on"}
