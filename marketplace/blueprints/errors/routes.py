import logging
from datetime import datetime

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from ...errors import MarketplaceError
from ...extensions import db
from . import errors_bp

log = logging.getLogger(__name__)


def _error_name(exc) -> str:
    name = exc.__class__.__name__
    return "".join("_" + c.lower() if c.isupper() else c for c in name).lstrip("_")


def _payload(status: int, error: str, message: str, **extra):
    body = {
        "status": status,
        "error": error,
        "message": message,
        "timestamp": datetime.utcnow().isoformat(),
    }
    body.update(extra)
    return jsonify(body), status


# Domain errors carry their own status
@errors_bp.app_errorhandler(MarketplaceError)
def err_marketplace(e: MarketplaceError):
    if e.status_code >= 500:
        db.session.rollback()
        log.error("%s %s failed: %s", request.method, request.path, e)
    else:
        log.info("%s %s refused: %s", request.method, request.path, e)
    return _payload(
        e.status_code, _error_name(e), e.message,
        operation=e.operation, entityId=e.entity_id, retryable=e.retryable,
    )


# 404/405/... raised by routing or abort()
@errors_bp.app_errorhandler(HTTPException)
def err_http(e: HTTPException):
    return _payload(e.code, e.name.lower().replace(" ", "_"), e.description)


# Last-resort: any other Exception
@errors_bp.app_errorhandler(Exception)
def err_unexpected(e):
    # if a DB action caused this, rollback so the session isn't stuck in a bad transaction
    db.session.rollback()
    log.exception("Unhandled error on %s %s", request.method, request.path)
    # Don't leak internals
    return _payload(500, "internal_error", "Internal server error")
