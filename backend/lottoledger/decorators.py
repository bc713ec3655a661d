# Overview: Request decorators establishing store context and translating ledger errors.

from functools import wraps
from flask import request, jsonify, g, current_app

from .errors import LedgerError
from .services import store_service


STORE_HEADER = "X-Store-Id"


def require_store_context(f):
    """
    Establish the store context for a request.

    The authenticated store comes from the upstream auth/session layer as
    the X-Store-Id header. Routes carrying a store_id path argument may
    omit the header; when both are present they must agree.

    Sets:
    - g.store_context: StoreContext (store_id + timezone)
    - g.store_id: the store id

    Returns 401 if no store is supplied, 403 on a path/header mismatch,
    404 if the store does not exist.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get(STORE_HEADER)
        path_store_id = kwargs.get("store_id")

        if raw is None and path_store_id is None:
            return jsonify({"error": "Store context required"}), 401

        if raw is not None:
            try:
                store_id = int(raw)
            except ValueError:
                return jsonify({"error": f"Invalid {STORE_HEADER} header"}), 400
            if path_store_id is not None and path_store_id != store_id:
                return jsonify({"error": "Store access denied"}), 403
        else:
            store_id = path_store_id

        try:
            context = store_service.get_store_context(store_id)
        except LedgerError as e:
            return jsonify(e.to_dict()), e.status_code

        g.store_context = context
        g.store_id = context.store_id

        return f(*args, **kwargs)

    return decorated_function


def ledger_errors(action: str):
    """
    Translate ledger errors into JSON responses.

    LedgerError subclasses carry their own status; anything else is logged
    and reported as a 500 without leaking details.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except LedgerError as e:
                if e.status_code >= 500:
                    current_app.logger.error("Failed to %s: %s", action, e.message)
                return jsonify(e.to_dict()), e.status_code
            except Exception:
                current_app.logger.exception("Failed to %s", action)
                return jsonify({"error": "Internal server error"}), 500

        return decorated_function
    return decorator
