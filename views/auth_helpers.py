# Purpose: Caller gating for the Bond Generator API.
# `require_caller` resolves a bearer token to a caller id (settings.yaml auth.api_tokens)
# and stores it on flask.g before the wrapped view runs.

import functools
import hmac
import logging
from typing import Optional

from flask import g, jsonify, request

from bond_generator.errors import UnauthorizedError
from core.settings_loader import get_auth_settings

logger = logging.getLogger(__name__)

ANONYMOUS_CALLER = "anonymous"


def _bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def resolve_caller() -> str:
    """Returns the caller id for the current request or raises UnauthorizedError."""
    auth = get_auth_settings()
    if not auth["enabled"]:
        return ANONYMOUS_CALLER
    token = _bearer_token()
    if token is None:
        raise UnauthorizedError("Missing bearer token")
    for known, caller in auth["api_tokens"].items():
        if hmac.compare_digest(str(known), token):
            return str(caller)
    raise UnauthorizedError("Unknown API token")


def require_caller(f):
    """Decorator rejecting requests without a known bearer token (401 JSON error)."""

    @functools.wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            g.caller_id = resolve_caller()
        except UnauthorizedError as e:
            logger.warning(f"Rejected {request.method} {request.path}: {e.message}")
            return jsonify({"status": "error", **e.to_dict()}), e.status_code
        return f(*args, **kwargs)

    return decorated_function
