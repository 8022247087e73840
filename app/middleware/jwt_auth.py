"""
JWT Auth Middleware — parses the bearer token, sets g.jwt_user_id.

The middleware never rejects a request by itself. It only records the
verified identity; routes guarded by ``require_scope`` turn a missing
identity into a 401.

    Authorization: Bearer <token>  →  g.jwt_user_id = payload["sub"]
    missing / expired / invalid    →  g.jwt_user_id = None
"""

import logging

import jwt as pyjwt
from flask import g, request

from app.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/health",
    "/static/",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.jwt_user_id = None
        g.scope = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:].strip()
        try:
            payload = decode_access_token(token)
            g.jwt_user_id = str(payload["sub"])
        except pyjwt.ExpiredSignatureError:
            logger.info("JWT expired on %s", path)
        except pyjwt.InvalidTokenError as exc:
            logger.warning("JWT rejected on %s: %s", path, exc)
