"""
Bearer token parsing.

Sets ``g.identity`` for every request: an ``Identity`` when a valid
``Authorization: Bearer <token>`` header is present, otherwise ``None``.
A bad token never aborts here; access checks answer UNAUTHORIZED later, so
a route that does not need identity still works with a stale header.
"""

import logging

import jwt as pyjwt
from flask import g, request

from clienthub.services.jwt_service import identity_from_token

logger = logging.getLogger(__name__)

# Probes and signed provider callbacks carry no user token
ANONYMOUS_PREFIXES = (
    "/api/v1/health",
    "/api/v1/webhooks/",
)


def _bearer_token() -> str | None:
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def init_jwt_middleware(app):

    @app.before_request
    def _load_identity():
        g.identity = None
        if not request.path.startswith("/api/v1/") or request.path.startswith(ANONYMOUS_PREFIXES):
            return

        token = _bearer_token()
        if token is None:
            return
        try:
            g.identity = identity_from_token(token)
        except pyjwt.ExpiredSignatureError:
            logger.debug("Expired identity token on %s", request.path)
        except pyjwt.InvalidTokenError as exc:
            logger.info("Rejected identity token on %s: %s", request.path, exc)
