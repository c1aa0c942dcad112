"""
Access Decorators: route protection on top of ``access_service``.

Usage:
    @bp.route("/api/v1/orgs/<int:org_id>/tasks", methods=["GET"])
    @require_module("tasks")
    def list_tasks(org_id):
        grant = g.grant       # AccessGrant for the caller
        ...

    @bp.route("/api/v1/admin/templates", methods=["POST"])
    @require_super_admin
    def create_template():
        ...

Unlike a legacy pass-through, a missing identity is always rejected
with 401. The org id is read from the route parameter ``org_id``.
"""

import functools
import logging

from flask import g, request

from clienthub.services import access_service
from clienthub.utils.errors import api_error

logger = logging.getLogger(__name__)


def _org_id(kwargs):
    org_id = kwargs.get("org_id")
    if org_id is None:
        org_id = (request.view_args or {}).get("org_id")
    return org_id


def _guard(check):
    """Build a decorator from ``check(kwargs) -> ServiceResult``."""
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            result = check(kwargs)
            if not result.ok:
                logger.info(
                    "Access denied on %s: %s", f.__name__, result.kind,
                    extra={"org_id": _org_id(kwargs), "error_kind": result.kind},
                )
                return api_error(result.kind, result.message, details=result.details)
            g.grant = result.data
            return f(*args, **kwargs)
        return decorated
    return decorator


def require_auth(f):
    """Any authenticated identity."""
    return _guard(lambda kwargs: access_service.check_auth())(f)


def require_super_admin(f):
    return _guard(lambda kwargs: access_service.check_super_admin())(f)


def require_membership(f):
    """Member of the route's organization (any role) or super admin."""
    return _guard(lambda kwargs: access_service.check_membership(_org_id(kwargs)))(f)


def require_org_admin(f):
    return _guard(lambda kwargs: access_service.check_admin(_org_id(kwargs)))(f)


def require_module(module_key: str):
    """Member of the route's organization with ``module_key`` enabled."""
    return _guard(lambda kwargs: access_service.check_module_access(_org_id(kwargs), module_key))
