"""
ClientHub Portal
Blueprint registry.
"""

from flask import request


def json_body():
    """Request JSON as a dict; None when the body is present but not an object."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        return None
    return data


def query_int(name):
    """Optional integer query parameter; invalid values are ignored."""
    value = request.args.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def register_blueprints(app):
    from clienthub.blueprints.admin_bp import admin_bp
    from clienthub.blueprints.health_bp import health_bp
    from clienthub.blueprints.identity_bp import identity_bp
    from clienthub.blueprints.modules_bp import modules_bp
    from clienthub.blueprints.onboarding_bp import onboarding_bp
    from clienthub.blueprints.projects_bp import projects_bp
    from clienthub.blueprints.tasks_bp import tasks_bp
    from clienthub.blueprints.webhooks_bp import webhooks_bp

    for bp in (health_bp, identity_bp, modules_bp, onboarding_bp,
               projects_bp, tasks_bp, admin_bp, webhooks_bp):
        app.register_blueprint(bp)
