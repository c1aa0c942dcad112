"""
Per-blueprint rate limits (Flask-Limiter, keyed by remote address).

Limits come from ``RATE_LIMITS``: ``webhooks`` for provider callbacks,
``write`` for blueprints that mutate tenant data, ``read`` for navigation.
Health probes are exempt. ``RATELIMIT_ENABLED=False`` (testing) turns the
limiter off inside Flask-Limiter itself.
"""

import logging

logger = logging.getLogger(__name__)

BLUEPRINT_TIERS = {
    "webhooks": "webhooks",
    "projects": "write",
    "tasks": "write",
    "onboarding": "write",
    "admin": "write",
    "modules": "read",
    "identity": "read",
}


def init_rate_limits(app, limiter):
    if not app.config.get("RATELIMIT_ENABLED", True):
        return

    limits = app.config.get("RATE_LIMITS", {})
    for bp_name, tier in BLUEPRINT_TIERS.items():
        bp = app.blueprints.get(bp_name)
        if bp is not None and limits.get(tier):
            limiter.limit(limits[tier])(bp)

    health = app.blueprints.get("health")
    if health is not None:
        limiter.exempt(health)

    logger.info("Rate limits applied: %s", {k: v for k, v in limits.items() if v})
