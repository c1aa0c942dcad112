"""
Outbound e-mail: named templates, SMTP delivery and the ``email_logs`` record.

Every message gets an ``EmailLog`` row. Without ``MAIL_SERVER`` the row is
marked sent and nothing leaves the process (development and tests). SMTP
errors mark the row failed; they never propagate, because every caller
treats e-mail as a side effect of an operation that already succeeded.

Templates render with ``str.format_map``; a missing placeholder is left in
the output as ``{name}`` rather than failing the send.
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from typing import Any

from flask import current_app

from clienthub.core.exceptions import ErrorKind
from clienthub.core.results import ServiceResult
from clienthub.models import db
from clienthub.models.base import utcnow
from clienthub.models.email import EmailLog

logger = logging.getLogger(__name__)

SMTP_TIMEOUT = 30


def _layout(body: str) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 560px; margin: 0 auto; color: #1e293b;">'
        '<p style="font-size: 13px; letter-spacing: .08em; color: #64748b;">CLIENTHUB</p>'
        f"{body}"
        '<p style="font-size: 12px; color: #94a3b8; margin-top: 32px;">'
        "You receive this because you have access to a ClientHub workspace.</p>"
        "</div>"
    )


def _button(url_field: str, label: str) -> str:
    return (f'<p><a href="{{{url_field}}}" style="background: #2563eb; color: #fff; '
            f'padding: 9px 18px; border-radius: 5px; text-decoration: none;">{label}</a></p>')


TEMPLATES: dict[str, dict[str, str]] = {
    "welcome": {
        "subject": "Welcome to {org_name} on ClientHub",
        "html": _layout(
            "<p>Hi {name},</p>"
            "<p>Your <strong>{org_name}</strong> workspace is ready. Projects, tasks and "
            "documents shared with our team all live there.</p>"
            + _button("login_url", "Open your portal")
            + "<p>Reply to this e-mail if anything is unclear.</p>"
        ),
        "text": (
            "Hi {name},\n\n"
            "Your {org_name} workspace is ready. Projects, tasks and documents shared "
            "with our team all live there.\n\n"
            "Open your portal: {login_url}\n\n"
            "Reply to this e-mail if anything is unclear.\n"
        ),
    },
    "onboarding_reminder": {
        "subject": "Continue setting up {org_name}",
        "html": _layout(
            "<p>Hi {name},</p>"
            "<p>{org_name} setup is <strong>{percent}%</strong> done. "
            "Next up: <strong>{current_step}</strong>.</p>"
            + _button("dashboard_url", "Continue setup")
        ),
        "text": (
            "Hi {name},\n\n"
            "{org_name} setup is {percent}% done. Next up: {current_step}.\n\n"
            "Continue setup: {dashboard_url}\n"
        ),
    },
    "task_assigned": {
        "subject": "New task assigned: {task_title}",
        "html": _layout(
            "<p>Hi {name},</p>"
            "<p>{assigned_by} assigned you <strong>{task_title}</strong>.</p>"
            '<p style="color: #475569;">{task_description}</p>'
            + _button("task_url", "View task")
        ),
        "text": (
            "Hi {name},\n\n"
            "{assigned_by} assigned you: {task_title}\n\n"
            "{task_description}\n\n"
            "View task: {task_url}\n"
        ),
    },
    "admin_notification": {
        "subject": "[Admin] {subject}",
        "html": _layout(
            "<p><strong>{subject}</strong></p>"
            "<p>{message}</p>"
            + _button("action_url", "{action_label}")
        ),
        "text": "{subject}\n\n{message}\n\n{action_label}: {action_url}\n",
    },
}


class _KeepMissing(dict):

    def __missing__(self, key):
        return "{" + key + "}"


def render(template_name: str, context: dict[str, Any]) -> dict[str, str] | None:
    """Subject, html and text for a template, or None when it does not exist."""
    template = TEMPLATES.get(template_name)
    if template is None:
        return None
    values = _KeepMissing(context)
    return {part: source.format_map(values) for part, source in template.items()}


def app_url(path: str = "") -> str:
    """Absolute portal URL for links inside e-mails."""
    return (current_app.config.get("APP_BASE_URL") or "").rstrip("/") + path


class EmailService:

    @staticmethod
    def smtp_enabled() -> bool:
        return bool(current_app.config.get("MAIL_SERVER"))

    @classmethod
    def send_from_template(
        cls,
        *,
        to_email: str,
        template_name: str,
        context: dict[str, Any],
        to_name: str | None = None,
        category: str = "system",
        org_id: int | None = None,
    ) -> EmailLog | None:
        """Render and send one message. Returns its log row, or None for an unknown template."""
        rendered = render(template_name, context)
        if rendered is None:
            logger.warning("Unknown email template %r", template_name, extra={"org_id": org_id})
            return None

        log = EmailLog(
            recipient_email=to_email,
            recipient_name=to_name,
            subject=rendered["subject"][:500],
            template_name=template_name,
            category=category,
            status="queued",
            org_id=org_id,
        )
        db.session.add(log)
        db.session.flush()

        if not cls.smtp_enabled():
            log.status = "sent"
            log.sent_at = utcnow()
            logger.info("Email recorded without SMTP: %s to %s", template_name, to_email,
                        extra={"org_id": org_id})
            return log

        try:
            cls._smtp_send(cls._build_message(to_email, to_name, rendered))
        except (smtplib.SMTPException, OSError) as exc:
            log.status = "failed"
            log.error_message = str(exc)[:1000]
            logger.error("Email %s to %s failed: %s", template_name, to_email, exc,
                         extra={"org_id": org_id})
            return log

        log.status = "sent"
        log.sent_at = utcnow()
        logger.info("Email %s sent to %s", template_name, to_email, extra={"org_id": org_id})
        return log

    @classmethod
    def deliver(cls, **kwargs) -> ServiceResult:
        """``send_from_template`` as a ServiceResult carrying ``{"id": log_id}``."""
        log = cls.send_from_template(**kwargs)
        if log is None:
            return ServiceResult.failure(ErrorKind.VALIDATION_ERROR, "Unknown email template")
        if log.status == "failed":
            return ServiceResult.failure(ErrorKind.DATABASE_ERROR, log.error_message or "Email failed")
        return ServiceResult.success({"id": log.id})

    @staticmethod
    def _build_message(to_email: str, to_name: str | None, rendered: dict[str, str]) -> EmailMessage:
        cfg = current_app.config
        msg = EmailMessage()
        msg["Subject"] = rendered["subject"]
        msg["From"] = cfg.get("MAIL_DEFAULT_SENDER") or f"noreply@{cfg.get('MAIL_SERVER')}"
        msg["To"] = formataddr((to_name, to_email)) if to_name else to_email
        if cfg.get("MAIL_REPLY_TO"):
            msg["Reply-To"] = cfg["MAIL_REPLY_TO"]
        msg.set_content(rendered["text"])
        msg.add_alternative(rendered["html"], subtype="html")
        return msg

    @staticmethod
    def _smtp_send(msg: EmailMessage) -> None:
        cfg = current_app.config
        with smtplib.SMTP(cfg["MAIL_SERVER"], cfg.get("MAIL_PORT", 587), timeout=SMTP_TIMEOUT) as smtp:
            if cfg.get("MAIL_USE_TLS", True):
                smtp.starttls()
            if cfg.get("MAIL_USERNAME") and cfg.get("MAIL_PASSWORD"):
                smtp.login(cfg["MAIL_USERNAME"], cfg["MAIL_PASSWORD"])
            smtp.send_message(msg)
