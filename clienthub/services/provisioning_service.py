"""
Provisioning Service: create a client organization from a signed contract.

Flow (one transaction, then side effects):
  1. Derive org name + slug from the extracted package info
  2. Slug already taken → report "exists" (idempotent re-delivery)
  3. Create org, assign template, find-or-create the client profile
  4. org_admin membership, pending onboarding workflow, audit row
  5. Welcome email (fire-and-log)
"""

from __future__ import annotations

import logging
import uuid

from email_validator import EmailNotValidError, validate_email
from flask import current_app
from sqlalchemy.exc import IntegrityError

from clienthub.core.exceptions import NotFoundError, ValidationError
from clienthub.core.results import service_boundary
from clienthub.integrations.pandadoc_gateway import slugify, template_for_package
from clienthub.models import db
from clienthub.models.audit import write_audit
from clienthub.models.onboarding import WORKFLOW_PENDING, OnboardingWorkflow
from clienthub.models.organization import (
    ROLE_ORG_ADMIN,
    Organization,
    OrgMembership,
    UserProfile,
)
from clienthub.models.workspace import OrgTemplateAssignment, WorkspaceTemplate
from clienthub.services.email_service import EmailService, app_url

logger = logging.getLogger(__name__)


def _resolve_template(template_name: str) -> WorkspaceTemplate:
    """Named template, else the first active template."""
    template = WorkspaceTemplate.query.filter_by(name=template_name).first()
    if template is not None:
        return template
    fallback = (
        WorkspaceTemplate.query.filter_by(is_active=True)
        .order_by(WorkspaceTemplate.id)
        .first()
    )
    if fallback is None:
        raise NotFoundError("WorkspaceTemplate", template_name)
    logger.warning("Template %r not found; falling back to %r", template_name, fallback.name)
    return fallback


def _find_or_create_profile(email: str, full_name: str | None) -> UserProfile:
    profile = UserProfile.query.filter(db.func.lower(UserProfile.email) == email.lower()).first()
    if profile is not None:
        return profile
    # The identity provider links its subject to this id on first sign-in
    profile = UserProfile(id=str(uuid.uuid4()), email=email, full_name=full_name)
    db.session.add(profile)
    db.session.flush()
    logger.info("Created user profile %s", profile.id)
    return profile


@service_boundary("provision_from_contract")
def provision_from_contract(document_id: str, info: dict):
    """Provision an organization for a completed contract.

    ``info`` is the output of ``extract_package_info``. Returns
    ``{"status": "exists", "org_id"}`` when the slug is already taken,
    else ``{"status": "success", "org_id", "user_id", "template"}``.
    """
    client_email = (info.get("client_email") or "").strip()
    if not client_email:
        raise ValidationError("No client email found", details={"client_email": "required"})
    try:
        client_email = validate_email(client_email, check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid client email: {e}", details={"client_email": "invalid"})
    client_name = info.get("client_name")
    company_name = info.get("company_name") or client_name or client_email.split("@")[0]
    slug = slugify(company_name) or slugify(client_email.split("@")[0])
    if not slug:
        raise ValidationError("Could not derive an organization slug", details={"company_name": "invalid"})

    existing = _existing_org(slug)
    if existing is not None:
        logger.info("Organization already exists: %s", slug, extra={"org_id": existing.id})
        return {"status": "exists", "org_id": existing.id}

    template_name = template_for_package(info.get("package_name"),
                                         current_app.config.get("DEFAULT_TEMPLATE_NAME")
                                         or "standard-client-portal")
    template = _resolve_template(template_name)

    try:
        org, profile = _create_org(document_id, info, company_name, slug, template,
                                   client_email, client_name)
    except IntegrityError:
        # A concurrent delivery committed the same slug first
        db.session.rollback()
        existing = _existing_org(slug)
        if existing is None:
            raise
        logger.info("Organization created concurrently: %s", slug, extra={"org_id": existing.id})
        return {"status": "exists", "org_id": existing.id}
    logger.info("Provisioned organization %s from contract %s", slug, document_id,
                extra={"org_id": org.id, "user_id": profile.id})

    send_welcome_email(org, profile)
    return {"status": "success", "org_id": org.id, "user_id": profile.id, "template": template.name}


def _existing_org(slug: str) -> Organization | None:
    return Organization.query.filter_by(slug=slug).first()


def _create_org(document_id, info, company_name, slug, template, client_email, client_name):
    """Insert org, assignment, admin membership, workflow and audit row; commit once."""
    org = Organization(
        name=company_name[:200],
        slug=slug,
        settings={
            "pandadoc_document_id": document_id,
            "package": info.get("package_name"),
            "tier": info.get("tier_level"),
        },
        onboarding_status="pending",
    )
    db.session.add(org)
    db.session.flush()

    db.session.add(OrgTemplateAssignment(org_id=org.id, template_id=template.id, assigned_by=None))
    profile = _find_or_create_profile(client_email, client_name)
    db.session.add(OrgMembership(org_id=org.id, user_id=profile.id, role=ROLE_ORG_ADMIN))
    db.session.add(OnboardingWorkflow(org_id=org.id, status=WORKFLOW_PENDING, completed_steps=[]))
    write_audit(
        entity_type="organization", entity_id=org.id, action="org_created_from_contract",
        org_id=org.id,
        metadata={
            "pandadoc_document_id": document_id,
            "package": info.get("package_name"),
            "tier": info.get("tier_level"),
            "client_email": client_email,
            "template": template.name,
        },
    )
    db.session.commit()
    return org, profile


def send_welcome_email(org: Organization, profile: UserProfile) -> bool:
    """Welcome email for a freshly provisioned org admin. Never raises."""
    try:
        result = EmailService.deliver(
            to_email=profile.email,
            to_name=profile.full_name,
            template_name="welcome",
            context={
                "name": profile.full_name or profile.email,
                "org_name": org.name,
                "login_url": app_url("/login"),
            },
            category="onboarding",
            org_id=org.id,
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Failed to send welcome email", extra={"org_id": org.id})
        return False
    if not result.ok:
        logger.error("Welcome email failed: %s", result.message, extra={"org_id": org.id})
    return result.ok
