"""
Webhooks Blueprint: contract-signing provider callbacks.

  POST /api/v1/webhooks/pandadoc  → provision an organization on document.completed
  GET  /api/v1/webhooks/pandadoc  → endpoint liveness

Requests carry no identity token; they are authenticated by an HMAC-SHA256
signature of the raw body (``X-PandaDoc-Signature`` header or ``signature``
query parameter).
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from clienthub.core.exceptions import ErrorKind
from clienthub.integrations import pandadoc_gateway as pandadoc
from clienthub.services import provisioning_service
from clienthub.utils.errors import api_error, api_result

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/api/v1/webhooks")


@webhooks_bp.route("/pandadoc", methods=["POST"])
def pandadoc_webhook():
    raw_body = request.get_data()
    signature = request.headers.get("X-PandaDoc-Signature") or request.args.get("signature")

    if not pandadoc.verify_signature(raw_body, signature,
                                     current_app.config.get("PANDADOC_WEBHOOK_SECRET")):
        logger.warning("Invalid PandaDoc webhook signature")
        return api_error(ErrorKind.UNAUTHORIZED, "Invalid signature")

    payload = pandadoc.parse_payload(raw_body)
    if payload is None:
        return api_error(ErrorKind.VALIDATION_ERROR, "Invalid payload")

    document_id = payload["data"]["id"]
    logger.info("PandaDoc webhook received: %s", payload.get("event"), extra={"document_id": document_id})
    if not pandadoc.is_document_completed(payload):
        return jsonify({"status": "ignored", "reason": "Not a completion event"}), 200

    gateway = pandadoc.build_pandadoc_gateway()
    document = gateway.get_document(document_id)
    if document is None:
        logger.error("Could not fetch contract document", extra={"document_id": document_id})
        return api_error(ErrorKind.NOT_FOUND, "Document not found")
    fields = gateway.get_document_fields(document_id)

    info = pandadoc.extract_package_info(document, fields)
    return api_result(provisioning_service.provision_from_contract(document_id, info))


@webhooks_bp.route("/pandadoc", methods=["GET"])
def pandadoc_webhook_status():
    return jsonify({"status": "ok", "endpoint": "PandaDoc webhook"}), 200
