"""
PandaDoc Integration Gateway: contract-signing provider.

All outbound HTTP calls to the PandaDoc public API go through this class.
Webhook helpers (signature check, payload parsing, package extraction) are
module-level functions so the webhook blueprint can use them without a
network client.

  - Auth: ``Authorization: API-Key <key>``
  - Timeout: PANDADOC_TIMEOUT seconds (default 15)
  - No retries: the provider re-delivers webhooks on non-2xx responses
  - Failures are logged and surface as empty results, never exceptions

Testability: pass a mock `session` to PandaDocGateway(), or patch
``build_pandadoc_gateway`` where the blueprint imports it.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import re
import time
from typing import Any

import requests
from flask import current_app

logger = logging.getLogger(__name__)

_DEFAULT_API_BASE = "https://api.pandadoc.com/public/v1"
_DEFAULT_TIMEOUT = 15

EVENT_DOCUMENT_STATE_CHANGED = "document_state_changed"
STATUS_DOCUMENT_COMPLETED = "document.completed"

DEFAULT_TEMPLATE_NAME = "standard-client-portal"

PACKAGE_TO_TEMPLATE = {
    "starter": "standard-client-portal",
    "standard": "standard-client-portal",
    "professional": "standard-client-portal",
    "outreach": "outreach-only",
    "outreach-only": "outreach-only",
    "enterprise": "full-stack-agency",
    "full-stack": "full-stack-agency",
}

# Output key → document field names tried in order (case-insensitive)
_FIELD_ALIASES = {
    "package_name": ("package", "package_name", "plan", "tier"),
    "tier_level": ("tier_level", "tier", "level"),
    "company_name": ("company_name", "company", "organization"),
    "client_email": ("client_email", "email", "signer_email"),
    "client_name": ("client_name", "name", "signer_name"),
}


class GatewayResult:
    """Structured return value from PandaDocGateway calls.

    Attributes:
        ok:           True if the call succeeded (HTTP 2xx + no exception).
        status_code:  HTTP status code (None if network-level failure).
        data:         Parsed JSON response body, else None.
        error:        Human-readable error message or None.
        duration_ms:  Round-trip latency in milliseconds.
    """

    __slots__ = ("ok", "status_code", "data", "error", "duration_ms")

    def __init__(self, ok, status_code, data, error, duration_ms=0):
        self.ok = ok
        self.status_code = status_code
        self.data = data
        self.error = error
        self.duration_ms = duration_ms


# ═════════════════════════════════════════════════════════════════════════════
# Webhook helpers
# ═════════════════════════════════════════════════════════════════════════════


def verify_signature(raw_body: bytes, signature: str | None, secret: str | None) -> bool:
    """HMAC-SHA256 hex digest of the raw body, compared in constant time.

    A missing secret or signature rejects the request.
    """
    if not secret:
        logger.error("PandaDoc webhook secret not configured; rejecting webhook")
        return False
    if not signature:
        return False
    if isinstance(raw_body, str):
        raw_body = raw_body.encode("utf-8")
    expected = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature.strip().lower().encode("utf-8"), expected.encode("ascii"))


def parse_payload(raw_body: bytes) -> dict | None:
    """Decode a webhook body. Returns None when it is not a JSON object with ``data.id``.

    PandaDoc may deliver a list of events; the first one is used.
    """
    try:
        payload = json.loads(raw_body)
    except (ValueError, TypeError):
        logger.warning("Failed to parse PandaDoc webhook payload")
        return None
    if isinstance(payload, list):
        payload = payload[0] if payload else None
    if not isinstance(payload, dict):
        return None
    data = payload.get("data")
    if not isinstance(data, dict) or not data.get("id"):
        return None
    return payload


def is_document_completed(payload: dict) -> bool:
    return (
        payload.get("event") == EVENT_DOCUMENT_STATE_CHANGED
        and (payload.get("data") or {}).get("status") == STATUS_DOCUMENT_COMPLETED
    )


def _field_value(fields: list[dict], name: str) -> str | None:
    wanted = name.lower()
    for field in fields:
        if str(field.get("name", "")).lower() == wanted:
            value = field.get("value")
            if value not in (None, ""):
                return str(value)
            return None
    return None


def extract_package_info(document: dict | None, fields: list[dict]) -> dict:
    """Package, tier, company and client contact from document fields.

    The client email and name fall back to the completed signer recipient.
    """
    info = {}
    for key, aliases in _FIELD_ALIASES.items():
        info[key] = next(
            (value for value in (_field_value(fields, alias) for alias in aliases) if value),
            None,
        )

    signer = next(
        (r for r in (document or {}).get("recipients") or []
         if r.get("role") == "signer" and r.get("has_completed")),
        None,
    )
    if signer:
        info["client_email"] = info["client_email"] or signer.get("email")
        signer_name = f"{signer.get('first_name') or ''} {signer.get('last_name') or ''}".strip()
        info["client_name"] = info["client_name"] or signer_name or None
    return info


def slugify(value: str) -> str:
    """Lowercase, runs of non-alphanumerics to "-", no leading/trailing dash."""
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


def template_for_package(package_name: str | None, default: str = DEFAULT_TEMPLATE_NAME) -> str:
    if not package_name:
        return default
    return PACKAGE_TO_TEMPLATE.get(package_name.lower().strip(), default)


# ═════════════════════════════════════════════════════════════════════════════
# API client
# ═════════════════════════════════════════════════════════════════════════════


class PandaDocGateway:
    """PandaDoc public API gateway.

    Usage:
        gateway = build_pandadoc_gateway()
        document = gateway.get_document(document_id)
    """

    def __init__(self, api_key: str, *, api_base: str = _DEFAULT_API_BASE,
                 timeout: int = _DEFAULT_TIMEOUT, session: requests.Session | None = None) -> None:
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._session = session

    @property
    def session(self) -> requests.Session:
        """Return (or lazily create) the requests.Session."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def request(self, method: str, path: str, *, params: dict | None = None) -> GatewayResult:
        """Execute one authenticated request. Always returns (never raises)."""
        url = f"{self.api_base}{path}"
        headers = {
            "Authorization": f"API-Key {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        t0 = time.perf_counter()
        try:
            resp = self.session.request(method, url, headers=headers, params=params,
                                        timeout=self.timeout)
        except requests.Timeout:
            logger.warning("PandaDoc request timed out url=%s", url)
            return GatewayResult(False, None, None, f"Request timed out after {self.timeout}s",
                                 int(self.timeout * 1000))
        except requests.RequestException as exc:
            logger.warning("PandaDoc network error url=%s error=%s", url, exc)
            return GatewayResult(False, None, None, str(exc)[:500])

        duration_ms = int((time.perf_counter() - t0) * 1000)
        if not resp.ok:
            logger.error("PandaDoc API error status=%d url=%s body=%s",
                         resp.status_code, url, resp.text[:500])
            return GatewayResult(False, resp.status_code, None,
                                 f"HTTP {resp.status_code}", duration_ms)
        try:
            data = resp.json() if resp.content else {}
        except ValueError:
            logger.error("PandaDoc returned non-JSON body url=%s", url)
            return GatewayResult(False, resp.status_code, None, "Invalid JSON", duration_ms)
        return GatewayResult(True, resp.status_code, data, None, duration_ms)

    def get_document(self, document_id: str) -> dict | None:
        result = self.request("GET", f"/documents/{document_id}/details")
        return result.data if result.ok else None

    def get_document_fields(self, document_id: str) -> list[dict[str, Any]]:
        result = self.request("GET", f"/documents/{document_id}/fields")
        if not result.ok or not isinstance(result.data, dict):
            return []
        return result.data.get("fields") or []


def build_pandadoc_gateway() -> PandaDocGateway:
    """Gateway configured from the app config (PANDADOC_* keys)."""
    cfg = current_app.config
    return PandaDocGateway(
        cfg.get("PANDADOC_API_KEY") or "",
        api_base=cfg.get("PANDADOC_API_BASE") or _DEFAULT_API_BASE,
        timeout=cfg.get("PANDADOC_TIMEOUT", _DEFAULT_TIMEOUT),
    )
