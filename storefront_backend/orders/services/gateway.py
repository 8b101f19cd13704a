# orders/services/gateway.py
"""
HOSTED PAYMENT GATEWAY ADAPTERS

Contract the checkout needs:
- create_checkout(request) -> checkout URL bound to our external reference
- parse_confirmation(...) -> verified {external_reference, outcome}

Backends:
- PayOSGateway: PayOS payment-requests API (HMAC-SHA256 checksums)
- FakeGateway: in-memory, for tests and local development

Selection: settings.PAYMENTS["GATEWAY"]["BACKEND"] (dotted path).
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

PAYOS_BASE = "https://api-merchant.payos.vn"

OUTCOME_PAID = "PAID"
OUTCOME_FAILED = "FAILED"

MAX_DESCRIPTION_LENGTH = 25


# ============================================================
# ERRORS / DTOs
# ============================================================


class GatewayError(Exception):
    pass


class InvalidSignatureError(GatewayError):
    pass


class MalformedConfirmationError(GatewayError):
    pass


@dataclass(frozen=True)
class GatewayCheckoutRequest:
    amount: int
    description: str
    external_reference: str
    return_url: str = ""
    cancel_url: str = ""


@dataclass(frozen=True)
class GatewayCheckoutResponse:
    checkout_url: str
    external_reference: str
    raw: dict = field(default_factory=dict)


@dataclass(frozen=True)
class GatewayConfirmation:
    external_reference: str
    outcome: str
    raw: dict = field(default_factory=dict)


def _gateway_cfg() -> dict:
    payments = getattr(settings, "PAYMENTS", {}) or {}
    cfg = payments.get("GATEWAY") if isinstance(payments, dict) else None
    return cfg if isinstance(cfg, dict) else {}


def _safe_preview(text: str, limit: int = 500) -> str:
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit] + " ...(truncated)"


# ============================================================
# BASE
# ============================================================


class PaymentGateway:
    name = "base"

    def create_checkout(self, request: GatewayCheckoutRequest) -> GatewayCheckoutResponse:
        raise NotImplementedError

    def parse_confirmation(
        self,
        *,
        data: Mapping[str, Any],
        raw_body: bytes = b"",
        headers: Mapping[str, str] | None = None,
    ) -> GatewayConfirmation:
        raise NotImplementedError


# ============================================================
# PAYOS
# ============================================================


def _signature_payload(data: Mapping[str, Any]) -> str:
    """
    key=value pairs sorted by key, joined with '&'. None becomes "".
    """
    parts = []
    for key in sorted(data.keys()):
        value = data[key]
        if value is None:
            value = ""
        elif isinstance(value, (dict, list)):
            value = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
        parts.append(f"{key}={value}")
    return "&".join(parts)


class PayOSGateway(PaymentGateway):
    name = "payos"

    def __init__(
        self,
        *,
        client_id: str | None = None,
        api_key: str | None = None,
        checksum_key: str | None = None,
        base_url: str = PAYOS_BASE,
        timeout: int | None = None,
    ):
        cfg = _gateway_cfg()
        self.client_id = (client_id if client_id is not None else cfg.get("CLIENT_ID") or "").strip()
        self.api_key = (api_key if api_key is not None else cfg.get("API_KEY") or "").strip()
        self.checksum_key = (
            checksum_key if checksum_key is not None else cfg.get("CHECKSUM_KEY") or ""
        ).strip()
        self.base_url = base_url.rstrip("/")
        self.timeout = int(timeout if timeout is not None else cfg.get("TIMEOUT") or 15)

    def _require_credentials(self) -> None:
        if not (self.client_id and self.api_key and self.checksum_key):
            raise ImproperlyConfigured(
                "PayOS credentials are not configured. Expected "
                "PAYMENTS['GATEWAY'] CLIENT_ID, API_KEY and CHECKSUM_KEY."
            )

    def sign(self, data: Mapping[str, Any]) -> str:
        return hmac.new(
            self.checksum_key.encode("utf-8"),
            _signature_payload(data).encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def _request_json(self, method: str, path: str, *, body: dict | None = None) -> dict:
        self._require_credentials()

        data = json.dumps(body, ensure_ascii=False).encode("utf-8") if body is not None else None
        req = Request(
            f"{self.base_url}{path}",
            data=data,
            headers={
                "x-client-id": self.client_id,
                "x-api-key": self.api_key,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            method=method,
        )

        try:
            with urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read().decode("utf-8", errors="replace")
        except HTTPError as e:
            preview = _safe_preview(e.read().decode("utf-8", errors="replace"))
            raise GatewayError(f"PayOS HTTPError: {e.code} {preview}") from e
        except URLError as e:
            raise GatewayError(f"PayOS URLError: {e.reason}") from e
        except TimeoutError as e:
            raise GatewayError("PayOS request timed out") from e

        try:
            parsed = json.loads(raw)
        except ValueError as e:
            raise GatewayError(f"PayOS returned non-JSON: {_safe_preview(raw)}") from e

        if not isinstance(parsed, dict):
            raise GatewayError("PayOS returned a non-object JSON body")
        return parsed

    def create_checkout(self, request: GatewayCheckoutRequest) -> GatewayCheckoutResponse:
        signed = {
            "amount": int(request.amount),
            "cancelUrl": request.cancel_url,
            "description": request.description[:MAX_DESCRIPTION_LENGTH],
            "orderCode": int(request.external_reference),
            "returnUrl": request.return_url,
        }
        body = {**signed, "signature": self.sign(signed)}

        parsed = self._request_json("POST", "/v2/payment-requests", body=body)

        if str(parsed.get("code")) != "00":
            raise GatewayError(parsed.get("desc") or "PayOS rejected the payment request")

        data = parsed.get("data") or {}
        checkout_url = str(data.get("checkoutUrl") or "").strip()
        if not checkout_url:
            raise GatewayError("PayOS response carried no checkoutUrl")

        logger.info(
            "PayOS checkout created",
            extra={"external_reference": request.external_reference, "amount": request.amount},
        )

        return GatewayCheckoutResponse(
            checkout_url=checkout_url,
            external_reference=str(data.get("orderCode") or request.external_reference),
            raw=parsed,
        )

    def verify_webhook_signature(self, data: Mapping[str, Any], signature: str | None) -> bool:
        if not signature:
            return False
        self._require_credentials()
        return hmac.compare_digest(self.sign(data), str(signature).strip())

    def parse_confirmation(
        self,
        *,
        data: Mapping[str, Any],
        raw_body: bytes = b"",
        headers: Mapping[str, str] | None = None,
    ) -> GatewayConfirmation:
        event = data.get("data")
        if not isinstance(event, dict):
            raise MalformedConfirmationError("Webhook body has no data object")

        if not self.verify_webhook_signature(event, data.get("signature")):
            raise InvalidSignatureError("Invalid PayOS webhook signature")

        reference = str(event.get("orderCode") or "").strip()
        if not reference:
            raise MalformedConfirmationError("Webhook data has no orderCode")

        outcome = OUTCOME_PAID if str(event.get("code")) == "00" else OUTCOME_FAILED
        return GatewayConfirmation(external_reference=reference, outcome=outcome, raw=dict(data))


# ============================================================
# FAKE (tests / local)
# ============================================================


class FakeGateway(PaymentGateway):
    """
    Records every checkout request; fails them all when should_succeed=False.

    Confirmations are plain {"external_reference", "outcome"} bodies.
    """

    name = "fake"

    def __init__(self, *, should_succeed: bool = True, base_url: str = "https://gateway.test/checkout"):
        self.should_succeed = should_succeed
        self.base_url = base_url.rstrip("/")
        self.calls: list[GatewayCheckoutRequest] = []

    def create_checkout(self, request: GatewayCheckoutRequest) -> GatewayCheckoutResponse:
        self.calls.append(request)
        if not self.should_succeed:
            raise GatewayError("Fake gateway unreachable")

        return GatewayCheckoutResponse(
            checkout_url=f"{self.base_url}/{request.external_reference}",
            external_reference=request.external_reference,
        )

    def parse_confirmation(
        self,
        *,
        data: Mapping[str, Any],
        raw_body: bytes = b"",
        headers: Mapping[str, str] | None = None,
    ) -> GatewayConfirmation:
        reference = str(data.get("external_reference") or "").strip()
        outcome = str(data.get("outcome") or "").strip().upper()
        if not reference or outcome not in {OUTCOME_PAID, OUTCOME_FAILED}:
            raise MalformedConfirmationError("external_reference and outcome PAID|FAILED are required")
        return GatewayConfirmation(external_reference=reference, outcome=outcome, raw=dict(data))


# ============================================================
# RESOLUTION
# ============================================================

_override: PaymentGateway | None = None


def get_gateway() -> PaymentGateway:
    if _override is not None:
        return _override

    backend = _gateway_cfg().get("BACKEND") or "orders.services.gateway.PayOSGateway"
    return import_string(backend)()


def set_gateway(gateway: PaymentGateway) -> None:
    global _override
    _override = gateway


def reset_gateway() -> None:
    global _override
    _override = None
