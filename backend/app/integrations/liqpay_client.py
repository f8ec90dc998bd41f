"""Minimal LiqPay API client: signed checkout payloads and server-to-server actions."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
from typing import Any, Dict, cast

import httpx
from pydantic import SecretStr

logger = logging.getLogger(__name__)

API_VERSION = 3


class LiqPayError(RuntimeError):
    """Raised when the LiqPay API is unreachable or reports an error."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        *,
        error_code: str | None = None,
        error_body: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.error_body = error_body


def encode_data(params: Dict[str, Any]) -> str:
    """base64(JSON(params)), the ``data`` field of every LiqPay exchange."""
    return base64.b64encode(json.dumps(params).encode("utf-8")).decode("ascii")


def decode_data(data: str) -> Dict[str, Any]:
    try:
        decoded = json.loads(base64.b64decode(data, validate=True).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as exc:
        raise ValueError("LiqPay data is not base64-encoded JSON") from exc
    if not isinstance(decoded, dict):
        raise ValueError("LiqPay data must decode to a JSON object")
    return decoded


def sign(private_key: str, data: str) -> str:
    """base64(sha1(private_key + data + private_key))."""
    digest = hashlib.sha1(f"{private_key}{data}{private_key}".encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(private_key: str, data: str, signature: str) -> bool:
    if not data or not signature:
        return False
    return hmac.compare_digest(sign(private_key, data), signature)


class LiqPayClient:
    """Thin client for the LiqPay checkout and request APIs."""

    def __init__(
        self,
        *,
        public_key: str,
        private_key: str | SecretStr,
        api_url: str = "https://www.liqpay.ua/api/request",
        checkout_url: str = "https://www.liqpay.ua/api/3/checkout",
        sandbox: bool = False,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        secret_value = (
            private_key.get_secret_value() if isinstance(private_key, SecretStr) else private_key
        )
        if not public_key or not secret_value:
            raise ValueError("LiqPay public and private keys must be provided")

        self.public_key = public_key
        self._private_key = secret_value
        self.api_url = api_url
        self.checkout_url = checkout_url
        self.sandbox = sandbox
        self._timeout = timeout
        self._transport = transport

    def _with_defaults(self, params: Dict[str, Any]) -> Dict[str, Any]:
        body: Dict[str, Any] = {"public_key": self.public_key, "version": API_VERSION}
        if self.sandbox:
            body["sandbox"] = 1
        body.update({key: value for key, value in params.items() if value is not None})
        return body

    def sign_params(self, params: Dict[str, Any]) -> Dict[str, str]:
        """Return the ``data``/``signature`` pair for ``params`` with key and version filled in."""
        data = encode_data(self._with_defaults(params))
        return {"data": data, "signature": sign(self._private_key, data)}

    def build_checkout(self, params: Dict[str, Any]) -> Dict[str, str]:
        """Signed form fields the frontend posts to the hosted checkout page."""
        return {**self.sign_params(params), "checkout_url": self.checkout_url}

    def verify_callback(self, data: str, signature: str) -> bool:
        return verify_signature(self._private_key, data, signature)

    def refund(self, order_id: str, amount: Any | None = None) -> Dict[str, Any]:
        return self.request("refund", order_id=order_id, amount=amount)

    def status(self, order_id: str) -> Dict[str, Any]:
        return self.request("status", order_id=order_id)

    def unsubscribe(self, order_id: str) -> Dict[str, Any]:
        return self.request("unsubscribe", order_id=order_id)

    def request(self, action: str, **params: Any) -> Dict[str, Any]:
        """Perform a signed server-to-server action and return the decoded response."""

        form = self.sign_params({"action": action, **params})
        with httpx.Client(
            timeout=self._timeout,
            transport=self._transport,
            headers={"Accept": "application/json"},
        ) as client:
            logger.debug(
                "LiqPayClient request",
                extra={"evt": "liqpay_request", "action": action, "order_id": params.get("order_id")},
            )
            try:
                response = client.post(self.api_url, data=form)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                logger.error(
                    "LiqPay API error %s for action %s: %s", status, action, exc.response.text[:500]
                )
                raise LiqPayError(
                    f"LiqPay API responded with status {status}",
                    status_code=status,
                    error_body=exc.response.text,
                ) from exc
            except httpx.RequestError as exc:
                logger.error("LiqPay request failure for action %s: %s", action, str(exc))
                raise LiqPayError("Failed to reach LiqPay API") from exc

        try:
            payload = cast(Dict[str, Any], response.json())
        except json.JSONDecodeError as exc:
            logger.error("Invalid JSON from LiqPay for action %s: %s", action, response.text[:500])
            raise LiqPayError("Received malformed JSON from LiqPay") from exc

        # ``status`` describes the payment itself; ``result`` describes the request.
        if payload.get("result") == "error":
            message = payload.get("err_description") or payload.get("err_code") or "LiqPay error"
            raise LiqPayError(
                str(message),
                status_code=response.status_code,
                error_code=payload.get("err_code"),
                error_body=payload,
            )
        return payload
