"""PayPal Orders v2 REST client."""

import logging
import threading
import time
from decimal import Decimal
from typing import Any

import requests

from src.core.config import get_settings

logger = logging.getLogger(__name__)

# Refresh the OAuth token this many seconds before PayPal expires it
TOKEN_EXPIRY_MARGIN_SECONDS = 60


class PayPalError(Exception):
    """Raised when the PayPal API rejects a request or is unreachable."""

    def __init__(self, message: str, status_code: int | None = None, debug_id: str | None = None) -> None:
        self.message = message
        self.status_code = status_code
        self.debug_id = debug_id
        super().__init__(message)


def format_amount(amount: Decimal | float | str) -> str:
    """Format an amount the way PayPal expects ("42.00")."""
    return str(Decimal(str(amount)).quantize(Decimal("0.01")))


class PayPalClient:
    """Thin client for the PayPal checkout endpoints the storefront needs."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        api_base: str,
        timeout: float = 15.0,
        session: requests.Session | None = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._token: str | None = None
        self._token_expires_at: float = 0.0
        self._lock = threading.Lock()

    def get_access_token(self) -> str:
        """Return a cached OAuth2 client-credentials token, fetching one if needed."""
        with self._lock:
            if self._token and time.time() < self._token_expires_at:
                return self._token

            try:
                response = self._session.post(
                    f"{self.api_base}/v1/oauth2/token",
                    auth=(self.client_id, self.client_secret),
                    data={"grant_type": "client_credentials"},
                    headers={"Accept": "application/json"},
                    timeout=self.timeout,
                )
            except requests.RequestException as e:
                raise PayPalError(f"PayPal authentication failed: {e}") from e

            if response.status_code >= 400:
                logger.error("PayPal token request failed (%s): %s", response.status_code, response.text)
                raise PayPalError("PayPal authentication failed", status_code=response.status_code)

            body = response.json()
            self._token = body["access_token"]
            expires_in = int(body.get("expires_in", 0))
            self._token_expires_at = time.time() + max(expires_in - TOKEN_EXPIRY_MARGIN_SECONDS, 0)
            return self._token

    def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.get_access_token()}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }
        try:
            response = self._session.request(
                method,
                f"{self.api_base}{path}",
                json=json,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise PayPalError(f"PayPal request failed: {e}") from e

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            message = body.get("message") or body.get("name") or response.text or "PayPal request failed"
            logger.error(
                "PayPal %s %s failed (%s): %s",
                method,
                path,
                response.status_code,
                message,
            )
            raise PayPalError(message, status_code=response.status_code, debug_id=body.get("debug_id"))

        return response.json() if response.content else {}

    def create_order(
        self,
        reference_id: str,
        amount: Decimal,
        currency: str,
        return_url: str,
        cancel_url: str,
        description: str | None = None,
    ) -> dict[str, Any]:
        """Create a PayPal order for capture.

        Args:
            reference_id: Our order ID, echoed back on capture.
            amount: Order total in major units.
            currency: ISO currency code.
            return_url: Where PayPal sends the buyer after approval.
            cancel_url: Where PayPal sends the buyer after cancelling.
            description: Optional purchase description.

        Returns:
            dict: PayPal order with ``id``, ``status`` and ``approval_url``.
        """
        purchase_unit: dict[str, Any] = {
            "reference_id": reference_id,
            "amount": {"currency_code": currency.upper(), "value": format_amount(amount)},
        }
        if description:
            purchase_unit["description"] = description[:127]

        order = self._request(
            "POST",
            "/v2/checkout/orders",
            json={
                "intent": "CAPTURE",
                "purchase_units": [purchase_unit],
                "application_context": {
                    "return_url": return_url,
                    "cancel_url": cancel_url,
                    "shipping_preference": "NO_SHIPPING",
                    "user_action": "PAY_NOW",
                },
            },
        )
        order["approval_url"] = next(
            (link["href"] for link in order.get("links", []) if link.get("rel") in ("approve", "payer-action")),
            None,
        )
        return order

    def capture_order(self, paypal_order_id: str) -> dict[str, Any]:
        """Capture an approved PayPal order."""
        return self._request("POST", f"/v2/checkout/orders/{paypal_order_id}/capture", json={})

    def get_order(self, paypal_order_id: str) -> dict[str, Any]:
        """Fetch a PayPal order."""
        return self._request("GET", f"/v2/checkout/orders/{paypal_order_id}")


_paypal_client: PayPalClient | None = None


def get_paypal_client() -> PayPalClient:
    """Get or create the global PayPal client.

    Raises:
        PayPalError: If PayPal credentials are not configured.
    """
    global _paypal_client
    settings = get_settings()
    if not settings.is_paypal_configured:
        raise PayPalError("PayPal is not configured. Please set PAYPAL_CLIENT_ID and PAYPAL_CLIENT_SECRET.")
    if _paypal_client is None:
        _paypal_client = PayPalClient(
            client_id=settings.paypal_client_id,
            client_secret=settings.paypal_client_secret,
            api_base=settings.paypal_api_base,
            timeout=settings.paypal_timeout_seconds,
        )
    return _paypal_client
