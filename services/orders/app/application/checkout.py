"""Hosted checkout sessions on the payment gateway.

Talks to the gateway's REST API (Stripe wire format) over ``httpx``. The
client and credentials are passed in, so every caller decides which
gateway account it uses.
"""

import httpx
from decimal import Decimal, ROUND_HALF_UP
from shared.core import get_logger
from app.domain.errors import GatewayError
from .schemas import CheckoutProduct

logger = get_logger(__name__)


def to_minor_units(price: float) -> int:
    """Convert a major unit price (e.g. 12.5) to minor units (1250)."""
    return int((Decimal(str(price)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class CheckoutGateway:
    def __init__(
        self,
        client: httpx.Client,
        secret_key: str,
        currency: str,
        success_url: str,
        cancel_url: str,
    ):
        self.client = client
        self.secret_key = secret_key
        self.currency = currency
        self.success_url = success_url
        self.cancel_url = cancel_url

    def _form(self, products: list[CheckoutProduct]) -> dict[str, str]:
        form = {
            "payment_method_types[0]": "card",
            "mode": "payment",
            "success_url": self.success_url,
            "cancel_url": self.cancel_url,
        }
        for i, product in enumerate(products):
            prefix = f"line_items[{i}]"
            form[f"{prefix}[price_data][currency]"] = self.currency
            form[f"{prefix}[price_data][product_data][name]"] = product.name
            form[f"{prefix}[price_data][unit_amount]"] = str(to_minor_units(product.price))
            form[f"{prefix}[quantity]"] = str(product.quantity)
        return form

    def create_session(self, products: list[CheckoutProduct]) -> str:
        """Create a checkout session and return its id."""
        if not products:
            raise GatewayError("Cannot create a checkout session without products")

        try:
            response = self.client.post(
                "/v1/checkout/sessions",
                data=self._form(products),
                headers={"Authorization": f"Bearer {self.secret_key}"},
            )
        except httpx.HTTPError as e:
            raise GatewayError(f"Payment gateway unreachable: {e}") from e

        if response.status_code >= 400:
            try:
                message = response.json().get("error", {}).get("message", response.text)
            except ValueError:
                message = response.text
            raise GatewayError(f"Payment gateway rejected checkout session ({response.status_code}): {message}")

        try:
            session_id = response.json().get("id")
        except ValueError:
            session_id = None
        if not session_id:
            raise GatewayError("Payment gateway response has no session id")

        logger.info(
            f"Checkout session {session_id} created",
            extra={'extra_fields': {'session_id': session_id, 'line_items': len(products)}}
        )
        return session_id
