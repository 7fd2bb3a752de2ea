"""
HTTP-backed cart handlers.

Ready-made `rates` and `submit` handlers for hosts whose rate lookup and
order creation live behind a plain JSON endpoint:

    store.on("rates", HttpRatesHandler("https://shop.example/api/rates"))
    store.on("submit", HttpSubmitHandler("https://shop.example/api/orders"))
"""
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cartengine.cart.models import CartRecord
from cartengine.errors import RatesUnavailableError
from cartengine.logging import get_logger
from cartengine.services.money import to_decimal, to_float

logger = get_logger(__name__)


class RatesResponse(BaseModel):
    """Body a rates endpoint answers with."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    tax_rate: Decimal = Field(default=Decimal("0"), alias="taxRate", ge=0)
    shipping_rate: Decimal = Field(default=Decimal("0"), alias="shippingRate", ge=0)


class _HttpHandler:
    def __init__(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.headers = headers or {}
        self._http_client = client

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Lazy creation of shared httpx client with timeouts."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(10.0, connect=5.0, read=10.0, write=10.0),
                limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
            )
        return self._http_client

    async def _post(self, payload: Dict[str, Any]) -> Any:
        client = await self._get_http_client()
        response = await client.post(self.url, headers=self.headers, json=payload)
        response.raise_for_status()
        return response.json()

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None


class HttpRatesHandler(_HttpHandler):
    """POSTs the shipment payload and applies the returned rates to the cart."""

    async def __call__(self, cart: CartRecord, shipment: Dict[str, Any]) -> None:
        data = await self._post(shipment)
        try:
            rates = RatesResponse.model_validate(data)
        except ValidationError as e:
            raise RatesUnavailableError(f"Invalid rates response: {e}")

        cart.pricing.tax_rate = to_decimal(rates.tax_rate)
        cart.pricing.shipping_amount = to_decimal(rates.shipping_rate)
        logger.debug(
            "Rates applied: tax_rate=%s shipping=%s", rates.tax_rate, rates.shipping_rate
        )


def order_body(cart: CartRecord, payload: Any) -> Dict[str, Any]:
    """JSON body for an order request: the cart plus the host's payload."""
    pricing = cart.pricing
    return {
        "store_id": cart.store_id,
        "coupon": cart.coupon,
        "items": [
            {
                "product_key": item.product_key,
                "variant_id": item.variant_id,
                "name": item.name,
                "quantity": item.quantity,
                "unit_price": to_float(item.unit_price),
            }
            for item in cart.items
        ],
        "billing_address": cart.billing_address.to_dict() if cart.billing_address else None,
        "shipping_address": cart.shipping_address.to_dict() if cart.shipping_address else None,
        "shipment": cart.shipment,
        "amounts": {
            "subtotal": to_float(pricing.subtotal),
            "tax": to_float(pricing.tax_amount),
            "shipping": to_float(pricing.shipping_cost),
            "additional_fee": to_float(pricing.additional_fee),
            "total": to_float(pricing.total),
        },
        "payload": payload,
    }


class HttpSubmitHandler(_HttpHandler):
    """POSTs the order and returns the endpoint's JSON answer."""

    async def __call__(self, cart: CartRecord, payload: Any) -> Any:
        result = await self._post(order_body(cart, payload))
        logger.info("Order accepted by %s", self.url)
        return result
