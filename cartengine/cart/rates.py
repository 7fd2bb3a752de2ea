"""
Rate refresh workflow.

Idle -> Refreshing -> Idle. Triggered after item and billing-address
changes; asks the host's rates handler for tax and shipping rates, then
reprices and persists.
"""
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from cartengine.config import get_cart_settings
from cartengine.errors import ERROR_RATES_FAILED
from cartengine.logging import cart_ref, get_logger
from cartengine.services.money import to_decimal, to_float

from .events import EventLabel
from .models import CartRecord

if TYPE_CHECKING:
    from .service import CartStore

logger = get_logger(__name__)

# Keys a rates handler may return instead of mutating the record
_TAX_RATE_KEYS = ("tax_rate", "taxRate")
_SHIPPING_RATE_KEYS = ("shipping_rate", "shippingRate", "shipping_amount", "shippingAmount")


def build_shipment_payload(
    record: CartRecord,
    currency: Optional[str] = None,
    locale: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build the shipment-rate request from line items and the billing address.

    Raises:
        ValueError: record has no billing address
    """
    address = record.billing_address
    if address is None:
        raise ValueError("Billing address is null")

    settings = get_cart_settings()
    items = []
    for item in record.items:
        entry = dict(item.attributes)
        entry.update(
            {
                "name": item.name,
                "product_key": item.product_key,
                "variant_id": item.variant_id,
                "quantity": item.quantity,
                "price": to_float(item.unit_price),
                "value": to_float(item.unit_price),
            }
        )
        items.append(entry)

    return {
        "recipient": {
            "name": address.full_name,
            "company": "",
            "address1": address.street,
            "address2": address.apt_no,
            "city": address.city,
            "state_code": address.state,
            "state_name": address.state,
            "country_code": address.country,
            "country_name": address.country,
            "zip": address.zip,
            "phone": address.phone_number,
            "email": address.email,
            "tax_number": address.cpf_number,
        },
        "items": items,
        "currency": currency or settings.currency,
        "locale": locale or settings.locale,
    }


def _first(data: Mapping[str, Any], keys) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def apply_rates(record: CartRecord, rates: Mapping[str, Any]) -> None:
    """Copy tax/shipping rates returned by a handler onto the record."""
    tax_rate = _first(rates, _TAX_RATE_KEYS)
    shipping = _first(rates, _SHIPPING_RATE_KEYS)
    if tax_rate is not None:
        record.pricing.tax_rate = to_decimal(tax_rate)
    if shipping is not None:
        record.pricing.shipping_amount = to_decimal(shipping)


class RateRefreshWorkflow:
    """
    One refresh per run(). Runs may overlap: they are not queued or
    cancelled and the last to finish wins.

    Pending runs are counted per record, so a record's is_refreshing_rates
    stays set exactly while one of its own runs is in flight. A record
    swapped out by clear() or set_private() never leaks its count into the
    record that replaced it.
    """

    def __init__(self, store: "CartStore"):
        self.store = store
        # id(record) -> pending runs; the record is held by run() meanwhile
        self._pending: Dict[int, int] = {}

    @property
    def in_flight(self) -> int:
        """Pending runs across all records."""
        return sum(self._pending.values())

    def pending_for(self, record: CartRecord) -> int:
        return self._pending.get(id(record), 0)

    def _begin(self, record: CartRecord) -> None:
        self._pending[id(record)] = self.pending_for(record) + 1
        record.flags.is_refreshing_rates = True

    def _finish(self, record: CartRecord) -> None:
        remaining = self.pending_for(record) - 1
        if remaining > 0:
            self._pending[id(record)] = remaining
        else:
            self._pending.pop(id(record), None)
        record.flags.is_refreshing_rates = remaining > 0

    async def run(self) -> bool:
        """
        Refresh rates for the store's current record.

        Returns:
            False if skipped (no valid billing address), True otherwise
        """
        store = self.store
        record = store.record
        if record.billing_address is None or not record.validity.billing_valid:
            logger.debug(
                "Skipping rate refresh for cart %s: billing address not valid",
                cart_ref(record.store_id, record.partition),
            )
            return False

        self._begin(record)
        record.error = None
        try:
            await store.commit()

            shipment = build_shipment_payload(record)
            record.shipment = shipment

            if store.events.has(EventLabel.RATES):
                try:
                    rates = await store.events.trigger(EventLabel.RATES, record, shipment)
                    if isinstance(rates, Mapping):
                        apply_rates(record, rates)
                except Exception as e:
                    logger.warning(
                        f"Rates handler failed for cart {cart_ref(record.store_id, record.partition)}: {e}",
                        exc_info=True,
                    )
                    record.error = ERROR_RATES_FAILED

            store.pricing.apply(record)
        finally:
            self._finish(record)
            if store.record is record:
                await store.commit()
            else:
                # cart was cleared or switched partition while we waited
                logger.debug(
                    f"Discarding rate refresh for replaced cart {cart_ref(record.store_id, record.partition)}"
                )
        return True
