"""Cart store: the mutable cart of one store, its pricing and its hooks."""
import copy
from typing import Any, Mapping, Optional, Union

from cartengine.config import get_cart_settings
from cartengine.errors import (
    ERROR_BILLING_ADDRESS_MISSING,
    ERROR_RATES_REFRESHING,
    ERROR_SUBMIT_FAILED,
    ERROR_SUBMIT_HANDLER_MISSING,
)
from cartengine.logging import cart_ref, get_logger, sanitize_string_for_logging
from cartengine.services.money import to_decimal, is_non_negative

from .events import EventBus, EventLabel, Handler
from .models import (
    Address,
    CartLineItem,
    CartRecord,
    OrderSubmission,
    Partition,
    Product,
)
from .pricing import PricingEngine
from .rates import RateRefreshWorkflow
from .storage import CartStorage

logger = get_logger(__name__)

ProductLike = Union[Product, Mapping[str, Any]]
AddressLike = Union[Address, Mapping[str, Any]]


def _as_product(product: ProductLike) -> Product:
    if isinstance(product, Product):
        return product
    return Product.from_dict(product)


def _as_address(address: AddressLike) -> Address:
    if isinstance(address, Address):
        return copy.deepcopy(address)
    return Address.from_dict(address)


def _validate_quantity(amount: Any) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise ValueError("amount must be a non-negative integer")
    return amount


class CartStore:
    """
    Owns one cart record and every way to change it.

    Construct once per store identifier with CartStore.open() and hand the
    instance to whatever needs the cart.

    Every state change is priced synchronously, persisted and announced
    through the update handler. Item and billing-address changes then run
    a rate refresh.
    """

    def __init__(self, record: CartRecord, storage: CartStorage, events: Optional[EventBus] = None):
        self.record = record
        self.storage = storage
        self.events = events or EventBus()
        self.pricing = PricingEngine(self.events)
        self.rates = RateRefreshWorkflow(self)

    @classmethod
    async def open(
        cls,
        storage: CartStorage,
        store_id: Optional[str] = None,
        partition: Partition = Partition.PUBLIC,
    ) -> "CartStore":
        """Load the persisted cart for store_id, or start a default one."""
        store_id = store_id or get_cart_settings().default_store_id
        record = await storage.load(store_id, partition)
        # no refresh survives a restart
        record.flags.is_refreshing_rates = False
        return cls(record, storage)

    # ── Hooks ─────────────────────────────────────────────────────────

    def on(self, label: Union[str, EventLabel], handler: Handler) -> "CartStore":
        """Bind handler to label (replacing any previous one). Chainable."""
        self.events.on(label, handler)
        return self

    # ── Snapshots and persistence ─────────────────────────────────────

    def get_snapshot(self) -> CartRecord:
        """Deep copy of the current record; changing it never touches the store."""
        return copy.deepcopy(self.record)

    @property
    def is_refreshing_rates(self) -> bool:
        return self.record.flags.is_refreshing_rates

    async def commit(self) -> None:
        """Persist the record, then hand a snapshot to the update handler."""
        await self.storage.save(self.record)
        await self.events.trigger(EventLabel.UPDATE, self.get_snapshot())

    def _reprice(self) -> None:
        self.pricing.apply(self.record)
        self.record.flags.has_items = len(self.record.items) > 0

    async def _items_changed(self) -> None:
        self._reprice()
        await self.commit()
        await self.rates.run()

    # ── Items ─────────────────────────────────────────────────────────

    async def add_item(self, product: ProductLike) -> CartRecord:
        """Add one unit; an existing variant has its quantity increased."""
        product = _as_product(product)
        line = self.record.find_variant(product.variant_id)
        if line:
            line.set_quantity(line.quantity + 1)
        else:
            self.record.items.append(CartLineItem.from_product(product, 1))
        await self._items_changed()
        return self.record

    async def update_item(self, product: ProductLike, amount: int) -> CartRecord:
        """
        Set a variant's quantity.

        amount == 0 removes the line (or does nothing at all when absent);
        amount > 0 sets the quantity, inserting the line if needed.

        Raises:
            ValueError: amount is negative or not an integer
        """
        product = _as_product(product)
        amount = _validate_quantity(amount)
        line = self.record.find_variant(product.variant_id)

        if amount == 0 and line is None:
            return self.record

        if amount == 0:
            self.record.items.remove(line)
        elif line is None:
            self.record.items.append(CartLineItem.from_product(product, amount))
        else:
            line.set_quantity(amount)

        await self._items_changed()
        return self.record

    async def remove_item(self, product: ProductLike) -> CartRecord:
        """Remove the line with product's key; absent products are fine."""
        product = _as_product(product)
        index = self.record.find_product_index(product.product_key)
        if index > -1:
            del self.record.items[index]
        await self._items_changed()
        return self.record

    # ── Addresses ─────────────────────────────────────────────────────

    async def set_billing_address(self, address: AddressLike, is_valid: bool = True) -> CartRecord:
        """Set billing address; mirrored to shipping unless a separate one is used."""
        record = self.record
        record.billing_address = _as_address(address)
        record.validity.billing_valid = bool(is_valid)

        if not record.use_different_shipping:
            record.shipping_address = copy.deepcopy(record.billing_address)
            record.validity.shipping_valid = bool(is_valid)

        await self.commit()
        await self.rates.run()
        return record

    async def set_shipping_address(self, address: AddressLike, is_valid: bool = True) -> CartRecord:
        """Ship somewhere other than the billing address."""
        record = self.record
        record.use_different_shipping = True
        record.shipping_address = _as_address(address)
        record.validity.shipping_valid = bool(is_valid)
        await self.commit()
        return record

    async def use_billing_for_shipping(self) -> CartRecord:
        record = self.record
        record.use_different_shipping = False
        record.shipping_address = copy.deepcopy(record.billing_address)
        record.validity.shipping_valid = record.validity.billing_valid
        await self.commit()
        return record

    # ── Coupon and fees ───────────────────────────────────────────────

    async def set_coupon(self, code: str) -> CartRecord:
        """Store the coupon code. Discounts are left to the host."""
        self.record.coupon = code or ""
        logger.debug("Coupon set: %s", sanitize_string_for_logging(self.record.coupon))
        await self.commit()
        return self.record

    def set_additional_fee(self, amount) -> None:
        """
        Set a flat add-on charge. Call recalculate() to apply it.

        Raises:
            ValueError: amount is negative
        """
        if not is_non_negative(amount):
            raise ValueError("additional fee must be non-negative")
        self.record.pricing.additional_fee = to_decimal(amount)

    def set_processor_fee(self, enabled: bool, rate=None) -> None:
        """Configure the processor fee. Call recalculate() to apply it."""
        self.record.config.use_processor_fee = bool(enabled)
        if rate is not None:
            if not is_non_negative(rate):
                raise ValueError("processor fee rate must be non-negative")
            self.record.config.processor_fee_rate = to_decimal(rate)

    async def recalculate(self) -> CartRecord:
        """Reprice with current rates and fees, persist and notify."""
        self._reprice()
        await self.commit()
        return self.record

    # ── Store identity ────────────────────────────────────────────────

    async def set_store_id(self, store_id: str) -> CartRecord:
        """Move the cart under a new store identifier."""
        if store_id and store_id != self.record.store_id:
            self.record.store_id = store_id
            await self.commit()
        return self.record

    async def set_private(self, is_private: bool) -> CartRecord:
        """Switch between the PUBLIC and PRIVATE partitions of this store."""
        partition = Partition.PRIVATE if is_private else Partition.PUBLIC
        record = await self.storage.load(self.record.store_id, partition)
        record.flags.is_refreshing_rates = False
        self.record = record
        await self.commit()
        return self.record

    # ── Orders ────────────────────────────────────────────────────────

    async def submit_order(self, payload: Any = None) -> OrderSubmission:
        """
        Hand the order to the submit handler.

        Never raises for refreshing rates, a missing handler or a failing
        handler; the returned OrderSubmission says what happened. Does not
        clear the cart.
        """
        cart_label = cart_ref(self.record.store_id, self.record.partition)
        if self.record.flags.is_refreshing_rates:
            logger.warning(f"Order for cart {cart_label} refused: rates are refreshing")
            return OrderSubmission(success=False, error=ERROR_RATES_REFRESHING)

        if not self.events.has(EventLabel.SUBMIT):
            logger.error(f"Order for cart {cart_label} refused: submit handler is undefined")
            return OrderSubmission(success=False, error=ERROR_SUBMIT_HANDLER_MISSING)

        try:
            result = await self.events.trigger(EventLabel.SUBMIT, self.get_snapshot(), payload)
        except Exception as e:
            logger.error(f"Order submission failed for cart {cart_label}: {e}", exc_info=True)
            return OrderSubmission(success=False, error=f"{ERROR_SUBMIT_FAILED}: {e}")

        logger.info(f"Order submitted for cart {cart_label}")
        return OrderSubmission(success=True, result=result)

    async def checkout(self, payload: Any = None) -> OrderSubmission:
        """Submit the order and clear the cart when it went through."""
        if self.record.billing_address is None:
            logger.error("Billing address is undefined.")
            self.record.error = ERROR_BILLING_ADDRESS_MISSING
            return OrderSubmission(success=False, error=ERROR_BILLING_ADDRESS_MISSING)

        outcome = await self.submit_order(payload)
        if outcome.success:
            await self.clear()
        else:
            self.record.error = outcome.error
        return outcome

    async def clear(self) -> CartRecord:
        """Reset to defaults, drop the persisted cart and notify."""
        record = self.record
        self.record = self.storage.new_record(record.store_id, record.partition)
        await self.storage.delete(record.store_id, record.partition)
        await self.events.trigger(EventLabel.UPDATE, self.get_snapshot())
        return self.record
