"""
Pricing pipeline for a cart record.

Stages always run in this order:
    subtotal/quantity -> tax -> processor fee -> shipping cost -> total

Tax, processor fee and shipping can each be replaced by a host handler
(price.tax, price.stripeFee, price.shipping) that writes the stage's
fields on the record itself.
"""
from decimal import Decimal

from cartengine.services.money import add, multiply, round_money

from .events import EventBus, EventLabel
from .models import CartRecord


def calculate_subtotal(record: CartRecord) -> None:
    """Re-derive line totals, subtotal and total quantity from the items."""
    subtotal = Decimal("0")
    quantity = 0
    for item in record.items:
        item.recompute()
        subtotal += item.line_total
        quantity += item.quantity
    record.pricing.subtotal = subtotal
    record.pricing.total_quantity = quantity


def default_tax(record: CartRecord) -> None:
    pricing = record.pricing
    if pricing.tax_rate > 0:
        pricing.tax_amount = multiply(add(pricing.subtotal, pricing.shipping_amount), pricing.tax_rate)
    else:
        pricing.tax_amount = Decimal("0")


def default_processor_fee(record: CartRecord) -> None:
    """
    Payment processor surcharge.

    NOTE: the fee is multiplied by the rate twice: (t + t * rate) * rate.
    Kept as-is until product confirms whether t * rate was intended.
    """
    pricing = record.pricing
    if not record.config.use_processor_fee:
        pricing.processor_fee = Decimal("0")
        return
    rate = record.config.processor_fee_rate
    base = pricing.subtotal + pricing.tax_amount + pricing.shipping_amount
    pricing.processor_fee = (base + base * rate) * rate


def default_shipping(record: CartRecord) -> None:
    pricing = record.pricing
    pricing.shipping_cost = add(pricing.shipping_amount, pricing.processor_fee)


def calculate_total(record: CartRecord) -> None:
    pricing = record.pricing
    pricing.total = (
        pricing.subtotal + pricing.tax_amount + pricing.shipping_cost + pricing.additional_fee
    )


class PricingEngine:
    """Runs the pricing stages against a record, honouring price.* overrides."""

    def __init__(self, events: EventBus):
        self.events = events

    def _stage(self, label: EventLabel, record: CartRecord, default) -> None:
        if self.events.has(label):
            self.events.call(label, record)
        else:
            default(record)

    def apply(self, record: CartRecord) -> CartRecord:
        """Recompute every derived pricing field on record in place."""
        calculate_subtotal(record)
        self._stage(EventLabel.PRICE_TAX, record, default_tax)
        # tax is visible, so later stages see the rounded amount
        record.pricing.tax_amount = round_money(record.pricing.tax_amount)
        self._stage(EventLabel.PRICE_STRIPE_FEE, record, default_processor_fee)
        self._stage(EventLabel.PRICE_SHIPPING, record, default_shipping)
        calculate_total(record)
        record.pricing.total = round_money(record.pricing.total)
        return record
