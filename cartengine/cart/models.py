"""Cart models with Decimal-based pricing."""
import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from cartengine.services.money import multiply, parse_price, to_decimal


class Partition(str, Enum):
    """
    Persistence partition of a store's cart.

    - CART: single unpartitioned cart
    - PUBLIC: guest checkout
    - PRIVATE: authenticated users' checkout
    """
    CART = "CART"
    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.lower() == "true"
    return bool(value)


@dataclass
class Address:
    """Postal address with contact details."""
    first_name: str = ""
    last_name: str = ""
    country: str = "US"
    street: str = ""
    apt_no: str = ""
    city: str = ""
    zip: str = ""
    state: str = ""
    cpf_number: str = ""
    email: str = ""
    phone_number: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_dict(self) -> dict:
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "country": self.country,
            "street": self.street,
            "apt_no": self.apt_no,
            "city": self.city,
            "zip": self.zip,
            "state": self.state,
            "cpf_number": self.cpf_number,
            "email": self.email,
            "phone_number": self.phone_number,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Address":
        """Create from dictionary; missing fields keep their blank defaults."""
        return cls(
            first_name=str(data.get("first_name", "")),
            last_name=str(data.get("last_name", "")),
            country=str(data.get("country", "US")),
            street=str(data.get("street", "")),
            apt_no=str(data.get("apt_no", "")),
            city=str(data.get("city", "")),
            zip=str(data.get("zip", "")),
            state=str(data.get("state", "")),
            cpf_number=str(data.get("cpf_number") or ""),
            email=str(data.get("email", "")),
            phone_number=str(data.get("phone_number", "")),
        )


@dataclass
class Product:
    """Product as supplied by the host catalogue."""
    product_key: str
    variant_id: str
    price: Decimal
    name: str = ""
    attributes: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.price = parse_price(self.price)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Product":
        """Create from a catalogue dict; unknown keys go to attributes."""
        known = {"product_key", "variant_id", "price", "name"}
        return cls(
            product_key=str(data["product_key"]),
            variant_id=str(data["variant_id"]),
            price=data["price"],
            name=str(data.get("name") or ""),
            attributes={k: v for k, v in data.items() if k not in known},
        )


@dataclass
class CartLineItem:
    """Single product variant in the cart."""
    product_key: str
    variant_id: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal = Decimal("0")
    name: str = ""
    attributes: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.unit_price = parse_price(self.unit_price, "unit_price")
        self.recompute()

    @classmethod
    def from_product(cls, product: Product, quantity: int = 1) -> "CartLineItem":
        return cls(
            product_key=product.product_key,
            variant_id=product.variant_id,
            unit_price=product.price,
            quantity=quantity,
            name=product.name,
            attributes=copy.deepcopy(product.attributes),
        )

    def recompute(self) -> None:
        """Keep line_total == unit_price * quantity."""
        self.line_total = multiply(self.unit_price, self.quantity)

    def set_quantity(self, quantity: int) -> None:
        self.quantity = quantity
        self.recompute()

    def to_dict(self) -> dict:
        return {
            "product_key": self.product_key,
            "variant_id": self.variant_id,
            "unit_price": str(self.unit_price),
            "quantity": self.quantity,
            "line_total": str(self.line_total),
            "name": self.name,
            "attributes": self.attributes,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CartLineItem":
        attributes = data.get("attributes") or {}
        if not isinstance(attributes, dict):
            raise TypeError("line item attributes must be an object")
        return cls(
            product_key=str(data["product_key"]),
            variant_id=str(data["variant_id"]),
            unit_price=data["unit_price"],
            quantity=int(data["quantity"]),
            name=str(data.get("name") or ""),
            attributes=attributes,
        )


@dataclass
class Pricing:
    """Derived pricing. Only tax_amount and total are rounded."""
    subtotal: Decimal = Decimal("0")
    total_quantity: int = 0
    tax_rate: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")
    shipping_amount: Decimal = Decimal("0")
    shipping_cost: Decimal = Decimal("0")
    processor_fee: Decimal = Decimal("0")
    additional_fee: Decimal = Decimal("0")
    total: Decimal = Decimal("0")

    _DECIMAL_FIELDS = (
        "subtotal",
        "tax_rate",
        "tax_amount",
        "shipping_amount",
        "shipping_cost",
        "processor_fee",
        "additional_fee",
        "total",
    )

    def to_dict(self) -> dict:
        data = {name: str(getattr(self, name)) for name in self._DECIMAL_FIELDS}
        data["total_quantity"] = self.total_quantity
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Pricing":
        values = {name: to_decimal(data.get(name, 0)) for name in cls._DECIMAL_FIELDS}
        return cls(total_quantity=int(data.get("total_quantity", 0)), **values)


@dataclass
class AddressValidity:
    billing_valid: bool = False
    shipping_valid: bool = False

    def to_dict(self) -> dict:
        return {"billing_valid": self.billing_valid, "shipping_valid": self.shipping_valid}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AddressValidity":
        return cls(
            billing_valid=_as_bool(data.get("billing_valid", False)),
            shipping_valid=_as_bool(data.get("shipping_valid", False)),
        )


@dataclass
class CartFlags:
    has_items: bool = False
    is_refreshing_rates: bool = False

    def to_dict(self) -> dict:
        return {"has_items": self.has_items, "is_refreshing_rates": self.is_refreshing_rates}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CartFlags":
        return cls(
            has_items=_as_bool(data.get("has_items", False)),
            is_refreshing_rates=_as_bool(data.get("is_refreshing_rates", False)),
        )


@dataclass
class CartConfig:
    use_processor_fee: bool = False
    processor_fee_rate: Decimal = Decimal("0")

    def __post_init__(self):
        self.processor_fee_rate = to_decimal(self.processor_fee_rate)

    def to_dict(self) -> dict:
        return {
            "use_processor_fee": self.use_processor_fee,
            "processor_fee_rate": str(self.processor_fee_rate),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], default: Optional["CartConfig"] = None) -> "CartConfig":
        default = default or cls()
        return cls(
            use_processor_fee=_as_bool(data.get("use_processor_fee", default.use_processor_fee)),
            processor_fee_rate=to_decimal(data.get("processor_fee_rate", default.processor_fee_rate)),
        )


@dataclass
class CartRecord:
    """The full, serialisable state of one store's cart."""
    store_id: str
    partition: Partition = Partition.PUBLIC
    items: List[CartLineItem] = field(default_factory=list)
    billing_address: Optional[Address] = None
    shipping_address: Optional[Address] = None
    use_different_shipping: bool = False
    validity: AddressValidity = field(default_factory=AddressValidity)
    coupon: str = ""
    pricing: Pricing = field(default_factory=Pricing)
    flags: CartFlags = field(default_factory=CartFlags)
    config: CartConfig = field(default_factory=CartConfig)
    shipment: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    def __post_init__(self):
        now = _now()
        if not self.created_at:
            self.created_at = now
        if not self.updated_at:
            self.updated_at = now

    @classmethod
    def default(
        cls,
        store_id: str,
        partition: Partition = Partition.PUBLIC,
        config: Optional[CartConfig] = None,
    ) -> "CartRecord":
        """Fresh cart: no items, blank US address mirrored to shipping, zero pricing."""
        billing = Address()
        return cls(
            store_id=store_id,
            partition=partition,
            billing_address=billing,
            shipping_address=copy.deepcopy(billing),
            config=copy.deepcopy(config) if config else CartConfig(),
        )

    def find_variant(self, variant_id: str) -> Optional[CartLineItem]:
        return next((item for item in self.items if item.variant_id == variant_id), None)

    def find_product_index(self, product_key: str) -> int:
        return next(
            (index for index, item in enumerate(self.items) if item.product_key == product_key),
            -1,
        )

    def to_dict(self) -> dict:
        """Convert to a plain dict for JSON storage."""
        return {
            "store_id": self.store_id,
            "partition": self.partition.value,
            "items": [item.to_dict() for item in self.items],
            "billing_address": self.billing_address.to_dict() if self.billing_address else None,
            "shipping_address": self.shipping_address.to_dict() if self.shipping_address else None,
            "use_different_shipping": self.use_different_shipping,
            "validity": self.validity.to_dict(),
            "coupon": self.coupon,
            "pricing": self.pricing.to_dict(),
            "flags": self.flags.to_dict(),
            "config": self.config.to_dict(),
            "shipment": self.shipment,
            "error": self.error,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        default_config: Optional[CartConfig] = None,
    ) -> "CartRecord":
        """
        Create from dictionary, field by field.

        Missing fields take their defaults and unknown keys are ignored.

        Raises:
            KeyError, TypeError, ValueError: If a present field has the wrong shape
        """
        if not isinstance(data, Mapping):
            raise TypeError("cart record must be an object")

        billing = data.get("billing_address")
        shipping = data.get("shipping_address")
        shipment = data.get("shipment")
        if shipment is not None and not isinstance(shipment, dict):
            raise TypeError("shipment must be an object")

        return cls(
            store_id=str(data["store_id"]),
            partition=Partition(data.get("partition", Partition.PUBLIC.value)),
            items=[CartLineItem.from_dict(item) for item in data.get("items") or []],
            billing_address=Address.from_dict(billing) if billing is not None else None,
            shipping_address=Address.from_dict(shipping) if shipping is not None else None,
            use_different_shipping=_as_bool(data.get("use_different_shipping", False)),
            validity=AddressValidity.from_dict(data.get("validity") or {}),
            coupon=str(data.get("coupon") or ""),
            pricing=Pricing.from_dict(data.get("pricing") or {}),
            flags=CartFlags.from_dict(data.get("flags") or {}),
            config=CartConfig.from_dict(data.get("config") or {}, default_config),
            shipment=shipment,
            error=data.get("error"),
            created_at=str(data.get("created_at") or ""),
            updated_at=str(data.get("updated_at") or ""),
        )


@dataclass
class OrderSubmission:
    """Outcome of CartStore.submit_order."""
    success: bool
    result: Any = None
    error: Optional[str] = None
