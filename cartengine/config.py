"""Cart engine configuration read from the environment."""
import os
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from cartengine.services.money import to_decimal

# Defaults
DEFAULT_STORAGE_NAMESPACE = "REACT_CART_STORAGE_KEY"
DEFAULT_STORE_ID = "DEFAULT_STORE"
DEFAULT_PROCESSOR_FEE_RATE = "0.049"
DEFAULT_CURRENCY = "USD"
DEFAULT_LOCALE = "en_US"

_TRUTHY = ("1", "true", "yes", "on")


@dataclass(frozen=True)
class CartSettings:
    """Snapshot of the environment-driven cart settings."""
    storage_namespace: str
    default_store_id: str
    ttl_seconds: Optional[int]
    use_processor_fee: bool
    processor_fee_rate: Decimal
    currency: str
    locale: str


def _get_ttl() -> Optional[int]:
    raw = os.environ.get("CART_TTL_SECONDS", "").strip()
    if not raw:
        return None
    try:
        ttl = int(raw)
    except ValueError:
        raise ValueError(f"CART_TTL_SECONDS must be an integer, got {raw!r}")
    return ttl if ttl > 0 else None


def get_cart_settings() -> CartSettings:
    """
    Read cart settings from environment variables.

    Read on every call so tests and long-lived hosts pick up changes.
    """
    return CartSettings(
        storage_namespace=os.environ.get("CART_STORAGE_NAMESPACE", DEFAULT_STORAGE_NAMESPACE),
        default_store_id=os.environ.get("CART_DEFAULT_STORE_ID", DEFAULT_STORE_ID),
        ttl_seconds=_get_ttl(),
        use_processor_fee=os.environ.get("CART_USE_PROCESSOR_FEE", "false").lower() in _TRUTHY,
        processor_fee_rate=to_decimal(
            os.environ.get("CART_PROCESSOR_FEE_RATE", DEFAULT_PROCESSOR_FEE_RATE)
        ),
        currency=os.environ.get("CART_CURRENCY", DEFAULT_CURRENCY),
        locale=os.environ.get("CART_LOCALE", DEFAULT_LOCALE),
    )
