"""Pytest configuration and fixtures"""
from typing import List, Optional, Tuple

import pytest

from cartengine.cart import Address, CartStorage, CartStore, Partition, Product
from cartengine.db import InMemoryStore


class RecordingStore(InMemoryStore):
    """InMemoryStore that remembers every write and delete."""

    def __init__(self):
        super().__init__()
        self.writes: List[Tuple[str, str, Optional[int]]] = []
        self.deletes: List[str] = []

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        self.writes.append((key, value, ex))
        return await super().set(key, value, ex=ex)

    async def delete(self, *keys: str) -> int:
        self.deletes.extend(keys)
        return await super().delete(*keys)


@pytest.fixture(autouse=True)
def clean_cart_env(monkeypatch):
    """Keep host CART_* variables out of tests."""
    for name in (
        "CART_STORAGE_NAMESPACE",
        "CART_DEFAULT_STORE_ID",
        "CART_TTL_SECONDS",
        "CART_USE_PROCESSOR_FEE",
        "CART_PROCESSOR_FEE_RATE",
        "CART_CURRENCY",
        "CART_LOCALE",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def kv():
    """Recording in-memory key-value store"""
    return RecordingStore()


@pytest.fixture
def storage(kv):
    """Cart storage on top of the in-memory store"""
    return CartStorage(kv, namespace="TEST_CART")


@pytest.fixture
def store(storage):
    """Cart store with a fresh public cart for shop-1"""
    return CartStore(storage.new_record("shop-1", Partition.PUBLIC), storage)


@pytest.fixture
def tshirt():
    """Sample product"""
    return Product(
        product_key="tshirt",
        variant_id="tshirt-black-m",
        price="10",
        name="Black T-Shirt",
        attributes={"size": "M", "color_code": "#000000"},
    )


@pytest.fixture
def poster():
    """Second sample product"""
    return Product(
        product_key="poster",
        variant_id="poster-a2",
        price="7.50",
        name="Poster A2",
    )


@pytest.fixture
def sample_address():
    """Complete US billing address"""
    return Address(
        first_name="Ada",
        last_name="Lovelace",
        country="US",
        street="12 Analytical Way",
        apt_no="4B",
        city="Springfield",
        zip="62701",
        state="IL",
        email="ada@example.com",
        phone_number="+15550100",
    )
