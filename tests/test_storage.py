"""
Tests for cart persistence and key-value backends
"""

import json
from decimal import Decimal
from unittest.mock import AsyncMock, Mock

import pytest

from cartengine import db
from cartengine.cart import CartLineItem, CartStorage, Partition
from cartengine.db import InMemoryStore, StorageKeys


class TestStorageKeys:
    """Tests for storage key layout."""

    def test_cart_key_layout(self):
        """Test keys are namespace_store_partition."""
        assert StorageKeys.cart_key("REACT_CART_STORAGE_KEY", "myStore", "PUBLIC") == (
            "REACT_CART_STORAGE_KEY_myStore_PUBLIC"
        )

    def test_storage_key_uses_partition(self, storage):
        """Test CartStorage keys include the partition."""
        assert storage.key("shop-1", Partition.PRIVATE) == "TEST_CART_shop-1_PRIVATE"
        assert storage.key("shop-1", Partition.CART) == "TEST_CART_shop-1_CART"

    def test_namespace_from_env(self, monkeypatch):
        """Test the namespace comes from settings."""
        monkeypatch.setenv("CART_STORAGE_NAMESPACE", "SHOP")
        storage = CartStorage(InMemoryStore())
        assert storage.key("s", Partition.PUBLIC) == "SHOP_s_PUBLIC"


class TestCartStorage:
    """Tests for CartStorage load, save and delete."""

    @pytest.mark.asyncio
    async def test_load_missing_returns_default(self, storage):
        """Test a missing key loads a default record."""
        record = await storage.load("shop-1", Partition.PUBLIC)

        assert record.store_id == "shop-1"
        assert record.items == []
        assert record.billing_address.country == "US"

    @pytest.mark.asyncio
    async def test_round_trip(self, storage, tshirt):
        """Test a saved record loads back equal."""
        record = storage.new_record("shop-1", Partition.PUBLIC)
        record.items.append(CartLineItem.from_product(tshirt, 3))
        record.pricing.shipping_amount = Decimal("4.99")
        record.coupon = "WELCOME"

        await storage.save(record)
        loaded = await storage.load("shop-1", Partition.PUBLIC)

        assert loaded == record
        assert loaded is not record

    @pytest.mark.asyncio
    async def test_partitions_are_separate(self, storage, tshirt):
        """Test PUBLIC and PRIVATE carts are stored apart."""
        record = storage.new_record("shop-1", Partition.PRIVATE)
        record.items.append(CartLineItem.from_product(tshirt))
        await storage.save(record)

        public = await storage.load("shop-1", Partition.PUBLIC)
        private = await storage.load("shop-1", Partition.PRIVATE)

        assert public.items == []
        assert len(private.items) == 1

    @pytest.mark.asyncio
    async def test_saved_json_is_plain(self, storage, kv):
        """Test saved JSON has plain keys and string Decimals."""
        await storage.save(storage.new_record("shop-1", Partition.PUBLIC))

        key, value, _ = kv.writes[-1]
        data = json.loads(value)
        assert key == "TEST_CART_shop-1_PUBLIC"
        assert data["store_id"] == "shop-1"
        assert data["pricing"]["total"] == "0"
        assert "handlers" not in data

    @pytest.mark.asyncio
    async def test_corrupt_data_is_treated_as_absent(self, storage, kv):
        """Test unparsable JSON is deleted and replaced by defaults."""
        await kv.set("TEST_CART_shop-1_PUBLIC", "{not json")

        record = await storage.load("shop-1", Partition.PUBLIC)

        assert record.items == []
        assert "TEST_CART_shop-1_PUBLIC" in kv.deletes
        assert await kv.get("TEST_CART_shop-1_PUBLIC") is None

    @pytest.mark.asyncio
    async def test_wrong_shape_is_treated_as_absent(self, storage, kv):
        """Test structurally wrong data is treated as no cart."""
        await kv.set("TEST_CART_shop-1_PUBLIC", json.dumps({"store_id": "shop-1", "items": [{"quantity": 1}]}))

        record = await storage.load("shop-1", Partition.PUBLIC)

        assert record.items == []

    @pytest.mark.asyncio
    async def test_negative_stored_price_is_treated_as_absent(self, storage, kv):
        """Test a stored line with a negative unit price counts as corrupt data."""
        line = {"product_key": "p", "variant_id": "v", "unit_price": "-5", "quantity": 1}
        await kv.set("TEST_CART_shop-1_PUBLIC", json.dumps({"store_id": "shop-1", "items": [line]}))

        record = await storage.load("shop-1", Partition.PUBLIC)

        assert record.items == []
        assert "TEST_CART_shop-1_PUBLIC" in kv.deletes

    @pytest.mark.asyncio
    async def test_ttl_is_passed_to_backend(self):
        """Test the configured TTL is passed as ex."""
        backend = AsyncMock()
        storage = CartStorage(backend, namespace="NS", ttl=86400)

        await storage.save(storage.new_record("shop-1", Partition.PUBLIC))

        args, kwargs = backend.set.call_args
        assert args[0] == "NS_shop-1_PUBLIC"
        assert kwargs["ex"] == 86400

    @pytest.mark.asyncio
    async def test_backend_failure_raises_value_error(self):
        """Test backend failures raise ValueError."""
        backend = AsyncMock()
        backend.set.side_effect = ConnectionError("redis down")
        storage = CartStorage(backend, namespace="NS")

        with pytest.raises(ValueError):
            await storage.save(storage.new_record("shop-1", Partition.PUBLIC))

    @pytest.mark.asyncio
    async def test_unencodable_attribute_is_not_a_backend_failure(self, storage, kv, tshirt):
        """Test a value JSON cannot encode raises TypeError and writes nothing."""
        record = storage.new_record("shop-1", Partition.PUBLIC)
        line = CartLineItem.from_product(tshirt)
        line.attributes["weight"] = Decimal("0.2")
        record.items.append(line)

        with pytest.raises(TypeError):
            await storage.save(record)
        assert kv.writes == []

    @pytest.mark.asyncio
    async def test_delete(self, storage, kv):
        """Test delete removes the stored cart."""
        await storage.save(storage.new_record("shop-1", Partition.PUBLIC))
        await storage.delete("shop-1", Partition.PUBLIC)

        assert kv.keys() == []


class TestInMemoryStore:
    """Tests for the in-memory key-value store."""

    @pytest.mark.asyncio
    async def test_set_get_delete(self):
        """Test basic set, get and delete."""
        store = InMemoryStore()
        await store.set("k", "v")

        assert await store.get("k") == "v"
        assert await store.delete("k", "missing") == 1
        assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_expiry(self):
        """Test keys expire after ex seconds."""
        now = [1000.0]
        store = InMemoryStore(clock=lambda: now[0])

        await store.set("k", "v", ex=60)
        now[0] += 61

        assert await store.get("k") is None


class TestRedisClient:
    """Tests for the Upstash client singleton."""

    def test_get_redis_requires_credentials(self, monkeypatch):
        """Test missing credentials raise ValueError."""
        monkeypatch.setattr(db, "_redis_client", None)
        monkeypatch.setattr(db, "UPSTASH_REDIS_REST_URL", "")
        monkeypatch.setattr(db, "UPSTASH_REDIS_REST_TOKEN", "")

        with pytest.raises(ValueError):
            db.get_redis()

    def test_get_redis_is_singleton(self, monkeypatch):
        """Test get_redis returns one shared client."""
        monkeypatch.setattr(db, "_redis_client", None)
        monkeypatch.setattr(db, "UPSTASH_REDIS_REST_URL", "https://test.upstash.io")
        monkeypatch.setattr(db, "UPSTASH_REDIS_REST_TOKEN", "test_token")

        client_cls = Mock()
        monkeypatch.setattr(db, "AsyncRedis", client_cls)

        assert db.get_redis() is db.get_redis()
        client_cls.assert_called_once_with(url="https://test.upstash.io", token="test_token")
