"""Cart persistence on top of a key-value store."""
import json
from datetime import datetime, timezone
from typing import Optional

from cartengine.config import get_cart_settings
from cartengine.db import KeyValueStore, StorageKeys
from cartengine.errors import ERROR_STORAGE_UNAVAILABLE
from cartengine.logging import cart_ref, get_logger

from .models import CartConfig, CartRecord, Partition

logger = get_logger(__name__)


class CartStorage:
    """
    Serialises cart records to JSON under
    "<namespace>_<store_id>_<CART|PUBLIC|PRIVATE>".

    Handlers are never part of a record, so they are never written.
    """

    def __init__(
        self,
        store: KeyValueStore,
        namespace: Optional[str] = None,
        ttl: Optional[int] = None,
        default_config: Optional[CartConfig] = None,
    ):
        settings = get_cart_settings()
        self.store = store
        self.namespace = namespace or settings.storage_namespace
        self.ttl = ttl if ttl is not None else settings.ttl_seconds
        self.default_config = default_config or CartConfig(
            use_processor_fee=settings.use_processor_fee,
            processor_fee_rate=settings.processor_fee_rate,
        )

    def key(self, store_id: str, partition: Partition) -> str:
        return StorageKeys.cart_key(self.namespace, store_id, Partition(partition).value)

    def new_record(self, store_id: str, partition: Partition) -> CartRecord:
        return CartRecord.default(store_id, Partition(partition), self.default_config)

    async def load(self, store_id: str, partition: Partition = Partition.PUBLIC) -> CartRecord:
        """
        Load a store's cart, or a fresh default one.

        Corrupted data is logged, removed and treated as no prior cart.
        """
        key = self.key(store_id, partition)
        try:
            data = await self.store.get(key)
        except Exception as e:
            logger.error(f"Failed to load cart {cart_ref(store_id, partition)} from storage: {e}")
            raise ValueError(f"{ERROR_STORAGE_UNAVAILABLE}: {str(e)}")

        if not data:
            return self.new_record(store_id, partition)

        try:
            record = CartRecord.from_dict(json.loads(data), self.default_config)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(
                f"Corrupted cart data for {cart_ref(store_id, partition)}: {e}"
            )
            await self.store.delete(key)
            return self.new_record(store_id, partition)

        # the key is authoritative for where this record lives
        record.store_id = store_id
        record.partition = Partition(partition)
        return record

    async def save(self, record: CartRecord) -> bool:
        """
        Write the record with the configured TTL (none by default).

        Raises:
            TypeError: the record holds a value JSON cannot encode
            ValueError: the storage backend failed
        """
        key = self.key(record.store_id, record.partition)
        record.updated_at = datetime.now(timezone.utc).isoformat()
        data = json.dumps(record.to_dict())
        try:
            await self.store.set(key, data, ex=self.ttl)
            return True
        except Exception as e:
            logger.error(f"Failed to save cart {cart_ref(record.store_id, record.partition)} to storage: {e}")
            raise ValueError(f"{ERROR_STORAGE_UNAVAILABLE}: {str(e)}")

    async def delete(self, store_id: str, partition: Partition = Partition.PUBLIC) -> bool:
        try:
            await self.store.delete(self.key(store_id, partition))
            return True
        except Exception as e:
            logger.error(f"Failed to clear cart {cart_ref(store_id, partition)} from storage: {e}")
            raise ValueError(f"{ERROR_STORAGE_UNAVAILABLE}: {str(e)}")
