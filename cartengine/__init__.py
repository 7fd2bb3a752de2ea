"""
cartengine

Client-side shopping cart state engine:
- cart: records, pricing pipeline, event hooks, persistence, rate refresh
- db: key-value backends (Upstash Redis, in-memory)
- services: money helpers and HTTP rate/order handlers

Note: Imports are lazy so `import cartengine` stays cheap and the HTTP
handlers are only loaded by hosts that use them.
"""

__all__ = [
    "CartStore",
    "CartStorage",
    "InMemoryStore",
    "get_redis",
    "HttpRatesHandler",
    "HttpSubmitHandler",
]


def __getattr__(name):
    """Lazy attribute access."""
    if name == "CartStore":
        from cartengine.cart import CartStore
        return CartStore
    elif name == "CartStorage":
        from cartengine.cart import CartStorage
        return CartStorage
    elif name == "InMemoryStore":
        from cartengine.db import InMemoryStore
        return InMemoryStore
    elif name == "get_redis":
        from cartengine.db import get_redis
        return get_redis
    elif name == "HttpRatesHandler":
        from cartengine.services.http_handlers import HttpRatesHandler
        return HttpRatesHandler
    elif name == "HttpSubmitHandler":
        from cartengine.services.http_handlers import HttpSubmitHandler
        return HttpSubmitHandler
    raise AttributeError(f"module 'cartengine' has no attribute '{name}'")
