"""Cart extension points: one optional handler per fixed label."""
import inspect
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

from cartengine.errors import ERROR_HANDLER_NOT_CALLABLE, ERROR_UNKNOWN_EVENT
from cartengine.logging import get_logger

logger = get_logger(__name__)


class EventLabel(str, Enum):
    """
    Labels a host can bind.

    - update: state changed and was persisted, handler receives a snapshot
    - submit: place the order (async, may do network I/O)
    - rates: look up tax and shipping rates (async, may do network I/O)
    - price.*: synchronous overrides of one pricing stage
    """
    UPDATE = "update"
    SUBMIT = "submit"
    RATES = "rates"
    PRICE_TAX = "price.tax"
    PRICE_SHIPPING = "price.shipping"
    PRICE_STRIPE_FEE = "price.stripeFee"


Handler = Callable[..., Any]

# pricing runs synchronously, so these labels cannot take coroutines
SYNC_LABELS = frozenset({EventLabel.PRICE_TAX, EventLabel.PRICE_SHIPPING, EventLabel.PRICE_STRIPE_FEE})


def _is_async_handler(handler: Handler) -> bool:
    return inspect.iscoroutinefunction(handler) or inspect.iscoroutinefunction(
        getattr(handler, "__call__", None)
    )


def normalize_label(label: Union[str, EventLabel]) -> EventLabel:
    """Map a label string to EventLabel; unknown labels are a ValueError."""
    try:
        return EventLabel(label)
    except ValueError:
        raise ValueError(f"{ERROR_UNKNOWN_EVENT}: {label!r}")


class EventBus:
    """
    Fixed set of handler slots, one per EventLabel.

    Registering again replaces the previous handler; there is no
    multi-listener fan-out.
    """

    def __init__(self):
        self._slots: Dict[EventLabel, Optional[Handler]] = {label: None for label in EventLabel}

    def on(self, label: Union[str, EventLabel], handler: Handler) -> "EventBus":
        """
        Bind handler to label, replacing any previous one.

        Raises:
            ValueError: label is not one of EventLabel
            TypeError: handler is not callable, or is async for a price.* label
        """
        slot = normalize_label(label)
        if not callable(handler):
            raise TypeError(ERROR_HANDLER_NOT_CALLABLE)
        if slot in SYNC_LABELS and _is_async_handler(handler):
            raise TypeError(f"{slot.value} handler must be synchronous")
        if self._slots[slot] is not None:
            logger.debug("Replacing %s handler", slot.value)
        self._slots[slot] = handler
        return self

    def off(self, label: Union[str, EventLabel]) -> "EventBus":
        self._slots[normalize_label(label)] = None
        return self

    def get(self, label: Union[str, EventLabel]) -> Optional[Handler]:
        return self._slots[normalize_label(label)]

    def has(self, label: Union[str, EventLabel]) -> bool:
        return self.get(label) is not None

    async def trigger(self, label: Union[str, EventLabel], *args: Any) -> Any:
        """Invoke the bound handler, awaiting it when async. No handler: returns None."""
        handler = self.get(label)
        if handler is None:
            return None
        result = handler(*args)
        if inspect.isawaitable(result):
            result = await result
        return result

    def call(self, label: Union[str, EventLabel], *args: Any) -> Any:
        """
        Invoke the bound handler synchronously.

        Used where the caller cannot suspend (pricing stages, update
        notifications).

        Raises:
            TypeError: handler returned an awaitable
        """
        slot = normalize_label(label)
        handler = self._slots[slot]
        if handler is None:
            return None
        result = handler(*args)
        if inspect.isawaitable(result):
            if inspect.iscoroutine(result):
                result.close()
            raise TypeError(f"{slot.value} handler must be synchronous")
        return result
