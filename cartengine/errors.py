"""
Common Error Constants and Exceptions

Centralized error messages so log lines and OrderSubmission.error values
stay identical across modules.
"""

# Submission errors
ERROR_SUBMIT_HANDLER_MISSING = "Submit handler is not registered"
ERROR_RATES_REFRESHING = "Shipping and tax rates are still being calculated"
ERROR_SUBMIT_FAILED = "Order submission failed"
ERROR_BILLING_ADDRESS_MISSING = "Billing address is null"

# Rate refresh errors
ERROR_RATES_FAILED = "Failed to get tax and shipping rates"

# Registration errors
ERROR_HANDLER_NOT_CALLABLE = "Callback is not a function"
ERROR_UNKNOWN_EVENT = "Unknown cart event"

# Storage errors
ERROR_STORAGE_UNAVAILABLE = "Cart storage unavailable"


class CartError(Exception):
    """Base class for cart engine errors."""


class RatesUnavailableError(CartError):
    """A rates backend answered with something the engine cannot use."""
