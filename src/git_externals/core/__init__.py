from .types import (
    CheckoutOperationError,
    ExitCode,
    ExternalEntry,
    OneCheckoutError,
    SvnCoordinate,
)

__all__ = [
    "CheckoutOperationError",
    "ExitCode",
    "ExternalEntry",
    "OneCheckoutError",
    "SvnCoordinate",
]
