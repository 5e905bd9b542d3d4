"""Errors raised by the order lifecycle engine.

Malformed input is reported with ``protean.exceptions.ValidationError`` and
missing records with ``protean.exceptions.ObjectNotFoundError``; the errors
below cover the remaining failure modes and map onto HTTP status codes in
``ordering.api.errors``.
"""


class OrderingError(Exception):
    """Base class for order lifecycle errors."""

    def __init__(self, message: str, **context) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


class StockError(OrderingError):
    """Live stock cannot cover the requested quantity."""


class AuthorizationError(OrderingError):
    """The caller does not own the order it is acting on."""


class SignatureError(OrderingError):
    """A webhook payload failed signature verification."""


class ReconciliationError(OrderingError):
    """Payment was received but the order cannot be fulfilled automatically."""


class ExternalServiceError(OrderingError):
    """A carrier, gateway or other remote collaborator failed."""


class PaymentInProgressError(OrderingError):
    """Another process currently holds the order's processing claim."""
