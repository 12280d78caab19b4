"""Error taxonomy shared by the order pipeline services.

Every error carries the HTTP status code the synchronous boundary maps it to
and whether re-executing the operation can succeed.
"""


class RetailError(Exception):
    """Base class for all pipeline errors."""

    status_code: int = 500
    retriable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RetailError):
    """Malformed input. Surfaced to the caller, never retried."""

    status_code = 400


class NotFoundError(RetailError):
    """Unknown order, product or customer reference."""

    status_code = 404


class InsufficientStockError(RetailError):
    """Business-rule rejection: not enough stock for the requested quantity."""

    status_code = 400

    def __init__(self, available: int):
        super().__init__(f"Insufficient stock. Available: {available}")
        self.available = available


class ConcurrencyConflictError(RetailError):
    """Version tag mismatch on a conditional write."""

    status_code = 409
    retriable = True


class TransientInfrastructureError(RetailError):
    """Record store or queue unavailable."""

    status_code = 503
    retriable = True


class EntityAlreadyExistsError(RetailError):
    """Insert of a row key that already exists in the partition."""

    status_code = 409


class MalformedMessageError(RetailError):
    """Queue payload that cannot be decoded into its tagged message type."""

    status_code = 400
