"""Domain errors raised by the allocation services.

Each error carries a stable machine code and the HTTP status the API layer
renders it with. Services raise these; ``main.py`` registers the handler.
"""


class ServiceError(Exception):
    """Base class for all domain errors."""

    code = "INTERNAL"
    status_code = 500

    def __init__(self, message: str | None = None):
        self.message = message or self.code
        super().__init__(self.message)


class InvalidInputError(ServiceError):
    """Bad quantity, missing reference or otherwise malformed request."""

    code = "INVALID_INPUT"
    status_code = 400


class InvalidStateTransitionError(InvalidInputError):
    """Order status does not allow the requested transition."""

    code = "INVALID_STATE_TRANSITION"
    status_code = 409


class NotFoundError(ServiceError):
    """Unknown order or raffle."""

    code = "NOT_FOUND"
    status_code = 404


class OrderNotPaidError(ServiceError):
    """Allocation attempted before the order reached ``paid``."""

    code = "ORDER_NOT_PAID"
    status_code = 409


class NoStockError(ServiceError):
    """Fewer free numbers remain than the order requested.

    Terminal for the order: it stays paid with zero numbers until an
    operator refunds or restocks.
    """

    code = "NO_STOCK"
    status_code = 409


class GatewayUnavailableError(ServiceError):
    """Payment gateway timed out or answered unusably. Safe to retry."""

    code = "GATEWAY_UNAVAILABLE"
    status_code = 503


class UnresolvedReferenceError(ServiceError):
    """An approved payment signal carried no client transaction reference."""

    code = "UNRESOLVED_REFERENCE"
    status_code = 422


class UnauthorizedError(ServiceError):
    """Bad webhook secret or missing operator identity."""

    code = "UNAUTHORIZED"
    status_code = 401


class AllocationConflictError(ServiceError):
    """Draw kept colliding with concurrent binds. Safe to retry."""

    code = "ALLOCATION_CONFLICT"
    status_code = 503
