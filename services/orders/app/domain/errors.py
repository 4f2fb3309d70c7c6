"""Error taxonomy of the orders service.

Every error carries a short ``code`` so that API callers can tell the
categories apart even though only ``NotFound`` gets its own HTTP status.
"""

from typing import Optional


class OrderServiceError(Exception):
    code = "ORDER_SERVICE_ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(OrderServiceError):
    code = "NOT_FOUND"
    status_code = 404


class ValidationError(OrderServiceError):
    code = "VALIDATION_ERROR"


class GenerationError(OrderServiceError):
    code = "GENERATION_ERROR"


class StoreUnavailable(GenerationError):
    """The order store could not answer an existence check."""
    code = "STORE_UNAVAILABLE"


class PersistenceError(OrderServiceError):
    code = "PERSISTENCE_ERROR"


class SaleCreationError(OrderServiceError):
    """The order update was committed but its sale record was not.

    Recover by calling the sale reconciliation endpoint for ``order_id``.
    """
    code = "SALE_CREATION_ERROR"

    def __init__(self, message: str, order_id: Optional[int] = None):
        super().__init__(message)
        self.order_id = order_id


class GatewayError(OrderServiceError):
    code = "GATEWAY_ERROR"
