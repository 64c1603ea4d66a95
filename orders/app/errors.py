"""
Typed failures raised by the order core.

Each error carries an ErrorKind; the HTTP layer maps kinds to status codes
(see STATUS_CODES) and renders the ErrorOut envelope.
"""
import enum
from typing import Any, Iterable, Optional

class ErrorKind(str, enum.Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"

STATUS_CODES = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
}

class OrderError(Exception):
    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, detail: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]

class InvalidOrder(OrderError):
    kind = ErrorKind.VALIDATION

class UnknownProducts(InvalidOrder):
    def __init__(self, product_ids: Iterable[str]):
        missing = sorted(set(product_ids))
        super().__init__(f"unknown product(s): {missing}", detail={"missing": missing})
        self.product_ids = missing

class CatalogUnavailable(InvalidOrder):
    def __init__(self, reason: str):
        super().__init__("product catalog unavailable", detail=reason)

class PersistenceFailure(InvalidOrder):
    def __init__(self, reason: str):
        super().__init__("Check details or logs", detail=reason)

class OrderNotFound(OrderError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, order_id: str):
        super().__init__(f"Order with id {order_id} not found")
        self.order_id = order_id
