from __future__ import annotations

from typing import Any


class LotCostingError(Exception):
    kind = "lot_costing_error"
    category = "internal"
    transient = False

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "detail": str(self),
            "error": self.kind,
            "category": self.category,
            "transient": self.transient,
        }
        if self.context:
            body["context"] = {key: str(value) for key, value in self.context.items()}
        return body


class ValidationError(LotCostingError):
    category = "validation"


class InvalidQuantity(ValidationError):
    kind = "invalid_quantity"


class InvalidDelivery(ValidationError):
    kind = "invalid_delivery"


class NotFoundError(LotCostingError):
    category = "not_found"


class OrderNotFound(NotFoundError):
    kind = "order_not_found"


class StateConflictError(LotCostingError):
    category = "conflict"


class InsufficientStock(StateConflictError):
    kind = "insufficient_stock"

    def __init__(self, product_id: str, requested: int, available: int):
        super().__init__(
            f"insufficient stock for product={product_id}: requested={requested}, available={available}",
            product_id=product_id,
            requested=requested,
            available=available,
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class OrderAlreadyProcessed(StateConflictError):
    kind = "order_already_processed"

    def __init__(self, order_id: str):
        super().__init__(f"supplier order already processed: {order_id}", order_id=order_id)
        self.order_id = order_id


class StorageError(LotCostingError):
    category = "storage"
    transient = True


class LedgerUnavailable(StorageError):
    kind = "ledger_unavailable"


class LedgerTimeout(StorageError):
    kind = "ledger_timeout"


class LotConflict(StorageError):
    """A guarded decrement matched no row; another writer changed the lot first."""

    kind = "lot_conflict"


HTTP_STATUS_BY_CATEGORY: dict[str, int] = {
    "validation": 422,
    "not_found": 404,
    "conflict": 409,
    "storage": 503,
    "internal": 500,
}
