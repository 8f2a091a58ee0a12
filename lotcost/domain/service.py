from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Iterable, Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lotcost.core.config import Settings, get_settings
from lotcost.core.errors import LedgerTimeout, LedgerUnavailable, LotCostingError, StorageError
from lotcost.domain.consumption.engine import ConsumptionEngine, ConsumptionSummary, ProductLockRegistry
from lotcost.domain.costing.aggregator import CostAggregator
from lotcost.domain.delivery.processor import DeliveryProcessor, DeliverySummary
from lotcost.domain.lots.aggregates import InventoryLot, ProductCostInfo
from lotcost.domain.lots.commands import DeliveryLineItem, build_delivery_request, validate_consumption
from lotcost.domain.lots.ledger import ConsumptionRecord, LotLedger

logger = logging.getLogger(__name__)

_TIMEOUT_MARKERS = (
    "timeout",
    "timed out",
    "database is locked",
    "canceling statement",
    "lock not available",
)


def _storage_error(exc: SQLAlchemyError) -> StorageError:
    message = str(getattr(exc, "orig", None) or exc)
    if any(marker in message.lower() for marker in _TIMEOUT_MARKERS):
        return LedgerTimeout(f"ledger operation timed out: {message}")
    return LedgerUnavailable(f"ledger unavailable: {message}")


class LotCostingService:
    """Entry point for collaborators.

    Each public operation runs as one unit of work against its own session,
    so deciding what to consume and applying it never span two transactions.
    Nothing is retried here: a storage failure is reported and the caller
    decides.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        settings: Settings | None = None,
        locks: ProductLockRegistry | None = None,
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.locks = locks if locks is not None else ProductLockRegistry()

    @classmethod
    def from_settings(cls) -> "LotCostingService":
        from lotcost.persistence import pg

        return cls(session_factory=pg.SessionLocal, settings=get_settings())

    @contextmanager
    def unit_of_work(self) -> Iterator[LotLedger]:
        session = self.session_factory()
        try:
            yield LotLedger(session)
            session.commit()
        except LotCostingError:
            session.rollback()
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            error = _storage_error(exc)
            logger.error("ledger failure (%s): %s", error.kind, exc)
            raise error from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def process_delivery(
        self,
        order_id: str,
        line_items: Iterable[DeliveryLineItem | dict[str, Any]],
        shipping_cost: Decimal | int | str = Decimal("0"),
        received_at: datetime | None = None,
    ) -> DeliverySummary:
        request = build_delivery_request(order_id, line_items, shipping_cost, received_at)
        with self.unit_of_work() as ledger:
            return DeliveryProcessor(ledger).process(request)

    def process_supplier_order(self, order_id: str, received_at: datetime | None = None) -> DeliverySummary:
        with self.unit_of_work() as ledger:
            return DeliveryProcessor(ledger).process_supplier_order(order_id, received_at=received_at)

    def consume(self, product_id: str, quantity: int, purpose: str = "sale") -> ConsumptionSummary:
        quantity = validate_consumption(product_id, quantity, purpose)
        # The lock spans read, plan, write and commit for this product.
        with self.locks.hold(product_id, self.settings.lock_timeout_seconds):
            with self.unit_of_work() as ledger:
                return ConsumptionEngine(ledger).consume(product_id, quantity, purpose)

    def average_cost(self, product_id: str) -> Decimal:
        with self.unit_of_work() as ledger:
            return CostAggregator(ledger).average_cost(product_id)

    def cost_info(self, product_id: str) -> ProductCostInfo:
        with self.unit_of_work() as ledger:
            return CostAggregator(ledger).cost_info(product_id)

    def list_lots(self, product_id: str) -> list[InventoryLot]:
        with self.unit_of_work() as ledger:
            return ledger.list_lots(product_id)

    def list_active_lots(self, product_id: str) -> list[InventoryLot]:
        with self.unit_of_work() as ledger:
            return ledger.list_active_lots(product_id)

    def list_consumptions(self, product_id: str, limit: int = 100) -> list[ConsumptionRecord]:
        with self.unit_of_work() as ledger:
            return ledger.list_consumptions(product_id, limit=limit)
