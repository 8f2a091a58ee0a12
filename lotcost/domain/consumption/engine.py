from __future__ import annotations

import logging
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterator

from lotcost.core.errors import InsufficientStock, LedgerTimeout
from lotcost.domain.lots.aggregates import LotDraw, plan_fifo_draws
from lotcost.domain.lots.commands import to_utc, validate_consumption
from lotcost.domain.lots.ledger import ConsumptionRecord, LotLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConsumptionSummary:
    consumption_id: str
    product_id: str
    quantity: int
    purpose: str
    total_cost: Decimal
    draws: tuple[LotDraw, ...]


class ProductLockRegistry:
    """One lock per product id so consumption of a product is serialized
    while different products proceed in parallel.

    Entries are reference counted and dropped once no caller holds or waits
    on them, so the registry only tracks products in flight.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _checkout(self, product_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(product_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[product_id] = lock
            self._users[product_id] = self._users.get(product_id, 0) + 1
            return lock

    def _checkin(self, product_id: str) -> None:
        with self._guard:
            remaining = self._users[product_id] - 1
            if remaining:
                self._users[product_id] = remaining
            else:
                del self._users[product_id]
                del self._locks[product_id]

    @contextmanager
    def hold(self, product_id: str, timeout_seconds: float) -> Iterator[None]:
        lock = self._checkout(product_id)
        try:
            if not lock.acquire(timeout=timeout_seconds):
                raise LedgerTimeout(
                    f"timed out after {timeout_seconds}s waiting for product lock: {product_id}",
                    product_id=product_id,
                )
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(product_id)


class ConsumptionEngine:
    def __init__(self, ledger: LotLedger):
        self.ledger = ledger

    def consume(
        self,
        product_id: str,
        quantity: int,
        purpose: str = "sale",
        now: datetime | None = None,
    ) -> ConsumptionSummary:
        quantity = validate_consumption(product_id, quantity, purpose)
        purpose = purpose or "sale"
        now = to_utc(now or datetime.now(timezone.utc))

        lots = self.ledger.list_active_lots(product_id, for_update=True)
        plan = plan_fifo_draws(lots, quantity)
        if not plan.satisfied:
            logger.info(
                "consumption rejected: product_id=%s requested=%s available=%s",
                product_id,
                quantity,
                plan.available,
            )
            raise InsufficientStock(product_id, requested=quantity, available=plan.available)

        consumption_id = str(uuid.uuid4())
        for draw in plan.draws:
            self.ledger.decrement(draw.lot_id, draw.quantity, at=now)
        self.ledger.record_consumption(
            ConsumptionRecord(
                consumption_id=consumption_id,
                lot_id=draw.lot_id,
                product_id=product_id,
                quantity=draw.quantity,
                unit_cost=draw.unit_cost,
                purpose=purpose,
                created_at=now,
            )
            for draw in plan.draws
        )
        logger.info(
            "consumption applied: product_id=%s quantity=%s purpose=%s lots=%s cost=%s",
            product_id,
            quantity,
            purpose,
            len(plan.draws),
            plan.total_cost,
        )
        return ConsumptionSummary(
            consumption_id=consumption_id,
            product_id=product_id,
            quantity=quantity,
            purpose=purpose,
            total_cost=plan.total_cost,
            draws=plan.draws,
        )
