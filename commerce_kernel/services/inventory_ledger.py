"""
InventoryLedger -- per-product stock counters and the movement log.

Responsibility:
    Every change to an inventory record's counters: reservation, release,
    consumption, restock, write-off, absolute adjustment.  Each change
    locks the record, plans the effect with ``domain/stock.py``, applies it
    and appends exactly one StockMovement carrying the same effect.

Architecture position:
    Kernel > Services.  Leaf component: depends on no other service.
    Called by OrderEngine (reserve / release), FulfillmentCoordinator
    (consume / release) and the facade (listing and stock maintenance).

Invariants enforced:
    - 0 <= reserved_stock <= current_stock, checked before any write and
      again by database CHECK constraints.
    - No oversell: the record is read with ``SELECT ... FOR UPDATE`` (a
      database write lock on SQLite) and written with an optimistic
      version check.
    - Replay: counters equal the fold of the record's movements.

Failure modes:
    - ProductNotFoundError: no record for the product.
    - InsufficientStockError: reserve / remove beyond available stock.
    - StockInvariantViolationError: consume beyond reserved, adjust below
      reserved.  State is left unchanged.
    - InvalidQuantityError: zero, negative or non-integer quantity.
    - OptimisticLockError: stale version on flush.

Audit relevance:
    The movement log records who (performed_by), why (reason, notes), what
    it cost (cost) and which order/item it belongs to, with before/after
    snapshots of current_stock.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from commerce_kernel.domain import stock
from commerce_kernel.domain.clock import Clock
from commerce_kernel.domain.collaborators import SettingsProvider
from commerce_kernel.domain.dtos import InventorySnapshot
from commerce_kernel.domain.events import EventCollector, LowStockReached
from commerce_kernel.domain.money import require_minor_units
from commerce_kernel.domain.statuses import MovementType
from commerce_kernel.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    InventoryRecordExistsError,
    OptimisticLockError,
    ProductNotFoundError,
)
from commerce_kernel.logging_config import LogContext, get_logger
from commerce_kernel.models.inventory import InventoryRecord, StockMovement
from commerce_kernel.services.base import BaseService

logger = get_logger("services.inventory_ledger")

SYSTEM_ACTOR = "system"

_MOVEMENT_LOG_EVENTS: dict[MovementType, str] = {
    MovementType.STOCK_IN: "stock_received",
    MovementType.STOCK_OUT: "stock_removed",
    MovementType.RESERVATION: "stock_reserved",
    MovementType.RELEASE: "stock_released",
    MovementType.ADJUSTMENT: "stock_adjusted",
}


class InventoryLedger(BaseService[InventoryRecord]):
    """
    Stock counter service.

    Contract:
        All-or-nothing per call: on any error the record and the log are
        exactly as they were before the call.

    Guarantees:
        - Exactly one movement per counter change; no movement for a
          zero-size change (release of nothing, adjustment to the same value).
        - ``LowStockReached`` is emitted when a call moves a record from
          not-low to low (``current_stock <= min_stock_level``).

    Non-goals:
        - Does not know about orders beyond storing their ids on movements.
        - Does not authorize; the facade checks supplier ownership.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock,
        settings: SettingsProvider,
        events: EventCollector | None = None,
    ):
        super().__init__(session)
        self._clock = clock
        self._settings = settings
        self._events = events if events is not None else EventCollector()

    # ------------------------------------------------------------------
    # Record access
    # ------------------------------------------------------------------

    def _lock(self, product_id: str) -> InventoryRecord:
        record = self.session.execute(
            select(InventoryRecord)
            .where(InventoryRecord.product_id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if record is None:
            raise ProductNotFoundError(product_id)
        return record

    def _find(self, product_id: str) -> InventoryRecord:
        record = self.session.execute(
            select(InventoryRecord).where(InventoryRecord.product_id == product_id)
        ).scalar_one_or_none()
        if record is None:
            raise ProductNotFoundError(product_id)
        return record

    def _flush(self, record: InventoryRecord) -> None:
        try:
            self.session.flush()
        except StaleDataError as exc:
            logger.warning(
                "inventory_version_conflict",
                extra={"product_id": record.product_id},
            )
            raise OptimisticLockError("InventoryRecord", record.product_id) from exc

    def _write(
        self,
        record: InventoryRecord,
        effect: stock.StockEffect,
        *,
        performed_by: str,
        reason: str | None = None,
        notes: str | None = None,
        cost: int | None = None,
        order_id: UUID | None = None,
        order_item_id: UUID | None = None,
    ) -> StockMovement | None:
        """Apply ``effect`` to the locked record and append its movement."""
        if effect.quantity == 0:
            return None

        before = stock.StockCounters(record.current_stock, record.reserved_stock)
        after = stock.apply_effect(record.product_id, before, effect)
        was_low = stock.is_low(before.current_stock, record.min_stock_level)
        now = self._clock.now()

        record.current_stock = after.current_stock
        record.reserved_stock = after.reserved_stock
        record.movement_count += 1
        record.updated_by_id = performed_by
        if effect.current_delta > 0:
            record.last_restocked_at = now
        elif effect.current_delta < 0:
            record.last_stock_out_at = now

        movement = StockMovement(
            inventory_record_id=record.id,
            product_id=record.product_id,
            sequence=record.movement_count,
            movement_type=effect.movement_type,
            quantity=effect.quantity,
            current_delta=effect.current_delta,
            reserved_delta=effect.reserved_delta,
            previous_stock=before.current_stock,
            new_stock=after.current_stock,
            reason=reason,
            performed_by=performed_by,
            notes=notes,
            cost=cost,
            order_id=order_id,
            order_item_id=order_item_id,
            occurred_at=now,
        )
        self.session.add(movement)
        self._flush(record)

        logger.info(
            _MOVEMENT_LOG_EVENTS[effect.movement_type],
            extra={
                "product_id": record.product_id,
                "sequence": movement.sequence,
                "quantity": effect.quantity,
                "current_stock": record.current_stock,
                "reserved_stock": record.reserved_stock,
                "order_id": str(order_id) if order_id else None,
            },
        )

        if not was_low and stock.is_low(record.current_stock, record.min_stock_level):
            self._low_stock_reached(record)

        return movement

    def _low_stock_reached(self, record: InventoryRecord) -> None:
        logger.warning(
            "low_stock_reached",
            extra={
                "product_id": record.product_id,
                "supplier_id": record.supplier_id,
                "current_stock": record.current_stock,
                "min_stock_level": record.min_stock_level,
            },
        )
        self._events.emit(
            LowStockReached(
                occurred_at=self._clock.now(),
                product_id=record.product_id,
                supplier_id=record.supplier_id,
                current_stock=record.current_stock,
                min_stock_level=record.min_stock_level,
            )
        )

    @staticmethod
    def _counters(record: InventoryRecord) -> stock.StockCounters:
        return stock.StockCounters(record.current_stock, record.reserved_stock)

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list_product(
        self,
        product_id: str,
        supplier_id: str,
        *,
        initial_stock: int = 0,
        min_stock_level: int | None = None,
        max_stock_level: int | None = None,
        reorder_point: int | None = None,
        reorder_quantity: int | None = None,
        unit_cost: int | None = None,
        performed_by: str = SYSTEM_ACTOR,
    ) -> InventorySnapshot:
        """
        Create the inventory record for a newly listed product.

        Initial stock is written as a ``stock_in`` movement so the record
        is reconstructible from its log like any other.
        """
        if not product_id or not supplier_id:
            raise ValueError("product_id and supplier_id are required")
        if isinstance(initial_stock, bool) or not isinstance(initial_stock, int) or initial_stock < 0:
            raise InvalidQuantityError(initial_stock, "initial stock must be a non-negative integer")
        if min_stock_level is None:
            min_stock_level = self._settings.current().low_stock_threshold
        _validate_thresholds(
            product_id, min_stock_level, max_stock_level, reorder_point, reorder_quantity
        )
        if unit_cost is not None:
            require_minor_units(unit_cost, "unit_cost")

        existing = self.session.execute(
            select(InventoryRecord.id).where(InventoryRecord.product_id == product_id)
        ).scalar_one_or_none()
        if existing is not None:
            raise InventoryRecordExistsError(product_id)

        record = InventoryRecord(
            product_id=product_id,
            supplier_id=supplier_id,
            current_stock=0,
            reserved_stock=0,
            min_stock_level=min_stock_level,
            max_stock_level=max_stock_level,
            reorder_point=reorder_point,
            reorder_quantity=reorder_quantity,
            unit_cost=unit_cost,
            movement_count=0,
            created_by_id=performed_by,
        )
        savepoint = self.session.begin_nested()
        try:
            self.session.add(record)
            self.session.flush()
            savepoint.commit()
        except IntegrityError as exc:
            savepoint.rollback()
            raise InventoryRecordExistsError(product_id) from exc

        with LogContext.bind(product_id=product_id, supplier_id=supplier_id):
            logger.info(
                "product_listed",
                extra={"initial_stock": initial_stock, "min_stock_level": min_stock_level},
            )
            if initial_stock > 0:
                effect = stock.plan_restock(product_id, self._counters(record), initial_stock)
                self._write(
                    record,
                    effect,
                    performed_by=performed_by,
                    reason="initial_stock",
                    cost=unit_cost,
                )

        return record.to_snapshot()

    # ------------------------------------------------------------------
    # Reservation lifecycle
    # ------------------------------------------------------------------

    def reserve(
        self,
        product_id: str,
        quantity: int,
        *,
        order_id: UUID | None = None,
        order_item_id: UUID | None = None,
        performed_by: str = SYSTEM_ACTOR,
    ) -> InventorySnapshot:
        """Hold ``quantity`` units for checkout; fails if available is short."""
        with LogContext.bind(product_id=product_id):
            record = self._lock(product_id)
            try:
                effect = stock.plan_reserve(product_id, self._counters(record), quantity)
            except InsufficientStockError:
                logger.info(
                    "stock_reservation_rejected",
                    extra={"requested": quantity, "available": record.available_stock},
                )
                raise
            self._write(
                record,
                effect,
                performed_by=performed_by,
                reason="checkout",
                order_id=order_id,
                order_item_id=order_item_id,
            )
            return record.to_snapshot()

    def release(
        self,
        product_id: str,
        quantity: int,
        *,
        reason: str | None = None,
        order_id: UUID | None = None,
        order_item_id: UUID | None = None,
        performed_by: str = SYSTEM_ACTOR,
    ) -> InventorySnapshot:
        """Return reserved units to available; never drops reserved below zero."""
        with LogContext.bind(product_id=product_id):
            record = self._lock(product_id)
            effect = stock.plan_release(product_id, self._counters(record), quantity)
            if effect.quantity < quantity:
                logger.warning(
                    "stock_release_floored",
                    extra={"requested": quantity, "released": effect.quantity},
                )
            self._write(
                record,
                effect,
                performed_by=performed_by,
                reason=reason,
                order_id=order_id,
                order_item_id=order_item_id,
            )
            return record.to_snapshot()

    def consume(
        self,
        product_id: str,
        quantity: int,
        *,
        order_id: UUID | None = None,
        order_item_id: UUID | None = None,
        performed_by: str = SYSTEM_ACTOR,
    ) -> InventorySnapshot:
        """Ship reserved units: current and reserved both drop by ``quantity``."""
        with LogContext.bind(product_id=product_id):
            record = self._lock(product_id)
            effect = stock.plan_consume(product_id, self._counters(record), quantity)
            self._write(
                record,
                effect,
                performed_by=performed_by,
                reason="shipment",
                order_id=order_id,
                order_item_id=order_item_id,
            )
            return record.to_snapshot()

    # ------------------------------------------------------------------
    # Stock maintenance
    # ------------------------------------------------------------------

    def restock(
        self,
        product_id: str,
        quantity: int,
        reason: str | None = None,
        *,
        as_adjustment: bool = False,
        cost: int | None = None,
        notes: str | None = None,
        performed_by: str = SYSTEM_ACTOR,
    ) -> InventorySnapshot:
        """Add ``quantity`` units as a stock_in (or a positive adjustment)."""
        if cost is not None:
            require_minor_units(cost, "cost")
        movement_type = MovementType.ADJUSTMENT if as_adjustment else MovementType.STOCK_IN
        with LogContext.bind(product_id=product_id):
            record = self._lock(product_id)
            effect = stock.plan_restock(
                product_id, self._counters(record), quantity, movement_type
            )
            if cost is not None:
                record.unit_cost = cost
            self._write(
                record,
                effect,
                performed_by=performed_by,
                reason=reason,
                notes=notes,
                cost=cost,
            )
            return record.to_snapshot()

    def remove_stock(
        self,
        product_id: str,
        quantity: int,
        reason: str,
        *,
        notes: str | None = None,
        performed_by: str = SYSTEM_ACTOR,
    ) -> InventorySnapshot:
        """Write off unreserved units (damage, loss, sample)."""
        with LogContext.bind(product_id=product_id):
            record = self._lock(product_id)
            effect = stock.plan_remove(product_id, self._counters(record), quantity)
            self._write(
                record, effect, performed_by=performed_by, reason=reason, notes=notes
            )
            return record.to_snapshot()

    def adjust_stock(
        self,
        product_id: str,
        new_quantity: int,
        reason: str,
        *,
        notes: str | None = None,
        performed_by: str = SYSTEM_ACTOR,
    ) -> InventorySnapshot:
        """Set current_stock to ``new_quantity`` after a stock count."""
        with LogContext.bind(product_id=product_id):
            record = self._lock(product_id)
            effect = stock.plan_adjustment(product_id, self._counters(record), new_quantity)
            if effect.quantity == 0:
                logger.info("stock_adjustment_unchanged", extra={"current_stock": new_quantity})
            self._write(
                record, effect, performed_by=performed_by, reason=reason, notes=notes
            )
            return record.to_snapshot()

    def update_thresholds(
        self,
        product_id: str,
        *,
        min_stock_level: int | None = None,
        max_stock_level: int | None = None,
        reorder_point: int | None = None,
        reorder_quantity: int | None = None,
        performed_by: str = SYSTEM_ACTOR,
    ) -> InventorySnapshot:
        """Change inventory settings.  None leaves a setting unchanged."""
        with LogContext.bind(product_id=product_id):
            record = self._lock(product_id)
            was_low = stock.is_low(record.current_stock, record.min_stock_level)

            new_min = record.min_stock_level if min_stock_level is None else min_stock_level
            new_max = record.max_stock_level if max_stock_level is None else max_stock_level
            new_point = record.reorder_point if reorder_point is None else reorder_point
            new_qty = record.reorder_quantity if reorder_quantity is None else reorder_quantity
            _validate_thresholds(product_id, new_min, new_max, new_point, new_qty)

            record.min_stock_level = new_min
            record.max_stock_level = new_max
            record.reorder_point = new_point
            record.reorder_quantity = new_qty
            record.updated_by_id = performed_by
            self._flush(record)

            logger.info(
                "inventory_thresholds_updated",
                extra={
                    "min_stock_level": new_min,
                    "max_stock_level": new_max,
                    "reorder_point": new_point,
                    "reorder_quantity": new_qty,
                },
            )
            if not was_low and stock.is_low(record.current_stock, record.min_stock_level):
                self._low_stock_reached(record)
            return record.to_snapshot()

    # ------------------------------------------------------------------
    # Reads used by other services
    # ------------------------------------------------------------------

    def get(self, product_id: str) -> InventorySnapshot:
        return self._find(product_id).to_snapshot()

    def is_low_stock(self, product_id: str) -> bool:
        return self._find(product_id).to_snapshot().is_low_stock

    def supplier_of(self, product_id: str) -> str:
        return self._find(product_id).supplier_id


def _validate_thresholds(
    product_id: str,
    min_stock_level: int,
    max_stock_level: int | None,
    reorder_point: int | None,
    reorder_quantity: int | None,
) -> None:
    for name, value in (
        ("min_stock_level", min_stock_level),
        ("max_stock_level", max_stock_level),
        ("reorder_point", reorder_point),
        ("reorder_quantity", reorder_quantity),
    ):
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise InvalidQuantityError(value, f"{name} must be a non-negative integer")
    if max_stock_level is not None and max_stock_level < min_stock_level:
        raise InvalidQuantityError(
            max_stock_level,
            f"max_stock_level below min_stock_level ({min_stock_level}) for {product_id}",
        )
