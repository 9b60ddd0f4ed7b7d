"""
Module: commerce_kernel.selectors.inventory_selector
Responsibility: Read-only stock queries: product snapshots, low-stock
    reports, per-product and per-supplier movement history, inventory
    summary, and the replay check that compares live counters with the
    movement log.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Replay: ``verify_reconstruction`` folds a product's movements in
      sequence order from zero counters.  A mismatch means the counters
      were changed outside the ledger.

Audit relevance:
    ``movement_history`` is the audit trail for a product's stock;
    ``verify_reconstruction`` is the integrity check over it.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select

from commerce_kernel.domain import stock
from commerce_kernel.domain.dtos import (
    InventorySnapshot,
    InventorySummary,
    ReconstructionReport,
    StockMovementView,
)
from commerce_kernel.domain.statuses import MovementType
from commerce_kernel.exceptions import ProductNotFoundError
from commerce_kernel.models.inventory import InventoryRecord, StockMovement
from commerce_kernel.selectors.base import BaseSelector


class InventorySelector(BaseSelector[InventoryRecord]):
    """
    Selector for inventory reads.

    Non-goals:
        - Does not authorize.  The facade restricts supplier actors to
          their own ``supplier_id``.
    """

    def _record(self, product_id: str) -> InventoryRecord:
        record = self.session.execute(
            select(InventoryRecord).where(InventoryRecord.product_id == product_id)
        ).scalar_one_or_none()
        if record is None:
            raise ProductNotFoundError(product_id)
        return record

    def snapshot(self, product_id: str) -> InventorySnapshot:
        return self._record(product_id).to_snapshot()

    def low_stock_products(self, supplier_id: str | None = None) -> list[InventorySnapshot]:
        """Products at or below their minimum level, lowest stock first."""
        query = select(InventoryRecord).where(
            InventoryRecord.current_stock <= InventoryRecord.min_stock_level
        )
        if supplier_id is not None:
            query = query.where(InventoryRecord.supplier_id == supplier_id)
        query = query.order_by(InventoryRecord.current_stock, InventoryRecord.product_id)
        return [record.to_snapshot() for record in self.session.scalars(query)]

    def movement_history(
        self,
        product_id: str,
        *,
        movement_type: MovementType | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
    ) -> list[StockMovementView]:
        """
        Movements for a product, oldest first.

        Args:
            product_id: Product to report on.
            movement_type: Only movements of this type.
            since: Only movements at or after this instant.
            until: Only movements before this instant.
            limit: Most recent ``limit`` movements (still returned oldest first).
        """
        self._record(product_id)
        query = select(StockMovement).where(StockMovement.product_id == product_id)
        if movement_type is not None:
            query = query.where(StockMovement.movement_type == movement_type)
        if since is not None:
            query = query.where(StockMovement.occurred_at >= since)
        if until is not None:
            query = query.where(StockMovement.occurred_at < until)

        if limit is not None:
            if limit <= 0:
                return []
            query = query.order_by(StockMovement.sequence.desc()).limit(limit)
            rows = list(self.session.scalars(query))
            rows.reverse()
        else:
            rows = list(self.session.scalars(query.order_by(StockMovement.sequence)))
        return [row.to_view() for row in rows]

    def supplier_movement_history(
        self,
        supplier_id: str,
        *,
        limit: int = 20,
        offset: int = 0,
    ) -> list[StockMovementView]:
        """
        One feed of movements across all of a supplier's products, newest
        first, a page at a time.  Ties on ``occurred_at`` fall back to the
        per-product sequence, then product id.
        """
        if offset < 0:
            raise ValueError("offset must be >= 0")
        if limit <= 0:
            return []
        supplier_products = select(InventoryRecord.product_id).where(
            InventoryRecord.supplier_id == supplier_id
        )
        query = (
            select(StockMovement)
            .where(StockMovement.product_id.in_(supplier_products))
            .order_by(
                StockMovement.occurred_at.desc(),
                StockMovement.sequence.desc(),
                StockMovement.product_id,
            )
            .offset(offset)
            .limit(limit)
        )
        return [row.to_view() for row in self.session.scalars(query)]

    def inventory_summary(self, supplier_id: str | None = None) -> InventorySummary:
        available = InventoryRecord.current_stock - InventoryRecord.reserved_stock
        query = select(
            func.count(InventoryRecord.id),
            func.coalesce(func.sum(InventoryRecord.current_stock), 0),
            func.coalesce(func.sum(InventoryRecord.reserved_stock), 0),
            func.coalesce(
                func.sum(
                    InventoryRecord.current_stock * func.coalesce(InventoryRecord.unit_cost, 0)
                ),
                0,
            ),
        )
        low_query = select(func.count(InventoryRecord.id)).where(
            InventoryRecord.current_stock <= InventoryRecord.min_stock_level
        )
        out_query = select(func.count(InventoryRecord.id)).where(available <= 0)
        if supplier_id is not None:
            query = query.where(InventoryRecord.supplier_id == supplier_id)
            low_query = low_query.where(InventoryRecord.supplier_id == supplier_id)
            out_query = out_query.where(InventoryRecord.supplier_id == supplier_id)

        total_products, total_units, reserved_units, stock_value = self.session.execute(
            query
        ).one()
        return InventorySummary(
            total_products=int(total_products),
            total_units=int(total_units),
            reserved_units=int(reserved_units),
            available_units=int(total_units) - int(reserved_units),
            low_stock_count=int(self.session.scalar(low_query) or 0),
            out_of_stock_count=int(self.session.scalar(out_query) or 0),
            stock_value=int(stock_value),
        )

    def verify_reconstruction(self, product_id: str) -> ReconstructionReport:
        """Replay the product's movement log and compare with its counters."""
        record = self._record(product_id)
        movements = list(
            self.session.scalars(
                select(StockMovement)
                .where(StockMovement.product_id == product_id)
                .order_by(StockMovement.sequence)
            )
        )
        replayed = stock.replay(
            product_id,
            (
                stock.StockEffect(
                    m.movement_type, m.quantity, m.current_delta, m.reserved_delta
                )
                for m in movements
            ),
        )
        return ReconstructionReport(
            product_id=product_id,
            live_current_stock=record.current_stock,
            live_reserved_stock=record.reserved_stock,
            replayed_current_stock=replayed.current_stock,
            replayed_reserved_stock=replayed.reserved_stock,
            movement_count=len(movements),
        )
