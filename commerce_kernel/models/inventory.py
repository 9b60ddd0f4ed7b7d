"""
Module: commerce_kernel.models.inventory
Responsibility: ORM persistence for per-product stock counters and the
    append-only stock movement ledger behind them.
Architecture position: Kernel > Models.  May import from db/ and the
    domain value objects (statuses, DTOs) only.

Invariants enforced:
    - 0 <= reserved_stock <= current_stock (CHECK constraints; also checked
      in domain/stock.py before every write).
    - One inventory record per product (UNIQUE product_id).
    - Movement sequence is unique per product and gap-free (assigned from
      InventoryRecord.movement_count under the row lock).
    - Movements are append-only (db/immutability.py).
    - Concurrent writers on one record are detected through version_id_col.

Failure modes:
    - IntegrityError on a second record for a product or a CHECK violation.
    - StaleDataError on a stale version (mapped to OptimisticLockError by
      the ledger).
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from commerce_kernel.db.base import Base, TrackedBase, UUIDString
from commerce_kernel.db.types import (
    ExternalId,
    LongText,
    MinorUnits,
    Quantity,
    ShortText,
    status_column_type,
)
from commerce_kernel.domain.dtos import InventorySnapshot, StockMovementView
from commerce_kernel.domain.statuses import MovementType


class InventoryRecord(TrackedBase):
    """
    Stock counters for one product.

    Contract:
        Counters change only through InventoryLedger, which writes exactly
        one StockMovement per change.  The counters are a cache of the
        movement log; replaying the log from zero reproduces them.

    Non-goals:
        - Does not hold catalogue data (name, price, images).
        - Is never deleted; delisting a product leaves the record in place.
    """

    __tablename__ = "inventory_records"

    __table_args__ = (
        CheckConstraint("current_stock >= 0", name="ck_inventory_current_non_negative"),
        CheckConstraint("reserved_stock >= 0", name="ck_inventory_reserved_non_negative"),
        CheckConstraint(
            "reserved_stock <= current_stock", name="ck_inventory_reserved_within_current"
        ),
        CheckConstraint("min_stock_level >= 0", name="ck_inventory_min_level_non_negative"),
        Index("idx_inventory_supplier", "supplier_id"),
    )

    product_id: Mapped[ExternalId] = mapped_column(nullable=False, unique=True)
    supplier_id: Mapped[ExternalId] = mapped_column(nullable=False)

    current_stock: Mapped[Quantity] = mapped_column(nullable=False, default=0)
    reserved_stock: Mapped[Quantity] = mapped_column(nullable=False, default=0)

    # Thresholds
    min_stock_level: Mapped[Quantity] = mapped_column(nullable=False, default=0)
    max_stock_level: Mapped[Quantity | None] = mapped_column(nullable=True)
    reorder_point: Mapped[Quantity | None] = mapped_column(nullable=True)
    reorder_quantity: Mapped[Quantity | None] = mapped_column(nullable=True)

    # Last known unit cost from a costed stock_in
    unit_cost: Mapped[MinorUnits | None] = mapped_column(nullable=True)

    last_restocked_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_stock_out_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Highest movement sequence written for this record
    movement_count: Mapped[int] = mapped_column(nullable=False, default=0)

    version: Mapped[int] = mapped_column(nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    @property
    def available_stock(self) -> int:
        return self.current_stock - self.reserved_stock

    def to_snapshot(self) -> InventorySnapshot:
        return InventorySnapshot(
            product_id=self.product_id,
            supplier_id=self.supplier_id,
            current_stock=self.current_stock,
            reserved_stock=self.reserved_stock,
            min_stock_level=self.min_stock_level,
            max_stock_level=self.max_stock_level,
            reorder_point=self.reorder_point,
            reorder_quantity=self.reorder_quantity,
            unit_cost=self.unit_cost,
            movement_count=self.movement_count,
            last_restocked_at=self.last_restocked_at,
            last_stock_out_at=self.last_stock_out_at,
        )

    def __repr__(self) -> str:
        return (
            f"<InventoryRecord {self.product_id} current={self.current_stock} "
            f"reserved={self.reserved_stock}>"
        )


class StockMovement(Base):
    """
    One immutable stock ledger entry.

    ``quantity`` is the unsigned size of the movement.  ``current_delta`` and
    ``reserved_delta`` are its signed effect on the record's counters;
    ``previous_stock`` and ``new_stock`` snapshot current_stock around it.
    """

    __tablename__ = "stock_movements"

    __table_args__ = (
        UniqueConstraint("product_id", "sequence", name="uq_movement_product_sequence"),
        CheckConstraint("quantity > 0", name="ck_movement_quantity_positive"),
        Index("idx_movement_product_occurred", "product_id", "occurred_at"),
        Index("idx_movement_order", "order_id"),
        Index("idx_movement_type", "movement_type"),
    )

    inventory_record_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_records.id"),
        nullable=False,
    )
    product_id: Mapped[ExternalId] = mapped_column(nullable=False)
    sequence: Mapped[int] = mapped_column(nullable=False)

    movement_type: Mapped[MovementType] = mapped_column(
        status_column_type(MovementType, "movement_type"),
        nullable=False,
    )
    quantity: Mapped[Quantity] = mapped_column(nullable=False)
    current_delta: Mapped[int] = mapped_column(nullable=False)
    reserved_delta: Mapped[int] = mapped_column(nullable=False)
    previous_stock: Mapped[Quantity] = mapped_column(nullable=False)
    new_stock: Mapped[Quantity] = mapped_column(nullable=False)

    reason: Mapped[ShortText | None] = mapped_column(nullable=True)
    performed_by: Mapped[ExternalId] = mapped_column(nullable=False)
    notes: Mapped[LongText | None] = mapped_column(nullable=True)
    cost: Mapped[MinorUnits | None] = mapped_column(nullable=True)

    # Originating order / item, when the movement came from checkout or fulfillment
    order_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    order_item_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    @property
    def available_delta(self) -> int:
        return self.current_delta - self.reserved_delta

    def to_view(self) -> StockMovementView:
        return StockMovementView(
            id=self.id,
            product_id=self.product_id,
            sequence=self.sequence,
            movement_type=self.movement_type,
            quantity=self.quantity,
            current_delta=self.current_delta,
            reserved_delta=self.reserved_delta,
            previous_stock=self.previous_stock,
            new_stock=self.new_stock,
            reason=self.reason,
            performed_by=self.performed_by,
            notes=self.notes,
            cost=self.cost,
            order_id=self.order_id,
            order_item_id=self.order_item_id,
            occurred_at=self.occurred_at,
        )

    def __repr__(self) -> str:
        return (
            f"<StockMovement {self.product_id}#{self.sequence} "
            f"{self.movement_type.value} {self.quantity}>"
        )
