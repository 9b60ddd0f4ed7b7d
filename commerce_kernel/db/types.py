"""
Module: commerce_kernel.db.types
Responsibility: Annotated column aliases shared by every model, and the
    status-enum column factory.
Architecture position: Kernel > DB.  May be imported by models/.  MUST NOT
    import from models/, services/, selectors/ or outer layers.

Invariants enforced:
    - Money columns are BigInteger minor units (MinorUnits).
    - External identifiers (product, supplier, customer, actor) are opaque
      strings of at most 64 characters.
    - Status enums are stored by value, as VARCHAR, with a CHECK constraint,
      so the same schema works on PostgreSQL and SQLite.
"""

from decimal import Decimal
from enum import Enum
from typing import Annotated

from sqlalchemy import BigInteger, Numeric, String
from sqlalchemy import Enum as SAEnum

# Integer amount in minor currency units (cents, paisa)
MinorUnits = Annotated[int, BigInteger]

# Stock quantity in units
Quantity = Annotated[int, BigInteger]

# Opaque identifier issued outside the kernel
ExternalId = Annotated[str, String(64)]

# ISO 4217 currency code
Currency = Annotated[str, String(3)]

# Discount value: percent for percentage codes, minor units for fixed codes
DiscountValue = Annotated[Decimal, Numeric(18, 4)]

# Tax rate fraction (0.08 = 8%)
Rate = Annotated[Decimal, Numeric(9, 6)]

ShortText = Annotated[str, String(255)]

LongText = Annotated[str, String(4000)]


def status_column_type(enum_cls: type[Enum], name: str) -> SAEnum:
    """Non-native enum type that persists member values, not names."""
    return SAEnum(
        enum_cls,
        name=name,
        native_enum=False,
        create_constraint=True,
        length=32,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )
