"""
Typed Exception Hierarchy for the Commerce Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Checkout, fulfillment and inventory callers must react to failures
precisely: a shortfall is shown to the shopper, a stale state transition is
explained to the supplier, an optimistic-lock conflict is retried.  Parsing
message strings for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        engine.create_order(...)
    except InsufficientStockError as e:
        api_response(code=e.code, product=e.product_id, shortfall=e.shortfall)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    CommerceKernelError (base)
    |
    +-- InventoryError
    |   +-- ProductNotFoundError
    |   +-- InventoryRecordExistsError
    |   +-- InsufficientStockError
    |   +-- StockInvariantViolationError
    |   +-- InvalidQuantityError
    |
    +-- DiscountError
    |   +-- InvalidDiscountCodeError
    |   +-- DuplicateCodeError
    |   +-- InvalidDiscountDefinitionError
    |
    +-- OrderError
    |   +-- OrderNotFoundError
    |   +-- OrderItemNotFoundError
    |   +-- EmptyCartError
    |   +-- InvalidStateTransitionError
    |   +-- InvalidRefundAmountError
    |
    +-- AuthorizationError
    |   +-- NotAuthorizedError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- PayloadError
        +-- InvalidPayloadError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                         | When Raised
--------------|------------------------------|--------------------------------------
Inventory     | PRODUCT_NOT_FOUND            | No inventory record for product
              | INVENTORY_RECORD_EXISTS      | Product listed twice
              | INSUFFICIENT_STOCK           | available < requested
              | STOCK_INVARIANT_VIOLATION    | 0 <= reserved <= current would break
              | INVALID_QUANTITY             | Non-positive / non-integer quantity
--------------|------------------------------|--------------------------------------
Discount      | INVALID_DISCOUNT_CODE        | not_found / inactive / expired /
              |                              | not_yet_active / usage_limit_reached
              | DUPLICATE_CODE               | Normalized code already exists
              | INVALID_DISCOUNT_DEFINITION  | Bad value / window on creation
--------------|------------------------------|--------------------------------------
Order         | ORDER_NOT_FOUND              | Order ID doesn't exist
              | ORDER_ITEM_NOT_FOUND         | Item not part of order
              | EMPTY_CART                   | Checkout with no lines
              | INVALID_STATE_TRANSITION     | Status change not in the table
              | INVALID_REFUND_AMOUNT        | Refund outside (0, total]
--------------|------------------------------|--------------------------------------
Authorization | NOT_AUTHORIZED               | Actor lacks ownership / role
--------------|------------------------------|--------------------------------------
Concurrency   | OPTIMISTIC_LOCK_CONFLICT     | Stale version on flush (retryable)
--------------|------------------------------|--------------------------------------
Immutability  | IMMUTABILITY_VIOLATION       | UPDATE/DELETE of a stock movement
--------------|------------------------------|--------------------------------------
Payload       | INVALID_PAYLOAD              | Boundary payload failed parsing

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Inventory and discount errors are never partially applied; the call
   that raised them has left no side effects behind.

2. InvalidStateTransitionError carries ``current`` and ``requested`` so the
   caller can explain the rejection without re-reading state.

3. NotAuthorizedError never names the target entity.  It is raised in place
   of a not-found error for non-administrators so that existence does not
   leak.

4. ConcurrencyError is the only category the facade retries automatically.
"""


class CommerceKernelError(Exception):
    """
    Base exception for all commerce kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "COMMERCE_KERNEL_ERROR"


# Inventory-related exceptions


class InventoryError(CommerceKernelError):
    """Base exception for inventory ledger errors."""

    code: str = "INVENTORY_ERROR"


class ProductNotFoundError(InventoryError):
    """No inventory record exists for the product."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class InventoryRecordExistsError(InventoryError):
    """Product already has an inventory record."""

    code: str = "INVENTORY_RECORD_EXISTS"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Inventory record already exists for product {product_id}")


class InsufficientStockError(InventoryError):
    """Reservation or stock-out exceeds available stock."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: str, requested: int, available: int):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        self.shortfall = requested - available
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"requested={requested}, available={available}, shortfall={self.shortfall}"
        )


class StockInvariantViolationError(InventoryError):
    """Mutation would break 0 <= reserved_stock <= current_stock."""

    code: str = "STOCK_INVARIANT_VIOLATION"

    def __init__(
        self,
        product_id: str,
        current_stock: int,
        reserved_stock: int,
        reason: str,
    ):
        self.product_id = product_id
        self.current_stock = current_stock
        self.reserved_stock = reserved_stock
        self.reason = reason
        super().__init__(
            f"Stock invariant violation for product {product_id}: {reason} "
            f"(would leave current={current_stock}, reserved={reserved_stock})"
        )


class InvalidQuantityError(InventoryError):
    """Quantity must be a positive integer."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: object, reason: str = "must be a positive integer"):
        self.quantity = quantity
        self.reason = reason
        super().__init__(f"Invalid quantity {quantity!r}: {reason}")


# Discount-related exceptions


class DiscountError(CommerceKernelError):
    """Base exception for discount code errors."""

    code: str = "DISCOUNT_ERROR"


class InvalidDiscountCodeError(DiscountError):
    """Discount code cannot be applied right now."""

    code: str = "INVALID_DISCOUNT_CODE"

    def __init__(self, discount_code: str, reason: str):
        self.discount_code = discount_code
        self.reason = reason
        super().__init__(f"Discount code {discount_code!r} is invalid: {reason}")


class DuplicateCodeError(DiscountError):
    """Normalized discount code already exists."""

    code: str = "DUPLICATE_CODE"

    def __init__(self, discount_code: str):
        self.discount_code = discount_code
        super().__init__(f"Discount code already exists: {discount_code}")


class InvalidDiscountDefinitionError(DiscountError):
    """Discount code definition is malformed."""

    code: str = "INVALID_DISCOUNT_DEFINITION"

    def __init__(self, discount_code: str, reason: str):
        self.discount_code = discount_code
        self.reason = reason
        super().__init__(f"Invalid discount definition for {discount_code!r}: {reason}")


# Order-related exceptions


class OrderError(CommerceKernelError):
    """Base exception for order errors."""

    code: str = "ORDER_ERROR"


class OrderNotFoundError(OrderError):
    """Order with given ID was not found."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class OrderItemNotFoundError(OrderError):
    """Item is not part of the order."""

    code: str = "ORDER_ITEM_NOT_FOUND"

    def __init__(self, order_id: str, item_id: str):
        self.order_id = order_id
        self.item_id = item_id
        super().__init__(f"Order item {item_id} not found on order {order_id}")


class EmptyCartError(OrderError):
    """Checkout attempted with no cart lines."""

    code: str = "EMPTY_CART"

    def __init__(self):
        super().__init__("Cannot create an order from an empty cart")


class InvalidStateTransitionError(OrderError):
    """
    Requested status change is not in the transition table.

    ``machine`` names the state machine (order, payment, shipment).
    """

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(
        self,
        machine: str,
        entity_id: str,
        current: str,
        requested: str,
        reason: str | None = None,
    ):
        self.machine = machine
        self.entity_id = entity_id
        self.current = current
        self.requested = requested
        self.reason = reason
        message = (
            f"Invalid {machine} transition for {entity_id}: {current} -> {requested}"
        )
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class InvalidRefundAmountError(OrderError):
    """Refund amount outside (0, order total]."""

    code: str = "INVALID_REFUND_AMOUNT"

    def __init__(self, order_id: str, refund_amount: int, total: int):
        self.order_id = order_id
        self.refund_amount = refund_amount
        self.total = total
        super().__init__(
            f"Invalid refund amount {refund_amount} for order {order_id} (total={total})"
        )


# Authorization-related exceptions


class AuthorizationError(CommerceKernelError):
    """Base exception for authorization errors."""

    code: str = "AUTHORIZATION_ERROR"


class NotAuthorizedError(AuthorizationError):
    """
    Actor may not perform the action.

    Deliberately carries no target identifier.
    """

    code: str = "NOT_AUTHORIZED"

    def __init__(self, actor_id: str, action: str):
        self.actor_id = actor_id
        self.action = action
        super().__init__(f"Actor {actor_id} is not authorized to {action}")


# Concurrency-related exceptions


class ConcurrencyError(CommerceKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Immutability-related exceptions


class ImmutabilityError(CommerceKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Payload-related exceptions


class PayloadError(CommerceKernelError):
    """Base exception for boundary payload errors."""

    code: str = "PAYLOAD_ERROR"


class InvalidPayloadError(PayloadError):
    """Request payload could not be parsed into a typed value."""

    code: str = "INVALID_PAYLOAD"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid payload field '{field}': {reason}")
