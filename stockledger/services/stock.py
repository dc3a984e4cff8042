"""
Stock mutation service. The only writer of Product.quantity.

Contract:
- Quantity write and ledger append share one transaction: both commit or
  both roll back
- The product row is locked (SELECT ... FOR UPDATE) before the old quantity
  is read, so same-product mutations serialize on the database
- Resulting quantity is never negative
- Low-stock notifications are created after commit; their failures are
  logged and swallowed
- Storage errors surface as StorageFailure with a generic message
"""
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from sqlalchemy.orm import Session
import logging
from typing import Tuple, List, Optional, Any

from stockledger.config import settings
from stockledger.models import Product, LedgerEntry
from stockledger.crud.products import crud_product
from stockledger.crud.users import crud_user
from stockledger.crud.ledger import crud_ledger
from stockledger.crud.notifications import crud_notification
from stockledger.errors import (
    InventoryError, InvalidInput, InvalidOperation, NotFound, Conflict, StorageFailure,
)
from stockledger.schemas.inventory import (
    OperationType, StockLevel, ProductCreate, ProductResponse,
    StockLineItem, BulkAdjustmentItem,
    AdjustmentDetail, StockStatus, StockChangeResult,
    BatchItemSuccess, BatchItemFailure, BatchSummary, BatchResult, TransferResult,
)

logger = logging.getLogger(__name__)

REASON_MAX_LENGTH = 255
INITIAL_CREATION_REASON = "Initial product creation"

# ====================
# VALIDATION
# ====================

def _require_int(value: Any, field: str) -> int:
    # bool is an int subclass but never a quantity
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"{field} must be an integer")
    return value

def _require_reason(reason: Any) -> str:
    if not isinstance(reason, str) or not reason.strip():
        raise InvalidInput("reason is required")
    reason = reason.strip()
    if len(reason) > REASON_MAX_LENGTH:
        raise InvalidInput(f"reason must be at most {REASON_MAX_LENGTH} characters")
    return reason

def _require_operation_type(operation_type: Any) -> OperationType:
    try:
        return OperationType(operation_type)
    except ValueError:
        allowed = ", ".join(op.value for op in OperationType)
        raise InvalidInput(f"operation_type must be one of: {allowed}")

def _require_target(new_quantity: Any, op: OperationType, field: str = "new_quantity") -> int:
    """Absolute target quantity; a negative correction is bad input, anything else negative is refused"""
    _require_int(new_quantity, field)
    if new_quantity < 0:
        if op == OperationType.CORRECTION:
            raise InvalidInput(f"{field} must be a non-negative integer")
        raise InvalidOperation("Stock quantity cannot be negative")
    return new_quantity

def _require_user(db: Session, user_id: int):
    user = crud_user.get(db, user_id)
    if not user:
        raise NotFound("User", user_id)
    return user

def determine_stock_level(product: Product) -> StockLevel:
    if product.quantity == 0:
        return StockLevel.OUT_OF_STOCK
    if product.quantity <= product.reorder_level:
        return StockLevel.LOW_STOCK
    return StockLevel.NORMAL_STOCK

# ====================
# CORE PROTOCOL
# ====================

def _write_locked(
    db: Session,
    product: Product,
    new_quantity: int,
    user_id: int,
    reason: str,
    operation_type: OperationType,
) -> LedgerEntry:
    """
    Write quantity and append the ledger row for a product already locked in
    the current transaction. Does not commit.
    """
    old_quantity = product.quantity
    if new_quantity < 0:
        if operation_type == OperationType.CORRECTION:
            raise InvalidInput("Corrections must leave a non-negative quantity")
        raise InvalidOperation(
            f"Insufficient stock for {product.sku}. Available: {old_quantity}, "
            f"requested change would leave {new_quantity}"
        )

    reduction = old_quantity - new_quantity
    if old_quantity > 0 and reduction > old_quantity * settings.LARGE_REDUCTION_RATIO:
        logger.warning(
            f"Large stock reduction on {product.sku}: {old_quantity} -> {new_quantity} "
            f"({operation_type.value}) by user {user_id}"
        )

    product.quantity = new_quantity
    db.flush()

    return crud_ledger.append(
        db,
        product_id=product.id,
        user_id=user_id,
        old_quantity=old_quantity,
        new_quantity=new_quantity,
        reason=reason,
        operation_type=operation_type.value,
    )

def _notify_if_low(db: Session, product: Product) -> bool:
    """Best-effort stock alert. Returns True when a notification was created."""
    try:
        if not product.is_low_stock():
            return False
        notification = crud_notification.create_if_absent(
            db,
            product_id=product.id,
            quantity=product.quantity,
            reorder_level=product.reorder_level,
        )
        if notification:
            logger.info(f"Created {notification.type} notification for {product.sku}")
            return True
        return False
    except Exception:
        logger.exception(f"Failed to create stock notification for product {product.id}")
        db.rollback()
        return False

def apply_stock_change(
    db: Session,
    product_id: int,
    new_quantity: int,
    user_id: int,
    reason: str,
    operation_type: Any = OperationType.MANUAL_ADJUSTMENT,
) -> Tuple[Product, LedgerEntry]:
    """
    Set a product's quantity to new_quantity and record the change.
    Returns the updated product and its new ledger entry.
    """
    product, entry, _ = _apply_absolute(db, product_id, new_quantity, user_id, reason, operation_type)
    return product, entry

def _apply_absolute(db, product_id, new_quantity, user_id, reason, operation_type):
    op = _require_operation_type(operation_type)
    reason = _require_reason(reason)
    _require_target(new_quantity, op)

    product, entry = _locked_mutation(db, product_id, user_id, reason, op, lambda current: new_quantity)
    created = _notify_if_low(db, product)
    return product, entry, created

def apply_stock_delta(
    db: Session,
    product_id: int,
    delta: int,
    user_id: int,
    reason: str,
    operation_type: Any = OperationType.MANUAL_ADJUSTMENT,
) -> Tuple[Product, LedgerEntry]:
    """Relative variant of apply_stock_change; the new quantity is computed under the lock."""
    op = _require_operation_type(operation_type)
    _require_int(delta, "delta")
    reason = _require_reason(reason)
    if delta == 0:
        raise InvalidInput("delta must be non-zero")

    product, entry = _locked_mutation(db, product_id, user_id, reason, op, lambda current: current + delta)
    _notify_if_low(db, product)
    return product, entry

def _locked_mutation(db, product_id, user_id, reason, op, target) -> Tuple[Product, LedgerEntry]:
    try:
        _require_user(db, user_id)
        product = crud_product.get_for_update(db, product_id)
        if not product:
            raise NotFound("Product", product_id)

        old_quantity = product.quantity
        entry = _write_locked(db, product, target(old_quantity), user_id, reason, op)
        db.commit()
    except InventoryError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Stock mutation failed for product {product_id}: {e}")
        raise StorageFailure() from e

    logger.info(
        f"Stock {op.value} on {product.sku}: {old_quantity} -> {product.quantity} "
        f"by user {user_id} (ledger {entry.id})"
    )
    return product, entry

# ====================
# PRODUCT CREATION
# ====================

def create_product(db: Session, product_in: ProductCreate, user_id: int) -> Tuple[Product, Optional[LedgerEntry]]:
    """
    Insert a product. A positive initial quantity is recorded as a purchase
    from 0 in the same transaction.
    """
    try:
        _require_user(db, user_id)
        if crud_product.get_by_sku(db, product_in.sku):
            raise Conflict(f"Product with SKU '{product_in.sku}' already exists")

        product = crud_product.add(db, obj_in=product_in.model_dump())
        entry = None
        if product.quantity > 0:
            entry = crud_ledger.append(
                db,
                product_id=product.id,
                user_id=user_id,
                old_quantity=0,
                new_quantity=product.quantity,
                reason=INITIAL_CREATION_REASON,
                operation_type=OperationType.PURCHASE.value,
            )
        db.commit()
    except InventoryError:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Integrity error creating product {product_in.sku}: {e}")
        raise Conflict(f"Product with SKU '{product_in.sku}' already exists") from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error creating product {product_in.sku}: {e}")
        raise StorageFailure() from e

    logger.info(f"Product {product.sku} created by user {user_id} with quantity {product.quantity}")
    _notify_if_low(db, product)
    return product, entry

# ====================
# RESULT SHAPES
# ====================

def describe_change(product: Product, entry: LedgerEntry, notification_created: bool = False) -> StockChangeResult:
    change = entry.quantity_change
    if change > 0:
        change_type = "increase"
    elif change < 0:
        change_type = "decrease"
    else:
        change_type = "no_change"

    return StockChangeResult(
        product=ProductResponse.model_validate(product),
        ledger_entry_id=entry.id,
        adjustment=AdjustmentDetail(
            old_quantity=entry.old_quantity,
            new_quantity=entry.new_quantity,
            change=change,
            change_type=change_type,
            reason=entry.reason,
            operation_type=entry.operation_type,
        ),
        status=StockStatus(
            is_low_stock=product.is_low_stock(),
            is_out_of_stock=product.is_out_of_stock(),
            stock_level=determine_stock_level(product),
            notification_created=notification_created,
        ),
    )

def adjust_stock(db: Session, product_id: int, new_quantity: int, user_id: int, reason: str,
                 operation_type: Any = OperationType.MANUAL_ADJUSTMENT) -> StockChangeResult:
    """apply_stock_change plus the response shape used by the HTTP layer"""
    product, entry, created = _apply_absolute(db, product_id, new_quantity, user_id, reason, operation_type)
    return describe_change(product, entry, created)

# ====================
# BATCH OPERATIONS
# ====================

def _run_batch(db: Session, items, user_id: int, apply_item) -> BatchResult:
    """Each item commits on its own; one failing item does not undo the others."""
    result = BatchResult(summary=BatchSummary(total=len(items)))

    for item in items:
        try:
            product = crud_product.get_by_sku(db, item.sku)
            if not product:
                raise NotFound("Product", item.sku)

            product, entry = apply_item(product, item)
            created = _notify_if_low(db, product)
        except InventoryError as e:
            result.failed.append(BatchItemFailure(sku=item.sku, error=e.message, kind=e.kind))
            result.summary.error_count += 1
            continue

        result.successful.append(BatchItemSuccess(
            sku=product.sku,
            product_id=product.id,
            product_name=product.name,
            old_quantity=entry.old_quantity,
            new_quantity=entry.new_quantity,
            change=entry.quantity_change,
            ledger_entry_id=entry.id,
        ))
        result.summary.success_count += 1
        result.summary.total_items_affected += abs(entry.quantity_change)
        if product.is_low_stock():
            result.summary.low_stock_after += 1
        if created:
            result.summary.notifications_created += 1

    logger.info(
        f"Batch by user {user_id}: {result.summary.success_count} succeeded, "
        f"{result.summary.error_count} failed"
    )
    return result

def process_sale(db: Session, items: List[StockLineItem], user_id: int, reference: str) -> BatchResult:
    reason = f"Sale: {reference}"
    return _run_batch(db, items, user_id, lambda product, item: _locked_mutation(
        db, product.id, user_id, reason, OperationType.SALE, lambda current: current - item.quantity
    ))

def process_purchase(db: Session, items: List[StockLineItem], user_id: int, reference: str) -> BatchResult:
    reason = f"Purchase received: {reference}"
    return _run_batch(db, items, user_id, lambda product, item: _locked_mutation(
        db, product.id, user_id, reason, OperationType.PURCHASE, lambda current: current + item.quantity
    ))

def bulk_adjust(db: Session, adjustments: List[BulkAdjustmentItem], user_id: int) -> BatchResult:
    def apply_item(product, item):
        op = _require_operation_type(item.operation_type)
        _require_target(item.quantity, op, "quantity")
        reason = _require_reason(item.reason or f"Bulk adjustment for {product.sku}")
        return _locked_mutation(db, product.id, user_id, reason, op, lambda current: item.quantity)

    return _run_batch(db, adjustments, user_id, apply_item)

# ====================
# TRANSFER
# ====================

def transfer_stock(
    db: Session,
    from_product_id: int,
    to_product_id: int,
    quantity: int,
    user_id: int,
    reason: str,
) -> TransferResult:
    """
    Move quantity from one product to another. Both legs are written in one
    transaction, rows locked in id order.
    """
    _require_int(quantity, "quantity")
    if quantity <= 0:
        raise InvalidInput("Transfer quantity must be positive")
    if from_product_id == to_product_id:
        raise InvalidInput("Source and destination products must differ")
    reason = _require_reason(reason)

    try:
        _require_user(db, user_id)
        locked = {}
        for product_id in sorted((from_product_id, to_product_id)):
            locked[product_id] = crud_product.get_for_update(db, product_id)

        source, destination = locked[from_product_id], locked[to_product_id]
        if not source:
            raise NotFound("Source product", from_product_id)
        if not destination:
            raise NotFound("Destination product", to_product_id)
        if source.quantity < quantity:
            raise InvalidOperation(
                f"Insufficient stock. Available: {source.quantity}, Requested: {quantity}"
            )

        out_entry = _write_locked(
            db, source, source.quantity - quantity, user_id,
            f"Transfer out: {reason}"[:REASON_MAX_LENGTH], OperationType.TRANSFER,
        )
        in_entry = _write_locked(
            db, destination, destination.quantity + quantity, user_id,
            f"Transfer in: {reason}"[:REASON_MAX_LENGTH], OperationType.TRANSFER,
        )
        db.commit()
    except InventoryError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Transfer {from_product_id} -> {to_product_id} failed: {e}")
        raise StorageFailure() from e

    logger.info(
        f"Transferred {quantity} from {source.sku} to {destination.sku} by user {user_id}"
    )
    source_notified = _notify_if_low(db, source)
    destination_notified = _notify_if_low(db, destination)

    return TransferResult(
        from_product=describe_change(source, out_entry, source_notified),
        to_product=describe_change(destination, in_entry, destination_notified),
        quantity=quantity,
        reason=reason,
    )
