"""
Stock mutation protocol: quantity write plus ledger append, all or nothing.
"""
import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError

from stockledger.crud.ledger import crud_ledger
from stockledger.crud.notifications import crud_notification
from stockledger.crud.products import crud_product
from stockledger.errors import InvalidInput, InvalidOperation, NotFound, Conflict, StorageFailure
from stockledger.models import LedgerEntry, Notification, Product
from stockledger.schemas.inventory import (
    NotificationType, OperationType, ProductCreate, StockLevel, StockLineItem, BulkAdjustmentItem,
)
from stockledger.services import stock
from stockledger.services.alerts import urgency_score


def ledger_entries(session, product_id):
    stmt = (
        select(LedgerEntry)
        .where(LedgerEntry.product_id == product_id)
        .order_by(LedgerEntry.id)
    )
    return list(session.execute(stmt).scalars().all())


def notification_count(session, product_id):
    stmt = select(func.count()).select_from(Notification).where(Notification.product_id == product_id)
    return session.execute(stmt).scalar_one()


def notification_types(session, product_id):
    stmt = (
        select(Notification.type)
        .where(Notification.product_id == product_id)
        .order_by(Notification.id)
    )
    return list(session.execute(stmt).scalars().all())


def current_quantity(session, product_id):
    return session.execute(select(Product.quantity).where(Product.id == product_id)).scalar_one()


class TestApplyStockChange:

    def test_writes_quantity_and_one_entry(self, session, staff_user, make_product):
        product = make_product(quantity=20)

        product, entry = stock.apply_stock_change(
            session, product.id, 15, staff_user.id, "Shelf count", OperationType.CORRECTION
        )

        assert product.quantity == 15
        assert entry.old_quantity == 20
        assert entry.new_quantity == 15
        assert entry.operation_type == "correction"
        assert entry.reason == "Shelf count"
        assert entry.user_id == staff_user.id
        assert len(ledger_entries(session, product.id)) == 2

    def test_ledger_replays_to_current_quantity(self, session, staff_user, make_product):
        product = make_product(quantity=20)

        stock.apply_stock_delta(session, product.id, -3, staff_user.id, "sold", OperationType.SALE)
        stock.apply_stock_delta(session, product.id, 10, staff_user.id, "delivery", OperationType.PURCHASE)
        stock.apply_stock_change(session, product.id, 25, staff_user.id, "recount")
        stock.apply_stock_delta(session, product.id, -1, staff_user.id, "broken", OperationType.DAMAGE)

        entries = ledger_entries(session, product.id)
        assert entries[0].old_quantity == 0
        assert sum(e.new_quantity - e.old_quantity for e in entries) == current_quantity(session, product.id)
        for previous, following in zip(entries, entries[1:]):
            assert following.old_quantity == previous.new_quantity

    def test_strips_reason(self, session, staff_user, make_product):
        product = make_product()
        _, entry = stock.apply_stock_change(session, product.id, 18, staff_user.id, "  recount  ")
        assert entry.reason == "recount"

    def test_operation_type_accepts_plain_string(self, session, staff_user, make_product):
        product = make_product()
        _, entry = stock.apply_stock_change(session, product.id, 18, staff_user.id, "spoiled", "damage")
        assert entry.operation_type == "damage"


class TestNegativeGuard:

    def test_negative_target_is_invalid_operation(self, session, staff_user, make_product):
        product = make_product(quantity=5)

        with pytest.raises(InvalidOperation):
            stock.apply_stock_change(session, product.id, -1, staff_user.id, "oops")

        assert current_quantity(session, product.id) == 5
        assert len(ledger_entries(session, product.id)) == 1

    def test_negative_correction_is_invalid_input(self, session, staff_user, make_product):
        product = make_product(quantity=5)

        with pytest.raises(InvalidInput):
            stock.apply_stock_change(session, product.id, -2, staff_user.id, "fix", OperationType.CORRECTION)

    def test_delta_below_zero_is_refused(self, session, staff_user, make_product):
        product = make_product(quantity=5)

        with pytest.raises(InvalidOperation):
            stock.apply_stock_delta(session, product.id, -6, staff_user.id, "big sale", OperationType.SALE)

        assert current_quantity(session, product.id) == 5
        assert len(ledger_entries(session, product.id)) == 1

    def test_delta_to_exactly_zero_is_allowed(self, session, staff_user, make_product):
        product = make_product(quantity=5)
        product, _ = stock.apply_stock_delta(session, product.id, -5, staff_user.id, "sold out", OperationType.SALE)
        assert product.quantity == 0


class TestValidation:

    @pytest.mark.parametrize("quantity", [True, 2.5, "7", None])
    def test_non_integer_quantity(self, session, staff_user, make_product, quantity):
        product = make_product()
        with pytest.raises(InvalidInput):
            stock.apply_stock_change(session, product.id, quantity, staff_user.id, "bad")

    @pytest.mark.parametrize("reason", ["", "   ", None, "x" * 256])
    def test_bad_reason(self, session, staff_user, make_product, reason):
        product = make_product()
        with pytest.raises(InvalidInput):
            stock.apply_stock_change(session, product.id, 3, staff_user.id, reason)

    def test_unknown_operation_type(self, session, staff_user, make_product):
        product = make_product()
        with pytest.raises(InvalidInput):
            stock.apply_stock_change(session, product.id, 3, staff_user.id, "why", "theft")

    def test_zero_delta(self, session, staff_user, make_product):
        product = make_product()
        with pytest.raises(InvalidInput):
            stock.apply_stock_delta(session, product.id, 0, staff_user.id, "nothing")

    def test_unknown_product(self, session, staff_user):
        with pytest.raises(NotFound):
            stock.apply_stock_change(session, 9999, 3, staff_user.id, "ghost")

    def test_unknown_user(self, session, make_product):
        product = make_product()
        with pytest.raises(NotFound):
            stock.apply_stock_change(session, product.id, 3, 9999, "who")
        assert current_quantity(session, product.id) == 20


class TestAtomicity:

    def test_failed_append_rolls_back_quantity(self, session, staff_user, make_product, monkeypatch):
        product = make_product(quantity=20)

        def failing_append(*args, **kwargs):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(crud_ledger, "append", failing_append)

        with pytest.raises(StorageFailure) as excinfo:
            stock.apply_stock_change(session, product.id, 4, staff_user.id, "sale")

        assert excinfo.value.message == "storage operation failed"
        assert current_quantity(session, product.id) == 20
        assert crud_product.get(session, product.id).quantity == 20
        assert len(ledger_entries(session, product.id)) == 1


class TestNotifications:

    def test_low_stock_example(self, session, staff_user, make_product):
        product = make_product(quantity=20, reorder_level=10)

        result = stock.adjust_stock(session, product.id, 5, staff_user.id, "weekend sales", OperationType.SALE)

        assert result.adjustment.change == -15
        assert result.adjustment.change_type == "decrease"
        assert result.status.stock_level == StockLevel.LOW_STOCK
        assert result.status.notification_created is True
        assert crud_notification.find_unread(session, product.id, NotificationType.LOW_STOCK)
        assert urgency_score(5, 10) == 45.0

    def test_out_of_stock_follows_unread_low_stock(self, session, staff_user, make_product):
        product = make_product(quantity=20, reorder_level=10)

        stock.apply_stock_change(session, product.id, 5, staff_user.id, "sale", OperationType.SALE)
        result = stock.adjust_stock(session, product.id, 0, staff_user.id, "sale", OperationType.SALE)

        assert result.status.notification_created is True
        assert result.status.stock_level == StockLevel.OUT_OF_STOCK
        assert notification_types(session, product.id) == ["low_stock", "out_of_stock"]

    def test_unread_alert_of_same_type_suppresses_another(self, session, staff_user, make_product):
        product = make_product(quantity=20, reorder_level=10)

        stock.apply_stock_change(session, product.id, 5, staff_user.id, "sale", OperationType.SALE)
        result = stock.adjust_stock(session, product.id, 3, staff_user.id, "sale", OperationType.SALE)

        assert result.status.notification_created is False
        assert notification_types(session, product.id) == ["low_stock"]

    def test_read_alert_does_not_suppress(self, session, staff_user, make_product):
        product = make_product(quantity=20, reorder_level=10)

        stock.apply_stock_change(session, product.id, 5, staff_user.id, "sale", OperationType.SALE)
        crud_notification.mark_all_read(session)
        result = stock.adjust_stock(session, product.id, 4, staff_user.id, "sale", OperationType.SALE)

        assert result.status.notification_created is True
        assert notification_types(session, product.id) == ["low_stock", "low_stock"]

    def test_concurrent_creators_leave_one_unread_alert(self, session, staff_user, make_product, monkeypatch):
        product = make_product(quantity=20, reorder_level=10)
        stock.apply_stock_change(session, product.id, 5, staff_user.id, "sale", OperationType.SALE)

        # A second writer that looked before the first one committed
        monkeypatch.setattr(crud_notification, "find_unread", lambda *args, **kwargs: None)
        created = crud_notification.create_if_absent(session, product_id=product.id, quantity=5, reorder_level=10)

        assert created is None
        assert notification_types(session, product.id) == ["low_stock"]
        stock.apply_stock_change(session, product.id, 8, staff_user.id, "recount", OperationType.CORRECTION)
        assert current_quantity(session, product.id) == 8

    def test_out_of_stock_message(self, session, staff_user, make_product):
        product = make_product(quantity=3, reorder_level=2)
        stock.apply_stock_change(session, product.id, 0, staff_user.id, "sale", OperationType.SALE)
        notification = crud_notification.find_unread(session, product.id, NotificationType.OUT_OF_STOCK)
        assert notification.message == "Product is out of stock and needs immediate attention"

    def test_no_alert_above_reorder_level(self, session, staff_user, make_product):
        product = make_product(quantity=20, reorder_level=10)
        stock.apply_stock_change(session, product.id, 15, staff_user.id, "sale", OperationType.SALE)
        assert notification_count(session, product.id) == 0

    def test_notification_failure_does_not_undo_the_change(self, session, staff_user, make_product, monkeypatch):
        product = make_product(quantity=20, reorder_level=10)

        def broken(*args, **kwargs):
            raise RuntimeError("notification store down")

        monkeypatch.setattr(crud_notification, "create_if_absent", broken)

        result = stock.adjust_stock(session, product.id, 2, staff_user.id, "sale", OperationType.SALE)

        assert result.status.notification_created is False
        assert current_quantity(session, product.id) == 2
        assert len(ledger_entries(session, product.id)) == 2


class TestCreateProduct:

    def test_initial_quantity_is_a_purchase_from_zero(self, session, make_product):
        product = make_product(sku="new-1", quantity=12)

        assert product.sku == "NEW-1"
        [entry] = ledger_entries(session, product.id)
        assert entry.old_quantity == 0
        assert entry.new_quantity == 12
        assert entry.operation_type == "purchase"
        assert entry.reason == stock.INITIAL_CREATION_REASON

    def test_zero_quantity_writes_no_entry(self, session, make_product):
        product = make_product(quantity=0)
        assert ledger_entries(session, product.id) == []

    def test_duplicate_sku(self, session, staff_user, make_product):
        make_product(sku="DUP-1")
        product_in = ProductCreate(sku="dup-1", name="Again", category="Widgets", price="1.00")
        with pytest.raises(Conflict):
            stock.create_product(session, product_in, staff_user.id)


class TestTransfer:

    def test_moves_stock_with_two_entries(self, session, manager_user, make_product):
        source = make_product(sku="SRC-1", quantity=30)
        destination = make_product(sku="DST-1", quantity=5)

        result = stock.transfer_stock(session, source.id, destination.id, 10, manager_user.id, "rebalance")

        assert result.from_product.product.quantity == 20
        assert result.to_product.product.quantity == 15
        out_entry = ledger_entries(session, source.id)[-1]
        in_entry = ledger_entries(session, destination.id)[-1]
        assert out_entry.reason == "Transfer out: rebalance"
        assert in_entry.reason == "Transfer in: rebalance"
        assert out_entry.operation_type == in_entry.operation_type == "transfer"

    def test_insufficient_stock_writes_nothing(self, session, manager_user, make_product):
        source = make_product(sku="SRC-1", quantity=3)
        destination = make_product(sku="DST-1", quantity=5)

        with pytest.raises(InvalidOperation):
            stock.transfer_stock(session, source.id, destination.id, 4, manager_user.id, "too many")

        assert current_quantity(session, source.id) == 3
        assert current_quantity(session, destination.id) == 5
        assert len(ledger_entries(session, destination.id)) == 1

    def test_same_product(self, session, manager_user, make_product):
        product = make_product()
        with pytest.raises(InvalidInput):
            stock.transfer_stock(session, product.id, product.id, 1, manager_user.id, "loop")

    def test_missing_destination(self, session, manager_user, make_product):
        source = make_product(quantity=10)
        with pytest.raises(NotFound) as excinfo:
            stock.transfer_stock(session, source.id, 9999, 1, manager_user.id, "nowhere")
        assert "Destination product" in excinfo.value.message
        assert current_quantity(session, source.id) == 10

    def test_second_leg_failure_rolls_back_both(self, session, manager_user, make_product, monkeypatch):
        source = make_product(sku="SRC-1", quantity=30)
        destination = make_product(sku="DST-1", quantity=5)
        original_append = crud_ledger.append
        calls = []

        def append_then_fail(*args, **kwargs):
            calls.append(kwargs)
            if len(calls) == 2:
                raise SQLAlchemyError("connection lost")
            return original_append(*args, **kwargs)

        monkeypatch.setattr(crud_ledger, "append", append_then_fail)

        with pytest.raises(StorageFailure):
            stock.transfer_stock(session, source.id, destination.id, 10, manager_user.id, "rebalance")

        assert current_quantity(session, source.id) == 30
        assert current_quantity(session, destination.id) == 5
        assert len(ledger_entries(session, source.id)) == 1


class TestBatches:

    def test_sale_batch_keeps_going_past_failures(self, session, staff_user, make_product):
        make_product(sku="A-1", quantity=10)
        make_product(sku="B-1", quantity=1)

        result = stock.process_sale(session, [
            StockLineItem(sku="A-1", quantity=4),
            StockLineItem(sku="B-1", quantity=2),
            StockLineItem(sku="NOPE", quantity=1),
        ], staff_user.id, "INV-001")

        assert result.summary.success_count == 1
        assert result.summary.error_count == 2
        assert [f.kind for f in result.failed] == ["InvalidOperation", "NotFound"]
        assert result.successful[0].new_quantity == 6
        assert crud_product.get_by_sku(session, "A-1").quantity == 6
        assert crud_product.get_by_sku(session, "B-1").quantity == 1

        entry = ledger_entries(session, result.successful[0].product_id)[-1]
        assert entry.reason == "Sale: INV-001"
        assert entry.operation_type == "sale"

    def test_purchase_batch(self, session, staff_user, make_product):
        make_product(sku="A-1", quantity=2, reorder_level=5)

        result = stock.process_purchase(session, [StockLineItem(sku="a-1", quantity=8)], staff_user.id, "PO-9")

        assert result.summary.success_count == 1
        assert result.summary.total_items_affected == 8
        assert result.summary.low_stock_after == 0
        assert crud_product.get_by_sku(session, "A-1").quantity == 10

    def test_bulk_adjust_default_reason(self, session, manager_user, make_product):
        product = make_product(sku="A-1", quantity=10)

        result = stock.bulk_adjust(session, [
            BulkAdjustmentItem(sku="A-1", quantity=7),
            BulkAdjustmentItem(sku="A-1", quantity=-1),
        ], manager_user.id)

        assert result.summary.success_count == 1
        assert result.failed[0].kind == "InvalidOperation"
        assert ledger_entries(session, product.id)[-1].reason == "Bulk adjustment for A-1"

    def test_bulk_negative_correction_is_invalid_input(self, session, manager_user, make_product):
        product = make_product(sku="A-1", quantity=10)

        result = stock.bulk_adjust(session, [
            BulkAdjustmentItem(sku="A-1", quantity=-2, operation_type=OperationType.CORRECTION),
        ], manager_user.id)

        assert result.failed[0].kind == "InvalidInput"
        with pytest.raises(InvalidInput):
            stock.apply_stock_change(session, product.id, -2, manager_user.id, "recount", OperationType.CORRECTION)
        assert current_quantity(session, product.id) == 10
