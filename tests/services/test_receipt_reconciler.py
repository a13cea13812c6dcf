"""Tests for ReceiptReconciler: quantity conservation and derived status."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from purchasing_kernel.exceptions import (
    InvalidStateError,
    NotFoundError,
    QuantityExceededError,
    ValidationError,
)
from purchasing_kernel.models.inventory import InventoryTransaction
from purchasing_kernel.models.receipt import PurchaseReceipt
from purchasing_kernel.selectors.inventory_selector import InventorySelector
from purchasing_kernel.services.receipt_reconciler import ReceiptReconciler


@pytest.fixture
def reconciler(session, deterministic_clock):
    return ReceiptReconciler(session, clock=deterministic_clock)


def _count(session, model) -> int:
    return session.execute(select(func.count(model.id))).scalar_one()


class TestReceivingScenario:
    """Item of 10 @ 5.00, received 6, then an over-receipt of 5, then 4."""

    def test_partial_then_rejected_then_full(self, session, org_id, user_id, product, make_order, reconciler):
        order = make_order([(product, "10", "5.00")], status="confirmed")
        item = order.items[0]
        assert order.total_amount == Decimal("50.00")

        first = reconciler.receive(
            order.id, org_id, user_id, [{"order_item_id": item.id, "received_quantity": "6"}],
        )
        assert first.previous_status == "confirmed"
        assert first.new_status == "partially_received"
        assert first.total_received_value == Decimal("30.00")
        assert InventorySelector(session).current_stock(org_id, product.id).quantity_on_hand == 6

        receipts_before = _count(session, PurchaseReceipt)
        ledger_before = _count(session, InventoryTransaction)
        savepoint = session.begin_nested()
        with pytest.raises(QuantityExceededError) as exc_info:
            reconciler.receive(
                order.id, org_id, user_id, [{"order_item_id": item.id, "received_quantity": "5"}],
            )
        savepoint.rollback()
        assert exc_info.value.remaining == Decimal("4")
        assert exc_info.value.requested == Decimal("5")
        assert _count(session, PurchaseReceipt) == receipts_before
        assert _count(session, InventoryTransaction) == ledger_before

        last = reconciler.receive(
            order.id, org_id, user_id, [{"order_item_id": item.id, "received_quantity": "4"}],
        )
        assert last.new_status == "received"
        assert order.status == "received"
        assert order.total_amount == Decimal("50.00")
        assert InventorySelector(session).current_stock(org_id, product.id).quantity_on_hand == 10


class TestReceiveBehaviour:

    def test_receipt_copies_price_and_defaults_date(self, session, org_id, user_id, product, make_order, reconciler):
        order = make_order([(product, "3", "2.50")], status="confirmed")
        result = reconciler.receive(
            order.id, org_id, user_id,
            [{"order_item_id": order.items[0].id, "received_quantity": "3"}],
            notes="dock 4",
        )
        receipt = result.receipts[0]
        assert receipt.unit_price == Decimal("2.50")
        assert receipt.total_amount == Decimal("7.50")
        assert receipt.received_date == date(2024, 3, 15)
        assert receipt.notes == "dock 4"

    def test_line_notes_override_batch_notes(self, session, org_id, user_id, product, make_order, reconciler):
        order = make_order([(product, "3", "1")], status="confirmed")
        result = reconciler.receive(
            order.id, org_id, user_id,
            [{"order_item_id": order.items[0].id, "received_quantity": "1", "notes": "damaged box"}],
            notes="batch",
        )
        assert result.receipts[0].notes == "damaged box"

    def test_ledger_reference_is_order_number(self, session, org_id, user_id, product, make_order, reconciler):
        order = make_order([(product, "3", "1")], status="confirmed")
        reconciler.receive(order.id, org_id, user_id, [{"order_item_id": order.items[0].id, "received_quantity": "2"}])

        history = InventorySelector(session).history(org_id, product.id)
        assert history[-1].reference_number == order.order_number
        assert history[-1].transaction_type == "purchase"

    def test_duplicate_lines_in_batch_accumulate(self, session, org_id, user_id, product, make_order, reconciler):
        order = make_order([(product, "10", "1")], status="confirmed")
        item_id = order.items[0].id
        with pytest.raises(QuantityExceededError) as exc_info:
            reconciler.receive(
                order.id, org_id, user_id,
                [
                    {"order_item_id": item_id, "received_quantity": "6"},
                    {"order_item_id": item_id, "received_quantity": "6"},
                ],
            )
        assert exc_info.value.remaining == Decimal("4")

    def test_status_derived_over_all_items(self, session, org_id, user_id, product, second_product, make_order, reconciler):
        order = make_order([(product, "5", "1"), (second_product, "2", "1")], status="confirmed")
        first_item, second_item = order.items

        result = reconciler.receive(
            order.id, org_id, user_id, [{"order_item_id": first_item.id, "received_quantity": "5"}],
        )
        assert result.new_status == "partially_received"

        result = reconciler.receive(
            order.id, org_id, user_id, [{"order_item_id": second_item.id, "received_quantity": "2"}],
        )
        assert result.new_status == "received"

    def test_multi_product_batch(self, session, org_id, user_id, product, second_product, make_order, reconciler):
        order = make_order([(product, "5", "1"), (second_product, "2", "3")], status="confirmed")
        result = reconciler.receive(
            order.id, org_id, user_id,
            [
                {"order_item_id": order.items[1].id, "received_quantity": "2"},
                {"order_item_id": order.items[0].id, "received_quantity": "5"},
            ],
        )
        assert result.new_status == "received"
        assert result.total_received_value == Decimal("11.00")
        selector = InventorySelector(session)
        assert selector.current_stock(org_id, product.id).quantity_on_hand == 5
        assert selector.current_stock(org_id, second_product.id).quantity_on_hand == 2


class TestReceivePreconditions:

    @pytest.mark.parametrize("status", ["draft", "sent"])
    def test_not_receivable_status(self, org_id, user_id, product, make_order, reconciler, status):
        order = make_order([(product, "1", "1")], status=status)
        with pytest.raises(InvalidStateError) as exc_info:
            reconciler.receive(order.id, org_id, user_id, [{"order_item_id": order.items[0].id, "received_quantity": "1"}])
        assert exc_info.value.current_state == status
        assert exc_info.value.operation == "receive"

    def test_received_order_rejects_more(self, org_id, user_id, product, make_order, reconciler):
        order = make_order([(product, "1", "1")], status="confirmed")
        line = [{"order_item_id": order.items[0].id, "received_quantity": "1"}]
        reconciler.receive(order.id, org_id, user_id, line)
        with pytest.raises(InvalidStateError):
            reconciler.receive(order.id, org_id, user_id, line)

    def test_order_in_other_org_not_found(self, user_id, product, make_order, reconciler):
        order = make_order([(product, "1", "1")], status="confirmed")
        with pytest.raises(NotFoundError):
            reconciler.receive(order.id, uuid4(), user_id, [{"order_item_id": order.items[0].id, "received_quantity": "1"}])

    def test_item_from_other_order_not_found(self, org_id, user_id, product, make_order, reconciler):
        order = make_order([(product, "1", "1")], status="confirmed")
        other = make_order([(product, "1", "1")], status="confirmed")
        with pytest.raises(NotFoundError) as exc_info:
            reconciler.receive(order.id, org_id, user_id, [{"order_item_id": other.items[0].id, "received_quantity": "1"}])
        assert exc_info.value.entity_type == "PurchaseOrderItem"

    def test_empty_batch_rejected(self, org_id, user_id, product, make_order, reconciler):
        order = make_order([(product, "1", "1")], status="confirmed")
        with pytest.raises(ValidationError):
            reconciler.receive(order.id, org_id, user_id, [])

    def test_quantity_exceeded_logged(self, org_id, user_id, product, make_order, reconciler, captured_logs):
        order = make_order([(product, "1", "1")], status="confirmed")
        with pytest.raises(QuantityExceededError):
            reconciler.receive(order.id, org_id, user_id, [{"order_item_id": order.items[0].id, "received_quantity": "2"}])
        assert any(r["message"] == "receive_quantity_exceeded" for r in captured_logs())

    def test_quantity_below_column_scale_rejected(self, session, org_id, user_id, product, make_order, reconciler):
        order = make_order([(product, "10", "5.00")], status="confirmed")
        receipts_before = _count(session, PurchaseReceipt)
        ledger_before = _count(session, InventoryTransaction)

        with pytest.raises(ValidationError) as exc_info:
            reconciler.receive(
                order.id, org_id, user_id,
                [{"order_item_id": order.items[0].id, "received_quantity": "0.0000000001"}],
            )
        assert exc_info.value.field == "items[0].received_quantity"
        assert order.status == "confirmed"
        assert _count(session, PurchaseReceipt) == receipts_before
        assert _count(session, InventoryTransaction) == ledger_before
