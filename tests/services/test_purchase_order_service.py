"""Tests for PurchaseOrderService creation, deletion and listing."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from purchasing_kernel.domain.dtos import OrderFilters, Pagination
from purchasing_kernel.exceptions import (
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from purchasing_kernel.models.purchase_order import PurchaseOrder, PurchaseOrderItem
from purchasing_kernel.models.receipt import PurchaseReceipt
from purchasing_kernel.services.purchase_order_service import PurchaseOrderService
from purchasing_kernel.services.receipt_reconciler import ReceiptReconciler
from tests.factories import make_product, make_supplier


@pytest.fixture
def service(session, deterministic_clock):
    return PurchaseOrderService(session, clock=deterministic_clock)


class TestCreate:

    def test_creates_draft_with_items(self, service, org_id, user_id, supplier, product, second_product):
        order = service.create(
            organization_id=org_id,
            supplier_id=supplier.id,
            items=[
                {"product_id": product.id, "quantity": "10", "unit_price": "5.00"},
                {"product_id": second_product.id, "quantity": "3", "unit_price": "1.333"},
            ],
            user_id=user_id,
            expected_delivery_date=date(2024, 4, 1),
            notes="rush",
        )
        assert order.status == "draft"
        assert order.order_number == "PO-2024-0001"
        assert order.order_date == date(2024, 3, 15)
        assert [i.line_number for i in order.items] == [1, 2]
        assert order.items[1].total_amount == Decimal("4.00")
        assert order.total_amount == Decimal("54.00")
        assert order.created_by_id == user_id

    def test_order_number_uses_order_date_year(self, service, org_id, user_id, supplier, product):
        order = service.create(
            org_id, supplier.id, [{"product_id": product.id, "quantity": "1", "unit_price": "1"}],
            user_id, order_date=date(2023, 12, 31),
        )
        assert order.order_number == "PO-2023-0001"

    def test_sequential_numbers(self, service, org_id, user_id, supplier, product):
        items = [{"product_id": product.id, "quantity": "1", "unit_price": "1"}]
        first = service.create(org_id, supplier.id, items, user_id)
        second = service.create(org_id, supplier.id, items, user_id)
        assert (first.order_number, second.order_number) == ("PO-2024-0001", "PO-2024-0002")

    def test_unknown_supplier(self, service, org_id, user_id, product):
        with pytest.raises(NotFoundError) as exc_info:
            service.create(org_id, uuid4(), [{"product_id": product.id, "quantity": "1", "unit_price": "1"}], user_id)
        assert exc_info.value.entity_type == "Supplier"

    def test_inactive_supplier(self, session, service, org_id, user_id, product):
        inactive = make_supplier(session, org_id, is_active=False)
        with pytest.raises(NotFoundError):
            service.create(org_id, inactive.id, [{"product_id": product.id, "quantity": "1", "unit_price": "1"}], user_id)

    def test_supplier_in_other_org(self, session, service, org_id, user_id, product):
        foreign = make_supplier(session, uuid4())
        with pytest.raises(NotFoundError):
            service.create(org_id, foreign.id, [{"product_id": product.id, "quantity": "1", "unit_price": "1"}], user_id)

    def test_inactive_product_named(self, session, service, org_id, user_id, supplier, product):
        inactive = make_product(session, org_id, is_active=False)
        with pytest.raises(ValidationError) as exc_info:
            service.create(
                org_id, supplier.id,
                [
                    {"product_id": product.id, "quantity": "1", "unit_price": "1"},
                    {"product_id": inactive.id, "quantity": "1", "unit_price": "1"},
                ],
                user_id,
            )
        assert exc_info.value.field == "items[1].product_id"
        assert str(inactive.id) in exc_info.value.reason

    def test_validation_happens_before_numbering(self, session, service, org_id, user_id, supplier):
        with pytest.raises(ValidationError):
            service.create(org_id, supplier.id, [], user_id)
        assert session.execute(select(func.count(PurchaseOrder.id))).scalar_one() == 0


    def test_quantity_below_column_scale_rejected(self, session, service, org_id, user_id, supplier, product):
        with pytest.raises(ValidationError) as exc_info:
            service.create(
                org_id, supplier.id,
                [{"product_id": product.id, "quantity": "0.0000000001", "unit_price": "5.00"}],
                user_id,
            )
        assert exc_info.value.field == "items[0].quantity"
        assert session.execute(select(func.count(PurchaseOrderItem.id))).scalar_one() == 0

class TestDelete:

    def test_delete_draft(self, session, service, org_id, product, make_order):
        order = make_order([(product, "2", "1")])
        order_id = order.id
        service.delete(order_id, org_id)

        assert session.get(PurchaseOrder, order_id) is None
        remaining_items = session.execute(
            select(func.count(PurchaseOrderItem.id)).where(PurchaseOrderItem.purchase_order_id == order_id)
        ).scalar_one()
        assert remaining_items == 0

    def test_delete_sent_rejected(self, service, org_id, product, make_order):
        order = make_order([(product, "2", "1")], status="sent")
        with pytest.raises(InvalidStateError) as exc_info:
            service.delete(order.id, org_id)
        assert exc_info.value.current_state == "sent"

    def test_delete_received_order_rejected(self, session, service, org_id, user_id, product, make_order, deterministic_clock):
        order = make_order([(product, "2", "1")], status="confirmed")
        ReceiptReconciler(session, clock=deterministic_clock).receive(
            order.id, org_id, user_id, [{"order_item_id": order.items[0].id, "received_quantity": "1"}],
        )
        with pytest.raises(InvalidStateError) as exc_info:
            service.delete(order.id, org_id)
        assert exc_info.value.operation == "delete"
        assert exc_info.value.current_state == "partially_received"

    def test_draft_with_receipts_rejected(self, session, service, org_id, user_id, product, make_order, deterministic_clock):
        order = make_order([(product, "2", "1")])
        item = order.items[0]
        session.add(
            PurchaseReceipt(
                organization_id=org_id,
                purchase_order_id=order.id,
                purchase_order_item_id=item.id,
                user_id=user_id,
                quantity=Decimal("1"),
                unit_price=item.unit_price,
                total_amount=item.unit_price,
                received_date=deterministic_clock.today(),
            )
        )
        session.flush()

        with pytest.raises(InvalidStateError) as exc_info:
            service.delete(order.id, org_id)
        assert exc_info.value.current_state == "draft"
        assert "receipt" in exc_info.value.reason
        assert session.get(PurchaseOrder, order.id) is not None

    def test_delete_unknown(self, service, org_id):
        with pytest.raises(NotFoundError):
            service.delete(uuid4(), org_id)


class TestReads:

    def test_get_view_includes_received(self, session, service, org_id, user_id, product, make_order, deterministic_clock):
        order = make_order([(product, "10", "1")], status="confirmed")
        ReceiptReconciler(session, clock=deterministic_clock).receive(
            order.id, org_id, user_id, [{"order_item_id": order.items[0].id, "received_quantity": "4"}],
        )
        view = service.get(order.id, org_id)
        assert view.status == "partially_received"
        assert view.items[0].received_quantity == Decimal("4")
        assert view.items[0].remaining_quantity == Decimal("6")

    def test_get_other_org_not_found(self, service, product, make_order):
        order = make_order([(product, "1", "1")])
        with pytest.raises(NotFoundError):
            service.get(order.id, uuid4())

    def test_list_ordering_filters_and_paging(self, service, org_id, product, make_order):
        make_order([(product, "1", "1")], order_date=date(2024, 1, 10))
        make_order([(product, "1", "1")], order_date=date(2024, 2, 10), status="sent")
        make_order([(product, "1", "1")], order_date=date(2024, 2, 10))

        page = service.list(org_id, OrderFilters(), Pagination(page=1, page_size=2))
        assert page.total == 3
        assert page.has_next
        assert [o.order_number for o in page.orders] == ["PO-2024-0003", "PO-2024-0002"]

        page_two = service.list(org_id, OrderFilters(), Pagination(page=2, page_size=2))
        assert [o.order_number for o in page_two.orders] == ["PO-2024-0001"]
        assert not page_two.has_next

        sent = service.list(org_id, OrderFilters(status="sent"), Pagination(page=1, page_size=10))
        assert [o.status for o in sent.orders] == ["sent"]

        january = service.list(
            org_id, OrderFilters(date_to=date(2024, 1, 31)), Pagination(page=1, page_size=10),
        )
        assert [o.order_number for o in january.orders] == ["PO-2024-0001"]

    def test_list_scoped_to_organization(self, service, product, make_order):
        make_order([(product, "1", "1")])
        page = service.list(uuid4(), OrderFilters(), Pagination(page=1, page_size=10))
        assert page.total == 0
        assert page.orders == ()
