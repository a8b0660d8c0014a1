import uuid
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from common.exceptions import ImmutableRecordError, InsufficientStock, InvalidOperation, InvalidState
from core.models import AuditLog
from inventory.models import Product, PurchaseOrder, Stock, StockMovement, Supplier, Warehouse
from inventory.services import (
    adjust_stock,
    approve_purchase_order,
    cancel_purchase_order,
    create_purchase_order,
    find_ledger_drift,
    ledger_balance,
    lock_stock_rows,
    place_purchase_order,
    receive_purchase_order,
    submit_purchase_order,
    transfer_stock,
)
from notifications.models import NotificationOutbox

OUTBOX_ONLY = ["notifications.backends.OutboxBackend"]


class LedgerTestMixin:
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()

        self.admin = self.user_model.objects.create_user(username="admin", password="pass1234", role="admin")
        self.supervisor = self.user_model.objects.create_user(
            username="supervisor",
            password="pass1234",
            role="supervisor",
        )
        self.cashier = self.user_model.objects.create_user(username="cashier", password="pass1234", role="cashier")

        self.main = Warehouse.objects.create(code="MAIN", name="Main Warehouse")
        self.store = Warehouse.objects.create(code="STORE", name="Store Front")
        self.supplier = Supplier.objects.create(code="SUP-1", name="Supplier One")

        self.widget = Product.objects.create(
            sku="WID-001",
            name="Widget",
            cost_price=Decimal("2.50"),
            selling_price=Decimal("4.00"),
            reorder_point=5,
        )
        self.gadget = Product.objects.create(
            sku="GAD-001",
            name="Gadget",
            cost_price=Decimal("7.00"),
            selling_price=Decimal("12.00"),
            reorder_point=2,
        )

    def stock_quantity(self, product, warehouse):
        stock = Stock.objects.filter(product=product, warehouse=warehouse).first()
        return stock.quantity if stock else 0


class AdjustStockTests(LedgerTestMixin, TestCase):
    def test_decrement_beyond_stock_is_rejected_without_writes(self):
        adjust_stock(product=self.widget, warehouse=self.main, quantity=10, reason="Count", actor=self.admin)

        with self.assertRaises(InsufficientStock) as ctx:
            adjust_stock(product=self.widget, warehouse=self.main, quantity=-15, reason="Shrinkage", actor=self.admin)

        self.assertEqual(ctx.exception.available, 10)
        self.assertEqual(ctx.exception.requested, 15)
        self.assertEqual(self.stock_quantity(self.widget, self.main), 10)
        self.assertEqual(StockMovement.objects.filter(product=self.widget).count(), 1)

    @override_settings(NOTIFICATION_BACKENDS=OUTBOX_ONLY)
    def test_decrement_to_reorder_point_records_movement_and_alerts(self):
        adjust_stock(product=self.widget, warehouse=self.main, quantity=10, reason="Count", actor=self.admin)

        with self.captureOnCommitCallbacks(execute=True):
            result = adjust_stock(
                product=self.widget,
                warehouse=self.main,
                quantity=-6,
                reason="Damaged",
                actor=self.admin,
            )

        self.assertEqual(result.stock.quantity, 4)
        movement = result.movement
        self.assertEqual(movement.direction, StockMovement.Direction.OUT)
        self.assertEqual(movement.quantity, 6)
        self.assertEqual(movement.previous_quantity, 10)
        self.assertEqual(movement.new_quantity, 4)
        self.assertEqual(movement.reference_type, StockMovement.ReferenceType.ADJUSTMENT)
        self.assertEqual(movement.performed_by, self.admin)

        events = list(NotificationOutbox.objects.order_by("id").values_list("event", flat=True))
        self.assertEqual(events, ["stock.changed", "stock.low"])
        alert = NotificationOutbox.objects.get(event="stock.low").payload
        self.assertEqual(alert["current_stock"], 4)
        self.assertEqual(alert["reorder_point"], 5)
        self.assertEqual(alert["product_name"], "Widget")
        self.assertEqual(alert["type"], "low-stock")

    def test_zero_adjustment_is_invalid(self):
        with self.assertRaises(InvalidOperation):
            adjust_stock(product=self.widget, warehouse=self.main, quantity=0, reason="Nothing", actor=self.admin)

    def test_decrement_on_missing_bucket_reports_zero_available(self):
        with self.assertRaises(InsufficientStock) as ctx:
            adjust_stock(product=self.widget, warehouse=self.main, quantity=-1, reason="Shrinkage", actor=self.admin)

        self.assertEqual(ctx.exception.available, 0)
        self.assertFalse(Stock.objects.filter(product=self.widget, warehouse=self.main).exists())

    def test_inactive_product_cannot_be_adjusted(self):
        self.widget.is_active = False
        self.widget.save(update_fields=["is_active"])

        with self.assertRaises(InvalidOperation):
            adjust_stock(product=self.widget, warehouse=self.main, quantity=3, reason="Count", actor=self.admin)

    def test_increment_updates_bucket_attributes(self):
        result = adjust_stock(
            product=self.widget,
            warehouse=self.main,
            quantity=3,
            reason="Found",
            actor=self.admin,
            location="A-01",
            batch_number="B42",
        )

        self.assertEqual(result.stock.location, "A-01")
        self.assertEqual(result.stock.batch_number, "B42")
        self.assertEqual(result.movement.direction, StockMovement.Direction.IN)


class TransferStockTests(LedgerTestMixin, TestCase):
    @override_settings(NOTIFICATION_BACKENDS=OUTBOX_ONLY)
    def test_transfer_moves_quantity_with_two_correlated_movements(self):
        adjust_stock(product=self.gadget, warehouse=self.main, quantity=8, reason="Count", actor=self.admin)

        with self.captureOnCommitCallbacks(execute=True):
            result = transfer_stock(
                product=self.gadget,
                from_warehouse=self.main,
                to_warehouse=self.store,
                quantity=5,
                actor=self.supervisor,
                notes="Weekly restock",
            )

        self.assertEqual(self.stock_quantity(self.gadget, self.main), 3)
        self.assertEqual(self.stock_quantity(self.gadget, self.store), 5)

        movements = StockMovement.objects.filter(reference_type=StockMovement.ReferenceType.TRANSFER)
        self.assertEqual(movements.count(), 2)
        self.assertEqual({movement.reference_id for movement in movements}, {result.reference_id})
        self.assertEqual(result.source.movement.notes, "Transferred to warehouse STORE. Weekly restock")
        self.assertEqual(result.destination.movement.notes, "Transferred from warehouse MAIN. Weekly restock")
        self.assertEqual(result.destination.previous_quantity, 0)

        changed = NotificationOutbox.objects.filter(event="stock.changed")
        self.assertEqual({row.warehouse_id for row in changed}, {self.main.id, self.store.id})

    def test_transfer_to_same_warehouse_is_invalid(self):
        with self.assertRaises(InvalidOperation):
            transfer_stock(
                product=self.gadget,
                from_warehouse=self.main,
                to_warehouse=self.main,
                quantity=1,
                actor=self.supervisor,
            )

    def test_transfer_more_than_source_is_rejected(self):
        adjust_stock(product=self.gadget, warehouse=self.main, quantity=2, reason="Count", actor=self.admin)

        with self.assertRaises(InsufficientStock):
            transfer_stock(
                product=self.gadget,
                from_warehouse=self.main,
                to_warehouse=self.store,
                quantity=3,
                actor=self.supervisor,
            )

        self.assertEqual(self.stock_quantity(self.gadget, self.main), 2)
        self.assertEqual(self.stock_quantity(self.gadget, self.store), 0)
        self.assertFalse(StockMovement.objects.filter(reference_type=StockMovement.ReferenceType.TRANSFER).exists())

    def test_transfer_from_missing_bucket_reports_zero_available(self):
        with self.assertRaises(InsufficientStock) as ctx:
            transfer_stock(
                product=self.gadget,
                from_warehouse=self.store,
                to_warehouse=self.main,
                quantity=1,
                actor=self.supervisor,
            )

        self.assertEqual(ctx.exception.available, 0)


class StockMovementLogTests(LedgerTestMixin, TestCase):
    def test_movements_cannot_be_modified_or_deleted(self):
        movement = adjust_stock(
            product=self.widget,
            warehouse=self.main,
            quantity=4,
            reason="Count",
            actor=self.admin,
        ).movement

        movement.reason = "Rewritten"
        with self.assertRaises(ImmutableRecordError):
            movement.save()
        with self.assertRaises(ImmutableRecordError):
            movement.delete()

        self.assertEqual(StockMovement.objects.get(pk=movement.pk).reason, "Count")

    def test_ledger_balance_matches_stock_after_mixed_operations(self):
        adjust_stock(product=self.widget, warehouse=self.main, quantity=20, reason="Count", actor=self.admin)
        adjust_stock(product=self.widget, warehouse=self.main, quantity=-3, reason="Damaged", actor=self.admin)
        transfer_stock(
            product=self.widget,
            from_warehouse=self.main,
            to_warehouse=self.store,
            quantity=7,
            actor=self.supervisor,
        )

        self.assertEqual(ledger_balance(self.widget, self.main), 10)
        self.assertEqual(ledger_balance(self.widget, self.store), 7)
        self.assertEqual(find_ledger_drift(), [])

    def test_check_stock_ledger_reports_drift(self):
        adjust_stock(product=self.widget, warehouse=self.main, quantity=5, reason="Count", actor=self.admin)

        out = StringIO()
        call_command("check_stock_ledger", stdout=out)
        self.assertIn("consistent", out.getvalue())

        Stock.objects.filter(product=self.widget, warehouse=self.main).update(quantity=9)
        drift = find_ledger_drift()
        self.assertEqual(len(drift), 1)
        self.assertEqual(drift[0].difference, 4)

        out = StringIO()
        with self.assertRaises(CommandError):
            call_command("check_stock_ledger", stdout=out)
        self.assertIn("stored=9 ledger=5", out.getvalue())


class PurchaseOrderTests(LedgerTestMixin, TestCase):
    def create_order(self, quantity=100):
        return create_purchase_order(
            supplier=self.supplier,
            warehouse=self.main,
            lines=[{"product": self.widget, "quantity": quantity, "unit_cost": Decimal("2.00")}],
            actor=self.supervisor,
        )

    def test_order_number_and_totals(self):
        order = self.create_order(quantity=10)

        self.assertRegex(order.order_number, r"^PO-\d{8}-0001$")
        self.assertEqual(order.status, PurchaseOrder.Status.DRAFT)
        self.assertEqual(order.total_amount, Decimal("20.00"))
        self.assertRegex(self.create_order().order_number, r"^PO-\d{8}-0002$")

    def test_partial_then_full_receipt_closes_order(self):
        order = approve_purchase_order(self.create_order(), actor=self.admin)
        line = order.lines.get()

        order = receive_purchase_order(order=order, lines=[{"line_id": line.id, "quantity": 60}], actor=self.supervisor)
        line.refresh_from_db()
        self.assertEqual(line.received_quantity, 60)
        self.assertEqual(order.status, PurchaseOrder.Status.ORDERED)
        self.assertIsNone(order.actual_delivery_date)

        order = receive_purchase_order(order=order, lines=[{"line_id": line.id, "quantity": 40}], actor=self.supervisor)
        line.refresh_from_db()
        self.assertEqual(line.received_quantity, 100)
        self.assertEqual(order.status, PurchaseOrder.Status.RECEIVED)
        self.assertIsNotNone(order.actual_delivery_date)

        self.assertEqual(self.stock_quantity(self.widget, self.main), 100)
        movements = StockMovement.objects.filter(reference_id=order.id).order_by("new_quantity")
        self.assertEqual([movement.quantity for movement in movements], [60, 40])
        self.assertTrue(all(movement.notes == f"Received from PO: {order.order_number}" for movement in movements))

    def test_receipt_locks_every_bucket_in_one_ordered_pass(self):
        order = create_purchase_order(
            supplier=self.supplier,
            warehouse=self.main,
            lines=[
                {"product": self.gadget, "quantity": 4, "unit_cost": Decimal("7.00")},
                {"product": self.widget, "quantity": 6, "unit_cost": Decimal("2.00")},
            ],
            actor=self.supervisor,
        )
        order = approve_purchase_order(order, actor=self.admin)
        adjust_stock(product=self.widget, warehouse=self.main, quantity=1, reason="Count", actor=self.admin)
        received = [{"line_id": line.id, "quantity": line.ordered_quantity} for line in order.lines.all()]

        with mock.patch("inventory.services.lock_stock_rows", wraps=lock_stock_rows) as bulk_lock:
            with mock.patch("inventory.services.lock_stock") as single_lock:
                order = receive_purchase_order(order=order, lines=received, actor=self.supervisor)

        bulk_lock.assert_called_once()
        warehouse, products = bulk_lock.call_args.args
        self.assertEqual(warehouse, self.main)
        self.assertEqual({product.id for product in products}, {self.widget.id, self.gadget.id})
        single_lock.assert_not_called()

        self.assertEqual(order.status, PurchaseOrder.Status.RECEIVED)
        self.assertEqual(self.stock_quantity(self.widget, self.main), 7)
        self.assertEqual(self.stock_quantity(self.gadget, self.main), 4)
        self.assertEqual(find_ledger_drift(), [])

    def test_over_receipt_is_rejected(self):
        order = approve_purchase_order(self.create_order(quantity=10), actor=self.admin)
        line = order.lines.get()

        with self.assertRaises(InvalidOperation):
            receive_purchase_order(order=order, lines=[{"line_id": line.id, "quantity": 11}], actor=self.supervisor)

        line.refresh_from_db()
        self.assertEqual(line.received_quantity, 0)
        self.assertEqual(self.stock_quantity(self.widget, self.main), 0)

    def test_receipt_requires_approved_order(self):
        order = self.create_order()
        line = order.lines.get()

        with self.assertRaises(InvalidState):
            receive_purchase_order(order=order, lines=[{"line_id": line.id, "quantity": 1}], actor=self.supervisor)

    def test_lifecycle_transitions(self):
        order = submit_purchase_order(self.create_order())
        self.assertEqual(order.status, PurchaseOrder.Status.PENDING)

        order = approve_purchase_order(order, actor=self.admin)
        self.assertEqual(order.status, PurchaseOrder.Status.APPROVED)
        self.assertEqual(order.approved_by, self.admin)

        order = place_purchase_order(order)
        self.assertEqual(order.status, PurchaseOrder.Status.ORDERED)

        with self.assertRaises(InvalidState):
            cancel_purchase_order(order)

    def test_cancelled_order_cannot_be_approved(self):
        order = cancel_purchase_order(self.create_order())

        with self.assertRaises(InvalidState):
            approve_purchase_order(order, actor=self.admin)


class StockApiTests(LedgerTestMixin, TestCase):
    def test_cashier_cannot_adjust_stock(self):
        self.client.force_authenticate(user=self.cashier)

        response = self.client.post(
            "/api/v1/stock/adjust/",
            {"product_id": str(self.widget.id), "warehouse_id": str(self.main.id), "quantity": 5, "reason": "Count"},
            format="json",
        )

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["code"], "permission_denied")

    def test_supervisor_adjusts_stock_and_action_is_audited(self):
        self.client.force_authenticate(user=self.supervisor)

        response = self.client.post(
            "/api/v1/stock/adjust/",
            {"product_id": str(self.widget.id), "warehouse_id": str(self.main.id), "quantity": 5, "reason": "Count"},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertEqual(payload["stock"]["quantity"], 5)
        self.assertEqual(payload["movement"]["direction"], "in")
        self.assertEqual(payload["movement"]["new_quantity"], 5)
        self.assertTrue(AuditLog.objects.filter(action="stock.adjust", actor=self.supervisor).exists())

    def test_insufficient_stock_uses_standard_envelope(self):
        adjust_stock(product=self.widget, warehouse=self.main, quantity=2, reason="Count", actor=self.admin)
        self.client.force_authenticate(user=self.supervisor)

        response = self.client.post(
            "/api/v1/stock/adjust/",
            {"product_id": str(self.widget.id), "warehouse_id": str(self.main.id), "quantity": -3, "reason": "Loss"},
            format="json",
        )

        self.assertEqual(response.status_code, 409)
        payload = response.json()
        self.assertEqual(payload["code"], "insufficient_stock")
        self.assertEqual(payload["status"], 409)
        self.assertEqual(payload["errors"]["product_id"], str(self.widget.id))
        self.assertEqual(payload["errors"]["available"], 2)
        self.assertEqual(payload["errors"]["requested"], 3)

    def test_unknown_product_returns_not_found(self):
        self.client.force_authenticate(user=self.supervisor)

        response = self.client.post(
            "/api/v1/stock/adjust/",
            {"product_id": str(uuid.uuid4()), "warehouse_id": str(self.main.id), "quantity": 1, "reason": "Count"},
            format="json",
        )

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "not_found")

    def test_same_warehouse_transfer_returns_invalid_operation(self):
        self.client.force_authenticate(user=self.supervisor)

        response = self.client.post(
            "/api/v1/stock/transfer/",
            {
                "product_id": str(self.widget.id),
                "from_warehouse_id": str(self.main.id),
                "to_warehouse_id": str(self.main.id),
                "quantity": 1,
            },
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "invalid_operation")

    def test_transfer_endpoint_returns_both_sides(self):
        adjust_stock(product=self.widget, warehouse=self.main, quantity=8, reason="Count", actor=self.admin)
        self.client.force_authenticate(user=self.supervisor)

        response = self.client.post(
            "/api/v1/stock/transfer/",
            {
                "product_id": str(self.widget.id),
                "from_warehouse_id": str(self.main.id),
                "to_warehouse_id": str(self.store.id),
                "quantity": 5,
            },
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertEqual(payload["source"]["stock"]["quantity"], 3)
        self.assertEqual(payload["destination"]["stock"]["quantity"], 5)
        self.assertEqual(payload["source"]["movement"]["reference_id"], payload["reference_id"])

    def test_low_stock_alerts_and_summary(self):
        adjust_stock(product=self.widget, warehouse=self.main, quantity=3, reason="Count", actor=self.admin)
        adjust_stock(product=self.widget, warehouse=self.store, quantity=30, reason="Count", actor=self.admin)
        self.client.force_authenticate(user=self.cashier)

        response = self.client.get("/api/v1/stock/alerts/low-stock/")
        self.assertEqual(response.status_code, 200)
        results = response.json()["results"]
        self.assertEqual(len(results), 1)
        self.assertEqual(results[0]["warehouse_code"], "MAIN")
        self.assertEqual(results[0]["severity"], "low")

        response = self.client.get(f"/api/v1/stock/product/{self.widget.id}/")
        self.assertEqual(response.status_code, 200)
        summary = response.json()
        self.assertEqual(summary["total_quantity"], 33)
        self.assertEqual(len(summary["warehouses"]), 2)

    def test_movement_log_is_filterable(self):
        adjust_stock(product=self.widget, warehouse=self.main, quantity=3, reason="Count", actor=self.admin)
        adjust_stock(product=self.gadget, warehouse=self.main, quantity=4, reason="Count", actor=self.admin)
        self.client.force_authenticate(user=self.cashier)

        response = self.client.get("/api/v1/stock/movements/", {"product": str(self.gadget.id)})

        self.assertEqual(response.status_code, 200)
        results = response.json()["results"]
        self.assertEqual(len(results), 1)
        self.assertEqual(results[0]["product_sku"], "GAD-001")
        self.assertEqual(results[0]["signed_quantity"], 4)

    def test_malformed_filters_return_validation_envelope(self):
        self.client.force_authenticate(user=self.cashier)

        for url, params in (
            ("/api/v1/stock/", {"warehouse": "abc"}),
            ("/api/v1/stock/", {"product": "abc"}),
            ("/api/v1/stock/", {"low_stock": "maybe"}),
            ("/api/v1/stock/alerts/low-stock/", {"warehouse": "abc"}),
            ("/api/v1/stock/movements/", {"reference_id": "abc"}),
            ("/api/v1/stock/movements/", {"direction": "sideways"}),
        ):
            with self.subTest(url=url, params=params):
                response = self.client.get(url, params)

                self.assertEqual(response.status_code, 400)
                payload = response.json()
                self.assertEqual(payload["code"], "validation_error")
                self.assertIn(next(iter(params)), payload["errors"])

    def test_blank_and_valid_filters_are_applied(self):
        adjust_stock(product=self.widget, warehouse=self.main, quantity=3, reason="Count", actor=self.admin)
        adjust_stock(product=self.widget, warehouse=self.store, quantity=9, reason="Count", actor=self.admin)
        self.client.force_authenticate(user=self.cashier)

        response = self.client.get("/api/v1/stock/", {"warehouse": ""})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()["results"]), 2)

        response = self.client.get("/api/v1/stock/", {"warehouse": str(self.store.id), "low_stock": "false"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["quantity"] for row in response.json()["results"]], [9])

        response = self.client.get("/api/v1/stock/", {"low_stock": "true"})
        self.assertEqual([row["warehouse_code"] for row in response.json()["results"]], ["MAIN"])

    def test_deleting_product_deactivates_it(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.delete(f"/api/v1/products/{self.widget.id}/")

        self.assertEqual(response.status_code, 204)
        self.widget.refresh_from_db()
        self.assertFalse(self.widget.is_active)
        self.assertTrue(AuditLog.objects.filter(action="product.deactivate", entity_id=self.widget.id).exists())


class PurchaseOrderApiTests(LedgerTestMixin, TestCase):
    def create_order(self):
        self.client.force_authenticate(user=self.supervisor)
        response = self.client.post(
            "/api/v1/purchase-orders/",
            {
                "supplier": str(self.supplier.id),
                "warehouse": str(self.main.id),
                "lines": [{"product": str(self.widget.id), "quantity": 10, "unit_cost": "2.00"}],
            },
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        return response.json()

    def test_supervisor_cannot_approve(self):
        order = self.create_order()

        response = self.client.post(f"/api/v1/purchase-orders/{order['id']}/approve/", {}, format="json")

        self.assertEqual(response.status_code, 403)

    def test_receive_before_approval_returns_invalid_state(self):
        order = self.create_order()

        response = self.client.post(
            f"/api/v1/purchase-orders/{order['id']}/receive/",
            {"lines": [{"line_id": order["lines"][0]["id"], "quantity": 5}]},
            format="json",
        )

        self.assertEqual(response.status_code, 409)
        payload = response.json()
        self.assertEqual(payload["code"], "invalid_state")
        self.assertEqual(payload["errors"]["status"], "draft")

    def test_approve_and_receive_flow(self):
        order = self.create_order()
        self.assertEqual(order["total_amount"], "20.00")

        self.client.force_authenticate(user=self.admin)
        response = self.client.post(f"/api/v1/purchase-orders/{order['id']}/approve/", {}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "approved")

        self.client.force_authenticate(user=self.supervisor)
        line_id = order["lines"][0]["id"]
        response = self.client.post(
            f"/api/v1/purchase-orders/{order['id']}/receive/",
            {"lines": [{"line_id": line_id, "quantity": 11}]},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "invalid_operation")

        response = self.client.post(
            f"/api/v1/purchase-orders/{order['id']}/receive/",
            {"lines": [{"line_id": line_id, "quantity": 10}]},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["status"], "received")
        self.assertEqual(payload["lines"][0]["received_quantity"], 10)
        self.assertEqual(self.stock_quantity(self.widget, self.main), 10)
        self.assertTrue(AuditLog.objects.filter(action="purchase_order.receive", entity_id=order["id"]).exists())

    def test_list_filters_are_validated(self):
        order = self.create_order()

        response = self.client.get("/api/v1/purchase-orders/", {"supplier": "abc"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "validation_error")
        self.assertIn("supplier", response.json()["errors"])

        response = self.client.get("/api/v1/purchase-orders/", {"status": "draft", "supplier": str(self.supplier.id)})
        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["id"] for row in response.json()["results"]], [order["id"]])

    def test_unknown_line_returns_not_found(self):
        order = self.create_order()
        self.client.force_authenticate(user=self.admin)
        self.client.post(f"/api/v1/purchase-orders/{order['id']}/approve/", {}, format="json")

        response = self.client.post(
            f"/api/v1/purchase-orders/{order['id']}/receive/",
            {"lines": [{"line_id": str(uuid.uuid4()), "quantity": 1}]},
            format="json",
        )

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "not_found")
