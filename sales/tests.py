import uuid
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APIClient

from common.exceptions import InsufficientStock, InvalidOperation, InvalidState
from core.models import AuditLog
from inventory.models import Product, Stock, StockMovement, Warehouse
from inventory.services import adjust_stock, find_ledger_drift
from notifications.models import NotificationOutbox
from sales.models import Sale
from sales.services import create_sale, void_sale


class SalesTestMixin:
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

        self.warehouse = Warehouse.objects.create(code="SHOP", name="Shop Floor")
        self.tea = Product.objects.create(sku="TEA-1", name="Green Tea", selling_price=Decimal("3.50"), reorder_point=2)
        self.mug = Product.objects.create(sku="MUG-1", name="Mug", selling_price=Decimal("8.00"), reorder_point=1)

        adjust_stock(product=self.tea, warehouse=self.warehouse, quantity=10, reason="Opening", actor=self.admin)
        adjust_stock(product=self.mug, warehouse=self.warehouse, quantity=5, reason="Opening", actor=self.admin)

    def quantity(self, product):
        return Stock.objects.get(product=product, warehouse=self.warehouse).quantity


class CreateSaleTests(SalesTestMixin, TestCase):
    def test_shortage_on_any_line_rejects_whole_sale(self):
        with self.assertRaises(InsufficientStock) as ctx:
            create_sale(
                warehouse=self.warehouse,
                lines=[{"product": self.tea, "quantity": 3}, {"product": self.mug, "quantity": 20}],
                actor=self.cashier,
            )

        self.assertEqual(ctx.exception.product, self.mug)
        self.assertEqual(ctx.exception.available, 5)
        self.assertEqual(ctx.exception.requested, 20)
        self.assertEqual(self.quantity(self.tea), 10)
        self.assertEqual(self.quantity(self.mug), 5)
        self.assertFalse(Sale.objects.exists())
        self.assertFalse(StockMovement.objects.filter(reference_type=StockMovement.ReferenceType.SALE).exists())

    def test_sale_decrements_stock_and_records_lines(self):
        sale = create_sale(
            warehouse=self.warehouse,
            lines=[
                {"product": self.tea, "quantity": 2},
                {"product": self.mug, "quantity": 1, "unit_price": Decimal("7.00"), "discount": Decimal("0.50")},
            ],
            actor=self.cashier,
            tax_amount=Decimal("1.00"),
            payment_amount=Decimal("20.00"),
        )

        self.assertEqual(sale.sale_number, f"SALE-{timezone.localdate():%Y%m%d}-0001")
        self.assertEqual(sale.subtotal, Decimal("13.50"))
        self.assertEqual(sale.total_amount, Decimal("14.50"))
        self.assertEqual(sale.change_amount, Decimal("5.50"))
        self.assertEqual(sale.lines.count(), 2)
        self.assertEqual(self.quantity(self.tea), 8)
        self.assertEqual(self.quantity(self.mug), 4)

        movements = StockMovement.objects.filter(reference_type=StockMovement.ReferenceType.SALE, reference_id=sale.id)
        self.assertEqual(movements.count(), 2)
        self.assertTrue(all(movement.direction == StockMovement.Direction.OUT for movement in movements))
        self.assertEqual(find_ledger_drift(), [])

    def test_sale_numbers_are_sequential_per_day(self):
        first = create_sale(warehouse=self.warehouse, lines=[{"product": self.tea, "quantity": 1}], actor=self.cashier)
        second = create_sale(warehouse=self.warehouse, lines=[{"product": self.tea, "quantity": 1}], actor=self.cashier)

        self.assertTrue(first.sale_number.endswith("-0001"))
        self.assertTrue(second.sale_number.endswith("-0002"))

    def test_repeated_product_lines_are_checked_together(self):
        with self.assertRaises(InsufficientStock) as ctx:
            create_sale(
                warehouse=self.warehouse,
                lines=[{"product": self.tea, "quantity": 6}, {"product": self.tea, "quantity": 6}],
                actor=self.cashier,
            )

        self.assertEqual(ctx.exception.requested, 12)
        self.assertEqual(self.quantity(self.tea), 10)

    def test_reserved_stock_is_not_sellable(self):
        Stock.objects.filter(product=self.mug, warehouse=self.warehouse).update(reserved_quantity=4)

        with self.assertRaises(InsufficientStock) as ctx:
            create_sale(warehouse=self.warehouse, lines=[{"product": self.mug, "quantity": 2}], actor=self.cashier)

        self.assertEqual(ctx.exception.available, 1)

    def test_underpayment_is_rejected(self):
        with self.assertRaises(InvalidOperation):
            create_sale(
                warehouse=self.warehouse,
                lines=[{"product": self.mug, "quantity": 1}],
                actor=self.cashier,
                payment_amount=Decimal("5.00"),
            )

        self.assertFalse(Sale.objects.exists())
        self.assertEqual(self.quantity(self.mug), 5)

    def test_empty_sale_is_invalid(self):
        with self.assertRaises(InvalidOperation):
            create_sale(warehouse=self.warehouse, lines=[], actor=self.cashier)

    @override_settings(NOTIFICATION_BACKENDS=["notifications.backends.OutboxBackend"])
    def test_sale_notifies_once_per_product_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            sale = create_sale(
                warehouse=self.warehouse,
                lines=[
                    {"product": self.tea, "quantity": 4},
                    {"product": self.tea, "quantity": 4},
                    {"product": self.mug, "quantity": 1},
                ],
                actor=self.cashier,
            )

        changed = NotificationOutbox.objects.filter(event="stock.changed")
        self.assertEqual(changed.count(), 2)
        tea_update = changed.get(product_id=self.tea.id).payload
        self.assertEqual(tea_update["previous_quantity"], 10)
        self.assertEqual(tea_update["new_quantity"], 2)

        low = NotificationOutbox.objects.get(event="stock.low")
        self.assertEqual(low.product_id, self.tea.id)

        created = NotificationOutbox.objects.get(event="sale.created")
        self.assertEqual(created.payload["sale_number"], sale.sale_number)


class VoidSaleTests(SalesTestMixin, TestCase):
    def test_void_restores_stock_with_return_movements(self):
        sale = create_sale(
            warehouse=self.warehouse,
            lines=[{"product": self.tea, "quantity": 3}, {"product": self.mug, "quantity": 2}],
            actor=self.cashier,
        )

        sale = void_sale(sale=sale, actor=self.supervisor, reason="customer return")

        self.assertEqual(sale.status, Sale.Status.VOID)
        self.assertEqual(sale.void_reason, "customer return")
        self.assertEqual(sale.voided_by, self.supervisor)
        self.assertIsNotNone(sale.voided_at)
        self.assertEqual(self.quantity(self.tea), 10)
        self.assertEqual(self.quantity(self.mug), 5)

        returns = StockMovement.objects.filter(reference_type=StockMovement.ReferenceType.RETURN, reference_id=sale.id)
        self.assertEqual(returns.count(), 2)
        self.assertTrue(all(movement.direction == StockMovement.Direction.IN for movement in returns))
        self.assertEqual(find_ledger_drift(), [])

    def test_void_defaults_reason(self):
        sale = create_sale(warehouse=self.warehouse, lines=[{"product": self.tea, "quantity": 1}], actor=self.cashier)

        sale = void_sale(sale=sale, actor=self.supervisor)

        self.assertEqual(sale.void_reason, "Voided by user")

    def test_void_twice_is_invalid_state(self):
        sale = create_sale(warehouse=self.warehouse, lines=[{"product": self.tea, "quantity": 1}], actor=self.cashier)
        void_sale(sale=sale, actor=self.supervisor)

        with self.assertRaises(InvalidState):
            void_sale(sale=sale, actor=self.supervisor)

        self.assertEqual(self.quantity(self.tea), 10)

    @override_settings(
        NOTIFICATION_BACKENDS=[
            "notifications.tests.ExplodingBackend",
            "notifications.backends.OutboxBackend",
        ]
    )
    def test_void_notifies_each_line_after_commit_despite_failing_backend(self):
        sale = create_sale(
            warehouse=self.warehouse,
            lines=[{"product": self.tea, "quantity": 3}, {"product": self.mug, "quantity": 2}],
            actor=self.cashier,
        )

        with self.assertLogs("notifications.emitter", level="ERROR"):
            with self.captureOnCommitCallbacks(execute=True) as callbacks:
                sale = void_sale(sale=sale, actor=self.supervisor)

        self.assertEqual(len(callbacks), 3)
        self.assertEqual(sale.status, Sale.Status.VOID)
        self.assertEqual(self.quantity(self.tea), 10)
        self.assertEqual(self.quantity(self.mug), 5)

        changed = NotificationOutbox.objects.filter(event="stock.changed")
        self.assertEqual({row.product_id for row in changed}, {self.tea.id, self.mug.id})
        self.assertEqual(changed.count(), 2)
        self.assertEqual(changed.get(product_id=self.tea.id).payload["new_quantity"], 10)
        self.assertTrue(NotificationOutbox.objects.filter(event="sale.voided").exists())


class SaleApiTests(SalesTestMixin, TestCase):
    def checkout(self, lines, **extra):
        return self.client.post(
            "/api/v1/sales/",
            {"warehouse_id": str(self.warehouse.id), "lines": lines, **extra},
            format="json",
        )

    def test_cashier_checks_out_basket(self):
        self.client.force_authenticate(user=self.cashier)

        response = self.checkout(
            [{"product_id": str(self.tea.id), "quantity": 2}],
            payment_method="card",
            customer_name="Walk-in",
        )

        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertEqual(payload["status"], "completed")
        self.assertEqual(payload["total_amount"], "7.00")
        self.assertEqual(payload["payment_method"], "card")
        self.assertEqual(payload["lines"][0]["product_sku"], "TEA-1")
        self.assertEqual(self.quantity(self.tea), 8)
        self.assertTrue(AuditLog.objects.filter(action="sale.create", entity_id=payload["id"]).exists())

    def test_insufficient_stock_names_product(self):
        self.client.force_authenticate(user=self.cashier)

        response = self.checkout(
            [{"product_id": str(self.tea.id), "quantity": 3}, {"product_id": str(self.mug.id), "quantity": 20}],
        )

        self.assertEqual(response.status_code, 409)
        payload = response.json()
        self.assertEqual(payload["code"], "insufficient_stock")
        self.assertEqual(payload["errors"]["product_id"], str(self.mug.id))
        self.assertEqual(payload["errors"]["product_name"], "Mug")
        self.assertEqual(self.quantity(self.tea), 10)

    def test_unknown_product_returns_not_found(self):
        self.client.force_authenticate(user=self.cashier)

        response = self.checkout([{"product_id": str(uuid.uuid4()), "quantity": 1}])

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "not_found")

    def test_invalid_payload_uses_validation_envelope(self):
        self.client.force_authenticate(user=self.cashier)

        response = self.checkout([])

        self.assertEqual(response.status_code, 400)
        payload = response.json()
        self.assertEqual(payload["code"], "validation_error")
        self.assertIn("lines", payload["errors"])

    def test_cashier_cannot_void(self):
        sale = create_sale(warehouse=self.warehouse, lines=[{"product": self.tea, "quantity": 1}], actor=self.cashier)
        self.client.force_authenticate(user=self.cashier)

        response = self.client.post(f"/api/v1/sales/{sale.id}/void/", {"reason": "mistake"}, format="json")

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["code"], "permission_denied")

    def test_supervisor_voids_sale_once(self):
        sale = create_sale(warehouse=self.warehouse, lines=[{"product": self.tea, "quantity": 4}], actor=self.cashier)
        self.client.force_authenticate(user=self.supervisor)

        response = self.client.post(f"/api/v1/sales/{sale.id}/void/", {"reason": "customer return"}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "void")
        self.assertEqual(self.quantity(self.tea), 10)

        response = self.client.post(f"/api/v1/sales/{sale.id}/void/", {}, format="json")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["code"], "invalid_state")

    def test_sales_list_filters_by_status(self):
        kept = create_sale(warehouse=self.warehouse, lines=[{"product": self.tea, "quantity": 1}], actor=self.cashier)
        voided = create_sale(warehouse=self.warehouse, lines=[{"product": self.mug, "quantity": 1}], actor=self.cashier)
        void_sale(sale=voided, actor=self.supervisor)
        self.client.force_authenticate(user=self.cashier)

        response = self.client.get("/api/v1/sales/", {"status": "completed"})

        self.assertEqual(response.status_code, 200)
        ids = {item["id"] for item in response.json()["results"]}
        self.assertEqual(ids, {str(kept.id)})

    def test_malformed_list_filters_return_validation_envelope(self):
        self.client.force_authenticate(user=self.cashier)

        for params in ({"warehouse": "abc"}, {"date_from": "2024-13-01"}, {"status": "refunded"}):
            with self.subTest(params=params):
                response = self.client.get("/api/v1/sales/", params)

                self.assertEqual(response.status_code, 400)
                payload = response.json()
                self.assertEqual(payload["code"], "validation_error")
                self.assertIn(next(iter(params)), payload["errors"])

    def test_sales_list_filters_by_warehouse_and_date(self):
        sale = create_sale(warehouse=self.warehouse, lines=[{"product": self.tea, "quantity": 1}], actor=self.cashier)
        self.client.force_authenticate(user=self.cashier)
        today = timezone.localdate().isoformat()

        response = self.client.get(
            "/api/v1/sales/",
            {"warehouse": str(self.warehouse.id), "date_from": today, "date_to": today},
        )
        self.assertEqual([item["id"] for item in response.json()["results"]], [str(sale.id)])

        response = self.client.get("/api/v1/sales/", {"warehouse": str(uuid.uuid4())})
        self.assertEqual(response.json()["results"], [])

    def test_available_products_lists_sellable_stock(self):
        Stock.objects.filter(product=self.mug, warehouse=self.warehouse).update(reserved_quantity=5)
        lamp = Product.objects.create(sku="LAMP-1", name="Desk Lamp", barcode="400123", selling_price=Decimal("20.00"))
        adjust_stock(product=lamp, warehouse=self.warehouse, quantity=2, reason="Opening", actor=self.admin)
        retired = Product.objects.create(sku="OLD-1", name="Old Tea", is_active=False)
        Stock.objects.create(product=retired, warehouse=self.warehouse, quantity=4)
        self.client.force_authenticate(user=self.cashier)

        response = self.client.get("/api/v1/sales/products/available/", {"warehouse": str(self.warehouse.id)})

        self.assertEqual(response.status_code, 200)
        products = response.json()["products"]
        self.assertEqual([item["sku"] for item in products], ["LAMP-1", "TEA-1"])
        tea = products[1]
        self.assertEqual(tea["id"], str(self.tea.id))
        self.assertEqual(tea["unit_price"], "3.50")
        self.assertEqual(tea["available_quantity"], 10)
        self.assertEqual(tea["stock_quantity"], 10)

        response = self.client.get(
            "/api/v1/sales/products/available/",
            {"warehouse": str(self.warehouse.id), "search": "4001"},
        )
        self.assertEqual([item["name"] for item in response.json()["products"]], ["Desk Lamp"])

    def test_available_products_requires_known_warehouse(self):
        self.client.force_authenticate(user=self.cashier)

        response = self.client.get("/api/v1/sales/products/available/")
        self.assertEqual(response.status_code, 400)
        self.assertIn("warehouse", response.json()["errors"])

        response = self.client.get("/api/v1/sales/products/available/", {"warehouse": str(uuid.uuid4())})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["code"], "not_found")
