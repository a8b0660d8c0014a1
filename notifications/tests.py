import uuid
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.db import transaction
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from inventory.models import Product, Stock, Warehouse
from inventory.services import adjust_stock
from notifications import emitter
from notifications.backends import BaseBackend
from notifications.models import NotificationOutbox


class ExplodingBackend(BaseBackend):
    def send(self, notification):
        raise RuntimeError("subscriber unreachable")


@override_settings(NOTIFICATION_BACKENDS=["notifications.backends.OutboxBackend"])
class PostCommitEmitterTests(TestCase):
    def setUp(self):
        self.user = get_user_model().objects.create_user(username="admin", password="pass1234", role="admin")
        self.warehouse = Warehouse.objects.create(code="MAIN", name="Main")
        self.product = Product.objects.create(sku="P-1", name="Paper", selling_price=Decimal("1.00"), reorder_point=1)

    def test_nothing_is_published_before_commit(self):
        with self.captureOnCommitCallbacks(execute=False) as callbacks:
            adjust_stock(product=self.product, warehouse=self.warehouse, quantity=5, reason="Count", actor=self.user)

        self.assertEqual(len(callbacks), 1)
        self.assertFalse(NotificationOutbox.objects.exists())

    def test_rolled_back_mutation_publishes_nothing(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            with self.assertRaises(RuntimeError):
                with transaction.atomic():
                    adjust_stock(
                        product=self.product,
                        warehouse=self.warehouse,
                        quantity=5,
                        reason="Count",
                        actor=self.user,
                    )
                    raise RuntimeError("abort")

        self.assertEqual(callbacks, [])
        self.assertFalse(NotificationOutbox.objects.exists())
        self.assertFalse(Stock.objects.exists())

    def test_published_message_is_json_ready(self):
        with self.captureOnCommitCallbacks(execute=True):
            adjust_stock(product=self.product, warehouse=self.warehouse, quantity=5, reason="Count", actor=self.user)

        row = NotificationOutbox.objects.get(event=emitter.STOCK_CHANGED)
        self.assertEqual(row.product_id, self.product.id)
        self.assertEqual(row.payload["product_id"], str(self.product.id))
        self.assertEqual(row.payload["warehouse_id"], str(self.warehouse.id))
        self.assertEqual(row.payload["previous_quantity"], 0)
        self.assertEqual(row.payload["new_quantity"], 5)
        self.assertEqual(row.payload["movement_type"], "in")
        self.assertIn("timestamp", row.payload)

    @override_settings(
        NOTIFICATION_BACKENDS=[
            "notifications.tests.ExplodingBackend",
            "notifications.backends.OutboxBackend",
        ]
    )
    def test_failing_backend_does_not_block_others_or_mutation(self):
        with self.assertLogs("notifications.emitter", level="ERROR") as logs:
            with self.captureOnCommitCallbacks(execute=True):
                result = adjust_stock(
                    product=self.product,
                    warehouse=self.warehouse,
                    quantity=5,
                    reason="Count",
                    actor=self.user,
                )

        self.assertIn("notification_publish_failed", logs.output[0])
        self.assertEqual(Stock.objects.get(pk=result.stock.pk).quantity, 5)
        self.assertTrue(NotificationOutbox.objects.filter(event=emitter.STOCK_CHANGED).exists())

    def test_outbox_failure_is_logged_not_raised(self):
        with patch("notifications.backends.OutboxBackend.send", side_effect=RuntimeError("database gone")):
            with self.assertLogs("notifications.emitter", level="ERROR"):
                with self.captureOnCommitCallbacks(execute=True):
                    adjust_stock(
                        product=self.product,
                        warehouse=self.warehouse,
                        quantity=2,
                        reason="Count",
                        actor=self.user,
                    )

        self.assertEqual(Stock.objects.get(product=self.product).quantity, 2)
        self.assertFalse(NotificationOutbox.objects.exists())


class NotificationPullTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()
        self.cashier = self.user_model.objects.create_user(username="cashier", password="pass1234", role="cashier")

        self.warehouse_a = uuid.uuid4()
        self.warehouse_b = uuid.uuid4()
        self.rows = [
            NotificationOutbox.objects.create(
                event=emitter.STOCK_CHANGED,
                warehouse_id=self.warehouse_a,
                payload={"new_quantity": 1},
            ),
            NotificationOutbox.objects.create(
                event=emitter.LOW_STOCK,
                warehouse_id=self.warehouse_b,
                payload={"current_stock": 1},
            ),
            NotificationOutbox.objects.create(
                event=emitter.STOCK_CHANGED,
                warehouse_id=self.warehouse_a,
                payload={"new_quantity": 2},
            ),
        ]

    def test_unauthenticated_error_uses_standard_envelope(self):
        response = self.client.post("/api/v1/notifications/pull", {"cursor": 0}, format="json")

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["code"], "not_authenticated")

    def test_pull_pages_through_cursor(self):
        self.client.force_authenticate(user=self.cashier)

        response = self.client.post("/api/v1/notifications/pull", {"cursor": 0, "limit": 2}, format="json")

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertTrue(payload["has_more"])
        self.assertEqual([update["cursor"] for update in payload["updates"]], [self.rows[0].id, self.rows[1].id])
        self.assertEqual(payload["server_cursor"], self.rows[1].id)

        response = self.client.post(
            "/api/v1/notifications/pull",
            {"cursor": payload["server_cursor"], "limit": 2},
            format="json",
        )

        payload = response.json()
        self.assertFalse(payload["has_more"])
        self.assertEqual(len(payload["updates"]), 1)
        self.assertEqual(payload["updates"][0]["payload"], {"new_quantity": 2})

    def test_pull_filters_by_warehouse_and_event(self):
        self.client.force_authenticate(user=self.cashier)

        response = self.client.post(
            "/api/v1/notifications/pull",
            {"cursor": 0, "warehouse_id": str(self.warehouse_b)},
            format="json",
        )
        updates = response.json()["updates"]
        self.assertEqual(len(updates), 1)
        self.assertEqual(updates[0]["event"], emitter.LOW_STOCK)

        response = self.client.post(
            "/api/v1/notifications/pull",
            {"cursor": 0, "events": [emitter.STOCK_CHANGED]},
            format="json",
        )
        self.assertEqual(len(response.json()["updates"]), 2)

    def test_empty_pull_keeps_cursor(self):
        self.client.force_authenticate(user=self.cashier)

        response = self.client.post("/api/v1/notifications/pull", {"cursor": self.rows[-1].id}, format="json")

        payload = response.json()
        self.assertEqual(payload["updates"], [])
        self.assertEqual(payload["server_cursor"], self.rows[-1].id)
        self.assertFalse(payload["has_more"])

    def test_invalid_cursor_returns_422(self):
        self.client.force_authenticate(user=self.cashier)

        response = self.client.post("/api/v1/notifications/pull", {"cursor": -1}, format="json")

        self.assertEqual(response.status_code, 422)
        payload = response.json()
        self.assertEqual(payload["code"], "validation_error")
        self.assertIn("cursor", payload["errors"])
