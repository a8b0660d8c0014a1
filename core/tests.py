from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase
from rest_framework.test import APIClient

from core.models import AuditLog
from inventory.models import Product, Stock, StockMovement, Warehouse
from inventory.services import find_ledger_drift


class AuthenticationTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()
        self.user = self.user_model.objects.create_user(
            username="clerk",
            email="Clerk@Example.com",
            password="pass1234",
            role="cashier",
        )

    def test_email_is_normalized(self):
        self.user.refresh_from_db()
        self.assertEqual(self.user.email, "clerk@example.com")

    def test_token_obtain_accepts_username_or_email(self):
        by_username = self.client.post(
            "/api/v1/token/",
            {"username": "clerk", "password": "pass1234"},
            format="json",
        )
        by_email = self.client.post(
            "/api/v1/token/",
            {"username": "CLERK@example.com", "password": "pass1234"},
            format="json",
        )

        self.assertEqual(by_username.status_code, 200)
        self.assertEqual(by_email.status_code, 200)
        self.assertIn("access", by_email.json())

    def test_bearer_token_reaches_me_endpoint(self):
        token = self.client.post(
            "/api/v1/token/",
            {"username": "clerk", "password": "pass1234"},
            format="json",
        ).json()["access"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")

        response = self.client.get("/api/v1/me/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["role"], "cashier")

    def test_wrong_password_uses_standard_envelope(self):
        response = self.client.post(
            "/api/v1/token/",
            {"username": "clerk", "password": "nope"},
            format="json",
        )

        self.assertEqual(response.status_code, 401)
        payload = response.json()
        self.assertEqual(payload["code"], "authentication_failed")
        self.assertEqual(payload["status"], 401)


class AuditLogTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()
        self.cashier = self.user_model.objects.create_user(username="cashier", password="pass1234", role="cashier")
        self.admin = self.user_model.objects.create_user(username="admin", password="pass1234", role="admin")

    def test_cashier_cannot_read_audit_logs_and_denial_is_logged(self):
        self.client.force_authenticate(user=self.cashier)

        with self.assertLogs("security.authorization", level="WARNING") as cm:
            response = self.client.get("/api/v1/admin/audit-logs/")

        self.assertEqual(response.status_code, 403)
        self.assertTrue(any("permission_denied" in message for message in cm.output))

    def test_warehouse_create_writes_audit_log_with_request_id(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.post(
            "/api/v1/warehouses/",
            {"code": "WEST", "name": "West Depot"},
            format="json",
            HTTP_X_REQUEST_ID="req-123",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response["X-Request-ID"], "req-123")
        self.assertTrue(
            AuditLog.objects.filter(action="warehouse.create", entity="warehouse", request_id="req-123").exists()
        )

    def test_audit_logs_filter_and_are_read_only(self):
        log = AuditLog.objects.create(action="stock.adjust", entity="stock", actor=self.admin)
        AuditLog.objects.create(action="sale.void", entity="sale", actor=self.admin)
        self.client.force_authenticate(user=self.admin)

        response = self.client.get("/api/v1/admin/audit-logs/", {"action": "stock.adjust"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual([item["id"] for item in response.json()["results"]], [str(log.id)])

        patch_res = self.client.patch(f"/api/v1/admin/audit-logs/{log.id}/", {"action": "changed"}, format="json")
        delete_res = self.client.delete(f"/api/v1/admin/audit-logs/{log.id}/")

        self.assertEqual(patch_res.status_code, 405)
        self.assertEqual(delete_res.status_code, 405)

    def test_malformed_audit_filters_return_validation_envelope(self):
        self.client.force_authenticate(user=self.admin)

        for params in ({"actor_id": "abc"}, {"entity_id": "abc"}, {"start_date": "yesterday"}):
            with self.subTest(params=params):
                response = self.client.get("/api/v1/admin/audit-logs/", params)

                self.assertEqual(response.status_code, 400)
                payload = response.json()
                self.assertEqual(payload["code"], "validation_error")
                self.assertIn(next(iter(params)), payload["errors"])

    def test_audit_logs_filter_by_actor(self):
        log = AuditLog.objects.create(action="stock.adjust", entity="stock", actor=self.admin)
        AuditLog.objects.create(action="sale.create", entity="sale", actor=self.cashier)
        self.client.force_authenticate(user=self.admin)

        response = self.client.get("/api/v1/admin/audit-logs/", {"actor_id": str(self.admin.id), "entity_id": ""})

        self.assertEqual(response.status_code, 200)
        self.assertEqual([item["id"] for item in response.json()["results"]], [str(log.id)])


class SeedDemoDataCommandTests(TestCase):
    def test_seed_is_idempotent_and_goes_through_ledger(self):
        call_command("seed_demo_data", stdout=StringIO())
        call_command("seed_demo_data", stdout=StringIO())

        self.assertEqual(get_user_model().objects.count(), 3)
        self.assertEqual(Warehouse.objects.count(), 2)
        self.assertEqual(Product.objects.count(), 2)
        self.assertEqual(Stock.objects.count(), 3)
        self.assertEqual(StockMovement.objects.count(), 3)
        self.assertEqual(find_ledger_drift(), [])


class MigrationStateTests(TestCase):
    def test_models_have_no_pending_migrations(self):
        out = StringIO()

        try:
            call_command("makemigrations", check=True, dry_run=True, stdout=out)
        except SystemExit:
            self.fail(f"Models and migrations are out of sync:\n{out.getvalue()}")
