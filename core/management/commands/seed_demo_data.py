from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db import transaction

from inventory.models import Product, Stock, Supplier, Warehouse
from inventory.services import adjust_stock

DEMO_USERS = [
    ("admin", "admin1234", "admin"),
    ("supervisor", "supervisor1234", "supervisor"),
    ("cashier", "cashier1234", "cashier"),
]

OPENING_STOCK = [
    ("SKU-COLA-001", "MAIN", 120),
    ("SKU-CHIPS-001", "MAIN", 60),
    ("SKU-CHIPS-001", "STORE", 6),
]


class Command(BaseCommand):
    help = "Seed demo users, warehouses, products and opening stock for local development."

    @transaction.atomic
    def handle(self, *args, **options):
        User = get_user_model()

        users = {}
        for username, password, role in DEMO_USERS:
            user, created = User.objects.get_or_create(
                username=username,
                defaults={
                    "email": f"{username}@example.com",
                    "role": role,
                    "is_staff": role == User.Role.ADMIN,
                    "is_superuser": role == User.Role.ADMIN,
                    "is_active": True,
                },
            )
            if created:
                user.set_password(password)
                user.save(update_fields=["password"])
            users[role] = user

        warehouses = {}
        for code, name in [("MAIN", "Main Warehouse"), ("STORE", "Store Front")]:
            warehouses[code], _ = Warehouse.objects.get_or_create(code=code, defaults={"name": name})

        Supplier.objects.get_or_create(
            code="SUP-001",
            defaults={"name": "Local Supplier", "email": "supplier@example.com", "phone": "+100000000"},
        )

        products = {}
        products["SKU-COLA-001"], _ = Product.objects.get_or_create(
            sku="SKU-COLA-001",
            defaults={
                "name": "Cola 330ml",
                "cost_price": Decimal("0.90"),
                "selling_price": Decimal("1.50"),
                "reorder_point": 20,
                "min_stock_level": 5,
                "max_stock_level": 200,
            },
        )
        products["SKU-CHIPS-001"], _ = Product.objects.get_or_create(
            sku="SKU-CHIPS-001",
            defaults={
                "name": "Potato Chips",
                "cost_price": Decimal("1.10"),
                "selling_price": Decimal("2.00"),
                "reorder_point": 10,
                "min_stock_level": 3,
            },
        )

        # Opening balances go through the ledger so movements reconcile with stock.
        for sku, warehouse_code, quantity in OPENING_STOCK:
            product = products[sku]
            warehouse = warehouses[warehouse_code]
            if Stock.objects.filter(product=product, warehouse=warehouse).exists():
                continue
            adjust_stock(
                product=product,
                warehouse=warehouse,
                quantity=quantity,
                reason="Opening balance",
                actor=users["admin"],
            )

        self.stdout.write(self.style.SUCCESS("Demo data seeded successfully."))
        self.stdout.write("Credentials: admin/admin1234, supervisor/supervisor1234, cashier/cashier1234")
