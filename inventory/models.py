import uuid

from django.conf import settings
from django.db import models
from django.db.models import F, Q

from common.exceptions import ImmutableRecordError


class Product(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    sku = models.CharField(max_length=64, unique=True)
    barcode = models.CharField(max_length=128, null=True, blank=True)
    name = models.CharField(max_length=255)
    unit = models.CharField(max_length=32, default="piece")
    cost_price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    selling_price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    reorder_point = models.PositiveIntegerField(default=0)
    min_stock_level = models.PositiveIntegerField(default=0)
    max_stock_level = models.PositiveIntegerField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["barcode"], name="inv_product_barcode_idx"),
            models.Index(fields=["is_active"], name="inv_product_active_idx"),
        ]

    def __str__(self):
        return f"{self.sku} {self.name}"


class Warehouse(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    code = models.CharField(max_length=32, unique=True)
    name = models.CharField(max_length=255)
    address = models.TextField(blank=True, default="")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.code


class Supplier(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    code = models.CharField(max_length=32, unique=True)
    name = models.CharField(max_length=255)
    contact_person = models.CharField(max_length=255, blank=True, default="")
    email = models.EmailField(blank=True, default="")
    phone = models.CharField(max_length=64, blank=True, default="")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)


class Stock(models.Model):
    """On-hand quantity of one product in one warehouse."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="stock_records")
    warehouse = models.ForeignKey(Warehouse, on_delete=models.PROTECT, related_name="stock_records")
    quantity = models.IntegerField(default=0)
    reserved_quantity = models.IntegerField(default=0)
    location = models.CharField(max_length=128, null=True, blank=True)
    batch_number = models.CharField(max_length=128, null=True, blank=True)
    expiry_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["product", "warehouse"], name="uniq_stock_product_warehouse"),
            models.CheckConstraint(condition=Q(quantity__gte=0), name="stock_quantity_non_negative"),
            models.CheckConstraint(condition=Q(reserved_quantity__gte=0), name="stock_reserved_non_negative"),
        ]
        indexes = [
            models.Index(fields=["warehouse", "product"], name="inv_stock_wh_product_idx"),
        ]

    @property
    def available_quantity(self):
        return self.quantity - self.reserved_quantity

    @property
    def is_low(self):
        return self.quantity <= self.product.reorder_point

    @property
    def is_critical(self):
        return self.quantity <= self.product.min_stock_level


class StockMovement(models.Model):
    """Append-only record of a single change to a stock bucket."""

    class Direction(models.TextChoices):
        IN = "in", "In"
        OUT = "out", "Out"
        TRANSFER = "transfer", "Transfer"
        ADJUSTMENT = "adjustment", "Adjustment"
        RETURN = "return", "Return"

    class ReferenceType(models.TextChoices):
        ADJUSTMENT = "adjustment", "Adjustment"
        TRANSFER = "transfer", "Transfer"
        SALE = "sale", "Sale"
        RETURN = "return", "Return"
        PURCHASE_ORDER = "purchase_order", "Purchase order"

    INBOUND = {Direction.IN, Direction.RETURN}

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="movements")
    warehouse = models.ForeignKey(Warehouse, on_delete=models.PROTECT, related_name="movements")
    direction = models.CharField(max_length=16, choices=Direction.choices)
    quantity = models.PositiveIntegerField()
    previous_quantity = models.IntegerField()
    new_quantity = models.IntegerField()
    reference_type = models.CharField(max_length=32, choices=ReferenceType.choices)
    reference_id = models.UUIDField(null=True, blank=True)
    reason = models.CharField(max_length=255, blank=True, default="")
    notes = models.TextField(blank=True, default="")
    performed_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="stock_movements")
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        constraints = [
            models.CheckConstraint(condition=Q(quantity__gt=0), name="movement_quantity_positive"),
            models.CheckConstraint(condition=Q(new_quantity__gte=0), name="movement_new_quantity_non_negative"),
            models.CheckConstraint(
                condition=(
                    Q(direction__in=["in", "return"], new_quantity=F("previous_quantity") + F("quantity"))
                    | Q(direction="out", new_quantity=F("previous_quantity") - F("quantity"))
                    | Q(direction__in=["transfer", "adjustment"])
                ),
                name="movement_quantity_consistent",
            ),
        ]
        indexes = [
            models.Index(fields=["warehouse", "product", "created_at"], name="inv_move_bucket_created_idx"),
            models.Index(fields=["reference_type", "reference_id"], name="inv_move_reference_idx"),
        ]

    @property
    def signed_quantity(self):
        return self.new_quantity - self.previous_quantity

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableRecordError("Stock movements cannot be modified once recorded.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableRecordError("Stock movements cannot be deleted.")


class PurchaseOrder(models.Model):
    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        ORDERED = "ordered", "Ordered"
        RECEIVED = "received", "Received"
        CANCELLED = "cancelled", "Cancelled"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_number = models.CharField(max_length=32, unique=True)
    supplier = models.ForeignKey(Supplier, on_delete=models.PROTECT, related_name="purchase_orders")
    warehouse = models.ForeignKey(Warehouse, on_delete=models.PROTECT, related_name="purchase_orders")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.DRAFT)
    order_date = models.DateField()
    expected_delivery_date = models.DateField(null=True, blank=True)
    actual_delivery_date = models.DateField(null=True, blank=True)
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    notes = models.TextField(blank=True, default="")
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="purchase_orders_created")
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="purchase_orders_approved",
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["status", "created_at"], name="inv_po_status_idx"),
            models.Index(fields=["supplier", "created_at"], name="inv_po_supplier_idx"),
        ]

    @property
    def is_fully_received(self):
        return all(line.received_quantity >= line.ordered_quantity for line in self.lines.all())


class PurchaseOrderLine(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    purchase_order = models.ForeignKey(PurchaseOrder, on_delete=models.CASCADE, related_name="lines")
    product = models.ForeignKey(Product, on_delete=models.PROTECT)
    ordered_quantity = models.PositiveIntegerField()
    received_quantity = models.PositiveIntegerField(default=0)
    unit_cost = models.DecimalField(max_digits=12, decimal_places=2)
    line_total = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    batch_number = models.CharField(max_length=128, null=True, blank=True)
    expiry_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
        constraints = [
            models.CheckConstraint(condition=Q(ordered_quantity__gt=0), name="po_line_ordered_positive"),
            models.CheckConstraint(
                condition=Q(received_quantity__lte=F("ordered_quantity")),
                name="po_line_received_within_ordered",
            ),
        ]

    @property
    def remaining_quantity(self):
        return self.ordered_quantity - self.received_quantity
