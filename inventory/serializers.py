from decimal import Decimal

from rest_framework import serializers

from inventory.models import Product, PurchaseOrder, PurchaseOrderLine, Stock, StockMovement, Supplier, Warehouse


class ProductSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = [
            "id",
            "sku",
            "barcode",
            "name",
            "unit",
            "cost_price",
            "selling_price",
            "reorder_point",
            "min_stock_level",
            "max_stock_level",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate(self, attrs):
        reorder_point = attrs.get("reorder_point", getattr(self.instance, "reorder_point", 0))
        min_stock_level = attrs.get("min_stock_level", getattr(self.instance, "min_stock_level", 0))
        max_stock_level = attrs.get("max_stock_level", getattr(self.instance, "max_stock_level", None))
        if min_stock_level > reorder_point:
            raise serializers.ValidationError({"min_stock_level": "Minimum stock level cannot exceed the reorder point."})
        if max_stock_level is not None and max_stock_level < reorder_point:
            raise serializers.ValidationError({"max_stock_level": "Maximum stock level cannot be below the reorder point."})
        return attrs


class WarehouseSerializer(serializers.ModelSerializer):
    class Meta:
        model = Warehouse
        fields = ["id", "code", "name", "address", "is_active", "created_at", "updated_at"]
        read_only_fields = ["id", "created_at", "updated_at"]


class SupplierSerializer(serializers.ModelSerializer):
    class Meta:
        model = Supplier
        fields = ["id", "code", "name", "contact_person", "email", "phone", "is_active", "created_at", "updated_at"]
        read_only_fields = ["id", "created_at", "updated_at"]


class StockSerializer(serializers.ModelSerializer):
    product_sku = serializers.CharField(source="product.sku", read_only=True)
    product_name = serializers.CharField(source="product.name", read_only=True)
    warehouse_code = serializers.CharField(source="warehouse.code", read_only=True)
    available_quantity = serializers.IntegerField(read_only=True)
    reorder_point = serializers.IntegerField(source="product.reorder_point", read_only=True)
    is_low = serializers.BooleanField(read_only=True)

    class Meta:
        model = Stock
        fields = [
            "id",
            "product",
            "product_sku",
            "product_name",
            "warehouse",
            "warehouse_code",
            "quantity",
            "reserved_quantity",
            "available_quantity",
            "reorder_point",
            "is_low",
            "location",
            "batch_number",
            "expiry_date",
            "updated_at",
        ]
        read_only_fields = fields


class LowStockAlertSerializer(StockSerializer):
    min_stock_level = serializers.IntegerField(source="product.min_stock_level", read_only=True)
    severity = serializers.SerializerMethodField()

    class Meta(StockSerializer.Meta):
        fields = StockSerializer.Meta.fields + ["min_stock_level", "severity"]
        read_only_fields = fields

    def get_severity(self, obj):
        return "critical" if obj.is_critical else "low"


class StockMovementSerializer(serializers.ModelSerializer):
    product_sku = serializers.CharField(source="product.sku", read_only=True)
    warehouse_code = serializers.CharField(source="warehouse.code", read_only=True)
    performed_by_username = serializers.CharField(source="performed_by.username", read_only=True)
    signed_quantity = serializers.IntegerField(read_only=True)

    class Meta:
        model = StockMovement
        fields = [
            "id",
            "product",
            "product_sku",
            "warehouse",
            "warehouse_code",
            "direction",
            "quantity",
            "signed_quantity",
            "previous_quantity",
            "new_quantity",
            "reference_type",
            "reference_id",
            "reason",
            "notes",
            "performed_by",
            "performed_by_username",
            "created_at",
        ]
        read_only_fields = fields


class StockAdjustmentSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    warehouse_id = serializers.UUIDField()
    quantity = serializers.IntegerField()
    reason = serializers.CharField(max_length=255)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    location = serializers.CharField(required=False, allow_null=True, max_length=128)
    batch_number = serializers.CharField(required=False, allow_null=True, max_length=128)
    expiry_date = serializers.DateField(required=False, allow_null=True)


class StockTransferSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    from_warehouse_id = serializers.UUIDField()
    to_warehouse_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    location = serializers.CharField(required=False, allow_null=True, max_length=128)


class StockFilterSerializer(serializers.Serializer):
    warehouse = serializers.UUIDField(required=False)
    product = serializers.UUIDField(required=False)
    low_stock = serializers.BooleanField(required=False, default=False)


class StockMovementFilterSerializer(serializers.Serializer):
    product = serializers.UUIDField(required=False)
    warehouse = serializers.UUIDField(required=False)
    direction = serializers.ChoiceField(choices=StockMovement.Direction.choices, required=False)
    reference_type = serializers.ChoiceField(choices=StockMovement.ReferenceType.choices, required=False)
    reference_id = serializers.UUIDField(required=False)


class PurchaseOrderFilterSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=PurchaseOrder.Status.choices, required=False)
    supplier = serializers.UUIDField(required=False)
    warehouse = serializers.UUIDField(required=False)


class PurchaseOrderLineSerializer(serializers.ModelSerializer):
    product_sku = serializers.CharField(source="product.sku", read_only=True)
    product_name = serializers.CharField(source="product.name", read_only=True)
    remaining_quantity = serializers.IntegerField(read_only=True)

    class Meta:
        model = PurchaseOrderLine
        fields = [
            "id",
            "product",
            "product_sku",
            "product_name",
            "ordered_quantity",
            "received_quantity",
            "remaining_quantity",
            "unit_cost",
            "line_total",
            "batch_number",
            "expiry_date",
        ]
        read_only_fields = fields


class PurchaseOrderSerializer(serializers.ModelSerializer):
    supplier_name = serializers.CharField(source="supplier.name", read_only=True)
    warehouse_code = serializers.CharField(source="warehouse.code", read_only=True)
    lines = PurchaseOrderLineSerializer(many=True, read_only=True)

    class Meta:
        model = PurchaseOrder
        fields = [
            "id",
            "order_number",
            "supplier",
            "supplier_name",
            "warehouse",
            "warehouse_code",
            "status",
            "order_date",
            "expected_delivery_date",
            "actual_delivery_date",
            "total_amount",
            "notes",
            "created_by",
            "approved_by",
            "approved_at",
            "created_at",
            "updated_at",
            "lines",
        ]
        read_only_fields = fields


class PurchaseOrderLineInputSerializer(serializers.Serializer):
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.filter(is_active=True))
    quantity = serializers.IntegerField(min_value=1)
    unit_cost = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0"), required=False)
    batch_number = serializers.CharField(required=False, allow_null=True, max_length=128)
    expiry_date = serializers.DateField(required=False, allow_null=True)


class PurchaseOrderWriteSerializer(serializers.Serializer):
    supplier = serializers.PrimaryKeyRelatedField(queryset=Supplier.objects.filter(is_active=True))
    warehouse = serializers.PrimaryKeyRelatedField(queryset=Warehouse.objects.filter(is_active=True))
    expected_delivery_date = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    lines = PurchaseOrderLineInputSerializer(many=True, allow_empty=False)


class GoodsReceiptLineSerializer(serializers.Serializer):
    line_id = serializers.UUIDField()
    quantity = serializers.IntegerField()
    location = serializers.CharField(required=False, allow_null=True, max_length=128)
    batch_number = serializers.CharField(required=False, allow_null=True, max_length=128)
    expiry_date = serializers.DateField(required=False, allow_null=True)


class GoodsReceiptSerializer(serializers.Serializer):
    lines = GoodsReceiptLineSerializer(many=True, allow_empty=False)

