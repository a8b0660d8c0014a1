from decimal import Decimal

from rest_framework import serializers

from inventory.models import Stock
from sales.models import Sale, SaleLine

MONEY = {"max_digits": 12, "decimal_places": 2, "min_value": Decimal("0")}


class SaleLineSerializer(serializers.ModelSerializer):
    product_sku = serializers.CharField(source="product.sku", read_only=True)
    product_name = serializers.CharField(source="product.name", read_only=True)

    class Meta:
        model = SaleLine
        fields = ["id", "product", "product_sku", "product_name", "quantity", "unit_price", "discount", "line_total"]
        read_only_fields = fields


class SaleSerializer(serializers.ModelSerializer):
    warehouse_code = serializers.CharField(source="warehouse.code", read_only=True)
    sold_by_username = serializers.CharField(source="sold_by.username", read_only=True)
    lines = SaleLineSerializer(many=True, read_only=True)

    class Meta:
        model = Sale
        fields = [
            "id",
            "sale_number",
            "warehouse",
            "warehouse_code",
            "sale_date",
            "status",
            "subtotal",
            "tax_amount",
            "discount_amount",
            "total_amount",
            "payment_method",
            "payment_amount",
            "change_amount",
            "customer_name",
            "customer_email",
            "customer_phone",
            "notes",
            "sold_by",
            "sold_by_username",
            "voided_by",
            "voided_at",
            "void_reason",
            "lines",
        ]
        read_only_fields = fields


class SaleLineInputSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField()
    unit_price = serializers.DecimalField(required=False, **MONEY)
    discount = serializers.DecimalField(required=False, default=Decimal("0"), **MONEY)


class SaleCreateSerializer(serializers.Serializer):
    warehouse_id = serializers.UUIDField()
    lines = SaleLineInputSerializer(many=True, allow_empty=False)
    payment_method = serializers.ChoiceField(choices=Sale.PaymentMethod.choices, default=Sale.PaymentMethod.CASH)
    payment_amount = serializers.DecimalField(required=False, allow_null=True, **MONEY)
    tax_amount = serializers.DecimalField(required=False, default=Decimal("0"), **MONEY)
    discount_amount = serializers.DecimalField(required=False, default=Decimal("0"), **MONEY)
    customer_name = serializers.CharField(required=False, allow_null=True, allow_blank=True, max_length=255)
    customer_email = serializers.EmailField(required=False, allow_null=True, allow_blank=True)
    customer_phone = serializers.CharField(required=False, allow_null=True, allow_blank=True, max_length=64)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class SaleVoidSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)


class SaleFilterSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Sale.Status.choices, required=False)
    warehouse = serializers.UUIDField(required=False)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)


class AvailableProductFilterSerializer(serializers.Serializer):
    warehouse = serializers.UUIDField()
    search = serializers.CharField(required=False, max_length=255)


class AvailableProductSerializer(serializers.ModelSerializer):
    id = serializers.UUIDField(source="product.id", read_only=True)
    name = serializers.CharField(source="product.name", read_only=True)
    sku = serializers.CharField(source="product.sku", read_only=True)
    unit = serializers.CharField(source="product.unit", read_only=True)
    barcode = serializers.CharField(source="product.barcode", read_only=True)
    unit_price = serializers.DecimalField(source="product.selling_price", max_digits=12, decimal_places=2, read_only=True)
    available_quantity = serializers.IntegerField(read_only=True)
    stock_quantity = serializers.IntegerField(source="quantity", read_only=True)

    class Meta:
        model = Stock
        fields = ["id", "name", "sku", "unit", "barcode", "unit_price", "available_quantity", "stock_quantity"]
        read_only_fields = fields
