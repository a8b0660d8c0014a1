from django.db.models import F, Q
from django.shortcuts import get_object_or_404
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.audit import audit_mutation
from common.permissions import RoleCapabilityPermission
from common.utils import validated_filters
from inventory.models import Product, Stock, Warehouse
from sales.models import Sale
from sales.serializers import (
    AvailableProductFilterSerializer,
    AvailableProductSerializer,
    SaleCreateSerializer,
    SaleFilterSerializer,
    SaleSerializer,
    SaleVoidSerializer,
)
from sales.services import create_sale, void_sale

AVAILABLE_PRODUCTS_LIMIT = 50


def _resolve_lines(lines):
    product_ids = [line["product_id"] for line in lines]
    products = Product.objects.in_bulk(product_ids)
    missing = [str(product_id) for product_id in product_ids if product_id not in products]
    if missing:
        raise NotFound(f"Product {missing[0]} not found.")
    resolved = []
    for line in lines:
        product_id = line.pop("product_id")
        resolved.append({**line, "product": products[product_id]})
    return resolved


class SaleViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, mixins.CreateModelMixin, viewsets.GenericViewSet):
    queryset = Sale.objects.select_related("warehouse", "sold_by").prefetch_related("lines__product")
    serializer_class = SaleSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {
        "list": "sales.view",
        "retrieve": "sales.view",
        "create": "sales.pos.access",
        "available_products": "sales.pos.access",
        "void": "sales.void",
    }

    def get_queryset(self):
        qs = super().get_queryset().order_by("-sale_date")
        filters = validated_filters(SaleFilterSerializer, self.request.query_params)
        if "status" in filters:
            qs = qs.filter(status=filters["status"])
        if "warehouse" in filters:
            qs = qs.filter(warehouse_id=filters["warehouse"])
        if "date_from" in filters:
            qs = qs.filter(sale_date__date__gte=filters["date_from"])
        if "date_to" in filters:
            qs = qs.filter(sale_date__date__lte=filters["date_to"])
        return qs

    def create(self, request, *args, **kwargs):
        serializer = SaleCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)

        warehouse = get_object_or_404(Warehouse, pk=data.pop("warehouse_id"))
        lines = _resolve_lines([dict(line) for line in data.pop("lines")])
        sale = create_sale(warehouse=warehouse, lines=lines, actor=request.user, **data)

        sale = self.get_queryset().get(pk=sale.pk)
        payload = SaleSerializer(sale).data
        audit_mutation(request, "sale.create", sale.id, after=payload)
        return Response(payload, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["get"], url_path="products/available")
    def available_products(self, request):
        """Active products with sellable stock in one warehouse, for the POS product picker."""
        filters = validated_filters(AvailableProductFilterSerializer, request.query_params)
        warehouse = get_object_or_404(Warehouse, pk=filters["warehouse"])

        qs = Stock.objects.select_related("product").filter(
            warehouse=warehouse,
            product__is_active=True,
            quantity__gt=F("reserved_quantity"),
        )
        search = filters.get("search")
        if search:
            qs = qs.filter(
                Q(product__name__icontains=search)
                | Q(product__sku__icontains=search)
                | Q(product__barcode__icontains=search)
            )
        qs = qs.order_by("product__name")[:AVAILABLE_PRODUCTS_LIMIT]
        return Response({"products": AvailableProductSerializer(qs, many=True).data})

    @action(detail=True, methods=["post"], url_path="void")
    def void(self, request, pk=None):
        sale = self.get_object()
        serializer = SaleVoidSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        before_snapshot = SaleSerializer(sale).data

        sale = void_sale(sale=sale, actor=request.user, reason=serializer.validated_data.get("reason"))

        sale = self.get_queryset().get(pk=sale.pk)
        payload = SaleSerializer(sale).data
        audit_mutation(request, "sale.void", sale.id, before=before_snapshot, after=payload)
        return Response(payload)
