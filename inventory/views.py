from django.db.models import F
from django.shortcuts import get_object_or_404
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.audit import audit_mutation
from common.pagination import MovementLogPagination
from common.permissions import RoleCapabilityPermission
from common.utils import validated_filters
from inventory.models import Product, PurchaseOrder, Stock, StockMovement, Supplier, Warehouse
from inventory.serializers import (
    GoodsReceiptSerializer,
    LowStockAlertSerializer,
    ProductSerializer,
    PurchaseOrderFilterSerializer,
    PurchaseOrderSerializer,
    PurchaseOrderWriteSerializer,
    StockAdjustmentSerializer,
    StockFilterSerializer,
    StockMovementFilterSerializer,
    StockMovementSerializer,
    StockSerializer,
    StockTransferSerializer,
    SupplierSerializer,
    WarehouseSerializer,
)
from inventory.services import (
    adjust_stock,
    approve_purchase_order,
    cancel_purchase_order,
    create_purchase_order,
    low_stock_queryset,
    place_purchase_order,
    product_stock_summary,
    receive_purchase_order,
    submit_purchase_order,
    transfer_stock,
    update_purchase_order,
)

UUID_LOOKUP = "[0-9a-fA-F-]{36}"
CATALOG_ACTIONS = {
    "list": "inventory.view",
    "retrieve": "inventory.view",
    "create": "admin.records.manage",
    "update": "admin.records.manage",
    "partial_update": "admin.records.manage",
    "destroy": "admin.records.manage",
}


def _truthy(value):
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _movement_payload(result):
    return {
        "stock": StockSerializer(result.stock).data,
        "movement": StockMovementSerializer(result.movement).data,
    }


class AuditedMutationMixin:
    audit_entity = None

    def perform_create(self, serializer):
        instance = serializer.save()
        audit_mutation(
            self.request,
            f"{self.audit_entity}.create",
            instance.id,
            after=self.get_serializer(instance).data,
        )

    def perform_update(self, serializer):
        before = self.get_serializer(serializer.instance).data
        instance = serializer.save()
        audit_mutation(
            self.request,
            f"{self.audit_entity}.update",
            instance.id,
            before=before,
            after=self.get_serializer(instance).data,
        )

    def perform_destroy(self, instance):
        # Referenced by the movement log; deactivate instead of deleting.
        before = self.get_serializer(instance).data
        instance.is_active = False
        instance.save(update_fields=["is_active", "updated_at"])
        audit_mutation(self.request, f"{self.audit_entity}.deactivate", instance.id, before=before)


class ProductViewSet(AuditedMutationMixin, viewsets.ModelViewSet):
    queryset = Product.objects.order_by("name")
    serializer_class = ProductSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = CATALOG_ACTIONS
    audit_entity = "product"

    def get_queryset(self):
        qs = super().get_queryset()
        search = self.request.query_params.get("search")
        if search:
            qs = qs.filter(name__icontains=search) | qs.filter(sku__iexact=search) | qs.filter(barcode=search)
        if self.action == "list" and not _truthy(self.request.query_params.get("include_inactive", "")):
            qs = qs.filter(is_active=True)
        return qs


class WarehouseViewSet(AuditedMutationMixin, viewsets.ModelViewSet):
    queryset = Warehouse.objects.order_by("code")
    serializer_class = WarehouseSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = CATALOG_ACTIONS
    audit_entity = "warehouse"


class SupplierViewSet(AuditedMutationMixin, viewsets.ModelViewSet):
    queryset = Supplier.objects.order_by("name")
    serializer_class = SupplierSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = CATALOG_ACTIONS
    audit_entity = "supplier"


class StockViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Stock.objects.select_related("product", "warehouse")
    serializer_class = StockSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {
        "list": "inventory.view",
        "retrieve": "inventory.view",
        "product_summary": "inventory.view",
        "low_stock": "inventory.view",
        "adjust": "stock.adjust",
        "transfer": "stock.transfer",
    }
    lookup_value_regex = UUID_LOOKUP

    def get_queryset(self):
        qs = super().get_queryset().order_by("warehouse__code", "product__name")
        filters = validated_filters(StockFilterSerializer, self.request.query_params)
        if filters.get("warehouse"):
            qs = qs.filter(warehouse_id=filters["warehouse"])
        if filters.get("product"):
            qs = qs.filter(product_id=filters["product"])
        if filters["low_stock"]:
            qs = qs.filter(quantity__lte=F("product__reorder_point"))
        return qs

    @action(detail=False, methods=["get"], url_path=rf"product/(?P<product_id>{UUID_LOOKUP})")
    def product_summary(self, request, product_id=None):
        product = get_object_or_404(Product, pk=product_id)
        return Response(product_stock_summary(product))

    @action(detail=False, methods=["get"], url_path="alerts/low-stock")
    def low_stock(self, request):
        filters = validated_filters(StockFilterSerializer, request.query_params)
        qs = low_stock_queryset(warehouse_id=filters.get("warehouse"))
        page = self.paginate_queryset(qs)
        if page is not None:
            return self.get_paginated_response(LowStockAlertSerializer(page, many=True).data)
        return Response(LowStockAlertSerializer(qs, many=True).data)

    @action(detail=False, methods=["post"], url_path="adjust")
    def adjust(self, request):
        serializer = StockAdjustmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = adjust_stock(
            product=get_object_or_404(Product, pk=data["product_id"]),
            warehouse=get_object_or_404(Warehouse, pk=data["warehouse_id"]),
            quantity=data["quantity"],
            reason=data["reason"],
            actor=request.user,
            notes=data.get("notes", ""),
            location=data.get("location"),
            batch_number=data.get("batch_number"),
            expiry_date=data.get("expiry_date"),
        )
        payload = _movement_payload(result)
        audit_mutation(
            request,
            "stock.adjust",
            result.stock.id,
            before={"quantity": result.previous_quantity},
            after=payload,
        )
        return Response(payload, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["post"], url_path="transfer")
    def transfer(self, request):
        serializer = StockTransferSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = transfer_stock(
            product=get_object_or_404(Product, pk=data["product_id"]),
            from_warehouse=get_object_or_404(Warehouse, pk=data["from_warehouse_id"]),
            to_warehouse=get_object_or_404(Warehouse, pk=data["to_warehouse_id"]),
            quantity=data["quantity"],
            actor=request.user,
            notes=data.get("notes", ""),
            location=data.get("location"),
        )
        payload = {
            "reference_id": str(result.reference_id),
            "source": _movement_payload(result.source),
            "destination": _movement_payload(result.destination),
        }
        audit_mutation(
            request,
            "stock.transfer",
            result.source.stock.id,
            before={
                "source_quantity": result.source.previous_quantity,
                "destination_quantity": result.destination.previous_quantity,
            },
            after=payload,
        )
        return Response(payload, status=status.HTTP_201_CREATED)


class StockMovementViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = StockMovement.objects.select_related("product", "warehouse", "performed_by")
    serializer_class = StockMovementSerializer
    pagination_class = MovementLogPagination
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {"list": "inventory.view", "retrieve": "inventory.view"}

    def get_queryset(self):
        qs = super().get_queryset()
        filters = validated_filters(StockMovementFilterSerializer, self.request.query_params)
        for param, lookup in (
            ("product", "product_id"),
            ("warehouse", "warehouse_id"),
            ("direction", "direction"),
            ("reference_type", "reference_type"),
            ("reference_id", "reference_id"),
        ):
            if param in filters:
                qs = qs.filter(**{lookup: filters[param]})
        return qs


class PurchaseOrderViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.UpdateModelMixin,
    viewsets.GenericViewSet,
):
    queryset = PurchaseOrder.objects.select_related("supplier", "warehouse").prefetch_related("lines__product")
    serializer_class = PurchaseOrderSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {
        "list": "inventory.view",
        "retrieve": "inventory.view",
        "create": "purchasing.manage",
        "update": "purchasing.manage",
        "partial_update": "purchasing.manage",
        "submit": "purchasing.manage",
        "cancel": "purchasing.manage",
        "place": "purchasing.manage",
        "approve": "purchasing.approve",
        "receive": "purchasing.receive",
    }

    def get_queryset(self):
        qs = super().get_queryset().order_by("-created_at")
        filters = validated_filters(PurchaseOrderFilterSerializer, self.request.query_params)
        for param, lookup in (("status", "status"), ("supplier", "supplier_id"), ("warehouse", "warehouse_id")):
            if param in filters:
                qs = qs.filter(**{lookup: filters[param]})
        return qs

    def _respond(self, order, *, operation, before_snapshot=None, status_code=status.HTTP_200_OK):
        order = self.get_queryset().get(pk=order.pk)
        data = PurchaseOrderSerializer(order).data
        audit_mutation(self.request, f"purchase_order.{operation}", order.id, before=before_snapshot, after=data)
        return Response(data, status=status_code)

    def create(self, request, *args, **kwargs):
        serializer = PurchaseOrderWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        order = create_purchase_order(
            supplier=data["supplier"],
            warehouse=data["warehouse"],
            lines=data["lines"],
            actor=request.user,
            expected_delivery_date=data.get("expected_delivery_date"),
            notes=data.get("notes", ""),
        )
        return self._respond(order, operation="create", status_code=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        order = self.get_object()
        before_snapshot = PurchaseOrderSerializer(order).data
        serializer = PurchaseOrderWriteSerializer(data=request.data, partial=kwargs.get("partial", False))
        serializer.is_valid(raise_exception=True)
        fields = dict(serializer.validated_data)
        lines = fields.pop("lines", None)
        order = update_purchase_order(order, lines=lines, **fields)
        return self._respond(order, operation="update", before_snapshot=before_snapshot)

    def _transition(self, request, service, operation, **kwargs):
        order = self.get_object()
        before_snapshot = {"status": order.status}
        order = service(order, **kwargs)
        return self._respond(order, operation=operation, before_snapshot=before_snapshot)

    @action(detail=True, methods=["post"], url_path="submit")
    def submit(self, request, pk=None):
        return self._transition(request, submit_purchase_order, "submit")

    @action(detail=True, methods=["post"], url_path="approve")
    def approve(self, request, pk=None):
        return self._transition(request, approve_purchase_order, "approve", actor=request.user)

    @action(detail=True, methods=["post"], url_path="place")
    def place(self, request, pk=None):
        return self._transition(request, place_purchase_order, "place")

    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, pk=None):
        return self._transition(request, cancel_purchase_order, "cancel")

    @action(detail=True, methods=["post"], url_path="receive")
    def receive(self, request, pk=None):
        order = self.get_object()
        serializer = GoodsReceiptSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        before_snapshot = {
            "status": order.status,
            "received": {str(line.id): line.received_quantity for line in order.lines.all()},
        }
        order = receive_purchase_order(order=order, lines=serializer.validated_data["lines"], actor=request.user)
        return self._respond(order, operation="receive", before_snapshot=before_snapshot)
