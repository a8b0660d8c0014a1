from rest_framework.routers import DefaultRouter

from inventory.views import (
    ProductViewSet,
    PurchaseOrderViewSet,
    StockMovementViewSet,
    StockViewSet,
    SupplierViewSet,
    WarehouseViewSet,
)

router = DefaultRouter()
router.register(r"products", ProductViewSet, basename="product")
router.register(r"warehouses", WarehouseViewSet, basename="warehouse")
router.register(r"suppliers", SupplierViewSet, basename="supplier")
# Registered before "stock" so the log is not read as a stock id.
router.register(r"stock/movements", StockMovementViewSet, basename="stock-movement")
router.register(r"stock", StockViewSet, basename="stock")
router.register(r"purchase-orders", PurchaseOrderViewSet, basename="purchase-order")

urlpatterns = router.urls
