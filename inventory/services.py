import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass

from django.db import transaction
from django.db.models import F, Sum
from django.utils import timezone
from rest_framework.exceptions import NotFound

from common.exceptions import InsufficientStock, InvalidOperation
from common.utils import create_with_daily_number, to_money
from inventory.models import PurchaseOrder, PurchaseOrderLine, Stock, StockMovement
from inventory.states import PURCHASE_ORDER_STATES
from notifications import emitter

logger = logging.getLogger(__name__)

Direction = StockMovement.Direction
ReferenceType = StockMovement.ReferenceType

PURCHASE_ORDER_PREFIX = "PO"


@dataclass(frozen=True)
class MovementResult:
    stock: Stock
    movement: StockMovement

    @property
    def previous_quantity(self):
        return self.movement.previous_quantity

    @property
    def new_quantity(self):
        return self.movement.new_quantity


@dataclass(frozen=True)
class TransferResult:
    reference_id: uuid.UUID
    source: MovementResult
    destination: MovementResult


@dataclass(frozen=True)
class LedgerDrift:
    product_id: uuid.UUID
    warehouse_id: uuid.UUID
    stored_quantity: int
    ledger_quantity: int

    @property
    def difference(self):
        return self.stored_quantity - self.ledger_quantity


def _ensure_active(product=None, warehouse=None):
    if product is not None and not product.is_active:
        raise InvalidOperation(f"Product {product.sku} is inactive.", errors={"product_id": str(product.id)})
    if warehouse is not None and not warehouse.is_active:
        raise InvalidOperation(f"Warehouse {warehouse.code} is inactive.", errors={"warehouse_id": str(warehouse.id)})


def lock_stock(product, warehouse, *, create=False):
    """Return the locked stock row for the bucket, or ``None`` when it does not exist.

    With ``create=True`` a missing bucket is created at zero first. Must run
    inside ``transaction.atomic``.
    """
    if create:
        Stock.objects.get_or_create(product=product, warehouse=warehouse)
    stock = Stock.objects.select_for_update().filter(product=product, warehouse=warehouse).first()
    if stock is not None:
        stock.product = product
        stock.warehouse = warehouse
    return stock


def lock_stock_rows(warehouse, products):
    """Lock every existing bucket for ``products`` in ``warehouse``, ordered by product id."""
    by_id = {product.id: product for product in products}
    rows = (
        Stock.objects.select_for_update()
        .filter(warehouse=warehouse, product_id__in=list(by_id))
        .order_by("product_id")
    )
    locked = {}
    for stock in rows:
        stock.product = by_id[stock.product_id]
        stock.warehouse = warehouse
        locked[stock.product_id] = stock
    return locked


def record_movement(
    stock,
    *,
    direction,
    quantity,
    reference_type,
    actor,
    reference_id=None,
    reason="",
    notes="",
    location=None,
    batch_number=None,
    expiry_date=None,
    notify=True,
):
    """Apply one signed change to a locked stock row and append its movement.

    Inbound directions add ``quantity``; ``out`` subtracts it. Unless
    ``notify`` is false, post-commit notifications for the bucket are queued
    before returning.
    """
    if quantity <= 0:
        raise InvalidOperation("Quantity must be greater than zero.", errors={"quantity": quantity})

    previous = stock.quantity
    if direction in StockMovement.INBOUND:
        new = previous + quantity
    else:
        new = previous - quantity
    if new < 0:
        raise InsufficientStock(product=stock.product, warehouse=stock.warehouse, available=previous, requested=quantity)

    stock.quantity = new
    update_fields = ["quantity", "updated_at"]
    for field, value in (("location", location), ("batch_number", batch_number), ("expiry_date", expiry_date)):
        if value is not None:
            setattr(stock, field, value)
            update_fields.append(field)
    stock.save(update_fields=update_fields)

    movement = StockMovement.objects.create(
        product=stock.product,
        warehouse=stock.warehouse,
        direction=direction,
        quantity=quantity,
        previous_quantity=previous,
        new_quantity=new,
        reference_type=reference_type,
        reference_id=reference_id,
        reason=reason or "",
        notes=notes or "",
        performed_by=actor,
    )
    logger.info(
        "stock_movement_recorded direction=%s quantity=%s previous=%s new=%s",
        direction,
        quantity,
        previous,
        new,
        extra={
            "product_id": stock.product_id,
            "warehouse_id": stock.warehouse_id,
            "movement_id": movement.id,
            "reference_id": reference_id,
        },
    )
    if notify:
        queue_stock_notifications(stock, previous_quantity=previous, direction=direction)
    return MovementResult(stock=stock, movement=movement)


def queue_stock_notifications(stock, *, previous_quantity, direction):
    emitter.stock_changed(
        product_id=stock.product_id,
        warehouse_id=stock.warehouse_id,
        new_quantity=stock.quantity,
        previous_quantity=previous_quantity,
        direction=direction,
    )
    product = stock.product
    if stock.quantity <= product.reorder_point:
        emitter.low_stock_alert(
            product_id=product.id,
            product_name=product.name,
            current_quantity=stock.quantity,
            reorder_point=product.reorder_point,
            warehouse_id=stock.warehouse_id,
            critical=stock.is_critical,
        )


@transaction.atomic
def adjust_stock(
    *,
    product,
    warehouse,
    quantity,
    reason,
    actor,
    notes="",
    location=None,
    batch_number=None,
    expiry_date=None,
):
    if not quantity:
        raise InvalidOperation("Adjustment quantity must not be zero.", errors={"quantity": quantity})
    _ensure_active(product, warehouse)

    stock = lock_stock(product, warehouse, create=quantity > 0)
    if stock is None:
        raise InsufficientStock(product=product, warehouse=warehouse, available=0, requested=abs(quantity))

    return record_movement(
        stock,
        direction=Direction.IN if quantity > 0 else Direction.OUT,
        quantity=abs(quantity),
        reference_type=ReferenceType.ADJUSTMENT,
        actor=actor,
        reason=reason,
        notes=notes,
        location=location,
        batch_number=batch_number,
        expiry_date=expiry_date,
    )


@transaction.atomic
def transfer_stock(*, product, from_warehouse, to_warehouse, quantity, actor, notes="", location=None):
    if from_warehouse.pk == to_warehouse.pk:
        raise InvalidOperation(
            "Source and destination warehouses must differ.",
            errors={"from_warehouse_id": str(from_warehouse.pk), "to_warehouse_id": str(to_warehouse.pk)},
        )
    if quantity <= 0:
        raise InvalidOperation("Transfer quantity must be greater than zero.", errors={"quantity": quantity})
    _ensure_active(product, from_warehouse)
    _ensure_active(warehouse=to_warehouse)

    locked = {}
    for warehouse in sorted((from_warehouse, to_warehouse), key=lambda item: str(item.pk)):
        locked[warehouse.pk] = lock_stock(product, warehouse, create=warehouse.pk == to_warehouse.pk)

    source = locked[from_warehouse.pk]
    available = source.quantity if source is not None else 0
    if quantity > available:
        raise InsufficientStock(product=product, warehouse=from_warehouse, available=available, requested=quantity)

    reference_id = uuid.uuid4()
    suffix = f" {notes}" if notes else ""
    outbound = record_movement(
        source,
        direction=Direction.OUT,
        quantity=quantity,
        reference_type=ReferenceType.TRANSFER,
        reference_id=reference_id,
        actor=actor,
        reason="Stock transfer",
        notes=f"Transferred to warehouse {to_warehouse.code}.{suffix}",
    )
    inbound = record_movement(
        locked[to_warehouse.pk],
        direction=Direction.IN,
        quantity=quantity,
        reference_type=ReferenceType.TRANSFER,
        reference_id=reference_id,
        actor=actor,
        reason="Stock transfer",
        notes=f"Transferred from warehouse {from_warehouse.code}.{suffix}",
        location=location,
    )
    return TransferResult(reference_id=reference_id, source=outbound, destination=inbound)


def _build_order_lines(order, lines):
    total = to_money(0)
    created = []
    for line in lines:
        product = line["product"]
        ordered_quantity = line["quantity"]
        if ordered_quantity <= 0:
            raise InvalidOperation("Ordered quantity must be greater than zero.", errors={"product_id": str(product.id)})
        unit_cost = to_money(line.get("unit_cost", product.cost_price))
        line_total = to_money(unit_cost * ordered_quantity)
        created.append(
            PurchaseOrderLine.objects.create(
                purchase_order=order,
                product=product,
                ordered_quantity=ordered_quantity,
                unit_cost=unit_cost,
                line_total=line_total,
                batch_number=line.get("batch_number"),
                expiry_date=line.get("expiry_date"),
            )
        )
        total += line_total
    return created, total


@transaction.atomic
def create_purchase_order(*, supplier, warehouse, lines, actor, expected_delivery_date=None, notes=""):
    if not lines:
        raise InvalidOperation("A purchase order needs at least one line.")
    _ensure_active(warehouse=warehouse)

    order = create_with_daily_number(
        PurchaseOrder,
        "order_number",
        PURCHASE_ORDER_PREFIX,
        supplier=supplier,
        warehouse=warehouse,
        order_date=timezone.localdate(),
        expected_delivery_date=expected_delivery_date,
        notes=notes or "",
        created_by=actor,
    )
    _, total = _build_order_lines(order, lines)
    order.total_amount = total
    order.save(update_fields=["total_amount", "updated_at"])
    logger.info("purchase_order_created number=%s", order.order_number, extra={"order_id": order.id})
    emitter.purchase_order_updated(order)
    return order


def _lock_order(order):
    return PurchaseOrder.objects.select_for_update().get(pk=order.pk)


@transaction.atomic
def update_purchase_order(order, *, lines=None, **fields):
    order = _lock_order(order)
    PURCHASE_ORDER_STATES.ensure("update", order.status)

    update_fields = ["updated_at"]
    for name in ("supplier", "warehouse", "expected_delivery_date", "notes"):
        if name in fields:
            setattr(order, name, fields[name])
            update_fields.append(name)
    if lines is not None:
        if not lines:
            raise InvalidOperation("A purchase order needs at least one line.")
        order.lines.all().delete()
        _, order.total_amount = _build_order_lines(order, lines)
        update_fields.append("total_amount")
    order.save(update_fields=update_fields)
    emitter.purchase_order_updated(order)
    return order


def _transition(order, operation, **stamps):
    order = _lock_order(order)
    order.status = PURCHASE_ORDER_STATES.ensure(operation, order.status)
    for name, value in stamps.items():
        setattr(order, name, value)
    order.save(update_fields=["status", "updated_at", *stamps])
    logger.info(
        "purchase_order_transition operation=%s status=%s",
        operation,
        order.status,
        extra={"order_id": order.id},
    )
    emitter.purchase_order_updated(order)
    return order


@transaction.atomic
def submit_purchase_order(order):
    return _transition(order, "submit")


@transaction.atomic
def approve_purchase_order(order, *, actor):
    return _transition(order, "approve", approved_by=actor, approved_at=timezone.now())


@transaction.atomic
def place_purchase_order(order):
    return _transition(order, "place")


@transaction.atomic
def cancel_purchase_order(order):
    return _transition(order, "cancel")


@transaction.atomic
def receive_purchase_order(*, order, lines, actor):
    """Record physical receipt of goods against an approved or ordered purchase order.

    ``lines`` is a list of mappings with ``line_id`` and ``quantity`` plus
    optional ``location``, ``batch_number`` and ``expiry_date`` hints.
    Receiving more than the outstanding quantity of a line is rejected.
    """
    order = _lock_order(order)
    PURCHASE_ORDER_STATES.ensure("receive", order.status)
    if not lines:
        raise InvalidOperation("At least one received line is required.")

    order_lines = {line.id: line for line in order.lines.select_for_update(of=("self",)).select_related("product")}
    requested = defaultdict(int)
    for received in lines:
        line_id = received["line_id"]
        line = order_lines.get(line_id)
        if line is None:
            raise NotFound(f"Purchase order line {line_id} not found on {order.order_number}.")
        quantity = received["quantity"]
        if quantity <= 0:
            raise InvalidOperation("Received quantity must be greater than zero.", errors={"line_id": str(line_id)})
        requested[line_id] += quantity
        if requested[line_id] > line.remaining_quantity:
            raise InvalidOperation(
                "Received quantity exceeds remaining for line.",
                errors={
                    "line_id": str(line_id),
                    "product_id": str(line.product_id),
                    "remaining": line.remaining_quantity,
                    "requested": requested[line_id],
                },
            )

    _ensure_active(warehouse=order.warehouse)
    products = {line.product_id: line.product for line in (order_lines[received["line_id"]] for received in lines)}
    for product_id in sorted(products):
        Stock.objects.get_or_create(product=products[product_id], warehouse=order.warehouse)
    locked = lock_stock_rows(order.warehouse, products.values())

    for received in lines:
        line = order_lines[received["line_id"]]
        quantity = received["quantity"]
        line.received_quantity = line.received_quantity + quantity
        update_fields = ["received_quantity"]
        if received.get("batch_number"):
            line.batch_number = received["batch_number"]
            update_fields.append("batch_number")
        if received.get("expiry_date"):
            line.expiry_date = received["expiry_date"]
            update_fields.append("expiry_date")
        line.save(update_fields=update_fields)

        record_movement(
            locked[line.product_id],
            direction=Direction.IN,
            quantity=quantity,
            reference_type=ReferenceType.PURCHASE_ORDER,
            reference_id=order.id,
            actor=actor,
            reason="Purchase order receipt",
            notes=f"Received from PO: {order.order_number}",
            location=received.get("location"),
            batch_number=received.get("batch_number"),
            expiry_date=received.get("expiry_date"),
        )

    if order.is_fully_received:
        order.status = PurchaseOrder.Status.RECEIVED
        order.actual_delivery_date = timezone.localdate()
    else:
        order.status = PurchaseOrder.Status.ORDERED
    order.save(update_fields=["status", "actual_delivery_date", "updated_at"])
    logger.info("purchase_order_received status=%s", order.status, extra={"order_id": order.id})
    emitter.purchase_order_updated(order)
    return order


def ledger_balance(product, warehouse):
    """Fold the movement log for one bucket into a quantity."""
    totals = StockMovement.objects.filter(product=product, warehouse=warehouse).aggregate(
        total=Sum(F("new_quantity") - F("previous_quantity"))
    )
    return totals["total"] or 0


def find_ledger_drift():
    balances = {
        (row["product_id"], row["warehouse_id"]): row["total"] or 0
        for row in StockMovement.objects.values("product_id", "warehouse_id").annotate(
            total=Sum(F("new_quantity") - F("previous_quantity"))
        )
    }
    drift = []
    for stock in Stock.objects.order_by("warehouse_id", "product_id"):
        key = (stock.product_id, stock.warehouse_id)
        ledger_quantity = balances.pop(key, 0)
        if ledger_quantity != stock.quantity:
            drift.append(LedgerDrift(stock.product_id, stock.warehouse_id, stock.quantity, ledger_quantity))
    for (product_id, warehouse_id), ledger_quantity in balances.items():
        if ledger_quantity:
            drift.append(LedgerDrift(product_id, warehouse_id, 0, ledger_quantity))
    return drift


def low_stock_queryset(warehouse_id=None):
    qs = Stock.objects.select_related("product", "warehouse").filter(
        product__is_active=True,
        quantity__lte=F("product__reorder_point"),
    )
    if warehouse_id:
        qs = qs.filter(warehouse_id=warehouse_id)
    return qs.order_by("quantity", "product__name")


def product_stock_summary(product):
    rows = list(Stock.objects.filter(product=product).select_related("warehouse").order_by("warehouse__code"))
    total = sum(row.quantity for row in rows)
    reserved = sum(row.reserved_quantity for row in rows)
    return {
        "product_id": product.id,
        "sku": product.sku,
        "name": product.name,
        "total_quantity": total,
        "reserved_quantity": reserved,
        "available_quantity": total - reserved,
        "needs_reorder": total <= product.reorder_point,
        "warehouses": [
            {
                "warehouse_id": row.warehouse_id,
                "warehouse_code": row.warehouse.code,
                "quantity": row.quantity,
                "reserved_quantity": row.reserved_quantity,
                "available_quantity": row.available_quantity,
                "location": row.location,
            }
            for row in rows
        ],
    }
