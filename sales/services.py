import logging
from collections import OrderedDict

from django.db import transaction
from django.utils import timezone

from common.exceptions import InsufficientStock, InvalidOperation
from common.utils import create_with_daily_number, to_money
from inventory.models import StockMovement
from inventory.services import lock_stock, lock_stock_rows, queue_stock_notifications, record_movement
from notifications import emitter
from sales.models import Sale, SaleLine
from sales.states import SALE_STATES

logger = logging.getLogger(__name__)

SALE_PREFIX = "SALE"
DEFAULT_VOID_REASON = "Voided by user"


def _price_lines(lines):
    priced = []
    for line in lines:
        product = line["product"]
        quantity = line["quantity"]
        if quantity <= 0:
            raise InvalidOperation("Line quantity must be greater than zero.", errors={"product_id": str(product.id)})
        if not product.is_active:
            raise InvalidOperation(f"Product {product.sku} is inactive.", errors={"product_id": str(product.id)})
        unit_price = to_money(line.get("unit_price", product.selling_price))
        discount = to_money(line.get("discount", 0))
        line_total = to_money(unit_price * quantity - discount)
        if line_total < 0:
            raise InvalidOperation("Line discount exceeds line amount.", errors={"product_id": str(product.id)})
        priced.append((product, quantity, unit_price, discount, line_total))
    return priced


@transaction.atomic
def create_sale(
    *,
    warehouse,
    lines,
    actor,
    payment_method=Sale.PaymentMethod.CASH,
    payment_amount=None,
    tax_amount=0,
    discount_amount=0,
    customer_name=None,
    customer_email=None,
    customer_phone=None,
    notes="",
):
    """Check out a basket from one warehouse.

    Every bucket is locked and checked before anything is written, so a
    shortage on any line rejects the whole sale.
    """
    if not lines:
        raise InvalidOperation("A sale needs at least one line.")
    if not warehouse.is_active:
        raise InvalidOperation(f"Warehouse {warehouse.code} is inactive.", errors={"warehouse_id": str(warehouse.id)})

    priced = _price_lines(lines)

    requested = OrderedDict()
    products = {}
    for product, quantity, *_ in priced:
        requested[product.id] = requested.get(product.id, 0) + quantity
        products[product.id] = product

    locked = lock_stock_rows(warehouse, products.values())
    for product_id, quantity in requested.items():
        stock = locked.get(product_id)
        available = stock.available_quantity if stock is not None else 0
        if quantity > available:
            raise InsufficientStock(product=products[product_id], warehouse=warehouse, available=available, requested=quantity)

    subtotal = to_money(sum(line_total for *_, line_total in priced))
    tax_amount = to_money(tax_amount)
    discount_amount = to_money(discount_amount)
    total = to_money(subtotal + tax_amount - discount_amount)
    if total < 0:
        raise InvalidOperation("Sale discount exceeds sale amount.", errors={"discount_amount": str(discount_amount)})
    payment_amount = total if payment_amount is None else to_money(payment_amount)
    if payment_amount < total:
        raise InvalidOperation(
            "Payment amount is less than the sale total.",
            errors={"payment_amount": str(payment_amount), "total_amount": str(total)},
        )

    sale = create_with_daily_number(
        Sale,
        "sale_number",
        SALE_PREFIX,
        warehouse=warehouse,
        subtotal=subtotal,
        tax_amount=tax_amount,
        discount_amount=discount_amount,
        total_amount=total,
        payment_method=payment_method,
        payment_amount=payment_amount,
        change_amount=max(to_money(0), payment_amount - total),
        customer_name=customer_name,
        customer_email=customer_email,
        customer_phone=customer_phone,
        notes=notes or "",
        sold_by=actor,
    )

    starting_quantities = {product_id: stock.quantity for product_id, stock in locked.items()}
    for product, quantity, unit_price, discount, line_total in priced:
        SaleLine.objects.create(
            sale=sale,
            product=product,
            quantity=quantity,
            unit_price=unit_price,
            discount=discount,
            line_total=line_total,
        )
        record_movement(
            locked[product.id],
            direction=StockMovement.Direction.OUT,
            quantity=quantity,
            reference_type=StockMovement.ReferenceType.SALE,
            reference_id=sale.id,
            actor=actor,
            reason="Sale",
            notes=f"Sold on {sale.sale_number}",
            notify=False,
        )

    for product_id in requested:
        queue_stock_notifications(
            locked[product_id],
            previous_quantity=starting_quantities[product_id],
            direction=StockMovement.Direction.OUT,
        )
    emitter.sale_event(emitter.SALE_CREATED, sale)
    logger.info(
        "sale_completed number=%s lines=%s total=%s",
        sale.sale_number,
        len(priced),
        sale.total_amount,
        extra={"sale_id": sale.id, "warehouse_id": warehouse.id},
    )
    return sale


@transaction.atomic
def void_sale(*, sale, actor, reason=None):
    """Reverse a completed sale: restock every line and mark the sale void."""
    sale = Sale.objects.select_for_update().get(pk=sale.pk)
    new_status = SALE_STATES.ensure("void", sale.status)

    lines = sorted(sale.lines.select_related("product"), key=lambda line: str(line.product_id))
    for line in lines:
        stock = lock_stock(line.product, sale.warehouse, create=True)
        record_movement(
            stock,
            direction=StockMovement.Direction.IN,
            quantity=line.quantity,
            reference_type=StockMovement.ReferenceType.RETURN,
            reference_id=sale.id,
            actor=actor,
            reason="Sale voided",
            notes=f"Void of {sale.sale_number}",
        )

    sale.status = new_status
    sale.voided_by = actor
    sale.voided_at = timezone.now()
    sale.void_reason = reason or DEFAULT_VOID_REASON
    sale.save(update_fields=["status", "voided_by", "voided_at", "void_reason", "updated_at"])
    emitter.sale_event(emitter.SALE_VOIDED, sale)
    logger.info("sale_voided number=%s", sale.sale_number, extra={"sale_id": sale.id})
    return sale
