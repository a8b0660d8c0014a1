"""Post-commit notification hooks for stock mutations.

Callers only ever enqueue: every public function here registers a
``transaction.on_commit`` callback, so nothing is published for a
transaction that rolls back and a failing backend can never reach the
transaction that produced the event.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from functools import partial

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from django.utils.module_loading import import_string

from common.utils import to_json_compatible

logger = logging.getLogger(__name__)

STOCK_CHANGED = "stock.changed"
LOW_STOCK = "stock.low"
PURCHASE_ORDER_UPDATED = "purchase_order.updated"
SALE_CREATED = "sale.created"
SALE_VOIDED = "sale.voided"

DEFAULT_BACKENDS = ["notifications.backends.OutboxBackend"]


@dataclass(frozen=True)
class Notification:
    event: str
    payload: dict
    product_id: uuid.UUID | None = None
    warehouse_id: uuid.UUID | None = None
    occurred_at: datetime = field(default_factory=timezone.now)

    def as_message(self):
        return to_json_compatible({**self.payload, "event": self.event, "timestamp": self.occurred_at})


def get_backends():
    return [import_string(path)() for path in getattr(settings, "NOTIFICATION_BACKENDS", DEFAULT_BACKENDS)]


def publish(notification):
    """Deliver to every backend; a failing backend is logged and skipped."""
    for backend in get_backends():
        try:
            backend.send(notification)
        except Exception:
            logger.exception(
                "notification_publish_failed",
                extra={
                    "event": notification.event,
                    "backend": backend.__class__.__name__,
                    "product_id": notification.product_id,
                    "warehouse_id": notification.warehouse_id,
                },
            )


def enqueue(notification, using=None):
    transaction.on_commit(partial(publish, notification), using=using, robust=True)
    return notification


def stock_changed(*, product_id, warehouse_id, new_quantity, previous_quantity, direction):
    return enqueue(
        Notification(
            event=STOCK_CHANGED,
            product_id=product_id,
            warehouse_id=warehouse_id,
            payload={
                "product_id": product_id,
                "warehouse_id": warehouse_id,
                "new_quantity": new_quantity,
                "previous_quantity": previous_quantity,
                "movement_type": str(direction),
            },
        )
    )


def low_stock_alert(*, product_id, product_name, current_quantity, reorder_point, warehouse_id, critical=False):
    return enqueue(
        Notification(
            event=LOW_STOCK,
            product_id=product_id,
            warehouse_id=warehouse_id,
            payload={
                "product_id": product_id,
                "product_name": product_name,
                "current_stock": current_quantity,
                "reorder_point": reorder_point,
                "warehouse_id": warehouse_id,
                "type": "critical" if critical else "low-stock",
            },
        )
    )


def purchase_order_updated(order):
    return enqueue(
        Notification(
            event=PURCHASE_ORDER_UPDATED,
            warehouse_id=order.warehouse_id,
            payload={
                "order_id": order.id,
                "order_number": order.order_number,
                "status": str(order.status),
                "warehouse_id": order.warehouse_id,
            },
        )
    )


def sale_event(event, sale):
    return enqueue(
        Notification(
            event=event,
            warehouse_id=sale.warehouse_id,
            payload={
                "sale_id": sale.id,
                "sale_number": sale.sale_number,
                "status": str(sale.status),
                "total_amount": sale.total_amount,
                "warehouse_id": sale.warehouse_id,
            },
        )
    )
