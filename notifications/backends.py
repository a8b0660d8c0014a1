import logging

from notifications.models import NotificationOutbox

logger = logging.getLogger("notifications.delivery")


class BaseBackend:
    def send(self, notification):
        raise NotImplementedError


class OutboxBackend(BaseBackend):
    """Stores the message so subscribers can pull it with a cursor."""

    def send(self, notification):
        return NotificationOutbox.objects.create(
            event=notification.event,
            product_id=notification.product_id,
            warehouse_id=notification.warehouse_id,
            payload=notification.as_message(),
        )


class LoggingBackend(BaseBackend):
    def send(self, notification):
        logger.info(
            "notification %s",
            notification.event,
            extra={
                "event": notification.event,
                "product_id": notification.product_id,
                "warehouse_id": notification.warehouse_id,
            },
        )
