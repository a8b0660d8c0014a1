from django.db import models


class NotificationOutbox(models.Model):
    """Published notifications, readable by subscribers through a monotonically increasing cursor."""

    id = models.BigAutoField(primary_key=True)
    event = models.CharField(max_length=64)
    product_id = models.UUIDField(null=True, blank=True)
    warehouse_id = models.UUIDField(null=True, blank=True)
    payload = models.JSONField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["warehouse_id", "id"], name="notif_outbox_warehouse_idx"),
            models.Index(fields=["event", "id"], name="notif_outbox_event_idx"),
        ]
