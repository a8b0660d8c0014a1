from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="NotificationOutbox",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("event", models.CharField(max_length=64)),
                ("product_id", models.UUIDField(blank=True, null=True)),
                ("warehouse_id", models.UUIDField(blank=True, null=True)),
                ("payload", models.JSONField()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "indexes": [
                    models.Index(fields=["warehouse_id", "id"], name="notif_outbox_warehouse_idx"),
                    models.Index(fields=["event", "id"], name="notif_outbox_event_idx"),
                ],
            },
        ),
    ]
