from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from common.exceptions import error_response
from common.permissions import RoleCapabilityPermission
from notifications.models import NotificationOutbox
from notifications.serializers import NotificationPullSerializer


class NotificationPullView(APIView):
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {"post": "notifications.pull"}

    def post(self, request):
        serializer = NotificationPullSerializer(data=request.data)
        if not serializer.is_valid():
            return error_response(
                code="validation_error",
                message="Validation failed.",
                errors=serializer.errors,
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            )

        cursor = serializer.validated_data["cursor"]
        limit = serializer.validated_data["limit"]

        updates_qs = NotificationOutbox.objects.filter(id__gt=cursor).order_by("id")
        warehouse_id = serializer.validated_data.get("warehouse_id")
        if warehouse_id:
            updates_qs = updates_qs.filter(warehouse_id=warehouse_id)
        events = serializer.validated_data.get("events")
        if events:
            updates_qs = updates_qs.filter(event__in=events)

        updates = list(updates_qs[: limit + 1])
        has_more = len(updates) > limit
        updates = updates[:limit]
        server_cursor = updates[-1].id if updates else cursor

        return Response(
            {
                "server_cursor": server_cursor,
                "updates": [
                    {
                        "cursor": update.id,
                        "event": update.event,
                        "product_id": str(update.product_id) if update.product_id else None,
                        "warehouse_id": str(update.warehouse_id) if update.warehouse_id else None,
                        "payload": update.payload,
                        "created_at": update.created_at,
                    }
                    for update in updates
                ],
                "has_more": has_more,
            }
        )
