import logging

from rest_framework import viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView
from rest_framework_simplejwt.views import TokenObtainPairView

from common.permissions import RoleCapabilityPermission
from common.utils import validated_filters
from core.models import AuditLog
from core.serializers import (
    AuditLogFilterSerializer,
    AuditLogSerializer,
    EmailOrUsernameTokenObtainPairSerializer,
    UserSummarySerializer,
)

logger = logging.getLogger(__name__)


class EmailOrUsernameTokenObtainPairView(TokenObtainPairView):
    serializer_class = EmailOrUsernameTokenObtainPairSerializer
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "auth"


class MeView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response(UserSummarySerializer(request.user).data)


class AuditLogViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = AuditLog.objects.select_related("actor")
    serializer_class = AuditLogSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {"list": "admin.records.manage", "retrieve": "admin.records.manage"}

    def get_queryset(self):
        qs = self.queryset.order_by("-created_at")
        filters = validated_filters(AuditLogFilterSerializer, self.request.query_params)

        if "start_date" in filters:
            qs = qs.filter(created_at__gte=filters["start_date"])
        if "end_date" in filters:
            qs = qs.filter(created_at__lte=filters["end_date"])
        for param in ("actor_id", "action", "entity", "entity_id"):
            if param in filters:
                qs = qs.filter(**{param: filters[param]})

        return qs
