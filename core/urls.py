from django.urls import path
from rest_framework.routers import DefaultRouter

from core.views import AuditLogViewSet, MeView

router = DefaultRouter()
router.register(r"admin/audit-logs", AuditLogViewSet, basename="audit-log")

urlpatterns = router.urls + [
    path("me/", MeView.as_view(), name="me"),
]
