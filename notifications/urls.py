from django.urls import path

from notifications.views import NotificationPullView

urlpatterns = [
    path("pull", NotificationPullView.as_view(), name="notifications-pull"),
]
