from rest_framework import serializers


class NotificationPullSerializer(serializers.Serializer):
    cursor = serializers.IntegerField(min_value=0)
    limit = serializers.IntegerField(min_value=1, max_value=1000, default=500)
    warehouse_id = serializers.UUIDField(required=False)
    events = serializers.ListField(child=serializers.CharField(max_length=64), required=False, allow_empty=False)
