from django.contrib.auth import get_user_model
from rest_framework import serializers

User = get_user_model()


class UserBasicSerializer(serializers.ModelSerializer):
    """Lightweight user serializer for nested representations."""

    full_name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = ("id", "email", "first_name", "last_name", "full_name", "role")
        read_only_fields = fields
