"""
Serializers for the user directory.

UserSummarySerializer is the read-only profile used wherever a participant
or message sender is resolved for display.
"""

from rest_framework import serializers

from authentication.models import User


class UserSummarySerializer(serializers.ModelSerializer):
    """Public display profile of a user."""

    full_name = serializers.CharField(source="get_full_name", read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "first_name",
            "last_name",
            "full_name",
            "user_type",
            "college",
            "profile_image_url",
            "online_status",
            "last_seen",
        ]
        read_only_fields = fields
