from rest_framework import serializers

from agent_marketplace.users.models import User


class UserSerializer(serializers.ModelSerializer[User]):
    full_name = serializers.CharField(source="name", read_only=True)
    id = serializers.IntegerField(read_only=True)

    # Identity fields are managed through signup/admin, never through this API
    username = serializers.CharField(read_only=True)
    email = serializers.EmailField(read_only=True)
    role = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "first_name",
            "last_name",
            "full_name",
            "email",
            "image",
            "role",
        ]

    def update(self, instance, validated_data):
        forbidden = {
            k for k in ("username", "email", "role") if k in self.initial_data
        }
        if forbidden:
            errors = {f: "This field is read-only." for f in forbidden}
            raise serializers.ValidationError(errors)
        instance.first_name = validated_data.get("first_name", instance.first_name)
        instance.last_name = validated_data.get("last_name", instance.last_name)
        instance.image = validated_data.get("image", instance.image)
        instance.save()
        return instance


class UserSummarySerializer(serializers.ModelSerializer[User]):
    """Compact sender/participant representation embedded in chat payloads."""

    name = serializers.CharField(source="display_name", read_only=True)

    class Meta:
        model = User
        fields = ["id", "name", "role", "image"]
        read_only_fields = fields
