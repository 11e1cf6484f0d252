"""
Serializers for the class schedule API.
"""

from __future__ import annotations

from rest_framework import serializers

from studios.models import ClassSession, DifficultyLevel


class ClassListQuerySerializer(serializers.Serializer):
    studio = serializers.UUIDField(required=False)
    class_type = serializers.CharField(required=False, max_length=50)
    difficulty_level = serializers.ChoiceField(choices=DifficultyLevel.choices, required=False)


class ClassSessionSerializer(serializers.ModelSerializer):
    """
    Upcoming class with its studio and a spots-remaining snapshot.

    Expects the queryset to be annotated with confirmed_count.
    """

    studio_id = serializers.UUIDField(read_only=True)
    studio_name = serializers.CharField(source="studio.name", read_only=True)
    neighborhood = serializers.CharField(source="studio.neighborhood", read_only=True)
    end_time = serializers.DateTimeField(read_only=True)
    spots_remaining = serializers.SerializerMethodField()

    class Meta:
        model = ClassSession
        fields = [
            "id",
            "studio_id",
            "studio_name",
            "neighborhood",
            "name",
            "class_type",
            "instructor_name",
            "difficulty_level",
            "start_time",
            "end_time",
            "duration_minutes",
            "credit_cost",
            "max_capacity",
            "spots_remaining",
        ]
        read_only_fields = fields

    def get_spots_remaining(self, obj: ClassSession) -> int:
        return max(obj.max_capacity - getattr(obj, "confirmed_count", 0), 0)
