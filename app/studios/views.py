"""
Views for the class schedule.

Endpoints:
    GET /api/v1/studios/classes/ - Upcoming classes (?studio=&class_type=&difficulty_level=)
"""

from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.services import ServiceResult
from core.viewset_mixins import ServiceErrorMixin

from studios.serializers import ClassListQuerySerializer, ClassSessionSerializer
from studios.services import ClassScheduleService


class UpcomingClassListView(ServiceErrorMixin, APIView):
    permission_classes = [IsAuthenticated]
    service_class = ClassScheduleService

    @extend_schema(
        operation_id="list_upcoming_classes",
        summary="List upcoming classes",
        parameters=[ClassListQuerySerializer],
        responses={200: ClassSessionSerializer(many=True)},
        tags=["Studios"],
    )
    def get(self, request):
        query = ClassListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        filters = query.validated_data

        classes = ClassScheduleService.upcoming_classes(
            studio_id=filters.get("studio"),
            class_type=filters.get("class_type"),
            difficulty_level=filters.get("difficulty_level"),
        )
        data = ClassSessionSerializer(classes, many=True).data
        return Response(ServiceResult.success(data).to_response())
