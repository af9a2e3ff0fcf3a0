"""
Core app views — **Thin Views**.

Each view delegates all business logic to the corresponding service in
``core.services``.  Views are responsible only for:

1. Extracting and validating query parameters from the request.
2. Calling the service with the authenticated user and parameters.
3. Serialising the result and returning an HTTP ``Response``.

No model imports, no cross-app queries.
"""

from __future__ import annotations

from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
)

from .serializers import (
    NotificationSerializer,
    SystemConstantsSerializer,
)
from .services import (
    NotificationService,
    SystemConstantsService,
)


class SystemConstantsView(APIView):
    """
    **GET /api/core/constants/**

    Return all system-wide choice enumerations and the workflow
    transition table so the frontend can dynamically build dropdowns,
    filters, labels and action buttons without hardcoding values.

    **Authentication**: Not required (``AllowAny``).
    These constants are public configuration data.
    """

    permission_classes = [AllowAny]

    @extend_schema(
        summary="System constants",
        description=(
            "Return all system-wide choice enumerations and the case workflow "
            "transition table."
        ),
        responses={200: OpenApiResponse(response=SystemConstantsSerializer, description="System constants.")},
        tags=["System"],
    )
    def get(self, request: Request) -> Response:
        data = SystemConstantsService.get_constants()
        serializer = SystemConstantsSerializer(data)
        return Response(serializer.data, status=status.HTTP_200_OK)


class NotificationViewSet(viewsets.ViewSet):
    """
    **Notification API** — list and mark-as-read for the authenticated user.

    Endpoints
    ---------
    GET  /api/core/notifications/              → list all notifications
    POST /api/core/notifications/{id}/read/    → mark a notification as read

    **Authentication**: Required (``IsAuthenticated``).
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List notifications",
        description="Return notifications for the authenticated user, newest first.",
        parameters=[
            OpenApiParameter(name="unread", type=bool, required=False, description="Only unread notifications."),
        ],
        responses={200: OpenApiResponse(response=NotificationSerializer(many=True), description="Notification list.")},
        tags=["Notifications"],
    )
    def list(self, request: Request) -> Response:
        """
        Return notifications for the authenticated user.

        Delegates to ``NotificationService.list_notifications()``.
        """
        unread_only = request.query_params.get("unread", "").lower() in ("1", "true", "yes")
        service = NotificationService(user=request.user)
        notifications = service.list_notifications(unread_only=unread_only)
        serializer = NotificationSerializer(notifications, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="read")
    @extend_schema(
        summary="Mark notification as read",
        description="Mark a single notification as read by ID.",
        request=None,
        responses={
            200: OpenApiResponse(response=NotificationSerializer, description="Updated notification."),
            404: OpenApiResponse(description="Notification not found."),
        },
        tags=["Notifications"],
    )
    def mark_as_read(self, request: Request, pk: int = None) -> Response:
        """
        Mark a single notification as read.

        **POST /api/core/notifications/{id}/read/**
        """
        service = NotificationService(user=request.user)
        notification = service.mark_as_read(notification_id=pk)
        serializer = NotificationSerializer(notification)
        return Response(serializer.data, status=status.HTTP_200_OK)
