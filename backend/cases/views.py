"""
Cases app ViewSets.

Architecture: Views are intentionally thin.
Every view follows the strict three-step pattern:

    1. Parse / validate input via a serializer.
    2. Delegate all business logic to the appropriate service class.
    3. Serialize the result and return a DRF ``Response``.

No database queries or workflow logic live here.  Domain exceptions
raised by the services (``IllegalTransition``, ``ConcurrentModification``
...) are turned into responses by the global exception handler.

ViewSets
--------
- ``CaseViewSet`` — The single ViewSet for all case-related endpoints.
  Custom @action methods handle the workflow commands, the timeline and
  the case chat.
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
)
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from .serializers import (
    CaseCommandSerializer,
    CaseDetailSerializer,
    CaseFilterSerializer,
    CaseListSerializer,
    CaseMessageCreateSerializer,
    CaseMessageSerializer,
    CaseReportSerializer,
    MessageFilterSerializer,
    ReasonSerializer,
    StatusUpdateSerializer,
    TimelineEventSerializer,
)
from .services import (
    CaseMessageService,
    CaseQueryService,
    CaseReportService,
    CaseWorkflowService,
    TimelineService,
)

logger = logging.getLogger(__name__)

_UUID_REGEX = r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"

# Shared error responses of the workflow commands.
_COMMAND_ERRORS = {
    400: OpenApiResponse(description="Invalid payload (validation_failed)."),
    404: OpenApiResponse(description="Case not found."),
    409: OpenApiResponse(
        description=(
            "illegal_transition, case_not_claimable or concurrent_modification."
        ),
    ),
}


class CaseViewSet(viewsets.ViewSet):
    """
    Central ViewSet for the cases app.

    Uses ``viewsets.ViewSet`` (not ``ModelViewSet``) so every action is
    explicitly defined.  There is deliberately no update or delete
    action: workflow fields only change through the command endpoints
    and cases are never deleted.

    Permission Strategy
    -------------------
    The base permission is ``IsAuthenticated``.  Who may run a command
    (assigned helper, reporter) is decided by the workflow engine.
    """

    permission_classes = [IsAuthenticated]
    lookup_field = "case_id"
    lookup_value_regex = _UUID_REGEX

    # ── Helpers ──────────────────────────────────────────────────────

    def _case_response(self, event, request: Request) -> Response:
        serializer = CaseDetailSerializer(event.case, context={"request": request})
        return Response(serializer.data, status=status.HTTP_200_OK)

    # ── Standard endpoints ───────────────────────────────────────────

    @extend_schema(
        summary="List cases",
        description="List rescue cases with optional filtering. Requires authentication.",
        parameters=[
            OpenApiParameter(name="status", type=str, location=OpenApiParameter.QUERY, description="Comma-separated case statuses."),
            OpenApiParameter(name="animal_type", type=str, location=OpenApiParameter.QUERY, description="Filter by animal type."),
            OpenApiParameter(name="urgency_level", type=str, location=OpenApiParameter.QUERY, description="Filter by urgency level."),
            OpenApiParameter(name="assigned_to_me", type=bool, location=OpenApiParameter.QUERY, description="Only cases the caller helps on."),
            OpenApiParameter(name="reported_by_me", type=bool, location=OpenApiParameter.QUERY, description="Only cases the caller reported."),
        ],
        responses={
            200: OpenApiResponse(response=CaseListSerializer(many=True), description="Filtered list of cases."),
        },
        tags=["Cases"],
    )
    def list(self, request: Request) -> Response:
        """
        GET /api/cases/
        """
        filter_serializer = CaseFilterSerializer(data=request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        filters = filter_serializer.validated_data

        qs = CaseQueryService.get_filtered_queryset(request.user, filters)
        serializer = CaseListSerializer(qs, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Report a case",
        description=(
            "Report an animal in need of rescue. The case starts in 'open' "
            "status with no helpers. Requires authentication; the caller "
            "becomes the reporter."
        ),
        request=CaseReportSerializer,
        responses={
            201: OpenApiResponse(response=CaseDetailSerializer, description="Case reported."),
            400: OpenApiResponse(description="Validation error."),
        },
        tags=["Cases"],
    )
    def create(self, request: Request) -> Response:
        """
        POST /api/cases/
        """
        serializer = CaseReportSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        case = CaseReportService.report_case(serializer.validated_data, request.user)
        out = CaseDetailSerializer(case, context={"request": request})
        return Response(out.data, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Retrieve case details",
        responses={
            200: OpenApiResponse(response=CaseDetailSerializer, description="Full case detail."),
            404: OpenApiResponse(description="Case not found."),
        },
        tags=["Cases"],
    )
    def retrieve(self, request: Request, case_id: str = None) -> Response:
        """
        GET /api/cases/{case_id}/
        """
        case = CaseQueryService.get_case_detail(case_id)
        serializer = CaseDetailSerializer(case, context={"request": request})
        return Response(serializer.data, status=status.HTTP_200_OK)

    # ── Workflow @actions ─────────────────────────────────────────────

    @action(detail=True, methods=["post"], url_path="claim")
    @extend_schema(
        summary="Claim case",
        description=(
            "Join the case as a helper. The first claim moves an open case to "
            "'assigned'; later claims add co-helpers."
        ),
        request=CaseCommandSerializer,
        responses={200: OpenApiResponse(response=CaseDetailSerializer, description="Case claimed."), **_COMMAND_ERRORS},
        tags=["Cases – Workflow"],
    )
    def claim(self, request: Request, case_id: str = None) -> Response:
        """
        POST /api/cases/{case_id}/claim/
        """
        serializer = CaseCommandSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        event = CaseWorkflowService.claim(
            case_id,
            request.user,
            expected_version=serializer.validated_data.get("expected_version"),
        )
        return self._case_response(event, request)

    @action(detail=True, methods=["post"], url_path="begin-work")
    @extend_schema(
        summary="Begin work",
        description="An assigned helper starts working on the case ('in_progress').",
        request=CaseCommandSerializer,
        responses={200: OpenApiResponse(response=CaseDetailSerializer, description="Work started."), **_COMMAND_ERRORS},
        tags=["Cases – Workflow"],
    )
    def begin_work(self, request: Request, case_id: str = None) -> Response:
        """
        POST /api/cases/{case_id}/begin-work/
        """
        serializer = CaseCommandSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        event = CaseWorkflowService.begin_work(
            case_id,
            request.user,
            expected_version=serializer.validated_data.get("expected_version"),
        )
        return self._case_response(event, request)

    @action(detail=True, methods=["post"], url_path="status-updates")
    @extend_schema(
        summary="Add status update",
        description=(
            "Record progress on an in-progress case. Requires a descriptive "
            "note and progress photos."
        ),
        request=StatusUpdateSerializer,
        responses={200: OpenApiResponse(response=CaseDetailSerializer, description="Update recorded."), **_COMMAND_ERRORS},
        tags=["Cases – Workflow"],
    )
    def status_updates(self, request: Request, case_id: str = None) -> Response:
        """
        POST /api/cases/{case_id}/status-updates/
        """
        serializer = StatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        event = CaseWorkflowService.add_status_update(
            case_id,
            request.user,
            serializer.validated_data,
        )
        return self._case_response(event, request)

    @action(detail=True, methods=["post"], url_path="transfer")
    @extend_schema(
        summary="Transfer case",
        description=(
            "Release an in-progress case back to the open pool for other "
            "rescuers. All helpers are released and the case becomes critical."
        ),
        request=ReasonSerializer,
        responses={200: OpenApiResponse(response=CaseDetailSerializer, description="Case transferred."), **_COMMAND_ERRORS},
        tags=["Cases – Workflow"],
    )
    def transfer(self, request: Request, case_id: str = None) -> Response:
        """
        POST /api/cases/{case_id}/transfer/
        """
        serializer = ReasonSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        event = CaseWorkflowService.transfer(
            case_id,
            request.user,
            reason=serializer.validated_data["reason"],
            expected_version=serializer.validated_data.get("expected_version"),
        )
        return self._case_response(event, request)

    @action(detail=True, methods=["post"], url_path="resolve")
    @extend_schema(
        summary="Resolve case",
        description="An assigned helper marks the case resolved; the reporter is asked to approve.",
        request=CaseCommandSerializer,
        responses={200: OpenApiResponse(response=CaseDetailSerializer, description="Case resolved."), **_COMMAND_ERRORS},
        tags=["Cases – Workflow"],
    )
    def resolve(self, request: Request, case_id: str = None) -> Response:
        """
        POST /api/cases/{case_id}/resolve/
        """
        serializer = CaseCommandSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        event = CaseWorkflowService.resolve(
            case_id,
            request.user,
            expected_version=serializer.validated_data.get("expected_version"),
        )
        return self._case_response(event, request)

    @action(detail=True, methods=["post"], url_path="reporter-approve")
    @extend_schema(
        summary="Approve resolution",
        description="The reporter confirms the resolution and the case is closed.",
        request=CaseCommandSerializer,
        responses={200: OpenApiResponse(response=CaseDetailSerializer, description="Case closed."), **_COMMAND_ERRORS},
        tags=["Cases – Workflow"],
    )
    def reporter_approve(self, request: Request, case_id: str = None) -> Response:
        """
        POST /api/cases/{case_id}/reporter-approve/
        """
        serializer = CaseCommandSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        event = CaseWorkflowService.reporter_approve(
            case_id,
            request.user,
            expected_version=serializer.validated_data.get("expected_version"),
        )
        return self._case_response(event, request)

    @action(detail=True, methods=["post"], url_path="reporter-reject")
    @extend_schema(
        summary="Reject resolution",
        description=(
            "The reporter rejects the resolution; the case goes back to the "
            "helpers who resolved it."
        ),
        request=ReasonSerializer,
        responses={200: OpenApiResponse(response=CaseDetailSerializer, description="Case reopened."), **_COMMAND_ERRORS},
        tags=["Cases – Workflow"],
    )
    def reporter_reject(self, request: Request, case_id: str = None) -> Response:
        """
        POST /api/cases/{case_id}/reporter-reject/
        """
        serializer = ReasonSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        event = CaseWorkflowService.reporter_reject(
            case_id,
            request.user,
            reason=serializer.validated_data["reason"],
            expected_version=serializer.validated_data.get("expected_version"),
        )
        return self._case_response(event, request)

    # ── Sub-resource @actions — Audit ────────────────────────────────

    @action(detail=True, methods=["get"], url_path="timeline")
    @extend_schema(
        summary="Get case timeline",
        description=(
            "Return the append-only audit trail of the case, ordered by "
            "sequence (oldest first)."
        ),
        responses={
            200: OpenApiResponse(response=TimelineEventSerializer(many=True), description="Timeline events."),
            404: OpenApiResponse(description="Case not found."),
        },
        tags=["Cases"],
    )
    def timeline(self, request: Request, case_id: str = None) -> Response:
        """
        GET /api/cases/{case_id}/timeline/
        """
        events = TimelineService.get_timeline(case_id)
        serializer = TimelineEventSerializer(events, many=True)
        return Response(serializer.data, status=status.HTTP_200_OK)

    # ── Sub-resource @actions — Messages ─────────────────────────────

    @action(detail=True, methods=["get", "post"], url_path="messages")
    @extend_schema(
        methods=["GET"],
        summary="List case messages",
        description=(
            "Return the newest messages of the case (oldest first within the "
            "window). Page back with limit/offset."
        ),
        parameters=[
            OpenApiParameter(name="limit", type=int, location=OpenApiParameter.QUERY, description="Window size (default 50, max 200)."),
            OpenApiParameter(name="offset", type=int, location=OpenApiParameter.QUERY, description="Skip this many newest messages."),
            OpenApiParameter(name="priority", type=str, location=OpenApiParameter.QUERY, description="normal or urgent."),
        ],
        responses={
            200: OpenApiResponse(response=CaseMessageSerializer(many=True), description="Messages."),
            404: OpenApiResponse(description="Case not found."),
        },
        tags=["Cases – Messages"],
    )
    @extend_schema(
        methods=["POST"],
        summary="Send a case message",
        request=CaseMessageCreateSerializer,
        responses={
            201: OpenApiResponse(response=CaseMessageSerializer, description="Message posted."),
            400: OpenApiResponse(description="Validation error."),
            404: OpenApiResponse(description="Case not found."),
        },
        tags=["Cases – Messages"],
    )
    def messages(self, request: Request, case_id: str = None) -> Response:
        """
        GET  /api/cases/{case_id}/messages/
        POST /api/cases/{case_id}/messages/
        """
        if request.method == "POST":
            serializer = CaseMessageCreateSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            message = CaseMessageService.send_message(
                case_id, request.user, serializer.validated_data,
            )
            out = CaseMessageSerializer(message, context={"request": request})
            return Response(out.data, status=status.HTTP_201_CREATED)

        filter_serializer = MessageFilterSerializer(data=request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        items = CaseMessageService.list_messages(case_id, filter_serializer.validated_data)
        serializer = CaseMessageSerializer(items, many=True, context={"request": request})
        return Response(serializer.data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="messages/mark-read")
    @extend_schema(
        summary="Mark case messages read",
        request=None,
        responses={
            200: OpenApiResponse(description='{"marked_read": <int>}'),
            404: OpenApiResponse(description="Case not found."),
        },
        tags=["Cases – Messages"],
    )
    def mark_messages_read(self, request: Request, case_id: str = None) -> Response:
        """
        POST /api/cases/{case_id}/messages/mark-read/
        """
        marked = CaseMessageService.mark_all_read(case_id, request.user)
        return Response({"marked_read": marked}, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"], url_path="messages/unread-count")
    @extend_schema(
        summary="Unread message count",
        responses={
            200: OpenApiResponse(description='{"count": <int>}'),
            404: OpenApiResponse(description="Case not found."),
        },
        tags=["Cases – Messages"],
    )
    def unread_messages(self, request: Request, case_id: str = None) -> Response:
        """
        GET /api/cases/{case_id}/messages/unread-count/
        """
        count = CaseMessageService.unread_count(case_id, request.user)
        return Response({"count": count}, status=status.HTTP_200_OK)
