"""
Accounts app views.

All views follow the **Thin View** pattern: validate input via
serializers, delegate to the service layer, and return the result
wrapped in a DRF ``Response``.  **No business logic** resides here.

View Map
--------
- ``RegisterView``       — POST /auth/register/
- ``LoginView``          — POST /auth/login/
- ``ChangePasswordView`` — POST /auth/change-password/
- ``MeView``             — GET, PATCH /me/
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import generics, status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import (
    ChangePasswordSerializer,
    CustomTokenObtainPairSerializer,
    MeUpdateSerializer,
    RegisterRequestSerializer,
    UserDetailSerializer,
)
from .services import CurrentUserService, UserRegistrationService


class RegisterView(generics.CreateAPIView):
    """
    POST /api/accounts/auth/register/

    Public endpoint.  Request body → ``RegisterRequestSerializer``;
    response body → ``UserDetailSerializer`` (201 Created).
    """

    permission_classes = [AllowAny]
    serializer_class = RegisterRequestSerializer

    @extend_schema(
        summary="Register",
        responses={
            201: OpenApiResponse(response=UserDetailSerializer, description="User created."),
            400: OpenApiResponse(description="Validation error."),
            409: OpenApiResponse(description="Username, email or phone already taken."),
        },
        tags=["Accounts"],
    )
    def create(self, request: Request, *args, **kwargs) -> Response:
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = UserRegistrationService.register_user(serializer.validated_data)
        response_serializer = UserDetailSerializer(user)
        return Response(response_serializer.data, status=status.HTTP_201_CREATED)


class LoginView(APIView):
    """
    POST /api/accounts/auth/login/

    Public endpoint.  Authenticates a user via username, phone number
    or email plus password and returns a JWT pair and the user profile.
    """

    permission_classes = [AllowAny]

    @extend_schema(
        summary="Login",
        request=CustomTokenObtainPairSerializer,
        responses={
            200: OpenApiResponse(description="Access/refresh tokens and user profile."),
            400: OpenApiResponse(description="Invalid credentials."),
        },
        tags=["Accounts"],
    )
    def post(self, request: Request) -> Response:
        serializer = CustomTokenObtainPairSerializer(
            data=request.data,
            context={"request": request},
        )
        serializer.is_valid(raise_exception=True)

        payload = dict(serializer.validated_data)
        payload["user"] = UserDetailSerializer(serializer.user).data

        return Response(payload, status=status.HTTP_200_OK)


class MeView(APIView):
    """
    GET   /api/accounts/me/ → the authenticated user's profile.
    PATCH /api/accounts/me/ → update own contact details (``MeUpdateSerializer``).
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Current user",
        responses={200: OpenApiResponse(response=UserDetailSerializer, description="Profile.")},
        tags=["Accounts"],
    )
    def get(self, request: Request) -> Response:
        user = CurrentUserService.get_profile(request.user)
        return Response(UserDetailSerializer(user).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Update current user",
        request=MeUpdateSerializer,
        responses={
            200: OpenApiResponse(response=UserDetailSerializer, description="Updated profile."),
            400: OpenApiResponse(description="Validation error."),
        },
        tags=["Accounts"],
    )
    def patch(self, request: Request) -> Response:
        serializer = MeUpdateSerializer(
            instance=request.user,
            data=request.data,
            partial=True,
        )
        serializer.is_valid(raise_exception=True)
        user = CurrentUserService.update_profile(request.user, serializer.validated_data)
        return Response(UserDetailSerializer(user).data, status=status.HTTP_200_OK)


class ChangePasswordView(APIView):
    """
    POST /api/accounts/auth/change-password/

    Existing JWTs stay valid until they expire.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Change password",
        request=ChangePasswordSerializer,
        responses={
            204: OpenApiResponse(description="Password changed."),
            400: OpenApiResponse(description="Validation error or wrong current password."),
        },
        tags=["Accounts"],
    )
    def post(self, request: Request) -> Response:
        serializer = ChangePasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        CurrentUserService.change_password(
            request.user,
            serializer.validated_data["current_password"],
            serializer.validated_data["new_password"],
        )
        return Response(status=status.HTTP_204_NO_CONTENT)
