# users/views.py
import logging

from django.contrib.auth import get_user_model, authenticate

from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated

from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenObtainPairView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from drf_spectacular.utils import extend_schema, OpenApiResponse

from core.http import client_ip, device_fingerprint, user_agent
from core.models import LoginActivity

from .serializers import (
    UserSerializer,
    LoginRequestSchema,
    TokenPairSchema,
)

User = get_user_model()
logger = logging.getLogger(__name__)


def _record_login_activity(user, request) -> None:
    try:
        LoginActivity.objects.create(
            user=user,
            ip=client_ip(request),
            user_agent=user_agent(request),
            device_fingerprint=device_fingerprint(request),
        )
    except Exception:
        # Never block auth if logging fails
        logger.warning("could not record login activity for user=%s", user.pk, exc_info=True)


def _token_pair(user) -> dict:
    refresh = RefreshToken.for_user(user)
    return {"refresh": str(refresh), "access": str(refresh.access_token)}


# ---------------------------
# JWT (logs IP/UA/Device)
# ---------------------------
@extend_schema(
    description="Obtain JWT access/refresh tokens (logs IP, user agent, and device fingerprint). "
                "Optionally send `X-Device-Id` header for a stable device identifier.",
    request=LoginRequestSchema,
    responses={
        200: TokenPairSchema,
        401: OpenApiResponse(description="Invalid credentials"),
    },
)
class LoggingTokenObtainPairView(TokenObtainPairView):
    serializer_class = TokenObtainPairSerializer

    def post(self, request, *args, **kwargs):
        response = super().post(request, *args, **kwargs)
        serializer = self.get_serializer(data=request.data)
        if serializer.is_valid():
            _record_login_activity(serializer.user, request)
        return response


# ---------------------------
# Register / Login (classic)
# ---------------------------
@extend_schema(
    description="Register a new voter and return JWT tokens.",
    request=UserSerializer,
    responses={
        201: TokenPairSchema,
        400: OpenApiResponse(description="Validation error"),
    },
)
class RegisterView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        serializer = UserSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        user = serializer.save()
        _record_login_activity(user, request)
        return Response(_token_pair(user), status=status.HTTP_201_CREATED)


@extend_schema(
    description="Login with email & password, return JWT tokens (also logs IP/UA/device).",
    request=LoginRequestSchema,
    responses={
        200: TokenPairSchema,
        401: OpenApiResponse(description="Invalid credentials"),
        403: OpenApiResponse(description="Account suspended"),
    },
)
class LoginView(APIView):
    permission_classes = [AllowAny]

    def post(self, request):
        email = request.data.get("email")
        password = request.data.get("password")

        if not email or not password:
            return Response({"detail": "email and password are required"}, status=status.HTTP_400_BAD_REQUEST)

        user = authenticate(request, username=email, password=password)
        if not user:
            return Response({"detail": "Invalid credentials"}, status=status.HTTP_401_UNAUTHORIZED)
        if user.status != User.STATUS_ACTIVE:
            return Response({"detail": "Your account is not active."}, status=status.HTTP_403_FORBIDDEN)

        _record_login_activity(user, request)
        return Response(_token_pair(user), status=status.HTTP_200_OK)


@extend_schema(description="Current user profile.", request=None, responses={200: UserSerializer})
class MeView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response(UserSerializer(request.user).data, status=status.HTTP_200_OK)
