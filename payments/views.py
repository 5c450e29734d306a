# payments/views.py
import logging

from django.shortcuts import get_object_or_404
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import generics, status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from core.http import client_ip, device_fingerprint, user_agent
from users.permissions import IsActiveVoter, IsAdminRole, IsOwnerOrAdmin
from votes.statistics import payment_statistics

from . import services
from .exceptions import PaymentNotFound, ReconciliationError
from .models import Payment
from .serializers import (
    AdminPaymentSerializer,
    BackfillRequestSerializer,
    PaymentInitRequestSerializer,
    PaymentInitResponseSerializer,
    PaymentSerializer,
    RefundRequestSerializer,
    StatsQuerySerializer,
)

logger = logging.getLogger(__name__)


def _error(exc: ReconciliationError) -> Response:
    return Response(exc.as_dict(), status=exc.http_status)


def _serializer_for(user):
    return AdminPaymentSerializer if getattr(user, "is_admin", False) else PaymentSerializer


# ---- voter endpoints ---------------------------------------------------------

class PaymentInitView(APIView):
    permission_classes = [IsActiveVoter]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "payments"

    @extend_schema(request=PaymentInitRequestSerializer, responses={201: PaymentInitResponseSerializer})
    def post(self, request):
        ser = PaymentInitRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        try:
            payment = services.initiate_payment(
                request.user,
                data["nominee_id"],
                data["category_id"],
                data["amount"],
                email=data.get("email"),
                callback_url=data.get("callback_url"),
                ip_address=client_ip(request),
                user_agent=user_agent(request),
                device_fingerprint=device_fingerprint(request),
            )
        except ReconciliationError as e:
            return _error(e)

        return Response({
            "reference": payment.internal_reference,
            "authorization_url": payment.authorization_url,
            "access_code": payment.access_code,
            "amount": payment.amount,
            "currency": payment.currency,
            "expires_at": payment.expires_at,
        }, status=status.HTTP_201_CREATED)


class PaymentVerifyView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: PaymentSerializer})
    def get(self, request, reference: str):
        try:
            payment = services.find_payment(reference)
        except PaymentNotFound as e:
            return _error(e)
        if not IsOwnerOrAdmin().has_object_permission(request, self, payment):
            # same answer as an unknown reference
            return _error(PaymentNotFound(f"No payment with reference {reference}"))

        try:
            payment = services.verify_payment(reference)
        except ReconciliationError as e:
            return _error(e)

        payment = Payment.objects.select_related("nominee__student", "category").get(pk=payment.pk)
        return Response(_serializer_for(request.user)(payment).data)


class PaymentHistoryView(generics.ListAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = PaymentSerializer
    filterset_fields = ["status", "category"]
    ordering_fields = ["created", "amount"]

    def get_queryset(self):
        return (
            Payment.objects.filter(user=self.request.user)
            .select_related("nominee__student", "category", "vote")
        )


class PaymentDetailView(generics.RetrieveAPIView):
    permission_classes = [IsAuthenticated, IsOwnerOrAdmin]
    queryset = Payment.objects.select_related("nominee__student", "category", "vote")

    def get_serializer_class(self):
        return _serializer_for(self.request.user)


# ---- gateway callback --------------------------------------------------------

@method_decorator(csrf_exempt, name="dispatch")
class PaymentWebhookView(APIView):
    """
    Gateway notifications. The signature is checked against ``request.body``
    exactly as received; ``request.data`` is never touched here.
    """

    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "webhooks"

    @extend_schema(request=None, responses={200: None})
    def post(self, request, gateway: str = None):
        try:
            gw = services.gateway_for(gateway)
        except ValueError:
            return Response({"detail": "Unknown gateway", "code": "unknown_gateway"}, status=404)

        raw = request.body
        signature = request.headers.get(gw.signature_header)
        try:
            result = services.handle_webhook(raw, signature, gateway=gw)
        except ReconciliationError as e:
            return _error(e)
        return Response({"ok": True, **result})


# ---- admin -------------------------------------------------------------------

class PaymentRefundView(APIView):
    permission_classes = [IsAdminRole]

    @extend_schema(request=RefundRequestSerializer, responses={200: AdminPaymentSerializer})
    def post(self, request, pk: int):
        get_object_or_404(Payment, pk=pk)
        ser = RefundRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        try:
            payment = services.process_refund(
                pk, ser.validated_data["reason"], request.user, amount=ser.validated_data.get("amount"),
            )
        except ReconciliationError as e:
            return _error(e)
        return Response(AdminPaymentSerializer(payment).data)


class PaymentStatsView(APIView):
    permission_classes = [IsAdminRole]

    @extend_schema(parameters=[
        OpenApiParameter("start", str), OpenApiParameter("end", str), OpenApiParameter("category", int),
    ])
    def get(self, request):
        ser = StatsQuerySerializer(data=request.query_params)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data
        return Response(payment_statistics(data.get("start"), data.get("end"), data.get("category")))


class ReconciliationView(APIView):
    """Payments that succeeded but have no vote yet. POST backfills them."""

    permission_classes = [IsAdminRole]

    @extend_schema(responses={200: AdminPaymentSerializer(many=True)})
    def get(self, request):
        qs = services.payments_missing_votes().select_related("nominee__student", "category")[:200]
        return Response({
            "count": services.payments_missing_votes().count(),
            "results": AdminPaymentSerializer(qs, many=True).data,
        })

    @extend_schema(request=BackfillRequestSerializer)
    def post(self, request):
        ser = BackfillRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        result = services.backfill_missing_votes(actor=request.user, limit=ser.validated_data.get("limit"))
        logger.info("admin %s backfilled %s vote(s)", request.user.pk, result["created"])
        return Response(result)
