# payments/urls.py
from django.urls import path

from .views import (
    PaymentDetailView,
    PaymentHistoryView,
    PaymentInitView,
    PaymentRefundView,
    PaymentStatsView,
    PaymentVerifyView,
    PaymentWebhookView,
    ReconciliationView,
)

urlpatterns = [
    path("initialize/", PaymentInitView.as_view(), name="payments_initialize"),
    path("verify/<str:reference>/", PaymentVerifyView.as_view(), name="payments_verify"),
    path("webhook/", PaymentWebhookView.as_view(), name="payments_webhook"),
    path("webhook/<str:gateway>/", PaymentWebhookView.as_view(), name="payments_webhook_gateway"),
    path("history/", PaymentHistoryView.as_view(), name="payments_history"),
    path("stats/", PaymentStatsView.as_view(), name="payments_stats"),
    path("reconciliation/", ReconciliationView.as_view(), name="payments_reconciliation"),
    path("<int:pk>/", PaymentDetailView.as_view(), name="payments_detail"),
    path("<int:pk>/refund/", PaymentRefundView.as_view(), name="payments_refund"),
]
