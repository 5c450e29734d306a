from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("nominations", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal("0.01"))])),
                ("currency", models.CharField(choices=[("NGN", "Naira"), ("USD", "US Dollar")], default="NGN", max_length=8)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("processing", "Processing"), ("success", "Success"), ("failed", "Failed"), ("cancelled", "Cancelled"), ("refunded", "Refunded"), ("expired", "Expired")], db_index=True, default="pending", max_length=16)),
                ("gateway", models.CharField(max_length=32)),
                ("internal_reference", models.CharField(max_length=64, unique=True)),
                ("gateway_reference", models.CharField(blank=True, max_length=128, null=True, unique=True)),
                ("authorization_url", models.URLField(blank=True, max_length=500, null=True)),
                ("access_code", models.CharField(blank=True, max_length=128, null=True)),
                ("channel", models.CharField(blank=True, max_length=32)),
                ("gateway_response", models.JSONField(blank=True, default=dict)),
                ("gateway_fee", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("platform_fee", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("total_fees", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("net_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("failed_at", models.DateTimeField(blank=True, null=True)),
                ("failure_reason", models.CharField(blank=True, max_length=500)),
                ("expires_at", models.DateTimeField()),
                ("webhook_received", models.BooleanField(default=False)),
                ("webhook_received_at", models.DateTimeField(blank=True, null=True)),
                ("webhook_attempts", models.PositiveIntegerField(default=0)),
                ("webhook_signature", models.CharField(blank=True, max_length=256)),
                ("webhook_payload", models.JSONField(blank=True, null=True)),
                ("fraud_score", models.PositiveSmallIntegerField(default=0)),
                ("is_flagged", models.BooleanField(default=False)),
                ("flag_reason", models.CharField(blank=True, max_length=200)),
                ("retry_attempts", models.PositiveSmallIntegerField(default=0)),
                ("last_retry_at", models.DateTimeField(blank=True, null=True)),
                ("refund_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("refund_reason", models.CharField(blank=True, max_length=500)),
                ("refund_reference", models.CharField(blank=True, max_length=128)),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                ("reconciled_at", models.DateTimeField(blank=True, null=True)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("user_agent", models.TextField(blank=True)),
                ("device_fingerprint", models.CharField(blank=True, max_length=128)),
                ("created", models.DateTimeField(auto_now_add=True)),
                ("updated", models.DateTimeField(auto_now=True)),
                ("category", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="nominations.category")),
                ("nominee", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="nominations.nominee")),
                ("reconciled_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("refunded_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payments", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ("-created",),
                "indexes": [
                    models.Index(fields=["user", "status", "created"], name="pay_user_status_created_idx"),
                    models.Index(fields=["user", "nominee", "status", "created"], name="pay_user_nominee_status_idx"),
                    models.Index(fields=["status", "expires_at"], name="pay_status_expires_idx"),
                    models.Index(fields=["category", "status"], name="pay_category_status_idx"),
                    models.Index(fields=["ip_address", "created"], name="pay_ip_created_idx"),
                    models.Index(fields=["is_flagged", "fraud_score"], name="pay_flagged_score_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="GatewayLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("gateway", models.CharField(max_length=32)),
                ("reference", models.CharField(blank=True, db_index=True, max_length=128)),
                ("endpoint", models.CharField(blank=True, max_length=128)),
                ("direction", models.CharField(choices=[("out", "Outbound"), ("in", "Inbound")], default="out", max_length=4)),
                ("status_code", models.CharField(blank=True, max_length=10)),
                ("request_payload", models.JSONField(blank=True, default=dict)),
                ("response_payload", models.JSONField(blank=True, default=dict)),
                ("created", models.DateTimeField(auto_now_add=True)),
                ("user", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ("-created",),
                "indexes": [models.Index(fields=["gateway", "created"], name="gwlog_gateway_created_idx")],
            },
        ),
    ]
