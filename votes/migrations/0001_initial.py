from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("nominations", "0001_initial"),
        ("payments", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Vote",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("payment_reference", models.CharField(max_length=64, unique=True)),
                ("transaction_reference", models.CharField(blank=True, max_length=128)),
                ("payment_method", models.CharField(blank=True, max_length=32)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("currency", models.CharField(default="NGN", max_length=8)),
                ("processing_fee", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("net_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("confirmed", "Confirmed"), ("failed", "Failed"), ("refunded", "Refunded")], db_index=True, default="confirmed", max_length=16)),
                ("verification_method", models.CharField(choices=[("webhook", "Webhook"), ("poll", "Poll"), ("manual", "Manual")], default="webhook", max_length=16)),
                ("is_verified", models.BooleanField(default=False)),
                ("verified_at", models.DateTimeField(blank=True, null=True)),
                ("fraud_score", models.PositiveSmallIntegerField(default=0)),
                ("is_flagged", models.BooleanField(default=False)),
                ("flag_reason", models.CharField(blank=True, max_length=200)),
                ("reviewed_at", models.DateTimeField(blank=True, null=True)),
                ("review_notes", models.CharField(blank=True, max_length=500)),
                ("refund_reason", models.CharField(blank=True, max_length=500)),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("user_agent", models.TextField(blank=True)),
                ("device_fingerprint", models.CharField(blank=True, max_length=128)),
                ("created", models.DateTimeField(auto_now_add=True)),
                ("updated", models.DateTimeField(auto_now=True)),
                ("category", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="votes", to="nominations.category")),
                ("nominee", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="votes", to="nominations.nominee")),
                ("payment", models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name="vote", to="payments.payment")),
                ("reviewed_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("voter", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="votes", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ("-created",),
                "indexes": [
                    models.Index(fields=["voter", "category", "status"], name="vote_voter_cat_status_idx"),
                    models.Index(fields=["voter", "status", "created"], name="vote_voter_status_created_idx"),
                    models.Index(fields=["nominee", "status"], name="vote_nominee_status_idx"),
                    models.Index(fields=["category", "status", "created"], name="vote_cat_status_created_idx"),
                    models.Index(fields=["is_flagged", "fraud_score"], name="vote_flagged_score_idx"),
                ],
            },
        ),
    ]
