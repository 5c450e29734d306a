from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Category",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100, unique=True)),
                ("slug", models.SlugField(blank=True, max_length=120, unique=True)),
                ("description", models.TextField(max_length=500)),
                ("icon", models.CharField(default="trophy", max_length=32)),
                ("is_active", models.BooleanField(default=True)),
                ("voting_start", models.DateTimeField()),
                ("voting_end", models.DateTimeField()),
                ("vote_price", models.DecimalField(decimal_places=2, default=Decimal("100.00"), max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal("50")), django.core.validators.MaxValueValidator(Decimal("1000"))])),
                ("max_votes_per_user", models.PositiveIntegerField(blank=True, null=True)),
                ("display_order", models.PositiveIntegerField(default=0)),
                ("featured", models.BooleanField(default=False)),
                ("created", models.DateTimeField(auto_now_add=True)),
                ("updated", models.DateTimeField(auto_now=True)),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name_plural": "categories",
                "ordering": ("display_order", "name"),
                "indexes": [models.Index(fields=["is_active", "voting_start", "voting_end"], name="category_active_window_idx")],
            },
        ),
        migrations.CreateModel(
            name="Nominee",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("nomination_reason", models.TextField(max_length=1000)),
                ("campaign_statement", models.TextField(blank=True, max_length=2000)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("under_review", "Under review"), ("approved", "Approved"), ("rejected", "Rejected")], default="pending", max_length=16)),
                ("is_active", models.BooleanField(default=True)),
                ("review_notes", models.CharField(blank=True, max_length=500)),
                ("reviewed_at", models.DateTimeField(blank=True, null=True)),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("is_disqualified", models.BooleanField(default=False)),
                ("disqualification_reason", models.CharField(blank=True, max_length=500)),
                ("disqualified_at", models.DateTimeField(blank=True, null=True)),
                ("total_votes", models.PositiveIntegerField(default=0)),
                ("total_revenue", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("unique_voters", models.PositiveIntegerField(default=0)),
                ("average_vote_value", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("last_vote_at", models.DateTimeField(blank=True, null=True)),
                ("rank", models.PositiveIntegerField(default=0)),
                ("created", models.DateTimeField(auto_now_add=True)),
                ("updated", models.DateTimeField(auto_now=True)),
                ("category", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="nominees", to="nominations.category")),
                ("nominated_by", models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="nominations_made", to=settings.AUTH_USER_MODEL)),
                ("reviewed_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("student", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="nominations", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ("category", "rank", "-created"),
                "indexes": [
                    models.Index(fields=["category", "status"], name="nominee_category_status_idx"),
                    models.Index(fields=["status", "is_active"], name="nominee_status_active_idx"),
                    models.Index(fields=["category", "-total_votes"], name="nominee_category_votes_idx"),
                ],
                "constraints": [models.UniqueConstraint(fields=("student", "category"), name="unique_nomination_per_category")],
            },
        ),
    ]
