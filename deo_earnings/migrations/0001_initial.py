# Generated manually for the deo_earnings schema.
from __future__ import annotations

from decimal import Decimal

from django.conf import settings
import django.core.validators
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="EarningSettings",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("app_name", models.CharField(default="Project Management System", max_length=120)),
                ("currency_symbol", models.CharField(default="₹", max_length=8)),
                (
                    "earning_per_approved_post",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("10.00"),
                        max_digits=10,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.00"))],
                    ),
                ),
                (
                    "minimum_withdrawal_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        max_digits=12,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.00"))],
                    ),
                ),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "earning settings",
                "verbose_name_plural": "earning settings",
                "db_table": "settings",
            },
        ),
        migrations.CreateModel(
            name="DeoProfile",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "role",
                    models.CharField(
                        choices=[
                            ("admin", "Admin"),
                            ("data_entry_operator", "Data Entry Operator"),
                            ("user", "User"),
                        ],
                        default="user",
                        max_length=24,
                    ),
                ),
                ("bank_name", models.CharField(blank=True, max_length=120)),
                ("account_holder_name", models.CharField(blank=True, max_length=120)),
                ("account_number", models.CharField(blank=True, max_length=40)),
                ("ifsc_code", models.CharField(blank=True, max_length=20)),
                ("upi_id", models.CharField(blank=True, max_length=80)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="deo_profile",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "DEO profile",
                "verbose_name_plural": "DEO profiles",
            },
        ),
        migrations.CreateModel(
            name="RecruitmentPost",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("job_title", models.CharField(max_length=255)),
                (
                    "total_vacancies",
                    models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)]),
                ),
                ("image_banner_url", models.URLField(blank=True, max_length=500)),
                ("eligibility_criteria", models.TextField(blank=True)),
                ("selection_process", models.TextField(blank=True)),
                ("start_date", models.CharField(blank=True, max_length=100)),
                ("last_date", models.CharField(blank=True, max_length=100)),
                ("exam_date", models.CharField(blank=True, max_length=100)),
                ("fee_payment_last_date", models.CharField(blank=True, max_length=100)),
                ("application_fees", models.TextField(blank=True)),
                ("category_wise_vacancies", models.TextField(blank=True)),
                ("notification_url", models.URLField(blank=True, max_length=500)),
                ("apply_url", models.URLField(blank=True, max_length=500)),
                ("admit_card_url", models.URLField(blank=True, max_length=500)),
                ("official_website_url", models.URLField(blank=True, max_length=500)),
                ("exam_prediction", models.TextField(blank=True)),
                (
                    "custom_fields",
                    models.JSONField(blank=True, db_column="custom_fields_json", default=list),
                ),
                (
                    "approval_status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("approved", "Approved"),
                            ("rejected", "Rejected"),
                            ("returned_for_edit", "Returned for Edit"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("admin_comments", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "approved_by",
                    models.ForeignKey(
                        blank=True,
                        db_column="approved_by_user_id",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="reviewed_recruitment_posts",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "submitted_by",
                    models.ForeignKey(
                        db_column="submitted_by_user_id",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="recruitment_posts",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "recruitment_posts",
                "ordering": ["-created_at", "-id"],
            },
        ),
        migrations.CreateModel(
            name="WithdrawalRequest",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=12,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.01"))],
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("details_requested", "Details Requested"),
                            ("paid", "Paid"),
                            ("rejected", "Rejected"),
                        ],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("request_date", models.DateTimeField(default=django.utils.timezone.now)),
                ("transaction_number", models.CharField(blank=True, max_length=100, null=True)),
                ("admin_comments", models.TextField(blank=True, null=True)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("bank_name", models.CharField(blank=True, max_length=120)),
                ("account_holder_name", models.CharField(blank=True, max_length=120)),
                ("account_number", models.CharField(blank=True, max_length=40)),
                ("ifsc_code", models.CharField(blank=True, max_length=20)),
                ("upi_id", models.CharField(blank=True, max_length=80)),
                (
                    "deo",
                    models.ForeignKey(
                        db_column="deo_id",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="withdrawal_requests",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "processed_by",
                    models.ForeignKey(
                        blank=True,
                        db_column="processed_by_admin_id",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="processed_withdrawal_requests",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "withdrawal_requests",
                "ordering": ["-request_date", "-id"],
            },
        ),
        migrations.AddConstraint(
            model_name="withdrawalrequest",
            constraint=models.UniqueConstraint(
                condition=models.Q(("status__in", ("pending", "processing", "details_requested"))),
                fields=("deo",),
                name="one_open_withdrawal_per_deo",
            ),
        ),
    ]
