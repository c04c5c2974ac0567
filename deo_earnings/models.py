"""Database models for recruitment posts, DEO earnings and withdrawals."""
from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, List, Mapping, Optional

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Count, DecimalField, Q, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from .exceptions import NotFoundError

User = get_user_model()
logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def parse_amount(value: Any, label: str = "Amount", max_digits: int = 12) -> Decimal:
    """Coerce form or API input into a two-place ``Decimal`` that fits a ``max_digits`` column."""
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{label} must be a valid number.")
    if not amount.is_finite():
        raise ValidationError(f"{label} must be a valid number.")
    try:
        amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(f"{label} must be a valid number.")
    if abs(amount) >= Decimal(10) ** (max_digits - 2):
        raise ValidationError(f"{label} is too large.")
    return amount


# -------------------------------------------------------------------
# Settings store
# -------------------------------------------------------------------
class EarningSettings(models.Model):
    """Single-row configuration read by the earnings and withdrawal flows."""

    SINGLETON_PK = 1

    app_name = models.CharField(max_length=120, default="Project Management System")
    currency_symbol = models.CharField(max_length=8, default="₹")
    earning_per_approved_post = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("10.00"),
        validators=[MinValueValidator(ZERO)],
    )
    minimum_withdrawal_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=ZERO,
        validators=[MinValueValidator(ZERO)],
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "settings"
        verbose_name = "earning settings"
        verbose_name_plural = "earning settings"

    def __str__(self) -> str:
        return f"{self.app_name} settings"

    def save(self, *args, **kwargs):
        self.pk = self.SINGLETON_PK
        super().save(*args, **kwargs)

    @classmethod
    def load(cls) -> "EarningSettings":
        settings_row, _ = cls.objects.get_or_create(pk=cls.SINGLETON_PK)
        return settings_row

    def set_minimum_withdrawal_amount(self, value: Any) -> Decimal:
        amount = parse_amount(value, "Minimum withdrawal amount")
        if amount < ZERO:
            raise ValidationError("Please enter a valid non-negative amount for minimum withdrawal.")
        self.minimum_withdrawal_amount = amount
        self.save(update_fields=["minimum_withdrawal_amount", "updated_at"])
        return amount

    def update_display(self, app_name: str, currency_symbol: str, earning_per_approved_post: Any) -> None:
        app_name = (app_name or "").strip()
        currency_symbol = (currency_symbol or "").strip()
        if not app_name or not currency_symbol:
            raise ValidationError("Application Name and Currency Symbol are required.")
        rate = parse_amount(earning_per_approved_post, "Earning per approved post", max_digits=10)
        if rate < ZERO:
            raise ValidationError("Earning per approved post cannot be negative.")
        self.app_name = app_name
        self.currency_symbol = currency_symbol
        self.earning_per_approved_post = rate
        self.save(update_fields=["app_name", "currency_symbol", "earning_per_approved_post", "updated_at"])


def get_earning_per_approved_post() -> Decimal:
    return EarningSettings.load().earning_per_approved_post


def get_minimum_withdrawal_amount() -> Decimal:
    return EarningSettings.load().minimum_withdrawal_amount


# -------------------------------------------------------------------
# Bank details and user profile
# -------------------------------------------------------------------
BANK_FIELDS = ("bank_name", "account_holder_name", "account_number", "ifsc_code", "upi_id")
REQUIRED_BANK_FIELDS = BANK_FIELDS[:4]


@dataclass(frozen=True)
class BankDetails:
    """Payment details; copied into each withdrawal request as a snapshot."""

    bank_name: str = ""
    account_holder_name: str = ""
    account_number: str = ""
    ifsc_code: str = ""
    upi_id: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "BankDetails":
        return cls(**{field: str(data.get(field) or "").strip() for field in BANK_FIELDS})

    @classmethod
    def from_instance(cls, instance: Any) -> "BankDetails":
        return cls(**{field: getattr(instance, field) or "" for field in BANK_FIELDS})

    @property
    def is_complete(self) -> bool:
        return all(getattr(self, field) for field in REQUIRED_BANK_FIELDS)

    def validate(self) -> None:
        if not self.is_complete:
            raise ValidationError(
                "Please fill in all required bank details (Bank Name, Account Holder Name, "
                "Account Number, IFSC Code). UPI ID is optional."
            )

    def as_dict(self) -> Dict[str, str]:
        return asdict(self)


class DeoProfile(models.Model):
    """Role and saved bank details for a user."""

    class Role(models.TextChoices):
        ADMIN = "admin", "Admin"
        DATA_ENTRY_OPERATOR = "data_entry_operator", "Data Entry Operator"
        USER = "user", "User"

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name="deo_profile",
    )
    role = models.CharField(max_length=24, choices=Role.choices, default=Role.USER)
    bank_name = models.CharField(max_length=120, blank=True)
    account_holder_name = models.CharField(max_length=120, blank=True)
    account_number = models.CharField(max_length=40, blank=True)
    ifsc_code = models.CharField(max_length=20, blank=True)
    upi_id = models.CharField(max_length=80, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "DEO profile"
        verbose_name_plural = "DEO profiles"

    def __str__(self) -> str:
        return f"{self.user.get_username()} ({self.get_role_display()})"

    @classmethod
    def ensure_for_user(cls, user) -> "DeoProfile":
        profile, _ = cls.objects.get_or_create(user=user)
        return profile

    @property
    def bank_details(self) -> BankDetails:
        return BankDetails.from_instance(self)

    def save_bank_details(self, details: BankDetails) -> None:
        """Overwrite the saved details. Past withdrawal snapshots are untouched."""
        details.validate()
        for field, value in details.as_dict().items():
            setattr(self, field, value)
        self.save(update_fields=[*BANK_FIELDS, "updated_at"])


# -------------------------------------------------------------------
# Recruitment posts
# -------------------------------------------------------------------
class PostStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"
    RETURNED_FOR_EDIT = "returned_for_edit", "Returned for Edit"


EDITABLE_POST_STATUSES = frozenset({PostStatus.PENDING, PostStatus.RETURNED_FOR_EDIT})

POST_CONTENT_FIELDS = (
    "job_title",
    "total_vacancies",
    "image_banner_url",
    "eligibility_criteria",
    "selection_process",
    "start_date",
    "last_date",
    "exam_date",
    "fee_payment_last_date",
    "application_fees",
    "category_wise_vacancies",
    "notification_url",
    "apply_url",
    "admit_card_url",
    "official_website_url",
    "exam_prediction",
)
REVIEW_RESET_FIELDS = (
    "custom_fields",
    "approval_status",
    "approved_by",
    "approved_at",
    "admin_comments",
    "updated_at",
)


def normalize_custom_fields(raw: Any) -> List[Dict[str, str]]:
    """Return an ordered list of ``{"heading", "content"}`` rows, dropping blank ones."""
    if raw in (None, ""):
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise ValidationError("Custom fields must be valid JSON.")
    if not isinstance(raw, (list, tuple)):
        raise ValidationError("Custom fields must be a list of heading/content entries.")
    rows = []
    for entry in raw:
        if not isinstance(entry, Mapping):
            raise ValidationError("Each custom field needs a heading and content.")
        heading = str(entry.get("heading") or "").strip()
        content = str(entry.get("content") or "").strip()
        if heading or content:
            rows.append({"heading": heading, "content": content})
    return rows


def _validate_status_filter(status_filter: Optional[str], choices) -> Optional[str]:
    if not status_filter or status_filter == "all":
        return None
    if status_filter not in choices.values:
        raise ValidationError(f"Invalid status filter: {status_filter}.")
    return status_filter


class RecruitmentPostQuerySet(models.QuerySet):
    def submitted_by(self, user_id: int) -> "RecruitmentPostQuerySet":
        return self.filter(submitted_by_id=user_id)

    def with_status(self, status_filter: Optional[str]) -> "RecruitmentPostQuerySet":
        status = _validate_status_filter(status_filter, PostStatus)
        return self.filter(approval_status=status) if status else self

    def search(self, query: Optional[str]) -> "RecruitmentPostQuerySet":
        query = (query or "").strip()
        if not query:
            return self
        return self.filter(
            Q(job_title__icontains=query)
            | Q(submitted_by__username__icontains=query)
            | Q(submitted_by__first_name__icontains=query)
            | Q(submitted_by__last_name__icontains=query)
        )


class RecruitmentPostManager(models.Manager.from_queryset(RecruitmentPostQuerySet)):
    """Repository operations for recruitment posts."""

    def add_post(self, fields: Mapping[str, Any], submitted_by_id: int) -> "RecruitmentPost":
        post = self.model(submitted_by_id=submitted_by_id, approval_status=PostStatus.PENDING)
        post.apply_content(fields)
        post.full_clean()
        post.save()
        logger.info("Recruitment post %s submitted by user %s", post.pk, submitted_by_id)
        return post

    def update_post(
        self, post_id: int, fields: Mapping[str, Any], require_editable: bool = False
    ) -> "RecruitmentPost":
        """Replace the content and send the post back for review.

        With ``require_editable`` the write only lands while the stored post is
        still pending or returned for edit, so a decision recorded after the
        caller's check is never reset.
        """
        post = self.get_by_id(post_id)
        if post is None:
            raise NotFoundError("Recruitment post not found.")
        post.apply_content(fields)
        post.reset_review()
        post.full_clean()
        if require_editable:
            post.updated_at = timezone.now()
            values = {name: getattr(post, name) for name in (*POST_CONTENT_FIELDS, *REVIEW_RESET_FIELDS)}
            updated = self.filter(pk=post.pk, approval_status__in=EDITABLE_POST_STATUSES).update(**values)
            if not updated:
                raise ValidationError(
                    "This recruitment post has already been processed and can no longer be edited."
                )
        else:
            post.save()
        logger.info("Recruitment post %s updated and resubmitted for review", post.pk)
        return post

    def get_by_id(self, post_id: int) -> Optional["RecruitmentPost"]:
        return self.select_related("submitted_by", "approved_by").filter(pk=post_id).first()

    def list_by_submitter(self, user_id: int, status_filter: Optional[str] = "all") -> RecruitmentPostQuerySet:
        return self.select_related("approved_by").submitted_by(user_id).with_status(status_filter)

    def list_all(self, status_filter: Optional[str] = "all", search_query: str = "") -> RecruitmentPostQuerySet:
        return (
            self.select_related("submitted_by", "approved_by")
            .with_status(status_filter)
            .search(search_query)
        )

    def set_status(self, post_id: int, status: str, admin_id: int, comments: Optional[str] = None) -> bool:
        if status not in PostStatus.values:
            raise ValidationError("Invalid status provided.")
        updated = self.filter(pk=post_id).update(
            approval_status=status,
            approved_by_id=admin_id,
            approved_at=timezone.now(),
            admin_comments=comments or None,
            updated_at=timezone.now(),
        )
        return bool(updated)

    def delete_post(self, post_id: int) -> bool:
        deleted, _ = self.filter(pk=post_id).delete()
        return bool(deleted)

    def status_counts(self, user_id: int) -> Dict[str, int]:
        counts = {status: 0 for status in PostStatus.values}
        rows = self.submitted_by(user_id).values("approval_status").annotate(total=Count("id"))
        for row in rows:
            counts[row["approval_status"]] = row["total"]
        return counts


class RecruitmentPost(models.Model):
    """A job/recruitment announcement submitted by a DEO for admin review."""

    Status = PostStatus

    job_title = models.CharField(max_length=255)
    total_vacancies = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    image_banner_url = models.URLField(max_length=500, blank=True)
    eligibility_criteria = models.TextField(blank=True)
    selection_process = models.TextField(blank=True)
    start_date = models.CharField(max_length=100, blank=True)
    last_date = models.CharField(max_length=100, blank=True)
    exam_date = models.CharField(max_length=100, blank=True)
    fee_payment_last_date = models.CharField(max_length=100, blank=True)
    application_fees = models.TextField(blank=True)
    category_wise_vacancies = models.TextField(blank=True)
    notification_url = models.URLField(max_length=500, blank=True)
    apply_url = models.URLField(max_length=500, blank=True)
    admit_card_url = models.URLField(max_length=500, blank=True)
    official_website_url = models.URLField(max_length=500, blank=True)
    exam_prediction = models.TextField(blank=True)
    custom_fields = models.JSONField(default=list, blank=True, db_column="custom_fields_json")

    submitted_by = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name="recruitment_posts",
        db_column="submitted_by_user_id",
    )
    approval_status = models.CharField(
        max_length=20,
        choices=PostStatus.choices,
        default=PostStatus.PENDING,
    )
    approved_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reviewed_recruitment_posts",
        db_column="approved_by_user_id",
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    admin_comments = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = RecruitmentPostManager()

    class Meta:
        db_table = "recruitment_posts"
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        return f"{self.job_title} ({self.get_approval_status_display()})"

    @property
    def is_editable(self) -> bool:
        return self.approval_status in EDITABLE_POST_STATUSES

    def clean(self) -> None:
        super().clean()
        self.job_title = (self.job_title or "").strip()
        if not self.job_title or not self.total_vacancies:
            raise ValidationError("Please fill in all required fields (Job Title, Total Vacancies).")
        self.custom_fields = normalize_custom_fields(self.custom_fields)

    def apply_content(self, fields: Mapping[str, Any]) -> None:
        for name in POST_CONTENT_FIELDS:
            if name not in fields:
                continue
            value = fields[name]
            if isinstance(value, str):
                value = value.strip()
            if name == "total_vacancies":
                value = self._coerce_vacancies(value)
            setattr(self, name, value)
        if "custom_fields" in fields:
            self.custom_fields = normalize_custom_fields(fields["custom_fields"])

    @staticmethod
    def _coerce_vacancies(value: Any) -> Optional[int]:
        if value in (None, ""):
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValidationError("Total vacancies must be a whole number.")

    def reset_review(self) -> None:
        self.approval_status = PostStatus.PENDING
        self.approved_by = None
        self.approved_at = None
        self.admin_comments = None

    def review(self, decision: str, reviewer_id: int, comments: Optional[str] = None) -> None:
        """Record an admin decision. Only pending posts can be reviewed."""
        if decision not in {PostStatus.APPROVED, PostStatus.REJECTED, PostStatus.RETURNED_FOR_EDIT}:
            raise ValidationError("Invalid status provided.")
        if self.approval_status != PostStatus.PENDING:
            raise ValidationError(
                f"This post is {self.get_approval_status_display().lower()} and can no longer be reviewed."
            )
        updated = RecruitmentPost.objects.filter(pk=self.pk, approval_status=PostStatus.PENDING).update(
            approval_status=decision,
            approved_by_id=reviewer_id,
            approved_at=timezone.now(),
            admin_comments=(comments or "").strip() or None,
            updated_at=timezone.now(),
        )
        if not updated:
            raise ValidationError("This post was reviewed by someone else in the meantime.")
        self.refresh_from_db()
        logger.info("Recruitment post %s marked %s by admin %s", self.pk, decision, reviewer_id)


# -------------------------------------------------------------------
# Withdrawal requests
# -------------------------------------------------------------------
class WithdrawalStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    DETAILS_REQUESTED = "details_requested", "Details Requested"
    PAID = "paid", "Paid"
    REJECTED = "rejected", "Rejected"


OPEN_WITHDRAWAL_STATUSES = (
    WithdrawalStatus.PENDING,
    WithdrawalStatus.PROCESSING,
    WithdrawalStatus.DETAILS_REQUESTED,
)


class WithdrawalRequestQuerySet(models.QuerySet):
    def for_deo(self, deo_id: int) -> "WithdrawalRequestQuerySet":
        return self.filter(deo_id=deo_id)

    def with_status(self, status_filter: Optional[str]) -> "WithdrawalRequestQuerySet":
        status = _validate_status_filter(status_filter, WithdrawalStatus)
        return self.filter(status=status) if status else self

    def open(self) -> "WithdrawalRequestQuerySet":
        return self.filter(status__in=OPEN_WITHDRAWAL_STATUSES)

    def paid(self) -> "WithdrawalRequestQuerySet":
        return self.filter(status=WithdrawalStatus.PAID)

    def total_amount(self) -> Decimal:
        return self.aggregate(
            total=Coalesce(Sum("amount"), Value(ZERO), output_field=DecimalField(max_digits=14, decimal_places=2))
        )["total"]

    def details_requested_before(self, cutoff) -> "WithdrawalRequestQuerySet":
        return self.filter(status=WithdrawalStatus.DETAILS_REQUESTED, processed_at__lte=cutoff)


class WithdrawalRequestManager(models.Manager.from_queryset(WithdrawalRequestQuerySet)):
    def get_by_id(self, request_id: int) -> Optional["WithdrawalRequest"]:
        return self.select_related("deo", "processed_by").filter(pk=request_id).first()

    def list_by_deo(self, deo_id: int, status_filter: Optional[str] = "all") -> WithdrawalRequestQuerySet:
        return self.select_related("processed_by").for_deo(deo_id).with_status(status_filter)

    def list_all(self, status_filter: Optional[str] = "all") -> WithdrawalRequestQuerySet:
        return self.select_related("deo", "processed_by").with_status(status_filter)

    def paid_total(self, deo_id: int) -> Decimal:
        return self.for_deo(deo_id).paid().total_amount()


class WithdrawalRequest(models.Model):
    """A DEO's request to withdraw accrued earnings. Never deleted."""

    Status = WithdrawalStatus

    deo = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name="withdrawal_requests",
        db_column="deo_id",
    )
    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(CENT)])
    status = models.CharField(
        max_length=20,
        choices=WithdrawalStatus.choices,
        default=WithdrawalStatus.PENDING,
    )
    request_date = models.DateTimeField(default=timezone.now)
    transaction_number = models.CharField(max_length=100, null=True, blank=True)
    admin_comments = models.TextField(null=True, blank=True)
    processed_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="processed_withdrawal_requests",
        db_column="processed_by_admin_id",
    )
    processed_at = models.DateTimeField(null=True, blank=True)

    bank_name = models.CharField(max_length=120, blank=True)
    account_holder_name = models.CharField(max_length=120, blank=True)
    account_number = models.CharField(max_length=40, blank=True)
    ifsc_code = models.CharField(max_length=20, blank=True)
    upi_id = models.CharField(max_length=80, blank=True)

    objects = WithdrawalRequestManager()

    class Meta:
        db_table = "withdrawal_requests"
        ordering = ["-request_date", "-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["deo"],
                condition=Q(status__in=OPEN_WITHDRAWAL_STATUSES),
                name="one_open_withdrawal_per_deo",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.deo.get_username()} - {self.amount:,.2f} - {self.get_status_display()}"

    @property
    def payment_details(self) -> BankDetails:
        return BankDetails.from_instance(self)
