"""Admin configuration for DEO earnings."""
from django.contrib import admin

from .models import DeoProfile, EarningSettings, RecruitmentPost, WithdrawalRequest


@admin.register(EarningSettings)
class EarningSettingsAdmin(admin.ModelAdmin):
    list_display = ("app_name", "currency_symbol", "earning_per_approved_post", "minimum_withdrawal_amount", "updated_at")
    readonly_fields = ("updated_at",)

    def has_add_permission(self, request):
        return not EarningSettings.objects.exists()

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(DeoProfile)
class DeoProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "role", "bank_name", "account_holder_name", "ifsc_code", "updated_at")
    list_filter = ("role",)
    search_fields = ("user__username", "account_holder_name", "bank_name")
    autocomplete_fields = ("user",)


@admin.register(RecruitmentPost)
class RecruitmentPostAdmin(admin.ModelAdmin):
    list_display = (
        "job_title",
        "total_vacancies",
        "submitted_by",
        "approval_status",
        "approved_by",
        "approved_at",
        "created_at",
    )
    list_filter = ("approval_status", "created_at")
    search_fields = ("job_title", "submitted_by__username")
    autocomplete_fields = ("submitted_by", "approved_by")
    readonly_fields = ("created_at", "updated_at", "approved_at")
    ordering = ("-created_at",)


@admin.register(WithdrawalRequest)
class WithdrawalRequestAdmin(admin.ModelAdmin):
    list_display = (
        "deo",
        "amount",
        "status",
        "request_date",
        "transaction_number",
        "processed_by",
        "processed_at",
    )
    list_filter = ("status", "request_date")
    search_fields = ("deo__username", "transaction_number")
    autocomplete_fields = ("deo", "processed_by")
    readonly_fields = (
        "request_date",
        "processed_at",
        "bank_name",
        "account_holder_name",
        "account_number",
        "ifsc_code",
        "upi_id",
    )
    ordering = ("-request_date",)

    def has_delete_permission(self, request, obj=None):
        return False
