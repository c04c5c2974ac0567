"""Views for the DEO earnings, recruitment post and withdrawal workflow."""
from __future__ import annotations

import logging
from typing import Optional

from django.contrib import messages
from django.contrib.auth.decorators import login_required, user_passes_test
from django.contrib.auth.mixins import LoginRequiredMixin, UserPassesTestMixin
from django.core.exceptions import ObjectDoesNotExist, PermissionDenied, ValidationError
from django.shortcuts import redirect, render
from django.urls import reverse
from django.views.decorators.http import require_POST
from django.views.generic import FormView, TemplateView

from . import ledger, review, self_service
from .earnings import calculate_earnings
from .exceptions import DuplicateRecordError, StorageError, storage_guard
from .forms import (
    BankDetailsForm,
    CustomFieldFormSet,
    EarningSettingsForm,
    MinimumWithdrawalForm,
    PostFilterForm,
    PostReviewForm,
    RecruitmentPostForm,
    WithdrawalActionForm,
    WithdrawalFilterForm,
    WithdrawalRequestForm,
    custom_fields_from_formset,
)
from .models import DeoProfile, EarningSettings, RecruitmentPost, WithdrawalRequest, WithdrawalStatus
from .notifications import (
    notify_details_requested,
    notify_post_reviewed,
    notify_withdrawal_paid,
    notify_withdrawal_rejected,
    notify_withdrawal_submitted,
)
from .principal import Principal

logger = logging.getLogger(__name__)

WORKFLOW_ERRORS = (ValidationError, ObjectDoesNotExist, PermissionDenied, StorageError)


def _principal(user) -> Optional[Principal]:
    if not user.is_authenticated:
        return None
    return Principal.from_user(user)


def _admin_check(user) -> bool:
    principal = _principal(user)
    return principal is not None and principal.is_admin


def _deo_check(user) -> bool:
    principal = _principal(user)
    return principal is not None and principal.is_deo


def _error_message(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        return "; ".join(exc.messages)
    if isinstance(exc, DuplicateRecordError):
        return "A record with these details already exists."
    if isinstance(exc, StorageError):
        return f"{exc} Please try again later."
    return str(exc) or "Something went wrong."


def _report(request, exc: Exception) -> None:
    logger.info("Workflow operation rejected for user %s: %s", request.user.pk, exc)
    messages.error(request, _error_message(exc))


def _page_context() -> dict:
    settings_row = EarningSettings.load()
    return {"app_name": settings_row.app_name, "currency_symbol": settings_row.currency_symbol}


class AdminRequiredMixin(UserPassesTestMixin):
    """Gatekeeper for admin-only views."""

    def test_func(self):
        return _admin_check(self.request.user)

    def handle_no_permission(self):
        if not self.request.user.is_authenticated:
            return super().handle_no_permission()
        messages.error(self.request, "Admin access required for this section.")
        return redirect("deo_earnings:home")


class DeoRequiredMixin(UserPassesTestMixin):
    """Gatekeeper for data entry operator views."""

    def test_func(self):
        return _deo_check(self.request.user)

    def handle_no_permission(self):
        if not self.request.user.is_authenticated:
            return super().handle_no_permission()
        messages.error(self.request, "This section is only available to data entry operators.")
        return redirect("deo_earnings:home")


@login_required
def home(request):
    """Route each role to its landing page."""
    principal = Principal.from_user(request.user)
    if principal.is_admin:
        return redirect("deo_earnings:manage_withdrawals")
    if principal.is_deo:
        return redirect("deo_earnings:dashboard")
    return render(request, "deo_earnings/home.html", _page_context())


# -------------------------------------------------------------------
# DEO self-service
# -------------------------------------------------------------------
class DeoDashboardView(LoginRequiredMixin, DeoRequiredMixin, TemplateView):
    """Earnings, post counts and withdrawal history for the signed-in DEO."""

    template_name = "deo_earnings/dashboard.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        user_id = self.request.user.pk
        withdrawals = WithdrawalRequest.objects.list_by_deo(user_id)
        context.update(_page_context())
        context.update(
            {
                "summary": calculate_earnings(user_id),
                "minimum_withdrawal_amount": EarningSettings.load().minimum_withdrawal_amount,
                "recent_posts": RecruitmentPost.objects.list_by_submitter(user_id)[:10],
                "withdrawals": withdrawals,
                "details_requested": withdrawals.filter(status=WithdrawalStatus.DETAILS_REQUESTED).first(),
                "has_open_request": withdrawals.open().exists(),
                "bank_details": DeoProfile.ensure_for_user(self.request.user).bank_details,
                "withdrawal_form": WithdrawalRequestForm(),
                "payment_form": BankDetailsForm(),
            }
        )
        return context


@login_required
@user_passes_test(_deo_check, login_url="deo_earnings:home")
@require_POST
def request_withdrawal(request):
    form = WithdrawalRequestForm(request.POST)
    if not form.is_valid():
        messages.error(request, "Please enter a valid positive amount for withdrawal.")
        return redirect("deo_earnings:dashboard")
    try:
        with storage_guard("submit the withdrawal request"):
            withdrawal = self_service.request_withdrawal(
                Principal.from_user(request.user), form.cleaned_data["amount"]
            )
    except WORKFLOW_ERRORS as exc:
        _report(request, exc)
        return redirect("deo_earnings:dashboard")
    notify_withdrawal_submitted(withdrawal)
    messages.success(request, f"Withdrawal request for {withdrawal.amount:,.2f} submitted successfully!")
    return redirect("deo_earnings:dashboard")


class MyWithdrawalsView(LoginRequiredMixin, DeoRequiredMixin, TemplateView):
    template_name = "deo_earnings/my_withdrawals.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        filter_form = WithdrawalFilterForm(self.request.GET or None)
        status = filter_form.cleaned_data.get("status") if filter_form.is_valid() else "all"
        withdrawals = WithdrawalRequest.objects.list_by_deo(self.request.user.pk, status)
        context.update(_page_context())
        context.update(
            {
                "filter_form": filter_form,
                "withdrawals": withdrawals,
                "details_requested": WithdrawalRequest.objects.list_by_deo(
                    self.request.user.pk, WithdrawalStatus.DETAILS_REQUESTED
                ).first(),
                "payment_form": BankDetailsForm(
                    initial=DeoProfile.ensure_for_user(self.request.user).bank_details.as_dict()
                ),
            }
        )
        return context


@login_required
@user_passes_test(_deo_check, login_url="deo_earnings:home")
@require_POST
def submit_payment_details(request, pk: int):
    form = BankDetailsForm(request.POST)
    if not form.is_valid():
        messages.error(request, "Please fill in all required bank details. UPI ID is optional.")
        return redirect("deo_earnings:my_withdrawals")
    try:
        with storage_guard("submit payment details"):
            self_service.supply_payment_details(Principal.from_user(request.user), pk, form.details())
    except WORKFLOW_ERRORS as exc:
        _report(request, exc)
        return redirect("deo_earnings:my_withdrawals")
    messages.success(request, "Payment details submitted successfully! Your request is now processing.")
    return redirect("deo_earnings:my_withdrawals")


class BankDetailsView(LoginRequiredMixin, DeoRequiredMixin, FormView):
    template_name = "deo_earnings/bank_details.html"
    form_class = BankDetailsForm

    def get_initial(self):
        return DeoProfile.ensure_for_user(self.request.user).bank_details.as_dict()

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context.update(_page_context())
        return context

    def form_valid(self, form: BankDetailsForm):
        try:
            with storage_guard("save bank details"):
                self_service.save_bank_details(Principal.from_user(self.request.user), form.details())
        except WORKFLOW_ERRORS as exc:
            _report(self.request, exc)
            return self.form_invalid(form)
        messages.success(self.request, "Your bank details have been saved successfully!")
        return redirect("deo_earnings:bank_details")

    def form_invalid(self, form):
        messages.error(
            self.request,
            "Please fill in all required bank details (Bank Name, Account Holder Name, Account Number, IFSC Code).",
        )
        return super().form_invalid(form)


class MyPostsView(LoginRequiredMixin, DeoRequiredMixin, TemplateView):
    template_name = "deo_earnings/my_posts.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        filter_form = PostFilterForm(self.request.GET or None)
        status = filter_form.cleaned_data.get("status") if filter_form.is_valid() else "all"
        context.update(_page_context())
        context.update(
            {
                "filter_form": filter_form,
                "posts": RecruitmentPost.objects.list_by_submitter(self.request.user.pk, status),
                "post_counts": RecruitmentPost.objects.status_counts(self.request.user.pk),
            }
        )
        return context


class RecruitmentPostFormView(LoginRequiredMixin, DeoRequiredMixin, TemplateView):
    """Submit a new recruitment post or resubmit an editable one."""

    template_name = "deo_earnings/post_form.html"
    formset_prefix = "custom"

    def _editable_post(self) -> Optional[RecruitmentPost]:
        pk = self.kwargs.get("pk")
        if pk is None:
            return None
        return self_service.get_editable_post(Principal.from_user(self.request.user), pk)

    def get(self, request, *args, **kwargs):
        try:
            post = self._editable_post()
        except WORKFLOW_ERRORS as exc:
            _report(request, exc)
            return redirect("deo_earnings:my_posts")
        form = RecruitmentPostForm(instance=post)
        formset = CustomFieldFormSet(
            prefix=self.formset_prefix,
            initial=post.custom_fields if post else None,
        )
        return self.render_to_response(self.get_context_data(form=form, formset=formset, post=post))

    def post(self, request, *args, **kwargs):
        try:
            post = self._editable_post()
        except WORKFLOW_ERRORS as exc:
            _report(request, exc)
            return redirect("deo_earnings:my_posts")
        form = RecruitmentPostForm(request.POST, instance=post)
        formset = CustomFieldFormSet(request.POST, prefix=self.formset_prefix)
        if not (form.is_valid() and formset.is_valid()):
            messages.error(request, "Please fill in all required fields (Job Title, Total Vacancies).")
            return self.render_to_response(self.get_context_data(form=form, formset=formset, post=post))

        fields = form.content()
        fields["custom_fields"] = custom_fields_from_formset(formset)
        principal = Principal.from_user(request.user)
        try:
            with storage_guard("save the recruitment post"):
                if post is None:
                    self_service.submit_post(principal, fields)
                else:
                    self_service.edit_post(principal, post.pk, fields)
        except WORKFLOW_ERRORS as exc:
            _report(request, exc)
            return self.render_to_response(self.get_context_data(form=form, formset=formset, post=post))

        if post is None:
            messages.success(request, "Recruitment post submitted successfully! It is awaiting admin approval.")
        else:
            messages.success(request, "Recruitment post updated successfully! It has been sent for re-approval.")
        return redirect("deo_earnings:my_posts")

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context.update(_page_context())
        return context


# -------------------------------------------------------------------
# Admin review
# -------------------------------------------------------------------
class ManagePostsView(LoginRequiredMixin, AdminRequiredMixin, TemplateView):
    """Admins filter, search and act on submitted recruitment posts."""

    template_name = "deo_earnings/manage_posts.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        filter_form = PostFilterForm(self.request.GET or None)
        filters = filter_form.cleaned_data if filter_form.is_valid() else {}
        context.update(_page_context())
        context.update(
            {
                "filter_form": filter_form,
                "posts": RecruitmentPost.objects.list_all(filters.get("status") or "all", filters.get("search") or ""),
                "review_form": PostReviewForm(),
            }
        )
        return context


@login_required
@user_passes_test(_admin_check, login_url="deo_earnings:home")
@require_POST
def review_post(request, pk: int, action: str):
    """Approve, reject, return for edit or delete a recruitment post."""
    redirect_url = reverse("deo_earnings:manage_posts")
    if request.GET:
        redirect_url = f"{redirect_url}?{request.GET.urlencode()}"
    form = PostReviewForm(request.POST)
    comments = form.cleaned_data["admin_comments"] if form.is_valid() else ""
    principal = Principal.from_user(request.user)
    actions = {
        "approve": (review.approve_post, "approved"),
        "reject": (review.reject_post, "rejected"),
        "return": (review.return_post_for_edit, "returned for edit"),
    }
    try:
        with storage_guard(f"{action} the recruitment post"):
            if action == "delete":
                review.delete_post(principal, pk)
                messages.success(request, "Recruitment post deleted successfully!")
                return redirect(redirect_url)
            if action not in actions:
                messages.error(request, "Unknown review action.")
                return redirect(redirect_url)
            handler, label = actions[action]
            if action == "approve":
                post = handler(principal, pk)
            else:
                post = handler(principal, pk, comments)
    except WORKFLOW_ERRORS as exc:
        _report(request, exc)
        return redirect(redirect_url)

    notify_post_reviewed(post)
    messages.success(request, f'Recruitment post "{post.job_title}" {label}.')
    return redirect(redirect_url)


class ManageWithdrawalsView(LoginRequiredMixin, AdminRequiredMixin, TemplateView):
    template_name = "deo_earnings/manage_withdrawals.html"

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        filter_form = WithdrawalFilterForm(self.request.GET or None)
        status = filter_form.cleaned_data.get("status") if filter_form.is_valid() else "all"
        withdrawals = list(WithdrawalRequest.objects.list_all(status))
        for withdrawal in withdrawals:
            withdrawal.available_actions = ledger.allowed_actions(withdrawal)
        settings_row = EarningSettings.load()
        context.update(_page_context())
        context.update(
            {
                "filter_form": filter_form,
                "withdrawals": withdrawals,
                "action_form": WithdrawalActionForm(),
                "minimum_form": MinimumWithdrawalForm(
                    initial={"min_withdrawal_amount": settings_row.minimum_withdrawal_amount}
                ),
            }
        )
        return context


@login_required
@user_passes_test(_admin_check, login_url="deo_earnings:home")
@require_POST
def update_withdrawal(request, pk: int):
    form = WithdrawalActionForm(request.POST)
    if not form.is_valid():
        messages.error(request, "Unknown withdrawal action.")
        return redirect("deo_earnings:manage_withdrawals")

    principal = Principal.from_user(request.user)
    action = form.cleaned_data["action"]
    comments = form.cleaned_data["admin_comments"]
    try:
        with storage_guard("update the withdrawal request"):
            if action == "start_processing":
                withdrawal = review.start_processing(principal, pk)
            elif action == "mark_paid":
                withdrawal = review.mark_paid(principal, pk, form.cleaned_data["transaction_number"])
            elif action == "request_details":
                withdrawal = review.request_payment_details(principal, pk, comments)
            else:
                withdrawal = review.reject_withdrawal(principal, pk, comments)
    except WORKFLOW_ERRORS as exc:
        _report(request, exc)
        return redirect("deo_earnings:manage_withdrawals")

    if withdrawal.status == WithdrawalStatus.PAID:
        notify_withdrawal_paid(withdrawal)
    elif withdrawal.status == WithdrawalStatus.REJECTED:
        notify_withdrawal_rejected(withdrawal)
    elif withdrawal.status == WithdrawalStatus.DETAILS_REQUESTED:
        notify_details_requested(withdrawal)
    messages.success(request, f"Withdrawal request status updated to {withdrawal.get_status_display()}!")
    return redirect("deo_earnings:manage_withdrawals")


@login_required
@user_passes_test(_admin_check, login_url="deo_earnings:home")
@require_POST
def update_minimum_withdrawal(request):
    form = MinimumWithdrawalForm(request.POST)
    if not form.is_valid():
        messages.error(request, "Please enter a valid non-negative amount for minimum withdrawal.")
        return redirect("deo_earnings:manage_withdrawals")
    try:
        with storage_guard("update the minimum withdrawal amount"):
            review.update_minimum_withdrawal(
                Principal.from_user(request.user), form.cleaned_data["min_withdrawal_amount"]
            )
    except WORKFLOW_ERRORS as exc:
        _report(request, exc)
        return redirect("deo_earnings:manage_withdrawals")
    messages.success(request, "Minimum withdrawal amount updated successfully!")
    return redirect("deo_earnings:manage_withdrawals")


class EarningSettingsView(LoginRequiredMixin, AdminRequiredMixin, FormView):
    template_name = "deo_earnings/settings.html"
    form_class = EarningSettingsForm

    def get_form_kwargs(self):
        kwargs = super().get_form_kwargs()
        kwargs["instance"] = EarningSettings.load()
        return kwargs

    def get_context_data(self, **kwargs):
        context = super().get_context_data(**kwargs)
        context.update(_page_context())
        return context

    def form_valid(self, form: EarningSettingsForm):
        data = form.cleaned_data
        try:
            with storage_guard("update settings"):
                review.update_earning_settings(
                    Principal.from_user(self.request.user),
                    data["app_name"],
                    data["currency_symbol"],
                    data["earning_per_approved_post"],
                )
        except WORKFLOW_ERRORS as exc:
            _report(self.request, exc)
            return self.form_invalid(form)
        messages.success(self.request, "Settings updated successfully!")
        return redirect("deo_earnings:settings")
