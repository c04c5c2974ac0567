"""Forms supporting the recruitment post and withdrawal workflow."""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List

from django import forms

from .models import (
    POST_CONTENT_FIELDS,
    BankDetails,
    EarningSettings,
    PostStatus,
    RecruitmentPost,
    WithdrawalStatus,
)


class RecruitmentPostForm(forms.ModelForm):
    """Main content of a recruitment post, submitted by a DEO."""

    class Meta:
        model = RecruitmentPost
        fields = list(POST_CONTENT_FIELDS)
        widgets = {
            "eligibility_criteria": forms.Textarea(attrs={"rows": 3}),
            "selection_process": forms.Textarea(attrs={"rows": 3}),
            "application_fees": forms.Textarea(attrs={"rows": 2}),
            "category_wise_vacancies": forms.Textarea(attrs={"rows": 3}),
            "exam_prediction": forms.Textarea(attrs={"rows": 2}),
            "total_vacancies": forms.NumberInput(attrs={"min": 1}),
        }

    def content(self) -> Dict[str, Any]:
        return {name: self.cleaned_data.get(name) for name in POST_CONTENT_FIELDS}


class CustomFieldForm(forms.Form):
    """One free-form ``heading``/``content`` section appended to a post."""

    heading = forms.CharField(max_length=200, required=False)
    content = forms.CharField(required=False, widget=forms.Textarea(attrs={"rows": 2}))


CustomFieldFormSet = forms.formset_factory(CustomFieldForm, extra=1)


def custom_fields_from_formset(formset) -> List[Dict[str, str]]:
    return [
        {"heading": form.cleaned_data.get("heading", ""), "content": form.cleaned_data.get("content", "")}
        for form in formset.forms
        if form.cleaned_data
    ]


class BankDetailsForm(forms.Form):
    """Bank/UPI details, used for the profile and for answering a details request."""

    bank_name = forms.CharField(max_length=120)
    account_holder_name = forms.CharField(max_length=120)
    account_number = forms.CharField(max_length=40)
    ifsc_code = forms.CharField(max_length=20, label="IFSC code")
    upi_id = forms.CharField(max_length=80, required=False, label="UPI ID")

    def details(self) -> BankDetails:
        return BankDetails.from_mapping(self.cleaned_data)


class WithdrawalRequestForm(forms.Form):
    amount = forms.DecimalField(
        min_value=Decimal("0.01"),
        max_digits=12,
        decimal_places=2,
        widget=forms.NumberInput(attrs={"step": "0.01"}),
    )


class WithdrawalActionForm(forms.Form):
    """Admin decision on a withdrawal request; evidence is checked by the ledger."""

    ACTION_CHOICES = [
        ("start_processing", "Start processing"),
        ("mark_paid", "Mark as paid"),
        ("request_details", "Request details"),
        ("reject", "Reject"),
    ]

    action = forms.ChoiceField(choices=ACTION_CHOICES)
    transaction_number = forms.CharField(max_length=100, required=False)
    admin_comments = forms.CharField(required=False, widget=forms.Textarea(attrs={"rows": 2}))


class PostReviewForm(forms.Form):
    """Optional comment an admin can attach to a post decision."""

    admin_comments = forms.CharField(
        required=False,
        widget=forms.Textarea(attrs={"rows": 2, "placeholder": "Add a note for the submitter"}),
        label="Comment",
    )


class MinimumWithdrawalForm(forms.Form):
    min_withdrawal_amount = forms.DecimalField(min_value=Decimal("0"), max_digits=12, decimal_places=2)


class EarningSettingsForm(forms.ModelForm):
    class Meta:
        model = EarningSettings
        fields = ["app_name", "currency_symbol", "earning_per_approved_post"]
        widgets = {
            "earning_per_approved_post": forms.NumberInput(attrs={"min": 0, "step": "0.01"}),
        }


class PostFilterForm(forms.Form):
    status = forms.ChoiceField(
        choices=[("all", "All Statuses"), *PostStatus.choices],
        required=False,
    )
    search = forms.CharField(max_length=120, required=False)


class WithdrawalFilterForm(forms.Form):
    status = forms.ChoiceField(
        choices=[("all", "All Statuses"), *WithdrawalStatus.choices],
        required=False,
    )
