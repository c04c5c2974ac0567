"""Operations a data entry operator performs on their own records."""
from __future__ import annotations

from typing import Any, Mapping

from django.core.exceptions import ValidationError

from . import ledger
from .exceptions import AuthorizationError, NotFoundError
from .models import BankDetails, DeoProfile, RecruitmentPost, WithdrawalRequest
from .principal import Principal


def submit_post(principal: Principal, fields: Mapping[str, Any]) -> RecruitmentPost:
    principal.require_deo()
    return RecruitmentPost.objects.add_post(fields, principal.user_id)


def get_editable_post(principal: Principal, post_id: int) -> RecruitmentPost:
    """Fetch a post the caller owns and may still change."""
    principal.require_deo()
    post = RecruitmentPost.objects.get_by_id(post_id)
    if post is None:
        raise NotFoundError("Recruitment post not found.")
    if post.submitted_by_id != principal.user_id:
        raise AuthorizationError("You are not authorized to edit this recruitment post.")
    if not post.is_editable:
        raise ValidationError("This recruitment post has already been processed and can no longer be edited.")
    return post


def edit_post(principal: Principal, post_id: int, fields: Mapping[str, Any]) -> RecruitmentPost:
    get_editable_post(principal, post_id)
    return RecruitmentPost.objects.update_post(post_id, fields, require_editable=True)


def save_bank_details(principal: Principal, details: BankDetails) -> DeoProfile:
    principal.require_deo()
    profile, _ = DeoProfile.objects.get_or_create(user_id=principal.user_id)
    profile.save_bank_details(details)
    return profile


def request_withdrawal(principal: Principal, amount: Any) -> WithdrawalRequest:
    principal.require_deo()
    return ledger.create_request(principal.user_id, amount)


def supply_payment_details(principal: Principal, request_id: int, details: BankDetails) -> WithdrawalRequest:
    principal.require_deo()
    return ledger.supply_details(request_id, principal.user_id, details)
