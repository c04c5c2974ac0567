"""Admin-side operations driving post approval and the withdrawal ledger."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Optional

from . import ledger
from .exceptions import NotFoundError
from .models import EarningSettings, PostStatus, RecruitmentPost, WithdrawalRequest
from .principal import Principal

logger = logging.getLogger(__name__)


def _get_post(post_id: int) -> RecruitmentPost:
    post = RecruitmentPost.objects.get_by_id(post_id)
    if post is None:
        raise NotFoundError("Recruitment post not found.")
    return post


def approve_post(principal: Principal, post_id: int) -> RecruitmentPost:
    principal.require_admin()
    post = _get_post(post_id)
    post.review(PostStatus.APPROVED, principal.user_id)
    return post


def reject_post(principal: Principal, post_id: int, comments: Optional[str] = None) -> RecruitmentPost:
    principal.require_admin()
    post = _get_post(post_id)
    post.review(PostStatus.REJECTED, principal.user_id, comments)
    return post


def return_post_for_edit(principal: Principal, post_id: int, comments: Optional[str] = None) -> RecruitmentPost:
    principal.require_admin()
    post = _get_post(post_id)
    post.review(PostStatus.RETURNED_FOR_EDIT, principal.user_id, comments)
    return post


def delete_post(principal: Principal, post_id: int) -> None:
    principal.require_admin()
    if not RecruitmentPost.objects.delete_post(post_id):
        raise NotFoundError("Recruitment post not found.")
    logger.info("Recruitment post %s deleted by admin %s", post_id, principal.user_id)


def update_minimum_withdrawal(principal: Principal, value: Any) -> Decimal:
    principal.require_admin()
    amount = EarningSettings.load().set_minimum_withdrawal_amount(value)
    logger.info("Minimum withdrawal amount set to %s by admin %s", amount, principal.user_id)
    return amount


def update_earning_settings(
    principal: Principal, app_name: str, currency_symbol: str, earning_per_approved_post: Any
) -> EarningSettings:
    principal.require_admin()
    settings_row = EarningSettings.load()
    settings_row.update_display(app_name, currency_symbol, earning_per_approved_post)
    logger.info("Earning settings updated by admin %s", principal.user_id)
    return settings_row


def start_processing(principal: Principal, request_id: int) -> WithdrawalRequest:
    principal.require_admin()
    return ledger.start_processing(request_id, principal.user_id)


def mark_paid(principal: Principal, request_id: int, transaction_number: Optional[str]) -> WithdrawalRequest:
    principal.require_admin()
    return ledger.mark_paid(request_id, principal.user_id, transaction_number)


def reject_withdrawal(principal: Principal, request_id: int, admin_comments: Optional[str]) -> WithdrawalRequest:
    principal.require_admin()
    return ledger.reject(request_id, principal.user_id, admin_comments)


def request_payment_details(
    principal: Principal, request_id: int, admin_comments: Optional[str]
) -> WithdrawalRequest:
    principal.require_admin()
    return ledger.request_details(request_id, principal.user_id, admin_comments)
