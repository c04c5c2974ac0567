"""State machine for withdrawal requests.

Every transition is a single conditional ``UPDATE`` filtered on the allowed
source states, so a request that moved underneath us is reported instead of
being overwritten.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, FrozenSet, Optional, Tuple

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from .earnings import available_balance
from .exceptions import AuthorizationError, NotFoundError
from .models import (
    ZERO,
    BankDetails,
    DeoProfile,
    WithdrawalRequest,
    WithdrawalStatus,
    get_minimum_withdrawal_amount,
    parse_amount,
)

logger = logging.getLogger(__name__)

DUPLICATE_OPEN_REQUEST_MESSAGE = (
    "You already have a pending, processing, or details requested withdrawal. "
    "Please wait for it to be processed."
)

START_PROCESSING = "start_processing"
MARK_PAID = "mark_paid"
REJECT = "reject"
REQUEST_DETAILS = "request_details"
SUPPLY_DETAILS = "supply_details"

TRANSITIONS: Dict[str, Tuple[FrozenSet[str], str]] = {
    START_PROCESSING: (
        frozenset({WithdrawalStatus.PENDING}),
        WithdrawalStatus.PROCESSING,
    ),
    MARK_PAID: (
        frozenset({WithdrawalStatus.PENDING, WithdrawalStatus.PROCESSING}),
        WithdrawalStatus.PAID,
    ),
    REJECT: (
        frozenset({WithdrawalStatus.PENDING, WithdrawalStatus.PROCESSING, WithdrawalStatus.DETAILS_REQUESTED}),
        WithdrawalStatus.REJECTED,
    ),
    REQUEST_DETAILS: (
        frozenset({WithdrawalStatus.PENDING, WithdrawalStatus.PROCESSING}),
        WithdrawalStatus.DETAILS_REQUESTED,
    ),
    SUPPLY_DETAILS: (
        frozenset({WithdrawalStatus.DETAILS_REQUESTED}),
        WithdrawalStatus.PROCESSING,
    ),
}


def allowed_actions(request: WithdrawalRequest) -> Tuple[str, ...]:
    """Actions whose source states include the request's current status."""
    return tuple(action for action, (sources, _) in TRANSITIONS.items() if request.status in sources)


def get_request(request_id: int) -> WithdrawalRequest:
    request = WithdrawalRequest.objects.get_by_id(request_id)
    if request is None:
        raise NotFoundError("Withdrawal request not found.")
    return request


def create_request(deo_id: int, amount: Any) -> WithdrawalRequest:
    """Open a new withdrawal for ``deo_id``, snapshotting the saved bank details.

    The profile row is locked for the duration of the checks and the table
    carries a partial unique index on open requests, so two concurrent
    submissions cannot both succeed.
    """
    amount = parse_amount(amount, "Withdrawal amount")
    DeoProfile.objects.get_or_create(user_id=deo_id)
    with transaction.atomic():
        profile = DeoProfile.objects.select_for_update().get(user_id=deo_id)
        details = profile.bank_details
        if not details.is_complete:
            raise ValidationError(
                'Please save your bank details in "My Bank Details" section before requesting a withdrawal.'
            )
        if amount <= ZERO:
            raise ValidationError("Please enter a valid positive amount for withdrawal.")
        minimum = get_minimum_withdrawal_amount()
        if amount < minimum:
            raise ValidationError(f"Minimum withdrawal amount is {minimum:,.2f}.")
        available = available_balance(deo_id)
        if amount > available:
            raise ValidationError(
                f"Requested amount {amount:,.2f} exceeds your available balance of {available:,.2f}."
            )
        if WithdrawalRequest.objects.for_deo(deo_id).open().exists():
            raise ValidationError(DUPLICATE_OPEN_REQUEST_MESSAGE)
        try:
            with transaction.atomic():
                request = WithdrawalRequest.objects.create(
                    deo_id=deo_id,
                    amount=amount,
                    status=WithdrawalStatus.PENDING,
                    **details.as_dict(),
                )
        except IntegrityError as exc:
            logger.warning("Duplicate open withdrawal blocked for DEO %s: %s", deo_id, exc)
            raise ValidationError(DUPLICATE_OPEN_REQUEST_MESSAGE) from exc
    logger.info("Withdrawal request %s for %s opened by DEO %s", request.pk, amount, deo_id)
    return request


def _apply(request_id: int, action: str, **changes: Any) -> WithdrawalRequest:
    sources, target = TRANSITIONS[action]
    request = get_request(request_id)
    if request.status not in sources:
        raise ValidationError(
            f"Cannot {action.replace('_', ' ')} a request that is {request.get_status_display().lower()}."
        )
    updated = WithdrawalRequest.objects.filter(pk=request.pk, status__in=sources).update(status=target, **changes)
    if not updated:
        raise ValidationError("This withdrawal request was updated by someone else. Please reload and try again.")
    request.refresh_from_db()
    logger.info("Withdrawal request %s moved to %s via %s", request.pk, target, action)
    return request


def _admin_changes(admin_id: int, **extra: Any) -> Dict[str, Any]:
    return {"processed_by_id": admin_id, "processed_at": timezone.now(), **extra}


def _required(value: Optional[str], message: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(message)
    return value


def start_processing(request_id: int, admin_id: int) -> WithdrawalRequest:
    return _apply(request_id, START_PROCESSING, **_admin_changes(admin_id))


def mark_paid(request_id: int, admin_id: int, transaction_number: Optional[str]) -> WithdrawalRequest:
    transaction_number = _required(transaction_number, "Transaction number is required to mark as paid.")
    return _apply(request_id, MARK_PAID, **_admin_changes(admin_id, transaction_number=transaction_number))


def reject(request_id: int, admin_id: int, admin_comments: Optional[str]) -> WithdrawalRequest:
    admin_comments = _required(admin_comments, "Comments are required to reject a request.")
    return _apply(request_id, REJECT, **_admin_changes(admin_id, admin_comments=admin_comments))


def request_details(request_id: int, admin_id: int, admin_comments: Optional[str]) -> WithdrawalRequest:
    admin_comments = _required(admin_comments, "Comments are required when requesting details.")
    return _apply(request_id, REQUEST_DETAILS, **_admin_changes(admin_id, admin_comments=admin_comments))


def supply_details(request_id: int, deo_id: int, details: BankDetails) -> WithdrawalRequest:
    """Owner-only: store fresh payment details and resume processing."""
    request = get_request(request_id)
    if request.deo_id != deo_id:
        raise AuthorizationError("You are not authorized to update details for this request.")
    details.validate()
    return _apply(request_id, SUPPLY_DETAILS, **details.as_dict())
