"""Email notification helpers for post review and withdrawal events."""
from __future__ import annotations

from typing import Iterable

from django.conf import settings
from django.core.mail import send_mail

from .models import EarningSettings, RecruitmentPost, WithdrawalRequest


def _send(to_addresses: Iterable[str], subject: str, message: str) -> None:
    recipients = [email for email in to_addresses if email]
    if not recipients:
        return
    send_mail(
        subject=subject,
        message=message,
        from_email=getattr(settings, "DEFAULT_FROM_EMAIL", "no-reply@example.com"),
        recipient_list=recipients,
        fail_silently=True,
    )


def _money(amount) -> str:
    return f"{EarningSettings.load().currency_symbol}{amount:,.2f}"


def notify_withdrawal_submitted(request_obj: WithdrawalRequest) -> None:
    subject = f"Withdrawal request submitted: {_money(request_obj.amount)}"
    message = (
        f"Hi {request_obj.deo.get_username()},\n\n"
        f"Your withdrawal request #{request_obj.pk} for {_money(request_obj.amount)} was received.\n"
        "An administrator will process it shortly."
    )
    _send([request_obj.deo.email], subject, message)


def notify_details_requested(request_obj: WithdrawalRequest) -> None:
    """Ask the DEO to resubmit payment details."""
    reminder_days = getattr(settings, "DEO_DETAILS_REMINDER_DAYS", 7)
    subject = f"Action required: payment details for withdrawal #{request_obj.pk}"
    message = (
        f"Hi {request_obj.deo.get_username()},\n\n"
        f"An administrator needs your bank/UPI details for withdrawal #{request_obj.pk} "
        f"({_money(request_obj.amount)}).\n"
        f"Admin comments: {request_obj.admin_comments}\n"
        f"Please submit details within {reminder_days} days."
    )
    _send([request_obj.deo.email], subject, message)


def notify_withdrawal_paid(request_obj: WithdrawalRequest) -> None:
    subject = f"Withdrawal paid: {_money(request_obj.amount)}"
    message = (
        f"Hi {request_obj.deo.get_username()},\n\n"
        f"Your withdrawal #{request_obj.pk} for {_money(request_obj.amount)} has been paid.\n"
        f"Transaction number: {request_obj.transaction_number}"
    )
    _send([request_obj.deo.email], subject, message)


def notify_withdrawal_rejected(request_obj: WithdrawalRequest) -> None:
    subject = f"Withdrawal #{request_obj.pk} rejected"
    message = (
        f"Hi {request_obj.deo.get_username()},\n\n"
        f"Your withdrawal request for {_money(request_obj.amount)} was rejected.\n"
        f"Admin comments: {request_obj.admin_comments or 'No comment provided.'}"
    )
    _send([request_obj.deo.email], subject, message)


def notify_post_reviewed(post: RecruitmentPost) -> None:
    """Tell the submitter about an approve, reject or return decision."""
    subject = f"Recruitment post {post.get_approval_status_display().lower()}: {post.job_title}"
    message = (
        f"Hi {post.submitted_by.get_username()},\n\n"
        f'Your recruitment post "{post.job_title}" is now {post.get_approval_status_display().lower()}.'
    )
    if post.admin_comments:
        message += f"\nAdmin comments: {post.admin_comments}"
    if post.approval_status == RecruitmentPost.Status.RETURNED_FOR_EDIT:
        message += "\nPlease update the post and resubmit it for review."
    _send([post.submitted_by.email], subject, message)


def notify_details_reminder(request_obj: WithdrawalRequest) -> None:
    subject = f"Reminder: payment details still needed for withdrawal #{request_obj.pk}"
    message = (
        f"Hi {request_obj.deo.get_username()},\n\n"
        f"Withdrawal #{request_obj.pk} ({_money(request_obj.amount)}) is on hold until you "
        "submit your bank/UPI details in the portal."
    )
    _send([request_obj.deo.email], subject, message)
