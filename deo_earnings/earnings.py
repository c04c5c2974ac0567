"""Derived balances for data entry operators.

Nothing here is cached: every call re-reads the approved post count, the
configured rate and the paid withdrawals.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict

from .models import RecruitmentPost, WithdrawalRequest, get_earning_per_approved_post


@dataclass(frozen=True)
class EarningsSummary:
    approved_posts: int
    earning_per_post: Decimal
    paid_out: Decimal
    post_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def accrued(self) -> Decimal:
        return self.earning_per_post * self.approved_posts

    @property
    def available(self) -> Decimal:
        return self.accrued - self.paid_out


def calculate_earnings(deo_id: int) -> EarningsSummary:
    post_counts = RecruitmentPost.objects.status_counts(deo_id)
    return EarningsSummary(
        approved_posts=post_counts[RecruitmentPost.Status.APPROVED],
        earning_per_post=get_earning_per_approved_post(),
        paid_out=WithdrawalRequest.objects.paid_total(deo_id),
        post_counts=post_counts,
    )


def available_balance(deo_id: int) -> Decimal:
    return calculate_earnings(deo_id).available
