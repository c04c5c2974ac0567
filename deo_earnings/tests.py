from __future__ import annotations

from decimal import Decimal
from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.db import IntegrityError, transaction
from django.test import TestCase
from django.urls import reverse

from . import ledger, review, self_service
from .earnings import calculate_earnings
from .exceptions import AuthorizationError, DuplicateRecordError, NotFoundError, storage_guard
from .forms import BankDetailsForm
from .models import (
    BankDetails,
    DeoProfile,
    EarningSettings,
    RecruitmentPost,
    RecruitmentPostManager,
    WithdrawalRequest,
    WithdrawalRequestQuerySet,
    normalize_custom_fields,
)
from .principal import Principal

User = get_user_model()

BANK = BankDetails(
    bank_name="State Bank",
    account_holder_name="Asha Rao",
    account_number="1234567890",
    ifsc_code="SBIN0000001",
)


class WorkflowTestMixin:
    def _make_user(self, username: str, role: str = DeoProfile.Role.DATA_ENTRY_OPERATOR, **extra) -> User:
        user = User.objects.create_user(username=username, password="pass123", **extra)
        profile = DeoProfile.ensure_for_user(user)
        profile.role = role
        profile.save(update_fields=["role"])
        return user

    def _make_post(self, user, status=RecruitmentPost.Status.PENDING, title="Clerk Recruitment") -> RecruitmentPost:
        return RecruitmentPost.objects.create(
            submitted_by=user,
            job_title=title,
            total_vacancies=12,
            approval_status=status,
        )

    def _approve_posts(self, user, count: int) -> None:
        for index in range(count):
            self._make_post(user, RecruitmentPost.Status.APPROVED, title=f"Approved post {index}")


class EarningsAndWithdrawalTests(WorkflowTestMixin, TestCase):
    def setUp(self):
        self.admin = self._make_user("admin", role=DeoProfile.Role.ADMIN)
        self.deo = self._make_user("deo", email="deo@example.com")
        self.other_deo = self._make_user("other")
        self.admin_principal = Principal.from_user(self.admin)
        self.deo_principal = Principal.from_user(self.deo)
        self_service.save_bank_details(self.deo_principal, BANK)

    def test_settings_are_seeded_with_defaults(self):
        settings_row = EarningSettings.load()
        self.assertEqual(settings_row.pk, EarningSettings.SINGLETON_PK)
        self.assertEqual(settings_row.earning_per_approved_post, Decimal("10.00"))
        self.assertEqual(settings_row.minimum_withdrawal_amount, Decimal("0.00"))

    def test_earnings_are_derived_from_approved_posts_and_paid_withdrawals(self):
        self._approve_posts(self.deo, 3)
        self._make_post(self.deo, RecruitmentPost.Status.PENDING)
        self._make_post(self.deo, RecruitmentPost.Status.REJECTED)

        summary = calculate_earnings(self.deo.pk)
        self.assertEqual(summary.approved_posts, 3)
        self.assertEqual(summary.accrued, Decimal("30.00"))
        self.assertEqual(summary.available, Decimal("30.00"))
        self.assertEqual(summary.post_counts["pending"], 1)
        self.assertEqual(summary.post_counts["rejected"], 1)
        self.assertEqual(summary.post_counts["returned_for_edit"], 0)
        self.assertEqual(calculate_earnings(self.deo.pk), summary)

    def test_request_then_pay_reduces_available_balance(self):
        self._approve_posts(self.deo, 3)
        withdrawal = self_service.request_withdrawal(self.deo_principal, "25")
        self.assertEqual(withdrawal.status, WithdrawalRequest.Status.PENDING)
        self.assertEqual(withdrawal.amount, Decimal("25.00"))
        # Unpaid requests do not reduce the balance.
        self.assertEqual(calculate_earnings(self.deo.pk).available, Decimal("30.00"))

        with self.assertRaises(ValidationError):
            review.mark_paid(self.admin_principal, withdrawal.pk, "  ")

        withdrawal = review.mark_paid(self.admin_principal, withdrawal.pk, "TXN-001")
        self.assertEqual(withdrawal.status, WithdrawalRequest.Status.PAID)
        self.assertEqual(withdrawal.transaction_number, "TXN-001")
        self.assertEqual(withdrawal.processed_by_id, self.admin.pk)
        self.assertIsNotNone(withdrawal.processed_at)
        self.assertEqual(calculate_earnings(self.deo.pk).available, Decimal("5.00"))

    def test_second_open_request_is_refused(self):
        self._approve_posts(self.deo, 3)
        self_service.request_withdrawal(self.deo_principal, Decimal("25"))
        with self.assertRaisesMessage(ValidationError, "already have a pending"):
            self_service.request_withdrawal(self.deo_principal, Decimal("5"))
        self.assertEqual(WithdrawalRequest.objects.for_deo(self.deo.pk).count(), 1)

    def test_database_rejects_second_open_request(self):
        self._approve_posts(self.deo, 3)
        WithdrawalRequest.objects.create(deo=self.deo, amount=Decimal("5.00"), **BANK.as_dict())
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                WithdrawalRequest.objects.create(
                    deo=self.deo,
                    amount=Decimal("5.00"),
                    status=WithdrawalRequest.Status.PROCESSING,
                )

    def test_ledger_reports_constraint_hit_as_duplicate_request(self):
        # Simulates a concurrent submission that passed the open-request check.
        self._approve_posts(self.deo, 3)
        self_service.request_withdrawal(self.deo_principal, "10")
        with mock.patch.object(WithdrawalRequestQuerySet, "exists", return_value=False):
            with self.assertRaisesMessage(ValidationError, "already have a pending"):
                ledger.create_request(self.deo.pk, "5")
        self.assertEqual(WithdrawalRequest.objects.count(), 1)
        self.assertEqual(WithdrawalRequest.objects.get().amount, Decimal("10.00"))

    def test_oversized_amounts_are_refused(self):
        self._approve_posts(self.deo, 3)
        for amount in ("1e30", "1e15", Decimal("12345678901")):
            with self.assertRaises(ValidationError):
                self_service.request_withdrawal(self.deo_principal, amount)
        self.assertFalse(WithdrawalRequest.objects.exists())

        with self.assertRaisesMessage(ValidationError, "too large"):
            review.update_minimum_withdrawal(self.admin_principal, "1e15")
        with self.assertRaisesMessage(ValidationError, "too large"):
            review.update_earning_settings(self.admin_principal, "Jobs Portal", "$", "1e9")
        settings_row = EarningSettings.load()
        self.assertEqual(settings_row.minimum_withdrawal_amount, Decimal("0.00"))
        self.assertEqual(settings_row.earning_per_approved_post, Decimal("10.00"))

    def test_storage_guard_reports_duplicates(self):
        WithdrawalRequest.objects.create(deo=self.deo, amount=Decimal("5.00"))
        with self.assertRaises(DuplicateRecordError):
            with storage_guard("create a withdrawal request"):
                with transaction.atomic():
                    WithdrawalRequest.objects.create(deo=self.deo, amount=Decimal("1.00"))

    def test_request_above_available_balance_is_refused(self):
        self._approve_posts(self.deo, 1)
        with self.assertRaisesMessage(ValidationError, "exceeds your available balance"):
            self_service.request_withdrawal(self.deo_principal, "10.01")
        self.assertFalse(WithdrawalRequest.objects.exists())

    def test_non_positive_amount_is_refused(self):
        self._approve_posts(self.deo, 1)
        for amount in ("0", "-5", "abc"):
            with self.assertRaises(ValidationError):
                self_service.request_withdrawal(self.deo_principal, amount)

    def test_minimum_withdrawal_amount_is_enforced(self):
        self._approve_posts(self.deo, 3)
        review.update_minimum_withdrawal(self.admin_principal, "50")
        with self.assertRaisesMessage(ValidationError, "Minimum withdrawal amount is 50.00"):
            self_service.request_withdrawal(self.deo_principal, "20")

    def test_negative_minimum_is_refused(self):
        with self.assertRaises(ValidationError):
            review.update_minimum_withdrawal(self.admin_principal, "-1")
        self.assertEqual(EarningSettings.load().minimum_withdrawal_amount, Decimal("0.00"))

    def test_bank_details_required_before_withdrawal(self):
        other = Principal.from_user(self.other_deo)
        self._approve_posts(self.other_deo, 2)
        with self.assertRaisesMessage(ValidationError, "My Bank Details"):
            self_service.request_withdrawal(other, "5")

    def test_incomplete_bank_details_are_refused(self):
        with self.assertRaises(ValidationError):
            self_service.save_bank_details(self.deo_principal, BankDetails(bank_name="Only a bank"))
        self.assertEqual(DeoProfile.objects.get(user=self.deo).bank_details, BANK)

    def test_withdrawal_keeps_bank_snapshot(self):
        self._approve_posts(self.deo, 2)
        withdrawal = self_service.request_withdrawal(self.deo_principal, "10")
        self_service.save_bank_details(
            self.deo_principal,
            BankDetails(
                bank_name="New Bank",
                account_holder_name="Asha Rao",
                account_number="999",
                ifsc_code="NEWB0000001",
                upi_id="asha@upi",
            ),
        )
        withdrawal.refresh_from_db()
        self.assertEqual(withdrawal.payment_details, BANK)

    def test_details_request_round_trip(self):
        self._approve_posts(self.deo, 2)
        withdrawal = self_service.request_withdrawal(self.deo_principal, "10")

        with self.assertRaises(ValidationError):
            review.request_payment_details(self.admin_principal, withdrawal.pk, "")
        withdrawal = review.request_payment_details(self.admin_principal, withdrawal.pk, "IFSC looks wrong")
        self.assertEqual(withdrawal.status, WithdrawalRequest.Status.DETAILS_REQUESTED)
        self.assertEqual(ledger.allowed_actions(withdrawal), (ledger.REJECT, ledger.SUPPLY_DETAILS))

        fresh = BankDetails(
            bank_name="State Bank",
            account_holder_name="Asha Rao",
            account_number="1234567890",
            ifsc_code="SBIN0000002",
        )
        with self.assertRaises(AuthorizationError):
            self_service.supply_payment_details(Principal.from_user(self.other_deo), withdrawal.pk, fresh)

        withdrawal = self_service.supply_payment_details(self.deo_principal, withdrawal.pk, fresh)
        self.assertEqual(withdrawal.status, WithdrawalRequest.Status.PROCESSING)
        self.assertEqual(withdrawal.ifsc_code, "SBIN0000002")
        self.assertEqual(withdrawal.processed_by_id, self.admin.pk)
        self.assertEqual(withdrawal.admin_comments, "IFSC looks wrong")

    def test_supplying_details_requires_details_requested_state(self):
        self._approve_posts(self.deo, 2)
        withdrawal = self_service.request_withdrawal(self.deo_principal, "10")
        with self.assertRaises(ValidationError):
            self_service.supply_payment_details(self.deo_principal, withdrawal.pk, BANK)

    def test_rejection_requires_comments_and_is_terminal(self):
        self._approve_posts(self.deo, 2)
        withdrawal = self_service.request_withdrawal(self.deo_principal, "10")
        with self.assertRaises(ValidationError):
            review.reject_withdrawal(self.admin_principal, withdrawal.pk, None)

        withdrawal = review.reject_withdrawal(self.admin_principal, withdrawal.pk, "Duplicate account")
        self.assertEqual(withdrawal.status, WithdrawalRequest.Status.REJECTED)
        self.assertEqual(ledger.allowed_actions(withdrawal), ())
        with self.assertRaises(ValidationError):
            review.mark_paid(self.admin_principal, withdrawal.pk, "TXN-002")

        # A rejected request frees the DEO to open a new one.
        second = self_service.request_withdrawal(self.deo_principal, "20")
        self.assertEqual(second.status, WithdrawalRequest.Status.PENDING)

    def test_processing_then_paid(self):
        self._approve_posts(self.deo, 2)
        withdrawal = self_service.request_withdrawal(self.deo_principal, "20")
        withdrawal = review.start_processing(self.admin_principal, withdrawal.pk)
        self.assertEqual(withdrawal.status, WithdrawalRequest.Status.PROCESSING)
        with self.assertRaises(ValidationError):
            review.start_processing(self.admin_principal, withdrawal.pk)
        withdrawal = review.mark_paid(self.admin_principal, withdrawal.pk, "TXN-003")
        self.assertEqual(withdrawal.status, WithdrawalRequest.Status.PAID)
        self.assertEqual(calculate_earnings(self.deo.pk).available, Decimal("0.00"))

    def test_unknown_withdrawal_raises_not_found(self):
        with self.assertRaises(NotFoundError):
            review.start_processing(self.admin_principal, 9999)

    def test_admin_operations_require_admin_role(self):
        self._approve_posts(self.deo, 2)
        withdrawal = self_service.request_withdrawal(self.deo_principal, "10")
        with self.assertRaises(AuthorizationError):
            review.mark_paid(self.deo_principal, withdrawal.pk, "TXN-004")
        with self.assertRaises(AuthorizationError):
            self_service.request_withdrawal(self.admin_principal, "1")

    def test_superuser_acts_as_admin(self):
        root = User.objects.create_superuser(username="root", password="pass123", email="root@example.com")
        self.assertTrue(Principal.from_user(root).is_admin)

    def test_details_reminder_command(self):
        self._approve_posts(self.deo, 2)
        withdrawal = self_service.request_withdrawal(self.deo_principal, "10")
        review.request_payment_details(self.admin_principal, withdrawal.pk, "Please add UPI")
        out = StringIO()
        call_command("send_details_reminders", "--days", "0", stdout=out)
        self.assertIn("Sent 1 payment details reminder(s).", out.getvalue())
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["deo@example.com"])

        out = StringIO()
        call_command("send_details_reminders", "--days", "3", stdout=out)
        self.assertIn("Sent 0 payment details reminder(s).", out.getvalue())


class RecruitmentPostTests(WorkflowTestMixin, TestCase):
    def setUp(self):
        self.admin = self._make_user("admin", role=DeoProfile.Role.ADMIN)
        self.deo = self._make_user("deo")
        self.admin_principal = Principal.from_user(self.admin)
        self.deo_principal = Principal.from_user(self.deo)

    def test_submit_requires_title_and_vacancies(self):
        with self.assertRaises(ValidationError):
            self_service.submit_post(self.deo_principal, {"job_title": " ", "total_vacancies": 5})
        with self.assertRaises(ValidationError):
            self_service.submit_post(self.deo_principal, {"job_title": "Clerk", "total_vacancies": ""})

    def test_submitted_post_is_pending_with_custom_fields(self):
        post = self_service.submit_post(
            self.deo_principal,
            {
                "job_title": " Railway Group D ",
                "total_vacancies": "150",
                "custom_fields": '[{"heading": "Age limit", "content": "18-33"}, {"heading": "", "content": ""}]',
            },
        )
        self.assertEqual(post.approval_status, RecruitmentPost.Status.PENDING)
        self.assertEqual(post.job_title, "Railway Group D")
        self.assertEqual(post.total_vacancies, 150)
        self.assertEqual(post.custom_fields, [{"heading": "Age limit", "content": "18-33"}])

    def test_custom_fields_must_be_a_list(self):
        self.assertEqual(normalize_custom_fields(None), [])
        with self.assertRaises(ValidationError):
            normalize_custom_fields("{not json")
        with self.assertRaises(ValidationError):
            normalize_custom_fields({"heading": "x"})

    def test_approval_counts_towards_earnings(self):
        post = self._make_post(self.deo)
        review.approve_post(self.admin_principal, post.pk)
        post.refresh_from_db()
        self.assertEqual(post.approval_status, RecruitmentPost.Status.APPROVED)
        self.assertEqual(post.approved_by, self.admin)
        self.assertIsNotNone(post.approved_at)
        self.assertEqual(calculate_earnings(self.deo.pk).accrued, Decimal("10.00"))

    def test_only_pending_posts_can_be_reviewed(self):
        post = self._make_post(self.deo, RecruitmentPost.Status.APPROVED)
        with self.assertRaisesMessage(ValidationError, "can no longer be reviewed"):
            review.reject_post(self.admin_principal, post.pk, "Changed my mind")
        post.refresh_from_db()
        self.assertEqual(post.approval_status, RecruitmentPost.Status.APPROVED)

    def test_approved_post_cannot_be_edited(self):
        post = self._make_post(self.deo, RecruitmentPost.Status.APPROVED)
        with self.assertRaisesMessage(ValidationError, "can no longer be edited"):
            self_service.edit_post(self.deo_principal, post.pk, {"job_title": "Edited", "total_vacancies": 3})

    def test_returned_post_edit_resets_review(self):
        post = self._make_post(self.deo)
        review.return_post_for_edit(self.admin_principal, post.pk, "Add the exam date")
        post.refresh_from_db()
        self.assertEqual(post.approval_status, RecruitmentPost.Status.RETURNED_FOR_EDIT)
        self.assertEqual(post.admin_comments, "Add the exam date")

        post = self_service.edit_post(
            self.deo_principal,
            post.pk,
            {"job_title": "Clerk Recruitment", "total_vacancies": 12, "exam_date": "March 2025"},
        )
        self.assertEqual(post.approval_status, RecruitmentPost.Status.PENDING)
        self.assertIsNone(post.approved_by)
        self.assertIsNone(post.approved_at)
        self.assertIsNone(post.admin_comments)
        self.assertEqual(post.exam_date, "March 2025")

    def test_edit_does_not_reset_decision_recorded_after_check(self):
        post = self._make_post(self.deo)
        stale = RecruitmentPost.objects.get(pk=post.pk)
        review.approve_post(self.admin_principal, post.pk)
        with mock.patch.object(RecruitmentPostManager, "get_by_id", return_value=stale):
            with self.assertRaisesMessage(ValidationError, "can no longer be edited"):
                self_service.edit_post(self.deo_principal, post.pk, {"job_title": "Edited", "total_vacancies": 3})
        post.refresh_from_db()
        self.assertEqual(post.approval_status, RecruitmentPost.Status.APPROVED)
        self.assertEqual(post.approved_by, self.admin)
        self.assertEqual(post.job_title, "Clerk Recruitment")

    def test_only_owner_can_edit(self):
        post = self._make_post(self.deo)
        intruder = Principal.from_user(self._make_user("intruder"))
        with self.assertRaises(AuthorizationError):
            self_service.edit_post(intruder, post.pk, {"job_title": "Hijack", "total_vacancies": 1})

    def test_delete_post(self):
        post = self._make_post(self.deo)
        review.delete_post(self.admin_principal, post.pk)
        self.assertFalse(RecruitmentPost.objects.filter(pk=post.pk).exists())
        with self.assertRaises(NotFoundError):
            review.delete_post(self.admin_principal, post.pk)

    def test_set_status_writes_without_guard(self):
        post = self._make_post(self.deo, RecruitmentPost.Status.REJECTED)
        self.assertTrue(
            RecruitmentPost.objects.set_status(post.pk, RecruitmentPost.Status.APPROVED, self.admin.pk, "Override")
        )
        post.refresh_from_db()
        self.assertEqual(post.approval_status, RecruitmentPost.Status.APPROVED)
        self.assertEqual(post.admin_comments, "Override")
        self.assertFalse(RecruitmentPost.objects.set_status(9999, RecruitmentPost.Status.APPROVED, self.admin.pk))
        with self.assertRaises(ValidationError):
            RecruitmentPost.objects.set_status(post.pk, "archived", self.admin.pk)

    def test_list_all_filters_and_searches(self):
        self._make_post(self.deo, title="Bank PO")
        self._make_post(self.deo, RecruitmentPost.Status.APPROVED, title="Police Constable")
        self.assertEqual(RecruitmentPost.objects.list_all("approved").count(), 1)
        self.assertEqual(RecruitmentPost.objects.list_all("all", "bank").count(), 1)
        self.assertEqual(RecruitmentPost.objects.list_all("all", "deo").count(), 2)
        with self.assertRaises(ValidationError):
            RecruitmentPost.objects.list_all("archived")

    def test_earning_rate_change_applies_retroactively(self):
        self._approve_posts(self.deo, 2)
        review.update_earning_settings(self.admin_principal, "Jobs Portal", "$", "12.50")
        self.assertEqual(calculate_earnings(self.deo.pk).accrued, Decimal("25.00"))
        self.assertEqual(EarningSettings.load().currency_symbol, "$")


class WorkflowViewTests(WorkflowTestMixin, TestCase):
    def setUp(self):
        self.admin = self._make_user("admin", role=DeoProfile.Role.ADMIN)
        self.deo = self._make_user("deo")
        self_service.save_bank_details(Principal.from_user(self.deo), BANK)
        self._approve_posts(self.deo, 3)

    def test_dashboard_renders_for_deo(self):
        self.client.force_login(self.deo)
        response = self.client.get(reverse("deo_earnings:dashboard"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context["summary"].available, Decimal("30.00"))

    def test_home_routes_by_role(self):
        self.client.force_login(self.admin)
        response = self.client.get(reverse("deo_earnings:home"))
        self.assertRedirects(response, reverse("deo_earnings:manage_withdrawals"))

    def test_deo_cannot_open_admin_pages(self):
        self.client.force_login(self.deo)
        response = self.client.get(reverse("deo_earnings:manage_withdrawals"))
        self.assertRedirects(response, reverse("deo_earnings:home"), fetch_redirect_response=False)

    def test_request_withdrawal_view(self):
        self.client.force_login(self.deo)
        response = self.client.post(reverse("deo_earnings:request_withdrawal"), {"amount": "15.00"})
        self.assertRedirects(response, reverse("deo_earnings:dashboard"))
        self.assertEqual(WithdrawalRequest.objects.get(deo=self.deo).amount, Decimal("15.00"))

        response = self.client.post(reverse("deo_earnings:request_withdrawal"), {"amount": "5.00"}, follow=True)
        self.assertContains(response, "already have a pending")
        self.assertEqual(WithdrawalRequest.objects.filter(deo=self.deo).count(), 1)

    def test_mark_paid_without_transaction_number_shows_error(self):
        withdrawal = self_service.request_withdrawal(Principal.from_user(self.deo), "10")
        self.client.force_login(self.admin)
        response = self.client.post(
            reverse("deo_earnings:update_withdrawal", args=[withdrawal.pk]),
            {"action": "mark_paid", "transaction_number": ""},
            follow=True,
        )
        self.assertContains(response, "Transaction number is required")
        withdrawal.refresh_from_db()
        self.assertEqual(withdrawal.status, WithdrawalRequest.Status.PENDING)

    def test_admin_review_post_view(self):
        post = self._make_post(self.deo)
        self.client.force_login(self.admin)
        response = self.client.post(
            reverse("deo_earnings:review_post", args=[post.pk, "return"]),
            {"admin_comments": "Fix the dates"},
        )
        self.assertRedirects(response, reverse("deo_earnings:manage_posts"))
        post.refresh_from_db()
        self.assertEqual(post.approval_status, RecruitmentPost.Status.RETURNED_FOR_EDIT)
        self.assertEqual(post.admin_comments, "Fix the dates")

    def test_submit_post_view_with_custom_sections(self):
        self.client.force_login(self.deo)
        response = self.client.post(
            reverse("deo_earnings:add_post"),
            {
                "job_title": "SSC CGL",
                "total_vacancies": "500",
                "custom-TOTAL_FORMS": "2",
                "custom-INITIAL_FORMS": "0",
                "custom-MIN_NUM_FORMS": "0",
                "custom-MAX_NUM_FORMS": "1000",
                "custom-0-heading": "Documents",
                "custom-0-content": "Photo ID",
                "custom-1-heading": "",
                "custom-1-content": "",
            },
        )
        self.assertRedirects(response, reverse("deo_earnings:my_posts"))
        post = RecruitmentPost.objects.get(job_title="SSC CGL")
        self.assertEqual(post.approval_status, RecruitmentPost.Status.PENDING)
        self.assertEqual(post.custom_fields, [{"heading": "Documents", "content": "Photo ID"}])

    def test_bank_details_form_allows_missing_upi(self):
        form = BankDetailsForm(data={**BANK.as_dict(), "upi_id": ""})
        self.assertTrue(form.is_valid())
        self.assertEqual(form.details(), BANK)
