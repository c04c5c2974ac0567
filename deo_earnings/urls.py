"""URL routing for recruitment post and withdrawal flows."""
from django.urls import path

from . import views

app_name = "deo_earnings"

urlpatterns = [
    path("", views.home, name="home"),
    path("dashboard/", views.DeoDashboardView.as_view(), name="dashboard"),
    path("withdrawals/request/", views.request_withdrawal, name="request_withdrawal"),
    path("withdrawals/", views.MyWithdrawalsView.as_view(), name="my_withdrawals"),
    path(
        "withdrawals/<int:pk>/payment-details/",
        views.submit_payment_details,
        name="submit_payment_details",
    ),
    path("bank-details/", views.BankDetailsView.as_view(), name="bank_details"),
    path("posts/", views.MyPostsView.as_view(), name="my_posts"),
    path("posts/new/", views.RecruitmentPostFormView.as_view(), name="add_post"),
    path("posts/<int:pk>/edit/", views.RecruitmentPostFormView.as_view(), name="edit_post"),
    path("manage/posts/", views.ManagePostsView.as_view(), name="manage_posts"),
    path(
        "manage/posts/<int:pk>/<str:action>/",
        views.review_post,
        name="review_post",
    ),
    path(
        "manage/withdrawals/",
        views.ManageWithdrawalsView.as_view(),
        name="manage_withdrawals",
    ),
    path(
        "manage/withdrawals/<int:pk>/",
        views.update_withdrawal,
        name="update_withdrawal",
    ),
    path(
        "manage/withdrawals/minimum/",
        views.update_minimum_withdrawal,
        name="update_minimum_withdrawal",
    ),
    path("manage/settings/", views.EarningSettingsView.as_view(), name="settings"),
]
