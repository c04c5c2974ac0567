# Generated manually to seed the single settings row.
from __future__ import annotations

from decimal import Decimal

from django.db import migrations

SETTINGS_PK = 1
DEFAULT_SETTINGS = {
    "app_name": "Project Management System",
    "currency_symbol": "₹",
    "earning_per_approved_post": Decimal("10.00"),
    "minimum_withdrawal_amount": Decimal("0.00"),
}


def seed_settings(apps, schema_editor):
    EarningSettings = apps.get_model("deo_earnings", "EarningSettings")
    EarningSettings.objects.get_or_create(pk=SETTINGS_PK, defaults=DEFAULT_SETTINGS)


def remove_settings(apps, schema_editor):
    EarningSettings = apps.get_model("deo_earnings", "EarningSettings")
    EarningSettings.objects.filter(pk=SETTINGS_PK).delete()


class Migration(migrations.Migration):

    dependencies = [
        ("deo_earnings", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(seed_settings, remove_settings),
    ]
