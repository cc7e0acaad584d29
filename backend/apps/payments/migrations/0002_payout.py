import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("payments", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Payout",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12, verbose_name="amount")),
                ("status", models.CharField(choices=[("PENDING", "Pending"), ("APPROVED", "Approved"), ("REJECTED", "Rejected"), ("PAID", "Paid")], db_index=True, default="PENDING", max_length=20, verbose_name="status")),
                ("payment_method", models.CharField(default="Bank Transfer", max_length=50, verbose_name="payment method")),
                ("bank_details", models.JSONField(blank=True, default=dict, verbose_name="bank details")),
                ("transaction_id", models.CharField(blank=True, max_length=255, verbose_name="transaction ID")),
                ("notes", models.TextField(blank=True, verbose_name="notes")),
                ("rejection_reason", models.TextField(blank=True, verbose_name="rejection reason")),
                ("requested_at", models.DateTimeField(auto_now_add=True, verbose_name="requested at")),
                ("processed_at", models.DateTimeField(blank=True, null=True, verbose_name="processed at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                ("agent", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="payouts", to=settings.AUTH_USER_MODEL)),
                ("processed_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="processed_payouts", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "payout",
                "verbose_name_plural": "payouts",
                "ordering": ["-requested_at"],
                "indexes": [models.Index(fields=["agent", "status"], name="payout_agent_status_idx")],
            },
        ),
        migrations.AddField(
            model_name="commission",
            name="payout",
            field=models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="commissions", to="payments.payout"),
        ),
    ]
