import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("courses", "0001_initial"),
        ("coupons", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="InvoiceSequence",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("prefix", models.CharField(max_length=20, unique=True, verbose_name="prefix")),
                ("last_number", models.PositiveIntegerField(default=0, verbose_name="last number")),
            ],
            options={
                "verbose_name": "invoice sequence",
                "verbose_name_plural": "invoice sequences",
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("invoice_number", models.CharField(max_length=30, unique=True, verbose_name="invoice number")),
                ("payment_type", models.CharField(choices=[("DOMESTIC", "Domestic"), ("FOREX", "Foreign exchange")], default="DOMESTIC", max_length=10, verbose_name="payment type")),
                ("amount", models.DecimalField(decimal_places=2, max_digits=10, verbose_name="original price")),
                ("admin_discount_amount", models.DecimalField(decimal_places=2, default=0, max_digits=10, verbose_name="administrator discount")),
                ("agent_discount_amount", models.DecimalField(decimal_places=2, default=0, max_digits=10, verbose_name="agent discount")),
                ("discount_amount", models.DecimalField(decimal_places=2, default=0, max_digits=10, verbose_name="total discount")),
                ("subtotal", models.DecimalField(decimal_places=2, max_digits=10, verbose_name="subtotal")),
                ("tax_amount", models.DecimalField(decimal_places=2, default=0, max_digits=10, verbose_name="tax amount")),
                ("final_amount", models.DecimalField(decimal_places=2, max_digits=10, verbose_name="final amount")),
                ("commission_amount", models.DecimalField(decimal_places=2, default=0, max_digits=10, verbose_name="commission amount")),
                ("currency", models.CharField(default="INR", max_length=3, verbose_name="currency")),
                ("status", models.CharField(choices=[("PENDING", "Pending"), ("PROCESSING", "Processing"), ("COMPLETED", "Completed"), ("FAILED", "Failed"), ("REFUNDED", "Refunded"), ("CANCELLED", "Cancelled")], default="PENDING", max_length=20, verbose_name="status")),
                ("status_reason", models.TextField(blank=True, verbose_name="status reason")),
                ("transaction_id", models.CharField(blank=True, db_index=True, max_length=255, null=True, unique=True, verbose_name="transaction ID")),
                ("gateway_reference", models.CharField(blank=True, help_text="Payment ID reported by the payment gateway", max_length=255, verbose_name="gateway reference")),
                ("metadata", models.JSONField(default=dict, verbose_name="metadata")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                ("completed_at", models.DateTimeField(blank=True, null=True, verbose_name="completed at")),
                ("expires_at", models.DateTimeField(blank=True, help_text="Pending orders past this time are cancelled.", null=True, verbose_name="expires at")),
                ("course", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payments", to="courses.course")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="payments", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "payment",
                "verbose_name_plural": "payments",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["user", "status"], name="payment_user_status_idx"),
                    models.Index(fields=["course", "status"], name="payment_course_status_idx"),
                    models.Index(fields=["status", "created_at"], name="payment_status_created_idx"),
                    models.Index(fields=["expires_at"], name="payment_expires_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PaymentCoupon",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("code", models.CharField(max_length=50, verbose_name="code")),
                ("tier", models.CharField(choices=[("ADMIN", "Administrator"), ("AGENT", "Agent")], max_length=10, verbose_name="tier")),
                ("is_personal", models.BooleanField(default=False, verbose_name="personal")),
                ("discount_amount", models.DecimalField(decimal_places=2, max_digits=10, verbose_name="discount amount")),
                ("position", models.PositiveSmallIntegerField(default=0, verbose_name="position")),
                ("coupon", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="payment_links", to="coupons.coupon")),
                ("payment", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="applied_coupons", to="payments.payment")),
            ],
            options={
                "verbose_name": "payment coupon",
                "verbose_name_plural": "payment coupons",
                "ordering": ["payment", "position"],
                "constraints": [
                    models.UniqueConstraint(fields=("payment", "coupon"), name="unique_coupon_per_payment"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Commission",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("commission_rate", models.DecimalField(decimal_places=4, max_digits=5, verbose_name="commission rate")),
                ("sale_amount", models.DecimalField(decimal_places=2, max_digits=10, verbose_name="sale amount")),
                ("commission_amount", models.DecimalField(decimal_places=2, max_digits=10, verbose_name="commission amount")),
                ("status", models.CharField(choices=[("PENDING", "Pending"), ("PAID", "Paid"), ("CANCELLED", "Cancelled")], db_index=True, default="PENDING", max_length=20, verbose_name="status")),
                ("paid_at", models.DateTimeField(blank=True, null=True, verbose_name="paid at")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("agent", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="commissions", to=settings.AUTH_USER_MODEL)),
                ("coupon", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="commissions", to="coupons.coupon")),
                ("course", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="commissions", to="courses.course")),
                ("payment", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="commissions", to="payments.payment")),
                ("student", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="referred_purchases", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "commission",
                "verbose_name_plural": "commissions",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["agent", "status"], name="commission_agent_status_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("payment", "coupon"), name="unique_commission_per_payment_coupon"),
                ],
            },
        ),
    ]
