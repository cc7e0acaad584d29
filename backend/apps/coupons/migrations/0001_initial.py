import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import backend.core.validators


DISCOUNT_TYPES = [("PERCENTAGE", "Percentage"), ("FIXED_AMOUNT", "Fixed amount")]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("courses", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="CouponType",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("type_code", models.CharField(help_text="Two digits, 01-99", max_length=2, unique=True, validators=[backend.core.validators.validate_type_code], verbose_name="type code")),
                ("type_name", models.CharField(max_length=100, verbose_name="type name")),
                ("description", models.TextField(blank=True, verbose_name="description")),
                ("discount_type", models.CharField(choices=DISCOUNT_TYPES, default="PERCENTAGE", max_length=20, verbose_name="discount type")),
                ("max_discount_limit", models.DecimalField(blank=True, decimal_places=2, help_text="Upper bound for discount values authored under this type", max_digits=10, null=True, verbose_name="max discount limit")),
                ("is_active", models.BooleanField(default=True, verbose_name="active")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
            ],
            options={
                "verbose_name": "coupon type",
                "verbose_name_plural": "coupon types",
                "ordering": ["type_code"],
            },
        ),
        migrations.CreateModel(
            name="Coupon",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("code", models.CharField(db_index=True, max_length=50, unique=True, validators=[backend.core.validators.validate_coupon_code_format], verbose_name="code")),
                ("description", models.TextField(blank=True, verbose_name="description")),
                ("discount_type", models.CharField(choices=DISCOUNT_TYPES, default="PERCENTAGE", max_length=20, verbose_name="discount type")),
                ("discount_value", models.DecimalField(decimal_places=2, help_text="Currency amount, or 0-100 for percentage coupons", max_digits=10, validators=[backend.core.validators.validate_positive_amount], verbose_name="discount value")),
                ("valid_from", models.DateTimeField(verbose_name="valid from")),
                ("valid_until", models.DateTimeField(verbose_name="valid until")),
                ("max_usage_count", models.PositiveIntegerField(blank=True, help_text="Leave empty for unlimited use", null=True, verbose_name="max usage count")),
                ("current_usage_count", models.PositiveIntegerField(default=0, verbose_name="current usage count")),
                ("is_active", models.BooleanField(default=True, verbose_name="active")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                ("coupon_type", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="coupons", to="coupons.coupontype")),
                ("created_by_agent", models.ForeignKey(blank=True, help_text="Leave empty for platform (administrator) coupons", null=True, on_delete=django.db.models.deletion.PROTECT, related_name="agent_coupons", to=settings.AUTH_USER_MODEL)),
                ("courses", models.ManyToManyField(blank=True, help_text="Leave empty to apply to all courses", related_name="coupons", to="courses.course")),
            ],
            options={
                "verbose_name": "coupon",
                "verbose_name_plural": "coupons",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["code", "is_active"], name="coupon_code_active_idx"),
                    models.Index(fields=["valid_from", "valid_until"], name="coupon_validity_idx"),
                    models.Index(fields=["created_by_agent", "is_active"], name="coupon_agent_active_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="PersonalAssignment",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("assigned_at", models.DateTimeField(auto_now_add=True, verbose_name="assigned at")),
                ("assigned_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="coupon_assignments_made", to=settings.AUTH_USER_MODEL)),
                ("coupon", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="assignments", to="coupons.coupon")),
                ("course", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="coupon_assignments", to="courses.course")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="coupon_assignments", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "personal coupon assignment",
                "verbose_name_plural": "personal coupon assignments",
                "ordering": ["-assigned_at"],
                "indexes": [
                    models.Index(fields=["coupon"], name="assignment_coupon_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("user", "course"), name="unique_assignment_per_user_course"),
                ],
            },
        ),
    ]
