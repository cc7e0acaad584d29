import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import backend.core.validators


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Course",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("slug", models.SlugField(max_length=255, unique=True, verbose_name="slug")),
                ("title", models.CharField(max_length=255, verbose_name="title")),
                ("tagline", models.CharField(blank=True, max_length=255, verbose_name="tagline")),
                ("description", models.TextField(blank=True, verbose_name="description")),
                ("instructor", models.CharField(default="To be announced", max_length=255, verbose_name="instructor")),
                ("price", models.DecimalField(decimal_places=2, max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal("0.00"))], verbose_name="price")),
                ("currency", models.CharField(default="INR", max_length=3, verbose_name="currency")),
                ("commission_rate", models.DecimalField(blank=True, decimal_places=4, help_text="When set, replaces the agent's own rate for sales of this course (0.10 = 10%)", max_digits=5, null=True, validators=[backend.core.validators.validate_rate_fraction], verbose_name="commission rate override")),
                ("status", models.CharField(choices=[("DRAFT", "Draft"), ("UPCOMING", "Upcoming"), ("REGISTRATION_OPEN", "Registration open"), ("ONGOING", "Ongoing"), ("COMPLETED", "Completed"), ("ARCHIVED", "Archived")], db_index=True, default="DRAFT", max_length=20, verbose_name="status")),
                ("start_date", models.DateTimeField(blank=True, null=True, verbose_name="start date")),
                ("end_date", models.DateTimeField(blank=True, null=True, verbose_name="end date")),
                ("max_students", models.PositiveIntegerField(blank=True, null=True, verbose_name="max students")),
                ("current_enrollments", models.PositiveIntegerField(default=0, verbose_name="current enrollments")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
            ],
            options={
                "verbose_name": "course",
                "verbose_name_plural": "courses",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status"], name="course_status_idx"),
                    models.Index(fields=["price"], name="course_price_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Enrollment",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("status", models.CharField(choices=[("ACTIVE", "Active"), ("COMPLETED", "Completed"), ("CANCELLED", "Cancelled")], default="ACTIVE", max_length=20, verbose_name="status")),
                ("enrolled_at", models.DateTimeField(default=django.utils.timezone.now, verbose_name="enrolled at")),
                ("course", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="enrollments", to="courses.course")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="enrollments", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "enrollment",
                "verbose_name_plural": "enrollments",
                "ordering": ["-enrolled_at"],
                "constraints": [
                    models.UniqueConstraint(fields=("user", "course"), name="unique_enrollment_per_course"),
                ],
            },
        ),
    ]
