# FILE: /backend/apps/courses/models.py
"""
Course catalog and enrollment models.
"""
import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from backend.core.validators import validate_rate_fraction


class CourseQuerySet(models.QuerySet):

    def visible(self):
        """Courses a student can see and buy."""
        return self.exclude(status__in=[Course.Status.DRAFT, Course.Status.ARCHIVED])


class Course(models.Model):
    """A purchasable course."""

    class Status(models.TextChoices):
        DRAFT = "DRAFT", _("Draft")
        UPCOMING = "UPCOMING", _("Upcoming")
        REGISTRATION_OPEN = "REGISTRATION_OPEN", _("Registration open")
        ONGOING = "ONGOING", _("Ongoing")
        COMPLETED = "COMPLETED", _("Completed")
        ARCHIVED = "ARCHIVED", _("Archived")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    slug = models.SlugField(_("slug"), max_length=255, unique=True)
    title = models.CharField(_("title"), max_length=255)
    tagline = models.CharField(_("tagline"), max_length=255, blank=True)
    description = models.TextField(_("description"), blank=True)
    instructor = models.CharField(_("instructor"), max_length=255, default="To be announced")

    # Pricing
    price = models.DecimalField(
        _("price"),
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    currency = models.CharField(_("currency"), max_length=3, default="INR")
    commission_rate = models.DecimalField(
        _("commission rate override"),
        max_digits=5,
        decimal_places=4,
        null=True,
        blank=True,
        validators=[validate_rate_fraction],
        help_text=_("When set, replaces the agent's own rate for sales of this course (0.10 = 10%)")
    )

    # Schedule & capacity
    status = models.CharField(
        _("status"),
        max_length=20,
        choices=Status.choices,
        default=Status.DRAFT,
        db_index=True
    )
    start_date = models.DateTimeField(_("start date"), null=True, blank=True)
    end_date = models.DateTimeField(_("end date"), null=True, blank=True)
    max_students = models.PositiveIntegerField(_("max students"), null=True, blank=True)
    current_enrollments = models.PositiveIntegerField(_("current enrollments"), default=0)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    objects = CourseQuerySet.as_manager()

    class Meta:
        verbose_name = _("course")
        verbose_name_plural = _("courses")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="course_status_idx"),
            models.Index(fields=["price"], name="course_price_idx"),
        ]

    def __str__(self):
        return self.title

    @property
    def is_full(self):
        return bool(self.max_students) and self.current_enrollments >= self.max_students

    @property
    def is_purchasable(self):
        return self.status in (self.Status.UPCOMING, self.Status.REGISTRATION_OPEN, self.Status.ONGOING) \
            and not self.is_full

    def increment_enrollments(self):
        """Race-free enrollment counter bump."""
        Course.objects.filter(pk=self.pk).update(current_enrollments=F('current_enrollments') + 1)


class Enrollment(models.Model):
    """A student's access to a course, created when payment completes."""

    class Status(models.TextChoices):
        ACTIVE = "ACTIVE", _("Active")
        COMPLETED = "COMPLETED", _("Completed")
        CANCELLED = "CANCELLED", _("Cancelled")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="enrollments"
    )
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="enrollments")
    payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="enrollments"
    )
    status = models.CharField(_("status"), max_length=20, choices=Status.choices, default=Status.ACTIVE)
    enrolled_at = models.DateTimeField(_("enrolled at"), default=timezone.now)

    class Meta:
        verbose_name = _("enrollment")
        verbose_name_plural = _("enrollments")
        ordering = ["-enrolled_at"]
        constraints = [
            models.UniqueConstraint(fields=["user", "course"], name="unique_enrollment_per_course"),
        ]

    def __str__(self):
        return f"{self.user} → {self.course}"
