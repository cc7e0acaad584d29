"""
Coupon catalog models: coupon types, coupons and personal assignments.
"""
import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.db.models import F, Q
from django.utils.translation import gettext_lazy as _

from backend.core.validators import (
    validate_coupon_code_format,
    validate_positive_amount,
    validate_type_code,
)


class DiscountType(models.TextChoices):
    PERCENTAGE = "PERCENTAGE", _("Percentage")
    FIXED_AMOUNT = "FIXED_AMOUNT", _("Fixed amount")


# ----------------------------------------------------------------------
# COUPON TYPE – templates agents pick from when authoring coupons
# ----------------------------------------------------------------------

class CouponType(models.Model):
    """
    Admin-managed coupon template. The two-digit type code is embedded
    in generated agent coupon codes.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    type_code = models.CharField(
        _("type code"),
        max_length=2,
        unique=True,
        validators=[validate_type_code],
        help_text=_("Two digits, 01-99")
    )
    type_name = models.CharField(_("type name"), max_length=100)
    description = models.TextField(_("description"), blank=True)
    discount_type = models.CharField(
        _("discount type"),
        max_length=20,
        choices=DiscountType.choices,
        default=DiscountType.PERCENTAGE
    )
    max_discount_limit = models.DecimalField(
        _("max discount limit"),
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text=_("Upper bound for discount values authored under this type")
    )
    is_active = models.BooleanField(_("active"), default=True)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        verbose_name = _("coupon type")
        verbose_name_plural = _("coupon types")
        ordering = ["type_code"]

    def __str__(self):
        return f"{self.type_code} - {self.type_name}"

    def clean(self):
        if (self.discount_type == DiscountType.PERCENTAGE
                and self.max_discount_limit is not None
                and self.max_discount_limit > Decimal('100')):
            raise ValidationError({'max_discount_limit': _("A percentage limit cannot exceed 100.")})


# ----------------------------------------------------------------------
# COUPON MODEL – RACE‑SAFE ATOMIC USAGE
# ----------------------------------------------------------------------

class Coupon(models.Model):
    """
    Discount coupon. ``created_by_agent`` decides the stacking tier:
    null is an administrator coupon, otherwise the agent who earns
    commission on sales that use it.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Coupon details
    code = models.CharField(
        _("code"),
        max_length=50,
        unique=True,
        db_index=True,
        validators=[validate_coupon_code_format]
    )
    description = models.TextField(_("description"), blank=True)
    coupon_type = models.ForeignKey(
        CouponType,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="coupons"
    )
    created_by_agent = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="agent_coupons",
        help_text=_("Leave empty for platform (administrator) coupons")
    )

    # Discount
    discount_type = models.CharField(
        _("discount type"),
        max_length=20,
        choices=DiscountType.choices,
        default=DiscountType.PERCENTAGE
    )
    discount_value = models.DecimalField(
        _("discount value"),
        max_digits=10,
        decimal_places=2,
        validators=[validate_positive_amount],
        help_text=_("Currency amount, or 0-100 for percentage coupons")
    )

    # Validity
    valid_from = models.DateTimeField(_("valid from"))
    valid_until = models.DateTimeField(_("valid until"))

    # Usage limits
    max_usage_count = models.PositiveIntegerField(
        _("max usage count"),
        null=True,
        blank=True,
        help_text=_("Leave empty for unlimited use")
    )
    current_usage_count = models.PositiveIntegerField(_("current usage count"), default=0)

    # Applicability
    courses = models.ManyToManyField(
        "courses.Course",
        blank=True,
        related_name="coupons",
        help_text=_("Leave empty to apply to all courses")
    )

    # Status
    is_active = models.BooleanField(_("active"), default=True)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        verbose_name = _("coupon")
        verbose_name_plural = _("coupons")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["code", "is_active"], name="coupon_code_active_idx"),
            models.Index(fields=["valid_from", "valid_until"], name="coupon_validity_idx"),
            models.Index(fields=["created_by_agent", "is_active"], name="coupon_agent_active_idx"),
        ]

    def __str__(self):
        return f"Coupon: {self.code}"

    @property
    def is_agent_coupon(self):
        return self.created_by_agent_id is not None

    @property
    def usage_remaining(self):
        if self.max_usage_count is None:
            return None
        return max(self.max_usage_count - self.current_usage_count, 0)

    @staticmethod
    def generate_agent_code(agent, coupon_type, discount_value):
        """
        Deterministic agent coupon code: COUP + agent code + type code +
        discount value with the decimal point removed (12.5 -> 125).
        """
        value = Decimal(discount_value).normalize()
        formatted = format(value, 'f').replace('.', '')
        return f"COUP{agent.jyotishi_code}{coupon_type.type_code}{formatted}".upper()

    def clean(self):
        errors = {}
        if self.valid_from and self.valid_until and self.valid_from >= self.valid_until:
            errors['valid_until'] = _("Valid until must be later than valid from.")
        if self.discount_value is not None:
            if self.discount_value <= 0:
                errors['discount_value'] = _("Discount value must be greater than zero.")
            elif self.discount_type == DiscountType.PERCENTAGE and self.discount_value > Decimal('100'):
                errors['discount_value'] = _("Percentage discount cannot exceed 100.")
            elif (self.coupon_type_id and self.coupon_type.max_discount_limit is not None
                    and self.discount_value > self.coupon_type.max_discount_limit):
                errors['discount_value'] = _(
                    "Discount value exceeds maximum limit of %(limit)s"
                ) % {'limit': self.coupon_type.max_discount_limit}
        if errors:
            raise ValidationError(errors)

    def save(self, *args, **kwargs):
        # Codes are matched case-insensitively; store a canonical form.
        if self.code:
            self.code = self.code.strip().upper()
        super().save(*args, **kwargs)

    @transaction.atomic
    def apply_usage(self):
        """
        Atomically consume one use of this coupon.
        The conditional UPDATE only matches while the cap still has room,
        so two concurrent completions cannot both take the last use.
        Returns True if usage was recorded, False if the cap was reached.
        """
        capped = Q(max_usage_count__isnull=True) | Q(current_usage_count__lt=F('max_usage_count'))
        updated = Coupon.objects.filter(capped, pk=self.pk).update(
            current_usage_count=F('current_usage_count') + 1
        )
        if updated:
            self.refresh_from_db(fields=['current_usage_count'])
        return bool(updated)


# ----------------------------------------------------------------------
# PERSONAL ASSIGNMENT – buyer-exclusive coupons
# ----------------------------------------------------------------------

class PersonalAssignment(models.Model):
    """
    Grants one student the use of a coupon on one course. Once a coupon
    has any assignment it is usable only by assigned (student, course) pairs.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    coupon = models.ForeignKey(Coupon, on_delete=models.CASCADE, related_name="assignments")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="coupon_assignments"
    )
    course = models.ForeignKey(
        "courses.Course",
        on_delete=models.CASCADE,
        related_name="coupon_assignments"
    )
    assigned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="coupon_assignments_made"
    )
    assigned_at = models.DateTimeField(_("assigned at"), auto_now_add=True)

    class Meta:
        verbose_name = _("personal coupon assignment")
        verbose_name_plural = _("personal coupon assignments")
        ordering = ["-assigned_at"]
        constraints = [
            models.UniqueConstraint(fields=["user", "course"], name="unique_assignment_per_user_course"),
        ]
        indexes = [
            models.Index(fields=["coupon"], name="assignment_coupon_idx"),
        ]

    def __str__(self):
        return f"{self.coupon.code} → {self.user} ({self.course})"
