"""
Payments models: course orders, applied coupons, agent commissions.
"""
import uuid
from datetime import timedelta

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.db.models import F
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


# ----------------------------------------------------------------------
# INVOICE SEQUENCE – gap-free counters per invoice series
# ----------------------------------------------------------------------

class InvoiceSequence(models.Model):
    """
    Last number issued for an invoice series such as ``FT2627G``.
    Incremented under a row lock so concurrent orders never share a number.
    """
    prefix = models.CharField(_("prefix"), max_length=20, unique=True)
    last_number = models.PositiveIntegerField(_("last number"), default=0)

    class Meta:
        verbose_name = _("invoice sequence")
        verbose_name_plural = _("invoice sequences")

    def __str__(self):
        return f"{self.prefix} #{self.last_number}"

    @classmethod
    @transaction.atomic
    def next_number(cls, prefix):
        cls.objects.get_or_create(prefix=prefix)
        sequence = cls.objects.select_for_update().get(prefix=prefix)
        sequence.last_number = F('last_number') + 1
        sequence.save(update_fields=['last_number'])
        sequence.refresh_from_db(fields=['last_number'])
        return sequence.last_number


# ----------------------------------------------------------------------
# PAYMENT MODEL – CONCURRENCY & FINANCIAL INTEGRITY
# ----------------------------------------------------------------------

class Payment(models.Model):
    """A course order and its settlement."""

    class Status(models.TextChoices):
        PENDING = "PENDING", _("Pending")
        PROCESSING = "PROCESSING", _("Processing")
        COMPLETED = "COMPLETED", _("Completed")
        FAILED = "FAILED", _("Failed")
        REFUNDED = "REFUNDED", _("Refunded")
        CANCELLED = "CANCELLED", _("Cancelled")

    class PaymentType(models.TextChoices):
        DOMESTIC = "DOMESTIC", _("Domestic")
        FOREX = "FOREX", _("Foreign exchange")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="payments"
    )
    course = models.ForeignKey(
        "courses.Course",
        on_delete=models.PROTECT,
        related_name="payments"
    )
    invoice_number = models.CharField(_("invoice number"), max_length=30, unique=True)
    payment_type = models.CharField(
        _("payment type"),
        max_length=10,
        choices=PaymentType.choices,
        default=PaymentType.DOMESTIC
    )

    # Price breakdown
    amount = models.DecimalField(_("original price"), max_digits=10, decimal_places=2)
    admin_discount_amount = models.DecimalField(
        _("administrator discount"), max_digits=10, decimal_places=2, default=0
    )
    agent_discount_amount = models.DecimalField(
        _("agent discount"), max_digits=10, decimal_places=2, default=0
    )
    discount_amount = models.DecimalField(_("total discount"), max_digits=10, decimal_places=2, default=0)
    subtotal = models.DecimalField(_("subtotal"), max_digits=10, decimal_places=2)
    tax_amount = models.DecimalField(_("tax amount"), max_digits=10, decimal_places=2, default=0)
    final_amount = models.DecimalField(_("final amount"), max_digits=10, decimal_places=2)
    commission_amount = models.DecimalField(
        _("commission amount"), max_digits=10, decimal_places=2, default=0
    )
    currency = models.CharField(_("currency"), max_length=3, default="INR")

    status = models.CharField(
        _("status"),
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING
    )
    status_reason = models.TextField(_("status reason"), blank=True)

    # Transaction references – globally unique, nullable (NULL = not yet assigned)
    transaction_id = models.CharField(
        _("transaction ID"),
        max_length=255,
        blank=True,
        null=True,
        db_index=True,
        unique=True
    )
    gateway_reference = models.CharField(
        _("gateway reference"),
        max_length=255,
        blank=True,
        help_text=_("Payment ID reported by the payment gateway")
    )

    # Quote snapshot taken when the order was created
    metadata = models.JSONField(_("metadata"), default=dict)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)
    completed_at = models.DateTimeField(_("completed at"), null=True, blank=True)
    expires_at = models.DateTimeField(
        _("expires at"),
        null=True,
        blank=True,
        help_text=_("Pending orders past this time are cancelled.")
    )

    # Allowed state transitions – used for validation (not a DB constraint)
    _STATUS_TRANSITIONS = {
        Status.PENDING: [Status.PROCESSING, Status.COMPLETED, Status.FAILED, Status.CANCELLED],
        Status.PROCESSING: [Status.COMPLETED, Status.FAILED],
        Status.COMPLETED: [Status.REFUNDED],
        Status.FAILED: [Status.PENDING],  # Allow retry
        Status.REFUNDED: [],
        Status.CANCELLED: [],
    }

    class Meta:
        verbose_name = _("payment")
        verbose_name_plural = _("payments")
        indexes = [
            models.Index(fields=["user", "status"], name="payment_user_status_idx"),
            models.Index(fields=["course", "status"], name="payment_course_status_idx"),
            models.Index(fields=["status", "created_at"], name="payment_status_created_idx"),
            models.Index(fields=["expires_at"], name="payment_expires_idx"),
        ]
        ordering = ["-created_at"]

    def __str__(self):
        return f"Payment {self.invoice_number} - {self.final_amount} {self.currency}"

    def can_transition_to(self, new_status):
        return new_status in self._STATUS_TRANSITIONS.get(self.status, [])

    @transaction.atomic
    def mark_failed(self, reason=""):
        """
        Mark payment as failed.
        Uses select_for_update to prevent race conditions.
        """
        payment = Payment.objects.select_for_update().get(pk=self.pk)
        if not payment.can_transition_to(self.Status.FAILED):
            raise ValidationError(f"Cannot transition from {payment.status} to {self.Status.FAILED}")
        payment.status = self.Status.FAILED
        payment.status_reason = reason
        payment.save(update_fields=['status', 'status_reason', 'updated_at'])
        self.status = payment.status
        self.status_reason = payment.status_reason
        return True

    def save(self, *args, **kwargs):
        """
        Validate status transitions for existing rows and default the
        expiry of new orders.
        """
        if self._state.adding and not self.expires_at:
            hours = getattr(settings, 'PAYMENT_EXPIRY_HOURS', 24)
            self.expires_at = timezone.now() + timedelta(hours=hours)

        if self.transaction_id == "":
            self.transaction_id = None

        # Not race-safe on its own; mutating paths lock the row first.
        if not self._state.adding:
            try:
                old = Payment.objects.get(pk=self.pk)
                if old.status != self.status and not old.can_transition_to(self.status):
                    raise ValidationError(
                        _("Cannot transition payment from %(old)s to %(new)s") %
                        {"old": old.status, "new": self.status}
                    )
            except Payment.DoesNotExist:
                pass
        super().save(*args, **kwargs)


# ----------------------------------------------------------------------
# PAYMENT COUPON – the quote's applied coupons, frozen on the order
# ----------------------------------------------------------------------

class PaymentCoupon(models.Model):
    """One applied coupon of an order, in stacking order."""

    class Tier(models.TextChoices):
        ADMIN = "ADMIN", _("Administrator")
        AGENT = "AGENT", _("Agent")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    payment = models.ForeignKey(Payment, on_delete=models.CASCADE, related_name="applied_coupons")
    coupon = models.ForeignKey(
        "coupons.Coupon",
        on_delete=models.PROTECT,
        related_name="payment_links"
    )
    code = models.CharField(_("code"), max_length=50)
    tier = models.CharField(_("tier"), max_length=10, choices=Tier.choices)
    is_personal = models.BooleanField(_("personal"), default=False)
    discount_amount = models.DecimalField(_("discount amount"), max_digits=10, decimal_places=2)
    position = models.PositiveSmallIntegerField(_("position"), default=0)

    class Meta:
        verbose_name = _("payment coupon")
        verbose_name_plural = _("payment coupons")
        ordering = ["payment", "position"]
        constraints = [
            models.UniqueConstraint(fields=["payment", "coupon"], name="unique_coupon_per_payment"),
        ]

    def __str__(self):
        return f"{self.code} on {self.payment_id}: -{self.discount_amount}"


# ----------------------------------------------------------------------
# PAYOUT – an agent's request to be paid a bundle of pending commissions
# ----------------------------------------------------------------------

class Payout(models.Model):
    """
    Settlement of an agent's commissions.

    PENDING -> APPROVED -> PAID, or PENDING/APPROVED -> REJECTED. A rejected
    payout releases its commissions so they can be requested again.
    """

    class Status(models.TextChoices):
        PENDING = "PENDING", _("Pending")
        APPROVED = "APPROVED", _("Approved")
        REJECTED = "REJECTED", _("Rejected")
        PAID = "PAID", _("Paid")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    agent = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="payouts"
    )
    amount = models.DecimalField(_("amount"), max_digits=12, decimal_places=2)
    status = models.CharField(
        _("status"),
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True
    )

    # Payment details
    payment_method = models.CharField(_("payment method"), max_length=50, default="Bank Transfer")
    bank_details = models.JSONField(_("bank details"), default=dict, blank=True)
    transaction_id = models.CharField(_("transaction ID"), max_length=255, blank=True)
    notes = models.TextField(_("notes"), blank=True)
    rejection_reason = models.TextField(_("rejection reason"), blank=True)

    requested_at = models.DateTimeField(_("requested at"), auto_now_add=True)
    processed_at = models.DateTimeField(_("processed at"), null=True, blank=True)
    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="processed_payouts"
    )
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    _STATUS_TRANSITIONS = {
        Status.PENDING: [Status.APPROVED, Status.REJECTED],
        Status.APPROVED: [Status.PAID, Status.REJECTED],
        Status.REJECTED: [],
        Status.PAID: [],
    }

    class Meta:
        verbose_name = _("payout")
        verbose_name_plural = _("payouts")
        ordering = ["-requested_at"]
        indexes = [
            models.Index(fields=["agent", "status"], name="payout_agent_status_idx"),
        ]

    def __str__(self):
        return f"Payout {self.amount} to {self.agent} ({self.status})"

    def can_transition_to(self, new_status):
        return new_status in self._STATUS_TRANSITIONS.get(self.status, [])


# ----------------------------------------------------------------------
# COMMISSION – referral fee owed to an agent for a completed sale
# ----------------------------------------------------------------------

class Commission(models.Model):

    class Status(models.TextChoices):
        PENDING = "PENDING", _("Pending")
        PAID = "PAID", _("Paid")
        CANCELLED = "CANCELLED", _("Cancelled")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    agent = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="commissions"
    )
    payment = models.ForeignKey(Payment, on_delete=models.CASCADE, related_name="commissions")
    course = models.ForeignKey("courses.Course", on_delete=models.PROTECT, related_name="commissions")
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="referred_purchases"
    )
    coupon = models.ForeignKey("coupons.Coupon", on_delete=models.PROTECT, related_name="commissions")
    payout = models.ForeignKey(
        Payout,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="commissions"
    )

    commission_rate = models.DecimalField(_("commission rate"), max_digits=5, decimal_places=4)
    sale_amount = models.DecimalField(_("sale amount"), max_digits=10, decimal_places=2)
    commission_amount = models.DecimalField(_("commission amount"), max_digits=10, decimal_places=2)

    status = models.CharField(
        _("status"),
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True
    )
    paid_at = models.DateTimeField(_("paid at"), null=True, blank=True)
    created_at = models.DateTimeField(_("created at"), auto_now_add=True)

    class Meta:
        verbose_name = _("commission")
        verbose_name_plural = _("commissions")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["agent", "status"], name="commission_agent_status_idx"),
        ]
        constraints = [
            models.UniqueConstraint(fields=["payment", "coupon"], name="unique_commission_per_payment_coupon"),
        ]

    def __str__(self):
        return f"Commission {self.commission_amount} to {self.agent} ({self.status})"

    def mark_paid(self, when=None):
        """Mark a pending commission as paid out. Returns False if it was not pending."""
        when = when or timezone.now()
        updated = Commission.objects.filter(pk=self.pk, status=self.Status.PENDING).update(
            status=self.Status.PAID, paid_at=when
        )
        if updated:
            self.status = self.Status.PAID
            self.paid_at = when
        return bool(updated)
