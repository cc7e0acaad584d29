"""
Order and settlement services.

``create_order`` freezes a quote onto a PENDING payment. ``complete_payment``
settles it: the coupon usage cap is re-checked under row locks at commit
time, counters are incremented exactly once and commissions are recorded.
Agents collect their pending commissions through payouts, which admins
approve, reject or mark paid.
"""
import hashlib
import hmac
import logging
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from backend.apps.coupons.catalog import snapshot_of
from backend.apps.coupons.eligibility import Reason, check_eligibility
from backend.apps.coupons.models import Coupon
from backend.apps.coupons.services import build_quote
from backend.apps.courses.models import Course, Enrollment
from backend.core.exceptions import (
    ConcurrentExhaustion,
    CouponIneligible,
    OrderRejected,
    PaymentError,
    PayoutError,
)
from backend.core.money import ZERO, fraction_of

from .models import Commission, InvoiceSequence, Payment, PaymentCoupon, Payout
from .tasks import send_commission_notification, send_payment_receipt, send_payout_notification

logger = logging.getLogger(__name__)


def invoice_prefix(payment_type, now):
    """``FT`` + two-digit year + following year + series letter, e.g. FT2627G."""
    year = now.year % 100
    series = "F" if payment_type == Payment.PaymentType.FOREX else "G"
    return f"{settings.INVOICE_PREFIX}{year:02d}{(year + 1) % 100:02d}{series}"


def next_invoice_number(payment_type, now=None):
    prefix = invoice_prefix(payment_type, now or timezone.now())
    return f"{prefix}{InvoiceSequence.next_number(prefix):05d}"


def tax_for(subtotal, payment_type):
    if payment_type == Payment.PaymentType.FOREX:
        return ZERO
    return fraction_of(subtotal, settings.PRICING_TAX_RATE)


def sign_gateway_payload(transaction_id, gateway_payment_id):
    """HMAC-SHA256 of ``"{transaction_id}|{gateway_payment_id}"`` with the gateway secret."""
    message = f"{transaction_id}|{gateway_payment_id}".encode('utf-8')
    secret = settings.PAYMENT_GATEWAY_SECRET.encode('utf-8')
    return hmac.new(secret, message, hashlib.sha256).hexdigest()


def verify_gateway_signature(transaction_id, gateway_payment_id, signature):
    if not signature or not settings.PAYMENT_GATEWAY_SECRET:
        return False
    expected = sign_gateway_payload(transaction_id, gateway_payment_id)
    return hmac.compare_digest(expected, signature)


def create_order(buyer, course, payment_type=Payment.PaymentType.DOMESTIC, now=None):
    """
    Open a PENDING payment for ``course`` priced by the current quote.
    The buyer row is locked so two concurrent requests cannot both open an order.
    """
    now = now or timezone.now()
    if not course.is_purchasable:
        raise OrderRejected("This course is not open for enrollment.")

    with transaction.atomic():
        buyer.__class__.objects.select_for_update().get(pk=buyer.pk)

        if Enrollment.objects.filter(user=buyer, course=course).exists():
            raise OrderRejected("You are already enrolled in this course.")
        if Payment.objects.filter(
            user=buyer, course=course, status=Payment.Status.PENDING, expires_at__gt=now
        ).exists():
            raise OrderRejected("You already have a pending payment for this course.")

        quote = build_quote(course, buyer=buyer, now=now)
        tax = tax_for(quote.final_price, payment_type)

        payment = Payment.objects.create(
            user=buyer,
            course=course,
            invoice_number=next_invoice_number(payment_type, now),
            payment_type=payment_type,
            amount=quote.original_price,
            admin_discount_amount=quote.admin_discount_total,
            agent_discount_amount=quote.agent_discount_total,
            discount_amount=quote.total_discount,
            subtotal=quote.final_price,
            tax_amount=tax,
            final_amount=quote.final_price + tax,
            commission_amount=sum((c.commission_amount for c in quote.commissions), ZERO),
            currency=quote.currency,
            metadata={'quote': quote.as_dict()},
        )
        # The internal id doubles as the gateway order reference.
        payment.transaction_id = str(payment.id)
        payment.save(update_fields=['transaction_id'])

        PaymentCoupon.objects.bulk_create([
            PaymentCoupon(
                payment=payment,
                coupon_id=entry.coupon_id,
                code=entry.code,
                tier=entry.tier.value,
                is_personal=entry.is_personal,
                discount_amount=entry.discount_amount,
                position=position,
            )
            for position, entry in enumerate(quote.applied_coupons)
        ])

    logger.info(
        "Order %s created for user %s on course %s: %s %s (%d coupon(s))",
        payment.invoice_number, buyer.pk, course.pk, payment.final_amount,
        payment.currency, len(quote.applied_coupons)
    )
    return payment


def _consume_coupons(payment, now):
    """Lock, re-check and increment every coupon attached to ``payment``."""
    links = list(payment.applied_coupons.order_by('position'))
    if not links:
        return
    coupons = {
        coupon.pk: coupon
        for coupon in Coupon.objects.select_for_update().filter(pk__in=[link.coupon_id for link in links]).order_by('pk')
    }
    for link in links:
        coupon = coupons[link.coupon_id]
        result = check_eligibility(snapshot_of(coupon), now, payment.course_id, payment.user_id)
        if not result.eligible:
            if result.reason == Reason.USAGE_LIMIT_REACHED:
                raise ConcurrentExhaustion(coupon.code)
            raise CouponIneligible(result.reason.value, detail=f"Coupon {coupon.code} can no longer be applied.")
        if not coupon.apply_usage():
            raise ConcurrentExhaustion(coupon.code)


def _record_commissions(payment):
    attributions = payment.metadata.get('quote', {}).get('commissions', [])
    commissions = []
    for attribution in attributions:
        commission, _ = Commission.objects.get_or_create(
            payment=payment,
            coupon_id=attribution['coupon_id'],
            defaults={
                'agent_id': attribution['agent_id'],
                'course_id': payment.course_id,
                'student_id': payment.user_id,
                'commission_rate': Decimal(attribution['rate']),
                'sale_amount': Decimal(attribution['sale_amount']),
                'commission_amount': Decimal(attribution['commission_amount']),
            },
        )
        commissions.append(commission)
    return commissions


def complete_payment(payment, gateway_reference="", now=None):
    """
    Settle a verified payment. Safe to call repeatedly: a payment that is
    already COMPLETED is returned untouched. Raises ConcurrentExhaustion
    (and rolls everything back) if a coupon's last use was taken meanwhile,
    and OrderRejected if the last seat of the course went to another buyer.
    """
    now = now or timezone.now()
    with transaction.atomic():
        payment = Payment.objects.select_for_update().select_related('course').get(pk=payment.pk)
        if payment.status == Payment.Status.COMPLETED:
            logger.info("Payment %s already completed; skipping", payment.invoice_number)
            return payment
        if not payment.can_transition_to(Payment.Status.COMPLETED):
            raise PaymentError(f"Payment in status {payment.status} cannot be completed.")

        # Seats are counted under the course row lock; the order-time check was advisory.
        course = Course.objects.select_for_update().get(pk=payment.course_id)
        if course.is_full and not Enrollment.objects.filter(user_id=payment.user_id, course=course).exists():
            raise OrderRejected("This course is full.")

        _consume_coupons(payment, now)

        payment.status = Payment.Status.COMPLETED
        payment.gateway_reference = gateway_reference or payment.gateway_reference
        payment.completed_at = now
        payment.save(update_fields=['status', 'gateway_reference', 'completed_at', 'updated_at'])

        commissions = _record_commissions(payment)

        _, enrolled = Enrollment.objects.get_or_create(
            user_id=payment.user_id, course=course, defaults={'payment': payment}
        )
        if enrolled:
            course.increment_enrollments()

        transaction.on_commit(lambda: send_payment_receipt.delay(str(payment.pk)))
        for commission in commissions:
            transaction.on_commit(
                lambda commission_id=str(commission.pk): send_commission_notification.delay(commission_id)
            )

    logger.info(
        "Payment %s completed (%s %s, %d commission(s))",
        payment.invoice_number, payment.final_amount, payment.currency, len(commissions)
    )
    return payment


def fail_payment(payment, reason):
    """Mark a payment FAILED if it is still open; no-op otherwise."""
    payment.refresh_from_db(fields=['status'])
    if payment.can_transition_to(Payment.Status.FAILED):
        payment.mark_failed(reason=reason)
        logger.warning("Payment %s failed: %s", payment.invoice_number, reason)
    return payment


# ----------------------------------------------------------------------
# PAYOUTS
# ----------------------------------------------------------------------

def request_payout(agent, bank_details, payment_method="Bank Transfer", notes=""):
    """
    Bundle every PENDING commission of ``agent`` that is not already part of
    an open payout into a new PENDING payout.
    """
    with transaction.atomic():
        commissions = list(
            Commission.objects.select_for_update()
            .filter(agent=agent, status=Commission.Status.PENDING, payout__isnull=True)
            .order_by('created_at')
        )
        if not commissions:
            raise PayoutError("You have no pending commissions to pay out.")

        payout = Payout.objects.create(
            agent=agent,
            amount=sum((c.commission_amount for c in commissions), ZERO),
            payment_method=payment_method or "Bank Transfer",
            bank_details=bank_details,
            notes=notes,
        )
        Commission.objects.filter(pk__in=[c.pk for c in commissions]).update(payout=payout)

    logger.info(
        "Payout %s requested by agent %s: %s over %d commission(s)",
        payout.pk, agent.pk, payout.amount, len(commissions)
    )
    return payout


def _lock_for_transition(payout, new_status):
    payout = Payout.objects.select_for_update().get(pk=payout.pk)
    if not payout.can_transition_to(new_status):
        raise PayoutError(f"Payout is {payout.status} and cannot become {new_status}.")
    return payout


def _finish_processing(payout, admin, now, fields):
    payout.processed_by = admin
    payout.processed_at = now
    payout.save(update_fields=['status', 'processed_by', 'processed_at', 'updated_at', *fields])
    transaction.on_commit(lambda: send_payout_notification.delay(str(payout.pk)))
    logger.info("Payout %s %s by %s", payout.pk, payout.status, admin.pk)
    return payout


def approve_payout(payout, admin, now=None):
    with transaction.atomic():
        payout = _lock_for_transition(payout, Payout.Status.APPROVED)
        payout.status = Payout.Status.APPROVED
        return _finish_processing(payout, admin, now or timezone.now(), [])


def reject_payout(payout, admin, reason, now=None):
    """Reject a payout and release its commissions for a later request."""
    if not reason:
        raise PayoutError("A rejection reason is required.")
    with transaction.atomic():
        payout = _lock_for_transition(payout, Payout.Status.REJECTED)
        payout.status = Payout.Status.REJECTED
        payout.rejection_reason = reason
        Commission.objects.filter(payout=payout, status=Commission.Status.PENDING).update(payout=None)
        return _finish_processing(payout, admin, now or timezone.now(), ['rejection_reason'])


def mark_payout_paid(payout, admin, transaction_id, now=None):
    """Record the transfer of an approved payout and settle its commissions."""
    if not transaction_id:
        raise PayoutError("A transaction ID is required to mark a payout paid.")
    now = now or timezone.now()
    with transaction.atomic():
        payout = _lock_for_transition(payout, Payout.Status.PAID)
        payout.status = Payout.Status.PAID
        payout.transaction_id = transaction_id
        Commission.objects.filter(payout=payout, status=Commission.Status.PENDING).update(
            status=Commission.Status.PAID, paid_at=now
        )
        return _finish_processing(payout, admin, now, ['transaction_id'])
