"""
Celery tasks for payments.

- send_payment_receipt:           Receipt email to the buyer of a completed order.
- send_commission_notification:   Tells an agent a referred sale earned commission.
- send_payout_notification:       Tells an agent their payout was approved, rejected or paid.
- expire_stale_payments:          Periodic task cancelling abandoned PENDING orders.
"""
import logging

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone

from .models import Commission, Payment, Payout

logger = logging.getLogger(__name__)


@shared_task(name="payments.tasks.send_payment_receipt")
def send_payment_receipt(payment_id):
    try:
        payment = Payment.objects.select_related('user', 'course').get(pk=payment_id)
    except Payment.DoesNotExist:
        logger.error("Receipt not sent: payment %s does not exist.", payment_id)
        return f"Payment {payment_id} not found."

    user = payment.user
    message = (
        f"Dear {user.get_full_name()},\n\n"
        f"Thank you for enrolling in {payment.course.title}.\n\n"
        f"Invoice:   {payment.invoice_number}\n"
        f"Price:     {payment.amount} {payment.currency}\n"
        f"Discount:  {payment.discount_amount} {payment.currency}\n"
        f"Tax:       {payment.tax_amount} {payment.currency}\n"
        f"Total:     {payment.final_amount} {payment.currency}\n\n"
        f"Best regards,\nThe Course Team\n"
    )
    send_mail(
        f"Payment received: {payment.course.title}",
        message,
        settings.DEFAULT_FROM_EMAIL,
        [user.email],
        fail_silently=False,
    )
    logger.info("Receipt for %s sent to %s", payment.invoice_number, user.email)
    return f"Receipt sent to {user.email}"


@shared_task(name="payments.tasks.send_commission_notification")
def send_commission_notification(commission_id):
    """Email the agent about a new commission earned through one of their coupons."""
    try:
        commission = Commission.objects.select_related('agent', 'course', 'coupon').get(pk=commission_id)
    except Commission.DoesNotExist:
        logger.error("Commission notification failed: commission %s does not exist.", commission_id)
        return f"Commission {commission_id} not found."

    agent = commission.agent
    message = (
        f"Dear {agent.get_full_name()},\n\n"
        f"A student enrolled in {commission.course.title} using your coupon "
        f"{commission.coupon.code}.\n\n"
        f"Sale amount:  {commission.sale_amount}\n"
        f"Rate:         {commission.commission_rate * 100:.2f}%\n"
        f"Commission:   {commission.commission_amount}\n\n"
        f"It will be included in your next payout.\n"
    )
    send_mail(
        "You earned a commission",
        message,
        settings.DEFAULT_FROM_EMAIL,
        [agent.email],
        fail_silently=False,
    )
    logger.info("Commission notification sent to %s for commission %s", agent.email, commission.pk)
    return f"Commission notification sent to {agent.email}"


@shared_task(name="payments.tasks.send_payout_notification")
def send_payout_notification(payout_id):
    try:
        payout = Payout.objects.select_related('agent').get(pk=payout_id)
    except Payout.DoesNotExist:
        logger.error("Payout notification failed: payout %s does not exist.", payout_id)
        return f"Payout {payout_id} not found."

    agent = payout.agent
    lines = [
        f"Dear {agent.get_full_name()},\n\n",
        f"Your payout request of {payout.amount} is now {payout.get_status_display().lower()}.\n",
    ]
    if payout.status == Payout.Status.PAID and payout.transaction_id:
        lines.append(f"Transaction reference: {payout.transaction_id}\n")
    if payout.status == Payout.Status.REJECTED:
        lines.append(f"Reason: {payout.rejection_reason}\n")
        lines.append("The commissions it covered can be requested again.\n")
    send_mail(
        f"Payout {payout.get_status_display().lower()}",
        "".join(lines),
        settings.DEFAULT_FROM_EMAIL,
        [agent.email],
        fail_silently=False,
    )
    logger.info("Payout notification (%s) sent to %s", payout.status, agent.email)
    return f"Payout notification sent to {agent.email}"


@shared_task(name="payments.tasks.expire_stale_payments")
def expire_stale_payments():
    """
    Cancel PENDING orders past their expiry. Coupon usage is only consumed
    on completion, so nothing else needs releasing.
    """
    now = timezone.now()
    cancelled = Payment.objects.filter(
        status=Payment.Status.PENDING,
        expires_at__lt=now,
    ).update(
        status=Payment.Status.CANCELLED,
        status_reason="Expired before payment",
        updated_at=now,
    )
    if cancelled:
        logger.info("Cancelled %d expired pending payment(s)", cancelled)
    return cancelled
