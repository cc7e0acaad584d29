from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

from django.core import mail
from django.test import TestCase
from django.utils import timezone

from backend.apps.courses.models import Course, Enrollment
from backend.apps.coupons.models import DiscountType
from backend.apps.payments.models import Commission, Payment, Payout
from backend.apps.payments.services import (
    approve_payout,
    complete_payment,
    create_order,
    fail_payment,
    invoice_prefix,
    mark_payout_paid,
    next_invoice_number,
    reject_payout,
    request_payout,
    sign_gateway_payload,
    tax_for,
    verify_gateway_signature,
)
from backend.apps.payments.tasks import expire_stale_payments
from backend.core.exceptions import (
    ConcurrentExhaustion,
    CouponIneligible,
    OrderRejected,
    PaymentError,
    PayoutError,
)
from tests.factories import (
    AdminFactory,
    AgentCouponFactory,
    AgentFactory,
    CouponFactory,
    CourseFactory,
    PaymentFactory,
    UserFactory,
)


class InvoiceNumberTests(TestCase):

    def test_prefix_by_financial_series(self):
        when = datetime(2026, 10, 19, tzinfo=dt_timezone.utc)
        self.assertEqual(invoice_prefix(Payment.PaymentType.DOMESTIC, when), 'FT2627G')
        self.assertEqual(invoice_prefix(Payment.PaymentType.FOREX, when), 'FT2627F')

    def test_numbers_are_sequential_per_series(self):
        when = datetime(2026, 10, 19, tzinfo=dt_timezone.utc)
        self.assertEqual(next_invoice_number(Payment.PaymentType.DOMESTIC, when), 'FT2627G00001')
        self.assertEqual(next_invoice_number(Payment.PaymentType.DOMESTIC, when), 'FT2627G00002')
        self.assertEqual(next_invoice_number(Payment.PaymentType.FOREX, when), 'FT2627F00001')

    def test_tax(self):
        self.assertEqual(tax_for(Decimal('17000.00'), Payment.PaymentType.DOMESTIC), Decimal('3060.00'))
        self.assertEqual(tax_for(Decimal('17000.00'), Payment.PaymentType.FOREX), Decimal('0.00'))


class GatewaySignatureTests(TestCase):

    def test_round_trip(self):
        signature = sign_gateway_payload('order-1', 'pay_123')
        self.assertTrue(verify_gateway_signature('order-1', 'pay_123', signature))

    def test_rejects_tampered_payload(self):
        signature = sign_gateway_payload('order-1', 'pay_123')
        self.assertFalse(verify_gateway_signature('order-1', 'pay_999', signature))
        self.assertFalse(verify_gateway_signature('order-1', 'pay_123', ''))


class CreateOrderTests(TestCase):

    def setUp(self):
        self.buyer = UserFactory()
        self.course = CourseFactory(price=Decimal('20000.00'))

    def test_order_freezes_the_quote(self):
        agent = AgentFactory(commission_rate=Decimal('0.1000'))
        CouponFactory(code='TENOFF', discount_type=DiscountType.PERCENTAGE, discount_value=Decimal('10'))
        AgentCouponFactory(code='AGENT1000', created_by_agent=agent, discount_value=Decimal('1000'))

        payment = create_order(self.buyer, self.course)

        self.assertEqual(payment.status, Payment.Status.PENDING)
        self.assertEqual(payment.amount, Decimal('20000.00'))
        self.assertEqual(payment.admin_discount_amount, Decimal('2000.00'))
        self.assertEqual(payment.agent_discount_amount, Decimal('1000.00'))
        self.assertEqual(payment.subtotal, Decimal('17000.00'))
        self.assertEqual(payment.tax_amount, Decimal('3060.00'))
        self.assertEqual(payment.final_amount, Decimal('20060.00'))
        self.assertEqual(payment.commission_amount, Decimal('1700.00'))
        self.assertEqual(payment.transaction_id, str(payment.id))
        self.assertIsNotNone(payment.expires_at)
        self.assertEqual(
            list(payment.applied_coupons.values_list('code', 'tier')),
            [('TENOFF', 'ADMIN'), ('AGENT1000', 'AGENT')],
        )

    def test_quote_does_not_consume_usage(self):
        coupon = CouponFactory(max_usage_count=1)
        create_order(self.buyer, self.course)
        coupon.refresh_from_db()
        self.assertEqual(coupon.current_usage_count, 0)

    def test_rejects_unpurchasable_course(self):
        draft = CourseFactory(status=Course.Status.DRAFT)
        with self.assertRaises(OrderRejected):
            create_order(self.buyer, draft)

    def test_rejects_existing_enrollment(self):
        Enrollment.objects.create(user=self.buyer, course=self.course)
        with self.assertRaises(OrderRejected):
            create_order(self.buyer, self.course)

    def test_rejects_second_pending_order(self):
        create_order(self.buyer, self.course)
        with self.assertRaises(OrderRejected):
            create_order(self.buyer, self.course)


class CompletePaymentTests(TestCase):

    def setUp(self):
        self.buyer = UserFactory()
        self.course = CourseFactory(price=Decimal('20000.00'))
        self.agent = AgentFactory(commission_rate=Decimal('0.1000'))
        self.admin_coupon = CouponFactory(discount_type=DiscountType.PERCENTAGE, discount_value=Decimal('10'))
        self.agent_coupon = AgentCouponFactory(
            created_by_agent=self.agent, discount_value=Decimal('1000'), max_usage_count=1
        )

    def test_completion_consumes_coupons_and_records_commission(self):
        payment = create_order(self.buyer, self.course)
        with self.captureOnCommitCallbacks(execute=True):
            payment = complete_payment(payment, gateway_reference='pay_123')

        self.assertEqual(payment.status, Payment.Status.COMPLETED)
        self.assertEqual(payment.gateway_reference, 'pay_123')
        self.admin_coupon.refresh_from_db()
        self.agent_coupon.refresh_from_db()
        self.assertEqual(self.admin_coupon.current_usage_count, 1)
        self.assertEqual(self.agent_coupon.current_usage_count, 1)

        commission = Commission.objects.get(payment=payment)
        self.assertEqual(commission.agent, self.agent)
        self.assertEqual(commission.sale_amount, Decimal('17000.00'))
        self.assertEqual(commission.commission_amount, Decimal('1700.00'))
        self.assertEqual(commission.status, Commission.Status.PENDING)

        self.assertTrue(Enrollment.objects.filter(user=self.buyer, course=self.course, payment=payment).exists())
        self.course.refresh_from_db()
        self.assertEqual(self.course.current_enrollments, 1)

        recipients = sorted(message.to[0] for message in mail.outbox)
        self.assertEqual(recipients, sorted([self.buyer.email, self.agent.email]))

    def test_completion_is_idempotent(self):
        payment = create_order(self.buyer, self.course)
        complete_payment(payment)
        complete_payment(payment)

        self.agent_coupon.refresh_from_db()
        self.assertEqual(self.agent_coupon.current_usage_count, 1)
        self.assertEqual(Commission.objects.filter(payment=payment).count(), 1)

    def test_last_use_taken_meanwhile(self):
        payment = create_order(self.buyer, self.course)
        # Another buyer's payment took the only use after this quote was made.
        type(self.agent_coupon).objects.filter(pk=self.agent_coupon.pk).update(current_usage_count=1)

        with self.assertRaises(ConcurrentExhaustion):
            complete_payment(payment)

        payment.refresh_from_db()
        self.assertEqual(payment.status, Payment.Status.PENDING)
        self.admin_coupon.refresh_from_db()
        self.assertEqual(self.admin_coupon.current_usage_count, 0)
        self.assertFalse(Commission.objects.exists())
        self.assertFalse(Enrollment.objects.exists())

    def test_coupon_deactivated_before_completion(self):
        payment = create_order(self.buyer, self.course)
        type(self.admin_coupon).objects.filter(pk=self.admin_coupon.pk).update(is_active=False)

        with self.assertRaises(CouponIneligible) as ctx:
            complete_payment(payment)
        self.assertEqual(ctx.exception.reason, 'INACTIVE')

    def test_last_seat_taken_meanwhile(self):
        self.course.max_students = 1
        self.course.save()
        first = create_order(self.buyer, self.course)
        second = create_order(UserFactory(), self.course)
        complete_payment(first)

        with self.assertRaises(OrderRejected):
            complete_payment(second)

        second.refresh_from_db()
        self.assertEqual(second.status, Payment.Status.PENDING)
        self.course.refresh_from_db()
        self.assertEqual(self.course.current_enrollments, 1)
        self.admin_coupon.refresh_from_db()
        self.assertEqual(self.admin_coupon.current_usage_count, 1)

    def test_cannot_complete_failed_payment(self):
        payment = create_order(self.buyer, self.course)
        fail_payment(payment, 'Card declined')
        self.assertEqual(payment.status, Payment.Status.FAILED)
        with self.assertRaises(PaymentError):
            complete_payment(payment)


class ExpireStalePaymentsTests(TestCase):

    def test_only_expired_pending_orders_are_cancelled(self):
        stale = PaymentFactory(expires_at=timezone.now() - timedelta(hours=1))
        fresh = PaymentFactory()
        done = PaymentFactory(status=Payment.Status.COMPLETED, expires_at=timezone.now() - timedelta(hours=1))

        self.assertEqual(expire_stale_payments(), 1)

        stale.refresh_from_db()
        fresh.refresh_from_db()
        done.refresh_from_db()
        self.assertEqual(stale.status, Payment.Status.CANCELLED)
        self.assertEqual(fresh.status, Payment.Status.PENDING)
        self.assertEqual(done.status, Payment.Status.COMPLETED)


BANK = {'account_holder_name': 'Asha Rao', 'account_number': '123456789012', 'ifsc_code': 'SBIN0001234'}


class PayoutTests(TestCase):

    def setUp(self):
        self.agent = AgentFactory(commission_rate=Decimal('0.1000'))
        self.admin = AdminFactory()
        course = CourseFactory(price=Decimal('20000.00'))
        AgentCouponFactory(created_by_agent=self.agent, discount_value=Decimal('1000'))
        for _ in range(2):
            complete_payment(create_order(UserFactory(), course))

    def test_request_bundles_pending_commissions(self):
        payout = request_payout(self.agent, BANK, notes='March')

        self.assertEqual(payout.status, Payout.Status.PENDING)
        self.assertEqual(payout.amount, Decimal('3800.00'))
        self.assertEqual(payout.bank_details['ifsc_code'], 'SBIN0001234')
        self.assertEqual(payout.commissions.count(), 2)

        with self.assertRaises(PayoutError):
            request_payout(self.agent, BANK)

    def test_request_without_commissions(self):
        with self.assertRaises(PayoutError):
            request_payout(AgentFactory(), BANK)

    def test_paid_commissions_are_not_requested_again(self):
        Commission.objects.filter(agent=self.agent).first().mark_paid()
        self.assertEqual(request_payout(self.agent, BANK).amount, Decimal('1900.00'))

    def test_approve_then_pay_settles_commissions(self):
        payout = request_payout(self.agent, BANK)
        with self.captureOnCommitCallbacks(execute=True):
            payout = approve_payout(payout, self.admin)
        self.assertEqual(payout.status, Payout.Status.APPROVED)
        self.assertEqual(payout.processed_by, self.admin)

        with self.captureOnCommitCallbacks(execute=True):
            payout = mark_payout_paid(payout, self.admin, 'UTR123456')
        self.assertEqual(payout.status, Payout.Status.PAID)
        self.assertEqual(payout.transaction_id, 'UTR123456')
        self.assertFalse(
            Commission.objects.filter(payout=payout).exclude(status=Commission.Status.PAID).exists()
        )
        self.assertEqual([m.to[0] for m in mail.outbox[-2:]], [self.agent.email, self.agent.email])

    def test_pending_payout_cannot_be_paid(self):
        payout = request_payout(self.agent, BANK)
        with self.assertRaises(PayoutError):
            mark_payout_paid(payout, self.admin, 'UTR1')
        with self.assertRaises(PayoutError):
            mark_payout_paid(approve_payout(payout, self.admin), self.admin, '')

    def test_reject_releases_commissions(self):
        payout = request_payout(self.agent, BANK)
        payout = reject_payout(payout, self.admin, 'Bank details do not match')

        self.assertEqual(payout.status, Payout.Status.REJECTED)
        self.assertEqual(payout.rejection_reason, 'Bank details do not match')
        self.assertFalse(Commission.objects.filter(payout__isnull=False).exists())
        self.assertFalse(
            Commission.objects.filter(agent=self.agent).exclude(status=Commission.Status.PENDING).exists()
        )

        with self.assertRaises(PayoutError):
            approve_payout(payout, self.admin)
        self.assertEqual(request_payout(self.agent, BANK).amount, Decimal('3800.00'))

    def test_reject_requires_reason(self):
        payout = request_payout(self.agent, BANK)
        with self.assertRaises(PayoutError):
            reject_payout(payout, self.admin, '')
