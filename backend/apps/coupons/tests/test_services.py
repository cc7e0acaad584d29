from datetime import timedelta
from decimal import Decimal

from django.contrib.auth.models import AnonymousUser
from django.test import TestCase
from django.utils import timezone

from backend.apps.coupons.catalog import fetch_coupon_by_code, fetch_general_coupons, fetch_personal_coupons
from backend.apps.coupons.eligibility import Reason
from backend.apps.coupons.models import Coupon, DiscountType, PersonalAssignment
from backend.apps.coupons.services import assign_coupon, build_quote, validate_coupon_code
from tests.factories import (
    AdminFactory,
    AgentCouponFactory,
    AgentFactory,
    CouponFactory,
    CourseFactory,
    PersonalAssignmentFactory,
    UserFactory,
)


class CatalogTests(TestCase):

    def setUp(self):
        self.course = CourseFactory()
        self.other_course = CourseFactory()

    def test_general_fetch_includes_restricted_and_unrestricted(self):
        restricted = CouponFactory(courses=[self.course])
        unrestricted = CouponFactory()
        CouponFactory(courses=[self.other_course])
        CouponFactory(is_active=False)

        codes = {c.code for c in fetch_general_coupons(self.course.id)}
        self.assertEqual(codes, {restricted.code, unrestricted.code})

    def test_general_fetch_returns_each_coupon_once(self):
        CouponFactory(courses=[self.course, self.other_course])
        self.assertEqual(len(fetch_general_coupons(self.course.id)), 1)

    def test_snapshot_carries_agent_and_assignments(self):
        agent = AgentFactory(commission_rate=Decimal('0.1500'))
        buyer = UserFactory()
        coupon = AgentCouponFactory(created_by_agent=agent, courses=[self.course])
        PersonalAssignmentFactory(coupon=coupon, user=buyer, course=self.course)

        snapshot = fetch_personal_coupons(buyer.id, self.course.id)[0]
        self.assertEqual(snapshot.agent_id, agent.id)
        self.assertEqual(snapshot.agent_commission_rate, Decimal('0.1500'))
        self.assertEqual(snapshot.assignments, frozenset({(buyer.id, self.course.id)}))
        self.assertEqual(snapshot.course_ids, frozenset({self.course.id}))

    def test_lookup_by_code_is_case_insensitive(self):
        CouponFactory(code='WELCOME10')
        self.assertEqual(fetch_coupon_by_code(' welcome10 ').code, 'WELCOME10')
        self.assertIsNone(fetch_coupon_by_code('NOPE'))
        self.assertIsNone(fetch_coupon_by_code(''))


class BuildQuoteTests(TestCase):

    def setUp(self):
        self.course = CourseFactory(price=Decimal('20000.00'))
        self.buyer = UserFactory()

    def test_admin_fixed_coupon(self):
        CouponFactory(discount_value=Decimal('2000'), courses=[self.course])
        quote = build_quote(self.course, buyer=self.buyer)
        self.assertEqual(quote.final_price, Decimal('18000.00'))
        self.assertEqual(quote.admin_discount_total, Decimal('2000.00'))
        self.assertEqual(quote.agent_discount_total, Decimal('0.00'))
        self.assertEqual(quote.commissions, ())

    def test_admin_then_agent_with_commission(self):
        agent = AgentFactory(commission_rate=Decimal('0.1000'))
        CouponFactory(discount_type=DiscountType.PERCENTAGE, discount_value=Decimal('10'))
        AgentCouponFactory(created_by_agent=agent, discount_value=Decimal('1000'))

        quote = build_quote(self.course, buyer=self.buyer)
        self.assertEqual(quote.price_after_admin_discounts, Decimal('18000.00'))
        self.assertEqual(quote.final_price, Decimal('17000.00'))
        self.assertEqual(len(quote.commissions), 1)
        self.assertEqual(quote.commissions[0].commission_amount, Decimal('1700.00'))

    def test_exhausted_coupon_leaves_price_unchanged(self):
        CouponFactory(max_usage_count=1, current_usage_count=1)
        quote = build_quote(self.course, buyer=self.buyer)
        self.assertEqual(quote.final_price, Decimal('20000.00'))
        self.assertEqual(quote.applied_coupons, ())

    def test_expired_coupon_is_ignored(self):
        CouponFactory(
            valid_from=timezone.now() - timedelta(days=10),
            valid_until=timezone.now() - timedelta(days=1),
        )
        self.assertEqual(build_quote(self.course).final_price, Decimal('20000.00'))

    def test_personal_coupon_only_for_assigned_buyer(self):
        coupon = CouponFactory(discount_value=Decimal('500'))
        PersonalAssignmentFactory(coupon=coupon, user=self.buyer, course=self.course)

        anonymous = build_quote(self.course, buyer=AnonymousUser())
        self.assertEqual(anonymous.applied_coupons, ())

        other = build_quote(self.course, buyer=UserFactory())
        self.assertEqual(other.applied_coupons, ())

        mine = build_quote(self.course, buyer=self.buyer)
        self.assertEqual(len(mine.applied_coupons), 1)
        self.assertTrue(mine.applied_coupons[0].is_personal)
        self.assertTrue(mine.has_personal_coupon)

    def test_personal_coupon_does_not_follow_buyer_to_other_course(self):
        coupon = CouponFactory(discount_value=Decimal('500'))
        PersonalAssignmentFactory(coupon=coupon, user=self.buyer, course=self.course)
        self.assertEqual(build_quote(CourseFactory(), buyer=self.buyer).applied_coupons, ())

    def test_quote_is_repeatable(self):
        CouponFactory(discount_type=DiscountType.PERCENTAGE, discount_value=Decimal('12.5'))
        AgentCouponFactory(discount_value=Decimal('333.33'))
        now = timezone.now()
        self.assertEqual(
            build_quote(self.course, buyer=self.buyer, now=now),
            build_quote(self.course, buyer=self.buyer, now=now),
        )

    def test_as_dict_is_json_safe(self):
        CouponFactory(code='FLAT2000', discount_value=Decimal('2000'))
        data = build_quote(self.course).as_dict()
        self.assertEqual(data['final_price'], '18000.00')
        self.assertEqual(data['applied_coupons'][0]['code'], 'FLAT2000')
        self.assertEqual(data['applied_coupons'][0]['tier'], 'ADMIN')


class ValidateCouponCodeTests(TestCase):

    def setUp(self):
        self.course = CourseFactory()
        self.buyer = UserFactory()

    def test_unknown_code(self):
        result = validate_coupon_code('MISSING', self.course, buyer=self.buyer)
        self.assertFalse(result.valid)
        self.assertEqual(result.reason, Reason.NOT_FOUND)
        self.assertEqual(result.message, "Invalid coupon code.")

    def test_each_rule_has_its_own_reason(self):
        now = timezone.now()
        cases = {
            Reason.INACTIVE: CouponFactory(is_active=False),
            Reason.NOT_YET_VALID: CouponFactory(valid_from=now + timedelta(days=1), valid_until=now + timedelta(days=2)),
            Reason.EXPIRED: CouponFactory(valid_from=now - timedelta(days=2), valid_until=now - timedelta(days=1)),
            Reason.USAGE_LIMIT_REACHED: CouponFactory(max_usage_count=3, current_usage_count=3),
            Reason.NOT_VALID_FOR_COURSE: CouponFactory(courses=[CourseFactory()]),
        }
        for reason, coupon in cases.items():
            with self.subTest(reason=reason):
                result = validate_coupon_code(coupon.code, self.course, buyer=self.buyer, now=now)
                self.assertEqual(result.reason, reason)

    def test_personal_reasons(self):
        coupon = CouponFactory()
        PersonalAssignmentFactory(coupon=coupon, user=self.buyer, course=self.course)

        self.assertEqual(validate_coupon_code(coupon.code, self.course).reason, Reason.LOGIN_REQUIRED)
        self.assertEqual(
            validate_coupon_code(coupon.code, self.course, buyer=UserFactory()).reason,
            Reason.NOT_ASSIGNED_TO_YOU,
        )
        result = validate_coupon_code(coupon.code.lower(), self.course, buyer=self.buyer)
        self.assertTrue(result.valid)
        self.assertTrue(result.is_personal)

    def test_agent_coupon_reports_commission_rate(self):
        agent = AgentFactory(commission_rate=Decimal('0.1200'))
        coupon = AgentCouponFactory(created_by_agent=agent)
        result = validate_coupon_code(coupon.code, self.course, buyer=self.buyer)
        self.assertTrue(result.valid)
        self.assertEqual(result.commission_rate, Decimal('0.1200'))

    def test_rejection_is_logged(self):
        coupon = CouponFactory(is_active=False)
        with self.assertLogs('backend.apps.coupons.services', level='WARNING'):
            validate_coupon_code(coupon.code, self.course)


class AssignCouponTests(TestCase):

    def test_assignment_is_replaced_per_user_and_course(self):
        admin = AdminFactory()
        buyer = UserFactory()
        course = CourseFactory()
        first, second = CouponFactory(), CouponFactory()

        _, created = assign_coupon(first, buyer, course, admin)
        self.assertTrue(created)
        assignment, created = assign_coupon(second, buyer, course, admin)
        self.assertFalse(created)
        self.assertEqual(assignment.coupon, second)
        self.assertEqual(PersonalAssignment.objects.filter(user=buyer, course=course).count(), 1)


class CouponModelTests(TestCase):

    def test_code_is_stored_upper_case(self):
        coupon = CouponFactory(code='summer-sale')
        self.assertEqual(coupon.code, 'SUMMER-SALE')

    def test_apply_usage_respects_cap(self):
        coupon = CouponFactory(max_usage_count=1)
        self.assertTrue(coupon.apply_usage())
        self.assertEqual(coupon.current_usage_count, 1)
        self.assertFalse(coupon.apply_usage())
        coupon.refresh_from_db()
        self.assertEqual(coupon.current_usage_count, 1)

    def test_apply_usage_unlimited(self):
        coupon = CouponFactory(max_usage_count=None)
        for _ in range(3):
            self.assertTrue(coupon.apply_usage())
        self.assertEqual(coupon.current_usage_count, 3)

    def test_generated_agent_code(self):
        agent = AgentFactory(jyotishi_code='JD001')
        coupon_type = type('T', (), {'type_code': '05'})()
        self.assertEqual(Coupon.generate_agent_code(agent, coupon_type, Decimal('12.50')), 'COUPJD00105125')
        self.assertEqual(Coupon.generate_agent_code(agent, coupon_type, Decimal('10')), 'COUPJD0010510')
