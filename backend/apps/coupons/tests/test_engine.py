from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
import uuid

from django.test import SimpleTestCase

from backend.apps.coupons.catalog import CouponSnapshot
from backend.apps.coupons.commission import derive_commissions, resolve_rate
from backend.apps.coupons.eligibility import Reason, check_eligibility
from backend.apps.coupons.models import DiscountType
from backend.apps.coupons.stacking import (
    Candidate,
    FixedAmount,
    Percentage,
    Tier,
    discount_of,
    stack,
)

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=dt_timezone.utc)
COURSE_X = uuid.uuid4()
COURSE_Y = uuid.uuid4()
BUYER_A = uuid.uuid4()
BUYER_B = uuid.uuid4()


def make_coupon(**overrides):
    values = {
        'id': uuid.uuid4(),
        'code': 'SAVE2000',
        'discount_type': DiscountType.FIXED_AMOUNT,
        'discount_value': Decimal('2000.00'),
        'valid_from': NOW - timedelta(days=1),
        'valid_until': NOW + timedelta(days=30),
        'is_active': True,
        'current_usage_count': 0,
    }
    values.update(overrides)
    return CouponSnapshot(**values)


def agent_coupon(rate=Decimal('0.1000'), **overrides):
    return make_coupon(agent_id=overrides.pop('agent_id', uuid.uuid4()), agent_commission_rate=rate, **overrides)


class EligibilityTests(SimpleTestCase):

    def test_plain_coupon_is_eligible(self):
        result = check_eligibility(make_coupon(), NOW, COURSE_X)
        self.assertTrue(result.eligible)
        self.assertFalse(result.is_personal)
        self.assertIsNone(result.reason)

    def test_inactive_is_reported_first(self):
        coupon = make_coupon(is_active=False, valid_until=NOW - timedelta(days=1))
        self.assertEqual(check_eligibility(coupon, NOW, COURSE_X).reason, Reason.INACTIVE)

    def test_not_yet_valid(self):
        coupon = make_coupon(valid_from=NOW + timedelta(hours=1))
        self.assertEqual(check_eligibility(coupon, NOW, COURSE_X).reason, Reason.NOT_YET_VALID)

    def test_expired_regardless_of_other_fields(self):
        coupon = make_coupon(valid_until=NOW - timedelta(seconds=1), course_ids=frozenset({COURSE_X}))
        result = check_eligibility(coupon, NOW, COURSE_X, BUYER_A)
        self.assertFalse(result.eligible)
        self.assertEqual(result.reason, Reason.EXPIRED)
        self.assertEqual(result.message, "This coupon has expired.")

    def test_window_bounds_are_inclusive(self):
        self.assertTrue(check_eligibility(make_coupon(valid_from=NOW), NOW, COURSE_X).eligible)
        self.assertTrue(check_eligibility(make_coupon(valid_until=NOW), NOW, COURSE_X).eligible)

    def test_usage_cap_reached_is_excluded(self):
        coupon = make_coupon(max_usage_count=1, current_usage_count=1)
        self.assertEqual(check_eligibility(coupon, NOW, COURSE_X).reason, Reason.USAGE_LIMIT_REACHED)

    def test_usage_below_cap_is_eligible(self):
        coupon = make_coupon(max_usage_count=2, current_usage_count=1)
        self.assertTrue(check_eligibility(coupon, NOW, COURSE_X).eligible)

    def test_course_restriction(self):
        coupon = make_coupon(course_ids=frozenset({COURSE_X}))
        self.assertTrue(check_eligibility(coupon, NOW, COURSE_X).eligible)
        self.assertEqual(check_eligibility(coupon, NOW, COURSE_Y).reason, Reason.NOT_VALID_FOR_COURSE)

    def test_personal_coupon_requires_login(self):
        coupon = make_coupon(assignments=frozenset({(BUYER_B, COURSE_X)}))
        self.assertEqual(check_eligibility(coupon, NOW, COURSE_X).reason, Reason.LOGIN_REQUIRED)

    def test_personal_coupon_applies_to_assigned_pair(self):
        coupon = make_coupon(assignments=frozenset({(BUYER_B, COURSE_X)}))
        result = check_eligibility(coupon, NOW, COURSE_X, BUYER_B)
        self.assertTrue(result.eligible)
        self.assertTrue(result.is_personal)

    def test_personal_coupon_rejects_other_buyer(self):
        coupon = make_coupon(assignments=frozenset({(BUYER_B, COURSE_X)}))
        self.assertEqual(check_eligibility(coupon, NOW, COURSE_X, BUYER_A).reason, Reason.NOT_ASSIGNED_TO_YOU)

    def test_personal_coupon_rejects_other_course(self):
        coupon = make_coupon(assignments=frozenset({(BUYER_A, COURSE_X)}))
        self.assertEqual(check_eligibility(coupon, NOW, COURSE_Y, BUYER_A).reason, Reason.NOT_VALID_FOR_COURSE)


class DiscountKindTests(SimpleTestCase):

    def test_fixed_amount_clamps_to_running_price(self):
        self.assertEqual(FixedAmount(Decimal('500')).amount_off(Decimal('300.00')), Decimal('300.00'))

    def test_percentage_rounds_half_up(self):
        # 12.5% of 99.99 = 12.49875
        self.assertEqual(Percentage(Decimal('12.5')).amount_off(Decimal('99.99')), Decimal('12.50'))

    def test_kind_follows_discount_type(self):
        self.assertEqual(discount_of(make_coupon()), FixedAmount(Decimal('2000.00')))
        pct = make_coupon(discount_type=DiscountType.PERCENTAGE, discount_value=Decimal('10'))
        self.assertEqual(discount_of(pct), Percentage(Decimal('10')))

    def test_corrupt_coupons_discount_nothing(self):
        corrupt = [
            make_coupon(discount_value=Decimal('-5')),
            make_coupon(discount_type=DiscountType.PERCENTAGE, discount_value=Decimal('150')),
            make_coupon(valid_from=NOW, valid_until=NOW),
        ]
        for coupon in corrupt:
            with self.assertLogs('backend.apps.coupons.stacking', level='ERROR'):
                self.assertEqual(discount_of(coupon), FixedAmount(Decimal('0.00')))


class StackingTests(SimpleTestCase):

    def test_single_admin_fixed_coupon(self):
        result = stack(Decimal('20000'), [Candidate(make_coupon())])
        self.assertEqual(result.final_price, Decimal('18000.00'))
        self.assertEqual(result.admin_discount_total, Decimal('2000.00'))
        self.assertEqual(result.agent_discount_total, Decimal('0.00'))
        self.assertEqual(len(result.applied), 1)
        self.assertEqual(result.applied[0].tier, Tier.ADMIN)

    def test_admin_percentage_then_agent_fixed(self):
        admin = make_coupon(code='TENOFF', discount_type=DiscountType.PERCENTAGE, discount_value=Decimal('10'))
        agent = agent_coupon(code='AGENT1000', discount_value=Decimal('1000'))
        result = stack(Decimal('20000'), [Candidate(admin), Candidate(agent)])
        self.assertEqual(result.price_after_admin_discounts, Decimal('18000.00'))
        self.assertEqual(result.final_price, Decimal('17000.00'))
        self.assertEqual([e.code for e in result.applied], ['TENOFF', 'AGENT1000'])

    def test_admin_tier_is_applied_before_agent_regardless_of_order(self):
        admin = make_coupon(code='TENOFF', discount_type=DiscountType.PERCENTAGE, discount_value=Decimal('10'))
        agent = agent_coupon(code='AGENT1000', discount_value=Decimal('1000'))
        result = stack(Decimal('20000'), [Candidate(agent), Candidate(admin)])
        # 10% of the undiscounted price, not of 19000
        self.assertEqual(result.applied[0].code, 'TENOFF')
        self.assertEqual(result.applied[0].discount_amount, Decimal('2000.00'))
        self.assertEqual(result.final_price, Decimal('17000.00'))

    def test_percentages_compound(self):
        first = make_coupon(code='TEN', discount_type=DiscountType.PERCENTAGE, discount_value=Decimal('10'))
        second = make_coupon(code='TEN2', discount_type=DiscountType.PERCENTAGE, discount_value=Decimal('10'))
        result = stack(Decimal('1000'), [Candidate(first), Candidate(second)])
        self.assertEqual(result.final_price, Decimal('810.00'))

    def test_fixed_larger_than_price_clamps_to_zero(self):
        big = make_coupon(discount_value=Decimal('50000'))
        later = agent_coupon(code='AGENT500', discount_value=Decimal('500'))
        result = stack(Decimal('20000'), [Candidate(big), Candidate(later)])
        self.assertEqual(result.final_price, Decimal('0.00'))
        self.assertEqual(result.applied[0].discount_amount, Decimal('20000.00'))
        # Nothing left to discount, so the agent coupon is not recorded
        self.assertEqual(len(result.applied), 1)

    def test_same_coupon_is_applied_once(self):
        coupon = make_coupon()
        result = stack(Decimal('20000'), [Candidate(coupon), Candidate(coupon, is_personal=True)])
        self.assertEqual(len(result.applied), 1)
        self.assertFalse(result.applied[0].is_personal)

    def test_final_price_equals_original_minus_discounts(self):
        candidates = [
            Candidate(make_coupon(code='P1', discount_type=DiscountType.PERCENTAGE, discount_value=Decimal('33.33'))),
            Candidate(make_coupon(code='F1', discount_value=Decimal('123.45'))),
            Candidate(agent_coupon(code='P2', discount_type=DiscountType.PERCENTAGE, discount_value=Decimal('7.5'))),
        ]
        result = stack(Decimal('9999.99'), candidates)
        applied_total = sum(e.discount_amount for e in result.applied)
        self.assertEqual(result.final_price, result.original_price - applied_total)
        self.assertEqual(result.total_discount, applied_total)
        self.assertGreaterEqual(result.final_price, Decimal('0'))

    def test_stacking_is_deterministic(self):
        candidates = [
            Candidate(make_coupon(code='P1', discount_type=DiscountType.PERCENTAGE, discount_value=Decimal('15'))),
            Candidate(agent_coupon(code='A1', discount_value=Decimal('250'))),
        ]
        self.assertEqual(stack(Decimal('4999'), candidates), stack(Decimal('4999'), candidates))

    def test_no_candidates(self):
        result = stack(Decimal('20000'), [])
        self.assertEqual(result.final_price, Decimal('20000.00'))
        self.assertEqual(result.applied, ())


class CommissionTests(SimpleTestCase):

    def test_rate_precedence(self):
        self.assertEqual(resolve_rate(Decimal('0.2'), Decimal('0.1')), Decimal('0.2'))
        self.assertEqual(resolve_rate(None, Decimal('0.1')), Decimal('0.1'))
        self.assertEqual(resolve_rate(None, None), Decimal('0'))

    def test_commission_on_final_price(self):
        agent_id = uuid.uuid4()
        admin = make_coupon(code='TENOFF', discount_type=DiscountType.PERCENTAGE, discount_value=Decimal('10'))
        agent = agent_coupon(code='AGENT1000', discount_value=Decimal('1000'), agent_id=agent_id)
        result = stack(Decimal('20000'), [Candidate(admin), Candidate(agent)])

        commissions = derive_commissions(result.applied, result.final_price, {agent_id: Decimal('0.1000')})
        self.assertEqual(len(commissions), 1)
        self.assertEqual(commissions[0].agent_id, agent_id)
        self.assertEqual(commissions[0].sale_amount, Decimal('17000.00'))
        self.assertEqual(commissions[0].commission_amount, Decimal('1700.00'))

    def test_course_override_wins(self):
        agent_id = uuid.uuid4()
        agent = agent_coupon(code='AGENT1000', discount_value=Decimal('1000'), agent_id=agent_id)
        result = stack(Decimal('20000'), [Candidate(agent)])
        commissions = derive_commissions(
            result.applied, result.final_price, {agent_id: Decimal('0.1000')}, Decimal('0.0500')
        )
        self.assertEqual(commissions[0].rate, Decimal('0.0500'))
        self.assertEqual(commissions[0].commission_amount, Decimal('950.00'))

    def test_admin_coupons_earn_no_commission(self):
        result = stack(Decimal('20000'), [Candidate(make_coupon())])
        self.assertEqual(derive_commissions(result.applied, result.final_price, {}), [])

    def test_missing_rate_gives_zero_commission(self):
        agent_id = uuid.uuid4()
        agent = agent_coupon(rate=None, agent_id=agent_id)
        result = stack(Decimal('20000'), [Candidate(agent)])
        commissions = derive_commissions(result.applied, result.final_price, {agent_id: None})
        self.assertEqual(commissions[0].commission_amount, Decimal('0.00'))
