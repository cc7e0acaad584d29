"""
Pricing services: course quotes and single-code coupon validation.

Both entry points take the buyer explicitly (a User, or None for an
anonymous visitor) and never read request state.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from django.utils import timezone

from .catalog import CouponSnapshot, fetch_coupon_by_code, fetch_general_coupons, fetch_personal_coupons
from .commission import CommissionAttribution, derive_commissions, resolve_rate
from .eligibility import EligibilityResult, Reason, REASON_MESSAGES, check_eligibility
from .models import PersonalAssignment
from .stacking import AppliedCoupon, Candidate, stack

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Quote:
    course_id: UUID
    currency: str
    original_price: Decimal
    applied_coupons: Tuple[AppliedCoupon, ...]
    admin_discount_total: Decimal
    agent_discount_total: Decimal
    price_after_admin_discounts: Decimal
    final_price: Decimal
    commissions: Tuple[CommissionAttribution, ...] = ()

    @property
    def total_discount(self) -> Decimal:
        return self.admin_discount_total + self.agent_discount_total

    @property
    def has_personal_coupon(self) -> bool:
        return any(entry.is_personal for entry in self.applied_coupons)

    def as_dict(self):
        """JSON-safe representation (decimals and ids as strings)."""
        return {
            'course_id': str(self.course_id),
            'currency': self.currency,
            'original_price': str(self.original_price),
            'applied_coupons': [
                {
                    'id': str(entry.coupon_id),
                    'code': entry.code,
                    'discount_type': entry.discount_type,
                    'discount_value': str(entry.discount_value),
                    'discount_amount': str(entry.discount_amount),
                    'tier': entry.tier.value,
                    'is_personal': entry.is_personal,
                    'agent_id': str(entry.agent_id) if entry.agent_id else None,
                }
                for entry in self.applied_coupons
            ],
            'admin_discount_total': str(self.admin_discount_total),
            'agent_discount_total': str(self.agent_discount_total),
            'total_discount': str(self.total_discount),
            'price_after_admin_discounts': str(self.price_after_admin_discounts),
            'final_price': str(self.final_price),
            'has_personal_coupon': self.has_personal_coupon,
            'commissions': [
                {
                    'agent_id': str(c.agent_id),
                    'coupon_id': str(c.coupon_id),
                    'coupon_code': c.coupon_code,
                    'rate': str(c.rate),
                    'sale_amount': str(c.sale_amount),
                    'commission_amount': str(c.commission_amount),
                }
                for c in self.commissions
            ],
        }


@dataclass(frozen=True)
class CouponValidation:
    valid: bool
    reason: Optional[Reason] = None
    coupon: Optional[CouponSnapshot] = None
    is_personal: bool = False
    commission_rate: Optional[Decimal] = field(default=None)

    @property
    def message(self) -> str:
        if self.reason is None:
            return "Coupon applied."
        return REASON_MESSAGES[self.reason]


def _buyer_id(buyer):
    if buyer is None or not getattr(buyer, 'is_authenticated', False):
        return None
    return buyer.pk


def collect_candidates(course_id, buyer_id, now) -> List[Candidate]:
    """
    Fetch general and (for a known buyer) personal coupons, drop
    duplicates keeping the first occurrence, and keep the eligible ones.
    """
    coupons = fetch_general_coupons(course_id)
    if buyer_id is not None:
        coupons += fetch_personal_coupons(buyer_id, course_id)

    seen = set()
    candidates = []
    for coupon in coupons:
        if coupon.id in seen:
            continue
        seen.add(coupon.id)
        result = check_eligibility(coupon, now, course_id, buyer_id)
        if result.eligible:
            candidates.append(Candidate(coupon=coupon, is_personal=result.is_personal))
    return candidates


def price_candidates(course, candidates, currency=None) -> Quote:
    """Stack ``candidates`` on the course price and attribute commissions."""
    stacked = stack(course.price, candidates)
    agent_rates = {
        c.coupon.agent_id: c.coupon.agent_commission_rate
        for c in candidates if c.coupon.agent_id is not None
    }
    commissions = derive_commissions(
        stacked.applied, stacked.final_price, agent_rates, course.commission_rate
    )
    return Quote(
        course_id=course.id,
        currency=currency or course.currency,
        original_price=stacked.original_price,
        applied_coupons=stacked.applied,
        admin_discount_total=stacked.admin_discount_total,
        agent_discount_total=stacked.agent_discount_total,
        price_after_admin_discounts=stacked.price_after_admin_discounts,
        final_price=stacked.final_price,
        commissions=tuple(commissions),
    )


def build_quote(course, buyer=None, now=None) -> Quote:
    """Price ``course`` for ``buyer`` with every coupon that applies at ``now``."""
    now = now or timezone.now()
    buyer_id = _buyer_id(buyer)

    candidates = collect_candidates(course.id, buyer_id, now)
    quote = price_candidates(course, candidates)

    logger.info(
        "Quote for course %s (buyer=%s): %s -> %s with %d coupon(s)",
        course.id, buyer_id, quote.original_price, quote.final_price, len(quote.applied_coupons)
    )
    return quote


def validate_coupon_code(code, course, buyer=None, now=None) -> CouponValidation:
    """Check one coupon code against a course, reporting the first failed rule."""
    now = now or timezone.now()
    buyer_id = _buyer_id(buyer)

    coupon = fetch_coupon_by_code(code)
    if coupon is None:
        logger.warning("Coupon validation failed: unknown code %r for course %s", code, course.id)
        return CouponValidation(valid=False, reason=Reason.NOT_FOUND)

    result: EligibilityResult = check_eligibility(coupon, now, course.id, buyer_id)
    if not result.eligible:
        logger.warning(
            "Coupon %s rejected for course %s (buyer=%s): %s",
            coupon.code, course.id, buyer_id, result.reason.value
        )
        return CouponValidation(valid=False, reason=result.reason, coupon=coupon)

    rate = None
    if coupon.is_agent_coupon:
        rate = resolve_rate(course.commission_rate, coupon.agent_commission_rate)
    return CouponValidation(valid=True, coupon=coupon, is_personal=result.is_personal, commission_rate=rate)


def assign_coupon(coupon, user, course, assigned_by):
    """
    Grant ``coupon`` to ``user`` for ``course``. A student holds at most one
    personal coupon per course, so an existing assignment is replaced.
    Returns ``(assignment, created)``.
    """
    assignment, created = PersonalAssignment.objects.update_or_create(
        user=user,
        course=course,
        defaults={'coupon': coupon, 'assigned_by': assigned_by},
    )
    logger.info(
        "Coupon %s %s for user %s on course %s by %s",
        coupon.code, "assigned" if created else "reassigned", user.pk, course.pk, assigned_by.pk
    )
    return assignment, created
