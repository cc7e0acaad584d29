"""
Coupon stacking.

Eligible coupons are applied in two sequential passes over a running
price: every administrator coupon first, then every agent coupon.
Percentages compound on the running price, fixed amounts clamp to it,
and each coupon's amount is rounded once, half-up, to the currency unit.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Set, Tuple, Union
from uuid import UUID

from backend.core.money import ZERO, percent_of, to_money

from .catalog import CouponSnapshot
from .models import DiscountType

logger = logging.getLogger(__name__)


class Tier(str, Enum):
    ADMIN = "ADMIN"
    AGENT = "AGENT"


@dataclass(frozen=True)
class FixedAmount:
    amount: Decimal

    def amount_off(self, running: Decimal) -> Decimal:
        return min(to_money(self.amount), running)


@dataclass(frozen=True)
class Percentage:
    percent: Decimal

    def amount_off(self, running: Decimal) -> Decimal:
        return min(percent_of(running, self.percent), running)


Discount = Union[FixedAmount, Percentage]


@dataclass(frozen=True)
class Candidate:
    """An eligible coupon and whether it qualified through a personal assignment."""
    coupon: CouponSnapshot
    is_personal: bool = False

    @property
    def tier(self) -> Tier:
        return Tier.AGENT if self.coupon.is_agent_coupon else Tier.ADMIN


@dataclass(frozen=True)
class AppliedCoupon:
    coupon_id: UUID
    code: str
    discount_type: str
    discount_value: Decimal
    discount_amount: Decimal
    tier: Tier
    is_personal: bool
    agent_id: Optional[UUID] = None


@dataclass(frozen=True)
class StackingResult:
    original_price: Decimal
    applied: Tuple[AppliedCoupon, ...]
    admin_discount_total: Decimal
    agent_discount_total: Decimal
    price_after_admin_discounts: Decimal
    final_price: Decimal

    @property
    def total_discount(self) -> Decimal:
        return self.admin_discount_total + self.agent_discount_total


def integrity_problem(coupon: CouponSnapshot) -> Optional[str]:
    """Describe stored coupon data the engine refuses to price, if any."""
    if coupon.discount_value < 0:
        return "negative discount value"
    if coupon.is_percentage and coupon.discount_value > 100:
        return "percentage above 100"
    if coupon.valid_from >= coupon.valid_until:
        return "validity window is empty"
    return None


def discount_of(coupon: CouponSnapshot) -> Discount:
    """Map a coupon onto its discount kind; corrupt rows discount nothing."""
    problem = integrity_problem(coupon)
    if problem is not None:
        logger.error("Coupon %s (%s) has invalid data: %s; applying zero discount",
                     coupon.code, coupon.id, problem)
        return FixedAmount(ZERO)
    if coupon.discount_type == DiscountType.PERCENTAGE:
        return Percentage(coupon.discount_value)
    return FixedAmount(coupon.discount_value)


def apply_tier(running: Decimal, candidates: Iterable[Candidate], tier: Tier,
               seen: Set[UUID]) -> Tuple[Decimal, List[AppliedCoupon]]:
    """
    One reduction pass over the coupons of ``tier``, in arrival order.
    ``seen`` holds coupon ids already applied and is updated in place.
    """
    entries = []
    for candidate in candidates:
        coupon = candidate.coupon
        if candidate.tier != tier or coupon.id in seen:
            continue
        amount = discount_of(coupon).amount_off(running)
        if amount <= 0:
            continue
        running -= amount
        seen.add(coupon.id)
        entries.append(AppliedCoupon(
            coupon_id=coupon.id,
            code=coupon.code,
            discount_type=coupon.discount_type,
            discount_value=coupon.discount_value,
            discount_amount=amount,
            tier=tier,
            is_personal=candidate.is_personal,
            agent_id=coupon.agent_id,
        ))
    return running, entries


def stack(original_price: Decimal, candidates: Sequence[Candidate]) -> StackingResult:
    """Apply administrator coupons, then agent coupons, to ``original_price``."""
    original = to_money(original_price)
    seen: Set[UUID] = set()

    running, admin_entries = apply_tier(original, candidates, Tier.ADMIN, seen)
    after_admin = running
    running, agent_entries = apply_tier(running, candidates, Tier.AGENT, seen)

    return StackingResult(
        original_price=original,
        applied=tuple(admin_entries + agent_entries),
        admin_discount_total=sum((e.discount_amount for e in admin_entries), ZERO),
        agent_discount_total=sum((e.discount_amount for e in agent_entries), ZERO),
        price_after_admin_discounts=after_admin,
        final_price=max(running, ZERO),
    )
