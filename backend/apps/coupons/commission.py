"""
Agent commission derivation.

Each applied agent coupon attributes the sale to its creator. The rate
is the course's override when one is set, else the agent's own rate,
else zero; commission is that rate times the final price paid.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Mapping, Optional, Sequence
from uuid import UUID

from backend.core.money import ZERO, fraction_of

from .stacking import AppliedCoupon, Tier


@dataclass(frozen=True)
class CommissionAttribution:
    agent_id: UUID
    coupon_id: UUID
    coupon_code: str
    rate: Decimal
    sale_amount: Decimal
    commission_amount: Decimal


def resolve_rate(course_rate: Optional[Decimal], agent_rate: Optional[Decimal]) -> Decimal:
    if course_rate is not None:
        return course_rate
    if agent_rate is not None:
        return agent_rate
    return Decimal("0")


def derive_commissions(applied: Sequence[AppliedCoupon], final_price: Decimal,
                       agent_rates: Mapping[UUID, Optional[Decimal]],
                       course_rate: Optional[Decimal] = None) -> List[CommissionAttribution]:
    attributions = []
    for entry in applied:
        if entry.tier != Tier.AGENT or entry.agent_id is None:
            continue
        rate = resolve_rate(course_rate, agent_rates.get(entry.agent_id))
        attributions.append(CommissionAttribution(
            agent_id=entry.agent_id,
            coupon_id=entry.coupon_id,
            coupon_code=entry.code,
            rate=rate,
            sale_amount=final_price,
            commission_amount=fraction_of(final_price, rate) if rate else ZERO,
        ))
    return attributions
