"""
Read-only access to the coupon catalog.

Queries here return immutable ``CouponSnapshot`` objects so the pricing
engine never touches model instances. No eligibility logic lives here;
callers must expect candidates that later fail the eligibility check.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import FrozenSet, List, Optional, Tuple
from uuid import UUID

from django.db.models import Q

from .models import Coupon, DiscountType


@dataclass(frozen=True)
class CouponSnapshot:
    id: UUID
    code: str
    discount_type: str
    discount_value: Decimal
    valid_from: datetime
    valid_until: datetime
    is_active: bool
    current_usage_count: int
    max_usage_count: Optional[int] = None
    agent_id: Optional[UUID] = None
    agent_commission_rate: Optional[Decimal] = None
    coupon_type_id: Optional[UUID] = None
    course_ids: FrozenSet[UUID] = frozenset()
    # Every (user_id, course_id) pair the coupon is personally assigned to.
    assignments: FrozenSet[Tuple[UUID, UUID]] = frozenset()
    description: str = ""

    @property
    def is_agent_coupon(self) -> bool:
        return self.agent_id is not None

    @property
    def is_percentage(self) -> bool:
        return self.discount_type == DiscountType.PERCENTAGE


def snapshot_of(coupon: Coupon) -> CouponSnapshot:
    """Freeze a coupon row (with its courses and assignments) into a snapshot."""
    agent = coupon.created_by_agent
    return CouponSnapshot(
        id=coupon.id,
        code=coupon.code,
        discount_type=coupon.discount_type,
        discount_value=coupon.discount_value,
        valid_from=coupon.valid_from,
        valid_until=coupon.valid_until,
        is_active=coupon.is_active,
        current_usage_count=coupon.current_usage_count,
        max_usage_count=coupon.max_usage_count,
        agent_id=agent.id if agent is not None else None,
        agent_commission_rate=agent.commission_rate if agent is not None else None,
        coupon_type_id=coupon.coupon_type_id,
        course_ids=frozenset(course.id for course in coupon.courses.all()),
        assignments=frozenset((a.user_id, a.course_id) for a in coupon.assignments.all()),
        description=coupon.description,
    )


def _catalog():
    return (
        Coupon.objects
        .select_related("created_by_agent")
        .prefetch_related("courses", "assignments")
        .order_by("created_at", "id")
    )


def fetch_general_coupons(course_id) -> List[CouponSnapshot]:
    """Active coupons restricted to this course or not restricted at all."""
    queryset = (
        _catalog()
        .filter(is_active=True)
        .filter(Q(courses__id=course_id) | Q(courses__isnull=True))
        .distinct()
    )
    return [snapshot_of(coupon) for coupon in queryset]


def fetch_personal_coupons(buyer_id, course_id) -> List[CouponSnapshot]:
    """Coupons personally assigned to this buyer for this course."""
    queryset = (
        _catalog()
        .filter(assignments__user_id=buyer_id, assignments__course_id=course_id)
        .distinct()
    )
    return [snapshot_of(coupon) for coupon in queryset]


def fetch_coupon_by_code(code: str) -> Optional[CouponSnapshot]:
    """Case-insensitive lookup used by the single-code validation path."""
    if not code or not code.strip():
        return None
    coupon = _catalog().filter(code__iexact=code.strip()).first()
    return snapshot_of(coupon) if coupon is not None else None
