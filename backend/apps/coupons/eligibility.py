"""
Per-coupon eligibility rules.

Rules run in a fixed order and the first failure is reported, so the
buyer always sees the most fundamental reason a coupon does not apply.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from .catalog import CouponSnapshot


class Reason(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    INACTIVE = "INACTIVE"
    NOT_YET_VALID = "NOT_YET_VALID"
    EXPIRED = "EXPIRED"
    USAGE_LIMIT_REACHED = "USAGE_LIMIT_REACHED"
    NOT_VALID_FOR_COURSE = "NOT_VALID_FOR_COURSE"
    LOGIN_REQUIRED = "LOGIN_REQUIRED"
    NOT_ASSIGNED_TO_YOU = "NOT_ASSIGNED_TO_YOU"


REASON_MESSAGES = {
    Reason.NOT_FOUND: "Invalid coupon code.",
    Reason.INACTIVE: "This coupon is no longer active.",
    Reason.NOT_YET_VALID: "This coupon is not yet valid.",
    Reason.EXPIRED: "This coupon has expired.",
    Reason.USAGE_LIMIT_REACHED: "This coupon has reached its usage limit.",
    Reason.NOT_VALID_FOR_COURSE: "This coupon is not valid for the selected course.",
    Reason.LOGIN_REQUIRED: "Please log in to use this coupon.",
    Reason.NOT_ASSIGNED_TO_YOU: "This coupon is not assigned to you.",
}


@dataclass(frozen=True)
class EligibilityResult:
    eligible: bool
    reason: Optional[Reason] = None
    is_personal: bool = False

    @property
    def message(self) -> str:
        if self.reason is None:
            return "Coupon applied."
        return REASON_MESSAGES[self.reason]


ELIGIBLE = EligibilityResult(eligible=True)
ELIGIBLE_PERSONAL = EligibilityResult(eligible=True, is_personal=True)


def _reject(reason: Reason) -> EligibilityResult:
    return EligibilityResult(eligible=False, reason=reason)


def check_eligibility(coupon: CouponSnapshot, now: datetime, course_id, buyer_id=None) -> EligibilityResult:
    """
    Decide whether ``coupon`` may be applied to ``course_id`` for
    ``buyer_id`` (None for an anonymous visitor) at ``now``.
    """
    if not coupon.is_active:
        return _reject(Reason.INACTIVE)

    if now < coupon.valid_from:
        return _reject(Reason.NOT_YET_VALID)
    if now > coupon.valid_until:
        return _reject(Reason.EXPIRED)

    if coupon.max_usage_count is not None and coupon.current_usage_count >= coupon.max_usage_count:
        return _reject(Reason.USAGE_LIMIT_REACHED)

    if coupon.course_ids and course_id not in coupon.course_ids:
        return _reject(Reason.NOT_VALID_FOR_COURSE)

    if not coupon.assignments:
        return ELIGIBLE

    # Personally assigned coupons are exclusive to the assigned (buyer, course) pairs.
    if buyer_id is None:
        return _reject(Reason.LOGIN_REQUIRED)
    if (buyer_id, course_id) in coupon.assignments:
        return ELIGIBLE_PERSONAL
    if any(assigned_course == course_id for _, assigned_course in coupon.assignments):
        return _reject(Reason.NOT_ASSIGNED_TO_YOU)
    return _reject(Reason.NOT_VALID_FOR_COURSE)
