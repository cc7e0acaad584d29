"""
Custom validators for the course commerce back office.
"""
import re
from decimal import Decimal
from django.core.exceptions import ValidationError
from django.utils.translation import gettext_lazy as _


def validate_coupon_code_format(value):
    """Validate coupon code format (case-insensitive, stored upper-case)."""
    if not re.match(r'^[A-Z0-9_-]{3,50}$', value.upper()):
        raise ValidationError(
            _('Coupon code must be 3 to 50 characters of letters, digits, "-" or "_".'),
            code='invalid_format'
        )

    return value


def validate_jyotishi_code(value):
    """Validate agent code format, e.g. JD001."""
    if not re.match(r'^[A-Z]{2}[0-9]{3}$', value.upper()):
        raise ValidationError(
            _('Agent code must be two uppercase letters followed by three digits (e.g. JD001).'),
            code='invalid_agent_code'
        )

    return value


def validate_type_code(value):
    """Validate coupon type code: two digits between 01 and 99."""
    if not re.match(r'^[0-9]{2}$', value) or value == '00':
        raise ValidationError(
            _('Type code must be two digits between 01 and 99.'),
            code='invalid_type_code'
        )

    return value


def validate_rate_fraction(value):
    """Validate a commission rate stored as a fraction (0.10 = 10%)."""
    if value is None:
        return value

    if value < Decimal('0') or value > Decimal('1'):
        raise ValidationError(
            _('Rate must be a fraction between 0 and 1 (e.g. 0.10 for 10 percent).'),
            code='invalid_rate'
        )

    return value


def validate_positive_amount(value):
    """Reject zero or negative monetary amounts."""
    if value is not None and value <= 0:
        raise ValidationError(
            _('Amount must be greater than zero.'),
            code='non_positive_amount'
        )

    return value
