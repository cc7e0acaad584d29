"""
Custom exceptions and DRF exception handler for the course commerce back office.
"""
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
from rest_framework.exceptions import APIException


def custom_exception_handler(exc, context):
    """
    Custom exception handler for DRF.
    Standardizes all API error responses into a consistent format.
    """
    # Call REST framework's default exception handler first
    response = exception_handler(exc, context)

    if response is not None:
        # response.data may be a dict, list, or string; we preserve it in 'details'
        if isinstance(response.data, dict) and 'detail' in response.data:
            # DRF typically puts the main message under 'detail'
            message = response.data['detail']
        else:
            message = 'Request could not be processed.'

        custom_data = {
            'error': True,
            'code': response.status_code,
            'message': message,
            'details': response.data,   # Preserve full original DRF error structure
        }
        reason = getattr(exc, 'reason', None)
        if reason:
            custom_data['reason'] = reason
        response.data = custom_data
    else:
        # Ensure we don't crash on __str__ if it's not implemented
        try:
            exc_str = str(exc)
        except Exception:
            exc_str = None

        response = Response({
            'error': True,
            'code': status.HTTP_500_INTERNAL_SERVER_ERROR,
            'message': 'Internal server error',
            'details': exc_str
        }, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return response


class CouponNotFound(APIException):
    """
    Raised when a coupon code does not exist.
    Automatically returns HTTP 404 Not Found.
    """
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Invalid coupon code.'
    default_code = 'coupon_not_found'
    reason = 'NOT_FOUND'


class CouponIneligible(APIException):
    """
    Raised when a coupon exists but cannot be used for this course/buyer.
    Carries the machine-readable ineligibility reason.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'This coupon cannot be applied.'
    default_code = 'coupon_ineligible'

    def __init__(self, reason, detail=None):
        self.reason = reason
        super().__init__(detail=detail, code=reason.lower())


class ConcurrentExhaustion(APIException):
    """
    Raised when a coupon's usage cap was consumed by a concurrent
    payment between quote and completion.
    Automatically returns HTTP 409 Conflict.
    """
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'This coupon has just reached its usage limit. Please request a new quote.'
    default_code = 'coupon_exhausted'

    def __init__(self, coupon_code=None, detail=None):
        self.coupon_code = coupon_code
        if detail is None and coupon_code:
            detail = f'Coupon {coupon_code} has just reached its usage limit. Please request a new quote.'
        super().__init__(detail=detail)


class OrderRejected(APIException):
    """
    Raised when an order cannot be opened (already enrolled, pending
    order exists, course not on sale).
    Automatically returns HTTP 400 Bad Request.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'This order cannot be created.'
    default_code = 'order_rejected'


class PaymentError(APIException):
    """
    Exception raised for payment processing errors.
    Automatically returns HTTP 402 Payment Required.
    """
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    default_detail = 'Transaction could not be completed.'
    default_code = 'payment_failed'


class PayoutError(APIException):
    """
    Raised when a payout request or a payout status change is not allowed.
    Automatically returns HTTP 400 Bad Request.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'This payout cannot be processed.'
    default_code = 'payout_error'
