from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import CouponTypeViewSet, CouponValidateView, CouponViewSet, PersonalAssignmentViewSet

router = DefaultRouter()
router.register(r'coupons', CouponViewSet, basename='coupon')
router.register(r'coupon-types', CouponTypeViewSet, basename='coupon-type')
router.register(r'assignments', PersonalAssignmentViewSet, basename='coupon-assignment')

urlpatterns = [
    path('validate/', CouponValidateView.as_view(), name='coupon-validate'),
    path('', include(router.urls)),
]
