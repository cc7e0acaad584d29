from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import CommissionViewSet, CreateOrderView, PayoutViewSet, UserTransactionsView, VerifyPaymentView

router = DefaultRouter()
router.register(r'commissions', CommissionViewSet, basename='commission')
router.register(r'payouts', PayoutViewSet, basename='payout')

urlpatterns = [
    path('create-order/', CreateOrderView.as_view(), name='create-order'),
    path('verify/', VerifyPaymentView.as_view(), name='verify-payment'),
    path('my-transactions/', UserTransactionsView.as_view(), name='my-transactions'),
    path('', include(router.urls)),
]
