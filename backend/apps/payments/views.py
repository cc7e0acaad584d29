"""
Payments views: order creation, gateway verification, history, commissions
and payouts.
"""
import logging

from django.db.models import Count, Q, Sum
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema
from rest_framework import filters, generics, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from backend.apps.accounts.models import User
from backend.apps.accounts.permissions import IsAdmin, IsAgent, IsAgentOrAdmin, IsOwnerOrAdmin
from backend.core.exceptions import ConcurrentExhaustion, CouponIneligible, OrderRejected
from backend.core.money import ZERO, to_money

from .models import Commission, Payment, Payout
from .serializers import (
    BulkPaySerializer,
    CommissionSerializer,
    CreateOrderSerializer,
    PaymentSerializer,
    PayoutDetailSerializer,
    PayoutRequestSerializer,
    PayoutSerializer,
    ProcessPayoutSerializer,
    TransactionSerializer,
    VerifyPaymentSerializer,
)
from .services import (
    approve_payout,
    complete_payment,
    create_order,
    fail_payment,
    mark_payout_paid,
    reject_payout,
    request_payout,
    verify_gateway_signature,
)

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# ORDER CREATION & VERIFICATION
# ----------------------------------------------------------------------

class CreateOrderView(APIView):
    """
    Open a PENDING order for a course.
    - Server-side price calculation from the live quote (client amounts are ignored).
    - Tax applied on the discounted subtotal.
    - The returned transaction_id is the reference the gateway signs.
    """
    permission_classes = [IsAuthenticated]
    serializer_class = CreateOrderSerializer

    @extend_schema(request=CreateOrderSerializer, responses=PaymentSerializer)
    def post(self, request):
        serializer = CreateOrderSerializer(data=request.data, context={})
        serializer.is_valid(raise_exception=True)
        payment = create_order(
            request.user,
            serializer.context['course'],
            payment_type=serializer.validated_data['payment_type'],
        )
        return Response(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)


class VerifyPaymentView(APIView):
    """
    Confirm a gateway payment. The signature is an HMAC-SHA256 of
    ``"{transaction_id}|{gateway_payment_id}"``; a mismatch fails the order.
    """
    permission_classes = [IsAuthenticated]
    serializer_class = VerifyPaymentSerializer

    @extend_schema(request=VerifyPaymentSerializer, responses=PaymentSerializer)
    def post(self, request):
        serializer = VerifyPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        payment = get_object_or_404(Payment, pk=data['payment_id'], user=request.user)

        if not verify_gateway_signature(payment.transaction_id, data['gateway_payment_id'], data['signature']):
            logger.warning(
                "Signature mismatch for payment %s (gateway id %s)",
                payment.invoice_number, data['gateway_payment_id']
            )
            fail_payment(payment, "Gateway signature mismatch")
            return Response({
                'error': True,
                'code': status.HTTP_400_BAD_REQUEST,
                'message': 'Payment verification failed.',
            }, status=status.HTTP_400_BAD_REQUEST)

        try:
            payment = complete_payment(payment, gateway_reference=data['gateway_payment_id'])
        except (ConcurrentExhaustion, CouponIneligible, OrderRejected) as exc:
            fail_payment(payment, str(exc.detail))
            raise

        return Response(PaymentSerializer(payment).data, status=status.HTTP_200_OK)


class UserTransactionsView(generics.ListAPIView):
    """
    List all payments for the authenticated user.
    Pagination is handled automatically via DRF settings.
    """
    serializer_class = TransactionSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        # Avoid accessing request.user during schema generation
        if getattr(self, "swagger_fake_view", False):
            return Payment.objects.none()
        return Payment.objects.filter(user=self.request.user).select_related('course').order_by('-created_at')


# ----------------------------------------------------------------------
# COMMISSIONS
# ----------------------------------------------------------------------

class CommissionViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Agents see their own commissions; admins see all and record payouts.
    """
    serializer_class = CommissionSerializer
    permission_classes = [IsAuthenticated, IsAgentOrAdmin, IsOwnerOrAdmin]
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ['status', 'agent', 'course', 'coupon']
    ordering_fields = ['created_at', 'commission_amount', 'paid_at']

    def get_queryset(self):
        if getattr(self, "swagger_fake_view", False):
            return Commission.objects.none()
        queryset = Commission.objects.select_related(
            'agent', 'student', 'course', 'coupon', 'payment'
        ).order_by('-created_at')
        if getattr(self.request.user, 'role', None) != User.Role.ADMIN:
            queryset = queryset.filter(agent=self.request.user)
        return queryset

    @action(detail=True, methods=['post'], permission_classes=[IsAuthenticated, IsAdmin])
    def pay(self, request, pk=None):
        commission = self.get_object()
        if not commission.mark_paid():
            return Response({
                'error': True,
                'code': status.HTTP_400_BAD_REQUEST,
                'message': f'Commission is {commission.status}, only PENDING commissions can be paid.',
            }, status=status.HTTP_400_BAD_REQUEST)
        logger.info("Commission %s marked paid by %s", commission.pk, request.user.pk)
        return Response(CommissionSerializer(commission).data)

    @extend_schema(request=BulkPaySerializer)
    @action(detail=False, methods=['post'], url_path='bulk-pay', permission_classes=[IsAuthenticated, IsAdmin])
    def bulk_pay(self, request):
        serializer = BulkPaySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        updated = Commission.objects.filter(
            pk__in=serializer.validated_data['ids'],
            status=Commission.Status.PENDING,
        ).update(status=Commission.Status.PAID, paid_at=timezone.now())
        logger.info("%d commission(s) marked paid by %s", updated, request.user.pk)
        return Response({'success': True, 'updated': updated})

    @action(detail=False, methods=['get'])
    def summary(self, request):
        """Totals by status for the visible commissions."""
        queryset = self.filter_queryset(self.get_queryset())
        totals = queryset.aggregate(
            count=Count('id'),
            total=Sum('commission_amount'),
            pending=Sum('commission_amount', filter=Q(status=Commission.Status.PENDING)),
            paid=Sum('commission_amount', filter=Q(status=Commission.Status.PAID)),
            sales=Sum('sale_amount'),
        )
        count = totals.pop('count')
        data = {key: str(to_money(value) if value is not None else ZERO) for key, value in totals.items()}
        return Response({'count': count, **data})


# ----------------------------------------------------------------------
# PAYOUTS
# ----------------------------------------------------------------------

class PayoutViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Agents request payouts of their pending commissions and follow them;
    admins approve, reject or mark them paid.
    """
    permission_classes = [IsAuthenticated, IsAgentOrAdmin, IsOwnerOrAdmin]
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ['status', 'agent']
    ordering_fields = ['requested_at', 'amount', 'processed_at']

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return PayoutDetailSerializer
        return PayoutSerializer

    def get_queryset(self):
        if getattr(self, "swagger_fake_view", False):
            return Payout.objects.none()
        queryset = Payout.objects.select_related('agent', 'processed_by').order_by('-requested_at')
        if self.action == 'retrieve':
            queryset = queryset.prefetch_related(
                'commissions__agent', 'commissions__student', 'commissions__course',
                'commissions__coupon', 'commissions__payment'
            )
        if getattr(self.request.user, 'role', None) != User.Role.ADMIN:
            queryset = queryset.filter(agent=self.request.user)
        return queryset

    @extend_schema(request=PayoutRequestSerializer, responses=PayoutSerializer)
    @action(detail=False, methods=['post'], url_path='request', url_name='request',
            permission_classes=[IsAuthenticated, IsAgent])
    def submit(self, request):
        serializer = PayoutRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payout = request_payout(request.user, **serializer.validated_data)
        return Response(PayoutSerializer(payout).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=ProcessPayoutSerializer, responses=PayoutSerializer)
    @action(detail=True, methods=['post'], permission_classes=[IsAuthenticated, IsAdmin])
    def process(self, request, pk=None):
        payout = self.get_object()
        serializer = ProcessPayoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if data['action'] == 'approve':
            payout = approve_payout(payout, request.user)
        elif data['action'] == 'reject':
            payout = reject_payout(payout, request.user, data['rejection_reason'].strip())
        else:
            payout = mark_payout_paid(payout, request.user, data['transaction_id'].strip())
        return Response(PayoutSerializer(payout).data)
