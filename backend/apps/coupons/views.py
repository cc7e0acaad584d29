"""
Coupon views: code validation, authoring and personal assignment.
"""
import logging

from django.db.models import ProtectedError
from django.shortcuts import get_object_or_404
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema
from rest_framework import filters, mixins, serializers, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from backend.apps.accounts.models import User
from backend.apps.accounts.permissions import IsAdmin, IsAgent, IsAgentOrAdmin
from backend.core.exceptions import CouponIneligible, CouponNotFound

from .eligibility import Reason
from .models import Coupon, CouponType, PersonalAssignment
from .serializers import (
    AgentCouponSerializer,
    CodePreviewSerializer,
    CouponSerializer,
    CouponTypeSerializer,
    CouponValidateSerializer,
    PersonalAssignmentSerializer,
)
from .services import assign_coupon, validate_coupon_code

logger = logging.getLogger(__name__)


def _is_admin(user):
    return getattr(user, 'role', None) == User.Role.ADMIN


# ----------------------------------------------------------------------
# SINGLE-CODE VALIDATION
# ----------------------------------------------------------------------

class CouponValidateView(APIView):
    """
    Check one coupon code against a course for the current visitor.
    Unknown codes answer 404; every other failure answers 400 with its reason.
    """
    permission_classes = [AllowAny]
    serializer_class = CouponValidateSerializer

    @extend_schema(request=CouponValidateSerializer)
    def post(self, request):
        serializer = CouponValidateSerializer(data=request.data, context={})
        serializer.is_valid(raise_exception=True)
        course = serializer.context['course']

        result = validate_coupon_code(serializer.validated_data['code'], course, buyer=request.user)
        if result.reason == Reason.NOT_FOUND:
            raise CouponNotFound()
        if not result.valid:
            raise CouponIneligible(result.reason.value, detail=result.message)

        coupon = result.coupon
        return Response({
            'valid': True,
            'coupon': {
                'id': str(coupon.id),
                'code': coupon.code,
                'discount_type': coupon.discount_type,
                'discount_value': str(coupon.discount_value),
                'description': coupon.description,
                'tier': 'AGENT' if coupon.is_agent_coupon else 'ADMIN',
                'is_personal': result.is_personal,
            },
            'commission': {
                'agent_id': str(coupon.agent_id),
                'commission_rate': str(result.commission_rate),
            } if coupon.is_agent_coupon else None,
        }, status=status.HTTP_200_OK)


# ----------------------------------------------------------------------
# COUPON TYPES
# ----------------------------------------------------------------------

class CouponTypeViewSet(viewsets.ModelViewSet):
    """
    Admin CRUD for coupon types. Agents may list active types to author coupons.
    """
    serializer_class = CouponTypeSerializer
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['is_active', 'discount_type']
    search_fields = ['type_code', 'type_name']
    ordering_fields = ['type_code', 'created_at']

    def get_permissions(self):
        if self.action in ['list', 'retrieve']:
            permission_classes = [IsAuthenticated, IsAgentOrAdmin]
        else:
            permission_classes = [IsAuthenticated, IsAdmin]
        return [permission() for permission in permission_classes]

    def get_queryset(self):
        if getattr(self, 'swagger_fake_view', False):
            return CouponType.objects.none()
        queryset = CouponType.objects.all().order_by('type_code')
        if not _is_admin(self.request.user):
            queryset = queryset.filter(is_active=True)
        return queryset

    def perform_destroy(self, instance):
        try:
            instance.delete()
        except ProtectedError:
            raise serializers.ValidationError(
                "Coupon type is used by existing coupons; deactivate it instead."
            )

    @action(detail=False, methods=['get'], url_path='next-code')
    def next_code(self, request):
        """First unused two-digit type code."""
        used = {int(code) for code in CouponType.objects.values_list('type_code', flat=True) if code.isdigit()}
        for candidate in range(1, 100):
            if candidate not in used:
                return Response({'next_code': f"{candidate:02d}"})
        return Response(
            {'error': True, 'message': 'All type codes (01-99) are used'},
            status=status.HTTP_400_BAD_REQUEST
        )

    @action(detail=True, methods=['post'])
    def toggle(self, request, pk=None):
        coupon_type = self.get_object()
        coupon_type.is_active = not coupon_type.is_active
        coupon_type.save(update_fields=['is_active', 'updated_at'])
        return Response({
            'success': True,
            'message': f'Coupon type {"activated" if coupon_type.is_active else "deactivated"}',
            'is_active': coupon_type.is_active,
        })


# ----------------------------------------------------------------------
# COUPONS
# ----------------------------------------------------------------------

class CouponViewSet(viewsets.ModelViewSet):
    """
    Coupon authoring. Admins manage every coupon; agents manage their own,
    with codes generated from their agent code and the chosen type.
    """
    permission_classes = [IsAuthenticated, IsAgentOrAdmin]
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['is_active', 'discount_type', 'coupon_type', 'created_by_agent']
    search_fields = ['code', 'description']
    ordering_fields = ['created_at', 'valid_from', 'valid_until', 'current_usage_count']

    def get_queryset(self):
        if getattr(self, 'swagger_fake_view', False):
            return Coupon.objects.none()
        queryset = (
            Coupon.objects.select_related('coupon_type', 'created_by_agent')
            .prefetch_related('courses')
            .order_by('-created_at')
        )
        if not _is_admin(self.request.user):
            queryset = queryset.filter(created_by_agent=self.request.user)
        return queryset

    def get_serializer_class(self):
        if getattr(self, 'swagger_fake_view', False) or _is_admin(self.request.user):
            return CouponSerializer
        return AgentCouponSerializer

    def perform_create(self, serializer):
        coupon = serializer.save()
        logger.info("Coupon %s created by %s", coupon.code, self.request.user.pk)

    def perform_destroy(self, instance):
        if instance.current_usage_count > 0:
            raise serializers.ValidationError(
                "Coupon has already been used; deactivate it instead of deleting."
            )
        try:
            instance.delete()
        except ProtectedError:
            raise serializers.ValidationError(
                "Coupon is attached to existing payments; deactivate it instead."
            )
        logger.info("Coupon %s deleted by %s", instance.code, self.request.user.pk)

    @action(detail=True, methods=['post'])
    def toggle(self, request, pk=None):
        coupon = self.get_object()
        coupon.is_active = not coupon.is_active
        coupon.save(update_fields=['is_active', 'updated_at'])
        return Response({
            'success': True,
            'message': f'Coupon {"activated" if coupon.is_active else "deactivated"}',
            'is_active': coupon.is_active,
        })

    @extend_schema(request=CodePreviewSerializer)
    @action(detail=False, methods=['post'], url_path='preview-code', permission_classes=[IsAuthenticated, IsAgent])
    def preview_code(self, request):
        """Show the code an agent coupon would receive, and whether it is taken."""
        serializer = CodePreviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        if not request.user.jyotishi_code:
            raise serializers.ValidationError("Your account has no agent code; contact an administrator.")
        coupon_type = serializer.validated_data['coupon_type']
        code = Coupon.generate_agent_code(
            request.user, coupon_type, serializer.validated_data['discount_value']
        )
        return Response({
            'coupon_code': code,
            'exists': Coupon.objects.filter(code__iexact=code).exists(),
            'coupon_type': {
                'code': coupon_type.type_code,
                'name': coupon_type.type_name,
                'discount_type': coupon_type.discount_type,
            },
        })

    @action(detail=False, methods=['get'], url_path=r'lookup/(?P<code>[^/]+)', permission_classes=[AllowAny])
    def lookup(self, request, code=None):
        """Public display details for an active coupon code."""
        coupon = get_object_or_404(
            Coupon.objects.select_related('coupon_type', 'created_by_agent'),
            code__iexact=code, is_active=True
        )
        agent = coupon.created_by_agent
        return Response({
            'code': coupon.code,
            'discount_type': coupon.discount_type,
            'discount_value': str(coupon.discount_value),
            'description': coupon.description,
            'valid_until': coupon.valid_until,
            'type_name': coupon.coupon_type.type_name if coupon.coupon_type else None,
            'agent_name': agent.get_full_name() if agent else None,
        })


# ----------------------------------------------------------------------
# PERSONAL ASSIGNMENTS
# ----------------------------------------------------------------------

class PersonalAssignmentViewSet(mixins.ListModelMixin,
                                mixins.RetrieveModelMixin,
                                mixins.CreateModelMixin,
                                mixins.DestroyModelMixin,
                                viewsets.GenericViewSet):
    """
    Assign coupons to individual students for a course.
    Agents may only assign (and see) their own coupons.
    """
    serializer_class = PersonalAssignmentSerializer
    permission_classes = [IsAuthenticated, IsAgentOrAdmin]
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ['coupon', 'user', 'course']
    ordering_fields = ['assigned_at']

    def get_queryset(self):
        if getattr(self, 'swagger_fake_view', False):
            return PersonalAssignment.objects.none()
        queryset = PersonalAssignment.objects.select_related('coupon', 'user', 'course').order_by('-assigned_at')
        if not _is_admin(self.request.user):
            queryset = queryset.filter(coupon__created_by_agent=self.request.user)
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        assignment, created = assign_coupon(data['coupon'], data['user'], data['course'], request.user)
        return Response({
            'success': True,
            'message': 'Coupon assigned successfully' if created else 'Coupon assignment updated successfully',
            'data': self.get_serializer(assignment).data,
        }, status=status.HTTP_201_CREATED if created else status.HTTP_200_OK)
