"""
Course catalog views with live coupon pricing.
"""
from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema
from rest_framework import filters, generics, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from backend.apps.accounts.models import User
from backend.apps.accounts.permissions import IsAdminOrReadOnly
from backend.apps.coupons.services import build_quote

from .filters import CourseFilter
from .models import Course, Enrollment
from .serializers import CoursePublicSerializer, CourseSerializer, EnrollmentSerializer


def _is_admin(user):
    return getattr(user, 'role', None) == User.Role.ADMIN


class CourseViewSet(viewsets.ModelViewSet):
    """
    Course catalog. Anyone may browse; the detail view carries the price
    quote for the current visitor (anonymous visitors get general coupons only).
    """
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = CourseFilter
    search_fields = ['title', 'tagline', 'description', 'instructor', 'slug']
    ordering_fields = ['title', 'price', 'start_date', 'created_at']
    ordering = ['-created_at']
    lookup_field = 'slug'
    permission_classes = [IsAdminOrReadOnly]

    def get_queryset(self):
        queryset = Course.objects.all()
        if not _is_admin(self.request.user):
            queryset = queryset.visible()
        return queryset

    def get_serializer_class(self):
        if _is_admin(self.request.user):
            return CourseSerializer
        return CoursePublicSerializer

    def retrieve(self, request, *args, **kwargs):
        course = self.get_object()
        data = self.get_serializer(course).data
        data['pricing'] = build_quote(course, buyer=request.user).as_dict()
        return Response(data)

    @extend_schema(responses=OpenApiTypes.OBJECT)
    @action(detail=True, methods=['get'])
    def quote(self, request, slug=None):
        """Price breakdown only: applied coupons, tier totals and final price."""
        course = self.get_object()
        return Response(build_quote(course, buyer=request.user).as_dict())


class MyEnrollmentsView(generics.ListAPIView):
    """Courses the authenticated user has bought."""
    serializer_class = EnrollmentSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        if getattr(self, "swagger_fake_view", False):
            return Enrollment.objects.none()
        return Enrollment.objects.filter(user=self.request.user).select_related('course')
