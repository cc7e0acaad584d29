"""
Django FilterSet for the Course model.
"""
import django_filters
from .models import Course


class CourseFilter(django_filters.FilterSet):
    min_price = django_filters.NumberFilter(field_name="price", lookup_expr='gte')
    max_price = django_filters.NumberFilter(field_name="price", lookup_expr='lte')

    class Meta:
        model = Course
        fields = ['status', 'currency', 'min_price', 'max_price']
