from rest_framework import serializers

from .models import Course, Enrollment


class CourseSerializer(serializers.ModelSerializer):
    class Meta:
        model = Course
        fields = [
            'id', 'slug', 'title', 'tagline', 'description', 'instructor',
            'price', 'currency', 'commission_rate', 'status',
            'start_date', 'end_date', 'max_students', 'current_enrollments',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'current_enrollments', 'created_at', 'updated_at']

    def validate(self, attrs):
        start = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start and end and start >= end:
            raise serializers.ValidationError({'end_date': "End date must be after the start date."})
        return attrs


class CoursePublicSerializer(CourseSerializer):
    """Catalog view; the commission override is internal."""
    class Meta(CourseSerializer.Meta):
        fields = [f for f in CourseSerializer.Meta.fields if f != 'commission_rate']


class EnrollmentSerializer(serializers.ModelSerializer):
    course_title = serializers.CharField(source='course.title', read_only=True)
    course_slug = serializers.CharField(source='course.slug', read_only=True)

    class Meta:
        model = Enrollment
        fields = ['id', 'course', 'course_title', 'course_slug', 'payment', 'status', 'enrolled_at']
        read_only_fields = fields
