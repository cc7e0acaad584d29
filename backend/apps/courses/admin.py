from django.contrib import admin

from .models import Course, Enrollment


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ('title', 'slug', 'price', 'currency', 'commission_rate', 'status',
                    'current_enrollments', 'max_students')
    list_filter = ('status', 'currency')
    search_fields = ('title', 'slug', 'instructor')
    prepopulated_fields = {'slug': ('title',)}
    readonly_fields = ('current_enrollments', 'created_at', 'updated_at')


@admin.register(Enrollment)
class EnrollmentAdmin(admin.ModelAdmin):
    list_display = ('user', 'course', 'status', 'enrolled_at')
    list_filter = ('status',)
    search_fields = ('user__email', 'course__title')
    raw_id_fields = ('user', 'course', 'payment')
