from django.contrib import admin

from .models import Coupon, CouponType, PersonalAssignment


@admin.register(CouponType)
class CouponTypeAdmin(admin.ModelAdmin):
    list_display = ('type_code', 'type_name', 'discount_type', 'max_discount_limit', 'is_active')
    list_filter = ('discount_type', 'is_active')
    search_fields = ('type_code', 'type_name')


class PersonalAssignmentInline(admin.TabularInline):
    model = PersonalAssignment
    fk_name = 'coupon'
    extra = 0
    raw_id_fields = ('user', 'course', 'assigned_by')


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    """
    Admin interface for coupons.
    Usage counters are read-only; they only move when payments complete.
    """
    list_display = ('code', 'tier', 'discount_type', 'discount_value', 'usage',
                    'valid_from', 'valid_until', 'is_active')
    list_filter = ('discount_type', 'is_active', 'coupon_type')
    search_fields = ('code', 'description', 'created_by_agent__email', 'created_by_agent__jyotishi_code')
    readonly_fields = ('current_usage_count', 'created_at', 'updated_at')
    filter_horizontal = ('courses',)
    raw_id_fields = ('created_by_agent',)
    inlines = [PersonalAssignmentInline]
    fieldsets = (
        (None, {
            'fields': ('code', 'description', 'coupon_type', 'created_by_agent', 'is_active')
        }),
        ('Discount', {
            'fields': ('discount_type', 'discount_value')
        }),
        ('Validity & Usage', {
            'fields': ('valid_from', 'valid_until', 'max_usage_count', 'current_usage_count')
        }),
        ('Applicability', {
            'fields': ('courses',),
            'description': 'Leave empty to apply to all courses.'
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    @admin.display(description='Tier')
    def tier(self, obj):
        return 'Agent' if obj.is_agent_coupon else 'Admin'

    @admin.display(description='Usage')
    def usage(self, obj):
        if obj.max_usage_count is None:
            return f"{obj.current_usage_count} / ∞"
        return f"{obj.current_usage_count} / {obj.max_usage_count}"


@admin.register(PersonalAssignment)
class PersonalAssignmentAdmin(admin.ModelAdmin):
    list_display = ('coupon', 'user', 'course', 'assigned_by', 'assigned_at')
    search_fields = ('coupon__code', 'user__email', 'course__title')
    raw_id_fields = ('coupon', 'user', 'course', 'assigned_by')
