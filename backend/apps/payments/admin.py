from django.contrib import admin, messages
from django.utils import timezone

from .models import Commission, InvoiceSequence, Payment, PaymentCoupon, Payout


class PaymentCouponInline(admin.TabularInline):
    model = PaymentCoupon
    extra = 0
    can_delete = False
    readonly_fields = ('coupon', 'code', 'tier', 'is_personal', 'discount_amount', 'position')


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ('invoice_number', 'user', 'course', 'final_amount', 'currency', 'status', 'created_at')
    list_filter = ('status', 'payment_type', 'currency')
    search_fields = ('invoice_number', 'transaction_id', 'gateway_reference', 'user__email', 'course__title')
    readonly_fields = (
        'invoice_number', 'amount', 'admin_discount_amount', 'agent_discount_amount',
        'discount_amount', 'subtotal', 'tax_amount', 'final_amount', 'commission_amount',
        'transaction_id', 'gateway_reference', 'metadata', 'created_at', 'updated_at', 'completed_at',
    )
    raw_id_fields = ('user', 'course')
    inlines = [PaymentCouponInline]


@admin.register(Commission)
class CommissionAdmin(admin.ModelAdmin):
    list_display = ('agent', 'course', 'student', 'coupon', 'commission_amount', 'status', 'created_at', 'paid_at')
    list_filter = ('status',)
    search_fields = ('agent__email', 'agent__jyotishi_code', 'student__email', 'coupon__code')
    raw_id_fields = ('agent', 'payment', 'course', 'student', 'coupon', 'payout')
    actions = ['mark_paid']

    @admin.action(description='Mark selected commissions as paid')
    def mark_paid(self, request, queryset):
        updated = queryset.filter(status=Commission.Status.PENDING).update(
            status=Commission.Status.PAID, paid_at=timezone.now()
        )
        self.message_user(request, f"{updated} commission(s) marked as paid.", messages.SUCCESS)


class PayoutCommissionInline(admin.TabularInline):
    model = Commission
    fk_name = 'payout'
    extra = 0
    can_delete = False
    fields = ('course', 'student', 'coupon', 'sale_amount', 'commission_amount', 'status')
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Payout)
class PayoutAdmin(admin.ModelAdmin):
    list_display = ('agent', 'amount', 'status', 'payment_method', 'requested_at', 'processed_at', 'processed_by')
    list_filter = ('status', 'payment_method')
    search_fields = ('agent__email', 'agent__jyotishi_code', 'transaction_id')
    readonly_fields = ('amount', 'bank_details', 'requested_at', 'processed_at', 'processed_by')
    raw_id_fields = ('agent',)
    inlines = [PayoutCommissionInline]


@admin.register(InvoiceSequence)
class InvoiceSequenceAdmin(admin.ModelAdmin):
    list_display = ('prefix', 'last_number')
    readonly_fields = ('prefix', 'last_number')
