from rest_framework import serializers

from backend.apps.courses.models import Course

from .models import Commission, Payment, PaymentCoupon, Payout


class CreateOrderSerializer(serializers.Serializer):
    course_id = serializers.UUIDField()
    payment_type = serializers.ChoiceField(
        choices=Payment.PaymentType.choices,
        default=Payment.PaymentType.DOMESTIC
    )

    def validate_course_id(self, value):
        """Ensure the course exists and is listed; store it in context."""
        try:
            course = Course.objects.visible().get(pk=value)
        except Course.DoesNotExist:
            raise serializers.ValidationError("Course not found or not available.")
        self.context['course'] = course
        return value


class VerifyPaymentSerializer(serializers.Serializer):
    payment_id = serializers.UUIDField()
    gateway_payment_id = serializers.CharField(max_length=255)
    signature = serializers.CharField(max_length=255)


class PaymentCouponSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentCoupon
        fields = ['coupon', 'code', 'tier', 'is_personal', 'discount_amount', 'position']
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    applied_coupons = PaymentCouponSerializer(many=True, read_only=True)
    course_title = serializers.CharField(source='course.title', read_only=True)

    class Meta:
        model = Payment
        fields = [
            'id', 'invoice_number', 'course', 'course_title', 'payment_type',
            'amount', 'admin_discount_amount', 'agent_discount_amount', 'discount_amount',
            'subtotal', 'tax_amount', 'final_amount', 'currency',
            'status', 'transaction_id', 'applied_coupons',
            'created_at', 'completed_at', 'expires_at',
        ]
        read_only_fields = fields


# ===== Transaction Serializer for User Transactions View =====
class TransactionSerializer(serializers.ModelSerializer):
    """Compact payment history row."""
    course_title = serializers.CharField(source='course.title', read_only=True)

    class Meta:
        model = Payment
        fields = [
            'id', 'invoice_number', 'course', 'course_title', 'discount_amount',
            'final_amount', 'currency', 'status', 'created_at', 'completed_at',
        ]
        read_only_fields = fields


class CommissionSerializer(serializers.ModelSerializer):
    agent_email = serializers.EmailField(source='agent.email', read_only=True)
    student_email = serializers.EmailField(source='student.email', read_only=True)
    course_title = serializers.CharField(source='course.title', read_only=True)
    coupon_code = serializers.CharField(source='coupon.code', read_only=True)
    invoice_number = serializers.CharField(source='payment.invoice_number', read_only=True)

    class Meta:
        model = Commission
        fields = [
            'id', 'agent', 'agent_email', 'payment', 'invoice_number',
            'course', 'course_title', 'student', 'student_email',
            'coupon', 'coupon_code', 'commission_rate', 'sale_amount',
            'commission_amount', 'status', 'payout', 'paid_at', 'created_at',
        ]
        read_only_fields = fields


class BulkPaySerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)


# ===== Payouts =====
class BankDetailsSerializer(serializers.Serializer):
    account_holder_name = serializers.CharField(max_length=150)
    account_number = serializers.RegexField(r'^\d{6,20}$', error_messages={
        'invalid': 'Account number must be 6 to 20 digits.'
    })
    ifsc_code = serializers.RegexField(r'^[A-Za-z]{4}0[A-Za-z0-9]{6}$', error_messages={
        'invalid': 'Enter a valid IFSC code.'
    })

    def validate_ifsc_code(self, value):
        return value.upper()


class PayoutRequestSerializer(serializers.Serializer):
    bank_details = BankDetailsSerializer()
    payment_method = serializers.CharField(max_length=50, required=False, default="Bank Transfer")
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class PayoutSerializer(serializers.ModelSerializer):
    agent_email = serializers.EmailField(source='agent.email', read_only=True)
    processed_by_email = serializers.EmailField(source='processed_by.email', read_only=True, default=None)
    commission_count = serializers.IntegerField(source='commissions.count', read_only=True)

    class Meta:
        model = Payout
        fields = [
            'id', 'agent', 'agent_email', 'amount', 'status', 'commission_count',
            'payment_method', 'bank_details', 'transaction_id', 'notes', 'rejection_reason',
            'requested_at', 'processed_at', 'processed_by', 'processed_by_email',
        ]
        read_only_fields = fields


class PayoutDetailSerializer(PayoutSerializer):
    commissions = CommissionSerializer(many=True, read_only=True)

    class Meta(PayoutSerializer.Meta):
        fields = PayoutSerializer.Meta.fields + ['commissions']
        read_only_fields = fields


class ProcessPayoutSerializer(serializers.Serializer):
    ACTIONS = ('approve', 'reject', 'pay')

    action = serializers.ChoiceField(choices=ACTIONS)
    rejection_reason = serializers.CharField(required=False, allow_blank=True, default="")
    transaction_id = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")

    def validate(self, attrs):
        if attrs['action'] == 'reject' and not attrs['rejection_reason'].strip():
            raise serializers.ValidationError({'rejection_reason': 'A reason is required to reject a payout.'})
        if attrs['action'] == 'pay' and not attrs['transaction_id'].strip():
            raise serializers.ValidationError({'transaction_id': 'A transaction ID is required to mark a payout paid.'})
        return attrs
