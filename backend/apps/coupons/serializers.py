from decimal import Decimal

from django.utils import timezone
from rest_framework import serializers

from backend.apps.accounts.models import User
from backend.apps.courses.models import Course

from .models import Coupon, CouponType, DiscountType, PersonalAssignment


def _check_discount(attrs, instance=None):
    """Shared authoring rules for admin and agent coupons."""
    def current(name):
        if name in attrs:
            return attrs[name]
        return getattr(instance, name, None)

    errors = {}
    value = current('discount_value')
    discount_type = current('discount_type')
    coupon_type = current('coupon_type')
    valid_from, valid_until = current('valid_from'), current('valid_until')

    if value is not None:
        if value <= 0:
            errors['discount_value'] = "Discount value must be greater than zero."
        elif discount_type == DiscountType.PERCENTAGE and value > Decimal('100'):
            errors['discount_value'] = "Percentage discount cannot exceed 100."
        elif coupon_type is not None and coupon_type.max_discount_limit is not None \
                and value > coupon_type.max_discount_limit:
            errors['discount_value'] = (
                f"Discount value exceeds maximum limit of {coupon_type.max_discount_limit}"
            )
    if coupon_type is not None and discount_type and coupon_type.discount_type != discount_type:
        errors['discount_type'] = "Discount type must match the selected coupon type."
    if valid_from and valid_until and valid_from >= valid_until:
        errors['valid_until'] = "Valid until must be later than valid from."

    if errors:
        raise serializers.ValidationError(errors)


class CouponTypeSerializer(serializers.ModelSerializer):
    class Meta:
        model = CouponType
        fields = [
            'id', 'type_code', 'type_name', 'description', 'discount_type',
            'max_discount_limit', 'is_active', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def validate(self, attrs):
        discount_type = attrs.get('discount_type', getattr(self.instance, 'discount_type', None))
        limit = attrs.get('max_discount_limit', getattr(self.instance, 'max_discount_limit', None))
        if limit is not None and limit <= 0:
            raise serializers.ValidationError({'max_discount_limit': "Limit must be greater than zero."})
        if discount_type == DiscountType.PERCENTAGE and limit is not None and limit > Decimal('100'):
            raise serializers.ValidationError({'max_discount_limit': "A percentage limit cannot exceed 100."})
        return attrs


class CouponSerializer(serializers.ModelSerializer):
    """Admin CRUD for coupons, including agent-owned ones."""
    courses = serializers.PrimaryKeyRelatedField(
        queryset=Course.objects.all(), many=True, required=False
    )
    created_by_agent = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.agents(),
        required=False,
        allow_null=True
    )
    tier = serializers.SerializerMethodField()
    type_name = serializers.CharField(source='coupon_type.type_name', read_only=True, default=None)
    agent_code = serializers.CharField(source='created_by_agent.jyotishi_code', read_only=True, default=None)

    class Meta:
        model = Coupon
        fields = [
            'id', 'code', 'description', 'coupon_type', 'type_name',
            'created_by_agent', 'agent_code', 'tier',
            'discount_type', 'discount_value', 'valid_from', 'valid_until',
            'max_usage_count', 'current_usage_count', 'usage_remaining', 'courses', 'is_active',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'current_usage_count', 'usage_remaining', 'created_at', 'updated_at']

    def get_tier(self, obj) -> str:
        return "AGENT" if obj.is_agent_coupon else "ADMIN"

    def validate_code(self, value):
        value = value.strip().upper()
        qs = Coupon.objects.filter(code__iexact=value)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError("A coupon with this code already exists.")
        return value

    def validate(self, attrs):
        coupon_type = attrs.get('coupon_type')
        if coupon_type is not None and 'discount_type' not in attrs and self.instance is None:
            attrs['discount_type'] = coupon_type.discount_type
        _check_discount(attrs, self.instance)
        return attrs


class AgentCouponSerializer(serializers.ModelSerializer):
    """
    Agent self-service coupon creation. The code and discount type are
    derived from the chosen coupon type; agents never type a code.
    """
    coupon_type = serializers.PrimaryKeyRelatedField(queryset=CouponType.objects.filter(is_active=True))
    courses = serializers.PrimaryKeyRelatedField(
        queryset=Course.objects.all(), many=True, required=False
    )

    class Meta:
        model = Coupon
        fields = [
            'id', 'code', 'description', 'coupon_type', 'discount_type', 'discount_value',
            'valid_from', 'valid_until', 'max_usage_count', 'current_usage_count', 'usage_remaining',
            'courses', 'is_active', 'created_at',
        ]
        read_only_fields = ['id', 'code', 'discount_type', 'current_usage_count', 'usage_remaining', 'created_at']

    def validate(self, attrs):
        agent = self.context['request'].user
        if not agent.jyotishi_code:
            raise serializers.ValidationError("Your account has no agent code; contact an administrator.")

        coupon_type = attrs.get('coupon_type', getattr(self.instance, 'coupon_type', None))
        attrs['discount_type'] = coupon_type.discount_type
        _check_discount(attrs, self.instance)

        if self.instance is None or 'discount_value' in attrs or 'coupon_type' in attrs:
            value = attrs.get('discount_value', getattr(self.instance, 'discount_value', None))
            code = Coupon.generate_agent_code(agent, coupon_type, value)
            qs = Coupon.objects.filter(code__iexact=code)
            if self.instance is not None:
                qs = qs.exclude(pk=self.instance.pk)
            if qs.exists():
                raise serializers.ValidationError(
                    {'discount_value': "Coupon code already exists. Try a different discount value."}
                )
            attrs['code'] = code
        return attrs

    def create(self, validated_data):
        validated_data['created_by_agent'] = self.context['request'].user
        return super().create(validated_data)


class CodePreviewSerializer(serializers.Serializer):
    coupon_type = serializers.PrimaryKeyRelatedField(queryset=CouponType.objects.all())
    discount_value = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=Decimal('0.01'))


class CouponValidateSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=50, trim_whitespace=True)
    course_id = serializers.UUIDField()

    def validate_course_id(self, value):
        try:
            course = Course.objects.visible().get(pk=value)
        except Course.DoesNotExist:
            raise serializers.ValidationError("Course not found.")
        self.context['course'] = course
        return value


class PersonalAssignmentSerializer(serializers.ModelSerializer):
    coupon_code = serializers.CharField(source='coupon.code', read_only=True)
    user_email = serializers.EmailField(source='user.email', read_only=True)
    course_title = serializers.CharField(source='course.title', read_only=True)

    class Meta:
        model = PersonalAssignment
        fields = [
            'id', 'coupon', 'coupon_code', 'user', 'user_email',
            'course', 'course_title', 'assigned_by', 'assigned_at',
        ]
        read_only_fields = ['id', 'assigned_by', 'assigned_at']
        # One assignment per (user, course) is enforced by upserting in the service.
        validators = []

    def validate_user(self, value):
        if not value.is_regular_user:
            raise serializers.ValidationError("Coupons can only be assigned to students.")
        return value

    def validate(self, attrs):
        coupon, course = attrs['coupon'], attrs['course']
        actor = self.context['request'].user

        if actor.role == User.Role.JYOTISHI and coupon.created_by_agent_id != actor.pk:
            raise serializers.ValidationError({'coupon': "Coupon not found or not owned by you."})
        if not coupon.is_active:
            raise serializers.ValidationError({'coupon': "Coupon is not active."})
        now = timezone.now()
        if now < coupon.valid_from or now > coupon.valid_until:
            raise serializers.ValidationError({'coupon': "Coupon is not currently valid."})
        if coupon.courses.exists() and not coupon.courses.filter(pk=course.pk).exists():
            raise serializers.ValidationError({'course': "This coupon is not valid for the selected course."})
        return attrs
