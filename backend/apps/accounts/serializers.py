# FILE: /backend/apps/accounts/serializers.py
from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password

from .models import User


class UserRegistrationSerializer(serializers.ModelSerializer):
    password = serializers.CharField(
        write_only=True,
        required=True,
        validators=[validate_password],
        style={'input_type': 'password'}
    )
    password2 = serializers.CharField(
        write_only=True,
        required=True,
        style={'input_type': 'password'}
    )

    class Meta:
        model = User
        fields = ['email', 'password', 'password2', 'first_name', 'last_name', 'phone']
        extra_kwargs = {
            'email': {'required': True},
        }

    def validate(self, attrs):
        if attrs['password'] != attrs['password2']:
            raise serializers.ValidationError({
                "password": "Password fields didn't match."
            })

        if User.objects.filter(email__iexact=attrs['email']).exists():
            raise serializers.ValidationError({
                "email": "A user with this email already exists."
            })

        return attrs

    def create(self, validated_data):
        validated_data.pop('password2')
        # Self-registration always yields a student account; agents are promoted by admins.
        return User.objects.create_user(
            email=validated_data['email'],
            password=validated_data['password'],
            role=User.Role.USER,
            first_name=validated_data.get('first_name', ''),
            last_name=validated_data.get('last_name', ''),
            phone=validated_data.get('phone', ''),
        )


class UserSerializer(serializers.ModelSerializer):
    """Read-only profile of the authenticated user."""
    class Meta:
        model = User
        fields = [
            'id', 'email', 'first_name', 'last_name', 'phone', 'role',
            'jyotishi_code', 'commission_rate', 'date_joined',
        ]
        read_only_fields = fields


class AgentSerializer(serializers.ModelSerializer):
    """Admin management of agent (Jyotishi) profiles."""
    class Meta:
        model = User
        fields = [
            'id', 'email', 'first_name', 'last_name', 'role',
            'jyotishi_code', 'commission_rate', 'is_active', 'date_joined',
        ]
        read_only_fields = ['id', 'email', 'date_joined']

    def validate_jyotishi_code(self, value):
        if value:
            value = value.upper()
            qs = User.objects.filter(jyotishi_code=value)
            if self.instance is not None:
                qs = qs.exclude(pk=self.instance.pk)
            if qs.exists():
                raise serializers.ValidationError("This agent code is already taken.")
        return value or None

    def validate(self, attrs):
        role = attrs.get('role', getattr(self.instance, 'role', None))
        code = attrs.get('jyotishi_code', getattr(self.instance, 'jyotishi_code', None))
        if role == User.Role.JYOTISHI and not code:
            raise serializers.ValidationError({
                'jyotishi_code': 'Agents must have an agent code.'
            })
        return attrs
