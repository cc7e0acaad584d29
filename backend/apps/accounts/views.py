# FILE: /backend/apps/accounts/views.py
"""
Account endpoints: registration, profile and agent administration.
Token issuance is delegated to SimpleJWT.
"""
import logging

from rest_framework import generics, mixins, permissions, status, viewsets
from rest_framework.filters import SearchFilter, OrderingFilter
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend

from .models import User
from .permissions import IsAdmin
from .serializers import AgentSerializer, UserRegistrationSerializer, UserSerializer

logger = logging.getLogger(__name__)


class UserRegistrationView(generics.CreateAPIView):
    """User registration endpoint."""
    serializer_class = UserRegistrationSerializer
    queryset = User.objects.all()
    permission_classes = [permissions.AllowAny]

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info("Registered user %s", user.id)
        return Response({
            'id': str(user.id),
            'email': user.email,
            'role': user.role,
            'message': 'User registered successfully.',
        }, status=status.HTTP_201_CREATED)


class MeView(generics.RetrieveAPIView):
    """Profile of the authenticated user."""
    serializer_class = UserSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_object(self):
        return self.request.user


class AgentViewSet(mixins.ListModelMixin,
                   mixins.RetrieveModelMixin,
                   mixins.UpdateModelMixin,
                   viewsets.GenericViewSet):
    """
    Admin management of users' agent status: promote a user to
    Jyotishi, assign the agent code and commission rate.
    """
    serializer_class = AgentSerializer
    permission_classes = [permissions.IsAuthenticated, IsAdmin]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_fields = ['role', 'is_active']
    search_fields = ['email', 'jyotishi_code', 'first_name', 'last_name']
    ordering_fields = ['date_joined', 'email']

    def get_queryset(self):
        if getattr(self, 'swagger_fake_view', False):
            return User.objects.none()
        return User.objects.all().order_by('-date_joined')

    def perform_update(self, serializer):
        agent = serializer.save()
        logger.info(
            "Agent profile %s updated by %s (code=%s, rate=%s)",
            agent.id, self.request.user.id, agent.jyotishi_code, agent.commission_rate
        )
