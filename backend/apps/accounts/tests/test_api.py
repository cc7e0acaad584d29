from decimal import Decimal

from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from backend.apps.accounts.models import User
from tests.factories import AdminFactory, AgentFactory, UserFactory


class RegistrationTests(APITestCase):

    def test_register_creates_student(self):
        response = self.client.post(reverse('register'), {
            'email': 'student@example.com',
            'password': 'a-long-enough-password',
            'password2': 'a-long-enough-password',
            'role': 'ADMIN',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(User.objects.get(email='student@example.com').role, User.Role.USER)

    def test_passwords_must_match(self):
        response = self.client.post(reverse('register'), {
            'email': 'student@example.com',
            'password': 'a-long-enough-password',
            'password2': 'something-else-entirely',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_login_returns_tokens(self):
        UserFactory(email='login@example.com')
        response = self.client.post(reverse('login'), {
            'email': 'login@example.com', 'password': 'testpass123'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_me(self):
        agent = AgentFactory(jyotishi_code='JD007')
        self.client.force_authenticate(user=agent)
        response = self.client.get(reverse('me'))
        self.assertEqual(response.data['jyotishi_code'], 'JD007')
        self.assertEqual(response.data['role'], User.Role.JYOTISHI)


class AgentAdministrationTests(APITestCase):

    def setUp(self):
        self.client.force_authenticate(user=AdminFactory())

    def test_promote_user_to_agent(self):
        user = UserFactory()
        response = self.client.patch(reverse('agent-detail', args=[user.id]), {
            'role': 'JYOTISHI', 'jyotishi_code': 'ab123', 'commission_rate': '0.1500',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        user.refresh_from_db()
        self.assertEqual(user.jyotishi_code, 'AB123')
        self.assertEqual(user.commission_rate, Decimal('0.1500'))

    def test_agent_requires_code(self):
        user = UserFactory()
        response = self.client.patch(reverse('agent-detail', args=[user.id]), {'role': 'JYOTISHI'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_codes_are_unique(self):
        AgentFactory(jyotishi_code='AB123')
        user = UserFactory()
        response = self.client.patch(reverse('agent-detail', args=[user.id]), {
            'role': 'JYOTISHI', 'jyotishi_code': 'AB123',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_rate_must_be_a_fraction(self):
        agent = AgentFactory()
        response = self.client.patch(reverse('agent-detail', args=[agent.id]), {'commission_rate': '1.5'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_non_admin_is_refused(self):
        self.client.force_authenticate(user=AgentFactory())
        self.assertEqual(self.client.get(reverse('agent-list')).status_code, status.HTTP_403_FORBIDDEN)
