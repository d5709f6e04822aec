from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from carrento_backend.exceptions import Forbidden, NotFound, Unauthorized, ValidationError
from .permissions import (
    CAPABILITIES, AccessDecision, authorize, check_access, redirect_for, require,
)
from .services import UserService

User = get_user_model()

ALL_ROLES = ['SuperAdmin', 'Admin', 'SupportStaff', 'ServiceCenterStaff', 'CarOwner', 'Customer']

EXPECTED_ROLES = {
    'view_customer_portal': {'Customer', 'CarOwner', 'Admin', 'SuperAdmin'},
    'view_owner_portal': {'CarOwner', 'Admin', 'SuperAdmin'},
    'view_admin_portal': {'Admin', 'SuperAdmin', 'SupportStaff'},
    'view_service_portal': {'ServiceCenterStaff', 'Admin', 'SuperAdmin'},
    'view_dashboard': {'Admin', 'SuperAdmin'},
    'review_car_listing': {'Admin', 'SuperAdmin'},
    'review_booking': {'Admin', 'SuperAdmin'},
    'manage_users': {'SuperAdmin'},
    'manage_maintenance': {'ServiceCenterStaff', 'Admin', 'SuperAdmin'},
    'submit_listing': {'CarOwner', 'Admin', 'SuperAdmin'},
    'create_booking': {'Customer', 'CarOwner', 'Admin', 'SuperAdmin'},
    'report_incident': {'Customer', 'CarOwner', 'Admin', 'SuperAdmin'},
}


class AuthorizationGateTest(TestCase):
    def test_policy_table_is_exhaustive(self):
        self.assertEqual(set(CAPABILITIES), set(EXPECTED_ROLES))
        self.assertEqual(set(User.ROLES), set(ALL_ROLES))
        for capability, allowed in EXPECTED_ROLES.items():
            for role in ALL_ROLES:
                with self.subTest(capability=capability, role=role):
                    self.assertEqual(authorize(role, capability), role in allowed)

    def test_unknown_role_is_denied(self):
        for capability in CAPABILITIES:
            self.assertFalse(authorize('Driver', capability))
            self.assertFalse(authorize(None, capability))

    def test_unknown_capability_raises(self):
        with self.assertRaises(ValueError):
            authorize(User.ADMIN, 'launch_rockets')

    def test_check_access_states(self):
        self.assertEqual(check_access(False, None, 'view_owner_portal'), AccessDecision.UNAUTHENTICATED)
        self.assertEqual(check_access(True, None, 'view_owner_portal'), AccessDecision.PENDING)
        self.assertEqual(check_access(True, User.CUSTOMER, 'view_owner_portal'), AccessDecision.FORBIDDEN)
        self.assertEqual(check_access(True, User.CAR_OWNER, 'view_owner_portal'), AccessDecision.ALLOW)

    def test_redirects(self):
        self.assertEqual(redirect_for(AccessDecision.UNAUTHENTICATED), '/auth')
        self.assertEqual(redirect_for(AccessDecision.FORBIDDEN), '/dashboard')
        self.assertIsNone(redirect_for(AccessDecision.ALLOW))
        self.assertIsNone(redirect_for(AccessDecision.PENDING))

    def test_require(self):
        require(User.SUPER_ADMIN, 'manage_users')
        with self.assertRaises(Forbidden):
            require(User.ADMIN, 'manage_users')
        with self.assertRaises(Unauthorized):
            require(None, 'manage_users')


class UserServiceTest(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(email='test@example.com', password='testpass123', first_name='Test', last_name='User')

    def test_default_role_is_customer(self):
        self.assertEqual(self.user.role, User.CUSTOMER)
        self.assertEqual(self.user.full_name, 'Test User')

    def test_superuser_role(self):
        admin = User.objects.create_superuser(email='root@example.com', password='testpass123')
        self.assertEqual(admin.role, User.SUPER_ADMIN)
        self.assertTrue(admin.is_staff)

    def test_change_role(self):
        user = UserService.change_role(User.SUPER_ADMIN, self.user.id, User.SUPPORT_STAFF)
        self.assertEqual(user.role, User.SUPPORT_STAFF)

    def test_only_super_admin_changes_roles(self):
        with self.assertRaises(Forbidden):
            UserService.change_role(User.ADMIN, self.user.id, User.ADMIN)
        self.user.refresh_from_db()
        self.assertEqual(self.user.role, User.CUSTOMER)

    def test_change_role_validation(self):
        with self.assertRaises(ValidationError):
            UserService.change_role(User.SUPER_ADMIN, self.user.id, 'Driver')
        with self.assertRaises(NotFound):
            UserService.change_role(User.SUPER_ADMIN, 99999, User.ADMIN)

    def test_users_by_role(self):
        User.objects.create_user(email='owner@example.com', password='testpass123', role=User.CAR_OWNER)
        self.assertEqual(UserService.users_by_role(User.CAR_OWNER).count(), 1)
        self.assertEqual(UserService.users_by_role().count(), 2)


class UserAPITest(TestCase):
    def setUp(self):
        self.client = APIClient()

    def test_register_and_login(self):
        response = self.client.post('/api/register/', {
            'email': 'new@example.com', 'password': 'secret123', 'first_name': 'Nora', 'last_name': 'Lee',
            'role': User.CAR_OWNER,
        }, format='json')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['role'], User.CAR_OWNER)
        self.assertNotIn('password', response.data)

        response = self.client.post('/api/login/', {'email': 'new@example.com', 'password': 'secret123'}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertIn('access', response.data)

    def test_register_cannot_pick_admin_role(self):
        response = self.client.post('/api/register/', {
            'email': 'sneaky@example.com', 'password': 'secret123', 'first_name': 'Sam', 'last_name': 'Lee',
            'role': User.ADMIN,
        }, format='json')
        self.assertEqual(response.status_code, 400)

    def test_register_weak_password(self):
        response = self.client.post('/api/register/', {
            'email': 'weak@example.com', 'password': 'short', 'first_name': 'Sam', 'last_name': 'Lee',
        }, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertIn('password', response.data)

    def test_access_check(self):
        response = self.client.get('/api/access/view_admin_portal/')
        self.assertEqual(response.data['decision'], AccessDecision.UNAUTHENTICATED)
        self.assertEqual(response.data['redirect_to'], '/auth')

        user = User.objects.create_user(email='c@example.com', password='testpass123')
        self.client.force_authenticate(user=user)
        response = self.client.get('/api/access/view_admin_portal/')
        self.assertEqual(response.data['decision'], AccessDecision.FORBIDDEN)
        self.assertEqual(response.data['redirect_to'], '/dashboard')
        response = self.client.get('/api/access/view_customer_portal/')
        self.assertEqual(response.data['decision'], AccessDecision.ALLOW)

    def test_access_check_unknown_capability(self):
        response = self.client.get('/api/access/fly/')
        self.assertEqual(response.status_code, 404)

    def test_me(self):
        user = User.objects.create_user(email='me@example.com', password='testpass123', first_name='Me', last_name='Too')
        self.client.force_authenticate(user=user)
        response = self.client.patch('/api/me/', {'phone_number': '0123456789', 'role': User.ADMIN}, format='json')
        self.assertEqual(response.status_code, 200)
        user.refresh_from_db()
        self.assertEqual(user.phone_number, '0123456789')
        self.assertEqual(user.role, User.CUSTOMER)

    def test_role_change_endpoint(self):
        root = User.objects.create_superuser(email='root@example.com', password='testpass123')
        user = User.objects.create_user(email='u@example.com', password='testpass123')
        self.client.force_authenticate(user=user)
        response = self.client.post(f'/api/users/{user.id}/role/', {'role': User.ADMIN}, format='json')
        self.assertEqual(response.status_code, 403)

        self.client.force_authenticate(user=root)
        response = self.client.post(f'/api/users/{user.id}/role/', {'role': User.SERVICE_CENTER_STAFF}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['role'], User.SERVICE_CENTER_STAFF)

        response = self.client.get('/api/users/', {'role': User.SERVICE_CENTER_STAFF})
        self.assertEqual(len(response.data), 1)
