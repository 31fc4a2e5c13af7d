"""
Test suite for the core module
Tests: registration and profiles, JWT login/refresh/logout, current user, audit logs
"""
from django.test import TestCase, override_settings
from rest_framework import status

from stockledger.core.models import AuditLog, Profile
from stockledger.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from stockledger.core.utils import create_audit_log, get_client_ip, get_ledger_setting

STRONG_PASSWORD = 'Ledger-Pass-2024!'


class RegistrationTests(TestCase):
    """Test user registration and profile bootstrap"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def _register(self, **overrides):
        payload = {
            'username': 'maria',
            'email': 'maria@example.com',
            'password': STRONG_PASSWORD,
            'password_confirm': STRONG_PASSWORD,
            'full_name': 'Maria Silva',
        }
        payload.update(overrides)
        return self.client.post('/api/v1/auth/register/', payload, format='json')

    def test_register_creates_user_profile_and_tokens(self):
        response = self._register()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['profile']['full_name'], 'Maria Silva')
        self.assertEqual(response.data['profile']['id'], response.data['user']['id'])
        self.assertEqual(Profile.objects.filter(user_id=response.data['user']['id']).count(), 1)

    def test_register_without_full_name_uses_first_and_last_name(self):
        response = self._register(full_name='', first_name='Ana', last_name='Costa')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['profile']['full_name'], 'Ana Costa')

    def test_register_without_any_name_uses_default(self):
        response = self._register(full_name='')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['profile']['full_name'], 'User')

    @override_settings(STOCK_LEDGER={'DEFAULT_PROFILE_NAME': 'Operator'})
    def test_default_profile_name_is_configurable(self):
        user = TestDataFactory.create_user()
        self.assertEqual(user.profile.full_name, 'Operator')

    def test_password_mismatch_rejected(self):
        response = self._register(password_confirm='Something-else-99')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Profile.objects.exists())

    def test_duplicate_email_rejected(self):
        TestDataFactory.create_user(username='other', email='maria@example.com')
        response = self._register()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)

    def test_profile_created_once_per_user(self):
        user = TestDataFactory.create_user()
        user.first_name = 'Changed'
        user.save()
        self.assertEqual(Profile.objects.filter(user=user).count(), 1)

    def test_profile_removed_with_user(self):
        user = TestDataFactory.create_user()
        user.delete()
        self.assertFalse(Profile.objects.exists())


class AuthenticationTests(TestCase):
    """Test login, refresh and logout"""

    def setUp(self):
        self.user = TestDataFactory.create_user(username='joao', password=STRONG_PASSWORD)
        self.client = AuthenticatedAPIClient()

    def _login(self):
        return self.client.post('/api/v1/auth/login/', {
            'username': 'joao',
            'password': STRONG_PASSWORD,
        }, format='json')

    def test_login_returns_token_pair(self):
        response = self._login()
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['username'], 'joao')

    def test_login_with_wrong_password(self):
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'joao',
            'password': 'wrong-password',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_issues_new_access_token(self):
        refresh = self._login().data['refresh']
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': refresh}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_logout_blacklists_refresh_token(self):
        tokens = self._login().data
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")

        response = self.client.post('/api/v1/auth/logout/', {'refresh': tokens['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_205_RESET_CONTENT)

        response = self.client.post('/api/v1/auth/refresh/', {'refresh': tokens['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_logout_requires_refresh_token(self):
        self.client.authenticate_user(self.user)
        response = self.client.post('/api/v1/auth/logout/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('detail', response.data)

    def test_logout_with_garbage_token(self):
        self.client.authenticate_user(self.user)
        response = self.client.post('/api/v1/auth/logout/', {'refresh': 'not-a-token'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_anonymous_requests_are_rejected(self):
        for url in ['/api/v1/auth/me/', '/api/v1/products/', '/api/v1/stock-movements/',
                    '/api/v1/reports/dashboard/', '/api/v1/audit-logs/']:
            response = self.client.get(url)
            self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED, url)


class CurrentUserTests(TestCase):
    """Test the auth/me endpoint"""

    def setUp(self):
        self.user = TestDataFactory.create_user(first_name='Carla', last_name='Souza')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_get_me(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['id'], self.user.id)
        self.assertEqual(response.data['profile']['full_name'], 'Carla Souza')

    def test_patch_updates_full_name_only(self):
        response = self.client.patch('/api/v1/auth/me/', {
            'full_name': '  Carla S. Souza ',
            'username': 'hijacked',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['profile']['full_name'], 'Carla S. Souza')
        self.user.refresh_from_db()
        self.assertNotEqual(self.user.username, 'hijacked')
        self.assertTrue(AuditLog.objects.filter(model_name='Profile', action='update').exists())

    def test_patch_rejects_blank_name(self):
        response = self.client.patch('/api/v1/auth/me/', {'full_name': '   '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.user.profile.refresh_from_db()
        self.assertEqual(self.user.profile.full_name, 'Carla Souza')


class AuditLogTests(TestCase):
    """Test audit log helpers and endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.other = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_create_audit_log_skips_missing_fields(self):
        self.assertIsNone(create_audit_log(action='create', model_name=None, object_id=1))
        self.assertFalse(AuditLog.objects.exists())

    def test_create_audit_log_records_user(self):
        log = create_audit_log(user=self.user, action='create', model_name='Product', object_id=5, object_name='Hammer')
        self.assertEqual(log.user, self.user)
        self.assertEqual(log.object_id, '5')

    def test_get_client_ip_prefers_forwarded_header(self):
        class Request:
            META = {'HTTP_X_FORWARDED_FOR': '10.0.0.1, 10.0.0.2', 'REMOTE_ADDR': '127.0.0.1'}
        self.assertEqual(get_client_ip(Request()), '10.0.0.1')
        self.assertIsNone(get_client_ip(None))

    def test_list_shows_only_own_entries(self):
        create_audit_log(user=self.user, action='create', model_name='Category', object_id=1)
        create_audit_log(user=self.other, action='create', model_name='Category', object_id=2)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['object_id'] for row in response.data], ['1'])

    def test_staff_sees_everything_and_can_filter(self):
        staff = TestDataFactory.create_user(is_staff=True)
        self.client.authenticate_user(staff)
        create_audit_log(user=self.user, action='create', model_name='Category', object_id=1)
        create_audit_log(user=self.other, action='delete', model_name='Product', object_id=2)

        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(len(response.data), 2)

        response = self.client.get('/api/v1/audit-logs/?model=Product')
        self.assertEqual([row['action'] for row in response.data], ['delete'])

    def test_detail_of_someone_elses_entry_is_forbidden(self):
        log = create_audit_log(user=self.other, action='create', model_name='Category', object_id=2)
        response = self.client.get(f'/api/v1/audit-logs/{log.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_bad_date_filter(self):
        response = self.client.get('/api/v1/audit-logs/?date_from=yesterday')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class LedgerSettingsTests(TestCase):

    @override_settings(STOCK_LEDGER={'MOVEMENT_HISTORY_LIMIT': 10})
    def test_override_and_fallback(self):
        self.assertEqual(get_ledger_setting('MOVEMENT_HISTORY_LIMIT'), 10)
        self.assertEqual(get_ledger_setting('MOVEMENT_HISTORY_MAX_LIMIT'), 500)
