"""
Tests for /api/v1/auth: login, token checks, password changes and
staff registration.
"""
from ehr.constants import AuditAction, Role
from ehr.extensions import db
from ehr.models import AuditLog, User

from conftest import DEFAULT_PASSWORD


class TestLogin:
    endpoint = '/api/v1/auth/login'

    def test_login_success_returns_token_and_user(self, client, admin):
        response = client.post(self.endpoint, json={'email': 'admin@clinic.com', 'password': DEFAULT_PASSWORD})

        assert response.status_code == 200
        body = response.get_json()
        assert body['success'] is True
        assert body['token']
        assert body['token_type'] == 'bearer'
        assert body['expires_in'] == 24 * 3600
        assert body['user']['email'] == 'admin@clinic.com'
        assert 'password_hash' not in body['user']

    def test_login_is_case_insensitive_on_email(self, client, admin):
        response = client.post(self.endpoint, json={'email': '  ADMIN@Clinic.com ', 'password': DEFAULT_PASSWORD})
        assert response.status_code == 200

    def test_login_sets_last_login_and_audits(self, client, admin):
        assert admin.last_login is None

        client.post(self.endpoint, json={'email': admin.email, 'password': DEFAULT_PASSWORD})

        assert db.session.get(User, admin.id).last_login is not None
        entry = db.session.query(AuditLog).filter_by(action=AuditAction.LOGIN).one()
        assert entry.user_id == admin.id
        assert entry.additional_info == {'event': 'login', 'email': admin.email}

    def test_wrong_password_is_rejected(self, client, admin):
        response = client.post(self.endpoint, json={'email': admin.email, 'password': 'wrong-password'})

        assert response.status_code == 401
        assert response.get_json() == {'success': False, 'error': 'Invalid credentials'}

    def test_unknown_email_gets_the_same_message(self, client):
        response = client.post(self.endpoint, json={'email': 'ghost@clinic.com', 'password': 'whatever'})

        assert response.status_code == 401
        assert response.get_json()['error'] == 'Invalid credentials'

    def test_inactive_user_cannot_login(self, client, make_user):
        make_user('gone@clinic.com', Role.NURSE, is_active=False)

        response = client.post(self.endpoint, json={'email': 'gone@clinic.com', 'password': DEFAULT_PASSWORD})

        assert response.status_code == 401
        assert response.get_json()['error'] == 'Invalid credentials'

    def test_missing_credentials(self, client):
        response = client.post(self.endpoint, json={'email': 'admin@clinic.com'})
        assert response.status_code == 400

    def test_non_json_body(self, client):
        response = client.post(self.endpoint, data='not json', content_type='text/plain')

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Request body must be JSON'


class TestLoginRateLimit:
    endpoint = '/api/v1/auth/login'

    def test_failed_attempts_are_limited(self, client, admin):
        for _ in range(5):
            response = client.post(self.endpoint, json={'email': admin.email, 'password': 'bad'})
            assert response.status_code == 401

        response = client.post(self.endpoint, json={'email': admin.email, 'password': 'bad'})

        assert response.status_code == 429
        assert response.get_json()['error'] == 'Too many requests, please try again later'

    def test_successful_logins_are_not_counted(self, client, admin):
        for _ in range(8):
            response = client.post(self.endpoint, json={'email': admin.email, 'password': DEFAULT_PASSWORD})
            assert response.status_code == 200


class TestTokenChecks:

    def test_missing_token(self, client):
        response = client.get('/api/v1/auth/profile')

        assert response.status_code == 401
        assert response.get_json() == {'success': False, 'error': 'Authentication required'}

    def test_garbage_token(self, client):
        response = client.get('/api/v1/auth/profile', headers={'Authorization': 'Bearer not-a-jwt'})

        assert response.status_code == 401
        assert response.get_json()['success'] is False

    def test_profile(self, client, nurse, auth_headers):
        response = client.get('/api/v1/auth/profile', headers=auth_headers(nurse))

        assert response.status_code == 200
        assert response.get_json()['data']['role'] == Role.NURSE

    def test_deactivated_user_loses_access_immediately(self, client, nurse, auth_headers):
        headers = auth_headers(nurse)
        nurse.is_active = False
        db.session.commit()

        response = client.get('/api/v1/auth/profile', headers=headers)

        assert response.status_code == 401
        assert response.get_json()['error'] == 'User not found or inactive'

    def test_verify(self, client, doctor, doctor_headers):
        response = client.get('/api/v1/auth/verify', headers=doctor_headers)

        body = response.get_json()
        assert response.status_code == 200
        assert body['valid'] is True
        assert body['user'] == {'id': doctor.user.id, 'email': 'doctor@clinic.com', 'role': Role.DOCTOR}
        assert body['expires_at']

    def test_logout_is_audited(self, client, admin, admin_headers):
        response = client.post('/api/v1/auth/logout', headers=admin_headers)

        assert response.status_code == 200
        assert db.session.query(AuditLog).filter_by(action=AuditAction.LOGOUT, user_id=admin.id).count() == 1


class TestChangePassword:
    endpoint = '/api/v1/auth/change-password'

    def test_change_password(self, client, nurse, auth_headers):
        response = client.put(self.endpoint, headers=auth_headers(nurse), json={
            'currentPassword': DEFAULT_PASSWORD,
            'newPassword': 'new-secret-1',
        })

        assert response.status_code == 200
        assert nurse.check_password('new-secret-1')
        login = client.post('/api/v1/auth/login', json={'email': nurse.email, 'password': 'new-secret-1'})
        assert login.status_code == 200

    def test_snake_case_keys_are_accepted(self, client, nurse, auth_headers):
        response = client.put(self.endpoint, headers=auth_headers(nurse), json={
            'current_password': DEFAULT_PASSWORD,
            'new_password': 'another-one',
        })
        assert response.status_code == 200

    def test_short_password_leaves_hash_unchanged(self, client, nurse, auth_headers):
        old_hash = nurse.password_hash

        response = client.put(self.endpoint, headers=auth_headers(nurse), json={
            'currentPassword': DEFAULT_PASSWORD,
            'newPassword': '12345',
        })

        assert response.status_code == 400
        assert 'at least 6 characters' in response.get_json()['error']
        assert db.session.get(User, nurse.id).password_hash == old_hash
        assert nurse.check_password(DEFAULT_PASSWORD)

    def test_wrong_current_password(self, client, nurse, auth_headers):
        response = client.put(self.endpoint, headers=auth_headers(nurse), json={
            'currentPassword': 'not-it',
            'newPassword': 'new-secret-1',
        })

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Current password is incorrect'
        assert nurse.check_password(DEFAULT_PASSWORD)

    def test_audit_entry_carries_no_password(self, client, nurse, auth_headers):
        client.put(self.endpoint, headers=auth_headers(nurse), json={
            'currentPassword': DEFAULT_PASSWORD,
            'newPassword': 'new-secret-1',
        })

        entry = (
            db.session.query(AuditLog)
            .filter_by(entity_type='User', entity_id=str(nurse.id), action=AuditAction.UPDATE)
            .one()
        )
        assert entry.additional_info == {'event': 'password_change'}
        assert entry.old_data is None
        assert entry.new_data is None


class TestRegister:
    endpoint = '/api/v1/auth/register'

    def payload(self, **overrides):
        data = {
            'email': 'New.Staff@Clinic.com',
            'password': 'welcome1',
            'first_name': 'Luis',
            'last_name': 'Rojas',
            'role': Role.RECEPTIONIST,
        }
        data.update(overrides)
        return data

    def test_admin_registers_user(self, client, admin_headers):
        response = client.post(self.endpoint, headers=admin_headers, json=self.payload())

        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['email'] == 'new.staff@clinic.com'
        assert data['role'] == Role.RECEPTIONIST

    def test_register_doctor_with_profile(self, client, admin_headers):
        response = client.post(self.endpoint, headers=admin_headers, json=self.payload(
            email='house@clinic.com',
            role=Role.DOCTOR,
            doctor_profile={'license_number': 'CMP-123456', 'specialties': ['Diagnostics'], 'consultation_fee': '120.50'},
        ))

        assert response.status_code == 201
        profile = response.get_json()['data']['doctor_profile']
        assert profile['license_number'] == 'CMP-123456'
        assert profile['consultation_fee'] == 120.5

    def test_duplicate_email(self, client, admin, admin_headers):
        response = client.post(self.endpoint, headers=admin_headers, json=self.payload(email='admin@clinic.com'))
        assert response.status_code == 409

    def test_invalid_role(self, client, admin_headers):
        response = client.post(self.endpoint, headers=admin_headers, json=self.payload(role='janitor'))
        assert response.status_code == 400

    def test_non_admin_is_forbidden(self, client, nurse, auth_headers):
        response = client.post(self.endpoint, headers=auth_headers(nurse), json=self.payload())

        assert response.status_code == 403
        body = response.get_json()
        assert body['error'] == 'Permission denied. Required roles: admin'
        assert body['user_role'] == Role.NURSE

    def test_registration_audit_strips_password(self, client, admin_headers):
        client.post(self.endpoint, headers=admin_headers, json=self.payload())

        entry = db.session.query(AuditLog).filter_by(entity_type='User', action=AuditAction.CREATE).one()
        assert entry.new_data['email'] == 'new.staff@clinic.com'
        assert not any('password' in key for key in entry.new_data)
