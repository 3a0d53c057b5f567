"""
Shared fixtures: an in-memory app per test, staff users for every role and
helpers for authenticated requests.
"""
from datetime import timedelta

import pytest

from ehr import create_app
from ehr.constants import DocumentType, Role
from ehr.extensions import db, limiter
from ehr.models import Doctor, User
from ehr.models.base import utcnow
from ehr.services import auth_service, patient_service

DEFAULT_PASSWORD = 'password123'


@pytest.fixture
def app():
    app = create_app('testing')
    ctx = app.app_context()
    ctx.push()
    db.create_all()
    limiter.reset()

    yield app

    db.session.remove()
    db.drop_all()
    ctx.pop()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make_user(email, role, password=DEFAULT_PASSWORD, is_active=True, **extra):
        user = User(
            email=email,
            first_name=extra.get('first_name', 'Test'),
            last_name=extra.get('last_name', role.capitalize()),
            role=role,
            is_active=is_active,
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user
    return _make_user


@pytest.fixture
def make_doctor(make_user):
    def _make_doctor(email, license_number, specialties=None):
        user = make_user(email, Role.DOCTOR)
        doctor = Doctor(
            user_id=user.id,
            license_number=license_number,
            specialties=specialties or ['General Medicine'],
        )
        db.session.add(doctor)
        db.session.commit()
        return doctor
    return _make_doctor


@pytest.fixture
def admin(make_user):
    return make_user('admin@clinic.com', Role.ADMIN)


@pytest.fixture
def nurse(make_user):
    return make_user('nurse@clinic.com', Role.NURSE)


@pytest.fixture
def receptionist(make_user):
    return make_user('reception@clinic.com', Role.RECEPTIONIST)


@pytest.fixture
def doctor(make_doctor):
    return make_doctor('doctor@clinic.com', 'CMP-000001', ['Cardiology'])


@pytest.fixture
def other_doctor(make_doctor):
    return make_doctor('doctor2@clinic.com', 'CMP-000002')


@pytest.fixture
def auth_headers(app):
    """Authorization headers carrying a freshly issued token for `user`"""
    def _auth_headers(user):
        return {'Authorization': f'Bearer {auth_service.issue_token(user)}'}
    return _auth_headers


@pytest.fixture
def admin_headers(admin, auth_headers):
    return auth_headers(admin)


@pytest.fixture
def doctor_headers(doctor, auth_headers):
    return auth_headers(doctor.user)


@pytest.fixture
def patient(app):
    return patient_service.create_patient(db.session, {
        'document_type': DocumentType.DNI,
        'document_number': '45678912',
        'first_name': 'Ana',
        'paternal_surname': 'Torres',
        'maternal_surname': 'Quispe',
        'gender': 'F',
        'birth_date': '1990-05-20',
        'email': 'Ana.Torres@example.com',
    })


def tomorrow_at(hour, minute=0):
    """ISO string for tomorrow at hour:minute (UTC)"""
    moment = (utcnow() + timedelta(days=1)).replace(hour=hour, minute=minute, second=0, microsecond=0)
    return moment.isoformat()


@pytest.fixture
def appointment_payload(patient, doctor):
    def _payload(**overrides):
        payload = {
            'patient_id': patient.id,
            'doctor_id': doctor.id,
            'type': 'medical_consultation',
            'date_time': tomorrow_at(10),
            'description': 'Routine check',
        }
        payload.update(overrides)
        return payload
    return _payload
