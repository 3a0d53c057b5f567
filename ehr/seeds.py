"""
Default staff accounts for a fresh database.
"""
import logging

from ehr.constants import Role
from ehr.models import Doctor, User

logger = logging.getLogger(__name__)

DEFAULT_USERS = [
    {
        'email': 'admin@clinic.com',
        'password': 'admin123',
        'first_name': 'System',
        'last_name': 'Admin',
        'role': Role.ADMIN,
    },
    {
        'email': 'doctor1@clinic.com',
        'password': 'doctor123',
        'first_name': 'John',
        'last_name': 'Doctor',
        'role': Role.DOCTOR,
        'doctor_profile': {
            'license_number': 'CMP-000001',
            'specialties': ['General Medicine'],
        },
    },
    {
        'email': 'nurse1@clinic.com',
        'password': 'nurse123',
        'first_name': 'Mary',
        'last_name': 'Nurse',
        'role': Role.NURSE,
    },
    {
        'email': 'receptionist1@clinic.com',
        'password': 'recep123',
        'first_name': 'Bob',
        'last_name': 'Receptionist',
        'role': Role.RECEPTIONIST,
    },
]


def seed_default_users(session, users=None):
    """Create missing default users; returns the emails created"""
    created = []
    for data in users or DEFAULT_USERS:
        if session.query(User).filter_by(email=data['email']).first():
            logger.info("User %s already exists (skipping)", data['email'])
            continue

        user = User(
            email=data['email'],
            first_name=data['first_name'],
            last_name=data['last_name'],
            role=data['role'],
            is_active=True,
        )
        user.set_password(data['password'])
        session.add(user)

        profile = data.get('doctor_profile')
        if profile:
            session.flush()
            session.add(Doctor(
                user_id=user.id,
                license_number=profile['license_number'],
                specialties=profile.get('specialties', []),
            ))
        created.append(user.email)

    session.commit()
    return created
