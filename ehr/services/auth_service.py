"""
Credential checks, token issuance and password management.
"""
import logging

from flask import current_app
from flask_jwt_extended import create_access_token

from ehr.constants import AuditAction, Role
from ehr.errors import AuthenticationError, ConflictError, ValidationError
from ehr.models import Doctor, User
from ehr.models.base import utcnow
from ehr.utils.audit import Login, Logout, PasswordChange, log_audit
from ehr.utils.validators import is_valid_email, parse_decimal, require_fields

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = 'Invalid credentials'


def issue_token(user):
    # Identity must be a string for the JWT "sub" claim
    return create_access_token(
        identity=str(user.id),
        additional_claims={'email': user.email, 'role': user.role},
    )


def token_expires_in():
    return int(current_app.config['JWT_ACCESS_TOKEN_EXPIRES'].total_seconds())


def authenticate(session, email, password):
    """
    Returns (user, token) for an active user with a matching password.

    Unknown email, wrong password and inactive accounts all fail with the
    same message.
    """
    if not email or not password:
        raise ValidationError('Email and password required')

    user = (
        session.query(User)
        .filter(User.email == email.strip().lower(), User.is_active.is_(True))
        .first()
    )
    if not user or not user.check_password(password):
        logger.info("Failed login attempt for %s", email)
        raise AuthenticationError(INVALID_CREDENTIALS)

    user.last_login = utcnow()
    session.commit()

    log_audit(
        session, AuditAction.LOGIN, 'User', user.id, user_id=user.id,
        context=Login(email=user.email),
    )
    return user, issue_token(user)


def logout(session, user):
    """Stateless JWT: the client discards the token, we only record the event"""
    log_audit(session, AuditAction.LOGOUT, 'User', user.id, user_id=user.id, context=Logout())


def validate_password(password):
    min_length = current_app.config['PASSWORD_MIN_LENGTH']
    if not password or len(password) < min_length:
        raise ValidationError(f'Password must be at least {min_length} characters long')


def change_password(session, user, current_password, new_password):
    if not current_password or not new_password:
        raise ValidationError('Current password and new password are required')
    if not user.check_password(current_password):
        raise ValidationError('Current password is incorrect')
    validate_password(new_password)

    user.set_password(new_password)
    session.commit()
    logger.info("Password changed for user %s", user.id)

    log_audit(
        session, AuditAction.UPDATE, 'User', user.id, user_id=user.id,
        context=PasswordChange(),
    )
    return user


def register_user(session, data, actor_id=None):
    """Create a staff account; doctors may get their profile in the same call"""
    require_fields(data, 'email', 'password', 'first_name', 'last_name', 'role')
    email = data['email'].strip().lower()
    if not is_valid_email(email):
        raise ValidationError('Invalid email')
    validate_password(data['password'])
    if data['role'] not in Role.ALL:
        raise ValidationError('Invalid role', allowed=list(Role.ALL))
    if session.query(User).filter_by(email=email).first():
        raise ConflictError('A user with this email already exists')

    user = User(
        email=email,
        first_name=data['first_name'].strip(),
        last_name=data['last_name'].strip(),
        role=data['role'],
        is_active=True,
    )
    user.set_password(data['password'])
    session.add(user)

    profile = data.get('doctor_profile')
    if user.role == Role.DOCTOR and profile:
        require_fields(profile, 'license_number')
        session.flush()
        session.add(build_doctor(user, profile))

    session.commit()
    logger.info("User %s registered with role %s", user.email, user.role)

    log_audit(
        session, AuditAction.CREATE, 'User', user.id, user_id=actor_id,
        new_data=user.to_dict(),
    )
    return user


def build_doctor(user, profile):
    doctor = Doctor(
        user_id=user.id,
        license_number=str(profile['license_number']).strip(),
        specialties=profile.get('specialties') or [],
        external_code=profile.get('external_code'),
    )
    if profile.get('consultation_fee') not in (None, ''):
        doctor.consultation_fee = parse_decimal(profile['consultation_fee'], 'consultation_fee')
    return doctor
