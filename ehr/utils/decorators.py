from functools import wraps

from flask import g
from flask_jwt_extended import current_user

from ehr.constants import Role
from ehr.errors import AuthenticationError, PermissionDeniedError
from .rate_limit import check_user_limit


def get_current_user():
    """User resolved by the JWT user loader for this request"""
    return g.get('current_user') or current_user


def doctor_id_for(user):
    """Doctor profile id a doctor is restricted to, or None when unrestricted"""
    if user.role != Role.DOCTOR:
        return None
    return user.doctor_profile.id if user.doctor_profile else -1


def ensure_appointment_access(user, appointment):
    """Doctors may only touch their own appointments"""
    restricted_to = doctor_id_for(user)
    if restricted_to is not None and appointment.doctor_id != restricted_to:
        raise PermissionDeniedError('You can only access your own appointments')


def require_role(*roles):
    """
    Decorator to require specific roles
    Usage: @require_role('admin', 'doctor')
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            """
            Require that the current JWT-authenticated user has one of the given roles.
            Must be used together with @jwt_required() on the route.
            """
            user = current_user
            if not user or not user.is_active:
                raise AuthenticationError('Authentication required')

            if user.role not in roles:
                raise PermissionDeniedError(
                    f'Permission denied. Required roles: {", ".join(roles)}',
                    user_role=user.role,
                )

            check_user_limit(user)

            g.current_user = user
            return f(*args, **kwargs)
        return decorated_function
    return decorator
