import logging

from ehr.constants import AuditAction, Role
from ehr.errors import ConflictError, NotFoundError, ValidationError
from ehr.models import Doctor, User
from ehr.services.auth_service import build_doctor
from ehr.utils.audit import log_audit
from ehr.utils.validators import parse_date, parse_int, require_fields

logger = logging.getLogger(__name__)


def list_doctors(session, specialty=None):
    doctors = (
        session.query(Doctor)
        .join(User, Doctor.user_id == User.id)
        .filter(Doctor.is_active.is_(True), User.is_active.is_(True))
        .order_by(User.last_name.asc(), User.first_name.asc())
        .all()
    )
    if specialty:
        wanted = specialty.strip().lower()
        doctors = [d for d in doctors if any(s.lower() == wanted for s in (d.specialties or []))]
    return doctors


def get_doctor(session, doctor_id) -> Doctor:
    doctor = session.get(Doctor, doctor_id)
    if not doctor:
        raise NotFoundError('Doctor not found')
    return doctor


def create_doctor(session, data, actor_id=None):
    """Attach a doctor profile to an existing user with the doctor role"""
    require_fields(data, 'user_id', 'license_number')
    user = session.get(User, parse_int(data['user_id'], 'user_id'))
    if not user or not user.is_active:
        raise NotFoundError('User not found')
    if user.role != Role.DOCTOR:
        raise ValidationError('User must have the doctor role')
    if user.doctor_profile:
        raise ConflictError('User already has a doctor profile')
    license_number = str(data['license_number']).strip()
    if session.query(Doctor).filter_by(license_number=license_number).first():
        raise ConflictError('A doctor with this license number already exists')

    doctor = build_doctor(user, data)
    if data.get('license_expiry'):
        doctor.license_expiry = parse_date(data['license_expiry'], 'license_expiry')
    session.add(doctor)
    session.commit()
    logger.info("Doctor profile %s created for user %s", doctor.id, user.id)

    log_audit(
        session, AuditAction.CREATE, 'Doctor', doctor.id, user_id=actor_id,
        new_data=doctor.to_dict(),
    )
    return doctor
