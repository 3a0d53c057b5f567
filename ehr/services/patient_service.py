"""
Patient intake and maintenance.

Every function takes the SQLAlchemy session as its first argument; routes
pass db.session.
"""
import logging
from typing import Optional

from sqlalchemy import func, or_

from ehr.constants import (
    AuditAction, DocumentType, GENDERS, HISTORY_NUMBER_PREFIX, HISTORY_NUMBER_WIDTH,
)
from ehr.errors import ConflictError, NotFoundError, ValidationError
from ehr.models import Appointment, Patient
from ehr.utils.audit import SoftDelete, log_audit
from ehr.utils.validators import (
    is_valid_email, parse_date, require_fields, validate_document,
)

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    'document_type', 'document_number', 'first_name', 'paternal_surname',
    'maternal_surname', 'birth_date', 'gender', 'email', 'phone', 'address',
    'emergency_contact_name', 'emergency_contact_phone',
)


def format_history_number(number):
    return f"{HISTORY_NUMBER_PREFIX}{number:0{HISTORY_NUMBER_WIDTH}d}"


def generate_history_number(session):
    """Next clinical record number: highest existing HCE-NNNNNN + 1"""
    last = (
        session.query(Patient.history_number)
        .filter(Patient.history_number.like(f"{HISTORY_NUMBER_PREFIX}%"))
        .order_by(func.length(Patient.history_number).desc(), Patient.history_number.desc())
        .first()
    )
    next_number = 1
    if last:
        suffix = last[0][len(HISTORY_NUMBER_PREFIX):]
        if suffix.isdigit():
            next_number = int(suffix) + 1
    return format_history_number(next_number)


def find_by_document(session, document_type, document_number, exclude_id=None):
    query = session.query(Patient).filter(
        Patient.document_type == document_type,
        Patient.document_number == document_number,
        Patient.is_active.is_(True),
    )
    if exclude_id is not None:
        query = query.filter(Patient.id != exclude_id)
    return query.first()


def _clean(data):
    """Normalise and validate patient attributes present in `data`"""
    values = {}
    for key in UPDATABLE_FIELDS:
        if key not in data:
            continue
        value = data[key]
        if isinstance(value, str):
            value = value.strip()
        values[key] = value if value != '' else None

    if 'email' in values and values['email']:
        if not is_valid_email(values['email']):
            raise ValidationError('Invalid email')
        values['email'] = values['email'].lower()
    if 'gender' in values and values['gender']:
        values['gender'] = values['gender'].upper()
        if values['gender'] not in GENDERS:
            raise ValidationError('Invalid gender')
    if values.get('birth_date'):
        values['birth_date'] = parse_date(values['birth_date'], 'birth_date')
    if 'document_number' in values and values['document_number'] is not None:
        values['document_number'] = str(values['document_number'])
    return values


def create_patient(session, data, user_id: Optional[int] = None, external_code=None, context=None):
    require_fields(data, 'document_type', 'document_number', 'first_name', 'paternal_surname')
    values = _clean(data)
    validate_document(values['document_type'], values['document_number'])

    if find_by_document(session, values['document_type'], values['document_number']):
        raise ConflictError('A patient with this document already exists')

    patient = Patient(**values)
    patient.external_code = external_code
    patient.history_number = generate_history_number(session)
    session.add(patient)
    session.commit()
    logger.info("Patient %s created with history number %s", patient.id, patient.history_number)

    log_audit(
        session, AuditAction.CREATE, 'Patient', patient.id,
        user_id=user_id, new_data=patient.to_dict(), context=context,
    )
    return patient


def get_patient(session, patient_id) -> Patient:
    patient = session.get(Patient, patient_id)
    if not patient or not patient.is_active:
        raise NotFoundError('Patient not found')
    return patient


def recent_appointments(session, patient_id, limit=5):
    return (
        session.query(Appointment)
        .filter(Appointment.patient_id == patient_id, Appointment.is_active.is_(True))
        .order_by(Appointment.date_time.desc())
        .limit(limit)
        .all()
    )


def list_patients(session, page=1, per_page=10, search=None, document_type=None, gender=None):
    query = session.query(Patient).filter(Patient.is_active.is_(True))
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(
            Patient.first_name.ilike(term),
            Patient.paternal_surname.ilike(term),
            Patient.maternal_surname.ilike(term),
            Patient.document_number.ilike(term),
            Patient.history_number.ilike(term),
        ))
    if document_type:
        query = query.filter(Patient.document_type == document_type)
    if gender:
        query = query.filter(Patient.gender == gender.upper())
    query = query.order_by(Patient.paternal_surname.asc(), Patient.first_name.asc())
    return query.paginate(page=page, per_page=per_page, error_out=False)


def search_by_document(session, document_number, document_type=None):
    if not document_number:
        raise ValidationError('document_number is required')
    query = session.query(Patient).filter(
        Patient.document_number == str(document_number).strip(),
        Patient.is_active.is_(True),
    )
    if document_type:
        query = query.filter(Patient.document_type == document_type)
    return query.all()


def update_patient(session, patient_id, data, user_id=None):
    patient = get_patient(session, patient_id)
    values = _clean(data)
    if not values:
        raise ValidationError('No updatable fields provided')

    for required in ('document_type', 'document_number', 'first_name', 'paternal_surname'):
        if required in values and not values[required]:
            raise ValidationError(f'{required} cannot be empty')

    document_type = values.get('document_type', patient.document_type)
    document_number = values.get('document_number', patient.document_number)
    if 'document_type' in values or 'document_number' in values:
        validate_document(document_type, document_number)
        if find_by_document(session, document_type, document_number, exclude_id=patient.id):
            raise ConflictError('A patient with this document already exists')

    old_data = patient.to_dict()
    for key, value in values.items():
        setattr(patient, key, value)
    session.commit()

    log_audit(
        session, AuditAction.UPDATE, 'Patient', patient.id,
        user_id=user_id, old_data=old_data, new_data=patient.to_dict(),
    )
    return patient


def delete_patient(session, patient_id, user_id=None, reason=None):
    """Soft delete; medical data is never removed"""
    patient = get_patient(session, patient_id)
    old_data = patient.to_dict()
    patient.is_active = False
    session.commit()
    logger.info("Patient %s deactivated", patient.id)

    log_audit(
        session, AuditAction.DELETE, 'Patient', patient.id,
        user_id=user_id, old_data=old_data, new_data=patient.to_dict(),
        context=SoftDelete(reason=reason),
    )
    return patient


def find_or_create_by_dni(session, values, external_code, context=None):
    """
    Patient for a billing-system DNI; returns (patient, created).
    `values` must already hold the split name parts.
    """
    patient = find_by_document(session, DocumentType.DNI, values['document_number'])
    if patient:
        return patient, False
    data = dict(values, document_type=DocumentType.DNI)
    return create_patient(session, data, external_code=external_code, context=context), True
