"""
Consultations (one per attended appointment) and their prescriptions.
"""
import logging

from ehr.constants import AppointmentStatus, AuditAction, PrescriptionStatus
from ehr.errors import ConflictError, NotFoundError, ValidationError
from ehr.models import Consultation, Prescription
from ehr.services.appointment_service import get_appointment
from ehr.utils.audit import log_audit
from ehr.utils.decorators import ensure_appointment_access
from ehr.utils.validators import parse_date, parse_datetime, parse_decimal, parse_int, require_fields

logger = logging.getLogger(__name__)

DECIMAL_FIELDS = ('weight', 'height', 'temperature')
INTEGER_FIELDS = (
    'blood_pressure_systolic', 'blood_pressure_diastolic', 'heart_rate',
    'respiratory_rate', 'oxygen_saturation',
)
TEXT_FIELDS = (
    'chief_complaint', 'current_illness', 'anamnesis', 'pathological_antecedents',
    'family_antecedents', 'allergies', 'current_medications', 'physical_exam',
    'primary_diagnosis', 'primary_diagnosis_icd10', 'treatment_plan',
    'evolution_notes', 'recommendations',
)

PRESCRIPTION_FIELDS = (
    'medication_name', 'generic_name', 'concentration', 'pharmaceutical_form',
    'dose', 'frequency', 'route', 'duration', 'unit', 'special_instructions',
)


def _consultation_values(data):
    values = {}
    for key in DECIMAL_FIELDS:
        if key in data:
            values[key] = parse_decimal(data[key], key) if data[key] not in (None, '') else None
    for key in INTEGER_FIELDS:
        if key in data:
            values[key] = parse_int(data[key], key, minimum=0) if data[key] not in (None, '') else None
    for key in TEXT_FIELDS:
        if key in data:
            values[key] = data[key]
    if 'secondary_diagnoses' in data:
        if not isinstance(data['secondary_diagnoses'], list):
            raise ValidationError('secondary_diagnoses must be a list')
        values['secondary_diagnoses'] = data['secondary_diagnoses']
    if 'next_appointment_date' in data:
        value = data['next_appointment_date']
        values['next_appointment_date'] = parse_datetime(value, 'next_appointment_date') if value else None
    return values


def create_consultation(session, data, user):
    require_fields(data, 'appointment_id')
    appointment = get_appointment(session, parse_int(data['appointment_id'], 'appointment_id'), user)
    if appointment.status != AppointmentStatus.ATTENDED:
        raise ValidationError('Consultations can only be recorded for attended appointments')
    if appointment.consultation:
        raise ConflictError('This appointment already has a consultation')

    consultation = Consultation(appointment_id=appointment.id, **_consultation_values(data))
    session.add(consultation)
    session.commit()
    logger.info("Consultation %s recorded for appointment %s", consultation.id, appointment.id)

    log_audit(
        session, AuditAction.CREATE, 'Consultation', consultation.id, user_id=user.id,
        new_data=consultation.to_dict(include_prescriptions=False),
    )
    return consultation


def get_consultation(session, consultation_id, user=None) -> Consultation:
    consultation = session.get(Consultation, consultation_id)
    if not consultation:
        raise NotFoundError('Consultation not found')
    if user is not None:
        ensure_appointment_access(user, consultation.appointment)
    return consultation


def get_by_appointment(session, appointment_id, user):
    appointment = get_appointment(session, appointment_id, user)
    if not appointment.consultation:
        raise NotFoundError('Consultation not found')
    return appointment.consultation


def update_consultation(session, consultation_id, data, user):
    consultation = get_consultation(session, consultation_id, user)
    values = _consultation_values(data)
    if not values:
        raise ValidationError('No updatable fields provided')

    old_data = consultation.to_dict(include_prescriptions=False)
    for key, value in values.items():
        setattr(consultation, key, value)
    if not consultation.weight or not consultation.height:
        consultation.bmi = None
    session.commit()

    log_audit(
        session, AuditAction.UPDATE, 'Consultation', consultation.id, user_id=user.id,
        old_data=old_data, new_data=consultation.to_dict(include_prescriptions=False),
    )
    return consultation


def add_prescription(session, consultation_id, data, user):
    consultation = get_consultation(session, consultation_id, user)
    require_fields(data, 'medication_name', 'dose', 'frequency', 'duration', 'quantity')

    prescription = Prescription(
        consultation_id=consultation.id,
        quantity=parse_int(data['quantity'], 'quantity', minimum=1),
        is_chronic=bool(data.get('is_chronic', False)),
        **{k: data[k] for k in PRESCRIPTION_FIELDS if data.get(k) not in (None, '')}
    )
    if data.get('start_date'):
        prescription.start_date = parse_date(data['start_date'], 'start_date')
    if data.get('end_date'):
        prescription.end_date = parse_date(data['end_date'], 'end_date')
    if prescription.start_date and prescription.end_date and prescription.end_date < prescription.start_date:
        raise ValidationError('end_date cannot be before start_date')

    session.add(prescription)
    session.commit()

    log_audit(
        session, AuditAction.CREATE, 'Prescription', prescription.id, user_id=user.id,
        new_data=prescription.to_dict(),
    )
    return prescription


def list_prescriptions(session, consultation_id, user, status=None):
    consultation = get_consultation(session, consultation_id, user)
    query = session.query(Prescription).filter(Prescription.consultation_id == consultation.id)
    if status:
        query = query.filter(Prescription.status == status)
    return query.order_by(Prescription.id.asc()).all()


def get_prescription(session, prescription_id, user) -> Prescription:
    prescription = session.get(Prescription, prescription_id)
    if not prescription:
        raise NotFoundError('Prescription not found')
    ensure_appointment_access(user, prescription.consultation.appointment)
    return prescription


def change_prescription_status(session, prescription_id, status, user):
    """active -> completed | cancelled; completed and cancelled are final"""
    if status not in PrescriptionStatus.ALL:
        raise ValidationError('Invalid prescription status', allowed=list(PrescriptionStatus.ALL))
    prescription = get_prescription(session, prescription_id, user)
    if prescription.status != PrescriptionStatus.ACTIVE:
        raise ValidationError(f'A {prescription.status} prescription cannot change status')
    if status == PrescriptionStatus.ACTIVE:
        raise ValidationError('Prescription is already active')

    old_data = prescription.to_dict()
    prescription.status = status
    session.commit()

    log_audit(
        session, AuditAction.UPDATE, 'Prescription', prescription.id, user_id=user.id,
        old_data=old_data, new_data=prescription.to_dict(),
    )
    return prescription
