"""
Reconciliation with the external billing system.

Appointments are matched on their external code; patients synced from
billing carry external_code BILLING_<dni>.
"""
import logging
from datetime import datetime, time, timedelta
from typing import Optional

from flask import current_app
from sqlalchemy import func

from ehr.constants import (
    AppointmentStatus, AppointmentType, AuditAction, BILLING_CODE_PREFIX,
)
from ehr.errors import NotFoundError, ValidationError
from ehr.models import Appointment, Patient
from ehr.services import appointment_service, patient_service
from ehr.utils.audit import BillingSync, PaymentUpdate, log_audit
from ehr.utils.validators import DNI_RE, parse_date, parse_datetime, parse_decimal

logger = logging.getLogger(__name__)

SYNC_DESCRIPTION = 'Appointment synced from billing system'
SYNC_NOTES = 'Appointment created automatically from billing system'
# attended and cancelled are only ever set by clinic staff
BILLING_STATUSES = appointment_service.ASSIGNABLE_STATUSES


def split_full_name(names):
    """
    (first_name, paternal_surname, maternal_surname) from a full name.

    The last two tokens are the surnames, everything before is the first
    name. Two tokens give no maternal surname; a single token gets 'N/A'.
    """
    parts = (names or '').split()
    if len(parts) >= 3:
        return ' '.join(parts[:-2]), parts[-2], parts[-1]
    if len(parts) == 2:
        return parts[0], parts[1], None
    return (names or '').strip(), 'N/A', None


def _payment_method_for(status):
    if status == AppointmentStatus.PAID:
        return current_app.config['BILLING_PAYMENT_METHOD']
    return None


def _find_by_external_code(session, external_code) -> Optional[Appointment]:
    return (
        session.query(Appointment)
        .filter(Appointment.external_code == external_code, Appointment.is_active.is_(True))
        .first()
    )


def validate_sync_payload(data):
    patient_data = data.get('patient')
    appointment_data = data.get('appointment')
    if not isinstance(patient_data, dict) or not isinstance(appointment_data, dict):
        raise ValidationError('Patient and appointment data are required')

    dni = str(patient_data.get('dni') or '').strip()
    names = patient_data.get('names')
    if not dni or not names or not appointment_data.get('doctor_id') \
            or not appointment_data.get('date_time') or not appointment_data.get('external_code'):
        raise ValidationError('DNI, names, doctor, date/time and external code are required')
    if not DNI_RE.match(dni):
        raise ValidationError('DNI must have exactly 8 digits')
    _check_billing_status(appointment_data.get('status'))
    return patient_data, appointment_data, dni


def _check_billing_status(status):
    if status and status not in BILLING_STATUSES:
        raise ValidationError('Invalid appointment status', allowed=list(BILLING_STATUSES))


def _ensure_not_terminal(appointment):
    if appointment.status in AppointmentStatus.TERMINAL:
        raise ValidationError(
            f'A {appointment.status} appointment cannot be changed by the billing system',
            appointment_id=appointment.id,
        )


def reconcile(session, existing, status, price, external_code, user_id=None):
    """Apply the status and amount billing reports, when they differ from ours"""
    changes = {}
    if status and status != existing.status:
        changes['status'] = status
        changes['payment_method'] = _payment_method_for(status)
    if price is not None and price != existing.payment_amount:
        changes['payment_amount'] = price
    if not changes:
        return {
            'message': 'Appointment already exists and is in sync',
            'appointment_id': existing.id,
            'action': 'no_change',
        }
    _ensure_not_terminal(existing)

    old_data = existing.to_dict(include_relations=False)
    for key, value in changes.items():
        setattr(existing, key, value)
    session.commit()
    logger.info("Appointment %s synced from billing: %s", existing.id, sorted(changes))

    log_audit(
        session, AuditAction.SYNC_UPDATE, 'Appointment', existing.id, user_id=user_id,
        old_data=old_data, new_data=existing.to_dict(include_relations=False),
        context=BillingSync(external_code=external_code),
    )
    return {
        'message': 'Appointment updated from billing system',
        'appointment_id': existing.id,
        'action': 'updated',
    }


def sync_appointment(session, data, user_id=None):
    """
    Create or reconcile one appointment from the billing system.

    Returns a result dict whose 'action' is 'created', 'updated' or
    'no_change'.
    """
    patient_data, appointment_data, dni = validate_sync_payload(data)
    external_code = str(appointment_data['external_code']).strip()
    status = appointment_data.get('status')
    price = appointment_data.get('price')
    price = parse_decimal(price, 'price') if price not in (None, '') else None

    existing = _find_by_external_code(session, external_code)
    if existing:
        return reconcile(session, existing, status, price, external_code, user_id=user_id)

    appointment_values = {
        'doctor_id': appointment_data['doctor_id'],
        'type': appointment_data.get('type') or AppointmentType.MEDICAL_CONSULTATION,
        'date_time': appointment_data['date_time'],
        'duration_minutes': appointment_data.get('duration_minutes'),
        'description': appointment_data.get('description') or SYNC_DESCRIPTION,
        'notes': SYNC_NOTES,
        'status': status or AppointmentStatus.PENDING,
        'payment_amount': price,
        'payment_method': _payment_method_for(status),
    }
    # A rejected appointment must not leave a billing patient behind
    appointment_service.check_new_appointment(session, appointment_values)

    first_name, paternal_surname, maternal_surname = split_full_name(patient_data['names'])
    values = {
        'document_number': dni,
        'first_name': first_name,
        'paternal_surname': paternal_surname,
        'maternal_surname': maternal_surname,
        'gender': patient_data.get('gender'),
        'email': patient_data.get('email'),
        'phone': patient_data.get('phone'),
        'birth_date': patient_data.get('birth_date'),
    }
    patient, patient_created = patient_service.find_or_create_by_dni(
        session, values, external_code=f"{BILLING_CODE_PREFIX}{dni}",
        context=BillingSync(external_code=external_code, patient_created=True),
    )

    appointment = appointment_service.create_appointment(
        session,
        dict(appointment_values, patient_id=patient.id),
        external_code=external_code,
        context=BillingSync(external_code=external_code, patient_created=patient_created),
    )
    return {
        'message': 'Appointment synced from billing system',
        'appointment_id': appointment.id,
        'patient_id': patient.id,
        'patient_created': patient_created,
        'action': 'created',
    }


def update_payment_status(session, data, user_id=None):
    external_code = data.get('external_code')
    status = data.get('status')
    if not external_code or not status:
        raise ValidationError('External code and status are required')
    _check_billing_status(status)
    payment_amount = None
    if data.get('payment_amount') not in (None, ''):
        payment_amount = parse_decimal(data['payment_amount'], 'payment_amount')
    payment_date = None
    if data.get('payment_date'):
        payment_date = parse_datetime(data['payment_date'], 'payment_date')

    appointment = _find_by_external_code(session, external_code)
    if not appointment:
        raise NotFoundError('Appointment not found', external_code=external_code)
    _ensure_not_terminal(appointment)

    old_data = appointment.to_dict(include_relations=False)
    appointment.status = status
    if payment_amount is not None:
        appointment.payment_amount = payment_amount
    if data.get('payment_method'):
        appointment.payment_method = data['payment_method']
    if payment_date is not None:
        appointment.payment_date = payment_date

    transaction_id = data.get('transaction_id')
    if transaction_id:
        lines = [appointment.notes or '', f"Transaction ID: {transaction_id}"]
        if data.get('payment_date'):
            lines.append(f"Payment date: {data['payment_date']}")
        appointment.notes = '\n'.join(lines)
    session.commit()

    log_audit(
        session, AuditAction.PAYMENT_UPDATE, 'Appointment', appointment.id, user_id=user_id,
        old_data=old_data, new_data=appointment.to_dict(include_relations=False),
        context=PaymentUpdate(
            external_code=external_code,
            transaction_id=str(transaction_id) if transaction_id else None,
            payment_date=data.get('payment_date'),
        ),
    )
    return appointment


def get_sync_status(session, external_code):
    appointment = _find_by_external_code(session, external_code)
    if not appointment:
        raise NotFoundError('Appointment not found', external_code=external_code)
    return {
        'id': appointment.id,
        'external_code': appointment.external_code,
        'status': appointment.status,
        'date_time': appointment.date_time.isoformat(),
        'payment_amount': float(appointment.payment_amount) if appointment.payment_amount is not None else None,
        'patient': appointment.patient.to_summary() if appointment.patient else None,
        'doctor': appointment.doctor.to_dict() if appointment.doctor else None,
        'last_updated': appointment.updated_at.isoformat() if appointment.updated_at else None,
    }


def get_sync_statistics(session, date_from=None, date_to=None):
    appointments = session.query(Appointment).filter(
        Appointment.external_code.isnot(None), Appointment.is_active.is_(True),
    )
    patients = session.query(Patient).filter(
        Patient.external_code.like(f"{BILLING_CODE_PREFIX}%"), Patient.is_active.is_(True),
    )
    if date_from:
        start = _day_start(date_from, 'date_from')
        appointments = appointments.filter(Appointment.created_at >= start)
        patients = patients.filter(Patient.created_at >= start)
    if date_to:
        end = _day_start(date_to, 'date_to') + timedelta(days=1)
        appointments = appointments.filter(Appointment.created_at < end)
        patients = patients.filter(Patient.created_at < end)

    by_status = dict(
        appointments.with_entities(Appointment.status, func.count(Appointment.id))
        .group_by(Appointment.status).all()
    )
    return {
        'total_synced_appointments': appointments.count(),
        'total_synced_patients': patients.count(),
        'appointments_by_status': by_status,
        'period': {
            'from': date_from or 'beginning',
            'to': date_to or 'present',
        },
    }


def _day_start(value, field):
    return datetime.combine(parse_date(value, field), time.min)