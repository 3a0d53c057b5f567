"""
Appointment scheduling: conflict rule and status lifecycle.

pending/confirmed/paid/unpaid -> attended | cancelled; attended and
cancelled are terminal.
"""
import logging
from datetime import datetime, time, timedelta
from typing import Optional

from flask import current_app
from sqlalchemy import func

from ehr.constants import AppointmentStatus, AppointmentType, AuditAction
from ehr.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from ehr.models import Appointment, Doctor
from ehr.models.base import utcnow
from ehr.services.patient_service import get_patient
from ehr.utils.audit import Cancellation, MarkAttended, log_audit
from ehr.utils.decorators import doctor_id_for, ensure_appointment_access
from ehr.utils.validators import (
    ensure_future, parse_date, parse_datetime, parse_decimal, parse_int, require_fields,
)

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    'doctor_id', 'type', 'date_time', 'duration_minutes', 'description',
    'notes', 'payment_amount', 'payment_method', 'status',
)
# Statuses an update may set; attended/cancelled have their own operations
ASSIGNABLE_STATUSES = (
    AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED,
    AppointmentStatus.PAID, AppointmentStatus.UNPAID,
)


def conflict_window(duration_minutes=None):
    if duration_minutes:
        return int(duration_minutes)
    return current_app.config['APPOINTMENT_CONFLICT_WINDOW_MINUTES']


def get_active_doctor(session, doctor_id, lock=False) -> Doctor:
    query = session.query(Doctor).filter(Doctor.id == doctor_id)
    if lock:
        # Serialises concurrent bookings for one doctor (no-op on SQLite)
        query = query.with_for_update()
    doctor = query.first()
    if not doctor or not doctor.is_active:
        raise NotFoundError('Doctor not found or inactive')
    return doctor


def find_conflict(session, doctor_id, start, window_minutes, exclude_id=None) -> Optional[Appointment]:
    """First active, non-cancelled appointment of the doctor within [start-W, start+W]"""
    window = timedelta(minutes=window_minutes)
    query = session.query(Appointment).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.is_active.is_(True),
        Appointment.status != AppointmentStatus.CANCELLED,
        Appointment.date_time.between(start - window, start + window),
    )
    if exclude_id is not None:
        query = query.filter(Appointment.id != exclude_id)
    return query.order_by(Appointment.date_time.asc()).first()


def ensure_available(session, doctor_id, start, duration_minutes=None, exclude_id=None):
    conflict = find_conflict(session, doctor_id, start, conflict_window(duration_minutes), exclude_id)
    if conflict:
        raise ConflictError(
            'Doctor already has an appointment scheduled at that time',
            conflicting_appointment_id=conflict.id,
        )


def _parse_duration(value):
    if value in (None, ''):
        return None
    return parse_int(
        value, 'duration_minutes',
        minimum=current_app.config['APPOINTMENT_MIN_DURATION'],
        maximum=current_app.config['APPOINTMENT_MAX_DURATION'],
    )


def _parse_type(value):
    if value not in AppointmentType.ALL:
        raise ValidationError('Invalid appointment type', allowed=list(AppointmentType.ALL))
    return value


def check_new_appointment(session, data, user=None):
    """
    Run every rule a new appointment must pass before anything is written.

    Returns the parsed values plus the (locked) doctor; callers that create
    other rows first, like the billing sync, call this before doing so.
    """
    require_fields(data, 'doctor_id', 'type', 'date_time')
    checked = {
        'type': _parse_type(data['type']),
        'date_time': parse_datetime(data['date_time']),
        'duration_minutes': _parse_duration(data.get('duration_minutes')),
        'payment_amount': None,
        'status': data.get('status'),
    }
    ensure_future(checked['date_time'])
    if data.get('payment_amount') not in (None, ''):
        checked['payment_amount'] = parse_decimal(data['payment_amount'], 'payment_amount')
    if checked['status'] and checked['status'] not in ASSIGNABLE_STATUSES:
        raise ValidationError('Invalid appointment status')

    doctor_id = parse_int(data['doctor_id'], 'doctor_id')
    if user is not None:
        restricted_to = doctor_id_for(user)
        if restricted_to is not None and restricted_to != doctor_id:
            raise PermissionDeniedError('Doctors can only schedule their own appointments')

    checked['doctor'] = get_active_doctor(session, doctor_id, lock=True)
    ensure_available(session, doctor_id, checked['date_time'], checked['duration_minutes'])
    return checked


def create_appointment(session, data, user=None, external_code=None, context=None):
    require_fields(data, 'patient_id', 'doctor_id', 'type', 'date_time')
    patient = get_patient(session, parse_int(data['patient_id'], 'patient_id'))
    checked = check_new_appointment(session, data, user)
    doctor = checked['doctor']
    start = checked['date_time']
    payment_amount = checked['payment_amount']

    appointment = Appointment(
        patient_id=patient.id,
        doctor_id=doctor.id,
        type=checked['type'],
        date_time=start,
        duration_minutes=checked['duration_minutes'] or 30,
        description=data.get('description'),
        notes=data.get('notes'),
        external_code=external_code,
    )
    if checked['status']:
        appointment.status = checked['status']
    else:
        appointment.status = AppointmentStatus.PAID if payment_amount is not None else AppointmentStatus.PENDING
    if payment_amount is not None:
        appointment.payment_amount = payment_amount
        appointment.payment_method = data.get('payment_method')
        appointment.payment_date = utcnow()

    session.add(appointment)
    session.commit()
    logger.info("Appointment %s created for doctor %s at %s", appointment.id, doctor.id, start)

    log_audit(
        session, AuditAction.CREATE, 'Appointment', appointment.id,
        user_id=user.id if user is not None else None,
        new_data=appointment.to_dict(include_relations=False), context=context,
    )
    return appointment


def get_appointment(session, appointment_id, user=None) -> Appointment:
    appointment = session.get(Appointment, appointment_id)
    if not appointment or not appointment.is_active:
        raise NotFoundError('Appointment not found')
    if user is not None:
        ensure_appointment_access(user, appointment)
    return appointment


def update_appointment(session, appointment_id, data, user):
    appointment = get_appointment(session, appointment_id, user)
    if appointment.status in AppointmentStatus.TERMINAL:
        raise ValidationError(f'A {appointment.status} appointment cannot be modified')

    values = {k: data[k] for k in UPDATABLE_FIELDS if k in data}
    if not values:
        raise ValidationError('No updatable fields provided')

    if 'type' in values:
        values['type'] = _parse_type(values['type'])
    if 'date_time' in values:
        values['date_time'] = parse_datetime(values['date_time'])
        ensure_future(values['date_time'])
    if 'duration_minutes' in values:
        values['duration_minutes'] = _parse_duration(values['duration_minutes']) or 30
    if 'doctor_id' in values:
        values['doctor_id'] = parse_int(values['doctor_id'], 'doctor_id')
        restricted_to = doctor_id_for(user)
        if restricted_to is not None and restricted_to != values['doctor_id']:
            raise PermissionDeniedError('Doctors cannot reassign appointments to another doctor')
    if 'status' in values and values['status'] not in ASSIGNABLE_STATUSES:
        raise ValidationError('Invalid status for update, use the attend or cancel operations')
    if 'payment_amount' in values:
        amount = values['payment_amount']
        values['payment_amount'] = parse_decimal(amount, 'payment_amount') if amount not in (None, '') else None

    doctor_id = values.get('doctor_id', appointment.doctor_id)
    start = values.get('date_time', appointment.date_time)
    duration = values.get('duration_minutes', appointment.duration_minutes)
    if any(k in values for k in ('doctor_id', 'date_time', 'duration_minutes')):
        get_active_doctor(session, doctor_id, lock=True)
        ensure_available(session, doctor_id, start, duration, exclude_id=appointment.id)

    old_data = appointment.to_dict(include_relations=False)
    for key, value in values.items():
        setattr(appointment, key, value)
    if values.get('status') == AppointmentStatus.PAID and not appointment.payment_date:
        appointment.payment_date = utcnow()
    session.commit()

    log_audit(
        session, AuditAction.UPDATE, 'Appointment', appointment.id, user_id=user.id,
        old_data=old_data, new_data=appointment.to_dict(include_relations=False),
    )
    return appointment


def cancel_appointment(session, appointment_id, user, reason=None):
    appointment = get_appointment(session, appointment_id, user)
    if appointment.status == AppointmentStatus.CANCELLED:
        raise ValidationError('Appointment is already cancelled')
    if appointment.status == AppointmentStatus.ATTENDED:
        raise ValidationError('An attended appointment cannot be cancelled')

    old_data = appointment.to_dict(include_relations=False)
    appointment.status = AppointmentStatus.CANCELLED
    if reason:
        appointment.notes = f"{appointment.notes}\nCancelled: {reason}" if appointment.notes else f"Cancelled: {reason}"
    session.commit()
    logger.info("Appointment %s cancelled by user %s", appointment.id, user.id)

    log_audit(
        session, AuditAction.UPDATE, 'Appointment', appointment.id, user_id=user.id,
        old_data=old_data, new_data=appointment.to_dict(include_relations=False),
        context=Cancellation(reason=reason),
    )
    return appointment


def mark_attended(session, appointment_id, user, notes=None):
    appointment = get_appointment(session, appointment_id, user)
    if appointment.status == AppointmentStatus.ATTENDED:
        raise ValidationError('Appointment is already marked as attended')
    if appointment.status == AppointmentStatus.CANCELLED:
        raise ValidationError('A cancelled appointment cannot be marked as attended')

    old_data = appointment.to_dict(include_relations=False)
    appointment.status = AppointmentStatus.ATTENDED
    if notes:
        appointment.notes = f"{appointment.notes}\n{notes}" if appointment.notes else notes
    session.commit()

    log_audit(
        session, AuditAction.UPDATE, 'Appointment', appointment.id, user_id=user.id,
        old_data=old_data, new_data=appointment.to_dict(include_relations=False),
        context=MarkAttended(attended_at=utcnow().isoformat()),
    )
    return appointment


def get_daily_schedule(session, doctor_id, day, user=None):
    """Non-cancelled appointments of one doctor on a calendar day, earliest first"""
    if user is not None:
        restricted_to = doctor_id_for(user)
        if restricted_to is not None and restricted_to != doctor_id:
            raise PermissionDeniedError('You can only view your own schedule')
    doctor = session.get(Doctor, doctor_id)
    if not doctor:
        raise NotFoundError('Doctor not found')

    start = datetime.combine(day, time.min)
    end = start + timedelta(days=1)
    return (
        session.query(Appointment)
        .filter(
            Appointment.doctor_id == doctor_id,
            Appointment.is_active.is_(True),
            Appointment.status != AppointmentStatus.CANCELLED,
            Appointment.date_time >= start,
            Appointment.date_time < end,
        )
        .order_by(Appointment.date_time.asc())
        .all()
    )


def _filtered_query(session, user, filters):
    query = session.query(Appointment).filter(Appointment.is_active.is_(True))
    restricted_to = doctor_id_for(user) if user is not None else None
    if restricted_to is not None:
        query = query.filter(Appointment.doctor_id == restricted_to)
    elif filters.get('doctor_id'):
        query = query.filter(Appointment.doctor_id == parse_int(filters['doctor_id'], 'doctor_id'))

    if filters.get('patient_id'):
        query = query.filter(Appointment.patient_id == parse_int(filters['patient_id'], 'patient_id'))
    if filters.get('status'):
        if filters['status'] not in AppointmentStatus.ALL:
            raise ValidationError('Invalid appointment status')
        query = query.filter(Appointment.status == filters['status'])
    if filters.get('type'):
        query = query.filter(Appointment.type == _parse_type(filters['type']))
    if filters.get('date_from'):
        query = query.filter(Appointment.date_time >= datetime.combine(parse_date(filters['date_from'], 'date_from'), time.min))
    if filters.get('date_to'):
        end = datetime.combine(parse_date(filters['date_to'], 'date_to'), time.min) + timedelta(days=1)
        query = query.filter(Appointment.date_time < end)
    return query


def list_appointments(session, user, filters, page=1, per_page=10):
    query = _filtered_query(session, user, filters).order_by(Appointment.date_time.asc())
    return query.paginate(page=page, per_page=per_page, error_out=False)


def get_statistics(session, user, filters):
    query = _filtered_query(session, user, filters)
    by_status = dict(
        query.with_entities(Appointment.status, func.count(Appointment.id))
        .group_by(Appointment.status).all()
    )
    by_type = dict(
        query.with_entities(Appointment.type, func.count(Appointment.id))
        .group_by(Appointment.type).all()
    )
    return {
        'total': sum(by_status.values()),
        'by_status': {status: by_status.get(status, 0) for status in AppointmentStatus.ALL},
        'by_type': {kind: by_type.get(kind, 0) for kind in AppointmentType.ALL},
    }