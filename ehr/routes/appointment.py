from datetime import date

from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from ehr.constants import ALL_ROLES, CLINICAL_WRITE_ROLES
from ehr.extensions import db
from ehr.services import appointment_service
from ehr.utils.decorators import get_current_user, require_role
from ehr.utils.validators import get_pagination, json_body, optional_json_body, pagination_dict, parse_date

appointment_bp = Blueprint('appointment', __name__, url_prefix='/api/v1/appointments')

FILTER_PARAMS = ('doctor_id', 'patient_id', 'status', 'type', 'date_from', 'date_to')


def _filters():
    return {k: request.args.get(k) for k in FILTER_PARAMS if request.args.get(k)}


@appointment_bp.route('', methods=['GET'])
@jwt_required()
@require_role(*ALL_ROLES)
def list_appointments():
    """
    List appointments; doctors only see their own
    Query params: page, limit, doctor_id, patient_id, status, type, date_from, date_to
    """
    page, per_page = get_pagination(request.args)
    appointments = appointment_service.list_appointments(
        db.session, get_current_user(), _filters(), page=page, per_page=per_page,
    )
    return jsonify({
        'success': True,
        'data': [a.to_dict() for a in appointments.items],
        'pagination': pagination_dict(appointments)
    }), 200


@appointment_bp.route('/stats', methods=['GET'])
@jwt_required()
@require_role(*CLINICAL_WRITE_ROLES)
def appointment_stats():
    stats = appointment_service.get_statistics(db.session, get_current_user(), _filters())
    return jsonify({
        'success': True,
        'data': stats
    }), 200


@appointment_bp.route('/<int:appointment_id>', methods=['GET'])
@jwt_required()
@require_role(*ALL_ROLES)
def get_appointment(appointment_id):
    appointment = appointment_service.get_appointment(db.session, appointment_id, get_current_user())
    return jsonify({
        'success': True,
        'data': appointment.to_dict()
    }), 200


@appointment_bp.route('/doctor/<int:doctor_id>/daily', methods=['GET'])
@jwt_required()
@require_role(*ALL_ROLES)
def daily_schedule(doctor_id):
    """Query params: date (YYYY-MM-DD, defaults to today)"""
    day = parse_date(request.args['date'], 'date') if request.args.get('date') else date.today()
    appointments = appointment_service.get_daily_schedule(db.session, doctor_id, day, get_current_user())
    return jsonify({
        'success': True,
        'date': day.isoformat(),
        'doctor_id': doctor_id,
        'data': [a.to_dict() for a in appointments],
        'count': len(appointments)
    }), 200


@appointment_bp.route('', methods=['POST'])
@jwt_required()
@require_role(*CLINICAL_WRITE_ROLES)
def create_appointment():
    data = json_body()
    appointment = appointment_service.create_appointment(db.session, data, get_current_user())
    return jsonify({
        'success': True,
        'message': 'Appointment created successfully',
        'data': appointment.to_dict()
    }), 201


@appointment_bp.route('/<int:appointment_id>', methods=['PUT'])
@jwt_required()
@require_role(*CLINICAL_WRITE_ROLES)
def update_appointment(appointment_id):
    data = json_body()
    appointment = appointment_service.update_appointment(db.session, appointment_id, data, get_current_user())
    return jsonify({
        'success': True,
        'message': 'Appointment updated successfully',
        'data': appointment.to_dict()
    }), 200


@appointment_bp.route('/<int:appointment_id>/attend', methods=['PUT'])
@jwt_required()
@require_role(*CLINICAL_WRITE_ROLES)
def mark_attended(appointment_id):
    data = optional_json_body()
    appointment = appointment_service.mark_attended(
        db.session, appointment_id, get_current_user(), notes=data.get('notes'),
    )
    return jsonify({
        'success': True,
        'message': 'Appointment marked as attended',
        'data': appointment.to_dict()
    }), 200


@appointment_bp.route('/<int:appointment_id>', methods=['DELETE'])
@jwt_required()
@require_role(*CLINICAL_WRITE_ROLES)
def cancel_appointment(appointment_id):
    """Cancels the appointment; body may carry { "reason": "..." }"""
    data = optional_json_body()
    appointment = appointment_service.cancel_appointment(
        db.session, appointment_id, get_current_user(), reason=data.get('reason'),
    )
    return jsonify({
        'success': True,
        'message': 'Appointment cancelled successfully',
        'data': appointment.to_dict()
    }), 200
