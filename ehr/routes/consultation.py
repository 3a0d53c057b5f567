from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from ehr.constants import CLINICAL_WRITE_ROLES
from ehr.extensions import db
from ehr.services import consultation_service
from ehr.utils.decorators import get_current_user, require_role
from ehr.utils.validators import json_body

consultation_bp = Blueprint('consultation', __name__, url_prefix='/api/v1/consultations')
prescription_bp = Blueprint('prescription', __name__, url_prefix='/api/v1/prescriptions')


@consultation_bp.route('', methods=['POST'])
@jwt_required()
@require_role(*CLINICAL_WRITE_ROLES)
def create_consultation():
    """Record the consultation of an attended appointment"""
    data = json_body()
    consultation = consultation_service.create_consultation(db.session, data, get_current_user())
    return jsonify({
        'success': True,
        'message': 'Consultation created successfully',
        'data': consultation.to_dict()
    }), 201


@consultation_bp.route('/<int:consultation_id>', methods=['GET'])
@jwt_required()
@require_role(*CLINICAL_WRITE_ROLES)
def get_consultation(consultation_id):
    consultation = consultation_service.get_consultation(db.session, consultation_id, get_current_user())
    return jsonify({
        'success': True,
        'data': consultation.to_dict()
    }), 200


@consultation_bp.route('/appointment/<int:appointment_id>', methods=['GET'])
@jwt_required()
@require_role(*CLINICAL_WRITE_ROLES)
def get_consultation_by_appointment(appointment_id):
    consultation = consultation_service.get_by_appointment(db.session, appointment_id, get_current_user())
    return jsonify({
        'success': True,
        'data': consultation.to_dict()
    }), 200


@consultation_bp.route('/<int:consultation_id>', methods=['PUT'])
@jwt_required()
@require_role(*CLINICAL_WRITE_ROLES)
def update_consultation(consultation_id):
    data = json_body()
    consultation = consultation_service.update_consultation(db.session, consultation_id, data, get_current_user())
    return jsonify({
        'success': True,
        'message': 'Consultation updated successfully',
        'data': consultation.to_dict()
    }), 200


@consultation_bp.route('/<int:consultation_id>/prescriptions', methods=['POST'])
@jwt_required()
@require_role(*CLINICAL_WRITE_ROLES)
def add_prescription(consultation_id):
    data = json_body()
    prescription = consultation_service.add_prescription(db.session, consultation_id, data, get_current_user())
    return jsonify({
        'success': True,
        'message': 'Prescription created successfully',
        'data': prescription.to_dict()
    }), 201


@consultation_bp.route('/<int:consultation_id>/prescriptions', methods=['GET'])
@jwt_required()
@require_role(*CLINICAL_WRITE_ROLES)
def list_prescriptions(consultation_id):
    """Query params: status"""
    prescriptions = consultation_service.list_prescriptions(
        db.session, consultation_id, get_current_user(), status=request.args.get('status'),
    )
    return jsonify({
        'success': True,
        'data': [p.to_dict() for p in prescriptions],
        'count': len(prescriptions)
    }), 200


@prescription_bp.route('/<int:prescription_id>', methods=['GET'])
@jwt_required()
@require_role(*CLINICAL_WRITE_ROLES)
def get_prescription(prescription_id):
    prescription = consultation_service.get_prescription(db.session, prescription_id, get_current_user())
    return jsonify({
        'success': True,
        'data': prescription.to_dict()
    }), 200


@prescription_bp.route('/<int:prescription_id>/status', methods=['PUT'])
@jwt_required()
@require_role(*CLINICAL_WRITE_ROLES)
def change_prescription_status(prescription_id):
    """Body: { "status": "completed" | "cancelled" }"""
    data = json_body()
    prescription = consultation_service.change_prescription_status(
        db.session, prescription_id, data.get('status'), get_current_user(),
    )
    return jsonify({
        'success': True,
        'message': 'Prescription status updated',
        'data': prescription.to_dict()
    }), 200
