from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from ehr.constants import ALL_ROLES, CLINICAL_READ_ROLES, CLINICAL_WRITE_ROLES
from ehr.extensions import db
from ehr.services import patient_service
from ehr.utils.decorators import get_current_user, require_role
from ehr.utils.validators import get_pagination, json_body, optional_json_body, pagination_dict

patient_bp = Blueprint('patient', __name__, url_prefix='/api/v1/patients')


@patient_bp.route('', methods=['GET'])
@jwt_required()
@require_role(*CLINICAL_READ_ROLES)
def list_patients():
    """
    List active patients with pagination and search
    Query params: page, limit, search, document_type, gender
    """
    page, per_page = get_pagination(request.args)
    patients = patient_service.list_patients(
        db.session,
        page=page,
        per_page=per_page,
        search=request.args.get('search', '', type=str),
        document_type=request.args.get('document_type'),
        gender=request.args.get('gender'),
    )
    return jsonify({
        'success': True,
        'data': [p.to_dict() for p in patients.items],
        'pagination': pagination_dict(patients)
    }), 200


@patient_bp.route('/search', methods=['GET'])
@jwt_required()
@require_role(*ALL_ROLES)
def search_by_document():
    """Query params: document_number (required), document_type"""
    patients = patient_service.search_by_document(
        db.session,
        request.args.get('document_number'),
        request.args.get('document_type'),
    )
    return jsonify({
        'success': True,
        'data': [p.to_dict() for p in patients],
        'count': len(patients)
    }), 200


@patient_bp.route('/<int:patient_id>', methods=['GET'])
@jwt_required()
@require_role(*CLINICAL_READ_ROLES)
def get_patient(patient_id):
    patient = patient_service.get_patient(db.session, patient_id)
    data = patient.to_dict()
    data['recent_appointments'] = [
        a.to_dict(include_relations=False)
        for a in patient_service.recent_appointments(db.session, patient.id)
    ]
    return jsonify({
        'success': True,
        'data': data
    }), 200


@patient_bp.route('', methods=['POST'])
@jwt_required()
@require_role(*CLINICAL_WRITE_ROLES)
def create_patient():
    data = json_body()
    patient = patient_service.create_patient(db.session, data, user_id=get_current_user().id)
    return jsonify({
        'success': True,
        'message': 'Patient created successfully',
        'data': patient.to_dict()
    }), 201


@patient_bp.route('/<int:patient_id>', methods=['PUT'])
@jwt_required()
@require_role(*CLINICAL_WRITE_ROLES)
def update_patient(patient_id):
    data = json_body()
    patient = patient_service.update_patient(db.session, patient_id, data, user_id=get_current_user().id)
    return jsonify({
        'success': True,
        'message': 'Patient updated successfully',
        'data': patient.to_dict()
    }), 200


@patient_bp.route('/<int:patient_id>', methods=['DELETE'])
@jwt_required()
@require_role(*CLINICAL_WRITE_ROLES)
def delete_patient(patient_id):
    """Soft delete (no hard deletion of medical data)"""
    data = optional_json_body()
    patient_service.delete_patient(
        db.session, patient_id, user_id=get_current_user().id, reason=data.get('reason'),
    )
    return jsonify({
        'success': True,
        'message': 'Patient deleted successfully'
    }), 200
