from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from ehr.constants import ALL_ROLES, Role
from ehr.extensions import db
from ehr.services import doctor_service
from ehr.utils.decorators import get_current_user, require_role
from ehr.utils.validators import json_body

doctor_bp = Blueprint('doctor', __name__, url_prefix='/api/v1/doctors')


@doctor_bp.route('', methods=['GET'])
@jwt_required()
@require_role(*ALL_ROLES)
def list_doctors():
    """Active doctors. Query params: specialty"""
    doctors = doctor_service.list_doctors(db.session, specialty=request.args.get('specialty'))
    return jsonify({
        'success': True,
        'data': [d.to_dict() for d in doctors],
        'count': len(doctors)
    }), 200


@doctor_bp.route('/<int:doctor_id>', methods=['GET'])
@jwt_required()
@require_role(*ALL_ROLES)
def get_doctor(doctor_id):
    return jsonify({
        'success': True,
        'data': doctor_service.get_doctor(db.session, doctor_id).to_dict()
    }), 200


@doctor_bp.route('', methods=['POST'])
@jwt_required()
@require_role(Role.ADMIN)
def create_doctor():
    """Body: { "user_id", "license_number", "specialties", "consultation_fee", ... }"""
    data = json_body()
    doctor = doctor_service.create_doctor(db.session, data, actor_id=get_current_user().id)
    return jsonify({
        'success': True,
        'message': 'Doctor profile created successfully',
        'data': doctor.to_dict()
    }), 201
