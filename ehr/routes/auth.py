from flask import Blueprint, jsonify
from flask_jwt_extended import get_jwt, jwt_required

from ehr.constants import ALL_ROLES, Role
from ehr.extensions import db, limiter
from ehr.services import auth_service
from ehr.utils.decorators import get_current_user, require_role
from ehr.utils.rate_limit import failed_response, login_limit
from ehr.utils.validators import json_body

auth_bp = Blueprint('auth', __name__, url_prefix='/api/v1/auth')


@auth_bp.route('/login', methods=['POST'])
@limiter.limit(login_limit, deduct_when=failed_response, override_defaults=False)
def login():
    """Login endpoint - authenticates a user and returns a JWT"""
    data = json_body()
    user, token = auth_service.authenticate(db.session, data.get('email'), data.get('password'))

    return jsonify({
        'success': True,
        'message': 'Login successful',
        'token': token,
        'token_type': 'bearer',
        'expires_in': auth_service.token_expires_in(),
        'user': user.to_dict(),
    }), 200


@auth_bp.route('/logout', methods=['POST'])
@jwt_required()
@require_role(*ALL_ROLES)
def logout():
    """Stateless JWT: the client deletes the token, the event is audited"""
    auth_service.logout(db.session, get_current_user())
    return jsonify({
        'success': True,
        'message': 'Logged out successfully'
    }), 200


@auth_bp.route('/profile', methods=['GET'])
@jwt_required()
@require_role(*ALL_ROLES)
def profile():
    return jsonify({
        'success': True,
        'data': get_current_user().to_dict()
    }), 200


@auth_bp.route('/verify', methods=['GET'])
@jwt_required()
@require_role(*ALL_ROLES)
def verify():
    """Token check for clients; the user loader already rejected inactive users"""
    claims = get_jwt()
    user = get_current_user()
    return jsonify({
        'success': True,
        'valid': True,
        'user': {
            'id': user.id,
            'email': user.email,
            'role': user.role,
        },
        'expires_at': claims.get('exp'),
    }), 200


@auth_bp.route('/change-password', methods=['PUT'])
@jwt_required()
@require_role(*ALL_ROLES)
def change_password():
    """Body: { "currentPassword": "...", "newPassword": "..." }"""
    data = json_body()
    current_password = data.get('currentPassword', data.get('current_password'))
    new_password = data.get('newPassword', data.get('new_password'))
    auth_service.change_password(db.session, get_current_user(), current_password, new_password)
    return jsonify({
        'success': True,
        'message': 'Password updated successfully'
    }), 200


@auth_bp.route('/register', methods=['POST'])
@jwt_required()
@require_role(Role.ADMIN)
def register():
    """Admin-only creation of staff accounts"""
    data = json_body()
    user = auth_service.register_user(db.session, data, actor_id=get_current_user().id)
    return jsonify({
        'success': True,
        'message': 'User registered successfully',
        'data': user.to_dict()
    }), 201
