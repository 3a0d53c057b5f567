"""
Read-only access to the audit trail (admins only)
"""
from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from ehr.constants import Role
from ehr.extensions import db
from ehr.models import AuditLog
from ehr.utils.audit import get_entity_history, get_user_activity
from ehr.utils.decorators import require_role
from ehr.utils.validators import get_pagination, pagination_dict, parse_int

audit_bp = Blueprint('audit', __name__, url_prefix='/api/v1/audit-logs')


@audit_bp.route('', methods=['GET'])
@jwt_required()
@require_role(Role.ADMIN)
def list_audit_logs():
    """Query params: page, limit, action, entity_type"""
    page, per_page = get_pagination(request.args)
    query = db.session.query(AuditLog)
    if request.args.get('action'):
        query = query.filter(AuditLog.action == request.args['action'])
    if request.args.get('entity_type'):
        query = query.filter(AuditLog.entity_type == request.args['entity_type'])
    logs = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).paginate(
        page=page, per_page=per_page, error_out=False
    )
    return jsonify({
        'success': True,
        'data': [log.to_dict() for log in logs.items],
        'pagination': pagination_dict(logs)
    }), 200


@audit_bp.route('/entity/<string:entity_type>/<string:entity_id>', methods=['GET'])
@jwt_required()
@require_role(Role.ADMIN)
def entity_history(entity_type, entity_id):
    limit = parse_int(request.args.get('limit', 50), 'limit', minimum=1, maximum=500)
    logs = get_entity_history(db.session, entity_type, entity_id, limit=limit)
    return jsonify({
        'success': True,
        'data': [log.to_dict() for log in logs],
        'count': len(logs)
    }), 200


@audit_bp.route('/user/<int:user_id>', methods=['GET'])
@jwt_required()
@require_role(Role.ADMIN)
def user_activity(user_id):
    limit = parse_int(request.args.get('limit', 100), 'limit', minimum=1, maximum=500)
    logs = get_user_activity(db.session, user_id, limit=limit)
    return jsonify({
        'success': True,
        'data': [log.to_dict() for log in logs],
        'count': len(logs)
    }), 200
