"""
Billing system integration endpoints
"""
import hashlib
import hmac
import logging

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import jwt_required

from ehr.constants import Role
from ehr.errors import AuthenticationError, ValidationError
from ehr.extensions import db
from ehr.services import external_service
from ehr.utils.decorators import get_current_user, require_role
from ehr.utils.rate_limit import external_rate_limit
from ehr.utils.validators import json_body

logger = logging.getLogger(__name__)

external_bp = Blueprint('external', __name__, url_prefix='/api/v1/external')

SIGNATURE_HEADER = 'X-Billing-Signature'
BILLING_EVENTS = ('appointment.created', 'appointment.updated', 'payment.updated')


def verify_signature(payload, signature, secret):
    if not signature or not secret:
        return False
    expected = 'sha256=' + hmac.new(
        secret.encode(),
        payload,
        hashlib.sha256
    ).hexdigest()
    return hmac.compare_digest(expected, signature)


@external_bp.route('/sync/appointment', methods=['POST'])
@external_rate_limit
@jwt_required()
@require_role(Role.ADMIN)
def sync_appointment():
    """
    Body: { "patient": {dni, names, ...}, "appointment": {external_code, doctor_id, date_time, ...} }
    """
    data = json_body()
    result = external_service.sync_appointment(db.session, data, user_id=get_current_user().id)
    status_code = 201 if result['action'] == 'created' else 200
    return jsonify(dict(success=True, **result)), status_code


@external_bp.route('/payment/status', methods=['PUT'])
@external_rate_limit
@jwt_required()
@require_role(Role.ADMIN)
def update_payment_status():
    data = json_body()
    appointment = external_service.update_payment_status(db.session, data, user_id=get_current_user().id)
    return jsonify({
        'success': True,
        'message': 'Payment status updated successfully',
        'appointment_id': appointment.id,
        'new_status': appointment.status
    }), 200


@external_bp.route('/sync/stats', methods=['GET'])
@jwt_required()
@require_role(Role.ADMIN)
def sync_statistics():
    """Query params: date_from, date_to (YYYY-MM-DD)"""
    stats = external_service.get_sync_statistics(
        db.session,
        date_from=request.args.get('date_from'),
        date_to=request.args.get('date_to'),
    )
    return jsonify({
        'success': True,
        'statistics': stats
    }), 200


@external_bp.route('/appointments/<string:external_code>/status', methods=['GET'])
@jwt_required()
@require_role(Role.ADMIN)
def appointment_sync_status(external_code):
    return jsonify({
        'success': True,
        'appointment': external_service.get_sync_status(db.session, external_code)
    }), 200


@external_bp.route('/webhook/billing', methods=['POST'])
@external_rate_limit
def billing_webhook():
    """
    Signed event from the billing system, processed by a Celery worker.
    Body: { "event": "appointment.created" | "appointment.updated" | "payment.updated", "data": {...} }
    """
    signature = request.headers.get(SIGNATURE_HEADER)
    if not verify_signature(request.get_data(), signature, current_app.config.get('BILLING_WEBHOOK_SECRET')):
        logger.warning("Rejected billing webhook with invalid signature from %s", request.remote_addr)
        raise AuthenticationError('Invalid signature')

    payload = json_body()
    event = payload.get('event')
    if event not in BILLING_EVENTS:
        raise ValidationError('Unknown event', allowed=list(BILLING_EVENTS))
    if not isinstance(payload.get('data'), dict):
        raise ValidationError('Event data is required')

    from tasks.sync_tasks import process_billing_event
    task = process_billing_event.delay(event, payload['data'])
    logger.info("Billing event %s queued as task %s", event, task.id)

    return jsonify({
        'success': True,
        'message': 'Event accepted',
        'task_id': task.id
    }), 202
