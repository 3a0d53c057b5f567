"""
Celery tasks for billing system synchronization
"""
import logging

from ehr.errors import ApiError
from ehr.extensions import celery, db
from ehr.services import external_service

logger = logging.getLogger(__name__)


@celery.task(name='tasks.process_billing_event')
def process_billing_event(event, data):
    """
    Apply one signed billing event.

    appointment.created / appointment.updated go through the appointment
    sync; payment.updated through the payment status update.

    Returns:
        dict: Processing result
    """
    try:
        if event in ('appointment.created', 'appointment.updated'):
            result = external_service.sync_appointment(db.session, data)
            return {'success': True, 'event': event, **result}
        if event == 'payment.updated':
            appointment = external_service.update_payment_status(db.session, data)
            return {
                'success': True,
                'event': event,
                'appointment_id': appointment.id,
                'new_status': appointment.status,
            }
        return {'success': False, 'event': event, 'error': 'Unknown event'}

    except ApiError as e:
        # Rejected by business rules: final, not retried
        logger.warning("Billing event %s rejected: %s", event, e.message)
        db.session.rollback()
        return {'success': False, 'event': event, 'error': e.message, 'status_code': e.status_code}

    except Exception as e:
        logger.error(f"Error processing billing event {event}: {e}", exc_info=True)
        db.session.rollback()
        raise
