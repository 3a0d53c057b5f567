"""
API error taxonomy and the Flask handlers that render it.

Services raise these; routes let them propagate and the handlers below turn
them into the usual {'success': False, 'error': ...} envelope.
"""
import logging

from flask import jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = 500

    def __init__(self, message, **payload):
        super().__init__(message)
        self.message = message
        self.payload = payload

    def to_dict(self):
        body = {'success': False, 'error': self.message}
        body.update(self.payload)
        return body


class ValidationError(ApiError):
    status_code = 400


class AuthenticationError(ApiError):
    status_code = 401


class PermissionDeniedError(ApiError):
    status_code = 403


class NotFoundError(ApiError):
    status_code = 404


class ConflictError(ApiError):
    status_code = 409


class RateLimitExceeded(ApiError):
    status_code = 429

    def __init__(self, message, retry_after):
        super().__init__(message, retry_after=retry_after)
        self.retry_after = retry_after


def register_error_handlers(app):
    """Attach JSON error handlers to the app"""
    from ehr.extensions import db

    @app.errorhandler(ApiError)
    def handle_api_error(error):
        response = jsonify(error.to_dict())
        if isinstance(error, RateLimitExceeded):
            response.headers['Retry-After'] = str(error.retry_after)
        return response, error.status_code

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(error):
        db.session.rollback()
        logger.warning("Integrity error: %s", error.orig)
        return jsonify({
            'success': False,
            'error': 'A record with these data already exists'
        }), 409

    @app.errorhandler(429)
    def too_many_requests(error):
        logger.warning("Rate limit exceeded: %s", error.description)
        return jsonify({
            'success': False,
            'error': 'Too many requests, please try again later'
        }), 429

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({
            'success': False,
            'error': 'Endpoint not found'
        }), 404

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        return jsonify({
            'success': False,
            'error': error.description
        }), error.code

    @app.errorhandler(Exception)
    def handle_exception(e):
        logger.error(f"Unhandled exception: {e}", exc_info=True)
        db.session.rollback()
        return jsonify({
            'success': False,
            'error': 'Internal server error. Check server logs for details.'
        }), 500
