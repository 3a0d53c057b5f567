"""
Health check endpoints for monitoring and load balancers
"""
from flask import Blueprint, current_app, jsonify

from ehr.extensions import db
from ehr.models.base import utcnow

health_bp = Blueprint('health', __name__, url_prefix='/health')


@health_bp.route('', methods=['GET'])
def health_check():
    """Liveness plus the build we are running; never touches the database"""
    return jsonify({
        'status': 'healthy',
        'service': 'ehr-backend',
        'api_version': 'v1',
        'timestamp': utcnow().isoformat()
    }), 200


def _database_status():
    try:
        db.session.execute(db.text('SELECT 1'))
        return 'connected'
    except Exception as e:
        db.session.rollback()
        current_app.logger.error("Readiness probe: database unavailable: %s", e)
        return f'error: {e}'


@health_bp.route('/ready', methods=['GET'])
def readiness_check():
    """Ready when the database answers; also reports the rate limit backend in use"""
    database = _database_status()
    ready = database == 'connected'
    return jsonify({
        'status': 'ready' if ready else 'not_ready',
        'database': database,
        'rate_limit_storage': current_app.config['RATELIMIT_STORAGE_URI'].split('://')[0],
        'timestamp': utcnow().isoformat()
    }), 200 if ready else 503


@health_bp.route('/live', methods=['GET'])
def liveness_check():
    return jsonify({'status': 'alive', 'timestamp': utcnow().isoformat()}), 200
