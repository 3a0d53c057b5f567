from flask import Flask, jsonify
from .extensions import db, migrate, bcrypt, jwt, limiter, celery
import logging
import os

import click

# Setup basic logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s: %(message)s'
)
logger = logging.getLogger(__name__)


def create_app(config_name=None):
    """Create Flask application factory"""
    app = Flask(__name__)

    # Load configuration
    from ehr.config import config, get_config
    if config_name:
        config_class = config.get(config_name, config['default'])
    else:
        config_class = get_config()
    config_class.validate()
    app.config.from_object(config_class)

    # Ensure production mode if FLASK_ENV is production
    if os.getenv('FLASK_ENV') == 'production':
        app.config['DEBUG'] = False
        app.config['TESTING'] = False

    logging.getLogger().setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    # Initialize extensions first (before error handlers)
    db.init_app(app)
    migrate.init_app(app, db)
    bcrypt.init_app(app)
    jwt.init_app(app)
    register_jwt_callbacks()

    # Initialize CORS
    from ehr.utils.cors import init_cors
    init_cors(app)

    # Initialize rate limiting
    limiter.init_app(app)

    # Initialize Celery
    celery.conf.update(
        broker_url=app.config['CELERY_BROKER_URL'],
        result_backend=app.config['CELERY_RESULT_BACKEND'],
        task_serializer=app.config['CELERY_TASK_SERIALIZER'],
        accept_content=app.config['CELERY_ACCEPT_CONTENT'],
        result_serializer=app.config['CELERY_RESULT_SERIALIZER'],
        timezone=app.config['CELERY_TIMEZONE'],
        enable_utc=app.config['CELERY_ENABLE_UTC'],
        task_always_eager=app.config['CELERY_TASK_ALWAYS_EAGER'],
    )

    # Make celery tasks work with Flask app context
    class FlaskAppContextTask(celery.Task):
        """Make celery tasks work with Flask app context."""
        def __call__(self, *args, **kwargs):
            with app.app_context():
                return self.run(*args, **kwargs)

    celery.Task = FlaskAppContextTask

    # Error handlers and middleware
    from ehr.errors import register_error_handlers
    from ehr.middleware import setup_middleware
    register_error_handlers(app)
    setup_middleware(app)

    # Setup logging
    if not app.debug and not app.testing:
        from logging.handlers import RotatingFileHandler

        log_dir = os.path.dirname(app.config['LOG_FILE'])
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)

        file_handler = RotatingFileHandler(
            app.config['LOG_FILE'],
            maxBytes=10240000,
            backupCount=10
        )
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)
        app.logger.setLevel(logging.INFO)
        app.logger.info('Application startup')

    register_cli(app)

    # Import models to register them with SQLAlchemy
    with app.app_context():
        from . import models  # noqa: F401

        # Register blueprints
        from .routes import (
            auth_bp, patient_bp, appointment_bp, external_bp, consultation_bp,
            prescription_bp, doctor_bp, audit_bp, health_bp,
        )
        app.register_blueprint(health_bp)  # Register health check first
        app.register_blueprint(auth_bp)
        app.register_blueprint(patient_bp)
        app.register_blueprint(appointment_bp)
        app.register_blueprint(external_bp)
        app.register_blueprint(consultation_bp)
        app.register_blueprint(prescription_bp)
        app.register_blueprint(doctor_bp)
        app.register_blueprint(audit_bp)
        limiter.exempt(health_bp)

    return app


def register_jwt_callbacks():
    """JSON 401s for every token failure, and the user loader behind current_user"""

    @jwt.user_lookup_loader
    def load_user(jwt_header, jwt_data):
        from ehr.models import User
        try:
            user_id = int(jwt_data['sub'])
        except (KeyError, TypeError, ValueError):
            return None
        user = db.session.get(User, user_id)
        # Deactivated accounts lose access immediately
        if not user or not user.is_active:
            return None
        return user

    @jwt.user_lookup_error_loader
    def user_lookup_error(jwt_header, jwt_data):
        return jsonify({
            'success': False,
            'error': 'User not found or inactive'
        }), 401

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_data):
        return jsonify({
            'success': False,
            'error': 'Token has expired'
        }), 401

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return jsonify({
            'success': False,
            'error': 'Invalid token'
        }), 401

    @jwt.unauthorized_loader
    def missing_token(reason):
        return jsonify({
            'success': False,
            'error': 'Authentication required'
        }), 401


def register_cli(app):
    """
    Adds small helper CLI commands:
    - flask create-db: create tables using the configured database
    - flask drop-db: drop all tables (use with caution)
    - flask seed-users: create the default staff accounts
    """

    @app.cli.command("create-db")
    def create_db_command():
        """Create database tables if they do not exist."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("drop-db")
    def drop_db_command():
        """Drop all database tables. This is destructive."""
        db.drop_all()
        click.echo("Database tables dropped.")

    @app.cli.command("seed-users")
    def seed_users_command():
        """Create default admin/doctor/nurse/receptionist accounts."""
        from ehr.seeds import seed_default_users
        created = seed_default_users(db.session)
        click.echo(f"Created {len(created)} user(s).")
