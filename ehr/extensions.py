from celery import Celery
from flask import current_app, request
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_bcrypt import Bcrypt
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter


def client_ip():
    """First X-Forwarded-For hop, else the socket address"""
    from ehr.utils.audit import get_client_ip
    return get_client_ip() or 'unknown'


def default_limit():
    return current_app.config['RATELIMIT_DEFAULT']


# Shared extension instances, bound to the app in create_app()
db = SQLAlchemy()
migrate = Migrate()
bcrypt = Bcrypt()
jwt = JWTManager()
limiter = Limiter(
    key_func=client_ip,
    default_limits=[default_limit],
    default_limits_exempt_when=lambda: request.method == 'OPTIONS',
)
celery = Celery(__name__)
