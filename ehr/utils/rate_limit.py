"""
Rate limits on top of Flask-Limiter.

Limits are read from the app config on every request, so the same limiter
serves each app it is bound to. Counters live in RATELIMIT_STORAGE_URI:
memory:// for a single process, redis:// when running several workers.
"""
import logging
import time

from flask import current_app
from limits import parse

from ehr.errors import RateLimitExceeded
from ehr.extensions import limiter

logger = logging.getLogger(__name__)


def login_limit():
    return current_app.config['RATELIMIT_LOGIN']


def external_limit():
    return current_app.config['RATELIMIT_EXTERNAL']


def failed_response(response):
    """Only failed attempts count against the login limit"""
    return response.status_code >= 400


# One bucket for every billing endpoint
external_rate_limit = limiter.shared_limit(external_limit, scope='external', override_defaults=False)


def check_user_limit(user):
    """Per-account limit for roles listed in RATELIMIT_PER_ROLE"""
    value = current_app.config['RATELIMIT_PER_ROLE'].get(user.role)
    if not value or not limiter.enabled or not current_app.config.get('RATELIMIT_ENABLED', True):
        return
    item = parse(value)
    if limiter.limiter.hit(item, 'user', str(user.id)):
        return
    reset_at, _ = limiter.limiter.get_window_stats(item, 'user', str(user.id))
    logger.warning("Rate limit exceeded for user %s", user.id)
    raise RateLimitExceeded(
        'Too many requests, please try again later',
        retry_after=max(int(reset_at - time.time()), 1),
    )
