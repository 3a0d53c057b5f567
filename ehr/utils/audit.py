"""
Audit logging: who changed what, when and from where.

Writes are best-effort. They run after the primary change is committed and a
failure is logged, never raised to the caller.
"""
import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, ClassVar, Optional, Union

from flask import has_request_context, request

from ehr.models import AuditLog

logger = logging.getLogger(__name__)

SENSITIVE_MARKERS = ('password', 'token', 'secret')


def is_sensitive_key(key):
    lowered = str(key).lower()
    return any(marker in lowered for marker in SENSITIVE_MARKERS)


def strip_sensitive(data):
    """Recursively drop keys that look like credentials"""
    if isinstance(data, dict):
        return {k: strip_sensitive(v) for k, v in data.items() if not is_sensitive_key(k)}
    if isinstance(data, (list, tuple)):
        return [strip_sensitive(v) for v in data]
    return data


def _snapshot(data):
    if data is None:
        return None
    # JSON columns reject Decimal/datetime
    return strip_sensitive(json.loads(json.dumps(data, default=str)))


# Event context, one shape per kind of audited event

@dataclass(frozen=True)
class Cancellation:
    kind: ClassVar[str] = 'cancellation'
    reason: Optional[str] = None


@dataclass(frozen=True)
class MarkAttended:
    kind: ClassVar[str] = 'mark_attended'
    attended_at: Optional[str] = None


@dataclass(frozen=True)
class PasswordChange:
    kind: ClassVar[str] = 'password_change'


@dataclass(frozen=True)
class Login:
    kind: ClassVar[str] = 'login'
    email: Optional[str] = None


@dataclass(frozen=True)
class Logout:
    kind: ClassVar[str] = 'logout'


@dataclass(frozen=True)
class BillingSync:
    kind: ClassVar[str] = 'billing_sync'
    external_code: Optional[str] = None
    source: str = 'billing_system'
    patient_created: bool = False


@dataclass(frozen=True)
class PaymentUpdate:
    kind: ClassVar[str] = 'payment_update'
    external_code: Optional[str] = None
    transaction_id: Optional[str] = None
    payment_date: Optional[str] = None


@dataclass(frozen=True)
class SoftDelete:
    kind: ClassVar[str] = 'soft_delete'
    reason: Optional[str] = None


AuditContext = Union[
    Cancellation, MarkAttended, PasswordChange, Login, Logout,
    BillingSync, PaymentUpdate, SoftDelete,
]


def context_to_dict(context: Optional[AuditContext]):
    if context is None:
        return None
    data = {'event': context.kind}
    data.update(asdict(context))
    return data


@dataclass
class RequestContext:
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


def get_client_ip():
    if not has_request_context():
        return None
    forwarded = request.headers.get('X-Forwarded-For')
    if forwarded:
        ip = forwarded.split(',')[0].strip()
        if ip:
            return ip
    return request.remote_addr


def request_context() -> RequestContext:
    """Capture IP and user agent of the current request, if any"""
    if not has_request_context():
        return RequestContext()
    return RequestContext(
        ip_address=get_client_ip(),
        user_agent=request.headers.get('User-Agent'),
    )


def log_audit(
    session,
    action: str,
    entity_type: str,
    entity_id: Any,
    user_id: Optional[int] = None,
    old_data: Optional[dict] = None,
    new_data: Optional[dict] = None,
    context: Optional[AuditContext] = None,
    request_ctx: Optional[RequestContext] = None,
) -> Optional[AuditLog]:
    """Append an audit log entry. Returns None when the write failed."""
    req = request_ctx or request_context()
    try:
        entry = AuditLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            old_data=_snapshot(old_data),
            new_data=_snapshot(new_data),
            ip_address=req.ip_address,
            user_agent=req.user_agent,
            additional_info=_snapshot(context_to_dict(context)),
        )
        session.add(entry)
        session.commit()
        return entry
    except Exception as e:
        logger.warning("Audit log failed: %s", e)
        session.rollback()
        return None


def get_entity_history(session, entity_type, entity_id, limit=50):
    return (
        session.query(AuditLog)
        .filter_by(entity_type=entity_type, entity_id=str(entity_id))
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
        .all()
    )


def get_user_activity(session, user_id, limit=100):
    return (
        session.query(AuditLog)
        .filter_by(user_id=user_id)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
        .all()
    )
