from .decorators import require_role, get_current_user, doctor_id_for, ensure_appointment_access

from .audit import log_audit, request_context, strip_sensitive

from .rate_limit import check_user_limit, external_rate_limit

__all__ = [
    # Decorators
    "require_role",
    "get_current_user",
    "doctor_id_for",
    "ensure_appointment_access",
    # Audit
    "log_audit",
    "request_context",
    "strip_sensitive",
    # Rate limiting
    "check_user_limit",
    "external_rate_limit",
]
