from .user import User
from .doctor import Doctor
from .patient import Patient
from .appointment import Appointment
from .consultation import Consultation
from .prescription import Prescription
from .audit_log import AuditLog, AuditLogImmutableError

__all__ = [
    "User", "Doctor", "Patient", "Appointment", "Consultation",
    "Prescription", "AuditLog", "AuditLogImmutableError",
]
