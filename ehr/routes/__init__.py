from .auth import auth_bp
from .patient import patient_bp
from .appointment import appointment_bp
from .external import external_bp
from .consultation import consultation_bp, prescription_bp
from .doctor import doctor_bp
from .audit import audit_bp
from .health import health_bp

__all__ = [
    'auth_bp', 'patient_bp', 'appointment_bp', 'external_bp', 'consultation_bp',
    'prescription_bp', 'doctor_bp', 'audit_bp', 'health_bp',
]
