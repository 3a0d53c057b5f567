"""
Domain constants shared by models, services and routes.
"""


class AppointmentStatus:
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    CANCELLED = 'cancelled'
    ATTENDED = 'attended'
    PAID = 'paid'
    UNPAID = 'unpaid'

    ALL = (PENDING, CONFIRMED, CANCELLED, ATTENDED, PAID, UNPAID)
    TERMINAL = (CANCELLED, ATTENDED)


class AppointmentType:
    MEDICAL_CONSULTATION = 'medical_consultation'
    EMERGENCY = 'emergency'
    PROCEDURE = 'procedure'
    CONTROL_CONSULTATION = 'control_consultation'

    ALL = (MEDICAL_CONSULTATION, EMERGENCY, PROCEDURE, CONTROL_CONSULTATION)


class DocumentType:
    DNI = 'dni'
    FOREIGN_CARD = 'foreign_card'
    PASSPORT = 'passport'
    NO_DOCUMENT = 'no_document'

    ALL = (DNI, FOREIGN_CARD, PASSPORT, NO_DOCUMENT)


GENDERS = ('M', 'F', 'O')


class PrescriptionStatus:
    ACTIVE = 'active'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'

    ALL = (ACTIVE, COMPLETED, CANCELLED)


class Role:
    ADMIN = 'admin'
    DOCTOR = 'doctor'
    NURSE = 'nurse'
    RECEPTIONIST = 'receptionist'

    ALL = (ADMIN, DOCTOR, NURSE, RECEPTIONIST)


# Route gates
CLINICAL_WRITE_ROLES = (Role.ADMIN, Role.DOCTOR)
CLINICAL_READ_ROLES = (Role.ADMIN, Role.DOCTOR, Role.NURSE)
ALL_ROLES = Role.ALL


class AuditAction:
    CREATE = 'create'
    UPDATE = 'update'
    DELETE = 'delete'
    LOGIN = 'login'
    LOGOUT = 'logout'
    SYNC_UPDATE = 'sync_update'
    PAYMENT_UPDATE = 'payment_update'


HISTORY_NUMBER_PREFIX = 'HCE-'
HISTORY_NUMBER_WIDTH = 6
BILLING_CODE_PREFIX = 'BILLING_'
