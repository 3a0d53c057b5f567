from datetime import date

from ehr.extensions import db
from .base import TimestampMixin, isoformat


class Patient(db.Model, TimestampMixin):
    __tablename__ = 'patients'
    __table_args__ = (
        db.Index('ix_patients_document', 'document_type', 'document_number'),
        db.Index('ix_patients_name', 'first_name', 'paternal_surname'),
    )

    id = db.Column(db.Integer, primary_key=True)

    # Identity document (unique together among active patients)
    document_type = db.Column(db.String(30), nullable=False)  # dni, foreign_card, passport, no_document
    document_number = db.Column(db.String(20), nullable=False)

    # Personal
    first_name = db.Column(db.String(100), nullable=False)
    paternal_surname = db.Column(db.String(100), nullable=False)
    maternal_surname = db.Column(db.String(100))
    birth_date = db.Column(db.Date)
    gender = db.Column(db.String(1))  # M, F, O

    # Clinical record number, e.g. HCE-000001
    history_number = db.Column(db.String(20), unique=True, nullable=False)
    external_code = db.Column(db.String(50), nullable=True, index=True)

    # Contact
    email = db.Column(db.String(255))
    phone = db.Column(db.String(20))
    address = db.Column(db.Text)
    emergency_contact_name = db.Column(db.String(200))
    emergency_contact_phone = db.Column(db.String(20))

    # Soft delete (no hard deletion of medical data)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    appointments = db.relationship('Appointment', back_populates='patient', lazy='dynamic')

    @property
    def full_name(self):
        parts = [self.first_name, self.paternal_surname, self.maternal_surname]
        return ' '.join(p for p in parts if p)

    @property
    def age(self):
        if not self.birth_date:
            return None
        today = date.today()
        years = today.year - self.birth_date.year
        if (today.month, today.day) < (self.birth_date.month, self.birth_date.day):
            years -= 1
        return years

    def to_summary(self):
        return {
            'id': self.id,
            'first_name': self.first_name,
            'paternal_surname': self.paternal_surname,
            'maternal_surname': self.maternal_surname,
            'document_number': self.document_number,
            'history_number': self.history_number,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'document_type': self.document_type,
            'document_number': self.document_number,
            'first_name': self.first_name,
            'paternal_surname': self.paternal_surname,
            'maternal_surname': self.maternal_surname,
            'full_name': self.full_name,
            'history_number': self.history_number,
            'external_code': self.external_code,
            'birth_date': isoformat(self.birth_date),
            'age': self.age,
            'gender': self.gender,
            'email': self.email,
            'phone': self.phone,
            'address': self.address,
            'emergency_contact_name': self.emergency_contact_name,
            'emergency_contact_phone': self.emergency_contact_phone,
            'is_active': self.is_active,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f"<Patient {self.full_name} ({self.history_number})>"
