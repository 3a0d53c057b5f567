from ehr.extensions import db
from ehr.constants import AppointmentStatus
from .base import TimestampMixin, isoformat, utcnow


class Appointment(db.Model, TimestampMixin):
    __tablename__ = 'appointments'
    __table_args__ = (
        db.Index('ix_appointments_doctor_date_time', 'doctor_id', 'date_time'),
    )

    id = db.Column(db.Integer, primary_key=True)
    patient_id = db.Column(db.Integer, db.ForeignKey('patients.id'), nullable=False, index=True)
    doctor_id = db.Column(db.Integer, db.ForeignKey('doctors.id'), nullable=False, index=True)

    # medical_consultation, emergency, procedure, control_consultation
    type = db.Column(db.String(30), nullable=False)
    date_time = db.Column(db.DateTime, nullable=False, index=True)
    duration_minutes = db.Column(db.Integer, default=30)
    description = db.Column(db.Text)

    # Status: pending, confirmed, cancelled, attended, paid, unpaid
    status = db.Column(db.String(20), nullable=False, default=AppointmentStatus.PENDING, index=True)

    # Billing system reference
    external_code = db.Column(db.String(50), unique=True, nullable=True, index=True)
    payment_amount = db.Column(db.Numeric(10, 2))
    payment_method = db.Column(db.String(50))
    payment_date = db.Column(db.DateTime)

    notes = db.Column(db.Text)

    # Soft delete
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    patient = db.relationship('Patient', back_populates='appointments', lazy=True)
    doctor = db.relationship('Doctor', back_populates='appointments', lazy=True)
    consultation = db.relationship('Consultation', back_populates='appointment', uselist=False, lazy=True)

    @property
    def is_terminal(self):
        return self.status in AppointmentStatus.TERMINAL

    @property
    def is_overdue(self):
        return self.status == AppointmentStatus.PENDING and self.date_time < utcnow()

    def to_dict(self, include_relations=True):
        data = {
            'id': self.id,
            'patient_id': self.patient_id,
            'doctor_id': self.doctor_id,
            'type': self.type,
            'date_time': isoformat(self.date_time),
            'duration_minutes': self.duration_minutes,
            'description': self.description,
            'status': self.status,
            'external_code': self.external_code,
            'payment_amount': float(self.payment_amount) if self.payment_amount is not None else None,
            'payment_method': self.payment_method,
            'payment_date': isoformat(self.payment_date),
            'notes': self.notes,
            'is_active': self.is_active,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }
        if include_relations:
            data['patient'] = self.patient.to_summary() if self.patient else None
            data['doctor'] = self.doctor.to_dict() if self.doctor else None
        return data

    def __repr__(self):
        return f"<Appointment {self.id} doctor={self.doctor_id} at {self.date_time} ({self.status})>"
