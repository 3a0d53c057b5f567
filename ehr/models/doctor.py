from ehr.extensions import db
from .base import TimestampMixin, isoformat


class Doctor(db.Model, TimestampMixin):
    __tablename__ = 'doctors'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), unique=True, nullable=False, index=True)

    license_number = db.Column(db.String(20), unique=True, nullable=False)  # medical college registration
    specialties = db.Column(db.JSON, default=list)
    external_code = db.Column(db.String(50), nullable=True)
    license_expiry = db.Column(db.Date, nullable=True)
    consultation_fee = db.Column(db.Numeric(10, 2), nullable=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    user = db.relationship('User', back_populates='doctor_profile', lazy=True)
    appointments = db.relationship('Appointment', back_populates='doctor', lazy='dynamic')

    @property
    def full_name(self):
        return self.user.full_name if self.user else None

    def to_dict(self, include_user=True):
        data = {
            'id': self.id,
            'user_id': self.user_id,
            'license_number': self.license_number,
            'specialties': self.specialties or [],
            'external_code': self.external_code,
            'license_expiry': isoformat(self.license_expiry),
            'consultation_fee': float(self.consultation_fee) if self.consultation_fee is not None else None,
            'is_active': self.is_active,
        }
        if include_user and self.user:
            data['full_name'] = self.user.full_name
            data['email'] = self.user.email
        return data

    def __repr__(self):
        return f"<Doctor {self.license_number} (user {self.user_id})>"
