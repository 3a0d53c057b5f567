from ehr.extensions import db, bcrypt
from ehr.constants import Role
from .base import TimestampMixin, isoformat


class User(db.Model, TimestampMixin):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)  # always lower-case
    password_hash = db.Column(db.String(255), nullable=False)

    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)

    # Possible values: 'admin', 'doctor', 'nurse', 'receptionist'
    role = db.Column(db.String(20), nullable=False, index=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    last_login = db.Column(db.DateTime, nullable=True)

    doctor_profile = db.relationship('Doctor', back_populates='user', uselist=False, lazy=True)

    def set_password(self, password):
        """Hash and set password"""
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        """Check if provided password matches hash"""
        return bcrypt.check_password_hash(self.password_hash, password)

    def has_any_role(self, *role_names):
        return self.role in role_names

    def is_admin(self):
        return self.role == Role.ADMIN

    def is_doctor(self):
        return self.role == Role.DOCTOR

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self, include_doctor=True):
        data = {
            'id': self.id,
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'role': self.role,
            'is_active': self.is_active,
            'last_login': isoformat(self.last_login),
            'created_at': isoformat(self.created_at),
        }
        if include_doctor:
            data['doctor_profile'] = self.doctor_profile.to_dict(include_user=False) if self.doctor_profile else None
        return data

    def __repr__(self):
        return f"<User {self.email} - {self.role}>"
