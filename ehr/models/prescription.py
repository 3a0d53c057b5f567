from datetime import date

from ehr.extensions import db
from ehr.constants import PrescriptionStatus
from .base import TimestampMixin, isoformat


class Prescription(db.Model, TimestampMixin):
    """
    Prescription model - one medication line of a consultation.

    Status (active, completed, cancelled) is independent of the appointment.
    """

    __tablename__ = "prescriptions"

    id = db.Column(db.Integer, primary_key=True)
    consultation_id = db.Column(
        db.Integer, db.ForeignKey("consultations.id"), nullable=False, index=True
    )

    medication_name = db.Column(db.String(200), nullable=False, index=True)
    generic_name = db.Column(db.String(200))
    concentration = db.Column(db.String(50))  # e.g. 500mg
    pharmaceutical_form = db.Column(db.String(50))  # tablet, syrup, ...
    dose = db.Column(db.String(100), nullable=False)  # e.g. 1 tablet
    frequency = db.Column(db.String(100), nullable=False)  # e.g. every 8 hours
    route = db.Column(db.String(50), default="oral")
    duration = db.Column(db.String(50), nullable=False)  # e.g. 7 days
    quantity = db.Column(db.Integer, nullable=False)
    unit = db.Column(db.String(20), default="units")
    special_instructions = db.Column(db.Text)

    status = db.Column(db.String(20), nullable=False, default=PrescriptionStatus.ACTIVE, index=True)
    start_date = db.Column(db.Date)
    end_date = db.Column(db.Date)
    is_chronic = db.Column(db.Boolean, default=False)

    consultation = db.relationship("Consultation", back_populates="prescriptions", lazy=True)

    @property
    def full_instructions(self):
        """Human-readable instructions printed on the prescription"""
        head = self.medication_name
        if self.concentration:
            head += f" {self.concentration}"
        if self.pharmaceutical_form:
            head += f" ({self.pharmaceutical_form})"
        lines = [
            head,
            f"Dose: {self.dose}",
            f"Frequency: {self.frequency}",
            f"Route: {self.route or 'oral'}",
            f"Duration: {self.duration}",
            f"Total quantity: {self.quantity} {self.unit or 'units'}",
        ]
        if self.special_instructions:
            lines.append(f"Special instructions: {self.special_instructions}")
        return "\n".join(lines)

    @property
    def is_current(self):
        if self.status != PrescriptionStatus.ACTIVE:
            return False
        if self.end_date:
            return self.end_date >= date.today()
        return True

    def to_dict(self):
        return {
            "id": self.id,
            "consultation_id": self.consultation_id,
            "medication_name": self.medication_name,
            "generic_name": self.generic_name,
            "concentration": self.concentration,
            "pharmaceutical_form": self.pharmaceutical_form,
            "dose": self.dose,
            "frequency": self.frequency,
            "route": self.route,
            "duration": self.duration,
            "quantity": self.quantity,
            "unit": self.unit,
            "special_instructions": self.special_instructions,
            "status": self.status,
            "start_date": isoformat(self.start_date),
            "end_date": isoformat(self.end_date),
            "is_chronic": self.is_chronic,
            "is_current": self.is_current,
            "full_instructions": self.full_instructions,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }

    def __repr__(self):
        return f"<Prescription {self.id} - {self.medication_name}>"
