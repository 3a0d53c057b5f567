from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import event

from ehr.extensions import db
from .base import TimestampMixin, isoformat


def calculate_bmi(weight, height):
    """BMI from weight in kg and height in cm, rounded to 2 decimals"""
    if not weight or not height:
        return None
    meters = Decimal(str(height)) / 100
    value = Decimal(str(weight)) / (meters * meters)
    return value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def classify_bmi(bmi):
    if bmi is None:
        return None
    bmi = float(bmi)
    if bmi < 18.5:
        return 'Underweight'
    if bmi < 25:
        return 'Normal weight'
    if bmi < 30:
        return 'Overweight'
    if bmi < 35:
        return 'Obesity class I'
    if bmi < 40:
        return 'Obesity class II'
    return 'Obesity class III'


def _decimal(value):
    return float(value) if value is not None else None


class Consultation(db.Model, TimestampMixin):
    __tablename__ = 'consultations'

    id = db.Column(db.Integer, primary_key=True)
    appointment_id = db.Column(db.Integer, db.ForeignKey('appointments.id'), unique=True, nullable=False)

    # Vital signs
    weight = db.Column(db.Numeric(5, 2))  # kg
    height = db.Column(db.Numeric(5, 2))  # cm
    bmi = db.Column(db.Numeric(5, 2))  # derived on save
    blood_pressure_systolic = db.Column(db.Integer)
    blood_pressure_diastolic = db.Column(db.Integer)
    heart_rate = db.Column(db.Integer)
    respiratory_rate = db.Column(db.Integer)
    temperature = db.Column(db.Numeric(4, 2))  # Celsius
    oxygen_saturation = db.Column(db.Integer)

    # Anamnesis
    chief_complaint = db.Column(db.Text)
    current_illness = db.Column(db.Text)
    anamnesis = db.Column(db.Text)
    pathological_antecedents = db.Column(db.Text)
    family_antecedents = db.Column(db.Text)
    allergies = db.Column(db.Text)
    current_medications = db.Column(db.Text)

    physical_exam = db.Column(db.Text)

    # Diagnosis
    primary_diagnosis = db.Column(db.String(200))
    primary_diagnosis_icd10 = db.Column(db.String(10), index=True)
    secondary_diagnoses = db.Column(db.JSON, default=list)  # [{description, icd10}, ...]

    treatment_plan = db.Column(db.Text)
    evolution_notes = db.Column(db.Text)
    recommendations = db.Column(db.Text)
    next_appointment_date = db.Column(db.DateTime)

    appointment = db.relationship('Appointment', back_populates='consultation', lazy=True)
    prescriptions = db.relationship(
        'Prescription', back_populates='consultation', lazy=True,
        order_by='Prescription.id'
    )

    @property
    def blood_pressure(self):
        if self.blood_pressure_systolic and self.blood_pressure_diastolic:
            return f"{self.blood_pressure_systolic}/{self.blood_pressure_diastolic}"
        return None

    @property
    def bmi_classification(self):
        return classify_bmi(self.bmi)

    def to_dict(self, include_prescriptions=True):
        data = {
            'id': self.id,
            'appointment_id': self.appointment_id,
            'weight': _decimal(self.weight),
            'height': _decimal(self.height),
            'bmi': _decimal(self.bmi),
            'bmi_classification': self.bmi_classification,
            'blood_pressure_systolic': self.blood_pressure_systolic,
            'blood_pressure_diastolic': self.blood_pressure_diastolic,
            'blood_pressure': self.blood_pressure,
            'heart_rate': self.heart_rate,
            'respiratory_rate': self.respiratory_rate,
            'temperature': _decimal(self.temperature),
            'oxygen_saturation': self.oxygen_saturation,
            'chief_complaint': self.chief_complaint,
            'current_illness': self.current_illness,
            'anamnesis': self.anamnesis,
            'pathological_antecedents': self.pathological_antecedents,
            'family_antecedents': self.family_antecedents,
            'allergies': self.allergies,
            'current_medications': self.current_medications,
            'physical_exam': self.physical_exam,
            'primary_diagnosis': self.primary_diagnosis,
            'primary_diagnosis_icd10': self.primary_diagnosis_icd10,
            'secondary_diagnoses': self.secondary_diagnoses or [],
            'treatment_plan': self.treatment_plan,
            'evolution_notes': self.evolution_notes,
            'recommendations': self.recommendations,
            'next_appointment_date': isoformat(self.next_appointment_date),
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }
        if include_prescriptions:
            data['prescriptions'] = [p.to_dict() for p in self.prescriptions]
        return data

    def __repr__(self):
        return f"<Consultation {self.id} for appointment {self.appointment_id}>"


@event.listens_for(Consultation, 'before_insert')
@event.listens_for(Consultation, 'before_update')
def _derive_bmi(mapper, connection, target):
    if target.weight and target.height:
        target.bmi = calculate_bmi(target.weight, target.height)
