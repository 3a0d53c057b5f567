"""
Tests for consultations and prescriptions.
"""
import pytest

from ehr.constants import PrescriptionStatus
from ehr.extensions import db
from ehr.models import Consultation

APPOINTMENTS = '/api/v1/appointments'
CONSULTATIONS = '/api/v1/consultations'


@pytest.fixture
def appointment(client, admin_headers, appointment_payload):
    return client.post(APPOINTMENTS, headers=admin_headers, json=appointment_payload()).get_json()['data']


@pytest.fixture
def attended(client, admin_headers, appointment):
    client.put(f"{APPOINTMENTS}/{appointment['id']}/attend", headers=admin_headers)
    return appointment


@pytest.fixture
def consultation(client, doctor_headers, attended):
    return client.post(CONSULTATIONS, headers=doctor_headers, json={
        'appointment_id': attended['id'],
        'weight': 70,
        'height': 175,
        'blood_pressure_systolic': 120,
        'blood_pressure_diastolic': 80,
        'chief_complaint': 'Headache',
        'primary_diagnosis': 'Tension-type headache',
        'primary_diagnosis_icd10': 'G44.2',
    }).get_json()['data']


def prescription_data(**overrides):
    data = {
        'medication_name': 'Paracetamol',
        'concentration': '500mg',
        'pharmaceutical_form': 'tablet',
        'dose': '1 tablet',
        'frequency': 'every 8 hours',
        'duration': '5 days',
        'quantity': 15,
    }
    data.update(overrides)
    return data


class TestConsultation:

    def test_requires_attended_appointment(self, client, doctor_headers, appointment):
        response = client.post(CONSULTATIONS, headers=doctor_headers, json={'appointment_id': appointment['id']})

        assert response.status_code == 400
        assert db.session.query(Consultation).count() == 0

    def test_create_derives_bmi(self, consultation):
        assert consultation['bmi'] == 22.86
        assert consultation['bmi_classification'] == 'Normal weight'
        assert consultation['blood_pressure'] == '120/80'
        assert consultation['prescriptions'] == []

    def test_one_consultation_per_appointment(self, client, doctor_headers, attended, consultation):
        response = client.post(CONSULTATIONS, headers=doctor_headers, json={'appointment_id': attended['id']})
        assert response.status_code == 409

    def test_get_by_appointment(self, client, doctor_headers, attended, consultation):
        response = client.get(f"{CONSULTATIONS}/appointment/{attended['id']}", headers=doctor_headers)

        assert response.status_code == 200
        assert response.get_json()['data']['id'] == consultation['id']

    def test_update_recalculates_bmi(self, client, doctor_headers, consultation):
        response = client.put(f"{CONSULTATIONS}/{consultation['id']}", headers=doctor_headers, json={'weight': 95})

        data = response.get_json()['data']
        assert response.status_code == 200
        assert data['bmi'] == 31.02
        assert data['bmi_classification'] == 'Obesity class I'

    def test_other_doctor_is_forbidden(self, client, auth_headers, other_doctor, consultation):
        response = client.get(f"{CONSULTATIONS}/{consultation['id']}", headers=auth_headers(other_doctor.user))
        assert response.status_code == 403

    def test_nurse_is_forbidden(self, client, nurse, auth_headers, consultation):
        response = client.get(f"{CONSULTATIONS}/{consultation['id']}", headers=auth_headers(nurse))
        assert response.status_code == 403


class TestPrescriptions:

    def test_add_prescription(self, client, doctor_headers, consultation):
        response = client.post(
            f"{CONSULTATIONS}/{consultation['id']}/prescriptions", headers=doctor_headers, json=prescription_data(),
        )

        data = response.get_json()['data']
        assert response.status_code == 201
        assert data['status'] == PrescriptionStatus.ACTIVE
        assert data['route'] == 'oral'
        assert data['is_current'] is True
        assert data['full_instructions'].splitlines() == [
            'Paracetamol 500mg (tablet)',
            'Dose: 1 tablet',
            'Frequency: every 8 hours',
            'Route: oral',
            'Duration: 5 days',
            'Total quantity: 15 units',
        ]

    def test_missing_fields(self, client, doctor_headers, consultation):
        response = client.post(
            f"{CONSULTATIONS}/{consultation['id']}/prescriptions", headers=doctor_headers,
            json={'medication_name': 'Ibuprofen'},
        )

        assert response.status_code == 400
        assert set(response.get_json()['fields']) == {'dose', 'frequency', 'duration', 'quantity'}

    def test_end_before_start(self, client, doctor_headers, consultation):
        response = client.post(
            f"{CONSULTATIONS}/{consultation['id']}/prescriptions", headers=doctor_headers,
            json=prescription_data(start_date='2026-03-10', end_date='2026-03-01'),
        )
        assert response.status_code == 400

    def test_list_and_filter(self, client, doctor_headers, consultation):
        url = f"{CONSULTATIONS}/{consultation['id']}/prescriptions"
        first = client.post(url, headers=doctor_headers, json=prescription_data()).get_json()['data']
        client.post(url, headers=doctor_headers, json=prescription_data(medication_name='Omeprazole'))
        client.put(f"/api/v1/prescriptions/{first['id']}/status", headers=doctor_headers, json={'status': 'completed'})

        response = client.get(f'{url}?status=active', headers=doctor_headers)

        body = response.get_json()
        assert body['count'] == 1
        assert body['data'][0]['medication_name'] == 'Omeprazole'

    def test_status_transitions(self, client, doctor_headers, consultation):
        created = client.post(
            f"{CONSULTATIONS}/{consultation['id']}/prescriptions", headers=doctor_headers, json=prescription_data(),
        ).get_json()['data']
        url = f"/api/v1/prescriptions/{created['id']}/status"

        response = client.put(url, headers=doctor_headers, json={'status': 'cancelled'})
        assert response.status_code == 200
        assert response.get_json()['data']['is_current'] is False

        response = client.put(url, headers=doctor_headers, json={'status': 'completed'})
        assert response.status_code == 400

    def test_invalid_status(self, client, doctor_headers, consultation):
        created = client.post(
            f"{CONSULTATIONS}/{consultation['id']}/prescriptions", headers=doctor_headers, json=prescription_data(),
        ).get_json()['data']

        response = client.put(f"/api/v1/prescriptions/{created['id']}/status", headers=doctor_headers, json={'status': 'paused'})
        assert response.status_code == 400
