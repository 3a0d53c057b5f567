"""
Tests for patient intake, search and soft deletion.
"""
import pytest

from ehr.constants import AuditAction, DocumentType
from ehr.errors import ConflictError, ValidationError
from ehr.extensions import db
from ehr.models import AuditLog, Patient
from ehr.services import patient_service


def patient_data(**overrides):
    data = {
        'document_type': DocumentType.DNI,
        'document_number': '12345678',
        'first_name': 'Carlos',
        'paternal_surname': 'Mendoza',
        'maternal_surname': 'Ruiz',
        'gender': 'm',
        'birth_date': '1985-03-14',
        'phone': '999888777',
    }
    data.update(overrides)
    return data


class TestHistoryNumber:

    def test_first_patient_gets_hce_000001(self, app):
        patient = patient_service.create_patient(db.session, patient_data())
        assert patient.history_number == 'HCE-000001'

    def test_numbers_are_sequential(self, app):
        first = patient_service.create_patient(db.session, patient_data())
        second = patient_service.create_patient(db.session, patient_data(document_number='87654321'))

        assert first.history_number == 'HCE-000001'
        assert second.history_number == 'HCE-000002'

    def test_next_number_follows_the_highest_existing(self, app):
        patient_service.create_patient(db.session, patient_data())
        manual = Patient(
            document_type=DocumentType.PASSPORT, document_number='X1',
            first_name='Old', paternal_surname='Record', history_number='HCE-000041',
        )
        db.session.add(manual)
        db.session.commit()

        assert patient_service.generate_history_number(db.session) == 'HCE-000042'

    def test_soft_deleted_patients_keep_their_number(self, app):
        first = patient_service.create_patient(db.session, patient_data())
        patient_service.delete_patient(db.session, first.id)

        second = patient_service.create_patient(db.session, patient_data(document_number='87654321'))
        assert second.history_number == 'HCE-000002'


class TestCreatePatientService:

    def test_normalises_values(self, app):
        patient = patient_service.create_patient(db.session, patient_data(email='Carlos@Example.COM'))

        assert patient.gender == 'M'
        assert patient.email == 'carlos@example.com'
        assert patient.birth_date.isoformat() == '1985-03-14'
        assert patient.full_name == 'Carlos Mendoza Ruiz'

    def test_dni_must_have_eight_digits(self, app):
        with pytest.raises(ValidationError) as exc:
            patient_service.create_patient(db.session, patient_data(document_number='1234567'))
        assert exc.value.message == 'DNI must have exactly 8 digits'

    def test_passport_allows_free_form_numbers(self, app):
        patient = patient_service.create_patient(
            db.session, patient_data(document_type=DocumentType.PASSPORT, document_number='AB123'),
        )
        assert patient.document_number == 'AB123'

    def test_duplicate_document_is_rejected(self, app):
        patient_service.create_patient(db.session, patient_data())
        with pytest.raises(ConflictError):
            patient_service.create_patient(db.session, patient_data(first_name='Other'))
        assert db.session.query(Patient).count() == 1

    def test_document_can_be_reused_after_soft_delete(self, app):
        first = patient_service.create_patient(db.session, patient_data())
        patient_service.delete_patient(db.session, first.id)

        again = patient_service.create_patient(db.session, patient_data())
        assert again.id != first.id

    def test_invalid_gender(self, app):
        with pytest.raises(ValidationError):
            patient_service.create_patient(db.session, patient_data(gender='X'))


class TestPatientApi:
    endpoint = '/api/v1/patients'

    def test_create(self, client, doctor_headers):
        response = client.post(self.endpoint, headers=doctor_headers, json=patient_data())

        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['history_number'] == 'HCE-000001'
        assert data['document_number'] == '12345678'

    def test_invalid_dni_returns_400(self, client, admin_headers):
        response = client.post(self.endpoint, headers=admin_headers, json=patient_data(document_number='123'))

        assert response.status_code == 400
        assert response.get_json()['error'] == 'DNI must have exactly 8 digits'
        assert db.session.query(Patient).count() == 0

    def test_missing_fields_are_listed(self, client, admin_headers):
        response = client.post(self.endpoint, headers=admin_headers, json={'document_type': 'dni'})

        body = response.get_json()
        assert response.status_code == 400
        assert body['error'] == 'Missing required fields'
        assert set(body['fields']) == {'document_number', 'first_name', 'paternal_surname'}

    def test_duplicate_returns_409(self, client, admin_headers, patient):
        response = client.post(self.endpoint, headers=admin_headers, json=patient_data(document_number=patient.document_number))
        assert response.status_code == 409

    def test_nurse_cannot_create(self, client, nurse, auth_headers):
        response = client.post(self.endpoint, headers=auth_headers(nurse), json=patient_data())
        assert response.status_code == 403

    def test_list_with_search_and_pagination(self, client, admin_headers, patient):
        patient_service.create_patient(db.session, patient_data())

        response = client.get(f'{self.endpoint}?search=torres&limit=5', headers=admin_headers)

        body = response.get_json()
        assert response.status_code == 200
        assert [p['id'] for p in body['data']] == [patient.id]
        assert body['pagination'] == {'page': 1, 'per_page': 5, 'total': 1, 'pages': 1}

    def test_receptionist_cannot_list_but_can_search(self, client, receptionist, auth_headers, patient):
        headers = auth_headers(receptionist)

        assert client.get(self.endpoint, headers=headers).status_code == 403

        response = client.get(f'{self.endpoint}/search?document_number={patient.document_number}', headers=headers)
        assert response.status_code == 200
        assert response.get_json()['count'] == 1

    def test_search_requires_document_number(self, client, admin_headers):
        response = client.get(f'{self.endpoint}/search', headers=admin_headers)
        assert response.status_code == 400

    def test_get_includes_recent_appointments(self, client, admin_headers, patient):
        response = client.get(f'{self.endpoint}/{patient.id}', headers=admin_headers)

        data = response.get_json()['data']
        assert response.status_code == 200
        assert data['full_name'] == 'Ana Torres Quispe'
        assert data['recent_appointments'] == []

    def test_get_unknown(self, client, admin_headers):
        response = client.get(f'{self.endpoint}/999', headers=admin_headers)

        assert response.status_code == 404
        assert response.get_json()['error'] == 'Patient not found'

    def test_update(self, client, doctor_headers, patient):
        response = client.put(f'{self.endpoint}/{patient.id}', headers=doctor_headers, json={
            'phone': '955111222',
            'address': 'Av. Arequipa 123',
        })

        assert response.status_code == 200
        assert response.get_json()['data']['phone'] == '955111222'

        entry = db.session.query(AuditLog).filter_by(
            entity_type='Patient', entity_id=str(patient.id), action=AuditAction.UPDATE,
        ).one()
        assert entry.old_data['phone'] is None
        assert entry.new_data['phone'] == '955111222'

    def test_update_to_taken_document(self, client, admin_headers, patient):
        other = patient_service.create_patient(db.session, patient_data())

        response = client.put(f'{self.endpoint}/{other.id}', headers=admin_headers, json={
            'document_number': patient.document_number,
        })
        assert response.status_code == 409

    def test_soft_delete(self, client, admin_headers, patient):
        response = client.delete(f'{self.endpoint}/{patient.id}', headers=admin_headers, json={'reason': 'Duplicate record'})

        assert response.status_code == 200
        assert db.session.get(Patient, patient.id).is_active is False
        assert client.get(f'{self.endpoint}/{patient.id}', headers=admin_headers).status_code == 404

        entry = db.session.query(AuditLog).filter_by(entity_type='Patient', action=AuditAction.DELETE).one()
        assert entry.additional_info == {'event': 'soft_delete', 'reason': 'Duplicate record'}
