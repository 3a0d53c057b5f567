"""
Tests for the billing-system integration: appointment sync, payment
updates, the signed webhook and the Celery task behind it.
"""
import hashlib
import hmac
import json

import pytest

from ehr.constants import AppointmentStatus, AuditAction
from ehr.extensions import db
from ehr.models import Appointment, AuditLog, Patient
from ehr.services.external_service import split_full_name
from tasks import sync_tasks

from conftest import tomorrow_at

SECRET = 'test-webhook-secret'


def sync_payload(doctor_id, **appointment_overrides):
    appointment = {
        'external_code': 'BILL-0001',
        'doctor_id': doctor_id,
        'date_time': tomorrow_at(11),
        'type': 'medical_consultation',
        'status': AppointmentStatus.PAID,
        'price': 150.0,
    }
    appointment.update(appointment_overrides)
    return {
        'patient': {
            'dni': '71234567',
            'names': 'Juan Carlos Perez Lopez',
            'gender': 'M',
            'phone': '987654321',
        },
        'appointment': appointment,
    }


class TestSplitFullName:

    @pytest.mark.parametrize('names, expected', [
        ('Juan Carlos Perez Lopez', ('Juan Carlos', 'Perez', 'Lopez')),
        ('Maria Garcia Flores', ('Maria', 'Garcia', 'Flores')),
        ('Rosa Diaz', ('Rosa', 'Diaz', None)),
        ('Cher', ('Cher', 'N/A', None)),
    ])
    def test_split(self, names, expected):
        assert split_full_name(names) == expected


class TestSyncAppointment:
    endpoint = '/api/v1/external/sync/appointment'

    def test_creates_patient_and_appointment(self, client, admin_headers, doctor):
        response = client.post(self.endpoint, headers=admin_headers, json=sync_payload(doctor.id))

        body = response.get_json()
        assert response.status_code == 201
        assert body['action'] == 'created'
        assert body['patient_created'] is True

        patient = db.session.get(Patient, body['patient_id'])
        assert patient.external_code == 'BILLING_71234567'
        assert (patient.first_name, patient.paternal_surname, patient.maternal_surname) == ('Juan Carlos', 'Perez', 'Lopez')
        assert patient.history_number == 'HCE-000001'

        appointment = db.session.get(Appointment, body['appointment_id'])
        assert appointment.external_code == 'BILL-0001'
        assert appointment.status == AppointmentStatus.PAID
        assert float(appointment.payment_amount) == 150.0
        assert appointment.payment_method == 'billing_system'

    def test_existing_patient_is_reused(self, client, admin_headers, doctor, patient):
        payload = sync_payload(doctor.id)
        payload['patient']['dni'] = patient.document_number

        body = client.post(self.endpoint, headers=admin_headers, json=payload).get_json()

        assert body['patient_created'] is False
        assert body['patient_id'] == patient.id
        assert db.session.query(Patient).count() == 1

    def test_same_status_is_no_change(self, client, admin_headers, doctor):
        client.post(self.endpoint, headers=admin_headers, json=sync_payload(doctor.id))

        response = client.post(self.endpoint, headers=admin_headers, json=sync_payload(doctor.id))

        assert response.status_code == 200
        assert response.get_json()['action'] == 'no_change'
        assert db.session.query(Appointment).count() == 1

    def test_new_status_updates_existing(self, client, admin_headers, doctor):
        created = client.post(self.endpoint, headers=admin_headers, json=sync_payload(doctor.id)).get_json()

        response = client.post(self.endpoint, headers=admin_headers, json=sync_payload(
            doctor.id, status=AppointmentStatus.UNPAID, price=None,
        ))

        assert response.status_code == 200
        assert response.get_json()['action'] == 'updated'
        appointment = db.session.get(Appointment, created['appointment_id'])
        assert appointment.status == AppointmentStatus.UNPAID
        assert appointment.payment_method is None
        assert float(appointment.payment_amount) == 150.0

        entry = db.session.query(AuditLog).filter_by(action=AuditAction.SYNC_UPDATE).one()
        assert entry.old_data['status'] == AppointmentStatus.PAID
        assert entry.additional_info['event'] == 'billing_sync'
        assert entry.additional_info['external_code'] == 'BILL-0001'

    def test_new_price_with_same_status_updates_amount(self, client, admin_headers, doctor):
        created = client.post(self.endpoint, headers=admin_headers, json=sync_payload(doctor.id)).get_json()

        response = client.post(self.endpoint, headers=admin_headers, json=sync_payload(doctor.id, price=175.5))

        assert response.get_json()['action'] == 'updated'
        appointment = db.session.get(Appointment, created['appointment_id'])
        assert appointment.status == AppointmentStatus.PAID
        assert float(appointment.payment_amount) == 175.5

    def test_past_date_creates_no_patient(self, client, admin_headers, doctor):
        response = client.post(self.endpoint, headers=admin_headers, json=sync_payload(doctor.id, date_time='2020-01-01T10:00:00'))

        assert response.status_code == 400
        assert db.session.query(Patient).count() == 0

    @pytest.mark.parametrize('status', [AppointmentStatus.ATTENDED, AppointmentStatus.CANCELLED])
    def test_terminal_status_cannot_come_from_billing(self, client, admin_headers, doctor, status):
        response = client.post(self.endpoint, headers=admin_headers, json=sync_payload(doctor.id, status=status))

        assert response.status_code == 400
        assert db.session.query(Appointment).count() == 0

    def test_cancelled_appointment_is_not_revived(self, client, admin_headers, doctor):
        created = client.post(self.endpoint, headers=admin_headers, json=sync_payload(
            doctor.id, status=AppointmentStatus.PENDING, price=None,
        )).get_json()
        client.delete(f"/api/v1/appointments/{created['appointment_id']}", headers=admin_headers)

        response = client.post(self.endpoint, headers=admin_headers, json=sync_payload(doctor.id))

        assert response.status_code == 400
        appointment = db.session.get(Appointment, created['appointment_id'])
        assert appointment.status == AppointmentStatus.CANCELLED
        assert appointment.payment_amount is None

    def test_invalid_dni(self, client, admin_headers, doctor):
        payload = sync_payload(doctor.id)
        payload['patient']['dni'] = '1234'

        response = client.post(self.endpoint, headers=admin_headers, json=payload)

        assert response.status_code == 400
        assert response.get_json()['error'] == 'DNI must have exactly 8 digits'

    def test_missing_sections(self, client, admin_headers):
        response = client.post(self.endpoint, headers=admin_headers, json={'patient': {}})
        assert response.status_code == 400

    def test_unknown_doctor_creates_nothing(self, client, admin_headers):
        response = client.post(self.endpoint, headers=admin_headers, json=sync_payload(999))

        assert response.status_code == 404
        assert db.session.query(Patient).count() == 0
        assert db.session.query(Appointment).count() == 0

    def test_conflicting_slot(self, client, admin_headers, doctor, appointment_payload):
        client.post('/api/v1/appointments', headers=admin_headers, json=appointment_payload(date_time=tomorrow_at(11)))

        patients_before = db.session.query(Patient).count()

        response = client.post(self.endpoint, headers=admin_headers, json=sync_payload(doctor.id))
        assert response.status_code == 409
        assert db.session.query(Patient).count() == patients_before
        assert db.session.query(Patient).filter_by(document_number='71234567').count() == 0

    def test_admin_only(self, client, doctor, doctor_headers):
        response = client.post(self.endpoint, headers=doctor_headers, json=sync_payload(doctor.id))
        assert response.status_code == 403


class TestPaymentStatus:
    endpoint = '/api/v1/external/payment/status'

    @pytest.fixture
    def synced(self, client, admin_headers, doctor):
        return client.post(
            '/api/v1/external/sync/appointment', headers=admin_headers,
            json=sync_payload(doctor.id, status=AppointmentStatus.PENDING, price=None),
        ).get_json()

    def test_update_payment(self, client, admin_headers, synced):
        response = client.put(self.endpoint, headers=admin_headers, json={
            'external_code': 'BILL-0001',
            'status': AppointmentStatus.PAID,
            'payment_amount': '150.00',
            'payment_method': 'card',
            'transaction_id': 'TX-998',
            'payment_date': '2026-01-15T10:30:00Z',
        })

        body = response.get_json()
        assert response.status_code == 200
        assert body['new_status'] == AppointmentStatus.PAID

        appointment = db.session.get(Appointment, synced['appointment_id'])
        assert appointment.payment_method == 'card'
        assert appointment.payment_date.isoformat() == '2026-01-15T10:30:00'
        assert 'Transaction ID: TX-998' in appointment.notes
        assert 'Payment date: 2026-01-15T10:30:00Z' in appointment.notes

        entry = db.session.query(AuditLog).filter_by(action=AuditAction.PAYMENT_UPDATE).one()
        assert entry.additional_info['transaction_id'] == 'TX-998'

    def test_unknown_external_code(self, client, admin_headers):
        response = client.put(self.endpoint, headers=admin_headers, json={'external_code': 'NOPE', 'status': 'paid'})

        assert response.status_code == 404
        assert response.get_json()['external_code'] == 'NOPE'

    def test_invalid_status(self, client, admin_headers, synced):
        response = client.put(self.endpoint, headers=admin_headers, json={'external_code': 'BILL-0001', 'status': 'refunded'})
        assert response.status_code == 400

    def test_attended_appointment_keeps_its_status(self, client, admin_headers, synced):
        client.put(f"/api/v1/appointments/{synced['appointment_id']}/attend", headers=admin_headers)

        response = client.put(self.endpoint, headers=admin_headers, json={
            'external_code': 'BILL-0001', 'status': AppointmentStatus.PENDING,
        })

        assert response.status_code == 400
        assert db.session.get(Appointment, synced['appointment_id']).status == AppointmentStatus.ATTENDED
        assert db.session.query(AuditLog).filter_by(action=AuditAction.PAYMENT_UPDATE).count() == 0

    def test_billing_cannot_cancel(self, client, admin_headers, synced):
        response = client.put(self.endpoint, headers=admin_headers, json={
            'external_code': 'BILL-0001', 'status': AppointmentStatus.CANCELLED,
        })

        assert response.status_code == 400
        assert db.session.get(Appointment, synced['appointment_id']).status == AppointmentStatus.PENDING

    def test_non_finite_amount(self, client, admin_headers, synced):
        response = client.put(self.endpoint, headers=admin_headers, json={
            'external_code': 'BILL-0001', 'status': AppointmentStatus.PAID, 'payment_amount': 'Infinity',
        })

        assert response.status_code == 400
        assert db.session.get(Appointment, synced['appointment_id']).status == AppointmentStatus.PENDING


class TestSyncQueries:

    def test_sync_status(self, client, admin_headers, doctor):
        client.post('/api/v1/external/sync/appointment', headers=admin_headers, json=sync_payload(doctor.id))

        response = client.get('/api/v1/external/appointments/BILL-0001/status', headers=admin_headers)

        appointment = response.get_json()['appointment']
        assert response.status_code == 200
        assert appointment['external_code'] == 'BILL-0001'
        assert appointment['payment_amount'] == 150.0
        assert appointment['patient']['document_number'] == '71234567'

    def test_sync_statistics(self, client, admin_headers, doctor, patient):
        client.post('/api/v1/external/sync/appointment', headers=admin_headers, json=sync_payload(doctor.id))

        response = client.get('/api/v1/external/sync/stats', headers=admin_headers)

        stats = response.get_json()['statistics']
        assert stats['total_synced_appointments'] == 1
        assert stats['total_synced_patients'] == 1
        assert stats['appointments_by_status'] == {AppointmentStatus.PAID: 1}
        assert stats['period'] == {'from': 'beginning', 'to': 'present'}


class FakeTask:
    def __init__(self):
        self.calls = []

    def delay(self, *args):
        self.calls.append(args)

        class Result:
            id = 'task-123'
        return Result()


class TestBillingWebhook:
    endpoint = '/api/v1/external/webhook/billing'

    @pytest.fixture
    def fake_task(self, monkeypatch):
        task = FakeTask()
        monkeypatch.setattr(sync_tasks, 'process_billing_event', task)
        return task

    def post_signed(self, client, payload, secret=SECRET):
        body = json.dumps(payload).encode()
        signature = 'sha256=' + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
        return client.post(self.endpoint, data=body, content_type='application/json',
                           headers={'X-Billing-Signature': signature})

    def test_valid_signature_queues_event(self, client, fake_task):
        payload = {'event': 'payment.updated', 'data': {'external_code': 'BILL-0001', 'status': 'paid'}}

        response = self.post_signed(client, payload)

        assert response.status_code == 202
        assert response.get_json()['task_id'] == 'task-123'
        assert fake_task.calls == [('payment.updated', payload['data'])]

    def test_wrong_secret_is_rejected(self, client, fake_task):
        response = self.post_signed(client, {'event': 'payment.updated', 'data': {}}, secret='guess')

        assert response.status_code == 401
        assert response.get_json()['error'] == 'Invalid signature'
        assert fake_task.calls == []

    def test_missing_signature(self, client, fake_task):
        response = client.post(self.endpoint, json={'event': 'payment.updated', 'data': {}})

        assert response.status_code == 401
        assert fake_task.calls == []

    def test_unknown_event(self, client, fake_task):
        response = self.post_signed(client, {'event': 'invoice.voided', 'data': {}})

        assert response.status_code == 400
        assert fake_task.calls == []


class TestProcessBillingEventTask:

    def test_appointment_created_event(self, app, doctor):
        result = sync_tasks.process_billing_event.run('appointment.created', sync_payload(doctor.id))

        assert result['success'] is True
        assert result['action'] == 'created'
        assert db.session.query(Appointment).filter_by(external_code='BILL-0001').count() == 1

    def test_payment_updated_event(self, app, doctor):
        sync_tasks.process_billing_event.run('appointment.created', sync_payload(doctor.id, status='pending', price=None))

        result = sync_tasks.process_billing_event.run('payment.updated', {
            'external_code': 'BILL-0001', 'status': 'paid', 'payment_amount': 99,
        })

        assert result == {
            'success': True,
            'event': 'payment.updated',
            'appointment_id': result['appointment_id'],
            'new_status': 'paid',
        }

    def test_rejected_event_is_reported_not_raised(self, app):
        result = sync_tasks.process_billing_event.run('payment.updated', {'external_code': 'NOPE', 'status': 'paid'})

        assert result['success'] is False
        assert result['status_code'] == 404
