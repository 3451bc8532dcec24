from datetime import timedelta

import pytest

from event_checkin import create_app
from event_checkin.extensions import db as _db
from event_checkin.utils.lifecycle import AttendeeStatus
from event_checkin.utils.time_format import utcnow


def register(client, **fields):
    body = {'name': 'ada lovelace', 'email': 'Ada@Example.com'}
    body.update(fields)
    return client.post('/api/attendees', json=body)


class TestRegistration:
    def test_create_attendee(self, client):
        response = register(client, table_number='4', seat_number='12')

        assert response.status_code == 201
        attendee = response.get_json()['attendee']
        assert attendee['name'] == 'Ada Lovelace'
        assert attendee['email'] == 'ada@example.com'
        assert attendee['current_status'] == 'NEVER_ENTERED'
        assert attendee['checked_in'] is False
        assert attendee['total_time_spent'] == '0 seconds'
        assert attendee['table_number'] == '4'
        assert len(attendee['barcode']) == 12 and attendee['barcode'].isdigit()

    def test_explicit_barcode_is_kept(self, client):
        response = register(client, barcode='EVT-0001')
        assert response.get_json()['attendee']['barcode'] == 'EVT-0001'

    def test_duplicate_email_conflicts(self, client):
        register(client)
        response = register(client, name='Someone Else', email='ADA@example.com')

        assert response.status_code == 409
        assert response.get_json()['error_code'] == 'duplicate_email'

    def test_invalid_email_is_rejected(self, client):
        response = register(client, email='not-an-email')

        assert response.status_code == 400
        assert 'email' in response.get_json()['errors']

    def test_missing_body(self, client):
        response = client.post('/api/attendees', json={})
        assert response.status_code == 400

    def test_email_exists(self, client):
        register(client)
        assert client.get('/api/attendees/email-exists?email=ada@example.com').get_json()['exists'] is True
        assert client.get('/api/attendees/email-exists?email=bob@example.com').get_json()['exists'] is False
        assert client.get('/api/attendees/email-exists').status_code == 400


class TestLookup:
    def test_list_newest_first_with_search(self, client, make_attendee):
        make_attendee(name='Ada Lovelace', email='ada@example.com')
        make_attendee(name='Grace Hopper', email='grace@navy.mil')

        everyone = client.get('/api/attendees').get_json()
        assert everyone['count'] == 2

        found = client.get('/api/attendees?q=HOPPER').get_json()
        assert [a['name'] for a in found['attendees']] == ['Grace Hopper']

    def test_by_barcode_and_id(self, client, make_attendee):
        attendee = make_attendee(barcode='555000111222')

        by_code = client.get('/api/attendees/barcode/555000111222')
        assert by_code.status_code == 200
        assert by_code.get_json()['attendee']['id'] == attendee.id

        by_id = client.get(f'/api/attendees/{attendee.id}')
        assert by_id.get_json()['attendee']['barcode'] == '555000111222'

    def test_unknown_barcode_is_404(self, client):
        response = client.get('/api/attendees/barcode/000000000000')
        assert response.status_code == 404
        assert response.get_json()['error_code'] == 'attendee_not_found'


class TestTransitions:
    def test_time_in(self, client, make_attendee):
        attendee = make_attendee()

        response = client.post(f'/api/attendees/{attendee.id}/time-in')

        assert response.status_code == 200
        body = response.get_json()
        assert body['previous_status'] == 'NEVER_ENTERED'
        assert body['attendee']['current_status'] == 'IN'
        assert body['attendee']['time_in'] is not None
        assert body['attendee']['time_out'] is None
        assert body['attendee']['checked_in'] is True
        assert body['attendee']['checked_in_at'] is not None

    def test_time_out_accumulates_session(self, client, make_attendee):
        attendee = make_attendee(
            current_status=AttendeeStatus.IN,
            time_in=utcnow() - timedelta(minutes=65),
            checked_in=True,
        )

        response = client.post(f'/api/attendees/{attendee.id}/time-out')

        assert response.status_code == 200
        body = response.get_json()['attendee']
        assert body['current_status'] == 'OUT'
        assert 3900 <= body['total_seconds'] < 3960
        assert body['total_time_spent'] == f"{body['total_seconds']} seconds"
        assert body['time_out'] is not None

    def test_time_out_adds_to_prior_total(self, client, make_attendee):
        attendee = make_attendee(
            current_status=AttendeeStatus.IN,
            time_in=utcnow() - timedelta(minutes=10),
            checked_in=True,
            total_seconds=600,
        )

        body = client.post(f'/api/attendees/{attendee.id}/time-out').get_json()['attendee']
        assert 1200 <= body['total_seconds'] < 1260

    @pytest.mark.parametrize('status, operation, code', [
        (AttendeeStatus.IN, 'time-in', 'already_inside'),
        (AttendeeStatus.NEVER_ENTERED, 'time-out', 'not_entered'),
        (AttendeeStatus.OUT, 'time-in', 'already_completed'),
        (AttendeeStatus.OUT, 'time-out', 'already_completed'),
    ])
    def test_illegal_moves_conflict(self, client, make_attendee, status, operation, code):
        attendee = make_attendee(current_status=status)

        response = client.post(f'/api/attendees/{attendee.id}/{operation}')

        assert response.status_code == 409
        body = response.get_json()
        assert body['error_code'] == code
        assert body['attendee']['current_status'] == status.value

    def test_toggle_walks_the_lifecycle(self, client, make_attendee):
        attendee = make_attendee()
        url = f'/api/attendees/{attendee.id}/toggle'

        assert client.post(url).get_json()['attendee']['current_status'] == 'IN'
        assert client.post(url).get_json()['attendee']['current_status'] == 'OUT'

        third = client.post(url)
        assert third.status_code == 409
        assert third.get_json()['error'] == 'ALREADY_COMPLETED'

    def test_transition_for_unknown_attendee(self, client):
        assert client.post('/api/attendees/does-not-exist/toggle').status_code == 404


class TestUpdateAndDelete:
    def test_update_identity_fields(self, client, make_attendee):
        attendee = make_attendee()

        response = client.patch(f'/api/attendees/{attendee.id}', json={'name': 'grace hopper', 'seat_number': '7'})

        assert response.status_code == 200
        body = response.get_json()['attendee']
        assert body['name'] == 'Grace Hopper'
        assert body['seat_number'] == '7'

    def test_attendance_fields_are_not_editable(self, client, make_attendee):
        attendee = make_attendee()

        response = client.patch(f'/api/attendees/{attendee.id}', json={'current_status': 'OUT'})

        assert response.status_code == 400
        assert response.get_json()['error_code'] == 'invalid_fields'

    def test_update_to_taken_email_conflicts(self, client, make_attendee):
        make_attendee(email='taken@example.com')
        attendee = make_attendee()

        response = client.patch(f'/api/attendees/{attendee.id}', json={'email': 'taken@example.com'})
        assert response.status_code == 409

    def test_delete(self, client, make_attendee):
        attendee = make_attendee()

        assert client.delete(f'/api/attendees/{attendee.id}').status_code == 200
        assert client.get(f'/api/attendees/{attendee.id}').status_code == 404
        assert client.delete(f'/api/attendees/{attendee.id}').status_code == 404


class TestApiKey:
    @pytest.fixture
    def secured_client(self):
        app = create_app('testing', {'API_KEY': 'station-secret'})
        with app.app_context():
            _db.create_all()
            yield app.test_client()
            _db.session.remove()
            _db.drop_all()

    def test_writes_require_key(self, secured_client):
        response = secured_client.post('/api/attendees', json={'name': 'Ada', 'email': 'ada@example.com'})
        assert response.status_code == 401
        assert response.get_json()['error_code'] == 'unauthorized'

    def test_writes_with_key(self, secured_client):
        response = secured_client.post(
            '/api/attendees',
            json={'name': 'Ada', 'email': 'ada@example.com'},
            headers={'X-API-Key': 'station-secret'}
        )
        assert response.status_code == 201

    def test_reads_are_open(self, secured_client):
        assert secured_client.get('/api/attendees').status_code == 200


def test_unknown_route_returns_json(client):
    response = client.get('/api/nothing-here/at/all')
    assert response.status_code == 404
    assert response.get_json()['success'] is False


def test_health(client):
    assert client.get('/health').get_json()['status'] == 'ok'
    database = client.get('/health/database')
    assert database.status_code == 200
    assert database.get_json()['stats']['attendee_count'] == 0
