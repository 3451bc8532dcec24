import pytest
import requests

from event_checkin.station.remote import (
    DuplicateAttendee, RemoteAttendanceService, RemoteServiceError, TransitionConflict
)
from event_checkin.station.store import AttendeeStore
from event_checkin.station.workflow import CheckInWorkflow, ScanStatus
from event_checkin.utils.lifecycle import AttendeeStatus, TransitionError


@pytest.fixture
def remote(flask_session):
    return RemoteAttendanceService('http://checkin.local/', timeout=3, session=flask_session)


def test_create_and_fetch(remote):
    created = remote.create('Ada Lovelace', 'ada@example.com', table_number='4')

    assert created.current_status is AttendeeStatus.NEVER_ENTERED
    assert remote.fetch_by_barcode(created.barcode) == created
    assert remote.fetch_by_id(created.id) == created
    assert [r.id for r in remote.fetch_all()] == [created.id]
    assert remote.fetch_all(query='nobody') == []


def test_unknown_lookups_return_none(remote):
    assert remote.fetch_by_barcode('000000000000') is None
    assert remote.fetch_by_id('missing') is None


def test_duplicate_email_raises(remote):
    remote.create('Ada Lovelace', 'ada@example.com')
    with pytest.raises(DuplicateAttendee) as exc:
        remote.create('Ada Again', 'ada@example.com')
    assert exc.value.error_code == 'duplicate_email'


def test_transitions_round_trip(remote):
    attendee = remote.create('Ada Lovelace', 'ada@example.com')

    inside = remote.time_in(attendee.id)
    assert inside.current_status is AttendeeStatus.IN
    assert inside.time_in is not None

    done = remote.time_out(attendee.id)
    assert done.current_status is AttendeeStatus.OUT
    assert done.total_seconds >= 0

    with pytest.raises(TransitionConflict) as exc:
        remote.toggle(attendee.id)
    assert exc.value.error_code == TransitionError.ALREADY_COMPLETED
    assert exc.value.attendee.current_status is AttendeeStatus.OUT


def test_update_and_delete(remote):
    attendee = remote.create('Ada Lovelace', 'ada@example.com')

    updated = remote.update_fields(attendee.id, {'seat_number': '12'})
    assert updated.seat_number == '12'

    assert remote.check_email_exists('ada@example.com') is True
    assert remote.delete(attendee.id) is True
    assert remote.delete(attendee.id) is False
    assert remote.check_email_exists('ada@example.com') is False


def test_every_call_carries_the_timeout(remote, flask_session):
    remote.fetch_all()
    remote.fetch_by_barcode('123')
    assert {timeout for _, _, timeout in flask_session.requests} == {3}


def test_api_key_header(flask_session):
    RemoteAttendanceService('http://checkin.local', api_key='secret', session=flask_session)
    assert flask_session.headers['X-API-Key'] == 'secret'


class RaisingSession:
    def __init__(self, error):
        self.error = error
        self.headers = {}

    def request(self, *args, **kwargs):
        raise self.error


class StaticSession:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self.payload = payload
        self.headers = {}

    def request(self, *args, **kwargs):
        return self

    def json(self):
        if self.payload is None:
            raise ValueError('no json')
        return self.payload


@pytest.mark.parametrize('error', [
    requests.exceptions.ConnectTimeout('slow'),
    requests.exceptions.ReadTimeout('slow'),
    requests.exceptions.ConnectionError('refused'),
])
def test_transport_errors_become_remote_errors(error):
    remote = RemoteAttendanceService('http://checkin.local', session=RaisingSession(error))
    with pytest.raises(RemoteServiceError):
        remote.time_in('a1')


def test_server_error_becomes_remote_error():
    session = StaticSession(500, {'success': False, 'message': 'db down', 'error_code': 'database_error'})
    remote = RemoteAttendanceService('http://checkin.local', session=session)

    with pytest.raises(RemoteServiceError) as exc:
        remote.time_out('a1')
    assert exc.value.status_code == 500
    assert exc.value.error_code == 'database_error'


def test_non_json_response_becomes_remote_error():
    remote = RemoteAttendanceService('http://checkin.local', session=StaticSession(502))
    with pytest.raises(RemoteServiceError):
        remote.fetch_all()


def test_station_against_live_backend(remote):
    attendee = remote.create('Grace Hopper', 'grace@example.com')
    store = AttendeeStore(remote.fetch_all())
    workflow = CheckInWorkflow(store, remote)
    workflow.set_scanner_active(True)

    outcome = workflow.resolve_scan(attendee.barcode, 'time_in')

    assert outcome.status == ScanStatus.SUCCESS
    assert store.get(attendee.id) == remote.fetch_by_id(attendee.id)

    again = workflow.manual_check_in(attendee.id, 'time_in')
    assert again.status == ScanStatus.REJECTED
    assert again.error_code == TransitionError.ALREADY_INSIDE


def test_transition_on_deleted_attendee_returns_none(remote):
    attendee = remote.create('Ada Lovelace', 'ada@example.com')
    remote.delete(attendee.id)

    assert remote.time_in(attendee.id) is None


def test_station_drops_attendee_deleted_on_server(remote):
    attendee = remote.create('Grace Hopper', 'grace@example.com')
    store = AttendeeStore(remote.fetch_all())
    workflow = CheckInWorkflow(store, remote)
    remote.delete(attendee.id)

    outcome = workflow.manual_check_in(attendee.id, 'time_in')

    assert outcome.status == ScanStatus.UNKNOWN
    assert 'no longer registered' in outcome.message
    assert len(store) == 0
