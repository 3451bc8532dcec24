from datetime import datetime, timedelta, timezone
from urllib.parse import urlsplit

import pytest

from event_checkin import create_app
from event_checkin import models  # noqa: F401
from event_checkin.extensions import db as _db
from event_checkin.station.records import AttendeeRecord
from event_checkin.station.remote import RemoteServiceError, TransitionConflict
from event_checkin.utils.lifecycle import AttendeeStatus, CheckInAction, TransitionRejected

NOW = datetime(2024, 5, 18, 20, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def make_attendee(app):
    """Insert an attendee row directly, bypassing the service layer."""
    from event_checkin.models import Attendee

    counter = {'n': 0}

    def factory(**fields):
        counter['n'] += 1
        n = counter['n']
        defaults = {
            'name': f'Guest {n}',
            'email': f'guest{n}@example.com',
            'barcode': f'1000000000{n:02d}',
            'current_status': AttendeeStatus.NEVER_ENTERED,
            'total_seconds': 0,
        }
        defaults.update(fields)
        attendee = Attendee(**defaults)
        _db.session.add(attendee)
        _db.session.commit()
        return attendee

    return factory


def make_record(**fields):
    defaults = {
        'id': 'a1',
        'name': 'Ada Lovelace',
        'email': 'ada@example.com',
        'barcode': '123456789012',
    }
    defaults.update(fields)
    return AttendeeRecord(**defaults)


class FakeRemote:
    """
    In-memory stand-in for RemoteAttendanceService.

    Applies the same transition rules as the backend. Set `fail_with` to an
    exception to make the next transition call raise it.
    """

    def __init__(self, records=(), now=NOW):
        self.records = {record.id: record for record in records}
        self.now = now
        self.fail_with = None
        self.fail_lookups = False
        self.calls = []
        self.on_call = None

    def fetch_all(self, query=None):
        return list(self.records.values())

    def fetch_by_barcode(self, barcode):
        self.calls.append(('fetch_by_barcode', barcode))
        if self.fail_lookups:
            raise RemoteServiceError('connection refused')
        return next((r for r in self.records.values() if r.barcode == barcode), None)

    def fetch_by_id(self, attendee_id):
        return self.records.get(attendee_id)

    def time_in(self, attendee_id):
        return self._transition(attendee_id, CheckInAction.TIME_IN)

    def time_out(self, attendee_id):
        return self._transition(attendee_id, CheckInAction.TIME_OUT)

    def toggle(self, attendee_id):
        return self._transition(attendee_id, CheckInAction.TOGGLE)

    def _transition(self, attendee_id, action):
        self.calls.append((action.value, attendee_id))
        if self.on_call:
            self.on_call(attendee_id)
        if self.fail_with is not None:
            error, self.fail_with = self.fail_with, None
            raise error

        record = self.records.get(attendee_id)
        if record is None:
            return None
        try:
            updated = record.with_transition(action, now=self.now)
        except TransitionRejected as e:
            raise TransitionConflict(e.error_code, e.message, attendee=record)
        self.records[attendee_id] = updated
        return updated


@pytest.fixture
def fake_remote():
    return FakeRemote()


class FlaskTestSession:
    """requests.Session look-alike that sends requests to a Flask test client."""

    def __init__(self, client):
        self.client = client
        self.headers = {}
        self.requests = []

    def request(self, method, url, params=None, json=None, timeout=None):
        self.requests.append((method, url, timeout))
        path = urlsplit(url).path
        response = self.client.open(
            path, method=method, query_string=params, json=json, headers=dict(self.headers)
        )
        return _TestResponse(response)


class _TestResponse:
    def __init__(self, response):
        self.status_code = response.status_code
        self._payload = response.get_json(silent=True)

    def json(self):
        if self._payload is None:
            raise ValueError('No JSON body')
        return self._payload


@pytest.fixture
def flask_session(client):
    return FlaskTestSession(client)


def minutes_ago(minutes, now=NOW):
    return now - timedelta(minutes=minutes)
