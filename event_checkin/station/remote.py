# station/remote.py
"""
HTTP client for the check-in backend's JSON API.
Every call runs under a timeout. Transport errors, timeouts and server faults
raise RemoteServiceError; business conflicts (HTTP 409) raise a ConflictError
subclass carrying the server's error code.
"""

import logging
from urllib.parse import quote

import requests

from event_checkin.station.records import AttendeeRecord

logger = logging.getLogger('station')


class RemoteServiceError(Exception):
    """The backend could not be reached or failed to process the request."""

    def __init__(self, message, status_code=None, error_code=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code


class ConflictError(Exception):
    """The backend refused the request because of a business rule (HTTP 409)."""

    def __init__(self, error_code, message, attendee=None):
        super().__init__(message)
        self.error_code = error_code
        self.message = message
        self.attendee = attendee


class TransitionConflict(ConflictError):
    """A time-in / time-out was illegal for the attendee's committed status."""


class DuplicateAttendee(ConflictError):
    """The email (or barcode) is already registered."""


class RemoteAttendanceService:
    """Client facade over /api/attendees."""

    def __init__(self, base_url, api_key=None, timeout=5, session=None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        if api_key:
            self.session.headers['X-API-Key'] = api_key

    def fetch_all(self, query=None):
        params = {'q': query} if query else None
        payload = self._request('GET', '/api/attendees', params=params)
        return [AttendeeRecord.from_dict(item) for item in payload.get('attendees', [])]

    def fetch_by_barcode(self, barcode):
        """Returns None for an unknown barcode."""
        payload = self._request('GET', f"/api/attendees/barcode/{quote(barcode, safe='')}", allow_missing=True)
        return self._record(payload)

    def fetch_by_id(self, attendee_id):
        payload = self._request('GET', f"/api/attendees/{attendee_id}", allow_missing=True)
        return self._record(payload)

    def create(self, name, email, barcode=None, table_number=None, seat_number=None):
        body = {
            'name': name,
            'email': email,
            'barcode': barcode,
            'table_number': table_number,
            'seat_number': seat_number,
        }
        body = {key: value for key, value in body.items() if value is not None}
        payload = self._request('POST', '/api/attendees', json=body, conflict=DuplicateAttendee)
        return self._record(payload)

    def update_fields(self, attendee_id, partial):
        payload = self._request('PATCH', f"/api/attendees/{attendee_id}", json=partial, conflict=DuplicateAttendee)
        return self._record(payload)

    def time_in(self, attendee_id):
        return self._transition(attendee_id, 'time-in')

    def time_out(self, attendee_id):
        return self._transition(attendee_id, 'time-out')

    def toggle(self, attendee_id):
        return self._transition(attendee_id, 'toggle')

    def delete(self, attendee_id):
        """Returns False when the attendee no longer exists."""
        payload = self._request('DELETE', f"/api/attendees/{attendee_id}", allow_missing=True)
        return payload is not None

    def check_email_exists(self, email):
        payload = self._request('GET', '/api/attendees/email-exists', params={'email': email})
        return bool(payload.get('exists'))

    # Helper methods

    def _transition(self, attendee_id, operation):
        """Returns None when the attendee no longer exists."""
        payload = self._request(
            'POST', f"/api/attendees/{attendee_id}/{operation}", allow_missing=True, conflict=TransitionConflict
        )
        return self._record(payload)

    @staticmethod
    def _record(payload):
        if payload is None:
            return None
        return AttendeeRecord.from_dict(payload['attendee'])

    def _request(self, method, path, params=None, json=None, allow_missing=False, conflict=ConflictError):
        url = f"{self.base_url}{path}"

        try:
            response = self.session.request(method, url, params=params, json=json, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.warning(f"{method} {path} timed out after {self.timeout}s")
            raise RemoteServiceError(f"Request timed out after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise RemoteServiceError(f"Could not reach the attendance server: {e}") from e

        if response.status_code == 404 and allow_missing:
            return None

        try:
            payload = response.json()
        except ValueError as e:
            raise RemoteServiceError(
                f"Invalid response from server (HTTP {response.status_code})",
                status_code=response.status_code
            ) from e

        if response.status_code == 409:
            attendee = payload.get('attendee')
            raise conflict(
                payload.get('error_code'),
                payload.get('message', 'Request conflicts with the current attendee state'),
                attendee=AttendeeRecord.from_dict(attendee) if attendee else None
            )

        if response.status_code >= 400 or not payload.get('success', False):
            logger.warning(f"{method} {path} -> HTTP {response.status_code}: {payload.get('message')}")
            raise RemoteServiceError(
                payload.get('message', f"Server error (HTTP {response.status_code})"),
                status_code=response.status_code,
                error_code=payload.get('error_code')
            )

        return payload
