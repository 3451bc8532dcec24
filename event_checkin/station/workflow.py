# station/workflow.py
"""
Scan resolution and optimistic check-in at a station.

A scan (or a manual selection) is turned into a time-in or time-out, applied
to the local store straight away, then sent to the backend. The backend's
record replaces the optimistic one on success; on failure the pre-transition
record is restored. Rules are validated locally first so illegal moves never
touch the store or the network.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Optional

from event_checkin.station.records import AttendeeRecord
from event_checkin.station.remote import RemoteServiceError, ConflictError
from event_checkin.utils.data_processing import clean_barcode
from event_checkin.utils.lifecycle import AttendeeStatus, CheckInAction, TransitionRejected, resolve_action
from event_checkin.utils.time_format import render_seconds, utcnow

logger = logging.getLogger('station')

RETRY_MESSAGE = 'Could not reach the attendance server. Please retry.'
SCANNER_STOPPED_MESSAGE = 'Scanner is not running. Start the scanner or use manual check-in.'


class ScanStatus:
    SUCCESS = 'success'
    REJECTED = 'rejected'
    FAILED = 'failed'
    UNKNOWN = 'unknown'
    BUSY = 'busy'
    IGNORED = 'ignored'
    SCANNER_STOPPED = 'scanner_stopped'


@dataclass
class ScanOutcome:
    status: str
    message: str
    attendee: Optional[AttendeeRecord] = None
    error_code: Optional[str] = None

    @property
    def ok(self):
        return self.status == ScanStatus.SUCCESS


@dataclass(frozen=True)
class PendingTransition:
    """Token for an optimistic write awaiting commit or rollback."""
    action: CheckInAction
    previous: AttendeeRecord
    tentative: AttendeeRecord

    @property
    def attendee_id(self):
        return self.previous.id


class CheckInWorkflow:
    """
    Resolves scans and manual check-ins against an AttendeeStore and a
    RemoteAttendanceService.

    Args:
        store: AttendeeStore shown to the operator
        remote: RemoteAttendanceService (or any object with the same methods)
        rollback_on_failure: restore the pre-transition record when the server
            call fails; False keeps the optimistic state
        scan_debounce: seconds during which a repeat of the same code is ignored
        clock: monotonic clock for debouncing
        now: wall clock for transition timestamps
    """

    def __init__(self, store, remote, rollback_on_failure=True, scan_debounce=2.0,
                 clock=time.monotonic, now=utcnow):
        self.store = store
        self.remote = remote
        self.rollback_on_failure = rollback_on_failure
        self.scan_debounce = scan_debounce
        self._clock = clock
        self._now = now

        self._inflight = set()
        self._inflight_lock = threading.Lock()
        self._last_code = None
        self._last_code_at = None
        self._scanner_active = threading.Event()

    # Scanner gate

    @property
    def scanner_active(self):
        return self._scanner_active.is_set()

    def set_scanner_active(self, active):
        if active:
            self._scanner_active.set()
        else:
            self._scanner_active.clear()

    # Entry points

    def resolve_scan(self, code, declared_action=None):
        """
        Handle one decoded barcode.

        Args:
            code: decoded barcode text
            declared_action: 'time_in' / 'time_out' for directed mode, None for toggle

        Returns:
            ScanOutcome
        """
        if not self.scanner_active:
            return ScanOutcome(ScanStatus.SCANNER_STOPPED, SCANNER_STOPPED_MESSAGE)

        code = clean_barcode(code)
        if not code:
            return ScanOutcome(ScanStatus.IGNORED, 'Empty scan ignored')

        if self._is_repeat(code):
            logger.debug(f"Ignoring repeat scan of {code}")
            return ScanOutcome(ScanStatus.IGNORED, 'Duplicate scan ignored')

        outcome = self._resolve_code(code, declared_action)
        if outcome.status == ScanStatus.FAILED:
            # a failed scan must stay retryable
            self._last_code = None
        return outcome

    def manual_check_in(self, attendee_id, declared_action=None):
        """Same as resolve_scan for an attendee picked from the loaded list."""
        record = self.store.get(attendee_id)
        if record is None:
            return ScanOutcome(ScanStatus.UNKNOWN, 'Attendee not found. Refresh the attendee list.')
        return self._run_transition(record, declared_action)

    # Two-phase optimistic apply

    def tentative_apply(self, record, action):
        """
        Publish the post-transition record to the store.

        Raises:
            TransitionRejected: the move is illegal; nothing was changed
        """
        action = resolve_action(record.current_status, action, record.name)
        tentative = record.with_transition(action, now=self._now())
        self.store.upsert_by_id(tentative)
        return PendingTransition(action=action, previous=record, tentative=tentative)

    def commit(self, pending, server_record):
        """Replace the optimistic record with the server's."""
        self.store.upsert_by_id(server_record)
        return server_record

    def rollback(self, pending):
        """Restore the record as it was before the transition."""
        self.store.upsert_by_id(pending.previous)
        return pending.previous

    # Helper methods

    def _resolve_code(self, code, declared_action):
        try:
            record = self.remote.fetch_by_barcode(code)
        except RemoteServiceError as e:
            logger.warning(f"Lookup of {code} failed: {e.message}")
            return ScanOutcome(ScanStatus.FAILED, RETRY_MESSAGE)

        if record is None:
            logger.info(f"Unknown barcode {code}")
            return ScanOutcome(ScanStatus.UNKNOWN, f'Unknown barcode {code}. Check the ticket or register the attendee.')

        return self._run_transition(record, declared_action, publish=True)

    def _run_transition(self, record, declared_action, publish=False):
        if not self._acquire(record.id):
            self.store.set_last_scanned(self.store.get(record.id) or record)
            return ScanOutcome(
                ScanStatus.BUSY,
                f'{record.name} is already being processed. Please wait.',
                attendee=record
            )

        try:
            if publish and not self.store.upsert_by_id(record):
                self.store.insert(record)
            return self._transition(record, declared_action)
        finally:
            self._release(record.id)
            self.store.set_last_scanned(self.store.get(record.id) or record)

    def _transition(self, record, declared_action):
        try:
            pending = self.tentative_apply(record, declared_action)
        except TransitionRejected as e:
            logger.info(f"Rejected scan for {record.id}: {e.error_code}")
            return ScanOutcome(ScanStatus.REJECTED, e.message, attendee=record, error_code=e.error_code)

        try:
            server_record = self._invoke(record.id, declared_action, pending.action)
        except ConflictError as e:
            self.rollback(pending)
            logger.info(f"Server rejected {pending.action.value} for {record.id}: {e.error_code}")
            return ScanOutcome(ScanStatus.REJECTED, e.message, attendee=record, error_code=e.error_code)
        except RemoteServiceError as e:
            logger.warning(f"{pending.action.value} for {record.id} failed: {e.message}")
            current = self.rollback(pending) if self.rollback_on_failure else pending.tentative
            return ScanOutcome(ScanStatus.FAILED, RETRY_MESSAGE, attendee=current, error_code=e.error_code)

        if server_record is None:
            self.store.remove_by_id(record.id)
            return ScanOutcome(ScanStatus.UNKNOWN, f'{record.name} is no longer registered.')

        self.commit(pending, server_record)
        logger.info(f"{server_record.name}: {record.current_status.value} -> {server_record.current_status.value}")
        return ScanOutcome(ScanStatus.SUCCESS, self._success_message(server_record), attendee=server_record)

    def _invoke(self, attendee_id, declared_action, action):
        if CheckInAction.coerce(declared_action) is CheckInAction.TOGGLE:
            return self.remote.toggle(attendee_id)
        if action is CheckInAction.TIME_IN:
            return self.remote.time_in(attendee_id)
        return self.remote.time_out(attendee_id)

    @staticmethod
    def _success_message(record):
        if record.current_status is AttendeeStatus.IN:
            return f'{record.name} timed in'
        return f'{record.name} timed out. Total time: {render_seconds(record.total_seconds)}'

    def _is_repeat(self, code):
        now = self._clock()
        repeat = (
            code == self._last_code
            and self._last_code_at is not None
            and now - self._last_code_at < self.scan_debounce
        )
        if not repeat:
            self._last_code = code
            self._last_code_at = now
        return repeat

    def _acquire(self, attendee_id):
        with self._inflight_lock:
            if attendee_id in self._inflight:
                return False
            self._inflight.add(attendee_id)
            return True

    def _release(self, attendee_id):
        with self._inflight_lock:
            self._inflight.discard(attendee_id)
