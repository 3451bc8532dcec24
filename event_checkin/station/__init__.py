# station/__init__.py
from .records import AttendeeRecord
from .remote import RemoteAttendanceService, RemoteServiceError, ConflictError, TransitionConflict, DuplicateAttendee
from .scanner import ScannerSession, ScannerError
from .store import AttendeeStore, SearchDebouncer
from .workflow import CheckInWorkflow, ScanOutcome, ScanStatus, PendingTransition

__all__ = [
    'AttendeeRecord',
    'AttendeeStore',
    'SearchDebouncer',
    'RemoteAttendanceService',
    'RemoteServiceError',
    'ConflictError',
    'TransitionConflict',
    'DuplicateAttendee',
    'CheckInWorkflow',
    'ScanOutcome',
    'ScanStatus',
    'PendingTransition',
    'ScannerSession',
    'ScannerError',
]
