# utils/lifecycle.py
"""
Attendee lifecycle state machine.

NEVER_ENTERED -> IN -> OUT, with OUT terminal. The transition table below is
shared by the backend (authoritative writes) and the check-in station
(optimistic local writes), so both sides accept and reject the same moves.
"""

from enum import Enum

from .time_format import elapsed_seconds, parse_interval_seconds, utcnow


class AttendeeStatus(str, Enum):
    NEVER_ENTERED = 'NEVER_ENTERED'
    IN = 'IN'
    OUT = 'OUT'

    @classmethod
    def coerce(cls, value):
        """Accept enum members or their string values; reject anything else."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unknown attendee status: {value!r}") from None


class CheckInAction(str, Enum):
    TIME_IN = 'time_in'
    TIME_OUT = 'time_out'
    TOGGLE = 'toggle'

    @classmethod
    def coerce(cls, value):
        if value is None:
            return cls.TOGGLE
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace('-', '_')
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"Unknown check-in action: {value!r}") from None


class TransitionError:
    """Business-rule rejection codes."""
    ALREADY_INSIDE = 'already_inside'
    ALREADY_COMPLETED = 'already_completed'
    NOT_ENTERED = 'not_entered'


class TransitionRejected(Exception):
    """A requested move is not legal from the attendee's current status."""

    def __init__(self, error_code, message, status=None):
        super().__init__(message)
        self.error_code = error_code
        self.message = message
        self.status = status


TRANSITIONS = {
    (AttendeeStatus.NEVER_ENTERED, CheckInAction.TIME_IN): AttendeeStatus.IN,
    (AttendeeStatus.IN, CheckInAction.TIME_OUT): AttendeeStatus.OUT,
}

REJECTIONS = {
    (AttendeeStatus.NEVER_ENTERED, CheckInAction.TIME_OUT): TransitionError.NOT_ENTERED,
    (AttendeeStatus.IN, CheckInAction.TIME_IN): TransitionError.ALREADY_INSIDE,
    (AttendeeStatus.OUT, CheckInAction.TIME_IN): TransitionError.ALREADY_COMPLETED,
    (AttendeeStatus.OUT, CheckInAction.TIME_OUT): TransitionError.ALREADY_COMPLETED,
}

TOGGLE_ACTIONS = {
    AttendeeStatus.NEVER_ENTERED: CheckInAction.TIME_IN,
    AttendeeStatus.IN: CheckInAction.TIME_OUT,
    AttendeeStatus.OUT: None,
}


def rejection_message(error_code, name=None):
    """Operator-facing text for a rejected transition."""
    who = name or 'Attendee'
    messages = {
        TransitionError.ALREADY_INSIDE: f'{who} is already inside. Switch to Time Out to record their exit.',
        TransitionError.ALREADY_COMPLETED: f'{who} has already completed their entry/exit cycle.',
        TransitionError.NOT_ENTERED: f'{who} has not entered yet. Switch to Time In first.',
    }
    return messages[error_code]


def resolve_action(status, declared_action=None, name=None):
    """
    Turn a declared action (or toggle mode) into a concrete time-in/time-out.

    Raises:
        TransitionRejected: toggle mode on an attendee whose cycle is complete
    """
    status = AttendeeStatus.coerce(status)
    action = CheckInAction.coerce(declared_action)

    if action is not CheckInAction.TOGGLE:
        return action

    inferred = TOGGLE_ACTIONS[status]
    if inferred is None:
        raise TransitionRejected(
            TransitionError.ALREADY_COMPLETED,
            rejection_message(TransitionError.ALREADY_COMPLETED, name),
            status
        )
    return inferred


def validate_transition(status, action, name=None):
    """
    Check a concrete action against the transition table.

    Returns:
        AttendeeStatus: the target status
    Raises:
        TransitionRejected: when the move is illegal
    """
    status = AttendeeStatus.coerce(status)
    action = resolve_action(status, action, name)

    target = TRANSITIONS.get((status, action))
    if target is not None:
        return target

    error_code = REJECTIONS[(status, action)]
    raise TransitionRejected(error_code, rejection_message(error_code, name), status)


def plan_transition(status, action, time_in=None, total_seconds=0, checked_in_at=None, name=None, now=None):
    """
    Compute the field updates for a transition without applying them.

    Time-out adds floor(now - time_in) seconds to the accumulated total; an
    attendee without a recorded time_in contributes no session time.

    Returns:
        dict: field name -> new value (datetimes are aware UTC)
    """
    status = AttendeeStatus.coerce(status)
    action = resolve_action(status, action, name)
    target = validate_transition(status, action, name)
    now = now or utcnow()

    if target is AttendeeStatus.IN:
        return {
            'current_status': AttendeeStatus.IN,
            'time_in': now,
            'time_out': None,
            'checked_in': True,
            'checked_in_at': checked_in_at or now,
        }

    prior_total = parse_interval_seconds(total_seconds) or 0
    session_seconds = elapsed_seconds(time_in, now) if time_in else 0
    return {
        'current_status': AttendeeStatus.OUT,
        'time_out': now,
        'checked_in': True,
        'total_seconds': prior_total + session_seconds,
    }
