# station/records.py
"""
Attendee records as held by a check-in station.
Records are immutable snapshots of what the server last reported (or of an
optimistic local transition); the station replaces them, never edits them.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Dict, Optional

from event_checkin.utils.lifecycle import AttendeeStatus, plan_transition
from event_checkin.utils.time_format import parse_interval_seconds, parse_timestamp, seconds_to_interval, to_iso


@dataclass(frozen=True)
class AttendeeRecord:
    """Station-side copy of a registered attendee."""
    id: str
    name: str
    email: str
    barcode: str
    current_status: AttendeeStatus = AttendeeStatus.NEVER_ENTERED
    table_number: Optional[str] = None
    seat_number: Optional[str] = None
    checked_in: bool = False
    checked_in_at: Optional[datetime] = None
    time_in: Optional[datetime] = None
    time_out: Optional[datetime] = None
    total_seconds: int = 0
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict) -> 'AttendeeRecord':
        """
        Build a record from an API payload.

        Servers that only report the legacy text total ("01:05:00",
        "3900 seconds") are parsed to integer seconds here.
        """
        total = data.get('total_seconds')
        if total is None:
            total = parse_interval_seconds(data.get('total_time_spent')) or 0

        return cls(
            id=str(data['id']),
            name=data.get('name') or '',
            email=data.get('email') or '',
            barcode=data.get('barcode') or '',
            current_status=AttendeeStatus.coerce(data.get('current_status') or AttendeeStatus.NEVER_ENTERED),
            table_number=data.get('table_number'),
            seat_number=data.get('seat_number'),
            checked_in=bool(data.get('checked_in')),
            checked_in_at=parse_timestamp(data.get('checked_in_at')),
            time_in=parse_timestamp(data.get('time_in')),
            time_out=parse_timestamp(data.get('time_out')),
            total_seconds=int(total),
            created_at=parse_timestamp(data.get('created_at')),
        )

    def to_dict(self) -> Dict:
        """Serialize in the API's wire format."""
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'barcode': self.barcode,
            'current_status': self.current_status.value,
            'table_number': self.table_number,
            'seat_number': self.seat_number,
            'checked_in': self.checked_in,
            'checked_in_at': to_iso(self.checked_in_at),
            'time_in': to_iso(self.time_in),
            'time_out': to_iso(self.time_out),
            'total_seconds': self.total_seconds,
            'total_time_spent': seconds_to_interval(self.total_seconds),
            'created_at': to_iso(self.created_at),
        }

    @property
    def status(self) -> AttendeeStatus:
        return self.current_status

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match on name or email."""
        needle = query.lower()
        return needle in self.name.lower() or needle in self.email.lower()

    def with_transition(self, action, now=None) -> 'AttendeeRecord':
        """
        Return the record as it will look after `action`.

        Raises:
            TransitionRejected: when the move is illegal from the current status
        """
        updates = plan_transition(
            self.current_status,
            action,
            time_in=self.time_in,
            total_seconds=self.total_seconds,
            checked_in_at=self.checked_in_at,
            name=self.name,
            now=now
        )
        return replace(self, **updates)
