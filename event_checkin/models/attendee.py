# models/attendee.py
import secrets

from sqlalchemy import Index

from event_checkin.extensions import db
from event_checkin.utils.lifecycle import AttendeeStatus, plan_transition
from event_checkin.utils.time_format import seconds_to_interval, status_label
from .base import BaseModel


class Attendee(BaseModel):
    __tablename__ = 'attendee'

    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    barcode = db.Column(db.String(64), unique=True, nullable=False)

    # Seating
    table_number = db.Column(db.String(20), nullable=True)
    seat_number = db.Column(db.String(20), nullable=True)

    # Legacy single-event flag, derived from current_status
    checked_in = db.Column(db.Boolean, default=False, nullable=False)
    checked_in_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Time tracking
    current_status = db.Column(
        db.Enum(AttendeeStatus, native_enum=False, length=20, validate_strings=True),
        default=AttendeeStatus.NEVER_ENTERED,
        nullable=False
    )
    time_in = db.Column(db.DateTime(timezone=True), nullable=True)
    time_out = db.Column(db.DateTime(timezone=True), nullable=True)
    total_seconds = db.Column(db.Integer, default=0, nullable=False)

    __table_args__ = (
        Index('uq_attendee_email', 'email', unique=True),
        Index('uq_attendee_barcode', 'barcode', unique=True),
        Index('idx_attendee_status', 'current_status'),
        Index('idx_attendee_name', 'name'),
    )

    @staticmethod
    def generate_barcode(length=12):
        """Generate an unused numeric barcode token (no leading zero)."""
        while True:
            barcode = str(secrets.randbelow(9 * 10 ** (length - 1)) + 10 ** (length - 1))
            if not Attendee.query.filter_by(barcode=barcode).first():
                return barcode

    @property
    def status(self):
        return AttendeeStatus.coerce(self.current_status)

    @property
    def is_inside(self):
        return self.status is AttendeeStatus.IN

    @property
    def total_time_spent(self):
        """Cumulative time inside, in wire format ("<N> seconds")."""
        return seconds_to_interval(self.total_seconds)

    def apply_transition(self, action, now=None):
        """
        Validate and apply a check-in action to this row.

        Returns:
            dict: the field updates that were applied
        Raises:
            TransitionRejected: when the move is illegal from the current status
        """
        updates = plan_transition(
            self.status,
            action,
            time_in=self.time_in,
            total_seconds=self.total_seconds or 0,
            checked_in_at=self.checked_in_at,
            name=self.name,
            now=now
        )
        for field, value in updates.items():
            setattr(self, field, value)
        return updates

    def to_dict(self):
        """Override to include computed fields."""
        result = super().to_dict()
        result['total_time_spent'] = self.total_time_spent
        result['status_display'] = status_label(self.status)
        return result

    def __repr__(self):
        return f'<Attendee {self.name} ({self.barcode}) {self.status.value}>'
