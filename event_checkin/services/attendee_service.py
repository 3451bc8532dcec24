# services/attendee_service.py
"""
Attendee management and attendance-transition service.
This is the authoritative store behind the JSON API: registration CRUD, the
time-in / time-out / toggle transitions and dashboard aggregates.
"""

import logging

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from event_checkin.extensions import db
from event_checkin.models.attendee import Attendee
from event_checkin.utils.data_processing import clean_email, normalize_name, clean_text_field, clean_barcode
from event_checkin.utils.lifecycle import AttendeeStatus, CheckInAction, TransitionError, TransitionRejected
from event_checkin.utils.time_format import elapsed_seconds, render_seconds, utcnow


class AttendeeError:
    """Attendee-specific error codes."""
    ATTENDEE_NOT_FOUND = 'attendee_not_found'
    DUPLICATE_EMAIL = 'duplicate_email'
    DUPLICATE_BARCODE = 'duplicate_barcode'
    MISSING_FIELDS = 'missing_required_fields'
    INVALID_FIELDS = 'invalid_fields'
    ALREADY_INSIDE = TransitionError.ALREADY_INSIDE
    ALREADY_COMPLETED = TransitionError.ALREADY_COMPLETED
    NOT_ENTERED = TransitionError.NOT_ENTERED
    DATABASE_ERROR = 'database_error'


UPDATABLE_FIELDS = ('name', 'email', 'table_number', 'seat_number')


class AttendeeService:
    """Service class for attendee registration and attendance transitions."""

    @staticmethod
    def get_all_attendees(search=None):
        """
        List attendees, most recently registered first.

        Args:
            search: optional case-insensitive substring matched on name or email

        Returns:
            dict: {'success', 'attendees', 'count'}
        """
        logger = logging.getLogger('attendee_service')

        try:
            query = db.session.query(Attendee)

            if search:
                pattern = f"%{search.strip()}%"
                query = query.filter(or_(Attendee.name.ilike(pattern), Attendee.email.ilike(pattern)))

            attendees = query.order_by(Attendee.created_at.desc()).all()

            return {
                'success': True,
                'attendees': [attendee.to_dict() for attendee in attendees],
                'count': len(attendees)
            }

        except SQLAlchemyError as e:
            logger.error(f"Database error listing attendees: {str(e)}", exc_info=True)
            return {
                'success': False,
                'message': 'Could not load attendees',
                'error_code': AttendeeError.DATABASE_ERROR
            }

    @staticmethod
    def get_attendee(attendee_id):
        """Fetch a single attendee by id."""
        attendee = db.session.get(Attendee, attendee_id)
        return AttendeeService._lookup_result(attendee, f'id {attendee_id}')

    @staticmethod
    def get_attendee_by_barcode(barcode):
        """Fetch a single attendee by scanned barcode."""
        code = clean_barcode(barcode)
        attendee = db.session.query(Attendee).filter_by(barcode=code).first() if code else None
        return AttendeeService._lookup_result(attendee, f'barcode {code}')

    @staticmethod
    def check_email_exists(email):
        """Check whether an email address is already registered."""
        email = clean_email(email)
        if not email:
            return False
        return db.session.query(Attendee.id).filter_by(email=email).first() is not None

    @staticmethod
    def create_attendee(name, email, barcode=None, table_number=None, seat_number=None):
        """
        Register a new attendee.

        Args:
            name: attendee name
            email: unique email address
            barcode: ticket token; generated when omitted
            table_number: optional seating table
            seat_number: optional seat

        Returns:
            dict: {'success', 'attendee'} or error with 'error_code'
        """
        logger = logging.getLogger('attendee_service')

        name = normalize_name(name)
        email = clean_email(email)

        if not name or not email:
            return {
                'success': False,
                'message': 'Name and email are required fields',
                'error_code': AttendeeError.MISSING_FIELDS
            }

        if AttendeeService.check_email_exists(email):
            return {
                'success': False,
                'message': 'This email is already registered. Please use a different email address.',
                'error_code': AttendeeError.DUPLICATE_EMAIL
            }

        code = clean_barcode(barcode)
        if code and db.session.query(Attendee.id).filter_by(barcode=code).first():
            return {
                'success': False,
                'message': f'Barcode {code} is already assigned to another attendee',
                'error_code': AttendeeError.DUPLICATE_BARCODE
            }

        try:
            attendee = Attendee(
                name=name,
                email=email,
                barcode=code or Attendee.generate_barcode(),
                table_number=clean_text_field(table_number),
                seat_number=clean_text_field(seat_number),
                checked_in=False,
                current_status=AttendeeStatus.NEVER_ENTERED,
                total_seconds=0
            )
            attendee.save()

            logger.info(f"Registered attendee {attendee.id} ({email}) with barcode {attendee.barcode}")
            return {
                'success': True,
                'message': f'{attendee.name} registered successfully',
                'attendee': attendee.to_dict()
            }

        except IntegrityError as e:
            db.session.rollback()
            logger.warning(f"Integrity error registering {email}: {str(e)}")
            return {
                'success': False,
                'message': 'This email is already registered. Please use a different email address.',
                'error_code': AttendeeError.DUPLICATE_EMAIL
            }
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Database error registering {email}: {str(e)}", exc_info=True)
            return {
                'success': False,
                'message': 'Attendee could not be registered',
                'error_code': AttendeeError.DATABASE_ERROR
            }

    @staticmethod
    def update_attendee(attendee_id, updates):
        """
        Administrative edit of identity and seating fields.
        Attendance fields are never writable here; they change only through
        the transition operations.
        """
        logger = logging.getLogger('attendee_service')

        unknown = sorted(set(updates) - set(UPDATABLE_FIELDS))
        if unknown:
            return {
                'success': False,
                'message': f'Fields cannot be updated: {", ".join(unknown)}',
                'error_code': AttendeeError.INVALID_FIELDS
            }

        attendee = db.session.get(Attendee, attendee_id)
        if not attendee:
            return AttendeeService._not_found(f'id {attendee_id}')

        cleaned = {}
        if 'name' in updates:
            cleaned['name'] = normalize_name(updates['name'])
            if not cleaned['name']:
                return {
                    'success': False,
                    'message': 'Name cannot be empty',
                    'error_code': AttendeeError.MISSING_FIELDS
                }
        if 'email' in updates:
            cleaned['email'] = clean_email(updates['email'])
            if not cleaned['email']:
                return {
                    'success': False,
                    'message': 'Email cannot be empty',
                    'error_code': AttendeeError.MISSING_FIELDS
                }
            if cleaned['email'] != attendee.email and AttendeeService.check_email_exists(cleaned['email']):
                return {
                    'success': False,
                    'message': 'This email is already registered. Please use a different email address.',
                    'error_code': AttendeeError.DUPLICATE_EMAIL
                }
        for field in ('table_number', 'seat_number'):
            if field in updates:
                cleaned[field] = clean_text_field(updates[field])

        try:
            attendee.from_dict(cleaned)
            db.session.commit()

            logger.info(f"Updated attendee {attendee_id}: {sorted(cleaned)}")
            return {
                'success': True,
                'message': 'Attendee updated successfully',
                'attendee': attendee.to_dict()
            }

        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Database error updating attendee {attendee_id}: {str(e)}", exc_info=True)
            return {
                'success': False,
                'message': 'Attendee could not be updated',
                'error_code': AttendeeError.DATABASE_ERROR
            }

    @staticmethod
    def delete_attendee(attendee_id):
        """Delete an attendee permanently."""
        logger = logging.getLogger('attendee_service')

        attendee = db.session.get(Attendee, attendee_id)
        if not attendee:
            return AttendeeService._not_found(f'id {attendee_id}')

        try:
            attendee.delete()
            logger.info(f"Deleted attendee {attendee_id}")
            return {
                'success': True,
                'message': 'Attendee deleted successfully',
                'attendee_id': attendee_id
            }

        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Database error deleting attendee {attendee_id}: {str(e)}", exc_info=True)
            return {
                'success': False,
                'message': 'Attendee could not be deleted',
                'error_code': AttendeeError.DATABASE_ERROR
            }

    @staticmethod
    def time_in(attendee_id):
        """Record an entry: NEVER_ENTERED -> IN."""
        return AttendeeService._transition(attendee_id, CheckInAction.TIME_IN)

    @staticmethod
    def time_out(attendee_id):
        """Record an exit: IN -> OUT, adding the session to the attendee's total time."""
        return AttendeeService._transition(attendee_id, CheckInAction.TIME_OUT)

    @staticmethod
    def toggle(attendee_id):
        """
        Infer the action from the current status.
        An attendee who already left gets error 'ALREADY_COMPLETED'.
        """
        return AttendeeService._transition(attendee_id, CheckInAction.TOGGLE)

    @staticmethod
    def get_dashboard_stats(now=None):
        """
        Aggregate attendance figures for the dashboard.

        Total time counts stored totals plus the running session of everyone
        currently inside.
        """
        logger = logging.getLogger('attendee_service')
        now = now or utcnow()

        try:
            total = db.session.query(func.count(Attendee.id)).scalar() or 0
            checked_in = (
                db.session.query(func.count(Attendee.id))
                .filter(Attendee.checked_in.is_(True))
                .scalar() or 0
            )
            stored_seconds = db.session.query(func.coalesce(func.sum(Attendee.total_seconds), 0)).scalar() or 0

            inside = (
                db.session.query(Attendee)
                .filter(Attendee.current_status == AttendeeStatus.IN)
                .all()
            )
            live_seconds = sum(elapsed_seconds(a.time_in, now) for a in inside if a.time_in)
            total_seconds = int(stored_seconds) + live_seconds

            return {
                'success': True,
                'stats': {
                    'total': total,
                    'checked_in': checked_in,
                    'not_checked_in': total - checked_in,
                    'check_in_rate': round(checked_in / total * 100) if total else 0,
                    'currently_inside': len(inside),
                    'total_seconds': total_seconds,
                    'total_time_spent': render_seconds(total_seconds)
                }
            }

        except SQLAlchemyError as e:
            logger.error(f"Database error computing dashboard stats: {str(e)}", exc_info=True)
            return {
                'success': False,
                'message': 'Could not compute statistics',
                'error_code': AttendeeError.DATABASE_ERROR
            }

    # Helper methods

    @staticmethod
    def _transition(attendee_id, action):
        logger = logging.getLogger('attendee_service')

        try:
            # Row lock so a racing second scan re-validates against the committed status
            attendee = (
                db.session.query(Attendee)
                .filter_by(id=attendee_id)
                .with_for_update()
                .first()
            )
            if not attendee:
                db.session.rollback()
                return AttendeeService._not_found(f'id {attendee_id}')

            previous = attendee.status
            try:
                attendee.apply_transition(action)
            except TransitionRejected as e:
                db.session.rollback()
                logger.info(f"Rejected {action.value} for {attendee_id} in status {previous.value}: {e.error_code}")
                result = {
                    'success': False,
                    'message': e.message,
                    'error_code': e.error_code,
                    'attendee': attendee.to_dict()
                }
                if e.error_code == TransitionError.ALREADY_COMPLETED:
                    result['error'] = 'ALREADY_COMPLETED'
                return result

            db.session.commit()

            logger.info(f"{attendee.name} ({attendee_id}): {previous.value} -> {attendee.status.value}")
            return {
                'success': True,
                'message': AttendeeService._transition_message(attendee),
                'previous_status': previous.value,
                'attendee': attendee.to_dict()
            }

        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Database error during {action.value} for {attendee_id}: {str(e)}", exc_info=True)
            return {
                'success': False,
                'message': 'Attendance could not be recorded due to a database error',
                'error_code': AttendeeError.DATABASE_ERROR
            }

    @staticmethod
    def _transition_message(attendee):
        if attendee.is_inside:
            return f'{attendee.name} timed in successfully'
        return f'{attendee.name} timed out. Total time: {render_seconds(attendee.total_seconds)}'

    @staticmethod
    def _lookup_result(attendee, description):
        if not attendee:
            return AttendeeService._not_found(description)
        return {'success': True, 'attendee': attendee.to_dict()}

    @staticmethod
    def _not_found(description):
        logging.getLogger('attendee_service').warning(f"Attendee lookup failed: {description}")
        return {
            'success': False,
            'message': 'Attendee not found',
            'error_code': AttendeeError.ATTENDEE_NOT_FOUND
        }
