# controllers/dashboard.py
import logging

from flask import Blueprint, jsonify, request

from event_checkin.services.attendee_service import AttendeeService
from event_checkin.utils.lifecycle import AttendeeStatus
from event_checkin.utils.time_format import (
    calculate_elapsed, format_clock_time, format_date_time, format_duration, utcnow
)

dashboard_bp = Blueprint('dashboard', __name__)

logger = logging.getLogger('attendee_service')


@dashboard_bp.route('/stats')
def stats():
    """Headline attendance figures."""
    result = AttendeeService.get_dashboard_stats()
    if not result['success']:
        return jsonify(result), 500
    return jsonify(result)


@dashboard_bp.route('/attendees')
def attendee_board():
    """Attendee list with display-ready times, for the dashboard table."""
    result = AttendeeService.get_all_attendees(search=request.args.get('q'))
    if not result['success']:
        return jsonify(result), 500

    now = utcnow()
    rows = [_display_row(attendee, now) for attendee in result['attendees']]
    return jsonify({'success': True, 'attendees': rows, 'count': len(rows)})


def _display_row(attendee, now):
    inside = attendee['current_status'] == AttendeeStatus.IN.value
    return {
        'id': attendee['id'],
        'name': attendee['name'],
        'email': attendee['email'],
        'barcode': attendee['barcode'],
        'table_number': attendee['table_number'],
        'seat_number': attendee['seat_number'],
        'status': attendee['status_display'],
        'time_in': format_clock_time(attendee['time_in']) if attendee['time_in'] else None,
        'time_out': format_clock_time(attendee['time_out']) if attendee['time_out'] else None,
        'registered': format_date_time(attendee['created_at']),
        'total_time_spent': format_duration(attendee['total_time_spent']),
        'current_session': calculate_elapsed(attendee['time_in'], now) if inside else None
    }
