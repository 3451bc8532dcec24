# controllers/check_in.py
"""
Server-side check-in for browser stations that post decoded barcodes directly.
Handles both toggle mode and directed time-in / time-out, and keeps a short
per-browser scan history.
"""

import logging

from flask import Blueprint, request, jsonify, session as flask_session

from event_checkin.controllers.api import STATUS_BY_ERROR
from event_checkin.services.attendee_service import AttendeeService, AttendeeError
from event_checkin.utils.auth import api_key_required
from event_checkin.utils.data_processing import clean_barcode
from event_checkin.utils.lifecycle import CheckInAction
from event_checkin.utils.time_format import utcnow, format_clock_time_with_seconds

check_in_bp = Blueprint('check_in', __name__)

logger = logging.getLogger('check_in')

RECENT_SCAN_LIMIT = 10

OPERATIONS = {
    CheckInAction.TIME_IN: AttendeeService.time_in,
    CheckInAction.TIME_OUT: AttendeeService.time_out,
    CheckInAction.TOGGLE: AttendeeService.toggle,
}


@check_in_bp.route('/scan', methods=['POST'])
@api_key_required
def scan():
    """
    Resolve a decoded barcode into an attendance transition.
    Body: {"barcode": "...", "action": "time_in" | "time_out" | "toggle"}
    """
    try:
        data = request.get_json(silent=True)
        if not data:
            return jsonify({
                'success': False,
                'message': 'No data provided',
                'error_code': 'missing_data'
            }), 400

        code = clean_barcode(data.get('barcode'))
        if not code:
            return jsonify({
                'success': False,
                'message': 'Barcode is required',
                'error_code': 'missing_identifier'
            }), 400

        try:
            action = CheckInAction.coerce(data.get('action'))
        except ValueError:
            return jsonify({
                'success': False,
                'message': f"Unknown action {data.get('action')!r}",
                'error_code': 'invalid_action'
            }), 400

        lookup = AttendeeService.get_attendee_by_barcode(code)
        if not lookup['success']:
            logger.info(f"Unknown barcode scanned: {code}")
            _update_recent_scans(code, None, lookup)
            return jsonify({
                'success': False,
                'message': f'Unknown barcode {code}',
                'error_code': AttendeeError.ATTENDEE_NOT_FOUND,
                'ui_status': 'error'
            }), 404

        attendee = lookup['attendee']
        logger.info(f"Scan {code} -> {attendee['id']} ({attendee['current_status']}), action={action.value}")

        result = OPERATIONS[action](attendee['id'])
        if 'attendee' not in result:
            result['attendee'] = attendee
        result['ui_status'] = 'success' if result['success'] else 'error'

        _update_recent_scans(code, result.get('attendee'), result)

        if result['success']:
            return jsonify(result)
        return jsonify(result), STATUS_BY_ERROR.get(result.get('error_code'), 400)

    except Exception as e:
        logger.error(f"Error during scan check-in: {str(e)}", exc_info=True)
        return jsonify({
            'success': False,
            'message': 'Server error during check-in',
            'error_code': 'server_error',
            'ui_status': 'error'
        }), 500


@check_in_bp.route('/recent')
def recent_scans():
    """Recent scans for this browser, newest first."""
    return jsonify({'success': True, 'recent_scans': flask_session.get('recent_scans', [])})


@check_in_bp.route('/clear-history', methods=['POST'])
@api_key_required
def clear_scan_history():
    """Clear recent scan history from the session."""
    flask_session['recent_scans'] = []
    logger.info("Scan history cleared")
    return jsonify({'success': True, 'message': 'Scan history cleared'})


# Helper Functions

def _update_recent_scans(code, attendee, result):
    scans = flask_session.get('recent_scans', [])
    scans.insert(0, {
        'barcode': code,
        'name': attendee['name'] if attendee else None,
        'status': attendee['current_status'] if attendee else None,
        'success': result.get('success', False),
        'message': result.get('message'),
        'time': format_clock_time_with_seconds(utcnow())
    })
    flask_session['recent_scans'] = scans[:RECENT_SCAN_LIMIT]
