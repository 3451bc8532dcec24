# controllers/api.py
"""
JSON API used by check-in stations.
Routes mirror the AttendeeService operations; error codes from the service are
mapped to HTTP status here so clients can tell business conflicts (409) from
missing records (404) and server faults (500).
"""

import logging

from flask import Blueprint, request, jsonify

from event_checkin.controllers.forms import RegistrationForm, AttendeeUpdateForm, json_form, form_errors
from event_checkin.services.attendee_service import AttendeeService, AttendeeError, UPDATABLE_FIELDS
from event_checkin.utils.auth import api_key_required

api_bp = Blueprint('api', __name__)

logger = logging.getLogger('attendee_service')

STATUS_BY_ERROR = {
    AttendeeError.ATTENDEE_NOT_FOUND: 404,
    AttendeeError.DUPLICATE_EMAIL: 409,
    AttendeeError.DUPLICATE_BARCODE: 409,
    AttendeeError.ALREADY_INSIDE: 409,
    AttendeeError.ALREADY_COMPLETED: 409,
    AttendeeError.NOT_ENTERED: 409,
    AttendeeError.MISSING_FIELDS: 400,
    AttendeeError.INVALID_FIELDS: 400,
    AttendeeError.DATABASE_ERROR: 500,
}


def service_response(result, success_status=200):
    """Translate a service result dict into a JSON response."""
    if result.get('success'):
        return jsonify(result), success_status
    return jsonify(result), STATUS_BY_ERROR.get(result.get('error_code'), 400)


def server_error(message):
    return jsonify({
        'success': False,
        'message': message,
        'error_code': 'server_error'
    }), 500


@api_bp.route('/attendees', methods=['GET'])
def list_attendees():
    """List attendees, optionally filtered by ?q= on name or email."""
    try:
        return service_response(AttendeeService.get_all_attendees(search=request.args.get('q')))
    except Exception as e:
        logger.error(f"Error listing attendees: {str(e)}", exc_info=True)
        return server_error('Error retrieving attendees')


@api_bp.route('/attendees/email-exists', methods=['GET'])
def email_exists():
    email = request.args.get('email', '')
    if not email.strip():
        return jsonify({
            'success': False,
            'message': 'Email parameter is required',
            'error_code': AttendeeError.MISSING_FIELDS
        }), 400
    return jsonify({'success': True, 'exists': AttendeeService.check_email_exists(email)})


@api_bp.route('/attendees/barcode/<path:code>', methods=['GET'])
def get_by_barcode(code):
    return service_response(AttendeeService.get_attendee_by_barcode(code))


@api_bp.route('/attendees/<attendee_id>', methods=['GET'])
def get_attendee(attendee_id):
    return service_response(AttendeeService.get_attendee(attendee_id))


@api_bp.route('/attendees', methods=['POST'])
@api_key_required
def create_attendee():
    """Register a new attendee from a JSON body."""
    try:
        data = request.get_json(silent=True)
        if not data:
            return jsonify({
                'success': False,
                'message': 'No data provided',
                'error_code': 'missing_data'
            }), 400

        form = json_form(RegistrationForm, data)
        if not form.validate():
            return jsonify({
                'success': False,
                'message': 'Please correct the highlighted fields',
                'error_code': AttendeeError.INVALID_FIELDS,
                'errors': form_errors(form)
            }), 400

        result = AttendeeService.create_attendee(
            name=form.name.data,
            email=form.email.data,
            barcode=form.barcode.data or None,
            table_number=form.table_number.data,
            seat_number=form.seat_number.data
        )
        return service_response(result, success_status=201)

    except Exception as e:
        logger.error(f"Error creating attendee: {str(e)}", exc_info=True)
        return server_error('Error registering attendee')


@api_bp.route('/attendees/<attendee_id>', methods=['PATCH'])
@api_key_required
def update_attendee(attendee_id):
    """Edit name, email or seating. Attendance fields are rejected."""
    try:
        data = request.get_json(silent=True) or {}
        if not data:
            return jsonify({
                'success': False,
                'message': 'No data provided',
                'error_code': 'missing_data'
            }), 400

        unknown = sorted(set(data) - set(UPDATABLE_FIELDS))
        if unknown:
            return jsonify({
                'success': False,
                'message': f'Fields cannot be updated: {", ".join(unknown)}',
                'error_code': AttendeeError.INVALID_FIELDS
            }), 400

        form = json_form(AttendeeUpdateForm, data)
        if not form.validate():
            return jsonify({
                'success': False,
                'message': 'Please correct the highlighted fields',
                'error_code': AttendeeError.INVALID_FIELDS,
                'errors': form_errors(form)
            }), 400

        updates = {field: getattr(form, field).data for field in data}
        return service_response(AttendeeService.update_attendee(attendee_id, updates))

    except Exception as e:
        logger.error(f"Error updating attendee {attendee_id}: {str(e)}", exc_info=True)
        return server_error('Error updating attendee')


@api_bp.route('/attendees/<attendee_id>/time-in', methods=['POST'])
@api_key_required
def time_in(attendee_id):
    return _transition_response(AttendeeService.time_in, attendee_id)


@api_bp.route('/attendees/<attendee_id>/time-out', methods=['POST'])
@api_key_required
def time_out(attendee_id):
    return _transition_response(AttendeeService.time_out, attendee_id)


@api_bp.route('/attendees/<attendee_id>/toggle', methods=['POST'])
@api_key_required
def toggle(attendee_id):
    return _transition_response(AttendeeService.toggle, attendee_id)


@api_bp.route('/attendees/<attendee_id>', methods=['DELETE'])
@api_key_required
def delete_attendee(attendee_id):
    try:
        return service_response(AttendeeService.delete_attendee(attendee_id))
    except Exception as e:
        logger.error(f"Error deleting attendee {attendee_id}: {str(e)}", exc_info=True)
        return server_error('Error deleting attendee')


def _transition_response(operation, attendee_id):
    try:
        return service_response(operation(attendee_id))
    except Exception as e:
        logger.error(f"Error recording attendance for {attendee_id}: {str(e)}", exc_info=True)
        return server_error('Server error while recording attendance')
