# controllers/registration.py
"""
Registration desk routes: sign-up, ticket images and ticket emails.
"""

import io
import logging

from flask import Blueprint, request, jsonify, send_file

from event_checkin.controllers.api import service_response, server_error
from event_checkin.controllers.forms import RegistrationForm, json_form, form_errors
from event_checkin.extensions import ticket_mailer
from event_checkin.services.attendee_service import AttendeeService, AttendeeError
from event_checkin.services.ticket_service import TicketService
from event_checkin.utils.auth import api_key_required

registration_bp = Blueprint('registration', __name__)

logger = logging.getLogger('ticket_mailer')


@registration_bp.route('', methods=['POST'])
@registration_bp.route('/', methods=['POST'])
def register():
    """
    Register an attendee and, unless "send_ticket" is false, email the ticket.
    Self-registration stays open even when API_KEY is set.
    """
    try:
        data = request.get_json(silent=True) or request.form.to_dict()
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
        if not result['success']:
            return service_response(result)

        if str(data.get('send_ticket', 'true')).lower() not in ('false', '0', 'no'):
            attendee = result['attendee']
            result['email_task_id'] = ticket_mailer.send_ticket(attendee, TicketService.render_ticket(attendee))

        return jsonify(result), 201

    except Exception as e:
        logger.error(f"Error during registration: {str(e)}", exc_info=True)
        return server_error('Registration failed. Please try again.')


@registration_bp.route('/check-email')
def check_email():
    """Live duplicate check for the registration form."""
    email = request.args.get('email', '')
    exists = AttendeeService.check_email_exists(email)
    return jsonify({
        'success': True,
        'exists': exists,
        'message': 'This email is already registered' if exists else None
    })


@registration_bp.route('/<attendee_id>/ticket.png')
def ticket_image(attendee_id):
    result = AttendeeService.get_attendee(attendee_id)
    if not result['success']:
        return service_response(result)

    png = TicketService.render_ticket(result['attendee'])
    return send_file(
        io.BytesIO(png),
        mimetype='image/png',
        download_name=f"ticket-{result['attendee']['barcode']}.png"
    )


@registration_bp.route('/<attendee_id>/send-ticket', methods=['POST'])
@api_key_required
def send_ticket(attendee_id):
    """Queue (or re-queue) the ticket email for an attendee."""
    try:
        result = AttendeeService.get_attendee(attendee_id)
        if not result['success']:
            return service_response(result)

        attendee = result['attendee']
        task_id = ticket_mailer.send_ticket(attendee, TicketService.render_ticket(attendee))

        logger.info(f"Ticket email {task_id} queued for attendee {attendee_id}")
        return jsonify({
            'success': True,
            'message': f"Ticket queued for {attendee['email']}",
            'task_id': task_id
        }), 202

    except Exception as e:
        logger.error(f"Error queueing ticket for {attendee_id}: {str(e)}", exc_info=True)
        return server_error('Ticket email could not be queued')


@registration_bp.route('/email-status/<task_id>')
def email_status(task_id):
    status = ticket_mailer.get_email_status(task_id)
    if not status:
        return jsonify({
            'success': False,
            'message': 'Email task not found',
            'error_code': 'task_not_found'
        }), 404
    return jsonify({'success': True, 'status': status})
