# services/ticket_service.py
"""
Ticket image generation.
A ticket is a QR code carrying the attendee's barcode token with the name and
seating printed underneath. Images are rendered in memory and optionally
written to the ticket folder.
"""

import io
import logging
import os

import qrcode
from flask import current_app, has_app_context
from PIL import Image, ImageDraw, ImageFont


class TicketError:
    """Ticket service error codes."""
    MISSING_BARCODE = 'missing_barcode'
    GENERATION_FAILED = 'generation_failed'
    FILE_SAVE_ERROR = 'file_save_error'


class TicketService:
    """Service for rendering attendee tickets."""

    CAPTION_HEIGHT = 140
    LINE_HEIGHT = 26

    @staticmethod
    def render_ticket(attendee, event_name=None):
        """
        Render a ticket as PNG bytes.

        Args:
            attendee: Attendee model or dict with name, email, barcode, table_number, seat_number
            event_name: heading; defaults to the EVENT_NAME setting

        Returns:
            bytes: PNG image data
        Raises:
            ValueError: when the attendee has no barcode
        """
        info = attendee if isinstance(attendee, dict) else attendee.to_dict()
        barcode = info.get('barcode')
        if not barcode:
            raise ValueError(TicketError.MISSING_BARCODE)

        qr = qrcode.QRCode(
            version=None,
            error_correction=qrcode.constants.ERROR_CORRECT_H,
            box_size=10,
            border=4,
        )
        qr.add_data(barcode)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white").convert("RGB")

        qr_size = img.size[0]
        canvas = Image.new('RGB', (qr_size, qr_size + TicketService.CAPTION_HEIGHT), 'white')
        canvas.paste(img, (0, 0))

        draw = ImageDraw.Draw(canvas)
        font = TicketService._load_font()

        if event_name is None and has_app_context():
            event_name = current_app.config.get('EVENT_NAME')

        lines = [event_name, info.get('name'), info.get('email'),
                 TicketService.seating_label(info), f"Code: {barcode}"]
        y = qr_size + 5
        for line in filter(None, lines):
            draw.text((10, y), line, fill="black", font=font)
            y += TicketService.LINE_HEIGHT

        buffer = io.BytesIO()
        canvas.save(buffer, format='PNG')
        return buffer.getvalue()

    @staticmethod
    def save_ticket(attendee):
        """
        Render a ticket and write it to TICKET_FOLDER.

        Returns:
            dict: {'success', 'path'} or error with 'error_code'
        """
        logger = logging.getLogger('ticket_service')

        try:
            data = TicketService.render_ticket(attendee)
        except ValueError:
            return {
                'success': False,
                'message': 'Attendee has no barcode',
                'error_code': TicketError.MISSING_BARCODE
            }

        folder = current_app.config['TICKET_FOLDER']
        path = os.path.join(folder, f"{attendee.id}.png")

        try:
            os.makedirs(folder, exist_ok=True)
            with open(path, 'wb') as fh:
                fh.write(data)
        except OSError as e:
            logger.error(f"Could not write ticket for {attendee.id}: {e}")
            return {
                'success': False,
                'message': 'Ticket could not be saved',
                'error_code': TicketError.FILE_SAVE_ERROR
            }

        logger.info(f"Saved ticket for {attendee.id} to {path}")
        return {'success': True, 'path': path}

    @staticmethod
    def seating_label(info):
        parts = []
        if info.get('table_number'):
            parts.append(f"Table {info['table_number']}")
        if info.get('seat_number'):
            parts.append(f"Seat {info['seat_number']}")
        return ', '.join(parts)

    @staticmethod
    def _load_font():
        try:
            return ImageFont.truetype("Arial", 16)
        except OSError:
            return ImageFont.load_default()
