# services/importer.py
"""
Spreadsheet import of attendees and of legacy time totals.
Columns are matched by partial, case-insensitive header names so exports from
registration forms import without renaming.
"""

import logging

import pandas as pd
from sqlalchemy.exc import SQLAlchemyError

from event_checkin.extensions import db
from event_checkin.models.attendee import Attendee
from event_checkin.services.attendee_service import AttendeeService
from event_checkin.utils.data_processing import clean_email, clean_text_field
from event_checkin.utils.time_format import parse_interval_seconds

logger = logging.getLogger('attendee_service')

ATTENDEE_COLUMNS = {
    'name': ('name',),
    'email': ('email',),
    'barcode': ('barcode', 'code', 'ticket'),
    'table_number': ('table',),
    'seat_number': ('seat',),
}

TIME_TOTAL_COLUMNS = {
    'email': ('email',),
    'total_time_spent': ('total_time', 'time_spent', 'total'),
}


def read_spreadsheet(file_path):
    """Load a CSV or Excel file into a DataFrame, trying common CSV encodings."""
    if file_path.endswith('.xlsx') or file_path.endswith('.xls'):
        return pd.read_excel(file_path, dtype=str)

    for encoding in ('utf-8', 'utf-8-sig', 'latin-1'):
        try:
            return pd.read_csv(file_path, dtype=str, encoding=encoding)
        except UnicodeDecodeError:
            continue
    raise ValueError(f"Unable to decode {file_path} with any supported encoding")


def map_columns(columns, wanted):
    """Map logical field names to the first header containing one of their keywords."""
    mapping = {}
    for field, keywords in wanted.items():
        mapping[field] = next(
            (col for col in columns
             if any(keyword in str(col).strip().lower().replace(' ', '_') for keyword in keywords)),
            None
        )
    return mapping


def _cell(row, column):
    if column is None:
        return None
    value = row[column]
    if pd.isna(value):
        return None
    return str(value).strip()


def import_attendees(file_path):
    """
    Register attendees from a spreadsheet.
    Rows whose email is already registered are skipped.

    Returns:
        dict: {'success', 'attendees_added', 'skipped', 'errors'}
    """
    try:
        df = read_spreadsheet(file_path)
    except (OSError, ValueError) as e:
        return {
            'success': False,
            'error': f"Error reading file: {str(e)}",
            'attendees_added': 0
        }

    mapping = map_columns(df.columns, ATTENDEE_COLUMNS)
    missing = [field for field in ('name', 'email') if mapping[field] is None]
    if missing:
        return {
            'success': False,
            'error': f"Missing required columns: {', '.join(missing)}",
            'attendees_added': 0
        }

    added = 0
    skipped = 0
    errors = []

    for index, row in df.iterrows():
        email = clean_email(_cell(row, mapping['email']))
        if email and AttendeeService.check_email_exists(email):
            skipped += 1
            continue

        result = AttendeeService.create_attendee(
            name=_cell(row, mapping['name']),
            email=email,
            barcode=_cell(row, mapping['barcode']),
            table_number=_cell(row, mapping['table_number']),
            seat_number=_cell(row, mapping['seat_number'])
        )
        if result['success']:
            added += 1
        else:
            errors.append(f"Row {index + 2}: {result['message']}")

    logger.info(f"Imported {added} attendees from {file_path} ({skipped} skipped, {len(errors)} errors)")
    return {
        'success': True,
        'attendees_added': added,
        'skipped': skipped,
        'errors': errors
    }


def import_time_totals(file_path):
    """
    Convert legacy interval text ("01:05:00", "1 day 02:00:00", "3900 seconds")
    from an export into integer-second totals on matching attendees.

    Returns:
        dict: {'success', 'updated', 'unmatched', 'errors'}
    """
    try:
        df = read_spreadsheet(file_path)
    except (OSError, ValueError) as e:
        return {'success': False, 'error': f"Error reading file: {str(e)}", 'updated': 0}

    mapping = map_columns(df.columns, TIME_TOTAL_COLUMNS)
    missing = [field for field, column in mapping.items() if column is None]
    if missing:
        return {
            'success': False,
            'error': f"Missing required columns: {', '.join(missing)}",
            'updated': 0
        }

    updated = 0
    unmatched = []
    errors = []

    for index, row in df.iterrows():
        email = clean_email(_cell(row, mapping['email']))
        raw = clean_text_field(_cell(row, mapping['total_time_spent']))
        seconds = parse_interval_seconds(raw)
        if seconds is None:
            errors.append(f"Row {index + 2}: cannot parse duration {raw!r}")
            continue

        attendee = db.session.query(Attendee).filter_by(email=email).first() if email else None
        if not attendee:
            unmatched.append(email or f"row {index + 2}")
            continue

        attendee.total_seconds = seconds
        updated += 1

    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Database error migrating time totals: {str(e)}", exc_info=True)
        return {'success': False, 'error': 'Database error while saving totals', 'updated': 0}

    logger.info(f"Migrated time totals for {updated} attendees from {file_path}")
    return {
        'success': True,
        'updated': updated,
        'unmatched': unmatched,
        'errors': errors
    }
