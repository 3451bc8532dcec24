# cli.py
"""
Flask CLI commands for the event check-in system.
"""

import os

import click
from flask import current_app
from flask.cli import with_appcontext

from event_checkin.extensions import db


@click.command("init-db")
@click.option("--drop", is_flag=True, help="Drop existing tables first")
@with_appcontext
def init_db(drop):
    """Create database tables."""
    from event_checkin import models  # noqa: F401 registers the tables

    if drop:
        click.confirm("This deletes every attendee. Continue?", abort=True)
        db.drop_all()
        click.echo("Dropped all tables.")

    db.create_all()
    click.echo("Database tables created.")


@click.command("create-attendee")
@click.argument("name")
@click.argument("email")
@click.option("--barcode", help="Ticket barcode; generated when omitted")
@click.option("--table", "table_number", help="Table number")
@click.option("--seat", "seat_number", help="Seat number")
@click.option("--send-ticket", is_flag=True, help="Email the ticket immediately")
@with_appcontext
def create_attendee(name, email, barcode, table_number, seat_number, send_ticket):
    """
    Register a single attendee.

    Example usage:
        flask create-attendee "Jane Doe" jane@example.com --table 4 --seat 2
    """
    from event_checkin.extensions import ticket_mailer
    from event_checkin.services.attendee_service import AttendeeService
    from event_checkin.services.ticket_service import TicketService

    result = AttendeeService.create_attendee(
        name=name,
        email=email,
        barcode=barcode,
        table_number=table_number,
        seat_number=seat_number
    )

    if not result['success']:
        raise click.ClickException(result['message'])

    attendee = result['attendee']
    click.echo(f"Registered {attendee['name']} <{attendee['email']}> with barcode {attendee['barcode']}")

    if send_ticket:
        task_id = ticket_mailer.send_ticket(attendee, TicketService.render_ticket(attendee))
        if not ticket_mailer.get_queue_stats()['worker_running']:
            ticket_mailer.process_pending()
        click.echo(f"Ticket email {task_id}: {ticket_mailer.get_email_status(task_id)['status']}")


@click.command("import-attendees")
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False))
@with_appcontext
def import_attendees_command(file_path):
    """Import attendees from a CSV or Excel file."""
    from event_checkin.config import Config
    from event_checkin.services.importer import import_attendees

    if not Config.allowed_file(os.path.basename(file_path)):
        raise click.ClickException("Only .csv, .xlsx and .xls files can be imported")

    result = import_attendees(file_path)
    if not result['success']:
        raise click.ClickException(result['error'])

    click.echo(f"Imported {result['attendees_added']} attendees ({result['skipped']} already registered).")
    for error in result['errors']:
        click.echo(f"  {error}", err=True)


@click.command("migrate-time-totals")
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False))
@with_appcontext
def migrate_time_totals(file_path):
    """
    Load legacy total-time text (interval strings) into integer-second totals.

    The file needs an email column and a total time column, e.g.
    "email,total_time_spent" with values like "01:05:00" or "3900 seconds".
    """
    from event_checkin.services.importer import import_time_totals

    result = import_time_totals(file_path)
    if not result['success']:
        raise click.ClickException(result['error'])

    click.echo(f"Updated {result['updated']} attendees.")
    if result['unmatched']:
        click.echo(f"No attendee for: {', '.join(result['unmatched'])}", err=True)
    for error in result['errors']:
        click.echo(f"  {error}", err=True)


@click.command("scan-station")
@click.option("--url", help="Backend base URL (defaults to CHECKIN_API_URL)")
@click.option("--mode", type=click.Choice(['toggle', 'time_in', 'time_out']), default='toggle',
              help="Toggle infers the action; time_in / time_out direct it")
@with_appcontext
def scan_station(url, mode):
    """
    Run a keyboard-wedge check-in station.
    Each input line is one decoded barcode; see the prompt for commands.
    """
    from event_checkin.station.console import run_console

    config = current_app.config
    run_console(
        base_url=url or config['CHECKIN_API_URL'],
        api_key=config.get('API_KEY'),
        timeout=config['REMOTE_TIMEOUT_SECONDS'],
        scan_debounce=config['SCAN_DEBOUNCE_SECONDS'],
        rollback_on_failure=config['ROLLBACK_ON_FAILURE'],
        mode=mode
    )


def register_cli_commands(app):
    """
    Register all CLI commands with the Flask application.

    Args:
        app: Flask application instance
    """
    app.cli.add_command(init_db)
    app.cli.add_command(create_attendee)
    app.cli.add_command(import_attendees_command)
    app.cli.add_command(migrate_time_totals)
    app.cli.add_command(scan_station)
