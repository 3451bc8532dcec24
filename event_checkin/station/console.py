# station/console.py
"""
Line-oriented check-in station for keyboard-wedge barcode scanners.

Every input line is a decoded barcode, except for these commands:
    :in / :out / :toggle   switch the scan mode
    /<text>                search attendees by name or email
    #<n>                   manual check-in of result n from the last search
    :refresh               reload attendees from the server
    :quit                  leave the station
"""

import logging

import click

from event_checkin.station.remote import RemoteAttendanceService, RemoteServiceError
from event_checkin.station.scanner import ScannerSession
from event_checkin.station.store import AttendeeStore
from event_checkin.station.workflow import CheckInWorkflow, ScanStatus
from event_checkin.utils.lifecycle import CheckInAction
from event_checkin.utils.time_format import format_clock_time, render_seconds, status_label

logger = logging.getLogger('station')

MODE_COMMANDS = {
    ':in': CheckInAction.TIME_IN,
    ':out': CheckInAction.TIME_OUT,
    ':toggle': CheckInAction.TOGGLE,
}

OUTCOME_COLORS = {
    ScanStatus.SUCCESS: 'green',
    ScanStatus.REJECTED: 'yellow',
    ScanStatus.BUSY: 'yellow',
    ScanStatus.FAILED: 'red',
    ScanStatus.UNKNOWN: 'red',
    ScanStatus.SCANNER_STOPPED: 'red',
}

SEARCH_RESULT_LIMIT = 10


def describe(record):
    """One-line summary of an attendee for the operator."""
    label = status_label(record.current_status.value)['text']
    parts = [f"{record.name} <{record.email}>", label]
    if record.time_in:
        parts.append(f"in {format_clock_time(record.time_in)}")
    if record.time_out:
        parts.append(f"out {format_clock_time(record.time_out)}")
    if record.total_seconds:
        parts.append(f"total {render_seconds(record.total_seconds)}")
    return ' | '.join(parts)


class StationConsole:
    """Drives a CheckInWorkflow from text input."""

    def __init__(self, workflow, store, remote, mode=CheckInAction.TOGGLE, echo=click.echo):
        self.workflow = workflow
        self.store = store
        self.remote = remote
        self.mode = CheckInAction.coerce(mode)
        self.echo = echo

    def refresh(self):
        try:
            self.store.replace_all(self.remote.fetch_all())
        except RemoteServiceError as e:
            self.echo(click.style(f"Could not load attendees: {e.message}", fg='red'))
            return False
        self.echo(f"Loaded {len(self.store)} attendees")
        return True

    def handle_line(self, line):
        """
        Process one input line.

        Returns:
            bool: False when the operator asked to quit
        """
        text = line.strip()
        if not text:
            return True

        if text == ':quit':
            return False
        if text == ':refresh':
            self.refresh()
        elif text in MODE_COMMANDS:
            self.mode = MODE_COMMANDS[text]
            self.echo(f"Mode: {self.mode.value}")
        elif text.startswith('/'):
            self._search(text[1:])
        elif text.startswith('#'):
            self._manual(text[1:])
        else:
            self._report(self.workflow.resolve_scan(text, self.mode))
        return True

    def _search(self, query):
        self.store.set_query(query)
        results = self.store.filtered[:SEARCH_RESULT_LIMIT]
        if not results:
            self.echo("No matching attendees")
        for number, record in enumerate(results, start=1):
            self.echo(f"  #{number} {describe(record)}")

    def _manual(self, number):
        results = self.store.filtered[:SEARCH_RESULT_LIMIT]
        index = int(number) - 1 if number.isdigit() else -1
        if not 0 <= index < len(results):
            self.echo(click.style(f"No search result #{number}", fg='red'))
            return
        record = results[index]
        self._report(self.workflow.manual_check_in(record.id, self.mode))

    def _report(self, outcome):
        if outcome.status == ScanStatus.IGNORED:
            return
        self.echo(click.style(outcome.message, fg=OUTCOME_COLORS.get(outcome.status)))
        last = self.store.last_scanned
        if last is not None and outcome.status != ScanStatus.SCANNER_STOPPED:
            self.echo(f"  {describe(last)}")


def run_console(base_url, api_key=None, timeout=5, scan_debounce=2.0, rollback_on_failure=True,
                mode='toggle', input_stream=None):
    """Run the interactive station until :quit or end of input."""
    store = AttendeeStore()
    remote = RemoteAttendanceService(base_url, api_key=api_key, timeout=timeout)
    workflow = CheckInWorkflow(
        store,
        remote,
        rollback_on_failure=rollback_on_failure,
        scan_debounce=scan_debounce
    )
    console = StationConsole(workflow, store, remote, mode=mode)

    click.echo(f"Check-in station connected to {base_url}")
    console.refresh()

    stream = input_stream or click.get_text_stream('stdin')
    with ScannerSession(workflow):
        click.echo(f"Scanner ready ({console.mode.value}). Scan a ticket or type :quit")
        try:
            for line in stream:
                if not console.handle_line(line):
                    break
        except KeyboardInterrupt:
            click.echo()

    logger.info("Station session ended")
