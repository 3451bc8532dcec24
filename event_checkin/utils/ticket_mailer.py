# utils/ticket_mailer.py
"""
Queued ticket email delivery.
A background worker drains a priority queue and sends each message over SMTP
with retries; every queued message gets a task id whose status can be polled.
"""

import itertools
import logging
import mimetypes
import queue
import random
import smtplib
import threading
import time
import uuid
from datetime import datetime
from email import encoders
from email.mime.base import MIMEBase
from email.mime.image import MIMEImage
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from flask import current_app, render_template


class Priority:
    HIGH = 0
    NORMAL = 1
    LOW = 2


class EmailStatus:
    QUEUED = 'queued'
    SENDING = 'sending'
    SENT = 'sent'
    FAILED = 'failed'
    CANCELLED = 'cancelled'

    def __init__(self, recipient, subject, task_id=None, max_attempts=3):
        self.recipient = recipient
        self.subject = subject
        self.task_id = task_id or f"email_{uuid.uuid4().hex[:12]}"
        self.status = self.QUEUED
        self.attempts = 0
        self.max_attempts = max_attempts
        self.last_attempt = None
        self.error = None
        self.timestamp = datetime.now()
        self.sent_time = None
        self.priority = Priority.NORMAL

    def to_dict(self):
        """Convert status to dictionary for JSON serialization"""
        return {
            'task_id': self.task_id,
            'recipient': self.recipient,
            'subject': self.subject,
            'status': self.status,
            'attempts': self.attempts,
            'max_attempts': self.max_attempts,
            'timestamp': self.timestamp.isoformat(),
            'last_attempt': self.last_attempt.isoformat() if self.last_attempt else None,
            'sent_time': self.sent_time.isoformat() if self.sent_time else None,
            'error': self.error,
            'priority': self.priority
        }


class PriorityEmailQueue:
    def __init__(self):
        self.queue = queue.PriorityQueue()
        self.task_map = {}
        self.counter = itertools.count()

    def put(self, task, priority=Priority.NORMAL):
        """Add a task to the queue with a priority level"""
        task['priority'] = priority
        self.queue.put((priority, next(self.counter), task))

        task_id = task.get('task_id')
        if task_id:
            self.task_map[task_id] = task

        return task_id

    def get(self, timeout=None):
        """Get the next task from the queue based on priority"""
        try:
            if timeout:
                _, _, task = self.queue.get(timeout=timeout)
            else:
                _, _, task = self.queue.get(block=False)
        except queue.Empty:
            return None

        self.task_map.pop(task.get('task_id'), None)
        return task

    def cancel(self, task_id):
        """Cancel a task if it's still in the queue"""
        task = self.task_map.pop(task_id, None)
        if task is None:
            return False
        task['cancelled'] = True
        return True

    def size(self):
        return self.queue.qsize()


class TicketMailer:
    def __init__(self, app=None):
        self.app = None
        self._app_ref = None  # app reference for the worker thread
        self.worker_thread = None
        self.running = False
        self.task_queue = PriorityEmailQueue()
        self.statuses = {}
        self._status_lock = threading.Lock()
        self._shutdown_event = threading.Event()
        self.logger = logging.getLogger('ticket_mailer')

        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.app = app
        self._app_ref = app

        issues = self.validate_config(app)
        for issue in issues:
            self.logger.warning(f"Email configuration: {issue}")

        if app.config.get('START_EMAIL_WORKER', True) and not self.running:
            self.start_worker()
            import atexit
            atexit.register(self.stop_worker)

    @staticmethod
    def validate_config(app):
        """
        Validate email configuration.

        Returns:
            list: configuration issues found
        """
        issues = []

        if app.config.get('MAIL_SUPPRESS_SEND'):
            issues.append("MAIL_SUPPRESS_SEND=True will prevent email sending")

        required = ['MAIL_SERVER', 'MAIL_USERNAME', 'MAIL_PASSWORD', 'MAIL_DEFAULT_SENDER']
        missing = [key for key in required if not app.config.get(key)]
        if missing:
            issues.append(f"Missing required email config: {', '.join(missing)}")

        mail_port = app.config.get('MAIL_PORT')
        use_tls = app.config.get('MAIL_USE_TLS', False)
        use_ssl = app.config.get('MAIL_USE_SSL', False)

        if use_tls and use_ssl:
            issues.append("Cannot use both MAIL_USE_TLS and MAIL_USE_SSL simultaneously")

        if mail_port == 465 and use_tls and not use_ssl:
            issues.append("Port 465 typically uses SSL, not TLS. Consider using port 587 for TLS")
        elif mail_port == 587 and use_ssl and not use_tls:
            issues.append("Port 587 typically uses TLS, not SSL. Consider using port 465 for SSL")

        return issues

    def start_worker(self):
        if self.worker_thread is None or not self.worker_thread.is_alive():
            self.running = True
            self._shutdown_event.clear()
            self.worker_thread = threading.Thread(
                target=self._process_queue,
                daemon=True,
                name="TicketMailWorker"
            )
            self.worker_thread.start()
            self.logger.info("Ticket mail worker thread started")

    def stop_worker(self):
        self.running = False
        self._shutdown_event.set()

        if self.worker_thread and self.worker_thread.is_alive():
            self.worker_thread.join(timeout=5)
            if self.worker_thread.is_alive():
                self.logger.warning("Ticket mail worker thread did not shut down gracefully")
            else:
                self.logger.info("Ticket mail worker thread stopped")

    def queue_email(self, recipient, subject, html_body=None, text_body=None,
                    attachments=None, priority=Priority.NORMAL):
        """
        Queue an email for background delivery.

        Args:
            attachments: list of dicts with 'filename' and either 'data' (bytes)
                         or 'path'; an optional 'content_id' makes it inline

        Returns:
            str: task id for status polling
        """
        max_attempts = self.app.config.get('MAIL_MAX_ATTEMPTS', 3) if self.app else 3
        status = EmailStatus(recipient, subject, max_attempts=max_attempts)
        status.priority = priority

        with self._status_lock:
            self.statuses[status.task_id] = status

        self.task_queue.put({
            'task_id': status.task_id,
            'recipient': recipient,
            'subject': subject,
            'html_body': html_body,
            'text_body': text_body,
            'attachments': attachments or []
        }, priority=priority)

        self.logger.info(f"Queued email {status.task_id} to {recipient}")
        return status.task_id

    def send_ticket(self, attendee, ticket_png, priority=Priority.HIGH):
        """
        Queue the ticket email for an attendee.

        Args:
            attendee: attendee dict (name, email, barcode, seating)
            ticket_png: rendered ticket image bytes

        Returns:
            str: task id
        """
        event_name = current_app.config.get('EVENT_NAME', 'Event')
        context = {
            'attendee': attendee,
            'event_name': event_name,
            'contact_email': current_app.config.get('CONTACT_EMAIL'),
            'ticket_cid': 'ticket'
        }

        return self.queue_email(
            recipient=attendee['email'],
            subject=f"Your {event_name} Ticket",
            html_body=render_template('email/ticket.html', **context),
            text_body=render_template('email/ticket.txt', **context),
            attachments=[{
                'filename': 'ticket.png',
                'data': ticket_png,
                'content_id': 'ticket'
            }],
            priority=priority
        )

    def cancel(self, task_id):
        cancelled = self.task_queue.cancel(task_id)
        if cancelled:
            with self._status_lock:
                if task_id in self.statuses:
                    self.statuses[task_id].status = EmailStatus.CANCELLED
        return cancelled

    def get_email_status(self, task_id):
        with self._status_lock:
            status = self.statuses.get(task_id)
            return status.to_dict() if status else None

    def get_queue_stats(self):
        with self._status_lock:
            counts = {}
            for status in self.statuses.values():
                counts[status.status] = counts.get(status.status, 0) + 1

        return {
            'queue_size': self.task_queue.size(),
            'worker_running': bool(self.worker_thread and self.worker_thread.is_alive()),
            'status_counts': counts
        }

    def process_pending(self):
        """
        Deliver everything currently queued on the calling thread.
        Used when the background worker is disabled (CLI runs, tests).

        Returns:
            int: number of tasks processed
        """
        processed = 0
        while True:
            task = self.task_queue.get()
            if task is None:
                return processed
            self._handle_task(task, retry_delay=False)
            processed += 1

    def _process_queue(self):
        while self.running and not self._shutdown_event.is_set():
            try:
                task = self.task_queue.get(timeout=1.0)
                if task:
                    self._handle_task(task)
            except Exception as e:
                self.logger.error(f"Ticket mail worker error: {str(e)}", exc_info=True)
                time.sleep(5)

        self.logger.info("Ticket mail worker thread exited")

    def _handle_task(self, task, retry_delay=True):
        task_id = task.get('task_id')
        if task.get('cancelled', False):
            self.logger.info(f"Task {task_id} was cancelled. Skipping.")
            return

        with self._status_lock:
            status = self.statuses.get(task_id)
            if status:
                status.status = EmailStatus.SENDING
                status.attempts += 1
                status.last_attempt = datetime.now()

        try:
            with self._app_ref.app_context():
                self._send_email(task)

            with self._status_lock:
                if status:
                    status.status = EmailStatus.SENT
                    status.sent_time = datetime.now()
            self.logger.info(f"Email sent successfully to {task['recipient']}")

        except Exception as e:
            self.logger.error(f"Email sending failed: {str(e)}", exc_info=True)

            with self._status_lock:
                if status:
                    status.status = EmailStatus.FAILED
                    status.error = str(e)
                retry = status is not None and status.attempts < status.max_attempts

            if retry:
                if retry_delay:
                    delay = min(2 ** status.attempts, 60)  # Max 60 second delay
                    self.logger.info(f"Retrying task {task_id} in {delay} seconds")
                    time.sleep(delay)
                with self._status_lock:
                    status.status = EmailStatus.QUEUED
                self.task_queue.put(task, priority=task.get('priority', Priority.NORMAL))

    def _send_email(self, task):
        msg = MIMEMultipart('related')
        msg['Subject'] = task['subject']
        msg['From'] = current_app.config['MAIL_DEFAULT_SENDER']
        msg['To'] = task['recipient']

        body = MIMEMultipart('alternative')
        if task.get('text_body'):
            body.attach(MIMEText(task['text_body'], 'plain'))
        if task.get('html_body'):
            body.attach(MIMEText(task['html_body'], 'html'))
        msg.attach(body)

        for attachment in task.get('attachments', []):
            self._add_attachment(msg, attachment)

        if current_app.config.get('MAIL_SUPPRESS_SEND'):
            self.logger.info(f"MAIL_SUPPRESS_SEND set; not delivering '{task['subject']}' to {task['recipient']}")
            return

        max_retries = 3
        base_delay = 1

        for attempt in range(max_retries):
            try:
                server = self._create_smtp_connection()
                server.login(current_app.config['MAIL_USERNAME'], current_app.config['MAIL_PASSWORD'])
                server.send_message(msg)
                server.quit()
                return

            except smtplib.SMTPServerDisconnected as e:
                if attempt == max_retries - 1:
                    self.logger.error(f"SMTP server disconnected after {max_retries} attempts: {str(e)}")
                    raise

                wait_time = base_delay * (2 ** attempt) + random.uniform(0, 1)
                self.logger.warning(
                    f"SMTP connection closed, retrying in {wait_time:.2f} seconds (attempt {attempt + 1})")
                time.sleep(wait_time)

            except (smtplib.SMTPAuthenticationError, smtplib.SMTPRecipientsRefused) as e:
                self.logger.error(f"SMTP rejected the message: {str(e)}")
                raise

    def _create_smtp_connection(self):
        mail_server = current_app.config['MAIL_SERVER']
        mail_port = current_app.config['MAIL_PORT']

        if current_app.config.get('MAIL_USE_SSL', False):
            self.logger.debug(f"Creating SMTP_SSL connection to {mail_server}:{mail_port}")
            return smtplib.SMTP_SSL(mail_server, mail_port, timeout=30)

        self.logger.debug(f"Creating SMTP connection to {mail_server}:{mail_port}")
        server = smtplib.SMTP(mail_server, mail_port, timeout=30)
        if current_app.config.get('MAIL_USE_TLS', False):
            server.starttls()
        return server

    def _add_attachment(self, msg, attachment):
        """Attach bytes or a file, inline when a content id is given"""
        filename = attachment['filename']
        file_data = attachment.get('data')

        if file_data is None:
            with open(attachment['path'], 'rb') as f:
                file_data = f.read()

        mime_type, _ = mimetypes.guess_type(filename)

        if mime_type and mime_type.startswith('image/'):
            part = MIMEImage(file_data, _subtype=mime_type.split('/', 1)[1])
        else:
            main_type, sub_type = (mime_type or 'application/octet-stream').split('/', 1)
            part = MIMEBase(main_type, sub_type)
            part.set_payload(file_data)
            encoders.encode_base64(part)

        content_id = attachment.get('content_id')
        if content_id:
            part.add_header('Content-ID', f'<{content_id}>')
            part.add_header('Content-Disposition', 'inline', filename=filename)
        else:
            part.add_header('Content-Disposition', 'attachment', filename=filename)

        msg.attach(part)
        self.logger.debug(f"Added attachment: {filename} ({mime_type})")
