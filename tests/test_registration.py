import pytest

from event_checkin import create_app
from event_checkin.extensions import db as _db
from event_checkin.extensions import ticket_mailer
from event_checkin.services.ticket_service import TicketService

PNG_SIGNATURE = b'\x89PNG\r\n\x1a\n'


def test_register_queues_ticket_email(app, client):
    response = client.post('/register', json={'name': 'Ada Lovelace', 'email': 'ada@example.com'})

    assert response.status_code == 201
    task_id = response.get_json()['email_task_id']
    assert ticket_mailer.get_email_status(task_id)['status'] == 'queued'

    ticket_mailer.process_pending()

    status = client.get(f'/register/email-status/{task_id}').get_json()['status']
    assert status['status'] == 'sent'
    assert status['recipient'] == 'ada@example.com'


def test_register_without_ticket(client):
    response = client.post('/register', json={
        'name': 'Grace Hopper', 'email': 'grace@example.com', 'send_ticket': False
    })
    assert response.status_code == 201
    assert 'email_task_id' not in response.get_json()


def test_register_validation_errors(client):
    response = client.post('/register', json={'name': 'A', 'email': 'bad'})

    assert response.status_code == 400
    assert set(response.get_json()['errors']) == {'name', 'email'}


def test_check_email(client, make_attendee):
    make_attendee(email='taken@example.com')
    assert client.get('/register/check-email?email=TAKEN@example.com').get_json()['exists'] is True


def test_ticket_image(client, make_attendee):
    attendee = make_attendee(table_number='3', seat_number='9')

    response = client.get(f'/register/{attendee.id}/ticket.png')

    assert response.status_code == 200
    assert response.mimetype == 'image/png'
    assert response.data.startswith(PNG_SIGNATURE)


def test_ticket_image_for_unknown_attendee(client):
    assert client.get('/register/missing/ticket.png').status_code == 404


def test_resend_ticket(client, make_attendee):
    attendee = make_attendee()

    response = client.post(f'/register/{attendee.id}/send-ticket')

    assert response.status_code == 202
    assert ticket_mailer.get_email_status(response.get_json()['task_id'])['recipient'] == attendee.email


def test_unknown_email_task(client):
    assert client.get('/register/email-status/email_nope').status_code == 404


def test_render_ticket_requires_barcode(app):
    with pytest.raises(ValueError):
        TicketService.render_ticket({'name': 'Nobody', 'barcode': ''})


def test_save_ticket_writes_png(app, make_attendee, tmp_path):
    app.config['TICKET_FOLDER'] = str(tmp_path)
    attendee = make_attendee()

    result = TicketService.save_ticket(attendee)

    assert result['success'] is True
    with open(result['path'], 'rb') as fh:
        assert fh.read(8) == PNG_SIGNATURE


class TestApiKey:
    @pytest.fixture
    def secured_app(self):
        app = create_app('testing', {'API_KEY': 'station-secret'})
        with app.app_context():
            _db.create_all()
            yield app
            _db.session.remove()
            _db.drop_all()

    def test_self_registration_stays_open(self, secured_app):
        response = secured_app.test_client().post('/register', json={
            'name': 'Ada Lovelace', 'email': 'ada@example.com', 'send_ticket': False
        })
        assert response.status_code == 201

    def test_resend_requires_key(self, secured_app):
        client = secured_app.test_client()
        attendee_id = client.post('/register', json={
            'name': 'Ada Lovelace', 'email': 'ada@example.com', 'send_ticket': False
        }).get_json()['attendee']['id']

        assert client.post(f'/register/{attendee_id}/send-ticket').status_code == 401
        response = client.post(
            f'/register/{attendee_id}/send-ticket', headers={'X-API-Key': 'station-secret'}
        )
        assert response.status_code == 202

    def test_clear_history_requires_key(self, secured_app):
        client = secured_app.test_client()

        assert client.post('/check-in/clear-history').status_code == 401
        response = client.post('/check-in/clear-history', headers={'X-API-Key': 'station-secret'})
        assert response.status_code == 200
