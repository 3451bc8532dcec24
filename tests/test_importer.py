from event_checkin.models import Attendee
from event_checkin.services.importer import import_attendees, import_time_totals, map_columns


def write_csv(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text, encoding='utf-8')
    return str(path)


def test_map_columns_matches_partial_headers():
    mapping = map_columns(['Full Name', 'Email Address', 'Table No'], {
        'name': ('name',), 'email': ('email',), 'table_number': ('table',), 'seat_number': ('seat',)
    })
    assert mapping == {
        'name': 'Full Name', 'email': 'Email Address', 'table_number': 'Table No', 'seat_number': None
    }


def test_import_attendees(app, make_attendee, tmp_path):
    make_attendee(email='already@example.com')
    path = write_csv(tmp_path, 'guests.csv', (
        "Full Name,Email Address,Table,Seat\n"
        "Ada Lovelace, ADA@example.com ,4,2\n"
        "Returning Guest,already@example.com,1,1\n"
        "Nameless,,,\n"
    ))

    result = import_attendees(path)

    assert result['success'] is True
    assert result['attendees_added'] == 1
    assert result['skipped'] == 1
    assert len(result['errors']) == 1
    assert result['errors'][0].startswith('Row 4')

    ada = Attendee.query.filter_by(email='ada@example.com').one()
    assert ada.table_number == '4'
    assert ada.seat_number == '2'
    assert ada.barcode


def test_import_keeps_given_barcodes(app, tmp_path):
    path = write_csv(tmp_path, 'guests.csv', "name,email,ticket code\nGrace Hopper,grace@example.com,555000111222\n")

    import_attendees(path)

    assert Attendee.query.filter_by(barcode='555000111222').count() == 1


def test_import_requires_name_and_email_columns(app, tmp_path):
    path = write_csv(tmp_path, 'guests.csv', "name,phone\nAda,123\n")

    result = import_attendees(path)

    assert result['success'] is False
    assert 'email' in result['error']


def test_import_time_totals(db, make_attendee, tmp_path):
    ada = make_attendee(email='ada@example.com')
    grace = make_attendee(email='grace@example.com')
    path = write_csv(tmp_path, 'totals.csv', (
        "email,total_time_spent\n"
        "ada@example.com,01:05:00\n"
        "grace@example.com,90 seconds\n"
        "ghost@example.com,00:10:00\n"
        "ada@example.com,soon\n"
    ))

    result = import_time_totals(path)

    assert result['success'] is True
    assert result['updated'] == 2
    assert result['unmatched'] == ['ghost@example.com']
    assert len(result['errors']) == 1
    assert db.session.get(Attendee, ada.id).total_seconds == 3900
    assert db.session.get(Attendee, grace.id).total_seconds == 90
