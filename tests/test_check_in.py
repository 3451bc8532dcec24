from event_checkin.utils.lifecycle import AttendeeStatus


def scan(client, barcode, action=None):
    body = {'barcode': barcode}
    if action:
        body['action'] = action
    return client.post('/check-in/scan', json=body)


def test_toggle_scan_times_in_then_out(client, make_attendee):
    attendee = make_attendee(barcode='400000000001')

    first = scan(client, '400000000001')
    second = scan(client, '400000000001')

    assert first.get_json()['attendee']['current_status'] == 'IN'
    assert second.get_json()['attendee']['current_status'] == 'OUT'
    assert second.get_json()['ui_status'] == 'success'


def test_directed_scan_is_validated(client, make_attendee):
    make_attendee(barcode='400000000002', current_status=AttendeeStatus.IN)

    response = scan(client, '400000000002', 'time-in')

    assert response.status_code == 409
    body = response.get_json()
    assert body['error_code'] == 'already_inside'
    assert 'already inside' in body['message']


def test_unknown_barcode(client):
    response = scan(client, '999')
    assert response.status_code == 404
    assert response.get_json()['error_code'] == 'attendee_not_found'


def test_invalid_action(client, make_attendee):
    make_attendee(barcode='400000000003')
    assert scan(client, '400000000003', 'teleport').status_code == 400


def test_missing_barcode(client):
    assert client.post('/check-in/scan', json={'barcode': '  '}).status_code == 400


def test_recent_scans_newest_first(client, make_attendee):
    make_attendee(name='Ada Lovelace', barcode='400000000004')
    scan(client, '400000000004')
    scan(client, 'nope')

    recent = client.get('/check-in/recent').get_json()['recent_scans']
    assert [entry['barcode'] for entry in recent] == ['nope', '400000000004']
    assert recent[1]['name'] == 'Ada Lovelace'
    assert recent[1]['status'] == 'IN'
    assert recent[0]['success'] is False

    client.post('/check-in/clear-history')
    assert client.get('/check-in/recent').get_json()['recent_scans'] == []
