from dataclasses import replace

from event_checkin.station.store import AttendeeStore, SearchDebouncer
from event_checkin.utils.lifecycle import AttendeeStatus

from conftest import make_record


def three_records():
    return [
        make_record(id='a1', name='Ada Lovelace', email='ada@example.com', barcode='111'),
        make_record(id='a2', name='Grace Hopper', email='grace@navy.mil', barcode='222'),
        make_record(id='a3', name='Alan Turing', email='alan@example.org', barcode='333'),
    ]


def test_insert_prepends():
    store = AttendeeStore(three_records())
    store.insert(make_record(id='a4', name='Katherine Johnson', email='kj@nasa.gov', barcode='444'))
    assert [a.id for a in store.attendees] == ['a4', 'a1', 'a2', 'a3']


def test_empty_query_shows_everything():
    store = AttendeeStore(three_records())
    store.set_query('grace')
    store.set_query('')
    assert [a.id for a in store.filtered] == ['a1', 'a2', 'a3']


def test_query_matches_name_or_email_case_insensitively():
    store = AttendeeStore(three_records())
    store.set_query('EXAMPLE')
    assert [a.id for a in store.filtered] == ['a1', 'a3']
    store.set_query('hopper')
    assert [a.id for a in store.filtered] == ['a2']


def test_filtered_view_tracks_list_changes():
    store = AttendeeStore(three_records())
    store.set_query('al')
    store.insert(make_record(id='a5', name='Alice', email='alice@example.com', barcode='555'))
    assert 'a5' in [a.id for a in store.filtered]


def test_upsert_replaces_everywhere():
    store = AttendeeStore(three_records())
    store.set_query('ada')
    store.set_last_scanned(store.get('a1'))

    updated = replace(store.get('a1'), current_status=AttendeeStatus.IN)
    assert store.upsert_by_id(updated) is True

    assert store.get('a1') is updated
    assert store.filtered == [updated]
    assert store.last_scanned is updated


def test_upsert_of_unknown_id_is_a_noop():
    store = AttendeeStore(three_records())
    assert store.upsert_by_id(make_record(id='zz', barcode='999')) is False
    assert len(store) == 3


def test_remove_clears_last_scanned():
    store = AttendeeStore(three_records())
    store.set_last_scanned(store.get('a2'))
    assert store.remove_by_id('a2') is True
    assert store.get('a2') is None
    assert store.last_scanned is None


def test_remove_keeps_unrelated_last_scanned():
    store = AttendeeStore(three_records())
    store.set_last_scanned(store.get('a1'))
    store.remove_by_id('a3')
    assert store.last_scanned.id == 'a1'


def test_find_by_barcode():
    store = AttendeeStore(three_records())
    assert store.find_by_barcode('333').id == 'a3'
    assert store.find_by_barcode('000') is None


def test_listeners_are_notified_until_unsubscribed():
    store = AttendeeStore()
    changes = []
    unsubscribe = store.subscribe(lambda s, change: changes.append(change))

    store.replace_all(three_records())
    store.set_query('ada')
    unsubscribe()
    store.remove_by_id('a1')

    assert changes == ['replace_all', 'query']


class ManualTimer:
    """threading.Timer replacement fired by the test."""

    created = []

    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.daemon = False
        ManualTimer.created.append(self)

    def start(self):
        pass

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.callback()


def test_debouncer_applies_only_the_last_query():
    ManualTimer.created = []
    store = AttendeeStore(three_records())
    debouncer = SearchDebouncer(store, delay=0.3, timer_factory=ManualTimer)

    debouncer.update('a')
    debouncer.update('al')
    debouncer.update('alan')

    first, second, last = ManualTimer.created
    assert first.cancelled and second.cancelled and not last.cancelled
    assert last.delay == 0.3
    assert store.search_query == ''

    last.fire()
    assert store.search_query == 'alan'
    assert [a.id for a in store.filtered] == ['a3']


def test_debouncer_flush_and_cancel():
    ManualTimer.created = []
    store = AttendeeStore(three_records())
    debouncer = SearchDebouncer(store, timer_factory=ManualTimer)

    debouncer.update('grace')
    debouncer.flush()
    assert store.search_query == 'grace'

    debouncer.update('ada')
    debouncer.cancel()
    ManualTimer.created[-1].fire()
    assert store.search_query == 'grace'
    assert debouncer.pending is None
