# station/store.py
"""
Process-local attendee cache for a check-in station.

The store keeps attendees most-recently-added first, a search query with its
derived filtered view, and the last scanned attendee. It is not authoritative:
the backend is, and the check-in workflow writes server records back here.
"""

import logging
import threading

logger = logging.getLogger('station')


class AttendeeStore:
    """Observable attendee cache. Listeners are called after every change."""

    def __init__(self, attendees=None):
        self._lock = threading.RLock()
        self._attendees = list(attendees or [])
        self._query = ''
        self._filtered = list(self._attendees)
        self._last_scanned = None
        self._listeners = []

    @property
    def attendees(self):
        with self._lock:
            return list(self._attendees)

    @property
    def filtered(self):
        with self._lock:
            return list(self._filtered)

    @property
    def search_query(self):
        return self._query

    @property
    def last_scanned(self):
        return self._last_scanned

    def replace_all(self, attendees):
        """Swap in a freshly fetched list."""
        with self._lock:
            self._attendees = list(attendees)
            self._refilter()
        self._notify('replace_all')

    def insert(self, attendee):
        """Prepend a newly registered attendee."""
        with self._lock:
            self._attendees.insert(0, attendee)
            self._refilter()
        self._notify('insert')

    def upsert_by_id(self, attendee):
        """
        Replace the cached record with the same id in the list, the filtered
        view and last scanned. Unknown ids are ignored.

        Returns:
            bool: whether a record was replaced
        """
        with self._lock:
            index = self._index_of(attendee.id)
            if index is None:
                return False

            self._attendees[index] = attendee
            self._filtered = [attendee if a.id == attendee.id else a for a in self._filtered]
            if self._last_scanned is not None and self._last_scanned.id == attendee.id:
                self._last_scanned = attendee
        self._notify('upsert')
        return True

    def remove_by_id(self, attendee_id):
        """Drop an attendee; clears last scanned when it pointed at them."""
        with self._lock:
            index = self._index_of(attendee_id)
            if index is None:
                return False

            del self._attendees[index]
            self._filtered = [a for a in self._filtered if a.id != attendee_id]
            if self._last_scanned is not None and self._last_scanned.id == attendee_id:
                self._last_scanned = None
        self._notify('remove')
        return True

    def set_query(self, query):
        with self._lock:
            self._query = query or ''
            self._refilter()
        self._notify('query')

    def set_last_scanned(self, attendee):
        with self._lock:
            self._last_scanned = attendee
        self._notify('last_scanned')

    def get(self, attendee_id):
        with self._lock:
            index = self._index_of(attendee_id)
            return self._attendees[index] if index is not None else None

    def find_by_barcode(self, barcode):
        with self._lock:
            return next((a for a in self._attendees if a.barcode == barcode), None)

    def subscribe(self, listener):
        """
        Register listener(store, change) for change notifications.

        Returns:
            callable: unsubscribes the listener
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def __len__(self):
        return len(self._attendees)

    # Helper methods

    def _index_of(self, attendee_id):
        for index, attendee in enumerate(self._attendees):
            if attendee.id == attendee_id:
                return index
        return None

    def _refilter(self):
        query = self._query.strip()
        if not query:
            self._filtered = list(self._attendees)
        else:
            self._filtered = [a for a in self._attendees if a.matches(query)]

    def _notify(self, change):
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(self, change)


class SearchDebouncer:
    """
    Applies search input to the store only after typing pauses.
    Each update cancels the pending one, so only the last query lands.
    For search-as-you-type front ends; the line console searches on demand.
    """

    def __init__(self, store, delay=0.3, timer_factory=threading.Timer):
        self.store = store
        self.delay = delay
        self._timer_factory = timer_factory
        self._timer = None
        self._pending = None
        self._lock = threading.Lock()

    def update(self, query):
        with self._lock:
            self._cancel_timer()
            self._pending = query
            self._timer = self._timer_factory(self.delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def flush(self):
        """Apply the pending query immediately."""
        with self._lock:
            self._cancel_timer()
            query, self._pending = self._pending, None
        if query is not None:
            self.store.set_query(query)

    def cancel(self):
        with self._lock:
            self._cancel_timer()
            self._pending = None

    @property
    def pending(self):
        return self._pending

    def _fire(self):
        with self._lock:
            query, self._pending = self._pending, None
            self._timer = None
        if query is not None:
            logger.debug(f"Applying search query {query!r}")
            self.store.set_query(query)

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
