import itertools
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from registro_ventas import config
from registro_ventas.app_container import AppContainer
from registro_ventas.errors import StoreError
from registro_ventas.event_dispatcher import EventDispatcher
from registro_ventas.repositories import DocumentStore, IdentityProvider
from registro_ventas.services import (
    AuditService,
    CollectionSync,
    HistoryAggregator,
    SaleTransactionCoordinator,
    SessionService,
    UserService,
)


class FakeTimer:
    """Temporizador controlado a mano: solo dispara con fire()."""

    def __init__(self, seconds, callback):
        self.seconds = seconds
        self.callback = callback
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if self.started and not self.cancelled:
            self.callback()


class QueuedDispatcher:
    """Despachador que retiene los eventos hasta run_all()."""

    def __init__(self):
        self.pending = []

    def submit(self, callback, *args):
        self.pending.append((callback, args))

    def run_all(self):
        while self.pending:
            callback, args = self.pending.pop(0)
            callback(*args)


class FlakyStore(DocumentStore):
    """DocumentStore con fallos inyectables por operación y colección."""

    def __init__(self, dispatcher, **kwargs):
        super().__init__(dispatcher, **kwargs)
        self.failures = {}

    def fail(self, operation, collection, error=None):
        self.failures[(operation, collection)] = error or StoreError(f'{operation} {collection} no disponible')

    def _check(self, operation, collection):
        error = self.failures.get((operation, collection))
        if error is not None:
            raise error

    def create(self, collection, fields, doc_id=None):
        self._check('create', collection)
        return super().create(collection, fields, doc_id)

    def update(self, collection, doc_id, fields):
        self._check('update', collection)
        return super().update(collection, doc_id, fields)

    def delete(self, collection, doc_id):
        self._check('delete', collection)
        return super().delete(collection, doc_id)

    def decrement(self, collection, doc_id, field, amount, floor=0):
        self._check('decrement', collection)
        return super().decrement(collection, doc_id, field, amount, floor)


def make_clock(start='2024-01-02T10:00:00'):
    """Reloj de servidor con timestamps crecientes (1 segundo por llamada)."""
    base = datetime.fromisoformat(start)
    counter = itertools.count()

    def clock():
        return (base + timedelta(seconds=next(counter))).isoformat()

    return clock


@pytest.fixture
def dispatcher():
    return EventDispatcher(immediate=True)


@pytest.fixture
def store(dispatcher):
    return DocumentStore(dispatcher, clock=make_clock())


@pytest.fixture
def flaky_store(dispatcher):
    return FlakyStore(dispatcher, clock=make_clock())


@pytest.fixture
def timers():
    return []


@pytest.fixture
def timer_factory(timers):
    def factory(seconds, callback):
        timer = FakeTimer(seconds, callback)
        timers.append(timer)
        return timer
    return factory


@pytest.fixture
def sync(store, dispatcher, timer_factory):
    return CollectionSync(store, dispatcher, fallback_seconds=3.0, timer_factory=timer_factory)


@pytest.fixture
def audit(store):
    return AuditService(store)


@pytest.fixture
def coordinator(store, audit):
    return SaleTransactionCoordinator(store, audit, clock=lambda: '2024-01-02T10:30:00')


@pytest.fixture
def history():
    lima = ZoneInfo('America/Lima')
    return HistoryAggregator('America/Lima', now=lambda: datetime(2024, 1, 2, 12, 0, tzinfo=lima))


@pytest.fixture
def identity():
    return IdentityProvider()


@pytest.fixture
def sessions(identity, store, audit):
    return SessionService(identity, store, audit)


@pytest.fixture
def users(identity, store, sessions, audit):
    return UserService(identity, store, sessions, audit)


@pytest.fixture
def product(store):
    """Producto con stock 50 y su snapshot tal como lo ve la vista en vivo."""
    pid = store.create(config.PRODUCTS, {
        'name': 'Cemento Sol', 'category': 'Construcción', 'price': 25.5, 'stock': 50,
    })
    return store.get(config.PRODUCTS, pid)


@pytest.fixture
def container():
    AppContainer.reset_instance()
    c = AppContainer(data_dir='', immediate_events=True)
    yield c
    AppContainer.reset_instance()


@pytest.fixture
def client(container):
    from registro_ventas.main import app
    app.config['TESTING'] = True
    with app.test_client() as c:
        yield c
