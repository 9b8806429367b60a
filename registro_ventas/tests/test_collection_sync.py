import threading

from conftest import QueuedDispatcher

from registro_ventas import config
from registro_ventas.errors import StoreError
from registro_ventas.event_dispatcher import EventDispatcher
from registro_ventas.repositories import DocumentStore
from registro_ventas.services import CollectionSync


def test_initial_snapshot_cancels_fallback_timer(store, sync, timers):
    store.create(config.PRODUCTS, {'name': 'Arena', 'stock': 1})
    store.create(config.PRODUCTS, {'name': 'Grava', 'stock': 2})

    live = sync.subscribe(config.PRODUCTS)

    assert live.loading is False
    assert live.error is None
    assert [p['name'] for p in live.data] == ['Grava', 'Arena']
    assert timers[0].started and timers[0].cancelled


def test_fallback_stops_loading_and_keeps_data(store, sync, timers):
    store.create(config.PRODUCTS, {'name': 'Arena'})
    store.set_online(False)

    live = sync.subscribe(config.PRODUCTS)
    assert live.loading is True
    assert timers[0].seconds == 3.0

    timers[0].fire()
    assert live.loading is False
    assert live.data == []
    assert live.error is None

    # Una emisión tardía sigue reemplazando los datos
    store.set_online(True)
    assert [p['name'] for p in live.data] == ['Arena']


def test_timer_after_snapshot_is_noop(store, sync, timers):
    live = sync.subscribe(config.CLIENTS)
    changes = []
    live.add_listener(changes.append)

    timers[0].callback()
    assert live.loading is False
    assert changes == []


def test_snapshots_replace_cache(store, sync):
    live = sync.subscribe(config.CLIENTS)
    assert len(live) == 0

    cid = store.create(config.CLIENTS, {'name': 'Juan Perez'})
    assert live.find(cid)['name'] == 'Juan Perez'

    store.delete(config.CLIENTS, cid)
    assert live.data == []


def test_error_keeps_stale_data(store, sync):
    store.create(config.SALES, {'client': 'Ana', 'date': '2024-01-02T09:00:00'})
    live = sync.subscribe(config.SALES, 'date')
    assert len(live) == 1

    store.fail_subscriptions(config.SALES, StoreError('permiso denegado'))
    assert live.error == 'permiso denegado'
    assert live.loading is False
    assert len(live) == 1

    store.create(config.SALES, {'client': 'Luis', 'date': '2024-01-02T10:00:00'})
    assert live.error is None
    assert [s['client'] for s in live.data] == ['Luis', 'Ana']


def test_close_discards_pending_events(timer_factory, timers):
    dispatcher = QueuedDispatcher()
    store = DocumentStore(dispatcher)
    store.create(config.PRODUCTS, {'name': 'Arena'})
    dispatcher.run_all()

    sync = CollectionSync(store, dispatcher, timer_factory=timer_factory)
    live = sync.subscribe(config.PRODUCTS)
    assert dispatcher.pending

    live.close()
    dispatcher.run_all()

    assert live.active is False
    assert live.data == []
    assert timers[0].cancelled

    store.create(config.PRODUCTS, {'name': 'Grava'})
    dispatcher.run_all()
    assert live.data == []


def test_timer_callback_goes_through_dispatcher(timer_factory, timers):
    dispatcher = QueuedDispatcher()
    store = DocumentStore(dispatcher)
    store.set_online(False)
    live = CollectionSync(store, dispatcher, timer_factory=timer_factory).subscribe(config.EXPENSES)

    timers[0].fire()
    assert live.loading is True
    dispatcher.run_all()
    assert live.loading is False


def test_listener_notified_on_change(store, sync):
    live = sync.subscribe(config.PRODUCTS)
    seen = []
    remove = live.add_listener(lambda view: seen.append(len(view)))

    store.create(config.PRODUCTS, {'name': 'Cal'})
    remove()
    store.create(config.PRODUCTS, {'name': 'Yeso'})

    assert seen == [1]


def test_writes_report_failures_as_results(store, sync):
    result = sync.create(config.EXPENSES, {'amount': 10, 'date': '2024-01-02'})
    assert result['ok'] is True and result['id']

    assert sync.update(config.EXPENSES, 'no-existe', {'amount': 1})['ok'] is False

    store.set_online(False)
    failed = sync.delete(config.EXPENSES, result['id'])
    assert failed['ok'] is False
    assert 'error' in failed


def test_real_timer_expires_on_event_thread():
    dispatcher = EventDispatcher()
    store = DocumentStore(dispatcher)
    store.set_online(False)
    sync = CollectionSync(store, dispatcher, fallback_seconds=0.2)
    try:
        live = sync.subscribe(config.PRODUCTS)
        done = threading.Event()
        threads = []

        def on_change(view):
            threads.append(threading.current_thread().name)
            done.set()

        live.add_listener(on_change)
        assert done.wait(2)
        assert live.loading is False
        assert threads == ['ventas-events']
    finally:
        live.close()
        dispatcher.shutdown()
