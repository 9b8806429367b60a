import threading

import pytest

from registro_ventas import config
from registro_ventas.errors import ConflictError, NotFoundError, StoreError
from registro_ventas.event_dispatcher import EventDispatcher
from registro_ventas.repositories import DocumentStore, order_documents


def test_create_get_update_delete(store):
    pid = store.create(config.PRODUCTS, {'name': 'Arena', 'stock': 5})
    doc = store.get(config.PRODUCTS, pid)
    assert doc['id'] == pid
    assert doc['name'] == 'Arena'
    assert doc['createdAt']

    store.update(config.PRODUCTS, pid, {'stock': 8})
    doc = store.get(config.PRODUCTS, pid)
    assert doc['stock'] == 8
    assert doc['updatedAt']

    store.delete(config.PRODUCTS, pid)
    assert store.get(config.PRODUCTS, pid) is None
    # eliminar algo inexistente no falla
    store.delete(config.PRODUCTS, pid)


def test_update_missing_document_raises_not_found(store):
    with pytest.raises(NotFoundError):
        store.update(config.SALES, 'no-existe', {'total': 1})


def test_create_with_explicit_id(store):
    uid = store.create(config.USERS, {'username': 'ana', 'role': 'admin'}, doc_id='uid-1')
    assert uid == 'uid-1'
    assert store.get(config.USERS, 'uid-1')['username'] == 'ana'


def test_decrement_never_goes_negative(store):
    pid = store.create(config.PRODUCTS, {'name': 'Ladrillo', 'stock': 5})
    assert store.decrement(config.PRODUCTS, pid, 'stock', 3) == 2
    with pytest.raises(ConflictError):
        store.decrement(config.PRODUCTS, pid, 'stock', 3)
    assert store.get(config.PRODUCTS, pid)['stock'] == 2


def test_decrement_missing_document(store):
    with pytest.raises(NotFoundError):
        store.decrement(config.PRODUCTS, 'nada', 'stock', 1)


def test_concurrent_decrements_are_conditional():
    store = DocumentStore(EventDispatcher(immediate=True))
    pid = store.create(config.PRODUCTS, {'name': 'Yeso', 'stock': 5})
    results = []
    lock = threading.Lock()

    def worker():
        try:
            store.decrement(config.PRODUCTS, pid, 'stock', 1)
            outcome = 'ok'
        except ConflictError:
            outcome = 'conflict'
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count('ok') == 5
    assert results.count('conflict') == 5
    assert store.get(config.PRODUCTS, pid)['stock'] == 0


def test_offline_store_rejects_reads_and_writes(store):
    store.set_online(False)
    with pytest.raises(StoreError):
        store.create(config.EXPENSES, {'amount': 10})
    with pytest.raises(StoreError):
        store.list(config.EXPENSES)
    store.set_online(True)
    assert store.list(config.EXPENSES) == []


def test_subscription_receives_full_ordered_snapshot(store):
    received = []
    store.subscribe(config.SALES, 'date', received.append)
    assert received == [[]]

    store.create(config.SALES, {'client': 'A', 'date': '2024-01-01T10:00:00'})
    store.create(config.SALES, {'client': 'B', 'date': '2024-01-03T10:00:00'})
    store.create(config.SALES, {'client': 'sin fecha'})

    latest = received[-1]
    assert [d['client'] for d in latest] == ['B', 'A']


def test_unsubscribe_stops_emissions(store):
    received = []
    unsubscribe = store.subscribe(config.CLIENTS, 'createdAt', received.append)
    unsubscribe()
    store.create(config.CLIENTS, {'name': 'Juan'})
    assert len(received) == 1


def test_persistence_in_data_dir(tmp_path):
    dispatcher = EventDispatcher(immediate=True)
    store = DocumentStore(dispatcher, data_dir=str(tmp_path))
    pid = store.create(config.PRODUCTS, {'name': 'Cal', 'stock': 3})
    assert (tmp_path / f'{config.PRODUCTS}.json').exists()

    reopened = DocumentStore(dispatcher, data_dir=str(tmp_path))
    assert reopened.get(config.PRODUCTS, pid)['name'] == 'Cal'


def test_order_documents_excludes_missing_field():
    docs = [{'id': '1', 'date': '2024-01-01'}, {'id': '2'}, {'id': '3', 'date': '2024-02-01'}]
    assert [d['id'] for d in order_documents(docs, 'date')] == ['3', '1']
