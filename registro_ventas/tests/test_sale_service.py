import threading

import pytest

from registro_ventas import config
from registro_ventas.errors import PermissionDeniedError, StoreError
from registro_ventas.services import SaleTransactionCoordinator, SessionContext


ADMIN = SessionContext(user_id='u-admin', username='admin', role='admin')
REGISTRAR = SessionContext(user_id='u-reg', username='vendedor', role='registrar')


def step_names(result):
    return [(s['step'], s['status']) for s in result['steps']]


# ==============================================================================
# REGISTRO
# ==============================================================================

def test_register_sale_deducts_stock_and_copies_product(store, coordinator, product):
    result = coordinator.register_sale(product, 10, 'Juan Perez', 'debt', clients=[])

    assert result['ok'] is True
    assert result['total'] == 255.0
    assert result['new_stock'] == 40
    assert result['client_created'] is True
    assert step_names(result) == [
        ('resolve_client', 'ok'), ('build_sale', 'ok'),
        ('persist_sale', 'ok'), ('deduct_stock', 'ok'),
    ]

    sale = store.get(config.SALES, result['sale_id'])
    assert sale['product'] == 'Cemento Sol'
    assert sale['category'] == 'Construcción'
    assert sale['price'] == 25.5
    assert sale['quantity'] == 10
    assert sale['unit'] == 'U'
    assert sale['paymentStatus'] == 'debt'
    assert sale['date'] == '2024-01-02T10:30:00'
    assert 'stockPending' not in sale
    assert store.get(config.PRODUCTS, product['id'])['stock'] == 40


def test_sale_keeps_product_copy_after_product_changes(store, coordinator, product):
    result = coordinator.register_sale(product, 1, 'Ana', clients=[])
    store.update(config.PRODUCTS, product['id'], {'name': 'Cemento Andino', 'price': 30})
    sale = store.get(config.SALES, result['sale_id'])
    assert sale['product'] == 'Cemento Sol'
    assert sale['price'] == 25.5


def test_missing_payment_status_defaults_to_paid(store, coordinator, product):
    result = coordinator.register_sale(product, 1, 'Ana', None, clients=[])
    assert store.get(config.SALES, result['sale_id'])['paymentStatus'] == 'paid'


def test_molido_products_default_to_tonnes(store, coordinator):
    pid = store.create(config.PRODUCTS, {'name': 'Maíz Molido', 'price': 100, 'stock': 5})
    result = coordinator.register_sale(store.get(config.PRODUCTS, pid), 2, 'Ana', clients=[])
    assert store.get(config.SALES, result['sale_id'])['unit'] == 'TN'


def test_new_units_are_accepted(store, coordinator, product):
    result = coordinator.register_sale(product, 2, 'Ana', unit='bolsa', clients=[])
    assert store.get(config.SALES, result['sale_id'])['unit'] == 'BOLSA'
    assert 'BOLSA' in coordinator.units


@pytest.mark.parametrize('quantity, client_name, status', [
    (0, 'Ana', 'paid'),
    (-3, 'Ana', 'paid'),
    ('abc', 'Ana', 'paid'),
    (2.5, 'Ana', 'paid'),
    (51, 'Ana', 'paid'),
    (1, '   ', 'paid'),
    (1, None, 'paid'),
    (1, 123, 'paid'),
    (1, ['Ana'], 'paid'),
    (1, 'Ana', 'fiado'),
])
def test_validation_happens_before_any_write(store, coordinator, product, quantity, client_name, status):
    result = coordinator.register_sale(product, quantity, client_name, status, clients=[])

    assert result['ok'] is False
    assert result['kind'] == 'validation'
    assert result['steps'] == []
    assert store.list(config.SALES) == []
    assert store.list(config.CLIENTS) == []
    assert store.get(config.PRODUCTS, product['id'])['stock'] == 50


def test_insufficient_stock_message(coordinator, product):
    result = coordinator.register_sale(product, 60, 'Ana', clients=[])
    assert result['error'] == 'Solo hay 50 unidades disponibles.'


def test_no_product_selected(coordinator):
    result = coordinator.register_sale(None, 1, 'Ana', clients=[])
    assert result['kind'] == 'validation'


# ==============================================================================
# CLIENTES
# ==============================================================================

def test_client_reused_case_insensitively(store, coordinator, product):
    first = coordinator.register_sale(product, 1, 'Juan Perez')
    second = coordinator.register_sale(product, 1, 'juan perez')

    assert first['client_created'] is True
    assert second['client_created'] is False
    assert second['client_id'] == first['client_id']
    assert len(store.list(config.CLIENTS)) == 1


def test_client_reused_from_snapshot(store, coordinator, product):
    cid = store.create(config.CLIENTS, {'name': 'Maria Lopez', 'firstName': 'Maria', 'lastName': 'Lopez'})
    result = coordinator.register_sale(product, 1, 'MARIA LOPEZ', clients=store.list(config.CLIENTS))
    assert result['client_id'] == cid
    assert result['client_created'] is False


def test_client_creation_failure_aborts_sale(flaky_store):
    pid = flaky_store.create(config.PRODUCTS, {'name': 'Arena', 'price': 10, 'stock': 5})
    flaky_store.fail('create', config.CLIENTS)
    coordinator = SaleTransactionCoordinator(flaky_store)

    result = coordinator.register_sale(flaky_store.get(config.PRODUCTS, pid), 1, 'Nuevo', clients=[])

    assert result['ok'] is False
    assert result['kind'] == 'store'
    assert step_names(result) == [('resolve_client', 'failed')]
    assert flaky_store.list(config.SALES) == []
    assert flaky_store.get(config.PRODUCTS, pid)['stock'] == 5


# ==============================================================================
# CONCURRENCIA Y COMPENSACIÓN
# ==============================================================================

def test_stale_snapshot_overdraw_is_compensated(store, coordinator):
    pid = store.create(config.PRODUCTS, {'name': 'Ladrillo', 'price': 2, 'stock': 10})
    snapshot = store.get(config.PRODUCTS, pid)

    first = coordinator.register_sale(snapshot, 7, 'Ana', clients=[])
    second = coordinator.register_sale(snapshot, 5, 'Ana')

    assert first['ok'] is True
    assert second['ok'] is False
    assert second['kind'] == 'conflict'
    assert second['compensated'] is True
    assert ('compensate_sale', 'ok') in step_names(second)
    assert store.get(config.PRODUCTS, pid)['stock'] == 3
    assert len(store.list(config.SALES)) == 1


def test_concurrent_sales_never_oversell(store):
    coordinator = SaleTransactionCoordinator(store)
    pid = store.create(config.PRODUCTS, {'name': 'Ladrillo', 'price': 2, 'stock': 10})
    store.create(config.CLIENTS, {'name': 'Ana'})
    snapshot = store.get(config.PRODUCTS, pid)
    clients = store.list(config.CLIENTS)

    results = []
    barrier = threading.Barrier(2)

    def sell():
        barrier.wait()
        results.append(coordinator.register_sale(snapshot, 7, 'Ana', clients=clients))

    threads = [threading.Thread(target=sell) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(r['ok'] for r in results) == [False, True]
    assert store.get(config.PRODUCTS, pid)['stock'] == 3
    assert len(store.list(config.SALES)) == 1


def test_failed_compensation_marks_stock_pending(flaky_store):
    pid = flaky_store.create(config.PRODUCTS, {'name': 'Arena', 'price': 10, 'stock': 5})
    flaky_store.fail('decrement', config.PRODUCTS, StoreError('red caída'))
    flaky_store.fail('delete', config.SALES)
    coordinator = SaleTransactionCoordinator(flaky_store)

    result = coordinator.register_sale(flaky_store.get(config.PRODUCTS, pid), 2, 'Ana', clients=[])

    assert result['ok'] is False
    assert result['kind'] == 'partial'
    assert result['compensated'] is False
    assert step_names(result)[-3:] == [
        ('deduct_stock', 'failed'),
        ('compensate_sale', 'failed'),
        ('mark_stock_pending', 'ok'),
    ]
    sale = flaky_store.get(config.SALES, result['sale_id'])
    assert sale['stockPending'] is True
    assert flaky_store.get(config.PRODUCTS, pid)['stock'] == 5


def test_store_failure_on_deduct_is_compensated(flaky_store):
    pid = flaky_store.create(config.PRODUCTS, {'name': 'Arena', 'price': 10, 'stock': 5})
    flaky_store.fail('decrement', config.PRODUCTS)
    coordinator = SaleTransactionCoordinator(flaky_store)

    result = coordinator.register_sale(flaky_store.get(config.PRODUCTS, pid), 2, 'Ana', clients=[])

    assert result['kind'] == 'store'
    assert result['compensated'] is True
    assert flaky_store.list(config.SALES) == []
    # el cliente creado no se revierte
    assert len(flaky_store.list(config.CLIENTS)) == 1


def test_persist_failure_writes_nothing_else(flaky_store):
    pid = flaky_store.create(config.PRODUCTS, {'name': 'Arena', 'price': 10, 'stock': 5})
    flaky_store.fail('create', config.SALES)
    coordinator = SaleTransactionCoordinator(flaky_store)

    result = coordinator.register_sale(flaky_store.get(config.PRODUCTS, pid), 2, 'Ana', clients=[])

    assert result['kind'] == 'store'
    assert step_names(result)[-1] == ('persist_sale', 'failed')
    assert result['failed_step'] == 'persist_sale'
    assert flaky_store.get(config.PRODUCTS, pid)['stock'] == 5


# ==============================================================================
# EDICIÓN, ESTADO DE PAGO Y ELIMINACIÓN
# ==============================================================================

def test_edit_recomputes_total_without_touching_stock(store, coordinator):
    pid = store.create(config.PRODUCTS, {'name': 'Arena', 'price': 10, 'stock': 20})
    sale_id = coordinator.register_sale(store.get(config.PRODUCTS, pid), 2, 'Ana', clients=[])['sale_id']

    result = coordinator.edit_sale(sale_id, quantity=3, price=10)

    assert result['ok'] is True
    assert result['total'] == 30
    assert store.get(config.SALES, sale_id)['total'] == 30
    assert store.get(config.PRODUCTS, pid)['stock'] == 18


def test_edit_rejects_invalid_values(store, coordinator, product):
    sale_id = coordinator.register_sale(product, 2, 'Ana', clients=[])['sale_id']

    assert coordinator.edit_sale(sale_id, price=-1)['kind'] == 'validation'
    assert coordinator.edit_sale(sale_id, quantity=0)['kind'] == 'validation'
    assert coordinator.edit_sale(sale_id, client=' ')['kind'] == 'validation'
    assert coordinator.edit_sale(sale_id, client=7)['kind'] == 'validation'
    assert store.get(config.SALES, sale_id)['client'] == 'Ana'
    assert coordinator.edit_sale('no-existe', quantity=1)['kind'] == 'not_found'


def test_toggle_payment_status_treats_missing_as_paid(store, coordinator):
    sale_id = store.create(config.SALES, {'client': 'Ana', 'total': 10, 'date': '2024-01-02T10:00:00'})
    sale = store.get(config.SALES, sale_id)

    result = coordinator.toggle_payment_status(sale, 'admin')
    assert result['payment_status'] == 'debt'

    result = coordinator.toggle_payment_status(store.get(config.SALES, sale_id), 'admin')
    assert result['payment_status'] == 'paid'


class SpyStore:
    def __init__(self):
        self.calls = []

    def delete(self, collection, doc_id):
        self.calls.append(('delete', collection, doc_id))


def test_non_admin_delete_is_rejected_before_store_call():
    spy = SpyStore()
    coordinator = SaleTransactionCoordinator(spy)

    with pytest.raises(PermissionDeniedError):
        coordinator.delete_sale('s1', REGISTRAR)
    with pytest.raises(PermissionDeniedError):
        coordinator.delete_sale('s1', None)
    assert spy.calls == []

    assert coordinator.delete_sale('s1', ADMIN)['ok'] is True
    assert spy.calls == [('delete', config.SALES, 's1')]


def test_admin_delete_does_not_restore_stock(store, coordinator, product):
    sale_id = coordinator.register_sale(product, 5, 'Ana', clients=[])['sale_id']
    assert coordinator.delete_sale(sale_id, ADMIN)['ok'] is True
    assert store.get(config.SALES, sale_id) is None
    assert store.get(config.PRODUCTS, product['id'])['stock'] == 45


def test_successful_sale_is_audited(store, coordinator, audit, product):
    coordinator.register_sale(product, 1, 'Ana', clients=[], user='admin')
    types = [log['type'] for log in audit.get_recent_logs()]
    assert 'VENTA' in types
    assert 'STOCK' in types
    assert 'CLIENTE' in types
