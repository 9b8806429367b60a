import threading

import pytest

from registro_ventas import config
from registro_ventas.event_dispatcher import EventDispatcher
from registro_ventas.performance_logger import (
    ENABLE_PROFILING,
    get_function_stats,
    profile_function,
    reset_stats,
)


def test_immediate_dispatcher_runs_inline():
    calls = []
    EventDispatcher(immediate=True).submit(calls.append, 1)
    assert calls == [1]


def test_events_run_in_order_on_one_thread():
    dispatcher = EventDispatcher()
    seen = []
    try:
        for i in range(20):
            dispatcher.submit(lambda n=i: seen.append((n, threading.current_thread().name)))
        assert dispatcher.drain()
    finally:
        dispatcher.shutdown()

    assert [n for n, _ in seen] == list(range(20))
    assert {name for _, name in seen} == {'ventas-events'}


def test_failing_callback_does_not_stop_delivery():
    dispatcher = EventDispatcher(immediate=True)
    seen = []
    dispatcher.submit(lambda: 1 / 0)
    dispatcher.submit(seen.append, 'ok')
    assert seen == ['ok']


def test_submit_after_shutdown_is_dropped():
    dispatcher = EventDispatcher()
    dispatcher.shutdown()
    seen = []
    dispatcher.submit(seen.append, 'tarde')
    assert seen == []


@pytest.mark.skipif(not ENABLE_PROFILING, reason='profiling desactivado')
def test_profiled_store_operations_are_counted(store):
    reset_stats()
    store.create(config.PRODUCTS, {'name': 'Arena', 'stock': 3})

    @profile_function(name='prueba')
    def noop():
        return 'ok'

    assert noop() == 'ok'
    stats = get_function_stats()
    assert stats['Almacén: crear documento']['calls'] == 1
    assert stats['prueba']['calls'] == 1
