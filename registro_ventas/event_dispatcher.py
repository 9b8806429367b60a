# ==============================================================================
# DESPACHADOR DE EVENTOS - Contexto de procesamiento de un solo hilo
# ==============================================================================
# Todas las notificaciones del almacén (snapshots, errores) se aplican en
# UN solo hilo, en el orden en que se encolaron. Así ningún snapshot en
# caché se modifica desde dos hilos a la vez.
#
# immediate=True ejecuta los callbacks en el hilo que llama (tests/scripts).
# ==============================================================================

import logging
import threading
from queue import Queue, Empty
from typing import Callable

logger = logging.getLogger(__name__)


class EventDispatcher:
    """
    Cola de callbacks consumida por un hilo de fondo.

    Uso:
        dispatcher = EventDispatcher()
        dispatcher.submit(callback, arg1, arg2)
        ...
        dispatcher.shutdown()
    """

    def __init__(self, immediate: bool = False, name: str = 'ventas-events'):
        self.immediate = immediate
        self._name = name
        self._queue = Queue()
        self._thread = None
        self._shutdown = False
        self._lock = threading.Lock()

    def _start_worker(self) -> None:
        """Inicia el hilo consumidor si no está corriendo."""
        with self._lock:
            if self._thread is None or not self._thread.is_alive():
                self._thread = threading.Thread(
                    target=self._worker_loop, name=self._name, daemon=True
                )
                self._thread.start()

    def _worker_loop(self) -> None:
        while not self._shutdown:
            try:
                # Esperar con timeout para poder revisar shutdown
                item = self._queue.get(timeout=0.5)
            except Empty:
                continue
            if item is None:  # Señal de shutdown
                self._queue.task_done()
                break
            self._run(*item)
            self._queue.task_done()

    @staticmethod
    def _run(callback: Callable, args: tuple) -> None:
        try:
            callback(*args)
        except Exception:
            # Un consumidor defectuoso no debe detener la entrega a los demás
            logger.exception('[EVENTOS] Error en callback %r', callback)

    def submit(self, callback: Callable, *args) -> None:
        """Encola un callback para ejecutarse en el contexto de eventos."""
        if self._shutdown:
            logger.debug('[EVENTOS] Despachador detenido, evento descartado')
            return
        if self.immediate:
            self._run(callback, args)
            return
        self._start_worker()
        self._queue.put((callback, args))

    def drain(self, timeout: float = 2.0) -> bool:
        """
        Espera a que se procesen todos los eventos encolados.

        Returns:
            True si la cola quedó vacía dentro del timeout
        """
        if self.immediate:
            return True
        done = threading.Event()
        self.submit(done.set)
        return done.wait(timeout)

    def shutdown(self) -> None:
        """Detiene el hilo consumidor (los eventos pendientes se procesan antes)."""
        if self._shutdown:
            return
        thread = self._thread
        if thread is not None and thread.is_alive():
            self._queue.put(None)
            thread.join(timeout=2)
        self._shutdown = True
