# ==============================================================================
# SINCRONIZACIÓN DE COLECCIONES - Vistas locales en vivo
# ==============================================================================
# subscribe(colección, campo_orden) retorna una LiveCollection con:
#   - data:    snapshot completo, ordenado desc (reemplazo total, nunca diff)
#   - loading: True hasta la primera emisión, error o fin de la espera
#   - error:   mensaje del último error de entrega (None si no hubo)
#
# ESPERA ACOTADA:
# Si el almacén no responde en SYNC_FALLBACK_SECONDS, loading pasa a False
# y los datos en caché (posiblemente vacíos) se conservan. Una emisión
# posterior sigue reemplazando los datos mientras la vista esté activa.
#
# Todo cambio de estado se aplica en el hilo del EventDispatcher.
# ==============================================================================

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from registro_ventas import config
from registro_ventas.errors import StoreError
from registro_ventas.event_dispatcher import EventDispatcher
from registro_ventas.repositories.interfaces import IDocumentStore

logger = logging.getLogger(__name__)

ChangeListener = Callable[['LiveCollection'], None]


def _daemon_timer(seconds: float, callback: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(seconds, callback)
    timer.daemon = True
    return timer


class LiveCollection:
    """
    Vista local de una colección remota.

    Uso:
        products = sync.subscribe('products_v2')
        if not products.loading:
            mostrar(products.data)
        ...
        products.close()
    """

    def __init__(self, collection: str, order_field: str):
        self.collection = collection
        self.order_field = order_field
        self.data: List[Dict[str, Any]] = []
        self.loading = True
        self.error: Optional[str] = None
        self.active = True
        self._timer = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._listeners: List[ChangeListener] = []
        self._lock = threading.RLock()

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def find(self, doc_id: str) -> Optional[Dict[str, Any]]:
        """Documento del snapshot actual por id."""
        for doc in self.data:
            if doc.get('id') == doc_id:
                return doc
        return None

    def __len__(self) -> int:
        return len(self.data)

    def __iter__(self):
        return iter(list(self.data))

    def add_listener(self, listener: ChangeListener) -> Callable[[], None]:
        """
        Registra un callback invocado tras cada cambio aplicado.

        Returns:
            Función que elimina el listener
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _changed(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception('[SYNC] Error en listener de %s', self.collection)

    # =========================================================================
    # APLICACIÓN DE EVENTOS
    # =========================================================================

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def apply_snapshot(self, documents: List[Dict[str, Any]]) -> None:
        """Reemplaza la caché con el snapshot recibido."""
        with self._lock:
            if not self.active:
                return
            self._cancel_timer()
            self.data = list(documents)
            self.loading = False
            self.error = None
        logger.debug('[SYNC] %s: %d documentos', self.collection, len(documents))
        self._changed()

    def apply_error(self, error: Exception) -> None:
        """Error de entrega: datos en caché intactos, deja de cargar."""
        with self._lock:
            if not self.active:
                return
            self._cancel_timer()
            self.error = str(error)
            self.loading = False
        logger.error('[SYNC] Error en suscripción a %s: %s', self.collection, error)
        self._changed()

    def expire_wait(self) -> None:
        """Fin de la espera sin emisiones: deja de cargar, datos intactos."""
        with self._lock:
            if not self.active or not self.loading:
                return
            self._timer = None
            self.loading = False
        logger.warning('[SYNC] Tiempo de espera agotado para %s', self.collection)
        self._changed()

    # =========================================================================
    # CIERRE
    # =========================================================================

    def close(self) -> None:
        """Cancela la suscripción y el temporizador pendiente."""
        with self._lock:
            if not self.active:
                return
            self.active = False
            self._cancel_timer()
            unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()
        self._listeners.clear()
        logger.debug('[SYNC] Vista de %s cerrada', self.collection)


class CollectionSync:
    """
    Fábrica de vistas en vivo y superficie de escritura sin transacciones.

    Las escrituras retornan {'ok': True, 'id': ...} o {'ok': False, 'error': ...}
    en vez de propagar el fallo. No hay reintentos automáticos.
    """

    def __init__(
        self,
        store: IDocumentStore,
        dispatcher: EventDispatcher,
        fallback_seconds: float = None,
        timer_factory: Callable[[float, Callable[[], None]], Any] = _daemon_timer
    ):
        """
        Args:
            store: Almacén de documentos
            dispatcher: Contexto donde se aplican los eventos
            fallback_seconds: Espera máxima antes de dejar de cargar
            timer_factory: Crea temporizadores con start()/cancel()
        """
        self.store = store
        self.dispatcher = dispatcher
        self.fallback_seconds = (
            config.SYNC_FALLBACK_SECONDS if fallback_seconds is None else fallback_seconds
        )
        self._timer_factory = timer_factory

    def subscribe(self, collection: str, order_field: str = 'createdAt') -> LiveCollection:
        """Abre una vista en vivo ordenada desc por order_field."""
        live = LiveCollection(collection, order_field)

        # El temporizador arranca antes de suscribir: una entrega inmediata
        # debe poder cancelarlo
        live._timer = self._timer_factory(
            self.fallback_seconds,
            lambda: self.dispatcher.submit(live.expire_wait)
        )
        live._timer.start()

        try:
            unsubscribe = self.store.subscribe(
                collection, order_field, live.apply_snapshot, live.apply_error
            )
        except StoreError as e:
            live.apply_error(e)
            return live

        with live._lock:
            if live.active:
                live._unsubscribe = unsubscribe
                return live
        # Cerrada durante la suscripción
        unsubscribe()
        return live

    # =========================================================================
    # ESCRITURAS
    # =========================================================================

    def create(self, collection: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        try:
            doc_id = self.store.create(collection, fields)
        except StoreError as e:
            logger.error('[SYNC] Error al crear en %s: %s', collection, e)
            return {'ok': False, 'error': str(e)}
        return {'ok': True, 'id': doc_id}

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        try:
            self.store.update(collection, doc_id, fields)
        except StoreError as e:
            logger.error('[SYNC] Error al actualizar %s/%s: %s', collection, doc_id, e)
            return {'ok': False, 'error': str(e)}
        return {'ok': True, 'id': doc_id}

    def delete(self, collection: str, doc_id: str) -> Dict[str, Any]:
        try:
            self.store.delete(collection, doc_id)
        except StoreError as e:
            logger.error('[SYNC] Error al eliminar %s/%s: %s', collection, doc_id, e)
            return {'ok': False, 'error': str(e)}
        return {'ok': True, 'id': doc_id}
