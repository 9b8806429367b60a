# ==============================================================================
# ALMACÉN DE DOCUMENTOS - Colecciones con clave y suscripciones
# ==============================================================================
# Implementación en proceso de IDocumentStore:
#   - Una colección = {id: documento}; persistida en <data_dir>/<col>.json
#     (DictRepository) o solo en memoria si no hay data_dir
#   - subscribe(): cada cambio emite el conjunto COMPLETO ordenado desc
#   - Las emisiones se entregan por el EventDispatcher (un solo hilo)
#   - decrement(): actualización condicional atómica (bajo el lock)
#
# NO hay transacciones entre documentos: cada escritura es independiente.
# ==============================================================================

import copy
import logging
import os
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from registro_ventas.errors import ConflictError, NotFoundError, StoreError
from registro_ventas.event_dispatcher import EventDispatcher
from registro_ventas.repositories.base import DictRepository
from registro_ventas.repositories.interfaces import (
    ErrorCallback,
    SnapshotCallback,
    Unsubscribe,
)
from registro_ventas.performance_logger import profile_function

logger = logging.getLogger(__name__)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    """ID aleatorio de 20 caracteres (estilo almacén de documentos)."""
    return uuid.uuid4().hex[:20]


def order_documents(documents: List[Dict[str, Any]], order_field: str) -> List[Dict[str, Any]]:
    """
    Ordena documentos de forma descendente por order_field.
    Los documentos sin ese campo quedan fuera (igual que un orderBy remoto).
    """
    present = [d for d in documents if d.get(order_field) is not None]
    try:
        return sorted(present, key=lambda d: d[order_field], reverse=True)
    except TypeError:
        # Tipos mezclados en el campo: ordenar por representación textual
        return sorted(present, key=lambda d: str(d[order_field]), reverse=True)


class _Listener:
    """Suscripción registrada sobre una colección."""

    def __init__(self, collection: str, order_field: str,
                 on_snapshot: SnapshotCallback, on_error: Optional[ErrorCallback]):
        self.collection = collection
        self.order_field = order_field
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.active = True


class DocumentStore:
    """
    Almacén de documentos con clave y notificación de cambios.

    Uso:
        store = DocumentStore(EventDispatcher(), data_dir='/ruta/datos')
        pid = store.create('products_v2', {'name': 'Cemento', 'stock': 10})
        unsubscribe = store.subscribe('products_v2', 'createdAt', on_snapshot)
    """

    def __init__(
        self,
        dispatcher: EventDispatcher,
        data_dir: Optional[str] = None,
        clock: Callable[[], str] = _utc_now
    ):
        """
        Args:
            dispatcher: Contexto donde se entregan las emisiones
            data_dir: Directorio de archivos JSON (None = en memoria)
            clock: Fuente de timestamps del "servidor"
        """
        self.dispatcher = dispatcher
        self.data_dir = data_dir or None
        self._clock = clock
        self._lock = threading.RLock()
        self._collections: Dict[str, DictRepository] = {}
        self._listeners: Dict[str, List[_Listener]] = {}
        self._online = True

    # =========================================================================
    # ESTADO DEL BACKEND
    # =========================================================================

    @property
    def online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        """
        Simula la conectividad del backend.
        Sin conexión: las escrituras fallan y no hay emisiones; al volver,
        cada suscripción recibe el snapshot actual.
        """
        with self._lock:
            was_online = self._online
            self._online = online
            if online and not was_online:
                logger.info('[STORE] Backend disponible nuevamente')
                for collection in list(self._listeners):
                    self._notify(collection)
            elif not online and was_online:
                logger.warning('[STORE] Backend no disponible')

    def _ensure_online(self) -> None:
        if not self._online:
            raise StoreError('El almacén no está disponible')

    # =========================================================================
    # ACCESO A COLECCIONES
    # =========================================================================

    def _repo(self, collection: str) -> DictRepository:
        repo = self._collections.get(collection)
        if repo is None:
            path = os.path.join(self.data_dir, f'{collection}.json') if self.data_dir else None
            repo = DictRepository(path)
            self._collections[collection] = repo
        return repo

    @staticmethod
    def _with_id(doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        doc = copy.deepcopy(data)
        doc['id'] = doc_id
        return doc

    def _snapshot(self, collection: str, order_field: str) -> List[Dict[str, Any]]:
        docs = [self._with_id(k, v) for k, v in self._repo(collection).get_all().items()]
        return order_documents(docs, order_field)

    # =========================================================================
    # SUSCRIPCIONES
    # =========================================================================

    def subscribe(
        self,
        collection: str,
        order_field: str,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None
    ) -> Unsubscribe:
        """
        Abre una suscripción continua ordenada desc por order_field.

        La primera emisión (estado actual) se entrega de forma asíncrona
        por el despachador, salvo que el backend esté sin conexión.

        Returns:
            Función que cancela la suscripción
        """
        listener = _Listener(collection, order_field, on_snapshot, on_error)
        with self._lock:
            self._listeners.setdefault(collection, []).append(listener)
            if self._online:
                self._deliver(listener, self._snapshot(collection, order_field))

        def unsubscribe() -> None:
            with self._lock:
                listener.active = False
                listeners = self._listeners.get(collection, [])
                if listener in listeners:
                    listeners.remove(listener)

        return unsubscribe

    def fail_subscriptions(self, collection: str, error: Exception) -> None:
        """
        Entrega un error a todas las suscripciones de la colección
        (p. ej. permisos revocados). Las suscripciones siguen registradas.
        """
        with self._lock:
            for listener in list(self._listeners.get(collection, [])):
                if listener.on_error is not None:
                    self.dispatcher.submit(self._emit_error, listener, error)

    def _deliver(self, listener: _Listener, snapshot: List[Dict[str, Any]]) -> None:
        self.dispatcher.submit(self._emit, listener, snapshot)

    @staticmethod
    def _emit(listener: _Listener, snapshot: List[Dict[str, Any]]) -> None:
        # La suscripción pudo cancelarse mientras el evento esperaba en cola
        if listener.active:
            listener.on_snapshot(snapshot)

    @staticmethod
    def _emit_error(listener: _Listener, error: Exception) -> None:
        if listener.active:
            listener.on_error(error)

    def _notify(self, collection: str) -> None:
        """Emite el snapshot actual a cada suscriptor de la colección."""
        if not self._online:
            return
        for listener in list(self._listeners.get(collection, [])):
            self._deliver(listener, self._snapshot(collection, listener.order_field))

    # =========================================================================
    # LECTURAS
    # =========================================================================

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Obtiene un documento (con 'id') o None si no existe."""
        with self._lock:
            self._ensure_online()
            data = self._repo(collection).get_by_id(doc_id)
            return self._with_id(doc_id, data) if data is not None else None

    def list(self, collection: str, order_field: Optional[str] = None) -> List[Dict[str, Any]]:
        """Lectura puntual de toda la colección (ordenada si se indica campo)."""
        with self._lock:
            self._ensure_online()
            if order_field:
                return self._snapshot(collection, order_field)
            return [self._with_id(k, v) for k, v in self._repo(collection).get_all().items()]

    # =========================================================================
    # ESCRITURAS
    # =========================================================================

    @profile_function(name='Almacén: crear documento')
    def create(self, collection: str, fields: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        """
        Crea un documento. Asigna createdAt (timestamp del servidor).

        Returns:
            ID del documento creado
        """
        with self._lock:
            self._ensure_online()
            doc_id = doc_id or _new_id()
            data = {k: v for k, v in fields.items() if k != 'id'}
            data['createdAt'] = self._clock()
            self._repo(collection).update(doc_id, data)
            self._notify(collection)
        logger.debug('[STORE] %s/%s creado', collection, doc_id)
        return doc_id

    @profile_function(name='Almacén: actualizar documento')
    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """
        Actualiza campos de un documento existente. Asigna updatedAt.

        Raises:
            NotFoundError: Si el documento no existe
        """
        with self._lock:
            self._ensure_online()
            repo = self._repo(collection)
            data = repo.get_by_id(doc_id)
            if data is None:
                raise NotFoundError(f'{collection}/{doc_id} no existe')
            data.update({k: v for k, v in fields.items() if k != 'id'})
            data['updatedAt'] = self._clock()
            repo.update(doc_id, data)
            self._notify(collection)

    @profile_function(name='Almacén: eliminar documento')
    def delete(self, collection: str, doc_id: str) -> None:
        """Elimina un documento (no falla si ya no existía)."""
        with self._lock:
            self._ensure_online()
            self._repo(collection).delete(doc_id)
            self._notify(collection)

    @profile_function(name='Almacén: descuento condicional')
    def decrement(
        self,
        collection: str,
        doc_id: str,
        field: str,
        amount: int,
        floor: int = 0
    ) -> int:
        """
        Resta amount a un campo numérico SOLO si el resultado queda >= floor.
        Leer-comparar-escribir ocurre bajo el lock del almacén.

        Returns:
            Nuevo valor del campo

        Raises:
            NotFoundError: Si el documento no existe
            ConflictError: Si el descuento dejaría el campo bajo floor
        """
        with self._lock:
            self._ensure_online()
            repo = self._repo(collection)
            data = repo.get_by_id(doc_id)
            if data is None:
                raise NotFoundError(f'{collection}/{doc_id} no existe')
            current = int(data.get(field, 0) or 0)
            new_value = current - amount
            if new_value < floor:
                raise ConflictError(
                    f'{field} insuficiente en {collection}/{doc_id}: '
                    f'actual {current}, solicitado {amount}'
                )
            data[field] = new_value
            data['updatedAt'] = self._clock()
            repo.update(doc_id, data)
            self._notify(collection)
            return new_value
