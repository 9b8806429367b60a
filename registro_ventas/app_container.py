# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS - Inyección de servicios
# ==============================================================================
# Este módulo proporciona una forma centralizada de obtener instancias
# de colaboradores y servicios. Facilita:
#   - Inyección de dependencias
#   - Testing (almacén en memoria + eventos inmediatos)
#   - Cambiar de almacén sin tocar servicios
#
# ═══════════════════════════════════════════════════════════════════════════════
# CAMBIO DE ALMACÉN
# ═══════════════════════════════════════════════════════════════════════════════
# 1. Crear una clase que implemente IDocumentStore (repositories/interfaces.py)
# 2. Cambiar la instanciación en la propiedad `store`
# 3. Los servicios NO requieren cambios
# ==============================================================================

import logging
import threading
from typing import Dict, Optional, Tuple

from registro_ventas import config
from registro_ventas.event_dispatcher import EventDispatcher

# ═══════════════════════════════════════════════════════════════════════════════
# COLABORADORES EXTERNOS - Almacén e identidad
# ═══════════════════════════════════════════════════════════════════════════════
from registro_ventas.repositories import DocumentStore, IdentityProvider

# ═══════════════════════════════════════════════════════════════════════════════
# SERVICIOS - Capa de lógica de negocio
# ═══════════════════════════════════════════════════════════════════════════════
from registro_ventas.services import (
    AuditService,
    ClientService,
    CollectionSync,
    ExpenseService,
    ExportService,
    HistoryAggregator,
    LiveCollection,
    ProductService,
    SaleTransactionCoordinator,
    SessionService,
    UserService,
)

logger = logging.getLogger(__name__)

# Orden de cada vista en vivo (desc)
VIEW_ORDER = {
    config.PRODUCTS: 'createdAt',
    config.CLIENTS: 'createdAt',
    config.SALES: 'date',
    config.EXPENSES: 'date',
}


class AppContainer:
    """
    Contenedor de dependencias de la aplicación.

    Implementa el patrón Singleton para asegurar una única instancia
    de cada colaborador y servicio.

    Uso:
        container = AppContainer(data_dir='/ruta/datos')
        result = container.sale_coordinator.register_sale(...)
        products = container.view(config.PRODUCTS)
    """

    _instance: Optional['AppContainer'] = None

    def __new__(cls, data_dir: str = None, immediate_events: bool = False):
        """Singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, data_dir: str = None, immediate_events: bool = False):
        """
        Inicializa el contenedor.

        Args:
            data_dir: Directorio de datos JSON ('' = en memoria;
                      None = config.DATA_DIR)
            immediate_events: Entregar eventos en el hilo que llama (tests)
        """
        if self._initialized:
            return

        self._data_dir = config.DATA_DIR if data_dir is None else data_dir
        self._immediate_events = immediate_events

        self._dispatcher: Optional[EventDispatcher] = None
        self._store: Optional[DocumentStore] = None
        self._identity: Optional[IdentityProvider] = None
        self._sync: Optional[CollectionSync] = None
        self._views: Dict[Tuple[str, str], LiveCollection] = {}
        self._views_lock = threading.RLock()

        self._audit_service: Optional[AuditService] = None
        self._session_service: Optional[SessionService] = None
        self._user_service: Optional[UserService] = None
        self._sale_coordinator: Optional[SaleTransactionCoordinator] = None
        self._history: Optional[HistoryAggregator] = None
        self._product_service: Optional[ProductService] = None
        self._client_service: Optional[ClientService] = None
        self._expense_service: Optional[ExpenseService] = None
        self._export_service: Optional[ExportService] = None
        self._bootstrapped = False

        self._initialized = True

    # =========================================================================
    # COLABORADORES
    # =========================================================================

    @property
    def dispatcher(self) -> EventDispatcher:
        """Contexto único de eventos (singleton)."""
        if self._dispatcher is None:
            self._dispatcher = EventDispatcher(immediate=self._immediate_events)
        return self._dispatcher

    @property
    def store(self) -> DocumentStore:
        """Almacén de documentos (singleton)."""
        if self._store is None:
            self._store = DocumentStore(self.dispatcher, data_dir=self._data_dir or None)
        return self._store

    @property
    def identity(self) -> IdentityProvider:
        """Proveedor de identidad (singleton)."""
        if self._identity is None:
            self._identity = IdentityProvider(self._data_dir or None)
        return self._identity

    @property
    def sync(self) -> CollectionSync:
        if self._sync is None:
            self._sync = CollectionSync(self.store, self.dispatcher)
        return self._sync

    def view(self, collection: str, order_field: str = None) -> LiveCollection:
        """Vista en vivo compartida de una colección (se abre una sola vez)."""
        order_field = order_field or VIEW_ORDER.get(collection, 'createdAt')
        key = (collection, order_field)
        with self._views_lock:
            live = self._views.get(key)
            if live is None or not live.active:
                live = self.sync.subscribe(collection, order_field)
                self._views[key] = live
            return live

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    @property
    def audit_service(self) -> AuditService:
        """Servicio de auditoría (singleton)."""
        if self._audit_service is None:
            self._audit_service = AuditService(self.store)
        return self._audit_service

    @property
    def session_service(self) -> SessionService:
        if self._session_service is None:
            self._session_service = SessionService(self.identity, self.store, self.audit_service)
        return self._session_service

    @property
    def user_service(self) -> UserService:
        """Servicio de usuarios (singleton)."""
        if self._user_service is None:
            self._user_service = UserService(
                self.identity,
                self.store,
                self.session_service,
                self.audit_service
            )
        return self._user_service

    @property
    def sale_coordinator(self) -> SaleTransactionCoordinator:
        """Coordinador de la saga de ventas (singleton)."""
        if self._sale_coordinator is None:
            self._sale_coordinator = SaleTransactionCoordinator(self.store, self.audit_service)
        return self._sale_coordinator

    @property
    def history(self) -> HistoryAggregator:
        if self._history is None:
            self._history = HistoryAggregator()
        return self._history

    @property
    def product_service(self) -> ProductService:
        if self._product_service is None:
            self._product_service = ProductService(self.sync, self.audit_service)
        return self._product_service

    @property
    def client_service(self) -> ClientService:
        if self._client_service is None:
            self._client_service = ClientService(self.sync, self.audit_service)
        return self._client_service

    @property
    def expense_service(self) -> ExpenseService:
        if self._expense_service is None:
            self._expense_service = ExpenseService(self.sync, self.audit_service)
        return self._expense_service

    @property
    def export_service(self) -> ExportService:
        if self._export_service is None:
            self._export_service = ExportService(self.history)
        return self._export_service

    # =========================================================================
    # UTILIDADES
    # =========================================================================

    def bootstrap(self) -> None:
        """
        Crea el administrador inicial si no hay usuarios y abre las vistas
        en vivo, esperando su primera instantánea (una vez).
        """
        with self._views_lock:
            if self._bootstrapped:
                return
            self.user_service.ensure_admin(config.ADMIN_USERNAME, config.ADMIN_PASSWORD)
            for collection in VIEW_ORDER:
                self.view(collection)
            if not self.dispatcher.drain():
                logger.warning("Vistas en vivo sin primera instantánea tras el arranque")
            self._bootstrapped = True

    def reset(self) -> None:
        """
        Cierra vistas y el despachador y reinicia todas las instancias.
        Útil para testing o para recargar datos.
        """
        for live in self._views.values():
            live.close()
        self._views = {}
        if self._dispatcher is not None:
            self._dispatcher.shutdown()

        self._dispatcher = None
        self._store = None
        self._identity = None
        self._sync = None

        self._audit_service = None
        self._session_service = None
        self._user_service = None
        self._sale_coordinator = None
        self._history = None
        self._product_service = None
        self._client_service = None
        self._expense_service = None
        self._export_service = None
        self._bootstrapped = False

    @classmethod
    def get_instance(cls, data_dir: str = None) -> 'AppContainer':
        """
        Obtiene la instancia singleton del contenedor.

        Args:
            data_dir: Directorio de datos (solo se usa en la primera llamada)
        """
        if cls._instance is None:
            return cls(data_dir)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Elimina la instancia singleton (útil para tests)."""
        if cls._instance is not None:
            cls._instance.reset()
            cls._instance = None


# Función helper para obtener el contenedor global
def get_container(data_dir: str = None) -> AppContainer:
    """
    Obtiene el contenedor de dependencias global.

    Uso:
        from registro_ventas.app_container import get_container
        container = get_container()
    """
    return AppContainer.get_instance(data_dir)
