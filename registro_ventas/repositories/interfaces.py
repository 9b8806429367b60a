# ==============================================================================
# INTERFACES DE REPOSITORIOS - Colaboradores externos
# ==============================================================================
#
# Los servicios dependen de estos protocolos, NO de implementaciones.
# La implementación incluida (DocumentStore) vive en proceso; un almacén
# remoto solo necesita cumplir el mismo contrato:
#
# 1. ALMACÉN DE DOCUMENTOS CON CLAVE
#    - CRUD por documento, sin transacciones entre documentos
#    - Suscripción a cambios: cada emisión es el conjunto COMPLETO ordenado
#    - Timestamps createdAt/updatedAt asignados por el almacén
#    - decrement(): única actualización condicional disponible
#
# 2. PROVEEDOR DE IDENTIDAD
#    - Credenciales y sesiones, separado de los perfiles (colección users)
#    - Identidades secundarias: crear cuentas sin tocar la sesión actual
#
# Para cambiar de almacén:
# 1. Crear una clase que implemente IDocumentStore
# 2. Cambiar la instanciación en app_container.py
# 3. Los servicios NO requieren cambios
# ==============================================================================

from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

# Callbacks de suscripción
SnapshotCallback = Callable[[List[Dict[str, Any]]], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


@runtime_checkable
class IDocumentStore(Protocol):
    """
    Almacén de documentos con clave y notificación de cambios.

    Todas las operaciones de escritura lanzan StoreError (o subclases)
    ante fallos del backend.
    """

    def subscribe(
        self,
        collection: str,
        order_field: str,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None
    ) -> Unsubscribe:
        """Suscripción continua ordenada desc por order_field."""
        ...

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Obtiene un documento (con 'id') o None."""
        ...

    def list(self, collection: str, order_field: Optional[str] = None) -> List[Dict[str, Any]]:
        """Lectura puntual de la colección completa."""
        ...

    def create(self, collection: str, fields: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        """Crea un documento y retorna su ID."""
        ...

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """Actualiza campos de un documento existente."""
        ...

    def delete(self, collection: str, doc_id: str) -> None:
        """Elimina un documento."""
        ...

    def decrement(
        self,
        collection: str,
        doc_id: str,
        field: str,
        amount: int,
        floor: int = 0
    ) -> int:
        """Resta amount a field solo si el resultado queda >= floor."""
        ...


@runtime_checkable
class IIdentityProvider(Protocol):
    """
    Proveedor de identidad (credenciales y sesiones).
    """

    def sign_in(self, username: str, password: str) -> Optional[str]:
        """Valida credenciales y retorna el uid, o None."""
        ...

    def sign_out(self, uid: str) -> None:
        """Cierra la sesión del uid."""
        ...

    def create_secondary_identity(self, username: str, password: str) -> str:
        """Crea una cuenta en un contexto secundario y retorna su uid."""
        ...

    def delete_identity(self, uid: str) -> None:
        """Elimina las credenciales de un uid."""
        ...
