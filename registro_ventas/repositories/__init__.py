# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos
# ==============================================================================
# Esta capa encapsula los colaboradores externos: el almacén de documentos
# y el proveedor de identidad. Los servicios dependen de las interfaces.
#
# ESTRUCTURA:
# ├── interfaces.py        → Protocolos (IDocumentStore, IIdentityProvider)
# ├── base.py              → Persistencia JSON/memoria (DictRepository)
# ├── document_store.py    → Colecciones con suscripciones y decrement()
# └── identity_provider.py → Credenciales (werkzeug) y sesiones
#
# CAMBIO DE ALMACÉN:
# 1. Crear una clase que implemente IDocumentStore
# 2. Cambiar la instanciación en app_container.py
# 3. Los services NO requieren cambios (dependen de interfaces)
# ==============================================================================

from registro_ventas.repositories.interfaces import (
    IDocumentStore,
    IIdentityProvider,
    SnapshotCallback,
    ErrorCallback,
    Unsubscribe,
)

from registro_ventas.repositories.base import BaseRepository, DictRepository
from registro_ventas.repositories.document_store import DocumentStore, order_documents
from registro_ventas.repositories.identity_provider import (
    IdentityProvider,
    SecondaryIdentityContext,
    login_key,
)

__all__ = [
    # Interfaces
    'IDocumentStore',
    'IIdentityProvider',
    'SnapshotCallback',
    'ErrorCallback',
    'Unsubscribe',

    # Clases base
    'BaseRepository',
    'DictRepository',

    # Implementaciones
    'DocumentStore',
    'order_documents',
    'IdentityProvider',
    'SecondaryIdentityContext',
    'login_key',
]
