# ==============================================================================
# CAPA DE SERVICIOS - Lógica de negocio
# ==============================================================================
# Esta capa contiene TODA la lógica de negocio de la aplicación.
#
# PRINCIPIOS:
# 1. Los servicios orquestan operaciones sobre el almacén de documentos
# 2. Aplican reglas de negocio y validaciones
# 3. Las rutas (controllers) solo llaman a servicios
# 4. Los servicios NO conocen la implementación del almacén
#
# ESTRUCTURA:
# ├── collection_sync.py  → Vistas en vivo con espera acotada
# ├── sale_service.py     → Saga de registro de venta, edición, eliminación
# ├── history_service.py  → Agrupación por día, filtros, resúmenes
# ├── session_service.py  → Contexto de sesión (usuario y rol)
# ├── user_service.py     → Cuentas y roles
# ├── product_service.py  → Catálogo de productos
# ├── client_service.py   → Clientes
# ├── expense_service.py  → Gastos
# ├── export_service.py   → Reportes XLSX
# └── audit_service.py    → Logs de actividad
# ==============================================================================

from registro_ventas.services.audit_service import AuditService
from registro_ventas.services.collection_sync import CollectionSync, LiveCollection
from registro_ventas.services.session_service import SessionContext, SessionService, require_admin
from registro_ventas.services.sale_service import SagaLog, SaleTransactionCoordinator
from registro_ventas.services.history_service import HistoryAggregator
from registro_ventas.services.user_service import UserService
from registro_ventas.services.product_service import ProductService
from registro_ventas.services.client_service import ClientService
from registro_ventas.services.expense_service import ExpenseService
from registro_ventas.services.export_service import ExportService, XLSX_MIMETYPE

__all__ = [
    'AuditService',
    'CollectionSync',
    'LiveCollection',
    'SessionContext',
    'SessionService',
    'require_admin',
    'SagaLog',
    'SaleTransactionCoordinator',
    'HistoryAggregator',
    'UserService',
    'ProductService',
    'ClientService',
    'ExpenseService',
    'ExportService',
    'XLSX_MIMETYPE',
]
