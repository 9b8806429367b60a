# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos del sistema
# ==============================================================================
# Este módulo define todas las entidades del dominio usando dataclasses.
# Beneficios:
#   - Type hints para mejor documentación y autocompletado
#   - Conversión explícita desde/hacia documentos del almacén
#   - Independiente del mecanismo de persistencia (memoria, JSON, remoto)
# ==============================================================================

from .entities import (
    # Usuarios
    UserAccount,
    UserRole,

    # Productos y clientes
    Product,
    Client,

    # Ventas
    Sale,
    PaymentStatus,
    normalize_payment_status,
    default_unit_for,
    SALE_UNITS,

    # Gastos
    Expense,
    EXPENSE_CATEGORIES,
    DEFAULT_EXPENSE_CATEGORY,

    # Enumeraciones abiertas
    CategoryRegistry,

    # Auditoría
    AuditLog,
    AuditType,
)

__all__ = [
    # Usuarios
    'UserAccount',
    'UserRole',

    # Productos y clientes
    'Product',
    'Client',

    # Ventas
    'Sale',
    'PaymentStatus',
    'normalize_payment_status',
    'default_unit_for',
    'SALE_UNITS',

    # Gastos
    'Expense',
    'EXPENSE_CATEGORIES',
    'DEFAULT_EXPENSE_CATEGORY',

    # Enumeraciones abiertas
    'CategoryRegistry',

    # Auditoría
    'AuditLog',
    'AuditType',
]
