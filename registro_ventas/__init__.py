# ==============================================================================
# REGISTRO DE VENTAS
# ==============================================================================
# Registro de ventas, gastos, productos y clientes sobre un almacén de
# documentos compartido, con vistas en vivo y saga de registro de venta.
#
# CAPAS:
# ├── models/        → Entidades (dataclasses)
# ├── repositories/  → Almacén de documentos e identidad
# ├── services/      → Lógica de negocio
# ├── app_container  → Inyección de dependencias
# └── main           → API JSON (Flask)
# ==============================================================================

__version__ = '1.0.0'
