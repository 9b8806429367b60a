# ==============================================================================
# CONFIGURACIÓN - Variables de entorno y constantes del sistema
# ==============================================================================
# Todas las opciones se leen UNA vez al importar el módulo.
# Para cambiar un valor en producción definir la variable de entorno:
#   export VENTAS_SECRET_KEY="clave_larga_y_aleatoria"
#   export VENTAS_DATA_DIR="/srv/registro_ventas/data"
# ==============================================================================

import logging
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'si', 'sí')


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


# ═══════════════════════════════════════════════════════════════════════════════
# MODO PRODUCCIÓN
# ═══════════════════════════════════════════════════════════════════════════════
# True = Sin usuarios demo, advertencias si falta la clave secreta
PRODUCTION_MODE = _env_bool('VENTAS_PRODUCTION_MODE', False)

_DEFAULT_SECRET = 'registro_ventas_dev_secret_key_change_in_production'
SECRET_KEY = os.environ.get('VENTAS_SECRET_KEY') or _DEFAULT_SECRET

# Directorio de datos JSON. Vacío = almacén solo en memoria
DATA_DIR = os.environ.get('VENTAS_DATA_DIR', '')

# Ventana de espera antes de dejar de mostrar "cargando" (segundos)
SYNC_FALLBACK_SECONDS = _env_float('VENTAS_SYNC_FALLBACK_SECONDS', 3.0)

# Zona horaria para agrupar el historial por día
TIMEZONE = os.environ.get('VENTAS_TIMEZONE', 'America/Lima')

# Cuenta administradora inicial (solo si no existe ningún usuario)
ADMIN_USERNAME = os.environ.get('VENTAS_ADMIN_USERNAME', 'admin')
ADMIN_PASSWORD = os.environ.get('VENTAS_ADMIN_PASSWORD', '' if PRODUCTION_MODE else 'admin123')

LOG_LEVEL = os.environ.get('VENTAS_LOG_LEVEL', 'INFO').upper()


# ═══════════════════════════════════════════════════════════════════════════════
# COLECCIONES DEL ALMACÉN
# ═══════════════════════════════════════════════════════════════════════════════
PRODUCTS = 'products_v2'
CLIENTS = 'clients_v2'
SALES = 'sales_v2'
EXPENSES = 'expenses_v2'
USERS = 'users'
AUDIT = 'audit'


def configure_logging(level: str = None) -> None:
    """Configura el logging raíz una sola vez (idempotente)."""
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(level or LOG_LEVEL)
        return
    logging.basicConfig(
        level=level or LOG_LEVEL,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    if PRODUCTION_MODE and SECRET_KEY == _DEFAULT_SECRET:
        logging.getLogger(__name__).warning(
            '[ADVERTENCIA] PRODUCTION_MODE activo sin VENTAS_SECRET_KEY definida'
        )
