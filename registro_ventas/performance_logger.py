# ==============================================================================
# SISTEMA DE PROFILING INTERNO
# ==============================================================================
# Mide rendimiento de rutas, pasos de la saga de ventas y operaciones del
# almacén sin afectar la experiencia del usuario.
# Guarda logs legibles en /logs/ para análisis humano.
#
# ACTIVAR/DESACTIVAR: variable de entorno VENTAS_PROFILING (1/0)
# ==============================================================================

import os
import time
import threading
from datetime import datetime
from functools import wraps
from collections import defaultdict

# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN
# ═══════════════════════════════════════════════════════════════════════════

ENABLE_PROFILING = os.environ.get('VENTAS_PROFILING', '1').strip().lower() not in ('0', 'false', 'no')

# Umbrales de tiempo (en milisegundos)
THRESHOLD_WARNING = 300   # Advertencia si supera 300ms
THRESHOLD_CRITICAL = 700  # Crítico si supera 700ms

# Directorio de logs
LOGS_DIR = os.environ.get('VENTAS_LOGS_DIR') or os.path.join(os.path.dirname(__file__), 'logs')

# Archivos de log
PERFORMANCE_LOG = os.path.join(LOGS_DIR, 'performance.log')
SLOW_ROUTES_LOG = os.path.join(LOGS_DIR, 'slow_routes.log')
SLOW_FUNCTIONS_LOG = os.path.join(LOGS_DIR, 'slow_functions.log')

# Mapeo de rutas a nombres legibles (para logs más humanos)
ROUTE_NAMES = {
    'POST /login': 'Iniciar sesión',
    'POST /logout': 'Cerrar sesión',
    'POST /sales': 'Registrar venta',
    'PUT /sales/<sale_id>': 'Editar venta',
    'DELETE /sales/<sale_id>': 'Eliminar venta',
    'POST /sales/<sale_id>/toggle-payment': 'Cambiar estado de pago',
    'GET /history': 'Ver historial',
    'GET /summary': 'Ver resumen',
    'POST /expenses': 'Registrar gasto',
    'GET /export/<kind>': 'Exportar XLSX',
    'POST /users': 'Crear usuario',
}


# ═══════════════════════════════════════════════════════════════════════════
# ESTADÍSTICAS DE FUNCIONES (en memoria)
# ═══════════════════════════════════════════════════════════════════════════

# Estructura: {nombre_funcion: {calls: int, total_time: float, max_time: float}}
_function_stats = defaultdict(lambda: {'calls': 0, 'total_time': 0.0, 'max_time': 0.0})
_stats_lock = threading.Lock()
_write_lock = threading.Lock()


# ═══════════════════════════════════════════════════════════════════════════
# FUNCIONES DE LOGGING
# ═══════════════════════════════════════════════════════════════════════════

def _get_timestamp():
    """Obtiene timestamp legible"""
    return datetime.now().strftime('%Y-%m-%d %H:%M:%S')


def _write_log(filepath, content):
    """Escribe contenido a un archivo de log (thread-safe)"""
    try:
        with _write_lock:
            os.makedirs(os.path.dirname(filepath), exist_ok=True)
            with open(filepath, 'a', encoding='utf-8') as f:
                f.write(content)
    except OSError:
        pass  # Silenciar errores de escritura para no afectar la app


def _get_route_name(method, rule):
    """Nombre legible de una ruta, o la regla cruda si no está mapeada."""
    return ROUTE_NAMES.get(f"{method} {rule}", f"{method} {rule}")


# ═══════════════════════════════════════════════════════════════════════════
# 1️⃣ PROFILING DE RUTAS (Middleware Flask)
# ═══════════════════════════════════════════════════════════════════════════

def log_route_performance(method, path, rule, time_ms, user=None):
    """Registra el rendimiento de una ruta en performance.log"""
    if not ENABLE_PROFILING:
        return

    log_entry = f"""
════════════════════════════════════════
[PERFORMANCE] {_get_timestamp()}
────────────────────────────────────────
Acción: {_get_route_name(method, rule)}
Usuario: {user or 'anónimo'}
Ruta: {method} {path}
Tiempo: {time_ms:.0f} ms
"""
    _write_log(PERFORMANCE_LOG, log_entry)


def log_slow_route(method, path, rule, time_ms, user=None, level='WARNING'):
    """
    Registra una ruta lenta en slow_routes.log

    Args:
        level: 'WARNING' (>300ms) o 'CRITICAL' (>700ms)
    """
    if not ENABLE_PROFILING:
        return

    severity = 'LENTA' if level == 'WARNING' else 'MUY LENTA'
    threshold = THRESHOLD_WARNING if level == 'WARNING' else THRESHOLD_CRITICAL

    log_entry = f"""
[{level}] {_get_timestamp()}
────────────────────────────────────────
Ruta {severity}: {_get_route_name(method, rule)}
Usuario: {user or 'anónimo'}
Detalle: {method} {path}
Tiempo: {time_ms:.0f} ms (umbral: {threshold} ms)
────────────────────────────────────────
"""
    _write_log(SLOW_ROUTES_LOG, log_entry)


# ═══════════════════════════════════════════════════════════════════════════
# 2️⃣ HOOKS PARA FLASK (before/after request)
# ═══════════════════════════════════════════════════════════════════════════

def init_profiling(app):
    """
    Inicializa el sistema de profiling en una app Flask.
    Registra hooks before_request y after_request.
    """
    if not ENABLE_PROFILING:
        return

    @app.before_request
    def _start_timer():
        from flask import g
        g.start_time = time.perf_counter()

    @app.after_request
    def _log_request(response):
        from flask import g, request, session

        if not hasattr(g, 'start_time'):
            return response

        elapsed = (time.perf_counter() - g.start_time) * 1000  # ms
        rule = str(request.url_rule) if request.url_rule else request.path
        user = session.get('username')

        log_route_performance(request.method, request.path, rule, elapsed, user)

        if elapsed >= THRESHOLD_CRITICAL:
            log_slow_route(request.method, request.path, rule, elapsed, user, 'CRITICAL')
        elif elapsed >= THRESHOLD_WARNING:
            log_slow_route(request.method, request.path, rule, elapsed, user, 'WARNING')

        return response


# ═══════════════════════════════════════════════════════════════════════════
# 3️⃣ DECORADOR PARA FUNCIONES CLAVE
# ═══════════════════════════════════════════════════════════════════════════

def profile_function(func=None, name=None):
    """
    Decorador para medir rendimiento de funciones críticas.

    Uso:
        @profile_function
        def mi_funcion():
            ...

        @profile_function(name="Saga: descontar stock")
        def deduct_stock():
            ...
    """
    def decorator(fn):
        if not ENABLE_PROFILING:
            return fn

        func_name = name or fn.__name__

        @wraps(fn)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000

                with _stats_lock:
                    stats = _function_stats[func_name]
                    stats['calls'] += 1
                    stats['total_time'] += elapsed_ms
                    if elapsed_ms > stats['max_time']:
                        stats['max_time'] = elapsed_ms

                if elapsed_ms >= THRESHOLD_WARNING:
                    _log_slow_function_call(func_name, elapsed_ms)

        return wrapper

    # Permitir uso sin paréntesis: @profile_function
    if func is not None:
        return decorator(func)
    return decorator


def _log_slow_function_call(func_name, time_ms):
    """Registra una llamada lenta a una función"""
    severity = 'CRÍTICO' if time_ms >= THRESHOLD_CRITICAL else 'LENTO'

    log_entry = f"""
[{severity}] {_get_timestamp()}
Función: {func_name}
Tiempo: {time_ms:.0f} ms
────────────────────────────────────────
"""
    _write_log(SLOW_FUNCTIONS_LOG, log_entry)


# ═══════════════════════════════════════════════════════════════════════════
# 4️⃣ REPORTE DE ESTADÍSTICAS
# ═══════════════════════════════════════════════════════════════════════════

def get_function_stats():
    """
    Obtiene estadísticas de todas las funciones perfiladas.

    Returns:
        dict: {nombre: {calls, avg_time, max_time}}
    """
    with _stats_lock:
        result = {}
        for func_name, stats in _function_stats.items():
            calls = stats['calls']
            avg = stats['total_time'] / calls if calls > 0 else 0
            result[func_name] = {
                'calls': calls,
                'avg_time': round(avg, 2),
                'max_time': round(stats['max_time'], 2)
            }
        return result


def reset_stats():
    """Reinicia todas las estadísticas (útil para testing)"""
    with _stats_lock:
        _function_stats.clear()


__all__ = [
    'ENABLE_PROFILING',
    'init_profiling',
    'profile_function',
    'get_function_stats',
    'reset_stats',
]
