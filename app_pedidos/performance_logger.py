# ==============================================================================
# SISTEMA DE PROFILING INTERNO
# ==============================================================================
# Mide rendimiento de rutas y de las operaciones de stock/pedidos.
# Guarda logs legibles en logs/ para análisis humano.
#
# ACTIVAR/DESACTIVAR: variable de entorno PEDIDOS_PROFILING (1/0)
# ==============================================================================

import logging
import os
import threading
import time
from collections import defaultdict
from datetime import datetime
from functools import wraps

from app_pedidos import config

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN
# ═══════════════════════════════════════════════════════════════════════════

ENABLE_PROFILING = config.ENABLE_PROFILING

# Umbrales de tiempo (en milisegundos)
THRESHOLD_WARNING = 300
THRESHOLD_CRITICAL = 700

LOGS_DIR = os.path.join(config.BASE, 'logs')
PERFORMANCE_LOG = os.path.join(LOGS_DIR, 'performance.log')
SLOW_ROUTES_LOG = os.path.join(LOGS_DIR, 'slow_routes.log')
SLOW_FUNCTIONS_LOG = os.path.join(LOGS_DIR, 'slow_functions.log')

# Nombres legibles de las rutas
ROUTE_NAMES = {
    'GET /api/productos': 'Listar productos',
    'POST /api/productos': 'Crear producto',
    'GET /api/productos/<int:pid>': 'Ver producto',
    'PUT /api/productos/<int:pid>': 'Editar producto',
    'DELETE /api/productos/<int:pid>': 'Eliminar producto',
    'POST /api/productos/<int:pid>/vender': 'Vender producto',
    'POST /api/productos/<int:pid>/cancelar': 'Cancelar venta',
    'GET /api/productos/<int:pid>/precio-combo': 'Calcular precio de combo',

    'GET /api/pedidos': 'Listar pedidos',
    'POST /api/pedidos': 'Crear pedido',
    'GET /api/pedidos/estadisticas': 'Estadísticas de pedidos',
    'GET /api/pedidos/<int:oid>': 'Ver pedido',
    'PUT /api/pedidos/<int:oid>': 'Editar pedido',
    'DELETE /api/pedidos/<int:oid>': 'Eliminar pedido',
    'POST /api/pedidos/<int:oid>/rechazar': 'Rechazar pedido',
    'POST /api/pedidos/<int:oid>/aprobar': 'Aprobar pedido',
    'GET /api/pedidos/<int:oid>/documento': 'Datos de remito',
}


# ═══════════════════════════════════════════════════════════════════════════
# ESTADÍSTICAS DE FUNCIONES (en memoria)
# ═══════════════════════════════════════════════════════════════════════════

# {nombre_funcion: {calls, total_time, max_time}}
_function_stats = defaultdict(lambda: {'calls': 0, 'total_time': 0.0, 'max_time': 0.0})
_stats_lock = threading.Lock()
_write_lock = threading.Lock()


def _get_timestamp():
    return datetime.now().strftime('%Y-%m-%d %H:%M:%S')


def _write_log(filepath, content):
    """Agrega contenido a un archivo de log. Un fallo de escritura no afecta la app."""
    try:
        with _write_lock:
            os.makedirs(LOGS_DIR, exist_ok=True)
            with open(filepath, 'a', encoding='utf-8') as f:
                f.write(content)
    except OSError as e:
        logger.debug("No se pudo escribir %s: %s", filepath, e)


def _get_route_name(method, path, rule=None):
    """Nombre legible de una ruta; si no está mapeada devuelve la ruta cruda."""
    for candidate in (f"{method} {rule}" if rule else None, f"{method} {path}"):
        if candidate and candidate in ROUTE_NAMES:
            return ROUTE_NAMES[candidate]
    return f"{method} {path}"


# ═══════════════════════════════════════════════════════════════════════════
# 1️⃣ PROFILING DE RUTAS
# ═══════════════════════════════════════════════════════════════════════════

def log_route_performance(method, path, rule, time_ms, user=None):
    """Registra el tiempo de una petición en performance.log."""
    if not ENABLE_PROFILING:
        return

    _write_log(PERFORMANCE_LOG, f"""
════════════════════════════════════════
[PERFORMANCE] {_get_timestamp()}
────────────────────────────────────────
Acción: {_get_route_name(method, path, rule)}
Usuario: {user or 'anónimo'}
Ruta: {method} {path}
Tiempo: {time_ms:.0f} ms
""")


def log_slow_route(method, path, rule, time_ms, user=None, level='WARNING'):
    """
    Registra una ruta lenta en slow_routes.log

    Args:
        level: 'WARNING' (>300ms) o 'CRITICAL' (>700ms)
    """
    if not ENABLE_PROFILING:
        return

    threshold = THRESHOLD_WARNING if level == 'WARNING' else THRESHOLD_CRITICAL
    severity = 'LENTA' if level == 'WARNING' else 'MUY LENTA'
    _write_log(SLOW_ROUTES_LOG, f"""
[{level}] {_get_timestamp()}
────────────────────────────────────────
Ruta {severity}: {_get_route_name(method, path, rule)}
Usuario: {user or 'anónimo'}
Detalle: {method} {path}
Tiempo: {time_ms:.0f} ms (umbral: {threshold} ms)
────────────────────────────────────────
""")


def init_profiling(app):
    """
    Registra hooks before_request/after_request en una app Flask.

    Uso:
        from app_pedidos.performance_logger import init_profiling
        init_profiling(app)
    """
    if not ENABLE_PROFILING:
        return

    @app.before_request
    def _start_timer():
        from flask import g
        g.start_time = time.perf_counter()

    @app.after_request
    def _log_request(response):
        from flask import g, request

        if not hasattr(g, 'start_time'):
            return response

        elapsed = (time.perf_counter() - g.start_time) * 1000
        method = request.method
        path = request.path
        rule = str(request.url_rule) if request.url_rule else path
        user = request.headers.get('X-Usuario')

        log_route_performance(method, path, rule, elapsed, user)
        if elapsed >= THRESHOLD_CRITICAL:
            log_slow_route(method, path, rule, elapsed, user, 'CRITICAL')
        elif elapsed >= THRESHOLD_WARNING:
            log_slow_route(method, path, rule, elapsed, user, 'WARNING')
        return response


# ═══════════════════════════════════════════════════════════════════════════
# 2️⃣ DECORADOR PARA FUNCIONES CLAVE
# ═══════════════════════════════════════════════════════════════════════════

def profile_function(func=None, name=None):
    """
    Decorador para medir operaciones críticas.

    Uso:
        @profile_function
        def sell(...): ...

        @profile_function(name="Crear pedido")
        def create(...): ...

    Registra cantidad de llamadas, tiempo promedio y máximo.
    """
    def decorator(fn):
        if not ENABLE_PROFILING:
            return fn

        func_name = name or fn.__qualname__

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
                    stats['max_time'] = max(stats['max_time'], elapsed_ms)
                if elapsed_ms >= THRESHOLD_WARNING:
                    _log_slow_function_call(func_name, elapsed_ms)

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator


def _log_slow_function_call(func_name, time_ms):
    severity = 'CRÍTICO' if time_ms >= THRESHOLD_CRITICAL else 'LENTO'
    _write_log(SLOW_FUNCTIONS_LOG, f"""
[{severity}] {_get_timestamp()}
Función: {func_name}
Tiempo: {time_ms:.0f} ms
────────────────────────────────────────
""")


# ═══════════════════════════════════════════════════════════════════════════
# 3️⃣ REPORTE DE ESTADÍSTICAS
# ═══════════════════════════════════════════════════════════════════════════

def get_function_stats():
    """
    Returns:
        dict: {nombre: {calls, avg_time, max_time}}
    """
    with _stats_lock:
        result = {}
        for func_name, stats in _function_stats.items():
            calls = stats['calls']
            result[func_name] = {
                'calls': calls,
                'avg_time': round(stats['total_time'] / calls, 2) if calls else 0,
                'max_time': round(stats['max_time'], 2),
            }
        return result


def reset_stats():
    """Reinicia todas las estadísticas (útil para testing)."""
    with _stats_lock:
        _function_stats.clear()


__all__ = [
    'ENABLE_PROFILING',
    'init_profiling',
    'profile_function',
    'get_function_stats',
    'reset_stats',
]
