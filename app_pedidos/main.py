# ==============================================================================
# APLICACIÓN FLASK - API JSON de productos y pedidos
# ==============================================================================
# Capa delgada: lee la petición, decide el acceso por sección y llama a los
# servicios del contenedor. Toda la lógica de negocio vive en services/.
#
# SECCIÓN: el header X-Seccion (limpieza | mantenimiento | ambos) restringe
# qué productos puede tocar quien llama. La autenticación queda fuera de
# esta aplicación; la sección llega ya resuelta por el proxy/front.
# ==============================================================================

import logging
from functools import wraps

from flask import Flask, g, request
from werkzeug.exceptions import HTTPException

from app_pedidos import config
from app_pedidos.app_container import AppContainer
from app_pedidos.errors import NotFoundError, PedidosError, ValidationError
from app_pedidos.performance_logger import init_profiling

logger = logging.getLogger(__name__)

SECCIONES = ('limpieza', 'mantenimiento', 'ambos')


def _container() -> AppContainer:
    return AppContainer.get_instance()


def _to_int(value, default=None):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


# ═══════════════════════════════════════════════════════════════════════════
# ACCESO POR SECCIÓN
# ═══════════════════════════════════════════════════════════════════════════

def _seccion_actual() -> str:
    return (request.headers.get('X-Seccion') or 'ambos').strip().lower()


def _puede_ver(categoria: str) -> bool:
    seccion = g.seccion
    return seccion == 'ambos' or seccion == categoria


def seccion_required(f):
    """Valida el header X-Seccion y lo deja en g.seccion."""
    @wraps(f)
    def wrapper(*args, **kwargs):
        seccion = _seccion_actual()
        if seccion not in SECCIONES:
            return {"success": False, "error": f"Sección inválida: {seccion}"}, 400
        g.seccion = seccion
        return f(*args, **kwargs)
    return wrapper


def _denegado(categoria: str):
    logger.warning("Acceso denegado: sección %s sobre categoría %s", g.seccion, categoria)
    return {"success": False, "error": "No tiene permisos para esta sección"}, 403


def _check_producto(pid: int):
    """Devuelve una respuesta 403 si el producto no es de la sección, o None."""
    producto = _container().product_service.get(pid)
    if not _puede_ver(producto.categoria.value):
        return _denegado(producto.categoria.value)
    return None


def _check_lineas(lineas):
    """403 si alguna línea apunta a un producto fuera de la sección."""
    if g.seccion == 'ambos' or not isinstance(lineas, list):
        return None
    for linea in lineas:
        pid = _to_int(linea.get('producto_id')) if isinstance(linea, dict) else None
        if pid is None:
            continue
        try:
            denied = _check_producto(pid)
        except NotFoundError:
            # el servicio informa el 404 con su propio mensaje
            continue
        if denied:
            return denied
    return None


def _check_pedido(pedido):
    """403 si el pedido tiene líneas de productos fuera de la sección."""
    return _check_lineas([l.to_dict() for l in pedido.productos])


def _pedido_visible(pedido) -> bool:
    """Un pedido se lista solo si todos sus productos son de la sección."""
    if g.seccion == 'ambos':
        return True
    product_service = _container().product_service
    for pid in pedido.cantidades_por_producto():
        try:
            producto = product_service.get(pid)
        except NotFoundError:
            continue
        if not _puede_ver(producto.categoria.value):
            return False
    return True


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Se esperaba un objeto JSON")
    return data


# ═══════════════════════════════════════════════════════════════════════════
# FACTORY
# ═══════════════════════════════════════════════════════════════════════════

def create_app(base_path: str = None) -> Flask:
    """
    Crea la aplicación Flask.

    Args:
        base_path: Carpeta de datos (productos.json, pedidos.json).
                   None = config.DATA_DIR
    """
    config.configure_logging()

    if base_path is not None:
        AppContainer.reset_instance()
    AppContainer.get_instance(base_path)

    app = Flask(__name__)
    if config.PRODUCTION_MODE and config.SECRET_KEY_IS_DEFAULT:
        logger.warning("PEDIDOS_PRODUCTION activo sin PEDIDOS_SECRET_KEY definida")
    app.secret_key = config.SECRET_KEY
    app.config['MAX_CONTENT_LENGTH'] = 1 * 1024 * 1024  # 1 MB
    app.json.ensure_ascii = False

    init_profiling(app)
    _register_error_handlers(app)
    _register_product_routes(app)
    _register_order_routes(app)

    @app.after_request
    def set_security_headers(response):
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['Referrer-Policy'] = 'no-referrer-when-downgrade'
        response.headers['Permissions-Policy'] = 'geolocation=(), microphone=()'
        if request.is_secure:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        return response

    return app


# ═══════════════════════════════════════════════════════════════════════════
# MANEJO DE ERRORES
# ═══════════════════════════════════════════════════════════════════════════

def _register_error_handlers(app: Flask) -> None:

    @app.errorhandler(PedidosError)
    def handle_pedidos_error(e):
        if e.http_status >= 500:
            logger.error("Error de almacenamiento en %s %s: %s",
                         request.method, request.path, e.message)
        return e.to_dict(), e.http_status

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return {"success": False, "error": e.description}, e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        logger.exception("Error inesperado en %s %s", request.method, request.path)
        return {"success": False, "error": "Error interno del servidor"}, 500


# ═══════════════════════════════════════════════════════════════════════════
# RUTAS: PRODUCTOS
# ═══════════════════════════════════════════════════════════════════════════

def _register_product_routes(app: Flask) -> None:

    @app.route("/api/productos", methods=["GET"])
    @seccion_required
    def api_list_products():
        """Lista productos; ?categoria= filtra, la sección también."""
        categoria = request.args.get('categoria')
        if categoria is None and g.seccion != 'ambos':
            categoria = g.seccion
        if categoria is not None and not _puede_ver(categoria.strip().lower()):
            return _denegado(categoria)
        productos = _container().product_service.list_products(categoria)
        return {
            "success": True,
            "productos": [p.to_public_dict() for p in productos],
        }

    @app.route("/api/productos", methods=["POST"])
    @seccion_required
    def api_create_product():
        data = _json_body()
        categoria = str(data.get('categoria') or '').strip().lower()
        if categoria and not _puede_ver(categoria):
            return _denegado(categoria)
        producto = _container().product_service.create(data)
        return {"success": True, "producto": producto.to_public_dict()}, 201

    @app.route("/api/productos/<int:pid>", methods=["GET"])
    @seccion_required
    def api_get_product(pid):
        producto = _container().product_service.get(pid)
        if not _puede_ver(producto.categoria.value):
            return _denegado(producto.categoria.value)
        return {"success": True, "producto": producto.to_public_dict()}

    @app.route("/api/productos/<int:pid>", methods=["PUT"])
    @seccion_required
    def api_update_product(pid):
        data = _json_body()
        denied = _check_producto(pid)
        if denied:
            return denied
        nueva = data.get('categoria')
        if nueva is not None and not _puede_ver(str(nueva).strip().lower()):
            return _denegado(str(nueva))
        producto = _container().product_service.update(pid, data)
        return {"success": True, "producto": producto.to_public_dict()}

    @app.route("/api/productos/<int:pid>", methods=["DELETE"])
    @seccion_required
    def api_delete_product(pid):
        denied = _check_producto(pid)
        if denied:
            return denied
        producto = _container().product_service.delete(pid)
        return {"success": True, "message": f"Producto '{producto.nombre}' eliminado"}

    @app.route("/api/productos/<int:pid>/vender", methods=["POST"])
    @seccion_required
    def api_sell_product(pid):
        denied = _check_producto(pid)
        if denied:
            return denied
        producto = _container().stock_service.sell(pid)
        return {"success": True, "producto": producto.to_public_dict()}

    @app.route("/api/productos/<int:pid>/cancelar", methods=["POST"])
    @seccion_required
    def api_cancel_sale(pid):
        denied = _check_producto(pid)
        if denied:
            return denied
        producto = _container().stock_service.cancel(pid)
        return {"success": True, "producto": producto.to_public_dict()}

    @app.route("/api/productos/<int:pid>/precio-combo", methods=["GET"])
    @seccion_required
    def api_combo_price(pid):
        denied = _check_producto(pid)
        if denied:
            return denied
        container = _container()
        producto = container.product_service.get(pid)
        precio = container.combo_service.compute_combo_price(pid)
        return {
            "success": True,
            "id": pid,
            "precio_combo": precio,
            "precio_guardado": producto.precio,
        }


# ═══════════════════════════════════════════════════════════════════════════
# RUTAS: PEDIDOS
# ═══════════════════════════════════════════════════════════════════════════

def _register_order_routes(app: Flask) -> None:

    @app.route("/api/pedidos", methods=["GET"])
    @seccion_required
    def api_list_orders():
        """
        Filtros (se usa el primero presente):
            ?cliente=  ?estado=  ?producto_id=  ?desde=&hasta=
        Paginado con ?limit= y ?offset= (sin filtros, limit=50 por defecto).
        Solo se listan pedidos cuyos productos son de la sección.
        """
        service = _container().order_service
        args = request.args
        limit = _to_int(args.get('limit'))
        offset = _to_int(args.get('offset'), 0)
        if args.get('cliente'):
            pedidos = service.by_client(args['cliente'], args.get('seccion_del_servicio'))
        elif args.get('estado'):
            pedidos = service.by_status(args['estado'])
        elif args.get('producto_id'):
            pid = _to_int(args['producto_id'])
            if pid is None:
                raise ValidationError("producto_id inválido")
            pedidos = service.by_product(pid)
        elif args.get('desde') or args.get('hasta'):
            if not (args.get('desde') and args.get('hasta')):
                raise ValidationError("Se necesitan 'desde' y 'hasta'")
            pedidos = service.by_date_range(args['desde'], args['hasta'])
        else:
            pedidos = service.list_orders(limit=None)
            if limit is None:
                limit = 50
        # primero la sección, después la página
        pedidos = service.paginate([p for p in pedidos if _pedido_visible(p)], limit, offset)
        return {"success": True, "pedidos": [p.to_public_dict() for p in pedidos]}

    @app.route("/api/pedidos", methods=["POST"])
    @seccion_required
    def api_create_order():
        data = _json_body()
        denied = _check_lineas(data.get('productos'))
        if denied:
            return denied
        pedido = _container().order_service.create(data)
        return {"success": True, "pedido": pedido.to_public_dict()}, 201

    @app.route("/api/pedidos/estadisticas", methods=["GET"])
    @seccion_required
    def api_order_stats():
        """?desde= ?hasta= ?cliente= acotan el resumen."""
        service = _container().order_service
        pedidos = None
        if g.seccion != 'ambos':
            pedidos = [p for p in service.list_orders(limit=None) if _pedido_visible(p)]
        estadisticas = service.statistics(
            pedidos,
            desde=request.args.get('desde'),
            hasta=request.args.get('hasta'),
            cliente=request.args.get('cliente'),
        )
        return {"success": True, "estadisticas": estadisticas}

    @app.route("/api/pedidos/<int:oid>", methods=["GET"])
    @seccion_required
    def api_get_order(oid):
        pedido = _container().order_service.get(oid)
        denied = _check_pedido(pedido)
        if denied:
            return denied
        return {"success": True, "pedido": pedido.to_public_dict()}

    @app.route("/api/pedidos/<int:oid>", methods=["PUT"])
    @seccion_required
    def api_update_order(oid):
        data = _json_body()
        service = _container().order_service
        actual = service.get(oid)
        denied = _check_pedido(actual) or \
            _check_lineas(data.get('productos'))
        if denied:
            return denied
        pedido = service.update(oid, data)
        return {"success": True, "pedido": pedido.to_public_dict()}

    @app.route("/api/pedidos/<int:oid>", methods=["DELETE"])
    @seccion_required
    def api_delete_order(oid):
        service = _container().order_service
        denied = _check_pedido(service.get(oid))
        if denied:
            return denied
        pedido = service.delete(oid)
        return {"success": True, "message": f"Pedido n°{pedido.n_pedido} eliminado"}

    @app.route("/api/pedidos/<int:oid>/rechazar", methods=["POST"])
    @seccion_required
    def api_reject_order(oid):
        service = _container().order_service
        denied = _check_pedido(service.get(oid))
        if denied:
            return denied
        pedido = service.reject(oid)
        return {"success": True, "pedido": pedido.to_public_dict()}

    @app.route("/api/pedidos/<int:oid>/aprobar", methods=["POST"])
    @seccion_required
    def api_approve_order(oid):
        service = _container().order_service
        denied = _check_pedido(service.get(oid))
        if denied:
            return denied
        pedido = service.approve(oid)
        return {"success": True, "pedido": pedido.to_public_dict()}

    @app.route("/api/pedidos/<int:oid>/documento", methods=["GET"])
    @seccion_required
    def api_order_document(oid):
        """Datos del pedido con productos y combos resueltos, para remitos."""
        service = _container().order_service
        denied = _check_pedido(service.get(oid))
        if denied:
            return denied
        return {"success": True, "documento": service.snapshot(oid)}
