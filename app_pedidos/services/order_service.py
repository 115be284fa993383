# ==============================================================================
# SERVICIO DE PEDIDOS (MOTOR DE PEDIDOS)
# ==============================================================================
# Ciclo de vida de pedidos ligado al stock:
#   - create: reserva el stock de todas las líneas o no reserva nada
#   - update: aplica solo la diferencia entre líneas viejas y nuevas
#   - delete: devuelve el stock reservado (salvo pedidos rechazados)
#   - reject/approve: devuelven o vuelven a reservar el stock
#
# Todas las operaciones corren en un único TransactionScope que cubre el
# pedido y cada producto tocado: si una línea falla, nada queda escrito.
# ==============================================================================

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app_pedidos.errors import InsufficientStockError, NotFoundError, ValidationError
from app_pedidos.models import (
    EstadoPedido,
    LineaPedido,
    Pedido,
    ProductoId,
    cantidades_por_producto,
)
from app_pedidos.performance_logger import profile_function
from app_pedidos.repositories.order_repository import OrderRepository
from app_pedidos.repositories.transaction import TransactionScope, transaction
from app_pedidos.services.combo_service import ComboService
from app_pedidos.services.product_service import ProductService
from app_pedidos.services.stock_service import StockService

logger = logging.getLogger(__name__)


class OrderService:
    """
    Servicio para gestión de pedidos.

    Responsabilidades:
    - Alta, edición y baja de pedidos con su efecto en el stock
    - Cambios de estado (rechazo devuelve stock, aprobación lo vuelve a tomar)
    - Consultas y estadísticas
    - Snapshots de solo lectura para generadores de documentos
    """

    # Campos del pedido que se pueden modificar con update() además de las líneas
    ALLOWED_FIELDS = ('cliente', 'seccion_del_servicio', 'detalle', 'observaciones')

    def __init__(
        self,
        order_repo: OrderRepository,
        product_service: ProductService,
        combo_service: ComboService,
        stock_service: StockService
    ):
        self.order_repo = order_repo
        self.product_service = product_service
        self.combo_service = combo_service
        self.stock_service = stock_service

    # =========================================================================
    # LECTURA
    # =========================================================================

    def get(self, oid: int, tx: Optional[TransactionScope] = None) -> Pedido:
        """
        Raises:
            NotFoundError: Si el pedido no existe
        """
        data = self.order_repo.get_order(oid, tx)
        if data is None:
            raise NotFoundError(f"Pedido no encontrado: {oid}")
        return Pedido.from_dict(oid, data)

    def _all(self) -> List[Pedido]:
        return [Pedido.from_dict(oid, data) for oid, data in self.order_repo.all_orders()]

    @staticmethod
    def paginate(pedidos: List[Pedido], limit: Optional[int], offset: int) -> List[Pedido]:
        """Recorta una lista ya ordenada; limit None = sin límite."""
        offset = max(0, int(offset or 0))
        if limit is None:
            return pedidos[offset:]
        return pedidos[offset:offset + max(0, int(limit))]

    def list_orders(self, limit: Optional[int] = 50, offset: int = 0) -> List[Pedido]:
        """Pedidos más recientes primero, paginados."""
        return self.paginate(self._all(), limit, offset)

    def by_client(
        self,
        cliente: str,
        seccion: str = None,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[Pedido]:
        pedidos = [
            p for p in self._all()
            if p.cliente == cliente
            and (seccion is None or p.seccion_del_servicio == seccion)
        ]
        return self.paginate(pedidos, limit, offset)

    def by_status(self, estado: str, limit: Optional[int] = None, offset: int = 0) -> List[Pedido]:
        estado = self._parse_estado(estado)
        return self.paginate([p for p in self._all() if p.estado == estado], limit, offset)

    def by_product(self, pid: int, limit: Optional[int] = None, offset: int = 0) -> List[Pedido]:
        """Pedidos con al menos una línea del producto."""
        pid = int(pid)
        pedidos = [p for p in self._all() if pid in p.cantidades_por_producto()]
        return self.paginate(pedidos, limit, offset)

    def by_date_range(
        self,
        desde: str,
        hasta: str,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[Pedido]:
        """
        Pedidos con fecha entre desde y hasta (inclusive).

        Args:
            desde: Fecha ISO (YYYY-MM-DD o fecha y hora completa)
            hasta: Fecha ISO; si es solo fecha incluye el día completo
        """
        return self.paginate(self._filter_dates(self._all(), desde, hasta), limit, offset)

    def _filter_dates(
        self,
        pedidos: List[Pedido],
        desde: Optional[str],
        hasta: Optional[str]
    ) -> List[Pedido]:
        inicio = self._parse_fecha(desde) if desde else None
        fin = self._parse_fecha(hasta, end_of_day=True) if hasta else None
        if inicio is not None and fin is not None and inicio > fin:
            raise ValidationError("La fecha inicial es posterior a la final")
        result = []
        for pedido in pedidos:
            fecha = self._parse_fecha(pedido.fecha)
            if (inicio is None or inicio <= fecha) and (fin is None or fecha <= fin):
                result.append(pedido)
        return result

    def statistics(
        self,
        pedidos: Optional[List[Pedido]] = None,
        desde: str = None,
        hasta: str = None,
        cliente: str = None
    ) -> Dict[str, Any]:
        """
        Calcula estadísticas de pedidos.

        Args:
            pedidos: Lista a resumir (None = todos)
            desde: Fecha ISO inicial (opcional)
            hasta: Fecha ISO final (opcional, incluye el día completo)
            cliente: Solo pedidos de este cliente (opcional)

        Returns:
            dict: {total, por_estado: {estado: cantidad}, unidades, importe_total}
        """
        pedidos = self._all() if pedidos is None else list(pedidos)
        if cliente:
            pedidos = [p for p in pedidos if p.cliente == cliente]
        if desde or hasta:
            pedidos = self._filter_dates(pedidos, desde, hasta)

        por_estado = {estado.value: 0 for estado in EstadoPedido}
        unidades = 0
        importe = 0.0
        for pedido in pedidos:
            por_estado[pedido.estado.value] += 1
            if not pedido.is_rejected:
                unidades += sum(l.cantidad for l in pedido.productos)
                importe += pedido.total
        return {
            'total': len(pedidos),
            'por_estado': por_estado,
            'unidades': unidades,
            'importe_total': round(importe, 2),
        }

    def snapshot(self, oid: int) -> Dict[str, Any]:
        """
        Vista de solo lectura para remitos y reportes: cada línea lleva el
        producto actual y, si es combo, sus componentes ya expandidos.
        Un producto borrado después del pedido aparece como None.
        """
        with transaction() as scope:
            pedido = self.get(oid, scope)
            lineas = []
            for linea in pedido.productos:
                entry = linea.to_dict()
                try:
                    producto = self.product_service.get(linea.producto_id, scope)
                except NotFoundError:
                    entry['producto'] = None
                    entry['componentes'] = []
                    lineas.append(entry)
                    continue
                entry['producto'] = producto.to_public_dict()
                entry['componentes'] = [
                    {
                        'producto': item.producto.producto.to_public_dict(),
                        'cantidad': item.cantidad,
                        'cantidad_total': item.cantidad * linea.cantidad,
                    }
                    for item in self.combo_service.expand(producto, scope)
                ]
                lineas.append(entry)

        data = pedido.to_public_dict()
        data['productos'] = lineas
        return data

    # =========================================================================
    # ESCRITURA
    # =========================================================================

    @profile_function(name="Crear pedido")
    def create(
        self,
        datos: Dict[str, Any],
        tx: Optional[TransactionScope] = None
    ) -> Pedido:
        """
        Crea un pedido y reserva el stock de cada línea.

        Args:
            datos: cliente, productos [{producto_id, cantidad}] y opcionalmente
                   seccion_del_servicio, detalle, observaciones

        Raises:
            ValidationError: Si faltan datos o alguna cantidad es <= 0
            NotFoundError: Si algún producto no existe
            InsufficientStockError: Si algún producto no alcanza (nada se descuenta)
        """
        cliente = str(datos.get('cliente') or '').strip()
        if not cliente:
            raise ValidationError("El pedido necesita un cliente")
        lineas = self._parse_lineas(datos.get('productos'))

        with transaction(tx) as scope:
            self._reserve(cantidades_por_producto(lineas), scope)
            self._capture_prices(lineas, scope)

            oid = scope.next_id(self.order_repo)
            pedido = Pedido(
                id=oid,
                cliente=cliente,
                productos=lineas,
                n_pedido=self.order_repo.next_order_number(scope),
                seccion_del_servicio=str(datos.get('seccion_del_servicio') or ''),
                detalle=str(datos.get('detalle') or ''),
                observaciones=str(datos.get('observaciones') or ''),
            )
            scope.put(self.order_repo, oid, pedido.to_dict())

        logger.info("Pedido creado: %s (n°%s, cliente=%s, lineas=%d)",
                    oid, pedido.n_pedido, cliente, len(lineas))
        return pedido

    @profile_function(name="Editar pedido")
    def update(
        self,
        oid: int,
        cambios: Dict[str, Any],
        tx: Optional[TransactionScope] = None
    ) -> Pedido:
        """
        Actualiza un pedido.

        Si cambian las líneas se aplica al stock solo la diferencia por producto:
        más unidades se descuentan, menos unidades se devuelven, y un producto
        que sale del pedido devuelve todo lo reservado. Si viene 'estado' se
        aplica en la misma transacción (ver change_status).

        Raises:
            NotFoundError: Si el pedido o un producto nuevo no existe
            ValidationError: Si las líneas o el estado son inválidos
            InsufficientStockError: Si algún incremento no alcanza (nada cambia)
        """
        with transaction(tx) as scope:
            pedido = self.get(oid, scope)

            if 'productos' in cambios:
                nuevas = self._parse_lineas(cambios['productos'])
                if not pedido.is_rejected:
                    self._apply_delta(
                        pedido.cantidades_por_producto(),
                        cantidades_por_producto(nuevas),
                        scope,
                    )
                self._capture_prices(nuevas, scope, anteriores=pedido.productos)
                pedido.productos = nuevas

            for campo in self.ALLOWED_FIELDS:
                if campo in cambios:
                    setattr(pedido, campo, str(cambios[campo] or '').strip())
            if not pedido.cliente:
                raise ValidationError("El pedido necesita un cliente")

            self._save(scope, pedido)

            if cambios.get('estado') is not None:
                pedido = self.change_status(oid, cambios['estado'], scope)

        logger.info("Pedido actualizado: %s campos=%s", oid, sorted(cambios))
        return pedido

    @profile_function(name="Eliminar pedido")
    def delete(self, oid: int, tx: Optional[TransactionScope] = None) -> Pedido:
        """
        Elimina un pedido devolviendo su stock.
        Un pedido rechazado ya devolvió el stock y se elimina sin tocarlo.

        Raises:
            NotFoundError: Si el pedido no existe
        """
        with transaction(tx) as scope:
            pedido = self.get(oid, scope)
            if pedido.is_rejected:
                logger.info("Pedido %s rechazado: se elimina sin devolver stock", oid)
            else:
                self._release(pedido.cantidades_por_producto(), scope)
            scope.delete(self.order_repo, oid)

        logger.info("Pedido eliminado: %s (n°%s)", oid, pedido.n_pedido)
        return pedido

    # =========================================================================
    # ESTADOS
    # =========================================================================

    def reject(self, oid: int, tx: Optional[TransactionScope] = None) -> Pedido:
        """
        Rechaza un pedido y devuelve su stock. Si ya estaba rechazado no hace nada.
        """
        with transaction(tx) as scope:
            pedido = self.get(oid, scope)
            if pedido.is_rejected:
                return pedido
            self._release(pedido.cantidades_por_producto(), scope)
            pedido.estado = EstadoPedido.RECHAZADO
            self._save(scope, pedido)

        logger.info("Pedido rechazado: %s, stock devuelto", oid)
        return pedido

    def approve(self, oid: int, tx: Optional[TransactionScope] = None) -> Pedido:
        """
        Aprueba un pedido. Si estaba rechazado vuelve a reservar el stock
        con las mismas verificaciones que create().

        Raises:
            InsufficientStockError: Si el stock ya no alcanza para re-aprobar
        """
        with transaction(tx) as scope:
            pedido = self.get(oid, scope)
            if pedido.is_rejected:
                self._reserve(pedido.cantidades_por_producto(), scope)
                logger.info("Pedido %s sale de rechazado: stock reservado de nuevo", oid)
            pedido.estado = EstadoPedido.APROBADO
            self._save(scope, pedido)

        logger.info("Pedido aprobado: %s", oid)
        return pedido

    def change_status(
        self,
        oid: int,
        estado: Any,
        tx: Optional[TransactionScope] = None
    ) -> Pedido:
        """
        Cambia el estado de un pedido.

        rechazado y aprobado delegan en reject()/approve(); salir de rechazado
        hacia cualquier otro estado también vuelve a reservar el stock.
        """
        estado = self._parse_estado(estado)
        if estado == EstadoPedido.RECHAZADO:
            return self.reject(oid, tx)
        if estado == EstadoPedido.APROBADO:
            return self.approve(oid, tx)

        with transaction(tx) as scope:
            pedido = self.get(oid, scope)
            if pedido.is_rejected:
                self._reserve(pedido.cantidades_por_producto(), scope)
            pedido.estado = estado
            self._save(scope, pedido)

        logger.info("Pedido %s: estado -> %s", oid, estado.value)
        return pedido

    # =========================================================================
    # MOVIMIENTOS DE STOCK
    # =========================================================================

    def _reserve(self, cantidades: Dict[int, int], scope: TransactionScope) -> None:
        """
        Descuenta stock y suma vendidos para cada producto.

        Primero verifica todos los productos (stock >= cantidad, sin distinguir
        categoría); el piso de limpieza lo verifica además StockService.adjust.
        """
        for pid, cantidad in cantidades.items():
            self._check_available(pid, cantidad, scope)
        for pid, cantidad in cantidades.items():
            self.stock_service.adjust(pid, -cantidad, cantidad, scope)

    def _release(self, cantidades: Dict[int, int], scope: TransactionScope) -> None:
        """Devuelve stock y descuenta vendidos. Productos ya borrados se omiten."""
        for pid, cantidad in cantidades.items():
            try:
                self.stock_service.adjust(pid, cantidad, -cantidad, scope)
            except NotFoundError:
                logger.warning("Producto %s ya no existe; no se devuelven %d unidades",
                               pid, cantidad)

    def _apply_delta(
        self,
        anteriores: Dict[int, int],
        nuevas: Dict[int, int],
        scope: TransactionScope
    ) -> None:
        aumentos = {}
        devoluciones = {}
        for pid, cantidad in nuevas.items():
            diferencia = cantidad - anteriores.get(pid, 0)
            if diferencia > 0:
                aumentos[pid] = diferencia
            elif diferencia < 0:
                devoluciones[pid] = -diferencia
        for pid, cantidad in anteriores.items():
            if pid not in nuevas:
                devoluciones[pid] = cantidad

        self._reserve(aumentos, scope)
        self._release(devoluciones, scope)

    def _check_available(self, pid: int, cantidad: int, scope: TransactionScope) -> None:
        producto = self.product_service.get(pid, scope)
        if producto.stock < cantidad:
            logger.warning("Stock insuficiente para pedido: producto %s stock=%s solicitado=%s",
                           pid, producto.stock, cantidad)
            raise InsufficientStockError(
                f"Stock insuficiente para el producto '{producto.nombre}'. "
                f"Stock actual: {producto.stock}, Solicitado: {cantidad}",
                producto_id=pid,
                disponible=producto.stock,
                solicitado=cantidad,
            )

    # =========================================================================
    # AUXILIARES
    # =========================================================================

    def _save(self, scope: TransactionScope, pedido: Pedido) -> None:
        pedido.updated_at = datetime.now(timezone.utc).isoformat()
        scope.put(self.order_repo, pedido.id, pedido.to_dict())

    def _capture_prices(
        self,
        lineas: List[LineaPedido],
        scope: TransactionScope,
        anteriores: List[LineaPedido] = None
    ) -> None:
        """
        Completa nombre y precio de cada línea con los datos del producto.
        Una línea que ya existía conserva el precio con que se pidió.
        """
        previos = {l.producto_id: l for l in anteriores or []}
        for linea in lineas:
            previo = previos.get(linea.producto_id)
            if previo is not None:
                linea.nombre, linea.precio = previo.nombre, previo.precio
                continue
            producto = self.product_service.get(linea.producto_id, scope)
            linea.nombre, linea.precio = producto.nombre, producto.precio

    def _parse_lineas(self, raw_lineas: Any) -> List[LineaPedido]:
        if not isinstance(raw_lineas, list) or not raw_lineas:
            raise ValidationError("El pedido debe tener al menos un producto")
        lineas = []
        for raw in raw_lineas:
            if not isinstance(raw, dict) or raw.get('producto_id') is None:
                raise ValidationError("Cada línea necesita producto_id")
            pid = ProductService._parse_int(raw['producto_id'], 'producto_id')
            cantidad = ProductService._parse_int(raw.get('cantidad'), 'cantidad')
            if cantidad <= 0:
                raise ValidationError("La cantidad de cada línea debe ser mayor que 0")
            lineas.append(LineaPedido(producto=ProductoId(pid), cantidad=cantidad))
        return lineas

    @staticmethod
    def _parse_estado(value: Any) -> EstadoPedido:
        try:
            return EstadoPedido(str(value).strip().lower())
        except ValueError:
            raise ValidationError(f"Estado inválido: {value}")

    @staticmethod
    def _parse_fecha(value: str, end_of_day: bool = False) -> datetime:
        try:
            fecha = datetime.fromisoformat(str(value))
        except ValueError:
            raise ValidationError(f"Fecha inválida: {value}")
        if end_of_day and len(str(value)) == 10:
            fecha = fecha.replace(hour=23, minute=59, second=59, microsecond=999999)
        if fecha.tzinfo is None:
            fecha = fecha.replace(tzinfo=timezone.utc)
        return fecha
