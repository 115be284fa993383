# ==============================================================================
# SERVICIO DE STOCK (LEDGER)
# ==============================================================================
# Única vía de modificación de stock y vendidos por ventas y pedidos.
#
# REGLAS:
# - Limpieza: el stock nunca baja de 1 por una venta o pedido
# - Mantenimiento: sin piso, el stock puede quedar negativo
# - Vender un combo descuenta el combo y todos sus componentes, o nada
# - vendidos nunca baja de 0 al devolver
#
# Cada operación corre dentro de un TransactionScope (propio o del llamador):
# primero se verifican todas las reglas y recién después se escribe.
# ==============================================================================

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from app_pedidos.errors import InsufficientStockError, ValidationError
from app_pedidos.models import Producto
from app_pedidos.performance_logger import profile_function
from app_pedidos.repositories.interfaces import ICache
from app_pedidos.repositories.product_repository import ProductRepository
from app_pedidos.repositories.transaction import TransactionScope, transaction
from app_pedidos.services.cache_service import NullCache, invalidate_product
from app_pedidos.services.combo_service import ComboService

logger = logging.getLogger(__name__)


class StockService:
    """
    Ledger de stock.

    Responsabilidades:
    - sell: vender una unidad (con cascada a componentes si es combo)
    - cancel: revertir una venta
    - adjust: aplicar deltas arbitrarios (usado por el motor de pedidos)
    """

    def __init__(
        self,
        product_repo: ProductRepository,
        combo_service: ComboService,
        cache: Optional[ICache] = None
    ):
        self.product_repo = product_repo
        self.combo_service = combo_service
        self.cache = cache or NullCache()

    # =========================================================================
    # OPERACIONES PÚBLICAS
    # =========================================================================

    @profile_function(name="Vender producto")
    def sell(self, pid: int, tx: Optional[TransactionScope] = None) -> Producto:
        """
        Vende una unidad del producto.

        Si es combo, descuenta de cada componente su cantidad. Se verifican
        todos los pisos antes de escribir nada.

        Returns:
            Producto actualizado

        Raises:
            NotFoundError: Si el producto o algún componente no existe
            InsufficientStockError: Si la venta viola el piso de limpieza
        """
        with transaction(tx) as scope:
            producto = self.combo_service.product_service.get(pid, scope)

            # Vender uno más dejaría el stock en 0
            if not producto.permite_descontar(1):
                raise self._rejection(producto, 1)

            componentes = self._components(producto, scope)
            for componente, cantidad in componentes:
                if not componente.permite_descontar(cantidad):
                    raise self._rejection(componente, cantidad, combo=producto)

            for componente, cantidad in componentes:
                componente.stock -= cantidad
                componente.vendidos += cantidad
                self._save(scope, componente)

            producto.stock -= 1
            producto.vendidos += 1
            self._save(scope, producto)

        logger.info("Venta: producto %s stock=%s vendidos=%s componentes=%s",
                    pid, producto.stock, producto.vendidos,
                    {c.id: q for c, q in componentes})
        return producto

    @profile_function(name="Cancelar venta")
    def cancel(self, pid: int, tx: Optional[TransactionScope] = None) -> Producto:
        """
        Revierte una venta: devuelve stock y descuenta vendidos (mínimo 0),
        también en los componentes si es combo.

        Raises:
            NotFoundError: Si el producto o algún componente no existe
            ValidationError: Si el producto no tiene ventas para cancelar
        """
        with transaction(tx) as scope:
            producto = self.combo_service.product_service.get(pid, scope)
            if producto.vendidos <= 0:
                raise ValidationError(
                    f"El producto '{producto.nombre}' no tiene ventas para cancelar"
                )

            componentes = self._components(producto, scope)
            for componente, cantidad in componentes:
                componente.stock += cantidad
                componente.vendidos = max(0, componente.vendidos - cantidad)
                self._save(scope, componente)

            producto.stock += 1
            producto.vendidos = max(0, producto.vendidos - 1)
            self._save(scope, producto)

        logger.info("Venta cancelada: producto %s stock=%s vendidos=%s",
                    pid, producto.stock, producto.vendidos)
        return producto

    def adjust(
        self,
        pid: int,
        stock_delta: int,
        sold_delta: int,
        tx: Optional[TransactionScope] = None
    ) -> Producto:
        """
        Aplica deltas de stock y vendidos a un producto.

        Args:
            pid: ID del producto
            stock_delta: Cambio de stock (negativo = descuento)
            sold_delta: Cambio de vendidos (el resultado nunca baja de 0)

        Raises:
            NotFoundError: Si el producto no existe
            InsufficientStockError: Si un descuento viola el piso de limpieza
        """
        if isinstance(stock_delta, bool) or not isinstance(stock_delta, int) or \
                isinstance(sold_delta, bool) or not isinstance(sold_delta, int):
            raise ValidationError("Los deltas de stock deben ser enteros")

        with transaction(tx) as scope:
            producto = self.combo_service.product_service.get(pid, scope)
            if stock_delta < 0 and not producto.permite_descontar(-stock_delta):
                raise self._rejection(producto, -stock_delta)

            producto.stock += stock_delta
            producto.vendidos = max(0, producto.vendidos + sold_delta)
            self._save(scope, producto)

        logger.info("Ajuste: producto %s stock%+d vendidos%+d -> stock=%s",
                    pid, stock_delta, sold_delta, producto.stock)
        return producto

    # =========================================================================
    # AUXILIARES
    # =========================================================================

    def _components(
        self,
        producto: Producto,
        scope: TransactionScope
    ) -> List[Tuple[Producto, int]]:
        """
        Componentes del combo agrupados por producto.

        Returns:
            Lista de (producto componente, cantidad total por combo)
        """
        totals: Dict[int, int] = {}
        by_id: Dict[int, Producto] = {}
        for item in self.combo_service.expand(producto, scope):
            componente = item.producto.producto
            by_id.setdefault(componente.id, componente)
            totals[componente.id] = totals.get(componente.id, 0) + item.cantidad
        return [(by_id[cid], qty) for cid, qty in totals.items()]

    def _save(self, scope: TransactionScope, producto: Producto) -> None:
        producto.updated_at = datetime.now(timezone.utc).isoformat()
        scope.put(self.product_repo, producto.id, producto.to_dict())
        pid, categoria = producto.id, producto.categoria.value
        scope.on_commit(lambda: invalidate_product(self.cache, pid, categoria))

    @staticmethod
    def _rejection(
        producto: Producto,
        cantidad: int,
        combo: Producto = None
    ) -> InsufficientStockError:
        contexto = f" (componente del combo '{combo.nombre}')" if combo else ''
        logger.warning("Stock insuficiente: producto %s stock=%s solicitado=%s%s",
                       producto.id, producto.stock, cantidad, contexto)
        return InsufficientStockError(
            f"Stock insuficiente para el producto de limpieza '{producto.nombre}'{contexto}. "
            f"Stock actual: {producto.stock}, Solicitado: {cantidad}",
            producto_id=producto.id,
            disponible=producto.stock,
            solicitado=cantidad,
        )
