# ==============================================================================
# SERVICIO DE COMBOS
# ==============================================================================
# Resuelve referencias a productos y expande combos en sus componentes.
# La validez de un combo se verifica solo al crearlo/editarlo, por eso la
# expansión puede encontrarse con un componente que ya no existe.
# ==============================================================================

from typing import List, Optional, Union

from app_pedidos.errors import NotFoundError, ValidationError
from app_pedidos.models import ComboItem, Producto, ProductoRef, ProductoResuelto
from app_pedidos.repositories.transaction import TransactionScope
from app_pedidos.services.product_service import ProductService


class ComboService:
    """
    Servicio de expansión de combos.

    Responsabilidades:
    - Resolver ProductoRef (ID o producto cargado) a Producto
    - Expandir un combo en componentes resueltos con sus cantidades
    - Calcular el precio informativo de un combo (suma de componentes)
    """

    def __init__(self, product_service: ProductService):
        self.product_service = product_service

    def resolve(
        self,
        ref: ProductoRef,
        tx: Optional[TransactionScope] = None
    ) -> Producto:
        """
        Convierte una referencia en el producto correspondiente.

        Raises:
            NotFoundError: Si la referencia apunta a un producto inexistente
        """
        if isinstance(ref, ProductoResuelto):
            return ref.producto
        return self.product_service.get(ref.id, tx)

    def expand(
        self,
        producto: Union[int, Producto],
        tx: Optional[TransactionScope] = None
    ) -> List[ComboItem]:
        """
        Expande un combo en sus componentes.

        Args:
            producto: ID del producto o el producto ya cargado
            tx: Transacción en curso (para leer la copia de trabajo)

        Returns:
            Lista de ComboItem con referencias resueltas; vacía si no es combo

        Raises:
            NotFoundError: Si el producto o algún componente no existe
        """
        if not isinstance(producto, Producto):
            producto = self.product_service.get(producto, tx)

        if not producto.es_combo:
            return []

        expanded = []
        for item in producto.items_combo:
            try:
                componente = self.resolve(item.producto, tx)
            except NotFoundError:
                raise NotFoundError(
                    f"El combo '{producto.nombre}' ({producto.id}) referencia un "
                    f"componente inexistente: {item.producto_id}"
                )
            expanded.append(ComboItem(
                producto=ProductoResuelto(componente),
                cantidad=item.cantidad,
            ))
        return expanded

    def compute_combo_price(
        self,
        pid: int,
        tx: Optional[TransactionScope] = None
    ) -> float:
        """
        Precio informativo del combo: suma de precio * cantidad de componentes.
        Puede diferir del precio guardado del combo, que es el que vale para ventas.

        Raises:
            NotFoundError: Si el combo o un componente no existe
            ValidationError: Si el producto no es un combo
        """
        producto = self.product_service.get(pid, tx)
        if not producto.es_combo:
            raise ValidationError("El producto no es un combo")

        total = sum(
            item.producto.producto.precio * item.cantidad
            for item in self.expand(producto, tx)
        )
        return round(total, 2)
