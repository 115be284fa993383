# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos del sistema
# ==============================================================================
# Entidades del dominio como dataclasses, independientes de la persistencia.
# ==============================================================================

from .entities import (
    # Enumeraciones y constantes
    Categoria,
    EstadoPedido,
    STOCK_MINIMO_LIMPIEZA,
    SUBCATEGORIAS,

    # Referencias
    ProductoId,
    ProductoResuelto,
    ProductoRef,

    # Inventario
    Producto,
    ComboItem,

    # Pedidos
    Pedido,
    LineaPedido,
    cantidades_por_producto,
)

__all__ = [
    'Categoria',
    'EstadoPedido',
    'STOCK_MINIMO_LIMPIEZA',
    'SUBCATEGORIAS',

    'ProductoId',
    'ProductoResuelto',
    'ProductoRef',

    'Producto',
    'ComboItem',

    'Pedido',
    'LineaPedido',
    'cantidades_por_producto',
]
