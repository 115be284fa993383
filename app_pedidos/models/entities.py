# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Cada entidad representa un concepto del negocio (producto, combo, pedido).
# Diseñadas para ser independientes del mecanismo de persistencia:
# to_dict() produce el formato JSON, from_dict() lo reconstruye.
# ==============================================================================

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union


# ==============================================================================
# ENUMERACIONES - Categorías y estados válidos
# ==============================================================================

class Categoria(str, Enum):
    """Categorías de producto. Limpieza tiene piso de stock, mantenimiento no."""
    LIMPIEZA = "limpieza"
    MANTENIMIENTO = "mantenimiento"


class EstadoPedido(str, Enum):
    """Estados posibles de un pedido."""
    PENDIENTE = "pendiente"
    APROBADO_SUPERVISOR = "aprobado_supervisor"
    EN_PREPARACION = "en_preparacion"
    ENTREGADO = "entregado"
    APROBADO = "aprobado"
    RECHAZADO = "rechazado"      # Stock devuelto al inventario


# Stock mínimo que un producto de limpieza debe conservar tras cualquier venta
STOCK_MINIMO_LIMPIEZA = 1

# Subcategorías aceptadas por categoría
SUBCATEGORIAS = {
    Categoria.LIMPIEZA: frozenset([
        'accesorios', 'aerosoles', 'bolsas', 'estandar', 'indumentaria',
        'liquidos', 'papeles', 'sinClasificarLimpieza',
    ]),
    Categoria.MANTENIMIENTO: frozenset([
        'iluminaria', 'electricidad', 'cerraduraCortina', 'pintura',
        'superficiesConstruccion', 'plomeria',
    ]),
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ==============================================================================
# REFERENCIAS A PRODUCTOS
# ==============================================================================
# Un combo o una línea de pedido apunta a un producto. La referencia puede ser
# solo el ID (tal como se persiste) o el producto ya cargado. Ambas variantes
# exponen .id; ComboService.resolve() convierte un ProductoId en Producto.

@dataclass(frozen=True)
class ProductoId:
    """Referencia sin resolver: solo el ID del producto."""
    id: int


@dataclass(frozen=True)
class ProductoResuelto:
    """Referencia resuelta: lleva el producto completo."""
    producto: 'Producto'

    @property
    def id(self) -> int:
        return self.producto.id


ProductoRef = Union[ProductoId, ProductoResuelto]


# ==============================================================================
# ENTIDADES DE INVENTARIO
# ==============================================================================

@dataclass
class ComboItem:
    """
    Componente de un combo.

    Attributes:
        producto: Referencia al producto componente (nunca otro combo)
        cantidad: Unidades del componente por cada combo
    """
    producto: ProductoRef
    cantidad: int = 1

    @property
    def producto_id(self) -> int:
        return self.producto.id

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario para persistencia."""
        return {
            'producto_id': self.producto.id,
            'cantidad': self.cantidad,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ComboItem':
        """Crea instancia desde diccionario."""
        return cls(
            producto=ProductoId(int(data.get('producto_id', 0))),
            cantidad=int(data.get('cantidad', 1)),
        )


@dataclass
class Producto:
    """
    Producto del inventario.

    Attributes:
        id: Identificador único del producto
        nombre: Nombre del producto
        categoria: limpieza | mantenimiento
        precio: Precio de venta (>= 0)
        stock: Unidades en inventario (mantenimiento admite negativos)
        vendidos: Unidades vendidas
        descripcion: Descripción libre
        sub_categoria: Subcategoría dentro de la categoría
        es_combo: True si el producto agrupa otros productos
        items_combo: Componentes del combo (vacío si no es combo)
        proveedor_info: Datos del proveedor
    """
    id: int
    nombre: str
    categoria: Categoria
    precio: float = 0.0
    stock: int = 0
    vendidos: int = 0
    descripcion: str = ''
    sub_categoria: str = ''
    es_combo: bool = False
    items_combo: List[ComboItem] = field(default_factory=list)
    proveedor_info: str = 'Sin informacion'
    created_at: str = ''
    updated_at: str = ''

    def __post_init__(self):
        if not self.created_at:
            self.created_at = _now_iso()
        if not self.updated_at:
            self.updated_at = self.created_at

    @property
    def tiene_piso(self) -> bool:
        """Los productos de limpieza no pueden quedar por debajo de 1."""
        return self.categoria == Categoria.LIMPIEZA

    def permite_descontar(self, cantidad: int) -> bool:
        """Verifica el piso de categoría para un descuento de `cantidad` unidades."""
        if not self.tiene_piso:
            return True
        return self.stock - cantidad >= STOCK_MINIMO_LIMPIEZA

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario para persistencia JSON."""
        return {
            'nombre': self.nombre,
            'descripcion': self.descripcion,
            'categoria': self.categoria.value,
            'sub_categoria': self.sub_categoria,
            'precio': self.precio,
            'stock': self.stock,
            'vendidos': self.vendidos,
            'es_combo': self.es_combo,
            'items_combo': [item.to_dict() for item in self.items_combo],
            'proveedor_info': self.proveedor_info,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }

    def to_public_dict(self) -> Dict[str, Any]:
        """Formato para respuestas de la API (incluye el ID)."""
        data = self.to_dict()
        data['id'] = self.id
        return data

    @classmethod
    def from_dict(cls, pid: int, data: Dict[str, Any]) -> 'Producto':
        """Crea instancia desde diccionario (formato JSON)."""
        return cls(
            id=int(pid),
            nombre=data.get('nombre', ''),
            descripcion=data.get('descripcion', ''),
            categoria=Categoria(data.get('categoria', Categoria.MANTENIMIENTO.value)),
            sub_categoria=data.get('sub_categoria', ''),
            precio=float(data.get('precio', 0.0)),
            stock=int(data.get('stock', 0)),
            vendidos=int(data.get('vendidos', 0)),
            es_combo=bool(data.get('es_combo', False)),
            items_combo=[ComboItem.from_dict(i) for i in data.get('items_combo', [])],
            proveedor_info=data.get('proveedor_info', 'Sin informacion'),
            created_at=data.get('created_at', ''),
            updated_at=data.get('updated_at', ''),
        )


# ==============================================================================
# ENTIDADES DE PEDIDO
# ==============================================================================

@dataclass
class LineaPedido:
    """
    Línea de un pedido.

    Attributes:
        producto: Referencia al producto pedido
        cantidad: Unidades pedidas (> 0)
        nombre: Nombre del producto al momento del pedido
        precio: Precio unitario al momento del pedido
    """
    producto: ProductoRef
    cantidad: int
    nombre: str = ''
    precio: float = 0.0

    @property
    def producto_id(self) -> int:
        return self.producto.id

    def to_dict(self) -> Dict[str, Any]:
        return {
            'producto_id': self.producto.id,
            'cantidad': self.cantidad,
            'nombre': self.nombre,
            'precio': self.precio,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LineaPedido':
        return cls(
            producto=ProductoId(int(data.get('producto_id', 0))),
            cantidad=int(data.get('cantidad', 0)),
            nombre=data.get('nombre', ''),
            precio=float(data.get('precio', 0.0)),
        )


@dataclass
class Pedido:
    """
    Pedido de un cliente.

    Attributes:
        id: Identificador único
        cliente: Referencia al cliente
        productos: Líneas del pedido
        n_pedido: Número secuencial visible
        seccion_del_servicio: Agrupación opcional dentro del cliente
        fecha: Fecha de creación (ISO)
        estado: Estado actual del pedido
        detalle: Detalle libre
        observaciones: Observaciones internas
    """
    id: int
    cliente: str
    productos: List[LineaPedido] = field(default_factory=list)
    n_pedido: int = 0
    seccion_del_servicio: str = ''
    fecha: str = ''
    estado: EstadoPedido = EstadoPedido.PENDIENTE
    detalle: str = ''
    observaciones: str = ''
    updated_at: Optional[str] = None

    def __post_init__(self):
        if not self.fecha:
            self.fecha = _now_iso()

    @property
    def is_rejected(self) -> bool:
        """Un pedido rechazado ya devolvió su stock."""
        return self.estado == EstadoPedido.RECHAZADO

    @property
    def total(self) -> float:
        return round(sum(l.cantidad * l.precio for l in self.productos), 2)

    def cantidades_por_producto(self) -> Dict[int, int]:
        """Suma las cantidades por producto (una misma línea puede repetirse)."""
        return cantidades_por_producto(self.productos)

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario para persistencia JSON."""
        d = {
            'n_pedido': self.n_pedido,
            'cliente': self.cliente,
            'seccion_del_servicio': self.seccion_del_servicio,
            'fecha': self.fecha,
            'estado': self.estado.value,
            'productos': [l.to_dict() for l in self.productos],
            'detalle': self.detalle,
            'observaciones': self.observaciones,
        }
        if self.updated_at:
            d['updated_at'] = self.updated_at
        return d

    def to_public_dict(self) -> Dict[str, Any]:
        data = self.to_dict()
        data['id'] = self.id
        data['total'] = self.total
        return data

    @classmethod
    def from_dict(cls, oid: int, data: Dict[str, Any]) -> 'Pedido':
        """Crea instancia desde diccionario (formato JSON)."""
        return cls(
            id=int(oid),
            cliente=data.get('cliente', ''),
            productos=[LineaPedido.from_dict(l) for l in data.get('productos', [])],
            n_pedido=int(data.get('n_pedido', 0)),
            seccion_del_servicio=data.get('seccion_del_servicio', ''),
            fecha=data.get('fecha', ''),
            estado=EstadoPedido(data.get('estado', EstadoPedido.PENDIENTE.value)),
            detalle=data.get('detalle', ''),
            observaciones=data.get('observaciones', ''),
            updated_at=data.get('updated_at'),
        )


def cantidades_por_producto(lineas: List[LineaPedido]) -> Dict[int, int]:
    """Construye el mapa {producto_id: cantidad total} de una lista de líneas."""
    cantidades: Dict[int, int] = {}
    for linea in lineas:
        cantidades[linea.producto_id] = cantidades.get(linea.producto_id, 0) + linea.cantidad
    return cantidades
