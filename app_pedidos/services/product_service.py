# ==============================================================================
# SERVICIO DE PRODUCTOS
# ==============================================================================
# Alta, modificación, baja y lectura de productos (incluidos los combos).
# Las lecturas pasan por la caché; toda escritura confirmada la invalida.
# El stock solo se modifica aquí en altas/ediciones administrativas: las
# ventas y los pedidos lo mueven a través de StockService.
# ==============================================================================

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app_pedidos.errors import ConflictError, NotFoundError, ValidationError
from app_pedidos.models import (
    Categoria,
    ComboItem,
    Producto,
    ProductoId,
    STOCK_MINIMO_LIMPIEZA,
    SUBCATEGORIAS,
)
from app_pedidos.repositories.base import BaseRepository
from app_pedidos.repositories.interfaces import ICache
from app_pedidos.repositories.product_repository import ProductRepository
from app_pedidos.repositories.transaction import TransactionScope, transaction
from app_pedidos.services.cache_service import (
    KEY_TODOS,
    NullCache,
    category_key,
    invalidate_product,
    product_key,
)

logger = logging.getLogger(__name__)


class ProductService:
    """
    Servicio para gestión de productos.

    Responsabilidades:
    - CRUD de productos con validación de reglas de negocio
    - Validación de combos (componentes existentes y no combos)
    - Bloqueo de bajas de productos usados en combos
    - Lectura a través de caché e invalidación tras cada escritura
    """

    # Campos que se pueden modificar con update()
    ALLOWED_FIELDS = (
        'nombre', 'descripcion', 'categoria', 'sub_categoria', 'precio',
        'stock', 'es_combo', 'items_combo', 'proveedor_info',
    )

    def __init__(self, product_repo: ProductRepository, cache: Optional[ICache] = None):
        """
        Args:
            product_repo: Repositorio de productos
            cache: Implementación de ICache (opcional)
        """
        self.product_repo = product_repo
        self.cache = cache or NullCache()

    # =========================================================================
    # LECTURA
    # =========================================================================

    def get(self, pid: int, tx: Optional[TransactionScope] = None) -> Producto:
        """
        Obtiene un producto por su ID.

        Dentro de una transacción lee la copia de trabajo (sin caché).

        Raises:
            NotFoundError: Si el producto no existe
        """
        if tx is not None:
            data = self.product_repo.get_product(pid, tx)
        else:
            cached = self.cache.get(product_key(pid))
            if cached is not None:
                return Producto.from_dict(pid, cached)
            # Lectura y carga en caché bajo el lock: ningún commit (ni su
            # invalidación) puede quedar entre las dos
            with BaseRepository.lock():
                data = self.product_repo.get_product(pid)
                if data is not None:
                    self.cache.set(product_key(pid), data)

        if data is None:
            raise NotFoundError(f"Producto no encontrado: {pid}")
        return Producto.from_dict(pid, data)

    def list_products(self, categoria: str = None) -> List[Producto]:
        """
        Lista productos, opcionalmente filtrados por categoría.

        Args:
            categoria: limpieza | mantenimiento | None (todas)
        """
        if categoria is not None:
            categoria = self._parse_categoria(categoria).value
            key = category_key(categoria)
        else:
            key = KEY_TODOS

        pairs = self.cache.get(key)
        if pairs is None:
            with BaseRepository.lock():
                if categoria is None:
                    pairs = self.product_repo.all_products()
                else:
                    pairs = self.product_repo.by_category(categoria)
                self.cache.set(key, pairs)
        return [Producto.from_dict(pid, data) for pid, data in pairs]

    def combos_using(
        self,
        pid: int,
        tx: Optional[TransactionScope] = None
    ) -> List[Producto]:
        """Combos que incluyen al producto como componente."""
        return [
            Producto.from_dict(cid, data)
            for cid, data in self.product_repo.find_combos_using(pid, tx)
        ]

    # =========================================================================
    # ESCRITURA
    # =========================================================================

    def create(
        self,
        datos: Dict[str, Any],
        tx: Optional[TransactionScope] = None
    ) -> Producto:
        """
        Crea un producto.

        Args:
            datos: nombre, categoria, precio, stock y opcionalmente
                   descripcion, sub_categoria, es_combo, items_combo,
                   proveedor_info

        Returns:
            Producto creado

        Raises:
            ValidationError: Si los datos violan alguna regla
        """
        for required in ('nombre', 'categoria', 'precio', 'stock'):
            if datos.get(required) in (None, ''):
                raise ValidationError(f"Falta el campo obligatorio '{required}'")

        with transaction(tx) as scope:
            pid = scope.next_id(self.product_repo)
            producto = Producto(
                id=pid,
                nombre=str(datos['nombre']).strip(),
                categoria=self._parse_categoria(datos['categoria']),
                precio=self._parse_precio(datos['precio']),
                stock=self._parse_int(datos['stock'], 'stock'),
                descripcion=str(datos.get('descripcion') or ''),
                sub_categoria=str(datos.get('sub_categoria') or ''),
                es_combo=bool(datos.get('es_combo', False)),
                items_combo=self._parse_items(datos.get('items_combo') or []),
                proveedor_info=str(datos.get('proveedor_info') or 'Sin informacion'),
            )
            self._validate(producto, scope)

            scope.put(self.product_repo, pid, producto.to_dict())
            scope.on_commit(
                lambda: invalidate_product(self.cache, pid, producto.categoria.value)
            )

        logger.info("Producto creado: %s (%s, stock=%s, combo=%s)",
                    pid, producto.nombre, producto.stock, producto.es_combo)
        return producto

    def update(
        self,
        pid: int,
        cambios: Dict[str, Any],
        tx: Optional[TransactionScope] = None
    ) -> Producto:
        """
        Actualiza un producto (solo campos permitidos).

        Raises:
            NotFoundError: Si el producto no existe
            ValidationError: Si el resultado viola alguna regla
        """
        filtered = {k: v for k, v in cambios.items() if k in self.ALLOWED_FIELDS}

        with transaction(tx) as scope:
            producto = self.get(pid, scope)
            categoria_anterior = producto.categoria.value

            if 'nombre' in filtered:
                producto.nombre = str(filtered['nombre']).strip()
            if 'descripcion' in filtered:
                producto.descripcion = str(filtered['descripcion'] or '')
            if 'categoria' in filtered:
                producto.categoria = self._parse_categoria(filtered['categoria'])
            if 'sub_categoria' in filtered:
                producto.sub_categoria = str(filtered['sub_categoria'] or '')
            if 'precio' in filtered:
                producto.precio = self._parse_precio(filtered['precio'])
            if 'stock' in filtered:
                producto.stock = self._parse_int(filtered['stock'], 'stock')
            if 'es_combo' in filtered:
                producto.es_combo = bool(filtered['es_combo'])
                if not producto.es_combo and 'items_combo' not in filtered:
                    producto.items_combo = []
            if 'items_combo' in filtered:
                producto.items_combo = self._parse_items(filtered['items_combo'] or [])
            if 'proveedor_info' in filtered:
                producto.proveedor_info = str(filtered['proveedor_info'] or '')

            self._validate(producto, scope)
            if producto.es_combo:
                usado_en = self.combos_using(pid, scope)
                if usado_en:
                    raise ValidationError(
                        f"El producto {pid} es componente de otros combos y no puede ser combo: "
                        + ", ".join(c.nombre for c in usado_en)
                    )

            producto.updated_at = datetime.now(timezone.utc).isoformat()
            scope.put(self.product_repo, pid, producto.to_dict())
            scope.on_commit(lambda: invalidate_product(
                self.cache, pid, categoria_anterior, producto.categoria.value
            ))

        logger.info("Producto actualizado: %s campos=%s", pid, sorted(filtered))
        return producto

    def delete(self, pid: int, tx: Optional[TransactionScope] = None) -> Producto:
        """
        Elimina un producto.

        Raises:
            NotFoundError: Si el producto no existe
            ConflictError: Si el producto es componente de algún combo
        """
        with transaction(tx) as scope:
            producto = self.get(pid, scope)

            combos = self.combos_using(pid, scope)
            if combos:
                referencias = [{'id': c.id, 'nombre': c.nombre} for c in combos]
                raise ConflictError(
                    f"No se puede eliminar '{producto.nombre}': es parte de los combos "
                    + ", ".join(f"{c.nombre} ({c.id})" for c in combos),
                    referencias=referencias,
                )

            scope.delete(self.product_repo, pid)
            scope.on_commit(
                lambda: invalidate_product(self.cache, pid, producto.categoria.value)
            )

        logger.info("Producto eliminado: %s (%s)", pid, producto.nombre)
        return producto

    # =========================================================================
    # VALIDACIONES
    # =========================================================================

    def _validate(self, producto: Producto, scope: TransactionScope) -> None:
        """
        Reglas de producto:
        - precio >= 0
        - limpieza: stock >= 1
        - combo: al menos un componente, todos existentes y no combos
        - no combo: sin componentes
        """
        if not producto.nombre:
            raise ValidationError("El nombre del producto es obligatorio")
        if producto.precio < 0:
            raise ValidationError("El precio no puede ser negativo")
        if producto.tiene_piso and producto.stock < STOCK_MINIMO_LIMPIEZA:
            raise ValidationError(
                f"Los productos de limpieza deben tener stock mínimo de {STOCK_MINIMO_LIMPIEZA}"
            )
        if producto.sub_categoria and \
                producto.sub_categoria not in SUBCATEGORIAS[producto.categoria]:
            raise ValidationError(
                f"Subcategoría '{producto.sub_categoria}' inválida para {producto.categoria.value}"
            )

        if not producto.es_combo:
            if producto.items_combo:
                raise ValidationError("Solo un combo puede tener componentes")
            return

        if not producto.items_combo:
            raise ValidationError("Un combo debe tener al menos un producto")

        for item in producto.items_combo:
            if item.cantidad <= 0:
                raise ValidationError("La cantidad de cada componente debe ser mayor que 0")
            if item.producto_id == producto.id:
                raise ValidationError("Un combo no puede contenerse a sí mismo")
            data = self.product_repo.get_product(item.producto_id, scope)
            if data is None:
                raise ValidationError(f"Componente inexistente: {item.producto_id}")
            if data.get('es_combo'):
                raise ValidationError(
                    f"El componente '{data.get('nombre', item.producto_id)}' es un combo; "
                    "no se admiten combos anidados"
                )

    @staticmethod
    def _parse_categoria(value: Any) -> Categoria:
        try:
            return Categoria(str(value).strip().lower())
        except ValueError:
            raise ValidationError(f"Categoría inválida: {value}")

    @staticmethod
    def _parse_precio(value: Any) -> float:
        try:
            precio = float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"Precio inválido: {value}")
        if not math.isfinite(precio):
            raise ValidationError(f"Precio inválido: {value}")
        return round(precio, 2)

    @staticmethod
    def _parse_int(value: Any, campo: str) -> int:
        if isinstance(value, bool):
            raise ValidationError(f"Valor inválido para {campo}: {value}")
        try:
            number = float(value)
            entero = int(number)
        except (TypeError, ValueError, OverflowError):
            raise ValidationError(f"Valor inválido para {campo}: {value}")
        if number != entero:
            raise ValidationError(f"{campo} debe ser un número entero")
        return entero

    def _parse_items(self, raw_items: List[Dict[str, Any]]) -> List[ComboItem]:
        if not isinstance(raw_items, list):
            raise ValidationError("items_combo debe ser una lista")
        items = []
        for raw in raw_items:
            if not isinstance(raw, dict) or raw.get('producto_id') is None:
                raise ValidationError("Cada componente necesita producto_id")
            items.append(ComboItem(
                producto=ProductoId(self._parse_int(raw['producto_id'], 'producto_id')),
                cantidad=self._parse_int(raw.get('cantidad', 1), 'cantidad'),
            ))
        return items
