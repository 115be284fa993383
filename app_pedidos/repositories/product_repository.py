# ==============================================================================
# REPOSITORIO DE PRODUCTOS
# ==============================================================================
# Encapsula el acceso a productos.json
# Formato: {product_id: {datos_producto}}
# ==============================================================================

import os
from typing import Any, Dict, List, Optional, Tuple

from app_pedidos.repositories.base import DictRepository
from app_pedidos.repositories.transaction import TransactionScope


class ProductRepository(DictRepository):
    """
    Repositorio de productos.

    Formato de datos en productos.json:
    {
        "1": {
            "nombre": "Lavandina 5L",
            "categoria": "limpieza",
            "precio": 1200.0,
            "stock": 10,
            "vendidos": 0,
            "es_combo": false,
            "items_combo": [],
            ...
        },
        "2": {...}
    }

    Las lecturas aceptan un TransactionScope opcional: dentro de una
    transacción se lee la copia de trabajo, fuera se lee el archivo.
    """

    FILE_NAME = 'productos.json'

    def __init__(self, base_path: str):
        super().__init__(os.path.join(base_path, self.FILE_NAME))

    def get_product(
        self,
        pid: int,
        tx: Optional[TransactionScope] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Obtiene un producto por su ID.

        Returns:
            Copia de los datos del producto o None
        """
        if tx is not None:
            return tx.get(self, pid)
        return self.get_by_id(pid)

    def all_products(
        self,
        tx: Optional[TransactionScope] = None
    ) -> List[Tuple[int, Dict[str, Any]]]:
        """Lista de (pid, datos) ordenada por ID."""
        pairs = list(tx.items(self)) if tx is not None else self.items()
        return sorted(pairs, key=lambda p: p[0])

    def by_category(
        self,
        categoria: str,
        tx: Optional[TransactionScope] = None
    ) -> List[Tuple[int, Dict[str, Any]]]:
        return [
            (pid, data) for pid, data in self.all_products(tx)
            if data.get('categoria') == categoria
        ]

    def find_combos_using(
        self,
        component_id: int,
        tx: Optional[TransactionScope] = None
    ) -> List[Tuple[int, Dict[str, Any]]]:
        """
        Busca los combos que incluyen un producto como componente.

        Args:
            component_id: ID del producto componente

        Returns:
            Lista de (pid, datos) de los combos que lo referencian
        """
        result = []
        for pid, data in self.all_products(tx):
            if not data.get('es_combo'):
                continue
            for item in data.get('items_combo', []):
                if int(item.get('producto_id', 0)) == int(component_id):
                    result.append((pid, data))
                    break
        return result
