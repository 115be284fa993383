# ==============================================================================
# REPOSITORIO DE PEDIDOS
# ==============================================================================
# Encapsula el acceso a pedidos.json
# Formato: {order_id: {datos_pedido}}
# ==============================================================================

import os
from typing import Any, Dict, List, Optional, Tuple

from app_pedidos.repositories.base import DictRepository
from app_pedidos.repositories.transaction import TransactionScope


class OrderRepository(DictRepository):
    """
    Repositorio de pedidos.

    Formato de datos en pedidos.json:
    {
        "1": {
            "n_pedido": 1,
            "cliente": "Hospital Central",
            "estado": "pendiente",
            "productos": [{"producto_id": 3, "cantidad": 2, ...}],
            ...
        }
    }
    """

    FILE_NAME = 'pedidos.json'

    def __init__(self, base_path: str):
        super().__init__(os.path.join(base_path, self.FILE_NAME))

    def get_order(
        self,
        oid: int,
        tx: Optional[TransactionScope] = None
    ) -> Optional[Dict[str, Any]]:
        if tx is not None:
            return tx.get(self, oid)
        return self.get_by_id(oid)

    def all_orders(
        self,
        tx: Optional[TransactionScope] = None
    ) -> List[Tuple[int, Dict[str, Any]]]:
        """Lista de (oid, datos), más recientes primero."""
        pairs = list(tx.items(self)) if tx is not None else self.items()
        return sorted(pairs, key=lambda p: (p[1].get('fecha', ''), p[0]), reverse=True)

    def next_order_number(self, tx: TransactionScope) -> int:
        """
        Genera el siguiente número de pedido visible (n_pedido).

        Returns:
            Mayor n_pedido existente + 1
        """
        numbers = [data.get('n_pedido', 0) for _, data in tx.items(self)]
        return max(numbers, default=0) + 1
