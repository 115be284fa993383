# ==============================================================================
# INTERFACES DE REPOSITORIOS Y CACHÉ
# ==============================================================================
# Los servicios dependen de estos protocolos, no de las clases concretas.
# Cambiar el almacenamiento JSON por otra base solo requiere una nueva
# implementación que cumpla el mismo contrato (y un TransactionScope
# equivalente sobre ella).
# ==============================================================================

from typing import Any, Dict, List, Optional, Protocol, Tuple, runtime_checkable

from app_pedidos.repositories.transaction import TransactionScope


@runtime_checkable
class IProductRepository(Protocol):
    """Contrato del repositorio de productos."""

    def get_product(
        self, pid: int, tx: Optional[TransactionScope] = None
    ) -> Optional[Dict[str, Any]]:
        ...

    def all_products(
        self, tx: Optional[TransactionScope] = None
    ) -> List[Tuple[int, Dict[str, Any]]]:
        ...

    def by_category(
        self, categoria: str, tx: Optional[TransactionScope] = None
    ) -> List[Tuple[int, Dict[str, Any]]]:
        ...

    def find_combos_using(
        self, component_id: int, tx: Optional[TransactionScope] = None
    ) -> List[Tuple[int, Dict[str, Any]]]:
        ...


@runtime_checkable
class IOrderRepository(Protocol):
    """Contrato del repositorio de pedidos."""

    def get_order(
        self, oid: int, tx: Optional[TransactionScope] = None
    ) -> Optional[Dict[str, Any]]:
        ...

    def all_orders(
        self, tx: Optional[TransactionScope] = None
    ) -> List[Tuple[int, Dict[str, Any]]]:
        ...

    def next_order_number(self, tx: TransactionScope) -> int:
        ...


@runtime_checkable
class ICache(Protocol):
    """
    Caché de lectura (cache-aside). El servicio de productos lee a través
    de ella y emite invalidaciones después de cada escritura confirmada.
    """

    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        ...

    def invalidate(self, key: str) -> None:
        ...

    def invalidate_prefix(self, prefix: str) -> None:
        ...
