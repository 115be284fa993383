# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos
# ==============================================================================
# Encapsula toda la persistencia (archivos JSON).
#
# ESTRUCTURA:
# ├── interfaces.py         → Protocolos (repositorios y caché)
# ├── base.py               → BaseRepository / DictRepository (JSON + lock)
# ├── transaction.py        → TransactionScope (unidad de trabajo atómica)
# ├── product_repository.py → Acceso a productos.json
# └── order_repository.py   → Acceso a pedidos.json
# ==============================================================================

from .base import BaseRepository, DictRepository
from .transaction import TransactionScope, transaction
from .interfaces import IProductRepository, IOrderRepository, ICache
from .product_repository import ProductRepository
from .order_repository import OrderRepository

__all__ = [
    'BaseRepository',
    'DictRepository',
    'TransactionScope',
    'transaction',
    'IProductRepository',
    'IOrderRepository',
    'ICache',
    'ProductRepository',
    'OrderRepository',
]
