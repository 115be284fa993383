# ==============================================================================
# CAPA DE SERVICIOS - Lógica de negocio
# ==============================================================================
# Esta capa contiene TODA la lógica de negocio de la aplicación.
#
# PRINCIPIOS:
# 1. Los servicios orquestan operaciones entre repositorios
# 2. Toda lectura-verificación-escritura corre en un TransactionScope
# 3. Las rutas solo llaman a servicios
# 4. El stock solo lo mueve StockService (ventas) o OrderService vía StockService
#
# ESTRUCTURA:
# ├── cache_service.py   → Caché en memoria (cache-aside) e invalidación
# ├── product_service.py → Productos y combos: alta, edición, baja, lectura
# ├── combo_service.py   → Resolución de referencias y expansión de combos
# ├── stock_service.py   → Ledger: vender, cancelar, ajustar
# └── order_service.py   → Pedidos: alta, edición, baja, estados, consultas
# ==============================================================================

from app_pedidos.services.cache_service import MemoryCache, NullCache
from app_pedidos.services.product_service import ProductService
from app_pedidos.services.combo_service import ComboService
from app_pedidos.services.stock_service import StockService
from app_pedidos.services.order_service import OrderService

__all__ = [
    'MemoryCache',
    'NullCache',
    'ProductService',
    'ComboService',
    'StockService',
    'OrderService',
]
