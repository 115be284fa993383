# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS - Inyección de servicios
# ==============================================================================
# Punto único para obtener repositorios y servicios ya cableados:
#   - Los servicios reciben sus repositorios y la caché por constructor
#   - Los tests crean un contenedor sobre una carpeta temporal
#   - Cambiar el almacenamiento solo toca este archivo
#
# Orden de dependencias:
#   ProductService → ComboService → StockService → OrderService
# ==============================================================================

from typing import Optional

from app_pedidos import config
from app_pedidos.repositories import OrderRepository, ProductRepository
from app_pedidos.services import (
    ComboService,
    MemoryCache,
    OrderService,
    ProductService,
    StockService,
)


class AppContainer:
    """
    Contenedor de dependencias de la aplicación.

    Implementa el patrón Singleton para asegurar una única instancia
    de cada repositorio y servicio.

    Uso:
        container = AppContainer(base_path='/path/to/data')
        order_service = container.order_service
    """

    _instance: Optional['AppContainer'] = None

    def __new__(cls, base_path: str = None):
        """Singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, base_path: str = None):
        """
        Args:
            base_path: Carpeta con productos.json y pedidos.json
        """
        if self._initialized:
            return

        self._base_path = base_path or config.DATA_DIR

        # Repositorios (lazy loading)
        self._product_repo: Optional[ProductRepository] = None
        self._order_repo: Optional[OrderRepository] = None

        # Servicios (lazy loading)
        self._cache: Optional[MemoryCache] = None
        self._product_service: Optional[ProductService] = None
        self._combo_service: Optional[ComboService] = None
        self._stock_service: Optional[StockService] = None
        self._order_service: Optional[OrderService] = None

        self._initialized = True

    @property
    def base_path(self) -> str:
        return self._base_path

    # =========================================================================
    # REPOSITORIOS
    # =========================================================================

    @property
    def product_repo(self) -> ProductRepository:
        """Repositorio de productos (singleton)."""
        if self._product_repo is None:
            self._product_repo = ProductRepository(self._base_path)
        return self._product_repo

    @property
    def order_repo(self) -> OrderRepository:
        """Repositorio de pedidos (singleton)."""
        if self._order_repo is None:
            self._order_repo = OrderRepository(self._base_path)
        return self._order_repo

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    @property
    def cache(self) -> MemoryCache:
        if self._cache is None:
            self._cache = MemoryCache(default_ttl=config.CACHE_TTL)
        return self._cache

    @property
    def product_service(self) -> ProductService:
        """Servicio de productos (singleton)."""
        if self._product_service is None:
            self._product_service = ProductService(self.product_repo, self.cache)
        return self._product_service

    @property
    def combo_service(self) -> ComboService:
        """Servicio de combos (singleton)."""
        if self._combo_service is None:
            self._combo_service = ComboService(self.product_service)
        return self._combo_service

    @property
    def stock_service(self) -> StockService:
        """Ledger de stock (singleton)."""
        if self._stock_service is None:
            self._stock_service = StockService(
                self.product_repo,
                self.combo_service,
                self.cache
            )
        return self._stock_service

    @property
    def order_service(self) -> OrderService:
        """Servicio de pedidos (singleton)."""
        if self._order_service is None:
            self._order_service = OrderService(
                self.order_repo,
                self.product_service,
                self.combo_service,
                self.stock_service
            )
        return self._order_service

    # =========================================================================
    # UTILIDADES
    # =========================================================================

    def reset(self) -> None:
        """
        Reinicia todas las instancias.
        Útil para testing o para recargar datos.
        """
        if self._cache is not None:
            self._cache.clear()
        self._product_repo = None
        self._order_repo = None

        self._cache = None
        self._product_service = None
        self._combo_service = None
        self._stock_service = None
        self._order_service = None

    @classmethod
    def get_instance(cls, base_path: str = None) -> 'AppContainer':
        """
        Obtiene la instancia singleton del contenedor.

        Args:
            base_path: Ruta de datos (solo se usa en primera llamada)
        """
        if cls._instance is None:
            return cls(base_path)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Elimina la instancia singleton (útil para tests)."""
        if cls._instance is not None:
            cls._instance.reset()
            cls._instance = None

