# ==============================================================================
# SERVICIO DE CACHÉ - Copias de lectura de productos
# ==============================================================================
# Caché en memoria con expiración por TTL. Se inyecta en los servicios
# (nunca se accede como global): el servicio de productos lee a través de
# ella y productos/stock la invalidan después de cada commit.
#
# CLAVES:
#   producto:<id>                  → Producto individual
#   productos:categoria:<cat>      → Lista de productos de una categoría
#   productos:todos                → Lista completa
# ==============================================================================

import threading
import time
from typing import Any, Dict, Optional, Tuple

PREFIX_PRODUCTO = 'producto:'
PREFIX_LISTAS = 'productos:'
KEY_TODOS = 'productos:todos'


def product_key(pid: int) -> str:
    return f"{PREFIX_PRODUCTO}{pid}"


def category_key(categoria: str) -> str:
    return f"{PREFIX_LISTAS}categoria:{categoria}"


class MemoryCache:
    """
    Caché en memoria thread-safe con TTL.

    Uso:
        cache = MemoryCache(default_ttl=600)
        cache.set('producto:1', producto)
        cache.get('producto:1')
        cache.invalidate('producto:1')
    """

    def __init__(self, default_ttl: int = 600):
        self.default_ttl = default_ttl
        self._data: Dict[str, Tuple[float, Any]] = {}   # {clave: (expira, valor)}
        self._lock = threading.RLock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                self.misses += 1
                return None
            expires_at, value = entry
            if expires_at < time.monotonic():
                del self._data[key]
                self.misses += 1
                return None
            self.hits += 1
            return value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._data[key] = (time.monotonic() + ttl, value)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def invalidate_prefix(self, prefix: str) -> None:
        with self._lock:
            for key in [k for k in self._data if k.startswith(prefix)]:
                del self._data[key]

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {'hits': self.hits, 'misses': self.misses, 'keys': len(self._data)}


class NullCache:
    """Caché que no guarda nada (para servicios sin caché)."""

    def get(self, key: str) -> Optional[Any]:
        return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        pass

    def invalidate(self, key: str) -> None:
        pass

    def invalidate_prefix(self, prefix: str) -> None:
        pass


def invalidate_product(cache, pid: int, *categorias: str) -> None:
    """
    Invalida la copia de un producto y las listas que lo contienen.

    Args:
        cache: Implementación de ICache
        pid: ID del producto
        categorias: Categorías afectadas (la anterior y la nueva si cambió)
    """
    cache.invalidate(product_key(pid))
    for categoria in set(c for c in categorias if c):
        cache.invalidate(category_key(categoria))
    cache.invalidate(KEY_TODOS)
