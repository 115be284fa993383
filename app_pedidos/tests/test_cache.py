import threading

import pytest

from app_pedidos.errors import InsufficientStockError
from app_pedidos.services.cache_service import (
    KEY_TODOS,
    MemoryCache,
    NullCache,
    category_key,
    invalidate_product,
    product_key,
)


def test_memory_cache_basics():
    cache = MemoryCache(default_ttl=60)
    assert cache.get('x') is None
    cache.set('x', {'a': 1})
    assert cache.get('x') == {'a': 1}
    cache.invalidate('x')
    assert cache.get('x') is None
    assert cache.stats()['hits'] == 1
    assert cache.stats()['misses'] == 2


def test_memory_cache_expiry():
    cache = MemoryCache()
    cache.set('x', 1, ttl=-1)
    assert cache.get('x') is None


def test_invalidate_prefix():
    cache = MemoryCache()
    cache.set(product_key(1), 'a')
    cache.set(product_key(2), 'b')
    cache.set(KEY_TODOS, [])
    cache.invalidate_prefix('producto:')
    assert cache.get(product_key(1)) is None
    assert cache.get(product_key(2)) is None
    assert cache.get(KEY_TODOS) == []


def test_invalidate_product_clears_lists():
    cache = MemoryCache()
    cache.set(product_key(3), 'p')
    cache.set(category_key('limpieza'), [])
    cache.set(category_key('mantenimiento'), [])
    cache.set(KEY_TODOS, [])

    invalidate_product(cache, 3, 'limpieza')
    assert cache.get(product_key(3)) is None
    assert cache.get(category_key('limpieza')) is None
    assert cache.get(KEY_TODOS) is None
    assert cache.get(category_key('mantenimiento')) == []


def test_null_cache_stores_nothing():
    cache = NullCache()
    cache.set('x', 1)
    assert cache.get('x') is None


def test_reads_are_cached(container, make_product):
    p = make_product()
    container.cache.clear()

    container.product_service.get(p.id)
    container.product_service.get(p.id)
    assert container.cache.get(product_key(p.id)) is not None
    assert container.cache.hits >= 1


def test_sale_invalidates_product_and_lists(container, make_product):
    p = make_product(stock=5)
    container.product_service.get(p.id)
    container.product_service.list_products('limpieza')
    container.product_service.list_products()

    container.stock_service.sell(p.id)

    assert container.cache.get(product_key(p.id)) is None
    assert container.cache.get(category_key('limpieza')) is None
    assert container.cache.get(KEY_TODOS) is None
    assert container.product_service.get(p.id).stock == 4


def test_category_change_invalidates_both_lists(container, make_product):
    p = make_product(categoria='limpieza', stock=5)
    assert len(container.product_service.list_products('limpieza')) == 1
    assert container.product_service.list_products('mantenimiento') == []

    container.product_service.update(p.id, {'categoria': 'mantenimiento'})

    assert container.product_service.list_products('limpieza') == []
    assert [x.id for x in container.product_service.list_products('mantenimiento')] == [p.id]


def test_rejected_operation_keeps_cache(container, make_product):
    p = make_product(stock=1)
    container.product_service.get(p.id)

    with pytest.raises(InsufficientStockError):
        container.stock_service.sell(p.id)
    assert container.cache.get(product_key(p.id)) is not None


def test_order_invalidates_products(container, make_product):
    p = make_product(stock=5)
    container.product_service.get(p.id)
    container.order_service.create({
        'cliente': 'X',
        'productos': [{'producto_id': p.id, 'cantidad': 2}],
    })
    assert container.product_service.get(p.id).stock == 3


def _sale_during_read(container, monkeypatch, method, pid):
    """Starts a sale right after the repository read and before the result is cached."""
    real_read = getattr(container.product_repo, method)
    threads = []

    def _read(*args, **kwargs):
        data = real_read(*args, **kwargs)
        if not threads:
            t = threading.Thread(target=container.stock_service.sell, args=(pid,))
            threads.append(t)
            t.start()
            # give the sale a chance to commit before the caller caches data
            t.join(0.2)
        return data

    monkeypatch.setattr(container.product_repo, method, _read)
    return threads


def test_sale_during_cache_miss_is_not_lost(container, make_product, monkeypatch):
    p = make_product(stock=10)
    container.cache.clear()
    threads = _sale_during_read(container, monkeypatch, 'get_product', p.id)

    container.product_service.get(p.id)
    threads[0].join()

    assert container.product_service.get(p.id).stock == 9


def test_sale_during_list_miss_is_not_lost(container, make_product, monkeypatch):
    p = make_product(stock=10)
    container.cache.clear()
    threads = _sale_during_read(container, monkeypatch, 'all_products', p.id)

    container.product_service.list_products()
    threads[0].join()

    assert [x.stock for x in container.product_service.list_products()] == [9]

def test_caches_satisfy_interface():
    from app_pedidos.repositories import ICache
    assert isinstance(MemoryCache(), ICache)
    assert isinstance(NullCache(), ICache)
