import json
import os

import pytest

from app_pedidos.errors import StorageError
from app_pedidos.repositories import ProductRepository, TransactionScope, transaction


@pytest.fixture
def repo(tmp_path):
    return ProductRepository(str(tmp_path))


def _read_file(repo):
    with open(repo.file_path, encoding='utf-8') as f:
        return json.load(f)


def _seed(repo, records):
    with TransactionScope() as tx:
        for record_id, data in records.items():
            tx.put(repo, record_id, data)


def test_file_created_empty(repo):
    assert os.path.exists(repo.file_path)
    assert _read_file(repo) == {}


def test_commit_writes_file(repo):
    with TransactionScope() as tx:
        tx.put(repo, tx.next_id(repo), {'nombre': 'A', 'stock': 3})

    assert _read_file(repo) == {'1': {'nombre': 'A', 'stock': 3}}
    assert repo.get_product(1) == {'nombre': 'A', 'stock': 3}
    assert not os.path.exists(repo.file_path + '.tmp')


def test_exception_discards_everything(repo):
    _seed(repo, {1: {'nombre': 'A', 'stock': 3}})

    with pytest.raises(RuntimeError):
        with TransactionScope() as tx:
            data = tx.get(repo, 1)
            data['stock'] = 0
            tx.put(repo, 1, data)
            tx.put(repo, 2, {'nombre': 'B', 'stock': 1})
            raise RuntimeError('boom')

    assert _read_file(repo) == {'1': {'nombre': 'A', 'stock': 3}}
    assert repo.get_product(2) is None


def test_reads_see_staged_writes(repo):
    _seed(repo, {1: {'nombre': 'A', 'stock': 3}})
    with TransactionScope() as tx:
        tx.put(repo, 1, {'nombre': 'A', 'stock': 1})
        assert tx.get(repo, 1)['stock'] == 1
        assert repo.get_product(1, tx)['stock'] == 1
        # outside the scope nothing changed yet
        assert repo.get_product(1)['stock'] == 3


def test_get_returns_copies(repo):
    _seed(repo, {1: {'nombre': 'A', 'stock': 3}})
    with TransactionScope() as tx:
        tx.get(repo, 1)['stock'] = 99
        assert tx.get(repo, 1)['stock'] == 3


def test_nested_transaction_joins_outer(repo):
    with TransactionScope() as outer:
        with transaction(outer) as inner:
            assert inner is outer
            inner.put(repo, 1, {'nombre': 'A'})
        # inner block did not commit on its own
        assert repo.get_product(1) is None
    assert repo.get_product(1) == {'nombre': 'A'}


def test_callbacks_only_after_commit(repo):
    called = []
    with pytest.raises(ValueError):
        with TransactionScope() as tx:
            tx.on_commit(lambda: called.append('fallido'))
            raise ValueError()

    with TransactionScope() as tx:
        tx.on_commit(lambda: called.append('ok'))
    assert called == ['ok']


def test_scope_outside_with_block(repo):
    tx = TransactionScope()
    with pytest.raises(RuntimeError):
        tx.get(repo, 1)


def test_corrupt_file_raises_storage_error(tmp_path):
    path = os.path.join(str(tmp_path), ProductRepository.FILE_NAME)
    with open(path, 'w', encoding='utf-8') as f:
        f.write('{no es json')
    repo = ProductRepository(str(tmp_path))
    with pytest.raises(StorageError):
        repo.load()


def test_repositories_satisfy_interfaces(repo, tmp_path):
    from app_pedidos.repositories import IOrderRepository, IProductRepository, OrderRepository
    assert isinstance(repo, IProductRepository)
    assert isinstance(OrderRepository(str(tmp_path)), IOrderRepository)


def _failing_replace(monkeypatch, *rutas):
    """os.replace that raises OSError when src or dst ends with one of rutas."""
    real_replace = os.replace

    def _replace(src, dst):
        if any(str(src).endswith(r) or str(dst).endswith(r) for r in rutas):
            raise OSError('disco lleno')
        return real_replace(src, dst)

    monkeypatch.setattr(os, 'replace', _replace)


def test_failed_replace_restores_files_already_replaced(container, make_product, stock_of, monkeypatch):
    p = make_product(stock=10)
    container.order_repo  # create pedidos.json before os.replace is patched
    _failing_replace(monkeypatch, 'pedidos.json')

    with pytest.raises(StorageError) as exc:
        container.order_service.create({
            'cliente': 'X', 'productos': [{'producto_id': p.id, 'cantidad': 3}],
        })
    assert exc.value.sin_cambios is True

    # products were replaced first and must be back on disk and in memory
    assert _read_file(container.product_repo)[str(p.id)]['stock'] == 10
    assert stock_of(p.id) == (10, 0)
    assert container.order_service.list_orders() == []
    assert container.product_service.get(p.id).stock == 10
    assert not os.path.exists(container.product_repo.file_path + '.bak')
    assert not os.path.exists(container.order_repo.file_path + '.tmp')


def test_failed_restore_reports_partial_changes(container, make_product, stock_of, monkeypatch):
    p = make_product(stock=10)
    container.order_repo  # create pedidos.json before os.replace is patched
    _failing_replace(monkeypatch, 'pedidos.json', 'productos.json.bak')

    with pytest.raises(StorageError) as exc:
        container.order_service.create({
            'cliente': 'X', 'productos': [{'producto_id': p.id, 'cantidad': 3}],
        })
    assert exc.value.sin_cambios is False
    assert exc.value.to_dict()['sin_cambios'] is False
    # the copy stays around for manual recovery
    assert os.path.exists(container.product_repo.file_path + '.bak')
    # memory matches what is actually on disk
    assert stock_of(p.id) == (7, 3)


def test_successful_commit_leaves_no_backups(repo):
    _seed(repo, {1: {'nombre': 'A', 'stock': 3}})
    with TransactionScope() as tx:
        tx.put(repo, 1, {'nombre': 'A', 'stock': 2})
    assert not os.path.exists(repo.file_path + '.bak')
    assert _read_file(repo) == {'1': {'nombre': 'A', 'stock': 2}}
