import pytest

from app_pedidos.errors import NotFoundError, ValidationError
from app_pedidos.models import ProductoId, ProductoResuelto
from app_pedidos.repositories import TransactionScope


def test_resolve_both_reference_kinds(container, make_product):
    p = make_product(nombre='A')
    combos = container.combo_service

    by_id = combos.resolve(ProductoId(p.id))
    assert by_id.nombre == 'A'
    assert combos.resolve(ProductoResuelto(by_id)) is by_id
    assert ProductoResuelto(by_id).id == p.id

    with pytest.raises(NotFoundError):
        combos.resolve(ProductoId(404))


def test_expand_non_combo_is_empty(container, make_product):
    p = make_product()
    assert container.combo_service.expand(p.id) == []


def test_expand_resolves_components(container, make_product, make_combo):
    a = make_product(nombre='A', precio=10)
    b = make_product(nombre='B', precio=4)
    combo = make_combo([(a.id, 2), (b.id, 1)])

    items = container.combo_service.expand(combo.id)
    assert [(i.producto_id, i.cantidad) for i in items] == [(a.id, 2), (b.id, 1)]
    assert all(isinstance(i.producto, ProductoResuelto) for i in items)
    assert items[0].producto.producto.nombre == 'A'


def test_expand_reports_missing_component(container, make_product, make_combo):
    a = make_product(nombre='A')
    combo = make_combo([(a.id, 1)], nombre='Combo roto')

    # simulate a component removed behind the store's back
    with TransactionScope() as tx:
        tx.delete(container.product_repo, a.id)
    container.cache.clear()

    with pytest.raises(NotFoundError) as exc:
        container.combo_service.expand(combo.id)
    assert 'Combo roto' in exc.value.message


def test_compute_combo_price(container, make_product, make_combo):
    a = make_product(nombre='A', precio=10.25)
    b = make_product(nombre='B', precio=4)
    combo = make_combo([(a.id, 2), (b.id, 3)], precio=20)

    assert container.combo_service.compute_combo_price(combo.id) == 32.5
    # the stored price stays authoritative
    assert container.product_service.get(combo.id).precio == 20


def test_compute_combo_price_requires_combo(container, make_product):
    p = make_product()
    with pytest.raises(ValidationError):
        container.combo_service.compute_combo_price(p.id)
