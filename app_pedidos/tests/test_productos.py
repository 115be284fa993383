import pytest

from app_pedidos.errors import ConflictError, NotFoundError, ValidationError
from app_pedidos.models import Categoria


def test_create_and_get(container, make_product):
    p = make_product(nombre='Lavandina 5L', precio=1200, stock=8, sub_categoria='liquidos')
    assert p.id == 1
    assert p.categoria == Categoria.LIMPIEZA
    assert p.vendidos == 0

    loaded = container.product_service.get(p.id)
    assert loaded.nombre == 'Lavandina 5L'
    assert loaded.stock == 8
    assert loaded.sub_categoria == 'liquidos'


def test_ids_are_sequential(make_product):
    a = make_product(nombre='A')
    b = make_product(nombre='B')
    assert b.id == a.id + 1


def test_get_missing_product(container):
    with pytest.raises(NotFoundError):
        container.product_service.get(99)


@pytest.mark.parametrize('datos', [
    {'nombre': 'X', 'categoria': 'limpieza', 'precio': -1, 'stock': 5},
    {'nombre': 'X', 'categoria': 'limpieza', 'precio': 10, 'stock': 0},
    {'nombre': 'X', 'categoria': 'otra', 'precio': 10, 'stock': 5},
    {'nombre': 'X', 'categoria': 'limpieza', 'precio': 'caro', 'stock': 5},
    {'nombre': 'X', 'categoria': 'limpieza', 'precio': 'nan', 'stock': 5},
    {'nombre': 'X', 'categoria': 'limpieza', 'precio': float('inf'), 'stock': 5},
    {'nombre': 'X', 'categoria': 'limpieza', 'precio': 10, 'stock': 2.5},
    {'nombre': 'X', 'categoria': 'limpieza', 'precio': 10},
    {'nombre': 'X', 'categoria': 'limpieza', 'precio': 10, 'stock': 5, 'sub_categoria': 'plomeria'},
    {'nombre': 'X', 'categoria': 'limpieza', 'precio': 10, 'stock': 5, 'es_combo': True},
])
def test_create_rejects_invalid_data(container, datos):
    with pytest.raises(ValidationError):
        container.product_service.create(datos)
    # nothing persisted
    assert container.product_repo.all_products() == []


def test_maintenance_allows_zero_stock(make_product):
    p = make_product(categoria='mantenimiento', stock=0)
    assert p.stock == 0


def test_combo_validation(container, make_product, make_combo):
    a = make_product(nombre='A')
    combo = make_combo([(a.id, 2)])
    assert combo.es_combo
    assert combo.items_combo[0].producto_id == a.id

    # component must exist
    with pytest.raises(ValidationError):
        make_combo([(999, 1)])
    # no nested combos
    with pytest.raises(ValidationError):
        make_combo([(combo.id, 1)])
    # quantities must be positive
    with pytest.raises(ValidationError):
        make_combo([(a.id, 0)])


def test_non_combo_cannot_have_items(container, make_product):
    a = make_product(nombre='A')
    with pytest.raises(ValidationError):
        container.product_service.create({
            'nombre': 'B', 'categoria': 'limpieza', 'precio': 1, 'stock': 2,
            'items_combo': [{'producto_id': a.id, 'cantidad': 1}],
        })


def test_update_fields(container, make_product):
    p = make_product(nombre='Viejo', precio=10)
    updated = container.product_service.update(p.id, {'nombre': 'Nuevo', 'precio': 12.5, 'vendidos': 99})
    assert updated.nombre == 'Nuevo'
    assert updated.precio == 12.5
    # vendidos is not editable through update
    assert container.product_service.get(p.id).vendidos == 0


def test_update_cannot_break_cleaning_floor(container, make_product):
    p = make_product(stock=5)
    with pytest.raises(ValidationError):
        container.product_service.update(p.id, {'stock': 0})
    assert container.product_service.get(p.id).stock == 5


def test_update_category_change_applies_floor(container, make_product):
    p = make_product(categoria='mantenimiento', stock=0)
    with pytest.raises(ValidationError):
        container.product_service.update(p.id, {'categoria': 'limpieza'})


def test_component_cannot_become_combo(container, make_product, make_combo):
    a = make_product(nombre='A')
    b = make_product(nombre='B')
    make_combo([(a.id, 1)])
    with pytest.raises(ValidationError):
        container.product_service.update(a.id, {
            'es_combo': True,
            'items_combo': [{'producto_id': b.id, 'cantidad': 1}],
        })


def test_update_missing_product(container):
    with pytest.raises(NotFoundError):
        container.product_service.update(42, {'nombre': 'X'})


def test_delete_blocked_by_combos(container, make_product, make_combo):
    a = make_product(nombre='A')
    combo1 = make_combo([(a.id, 1)], nombre='Combo 1')
    combo2 = make_combo([(a.id, 3)], nombre='Combo 2')

    with pytest.raises(ConflictError) as exc:
        container.product_service.delete(a.id)
    ids = sorted(r['id'] for r in exc.value.referencias)
    assert ids == [combo1.id, combo2.id]
    assert 'Combo 1' in exc.value.message
    assert container.product_service.get(a.id).nombre == 'A'


def test_delete_product(container, make_product):
    p = make_product()
    container.product_service.delete(p.id)
    with pytest.raises(NotFoundError):
        container.product_service.get(p.id)


def test_list_by_category(container, make_product):
    make_product(nombre='L1', categoria='limpieza')
    make_product(nombre='M1', categoria='mantenimiento', stock=0)
    make_product(nombre='L2', categoria='limpieza')

    todos = container.product_service.list_products()
    assert [p.nombre for p in todos] == ['L1', 'M1', 'L2']
    limpieza = container.product_service.list_products('limpieza')
    assert [p.nombre for p in limpieza] == ['L1', 'L2']
    with pytest.raises(ValidationError):
        container.product_service.list_products('jardin')


def test_combos_using(container, make_product, make_combo):
    a = make_product(nombre='A')
    b = make_product(nombre='B')
    combo = make_combo([(a.id, 1), (b.id, 1)])
    assert [c.id for c in container.product_service.combos_using(a.id)] == [combo.id]
    assert container.product_service.combos_using(combo.id) == []
