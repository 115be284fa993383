import os

# profiling off during tests (no logs/ inside the package)
os.environ.setdefault('PEDIDOS_PROFILING', '0')

import pytest

from app_pedidos.app_container import AppContainer
from app_pedidos.main import create_app


@pytest.fixture
def container(tmp_path):
    """Isolated container over an empty data folder."""
    AppContainer.reset_instance()
    c = AppContainer(str(tmp_path))
    yield c
    AppContainer.reset_instance()


@pytest.fixture
def make_product(container):
    def _make(nombre='Producto', categoria='limpieza', precio=100.0, stock=10, **extra):
        datos = {'nombre': nombre, 'categoria': categoria, 'precio': precio, 'stock': stock}
        datos.update(extra)
        return container.product_service.create(datos)
    return _make


@pytest.fixture
def make_combo(container):
    def _make(items, nombre='Combo', categoria='limpieza', precio=500.0, stock=5):
        return container.product_service.create({
            'nombre': nombre,
            'categoria': categoria,
            'precio': precio,
            'stock': stock,
            'es_combo': True,
            'items_combo': [{'producto_id': pid, 'cantidad': qty} for pid, qty in items],
        })
    return _make


@pytest.fixture
def stock_of(container):
    """Current stock/vendidos read straight from the repository."""
    def _read(pid):
        data = container.product_repo.get_product(pid)
        return data['stock'], data['vendidos']
    return _read


@pytest.fixture
def client(container):
    # create_app() without base_path reuses the container above
    app = create_app()
    app.config['TESTING'] = True
    with app.test_client() as c:
        yield c
