import json


def _crear_producto(client, **extra):
    datos = {'nombre': 'Lavandina', 'categoria': 'limpieza', 'precio': 100, 'stock': 10}
    datos.update(extra)
    r = client.post('/api/productos', json=datos)
    assert r.status_code == 201, r.get_json()
    return r.get_json()['producto']


def test_security_headers(client):
    r = client.get('/api/productos')
    assert r.status_code == 200
    assert r.headers['X-Frame-Options'] == 'DENY'
    assert r.headers['X-Content-Type-Options'] == 'nosniff'


def test_product_crud(client):
    p = _crear_producto(client)
    assert p['id'] == 1

    r = client.get(f"/api/productos/{p['id']}")
    assert r.get_json()['producto']['nombre'] == 'Lavandina'

    r = client.put(f"/api/productos/{p['id']}", json={'precio': 150})
    assert r.status_code == 200
    assert r.get_json()['producto']['precio'] == 150

    r = client.delete(f"/api/productos/{p['id']}")
    assert r.status_code == 200
    r = client.get(f"/api/productos/{p['id']}")
    assert r.status_code == 404
    body = r.get_json()
    assert body['success'] is False
    assert body['sin_cambios'] is True


def test_invalid_product_is_400(client):
    r = client.post('/api/productos', json={'nombre': 'X', 'categoria': 'limpieza',
                                            'precio': -5, 'stock': 3})
    assert r.status_code == 400
    assert r.get_json()['success'] is False


def test_non_json_body_is_400(client):
    r = client.post('/api/productos', data='nope', content_type='application/json')
    assert r.status_code == 400


def test_sell_and_cancel(client):
    p = _crear_producto(client, stock=2)

    r = client.post(f"/api/productos/{p['id']}/vender")
    assert r.status_code == 200
    assert r.get_json()['producto']['stock'] == 1

    r = client.post(f"/api/productos/{p['id']}/vender")
    assert r.status_code == 400
    assert r.get_json()['sin_cambios'] is True

    r = client.post(f"/api/productos/{p['id']}/cancelar")
    assert r.get_json()['producto']['stock'] == 2


def test_delete_conflict_lists_combos(client):
    a = _crear_producto(client, nombre='A')
    combo = _crear_producto(client, nombre='Kit', es_combo=True,
                            items_combo=[{'producto_id': a['id'], 'cantidad': 2}])

    r = client.delete(f"/api/productos/{a['id']}")
    assert r.status_code == 409
    assert r.get_json()['referencias'] == [{'id': combo['id'], 'nombre': 'Kit'}]

    r = client.get(f"/api/productos/{combo['id']}/precio-combo")
    assert r.get_json()['precio_combo'] == 200


def test_section_restriction(client):
    p = _crear_producto(client)

    r = client.get(f"/api/productos/{p['id']}", headers={'X-Seccion': 'mantenimiento'})
    assert r.status_code == 403
    r = client.post(f"/api/productos/{p['id']}/vender", headers={'X-Seccion': 'mantenimiento'})
    assert r.status_code == 403
    r = client.get(f"/api/productos/{p['id']}", headers={'X-Seccion': 'limpieza'})
    assert r.status_code == 200
    r = client.get('/api/productos', headers={'X-Seccion': 'bodega'})
    assert r.status_code == 400

    r = client.get('/api/productos', headers={'X-Seccion': 'mantenimiento'})
    assert r.get_json()['productos'] == []

    r = client.post('/api/pedidos', headers={'X-Seccion': 'mantenimiento'},
                    json={'cliente': 'X', 'productos': [{'producto_id': p['id'], 'cantidad': 1}]})
    assert r.status_code == 403


def test_order_flow(client):
    a = _crear_producto(client, nombre='A', stock=10)
    b = _crear_producto(client, nombre='B', stock=5)

    r = client.post('/api/pedidos', json={
        'cliente': 'Hospital',
        'productos': [{'producto_id': a['id'], 'cantidad': 3},
                      {'producto_id': b['id'], 'cantidad': 2}],
    })
    assert r.status_code == 201
    pedido = r.get_json()['pedido']
    assert pedido['n_pedido'] == 1

    r = client.put(f"/api/pedidos/{pedido['id']}", json={
        'productos': [{'producto_id': a['id'], 'cantidad': 5},
                      {'producto_id': b['id'], 'cantidad': 2}],
    })
    assert r.status_code == 200
    assert client.get(f"/api/productos/{a['id']}").get_json()['producto']['stock'] == 5

    r = client.get(f"/api/pedidos/{pedido['id']}/documento")
    assert r.status_code == 200
    assert len(r.get_json()['documento']['productos']) == 2

    r = client.post(f"/api/pedidos/{pedido['id']}/rechazar")
    assert r.get_json()['pedido']['estado'] == 'rechazado'
    r = client.post(f"/api/pedidos/{pedido['id']}/aprobar")
    assert r.get_json()['pedido']['estado'] == 'aprobado'

    stats = client.get('/api/pedidos/estadisticas').get_json()['estadisticas']
    assert stats['total'] == 1
    assert stats['por_estado']['aprobado'] == 1

    r = client.get('/api/pedidos?cliente=Hospital')
    assert [p['id'] for p in r.get_json()['pedidos']] == [pedido['id']]

    r = client.delete(f"/api/pedidos/{pedido['id']}")
    assert r.status_code == 200
    assert client.get(f"/api/productos/{a['id']}").get_json()['producto']['stock'] == 10
    assert client.get(f"/api/pedidos/{pedido['id']}").status_code == 404


def test_order_insufficient_stock(client):
    a = _crear_producto(client, nombre='A', categoria='mantenimiento', stock=1)
    r = client.post('/api/pedidos', json={
        'cliente': 'X', 'productos': [{'producto_id': a['id'], 'cantidad': 2}],
    })
    assert r.status_code == 400
    assert 'Stock insuficiente' in r.get_json()['error']
    assert client.get('/api/pedidos').get_json()['pedidos'] == []


def test_order_reads_respect_section(client):
    llave = _crear_producto(client, nombre='Llave', categoria='mantenimiento', stock=5)
    jabon = _crear_producto(client, nombre='Jabón', stock=5)
    r = client.post('/api/pedidos', json={
        'cliente': 'Taller', 'productos': [{'producto_id': llave['id'], 'cantidad': 2}],
    })
    ajeno = r.get_json()['pedido']
    r = client.post('/api/pedidos', json={
        'cliente': 'Taller', 'productos': [{'producto_id': jabon['id'], 'cantidad': 1}],
    })
    propio = r.get_json()['pedido']
    limpieza = {'X-Seccion': 'limpieza'}

    assert client.get(f"/api/pedidos/{ajeno['id']}", headers=limpieza).status_code == 403
    assert client.get(f"/api/pedidos/{ajeno['id']}/documento", headers=limpieza).status_code == 403
    assert client.get(f"/api/pedidos/{propio['id']}", headers=limpieza).status_code == 200

    for url in ('/api/pedidos', '/api/pedidos?cliente=Taller', f"/api/pedidos?producto_id={llave['id']}"):
        r = client.get(url, headers=limpieza)
        assert r.status_code == 200
        assert ajeno['id'] not in [p['id'] for p in r.get_json()['pedidos']]

    stats = client.get('/api/pedidos/estadisticas', headers=limpieza).get_json()['estadisticas']
    assert stats['total'] == 1
    assert stats['unidades'] == 1
    # without a section header everything is visible
    assert client.get('/api/pedidos/estadisticas').get_json()['estadisticas']['total'] == 2
    assert client.get('/api/pedidos/estadisticas', headers={'X-Seccion': 'bodega'}).status_code == 400


def test_order_list_paginates_after_section_filter(client):
    llave = _crear_producto(client, nombre='Llave', categoria='mantenimiento', stock=20)
    jabon = _crear_producto(client, nombre='Jabón', stock=20)
    for pid in (jabon['id'], llave['id'], jabon['id'], llave['id']):
        client.post('/api/pedidos', json={
            'cliente': 'C', 'productos': [{'producto_id': pid, 'cantidad': 1}],
        })

    r = client.get('/api/pedidos?cliente=C&limit=5', headers={'X-Seccion': 'mantenimiento'})
    assert len(r.get_json()['pedidos']) == 2
    r = client.get('/api/pedidos?limit=1&offset=1', headers={'X-Seccion': 'limpieza'})
    assert len(r.get_json()['pedidos']) == 1


def test_unknown_route_is_json_404(client):
    r = client.get('/api/nada')
    assert r.status_code == 404
    assert json.loads(r.get_data(as_text=True))['success'] is False
