# ==============================================================================
# WSGI Entry Point - Para Gunicorn en producción
# ==============================================================================
# USO:
#   gunicorn wsgi:app --bind 0.0.0.0:$PORT --workers 1 --threads 8
#
# El lock de los repositorios JSON es por proceso: usar un solo worker
# (con varios threads) para que las operaciones de stock sigan siendo atómicas.
#
# ESTRUCTURA DEL PROYECTO:
#   repo_root/
#   ├── wsgi.py          <- Este archivo
#   ├── pyproject.toml
#   └── app_pedidos/     <- Paquete Python
#       ├── main.py
#       ├── services/
#       └── repositories/
# ==============================================================================

from app_pedidos.main import create_app

app = create_app()

# Para desarrollo local:
#   python wsgi.py
if __name__ == '__main__':
    app.run(debug=True, host='0.0.0.0', port=5000)
