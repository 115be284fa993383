# ==============================================================================
# CONFIGURACIÓN
# ==============================================================================
# Valores leídos una sola vez de variables de entorno, con defaults de
# desarrollo. Ejemplo:
#   export PEDIDOS_DATA_DIR=/var/lib/pedidos
#   export PEDIDOS_SECRET_KEY="clave_larga_y_aleatoria"
# ==============================================================================

import logging
import os

BASE = os.path.dirname(os.path.abspath(__file__))


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ('1', 'true', 'yes', 'si')


# Carpeta con productos.json y pedidos.json
DATA_DIR = os.environ.get('PEDIDOS_DATA_DIR', BASE)

# True = sin verbosidad de desarrollo, se exige secret key propia
PRODUCTION_MODE = _env_flag('PEDIDOS_PRODUCTION', '1')

_DEFAULT_SECRET = 'app_pedidos_dev_secret_key_change_in_production'
SECRET_KEY = os.environ.get('PEDIDOS_SECRET_KEY') or _DEFAULT_SECRET
SECRET_KEY_IS_DEFAULT = SECRET_KEY == _DEFAULT_SECRET

# Profiling de rutas y funciones (logs/ dentro del paquete)
ENABLE_PROFILING = _env_flag('PEDIDOS_PROFILING', '1')

LOG_LEVEL = os.environ.get('PEDIDOS_LOG_LEVEL', 'INFO').upper()

# Segundos que vive una copia de producto en caché
CACHE_TTL = int(os.environ.get('PEDIDOS_CACHE_TTL', '600'))

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def configure_logging(level: str = None) -> logging.Logger:
    """
    Configura el logger raíz del paquete (un solo handler de consola).

    Returns:
        Logger 'app_pedidos'
    """
    root = logging.getLogger('app_pedidos')
    root.setLevel(level or LOG_LEVEL)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    return root
