# ==============================================================================
# ERRORES DEL DOMINIO
# ==============================================================================
# Los servicios lanzan estas excepciones; la capa HTTP las traduce a JSON.
# Todas las operaciones de escritura corren dentro de un TransactionScope,
# así que cualquier rechazo implica "sin cambios" (sin_cambios = True).
# ==============================================================================


class PedidosError(Exception):
    """Excepción base del sistema."""

    http_status = 500

    def __init__(self, message: str, sin_cambios: bool = True):
        super().__init__(message)
        self.message = message
        self.sin_cambios = sin_cambios

    def to_dict(self):
        return {
            'success': False,
            'error': self.message,
            'sin_cambios': self.sin_cambios,
        }


class ValidationError(PedidosError):
    """Entrada inválida (precio negativo, combo vacío, cantidad <= 0...)."""
    http_status = 400


class NotFoundError(PedidosError):
    """El producto, pedido o componente referenciado no existe."""
    http_status = 404


class InsufficientStockError(PedidosError):
    """El descuento pedido violaría la disponibilidad o el piso de categoría."""
    http_status = 400

    def __init__(self, message: str, producto_id: int = None, disponible: int = None,
                 solicitado: int = None):
        super().__init__(message)
        self.producto_id = producto_id
        self.disponible = disponible
        self.solicitado = solicitado


class ConflictError(PedidosError):
    """Eliminación bloqueada por referencias existentes (ej: producto usado en combos)."""
    http_status = 409

    def __init__(self, message: str, referencias=None):
        super().__init__(message)
        self.referencias = list(referencias or [])

    def to_dict(self):
        d = super().to_dict()
        d['referencias'] = self.referencias
        return d


class StorageError(PedidosError):
    """Fallo del almacenamiento durante una operación; la operación se aborta."""
    http_status = 500
