# ==============================================================================
# APP PEDIDOS - Backend de productos, combos, stock y pedidos
# ==============================================================================
# Paquete principal. Capas:
#   models/        → Entidades del dominio (dataclasses)
#   repositories/  → Persistencia JSON + TransactionScope
#   services/      → Lógica de negocio (productos, combos, stock, pedidos)
#   main.py        → API JSON (Flask) que consume los servicios
# ==============================================================================

__version__ = '1.0.0'
