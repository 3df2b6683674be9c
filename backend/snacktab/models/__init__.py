from .catalog import Producto, PRODUCTS_TABLE
from .ledger import Venta, SALES_TABLE

__all__ = [
    'Producto', 'PRODUCTS_TABLE',
    'Venta', 'SALES_TABLE',
]
