from .tenancy import Store
from .catalog import Product
from .stock import StockMovement
from .billing import Bill, BillItem, Sale, SaleItem
from .documents import DocumentSequence

__all__ = [
    'Store',
    'Product',
    'StockMovement',
    'Bill', 'BillItem', 'Sale', 'SaleItem',
    'DocumentSequence',
]
