from .auth import User
from .catalog import Product
from .production import ProductionEvent, Batch, BatchSequence
from .sales import SalesEvent, RemainingStockEntry
from .reports import ShiftReport

__all__ = [
    'User',
    'Product',
    'ProductionEvent', 'Batch', 'BatchSequence',
    'SalesEvent', 'RemainingStockEntry',
    'ShiftReport',
]
