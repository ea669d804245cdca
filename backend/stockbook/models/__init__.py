from .catalog import Product, Supplier
from .inventory import Lot, PurchaseReceipt, StockLedgerEvent
from .customers import Customer
from .sales import Invoice, InvoiceLine
from .auth import User, SessionToken

__all__ = [
    'Product', 'Supplier',
    'Lot', 'PurchaseReceipt', 'StockLedgerEvent',
    'Customer',
    'Invoice', 'InvoiceLine',
    'User', 'SessionToken',
]
