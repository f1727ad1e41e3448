from .ledger import LedgerEvent
from .shifts import Shift, ShiftPosting
from .inventory import MenuItem, StockAdjustment, StockAdjustmentItem
from .suppliers import Supplier, SupplierPayment, Purchase, PurchaseItem

__all__ = [
    'LedgerEvent',
    'Shift', 'ShiftPosting',
    'MenuItem', 'StockAdjustment', 'StockAdjustmentItem',
    'Supplier', 'SupplierPayment', 'Purchase', 'PurchaseItem',
]
