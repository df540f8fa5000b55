from .customers import Customer
from .staff import Employee
from .catalog import ItemType
from .orders import Order, OrderRecord, MachineAssignment
from .billing import Invoice, InvoiceRecord
from .pricing import OrderPricingHistory, OrderRecordPricingHistory
from .documents import DocumentSequence

__all__ = [
    'Customer', 'Employee', 'ItemType',
    'Order', 'OrderRecord', 'MachineAssignment',
    'Invoice', 'InvoiceRecord',
    'OrderPricingHistory', 'OrderRecordPricingHistory',
    'DocumentSequence',
]
