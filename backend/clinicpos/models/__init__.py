from .tenancy import Tenant
from .auth import User, SessionToken
from .clients import Client
from .inventory import InventoryItem, StockMovement
from .sales import Sale, SaleLine, Payment
from .documents import NumberingSequence, AuditLogEntry

__all__ = [
    'Tenant',
    'User', 'SessionToken',
    'Client',
    'InventoryItem', 'StockMovement',
    'Sale', 'SaleLine', 'Payment',
    'NumberingSequence', 'AuditLogEntry',
]
