from .tenancy import Tenant
from .auth import User, SessionToken, USER_ROLES
from .catalog import Medicine, MEDICINE_CATEGORIES
from .sales import Sale, SaleLine, BillSequence, PAYMENT_METHODS, PAYMENT_STATUSES

__all__ = [
    'Tenant',
    'User', 'SessionToken', 'USER_ROLES',
    'Medicine', 'MEDICINE_CATEGORIES',
    'Sale', 'SaleLine', 'BillSequence', 'PAYMENT_METHODS', 'PAYMENT_STATUSES',
]
