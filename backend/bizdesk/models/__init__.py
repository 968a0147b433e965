from .auth import User, SessionToken, PasswordResetToken
from .profiles import Profile
from .customers import Customer
from .inventory import Product, StockTransaction, RestockOrder, RestockItem
from .sales import Sale, SaleItem, WALK_IN_CUSTOMER

__all__ = [
    'User', 'SessionToken', 'PasswordResetToken',
    'Profile',
    'Customer',
    'Product', 'StockTransaction', 'RestockOrder', 'RestockItem',
    'Sale', 'SaleItem', 'WALK_IN_CUSTOMER',
]
