from .auth import User, Role
from .tenancy import Store
from .catalog import Category, Product, ProductVariant
from .transactions import Transaction, TransactionItem, TransactionType, PaymentMethod
from .inventory import StockMovement, MovementType
from .security import AuthAttempt, AttemptKind

__all__ = [
    'User', 'Role',
    'Store',
    'Category', 'Product', 'ProductVariant',
    'Transaction', 'TransactionItem', 'TransactionType', 'PaymentMethod',
    'StockMovement', 'MovementType',
    'AuthAttempt', 'AttemptKind',
]
