from .auth import User, SessionToken, ROLE_LEVELS
from .inventory import Category, Product, StockMovement, StockLoss, UNIT_TYPES, MOVEMENT_TYPES
from .promotions import Discount, DISCOUNT_TYPES, TARGET_TYPES, STACKING_RULES
from .sales import Sale
from .approvals import Approval, APPROVAL_ACTIONS
from .audit import AuditLog
from .settings import Setting

__all__ = [
    'User', 'SessionToken', 'ROLE_LEVELS',
    'Category', 'Product', 'StockMovement', 'StockLoss', 'UNIT_TYPES', 'MOVEMENT_TYPES',
    'Discount', 'DISCOUNT_TYPES', 'TARGET_TYPES', 'STACKING_RULES',
    'Sale',
    'Approval', 'APPROVAL_ACTIONS',
    'AuditLog',
    'Setting',
]
