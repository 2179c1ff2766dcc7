from .user import User
from .merchant import Merchant
from .stall import Stall
from .payment import Payment

__all__ = [
    'User',
    'Merchant',
    'Stall',
    'Payment',
]
