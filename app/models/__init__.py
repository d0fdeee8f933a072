"""
Models package initialization
Import all models here for easy access
"""

from app.models.user import User, UserRole
from app.models.property import Property, PropertyType
from app.models.booking import Booking, BookingStatus, BookingPaymentStatus, BookingAction
from app.models.blocked_date import BlockedDate
from app.models.payment import Payment, PaymentMethod, PaymentStatus

__all__ = [
    'User',
    'UserRole',
    'Property',
    'PropertyType',
    'Booking',
    'BookingStatus',
    'BookingPaymentStatus',
    'BookingAction',
    'BlockedDate',
    'Payment',
    'PaymentMethod',
    'PaymentStatus',
]
