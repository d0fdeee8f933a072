"""
Services Package
Business logic and external service integrations
"""

from app.services.availability_service import AvailabilityService
from app.services.booking_service import BookingService
from app.services.payment_service import PaymentService
from app.services.notification_service import NotificationService
from app.services.momo_service import MomoService
from app.services.mock_gateway import MockGateway

__all__ = [
    'AvailabilityService',
    'BookingService',
    'PaymentService',
    'NotificationService',
    'MomoService',
    'MockGateway',
]
