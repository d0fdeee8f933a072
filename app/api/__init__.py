"""
API Package
"""

# Import all blueprints for easy access
from app.api.auth import auth_bp
from app.api.properties import properties_bp
from app.api.blocked_dates import blocked_dates_bp
from app.api.bookings import bookings_bp
from app.api.payments import payments_bp

__all__ = [
    'auth_bp',
    'properties_bp',
    'blocked_dates_bp',
    'bookings_bp',
    'payments_bp',
]
