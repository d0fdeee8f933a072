"""
Shared fixtures: a testing app on in-memory SQLite, users for each role,
a verified property and helpers for tokens and future dates.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token

from app import create_app
from extensions import db as _db
from app.models import Property, User, UserRole
from app.services.booking_service import BookingService
from app.services.mock_gateway import MockGateway
from app.utils.dates import today


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        yield app
        _db.session.remove()
        _db.drop_all()
    MockGateway.reset()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return _db


def _make_user(email, name, role):
    user = User(email=email, password='password123', name=name, role=role)
    _db.session.add(user)
    _db.session.commit()
    return user


@pytest.fixture
def landlord(app):
    return _make_user('landlord@example.com', 'Lena Landlord', UserRole.LANDLORD)


@pytest.fixture
def guest(app):
    return _make_user('guest@example.com', 'Gary Guest', UserRole.USER)


@pytest.fixture
def other_user(app):
    return _make_user('other@example.com', 'Olive Other', UserRole.USER)


@pytest.fixture
def admin(app):
    return _make_user('admin@example.com', 'Ada Admin', UserRole.ADMIN)


@pytest.fixture
def property_obj(landlord):
    """Verified listing at 50 per night for up to 4 guests"""
    prop = Property(
        landlord_id=landlord.id,
        title='Lakeside Cottage',
        city='Kigali',
        country='Rwanda',
        price=Decimal('50.00'),
        max_guests=4,
        is_verified=True,
    )
    _db.session.add(prop)
    _db.session.commit()
    return prop


@pytest.fixture
def auth():
    """Build an Authorization header for a user"""
    def _headers(user):
        token = create_access_token(identity=str(user.id))
        return {'Authorization': f'Bearer {token}'}
    return _headers


@pytest.fixture
def day():
    """Date ``n`` days from today"""
    def _day(n):
        return today() + timedelta(days=n)
    return _day


@pytest.fixture
def make_booking(property_obj, guest, day):
    """Create a booking through the service, nights counted from ``start`` days ahead"""
    def _make(start=10, nights=3, user=None, property_id=None):
        return BookingService.create(
            property_id or property_obj.id,
            user or guest,
            {
                'check_in': day(start).isoformat(),
                'check_out': day(start + nights).isoformat(),
                'guests': 2,
            },
        )
    return _make
