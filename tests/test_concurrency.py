"""Concurrent writers against a file-backed database."""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from decimal import Decimal

import pytest

from app import create_app
from app.errors import Conflict
from app.models import Booking, Property, User, UserRole
from app.services.booking_service import BookingService
from app.utils.dates import today
from config import TestingConfig, config
from extensions import db as _db


@pytest.fixture
def file_app(tmp_path, monkeypatch):
    class FileTestingConfig(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'bookings.db'}"
        SQLALCHEMY_ENGINE_OPTIONS = {'connect_args': {'timeout': 30}}

    monkeypatch.setitem(config, 'testing_file', FileTestingConfig)
    app = create_app('testing_file')
    yield app
    with app.app_context():
        _db.session.remove()
        _db.drop_all()
        _db.engine.dispose()


@pytest.fixture
def seeded(file_app):
    with file_app.app_context():
        landlord = User(email='host@example.com', password='password123', name='Host',
                        role=UserRole.LANDLORD)
        guests = [
            User(email=f'guest{n}@example.com', password='password123', name=f'Guest {n}',
                 role=UserRole.USER)
            for n in range(2)
        ]
        _db.session.add_all([landlord, *guests])
        _db.session.commit()

        prop = Property(landlord_id=landlord.id, title='Hillside Villa', price=Decimal('80.00'),
                        max_guests=4, is_verified=True)
        _db.session.add(prop)
        _db.session.commit()
        return prop.id, [g.id for g in guests]


def test_overlapping_creates_admit_exactly_one(file_app, seeded):
    property_id, guest_ids = seeded
    start = today() + timedelta(days=10)
    barrier = threading.Barrier(len(guest_ids))

    def attempt(user_id, offset):
        with file_app.app_context():
            caller = _db.session.get(User, user_id)
            check_in = start + timedelta(days=offset)
            check_out = check_in + timedelta(days=3)
            barrier.wait()
            try:
                BookingService.create(property_id, caller, {
                    'check_in': check_in.isoformat(),
                    'check_out': check_out.isoformat(),
                    'guests': 1,
                })
                return 'created'
            except Conflict:
                return 'conflict'
            finally:
                _db.session.remove()

    with ThreadPoolExecutor(max_workers=len(guest_ids)) as pool:
        results = list(pool.map(attempt, guest_ids, [0, 1]))

    assert sorted(results) == ['conflict', 'created']
    with file_app.app_context():
        assert Booking.query.filter_by(property_id=property_id).count() == 1
        assert _db.session.get(Property, property_id).booking_version == 1
