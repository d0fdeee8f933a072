"""
Property Model
"""

from extensions import db
from datetime import datetime
from enum import Enum


class PropertyType(str, Enum):
    """Property type enum"""
    APARTMENT = 'apartment'
    HOUSE = 'house'
    VILLA = 'villa'
    STUDIO = 'studio'
    ROOM = 'room'
    OTHER = 'other'


class Property(db.Model):
    """Rentable listing owned by a landlord"""

    __tablename__ = 'properties'
    __table_args__ = (
        db.CheckConstraint('price >= 0', name='ck_properties_price_non_negative'),
    )

    id = db.Column(db.Integer, primary_key=True)
    landlord_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    # Basic Information
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    property_type = db.Column(db.Enum(PropertyType), default=PropertyType.APARTMENT, nullable=False)

    # Location
    address = db.Column(db.String(255))
    city = db.Column(db.String(100))
    country = db.Column(db.String(100))

    # Pricing and capacity
    price = db.Column(db.Numeric(10, 2), nullable=False)
    max_guests = db.Column(db.Integer)

    # Flags checked before a booking is accepted
    is_available = db.Column(db.Boolean, default=True, nullable=False)
    is_verified = db.Column(db.Boolean, default=False, nullable=False)

    # Bumped inside every availability-changing transaction; the row lock
    # taken by that UPDATE serializes concurrent writers for this property
    booking_version = db.Column(db.Integer, default=0, nullable=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    bookings = db.relationship('Booking', backref='property', lazy='dynamic')
    blocked_dates = db.relationship('BlockedDate', backref='property', lazy='dynamic',
                                    cascade='all, delete-orphan')

    def __init__(self, **kwargs):
        """Initialize property"""
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)

    def is_owned_by(self, user_id):
        return self.landlord_id == user_id

    def calculate_amount(self, check_in, check_out):
        """Price for the stay: nightly price times number of nights"""
        nights = (check_out - check_in).days
        return self.price * nights

    def to_dict(self, include_landlord=False):
        """Convert property to dictionary"""
        data = {
            'id': self.id,
            'landlord_id': self.landlord_id,
            'title': self.title,
            'description': self.description,
            'property_type': self.property_type.value,
            'address': self.address,
            'city': self.city,
            'country': self.country,
            'price': float(self.price),
            'max_guests': self.max_guests,
            'is_available': self.is_available,
            'is_verified': self.is_verified,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

        if include_landlord:
            data['landlord'] = self.landlord.to_dict()

        return data

    def __repr__(self):
        return f'<Property {self.title}>'
