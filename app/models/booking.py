"""
Booking Model
"""

from extensions import db
from datetime import datetime
from enum import Enum

from app.errors import InvalidState


class BookingStatus(str, Enum):
    """Booking status enum"""
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    CANCELLED = 'cancelled'
    COMPLETED = 'completed'


class BookingPaymentStatus(str, Enum):
    """Aggregate payment state, projected from the booking's payments"""
    PENDING = 'pending'
    PAID = 'paid'
    PARTIALLY_PAID = 'partially_paid'
    REFUNDED = 'refunded'
    FAILED = 'failed'


class BookingAction(str, Enum):
    UPDATE = 'update'
    CANCEL = 'cancel'
    COMPLETE = 'complete'
    PAY = 'pay'
    DELETE = 'delete'


# Legal lifecycle moves: status -> {action: resulting status}.
# Anything missing is rejected with InvalidState. A DELETE maps to the
# current status since the row goes away.
BOOKING_TRANSITIONS = {
    BookingStatus.PENDING: {
        BookingAction.UPDATE: BookingStatus.PENDING,
        BookingAction.CANCEL: BookingStatus.CANCELLED,
        BookingAction.COMPLETE: BookingStatus.COMPLETED,
        BookingAction.PAY: BookingStatus.PENDING,
        BookingAction.DELETE: BookingStatus.PENDING,
    },
    BookingStatus.CONFIRMED: {
        BookingAction.UPDATE: BookingStatus.CONFIRMED,
        BookingAction.CANCEL: BookingStatus.CANCELLED,
        BookingAction.COMPLETE: BookingStatus.COMPLETED,
        BookingAction.PAY: BookingStatus.CONFIRMED,
        BookingAction.DELETE: BookingStatus.CONFIRMED,
    },
    BookingStatus.CANCELLED: {
        BookingAction.DELETE: BookingStatus.CANCELLED,
    },
    BookingStatus.COMPLETED: {
        BookingAction.PAY: BookingStatus.COMPLETED,
    },
}

REJECTION_MESSAGES = {
    (BookingStatus.COMPLETED, BookingAction.COMPLETE): 'Booking is already completed',
    (BookingStatus.CANCELLED, BookingAction.COMPLETE): 'Cancelled bookings cannot be completed',
    (BookingStatus.CANCELLED, BookingAction.CANCEL): 'Booking is already cancelled',
    (BookingStatus.CANCELLED, BookingAction.PAY): 'Cancelled bookings cannot be paid',
    (BookingStatus.COMPLETED, BookingAction.DELETE): 'Completed bookings cannot be deleted',
}

ACTIVE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


class Booking(db.Model):
    """Booking/Reservation model"""

    __tablename__ = 'bookings'
    __table_args__ = (
        db.CheckConstraint('check_out > check_in', name='ck_bookings_dates_ordered'),
        db.CheckConstraint('amount >= 0', name='ck_bookings_amount_non_negative'),
        db.Index('ix_bookings_property_dates', 'property_id', 'check_in', 'check_out'),
    )

    id = db.Column(db.Integer, primary_key=True)
    property_id = db.Column(db.Integer, db.ForeignKey('properties.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    # Booking Details
    check_in = db.Column(db.Date, nullable=False)
    check_out = db.Column(db.Date, nullable=False)
    adults = db.Column(db.Integer, default=1, nullable=False)
    children = db.Column(db.Integer, default=0, nullable=False)
    infants = db.Column(db.Integer, default=0, nullable=False)

    # Status
    status = db.Column(db.Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False)
    payment_status = db.Column(db.Enum(BookingPaymentStatus), default=BookingPaymentStatus.PENDING,
                               nullable=False)

    # Pricing
    amount = db.Column(db.Numeric(12, 2), nullable=False)

    # Additional Information
    special_requests = db.Column(db.String(500))
    cancellation_reason = db.Column(db.Text)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    cancelled_at = db.Column(db.DateTime)
    completed_at = db.Column(db.DateTime)

    payments = db.relationship('Payment', backref='booking', lazy='dynamic',
                               order_by='Payment.id')

    def __init__(self, **kwargs):
        """Initialize booking"""
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)

    @property
    def nights(self):
        return (self.check_out - self.check_in).days

    @property
    def is_terminal(self):
        return self.status not in ACTIVE_STATUSES

    def next_status(self, action):
        """Resolve ``action`` against the transition table or raise InvalidState"""
        action = BookingAction(action)
        allowed = BOOKING_TRANSITIONS.get(self.status, {})
        if action not in allowed:
            message = REJECTION_MESSAGES.get(
                (self.status, action),
                f'Cannot {action.value} a {self.status.value} booking'
            )
            raise InvalidState(message)
        return allowed[action]

    def can_cancel(self):
        """Check if booking can be cancelled"""
        return BookingAction.CANCEL in BOOKING_TRANSITIONS.get(self.status, {})

    def to_dict(self, include_property=False, include_guest=False):
        """Convert booking to dictionary"""
        data = {
            'id': self.id,
            'property_id': self.property_id,
            'user_id': self.user_id,
            'check_in': self.check_in.isoformat() if self.check_in else None,
            'check_out': self.check_out.isoformat() if self.check_out else None,
            'nights': self.nights if self.check_in and self.check_out else None,
            'guests': {
                'adults': self.adults,
                'children': self.children,
                'infants': self.infants,
            },
            'status': self.status.value,
            'payment_status': self.payment_status.value,
            'can_cancel': self.can_cancel(),
            'amount': float(self.amount),
            'special_requests': self.special_requests,
            'cancellation_reason': self.cancellation_reason,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'cancelled_at': self.cancelled_at.isoformat() if self.cancelled_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
        }

        if include_property:
            data['property'] = self.property.to_dict()

        if include_guest:
            data['guest'] = self.guest.to_dict()

        return data

    def __repr__(self):
        return f'<Booking {self.id} - Property {self.property_id}>'
